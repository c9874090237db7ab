from typing import List, Literal, Optional
from pydantic import BaseModel, Field, model_validator
from decimal import Decimal
from datetime import date, datetime, time


# Offer Rule — Create (each item of OfferCreate.rules)
class OfferRuleBase(BaseModel):
    target_type: Literal["attraction", "combo"] = "attraction"
    target_id: Optional[int] = None
    applies_to_all: bool = False
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    time_from: Optional[time] = None
    time_to: Optional[time] = None
    slot_type: Optional[Literal["attraction", "combo"]] = None
    slot_id: Optional[int] = None
    day_type: Optional[Literal["weekday", "weekend", "holiday", "custom"]] = None
    specific_days: Optional[List[int]] = None   # 0 = Sunday ... 6 = Saturday
    specific_date: Optional[date] = None
    specific_time: Optional[time] = None
    rule_discount_type: Optional[Literal["percent", "amount"]] = None
    rule_discount_value: Optional[Decimal] = Field(default=None, ge=0)
    priority: int = 100
    buy_qty: Optional[int] = None
    get_qty: Optional[int] = None
    get_target_type: Optional[str] = None
    get_target_id: Optional[int] = None
    get_discount_type: Optional[str] = None
    get_discount_value: Optional[Decimal] = None

    @model_validator(mode="after")
    def check_days_and_ranges(self):
        if self.specific_days is not None and any(d < 0 or d > 6 for d in self.specific_days):
            raise ValueError("specific_days must contain weekday numbers 0 (Sunday) to 6 (Saturday)")
        if self.day_type == "custom" and not self.specific_days:
            raise ValueError("specific_days is required when day_type is 'custom'")
        if self.date_from and self.date_to and self.date_from > self.date_to:
            raise ValueError("date_from must not be after date_to")
        return self


class OfferRuleCreate(OfferRuleBase):
    pass


class OfferRule(OfferRuleBase):
    id: int
    offer_id: int

    class Config:
        from_attributes = True


class OfferBase(BaseModel):
    title: str
    description: Optional[str] = None
    image_url: Optional[str] = None
    rule_type: Optional[Literal["plain", "buy_x_get_y"]] = None
    discount_type: Optional[Literal["percent", "amount"]] = "percent"
    discount_value: Decimal = Field(default=Decimal("0"), ge=0)
    max_discount: Optional[Decimal] = Field(default=None, ge=0)
    valid_from: Optional[date] = None
    valid_to: Optional[date] = None
    active: bool = True


class OfferCreate(OfferBase):
    rules: List[OfferRuleCreate] = []


# Offer — Update (admin PATCH). When `rules` is given, it replaces all rules.
class OfferUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None
    rule_type: Optional[Literal["plain", "buy_x_get_y"]] = None
    discount_type: Optional[Literal["percent", "amount"]] = None
    discount_value: Optional[Decimal] = Field(default=None, ge=0)
    max_discount: Optional[Decimal] = Field(default=None, ge=0)
    valid_from: Optional[date] = None
    valid_to: Optional[date] = None
    active: Optional[bool] = None
    rules: Optional[List[OfferRuleCreate]] = None


class Offer(OfferBase):
    id: int
    created_at: Optional[datetime] = None
    rules: List[OfferRule] = []

    class Config:
        from_attributes = True
