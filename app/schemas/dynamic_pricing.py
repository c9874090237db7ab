from typing import List, Literal, Optional
from pydantic import BaseModel, Field, model_validator
from decimal import Decimal
from datetime import date, datetime


class DateRange(BaseModel):
    from_date: date = Field(alias="from")
    to_date: date = Field(alias="to")

    model_config = {"populate_by_name": True}

    @model_validator(mode="after")
    def check_order(self):
        if self.from_date > self.to_date:
            raise ValueError("'from' must not be after 'to'")
        return self


class DynamicPricingRuleBase(BaseModel):
    name: str
    description: Optional[str] = None
    target_type: Literal["attraction", "combo", "all"]
    target_id: Optional[int] = None
    date_ranges: List[DateRange] = Field(min_length=1)
    price_adjustment_type: Literal["fixed", "percentage"]
    price_adjustment_value: Decimal
    active: bool = True


class DynamicPricingRuleCreate(DynamicPricingRuleBase):
    pass


class DynamicPricingRuleUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    target_type: Optional[Literal["attraction", "combo", "all"]] = None
    target_id: Optional[int] = None
    date_ranges: Optional[List[DateRange]] = None
    price_adjustment_type: Optional[Literal["fixed", "percentage"]] = None
    price_adjustment_value: Optional[Decimal] = None
    active: Optional[bool] = None


class DynamicPricingRule(DynamicPricingRuleBase):
    id: int
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
        populate_by_name = True
