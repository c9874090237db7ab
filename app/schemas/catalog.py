from typing import Dict, List, Optional
from pydantic import BaseModel, Field, field_validator
from decimal import Decimal
from datetime import date, datetime, time


# Attraction Schemas
class AttractionBase(BaseModel):
    title: str
    description: Optional[str] = None
    image_url: Optional[str] = None
    base_price: Decimal = Field(ge=0)
    active: bool = True


class AttractionCreate(AttractionBase):
    pass


class AttractionUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None
    base_price: Optional[Decimal] = Field(default=None, ge=0)
    active: Optional[bool] = None


class Attraction(AttractionBase):
    id: int
    slug: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# Combo Schemas
class ComboBase(BaseModel):
    name: str
    image_url: Optional[str] = None
    attraction_ids: List[int] = Field(min_length=1)
    attraction_prices: Dict[str, Decimal] = {}
    total_price: Decimal = Field(ge=0)
    active: bool = True

    @field_validator("attraction_prices", mode="before")
    @classmethod
    def stringify_keys(cls, v):
        # JSON object keys are strings; accept int keys from Python callers
        if isinstance(v, dict):
            return {str(k): val for k, val in v.items()}
        return v


class ComboCreate(ComboBase):
    pass


class ComboUpdate(BaseModel):
    name: Optional[str] = None
    image_url: Optional[str] = None
    attraction_ids: Optional[List[int]] = None
    attraction_prices: Optional[Dict[str, Decimal]] = None
    total_price: Optional[Decimal] = Field(default=None, ge=0)
    active: Optional[bool] = None

    @field_validator("attraction_prices", mode="before")
    @classmethod
    def stringify_keys(cls, v):
        if isinstance(v, dict):
            return {str(k): val for k, val in v.items()}
        return v


class Combo(ComboBase):
    id: int
    slug: str
    slot_duration_hours: int
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# Add-on Schemas
class AddonBase(BaseModel):
    title: str
    description: Optional[str] = None
    price: Decimal = Field(ge=0)
    discount_percent: Decimal = Field(default=Decimal("0"), ge=0, le=100)
    active: bool = True


class AddonCreate(AddonBase):
    pass


class AddonUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    price: Optional[Decimal] = Field(default=None, ge=0)
    discount_percent: Optional[Decimal] = Field(default=None, ge=0, le=100)
    active: Optional[bool] = None


class Addon(AddonBase):
    id: int

    class Config:
        from_attributes = True


# Physical slot — Create (each item in the array)
class SlotCreate(BaseModel):
    slot_date: date
    start_time: time
    end_time: time
    capacity: int = Field(ge=0)
    price: Optional[Decimal] = Field(default=None, ge=0)
    available: bool = True


# Physical slot — Update (admin PATCH)
class SlotUpdate(BaseModel):
    slot_date: Optional[date] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    capacity: Optional[int] = Field(default=None, ge=0)
    price: Optional[Decimal] = Field(default=None, ge=0)
    available: Optional[bool] = None


class AttractionSlot(SlotCreate):
    id: int
    attraction_id: int

    class Config:
        from_attributes = True


class ComboSlot(SlotCreate):
    id: int
    combo_id: int

    class Config:
        from_attributes = True


# Priced slot listing (GET /attractions/{id}/slots, GET /combos/{id}/slots)
class OfferSummary(BaseModel):
    offer_id: int
    rule_id: Optional[int] = None
    title: str
    discount_type: Optional[str] = None
    discount_value: Optional[Decimal] = None


class PricedSlot(BaseModel):
    slot_id: str            # physical id as a string, or a virtual "{id}-{YYYYMMDD}-{HH}" id
    is_virtual: bool
    slot_date: date
    start_time: time
    end_time: time
    label: str
    capacity: int
    booked: int
    available: int
    base_price: Decimal
    unit_price: Decimal
    discount: Decimal
    offer: Optional[OfferSummary] = None
