from typing import Literal, Optional
from pydantic import BaseModel, Field, field_validator
from decimal import Decimal
from datetime import date, datetime


class CouponBase(BaseModel):
    code: str
    description: Optional[str] = None
    discount_type: Literal["percent", "amount"] = "percent"
    discount_value: Decimal = Field(ge=0)
    max_discount: Optional[Decimal] = Field(default=None, ge=0)
    min_order_amount: Optional[Decimal] = Field(default=None, ge=0)
    valid_from: Optional[date] = None
    valid_to: Optional[date] = None
    active: bool = True
    usage_limit: Optional[int] = Field(default=None, ge=1)

    @field_validator("code")
    @classmethod
    def upper_code(cls, v: str) -> str:
        v = v.strip().upper()
        if not v:
            raise ValueError("code must not be empty")
        return v


class CouponCreate(CouponBase):
    pass


class CouponUpdate(BaseModel):
    description: Optional[str] = None
    discount_type: Optional[Literal["percent", "amount"]] = None
    discount_value: Optional[Decimal] = Field(default=None, ge=0)
    max_discount: Optional[Decimal] = Field(default=None, ge=0)
    min_order_amount: Optional[Decimal] = Field(default=None, ge=0)
    valid_from: Optional[date] = None
    valid_to: Optional[date] = None
    active: Optional[bool] = None
    usage_limit: Optional[int] = Field(default=None, ge=1)


class Coupon(CouponBase):
    id: int
    used_count: int = 0
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# Coupon check (GET /coupons/{code}?amount=...)
class CouponCheck(BaseModel):
    code: str
    valid: bool
    discount: Decimal
    description: Optional[str] = None
