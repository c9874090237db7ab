from __future__ import annotations

from typing import List, Literal, Optional, Union
from pydantic import BaseModel, Field, field_validator
from decimal import Decimal
from datetime import date, datetime, time


# Cart item — one line of POST /bookings and POST /bookings/quote
class CartAddon(BaseModel):
    addon_id: int
    quantity: int = Field(default=1, ge=1)


class CartItem(BaseModel):
    item_type: Optional[Literal["Attraction", "Combo"]] = None
    attraction_id: Optional[int] = None
    combo_id: Optional[int] = None
    slot_id: Optional[Union[int, str]] = None
    combo_slot_id: Optional[Union[int, str]] = None
    quantity: int = Field(default=1, ge=1)
    booking_date: date
    slot_start_time: Optional[time] = None
    slot_end_time: Optional[time] = None
    slot_label: Optional[str] = None
    offer_id: Optional[int] = None       # informational; the applied offer is resolved server-side
    coupon_code: Optional[str] = None
    addons: List[CartAddon] = []

    @field_validator("slot_id", "combo_slot_id", "coupon_code", "slot_label", mode="before")
    @classmethod
    def parse_empty_str_to_none(cls, v):
        if isinstance(v, str) and v.strip() == "":
            return None
        return v

    @field_validator("item_type", mode="before")
    @classmethod
    def normalize_item_type(cls, v):
        if isinstance(v, str) and v.strip():
            return v.strip().capitalize()
        return v or None


# Booking — Create (POST /bookings)
class BookingCreate(BaseModel):
    items: List[CartItem] = Field(min_length=1)
    coupon_code: Optional[str] = None
    payment_mode: Optional[str] = None

    @field_validator("coupon_code", mode="before")
    @classmethod
    def parse_empty_str_to_none(cls, v):
        if isinstance(v, str) and v.strip() == "":
            return None
        return v


# Quote (POST /bookings/quote) — pricing pass only
class QuoteAddon(BaseModel):
    addon_id: int
    title: str
    quantity: int
    unit_price: Decimal


class LineQuoteOut(BaseModel):
    item_type: str
    attraction_id: Optional[int] = None
    combo_id: Optional[int] = None
    title: str
    quantity: int
    booking_date: date
    slot_id: Optional[str] = None
    slot_start_time: Optional[time] = None
    slot_end_time: Optional[time] = None
    slot_label: Optional[str] = None
    base_price: Decimal
    unit_price: Decimal
    unit_discount: Decimal
    offer_id: Optional[int] = None
    offer_title: Optional[str] = None
    addons: List[QuoteAddon] = []
    total_amount: Decimal
    discount_amount: Decimal
    final_amount: Decimal


class CartQuoteOut(BaseModel):
    lines: List[LineQuoteOut]
    gross: Decimal
    offer_discount: Decimal
    bundle_discount: Decimal
    bundle_summary: Optional[str] = None
    coupon_code: Optional[str] = None
    coupon_discount: Decimal
    total_discount: Decimal
    final_amount: Decimal


# Nested response objects for booking responses
class BookingAddonOut(BaseModel):
    addon_id: int
    quantity: int
    price: Decimal

    class Config:
        from_attributes = True


class Booking(BaseModel):
    id: int
    ref: str
    order_id: int
    item_type: str
    item_title: str
    attraction_id: Optional[int] = None
    combo_id: Optional[int] = None
    slot_id: Optional[int] = None
    combo_slot_id: Optional[int] = None
    offer_id: Optional[int] = None
    quantity: int
    booking_date: date
    total_amount: Decimal
    discount_amount: Decimal
    final_amount: Decimal
    payment_status: str
    payment_ref: Optional[str] = None
    booking_status: str
    slot_start_time: Optional[time] = None
    slot_end_time: Optional[time] = None
    slot_label: Optional[str] = None
    parent_booking_id: Optional[int] = None
    ticket_pdf: Optional[str] = None
    whatsapp_sent: bool = False
    email_sent: bool = False
    created_at: Optional[datetime] = None
    addons: List[BookingAddonOut] = []

    class Config:
        from_attributes = True


class Order(BaseModel):
    id: int
    ref: str
    user_id: Optional[int] = None
    total_amount: Decimal
    discount_amount: Decimal
    final_amount: Decimal
    payment_status: str
    payment_mode: Optional[str] = None
    payment_ref: Optional[str] = None
    coupon_code: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class OrderDetail(Order):
    bookings: List[Booking] = []


# Booking — Create response (POST /bookings)
class OrderCreated(BaseModel):
    order_id: int
    order: Order
    bookings: List[Booking]


# Order — Admin view (GET /admin/orders/{id}, includes user info)
class AdminOrderDetail(OrderDetail):
    user: Optional[UserSummary] = None


# Booking — Admin list row (GET /admin/bookings)
class AdminBooking(Booking):
    order_ref: Optional[str] = None
    user: Optional[UserSummary] = None


# Payment initiation / status
class PaymentInitiationOut(BaseModel):
    order_id: int
    gateway: str
    reference: str
    amount: Decimal
    redirect_url: Optional[str] = None


class PaymentStatusOut(BaseModel):
    order_id: int
    status: str
    payment_status: str
    payment_ref: Optional[str] = None


class MarkPaid(BaseModel):
    reference: Optional[str] = None


# Import at the bottom to avoid circular imports
from app.schemas.user import UserSummary  # noqa: E402

AdminOrderDetail.model_rebuild()
AdminBooking.model_rebuild()
