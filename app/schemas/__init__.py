from app.schemas.common import PaginatedResponse, ErrorResponse, InsufficientCapacityError
from app.schemas.user import User, UserCreate, UserUpdate, UserSummary, Token, TokenPayload
from app.schemas.catalog import (
    Attraction, AttractionCreate, AttractionUpdate,
    Combo, ComboCreate, ComboUpdate,
    Addon, AddonCreate, AddonUpdate,
    AttractionSlot, ComboSlot, SlotCreate, SlotUpdate, PricedSlot,
)
from app.schemas.offer import Offer, OfferCreate, OfferUpdate, OfferRule, OfferRuleCreate
from app.schemas.coupon import Coupon, CouponCreate, CouponUpdate, CouponCheck
from app.schemas.dynamic_pricing import DynamicPricingRule, DynamicPricingRuleCreate, DynamicPricingRuleUpdate
from app.schemas.holiday import Holiday, HolidayCreate, HolidayUpdate
from app.schemas.booking import (
    CartItem, BookingCreate, CartQuoteOut, Booking, Order, OrderDetail, OrderCreated,
    AdminBooking, AdminOrderDetail,
)
from app.schemas.notification import Notification
