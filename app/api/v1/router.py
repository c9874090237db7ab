from fastapi import APIRouter

# Auth
from app.api.v1.public.auth import router as auth_router

# Public — catalog & priced slots
from app.api.v1.public.catalog import (
    attractions_router,
    combos_router,
    addons_router,
    coupons_router,
)

# Public — quotes, bookings, orders
from app.api.v1.public.bookings import router as bookings_router

# Public — payments
from app.api.v1.public.payments import router as payments_router

# Public — user profile & notifications
from app.api.v1.public.me import router as me_router

# Admin
from app.api.v1.admin.catalog import router as admin_catalog_router
from app.api.v1.admin.offers import router as admin_offers_router
from app.api.v1.admin.pricing import (
    coupon_router as admin_coupon_router,
    dynamic_pricing_router as admin_dynamic_pricing_router,
    holiday_router as admin_holiday_router,
)
from app.api.v1.admin.bookings import (
    router as admin_bookings_router,
    order_router as admin_order_router,
)

api_router = APIRouter()

# --- Auth ---
api_router.include_router(auth_router)

# --- Public: catalog ---
api_router.include_router(attractions_router)
api_router.include_router(combos_router)
api_router.include_router(addons_router)
api_router.include_router(coupons_router)

# --- Public: bookings ---
api_router.include_router(bookings_router)

# --- Public: payments ---
api_router.include_router(payments_router)

# --- Public: profile & notifications ---
api_router.include_router(me_router)

# --- Admin ---
api_router.include_router(admin_catalog_router)
api_router.include_router(admin_offers_router)
api_router.include_router(admin_coupon_router)
api_router.include_router(admin_dynamic_pricing_router)
api_router.include_router(admin_holiday_router)
api_router.include_router(admin_bookings_router)
api_router.include_router(admin_order_router)
