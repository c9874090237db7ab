import logging
from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from app.core.errors import ValidationError
from app.models.coupon import Coupon
from app.utils.money import ZERO, to_decimal

logger = logging.getLogger(__name__)


def normalize_code(code: Optional[str]) -> Optional[str]:
    if code is None:
        return None
    code = code.strip().upper()
    return code or None


def get_coupon_by_code(
    db: Session,
    code: Optional[str],
    active_only: bool = True,
    on_date: Optional[date] = None,
) -> Optional[Coupon]:
    """Case-insensitive lookup. With ``active_only`` the coupon must be usable on ``on_date``."""
    code = normalize_code(code)
    if not code:
        return None

    query = db.query(Coupon).filter(func.upper(Coupon.code) == code)
    if active_only:
        match_date = on_date or date.today()
        query = query.filter(
            Coupon.active == True,  # noqa: E712
            or_(Coupon.valid_from.is_(None), Coupon.valid_from <= match_date),
            or_(Coupon.valid_to.is_(None), Coupon.valid_to >= match_date),
            or_(Coupon.usage_limit.is_(None), Coupon.used_count < Coupon.usage_limit),
        )
    return query.first()


def compute_discount(coupon: Optional[Coupon], amount) -> Decimal:
    """Discount the coupon grants on ``amount``; zero below the minimum order amount."""
    amount = to_decimal(amount)
    if coupon is None or amount <= ZERO:
        return ZERO
    if coupon.min_order_amount is not None and amount < to_decimal(coupon.min_order_amount):
        return ZERO

    value = to_decimal(coupon.discount_value)
    if coupon.discount_type == "percent":
        discount = amount * value / Decimal(100)
    elif coupon.discount_type == "amount":
        discount = value
    else:
        logger.warning("Coupon %s has unknown discount type %r", coupon.code, coupon.discount_type)
        return ZERO

    if coupon.max_discount is not None:
        discount = min(discount, to_decimal(coupon.max_discount))
    return min(max(discount, ZERO), amount)


def redeem_coupon(db: Session, coupon_id: int) -> Coupon:
    """
    Count one use of the coupon inside the caller's transaction. The row is
    locked so concurrent orders cannot exceed the usage limit.
    """
    coupon = db.query(Coupon).filter(Coupon.id == coupon_id).with_for_update().first()
    if coupon is None:
        raise ValidationError("Coupon no longer exists")
    if coupon.usage_limit is not None and (coupon.used_count or 0) >= coupon.usage_limit:
        raise ValidationError(f"Coupon {coupon.code} has reached its usage limit")
    coupon.used_count = (coupon.used_count or 0) + 1
    return coupon
