"""
Order transaction manager.

Order creation runs in two phases: a pricing pass with no writes, then a
single database transaction that redeems the coupon, inserts the order,
checks capacity slot by slot and inserts bookings, add-on rows and combo
child bookings. Either everything commits or nothing does.

The payment state machine (complete / fail / cancel) lives here as well.
"""
import logging
import random
import string
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session, selectinload

from app.core.config import settings
from app.core.errors import NotFoundError, OrderStateError
from app.models.attraction import Attraction
from app.models.booking import (
    Booking,
    BookingAddon,
    BOOKING_BOOKED,
    BOOKING_CANCELLED,
    ITEM_ATTRACTION,
)
from app.models.combo import Combo
from app.models.order import (
    Order,
    PAYMENT_CANCELLED,
    PAYMENT_COMPLETED,
    PAYMENT_FAILED,
    PAYMENT_PENDING,
)
from app.services.capacity import lock_and_check, lock_physical_slots
from app.services.cart import CartQuote, LineQuote, compute_totals_multi
from app.services.coupons import redeem_coupon
from app.services.slots import format_slot_label, split_slot_segments
from app.utils.money import ZERO, to_decimal, to_money

logger = logging.getLogger(__name__)


@dataclass
class OrderResult:
    order_id: int
    order: Order
    bookings: List[Booking]
    quote: Optional[CartQuote] = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _generate_ref(db: Session, model, prefix: str) -> str:
    """Generate a unique '<PREFIX>-XXXXXXXX' reference for ``model``."""
    chars = string.ascii_uppercase + string.digits
    while True:
        ref = f"{prefix}-" + "".join(random.choices(chars, k=8))
        if not db.query(model.id).filter(model.ref == ref).first():
            return ref


def split_combo_amount(combo: Combo, amount: Decimal) -> List[Tuple[int, Decimal]]:
    """
    Split ``amount`` across the combo's attractions in proportion to their
    price shares (evenly when no shares are configured). The last attraction
    absorbs rounding so the parts always sum to ``amount``.
    """
    attraction_ids = [int(a) for a in (combo.attraction_ids or [])]
    if not attraction_ids:
        return []

    prices = combo.attraction_prices or {}
    shares = [to_decimal(prices.get(str(aid), prices.get(aid))) for aid in attraction_ids]
    share_sum = sum(shares, ZERO)
    if share_sum <= ZERO:
        shares = [Decimal(1)] * len(attraction_ids)
        share_sum = Decimal(len(attraction_ids))

    amount = to_money(amount)
    parts = []
    allocated = ZERO
    for idx, (aid, share) in enumerate(zip(attraction_ids, shares)):
        if idx == len(attraction_ids) - 1:
            part = amount - allocated
        else:
            part = to_money(amount * share / share_sum)
            allocated += part
        parts.append((aid, part))
    return parts


def _insert_booking(db: Session, order: Order, line: LineQuote, user_id: Optional[int]) -> Booking:
    booking = Booking(
        ref=_generate_ref(db, Booking, "BK"),
        order_id=order.id,
        user_id=user_id,
        item_type=line.item_type,
        attraction_id=None if line.is_combo else line.target_id,
        combo_id=line.target_id if line.is_combo else None,
        slot_id=None if line.is_combo else line.physical_slot_id,
        combo_slot_id=line.physical_slot_id if line.is_combo else None,
        offer_id=line.offer_id,
        quantity=line.quantity,
        booking_date=line.booking_date,
        total_amount=line.total_amount,
        discount_amount=line.discount_amount,
        final_amount=line.final_amount,
        payment_status=order.payment_status,
        booking_status=BOOKING_BOOKED,
        slot_start_time=line.slot_start_time,
        slot_end_time=line.slot_end_time,
        slot_label=line.slot_label,
    )
    db.add(booking)
    # Flush so the capacity SUM of a later line on the same slot sees this row
    db.flush()

    for addon in line.addons:
        db.add(BookingAddon(
            booking_id=booking.id,
            addon_id=addon.addon_id,
            quantity=addon.quantity,
            price=to_money(addon.unit_price),
        ))
    return booking


def _insert_child_bookings(db: Session, parent: Booking, line: LineQuote) -> List[Booking]:
    """One Attraction booking per attraction of the combo, each on its own time slice."""
    combo: Combo = line.product
    totals = split_combo_amount(combo, parent.total_amount)
    if not totals:
        return []
    discounts = [part for _, part in split_combo_amount(combo, parent.discount_amount)]

    known = {
        row.id for row in db.query(Attraction.id).filter(Attraction.id.in_([aid for aid, _ in totals])).all()
    }
    missing = [aid for aid, _ in totals if aid not in known]
    if missing:
        raise NotFoundError(f"Combo {combo.id} references missing attraction(s) {missing}")

    segments = []
    if parent.slot_start_time is not None and parent.slot_end_time is not None:
        segments = split_slot_segments(parent.slot_start_time, parent.slot_end_time, len(totals))

    children = []
    for idx, (attraction_id, total) in enumerate(totals):
        discount = min(discounts[idx], total)
        start, end = segments[idx] if segments else (None, None)
        child = Booking(
            ref=_generate_ref(db, Booking, "BK"),
            order_id=parent.order_id,
            user_id=parent.user_id,
            item_type=ITEM_ATTRACTION,
            attraction_id=attraction_id,
            quantity=parent.quantity,
            booking_date=parent.booking_date,
            total_amount=total,
            discount_amount=discount,
            final_amount=max(ZERO, total - discount),
            payment_status=parent.payment_status,
            booking_status=BOOKING_BOOKED,
            slot_start_time=start,
            slot_end_time=end,
            slot_label=format_slot_label(start, end),
            parent_booking_id=parent.id,
        )
        db.add(child)
        children.append(child)
    db.flush()
    return children


# ---------------------------------------------------------------------------
# Order creation
# ---------------------------------------------------------------------------


def create_bookings(
    db: Session,
    items: list,
    user_id: Optional[int],
    coupon_code: Optional[str] = None,
    payment_mode: Optional[str] = None,
) -> OrderResult:
    """
    Create one Pending order with a booking per cart line.

    Raises ValidationError / NotFoundError before any write when pricing
    fails, and CapacityConflict (after rolling back) when a slot is full.
    """
    quote = compute_totals_multi(db, items, coupon_code)

    try:
        if quote.coupon is not None:
            redeem_coupon(db, quote.coupon.id)

        order = Order(
            ref=_generate_ref(db, Order, "ORD"),
            user_id=user_id,
            total_amount=quote.gross,
            discount_amount=quote.total_discount,
            final_amount=quote.final_amount,
            payment_status=PAYMENT_PENDING,
            payment_mode=payment_mode or settings.DEFAULT_PAYMENT_MODE,
            coupon_code=quote.coupon_code,
        )
        db.add(order)
        db.flush()

        lock_physical_slots(db, [line.slot_ref for line in quote.lines])

        bookings = []
        for line in quote.lines:
            lock_and_check(db, line.slot_ref, line.quantity)
            booking = _insert_booking(db, order, line, user_id)
            bookings.append(booking)
            if line.is_combo:
                _insert_child_bookings(db, booking, line)

        db.commit()
    except Exception as exc:
        db.rollback()
        logger.warning(
            "Order creation rolled back for user %s: %s",
            user_id, getattr(exc, "kind", type(exc).__name__),
        )
        raise

    db.refresh(order)
    logger.info("Order %s created with %d booking(s)", order.ref, len(bookings))
    return OrderResult(order_id=order.id, order=order, bookings=bookings, quote=quote)


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------


def get_order(db: Session, order_id: int, user_id: Optional[int] = None) -> Order:
    query = (
        db.query(Order)
        .options(selectinload(Order.bookings).selectinload(Booking.addons))
        .filter(Order.id == order_id)
    )
    if user_id is not None:
        query = query.filter(Order.user_id == user_id)
    order = query.first()
    if order is None:
        raise NotFoundError(f"Order {order_id} not found")
    return order


def _lock_order(db: Session, order_id: int) -> Order:
    order = db.query(Order).filter(Order.id == order_id).with_for_update().first()
    if order is None:
        raise NotFoundError(f"Order {order_id} not found")
    return order


# ---------------------------------------------------------------------------
# Payment state machine
# ---------------------------------------------------------------------------


def complete_order(db: Session, order_id: int, reference: Optional[str] = None) -> Tuple[Order, bool]:
    """
    Pending | Failed -> Completed. Returns (order, transitioned); completing
    an already completed order is a no-op.
    """
    order = _lock_order(db, order_id)
    if order.payment_status == PAYMENT_COMPLETED:
        db.rollback()
        return order, False
    if order.payment_status == PAYMENT_CANCELLED:
        db.rollback()
        raise OrderStateError(f"Order {order.ref} is cancelled and cannot be paid")

    order.payment_status = PAYMENT_COMPLETED
    if reference:
        order.payment_ref = reference
    for booking in order.bookings:
        booking.payment_status = PAYMENT_COMPLETED
        booking.payment_ref = order.payment_ref
    db.commit()
    db.refresh(order)
    logger.info("Order %s marked Completed (ref=%s)", order.ref, order.payment_ref)
    return order, True


def fail_order(db: Session, order_id: int, reference: Optional[str] = None) -> Order:
    """Pending -> Failed. Failed orders may still be paid or cancelled later."""
    order = _lock_order(db, order_id)
    if order.payment_status == PAYMENT_FAILED:
        db.rollback()
        return order
    if order.payment_status != PAYMENT_PENDING:
        db.rollback()
        raise OrderStateError(f"Order {order.ref} is {order.payment_status} and cannot be marked failed")

    order.payment_status = PAYMENT_FAILED
    if reference:
        order.payment_ref = reference
    for booking in order.bookings:
        booking.payment_status = PAYMENT_FAILED
    db.commit()
    db.refresh(order)
    logger.info("Order %s marked Failed", order.ref)
    return order


def cancel_order(db: Session, order_id: int, user_id: Optional[int] = None) -> Order:
    """
    Pending | Failed | Completed -> Cancelled, cascading booking_status=Cancelled
    to every booking of the order so their slot capacity is released. Refunds
    for a cancelled paid order are handled outside this service.
    """
    order = _lock_order(db, order_id)
    if user_id is not None and order.user_id != user_id:
        db.rollback()
        raise NotFoundError(f"Order {order_id} not found")
    if order.payment_status == PAYMENT_CANCELLED:
        db.rollback()
        return order
    was_paid = order.payment_status == PAYMENT_COMPLETED

    order.payment_status = PAYMENT_CANCELLED
    for booking in order.bookings:
        booking.payment_status = PAYMENT_CANCELLED
        booking.booking_status = BOOKING_CANCELLED
    db.commit()
    db.refresh(order)
    logger.info("Order %s cancelled%s", order.ref, " after payment" if was_paid else "")
    return order
