import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session, selectinload

from app.core.errors import OrderStateError
from app.db.session import get_db
from app.api.deps import get_current_user
from app.models.user import User
from app.models.booking import Booking
from app.models.order import Order, PAYMENT_COMPLETED
from app.schemas.booking import (
    BookingCreate,
    Booking as BookingSchema,
    CartQuoteOut,
    LineQuoteOut,
    QuoteAddon,
    Order as OrderSchema,
    OrderCreated,
    OrderDetail,
)
from app.schemas.common import PaginatedResponse
from app.services.cart import CartQuote, compute_totals_multi
from app.services.orders import cancel_order, create_bookings, get_order
from app.services.slots import PhysicalSlot, resolve_display_slot

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bookings", tags=["Bookings"])


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def serialize_booking(booking: Booking) -> BookingSchema:
    """Booking schema with the display slot resolved the same way everywhere."""
    slot = resolve_display_slot(booking)
    return BookingSchema.model_validate(booking).model_copy(update={
        "slot_start_time": slot.start,
        "slot_end_time": slot.end,
        "slot_label": slot.label,
    })


def serialize_order(order: Order) -> OrderDetail:
    return OrderDetail(
        **OrderSchema.model_validate(order).model_dump(),
        bookings=[serialize_booking(b) for b in order.bookings],
    )


def _serialize_quote(quote: CartQuote) -> CartQuoteOut:
    lines = []
    for line in quote.lines:
        slot_id = None
        if line.slot_ref is not None:
            slot_id = str(line.slot_ref.id) if isinstance(line.slot_ref, PhysicalSlot) else line.slot_ref.slot_id
        lines.append(LineQuoteOut(
            item_type=line.item_type,
            attraction_id=None if line.is_combo else line.target_id,
            combo_id=line.target_id if line.is_combo else None,
            title=line.product.name if line.is_combo else line.product.title,
            quantity=line.quantity,
            booking_date=line.booking_date,
            slot_id=slot_id,
            slot_start_time=line.slot_start_time,
            slot_end_time=line.slot_end_time,
            slot_label=line.slot_label,
            base_price=line.base_price,
            unit_price=line.unit_price,
            unit_discount=line.unit_discount,
            offer_id=line.offer_id,
            offer_title=line.offer["title"] if line.offer else None,
            addons=[
                QuoteAddon(addon_id=a.addon_id, title=a.title, quantity=a.quantity, unit_price=a.unit_price)
                for a in line.addons
            ],
            total_amount=line.total_amount,
            discount_amount=line.discount_amount,
            final_amount=line.final_amount,
        ))
    return CartQuoteOut(
        lines=lines,
        gross=quote.gross,
        offer_discount=quote.offer_discount,
        bundle_discount=quote.bundle_discount,
        bundle_summary=quote.bundle.summary if quote.bundle else None,
        coupon_code=quote.coupon_code,
        coupon_discount=quote.coupon_discount,
        total_discount=quote.total_discount,
        final_amount=quote.final_amount,
    )


# ---------------------------------------------------------------------------
# POST /bookings/quote — price a cart without booking it
# ---------------------------------------------------------------------------


@router.post("/quote", response_model=CartQuoteOut)
def quote_cart(data: BookingCreate, db: Session = Depends(get_db)):
    """
    Run the pricing pass for a cart: slot resolution, offer rules, add-ons,
    bundle offers and the coupon. Nothing is written.
    """
    quote = compute_totals_multi(db, data.items, data.coupon_code)
    return _serialize_quote(quote)


# ---------------------------------------------------------------------------
# POST /bookings — create an order from a cart
# ---------------------------------------------------------------------------


@router.post("/", response_model=OrderCreated, status_code=status.HTTP_201_CREATED)
def create_order(
    data: BookingCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Create a Pending order with one booking per cart line (plus child
    bookings for combos). Capacity of physical slots is enforced under row
    locks; any failure leaves no order or booking behind.
    """
    result = create_bookings(
        db,
        data.items,
        user_id=current_user.id,
        coupon_code=data.coupon_code,
        payment_mode=data.payment_mode,
    )
    order = get_order(db, result.order_id)
    return OrderCreated(
        order_id=order.id,
        order=OrderSchema.model_validate(order),
        bookings=[serialize_booking(b) for b in order.bookings],
    )


# ---------------------------------------------------------------------------
# GET /bookings — current user's bookings
# ---------------------------------------------------------------------------


@router.get("/", response_model=PaginatedResponse[BookingSchema])
def list_my_bookings(
    booking_status: Optional[str] = Query(None, description="Filter by booking status: Booked, Cancelled"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=50),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Return the authenticated user's top-level bookings, newest first."""
    query = (
        db.query(Booking)
        .options(selectinload(Booking.addons))
        .filter(Booking.user_id == current_user.id, Booking.parent_booking_id.is_(None))
    )
    if booking_status:
        query = query.filter(Booking.booking_status == booking_status)

    total = query.count()
    bookings = (
        query.order_by(Booking.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    return PaginatedResponse(
        data=[serialize_booking(b) for b in bookings],
        total=total,
        page=page,
        limit=limit,
        total_pages=-(-total // limit) if total else 0,
    )


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------


@router.get("/orders", response_model=PaginatedResponse[OrderSchema])
def list_my_orders(
    payment_status: Optional[str] = Query(None, description="Pending, Completed, Cancelled, Failed"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=50),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    query = db.query(Order).filter(Order.user_id == current_user.id)
    if payment_status:
        query = query.filter(Order.payment_status == payment_status)

    total = query.count()
    orders = query.order_by(Order.id.desc()).offset((page - 1) * limit).limit(limit).all()

    return PaginatedResponse(
        data=orders,
        total=total,
        page=page,
        limit=limit,
        total_pages=-(-total // limit) if total else 0,
    )


@router.get("/orders/{order_id}", response_model=OrderDetail)
def get_my_order(
    order_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Return one of the current user's orders with all its bookings."""
    return serialize_order(get_order(db, order_id, user_id=current_user.id))


@router.patch("/orders/{order_id}/cancel", response_model=OrderDetail)
def cancel_my_order(
    order_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Cancel an unpaid order. Every booking of the order is cancelled and its capacity released."""
    order = get_order(db, order_id, user_id=current_user.id)
    if order.payment_status == PAYMENT_COMPLETED:
        raise OrderStateError(f"Order {order.ref} is already paid; contact support to cancel it")
    cancel_order(db, order_id, user_id=current_user.id)
    return serialize_order(get_order(db, order_id, user_id=current_user.id))
