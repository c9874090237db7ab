from typing import Optional
from datetime import date

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.orm import Session, joinedload, selectinload

from app.db.session import get_db
from app.api.deps import get_current_admin_user
from app.api.v1.public.bookings import serialize_booking, serialize_order
from app.core.errors import OrderStateError
from app.models.user import User
from app.models.booking import Booking
from app.models.order import Order, PAYMENT_COMPLETED
from app.schemas.booking import AdminBooking, AdminOrderDetail, MarkPaid
from app.schemas.common import Message, PaginatedResponse
from app.schemas.user import UserSummary
from app.services.fulfillment import FulfillmentService, get_fulfillment_service
from app.services.orders import cancel_order, complete_order, get_order

router = APIRouter(prefix="/admin/bookings", tags=["Admin - Bookings"])
order_router = APIRouter(prefix="/admin/orders", tags=["Admin - Orders"])


def _serialize_admin_booking(booking: Booking) -> AdminBooking:
    return AdminBooking(
        **serialize_booking(booking).model_dump(),
        order_ref=booking.order.ref if booking.order else None,
        user=UserSummary.model_validate(booking.user) if booking.user else None,
    )


def _serialize_admin_order(order: Order) -> AdminOrderDetail:
    return AdminOrderDetail(
        **serialize_order(order).model_dump(),
        user=UserSummary.model_validate(order.user) if order.user else None,
    )


# ---------------------------------------------------------------------------
# Bookings
# ---------------------------------------------------------------------------


@router.get("/", response_model=PaginatedResponse[AdminBooking])
def list_all_bookings(
    # --- Filters ---
    item_type: Optional[str] = Query(None, description="Attraction or Combo"),
    attraction_id: Optional[int] = None,
    combo_id: Optional[int] = None,
    booking_date: Optional[date] = Query(None, description="Filter by visit date (YYYY-MM-DD)"),
    booking_status: Optional[str] = Query(None, description="Booked or Cancelled"),
    payment_status: Optional[str] = Query(None, description="Pending, Completed, Cancelled, Failed"),
    include_children: bool = Query(False, description="Include the per-attraction rows of combo bookings"),
    # --- Pagination ---
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user),
):
    """Return all bookings, newest first, with the booking user and order reference."""
    query = db.query(Booking).options(
        joinedload(Booking.user),
        joinedload(Booking.order),
        selectinload(Booking.addons),
    )

    if item_type:
        query = query.filter(Booking.item_type == item_type)
    if attraction_id:
        query = query.filter(Booking.attraction_id == attraction_id)
    if combo_id:
        query = query.filter(Booking.combo_id == combo_id)
    if booking_date:
        query = query.filter(Booking.booking_date == booking_date)
    if booking_status:
        query = query.filter(Booking.booking_status == booking_status)
    if payment_status:
        query = query.filter(Booking.payment_status == payment_status)
    if not include_children:
        query = query.filter(Booking.parent_booking_id.is_(None))

    total = query.count()
    bookings = (
        query.order_by(Booking.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    return PaginatedResponse(
        data=[_serialize_admin_booking(b) for b in bookings],
        total=total,
        page=page,
        limit=limit,
        total_pages=-(-total // limit) if total else 0,
    )


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------


@order_router.get("/{order_id}", response_model=AdminOrderDetail)
def get_order_detail(
    order_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user),
):
    return _serialize_admin_order(get_order(db, order_id))


@order_router.post("/{order_id}/mark-paid", response_model=AdminOrderDetail)
def mark_order_paid(
    order_id: int,
    body: MarkPaid,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user),
    fulfillment: FulfillmentService = Depends(get_fulfillment_service),
):
    """Record an out-of-band payment. Tickets are issued the first time an order completes."""
    order, transitioned = complete_order(db, order_id, body.reference)
    if transitioned:
        background_tasks.add_task(fulfillment.fulfil_order, order.id)
    return _serialize_admin_order(get_order(db, order_id))


@order_router.patch("/{order_id}/cancel", response_model=AdminOrderDetail)
def cancel_order_admin(
    order_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user),
):
    cancel_order(db, order_id)
    return _serialize_admin_order(get_order(db, order_id))


@order_router.post("/{order_id}/resend-tickets", response_model=Message)
def resend_tickets(
    order_id: int,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user),
    fulfillment: FulfillmentService = Depends(get_fulfillment_service),
):
    """Regenerate tickets and resend them over WhatsApp and email."""
    order = get_order(db, order_id)
    if order.payment_status != PAYMENT_COMPLETED:
        raise OrderStateError(f"Order {order.ref} is {order.payment_status}; tickets are issued after payment")
    background_tasks.add_task(fulfillment.fulfil_order, order.id, False)
    return Message(message="Tickets queued for delivery", detail=order.ref)
