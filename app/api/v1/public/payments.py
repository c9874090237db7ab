from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.api.deps import get_current_user
from app.core.errors import OrderStateError
from app.models.order import PAYMENT_CANCELLED, PAYMENT_COMPLETED, PAYMENT_FAILED
from app.models.user import User
from app.schemas.booking import PaymentInitiationOut, PaymentStatusOut
from app.services.fulfillment import FulfillmentService, get_fulfillment_service
from app.services.orders import get_order
from app.services.payments import (
    PaymentGateway,
    get_payment_gateway,
    initiate_payment,
    sync_payment_status,
)

router = APIRouter(prefix="/payments", tags=["Payments"])

_STATUS_BY_PAYMENT_STATUS = {
    PAYMENT_COMPLETED: "success",
    PAYMENT_FAILED: "failed",
    PAYMENT_CANCELLED: "cancelled",
}


@router.post("/orders/{order_id}/initiate", response_model=PaymentInitiationOut)
def initiate_order_payment(
    order_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    """Start payment of a Pending (or previously Failed) order."""
    order = get_order(db, order_id, user_id=current_user.id)
    if order.payment_status in (PAYMENT_COMPLETED, PAYMENT_CANCELLED):
        raise OrderStateError(f"Order {order.ref} is {order.payment_status}")

    initiation = initiate_payment(db, order, gateway)
    return PaymentInitiationOut(
        order_id=order.id,
        gateway=initiation.gateway,
        reference=initiation.reference,
        amount=initiation.amount,
        redirect_url=initiation.redirect_url,
    )


@router.get("/orders/{order_id}/status", response_model=PaymentStatusOut)
def check_order_payment(
    order_id: int,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    fulfillment: FulfillmentService = Depends(get_fulfillment_service),
):
    """
    Ask the gateway for the payment outcome. On the first successful check the
    order and its bookings move to Completed and tickets are issued in the background.
    """
    order = get_order(db, order_id, user_id=current_user.id)
    order, completed_now = sync_payment_status(db, order, gateway)
    if completed_now:
        background_tasks.add_task(fulfillment.fulfil_order, order.id)

    status = _STATUS_BY_PAYMENT_STATUS.get(order.payment_status, "pending")
    return PaymentStatusOut(
        order_id=order.id,
        status=status,
        payment_status=order.payment_status,
        payment_ref=order.payment_ref,
    )
