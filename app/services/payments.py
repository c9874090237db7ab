"""
Payment gateway contract.

Only the contract matters to the booking core: an order amount goes out, a
reference and a success / pending / failure status come back. The shipped
``OfflineGateway`` settles payments out of band (cash desk, admin "mark
paid"); real gateways subclass ``PaymentGateway``.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Tuple

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import PaymentGatewayError
from app.models.order import Order, PAYMENT_COMPLETED, PAYMENT_FAILED
from app.services.orders import complete_order, fail_order

logger = logging.getLogger(__name__)

STATUS_SUCCESS = "success"
STATUS_PENDING = "pending"
STATUS_FAILED = "failed"


@dataclass
class PaymentInitiation:
    gateway: str
    reference: str
    amount: Decimal
    redirect_url: Optional[str] = None


@dataclass
class PaymentStatusResult:
    status: str
    reference: Optional[str] = None


class PaymentGateway:
    name = "base"

    def initiate(self, order: Order) -> PaymentInitiation:
        raise NotImplementedError

    def check_status(self, order: Order) -> PaymentStatusResult:
        raise NotImplementedError


class OfflineGateway(PaymentGateway):
    """Payments collected outside the system and confirmed by an admin."""

    name = "offline"

    def initiate(self, order: Order) -> PaymentInitiation:
        return PaymentInitiation(
            gateway=self.name,
            reference=order.payment_ref or f"OFF-{order.ref}",
            amount=order.final_amount,
        )

    def check_status(self, order: Order) -> PaymentStatusResult:
        if order.payment_status == PAYMENT_COMPLETED:
            return PaymentStatusResult(status=STATUS_SUCCESS, reference=order.payment_ref)
        if order.payment_status == PAYMENT_FAILED:
            return PaymentStatusResult(status=STATUS_FAILED, reference=order.payment_ref)
        return PaymentStatusResult(status=STATUS_PENDING, reference=order.payment_ref)


_GATEWAYS = {
    OfflineGateway.name: OfflineGateway,
}


def get_payment_gateway() -> PaymentGateway:
    """FastAPI dependency; overridden in tests."""
    gateway_cls = _GATEWAYS.get(settings.PAYMENT_GATEWAY)
    if gateway_cls is None:
        raise PaymentGatewayError(f"Unknown payment gateway {settings.PAYMENT_GATEWAY!r}")
    return gateway_cls()


def initiate_payment(db: Session, order: Order, gateway: PaymentGateway) -> PaymentInitiation:
    try:
        initiation = gateway.initiate(order)
    except PaymentGatewayError:
        raise
    except Exception as exc:
        logger.exception("Payment initiation failed for order %s", order.ref)
        raise PaymentGatewayError(f"Payment gateway error: {exc}")

    if initiation.reference and initiation.reference != order.payment_ref:
        order.payment_ref = initiation.reference
        db.commit()
        db.refresh(order)
    return initiation


def sync_payment_status(db: Session, order: Order, gateway: PaymentGateway) -> Tuple[Order, bool]:
    """
    Ask the gateway for the payment outcome and apply it to the order.
    Returns (order, newly_completed). A gateway error leaves the order untouched.
    """
    try:
        result = gateway.check_status(order)
    except PaymentGatewayError:
        raise
    except Exception as exc:
        logger.exception("Payment status check failed for order %s", order.ref)
        raise PaymentGatewayError(f"Payment gateway error: {exc}")

    if result.status == STATUS_SUCCESS:
        return complete_order(db, order.id, result.reference)
    if result.status == STATUS_FAILED:
        return fail_order(db, order.id, result.reference), False
    return order, False
