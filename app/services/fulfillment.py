"""
Post-payment fulfilment: tickets, WhatsApp, email and the in-app notification.

Runs after the payment transition has committed (as a FastAPI background
task), in its own session. Failures are logged and reflected in the
``whatsapp_sent`` / ``email_sent`` flags; they never change order state.
"""
import logging

from sqlalchemy.orm import selectinload

from app.db.session import SessionLocal
from app.models.booking import Booking, BookingAddon
from app.models.notification import Notification
from app.models.order import Order, PAYMENT_COMPLETED
from app.services.notifications import TicketNotifier
from app.services.tickets import TicketGenerator

logger = logging.getLogger(__name__)


class FulfillmentService:
    def __init__(self, session_factory=None, ticket_generator=None, notifier=None):
        self.session_factory = session_factory or SessionLocal
        self.tickets = ticket_generator or TicketGenerator()
        self.notifier = notifier or TicketNotifier()

    def _load_order(self, db, order_id: int):
        return (
            db.query(Order)
            .options(
                selectinload(Order.user),
                selectinload(Order.bookings).selectinload(Booking.addons).selectinload(BookingAddon.addon),
                selectinload(Order.bookings).selectinload(Booking.children),
            )
            .filter(Order.id == order_id)
            .first()
        )

    async def fulfil_order(self, order_id: int, notify_user: bool = True) -> None:
        db = self.session_factory()
        try:
            order = self._load_order(db, order_id)
            if order is None:
                logger.warning("Fulfilment skipped: order %s not found", order_id)
                return
            if order.payment_status != PAYMENT_COMPLETED:
                logger.warning("Fulfilment skipped: order %s is %s", order.ref, order.payment_status)
                return

            for booking in order.bookings:
                try:
                    booking.ticket_pdf = self.tickets.generate_ticket(booking)
                except Exception:
                    logger.exception("Ticket generation failed for booking %s", booking.ref)
            db.commit()

            # Child bookings of a combo travel on the parent's ticket
            for booking in order.bookings:
                if booking.parent_booking_id is not None:
                    continue
                try:
                    if await self.notifier.send_ticket_for_booking(booking):
                        booking.whatsapp_sent = True
                except Exception:
                    logger.exception("WhatsApp delivery failed for booking %s", booking.ref)

            try:
                if await self.notifier.send_ticket_email(order):
                    for booking in order.bookings:
                        booking.email_sent = True
            except Exception:
                logger.exception("Email delivery failed for order %s", order.ref)

            if notify_user and order.user_id is not None:
                db.add(Notification(
                    user_id=order.user_id,
                    title="Booking Confirmed",
                    message=f"Your order {order.ref} is confirmed. Tickets have been issued.",
                    type="booking_confirmed",
                    reference_id=order.id,
                ))
            db.commit()
            logger.info("Order %s fulfilled", order.ref)
        finally:
            db.close()


def get_fulfillment_service() -> FulfillmentService:
    """FastAPI dependency; overridden in tests."""
    return FulfillmentService()
