import asyncio
import json
import os

import httpx
import pytest

from app.core.errors import NotificationError
from app.models.booking import Booking
from app.models.notification import Notification
from app.models.order import Order
from app.schemas.booking import CartItem
from app.services.fulfillment import FulfillmentService
from app.services.notifications import EmailSender, WhatsAppSender, normalize_phone
from app.services.orders import complete_order, create_bookings
from app.services.tickets import TicketGenerator

from factories import BOOKING_DATE, make_attraction, make_combo


class FakeNotifier:
    def __init__(self, whatsapp_result=True, email_result=True, fail=False):
        self.whatsapp_result = whatsapp_result
        self.email_result = email_result
        self.fail = fail
        self.whatsapp_refs = []
        self.emailed_orders = []

    async def send_ticket_for_booking(self, booking):
        self.whatsapp_refs.append(booking.ref)
        if self.fail:
            raise NotificationError("gateway down")
        return self.whatsapp_result

    async def send_ticket_email(self, order):
        self.emailed_orders.append(order.ref)
        if self.fail:
            raise NotificationError("smtp down")
        return self.email_result


def _paid_order(db, user, items):
    result = create_bookings(db, items, user_id=user.id)
    order, _ = complete_order(db, result.order_id, reference="PAY-1")
    return order


@pytest.fixture
def tickets(tmp_path):
    return TicketGenerator(tickets_dir=str(tmp_path))


def test_fulfil_generates_tickets_and_notifies(db, session_factory, user, attraction, tickets, tmp_path):
    order = _paid_order(db, user, [CartItem(attraction_id=attraction.id, booking_date=BOOKING_DATE)])
    notifier = FakeNotifier()
    service = FulfillmentService(session_factory=session_factory, ticket_generator=tickets, notifier=notifier)

    asyncio.run(service.fulfil_order(order.id))

    db.expire_all()
    booking = db.query(Booking).filter(Booking.order_id == order.id).one()
    assert booking.ticket_pdf == f"/tickets/ticket_{booking.ref}.pdf"
    assert os.path.exists(tmp_path / f"ticket_{booking.ref}.pdf")
    assert booking.whatsapp_sent and booking.email_sent
    assert notifier.emailed_orders == [order.ref]

    notification = db.query(Notification).filter(Notification.user_id == user.id).one()
    assert notification.type == "booking_confirmed"
    assert notification.reference_id == order.id


def test_combo_children_get_tickets_but_no_whatsapp(db, session_factory, user, tickets):
    parks = [make_attraction(db, title=f"Park {n}") for n in range(2)]
    combo = make_combo(db, parks)
    order = _paid_order(db, user, [CartItem(combo_id=combo.id, booking_date=BOOKING_DATE)])
    notifier = FakeNotifier()

    asyncio.run(FulfillmentService(session_factory, tickets, notifier).fulfil_order(order.id))

    db.expire_all()
    bookings = db.query(Booking).filter(Booking.order_id == order.id).all()
    assert len(bookings) == 3
    assert all(b.ticket_pdf for b in bookings)
    parent = next(b for b in bookings if b.parent_booking_id is None)
    assert notifier.whatsapp_refs == [parent.ref]


def test_delivery_failures_do_not_touch_order(db, session_factory, user, attraction, tickets):
    order = _paid_order(db, user, [CartItem(attraction_id=attraction.id, booking_date=BOOKING_DATE)])
    service = FulfillmentService(session_factory, tickets, FakeNotifier(fail=True))

    asyncio.run(service.fulfil_order(order.id))

    db.expire_all()
    booking = db.query(Booking).filter(Booking.order_id == order.id).one()
    assert booking.ticket_pdf is not None
    assert not booking.whatsapp_sent and not booking.email_sent
    assert db.get(Order, order.id).payment_status == "Completed"


def test_unpaid_order_is_not_fulfilled(db, session_factory, user, attraction, tickets):
    result = create_bookings(db, [CartItem(attraction_id=attraction.id, booking_date=BOOKING_DATE)], user_id=user.id)
    notifier = FakeNotifier()

    asyncio.run(FulfillmentService(session_factory, tickets, notifier).fulfil_order(result.order_id))

    db.expire_all()
    assert db.query(Booking).filter(Booking.order_id == result.order_id).one().ticket_pdf is None
    assert notifier.whatsapp_refs == []
    assert db.query(Notification).count() == 0


# ---------------------------------------------------------------------------
# Channels
# ---------------------------------------------------------------------------


def test_normalize_phone():
    assert normalize_phone("+91 98765-43210") == ("+91", "9876543210")
    assert normalize_phone("12345") is None
    assert normalize_phone(None) is None


def test_whatsapp_posts_ticket_document(db, user, attraction):
    order = _paid_order(db, user, [CartItem(attraction_id=attraction.id, booking_date=BOOKING_DATE)])
    booking = order.bookings[0]
    booking.ticket_pdf = f"/tickets/ticket_{booking.ref}.pdf"
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(200, json={"result": True})

    sender = WhatsAppSender(
        api_url="https://whatsapp.test/message/",
        api_key="secret",
        public_base_url="https://tickets.test",
        transport=httpx.MockTransport(handler),
    )
    assert asyncio.run(sender.send_ticket_for_booking(booking))

    [request] = requests
    payload = json.loads(request.content)
    assert request.headers["Authorization"] == "Basic secret"
    assert payload["phoneNumber"] == "9876543210"
    assert payload["type"] == "Document"
    assert payload["data"]["mediaUrl"] == f"https://tickets.test/tickets/ticket_{booking.ref}.pdf"


def test_whatsapp_respects_consent_and_errors(db, user, attraction):
    order = _paid_order(db, user, [CartItem(attraction_id=attraction.id, booking_date=BOOKING_DATE)])
    booking = order.bookings[0]

    failing = WhatsAppSender(
        api_url="https://whatsapp.test/message/",
        api_key="secret",
        transport=httpx.MockTransport(lambda request: httpx.Response(500)),
    )
    with pytest.raises(NotificationError):
        asyncio.run(failing.send_ticket_for_booking(booking))

    user.whatsapp_consent = False
    db.commit()
    assert asyncio.run(failing.send_ticket_for_booking(booking)) is False
    assert asyncio.run(WhatsAppSender(api_key="").send_ticket_for_booking(booking)) is False


def test_email_attaches_generated_tickets(db, user, attraction, tickets, tmp_path):
    order = _paid_order(db, user, [CartItem(attraction_id=attraction.id, booking_date=BOOKING_DATE)])
    booking = order.bookings[0]
    booking.ticket_pdf = tickets.generate_ticket(booking)

    sender = EmailSender(hostname="smtp.test", tickets_dir=str(tmp_path))
    message = sender.build_message(order)

    assert message["To"] == user.email
    assert order.ref in message["Subject"]
    attachments = list(message.iter_attachments())
    assert [a.get_filename() for a in attachments] == [f"ticket_{booking.ref}.pdf"]

    assert asyncio.run(EmailSender(hostname="").send_ticket_email(order)) is False
