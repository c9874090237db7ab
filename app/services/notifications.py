"""
Ticket delivery over WhatsApp (Interakt HTTP API) and email (SMTP).

Senders return False when a message is skipped (channel not configured, no
consent, no recipient) and raise NotificationError when delivery fails.
"""
import logging
import os
import re
from email.message import EmailMessage
from typing import Optional, Tuple

import aiosmtplib
import httpx

from app.core.config import settings
from app.core.errors import NotificationError
from app.services.slots import resolve_display_slot
from app.utils.money import to_money

logger = logging.getLogger(__name__)


def normalize_phone(phone: Optional[str]) -> Optional[Tuple[str, str]]:
    """(country_code, 10-digit number) for Indian numbers, None when unusable."""
    if not phone:
        return None
    digits = re.sub(r"[^0-9]", "", str(phone))
    if len(digits) < 10:
        return None
    return "+91", digits[-10:]


class WhatsAppSender:
    def __init__(self, api_url: str = None, api_key: str = None, public_base_url: str = None, timeout: float = 10.0,
                 transport: httpx.AsyncBaseTransport = None):
        self.api_url = api_url if api_url is not None else settings.INTERAKT_API_URL
        self.api_key = api_key if api_key is not None else settings.INTERAKT_API_KEY
        self.public_base_url = (public_base_url or settings.PUBLIC_BASE_URL).rstrip("/")
        self.timeout = timeout
        self.transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.api_url and self.api_key)

    def build_payload(self, booking) -> Optional[dict]:
        user = booking.user
        phone = normalize_phone(user.phone if user else None)
        if phone is None:
            return None
        country_code, number = phone
        slot = resolve_display_slot(booking)
        message = (
            f"Hi {user.full_name or 'Guest'}, your booking {booking.ref} for {booking.item_title} "
            f"on {booking.booking_date:%d %b %Y} ({slot.label}) is confirmed."
        )
        payload = {
            "countryCode": country_code,
            "phoneNumber": number,
            "callbackData": f"ticket-{booking.id}",
            "type": "Document" if booking.ticket_pdf else "Text",
            "data": {"message": message},
        }
        if booking.ticket_pdf:
            payload["data"]["mediaUrl"] = f"{self.public_base_url}{booking.ticket_pdf}"
        return payload

    async def send_ticket_for_booking(self, booking, skip_consent_check: bool = False) -> bool:
        if not self.configured:
            logger.info("WhatsApp not configured, skipping booking %s", booking.ref)
            return False
        user = booking.user
        if user is None:
            return False
        if not skip_consent_check and not user.whatsapp_consent:
            logger.info("User %s has not consented to WhatsApp, skipping booking %s", user.id, booking.ref)
            return False

        payload = self.build_payload(booking)
        if payload is None:
            logger.info("No usable phone number for booking %s", booking.ref)
            return False

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(
                    self.api_url,
                    json=payload,
                    headers={"Authorization": f"Basic {self.api_key}"},
                )
                response.raise_for_status()
        except httpx.HTTPError as exc:
            raise NotificationError(f"WhatsApp delivery failed for booking {booking.ref}: {exc}")

        logger.info("WhatsApp ticket sent for booking %s", booking.ref)
        return True


class EmailSender:
    def __init__(self, hostname: str = None, port: int = None, username: str = None, password: str = None,
                 sender: str = None, tickets_dir: str = None):
        self.hostname = hostname if hostname is not None else settings.SMTP_SERVER
        self.port = port or settings.SMTP_PORT
        self.username = username if username is not None else settings.EMAIL_USER
        self.password = password if password is not None else settings.EMAIL_PASSWORD
        self.sender = sender or settings.EMAIL_FROM
        self.tickets_dir = tickets_dir or settings.TICKETS_DIR

    @property
    def configured(self) -> bool:
        return bool(self.hostname)

    def build_message(self, order) -> EmailMessage:
        message = EmailMessage()
        message["From"] = f"{settings.PROJECT_NAME} <{self.sender}>"
        message["To"] = order.user.email
        message["Subject"] = f"Your tickets for order {order.ref}"

        lines = [f"Hi {order.user.full_name},", "", f"Thank you for your order {order.ref}.", ""]
        for booking in order.bookings:
            if booking.parent_booking_id is not None:
                continue
            slot = resolve_display_slot(booking)
            lines.append(
                f"- {booking.item_title} x {booking.quantity}, {booking.booking_date:%d %b %Y} {slot.label}"
            )
        lines += ["", f"Amount paid: {to_money(order.final_amount)}"]
        message.set_content("\n".join(lines))

        for booking in order.bookings:
            if not booking.ticket_pdf:
                continue
            path = os.path.join(self.tickets_dir, os.path.basename(booking.ticket_pdf))
            if not os.path.exists(path):
                continue
            with open(path, "rb") as fh:
                message.add_attachment(
                    fh.read(), maintype="application", subtype="pdf", filename=os.path.basename(path)
                )
        return message

    async def send_ticket_email(self, order) -> bool:
        if not self.configured:
            logger.info("SMTP not configured, skipping email for order %s", order.ref)
            return False
        if order.user is None or not order.user.email:
            return False

        message = self.build_message(order)
        try:
            await aiosmtplib.send(
                message,
                hostname=self.hostname,
                port=self.port,
                start_tls=True,
                username=self.username or None,
                password=self.password or None,
            )
        except (aiosmtplib.SMTPException, OSError) as exc:
            raise NotificationError(f"Email delivery failed for order {order.ref}: {exc}")

        logger.info("Ticket email sent for order %s", order.ref)
        return True


class TicketNotifier:
    """Both channels behind one object so fulfilment can be tested with a fake."""

    def __init__(self, whatsapp: WhatsAppSender = None, email: EmailSender = None):
        self.whatsapp = whatsapp or WhatsAppSender()
        self.email = email or EmailSender()

    async def send_ticket_for_booking(self, booking) -> bool:
        return await self.whatsapp.send_ticket_for_booking(booking)

    async def send_ticket_email(self, order) -> bool:
        return await self.email.send_ticket_email(order)
