"""
PDF ticket generator. One PDF per booking, written under TICKETS_DIR and
served by the app at /tickets/<file>.
"""
import logging
import os

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas

from app.core.config import settings
from app.services.slots import resolve_display_slot
from app.utils.money import to_money

logger = logging.getLogger(__name__)

BRAND = "#1F4E79"
ACCENT = "#F2A900"
DARK = "#222222"
MUTED = "#666666"


class TicketGenerator:
    def __init__(self, tickets_dir: str = None, url_prefix: str = "/tickets"):
        self.tickets_dir = tickets_dir or settings.TICKETS_DIR
        self.url_prefix = url_prefix.rstrip("/")

    def _path_for(self, booking) -> str:
        return os.path.join(self.tickets_dir, f"ticket_{booking.ref}.pdf")

    def generate_ticket(self, booking) -> str:
        """Render the booking's ticket and return its URL path."""
        os.makedirs(self.tickets_dir, exist_ok=True)
        pdf_path = self._path_for(booking)

        c = canvas.Canvas(pdf_path, pagesize=A4)
        width, height = A4

        # Header band
        c.setFillColor(colors.HexColor(BRAND))
        c.rect(0, height - 110, width, 110, fill=1, stroke=0)
        c.setFillColor(colors.white)
        c.setFont("Helvetica-Bold", 24)
        c.drawString(40, height - 60, settings.PROJECT_NAME)
        c.setFont("Helvetica", 11)
        c.drawString(40, height - 82, "E-TICKET")
        c.setFillColor(colors.HexColor(ACCENT))
        c.setFont("Helvetica-Bold", 14)
        c.drawRightString(width - 40, height - 60, booking.ref)
        c.setFont("Helvetica", 9)
        c.drawRightString(width - 40, height - 75, "BOOKING REFERENCE")

        # Item
        y = height - 160
        c.setFillColor(colors.HexColor(DARK))
        c.setFont("Helvetica-Bold", 20)
        c.drawString(40, y, booking.item_title.upper())

        slot = resolve_display_slot(booking)
        rows = [
            ("Date", booking.booking_date.strftime("%d %b %Y")),
            ("Slot", slot.label),
            ("Guests", str(booking.quantity)),
            ("Amount", f"{to_money(booking.final_amount)}"),
            ("Order", booking.order.ref if booking.order else "-"),
        ]
        y -= 40
        for label, value in rows:
            c.setFillColor(colors.HexColor(MUTED))
            c.setFont("Helvetica", 10)
            c.drawString(40, y, label.upper())
            c.setFillColor(colors.HexColor(DARK))
            c.setFont("Helvetica-Bold", 13)
            c.drawString(160, y, value)
            y -= 26

        if booking.addons:
            y -= 10
            c.setFillColor(colors.HexColor(MUTED))
            c.setFont("Helvetica", 10)
            c.drawString(40, y, "ADD-ONS")
            y -= 20
            c.setFillColor(colors.HexColor(DARK))
            c.setFont("Helvetica", 12)
            for line in booking.addons:
                title = line.addon.title if line.addon else f"Add-on #{line.addon_id}"
                c.drawString(60, y, f"{title} x {line.quantity}")
                y -= 18

        # Combo itinerary
        if booking.children:
            y -= 10
            c.setFillColor(colors.HexColor(MUTED))
            c.setFont("Helvetica", 10)
            c.drawString(40, y, "ITINERARY")
            y -= 20
            c.setFillColor(colors.HexColor(DARK))
            c.setFont("Helvetica", 12)
            for child in booking.children:
                c.drawString(60, y, f"{resolve_display_slot(child).label}  {child.item_title}")
                y -= 18

        c.setStrokeColor(colors.HexColor(ACCENT))
        c.setLineWidth(2)
        c.line(40, 80, width - 40, 80)
        c.setFillColor(colors.HexColor(MUTED))
        c.setFont("Helvetica", 9)
        c.drawString(40, 62, "Please carry this ticket (printed or on your phone) to the entry gate.")

        c.showPage()
        c.save()

        logger.info("Ticket generated for booking %s at %s", booking.ref, pdf_path)
        return f"{self.url_prefix}/{os.path.basename(pdf_path)}"
