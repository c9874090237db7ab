from sqlalchemy import (
    Column, String, Boolean, DateTime, func, DECIMAL, Integer, ForeignKey, Date, Time, CheckConstraint,
)
from sqlalchemy.orm import relationship
from app.db.session import Base

ITEM_ATTRACTION = "Attraction"
ITEM_COMBO = "Combo"

BOOKING_BOOKED = "Booked"
BOOKING_CANCELLED = "Cancelled"


class Booking(Base):
    __tablename__ = "bookings"
    __table_args__ = (
        CheckConstraint(
            "(item_type = 'Attraction' AND attraction_id IS NOT NULL AND combo_id IS NULL) "
            "OR (item_type = 'Combo' AND combo_id IS NOT NULL AND attraction_id IS NULL)",
            name="ck_bookings_item_target",
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    ref = Column(String(20), unique=True, nullable=False, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    item_type = Column(String(20), nullable=False) # Attraction, Combo
    attraction_id = Column(Integer, ForeignKey("attractions.id"), nullable=True, index=True)
    combo_id = Column(Integer, ForeignKey("combos.id"), nullable=True, index=True)
    # Physical slot ids only; virtual slot ids are never persisted
    slot_id = Column(Integer, ForeignKey("attraction_slots.id"), nullable=True, index=True)
    combo_slot_id = Column(Integer, ForeignKey("combo_slots.id"), nullable=True, index=True)
    offer_id = Column(Integer, ForeignKey("offers.id", ondelete="SET NULL"), nullable=True)
    quantity = Column(Integer, nullable=False, default=1)
    booking_date = Column(Date, nullable=False, index=True)

    total_amount = Column(DECIMAL(10, 2), nullable=False, default=0)
    discount_amount = Column(DECIMAL(10, 2), nullable=False, default=0)
    final_amount = Column(DECIMAL(10, 2), nullable=False, default=0)

    payment_status = Column(String(20), nullable=False, default="Pending") # mirrors the order
    payment_ref = Column(String(100), nullable=True)
    booking_status = Column(String(20), nullable=False, default=BOOKING_BOOKED, index=True)

    # Denormalized display fields, always derived server-side
    slot_start_time = Column(Time, nullable=True)
    slot_end_time = Column(Time, nullable=True)
    slot_label = Column(String(100), nullable=True)

    parent_booking_id = Column(Integer, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=True, index=True)

    # Fulfilment
    ticket_pdf = Column(String(500), nullable=True)
    whatsapp_sent = Column(Boolean, default=False)
    email_sent = Column(Boolean, default=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now(), nullable=True)

    # Relationships
    order = relationship("Order", back_populates="bookings")
    user = relationship("User")
    attraction = relationship("Attraction")
    combo = relationship("Combo")
    slot = relationship("AttractionSlot")
    combo_slot = relationship("ComboSlot")
    offer = relationship("Offer")
    addons = relationship("BookingAddon", back_populates="booking", cascade="all, delete-orphan")
    parent = relationship("Booking", remote_side=[id], back_populates="children")
    children = relationship("Booking", back_populates="parent")

    @property
    def item_title(self) -> str:
        if self.item_type == ITEM_COMBO and self.combo:
            return self.combo.name
        if self.attraction:
            return self.attraction.title
        return f"{self.item_type} booking"


class BookingAddon(Base):
    __tablename__ = "booking_addons"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True)
    addon_id = Column(Integer, ForeignKey("addons.id"), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    price = Column(DECIMAL(10, 2), nullable=False) # unit price snapshot at booking time

    booking = relationship("Booking", back_populates="addons")
    addon = relationship("Addon")
