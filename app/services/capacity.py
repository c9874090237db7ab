"""
Capacity guard for physical slots.

Capacity is enforced by locking the slot row (``SELECT ... FOR UPDATE``) for
the rest of the booking transaction and counting non-cancelled bookings
against it. Virtual slots carry a nominal capacity only and are not locked.
"""
import logging
from dataclasses import dataclass
from datetime import date, time
from typing import Iterable, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.errors import CapacityConflict, NotFoundError
from app.core.config import settings
from app.models.attraction import AttractionSlot
from app.models.booking import Booking, BOOKING_CANCELLED
from app.models.combo import ComboSlot
from app.services.slots import SLOT_KIND_COMBO, PhysicalSlot, SlotRef, VirtualSlot

logger = logging.getLogger(__name__)


@dataclass
class CapacityCheck:
    slot: Optional[object]
    capacity: int
    already_booked: int

    @property
    def available(self) -> int:
        return max(0, self.capacity - self.already_booked)


@dataclass
class SlotAvailability:
    capacity: int
    booked: int

    @property
    def available(self) -> int:
        return max(0, self.capacity - self.booked)


def _slot_model(kind: str):
    if kind == SLOT_KIND_COMBO:
        return ComboSlot, Booking.combo_slot_id
    return AttractionSlot, Booking.slot_id


def count_booked(db: Session, ref: PhysicalSlot) -> int:
    """Sum of quantities of non-cancelled bookings referencing the physical slot."""
    _, column = _slot_model(ref.kind)
    total = (
        db.query(func.coalesce(func.sum(Booking.quantity), 0))
        .filter(column == ref.id, Booking.booking_status != BOOKING_CANCELLED)
        .scalar()
    )
    return int(total or 0)


def count_virtual_booked(db: Session, kind: str, target_id: int, on_date: date, start_time: time) -> int:
    """Informational count of top-level bookings placed in a virtual slot."""
    target_column = Booking.combo_id if kind == SLOT_KIND_COMBO else Booking.attraction_id
    _, slot_column = _slot_model(kind)
    total = (
        db.query(func.coalesce(func.sum(Booking.quantity), 0))
        .filter(
            target_column == target_id,
            slot_column.is_(None),
            Booking.parent_booking_id.is_(None),
            Booking.booking_date == on_date,
            Booking.slot_start_time == start_time,
            Booking.booking_status != BOOKING_CANCELLED,
        )
        .scalar()
    )
    return int(total or 0)


def lock_physical_slots(db: Session, refs: Iterable[SlotRef]) -> None:
    """
    Lock every distinct physical slot of a cart in ascending id order so two
    carts touching the same slots always acquire locks in the same order.
    """
    physical = sorted(
        {ref for ref in refs if isinstance(ref, PhysicalSlot)},
        key=lambda r: (r.kind, r.id),
    )
    for ref in physical:
        model, _ = _slot_model(ref.kind)
        db.query(model).filter(model.id == ref.id).with_for_update().first()


def lock_and_check(db: Session, ref: Optional[SlotRef], requested_qty: int) -> CapacityCheck:
    """
    Lock the slot row and verify booked + requested <= capacity.
    Must run inside the booking transaction; the lock is held until commit or rollback.
    """
    if ref is None or isinstance(ref, VirtualSlot):
        return CapacityCheck(slot=None, capacity=settings.VIRTUAL_SLOT_CAPACITY, already_booked=0)

    model, _ = _slot_model(ref.kind)
    slot = db.query(model).filter(model.id == ref.id).with_for_update().first()
    if slot is None:
        raise NotFoundError(f"{ref.kind.capitalize()} slot {ref.id} not found")

    already_booked = count_booked(db, ref)
    if not slot.available:
        raise CapacityConflict(
            f"{ref.kind.capitalize()} slot {ref.id} is not available",
            available=0,
            requested=requested_qty,
        )
    if already_booked + requested_qty > slot.capacity:
        available = max(0, slot.capacity - already_booked)
        logger.info(
            "Capacity conflict on %s slot %s: booked=%s requested=%s capacity=%s",
            ref.kind, ref.id, already_booked, requested_qty, slot.capacity,
        )
        raise CapacityConflict(
            f"Only {available} place(s) left in this slot",
            available=available,
            requested=requested_qty,
        )
    return CapacityCheck(slot=slot, capacity=slot.capacity, already_booked=already_booked)


def get_slot_availability(db: Session, ref: SlotRef, start_time: Optional[time] = None) -> SlotAvailability:
    """Read-only availability, no locks taken."""
    if isinstance(ref, VirtualSlot):
        start = start_time or time(ref.hour, 0)
        booked = count_virtual_booked(db, ref.kind, ref.target_id, ref.date, start)
        return SlotAvailability(capacity=settings.VIRTUAL_SLOT_CAPACITY, booked=booked)

    model, _ = _slot_model(ref.kind)
    slot = db.query(model).filter(model.id == ref.id).first()
    if slot is None:
        raise NotFoundError(f"{ref.kind.capitalize()} slot {ref.id} not found")
    capacity = slot.capacity if slot.available else 0
    return SlotAvailability(capacity=capacity, booked=count_booked(db, ref))
