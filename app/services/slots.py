"""
Slot references and slot windows.

A cart line points at a slot in one of two ways:

* a physical slot: an integer primary key of ``attraction_slots`` /
  ``combo_slots``. Only these carry enforced capacity.
* a virtual slot: ``"{target_id}-{YYYYMMDD}-{HH}"``, generated on read across
  the daily window and never persisted.
"""
import re
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import List, Optional, Union

from app.core.config import settings
from app.core.errors import ValidationError

SLOT_KIND_ATTRACTION = "attraction"
SLOT_KIND_COMBO = "combo"

OPEN_SLOT_LABEL = "Open slot"

_VIRTUAL_SLOT_RE = re.compile(r"^(\d+)-(\d{8})-(\d{1,2})$")


@dataclass(frozen=True)
class PhysicalSlot:
    kind: str
    id: int


@dataclass(frozen=True)
class VirtualSlot:
    kind: str
    target_id: int
    date: date
    hour: int

    @property
    def slot_id(self) -> str:
        return format_virtual_slot_id(self.target_id, self.date, self.hour)


SlotRef = Union[PhysicalSlot, VirtualSlot]


@dataclass(frozen=True)
class SlotWindow:
    start: time
    end: time
    capacity: int

    @property
    def label(self) -> str:
        return format_slot_label(self.start, self.end)


@dataclass(frozen=True)
class DisplaySlot:
    start: Optional[time]
    end: Optional[time]
    label: str


def format_virtual_slot_id(target_id: int, on_date: date, hour: int) -> str:
    return f"{target_id}-{on_date:%Y%m%d}-{hour:02d}"


def _format_clock(value: time) -> str:
    hour = value.hour % 12 or 12
    suffix = "AM" if value.hour < 12 else "PM"
    return f"{hour:02d}:{value.minute:02d} {suffix}"


def format_slot_label(start: Optional[time], end: Optional[time]) -> str:
    """'10:00 AM - 11:00 AM'; falls back to 'Open slot' when the window is unknown."""
    if start is None or end is None:
        return OPEN_SLOT_LABEL
    return f"{_format_clock(start)} - {_format_clock(end)}"


def parse_slot_ref(value, kind: str) -> Optional[SlotRef]:
    """
    Parse a client-supplied slot id.

    Integers and digit-only strings are physical slot ids, strings shaped like
    ``12-20250614-14`` are virtual slots. Anything else is rejected.
    """
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValidationError(f"Invalid slot id: {value!r}")
    if isinstance(value, int):
        if value <= 0:
            raise ValidationError(f"Invalid slot id: {value!r}")
        return PhysicalSlot(kind=kind, id=value)

    text = str(value).strip()
    if text.isdigit():
        return parse_slot_ref(int(text), kind)

    match = _VIRTUAL_SLOT_RE.match(text)
    if not match:
        raise ValidationError(f"Invalid slot id: {value!r}")
    try:
        slot_date = datetime.strptime(match.group(2), "%Y%m%d").date()
    except ValueError:
        raise ValidationError(f"Invalid date in slot id: {value!r}")
    return VirtualSlot(
        kind=kind,
        target_id=int(match.group(1)),
        date=slot_date,
        hour=int(match.group(3)),
    )


def resolve_virtual_slot(
    ref: VirtualSlot,
    duration_hours: int = 1,
    target_id: Optional[int] = None,
    booking_date: Optional[date] = None,
) -> SlotWindow:
    """Pure: derive the window of a virtual slot, validating it against the booking."""
    if target_id is not None and ref.target_id != target_id:
        raise ValidationError(
            f"Slot {ref.slot_id} does not belong to {ref.kind} {target_id}"
        )
    if booking_date is not None and ref.date != booking_date:
        raise ValidationError(
            f"Slot {ref.slot_id} is not on booking date {booking_date.isoformat()}"
        )
    duration_hours = max(1, duration_hours)
    if ref.hour < settings.SLOT_DAY_START_HOUR or ref.hour + duration_hours > settings.SLOT_DAY_END_HOUR:
        raise ValidationError(f"Slot {ref.slot_id} is outside operating hours")
    return SlotWindow(
        start=time(ref.hour, 0),
        end=time(ref.hour + duration_hours, 0),
        capacity=settings.VIRTUAL_SLOT_CAPACITY,
    )


def generate_virtual_slots(kind: str, target_id: int, on_date: date, duration_hours: int = 1) -> List[VirtualSlot]:
    """Every start hour in the daily window whose slot still ends inside it."""
    duration_hours = max(1, duration_hours)
    return [
        VirtualSlot(kind=kind, target_id=target_id, date=on_date, hour=hour)
        for hour in range(settings.SLOT_DAY_START_HOUR, settings.SLOT_DAY_END_HOUR - duration_hours + 1)
    ]


def split_slot_segments(start: time, end: time, parts: int) -> List[tuple]:
    """
    Split [start, end) into ``parts`` consecutive, equal segments at minute
    resolution. The last segment absorbs any remainder.
    """
    if parts < 1:
        return []
    start_min = start.hour * 60 + start.minute
    end_min = end.hour * 60 + end.minute
    span = max(0, end_min - start_min)
    step = span // parts

    segments = []
    cursor = start_min
    for idx in range(parts):
        seg_end = end_min if idx == parts - 1 else cursor + step
        segments.append((_minutes_to_time(cursor), _minutes_to_time(seg_end)))
        cursor = seg_end
    return segments


def _minutes_to_time(minutes: int) -> time:
    minutes = min(minutes, 23 * 60 + 59)
    return time(minutes // 60, minutes % 60)


def resolve_display_slot(booking) -> DisplaySlot:
    """
    Display window of a persisted booking: the stored slot fields first, then
    the referenced physical slot row, then the open-slot placeholder.
    """
    if booking.slot_start_time is not None and booking.slot_end_time is not None:
        label = booking.slot_label or format_slot_label(booking.slot_start_time, booking.slot_end_time)
        return DisplaySlot(booking.slot_start_time, booking.slot_end_time, label)

    row = booking.combo_slot if booking.combo_slot_id else booking.slot
    if row is not None:
        return DisplaySlot(row.start_time, row.end_time, format_slot_label(row.start_time, row.end_time))

    return DisplaySlot(None, None, OPEN_SLOT_LABEL)
