import logging
from datetime import date
from typing import List, Union

from sqlalchemy.orm import Session

from app.models.attraction import Attraction, AttractionSlot
from app.models.combo import Combo, ComboSlot
from app.schemas.catalog import OfferSummary, PricedSlot
from app.services.capacity import count_booked, count_virtual_booked
from app.services.holidays import get_holidays
from app.services.pricing import compute_unit_price
from app.services.slots import (
    SLOT_KIND_COMBO,
    PhysicalSlot,
    format_slot_label,
    generate_virtual_slots,
    resolve_virtual_slot,
)
from app.utils.money import to_decimal, to_money

logger = logging.getLogger(__name__)


def list_priced_slots(db: Session, kind: str, product: Union[Attraction, Combo], on_date: date) -> List[PricedSlot]:
    """
    Bookable slots of a product on one day: its physical slots plus the
    generated virtual slots whose start hour no physical slot already covers,
    each priced through the offer rules.
    """
    is_combo = kind == SLOT_KIND_COMBO
    model = ComboSlot if is_combo else AttractionSlot
    owner = ComboSlot.combo_id if is_combo else AttractionSlot.attraction_id
    product_price = to_decimal(product.total_price if is_combo else product.base_price)
    holidays = get_holidays(db, on_date.year)

    rows = (
        db.query(model)
        .filter(owner == product.id, model.slot_date == on_date)
        .order_by(model.start_time)
        .all()
    )

    def _price(base, slot_id, start):
        quote = compute_unit_price(
            db,
            target_type=kind,
            target_id=product.id,
            slot_type=kind,
            slot_id=slot_id,
            base_amount=base,
            on_date=on_date,
            at_time=start,
            holidays=holidays,
        )
        offer = None
        if quote.offer:
            offer = OfferSummary(**{k: v for k, v in quote.offer.items() if k != "source"})
        return quote, offer

    slots: List[PricedSlot] = []
    for row in rows:
        base = to_decimal(row.price) if row.price is not None else product_price
        quote, offer = _price(base, row.id, row.start_time)
        capacity = row.capacity if row.available else 0
        booked = count_booked(db, PhysicalSlot(kind=kind, id=row.id))
        slots.append(PricedSlot(
            slot_id=str(row.id),
            is_virtual=False,
            slot_date=row.slot_date,
            start_time=row.start_time,
            end_time=row.end_time,
            label=format_slot_label(row.start_time, row.end_time),
            capacity=capacity,
            booked=booked,
            available=max(0, capacity - booked),
            base_price=to_money(quote.base),
            unit_price=to_money(quote.unit),
            discount=to_money(quote.discount),
            offer=offer,
        ))

    taken_hours = {row.start_time.hour for row in rows}
    duration = product.slot_duration_hours if is_combo else 1
    for ref in generate_virtual_slots(kind, product.id, on_date, duration):
        if ref.hour in taken_hours:
            continue
        window = resolve_virtual_slot(ref, duration)
        quote, offer = _price(product_price, None, window.start)
        booked = count_virtual_booked(db, kind, product.id, on_date, window.start)
        slots.append(PricedSlot(
            slot_id=ref.slot_id,
            is_virtual=True,
            slot_date=on_date,
            start_time=window.start,
            end_time=window.end,
            label=window.label,
            capacity=window.capacity,
            booked=booked,
            available=max(0, window.capacity - booked),
            base_price=to_money(quote.base),
            unit_price=to_money(quote.unit),
            discount=to_money(quote.discount),
            offer=offer,
        ))

    slots.sort(key=lambda s: (s.start_time, s.is_virtual))
    return slots
