"""
Cart totaliser: the pricing pass of order creation.

Prices every cart line (slot resolution, offer matching, add-ons), then the
cart-level discounts: the best buy-X-get-Y bundle and a single coupon. This
module never writes; any error aborts the cart before a transaction starts.
"""
import logging
from dataclasses import dataclass, field
from datetime import date, time
from decimal import Decimal
from typing import Any, Dict, List, Optional, Union

from sqlalchemy.orm import Session

from app.core.errors import NotFoundError, ValidationError
from app.models.attraction import Attraction, AttractionSlot
from app.models.booking import ITEM_ATTRACTION, ITEM_COMBO
from app.models.combo import Combo, ComboSlot
from app.models.coupon import Coupon
from app.services.addons import AddonLine, normalize_addons
from app.services.buy_x_get_y import BundleLine, BundleResult, find_best_bundle
from app.services.coupons import compute_discount, get_coupon_by_code, normalize_code
from app.services.pricing import compute_unit_price
from app.services.slots import (
    SLOT_KIND_ATTRACTION,
    SLOT_KIND_COMBO,
    PhysicalSlot,
    SlotRef,
    VirtualSlot,
    format_slot_label,
    parse_slot_ref,
    resolve_virtual_slot,
)
from app.utils.money import ZERO, to_decimal, to_money

logger = logging.getLogger(__name__)


@dataclass
class LineQuote:
    item_type: str
    target_type: str
    target_id: int
    product: Union[Attraction, Combo]
    quantity: int
    booking_date: date
    slot_ref: Optional[SlotRef]
    slot_row: Optional[Union[AttractionSlot, ComboSlot]]
    slot_start_time: Optional[time]
    slot_end_time: Optional[time]
    slot_label: str
    base_price: Decimal
    unit_price: Decimal
    unit_discount: Decimal
    offer: Optional[Dict[str, Any]]
    addons: List[AddonLine] = field(default_factory=list)
    tickets_total: Decimal = ZERO
    addons_total: Decimal = ZERO
    total_amount: Decimal = ZERO
    discount_amount: Decimal = ZERO
    final_amount: Decimal = ZERO

    @property
    def is_combo(self) -> bool:
        return self.item_type == ITEM_COMBO

    @property
    def offer_id(self) -> Optional[int]:
        return self.offer["offer_id"] if self.offer else None

    @property
    def physical_slot_id(self) -> Optional[int]:
        return self.slot_row.id if self.slot_row is not None else None


@dataclass
class CartQuote:
    lines: List[LineQuote]
    gross: Decimal
    offer_discount: Decimal
    bundle_discount: Decimal
    bundle: Optional[BundleResult]
    coupon: Optional[Coupon]
    coupon_code: Optional[str]
    coupon_discount: Decimal
    total_discount: Decimal
    final_amount: Decimal


def _resolve_item_type(item) -> str:
    if item.item_type:
        return item.item_type
    if item.combo_id and not item.attraction_id:
        return ITEM_COMBO
    if item.combo_slot_id not in (None, "") and not item.attraction_id and item.slot_id in (None, ""):
        return ITEM_COMBO
    return ITEM_ATTRACTION


def _load_physical_slot(db: Session, ref: PhysicalSlot):
    model = ComboSlot if ref.kind == SLOT_KIND_COMBO else AttractionSlot
    slot = db.query(model).filter(model.id == ref.id).first()
    if slot is None:
        raise NotFoundError(f"{ref.kind.capitalize()} slot {ref.id} not found")
    return slot


def compute_totals(db: Session, item) -> LineQuote:
    """Price a single cart line."""
    item_type = _resolve_item_type(item)
    is_combo = item_type == ITEM_COMBO
    kind = SLOT_KIND_COMBO if is_combo else SLOT_KIND_ATTRACTION

    if item.quantity is None or item.quantity < 1:
        raise ValidationError("quantity must be at least 1")

    slot_ref = parse_slot_ref(item.combo_slot_id if is_combo else item.slot_id, kind)
    target_id = item.combo_id if is_combo else item.attraction_id

    slot_row = None
    if isinstance(slot_ref, PhysicalSlot):
        slot_row = _load_physical_slot(db, slot_ref)
        owner_id = slot_row.combo_id if is_combo else slot_row.attraction_id
        if target_id is None:
            target_id = owner_id
        elif owner_id != target_id:
            raise ValidationError(f"{kind.capitalize()} slot {slot_ref.id} does not belong to {kind} {target_id}")
    elif isinstance(slot_ref, VirtualSlot) and target_id is None:
        target_id = slot_ref.target_id

    if target_id is None:
        raise ValidationError(f"{'combo_id' if is_combo else 'attraction_id'} is required for {item_type} items")

    model = Combo if is_combo else Attraction
    product = db.query(model).filter(model.id == target_id).first()
    if product is None or not product.active:
        raise NotFoundError(f"{item_type} {target_id} not found")

    if slot_row is not None:
        if slot_row.slot_date != item.booking_date:
            raise ValidationError(
                f"{kind.capitalize()} slot {slot_row.id} is on {slot_row.slot_date.isoformat()}, "
                f"not {item.booking_date.isoformat()}"
            )
        start, end = slot_row.start_time, slot_row.end_time
        label = format_slot_label(start, end)
    elif isinstance(slot_ref, VirtualSlot):
        duration = product.slot_duration_hours if is_combo else 1
        window = resolve_virtual_slot(slot_ref, duration, target_id=target_id, booking_date=item.booking_date)
        start, end, label = window.start, window.end, window.label
    else:
        # No slot referenced: client times are the only source available
        start, end = item.slot_start_time, item.slot_end_time
        label = item.slot_label or format_slot_label(start, end)

    if slot_row is not None and slot_row.price is not None:
        base_amount = to_decimal(slot_row.price)
    else:
        base_amount = to_decimal(product.total_price if is_combo else product.base_price)

    quote = compute_unit_price(
        db,
        target_type=kind,
        target_id=target_id,
        slot_type=kind if slot_ref is not None else None,
        slot_id=slot_row.id if slot_row is not None else None,
        base_amount=base_amount,
        on_date=item.booking_date,
        at_time=start,
    )

    addons = normalize_addons(db, item.addons)
    addons_total = sum((a.total for a in addons), ZERO)
    tickets_total = quote.unit * item.quantity

    total_amount = to_money(quote.base * item.quantity + addons_total)
    discount_amount = to_money(quote.discount * item.quantity)
    final_amount = max(ZERO, total_amount - discount_amount)

    return LineQuote(
        item_type=item_type,
        target_type=kind,
        target_id=target_id,
        product=product,
        quantity=item.quantity,
        booking_date=item.booking_date,
        slot_ref=slot_ref,
        slot_row=slot_row,
        slot_start_time=start,
        slot_end_time=end,
        slot_label=label,
        base_price=quote.base,
        unit_price=quote.unit,
        unit_discount=quote.discount,
        offer=quote.offer,
        addons=addons,
        tickets_total=to_money(tickets_total),
        addons_total=to_money(addons_total),
        total_amount=total_amount,
        discount_amount=discount_amount,
        final_amount=final_amount,
    )


def compute_totals_multi(db: Session, items: list, coupon_code: Optional[str] = None) -> CartQuote:
    """
    Price the whole cart. The coupon is evaluated once, against the amount
    left after offer and bundle discounts, and recorded at order level only.
    """
    if not items:
        raise ValidationError("Cart is empty")

    lines = [compute_totals(db, item) for item in items]
    # Cart-level offers and coupons are validated against the visit date
    visit_date = items[0].booking_date

    gross = sum((line.total_amount for line in lines), ZERO)
    offer_discount = sum((line.discount_amount for line in lines), ZERO)

    bundle = find_best_bundle(db, [
        BundleLine(line.target_type, line.target_id, line.quantity, line.unit_price)
        for line in lines
    ], on_date=visit_date)
    bundle_discount = ZERO
    if bundle is not None:
        bundle_discount = min(to_money(bundle.discount), max(ZERO, gross - offer_discount))

    code = normalize_code(coupon_code) or next(
        (normalize_code(item.coupon_code) for item in items if normalize_code(item.coupon_code)),
        None,
    )
    coupon = get_coupon_by_code(db, code, active_only=True, on_date=visit_date) if code else None
    if code and coupon is None:
        logger.info("Coupon %s is not valid, ignoring", code)
    coupon_discount = to_money(compute_discount(coupon, gross - offer_discount - bundle_discount))

    total_discount = offer_discount + bundle_discount + coupon_discount
    final_amount = max(ZERO, gross - total_discount)

    return CartQuote(
        lines=lines,
        gross=gross,
        offer_discount=offer_discount,
        bundle_discount=bundle_discount,
        bundle=bundle,
        coupon=coupon,
        coupon_code=coupon.code if coupon else None,
        coupon_discount=coupon_discount,
        total_discount=total_discount,
        final_amount=final_amount,
    )
