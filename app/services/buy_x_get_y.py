"""
Buy-X-get-Y bundle offers.

These offers are evaluated against the whole cart rather than per unit: buying
``buy_qty`` eligible units unlocks ``get_qty`` discounted units of the "get"
target, most expensive first.
"""
import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session, selectinload

from app.models.attraction import Attraction
from app.models.combo import Combo
from app.models.offer import Offer, OfferRule, RULE_TYPE_BUY_X_GET_Y
from app.utils.money import ZERO, to_decimal

logger = logging.getLogger(__name__)

GET_TARGET_TYPES = ("attraction", "combo")
GET_DISCOUNT_TYPES = ("percent", "amount")


@dataclass
class BundleLine:
    target_type: str
    target_id: int
    quantity: int
    unit_price: Decimal


@dataclass
class BundleResult:
    applies: bool
    discount: Decimal = ZERO
    summary: str = ""
    offer: Optional[Offer] = None
    rule: Optional[OfferRule] = None
    buy_quantity: int = 0
    get_quantity: int = 0
    discounted_units: List[Decimal] = field(default_factory=list)


def validate_buy_x_get_y_rule(db: Session, rule) -> List[str]:
    """Return the list of problems with a buy-X-get-Y rule payload (empty when valid)."""
    errors = []
    if not rule.buy_qty or rule.buy_qty < 1:
        errors.append("buy_qty must be >= 1")
    if not rule.get_qty or rule.get_qty < 1:
        errors.append("get_qty must be >= 1")
    if rule.get_target_type not in GET_TARGET_TYPES:
        errors.append('get_target_type must be "attraction" or "combo"')
    elif rule.get_target_id:
        model = Attraction if rule.get_target_type == "attraction" else Combo
        if db.query(model.id).filter(model.id == rule.get_target_id).first() is None:
            errors.append(f"{rule.get_target_type} #{rule.get_target_id} does not exist")
    if rule.get_discount_type and rule.get_discount_type not in GET_DISCOUNT_TYPES:
        errors.append('get_discount_type must be "percent", "amount", or empty (for free)')
    if rule.get_discount_type and rule.get_discount_value is None:
        errors.append("get_discount_value required when get_discount_type is set")
    if rule.get_discount_value is not None and rule.get_discount_value < 0:
        errors.append("get_discount_value must be >= 0")
    return errors


def _buy_eligible(rule: OfferRule, line: BundleLine) -> bool:
    target_type = rule.target_type or "attraction"
    if line.target_type != target_type:
        return False
    return bool(rule.applies_to_all) or line.target_id == rule.target_id


def _get_eligible(rule: OfferRule, line: BundleLine) -> bool:
    if line.target_type != rule.get_target_type:
        return False
    return rule.get_target_id is None or line.target_id == rule.get_target_id


def evaluate_buy_x_get_y(lines: List[BundleLine], offer: Offer, on_date: Optional[date] = None) -> BundleResult:
    if offer is None or offer.rule_type != RULE_TYPE_BUY_X_GET_Y or not offer.rules:
        return BundleResult(applies=False, summary="Not a buy X get Y offer")

    today = on_date or date.today()
    if not offer.active:
        return BundleResult(applies=False, summary="Offer inactive")
    if offer.valid_from and offer.valid_from > today:
        return BundleResult(applies=False, summary="Offer not yet valid")
    if offer.valid_to and offer.valid_to < today:
        return BundleResult(applies=False, summary="Offer expired")

    rule = offer.rules[0]
    if not rule.buy_qty or not rule.get_qty:
        return BundleResult(applies=False, summary="Incomplete buy X get Y rule")

    buy_quantity = sum(line.quantity for line in lines if _buy_eligible(rule, line))
    if buy_quantity < rule.buy_qty:
        return BundleResult(
            applies=False,
            summary=f"Need to buy {rule.buy_qty} items, cart has {buy_quantity}",
            buy_quantity=buy_quantity,
        )

    # One entry per eligible unit, most expensive first
    units = sorted(
        (to_decimal(line.unit_price) for line in lines if _get_eligible(rule, line) for _ in range(line.quantity)),
        reverse=True,
    )
    get_quantity = min(rule.get_qty * (buy_quantity // rule.buy_qty), len(units))
    if get_quantity == 0:
        return BundleResult(applies=False, summary="No eligible items to get discount on", buy_quantity=buy_quantity)

    chosen = units[:get_quantity]
    value = to_decimal(rule.get_discount_value)
    if not rule.get_discount_type:
        discounts = chosen
    elif rule.get_discount_type == "percent":
        discounts = [price * value / Decimal(100) for price in chosen]
    else:
        discounts = [min(value, price) for price in chosen]

    discount = sum(discounts, ZERO)
    if offer.max_discount is not None:
        discount = min(discount, to_decimal(offer.max_discount))

    target_name = f"{rule.get_target_type} #{rule.get_target_id}" if rule.get_target_id else f"{rule.get_target_type}s"
    summary = f"Buy {rule.buy_qty} get {rule.get_qty} {target_name}"
    if rule.get_discount_type == "percent":
        summary += f" ({value}% off)"
    elif rule.get_discount_type == "amount":
        summary += f" ({value} off)"
    else:
        summary += " (Free)"

    return BundleResult(
        applies=True,
        discount=discount,
        summary=summary,
        offer=offer,
        rule=rule,
        buy_quantity=buy_quantity,
        get_quantity=get_quantity,
        discounted_units=chosen,
    )


def find_best_bundle(db: Session, lines: List[BundleLine], on_date: Optional[date] = None) -> Optional[BundleResult]:
    """Evaluate every active buy-X-get-Y offer against the cart and keep the largest discount."""
    if not lines:
        return None
    today = on_date or date.today()
    offers = (
        db.query(Offer)
        .options(selectinload(Offer.rules))
        .filter(
            Offer.active == True,  # noqa: E712
            Offer.rule_type == RULE_TYPE_BUY_X_GET_Y,
            or_(Offer.valid_from.is_(None), Offer.valid_from <= today),
            or_(Offer.valid_to.is_(None), Offer.valid_to >= today),
        )
        .order_by(Offer.id)
        .all()
    )

    best = None
    for offer in offers:
        result = evaluate_buy_x_get_y(lines, offer, today)
        if result.applies and (best is None or result.discount > best.discount):
            best = result
    if best is not None:
        logger.debug("Bundle offer %s applied: %s", best.offer.id, best.summary)
    return best
