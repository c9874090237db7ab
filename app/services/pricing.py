"""
Pricing resolver: turns a base price plus the best matching offer rule into
the unit price and unit discount of one cart line.

When no offer rule applies, legacy dynamic-pricing adjustments are consulted
instead. Offer rules always take precedence.
"""
import logging
from dataclasses import dataclass
from datetime import date, time
from decimal import Decimal
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from app.models.offer import Offer, OfferRule
from app.services.dynamic_pricing import apply_dynamic_pricing
from app.services.offer_rules import RuleMatch, find_applicable_rule
from app.utils.money import ZERO, to_decimal

logger = logging.getLogger(__name__)

DISCOUNT_PERCENT = "percent"
DISCOUNT_AMOUNT = "amount"


@dataclass
class PriceQuote:
    unit: Decimal
    discount: Decimal
    base: Decimal
    offer: Optional[Dict[str, Any]] = None
    adjustment: Decimal = ZERO

    @property
    def offer_id(self) -> Optional[int]:
        return self.offer["offer_id"] if self.offer else None


def compute_rule_discount(offer: Offer, rule: Optional[OfferRule], base_amount) -> Decimal:
    """
    Discount of one unit under (offer, rule).

    The rule's own discount overrides the offer's. No type or a zero value
    means no discount. The result is clamped to the offer's max_discount and
    then to the base, so 0 <= discount <= base always holds.
    """
    base = max(ZERO, to_decimal(base_amount))

    discount_type = (rule.rule_discount_type if rule is not None else None) or offer.discount_type
    if rule is not None and rule.rule_discount_value is not None:
        discount_value = to_decimal(rule.rule_discount_value)
    else:
        discount_value = to_decimal(offer.discount_value)

    if not discount_type or discount_value <= ZERO:
        return ZERO

    if discount_type == DISCOUNT_AMOUNT:
        discount = discount_value
    elif discount_type == DISCOUNT_PERCENT:
        discount = base * discount_value / Decimal(100)
    else:
        logger.warning("Offer %s has unknown discount type %r", offer.id, discount_type)
        return ZERO

    if offer.max_discount is not None:
        discount = min(discount, to_decimal(offer.max_discount))
    return min(max(discount, ZERO), base)


def _offer_metadata(match: RuleMatch) -> Dict[str, Any]:
    rule, offer = match.rule, match.offer
    return {
        "offer_id": offer.id,
        "rule_id": rule.id,
        "title": offer.title,
        "discount_type": rule.rule_discount_type or offer.discount_type,
        "discount_value": to_decimal(
            rule.rule_discount_value if rule.rule_discount_value is not None else offer.discount_value
        ),
        "source": "offer",
    }


def compute_unit_price(
    db: Session,
    target_type: str,
    target_id: Optional[int],
    slot_type: Optional[str],
    slot_id: Optional[int],
    base_amount,
    on_date: Optional[date] = None,
    at_time: Optional[time] = None,
    holidays=None,
) -> PriceQuote:
    base = max(ZERO, to_decimal(base_amount))
    on_date = on_date or date.today()

    match = find_applicable_rule(
        db,
        target_type=target_type,
        target_id=target_id,
        slot_type=slot_type,
        slot_id=slot_id,
        on_date=on_date,
        at_time=at_time,
        holidays=holidays,
    )
    if match is not None:
        discount = compute_rule_discount(match.offer, match.rule, base)
        return PriceQuote(
            unit=base - discount,
            discount=discount,
            base=base,
            offer=_offer_metadata(match),
        )

    adjusted = apply_dynamic_pricing(db, target_type, target_id, base, on_date)
    if adjusted.rules:
        logger.debug(
            "Dynamic pricing adjusted %s %s on %s by %s",
            target_type, target_id, on_date, adjusted.adjustment,
        )
    # The adjusted price becomes the effective base; nothing is reported as discount
    return PriceQuote(
        unit=adjusted.price,
        discount=ZERO,
        base=adjusted.price,
        adjustment=adjusted.adjustment,
    )
