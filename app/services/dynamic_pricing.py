import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from app.models.dynamic_pricing import DynamicPricingRule
from app.utils.money import ZERO, to_decimal

logger = logging.getLogger(__name__)

ADJUSTMENT_FIXED = "fixed"
ADJUSTMENT_PERCENTAGE = "percentage"
TARGET_ALL = "all"


@dataclass
class DynamicAdjustment:
    price: Decimal
    adjustment: Decimal
    rules: List[DynamicPricingRule] = field(default_factory=list)


def _parse_range_bound(value) -> Optional[date]:
    if not value:
        return None
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        logger.warning("Ignoring malformed date range bound %r", value)
        return None


def range_contains(date_range: dict, on_date: date) -> bool:
    start = _parse_range_bound(date_range.get("from"))
    end = _parse_range_bound(date_range.get("to"))
    if start is None or end is None:
        return False
    return start <= on_date <= end


def get_applicable_rules(db: Session, target_type: str, target_id: Optional[int], on_date: date) -> List[DynamicPricingRule]:
    """Active rules for this target (or for everything) whose date ranges cover ``on_date``."""
    rows = (
        db.query(DynamicPricingRule)
        .filter(
            DynamicPricingRule.active == True,  # noqa: E712
            or_(
                DynamicPricingRule.target_type == TARGET_ALL,
                and_(
                    DynamicPricingRule.target_type == target_type,
                    or_(
                        DynamicPricingRule.target_id.is_(None),
                        DynamicPricingRule.target_id == target_id,
                    ),
                ),
            ),
        )
        .order_by(DynamicPricingRule.id)
        .all()
    )
    return [
        rule for rule in rows
        if any(range_contains(r, on_date) for r in (rule.date_ranges or []) if isinstance(r, dict))
    ]


def apply_dynamic_pricing(
    db: Session,
    target_type: str,
    target_id: Optional[int],
    base_amount,
    on_date: date,
) -> DynamicAdjustment:
    """
    Sum every applicable adjustment onto the base price. Adjustments are
    additive and computed against the original base, never compounded.
    """
    base = to_decimal(base_amount)
    rules = get_applicable_rules(db, target_type, target_id, on_date)

    adjustment = ZERO
    for rule in rules:
        value = to_decimal(rule.price_adjustment_value)
        if rule.price_adjustment_type == ADJUSTMENT_PERCENTAGE:
            adjustment += base * value / Decimal(100)
        elif rule.price_adjustment_type == ADJUSTMENT_FIXED:
            adjustment += value
        else:
            logger.warning("Dynamic pricing rule %s has unknown adjustment type %r", rule.id, rule.price_adjustment_type)

    price = max(ZERO, base + adjustment)
    return DynamicAdjustment(price=price, adjustment=price - base, rules=rules)
