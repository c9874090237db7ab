"""
Rule matcher: finds the single highest-priority offer rule applicable to a
target (attraction or combo) at a given slot, date and time.

Column-level predicates are pushed into SQL; the weekday / holiday checks
run in Python over the priority-ordered candidates so they behave the same
on every database backend. Nothing here writes or locks.
"""
import logging
from dataclasses import dataclass
from datetime import date, time
from typing import Iterable, Optional, Set

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session, contains_eager

from app.models.offer import Offer, OfferRule, RULE_TYPE_BUY_X_GET_Y
from app.services.holidays import get_holidays

logger = logging.getLogger(__name__)

DAY_TYPE_WEEKDAY = "weekday"
DAY_TYPE_WEEKEND = "weekend"
DAY_TYPE_HOLIDAY = "holiday"
DAY_TYPE_CUSTOM = "custom"


@dataclass(frozen=True)
class RuleMatch:
    offer: Offer
    rule: OfferRule


def weekday_number(on_date: date) -> int:
    """0 = Sunday ... 6 = Saturday."""
    return on_date.isoweekday() % 7


def _specific_days(rule: OfferRule) -> Optional[Set[int]]:
    if rule.specific_days is None:
        return None
    return {int(d) for d in rule.specific_days}


def _day_filters_pass(rule: OfferRule, on_date: date, holidays_for) -> bool:
    dow = weekday_number(on_date)
    days = _specific_days(rule)

    if rule.day_type == DAY_TYPE_WEEKDAY and not 1 <= dow <= 5:
        return False
    if rule.day_type == DAY_TYPE_WEEKEND and dow not in (0, 6):
        return False
    if rule.day_type == DAY_TYPE_CUSTOM and (not days or dow not in days):
        return False
    if rule.day_type == DAY_TYPE_HOLIDAY and on_date.isoformat() not in holidays_for():
        return False

    # specific_days narrows every day_type, not only 'custom'
    if days is not None and dow not in days:
        return False
    return True


def find_applicable_rule(
    db: Session,
    target_type: str,
    target_id: Optional[int],
    slot_type: Optional[str] = None,
    slot_id: Optional[int] = None,
    on_date: Optional[date] = None,
    at_time: Optional[time] = None,
    holidays: Optional[Iterable[str]] = None,
) -> Optional[RuleMatch]:
    """
    Return the applicable (offer, rule) pair or None.

    Ties on priority go to the most recently created rule. When ``at_time`` is
    None the time-window and specific-time filters are skipped. ``holidays``
    may be passed in to avoid a lookup; otherwise the calendar is loaded only
    if a holiday rule is reached.
    """
    if not target_type:
        return None
    match_date = on_date or date.today()

    target_match = and_(OfferRule.applies_to_all == True, OfferRule.target_type == target_type)  # noqa: E712
    if target_id is not None:
        target_match = or_(
            target_match,
            and_(OfferRule.target_type == target_type, OfferRule.target_id == target_id),
        )

    filters = [
        Offer.active == True,  # noqa: E712
        or_(Offer.rule_type.is_(None), Offer.rule_type != RULE_TYPE_BUY_X_GET_Y),
        or_(Offer.valid_from.is_(None), Offer.valid_from <= match_date),
        or_(Offer.valid_to.is_(None), Offer.valid_to >= match_date),
        target_match,
        or_(OfferRule.slot_type.is_(None), OfferRule.slot_type == slot_type),
        or_(OfferRule.slot_id.is_(None), OfferRule.slot_id == slot_id),
        or_(OfferRule.date_from.is_(None), OfferRule.date_from <= match_date),
        or_(OfferRule.date_to.is_(None), OfferRule.date_to >= match_date),
        or_(OfferRule.specific_date.is_(None), OfferRule.specific_date == match_date),
    ]
    if at_time is not None:
        filters += [
            or_(OfferRule.time_from.is_(None), OfferRule.time_from <= at_time),
            or_(OfferRule.time_to.is_(None), OfferRule.time_to >= at_time),
            or_(OfferRule.specific_time.is_(None), OfferRule.specific_time == at_time),
        ]

    candidates = (
        db.query(OfferRule)
        .join(Offer, Offer.id == OfferRule.offer_id)
        .options(contains_eager(OfferRule.offer))
        .filter(*filters)
        .order_by(OfferRule.priority.desc(), OfferRule.id.desc())
        .all()
    )

    holiday_cache = {}

    def holidays_for() -> Set[str]:
        if "dates" not in holiday_cache:
            holiday_cache["dates"] = (
                set(holidays) if holidays is not None else get_holidays(db, match_date.year)
            )
        return holiday_cache["dates"]

    for rule in candidates:
        if _day_filters_pass(rule, match_date, holidays_for):
            logger.debug(
                "Offer rule %s (offer %s, priority %s) matched %s %s on %s",
                rule.id, rule.offer_id, rule.priority, target_type, target_id, match_date,
            )
            return RuleMatch(offer=rule.offer, rule=rule)
    return None
