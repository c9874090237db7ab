from datetime import time, timedelta

from app.models.holiday import Holiday
from app.services.offer_rules import find_applicable_rule, weekday_number

from factories import BOOKING_DATE, WEEKEND_DATE, make_attraction, make_offer


def _rule(**overrides):
    rule = {"target_type": "attraction", "rule_discount_type": "percent", "rule_discount_value": 10}
    rule.update(overrides)
    return rule


def test_weekday_number_counts_from_sunday():
    assert weekday_number(WEEKEND_DATE) == 6
    assert weekday_number(WEEKEND_DATE + timedelta(days=1)) == 0
    assert weekday_number(BOOKING_DATE) == 3


def test_no_offers_means_no_match(db, attraction):
    assert find_applicable_rule(db, "attraction", attraction.id, on_date=BOOKING_DATE) is None


def test_higher_priority_wins_regardless_of_insertion_order(db, attraction):
    high = make_offer(db, "High", rules=[_rule(target_id=attraction.id, priority=200, rule_discount_value=30)])
    make_offer(db, "Low", rules=[_rule(target_id=attraction.id, priority=50, rule_discount_value=5)])

    match = find_applicable_rule(db, "attraction", attraction.id, on_date=BOOKING_DATE)
    assert match.offer.id == high.id


def test_equal_priority_prefers_newest_rule(db, attraction):
    make_offer(db, "Old", rules=[_rule(target_id=attraction.id)])
    newer = make_offer(db, "New", rules=[_rule(target_id=attraction.id)])

    match = find_applicable_rule(db, "attraction", attraction.id, on_date=BOOKING_DATE)
    assert match.offer.id == newer.id


def test_matching_is_repeatable(db, attraction):
    make_offer(db, "A", rules=[_rule(target_id=attraction.id, priority=120)])
    make_offer(db, "B", rules=[_rule(applies_to_all=True)])

    first = find_applicable_rule(db, "attraction", attraction.id, on_date=BOOKING_DATE)
    second = find_applicable_rule(db, "attraction", attraction.id, on_date=BOOKING_DATE)
    assert (first.offer.id, first.rule.id) == (second.offer.id, second.rule.id)


def test_rule_for_other_target_does_not_match(db, attraction):
    other = make_attraction(db, title="Water Park")
    make_offer(db, rules=[_rule(target_id=other.id)])
    make_offer(db, rules=[_rule(target_type="combo", applies_to_all=True)])

    assert find_applicable_rule(db, "attraction", attraction.id, on_date=BOOKING_DATE) is None


def test_applies_to_all_matches_any_target_of_type(db, attraction):
    offer = make_offer(db, rules=[_rule(applies_to_all=True)])
    assert find_applicable_rule(db, "attraction", attraction.id, on_date=BOOKING_DATE).offer.id == offer.id


def test_inactive_and_out_of_validity_offers_are_skipped(db, attraction):
    make_offer(db, "Inactive", active=False, rules=[_rule(target_id=attraction.id)])
    make_offer(db, "Expired", valid_to=BOOKING_DATE - timedelta(days=1), rules=[_rule(target_id=attraction.id)])
    make_offer(db, "Future", valid_from=BOOKING_DATE + timedelta(days=1), rules=[_rule(target_id=attraction.id)])

    assert find_applicable_rule(db, "attraction", attraction.id, on_date=BOOKING_DATE) is None


def test_buy_x_get_y_offers_are_not_unit_discounts(db, attraction):
    make_offer(
        db,
        rule_type="buy_x_get_y",
        rules=[_rule(target_id=attraction.id, buy_qty=2, get_qty=1, get_target_type="attraction")],
    )
    assert find_applicable_rule(db, "attraction", attraction.id, on_date=BOOKING_DATE) is None


def test_date_window_and_specific_date(db, attraction):
    make_offer(db, "Window", rules=[_rule(
        target_id=attraction.id,
        date_from=BOOKING_DATE - timedelta(days=2),
        date_to=BOOKING_DATE - timedelta(days=1),
    )])
    specific = make_offer(db, "Specific", rules=[_rule(target_id=attraction.id, specific_date=BOOKING_DATE)])

    assert find_applicable_rule(db, "attraction", attraction.id, on_date=BOOKING_DATE).offer.id == specific.id
    assert find_applicable_rule(db, "attraction", attraction.id, on_date=BOOKING_DATE + timedelta(days=7)) is None


def test_time_window_only_checked_when_time_known(db, attraction):
    offer = make_offer(db, rules=[_rule(target_id=attraction.id, time_from=time(10, 0), time_to=time(12, 0))])

    assert find_applicable_rule(db, "attraction", attraction.id, on_date=BOOKING_DATE, at_time=time(11, 0)).offer.id == offer.id
    assert find_applicable_rule(db, "attraction", attraction.id, on_date=BOOKING_DATE, at_time=time(15, 0)) is None
    assert find_applicable_rule(db, "attraction", attraction.id, on_date=BOOKING_DATE).offer.id == offer.id


def test_slot_scoped_rule_requires_that_slot(db, attraction):
    offer = make_offer(db, rules=[_rule(target_id=attraction.id, slot_type="attraction", slot_id=99)])

    assert find_applicable_rule(db, "attraction", attraction.id, "attraction", 99, on_date=BOOKING_DATE).offer.id == offer.id
    assert find_applicable_rule(db, "attraction", attraction.id, "attraction", 98, on_date=BOOKING_DATE) is None
    assert find_applicable_rule(db, "attraction", attraction.id, on_date=BOOKING_DATE) is None


def test_day_types(db, attraction):
    weekend = make_offer(db, "Weekend", rules=[_rule(target_id=attraction.id, day_type="weekend")])
    weekday = make_offer(db, "Weekday", rules=[_rule(target_id=attraction.id, day_type="weekday", priority=50)])

    assert find_applicable_rule(db, "attraction", attraction.id, on_date=WEEKEND_DATE).offer.id == weekend.id
    assert find_applicable_rule(db, "attraction", attraction.id, on_date=BOOKING_DATE).offer.id == weekday.id


def test_custom_days(db, attraction):
    offer = make_offer(db, rules=[_rule(target_id=attraction.id, day_type="custom", specific_days=[3])])

    assert find_applicable_rule(db, "attraction", attraction.id, on_date=BOOKING_DATE).offer.id == offer.id
    assert find_applicable_rule(db, "attraction", attraction.id, on_date=WEEKEND_DATE) is None


def test_holiday_rule_uses_holiday_table(db, attraction):
    offer = make_offer(db, rules=[_rule(target_id=attraction.id, day_type="holiday")])
    assert find_applicable_rule(db, "attraction", attraction.id, on_date=BOOKING_DATE) is None

    db.add(Holiday(holiday_date=BOOKING_DATE, name="Park Day"))
    db.commit()
    assert find_applicable_rule(db, "attraction", attraction.id, on_date=BOOKING_DATE).offer.id == offer.id


def test_holidays_can_be_passed_in(db, attraction):
    offer = make_offer(db, rules=[_rule(target_id=attraction.id, day_type="holiday")])
    match = find_applicable_rule(
        db, "attraction", attraction.id, on_date=BOOKING_DATE, holidays={BOOKING_DATE.isoformat()},
    )
    assert match.offer.id == offer.id
