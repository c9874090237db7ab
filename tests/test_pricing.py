from decimal import Decimal

import pytest

from app.models.dynamic_pricing import DynamicPricingRule
from app.models.offer import Offer, OfferRule
from app.services.addons import addon_unit_price
from app.services.coupons import compute_discount
from app.models.coupon import Coupon
from app.services.pricing import compute_rule_discount, compute_unit_price

from factories import BOOKING_DATE, make_addon, make_attraction, make_offer


def _window_rule(attraction, **overrides):
    rule = {
        "target_type": "attraction",
        "target_id": attraction.id,
        "date_from": BOOKING_DATE,
        "date_to": BOOKING_DATE,
    }
    rule.update(overrides)
    return rule


def _price(db, attraction, base="500"):
    return compute_unit_price(db, "attraction", attraction.id, None, None, Decimal(base), on_date=BOOKING_DATE)


def test_percent_offer_discounts_unit_price(db, attraction):
    make_offer(db, discount_type="percent", discount_value=20, rules=[_window_rule(attraction)])

    quote = _price(db, attraction)
    assert quote.unit == Decimal("400")
    assert quote.discount == Decimal("100")
    assert quote.offer["source"] == "offer"


def test_max_discount_caps_percent_offer(db, attraction):
    make_offer(db, discount_type="percent", discount_value=20, max_discount=50, rules=[_window_rule(attraction)])

    quote = _price(db, attraction)
    assert quote.unit == Decimal("450")
    assert quote.discount == Decimal("50")


def test_rule_discount_overrides_offer_discount(db, attraction):
    offer = make_offer(
        db,
        discount_type="percent",
        discount_value=20,
        rules=[_window_rule(attraction, rule_discount_type="amount", rule_discount_value=75)],
    )

    quote = _price(db, attraction)
    assert quote.discount == Decimal("75")
    assert quote.offer["offer_id"] == offer.id
    assert quote.offer["discount_type"] == "amount"


def test_amount_discount_never_exceeds_base(db, attraction):
    make_offer(db, discount_type="amount", discount_value=800, rules=[_window_rule(attraction)])

    quote = _price(db, attraction)
    assert quote.discount == Decimal("500")
    assert quote.unit == Decimal("0")


@pytest.mark.parametrize("base", ["0", "0.01", "99.99", "500", "12000"])
@pytest.mark.parametrize(
    "discount_type, value, max_discount",
    [("percent", "20", None), ("percent", "150", None), ("amount", "100", None), ("percent", "50", "30")],
)
def test_rule_discount_bounds(base, discount_type, value, max_discount):
    offer = Offer(id=1, discount_type=discount_type, discount_value=Decimal(value),
                  max_discount=Decimal(max_discount) if max_discount else None)
    discount = compute_rule_discount(offer, OfferRule(), Decimal(base))
    assert Decimal("0") <= discount <= Decimal(base)
    if max_discount:
        assert discount <= Decimal(max_discount)


def test_zero_or_missing_discount_is_no_discount():
    assert compute_rule_discount(Offer(discount_type=None, discount_value=10), None, 100) == 0
    assert compute_rule_discount(Offer(discount_type="percent", discount_value=0), None, 100) == 0


def test_dynamic_pricing_applies_without_offer(db, attraction):
    db.add(DynamicPricingRule(
        name="Peak",
        target_type="attraction",
        target_id=attraction.id,
        date_ranges=[{"from": BOOKING_DATE.isoformat(), "to": BOOKING_DATE.isoformat()}],
        price_adjustment_type="percentage",
        price_adjustment_value=Decimal("10"),
    ))
    db.add(DynamicPricingRule(
        name="Everything",
        target_type="all",
        date_ranges=[{"from": BOOKING_DATE.isoformat(), "to": BOOKING_DATE.isoformat()}],
        price_adjustment_type="fixed",
        price_adjustment_value=Decimal("-20"),
    ))
    db.commit()

    quote = _price(db, attraction)
    assert quote.unit == Decimal("530")
    assert quote.base == Decimal("530")
    assert quote.discount == 0
    assert quote.offer is None


def test_offer_takes_precedence_over_dynamic_pricing(db, attraction):
    db.add(DynamicPricingRule(
        name="Peak",
        target_type="attraction",
        date_ranges=[{"from": BOOKING_DATE.isoformat(), "to": BOOKING_DATE.isoformat()}],
        price_adjustment_type="fixed",
        price_adjustment_value=Decimal("100"),
    ))
    db.commit()
    make_offer(db, discount_type="percent", discount_value=10, rules=[_window_rule(attraction)])

    quote = _price(db, attraction)
    assert quote.base == Decimal("500")
    assert quote.unit == Decimal("450")


def test_dynamic_pricing_never_goes_negative(db):
    cheap = make_attraction(db, title="Kiosk", base_price="30")
    db.add(DynamicPricingRule(
        name="Clearance",
        target_type="attraction",
        target_id=cheap.id,
        date_ranges=[{"from": BOOKING_DATE.isoformat(), "to": BOOKING_DATE.isoformat()}],
        price_adjustment_type="fixed",
        price_adjustment_value=Decimal("-50"),
    ))
    db.commit()

    assert _price(db, cheap, base="30").unit == Decimal("0")


def test_addon_discount_percent(db):
    addon = make_addon(db, price="200", discount_percent="25")
    assert addon_unit_price(addon) == Decimal("150")


def test_coupon_discount_rules():
    percent = Coupon(code="P", discount_type="percent", discount_value=Decimal("10"), max_discount=Decimal("60"))
    assert compute_discount(percent, Decimal("500")) == Decimal("50")
    assert compute_discount(percent, Decimal("900")) == Decimal("60")

    flat = Coupon(code="F", discount_type="amount", discount_value=Decimal("50"), min_order_amount=Decimal("300"))
    assert compute_discount(flat, Decimal("299")) == 0
    assert compute_discount(flat, Decimal("40") * 10) == Decimal("50")
    assert compute_discount(None, Decimal("400")) == 0
