from datetime import date, time, timedelta

import pydantic
import pytest
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import configure_mappers

from app import schemas
from app.models.attraction import Attraction, AttractionSlot
from app.models.booking import Booking
from app.models.order import Order
from app.utils.slug import generate_slug, make_unique_slug
from app.utils.timeslots import deactivate_past_slots

from factories import make_attraction, make_slot


def test_orm_mappings_are_valid():
    configure_mappers()


def test_schemas_instantiate():
    user = schemas.UserCreate(email="test@example.com", full_name="Test User", password="password")
    assert user.whatsapp_consent is False

    item = schemas.CartItem(item_type="combo", combo_slot_id="", booking_date="2025-06-14", coupon_code=" ")
    assert item.item_type == "Combo"
    assert item.combo_slot_id is None
    assert item.coupon_code is None


def test_offer_rule_schema_checks_days():
    with pytest.raises(pydantic.ValidationError):
        schemas.OfferRuleCreate(day_type="custom")
    with pytest.raises(pydantic.ValidationError):
        schemas.OfferRuleCreate(specific_days=[7])
    with pytest.raises(pydantic.ValidationError):
        schemas.OfferRuleCreate(date_from=date(2025, 2, 1), date_to=date(2025, 1, 1))


def test_booking_must_reference_exactly_one_target(db, user, attraction):
    order = Order(ref="ORD-TEST0001", user_id=user.id)
    db.add(order)
    db.flush()
    db.add(Booking(
        ref="BK-TEST0001",
        order_id=order.id,
        item_type="Combo",
        attraction_id=attraction.id,
        booking_date=date(2025, 6, 14),
    ))
    with pytest.raises(IntegrityError):
        db.flush()
    db.rollback()


def test_slugs(db):
    assert generate_slug("  Snow & Ice Park ") == "snow-ice-park"
    make_attraction(db, title="Snow Park", slug="snow-park")
    slug = make_unique_slug(db, Attraction, "Snow Park")
    assert slug.startswith("snow-park-") and slug != "snow-park"


def test_deactivate_past_slots(db, attraction):
    past = make_slot(db, attraction, slot_date=date.today() - timedelta(days=1))
    future = make_slot(db, attraction, slot_date=date.today() + timedelta(days=1), start=time(12, 0), end=time(13, 0))

    assert deactivate_past_slots(db) == 1
    db.expire_all()
    assert db.get(AttractionSlot, past.id).available is False
    assert db.get(AttractionSlot, future.id).available is True
