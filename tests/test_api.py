from datetime import time
from decimal import Decimal

from app.models.notification import Notification

from factories import (
    BOOKING_DATE,
    auth_headers,
    make_coupon,
    make_offer,
    make_slot,
    make_user,
)

API = "/api/v1"


def _cart(*items, **extra):
    body = {"items": [dict(booking_date=BOOKING_DATE.isoformat(), **item) for item in items]}
    body.update(extra)
    return body


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


def test_list_and_get_attraction(client, attraction):
    res = client.get(f"{API}/attractions/")
    assert res.status_code == 200
    assert res.json()["total"] == 1

    res = client.get(f"{API}/attractions/{attraction.slug}")
    assert res.status_code == 200
    assert res.json()["id"] == attraction.id

    assert client.get(f"{API}/attractions/does-not-exist").status_code == 404


def test_priced_slots_include_physical_and_virtual(client, db, attraction):
    make_slot(db, attraction, capacity=4, start=time(10, 0), end=time(11, 0))
    make_offer(db, discount_type="percent", discount_value=20, rules=[{"target_id": attraction.id}])

    res = client.get(f"{API}/attractions/{attraction.id}/slots", params={"date": BOOKING_DATE.isoformat()})
    assert res.status_code == 200
    slots = res.json()

    physical = [s for s in slots if not s["is_virtual"]]
    virtual = [s for s in slots if s["is_virtual"]]
    assert len(physical) == 1 and physical[0]["capacity"] == 4
    # 10:00 is covered by the physical slot
    assert len(virtual) == 9
    assert virtual[0]["slot_id"] == f"{attraction.id}-{BOOKING_DATE:%Y%m%d}-11"
    assert Decimal(physical[0]["unit_price"]) == Decimal("400")
    assert physical[0]["offer"]["title"] == "Offer"


def test_coupon_check(client, db):
    make_coupon(db, code="SAVE10")
    body = client.get(f"{API}/coupons/save10", params={"amount": "500"}).json()
    assert body["valid"] is True
    assert Decimal(body["discount"]) == Decimal("50")

    assert client.get(f"{API}/coupons/NOPE").json()["valid"] is False


# ---------------------------------------------------------------------------
# Quotes and bookings
# ---------------------------------------------------------------------------


def test_quote_does_not_need_login(client, attraction):
    res = client.post(f"{API}/bookings/quote", json=_cart({"attraction_id": attraction.id, "quantity": 2}))
    assert res.status_code == 200
    assert Decimal(res.json()["final_amount"]) == Decimal("1000")


def test_booking_requires_login(client, attraction):
    res = client.post(f"{API}/bookings/", json=_cart({"attraction_id": attraction.id}))
    assert res.status_code == 401


def test_create_booking(client, db, user, attraction):
    slot = make_slot(db, attraction, capacity=2)

    res = client.post(
        f"{API}/bookings/",
        json=_cart({"item_type": "attraction", "slot_id": str(slot.id), "quantity": 2}),
        headers=auth_headers(user),
    )
    assert res.status_code == 201
    body = res.json()
    assert body["order"]["payment_status"] == "Pending"
    [booking] = body["bookings"]
    assert booking["slot_id"] == slot.id
    assert booking["slot_label"] == "10:00 AM - 11:00 AM"
    assert booking["item_title"] == attraction.title

    res = client.get(f"{API}/bookings/", headers=auth_headers(user))
    assert res.json()["total"] == 1


def test_capacity_conflict_response(client, db, user, attraction):
    slot = make_slot(db, attraction, capacity=1)
    client.post(f"{API}/bookings/", json=_cart({"slot_id": slot.id}), headers=auth_headers(user))

    res = client.post(f"{API}/bookings/", json=_cart({"slot_id": slot.id}), headers=auth_headers(user))
    assert res.status_code == 409
    assert res.json() == {
        "error": "capacity_conflict",
        "message": "Only 0 place(s) left in this slot",
        "available": 0,
        "requested": 1,
    }


def test_bad_slot_reference_is_a_validation_error(client, user, attraction):
    res = client.post(
        f"{API}/bookings/",
        json=_cart({"attraction_id": attraction.id, "slot_id": "tomorrow"}),
        headers=auth_headers(user),
    )
    assert res.status_code == 400
    assert res.json()["error"] == "validation_error"


def test_malformed_body_uses_error_shape(client, user):
    res = client.post(f"{API}/bookings/", json={"items": [{"attraction_id": 1}]}, headers=auth_headers(user))
    assert res.status_code == 422
    assert res.json()["error"] == "validation_error"
    assert "booking_date" in res.json()["message"]


def test_orders_are_private(client, db, user, attraction):
    res = client.post(f"{API}/bookings/", json=_cart({"attraction_id": attraction.id}), headers=auth_headers(user))
    order_id = res.json()["order_id"]

    stranger = make_user(db, email="stranger@example.com")
    assert client.get(f"{API}/bookings/orders/{order_id}", headers=auth_headers(stranger)).status_code == 404
    assert client.get(f"{API}/bookings/orders/{order_id}", headers=auth_headers(user)).status_code == 200


def test_cancel_order(client, user, attraction):
    order_id = client.post(
        f"{API}/bookings/", json=_cart({"attraction_id": attraction.id}), headers=auth_headers(user)
    ).json()["order_id"]

    res = client.patch(f"{API}/bookings/orders/{order_id}/cancel", headers=auth_headers(user))
    assert res.status_code == 200
    assert res.json()["payment_status"] == "Cancelled"
    assert all(b["booking_status"] == "Cancelled" for b in res.json()["bookings"])


# ---------------------------------------------------------------------------
# Payments
# ---------------------------------------------------------------------------


def test_payment_flow_triggers_fulfilment_once(client, user, attraction, gateway, fulfillment):
    headers = auth_headers(user)
    order_id = client.post(
        f"{API}/bookings/", json=_cart({"attraction_id": attraction.id}), headers=headers
    ).json()["order_id"]

    res = client.post(f"{API}/payments/orders/{order_id}/initiate", headers=headers)
    assert res.status_code == 200
    assert res.json()["reference"].startswith("OFF-ORD-")

    res = client.get(f"{API}/payments/orders/{order_id}/status", headers=headers)
    assert res.json()["status"] == "pending"
    assert fulfillment.calls == []

    gateway.next_status = "success"
    res = client.get(f"{API}/payments/orders/{order_id}/status", headers=headers)
    assert res.json()["status"] == "success"
    assert res.json()["payment_status"] == "Completed"
    assert fulfillment.calls == [(order_id, True)]

    client.get(f"{API}/payments/orders/{order_id}/status", headers=headers)
    assert len(fulfillment.calls) == 1

    res = client.patch(f"{API}/bookings/orders/{order_id}/cancel", headers=headers)
    assert res.status_code == 409
    assert res.json()["error"] == "invalid_state"


def test_failed_payment(client, user, attraction, gateway, fulfillment):
    headers = auth_headers(user)
    order_id = client.post(
        f"{API}/bookings/", json=_cart({"attraction_id": attraction.id}), headers=headers
    ).json()["order_id"]

    gateway.next_status = "failed"
    res = client.get(f"{API}/payments/orders/{order_id}/status", headers=headers)
    assert res.json()["status"] == "failed"
    assert fulfillment.calls == []


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------


def test_admin_routes_need_admin_role(client, user):
    assert client.get(f"{API}/admin/offers/", headers=auth_headers(user)).status_code == 403


def test_admin_offer_lifecycle(client, admin, attraction):
    headers = auth_headers(admin)
    res = client.post(f"{API}/admin/offers/", headers=headers, json={
        "title": "Weekday Saver",
        "discount_type": "percent",
        "discount_value": 20,
        "rules": [{"target_type": "attraction", "target_id": attraction.id, "day_type": "weekday"}],
    })
    assert res.status_code == 201
    offer = res.json()
    assert len(offer["rules"]) == 1

    quote = client.post(f"{API}/bookings/quote", json=_cart({"attraction_id": attraction.id})).json()
    assert Decimal(quote["final_amount"]) == Decimal("400")

    res = client.patch(f"{API}/admin/offers/{offer['id']}", headers=headers, json={
        "rules": [{"target_type": "attraction", "target_id": attraction.id, "rule_discount_type": "amount",
                   "rule_discount_value": 50}],
    })
    assert res.status_code == 200
    assert len(res.json()["rules"]) == 1
    assert res.json()["rules"][0]["rule_discount_type"] == "amount"

    quote = client.post(f"{API}/bookings/quote", json=_cart({"attraction_id": attraction.id})).json()
    assert Decimal(quote["final_amount"]) == Decimal("450")

    assert client.delete(f"{API}/admin/offers/{offer['id']}", headers=headers).status_code == 204
    assert client.get(f"{API}/admin/offers/{offer['id']}", headers=headers).status_code == 404


def test_admin_rejects_invalid_buy_x_get_y(client, admin, attraction):
    res = client.post(f"{API}/admin/offers/", headers=auth_headers(admin), json={
        "title": "Broken bundle",
        "rule_type": "buy_x_get_y",
        "rules": [{"target_id": attraction.id, "buy_qty": 0, "get_qty": 1, "get_target_type": "ride"}],
    })
    assert res.status_code == 400
    assert "buy_qty" in res.json()["message"]


def test_admin_catalog_and_slots(client, admin):
    headers = auth_headers(admin)
    res = client.post(f"{API}/admin/attractions", headers=headers, json={"title": "Snow Park!", "base_price": 500})
    assert res.status_code == 201
    attraction = res.json()
    assert attraction["slug"] == "snow-park"

    res = client.post(f"{API}/admin/attractions/{attraction['id']}/slots", headers=headers, json=[
        {"slot_date": BOOKING_DATE.isoformat(), "start_time": "10:00", "end_time": "11:00", "capacity": 20},
        {"slot_date": BOOKING_DATE.isoformat(), "start_time": "11:00", "end_time": "12:00", "capacity": 20},
    ])
    assert res.status_code == 201
    assert len(res.json()) == 2

    res = client.post(f"{API}/admin/attractions/{attraction['id']}/slots", headers=headers, json=[
        {"slot_date": BOOKING_DATE.isoformat(), "start_time": "12:00", "end_time": "11:00", "capacity": 20},
    ])
    assert res.status_code == 400

    res = client.post(f"{API}/admin/combos", headers=headers, json={
        "name": "Big Day", "attraction_ids": [attraction["id"], 9999], "total_price": 900,
    })
    assert res.status_code == 400


def test_admin_mark_paid_and_resend(client, db, admin, user, attraction, fulfillment):
    order_id = client.post(
        f"{API}/bookings/", json=_cart({"attraction_id": attraction.id}), headers=auth_headers(user)
    ).json()["order_id"]
    headers = auth_headers(admin)

    res = client.post(f"{API}/admin/orders/{order_id}/resend-tickets", headers=headers)
    assert res.status_code == 409

    res = client.post(f"{API}/admin/orders/{order_id}/mark-paid", headers=headers, json={"reference": "CASH-1"})
    assert res.status_code == 200
    assert res.json()["payment_status"] == "Completed"
    assert res.json()["payment_ref"] == "CASH-1"
    assert fulfillment.calls == [(order_id, True)]

    res = client.post(f"{API}/admin/orders/{order_id}/resend-tickets", headers=headers)
    assert res.status_code == 200
    assert fulfillment.calls[-1] == (order_id, False)

    res = client.get(f"{API}/admin/bookings/", headers=headers, params={"payment_status": "Completed"})
    assert res.json()["total"] == 1
    assert res.json()["data"][0]["user"]["email"] == user.email


def test_admin_cancels_paid_order(client, admin, user, attraction):
    order_id = client.post(
        f"{API}/bookings/", json=_cart({"attraction_id": attraction.id}), headers=auth_headers(user)
    ).json()["order_id"]
    headers = auth_headers(admin)
    client.post(f"{API}/admin/orders/{order_id}/mark-paid", headers=headers, json={"reference": "CASH-2"})

    res = client.patch(f"{API}/bookings/orders/{order_id}/cancel", headers=auth_headers(user))
    assert res.status_code == 409

    res = client.patch(f"{API}/admin/orders/{order_id}/cancel", headers=headers)
    assert res.status_code == 200
    assert res.json()["payment_status"] == "Cancelled"
    assert all(b["booking_status"] == "Cancelled" for b in res.json()["bookings"])


def test_admin_pricing_resources(client, admin, attraction):
    headers = auth_headers(admin)

    res = client.post(f"{API}/admin/coupons/", headers=headers, json={"code": "summer", "discount_value": 15})
    assert res.status_code == 201
    assert res.json()["code"] == "SUMMER"
    assert client.post(f"{API}/admin/coupons/", headers=headers, json={"code": "SUMMER", "discount_value": 5}).status_code == 400

    res = client.post(f"{API}/admin/dynamic-pricing/", headers=headers, json={
        "name": "Peak",
        "target_type": "attraction",
        "target_id": attraction.id,
        "date_ranges": [{"from": BOOKING_DATE.isoformat(), "to": BOOKING_DATE.isoformat()}],
        "price_adjustment_type": "fixed",
        "price_adjustment_value": 100,
    })
    assert res.status_code == 201
    assert res.json()["date_ranges"] == [{"from": BOOKING_DATE.isoformat(), "to": BOOKING_DATE.isoformat()}]

    quote = client.post(f"{API}/bookings/quote", json=_cart({"attraction_id": attraction.id})).json()
    assert Decimal(quote["final_amount"]) == Decimal("600")

    res = client.post(f"{API}/admin/holidays/", headers=headers, json={
        "holiday_date": BOOKING_DATE.isoformat(), "name": "Founders Day",
    })
    assert res.status_code == 201
    assert len(client.get(f"{API}/admin/holidays/", headers=headers, params={"year": BOOKING_DATE.year}).json()) == 1


# ---------------------------------------------------------------------------
# Auth and profile
# ---------------------------------------------------------------------------


def test_register_login_and_profile(client):
    res = client.post(f"{API}/auth/register", json={
        "email": "new@example.com",
        "full_name": "New Guest",
        "password": "s3cret-pass",
        "phone": "9876543210",
        "whatsapp_consent": True,
    })
    assert res.status_code == 201
    assert res.json()["user"]["role"] == "user"

    res = client.post(f"{API}/auth/login", data={"username": "new@example.com", "password": "s3cret-pass"})
    assert res.status_code == 200
    headers = {"Authorization": f"Bearer {res.json()['access_token']}"}

    res = client.patch(f"{API}/me/", headers=headers, json={"whatsapp_consent": False})
    assert res.json()["whatsapp_consent"] is False

    assert client.post(f"{API}/auth/login", data={"username": "new@example.com", "password": "nope"}).status_code == 401


def test_notifications_inbox(client, db, user):
    db.add(Notification(user_id=user.id, title="Booking Confirmed", message="ORD-1 confirmed", type="booking_confirmed"))
    db.commit()
    headers = auth_headers(user)

    res = client.get(f"{API}/me/notifications", headers=headers, params={"unread_only": True})
    [notification] = res.json()["data"]

    res = client.patch(f"{API}/me/notifications/{notification['id']}/read", headers=headers)
    assert res.json()["is_read"] is True
    assert client.get(f"{API}/me/notifications", headers=headers, params={"unread_only": True}).json()["total"] == 0
