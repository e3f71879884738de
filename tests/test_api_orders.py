"""
Order API tests: checkout, idempotent replay, staff workflow, conflicts.
"""
import math

import pytest
from sqlalchemy import func, select

from conftest import auth_headers, checkout_payload, create_user, fetch_order
from laundry.db.database import AsyncSessionLocal
from laundry.models import Notification, Order, Role

KM_PER_DEGREE_LAT = 2 * math.pi * 6371.0 / 360
ORIGIN_LAT, ORIGIN_LNG = 0.3385054639934989, 32.56840547410712


async def _count(model, *where) -> int:
    async with AsyncSessionLocal() as session:
        return (await session.execute(select(func.count()).select_from(model).where(*where))).scalar_one()


@pytest.mark.asyncio
async def test_checkout_requires_authentication(client):
    r = await client.post("/orders", json=checkout_payload())
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_checkout_prices_order_with_delivery(client, customer, staff, app):
    payload = checkout_payload(
        add_ons=[{"id": "suit", "quantity": 1}],
        pickup_lat=ORIGIN_LAT + 4.3 / KM_PER_DEGREE_LAT,
        pickup_lng=ORIGIN_LNG,
    )
    r = await client.post("/orders", json=payload, headers=auth_headers(customer))
    assert r.status_code == 201, r.text
    body = r.json()
    assert body["status"] == "pending"
    assert body["order_number"].startswith("NH") and len(body["order_number"]) == 8
    assert body["rounded_distance_km"] == 5
    assert float(body["delivery_fee"]) == 10000
    assert float(body["estimated_total"]) == 35000
    assert body["final_total"] is None
    assert body["allowed_next_statuses"] == ["picked_up"]
    assert body["version_id"] == 1

    assert app.state.reminders.is_active(body["id"])
    assert await _count(Notification, Notification.user_id == staff.id, Notification.type == "new_order") == 1


@pytest.mark.asyncio
async def test_checkout_without_weight_defers_pricing(client, customer):
    r = await client.post("/orders", json=checkout_payload(weight=None), headers=auth_headers(customer))
    assert r.status_code == 201
    assert float(r.json()["estimated_total"]) == 0


@pytest.mark.asyncio
async def test_checkout_rejects_bad_fields(client, customer):
    r = await client.post(
        "/orders",
        json=checkout_payload(phone="12", pickup_time="midnight"),
        headers=auth_headers(customer),
    )
    assert r.status_code == 422
    assert set(r.json()["errors"]) == {"phone", "pickup_time"}


@pytest.mark.asyncio
async def test_checkout_is_customer_only(client, staff):
    r = await client.post("/orders", json=checkout_payload(), headers=auth_headers(staff))
    assert r.status_code == 403
    assert r.json()["code"] == "role_mismatch"
    assert r.json()["redirect_to"] == "/staff/dashboard"


@pytest.mark.asyncio
async def test_idempotent_checkout_replays_first_response(client, customer):
    headers = {**auth_headers(customer), "Idempotency-Key": "checkout-123"}
    first = await client.post("/orders", json=checkout_payload(), headers=headers)
    second = await client.post("/orders", json=checkout_payload(), headers=headers)
    assert first.status_code == second.status_code == 201
    assert second.headers.get("X-Idempotency-Replay") == "true"
    assert first.json()["id"] == second.json()["id"]
    assert await _count(Order) == 1


@pytest.mark.asyncio
async def test_staff_walks_order_through_lifecycle(client, staff, customer, placed_order, app):
    order_id = placed_order["id"]
    headers = auth_headers(staff)

    for expected in ["picked_up", "processing", "ready", "out_for_delivery", "delivered"]:
        r = await client.post(f"/orders/{order_id}/status", json={"status": expected}, headers=headers)
        assert r.status_code == 200, r.text
        assert r.json()["status"] == expected

    body = r.json()
    assert body["version_id"] == 6
    assert body["assigned_staff_id"] == staff.id
    assert set(body["status_timestamps"]) >= {"pending_at", "picked_up_at", "delivered_at"}
    assert not app.state.reminders.is_active(order_id)
    assert await _count(
        Notification, Notification.user_id == customer.id, Notification.type == "order_status_update"
    ) == 5


@pytest.mark.asyncio
async def test_skipping_a_step_returns_allowed_options(client, staff, placed_order):
    r = await client.post(
        f"/orders/{placed_order['id']}/status", json={"status": "delivered"}, headers=auth_headers(staff)
    )
    assert r.status_code == 409
    assert r.json()["code"] == "invalid_transition"
    assert r.json()["allowed"] == ["picked_up"]
    assert (await fetch_order(placed_order["id"])).status == "pending"


@pytest.mark.asyncio
async def test_stale_version_is_a_conflict(client, staff, placed_order):
    headers = auth_headers(staff)
    url = f"/orders/{placed_order['id']}/status"
    ok = await client.post(url, json={"status": "picked_up", "expected_version": 1}, headers=headers)
    assert ok.status_code == 200

    stale = await client.post(url, json={"status": "processing", "expected_version": 1}, headers=headers)
    assert stale.status_code == 409
    assert stale.json()["code"] == "conflict"
    assert stale.json()["current_version"] == 2
    assert stale.json()["retryable"] is True


@pytest.mark.asyncio
async def test_customer_cannot_change_status(client, customer, placed_order):
    r = await client.post(
        f"/orders/{placed_order['id']}/status", json={"status": "picked_up"}, headers=auth_headers(customer)
    )
    assert r.status_code == 403
    assert r.json()["redirect_to"] == "/dashboard"


@pytest.mark.asyncio
async def test_deactivated_staff_is_blocked_despite_valid_token(client, placed_order):
    former = await create_user(Role.STAFF, is_active=False)
    r = await client.post(
        f"/orders/{placed_order['id']}/status", json={"status": "picked_up"}, headers=auth_headers(former)
    )
    assert r.status_code == 403
    assert r.json()["code"] == "account_deactivated"


@pytest.mark.asyncio
async def test_weight_confirmation_sets_final_total(client, staff, placed_order):
    r = await client.post(
        f"/orders/{placed_order['id']}/weight", json={"actual_weight": 4.5}, headers=auth_headers(staff)
    )
    assert r.status_code == 200, r.text
    body = r.json()
    assert float(body["final_total"]) == 22500
    assert body["weight_confirmed"] is True
    assert body["status"] == "pending"
    assert body["notes"][-1]["type"] == "weight_confirmed"


@pytest.mark.asyncio
async def test_admin_force_status_and_staff_cannot(client, staff, admin, placed_order):
    url = f"/orders/{placed_order['id']}/force-status"
    payload = {"status": "washing", "reason": "Needs a full wash cycle"}

    denied = await client.post(url, json=payload, headers=auth_headers(staff))
    assert denied.status_code == 403

    r = await client.post(url, json=payload, headers=auth_headers(admin))
    assert r.status_code == 200
    assert r.json()["status"] == "washing"
    assert r.json()["allowed_next_statuses"] == ["drying"]
    assert r.json()["notes"][-1]["reason"] == "Needs a full wash cycle"


@pytest.mark.asyncio
async def test_cancel_then_no_further_transitions(client, staff, placed_order, app):
    headers = auth_headers(staff)
    r = await client.post(f"/orders/{placed_order['id']}/cancel", json={"reason": "Duplicate"}, headers=headers)
    assert r.status_code == 200
    assert r.json()["status"] == "cancelled"
    assert r.json()["allowed_next_statuses"] == []
    assert not app.state.reminders.is_active(placed_order["id"])

    again = await client.post(f"/orders/{placed_order['id']}/cancel", json={}, headers=headers)
    assert again.status_code == 409


@pytest.mark.asyncio
async def test_viewing_order_stops_reminders(client, staff, placed_order, app):
    assert app.state.reminders.is_active(placed_order["id"])
    r = await client.post(f"/orders/{placed_order['id']}/viewed", headers=auth_headers(staff))
    assert r.status_code == 200
    assert r.json()["viewed_at"] is not None
    assert not app.state.reminders.is_active(placed_order["id"])


@pytest.mark.asyncio
async def test_customers_see_only_their_orders(client, customer, placed_order):
    other = await create_user(Role.CUSTOMER)
    mine = await client.get("/orders", headers=auth_headers(customer))
    assert [o["id"] for o in mine.json()] == [placed_order["id"]]

    theirs = await client.get("/orders", headers=auth_headers(other))
    assert theirs.json() == []
    hidden = await client.get(f"/orders/{placed_order['id']}", headers=auth_headers(other))
    assert hidden.status_code == 404


@pytest.mark.asyncio
async def test_next_statuses_endpoint(client, staff, placed_order):
    r = await client.get(f"/orders/{placed_order['id']}/next-statuses", headers=auth_headers(staff))
    assert r.json() == {
        "order_id": placed_order["id"],
        "status": "pending",
        "status_label": "Order Placed",
        "allowed": ["picked_up"],
        "version_id": 1,
    }


@pytest.mark.asyncio
async def test_invoice_and_payment(client, customer, staff, placed_order):
    paid = await client.post(f"/orders/{placed_order['id']}/payment", headers=auth_headers(staff))
    assert paid.json()["payment_status"] == "paid"

    r = await client.get(f"/orders/{placed_order['id']}/invoice", headers=auth_headers(customer))
    assert r.status_code == 200
    invoice = r.json()
    assert invoice["invoice_number"] == f"INV-{placed_order['order_number']}"
    assert float(invoice["subtotal"]) == 15000
    assert float(invoice["tax"]) == 2700
    assert float(invoice["grand_total"]) == 17700
    assert invoice["delivery_fee"] is None
    assert invoice["payment"]["status"] == "paid"


@pytest.mark.asyncio
async def test_walk_in_registration(client, staff, admin):
    r = await client.post(
        "/staff/walk-in",
        json={
            "name": "Joseph Mugisha",
            "phone": "0772 123 456",
            "address": "Bukoto Street 14",
            "service_id": "express",
            "estimated_weight": 2,
        },
        headers=auth_headers(staff),
    )
    assert r.status_code == 201, r.text
    body = r.json()
    assert body["order"]["status"] == "pending_pickup"
    assert body["order"]["created_by"] == "staff"
    assert float(body["order"]["estimated_total"]) == 16000
    assert body["invitation_link"].endswith(f"/customer-invitation/{body['invitation_code']}")
    assert await _count(Notification, Notification.user_id == admin.id, Notification.type == "client_registration") == 1

    accepted = await client.post(
        f"/auth/invitations/{body['invitation_code']}/accept",
        json={"email": "joseph@mail.ug", "password": "NewPass123"},
    )
    assert accepted.status_code == 200
    assert accepted.json()["redirect_to"] == "/dashboard"

    reused = await client.post(
        f"/auth/invitations/{body['invitation_code']}/accept",
        json={"email": "joseph2@mail.ug", "password": "NewPass123"},
    )
    assert reused.status_code == 404


@pytest.mark.asyncio
async def test_weights_finer_than_ten_grams_are_rejected(client, customer, staff, placed_order):
    r = await client.post("/orders", json=checkout_payload(weight=2.555), headers=auth_headers(customer))
    assert r.status_code == 422
    weighed = await client.post(
        f"/orders/{placed_order['id']}/weight", json={"actual_weight": 4.255}, headers=auth_headers(staff)
    )
    assert weighed.status_code == 422


@pytest.mark.asyncio
async def test_quote_labels_the_pickup_distance(client):
    r = await client.post(
        "/pricing/quote",
        json={"service_id": "standard", "weight": 2,
              "pickup_lat": ORIGIN_LAT + 4.3 / KM_PER_DEGREE_LAT, "pickup_lng": ORIGIN_LNG},
    )
    assert r.status_code == 200
    assert r.json()["distance_label"] == "4.3km"
    no_gps = await client.post("/pricing/quote", json={"service_id": "standard", "weight": 2})
    assert no_gps.json()["distance_label"] is None


@pytest.mark.asyncio
async def test_walk_in_email_must_be_valid(client, staff):
    r = await client.post(
        "/staff/walk-in",
        json={
            "name": "Sarah Namuli",
            "phone": "0772 987 654",
            "email": "sarah-at-mail",
            "address": "Kisementi 3",
            "service_id": "ordinary",
        },
        headers=auth_headers(staff),
    )
    assert r.status_code == 422
