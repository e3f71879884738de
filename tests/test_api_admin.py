"""
Admin surface tests: users, inventory, notifications, reports, health.
"""
import json
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import update

from conftest import auth_headers, checkout_payload, create_user
from laundry.db.database import AsyncSessionLocal
from laundry.models import Order, Role


@pytest.mark.asyncio
async def test_admin_creates_staff_and_changes_role(client, admin):
    headers = auth_headers(admin)
    r = await client.post(
        "/admin/users",
        json={"name": "Peter Ssali", "email": "peter@mail.ug", "password": "Washer123", "role": "staff",
              "department": "ironing"},
        headers=headers,
    )
    assert r.status_code == 201, r.text
    staff_id = r.json()["id"]
    assert r.json()["department"] == "ironing"
    assert r.json()["registered_by"] == "admin"

    promoted = await client.patch(
        f"/admin/users/{staff_id}/role", json={"role": "admin", "permissions": ["reports"]}, headers=headers
    )
    assert promoted.json()["role"] == "admin"
    assert promoted.json()["department"] is None
    assert promoted.json()["permissions"] == ["reports"]


@pytest.mark.asyncio
async def test_toggle_active_blocks_user(client, admin, customer):
    r = await client.post(f"/admin/users/{customer.id}/toggle-active", headers=auth_headers(admin))
    assert r.json()["is_active"] is False
    blocked = await client.get("/auth/me", headers=auth_headers(customer))
    assert blocked.status_code == 403
    assert blocked.json()["code"] == "account_deactivated"


@pytest.mark.asyncio
async def test_admin_cannot_demote_or_deactivate_self(client, admin):
    headers = auth_headers(admin)
    demote = await client.patch(f"/admin/users/{admin.id}/role", json={"role": "staff"}, headers=headers)
    assert demote.status_code == 422
    off = await client.post(f"/admin/users/{admin.id}/toggle-active", headers=headers)
    assert off.status_code == 422


@pytest.mark.asyncio
async def test_staff_cannot_use_admin_endpoints(client, staff):
    r = await client.get("/admin/users", headers=auth_headers(staff))
    assert r.status_code == 403
    assert r.json()["redirect_to"] == "/staff/dashboard"


@pytest.mark.asyncio
async def test_customers_listing(client, admin, customer, staff):
    r = await client.get("/admin/customers", headers=auth_headers(admin))
    assert [u["id"] for u in r.json()] == [customer.id]


@pytest.mark.asyncio
async def test_inventory_stock_status_and_versioned_update(client, admin):
    headers = auth_headers(admin)
    created = await client.post(
        "/inventory",
        json={"name": "Detergent (5L)", "category": "detergent", "quantity": 10, "min_stock": 3, "unit": "can"},
        headers=headers,
    )
    assert created.status_code == 201
    item = created.json()
    assert item["stock_status"] == "in_stock"

    low = await client.patch(f"/inventory/{item['id']}", json={"quantity": 2, "expected_version": 1}, headers=headers)
    assert low.json()["stock_status"] == "low_stock"
    assert low.json()["version_id"] == 2

    stale = await client.patch(f"/inventory/{item['id']}", json={"quantity": 0, "expected_version": 1}, headers=headers)
    assert stale.status_code == 409
    assert stale.json()["current_version"] == 2

    empty = await client.patch(f"/inventory/{item['id']}", json={"quantity": 0}, headers=headers)
    assert empty.json()["stock_status"] == "out_of_stock"

    listing = await client.get("/inventory/low-stock", headers=headers)
    assert [i["id"] for i in listing.json()] == [item["id"]]


@pytest.mark.asyncio
async def test_broadcast_respects_audience(client, admin, staff, customer, redis_client):
    pubsub = redis_client.pubsub()
    await pubsub.subscribe("notifications:broadcast")
    await pubsub.get_message(timeout=0.1)  # subscribe confirmation

    r = await client.post(
        "/notifications/broadcast",
        json={"title": "Staff meeting", "message": "Monday 8am", "audience": "staff"},
        headers=auth_headers(admin),
    )
    assert r.status_code == 201
    published = await pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
    assert json.loads(published["data"])["title"] == "Staff meeting"
    await pubsub.aclose()

    staff_feed = await client.get("/notifications", headers=auth_headers(staff))
    customer_feed = await client.get("/notifications", headers=auth_headers(customer))
    assert [n["title"] for n in staff_feed.json()] == ["Staff meeting"]
    assert customer_feed.json() == []


@pytest.mark.asyncio
async def test_individual_notification_read_and_viewed(client, admin, customer):
    sent = await client.post(
        "/notifications/individual",
        json={"user_id": customer.id, "title": "Your duvet", "message": "Needs an extra day"},
        headers=auth_headers(admin),
    )
    notification_id = sent.json()["id"]

    headers = auth_headers(customer)
    read = await client.post(f"/notifications/{notification_id}/read", headers=headers)
    assert read.json()["read"] is True
    viewed = await client.post(f"/notifications/{notification_id}/viewed", headers=headers)
    assert viewed.json()["viewed"] is True

    stranger = await create_user(Role.CUSTOMER)
    hidden = await client.post(f"/notifications/{notification_id}/read", headers=auth_headers(stranger))
    assert hidden.status_code == 404


@pytest.mark.asyncio
async def test_broadcast_read_state_is_per_recipient(client, admin, customer):
    neighbour = await create_user(Role.CUSTOMER, name="Moses Kato")
    sent = await client.post(
        "/notifications/broadcast",
        json={"title": "Holiday hours", "message": "Closed on 9 October"},
        headers=auth_headers(admin),
    )
    notification_id = sent.json()["id"]

    read = await client.post(f"/notifications/{notification_id}/read", headers=auth_headers(customer))
    assert read.json()["read"] is True
    again = await client.post(f"/notifications/{notification_id}/read", headers=auth_headers(customer))
    assert again.status_code == 200 and again.json()["read"] is True

    mine = await client.get("/notifications", params={"unread_only": "true"}, headers=auth_headers(customer))
    theirs = await client.get("/notifications", params={"unread_only": "true"}, headers=auth_headers(neighbour))
    assert mine.json() == []
    assert [n["id"] for n in theirs.json()] == [notification_id]
    assert theirs.json()[0]["read"] is False

    viewed = await client.post(f"/notifications/{notification_id}/viewed", headers=auth_headers(neighbour))
    assert viewed.json()["viewed"] is True
    feed = await client.get("/notifications", headers=auth_headers(customer))
    assert feed.json()[0]["viewed"] is False

    staff_only = await client.post(
        "/notifications/broadcast",
        json={"title": "Staff meeting", "message": "Monday 8am", "audience": "staff"},
        headers=auth_headers(admin),
    )
    hidden = await client.post(f"/notifications/{staff_only.json()['id']}/read", headers=auth_headers(customer))
    assert hidden.status_code == 404


@pytest.mark.asyncio
async def test_report_summary(client, admin, staff, customer):
    order = (await client.post("/orders", json=checkout_payload(), headers=auth_headers(customer))).json()
    await client.post("/orders", json=checkout_payload(weight=1), headers=auth_headers(customer))
    for status in ["picked_up", "processing", "ready", "out_for_delivery", "delivered"]:
        await client.post(f"/orders/{order['id']}/status", json={"status": status}, headers=auth_headers(staff))

    r = await client.get("/reports/summary", params={"days": 30}, headers=auth_headers(admin))
    assert r.status_code == 200
    report = r.json()
    assert report["total_orders"] == 2
    assert report["delivered_orders"] == 1
    assert report["pending_orders"] == 1
    assert float(report["total_revenue"]) == 15000
    assert float(report["outstanding_payments"]) == 20000
    assert report["services"][0]["service_id"] == "standard"
    assert report["total_customers"] == 1
    assert report["returning_customers"] == 1


@pytest.mark.asyncio
async def test_health_and_catalog_are_public(client):
    health = await client.get("/health")
    assert health.status_code == 200
    assert health.json()["dependencies"] == {"database": "ok", "redis": "ok"}
    assert health.json()["active_reminders"] == 0

    catalog = await client.get("/pricing/catalog", params={"currency": "USD"})
    assert catalog.json()["currency"] == "USD"
    assert {s["id"] for s in catalog.json()["services"]} == {"ordinary", "standard", "express"}


@pytest.mark.asyncio
async def test_public_quote(client):
    r = await client.post("/pricing/quote", json={"service_id": "standard", "weight": 3,
                                                  "add_ons": [{"id": "suit", "quantity": 1}]})
    assert r.status_code == 200
    assert float(r.json()["total"]) == 25000
    assert r.json()["weight_deferred"] is False


@pytest.mark.asyncio
async def test_report_days_zero_covers_all_time(client, admin, customer):
    old = (await client.post("/orders", json=checkout_payload(), headers=auth_headers(customer))).json()
    await client.post("/orders", json=checkout_payload(weight=1), headers=auth_headers(customer))
    async with AsyncSessionLocal() as session:
        await session.execute(
            update(Order).where(Order.id == old["id"])
            .values(created_at=datetime.now(tz=timezone.utc) - timedelta(days=120))
        )
        await session.commit()

    week = await client.get("/reports/summary", headers=auth_headers(admin))
    assert week.json()["period_days"] == 7
    assert week.json()["total_orders"] == 1

    all_time = await client.get("/reports/summary", params={"days": 0}, headers=auth_headers(admin))
    assert all_time.status_code == 200
    assert all_time.json()["period_days"] == 0
    assert all_time.json()["total_orders"] == 2
