"""
Laundry Service test fixtures

The app runs in-process over httpx's ASGITransport against a throwaway
SQLite file (aiosqlite) and fakeredis, so no Postgres/Redis is needed.
"""
import os
import tempfile

_DB_DIR = tempfile.mkdtemp(prefix="laundry-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_DB_DIR}/laundry.db"
os.environ["REMINDERS_ENABLED"] = "false"
os.environ["METRICS_ENABLED"] = "false"
os.environ["OPT_LOCK_BASE_DELAY_MS"] = "1"
os.environ["OPT_LOCK_JITTER_MS"] = "1"

import uuid  # noqa: E402
from decimal import Decimal  # noqa: E402

import fakeredis  # noqa: E402
import httpx  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402

from laundry.core.redis_client import set_redis  # noqa: E402
from laundry.core.security import create_access_token, hash_password  # noqa: E402
from laundry.db.database import AsyncSessionLocal, Base, engine  # noqa: E402
from laundry.domain.pricing import default_catalog  # noqa: E402
from laundry.main import app as fastapi_app  # noqa: E402
from laundry.models import Order, Role, User  # noqa: E402
from laundry.services.notifications import NotificationService  # noqa: E402
from laundry.services.reminders import ReminderScheduler  # noqa: E402

PASSWORD = "Secret123!"


@pytest.fixture
def catalog():
    return default_catalog()


@pytest_asyncio.fixture
async def redis_client():
    client = fakeredis.aioredis.FakeRedis(decode_responses=True)
    set_redis(client)
    yield client
    set_redis(None)
    await client.aclose()


@pytest_asyncio.fixture
async def db_setup():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield
    await engine.dispose()


@pytest_asyncio.fixture
async def db(db_setup):
    async with AsyncSessionLocal() as session:
        yield session


@pytest_asyncio.fixture
async def app(db_setup, redis_client, catalog):
    """The FastAPI app with the state its lifespan would normally build."""
    notifier = NotificationService()
    reminders = ReminderScheduler(AsyncSessionLocal, notifier, interval_seconds=3600)
    fastapi_app.state.catalog = catalog
    fastapi_app.state.notifier = notifier
    fastapi_app.state.reminders = reminders
    yield fastapi_app
    await reminders.shutdown()


@pytest_asyncio.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://laundry.test") as c:
        yield c


async def create_user(role: Role = Role.CUSTOMER, is_active: bool = True, **fields) -> User:
    suffix = uuid.uuid4().hex[:8]
    user = User(
        name=fields.pop("name", f"{role.value.title()} {suffix}"),
        email=fields.pop("email", f"{role.value}-{suffix}@mail.ug"),
        phone=fields.pop("phone", "+256700123456"),
        address=fields.pop("address", "Plot 12, Kira Road, Kampala"),
        hashed_password=hash_password(PASSWORD),
        role=role.value,
        is_active=is_active,
        **fields,
    )
    async with AsyncSessionLocal() as session:
        session.add(user)
        await session.commit()
    return user


def auth_headers(user: User) -> dict[str, str]:
    token = create_access_token({"sub": user.id, "email": user.email, "role": user.role})
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def customer(db_setup):
    return await create_user(Role.CUSTOMER, name="Amina Nakato")


@pytest_asyncio.fixture
async def staff(db_setup):
    return await create_user(Role.STAFF, name="Brian Okello", department="washing")


@pytest_asyncio.fixture
async def admin(db_setup):
    return await create_user(Role.ADMIN, name="Grace Atim", permissions=["all"])


def checkout_payload(**overrides) -> dict:
    payload = {
        "service_id": "standard",
        "weight": 3,
        "add_ons": [],
        "pickup_address": "Plot 5, Ntinda Road, Kampala",
        "pickup_date": "2026-10-20",
        "pickup_time": "10:00 AM - 12:00 PM",
        "phone": "+256700123456",
    }
    payload.update(overrides)
    return payload


@pytest_asyncio.fixture
async def placed_order(client, customer) -> dict:
    r = await client.post("/orders", json=checkout_payload(), headers=auth_headers(customer))
    assert r.status_code == 201, r.text
    return r.json()


class StubOrder:
    """Plain record for exercising the pure lifecycle/invoice functions."""

    def __init__(self, **fields):
        self.id = "order-1"
        self.order_number = "NH123456"
        self.customer_id = "cust-1"
        self.customer_name = "Amina Nakato"
        self.customer_phone = "+256700123456"
        self.customer_email = "amina@mail.ug"
        self.service_id = "standard"
        self.add_ons = []
        self.estimated_weight = None
        self.actual_weight = None
        self.currency = "UGX"
        self.rounded_distance_km = 0
        self.delivery_fee = Decimal("0")
        self.estimated_total = Decimal("0")
        self.final_total = None
        self.weight_confirmed = False
        self.status = "pending"
        self.payment_status = "pending"
        self.payment_method = "cash_on_delivery"
        self.status_timestamps = {}
        self.notes = []
        self.assigned_staff_id = None
        self.created_at = None
        self.updated_at = None
        for key, value in fields.items():
            setattr(self, key, value)


class StubActor:
    def __init__(self, id="staff-1", role="staff"):
        self.id = id
        self.role = role


async def fetch_order(order_id: str) -> Order:
    async with AsyncSessionLocal() as session:
        return await session.get(Order, order_id)
