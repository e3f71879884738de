"""
Laundry Service — Order operations with optimistic locking

Every mutation follows the same shape:
  - READ:  fetch the order row (fresh, detached from the session)
  - APPLY: run the lifecycle/pricing rule on it, collecting changed columns
  - WRITE: UPDATE ... WHERE id = :id AND version_id = <read_version>
  - If another writer committed first → StaleDataError → retry from READ

A caller that pins `expected_version` gets ConflictError instead of a silent
overwrite when the order moved on since it was displayed.
"""
import logging
import secrets
import uuid
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from laundry.core.errors import ConflictError, GeolocationError, NotFoundError, ValidationError
from laundry.core.optimistic_lock import StaleDataError, with_optimistic_retry
from laundry.domain import lifecycle
from laundry.domain.distance import Coordinate, DeliveryFee, delivery_fee_from_parts, format_distance
from laundry.domain.lifecycle import OrderStatus
from laundry.domain.pricing import PriceBreakdown, PricingCatalog
from laundry.domain.validation import normalize_phone, validate_order
from laundry.models import Order, PaymentStatus, Role, User
from laundry.schemas.order import CheckoutRequest, QuoteRequest, WalkInRequest
from laundry.services.notifications import NotificationService
from laundry.services.reminders import ReminderScheduler

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


def new_order_number() -> str:
    return f"NH{secrets.randbelow(10**6):06d}"


def new_invitation_code() -> str:
    return secrets.token_urlsafe(12)


@dataclass
class Quote:
    breakdown: PriceBreakdown
    delivery: DeliveryFee

    def as_dict(self) -> dict[str, Any]:
        b = self.breakdown
        return {
            "currency": b.currency,
            "service_id": b.service_id,
            "service_name": b.service_name,
            "rate_per_kg": b.rate_per_kg,
            "weight_kg": b.weight_kg,
            "service_cost": b.service_cost,
            "add_ons": [asdict(line) for line in b.add_on_lines],
            "add_ons_total": b.add_ons_total,
            "distance_km": self.delivery.distance,
            "rounded_distance_km": self.delivery.rounded_distance,
            "distance_label": format_distance(self.delivery.distance) if self.delivery.rounded_distance else None,
            "delivery_fee": b.delivery_fee,
            "subtotal": b.subtotal,
            "total": b.total,
            "weight_deferred": b.weight_kg is None,
        }


def quote(payload: QuoteRequest, catalog: PricingCatalog, origin: Coordinate) -> Quote:
    currency = catalog.table(payload.currency).code
    delivery = delivery_fee_from_parts(
        payload.pickup_lat, payload.pickup_lng, origin, catalog.delivery_rate(currency)
    )
    breakdown = catalog.breakdown(
        payload.service_id,
        payload.weight,
        [(a.id, a.quantity) for a in payload.add_ons],
        currency=currency,
        delivery_fee=delivery.fee,
    )
    return Quote(breakdown=breakdown, delivery=delivery)


def _usable_coordinate(lat: float | None, lng: float | None) -> Coordinate | None:
    try:
        return Coordinate.parse(lat, lng)
    except GeolocationError:
        return None


def _add_on_records(breakdown: PriceBreakdown) -> list[dict[str, Any]]:
    return [
        {
            "id": line.id,
            "name": line.name,
            "quantity": str(line.quantity),
            "unit_price": str(line.unit_price),
            "pricing": line.pricing,
        }
        for line in breakdown.add_on_lines
    ]


# ─── Reads ────────────────────────────────────────────────────────────────────

async def get_order(db: AsyncSession, order_id: str) -> Order:
    order = await db.get(Order, order_id)
    if order is None:
        raise NotFoundError("Order not found.")
    return order


def ensure_can_view(order: Order, user: User) -> None:
    if user.role == Role.CUSTOMER.value and order.customer_id != user.id:
        # Same answer as a missing order so order ids cannot be enumerated.
        raise NotFoundError("Order not found.")


async def list_orders(
    db: AsyncSession,
    customer_id: str | None = None,
    status: str | None = None,
    limit: int = 100,
) -> list[Order]:
    query = select(Order).order_by(Order.created_at.desc()).limit(limit)
    if customer_id:
        query = query.where(Order.customer_id == customer_id)
    if status:
        query = query.where(Order.status == status)
    result = await db.execute(query)
    return list(result.scalars().all())


# ─── Creation ─────────────────────────────────────────────────────────────────

async def create_order(
    db: AsyncSession,
    customer: User,
    payload: CheckoutRequest,
    catalog: PricingCatalog,
    origin: Coordinate,
    notifier: NotificationService,
    reminders: ReminderScheduler | None = None,
) -> Order:
    """Customer checkout. The order starts `pending` and staff start getting reminded."""
    phone = payload.phone or customer.phone
    validate_order(
        phone=phone,
        weight=payload.weight,
        special_instructions=payload.special_instructions,
        pickup_address=payload.pickup_address,
        pickup_time=payload.pickup_time,
    )
    priced = quote(payload, catalog, origin)
    breakdown = priced.breakdown
    pickup = _usable_coordinate(payload.pickup_lat, payload.pickup_lng)
    now = _utcnow()

    order = Order(
        id=str(uuid.uuid4()),
        order_number=new_order_number(),
        customer_id=customer.id,
        customer_name=customer.name,
        customer_phone=normalize_phone(phone) if phone else None,
        customer_email=customer.email,
        service_id=breakdown.service_id,
        add_ons=_add_on_records(breakdown),
        other_service=payload.other_service,
        estimated_weight=breakdown.weight_kg,
        number_of_pieces=payload.number_of_pieces,
        special_instructions=payload.special_instructions,
        photo_urls=list(payload.photo_urls),
        pickup_address=payload.pickup_address.strip(),
        delivery_address=(payload.delivery_address or payload.pickup_address).strip(),
        pickup_lat=pickup.lat if pickup else None,
        pickup_lng=pickup.lng if pickup else None,
        pickup_date=payload.pickup_date,
        pickup_time=payload.pickup_time,
        delivery_date=payload.delivery_date,
        delivery_time=payload.delivery_time,
        currency=breakdown.currency,
        distance_km=priced.delivery.distance,
        rounded_distance_km=priced.delivery.rounded_distance,
        delivery_fee=priced.breakdown.delivery_fee,
        estimated_total=breakdown.total,
        final_total=None,
        status=OrderStatus.PENDING.value,
        payment_status=PaymentStatus.PENDING.value,
        payment_method=payload.payment_method,
        status_timestamps={f"{OrderStatus.PENDING.value}_at": now.isoformat()},
        notes=[],
        created_by=Role.CUSTOMER.value,
        version_id=1,
        created_at=now,
        updated_at=now,
    )
    db.add(order)
    await db.commit()
    logger.info(
        "Order %s created for customer %s: %s %s (%s km)",
        order.order_number, customer.id, order.estimated_total, order.currency, order.rounded_distance_km,
    )

    await _safe_notify(notifier.new_order(db, order), order)
    if reminders is not None:
        reminders.start(order.id)
    return order


async def register_walk_in(
    db: AsyncSession,
    staff: User,
    payload: WalkInRequest,
    catalog: PricingCatalog,
    notifier: NotificationService,
    invitation_base_url: str = "",
) -> tuple[User, Order, str]:
    """Staff registers a customer at the counter plus their first order (pending_pickup)."""
    validate_order(phone=payload.phone, weight=payload.estimated_weight, pickup_address=payload.address,
                   pickup_time=payload.pickup_time)
    phone = normalize_phone(payload.phone)
    currency = catalog.table(payload.currency).code
    breakdown = catalog.breakdown(
        payload.service_id,
        payload.estimated_weight,
        [(a.id, a.quantity) for a in payload.add_ons],
        currency=currency,
    )
    if payload.email:
        taken = await db.execute(select(User.id).where(User.email == payload.email))
        if taken.scalar_one_or_none():
            raise ValidationError("Email already registered.", field="email")

    code = new_invitation_code()
    now = _utcnow()
    customer = User(
        id=str(uuid.uuid4()),
        name=payload.name,
        email=payload.email,
        phone=phone,
        address=payload.address,
        hashed_password=None,
        role=Role.CUSTOMER.value,
        is_active=True,
        invitation_code=code,
        account_activated=False,
        registered_by=staff.role,
        created_at=now,
        updated_at=now,
    )
    order = Order(
        id=str(uuid.uuid4()),
        order_number=new_order_number(),
        customer_id=customer.id,
        customer_name=customer.name,
        customer_phone=phone,
        customer_email=payload.email,
        service_id=breakdown.service_id,
        add_ons=_add_on_records(breakdown),
        estimated_weight=breakdown.weight_kg,
        pickup_address=payload.address,
        delivery_address=payload.address,
        pickup_date=payload.pickup_date,
        pickup_time=payload.pickup_time,
        special_instructions=payload.notes,
        currency=currency,
        distance_km=0.0,
        rounded_distance_km=0,
        delivery_fee=Decimal("0"),
        estimated_total=breakdown.total,
        status=OrderStatus.PENDING_PICKUP.value,
        payment_status=PaymentStatus.PENDING.value,
        status_timestamps={f"{OrderStatus.PENDING_PICKUP.value}_at": now.isoformat()},
        notes=[],
        created_by=staff.role,
        assigned_staff_id=staff.id,
        invitation_code=code,
        version_id=1,
        created_at=now,
        updated_at=now,
    )
    db.add_all([customer, order])
    await db.commit()
    logger.info("Walk-in customer %s registered by %s with order %s", customer.id, staff.id, order.order_number)

    await _safe_notify(notifier.client_registration(db, customer, staff), order)
    link = f"{invitation_base_url.rstrip('/')}/customer-invitation/{code}"
    return customer, order, link


# ─── Mutations ────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ActingUser:
    """Id and role captured up front; a rollback on retry expires ORM instances."""
    id: str
    role: str


def acting(user: User) -> ActingUser:
    return ActingUser(id=user.id, role=user.role)


async def _load_fresh(db: AsyncSession, order_id: str, expected_version: int | None) -> Order:
    result = await db.execute(
        select(Order).where(Order.id == order_id).execution_options(populate_existing=True)
    )
    order = result.scalar_one_or_none()
    if order is None:
        raise NotFoundError("Order not found.")
    db.expunge(order)
    if expected_version is not None and order.version_id != expected_version:
        raise ConflictError(
            f"Order {order.order_number} was updated by someone else. Reload and try again.",
            current_version=order.version_id,
        )
    return order


async def _write(db: AsyncSession, order: Order, changes: dict[str, Any]) -> Order:
    current_version = order.version_id
    result = await db.execute(
        update(Order)
        .where(Order.id == order.id, Order.version_id == current_version)
        .values(**changes, version_id=current_version + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        await db.rollback()
        raise StaleDataError("Optimistic lock conflict: order version changed concurrently.")
    await db.commit()
    order.version_id = current_version + 1
    return order


async def _safe_notify(coro, order: Order) -> None:
    try:
        await coro
    except Exception:
        # A committed order change stands even when its notification fails.
        logger.exception("Notification for order %s failed", order.order_number)


@with_optimistic_retry()
async def _transition(db, order_id, new_status, who: ActingUser, expected_version) -> Order:
    order = await _load_fresh(db, order_id, expected_version)
    changes = lifecycle.apply_status_transition(order, new_status, who)
    return await _write(db, order, changes)


async def transition_order(
    db: AsyncSession,
    order_id: str,
    new_status: str,
    actor: User,
    notifier: NotificationService,
    reminders: ReminderScheduler | None = None,
    expected_version: int | None = None,
) -> Order:
    who = acting(actor)
    order = await _transition(db, order_id, new_status, who, expected_version)
    logger.info("Order %s → %s by %s", order.order_number, order.status, who.id)
    if reminders is not None:
        reminders.stop(order.id)
    await _safe_notify(notifier.order_status_update(db, order), order)
    return order


@with_optimistic_retry()
async def _force(db, order_id, new_status, who: ActingUser, reason, expected_version) -> Order:
    order = await _load_fresh(db, order_id, expected_version)
    changes = lifecycle.force_status(order, new_status, who, reason)
    return await _write(db, order, changes)


async def force_order_status(
    db: AsyncSession,
    order_id: str,
    new_status: str,
    actor: User,
    reason: str,
    notifier: NotificationService,
    reminders: ReminderScheduler | None = None,
    expected_version: int | None = None,
) -> Order:
    who = acting(actor)
    order = await _force(db, order_id, new_status, who, reason, expected_version)
    logger.warning(
        "Order %s status forced to %s by admin %s: %s", order.order_number, order.status, who.id, reason
    )
    if reminders is not None:
        if order.status == OrderStatus.PENDING.value and order.viewed_at is None:
            reminders.start(order.id)
        else:
            reminders.stop(order.id)
    await _safe_notify(notifier.order_status_update(db, order), order)
    return order


@with_optimistic_retry()
async def _cancel(db, order_id, who: ActingUser, reason, expected_version) -> Order:
    order = await _load_fresh(db, order_id, expected_version)
    changes = lifecycle.cancel_order(order, who, reason)
    return await _write(db, order, changes)


async def cancel_order(
    db: AsyncSession,
    order_id: str,
    actor: User,
    notifier: NotificationService,
    reminders: ReminderScheduler | None = None,
    reason: str | None = None,
    expected_version: int | None = None,
) -> Order:
    who = acting(actor)
    order = await _cancel(db, order_id, who, reason, expected_version)
    logger.info("Order %s cancelled by %s", order.order_number, who.id)
    if reminders is not None:
        reminders.stop(order.id)
    await _safe_notify(notifier.order_status_update(db, order), order)
    return order


@with_optimistic_retry()
async def _confirm_weight(db, order_id, actual_weight, who: ActingUser, catalog, expected_version) -> Order:
    order = await _load_fresh(db, order_id, expected_version)
    changes = lifecycle.confirm_actual_weight(order, actual_weight, catalog, who)
    return await _write(db, order, changes)


async def confirm_weight(
    db: AsyncSession,
    order_id: str,
    actual_weight: Decimal,
    actor: User,
    catalog: PricingCatalog,
    expected_version: int | None = None,
) -> Order:
    who = acting(actor)
    order = await _confirm_weight(db, order_id, actual_weight, who, catalog, expected_version)
    logger.info(
        "Order %s weighed at %s kg by %s, final total %s %s",
        order.order_number, order.actual_weight, who.id, order.final_total, order.currency,
    )
    return order


@with_optimistic_retry()
async def _acknowledge(db, order_id, who: ActingUser) -> Order:
    order = await _load_fresh(db, order_id, None)
    if order.viewed_at is not None:
        return order
    now = _utcnow()
    order.viewed_at = now
    changes: dict[str, Any] = {"viewed_at": now}
    if not order.assigned_staff_id:
        order.assigned_staff_id = who.id
        changes["assigned_staff_id"] = who.id
    return await _write(db, order, changes)


async def acknowledge(
    db: AsyncSession,
    order_id: str,
    actor: User,
    reminders: ReminderScheduler | None = None,
) -> Order:
    """Staff has seen the order: persist viewed_at and stop its reminders."""
    order = await _acknowledge(db, order_id, acting(actor))
    if reminders is not None:
        reminders.stop(order.id)
    return order


@with_optimistic_retry()
async def _mark_paid(db, order_id, who: ActingUser) -> Order:
    order = await _load_fresh(db, order_id, None)
    if order.payment_status == PaymentStatus.PAID.value:
        return order
    if order.status == OrderStatus.CANCELLED.value:
        raise ValidationError("A cancelled order cannot be marked as paid.", field="payment_status")
    now = _utcnow()
    stamps = dict(order.status_timestamps or {})
    stamps["paid_at"] = now.isoformat()
    order.payment_status = PaymentStatus.PAID.value
    order.status_timestamps = stamps
    order.updated_at = now
    order = await _write(db, order, {
        "payment_status": PaymentStatus.PAID.value,
        "status_timestamps": stamps,
        "updated_at": now,
    })
    logger.info("Order %s marked paid by %s", order.order_number, who.id)
    return order


async def mark_paid(db: AsyncSession, order_id: str, actor: User) -> Order:
    return await _mark_paid(db, order_id, acting(actor))
