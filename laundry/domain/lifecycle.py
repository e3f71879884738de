"""
Order Lifecycle State Machine

The staff workflow moves an order one step at a time along a fixed chain:

    pending / pending_pickup → picked_up → processing → ready
        → out_for_delivery → delivered

with a detailed branch washing → drying → pressing → ready and the alias
ready_for_delivery → out_for_delivery. `cancelled` is terminal and reachable
from any non-terminal status, but only through cancel_order() or the audited
admin override force_status(); it is never offered as a "next" step.

Functions here mutate the record passed in and return the dict of changed
fields so the caller can persist exactly those columns.
"""
from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum as PyEnum
from typing import Any, Protocol

from laundry.core.errors import InvalidTransitionError, ValidationError
from laundry.domain.pricing import PricingCatalog, normalize_weight


class OrderStatus(str, PyEnum):
    PENDING = "pending"
    PENDING_PICKUP = "pending_pickup"
    PICKED_UP = "picked_up"
    PROCESSING = "processing"
    WASHING = "washing"
    DRYING = "drying"
    PRESSING = "pressing"
    READY = "ready"
    READY_FOR_DELIVERY = "ready_for_delivery"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


NEXT_STATUS: dict[OrderStatus, OrderStatus] = {
    OrderStatus.PENDING:            OrderStatus.PICKED_UP,
    OrderStatus.PENDING_PICKUP:     OrderStatus.PICKED_UP,
    OrderStatus.PICKED_UP:          OrderStatus.PROCESSING,
    OrderStatus.PROCESSING:         OrderStatus.READY,
    OrderStatus.WASHING:            OrderStatus.DRYING,
    OrderStatus.DRYING:             OrderStatus.PRESSING,
    OrderStatus.PRESSING:           OrderStatus.READY,
    OrderStatus.READY:              OrderStatus.OUT_FOR_DELIVERY,
    OrderStatus.READY_FOR_DELIVERY: OrderStatus.OUT_FOR_DELIVERY,
    OrderStatus.OUT_FOR_DELIVERY:   OrderStatus.DELIVERED,
}

TERMINAL_STATUSES = frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED})
WEIGHT_CONFIRMABLE = frozenset({OrderStatus.PENDING, OrderStatus.PENDING_PICKUP, OrderStatus.PICKED_UP})

STATUS_LABELS: dict[OrderStatus, str] = {
    OrderStatus.PENDING:            "Order Placed",
    OrderStatus.PENDING_PICKUP:     "Awaiting Pickup",
    OrderStatus.PICKED_UP:          "Picked Up",
    OrderStatus.PROCESSING:         "In Progress",
    OrderStatus.WASHING:            "Washing",
    OrderStatus.DRYING:             "Drying",
    OrderStatus.PRESSING:           "Pressing",
    OrderStatus.READY:              "Ready for Delivery",
    OrderStatus.READY_FOR_DELIVERY: "Ready for Delivery",
    OrderStatus.OUT_FOR_DELIVERY:   "Out for Delivery",
    OrderStatus.DELIVERED:          "Delivered",
    OrderStatus.CANCELLED:          "Cancelled",
}


class Actor(Protocol):
    id: str
    role: str


class OrderRecord(Protocol):
    status: str
    status_timestamps: dict
    notes: list
    assigned_staff_id: str | None
    updated_at: datetime
    currency: str
    service_id: str
    add_ons: list
    delivery_fee: Decimal
    actual_weight: Decimal | None
    final_total: Decimal | None
    weight_confirmed: bool


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def _parse(status: str | OrderStatus) -> OrderStatus | None:
    try:
        return OrderStatus(status)
    except ValueError:
        return None


def is_terminal(status: str | OrderStatus) -> bool:
    return _parse(status) in TERMINAL_STATUSES


def status_label(status: str | OrderStatus) -> str:
    parsed = _parse(status)
    if parsed is None:
        return str(status).replace("_", " ").title()
    return STATUS_LABELS[parsed]


def get_allowed_next_statuses(current_status: str | OrderStatus) -> list[str]:
    parsed = _parse(current_status)
    if parsed is None or parsed not in NEXT_STATUS:
        return []
    return [NEXT_STATUS[parsed].value]


def _stamp(order: OrderRecord, status: OrderStatus, now: datetime, changes: dict[str, Any]) -> None:
    stamps = dict(order.status_timestamps or {})
    stamps[f"{status.value}_at"] = now.isoformat()
    order.status = status.value
    order.status_timestamps = stamps
    order.updated_at = now
    changes.update(status=status.value, status_timestamps=stamps, updated_at=now)


def _note(order: OrderRecord, entry: dict[str, Any], changes: dict[str, Any]) -> None:
    notes = list(order.notes or [])
    notes.append(entry)
    order.notes = notes
    changes["notes"] = notes


def apply_status_transition(
    order: OrderRecord,
    new_status: str | OrderStatus,
    acting_user: Actor,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Advance `order` one step. Raises InvalidTransitionError, leaving it untouched."""
    allowed = get_allowed_next_statuses(order.status)
    requested = _parse(new_status)
    if requested is None or requested.value not in allowed:
        raise InvalidTransitionError(str(order.status), str(getattr(new_status, "value", new_status)), allowed)

    now = now or _now()
    changes: dict[str, Any] = {}
    _stamp(order, requested, now, changes)
    if not order.assigned_staff_id and acting_user.role in ("staff", "admin"):
        order.assigned_staff_id = acting_user.id
        changes["assigned_staff_id"] = acting_user.id
    return changes


def force_status(
    order: OrderRecord,
    new_status: str | OrderStatus,
    acting_user: Actor,
    reason: str,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Administrative override: set any known status, leaving an audit note."""
    requested = _parse(new_status)
    if requested is None:
        raise ValidationError(f"Unknown status '{new_status}'.", field="status")
    if not reason or not reason.strip():
        raise ValidationError("A reason is required to override an order status.", field="reason")
    if requested.value == order.status:
        raise ValidationError(f"Order is already '{requested.value}'.", field="status")

    now = now or _now()
    previous = order.status
    changes: dict[str, Any] = {}
    _stamp(order, requested, now, changes)
    _note(order, {
        "type": "force_status",
        "timestamp": now.isoformat(),
        "from": previous,
        "to": requested.value,
        "reason": reason.strip(),
        "updated_by": acting_user.id,
        "role": acting_user.role,
    }, changes)
    return changes


def cancel_order(
    order: OrderRecord,
    acting_user: Actor,
    reason: str | None = None,
    now: datetime | None = None,
) -> dict[str, Any]:
    if is_terminal(order.status):
        raise InvalidTransitionError(str(order.status), OrderStatus.CANCELLED.value, [])

    now = now or _now()
    previous = order.status
    changes: dict[str, Any] = {}
    _stamp(order, OrderStatus.CANCELLED, now, changes)
    _note(order, {
        "type": "cancelled",
        "timestamp": now.isoformat(),
        "from": previous,
        "reason": (reason or "").strip() or None,
        "updated_by": acting_user.id,
        "role": acting_user.role,
    }, changes)
    return changes


def confirm_actual_weight(
    order: OrderRecord,
    actual_weight_kg: Decimal | float,
    catalog: PricingCatalog,
    acting_user: Actor | None = None,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Record the weighed mass and recompute final_total. Status is unchanged."""
    status = _parse(order.status)
    if status not in WEIGHT_CONFIRMABLE:
        raise InvalidTransitionError(
            str(order.status), "weight_confirmed", [s.value for s in sorted(WEIGHT_CONFIRMABLE)]
        )
    weight = normalize_weight(actual_weight_kg)
    if weight <= 0:
        raise ValidationError("Weight must be a positive number.", field="actual_weight")

    breakdown = catalog.breakdown(
        order.service_id,
        weight,
        [(a["id"], Decimal(str(a.get("quantity", 1)))) for a in (order.add_ons or [])],
        currency=order.currency,
        delivery_fee=order.delivery_fee or Decimal("0"),
    )
    now = now or _now()
    previous = order.actual_weight
    order.actual_weight = breakdown.weight_kg
    order.final_total = breakdown.total
    order.weight_confirmed = True
    order.updated_at = now
    changes: dict[str, Any] = {
        "actual_weight": weight,
        "final_total": breakdown.total,
        "weight_confirmed": True,
        "updated_at": now,
    }
    _note(order, {
        "type": "weight_confirmed",
        "timestamp": now.isoformat(),
        "note": (
            f"Weight updated from {previous if previous is not None else 'estimated'} kg "
            f"to {weight} kg. Final price: {catalog.table(order.currency).format(breakdown.total)}"
        ),
        "updated_by": acting_user.id if acting_user else None,
    }, changes)
    return changes
