"""
Laundry Service — Order routes

Checkout is customer-only; every status or weight change is re-authorised
against the persisted role of the caller.
"""
from datetime import datetime

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from laundry.api.deps import (
    get_business,
    get_catalog,
    get_current_user,
    get_notifier,
    get_origin,
    get_reminders,
    require_admin,
    require_customer,
    require_staff,
)
from laundry.db.database import get_db
from laundry.domain.distance import Coordinate
from laundry.domain.invoice import BusinessIdentity, Scheduling, assemble_invoice
from laundry.domain.lifecycle import get_allowed_next_statuses, status_label
from laundry.domain.pricing import PricingCatalog
from laundry.models import Role, User
from laundry.schemas.order import (
    CancelRequest,
    CheckoutRequest,
    ForceStatusRequest,
    NextStatusesResponse,
    OrderResponse,
    StatusUpdateRequest,
    WeightRequest,
)
from laundry.services import orders as order_service
from laundry.services.notifications import NotificationService
from laundry.services.reminders import ReminderScheduler

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post("", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
async def checkout(
    payload: CheckoutRequest,
    customer: User = Depends(require_customer),
    db: AsyncSession = Depends(get_db),
    catalog: PricingCatalog = Depends(get_catalog),
    origin: Coordinate = Depends(get_origin),
    notifier: NotificationService = Depends(get_notifier),
    reminders: ReminderScheduler | None = Depends(get_reminders),
):
    """
    Customer checkout.
    Supports Idempotency-Key header (handled by middleware) so a retried
    submission returns the first order instead of creating another.
    """
    return await order_service.create_order(db, customer, payload, catalog, origin, notifier, reminders)


@router.get("", response_model=list[OrderResponse])
async def list_orders(
    status_filter: str | None = Query(None, alias="status"),
    limit: int = Query(100, ge=1, le=500),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    customer_id = user.id if user.role == Role.CUSTOMER.value else None
    return await order_service.list_orders(db, customer_id=customer_id, status=status_filter, limit=limit)


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(order_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    order = await order_service.get_order(db, order_id)
    order_service.ensure_can_view(order, user)
    return order


@router.get("/{order_id}/next-statuses", response_model=NextStatusesResponse)
async def next_statuses(order_id: str, user: User = Depends(require_staff), db: AsyncSession = Depends(get_db)):
    order = await order_service.get_order(db, order_id)
    return NextStatusesResponse(
        order_id=order.id,
        status=order.status,
        status_label=status_label(order.status),
        allowed=get_allowed_next_statuses(order.status),
        version_id=order.version_id,
    )


@router.post("/{order_id}/status", response_model=OrderResponse)
async def update_status(
    order_id: str,
    payload: StatusUpdateRequest,
    user: User = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
    notifier: NotificationService = Depends(get_notifier),
    reminders: ReminderScheduler | None = Depends(get_reminders),
):
    return await order_service.transition_order(
        db, order_id, payload.status, user, notifier, reminders, payload.expected_version
    )


@router.post("/{order_id}/force-status", response_model=OrderResponse)
async def force_status(
    order_id: str,
    payload: ForceStatusRequest,
    user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    notifier: NotificationService = Depends(get_notifier),
    reminders: ReminderScheduler | None = Depends(get_reminders),
):
    """Admin override outside the normal workflow. Always leaves an audit note."""
    return await order_service.force_order_status(
        db, order_id, payload.status, user, payload.reason, notifier, reminders, payload.expected_version
    )


@router.post("/{order_id}/cancel", response_model=OrderResponse)
async def cancel(
    order_id: str,
    payload: CancelRequest,
    user: User = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
    notifier: NotificationService = Depends(get_notifier),
    reminders: ReminderScheduler | None = Depends(get_reminders),
):
    return await order_service.cancel_order(
        db, order_id, user, notifier, reminders, payload.reason, payload.expected_version
    )


@router.post("/{order_id}/weight", response_model=OrderResponse)
async def confirm_weight(
    order_id: str,
    payload: WeightRequest,
    user: User = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
    catalog: PricingCatalog = Depends(get_catalog),
):
    return await order_service.confirm_weight(
        db, order_id, payload.actual_weight, user, catalog, payload.expected_version
    )


@router.post("/{order_id}/viewed", response_model=OrderResponse)
async def mark_viewed(
    order_id: str,
    user: User = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
    reminders: ReminderScheduler | None = Depends(get_reminders),
):
    return await order_service.acknowledge(db, order_id, user, reminders)


@router.post("/{order_id}/payment", response_model=OrderResponse)
async def mark_paid(order_id: str, user: User = Depends(require_staff), db: AsyncSession = Depends(get_db)):
    return await order_service.mark_paid(db, order_id, user)


@router.get("/{order_id}/invoice")
async def invoice(
    order_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    catalog: PricingCatalog = Depends(get_catalog),
    business: BusinessIdentity = Depends(get_business),
):
    order = await order_service.get_order(db, order_id)
    order_service.ensure_can_view(order, user)
    scheduling = Scheduling(
        pickup_date=order.pickup_date,
        pickup_time=order.pickup_time,
        delivery_date=order.delivery_date,
        delivery_time=order.delivery_time,
        pickup_address=order.pickup_address,
        delivery_address=order.delivery_address,
    )
    return assemble_invoice(order, scheduling, catalog, business, issued_at=datetime.now()).as_dict()
