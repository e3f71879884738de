"""
Laundry Service — Notification service

Persists notification records and publishes each one on Redis pub/sub so
connected clients (GET /notifications/stream) receive it immediately:

  - per-user channel:   notifications:user:{user_id}
  - broadcast channel:  notifications:broadcast

Publishing is best effort; a Redis outage never fails the business operation
that produced the notification.
"""
import json
import logging
from datetime import datetime, timezone
from typing import Any, Iterable

from redis.exceptions import RedisError
from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from laundry.core.errors import NotFoundError
from laundry.core.redis_client import get_redis
from laundry.domain.access import Role
from laundry.domain.lifecycle import status_label
from laundry.models import Notification, NotificationReceipt, NotificationType, Order, Priority, User
from laundry.schemas.admin import NotificationResponse

logger = logging.getLogger(__name__)

USER_CHANNEL = "notifications:user:{user_id}"
BROADCAST_CHANNEL = "notifications:broadcast"
STAFF_ROLES = (Role.STAFF.value, Role.ADMIN.value)


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


def _payload(n: Notification) -> dict[str, Any]:
    return {
        "id": n.id,
        "type": n.type,
        "title": n.title,
        "message": n.message,
        "user_id": n.user_id,
        "priority": n.priority,
        "order_id": n.order_id,
        "data": n.data,
        "created_at": n.created_at.isoformat() if n.created_at else None,
    }


def _addressed_to(n: Notification, user: User) -> bool:
    if n.user_id is not None:
        return n.user_id == user.id
    return n.data.get("audience", "all") in ("all", user.role)


def _as_seen_by(n: Notification, receipt: NotificationReceipt | None) -> NotificationResponse:
    """Personal rows report their own flags; broadcasts report the caller's receipt."""
    view = NotificationResponse.model_validate(n)
    if n.user_id is not None:
        return view
    read_at = receipt.read_at if receipt else None
    viewed_at = receipt.viewed_at if receipt else None
    return view.model_copy(update={
        "read": read_at is not None,
        "read_at": read_at,
        "viewed": viewed_at is not None,
        "viewed_at": viewed_at,
    })


class NotificationService:
    """Long-lived; one instance per application, held on app.state."""

    async def publish(self, notification: Notification) -> None:
        channel = (
            USER_CHANNEL.format(user_id=notification.user_id)
            if notification.user_id else BROADCAST_CHANNEL
        )
        try:
            await get_redis().publish(channel, json.dumps(_payload(notification)))
        except (RedisError, OSError) as exc:
            logger.warning("Notification publish to %s failed: %s", channel, exc)

    async def send(
        self,
        db: AsyncSession,
        *,
        type: NotificationType,
        title: str,
        message: str,
        user_id: str | None,
        priority: Priority = Priority.NORMAL,
        order_id: str | None = None,
        data: dict[str, Any] | None = None,
    ) -> Notification:
        notification = Notification(
            type=type.value,
            title=title,
            message=message,
            user_id=user_id,
            priority=priority.value,
            order_id=order_id,
            data=data or {},
            created_at=_utcnow(),
        )
        db.add(notification)
        await db.commit()
        await self.publish(notification)
        return notification

    async def send_to_roles(
        self,
        db: AsyncSession,
        roles: Iterable[str],
        **fields: Any,
    ) -> int:
        """Fan a notification out to every active user holding one of `roles`."""
        result = await db.execute(
            select(User.id).where(User.role.in_(list(roles)), User.is_active.is_(True))
        )
        recipients = result.scalars().all()
        created = []
        for user_id in recipients:
            n = Notification(
                type=fields["type"].value,
                title=fields["title"],
                message=fields["message"],
                user_id=user_id,
                priority=fields.get("priority", Priority.NORMAL).value,
                order_id=fields.get("order_id"),
                data=fields.get("data") or {},
                created_at=_utcnow(),
            )
            db.add(n)
            created.append(n)
        await db.commit()
        for n in created:
            await self.publish(n)
        logger.info("%s notification sent to %d recipients", fields["type"].value, len(created))
        return len(created)

    # ── Business triggers ─────────────────────────────────────────────────────

    async def new_order(self, db: AsyncSession, order: Order) -> int:
        return await self.send_to_roles(
            db,
            STAFF_ROLES,
            type=NotificationType.NEW_ORDER,
            title="New Order Received",
            message=f"New order {order.order_number} from {order.customer_name}",
            priority=Priority.HIGH,
            order_id=order.id,
            data={
                "order_number": order.order_number,
                "customer_name": order.customer_name,
                "estimated_total": str(order.estimated_total),
                "currency": order.currency,
            },
        )

    async def order_reminder(self, db: AsyncSession, order: Order, reminder_count: int) -> int:
        return await self.send_to_roles(
            db,
            STAFF_ROLES,
            type=NotificationType.REMINDER,
            title="Order Reminder",
            message=f"Order {order.order_number} still needs attention!",
            priority=Priority.URGENT,
            order_id=order.id,
            data={
                "order_number": order.order_number,
                "customer_name": order.customer_name,
                "reminder_count": reminder_count,
                "action_required": True,
            },
        )

    async def order_status_update(self, db: AsyncSession, order: Order) -> Notification:
        label = status_label(order.status)
        return await self.send(
            db,
            type=NotificationType.ORDER_STATUS_UPDATE,
            title="Order Update",
            message=f"Your order {order.order_number} is now: {label}",
            user_id=order.customer_id,
            order_id=order.id,
            data={"order_number": order.order_number, "status": order.status, "status_label": label},
        )

    async def client_registration(self, db: AsyncSession, client: User, registered_by: User) -> int:
        return await self.send_to_roles(
            db,
            (Role.ADMIN.value,),
            type=NotificationType.CLIENT_REGISTRATION,
            title="New Client Registered",
            message=f"{client.name} was registered by {registered_by.name}",
            data={
                "client_id": client.id,
                "client_name": client.name,
                "client_phone": client.phone,
                "registered_by": registered_by.name,
                "registered_by_role": registered_by.role,
            },
        )

    async def broadcast(
        self, db: AsyncSession, title: str, message: str, priority: Priority, audience: str = "all"
    ) -> Notification:
        return await self.send(
            db,
            type=NotificationType.BROADCAST,
            title=title,
            message=message,
            user_id=None,
            priority=priority,
            data={"audience": audience},
        )

    async def individual(
        self, db: AsyncSession, user_id: str, title: str, message: str, priority: Priority
    ) -> Notification:
        user = await db.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found.")
        return await self.send(
            db,
            type=NotificationType.INDIVIDUAL,
            title=title,
            message=message,
            user_id=user.id,
            priority=priority,
        )

    # ── Reads / flag flips ────────────────────────────────────────────────────

    async def list_for_user(
        self, db: AsyncSession, user: User, unread_only: bool = False, limit: int = 50
    ) -> list[NotificationResponse]:
        query = (
            select(Notification)
            .where(or_(
                Notification.user_id == user.id,
                Notification.user_id.is_(None),
            ))
            .order_by(Notification.created_at.desc())
            .limit(limit)
        )
        if unread_only:
            query = query.where(or_(Notification.user_id.is_(None), Notification.read.is_(False)))
        result = await db.execute(query)
        notifications = [n for n in result.scalars().all() if _addressed_to(n, user)]

        receipts = await self._receipts(db, user, [n.id for n in notifications if n.user_id is None])
        views = [_as_seen_by(n, receipts.get(n.id)) for n in notifications]
        if unread_only:
            views = [v for v in views if not v.read]
        return views

    async def _receipts(
        self, db: AsyncSession, user: User, notification_ids: list[str]
    ) -> dict[str, NotificationReceipt]:
        if not notification_ids:
            return {}
        result = await db.execute(
            select(NotificationReceipt).where(
                NotificationReceipt.user_id == user.id,
                NotificationReceipt.notification_id.in_(notification_ids),
            )
        )
        return {r.notification_id: r for r in result.scalars().all()}

    async def _owned(self, db: AsyncSession, notification_id: str, user: User) -> Notification:
        notification = await db.get(Notification, notification_id)
        if notification is None or not _addressed_to(notification, user):
            raise NotFoundError("Notification not found.")
        return notification

    async def _receipt(self, db: AsyncSession, notification: Notification, user: User) -> NotificationReceipt:
        receipts = await self._receipts(db, user, [notification.id])
        receipt = receipts.get(notification.id)
        if receipt is None:
            receipt = NotificationReceipt(notification_id=notification.id, user_id=user.id)
            db.add(receipt)
        return receipt

    async def _commit_receipt(self, db: AsyncSession, receipt: NotificationReceipt) -> None:
        notification_id = receipt.notification_id
        try:
            await db.commit()
        except IntegrityError:
            # A parallel request from the same user stored the receipt first.
            await db.rollback()
            logger.info("Receipt for notification %s already recorded", notification_id)

    async def mark_read(self, db: AsyncSession, notification_id: str, user: User) -> NotificationResponse:
        notification = await self._owned(db, notification_id, user)
        if notification.user_id is None:
            receipt = await self._receipt(db, notification, user)
            if receipt.read_at is not None:
                return _as_seen_by(notification, receipt)
            receipt.read_at = _utcnow()
            view = _as_seen_by(notification, receipt)
            await self._commit_receipt(db, receipt)
            return view

        if not notification.read:
            notification.read = True
            notification.read_at = _utcnow()
            await db.commit()
        return _as_seen_by(notification, None)

    async def mark_viewed(self, db: AsyncSession, notification_id: str, user: User) -> NotificationResponse:
        notification = await self._owned(db, notification_id, user)
        if notification.user_id is None:
            receipt = await self._receipt(db, notification, user)
            if receipt.viewed_at is not None:
                return _as_seen_by(notification, receipt)
            receipt.viewed_at = _utcnow()
            view = _as_seen_by(notification, receipt)
            await self._commit_receipt(db, receipt)
            return view

        if not notification.viewed:
            notification.viewed = True
            notification.viewed_at = _utcnow()
            notification.viewed_by = user.id
            await db.commit()
        return _as_seen_by(notification, None)
