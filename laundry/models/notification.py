"""
Laundry Service — Notification model

Only the read/viewed flags are ever updated; notifications are never deleted.
Personal notifications carry their own flags. A broadcast is one shared row,
so each recipient's read/viewed state lives in a NotificationReceipt.
"""
import uuid
from datetime import datetime, timezone
from enum import Enum as PyEnum

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from laundry.db.database import Base


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


class NotificationType(str, PyEnum):
    NEW_ORDER = "new_order"
    ORDER_STATUS_UPDATE = "order_status_update"
    CLIENT_REGISTRATION = "client_registration"
    BROADCAST = "broadcast"
    INDIVIDUAL = "individual"
    REMINDER = "reminder"


class Priority(str, PyEnum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class Notification(Base):
    __tablename__ = "notifications"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    type: Mapped[str] = mapped_column(String(32), index=True, nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    user_id: Mapped[str | None] = mapped_column(String(36), index=True, nullable=True)  # None → broadcast
    priority: Mapped[str] = mapped_column(String(16), nullable=False, default=Priority.NORMAL.value)
    order_id: Mapped[str | None] = mapped_column(String(36), index=True, nullable=True)
    data: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)

    read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    read_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    viewed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    viewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    viewed_by: Mapped[str | None] = mapped_column(String(36), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)


class NotificationReceipt(Base):
    """Per-user read/viewed state for a broadcast; the broadcast row itself stays untouched."""
    __tablename__ = "notification_receipts"
    __table_args__ = (UniqueConstraint("notification_id", "user_id", name="uq_receipt_notification_user"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    notification_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("notifications.id"), index=True, nullable=False
    )
    user_id: Mapped[str] = mapped_column(String(36), index=True, nullable=False)
    read_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    viewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
