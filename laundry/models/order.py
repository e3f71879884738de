"""
Laundry Service — Order model

[TRANSACTIONAL DATA] Orders are never deleted, only cancelled.
version_id is the optimistic locking column, incremented on every update.
"""
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum as PyEnum

from sqlalchemy import JSON, Boolean, DateTime, Integer, Numeric, String, Text, Float
from sqlalchemy.orm import Mapped, mapped_column

from laundry.db.database import Base
from laundry.domain.lifecycle import OrderStatus

__all__ = ["Order", "OrderStatus", "PaymentStatus", "PaymentMethod"]


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


class PaymentStatus(str, PyEnum):
    PENDING = "pending"
    PAID = "paid"


class PaymentMethod(str, PyEnum):
    CASH_ON_DELIVERY = "cash_on_delivery"
    MOBILE_MONEY = "mobile_money"
    BANK_TRANSFER = "bank_transfer"


MONEY = Numeric(14, 2)
WEIGHT = Numeric(8, 2)


class Order(Base):
    __tablename__ = "orders"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    order_number: Mapped[str] = mapped_column(String(16), unique=True, index=True, nullable=False)

    customer_id: Mapped[str] = mapped_column(String(36), index=True, nullable=False)
    customer_name: Mapped[str] = mapped_column(String(255), nullable=False)
    customer_phone: Mapped[str | None] = mapped_column(String(32), nullable=True)
    customer_email: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # ── Selection ──────────────────────────────────────────────
    service_id: Mapped[str] = mapped_column(String(32), nullable=False)
    add_ons: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    other_service: Mapped[str | None] = mapped_column(String(255), nullable=True)
    estimated_weight: Mapped[Decimal | None] = mapped_column(WEIGHT, nullable=True)
    actual_weight: Mapped[Decimal | None] = mapped_column(WEIGHT, nullable=True)
    number_of_pieces: Mapped[int | None] = mapped_column(Integer, nullable=True)
    special_instructions: Mapped[str | None] = mapped_column(Text, nullable=True)
    photo_urls: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    # ── Scheduling ─────────────────────────────────────────────
    pickup_address: Mapped[str] = mapped_column(Text, nullable=False)
    delivery_address: Mapped[str | None] = mapped_column(Text, nullable=True)
    pickup_lat: Mapped[float | None] = mapped_column(Float, nullable=True)
    pickup_lng: Mapped[float | None] = mapped_column(Float, nullable=True)
    pickup_date: Mapped[str | None] = mapped_column(String(10), nullable=True)
    pickup_time: Mapped[str | None] = mapped_column(String(32), nullable=True)
    delivery_date: Mapped[str | None] = mapped_column(String(10), nullable=True)
    delivery_time: Mapped[str | None] = mapped_column(String(32), nullable=True)

    # ── Pricing ────────────────────────────────────────────────
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="UGX")
    distance_km: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    rounded_distance_km: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    delivery_fee: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    estimated_total: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    final_total: Mapped[Decimal | None] = mapped_column(MONEY, nullable=True)
    weight_confirmed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # ── Lifecycle ──────────────────────────────────────────────
    status: Mapped[str] = mapped_column(String(32), index=True, nullable=False, default=OrderStatus.PENDING.value)
    payment_status: Mapped[str] = mapped_column(String(16), nullable=False, default=PaymentStatus.PENDING.value)
    payment_method: Mapped[str] = mapped_column(
        String(32), nullable=False, default=PaymentMethod.CASH_ON_DELIVERY.value
    )
    status_timestamps: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    notes: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    assigned_staff_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    viewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_by: Mapped[str] = mapped_column(String(16), nullable=False, default="customer")
    invitation_code: Mapped[str | None] = mapped_column(String(64), nullable=True)

    version_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)  # optimistic lock
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )

    def __repr__(self) -> str:
        return f"<Order {self.order_number} status={self.status} v{self.version_id}>"
