"""
Laundry Service — User Model (configuration data, not transactional)
"""
import uuid
from datetime import datetime, timezone
from sqlalchemy import JSON, String, Boolean, DateTime, Text
from sqlalchemy.orm import Mapped, mapped_column

from laundry.db.database import Base
from laundry.domain.access import Role

__all__ = ["User", "Role"]


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


class User(Base):
    """
    [CONFIG DATA] Accounts are deactivated, never hard-deleted.
    hashed_password is empty for walk-in customers until they accept their invitation.
    """
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), unique=True, index=True, nullable=True)
    phone: Mapped[str | None] = mapped_column(String(32), index=True, nullable=True)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    hashed_password: Mapped[str | None] = mapped_column(String(255), nullable=True)
    role: Mapped[str] = mapped_column(String(16), nullable=False, default=Role.CUSTOMER.value)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    permissions: Mapped[list] = mapped_column(JSON, default=list, nullable=False)  # admin only
    department: Mapped[str | None] = mapped_column(String(64), nullable=True)  # staff only

    invitation_code: Mapped[str | None] = mapped_column(String(64), unique=True, index=True, nullable=True)
    account_activated: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    registered_by: Mapped[str] = mapped_column(String(16), default="self", nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )

    def __repr__(self) -> str:
        return f"<User email={self.email} role={self.role}>"
