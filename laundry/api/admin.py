"""
Laundry Service — Admin user management routes

Accounts are never deleted; deactivation blocks every screen and endpoint
on the next request because roles are re-read from the database.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from laundry.api.deps import require_admin
from laundry.core.errors import NotFoundError, ValidationError
from laundry.core.security import hash_password
from laundry.db.database import get_db
from laundry.domain.validation import normalize_phone
from laundry.models import Role, User
from laundry.schemas.auth import RoleUpdateRequest, StaffCreateRequest, UserResponse

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/users", response_model=list[UserResponse])
async def list_users(role: str | None = None, admin: User = Depends(require_admin), db: AsyncSession = Depends(get_db)):
    query = select(User).order_by(User.created_at.desc())
    if role:
        query = query.where(User.role == role)
    result = await db.execute(query)
    return result.scalars().all()


@router.get("/customers", response_model=list[UserResponse])
async def list_customers(admin: User = Depends(require_admin), db: AsyncSession = Depends(get_db)):
    return await list_users(role=Role.CUSTOMER.value, admin=admin, db=db)


@router.post("/users", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_staff(payload: StaffCreateRequest, admin: User = Depends(require_admin), db: AsyncSession = Depends(get_db)):
    """Create a staff or admin account. Customers register themselves or via walk-in."""
    existing = await db.execute(select(User.id).where(User.email == payload.email))
    if existing.scalar_one_or_none():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already registered.")

    user = User(
        name=payload.name,
        email=payload.email,
        phone=normalize_phone(payload.phone) if payload.phone else None,
        hashed_password=hash_password(payload.password),
        role=payload.role,
        department=payload.department if payload.role == Role.STAFF.value else None,
        permissions=payload.permissions if payload.role == Role.ADMIN.value else [],
        registered_by=Role.ADMIN.value,
    )
    db.add(user)
    await db.commit()
    logger.info("Admin %s created %s account %s", admin.id, user.role, user.id)
    return user


async def _user(db: AsyncSession, user_id: str) -> User:
    user = await db.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found.")
    return user


@router.patch("/users/{user_id}/role", response_model=UserResponse)
async def update_role(
    user_id: str,
    payload: RoleUpdateRequest,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    user = await _user(db, user_id)
    if user.id == admin.id and payload.role != Role.ADMIN.value:
        raise ValidationError("Admins cannot remove their own admin role.", field="role")
    previous = user.role
    user.role = payload.role
    user.department = payload.department if payload.role == Role.STAFF.value else None
    if payload.role == Role.ADMIN.value:
        user.permissions = payload.permissions if payload.permissions is not None else user.permissions
    else:
        user.permissions = []
    await db.commit()
    logger.warning("Role of user %s changed from %s to %s by admin %s", user.id, previous, user.role, admin.id)
    return user


@router.post("/users/{user_id}/toggle-active", response_model=UserResponse)
async def toggle_active(user_id: str, admin: User = Depends(require_admin), db: AsyncSession = Depends(get_db)):
    user = await _user(db, user_id)
    if user.id == admin.id:
        raise ValidationError("Admins cannot deactivate their own account.", field="is_active")
    user.is_active = not user.is_active
    await db.commit()
    logger.info("User %s %s by admin %s", user.id, "activated" if user.is_active else "deactivated", admin.id)
    return user
