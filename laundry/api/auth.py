"""
Laundry Service — Auth API routes
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from jose import JWTError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from laundry.api.deps import get_current_user
from laundry.core.config import get_settings
from laundry.core.errors import NotFoundError, ValidationError
from laundry.core.security import (
    REFRESH,
    create_access_token,
    create_refresh_token,
    decode_token,
    hash_password,
    verify_password,
)
from laundry.db.database import get_db
from laundry.domain.access import home_route
from laundry.domain.validation import normalize_phone, validate_phone_number
from laundry.models import Role, User
from laundry.schemas.auth import (
    ChangePasswordRequest,
    InvitationAcceptRequest,
    LoginRequest,
    ProfileUpdateRequest,
    RefreshRequest,
    RegisterRequest,
    TokenResponse,
    UserResponse,
)

settings = get_settings()
logger = logging.getLogger(__name__)
router = APIRouter(prefix="/auth", tags=["auth"])


def _tokens(user: User) -> TokenResponse:
    token_data = {"sub": user.id, "email": user.email, "role": user.role}
    return TokenResponse(
        access_token=create_access_token(token_data),
        refresh_token=create_refresh_token({"sub": user.id}),
        expires_in=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        role=user.role,
        redirect_to=home_route(user.role),
    )


@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def register(payload: RegisterRequest, db: AsyncSession = Depends(get_db)):
    """Customer self-registration. Staff and admin accounts are created by an admin."""
    if not validate_phone_number(payload.phone):
        raise ValidationError("Please correct the highlighted fields.", errors={"phone": "Invalid phone number."})
    existing = await db.execute(select(User.id).where(User.email == payload.email))
    if existing.scalar_one_or_none():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already registered.")

    user = User(
        name=payload.name,
        email=payload.email,
        phone=normalize_phone(payload.phone),
        address=payload.address,
        hashed_password=hash_password(payload.password),
        role=Role.CUSTOMER.value,
        registered_by="self",
    )
    db.add(user)
    await db.commit()
    logger.info("Customer %s registered", user.id)
    return _tokens(user)


@router.post("/login", response_model=TokenResponse)
async def login(payload: LoginRequest, db: AsyncSession = Depends(get_db)):
    """Validate credentials and issue JWT tokens plus the caller's home screen."""
    result = await db.execute(select(User).where(User.email == payload.email))
    user: User | None = result.scalar_one_or_none()

    if not user or not verify_password(payload.password, user.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password.",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is disabled.")

    return _tokens(user)


@router.post("/refresh", response_model=TokenResponse)
async def refresh_token(payload: RefreshRequest, db: AsyncSession = Depends(get_db)):
    """Issue new access token from valid refresh token."""
    try:
        claims = decode_token(payload.refresh_token, expected_type=REFRESH)
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired refresh token."
        )

    user = await db.get(User, claims["sub"])
    if not user or not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found.")
    return _tokens(user)


@router.get("/me", response_model=UserResponse)
async def me(user: User = Depends(get_current_user)):
    return user


@router.patch("/me", response_model=UserResponse)
async def update_profile(
    payload: ProfileUpdateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Edit name, email, phone or address. Checkout falls back to this phone number."""
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    if "phone" in changes:
        if not validate_phone_number(changes["phone"]):
            raise ValidationError("Please correct the highlighted fields.", errors={"phone": "Invalid phone number."})
        changes["phone"] = normalize_phone(changes["phone"])
    if "email" in changes:
        taken = await db.execute(select(User.id).where(User.email == changes["email"], User.id != user.id))
        if taken.scalar_one_or_none():
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already registered.")

    for field, value in changes.items():
        setattr(user, field, value)
    await db.commit()
    await db.refresh(user)
    logger.info("User %s updated profile fields %s", user.id, sorted(changes))
    return user


@router.post("/change-password", status_code=status.HTTP_204_NO_CONTENT)
async def change_password(
    payload: ChangePasswordRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    if not verify_password(payload.current_password, user.hashed_password):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Current password is incorrect.")
    user.hashed_password = hash_password(payload.new_password)
    await db.commit()


@router.post("/invitations/{code}/accept", response_model=TokenResponse)
async def accept_invitation(code: str, payload: InvitationAcceptRequest, db: AsyncSession = Depends(get_db)):
    """A walk-in customer claims the account staff created for them."""
    result = await db.execute(select(User).where(User.invitation_code == code))
    user: User | None = result.scalar_one_or_none()
    if user is None or user.account_activated:
        raise NotFoundError("Invitation not found or already used.")

    taken = await db.execute(select(User.id).where(User.email == payload.email, User.id != user.id))
    if taken.scalar_one_or_none():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already registered.")

    user.email = payload.email
    user.hashed_password = hash_password(payload.password)
    user.account_activated = True
    user.invitation_code = None
    await db.commit()
    logger.info("Invitation accepted by customer %s", user.id)
    return _tokens(user)
