"""
Laundry Service — FastAPI dependencies

Identity comes from the JWT claims placed on request.state by the auth
middleware; role and active flag always come from the persisted user row.
"""
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from laundry.core.config import get_settings
from laundry.core.errors import Unauthenticated
from laundry.db.database import get_db
from laundry.domain.access import LOGIN_ROUTE, Requirement, authorize
from laundry.domain.distance import Coordinate
from laundry.domain.invoice import BusinessIdentity
from laundry.domain.pricing import PricingCatalog
from laundry.models import Role, User
from laundry.services.notifications import NotificationService
from laundry.services.reminders import ReminderScheduler

settings = get_settings()


async def get_optional_user(request: Request, db: AsyncSession = Depends(get_db)) -> User | None:
    claims = getattr(request.state, "user", None)
    if not claims or not claims.get("sub"):
        return None
    return await db.get(User, claims["sub"])


async def get_current_user(user: User | None = Depends(get_optional_user)) -> User:
    if user is None:
        raise Unauthenticated("Sign in to continue.", redirect_to=LOGIN_ROUTE)
    authorize(user.role, user.is_active, Requirement.NONE)
    return user


def require_role(*roles: Role):
    """Allow any of `roles`. A single role keeps the strict no-hierarchy check."""
    allowed = {r.value for r in roles}

    async def dependency(user: User = Depends(get_current_user)) -> User:
        if user.role not in allowed:
            # Report against the first required role so the caller is sent home.
            authorize(user.role, user.is_active, Requirement(roles[0].value))
        return user

    return dependency


require_customer = require_role(Role.CUSTOMER)
require_staff = require_role(Role.STAFF, Role.ADMIN)
require_admin = require_role(Role.ADMIN)


def get_catalog(request: Request) -> PricingCatalog:
    return request.app.state.catalog


def get_notifier(request: Request) -> NotificationService:
    return request.app.state.notifier


def get_reminders(request: Request) -> ReminderScheduler | None:
    return getattr(request.app.state, "reminders", None)


def get_origin() -> Coordinate:
    return Coordinate(settings.BUSINESS_LAT, settings.BUSINESS_LNG)


def get_business() -> BusinessIdentity:
    return BusinessIdentity(
        name=settings.BUSINESS_NAME,
        tagline=settings.BUSINESS_TAGLINE,
        phone=settings.BUSINESS_PHONE,
        email=settings.BUSINESS_EMAIL,
        address=settings.BUSINESS_ADDRESS,
    )
