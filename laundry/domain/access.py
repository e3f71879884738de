"""
Role-Gated Access Controller

Roles are mutually exclusive buckets: admin does NOT satisfy a staff-only
requirement and vice versa. A role mismatch carries the caller's home screen
so clients can redirect instead of showing a raw error. This check is always
repeated server-side by the `require_role` dependency on every mutation.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum as PyEnum

from laundry.core.errors import AccessError, AccountDeactivated, RoleMismatch, Unauthenticated


class Role(str, PyEnum):
    CUSTOMER = "customer"
    STAFF = "staff"
    ADMIN = "admin"


class Requirement(str, PyEnum):
    NONE = "none"
    CUSTOMER = "customer"
    STAFF = "staff"
    ADMIN = "admin"


LOGIN_ROUTE = "/login"

HOME_ROUTES: dict[Role, str] = {
    Role.CUSTOMER: "/dashboard",
    Role.STAFF: "/staff/dashboard",
    Role.ADMIN: "/admin/dashboard",
}

# Screen path prefix → requirement. Longest matching prefix wins.
ROUTE_REQUIREMENTS: dict[str, Requirement] = {
    "/": Requirement.NONE,
    "/login": Requirement.NONE,
    "/register": Requirement.NONE,
    "/customer-invitation": Requirement.NONE,
    "/staff/login": Requirement.NONE,
    "/admin/login": Requirement.NONE,
    "/dashboard": Requirement.CUSTOMER,
    "/services": Requirement.CUSTOMER,
    "/order-details": Requirement.CUSTOMER,
    "/scheduling": Requirement.CUSTOMER,
    "/payment": Requirement.CUSTOMER,
    "/order-confirmation": Requirement.CUSTOMER,
    "/my-orders": Requirement.CUSTOMER,
    "/track": Requirement.CUSTOMER,
    "/profile": Requirement.CUSTOMER,
    "/staff": Requirement.STAFF,
    "/admin": Requirement.ADMIN,
}


def home_route(role: str | Role | None) -> str:
    try:
        return HOME_ROUTES[Role(role)]
    except ValueError:
        return LOGIN_ROUTE


def authorize(role: str | Role | None, is_active: bool | None, requirement: str | Requirement) -> None:
    """Raise the matching AccessError, or return None when access is granted."""
    if role is None:
        raise Unauthenticated("Sign in to continue.", redirect_to=LOGIN_ROUTE)
    if is_active is False:
        raise AccountDeactivated(
            "This account has been deactivated. Contact the laundry for help.",
            redirect_to=LOGIN_ROUTE,
        )
    requirement = Requirement(requirement)
    if requirement is Requirement.NONE:
        return
    if Role(role).value != requirement.value:
        raise RoleMismatch(
            f"This screen is for {requirement.value} accounts.",
            redirect_to=home_route(role),
            role=Role(role).value,
            required=requirement.value,
        )


def requirement_for(path: str) -> Requirement:
    path = "/" + path.strip("/")
    best = "/"
    for prefix in ROUTE_REQUIREMENTS:
        if (path == prefix or path.startswith(prefix.rstrip("/") + "/")) and len(prefix) > len(best):
            best = prefix
    return ROUTE_REQUIREMENTS[best]


@dataclass
class AccessDecision:
    path: str
    requirement: str
    allowed: bool
    redirect_to: str | None = None
    reason: str | None = None
    message: str | None = None


def check_route(role: str | None, is_active: bool | None, path: str) -> AccessDecision:
    requirement = requirement_for(path)
    if requirement is Requirement.NONE:
        return AccessDecision(path=path, requirement=requirement.value, allowed=True)
    try:
        authorize(role, is_active, requirement)
    except AccessError as exc:
        return AccessDecision(
            path=path,
            requirement=requirement.value,
            allowed=False,
            redirect_to=exc.redirect_to,
            reason=exc.code,
            message=exc.message,
        )
    return AccessDecision(path=path, requirement=requirement.value, allowed=True)
