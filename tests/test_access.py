"""
Role-gated access tests. Roles are exclusive: no hierarchy.
"""
import itertools

import pytest

from laundry.core.errors import AccountDeactivated, RoleMismatch, Unauthenticated
from laundry.domain.access import authorize, check_route, home_route, requirement_for

ROLES = ["customer", "staff", "admin"]


@pytest.mark.parametrize("role,requirement", list(itertools.product(ROLES, ROLES)))
def test_role_gate_is_exact_match(role, requirement):
    if role == requirement:
        authorize(role, True, requirement)
    else:
        with pytest.raises(RoleMismatch) as exc:
            authorize(role, True, requirement)
        assert exc.value.redirect_to == home_route(role)


def test_unauthenticated_goes_to_login():
    with pytest.raises(Unauthenticated) as exc:
        authorize(None, None, "customer")
    assert exc.value.redirect_to == "/login"


def test_deactivated_account_is_rejected_even_for_open_screens():
    with pytest.raises(AccountDeactivated):
        authorize("staff", False, "none")


def test_customer_opening_admin_screen_is_redirected_home():
    decision = check_route("customer", True, "/admin/inventory")
    assert decision.allowed is False
    assert decision.reason == "role_mismatch"
    assert decision.redirect_to == "/dashboard"


@pytest.mark.parametrize(
    "path,requirement",
    [
        ("/", "none"),
        ("/login", "none"),
        ("/customer-invitation/abc123", "none"),
        ("/staff/login", "none"),
        ("/staff/orders/42", "staff"),
        ("/admin", "admin"),
        ("/admin/reports", "admin"),
        ("/track/NH123456", "customer"),
        ("/unknown-screen", "none"),
    ],
)
def test_longest_prefix_decides_requirement(path, requirement):
    assert requirement_for(path).value == requirement


def test_public_screen_is_open_to_anonymous():
    assert check_route(None, None, "/register").allowed is True


def test_home_routes():
    assert home_route("customer") == "/dashboard"
    assert home_route("staff") == "/staff/dashboard"
    assert home_route("admin") == "/admin/dashboard"
    assert home_route("janitor") == "/login"
