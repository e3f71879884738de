"""
Checkout form validation tests.
"""
import pytest

from laundry.core.errors import ValidationError
from laundry.domain.validation import (
    collect_order_errors,
    validate_order,
    validate_phone_number,
    validate_special_instructions,
    validate_weight,
)


@pytest.mark.parametrize("phone", ["+256700123456", "0700123456", "+256 700-123-456", "(0700) 123456"])
def test_valid_phone_numbers(phone):
    assert validate_phone_number(phone)


@pytest.mark.parametrize("phone", ["", "12345", "+256-abc-123456", "+2567001234567890"])
def test_invalid_phone_numbers(phone):
    assert not validate_phone_number(phone)


def test_weight_must_be_positive():
    assert validate_weight("2.5")
    assert not validate_weight(0)
    assert not validate_weight("heavy")


def test_instructions_length_limit():
    assert validate_special_instructions(None)
    assert validate_special_instructions("x" * 200)
    assert not validate_special_instructions("x" * 201)


def test_collect_reports_every_bad_field():
    errors = collect_order_errors(
        phone="123",
        weight=-1,
        special_instructions="x" * 300,
        pickup_address="   ",
        pickup_time="midnight",
    )
    assert set(errors) == {"phone", "weight", "special_instructions", "pickup_address", "pickup_time"}


def test_validate_order_raises_with_field_errors():
    with pytest.raises(ValidationError) as exc:
        validate_order(phone="+256700123456", pickup_address="")
    assert exc.value.extra["errors"] == {"pickup_address": "Pickup address is required."}


def test_validate_order_accepts_good_input():
    validate_order(phone="+256700123456", weight=3, pickup_address="Kira Road", pickup_time="8:00 AM - 10:00 AM")
