"""
Form-level validation for checkout and registration input.
"""
import re
from decimal import Decimal, InvalidOperation

from laundry.core.errors import ValidationError

PHONE_RE = re.compile(r"^\+?[0-9]{10,15}$")
MAX_INSTRUCTIONS_LENGTH = 200

TIME_SLOTS = [
    "8:00 AM - 10:00 AM",
    "10:00 AM - 12:00 PM",
    "12:00 PM - 2:00 PM",
    "2:00 PM - 4:00 PM",
    "4:00 PM - 6:00 PM",
]


def normalize_phone(phone: str) -> str:
    return re.sub(r"[\s\-()]", "", phone or "")


def validate_phone_number(phone: str) -> bool:
    return bool(PHONE_RE.match(normalize_phone(phone)))


def validate_weight(weight) -> bool:
    try:
        return Decimal(str(weight)) > 0
    except (InvalidOperation, ValueError):
        return False


def validate_special_instructions(instructions: str | None) -> bool:
    return len(instructions or "") <= MAX_INSTRUCTIONS_LENGTH


def collect_order_errors(
    phone: str | None,
    weight=None,
    special_instructions: str | None = None,
    pickup_address: str | None = None,
    pickup_time: str | None = None,
) -> dict[str, str]:
    errors: dict[str, str] = {}
    if phone is not None and not validate_phone_number(phone):
        errors["phone"] = "Invalid phone number."
    if weight is not None and not validate_weight(weight):
        errors["weight"] = "Weight must be a positive number."
    if not validate_special_instructions(special_instructions):
        errors["special_instructions"] = (
            f"Special instructions must be {MAX_INSTRUCTIONS_LENGTH} characters or less."
        )
    if pickup_address is not None and not pickup_address.strip():
        errors["pickup_address"] = "Pickup address is required."
    if pickup_time is not None and pickup_time not in TIME_SLOTS:
        errors["pickup_time"] = "Choose one of the available pickup windows."
    return errors


def validate_order(**fields) -> None:
    """Raise ValidationError listing every invalid field."""
    errors = collect_order_errors(**fields)
    if errors:
        raise ValidationError("Please correct the highlighted fields.", errors=errors)
