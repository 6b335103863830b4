"""
Input validation for workflow operations.

Pure checks with no I/O, run before any store access.  Each check either
returns the normalized value or raises ``ValidationError``.
"""

from __future__ import annotations

import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from mileage_kernel.exceptions import ValidationError

MAX_REASON_LENGTH = 2000
MAX_NAME_LENGTH = 200

# Numeric(12, 2): two decimal places, ten integer digits.
MILES_QUANTUM = Decimal("0.01")
MAX_TOTAL_MILES = Decimal(10) ** 10

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def validate_email(value: str | None, field: str = "email") -> str:
    """Return the trimmed address or raise if it is missing or malformed."""
    if value is None or not value.strip():
        raise ValidationError(field, "an e-mail address is required")
    address = value.strip()
    if not _EMAIL_RE.match(address):
        raise ValidationError(field, f"'{address}' is not a valid e-mail address")
    return address


def validate_optional_email(value: str | None, field: str = "email") -> str | None:
    if value is None or not value.strip():
        return None
    return validate_email(value, field)


def validate_optional_name(value: str | None) -> str | None:
    """Display name for e-mails; blank means none."""
    if value is None or not value.strip():
        return None
    name = value.strip()
    if len(name) > MAX_NAME_LENGTH:
        raise ValidationError("name", f"must be at most {MAX_NAME_LENGTH} characters")
    return name


def validate_reason(value: str | None) -> str:
    """Rejection reasons must be non-blank and bounded."""
    if value is None or not value.strip():
        raise ValidationError("reason", "a rejection reason is required")
    reason = value.strip()
    if len(reason) > MAX_REASON_LENGTH:
        raise ValidationError(
            "reason", f"must be at most {MAX_REASON_LENGTH} characters",
        )
    return reason


def validate_total_miles(value: Any) -> Decimal:
    """Coerce to Decimal and require a finite, non-negative figure.

    The result is rounded half-up to hundredths, the precision the store
    keeps, so the returned value is exactly what gets persisted.
    """
    if isinstance(value, float):
        value = str(value)
    try:
        miles = Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError("total_miles", f"{value!r} is not a number") from None
    if not miles.is_finite():
        raise ValidationError("total_miles", "must be finite")
    if miles < 0:
        raise ValidationError("total_miles", "must not be negative")
    if miles < MAX_TOTAL_MILES:
        miles = miles.quantize(MILES_QUANTUM, rounding=ROUND_HALF_UP)
    if miles >= MAX_TOTAL_MILES:
        raise ValidationError("total_miles", f"must be less than {MAX_TOTAL_MILES:,}")
    return miles
