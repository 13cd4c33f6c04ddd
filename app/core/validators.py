"""
Input validators shared by services and serializers.

Validators raise core.exceptions.ValidationError so service code can let
them propagate into a ServiceResult without translation.

Usage:
    from core.validators import normalize_payout_number

    normalize_payout_number("+254712345678")  # "0712345678"
"""

from __future__ import annotations

import re

from core.exceptions import ValidationError

_NON_DIGITS = re.compile(r"\D")


def normalize_payout_number(value) -> str:
    """
    Normalize a Kenyan mobile number to the 0XXXXXXXXX payout format.

    Accepts 254XXXXXXXXX, +254XXXXXXXXX, 0XXXXXXXXX and bare 9-digit
    numbers; separators are ignored.

    Raises:
        ValidationError: Not a 10-digit number starting with 0 after
            normalisation
    """
    raw = "" if value is None else str(value)
    digits = _NON_DIGITS.sub("", raw)

    if digits.startswith("254") and len(digits) == 12:
        digits = "0" + digits[3:]
    elif len(digits) == 9:
        digits = "0" + digits

    if not digits.startswith("0") or len(digits) != 10:
        raise ValidationError(
            f"Invalid payout number: {raw!r}. Expected a 10-digit number starting with 0",
            error_code="INVALID_PAYOUT_NUMBER",
            details={"payout_number": raw},
        )
    return digits


def validate_not_blank(value, field: str) -> str:
    """Strip a required text value, rejecting empty input."""
    text = "" if value is None else str(value).strip()
    if not text:
        raise ValidationError(
            f"{field} is required",
            error_code="VALIDATION_ERROR",
            details={field: ["This field is required."]},
        )
    return text
