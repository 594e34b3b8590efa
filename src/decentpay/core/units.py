"""
Token unit helpers.

Contract amounts are i128 counts of base units (stroops, 7 decimals). These
helpers convert display amounts to and from base units without floats.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_DOWN
from typing import Any

from decentpay.core.config import TOKEN_DECIMALS
from decentpay.core.ledger_exceptions import ValidationError

BASE_UNITS_PER_TOKEN = 10 ** TOKEN_DECIMALS
_QUANTIZER = Decimal(f"1e-{TOKEN_DECIMALS}")


def _to_decimal(value: Any) -> Decimal:
    if isinstance(value, bool):
        raise ValidationError("Amount must not be a boolean")
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (int, str)):
        return Decimal(value.strip() if isinstance(value, str) else value)
    if isinstance(value, float):
        return Decimal(str(value))
    raise ValidationError("Amount must be int, float, str, or Decimal")


def quantize_amount(value: Any) -> Decimal:
    """Convert to a Decimal display amount with 7-decimal precision."""
    try:
        dec = _to_decimal(value)
    except (InvalidOperation, ValueError, TypeError) as exc:
        raise ValidationError(f"Invalid amount value: {value!r}") from exc

    if dec.is_nan():
        raise ValidationError("Amount cannot be NaN")
    if dec.is_infinite():
        raise ValidationError("Amount cannot be infinite")

    return dec.quantize(_QUANTIZER, rounding=ROUND_DOWN)


def to_base_units(value: Any) -> int:
    """Convert a display amount to base units as int."""
    dec = quantize_amount(value)
    if dec < 0:
        raise ValidationError("Amount cannot be negative")
    return int((dec * BASE_UNITS_PER_TOKEN).to_integral_value(rounding=ROUND_DOWN))


def from_base_units(value: Any) -> Decimal:
    """Convert base units (int or base-10 string) to a Decimal display amount."""
    if isinstance(value, str):
        try:
            value = int(value, 10)
        except ValueError as exc:
            raise ValidationError(f"Base units must be an integer, got {value!r}") from exc
    if not isinstance(value, int) or isinstance(value, bool):
        raise ValidationError("Base units must be an int")
    return (Decimal(value) / BASE_UNITS_PER_TOKEN).quantize(_QUANTIZER, rounding=ROUND_DOWN)


def format_amount(value: Any) -> str:
    """Format a display amount as a fixed-precision string."""
    return f"{quantize_amount(value):f}"
