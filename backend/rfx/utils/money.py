from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

# Token amounts are fixed at 5 fractional digits, CO2 counters at 2.
TOKEN_QUANTUM = Decimal("0.00001")
CO2_QUANTUM = Decimal("0.01")


def to_decimal(value, default: str = "0") -> Decimal:
    if value is None:
        return Decimal(default)
    if isinstance(value, Decimal):
        return value
    try:
        # str() first so floats like 0.002 become Decimal("0.002"), not their binary expansion
        return Decimal(str(value).strip() or default)
    except (InvalidOperation, ValueError):
        return Decimal(default)


def quantize_tokens(value) -> Decimal:
    return to_decimal(value).quantize(TOKEN_QUANTUM, rounding=ROUND_HALF_UP)


def quantize_co2(value) -> Decimal:
    return to_decimal(value).quantize(CO2_QUANTUM, rounding=ROUND_HALF_UP)


def format_tokens(value) -> str:
    return f"{quantize_tokens(value):f}"


def format_co2(value) -> str:
    return f"{quantize_co2(value):f}"
