from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

TWOPLACES = Decimal("0.01")
FOURPLACES = Decimal("0.0001")
ZERO = Decimal("0")
ONE = Decimal("1")
HUNDRED = Decimal("100")

# ceilings for values typed into a draft or dropped from the catalog
MAX_AMOUNT = Decimal("1e12")
MAX_COUNT = 10 ** 9


def d(val) -> Decimal:
    """Coerce trusted values to Decimal."""
    if isinstance(val, Decimal):
        return val
    return Decimal(str(val))


def to_decimal(val, default: Decimal = ZERO) -> Decimal:
    """
    Lenient coercion used for anything typed by a user or read from the record store.

    Blank, malformed and non-finite input ("", "abc", "1.2.3", NaN, Infinity) becomes
    `default` instead of raising, so a half-typed number never breaks live editing.
    """
    if val is None or isinstance(val, bool):
        return default
    if isinstance(val, Decimal):
        result = val
    else:
        text = str(val).strip().replace(",", "")
        if not text:
            return default
        try:
            result = Decimal(text)
        except (InvalidOperation, ValueError):
            return default
    if not result.is_finite():
        return default
    return result


def to_int(val, default: int | None = 0) -> int | None:
    """Integer counterpart of to_decimal; fractional input is truncated."""
    if val is None or isinstance(val, bool):
        return default
    if isinstance(val, int):
        return val
    dec = to_decimal(val, default=None)
    if dec is None:
        return default
    return int(dec)


def to_bool(val) -> bool:
    if isinstance(val, str):
        return val.strip().lower() in {"1", "true", "yes", "on"}
    return bool(val)


def safe_div(numerator: Decimal, denominator: Decimal) -> Decimal:
    """Division that yields ZERO instead of raising on a zero denominator."""
    if not denominator:
        return ZERO
    return numerator / denominator


def ceil_div(numerator: int, denominator: int) -> int:
    if denominator <= 0:
        return 0
    return -(-numerator // denominator)


def q2(amount: Decimal) -> Decimal:
    return d(amount).quantize(TWOPLACES, rounding=ROUND_HALF_UP)


def q4(amount: Decimal) -> Decimal:
    return d(amount).quantize(FOURPLACES, rounding=ROUND_HALF_UP)


def in_range(value, limit) -> bool:
    """True when `value` is None or strictly inside (-limit, limit)."""
    return value is None or abs(value) < limit
