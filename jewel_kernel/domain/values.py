"""
Money value helpers.

Every amount in this domain is a whole number of rupees.  All monetary
computation pipes its result through ``round_money`` before it is stored
or compared, so that repeated recompute-and-compare cycles (for example
"is total paid >= total amount?") are stable.

Rates, weights and percentages stay ``Decimal``; only currency amounts are
collapsed to ``int``.
"""

from __future__ import annotations

from decimal import ROUND_FLOOR, Decimal, InvalidOperation

_HALF = Decimal("0.5")
_ONE = Decimal("1")

Number = int | Decimal | str | float


def to_decimal(value: Number | None) -> Decimal:
    """Convert to Decimal.  Floats go through ``str`` to avoid binary noise.

    None becomes zero.

    Raises:
        ValueError: if the value is not numeric.
    """
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValueError(f"Not a numeric amount: {value!r}")
    try:
        if isinstance(value, float):
            return Decimal(str(value))
        return Decimal(value)
    except InvalidOperation as exc:
        raise ValueError(f"Not a numeric amount: {value!r}") from exc


def round_money(value: Number | None) -> int:
    """Round to the nearest whole rupee, halves toward positive infinity.

    >>> round_money(Decimal("2443.32"))
    2443
    >>> round_money("2.5"), round_money("-2.5")
    (3, -2)
    """
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    d = to_decimal(value)
    return int((d + _HALF).quantize(_ONE, rounding=ROUND_FLOOR))


def money_equal(a: Number, b: Number, tolerance: int = 1) -> bool:
    """True when two amounts differ by no more than ``tolerance`` rupees."""
    return abs(round_money(a) - round_money(b)) <= tolerance


def format_inr(amount: Number) -> str:
    """Format a rupee amount with Indian digit grouping.

    >>> format_inr(1234567)
    '₹12,34,567'
    """
    value = round_money(amount)
    sign = "-" if value < 0 else ""
    digits = str(abs(value))
    if len(digits) > 3:
        head, tail = digits[:-3], digits[-3:]
        groups = []
        while len(head) > 2:
            groups.insert(0, head[-2:])
            head = head[:-2]
        if head:
            groups.insert(0, head)
        digits = ",".join(groups) + "," + tail
    return f"{sign}₹{digits}"
