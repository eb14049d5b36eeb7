"""Money rounding and Indian-style amount formatting.

Amounts are accumulated as floats and rounded once, HALF_UP at two decimals,
when they are presented or persisted. Display uses the Indian 3,2,2 digit
grouping (lakh/crore).

>>> round_money(2.675)
2.68
>>> format_indian_number(1234567)
'12,34,567'
>>> format_inr(1234567.5)
'₹12,34,567.50'
>>> format_inr(-50, symbol=False)
'-50.00'
"""
from __future__ import annotations
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Union

Number = Union[int, float, Decimal]

_CENT = Decimal("0.01")


def to_decimal(value: Any) -> Decimal:
    """Coerce loosely typed input to Decimal; blanks and junk become zero."""
    if isinstance(value, Decimal):
        return value
    if value is None or isinstance(value, bool):
        return Decimal(0)
    try:
        # str() keeps 2.675 as typed rather than its binary expansion
        return Decimal(str(value).strip() or 0)
    except (InvalidOperation, ValueError):
        return Decimal(0)


def quantize_money(value: Any) -> Decimal:
    return to_decimal(value).quantize(_CENT, rounding=ROUND_HALF_UP)


def round_money(value: Any) -> float:
    return float(quantize_money(value))


def _group_indian(digits: str) -> str:
    if len(digits) <= 3:
        return digits
    head, tail = digits[:-3], digits[-3:]
    pairs = []
    while len(head) > 2:
        pairs.insert(0, head[-2:])
        head = head[:-2]
    if head:
        pairs.insert(0, head)
    return ",".join(pairs + [tail])


def format_indian_number(value: Number) -> str:
    """Group the integer part Indian-style; the fraction is kept as given."""
    text = format(value, "f") if isinstance(value, Decimal) else str(value)
    sign = ""
    if text.startswith("-"):
        sign, text = "-", text[1:]
    whole, _, frac = text.partition(".")
    grouped = _group_indian(whole)
    return sign + grouped + ("." + frac if frac else "")


def format_inr(value: Any, symbol: bool = True) -> str:
    """Two-decimal INR amount with Indian grouping, e.g. ``₹1,23,456.00``."""
    dec = quantize_money(value)
    base = format_indian_number(dec)
    if "." not in base:
        base += ".00"
    if not symbol:
        return base
    if base.startswith("-"):
        return "-₹" + base[1:]
    return "₹" + base


__all__ = ["to_decimal", "quantize_money", "round_money", "format_indian_number", "format_inr"]
