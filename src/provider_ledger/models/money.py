"""Checked integer arithmetic for money and id counters.

Amounts are plain ``int`` in the token's smallest unit. Results outside
``[0, limit]`` raise ``LedgerOverflow`` instead of wrapping.
"""

from __future__ import annotations

from ..exceptions import LedgerOverflow

MONEY_MAX = 2**256 - 1


def checked_add(a: int, b: int, limit: int = MONEY_MAX) -> int:
    result = a + b
    if result < 0 or result > limit:
        raise LedgerOverflow("add", a, b, limit)
    return result


def checked_sub(a: int, b: int, limit: int = MONEY_MAX) -> int:
    result = a - b
    if result < 0 or result > limit:
        raise LedgerOverflow("sub", a, b, limit)
    return result


def checked_mul(a: int, b: int, limit: int = MONEY_MAX) -> int:
    result = a * b
    if result < 0 or result > limit:
        raise LedgerOverflow("mul", a, b, limit)
    return result
