"""Duplicate detection for statement imports.

A transaction counts as already imported when a stored row has the same date
and the same signed amount. Descriptions are ignored because the same charge
arrives with different wording from different sources (CSV export vs. parsed
PDF). The trade-off: a genuine second charge of the same amount on the same
day is flagged too.
"""

from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, List, Set, Tuple, TypeVar

T = TypeVar("T")

_CENT = Decimal("0.01")


def duplicate_key(transaction_date: date, amount: Decimal) -> Tuple[date, Decimal]:
    """Build the (date, amount) key used to compare transactions.

    Amounts are rounded to cents so that 12.5 and 12.50 compare equal.
    """
    return transaction_date, Decimal(amount).quantize(_CENT, rounding=ROUND_HALF_UP)


def is_duplicate(
    transaction_date: date,
    amount: Decimal,
    existing_keys: Set[Tuple[date, Decimal]],
) -> bool:
    """Check a single (date, amount) pair against a snapshot of stored keys."""
    return duplicate_key(transaction_date, amount) in existing_keys


def partition_duplicates(
    candidates: Iterable[T],
    existing_keys: Set[Tuple[date, Decimal]],
) -> Tuple[List[T], List[T]]:
    """Split candidate rows into (fresh, duplicates).

    Candidates are compared against the stored snapshot only, never against
    each other, so two identical rows in one statement are both kept.

    Args:
        candidates: Objects with transaction_date and amount attributes.
        existing_keys: Keys of stored transactions (see duplicate_key).

    Returns:
        Tuple of (fresh, duplicates), each preserving input order.
    """
    fresh: List[T] = []
    duplicates: List[T] = []
    for candidate in candidates:
        if is_duplicate(candidate.transaction_date, candidate.amount, existing_keys):
            duplicates.append(candidate)
        else:
            fresh.append(candidate)
    return fresh, duplicates
