"""Helpers shared by the CSV statement parsers."""

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Dict, List, Optional

_DATE_FORMATS = ("%m/%d/%Y", "%m/%d/%y", "%m-%d-%Y", "%Y-%m-%d")


def header_map(header: List[str]) -> Dict[str, int]:
    """Map lower-cased, trimmed column names to their index."""
    return {name.strip().lower(): i for i, name in enumerate(header)}


def column(columns: Dict[str, int], *names: str) -> Optional[int]:
    """Index of the first column name present, or None."""
    for name in names:
        if name in columns:
            return columns[name]
    return None


def cell(row: List[str], index: Optional[int]) -> str:
    """Trimmed cell value, or "" if the column is absent or the row short."""
    if index is None or index >= len(row):
        return ""
    return row[index].strip().strip('"').strip()


def parse_date(value: str) -> date:
    """Parse a statement date in any of the supported formats.

    Raises:
        ValueError: If no format matches.
    """
    value = value.strip()
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            continue
    raise ValueError(f"Unrecognized date: '{value}'")


def parse_amount(value: str) -> Decimal:
    """Parse an amount such as "-1,234.56", "$12.00" or "(45.00)".

    Parentheses mark a negative amount.

    Raises:
        ValueError: If the value is not a number.
    """
    text = value.strip()
    negative = text.startswith("(") and text.endswith(")")
    text = text.strip("()").replace(",", "").replace("$", "").strip()
    try:
        amount = Decimal(text)
    except InvalidOperation as e:
        raise ValueError(f"Invalid amount: '{value}'") from e
    return -abs(amount) if negative else amount


def is_card_payment(description: str) -> bool:
    """Card payment rows ("Payment Thank You") that are skipped on import."""
    lowered = description.lower()
    return (
        "payment thank you" in lowered
        or "payment - thank you" in lowered
        or "autopay payment" in lowered
    )
