"""ParsedTransaction: one statement row before it is stored."""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional


@dataclass
class ParsedTransaction:
    """A row read from a statement file.

    Attributes:
        transaction_date: Date the transaction happened.
        description: Description as printed on the statement.
        amount: Signed amount (negative = expense, positive = income/credit).
        raw_data: Original CSV line.
        bank_category: The bank's own category, mapped onto ours when known.
        merchant: Merchant name if the statement provides one.
    """

    transaction_date: date
    description: str
    amount: Decimal
    raw_data: str
    bank_category: Optional[str] = None
    merchant: Optional[str] = None
