"""Classifier input and output models."""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional


@dataclass
class TransactionInput:
    """A transaction as handed to the classifier.

    Attributes:
        description: Raw statement description.
        amount: Signed amount (negative = expense).
        date: Optional transaction date.
    """

    description: str
    amount: Decimal
    date: Optional[date] = None


@dataclass
class CategorizationResult:
    """Classification of a single transaction.

    Attributes:
        category: One of the configured category names, or None.
        subcategory: Free-text subcategory, if any.
        merchant: Clean merchant display name; falls back to the description.
        confidence: 0.0 to 1.0. Zero means the transaction is uncategorized.
        is_transfer: Movement between the user's own accounts, not spending.
        liability_id: Liability this transaction pays toward, if proposed.
        source: "ai", "rules" or "fallback".
    """

    category: Optional[str]
    subcategory: Optional[str]
    merchant: str
    confidence: float
    is_transfer: bool = False
    liability_id: Optional[int] = None
    source: str = "rules"

    def to_dict(self) -> dict:
        data = {
            "category": self.category,
            "subcategory": self.subcategory,
            "merchant": self.merchant,
            "confidence": self.confidence,
            "isTransfer": self.is_transfer,
        }
        if self.liability_id is not None:
            data["liabilityId"] = self.liability_id
        return data
