from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional

BILLING_CYCLE_OVERRIDES = ("monthly", "quarterly", "annual")


@dataclass
class Transaction:
    id: Optional[int]  # None until stored
    account_id: Optional[int]
    transaction_date: date
    description: str  # raw description from the statement
    amount: Decimal  # signed: negative = expense, positive = income/credit
    category: Optional[str] = None
    subcategory: Optional[str] = None
    merchant: Optional[str] = None  # cleaned display name
    is_transfer: bool = False
    subscription_frequency: Optional[str] = None  # user-set billing cycle override
    notes: Optional[str] = None
    raw_data: Optional[str] = None
    statement_upload_id: Optional[int] = None

    @property
    def is_expense(self) -> bool:
        return self.amount < 0

    @property
    def display_merchant(self) -> str:
        """Merchant name if known, otherwise the raw description."""
        return self.merchant or self.description

    def to_dict(self) -> dict:
        """Convert transaction to dictionary for database storage."""
        return {
            "id": self.id,
            "account_id": self.account_id,
            "statement_upload_id": self.statement_upload_id,
            "transaction_date": self.transaction_date.isoformat(),
            "description": self.description,
            "amount": float(self.amount),
            "category": self.category,
            "subcategory": self.subcategory,
            "merchant": self.merchant,
            "is_transfer": 1 if self.is_transfer else 0,
            "subscription_frequency": self.subscription_frequency,
            "notes": self.notes,
            "raw_data": self.raw_data,
        }
