"""StatementUpload model representing one imported statement."""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional


@dataclass
class StatementUpload:
    """Represents an imported statement and the period it covers.

    Attributes:
        id: Unique identifier (auto-generated).
        account_id: ID of the account this statement belongs to.
        period_start: First day covered by the statement, if known.
        period_end: Last day covered by the statement, if known.
        filename: Name of the archived file (None if archiving disabled).
        transaction_count: Number of transactions stored from this statement.
        created_at: Timestamp when the record was created.
    """

    id: int
    account_id: int
    period_start: Optional[date]
    period_end: Optional[date]
    filename: Optional[str]
    transaction_count: int
    created_at: datetime
