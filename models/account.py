from dataclasses import dataclass
from typing import Optional

ACCOUNT_TYPES = ("bank", "credit_card", "brokerage")


@dataclass
class Account:
    id: int
    name: str  # human readable, e.g., "Chase Sapphire"
    type: str  # one of ACCOUNT_TYPES
    institution: Optional[str] = None  # e.g., "Chase"

    def to_dict(self) -> dict:
        """Convert account to dictionary for database storage."""
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "institution": self.institution,
        }
