"""Asset model: something owned that counts toward net worth."""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional

ASSET_TYPES = ("vehicle", "jewelry", "real_estate", "collectible", "other")


@dataclass
class Asset:
    """A valuable held outside the tracked accounts.

    Attributes:
        id: Unique identifier (auto-generated).
        name: Display name, e.g. "2019 Civic".
        type: One of ASSET_TYPES.
        current_value: Present estimated value.
        purchase_price: Price paid, if known.
        purchase_date: Date bought, if known.
        notes: Free-text notes.
    """

    id: int
    name: str
    type: str
    current_value: Decimal
    purchase_price: Optional[Decimal] = None
    purchase_date: Optional[date] = None
    notes: Optional[str] = None
