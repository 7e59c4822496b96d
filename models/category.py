"""Category model for transaction categorization."""

from dataclasses import dataclass
from typing import Optional

# Category used when a proposed category is not in the configured set
FALLBACK_CATEGORY = "Other"


@dataclass
class Category:
    """Represents a configurable transaction category.

    Attributes:
        id: Unique identifier (auto-generated).
        name: Category name (unique).
        color: Optional display color, e.g. "#22c55e".
        icon: Optional icon name.
        parent_id: Optional parent category ID for hierarchical categories.
    """

    id: int
    name: str
    color: Optional[str] = None
    icon: Optional[str] = None
    parent_id: Optional[int] = None
