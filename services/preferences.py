"""Preference service: natural-language categorization rules.

Preferences are stored as free text and handed to the AI classifier as-is.
Nothing here parses them; conditions such as "over $50" are left to the
model to honour. The rule-based fallback ignores preferences entirely.
"""

import re
from datetime import datetime, timedelta
from typing import List, Optional
from models.preference import UserPreference, PREFERENCE_SOURCES
from models.transaction import Transaction
from logger import get_logger

logger = get_logger()

_PREFERENCE_SELECT_FIELDS = "id, instruction, source, created_at, updated_at"


def normalize_merchant_name(merchant: str) -> str:
    """Trim a merchant name and collapse inner whitespace."""
    return re.sub(r"\s+", " ", merchant).strip()


def merchant_prefix(merchant: str) -> str:
    """Quoted-merchant prefix that learned instructions start with."""
    return f'"{normalize_merchant_name(merchant)}"'


def build_learned_instruction(
    merchant: str,
    category: str,
    subcategory: Optional[str] = None,
    is_transfer: bool = False,
) -> str:
    """Build the instruction text recorded when a user recategorizes.

    Example: '"Shell" should be categorized as Transportation / Gas'
    """
    instruction = f"{merchant_prefix(merchant)} should be categorized as {category}"
    if subcategory:
        instruction += f" / {subcategory}"
    if is_transfer:
        instruction += " (mark as transfer)"
    return instruction


class PreferenceService:
    """Service for managing user preferences."""

    def __init__(self, db_manager):
        """Initialize the preference service.

        Args:
            db_manager: Database manager instance for database operations.
        """
        self.db_manager = db_manager

    def find_all(self) -> List[UserPreference]:
        """Get all preferences, most recently updated first.

        Returns:
            List of UserPreference objects.
        """
        with self.db_manager.connect() as conn:
            cursor = conn.execute(
                f"""
                SELECT {_PREFERENCE_SELECT_FIELDS}
                FROM user_preferences
                ORDER BY updated_at DESC, id DESC
                """
            )
            return [self._row_to_preference(row) for row in cursor.fetchall()]

    def find(self, preference_id: int) -> Optional[UserPreference]:
        """Get a single preference by ID."""
        with self.db_manager.connect() as conn:
            cursor = conn.execute(
                f"SELECT {_PREFERENCE_SELECT_FIELDS} FROM user_preferences WHERE id = ?",
                (preference_id,),
            )
            row = cursor.fetchone()
            return self._row_to_preference(row) if row else None

    def add(self, instruction: str, source: str = "user") -> UserPreference:
        """Store a new preference.

        Args:
            instruction: Natural-language instruction text.
            source: "user" or "learned".

        Returns:
            The created UserPreference.

        Raises:
            ValueError: If the instruction is empty or the source is unknown.
        """
        instruction = self._clean_instruction(instruction)
        self._check_source(source)

        with self.db_manager.connect() as conn:
            now = self._next_timestamp(conn)
            stamp = now.isoformat(timespec="microseconds")
            cursor = conn.execute(
                """
                INSERT INTO user_preferences (instruction, source, created_at, updated_at)
                VALUES (?, ?, ?, ?)
                """,
                (instruction, source, stamp, stamp),
            )
            conn.commit()

        return UserPreference(
            id=cursor.lastrowid,
            instruction=instruction,
            source=source,
            created_at=now,
            updated_at=now,
        )

    def update(self, preference_id: int, instruction: str) -> bool:
        """Replace a preference's text and move it to the front of the list.

        Returns:
            True if the preference existed and was updated.

        Raises:
            ValueError: If the instruction is empty.
        """
        instruction = self._clean_instruction(instruction)

        with self.db_manager.connect() as conn:
            stamp = self._next_timestamp(conn).isoformat(timespec="microseconds")
            cursor = conn.execute(
                "UPDATE user_preferences SET instruction = ?, updated_at = ? WHERE id = ?",
                (instruction, stamp, preference_id),
            )
            conn.commit()
            return cursor.rowcount > 0

    def delete(self, preference_id: int) -> bool:
        """Delete a preference by ID.

        Returns:
            True if the preference was deleted, False if not found.
        """
        with self.db_manager.connect() as conn:
            cursor = conn.execute(
                "DELETE FROM user_preferences WHERE id = ?", (preference_id,)
            )
            conn.commit()
            return cursor.rowcount > 0

    def find_for_merchant(self, merchant: str) -> Optional[UserPreference]:
        """Find the preference whose text starts with the quoted merchant name.

        The comparison is case-insensitive and whitespace-normalized. When
        more than one matches, the most recently updated wins.
        """
        prefix = merchant_prefix(merchant).lower()
        for preference in self.find_all():
            if normalize_merchant_name(preference.instruction).lower().startswith(prefix):
                return preference
        return None

    def upsert_for_merchant(
        self, merchant: str, instruction: str, source: str = "learned"
    ) -> UserPreference:
        """Create or refine the single preference for a merchant.

        If a preference already starts with the quoted merchant name its text
        is replaced and its updated_at bumped, so it sorts first in future
        prompts. Otherwise a new preference is inserted.

        Args:
            merchant: Merchant display name the instruction is about.
            instruction: Full instruction text.
            source: "user" or "learned".

        Returns:
            The updated or created UserPreference.
        """
        if not normalize_merchant_name(merchant):
            raise ValueError("Merchant name cannot be empty")

        existing = self.find_for_merchant(merchant)
        if existing is None:
            logger.info(f"Learning new preference for merchant '{merchant}'")
            return self.add(instruction, source)

        self.update(existing.id, instruction)
        logger.info(
            f"Refined preference {existing.id} for merchant '{merchant}'"
        )
        return self.find(existing.id)

    def learn_from_correction(
        self,
        transaction: Transaction,
        new_category: str,
        *,
        merchant: Optional[str] = None,
        subcategory: Optional[str] = None,
        is_transfer: Optional[bool] = None,
    ) -> Optional[UserPreference]:
        """Record a learned preference when a user changes a category.

        Args:
            transaction: The transaction as it was before the correction.
            new_category: Category chosen by the user.
            merchant: Merchant name to key the rule on; defaults to the
                transaction's merchant or description.
            subcategory: Optional subcategory chosen by the user.
            is_transfer: Transfer flag chosen by the user; defaults to the
                transaction's current flag.

        Returns:
            The upserted preference, or None if the category did not change.
        """
        if not new_category or new_category == transaction.category:
            return None

        merchant_name = merchant or transaction.display_merchant
        if is_transfer is None:
            is_transfer = transaction.is_transfer
        if subcategory is None:
            subcategory = transaction.subcategory

        instruction = build_learned_instruction(
            merchant_name, new_category, subcategory, is_transfer
        )
        return self.upsert_for_merchant(merchant_name, instruction, "learned")

    def _next_timestamp(self, conn) -> datetime:
        """Current time, kept strictly after the newest stored updated_at.

        Coarse system clocks can hand out the same value twice; ordering by
        updated_at must still put the latest write first.
        """
        now = datetime.now()
        row = conn.execute("SELECT MAX(updated_at) FROM user_preferences").fetchone()
        if row and row[0]:
            latest = datetime.fromisoformat(row[0])
            if now <= latest:
                now = latest + timedelta(microseconds=1)
        return now

    def _clean_instruction(self, instruction: str) -> str:
        if not instruction or not instruction.strip():
            raise ValueError("Instruction text is required")
        return instruction.strip()

    def _check_source(self, source: str) -> None:
        if source not in PREFERENCE_SOURCES:
            raise ValueError(
                f"Invalid preference source '{source}'. Must be one of: {', '.join(PREFERENCE_SOURCES)}"
            )

    def _row_to_preference(self, row: tuple) -> UserPreference:
        return UserPreference(
            id=row[0],
            instruction=row[1],
            source=row[2],
            created_at=datetime.fromisoformat(row[3]),
            updated_at=datetime.fromisoformat(row[4]),
        )
