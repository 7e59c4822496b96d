"""Account service for database operations."""

from typing import List, Optional
from models.account import Account, ACCOUNT_TYPES

_ACCOUNT_SELECT_FIELDS = "id, name, type, institution"


class AccountService:
    """Service for managing accounts."""

    def __init__(self, db_manager):
        """Initialize the account service.

        Args:
            db_manager: Database manager instance for database operations.
        """
        self.db_manager = db_manager

    def find_all(self) -> List[Account]:
        """Get all accounts from the database.

        Returns:
            List of Account objects, ordered by name.
        """
        with self.db_manager.connect() as conn:
            cursor = conn.execute(
                f"SELECT {_ACCOUNT_SELECT_FIELDS} FROM accounts ORDER BY name"
            )
            return [self._row_to_account(row) for row in cursor.fetchall()]

    def find(self, account_id: int) -> Optional[Account]:
        """Get a single account by ID.

        Args:
            account_id: The account ID to find.

        Returns:
            Account object if found, None otherwise.
        """
        with self.db_manager.connect() as conn:
            cursor = conn.execute(
                f"SELECT {_ACCOUNT_SELECT_FIELDS} FROM accounts WHERE id = ?",
                (account_id,),
            )
            row = cursor.fetchone()
            return self._row_to_account(row) if row else None

    def find_by_name(self, name: str) -> Optional[Account]:
        """Get a single account by name (case-insensitive).

        Args:
            name: The account name to find.

        Returns:
            Account object if found, None otherwise.
        """
        with self.db_manager.connect() as conn:
            cursor = conn.execute(
                f"SELECT {_ACCOUNT_SELECT_FIELDS} FROM accounts WHERE LOWER(name) = LOWER(?)",
                (name,),
            )
            row = cursor.fetchone()
            return self._row_to_account(row) if row else None

    def create(
        self, name: str, account_type: str, institution: Optional[str] = None
    ) -> Account:
        """Create a new account.

        Args:
            name: Account name (should be unique).
            account_type: One of "bank", "credit_card", "brokerage".
            institution: Optional institution name (e.g., "Chase").

        Returns:
            The created Account object with id populated.

        Raises:
            ValueError: If the account type is unknown.
            Exception: If account creation fails (e.g., duplicate name).
        """
        if account_type not in ACCOUNT_TYPES:
            raise ValueError(
                f"Invalid account type '{account_type}'. Must be one of: {', '.join(ACCOUNT_TYPES)}"
            )

        with self.db_manager.connect() as conn:
            cursor = conn.execute(
                "INSERT INTO accounts (name, type, institution) VALUES (?, ?, ?)",
                (name, account_type, institution),
            )
            conn.commit()

            return Account(
                id=cursor.lastrowid,
                name=name,
                type=account_type,
                institution=institution,
            )

    def find_or_create(
        self, name: str, account_type: str = "bank", institution: Optional[str] = None
    ) -> Account:
        """Return the account with this name, creating it if needed."""
        existing = self.find_by_name(name)
        if existing:
            return existing
        return self.create(name, account_type, institution)

    def delete(self, account_id: int) -> bool:
        """Delete an account by ID.

        Args:
            account_id: The account ID to delete.

        Returns:
            True if account was deleted, False if not found.
        """
        with self.db_manager.connect() as conn:
            cursor = conn.execute("DELETE FROM accounts WHERE id = ?", (account_id,))
            conn.commit()
            return cursor.rowcount > 0

    def _row_to_account(self, row: tuple) -> Account:
        return Account(id=row[0], name=row[1], type=row[2], institution=row[3])
