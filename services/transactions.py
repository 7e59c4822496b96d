"""Transaction service for database operations."""

from typing import Iterable, List, Optional, Set, Tuple
from datetime import date
from decimal import Decimal
from models.transaction import Transaction, BILLING_CYCLE_OVERRIDES
from tools.duplicates import duplicate_key

# SQL Query Constants
_TRANSACTION_SELECT_FIELDS = """id, account_id, statement_upload_id, transaction_date,
       description, amount, category, subcategory, merchant, is_transfer,
       subscription_frequency, notes, raw_data"""

_TRANSACTION_INSERT_FIELDS = """account_id, statement_upload_id, transaction_date,
    description, amount, category, subcategory, merchant, is_transfer,
    subscription_frequency, notes, raw_data"""

# Automatically generate placeholders from field count
_TRANSACTION_INSERT_PLACEHOLDERS = (
    f"({', '.join(['?'] * len(_TRANSACTION_INSERT_FIELDS.split(',')))})"
)

_UPDATABLE_FIELDS = {
    "account_id",
    "category",
    "subcategory",
    "merchant",
    "is_transfer",
    "subscription_frequency",
    "notes",
}


class TransactionService:
    """Service for managing transactions."""

    def __init__(self, db_manager):
        """Initialize the transaction service.

        Args:
            db_manager: Database manager instance for database operations.
        """
        self.db_manager = db_manager

    def create(self, transaction: Transaction) -> Transaction:
        """Create a single transaction in the database.

        Args:
            transaction: Transaction object to insert.

        Returns:
            The same Transaction object with its id populated.
        """
        self.bulk_create([transaction])
        return transaction

    def bulk_create(self, transactions: List[Transaction]) -> int:
        """Create multiple transactions in a single database transaction.

        Each Transaction object gets its id populated in place.

        Args:
            transactions: List of Transaction objects to insert.

        Returns:
            Number of transactions inserted.

        Raises:
            Exception: If an insert fails. All inserts are rolled back on error.
        """
        if not transactions:
            return 0

        with self.db_manager.connect() as conn:
            try:
                ids = []
                for t in transactions:
                    cursor = conn.execute(
                        f"""
                        INSERT INTO transactions ({_TRANSACTION_INSERT_FIELDS})
                        VALUES {_TRANSACTION_INSERT_PLACEHOLDERS}
                        """,
                        self._insert_params(t),
                    )
                    ids.append(cursor.lastrowid)
                conn.commit()
            except Exception:
                conn.rollback()
                raise

        for t, new_id in zip(transactions, ids):
            t.id = new_id

        return len(ids)

    def batch_update(
        self, transactions: List[Transaction], field_names: List[str]
    ) -> int:
        """Update specified fields for multiple transactions.

        Args:
            transactions: List of Transaction objects to update.
            field_names: List of field names to update. Supported fields:
                        'account_id', 'category', 'subcategory', 'merchant',
                        'is_transfer', 'subscription_frequency', 'notes'

        Returns:
            Number of transactions successfully updated.

        Raises:
            ValueError: If unsupported field names or an unknown billing
                cycle override are provided.
        """
        if not transactions:
            return 0

        if not field_names:
            raise ValueError("field_names cannot be empty")

        invalid_fields = set(field_names) - _UPDATABLE_FIELDS
        if invalid_fields:
            raise ValueError(f"Unsupported field names: {invalid_fields}")

        set_clause = ", ".join([f"{field} = ?" for field in field_names])

        data = []
        for t in transactions:
            row_data = []
            for field in field_names:
                value = getattr(t, field)
                if field == "is_transfer":
                    value = 1 if value else 0
                elif (
                    field == "subscription_frequency"
                    and value is not None
                    and value not in BILLING_CYCLE_OVERRIDES
                ):
                    raise ValueError(f"Unknown billing cycle: {value}")
                row_data.append(value)
            # Transaction ID goes last for the WHERE clause
            row_data.append(t.id)
            data.append(tuple(row_data))

        with self.db_manager.connect() as conn:
            cursor = conn.executemany(
                f"""
                UPDATE transactions
                SET {set_clause}
                WHERE id = ?
                """,
                data,
            )
            conn.commit()
            return cursor.rowcount

    def update(self, transaction: Transaction, field_names: List[str]) -> bool:
        """Update specified fields for a single transaction.

        Returns:
            True if update was successful, False otherwise.
        """
        count = self.batch_update([transaction], field_names)
        return count > 0

    def delete(self, transaction_id: int) -> bool:
        """Delete a transaction together with its liability payments.

        Both deletes happen in one commit. Balances already changed by
        applied payments are left as they are.

        Args:
            transaction_id: The transaction ID.

        Returns:
            True if the transaction was deleted, False if not found.
        """
        with self.db_manager.connect() as conn:
            try:
                conn.execute(
                    "DELETE FROM liability_payments WHERE transaction_id = ?",
                    (transaction_id,),
                )
                cursor = conn.execute(
                    "DELETE FROM transactions WHERE id = ?", (transaction_id,)
                )
                conn.commit()
            except Exception:
                conn.rollback()
                raise
            return cursor.rowcount > 0

    def find(self, transaction_id: int) -> Optional[Transaction]:
        """Get a single transaction by ID.

        Args:
            transaction_id: The transaction ID.

        Returns:
            Transaction object if found, None otherwise.
        """
        with self.db_manager.connect() as conn:
            cursor = conn.execute(
                f"""
                SELECT {_TRANSACTION_SELECT_FIELDS}
                FROM transactions
                WHERE id = ?
                """,
                (transaction_id,),
            )
            row = cursor.fetchone()

            if row:
                return self._row_to_transaction(row)
            return None

    def find_by_account(self, account_id: int) -> List[Transaction]:
        """Get all transactions for a specific account, newest first."""
        return self.find_all(account_id=account_id)

    def find_all(
        self,
        *,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        category: Optional[str] = None,
        account_id: Optional[int] = None,
        search: Optional[str] = None,
        uncategorized: bool = False,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> List[Transaction]:
        """Get transactions matching the given filters.

        Args:
            start_date: Optional inclusive lower bound on transaction date.
            end_date: Optional inclusive upper bound on transaction date.
            category: Optional exact category name.
            account_id: Optional account ID.
            search: Optional substring matched against description or merchant.
            uncategorized: If True, only transactions without a category.
            limit: Optional maximum number of rows.
            offset: Optional number of rows to skip (used with limit).

        Returns:
            List of Transaction objects ordered by date (newest first).
        """
        query = f"""
            SELECT {_TRANSACTION_SELECT_FIELDS}
            FROM transactions
            WHERE 1=1
        """
        params: list = []

        if start_date is not None:
            query += " AND transaction_date >= ?"
            params.append(start_date.isoformat())

        if end_date is not None:
            query += " AND transaction_date <= ?"
            params.append(end_date.isoformat())

        if category is not None:
            query += " AND category = ?"
            params.append(category)

        if account_id is not None:
            query += " AND account_id = ?"
            params.append(account_id)

        if search:
            query += " AND (description LIKE ? OR merchant LIKE ?)"
            params.extend([f"%{search}%", f"%{search}%"])

        if uncategorized:
            query += " AND category IS NULL"

        query += " ORDER BY transaction_date DESC, id DESC"

        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)
            if offset:
                query += " OFFSET ?"
                params.append(offset)

        with self.db_manager.connect() as conn:
            cursor = conn.execute(query, params)
            return [self._row_to_transaction(row) for row in cursor.fetchall()]

    def find_subscription_charges(
        self,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        category: str = "Subscriptions",
    ) -> List[Transaction]:
        """Get non-transfer expenses in the subscriptions category.

        Args:
            start_date: Optional inclusive lower bound on transaction date.
            end_date: Optional inclusive upper bound on transaction date.
            category: Category name holding subscription charges.

        Returns:
            List of Transaction objects ordered by date (oldest first).
        """
        query = f"""
            SELECT {_TRANSACTION_SELECT_FIELDS}
            FROM transactions
            WHERE amount < 0 AND is_transfer = 0 AND category = ?
        """
        params: list = [category]

        if start_date is not None:
            query += " AND transaction_date >= ?"
            params.append(start_date.isoformat())

        if end_date is not None:
            query += " AND transaction_date <= ?"
            params.append(end_date.isoformat())

        query += " ORDER BY transaction_date, id"

        with self.db_manager.connect() as conn:
            cursor = conn.execute(query, params)
            return [self._row_to_transaction(row) for row in cursor.fetchall()]

    def is_duplicate(self, transaction_date: date, amount: Decimal) -> bool:
        """Check whether a transaction with this date and amount is stored.

        The description is ignored on purpose: the same charge is worded
        differently by CSV exports and parsed PDF statements.

        Args:
            transaction_date: Transaction date.
            amount: Signed amount.

        Returns:
            True if a stored transaction has the same date and signed amount.
        """
        with self.db_manager.connect() as conn:
            cursor = conn.execute(
                """
                SELECT 1 FROM transactions
                WHERE transaction_date = ? AND ROUND(amount, 2) = ROUND(?, 2)
                LIMIT 1
                """,
                (transaction_date.isoformat(), float(amount)),
            )
            return cursor.fetchone() is not None

    def existing_keys(self, dates: Iterable[date]) -> Set[Tuple[date, Decimal]]:
        """Get the duplicate keys of stored transactions on the given dates.

        Args:
            dates: Dates to look up.

        Returns:
            Set of (date, amount) keys as produced by duplicate_key().
        """
        iso_dates = sorted({d.isoformat() for d in dates})
        if not iso_dates:
            return set()

        placeholders = ", ".join(["?"] * len(iso_dates))
        with self.db_manager.connect() as conn:
            cursor = conn.execute(
                f"""
                SELECT transaction_date, amount FROM transactions
                WHERE transaction_date IN ({placeholders})
                """,
                iso_dates,
            )
            return {
                duplicate_key(date.fromisoformat(row[0]), Decimal(str(row[1])))
                for row in cursor.fetchall()
            }

    def _insert_params(self, t: Transaction) -> tuple:
        return (
            t.account_id,
            t.statement_upload_id,
            t.transaction_date.isoformat(),
            t.description,
            float(t.amount),
            t.category,
            t.subcategory,
            t.merchant,
            1 if t.is_transfer else 0,
            t.subscription_frequency,
            t.notes,
            t.raw_data,
        )

    def _row_to_transaction(self, row: tuple) -> Transaction:
        """Convert a database row to a Transaction object."""
        return Transaction(
            id=row[0],
            account_id=row[1],
            statement_upload_id=row[2],
            transaction_date=date.fromisoformat(row[3]),
            description=row[4],
            amount=Decimal(str(row[5])),
            category=row[6],
            subcategory=row[7],
            merchant=row[8],
            is_transfer=bool(row[9]),
            subscription_frequency=row[10],
            notes=row[11],
            raw_data=row[12],
        )
