"""Snapshot service: month-end account balances for net worth history."""

from datetime import date
from decimal import Decimal
from typing import List, Optional, Tuple
from models.snapshot import MonthlySnapshot
from logger import get_logger

logger = get_logger()

_CENT = Decimal("0.01")

HISTORY_MONTHS = 24


def first_of_month(d: date) -> date:
    """The first day of d's month; snapshots are keyed by it."""
    return d.replace(day=1)


def _money(value) -> Decimal:
    return Decimal(str(value)).quantize(_CENT)


class SnapshotService:
    """Service for managing monthly balance snapshots."""

    def __init__(self, db_manager):
        """Initialize the snapshot service.

        Args:
            db_manager: Database manager instance for database operations.
        """
        self.db_manager = db_manager

    def upsert(self, month: date, account_id: int, balance: Decimal) -> MonthlySnapshot:
        """Record an account's balance for a month, replacing any earlier value.

        Args:
            month: Any day in the month; stored as the first of the month.
            account_id: Account the balance belongs to.
            balance: Signed balance.

        Returns:
            The stored MonthlySnapshot.

        Raises:
            ValueError: If the account does not exist.
        """
        month = first_of_month(month)
        with self.db_manager.connect() as conn:
            if not conn.execute("SELECT 1 FROM accounts WHERE id = ?", (account_id,)).fetchone():
                raise ValueError(f"Account with ID {account_id} not found")

            existing = conn.execute(
                "SELECT id FROM monthly_snapshots WHERE month = ? AND account_id = ?",
                (month.isoformat(), account_id),
            ).fetchone()
            if existing:
                conn.execute(
                    "UPDATE monthly_snapshots SET balance = ? WHERE id = ?",
                    (float(_money(balance)), existing[0]),
                )
                snapshot_id = existing[0]
            else:
                cursor = conn.execute(
                    "INSERT INTO monthly_snapshots (month, account_id, balance) VALUES (?, ?, ?)",
                    (month.isoformat(), account_id, float(_money(balance))),
                )
                snapshot_id = cursor.lastrowid
            conn.commit()

        logger.info(f"Recorded balance {_money(balance)} for account {account_id} in {month:%Y-%m}")
        return self.find(snapshot_id)

    def find(self, snapshot_id: int) -> Optional[MonthlySnapshot]:
        """Get a single snapshot by ID."""
        with self.db_manager.connect() as conn:
            row = conn.execute(
                """
                SELECT ms.id, ms.month, ms.account_id, ms.balance, a.name
                FROM monthly_snapshots ms JOIN accounts a ON ms.account_id = a.id
                WHERE ms.id = ?
                """,
                (snapshot_id,),
            ).fetchone()
            return self._row_to_snapshot(row) if row else None

    def find_all(self, account_id: Optional[int] = None) -> List[MonthlySnapshot]:
        """Get snapshots, newest month first, then by account name."""
        query = """
            SELECT ms.id, ms.month, ms.account_id, ms.balance, a.name
            FROM monthly_snapshots ms JOIN accounts a ON ms.account_id = a.id
        """
        params: list = []
        if account_id is not None:
            query += " WHERE ms.account_id = ?"
            params.append(account_id)
        query += " ORDER BY ms.month DESC, a.name"

        with self.db_manager.connect() as conn:
            cursor = conn.execute(query, params)
            return [self._row_to_snapshot(row) for row in cursor.fetchall()]

    def delete(self, snapshot_id: int) -> bool:
        """Delete a snapshot by ID."""
        with self.db_manager.connect() as conn:
            cursor = conn.execute("DELETE FROM monthly_snapshots WHERE id = ?", (snapshot_id,))
            conn.commit()
            return cursor.rowcount > 0

    def latest_balances(self) -> List[MonthlySnapshot]:
        """Most recent snapshot per account, ordered by account name."""
        with self.db_manager.connect() as conn:
            cursor = conn.execute(
                """
                SELECT ms.id, ms.month, ms.account_id, ms.balance, a.name
                FROM monthly_snapshots ms JOIN accounts a ON ms.account_id = a.id
                WHERE ms.month = (
                    SELECT MAX(ms2.month) FROM monthly_snapshots ms2
                    WHERE ms2.account_id = ms.account_id
                )
                ORDER BY a.name, ms.account_id
                """
            )
            return [self._row_to_snapshot(row) for row in cursor.fetchall()]

    def history(self, limit: int = HISTORY_MONTHS) -> List[Tuple[date, Decimal]]:
        """Total recorded balance per month, newest first.

        Returns:
            List of (month, total) tuples for at most `limit` months.
        """
        with self.db_manager.connect() as conn:
            rows = conn.execute(
                """
                SELECT month, SUM(balance) FROM monthly_snapshots
                GROUP BY month ORDER BY month DESC LIMIT ?
                """,
                (limit,),
            ).fetchall()
        return [(date.fromisoformat(month), _money(total)) for month, total in rows]

    def _row_to_snapshot(self, row: tuple) -> MonthlySnapshot:
        return MonthlySnapshot(
            id=row[0],
            month=date.fromisoformat(row[1]),
            account_id=row[2],
            balance=_money(row[3]),
            account_name=row[4],
        )
