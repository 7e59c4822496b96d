"""Statement upload service: one record per imported statement period."""

import calendar
from collections import defaultdict
from datetime import date, datetime
from typing import Dict, List, Optional, Set
from models.statement_upload import StatementUpload
from logger import get_logger

logger = get_logger()

_UPLOAD_SELECT_FIELDS = (
    "id, account_id, period_start, period_end, filename, transaction_count, created_at"
)


def month_key(d: date) -> str:
    """Format a date as its YYYY-MM month key."""
    return f"{d.year:04d}-{d.month:02d}"


def months_between(start: date, end: date) -> List[str]:
    """Month keys from start to end inclusive."""
    if end < start:
        start, end = end, start
    keys = []
    year, month = start.year, start.month
    while (year, month) <= (end.year, end.month):
        keys.append(f"{year:04d}-{month:02d}")
        month += 1
        if month > 12:
            year, month = year + 1, 1
    return keys


class StatementUploadService:
    """Service for managing statement upload records."""

    def __init__(self, db_manager):
        """Initialize the statement upload service.

        Args:
            db_manager: Database manager instance for database operations.
        """
        self.db_manager = db_manager

    def create(
        self,
        account_id: int,
        filename: Optional[str],
        period_start: Optional[date] = None,
        period_end: Optional[date] = None,
        transaction_count: int = 0,
    ) -> StatementUpload:
        """Create a new statement upload record.

        Args:
            account_id: ID of the account the statement belongs to.
            filename: Name of the archived file (None if archiving disabled).
            period_start: First day the statement covers.
            period_end: Last day the statement covers.
            transaction_count: Number of transactions stored from it.

        Returns:
            The created StatementUpload with id and created_at populated.
        """
        with self.db_manager.connect() as conn:
            cursor = conn.execute(
                """
                INSERT INTO statement_uploads
                    (account_id, period_start, period_end, filename, transaction_count)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    account_id,
                    period_start.isoformat() if period_start else None,
                    period_end.isoformat() if period_end else None,
                    filename,
                    transaction_count,
                ),
            )
            conn.commit()
            upload_id = cursor.lastrowid

        return self.find(upload_id)

    def set_transaction_count(self, upload_id: int, count: int) -> bool:
        """Record how many transactions were stored from an upload."""
        with self.db_manager.connect() as conn:
            cursor = conn.execute(
                "UPDATE statement_uploads SET transaction_count = ? WHERE id = ?",
                (count, upload_id),
            )
            conn.commit()
            return cursor.rowcount > 0

    def delete(self, upload_id: int) -> bool:
        """Delete an upload record. Transactions that point at it are unlinked."""
        with self.db_manager.connect() as conn:
            try:
                conn.execute(
                    "UPDATE transactions SET statement_upload_id = NULL WHERE statement_upload_id = ?",
                    (upload_id,),
                )
                cursor = conn.execute("DELETE FROM statement_uploads WHERE id = ?", (upload_id,))
                conn.commit()
            except Exception:
                conn.rollback()
                raise
            return cursor.rowcount > 0

    def find(self, upload_id: int) -> Optional[StatementUpload]:
        """Get a single statement upload by ID."""
        with self.db_manager.connect() as conn:
            cursor = conn.execute(
                f"SELECT {_UPLOAD_SELECT_FIELDS} FROM statement_uploads WHERE id = ?",
                (upload_id,),
            )
            row = cursor.fetchone()
            return self._row_to_upload(row) if row else None

    def find_by_account(self, account_id: int) -> List[StatementUpload]:
        """Get all uploads for an account, newest period first."""
        with self.db_manager.connect() as conn:
            cursor = conn.execute(
                f"""
                SELECT {_UPLOAD_SELECT_FIELDS}
                FROM statement_uploads
                WHERE account_id = ?
                ORDER BY period_end DESC, id DESC
                """,
                (account_id,),
            )
            return [self._row_to_upload(row) for row in cursor.fetchall()]

    def coverage(self) -> Dict[int, List[str]]:
        """Months covered by uploaded statements, per account.

        Returns:
            Mapping of account ID to sorted YYYY-MM keys. Uploads without a
            period are ignored.
        """
        with self.db_manager.connect() as conn:
            rows = conn.execute(
                """
                SELECT account_id, period_start, period_end
                FROM statement_uploads
                WHERE period_start IS NOT NULL AND period_end IS NOT NULL
                """
            ).fetchall()

        covered: Dict[int, Set[str]] = defaultdict(set)
        for account_id, start, end in rows:
            covered[account_id].update(
                months_between(date.fromisoformat(start), date.fromisoformat(end))
            )
        return {account_id: sorted(months) for account_id, months in covered.items()}

    def backfill_from_transactions(self, account_id: int) -> List[StatementUpload]:
        """Create monthly upload records for transaction months with none.

        Transactions imported before uploads were tracked leave gaps in
        coverage. Each uncovered month gets one record named
        backfill-YYYY-MM, and that month's unlinked transactions point at it.

        Returns:
            The created StatementUpload records, oldest month first.
        """
        covered = set(self.coverage().get(account_id, []))

        with self.db_manager.connect() as conn:
            rows = conn.execute(
                """
                SELECT substr(transaction_date, 1, 7) AS month, COUNT(*)
                FROM transactions
                WHERE account_id = ?
                GROUP BY month
                ORDER BY month
                """,
                (account_id,),
            ).fetchall()

            created_ids = []
            try:
                for month, count in rows:
                    if month in covered:
                        continue
                    year, mon = (int(part) for part in month.split("-"))
                    start = date(year, mon, 1)
                    end = date(year, mon, calendar.monthrange(year, mon)[1])
                    cursor = conn.execute(
                        """
                        INSERT INTO statement_uploads
                            (account_id, period_start, period_end, filename, transaction_count)
                        VALUES (?, ?, ?, ?, ?)
                        """,
                        (account_id, start.isoformat(), end.isoformat(), f"backfill-{month}", count),
                    )
                    conn.execute(
                        """
                        UPDATE transactions SET statement_upload_id = ?
                        WHERE account_id = ? AND statement_upload_id IS NULL
                          AND substr(transaction_date, 1, 7) = ?
                        """,
                        (cursor.lastrowid, account_id, month),
                    )
                    created_ids.append(cursor.lastrowid)
                conn.commit()
            except Exception:
                conn.rollback()
                raise

        if created_ids:
            logger.info(
                f"Backfilled {len(created_ids)} statement period(s) for account {account_id}"
            )
        return [self.find(upload_id) for upload_id in created_ids]

    def _row_to_upload(self, row: tuple) -> StatementUpload:
        return StatementUpload(
            id=row[0],
            account_id=row[1],
            period_start=date.fromisoformat(row[2]) if row[2] else None,
            period_end=date.fromisoformat(row[3]) if row[3] else None,
            filename=row[4],
            transaction_count=row[5],
            created_at=datetime.fromisoformat(row[6]),
        )
