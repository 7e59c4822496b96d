"""Asset service: valuables that count toward net worth."""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from models.asset import Asset, ASSET_TYPES
from logger import get_logger

logger = get_logger()

_CENT = Decimal("0.01")

_ASSET_SELECT_FIELDS = (
    "id, name, type, current_value, purchase_price, purchase_date, notes"
)

_ASSET_UPDATABLE_FIELDS = {
    "name",
    "type",
    "current_value",
    "purchase_price",
    "purchase_date",
    "notes",
}


def _money(value) -> Decimal:
    return Decimal(str(value)).quantize(_CENT)


def _to_db(value):
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, date):
        return value.isoformat()
    return value


class AssetService:
    """Service for managing assets."""

    def __init__(self, db_manager):
        """Initialize the asset service.

        Args:
            db_manager: Database manager instance for database operations.
        """
        self.db_manager = db_manager

    def find_all(self) -> List[Asset]:
        """Get all assets, most valuable first."""
        with self.db_manager.connect() as conn:
            cursor = conn.execute(
                f"SELECT {_ASSET_SELECT_FIELDS} FROM assets ORDER BY current_value DESC, id"
            )
            return [self._row_to_asset(row) for row in cursor.fetchall()]

    def find(self, asset_id: int) -> Optional[Asset]:
        """Get a single asset by ID."""
        with self.db_manager.connect() as conn:
            cursor = conn.execute(
                f"SELECT {_ASSET_SELECT_FIELDS} FROM assets WHERE id = ?", (asset_id,)
            )
            row = cursor.fetchone()
            return self._row_to_asset(row) if row else None

    def create(
        self,
        name: str,
        asset_type: str,
        current_value: Decimal,
        purchase_price: Optional[Decimal] = None,
        purchase_date: Optional[date] = None,
        notes: Optional[str] = None,
    ) -> Asset:
        """Create a new asset.

        Raises:
            ValueError: If the name is empty, the type is unknown or the
                value is negative.
        """
        name = name.strip() if name else ""
        if not name:
            raise ValueError("Asset name cannot be empty")
        self._check_type(asset_type)
        current_value = _money(current_value)
        if current_value < 0:
            raise ValueError("Asset value cannot be negative")

        with self.db_manager.connect() as conn:
            cursor = conn.execute(
                """
                INSERT INTO assets (name, type, current_value, purchase_price, purchase_date, notes)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    name,
                    asset_type,
                    float(current_value),
                    _to_db(purchase_price),
                    _to_db(purchase_date),
                    notes,
                ),
            )
            conn.commit()
            asset_id = cursor.lastrowid

        logger.info(f"Created asset {asset_id} '{name}'")
        return self.find(asset_id)

    def update(self, asset_id: int, **fields) -> bool:
        """Update asset fields.

        Returns:
            True if the asset existed and was updated.

        Raises:
            ValueError: If an unsupported field, an unknown type or a
                negative value is given.
        """
        if not fields:
            raise ValueError("No fields to update")
        invalid_fields = set(fields) - _ASSET_UPDATABLE_FIELDS
        if invalid_fields:
            raise ValueError(f"Unsupported field names: {invalid_fields}")
        if "type" in fields:
            self._check_type(fields["type"])
        if "current_value" in fields and _money(fields["current_value"]) < 0:
            raise ValueError("Asset value cannot be negative")

        names = sorted(fields)
        set_clause = ", ".join(f"{name} = ?" for name in names)
        params = [_to_db(fields[name]) for name in names]
        params.append(datetime.now().isoformat())
        params.append(asset_id)

        with self.db_manager.connect() as conn:
            cursor = conn.execute(
                f"UPDATE assets SET {set_clause}, updated_at = ? WHERE id = ?", params
            )
            conn.commit()
            return cursor.rowcount > 0

    def delete(self, asset_id: int) -> bool:
        """Delete an asset by ID."""
        with self.db_manager.connect() as conn:
            cursor = conn.execute("DELETE FROM assets WHERE id = ?", (asset_id,))
            conn.commit()
            return cursor.rowcount > 0

    def total_value(self) -> Decimal:
        """Sum of current asset values."""
        with self.db_manager.connect() as conn:
            rows = conn.execute("SELECT current_value FROM assets").fetchall()
        return sum((_money(row[0]) for row in rows), Decimal("0.00"))

    def _check_type(self, asset_type: str) -> None:
        if asset_type not in ASSET_TYPES:
            raise ValueError(
                f"Invalid asset type '{asset_type}'. Must be one of: {', '.join(ASSET_TYPES)}"
            )

    def _row_to_asset(self, row: tuple) -> Asset:
        return Asset(
            id=row[0],
            name=row[1],
            type=row[2],
            current_value=_money(row[3]),
            purchase_price=_money(row[4]) if row[4] is not None else None,
            purchase_date=date.fromisoformat(row[5]) if row[5] else None,
            notes=row[6],
        )
