"""Category service for database operations."""

from typing import List, Optional
from models.category import Category

_CATEGORY_SELECT_FIELDS = "id, name, color, icon, parent_id"


class CategoryService:
    """Service for managing categories.

    The category set is runtime configuration: callers that validate a
    category name should call names() for each run instead of caching it.
    """

    def __init__(self, db_manager):
        """Initialize the category service.

        Args:
            db_manager: Database manager instance for database operations.
        """
        self.db_manager = db_manager

    def find_all(self) -> List[Category]:
        """Get all categories from the database.

        Returns:
            List of Category objects, ordered by name.
        """
        with self.db_manager.connect() as conn:
            cursor = conn.execute(
                f"SELECT {_CATEGORY_SELECT_FIELDS} FROM categories ORDER BY name"
            )
            return [self._row_to_category(row) for row in cursor.fetchall()]

    def names(self) -> List[str]:
        """Get the names of all configured categories, ordered by name."""
        with self.db_manager.connect() as conn:
            cursor = conn.execute("SELECT name FROM categories ORDER BY name")
            return [row[0] for row in cursor.fetchall()]

    def find(self, category_id: int) -> Optional[Category]:
        """Get a single category by ID.

        Args:
            category_id: The category ID to find.

        Returns:
            Category object if found, None otherwise.
        """
        with self.db_manager.connect() as conn:
            cursor = conn.execute(
                f"SELECT {_CATEGORY_SELECT_FIELDS} FROM categories WHERE id = ?",
                (category_id,),
            )
            row = cursor.fetchone()
            return self._row_to_category(row) if row else None

    def find_by_name(self, name: str) -> Optional[Category]:
        """Get a single category by name.

        Args:
            name: The category name to find.

        Returns:
            Category object if found, None otherwise.
        """
        with self.db_manager.connect() as conn:
            cursor = conn.execute(
                f"SELECT {_CATEGORY_SELECT_FIELDS} FROM categories WHERE name = ?",
                (name,),
            )
            row = cursor.fetchone()
            return self._row_to_category(row) if row else None

    def create(
        self,
        name: str,
        color: Optional[str] = None,
        icon: Optional[str] = None,
        parent_id: Optional[int] = None,
    ) -> Category:
        """Create a new category.

        Args:
            name: Category name (must be unique).
            color: Optional display color.
            icon: Optional icon name.
            parent_id: Optional parent category ID for hierarchical categories.

        Returns:
            The created Category object with id populated.

        Raises:
            ValueError: If the name is empty.
            Exception: If category creation fails (e.g., duplicate name).
        """
        name = name.strip()
        if not name:
            raise ValueError("Category name cannot be empty")

        with self.db_manager.connect() as conn:
            cursor = conn.execute(
                "INSERT INTO categories (name, color, icon, parent_id) VALUES (?, ?, ?, ?)",
                (name, color, icon, parent_id),
            )
            conn.commit()

            return Category(
                id=cursor.lastrowid,
                name=name,
                color=color,
                icon=icon,
                parent_id=parent_id,
            )

    def transaction_count(self, name: str) -> int:
        """Count transactions currently tagged with a category name."""
        with self.db_manager.connect() as conn:
            cursor = conn.execute(
                "SELECT COUNT(*) FROM transactions WHERE category = ?", (name,)
            )
            return cursor.fetchone()[0]

    def delete(self, category_id: int) -> int:
        """Delete a category and clear it from the transactions that use it.

        Both writes happen in one commit.

        Args:
            category_id: The category ID to delete.

        Returns:
            Number of transactions whose category was cleared.

        Raises:
            ValueError: If the category does not exist.
        """
        category = self.find(category_id)
        if category is None:
            raise ValueError(f"Category with ID {category_id} not found")

        with self.db_manager.connect() as conn:
            try:
                cursor = conn.execute(
                    "UPDATE transactions SET category = NULL, subcategory = NULL WHERE category = ?",
                    (category.name,),
                )
                cleared = cursor.rowcount
                conn.execute("DELETE FROM categories WHERE id = ?", (category_id,))
                conn.commit()
            except Exception:
                conn.rollback()
                raise

        return cleared

    def _row_to_category(self, row: tuple) -> Category:
        return Category(
            id=row[0], name=row[1], color=row[2], icon=row[3], parent_id=row[4]
        )
