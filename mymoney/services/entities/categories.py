"""Category rows <-> Category models."""

from typing import Optional, Union

from mymoney.models.ledger import Category, TransactionType
from mymoney.services.storage import NotFoundError, RemoteStoreInterface, Row
from mymoney.validation import ValidationError


TABLE = "categories"


def row_to_category(row: Row) -> Category:
    return Category(
        id=row["id"],
        name=row["name"],
        type=TransactionType(row["type"]),
    )


class CategoryService:
    """
    CRUD for the categories table.
    
    Names are unique per (user, name, type); the check is
    case-insensitive so "food" and "Food" cannot coexist.
    """
    
    def __init__(self, store: RemoteStoreInterface):
        self._store = store
    
    async def list_categories(self, user_id: str) -> list[Category]:
        rows = await self._store.select(TABLE, {"user_id": user_id}, order_by="name")
        return [row_to_category(row) for row in rows]
    
    async def get_category(self, user_id: str, category_id: str) -> Optional[Category]:
        rows = await self._store.select(
            TABLE, {"user_id": user_id, "id": category_id}, limit=1
        )
        return row_to_category(rows[0]) if rows else None
    
    async def find_category(
        self,
        user_id: str,
        name: str,
        category_type: Union[TransactionType, str],
    ) -> Optional[Category]:
        kind = TransactionType(category_type)
        wanted = name.strip().lower()
        for category in await self.list_categories(user_id):
            if category.type == kind and category.name.lower() == wanted:
                return category
        return None
    
    async def _ensure_unique(
        self,
        user_id: str,
        name: str,
        category_type: TransactionType,
        exclude_id: Optional[str] = None,
    ) -> None:
        existing = await self.find_category(user_id, name, category_type)
        if existing is not None and existing.id != exclude_id:
            raise ValidationError.single(
                "name",
                "duplicate",
                f"A {category_type.value} category named '{existing.name}' already exists",
            )
    
    async def create_category(
        self,
        user_id: str,
        name: str,
        category_type: Union[TransactionType, str],
    ) -> Category:
        kind = TransactionType(category_type)
        name = name.strip()
        if not name:
            raise ValidationError.single("name", "missing", "Category name is required")
        await self._ensure_unique(user_id, name, kind)
        
        row = await self._store.insert(TABLE, {
            "user_id": user_id,
            "name": name,
            "type": kind.value,
        })
        return row_to_category(row)
    
    async def update_category(
        self,
        user_id: str,
        category_id: str,
        name: Optional[str] = None,
        category_type: Optional[Union[TransactionType, str]] = None,
    ) -> Category:
        current = await self.get_category(user_id, category_id)
        if current is None:
            raise NotFoundError(f"Category not found: {category_id}")
        
        new_name = name.strip() if name is not None else current.name
        new_type = TransactionType(category_type) if category_type else current.type
        if not new_name:
            raise ValidationError.single("name", "missing", "Category name is required")
        await self._ensure_unique(user_id, new_name, new_type, exclude_id=category_id)
        
        row = await self._store.update(TABLE, category_id, {
            "name": new_name,
            "type": new_type.value,
        })
        return row_to_category(row)
    
    async def delete_category(self, category_id: str) -> bool:
        return await self._store.delete(TABLE, category_id)
