from typing import Any, Optional, List

from toolshed.handle import QueryHandle


class ItemsRepository:
    """
    Repository for item data access.

    Bound to one QueryHandle for its whole life. It never knows whether
    that handle is the pool or a transaction scope.
    """

    table = "items"

    def __init__(self, handle: QueryHandle):
        self.handle = handle

    def find(self) -> List[dict]:
        """List all items ordered by id."""
        return self.handle.select(self.table)

    def find_by_id(self, item_id: int) -> Optional[dict]:
        """Get item by ID."""
        rows = self.handle.select(self.table, {"id": item_id})
        return rows[0] if rows else None

    def create(self, item: dict[str, Any]) -> dict:
        """Create a new item and return the stored row."""
        item_id = self.handle.insert(self.table, item)
        return self.find_by_id(item_id)

    def update_by_id(self, item_id: int, props: dict[str, Any]) -> Optional[dict]:
        """Update an item and return the stored row, or None if it does not exist."""
        self.handle.update(self.table, props, {"id": item_id})
        return self.find_by_id(item_id)

    def delete_by_id(self, item_id: int) -> bool:
        """Delete an item. Returns True if a row was removed."""
        return bool(self.handle.delete(self.table, {"id": item_id}))
