"""
ControlRepository

Cosmos DB operations for the 'controls' collection.

Specialized Methods:
- get_by_category(category): Controls in one category (single partition)
- get_active(): Controls not marked deprecated
"""

from smartoffice.data.context import StoreContext
from smartoffice.data.query import field
from smartoffice.data.repository import DocumentRepository
from smartoffice.models.controls import ControlCategory, ControlListEntry


class ControlRepository(DocumentRepository[ControlListEntry]):
    collection_name = "controls"

    def __init__(self, context: StoreContext, **options):
        options.setdefault("partition_key_path", "/category")
        super().__init__(ControlListEntry, context, self.collection_name, **options)

    async def get_by_category(self, category: ControlCategory) -> list[ControlListEntry]:
        return await self.query(field("category") == category)

    async def get_active(self) -> list[ControlListEntry]:
        # Older catalog rows have no deprecated flag at all.
        return await self.query((field("deprecated") == False) | (field("deprecated") == None))  # noqa: E711, E712
