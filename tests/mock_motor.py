"""
Mock motor objects shared by the test suite.
"""

from typing import Any, Dict, List, Optional
from unittest.mock import AsyncMock, MagicMock

from motor.motor_asyncio import AsyncIOMotorCollection


class MockCursor:
    """Async cursor over a fixed list of documents."""

    def __init__(self, documents: List[Dict[str, Any]]):
        self._documents = list(documents)
        self.to_list = AsyncMock(side_effect=self._to_list)

    async def _to_list(self, length: Optional[int] = None) -> List[Dict[str, Any]]:
        if length is None:
            return list(self._documents)
        return self._documents[:length]

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for document in self._documents:
            yield document


def make_collection(name: str, documents: Optional[List[Dict[str, Any]]] = None) -> MagicMock:
    """Create a mock motor collection whose find() returns the given documents."""
    collection = MagicMock(spec=AsyncIOMotorCollection)
    collection.name = name
    collection.find = MagicMock(side_effect=lambda *args, **kwargs: MockCursor(documents or []))
    collection.find_one = AsyncMock(return_value=None)
    collection.insert_one = AsyncMock(return_value=MagicMock(inserted_id="test_id"))
    collection.insert_many = AsyncMock(return_value=MagicMock(inserted_ids=["id1", "id2"]))
    collection.replace_one = AsyncMock(return_value=MagicMock(modified_count=1, upserted_id=None))
    collection.update_many = AsyncMock(return_value=MagicMock(modified_count=2))
    collection.delete_one = AsyncMock(return_value=MagicMock(deleted_count=1))
    collection.delete_many = AsyncMock(return_value=MagicMock(deleted_count=2))
    collection.count_documents = AsyncMock(return_value=0)
    collection.bulk_write = AsyncMock(return_value=MagicMock(inserted_count=0, upserted_count=0))
    return collection
