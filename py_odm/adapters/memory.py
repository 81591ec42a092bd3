import copy
import logging
from typing import Dict, List, Optional

from ..document.query import matches
from .base import DatabaseAdapter, Record

logger = logging.getLogger(__name__)


class MemoryAdapter(DatabaseAdapter):
    """Keeps collections in process memory; records are copied in and out."""

    def __init__(self):
        self.collections: Dict[str, Dict[str, Record]] = {}

    @classmethod
    async def connect(cls, url: str = "memory://", **options) -> "MemoryAdapter":
        return cls()

    def _collection(self, name: str) -> Dict[str, Record]:
        return self.collections.setdefault(name, {})

    @staticmethod
    def _out(doc_id: str, record: Record) -> Record:
        doc = copy.deepcopy(record)
        doc["_id"] = doc_id
        return doc

    async def insert_or_update(self, collection: str, doc_id: Optional[str], record: Record) -> str:
        if doc_id is None:
            doc_id = self.new_id()
        stored = copy.deepcopy(record)
        stored.pop("_id", None)
        self._collection(collection)[doc_id] = stored
        logger.debug("Stored %s:%s", collection, doc_id)
        return doc_id

    async def find_by_id(self, collection: str, doc_id: str) -> Optional[Record]:
        record = self._collection(collection).get(doc_id)
        return self._out(doc_id, record) if record is not None else None

    async def find(
        self, collection: str, query: Optional[Record] = None, limit: Optional[int] = None
    ) -> List[Record]:
        results = []
        for doc_id, record in self._collection(collection).items():
            doc = self._out(doc_id, record)
            if matches(doc, query):
                results.append(doc)
                if limit and len(results) >= limit:
                    break
        return results

    async def delete(self, collection: str, doc_id: str) -> bool:
        return self._collection(collection).pop(doc_id, None) is not None

    async def drop_collection(self, collection: str) -> None:
        self.collections.pop(collection, None)

    async def drop_database(self) -> None:
        self.collections.clear()
