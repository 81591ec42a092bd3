import abc
import uuid
from typing import Any, Dict, List, Optional


Record = Dict[str, Any]


class DatabaseAdapter(abc.ABC):
    """
    Storage backend used by Document.

    Records are flat dicts of field values. Records handed back by the
    adapter carry their id under "_id"; records passed in never do.
    """

    @classmethod
    @abc.abstractmethod
    async def connect(cls, url: str, **options) -> "DatabaseAdapter":
        ...

    @staticmethod
    def new_id() -> str:
        return str(uuid.uuid4())

    @abc.abstractmethod
    async def insert_or_update(self, collection: str, doc_id: Optional[str], record: Record) -> str:
        """Insert when doc_id is None (allocating an id), upsert at doc_id otherwise."""

    @abc.abstractmethod
    async def find_by_id(self, collection: str, doc_id: str) -> Optional[Record]:
        ...

    @abc.abstractmethod
    async def find(
        self, collection: str, query: Optional[Record] = None, limit: Optional[int] = None
    ) -> List[Record]:
        ...

    async def find_one(self, collection: str, query: Optional[Record] = None) -> Optional[Record]:
        docs = await self.find(collection, query, limit=1)
        return docs[0] if docs else None

    async def count(self, collection: str, query: Optional[Record] = None) -> int:
        return len(await self.find(collection, query))

    @abc.abstractmethod
    async def delete(self, collection: str, doc_id: str) -> bool:
        ...

    @abc.abstractmethod
    async def drop_collection(self, collection: str) -> None:
        ...

    @abc.abstractmethod
    async def drop_database(self) -> None:
        ...

    async def close(self) -> None:
        pass
