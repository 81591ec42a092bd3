import asyncio
import logging
from typing import Any, Callable, List, Optional
from urllib.parse import parse_qsl

from ..document.query import matches
from ..storage import codec
from ..storage.lsm import LSMEngine
from .base import DatabaseAdapter, Record

logger = logging.getLogger(__name__)


class LsmAdapter(DatabaseAdapter):
    """
    Stores every collection in one LSMEngine.

    A record lives under the key "<collection>:<id>" and is stored as JSON
    (see py_odm.storage.codec for dates and bytes). Engine calls block on
    file I/O and fsync, so they run in a worker thread, one at a time.
    """

    def __init__(self, engine: LSMEngine):
        self.engine = engine
        self._lock = asyncio.Lock()

    @classmethod
    async def connect(cls, url: str, **options) -> "LsmAdapter":
        """
        url example:
            lsm://./db?memtable_limit=500
        """
        location = url.split("://", 1)[-1]
        data_dir, _, query = location.partition("?")
        params = dict(parse_qsl(query))
        params.update(options)
        if "memtable_limit" in params:
            params["memtable_limit"] = int(params["memtable_limit"])
        engine = await asyncio.to_thread(LSMEngine, data_dir or ".", **params)
        return cls(engine)

    async def _run(self, func: Callable, *args) -> Any:
        async with self._lock:
            return await asyncio.to_thread(func, *args)

    @staticmethod
    def _k(collection: str, doc_id: str) -> str:
        return f"{collection}:{doc_id}"

    def _find(self, collection: str, query: Optional[Record], limit: Optional[int]) -> List[Record]:
        prefix = f"{collection}:"
        results = []
        for key, raw in self.engine.scan(prefix):
            doc = codec.loads(raw)
            doc["_id"] = key[len(prefix):]
            if matches(doc, query):
                results.append(doc)
                if limit and len(results) >= limit:
                    break
        return results

    def _delete_prefix(self, prefix: str) -> None:
        for key, _ in list(self.engine.scan(prefix)):
            self.engine.delete(key)

    async def insert_or_update(self, collection: str, doc_id: Optional[str], record: Record) -> str:
        if doc_id is None:
            doc_id = self.new_id()
        stored = {k: v for k, v in record.items() if k != "_id"}
        await self._run(self.engine.put, self._k(collection, doc_id), codec.dumps(stored))
        logger.debug("Stored %s:%s", collection, doc_id)
        return doc_id

    async def find_by_id(self, collection: str, doc_id: str) -> Optional[Record]:
        raw = await self._run(self.engine.get, self._k(collection, doc_id))
        if raw is None:
            return None
        doc = codec.loads(raw)
        doc["_id"] = doc_id
        return doc

    async def find(
        self, collection: str, query: Optional[Record] = None, limit: Optional[int] = None
    ) -> List[Record]:
        return await self._run(self._find, collection, query, limit)

    async def delete(self, collection: str, doc_id: str) -> bool:
        key = self._k(collection, doc_id)
        if await self._run(self.engine.get, key) is None:
            return False
        await self._run(self.engine.delete, key)
        return True

    async def drop_collection(self, collection: str) -> None:
        await self._run(self._delete_prefix, f"{collection}:")

    async def drop_database(self) -> None:
        await self._run(self._delete_prefix, "")

    async def compact(self) -> None:
        await self._run(self.engine.flush)
        await self._run(self.engine.compact)

    async def close(self) -> None:
        await self._run(self.engine.close)
