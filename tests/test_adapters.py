"""
Tests for database adapters, connection handling and queries.
"""

import asyncio
import threading
from datetime import datetime

import pytest

from py_odm import client as client_module
from py_odm.adapters.lsm import LsmAdapter
from py_odm.adapters.memory import MemoryAdapter
from py_odm.client import connect, disconnect, get_client
from py_odm.document.document import Document
from py_odm.document.query import matches
from py_odm.errors import ClientNotConnectedError, UnsupportedBackendError


class TestAdapterContract:
    """Test the operations every adapter provides."""

    async def test_insert_allocates_id(self, any_client):
        """Test inserting without an id allocates one."""
        doc_id = await any_client.insert_or_update("things", None, {"n": 1})

        assert isinstance(doc_id, str) and doc_id
        assert await any_client.find_by_id("things", doc_id) == {"n": 1, "_id": doc_id}

    async def test_update_upserts_at_id(self, any_client):
        """Test writing with an id replaces the record at that id."""
        doc_id = await any_client.insert_or_update("things", None, {"n": 1})

        assert await any_client.insert_or_update("things", doc_id, {"n": 2}) == doc_id
        assert await any_client.insert_or_update("things", "chosen", {"n": 3}) == "chosen"
        assert (await any_client.find_by_id("things", doc_id))["n"] == 2
        assert await any_client.count("things") == 2

    async def test_find_by_id_missing(self, any_client):
        """Test an unknown id returns None."""
        assert await any_client.find_by_id("things", "nope") is None

    async def test_find_one_and_find(self, any_client):
        """Test queries select matching records per collection."""
        for n in range(5):
            await any_client.insert_or_update("things", None, {"n": n})
        await any_client.insert_or_update("others", None, {"n": 1})

        assert (await any_client.find_one("things", {"n": 3}))["n"] == 3
        assert await any_client.find_one("things", {"n": 9}) is None
        assert len(await any_client.find("things", {"n": {"$gte": 2}})) == 3
        assert len(await any_client.find("things", limit=2)) == 2
        assert await any_client.count("others") == 1

    async def test_records_are_copies(self, client):
        """Test mutating a returned record does not change the store."""
        doc_id = await client.insert_or_update("things", None, {"tags": ["a"]})

        found = await client.find_by_id("things", doc_id)
        found["tags"].append("b")

        assert (await client.find_by_id("things", doc_id))["tags"] == ["a"]

    async def test_delete(self, any_client):
        """Test delete removes a record once."""
        doc_id = await any_client.insert_or_update("things", None, {"n": 1})

        assert await any_client.delete("things", doc_id) is True
        assert await any_client.delete("things", doc_id) is False
        assert await any_client.find_by_id("things", doc_id) is None

    async def test_drop_collection_and_database(self, any_client):
        """Test drop hooks remove records."""
        await any_client.insert_or_update("a", None, {"n": 1})
        await any_client.insert_or_update("b", None, {"n": 1})

        await any_client.drop_collection("a")
        assert await any_client.count("a") == 0
        assert await any_client.count("b") == 1

        await any_client.drop_database()
        assert await any_client.count("b") == 0


class TestLsmAdapter:
    """Test LSM-specific behaviour."""

    async def test_records_survive_reconnect(self, tmp_path):
        """Test data written before disconnect is read after reconnect."""
        url = f"lsm://{tmp_path / 'db'}"
        adapter = await connect(url)
        when = datetime(2022, 5, 6, 7, 8, 9, 10000)
        doc_id = await adapter.insert_or_update("things", None, {"when": when, "buf": b"\x01"})
        await disconnect()

        adapter = await connect(url)
        try:
            assert await adapter.find_by_id("things", doc_id) == {
                "when": when,
                "buf": b"\x01",
                "_id": doc_id,
            }
        finally:
            await disconnect()

    async def test_url_options(self, tmp_path):
        """Test query-string options reach the engine."""
        adapter = await LsmAdapter.connect(f"lsm://{tmp_path / 'db'}?memtable_limit=7")
        try:
            assert adapter.engine.memtable_limit == 7
            assert adapter.engine.dir == tmp_path / "db"
        finally:
            await adapter.close()

    async def test_compact_keeps_live_records(self, lsm_client):
        """Test compaction keeps every live record."""
        ids = [await lsm_client.insert_or_update("things", None, {"n": n}) for n in range(10)]
        await lsm_client.delete("things", ids[0])

        await lsm_client.compact()

        assert await lsm_client.count("things") == 9
        assert (await lsm_client.find_by_id("things", ids[5]))["n"] == 5

    async def test_engine_runs_off_the_event_loop(self, lsm_client, monkeypatch):
        """Test engine writes run in a worker thread, not on the loop thread."""
        threads = []
        put = lsm_client.engine.put

        def recording_put(key, value):
            threads.append(threading.get_ident())
            return put(key, value)

        monkeypatch.setattr(lsm_client.engine, "put", recording_put)
        await lsm_client.insert_or_update("things", None, {"n": 1})

        assert threads and threads[0] != threading.get_ident()

    async def test_concurrent_writes_are_serialized(self, lsm_client):
        """Test many concurrent saves all land in the store."""
        await asyncio.gather(
            *(lsm_client.insert_or_update("things", f"id{n}", {"n": n}) for n in range(20))
        )

        assert await lsm_client.count("things") == 20


class TestClient:
    """Test connect/get_client/disconnect."""

    async def test_connect_dispatches_on_scheme(self):
        """Test the URL scheme selects the adapter."""
        adapter = await connect("memory://")
        try:
            assert isinstance(adapter, MemoryAdapter)
            assert get_client() is adapter
        finally:
            await disconnect()

    async def test_unknown_scheme(self):
        """Test an unknown backend is rejected."""
        with pytest.raises(UnsupportedBackendError) as exc_info:
            await connect("nedb:///tmp/data")

        assert exc_info.value.scheme == "nedb"

    async def test_not_connected(self):
        """Test document operations need a client."""

        class Lonely(Document, collection="lonely"):
            name = str

        assert client_module._client is None
        with pytest.raises(ClientNotConnectedError):
            get_client()
        with pytest.raises(ClientNotConnectedError):
            await Lonely.create(name="x").save()

    async def test_disconnect_is_idempotent(self):
        """Test disconnecting twice is harmless."""
        await connect("memory://")
        await disconnect()
        await disconnect()

        assert client_module._client is None

    async def test_adapter_errors_propagate(self, client, monkeypatch):
        """Test adapter failures reach the caller unchanged."""

        class Thing(Document, collection="things"):
            n = int

        async def broken(*args, **kwargs):
            raise ConnectionError("backend down")

        monkeypatch.setattr(client, "insert_or_update", broken)

        with pytest.raises(ConnectionError, match="backend down"):
            await Thing.create(n=1).save()


class TestQueryMatching:
    """Test query operators."""

    DOC = {"n": 5, "name": "bob", "tags": ["a"], "missing": None}

    @pytest.mark.parametrize(
        "query, expected",
        [
            (None, True),
            ({}, True),
            ({"n": 5}, True),
            ({"n": 6}, False),
            ({"n": 5, "name": "bob"}, True),
            ({"n": {"$gt": 4, "$lt": 6}}, True),
            ({"n": {"$gte": 5, "$lte": 5}}, True),
            ({"n": {"$gt": 5}}, False),
            ({"n": {"$ne": 5}}, False),
            ({"name": {"$in": ["bob", "alice"]}}, True),
            ({"name": {"$eq": "alice"}}, False),
            ({"missing": {"$gt": 1}}, False),
            ({"name": {"$gt": 1}}, False),
            ({"tags": ["a"]}, True),
            ({"other": None}, True),
        ],
    )
    def test_matches(self, query, expected):
        """Test equality and comparison operators."""
        assert matches(self.DOC, query) is expected

    def test_unknown_operator(self):
        """Test unknown operators are rejected."""
        with pytest.raises(ValueError):
            matches(self.DOC, {"n": {"$regex": "x"}})
