"""
Test configuration and fixtures
"""

import pytest

from py_odm.client import connect, disconnect


@pytest.fixture
async def client():
    """Connect a fresh in-memory database for each test"""
    adapter = await connect("memory://")
    yield adapter
    await adapter.drop_database()
    await disconnect()


@pytest.fixture
async def lsm_client(tmp_path):
    """Connect an LSM-backed database stored under tmp_path"""
    adapter = await connect(f"lsm://{tmp_path / 'db'}?memtable_limit=4")
    yield adapter
    await adapter.drop_database()
    await disconnect()


@pytest.fixture(params=["memory", "lsm"])
async def any_client(request, tmp_path):
    """Run a test against every bundled adapter"""
    if request.param == "memory":
        adapter = await connect("memory://")
    else:
        adapter = await connect(f"lsm://{tmp_path / 'db'}?memtable_limit=4")
    yield adapter
    await adapter.drop_database()
    await disconnect()
