"""
Connection handling.

``connect(url)`` picks an adapter from the URL scheme and makes it the client
used by every Document operation until ``disconnect()``:

    memory://                     in-process, nothing persisted
    lsm://./db?memtable_limit=500 LSM engine in ./db
"""

import logging
from typing import Dict, Optional, Type

from .adapters.base import DatabaseAdapter
from .adapters.lsm import LsmAdapter
from .adapters.memory import MemoryAdapter
from .errors import ClientNotConnectedError, UnsupportedBackendError

logger = logging.getLogger(__name__)

ADAPTERS: Dict[str, Type[DatabaseAdapter]] = {
    "memory": MemoryAdapter,
    "lsm": LsmAdapter,
}

_client: Optional[DatabaseAdapter] = None


async def connect(url: str, **options) -> DatabaseAdapter:
    global _client
    scheme = url.split("://", 1)[0] if "://" in url else ""
    adapter_cls = ADAPTERS.get(scheme)
    if adapter_cls is None:
        raise UnsupportedBackendError(url, scheme)
    _client = await adapter_cls.connect(url, **options)
    logger.info("Connected to %s", url)
    return _client


def get_client() -> DatabaseAdapter:
    if _client is None:
        raise ClientNotConnectedError()
    return _client


async def disconnect() -> None:
    global _client
    if _client is None:
        return
    client, _client = _client, None
    await client.close()
    logger.info("Disconnected %s", type(client).__name__)
