"""
Store Connection Contract

``StoreConnection`` is the capability every connection mode provides:
liveness probe, keyspace scan, key type and key value lookups. Callers
hold a ``StoreConnection`` and never branch on single node vs cluster.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, List

from ..config.settings import settings
from ..errors import KeyNotFoundError, StoreConnectionError, StoreError
from .scanner import STORE_ERRORS, BatchCallback

logger = logging.getLogger(__name__)

# TYPE reply for a key that does not exist
TYPE_NONE = "none"


class StoreConnection(ABC):
    """
    Connection to the store, shared by every caller.

    The wrapped driver client is safe for concurrent use, so a single
    instance can serve concurrent scans and lookups without locking.

    Usage:
        async with await connect(config) as store:
            await store.scan("user:*", 100, handle_keys)
            kind = await store.type("user:1")

    Attributes:
        mode: "single" or "cluster"
    """

    mode = ""

    def __init__(self, client: Any):
        """
        Args:
            client: The redis.asyncio client this connection wraps
        """
        self._client = client
        self._closed = False

    @property
    def client(self) -> Any:
        """The underlying driver client."""
        return self._client

    @property
    def is_cluster(self) -> bool:
        return self.mode == "cluster"

    async def ping(self) -> None:
        """
        Round-trip liveness probe.

        Raises:
            StoreConnectionError: If the store is unreachable or rejects us
        """
        try:
            await self._client.ping()
        except STORE_ERRORS as e:
            raise StoreConnectionError(f"failed to connect to Redis ({self.mode}): {e}") from e

    @abstractmethod
    def masters(self) -> List[str]:
        """Names of the nodes a scan will walk."""

    @abstractmethod
    async def scan(self, pattern: str, count: int, on_batch: BatchCallback) -> None:
        """
        Walk the whole keyspace and hand each batch of matching keys to
        ``on_batch``.

        Args:
            pattern: Glob-style MATCH pattern
            count: COUNT hint per round, None for settings.SCAN_COUNT
            on_batch: Callback, raise from it to abort the scan

        Raises:
            StoreError: On a store failure
        """

    async def type(self, key: str) -> str:
        """
        Get the type name of a key.

        Raises:
            KeyNotFoundError: If the key does not exist
            StoreError: On any other failure
        """
        try:
            result = await self._client.type(key)
        except STORE_ERRORS as e:
            raise StoreError(f"failed to get type of key {key}: {e}") from e
        if result == TYPE_NONE:
            raise KeyNotFoundError(key)
        return result

    async def get(self, key: str) -> str:
        """
        Get the string value of a key.

        A missing key is reported as a plain StoreError.

        Raises:
            StoreError: On any failure
        """
        try:
            result = await self._client.get(key)
        except STORE_ERRORS as e:
            raise StoreError(f"failed to get value of key {key}: {e}") from e
        if result is None:
            raise StoreError(f"failed to get value of key {key}: redis: nil")
        return result

    async def close(self) -> None:
        """Close the driver client. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        await self._client.aclose()
        logger.debug(f"Closed {self.mode} connection")

    def _count(self, count: int = None) -> int:
        count = count if count is not None else settings.SCAN_COUNT
        if count <= 0:
            raise ValueError(f"count must be positive, got {count}")
        return count

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
