"""
Keyspace Scanner Module

Implements cursor based keyspace iteration on top of the store's SCAN
command.

- ``scan_cursor()`` walks one node: start at cursor 0, hand every batch to
  the callback, stop when the store hands back cursor 0.
- ``scan_shards()`` runs one ``scan_cursor()`` task per master shard and
  joins them. The first failure wins; later failures are only logged.

Error policy is fail-fast: a store error or a callback exception ends that
node's loop immediately. Nothing is retried.
"""

import asyncio
import inspect
import logging
from typing import Awaitable, Callable, Dict, List, Optional, Tuple, Union

from redis.exceptions import RedisClusterException, RedisError

from ..errors import StoreError

logger = logging.getLogger(__name__)


# Driver failures that count as a StoreError
STORE_ERRORS = (RedisError, RedisClusterException, OSError, UnicodeError)

# Callback receiving each batch of keys; may be a coroutine function
BatchCallback = Callable[[List[str]], Union[None, Awaitable[None]]]

# Fetches one page: cursor -> (next_cursor, keys)
PageFetcher = Callable[[int], Awaitable[Tuple[int, List[str]]]]

# Cursor value that starts a scan and signals its end
CURSOR_START = 0
CURSOR_DONE = 0


async def deliver(on_batch: BatchCallback, keys: List[str]) -> None:
    """Invoke the batch callback, awaiting it if it is a coroutine."""
    result = on_batch(keys)
    if inspect.isawaitable(result):
        await result


async def scan_cursor(fetch_page: PageFetcher, on_batch: BatchCallback, label: str = "node") -> int:
    """
    Iterate the keyspace of a single node.

    Args:
        fetch_page: Coroutine function issuing one SCAN round
        on_batch: Callback invoked with every batch, including empty ones
        label: Node name used in log messages and errors

    Returns:
        Number of keys delivered to the callback

    Raises:
        StoreError: If the store fails to return a batch
        Exception: Whatever the callback raised, unchanged
    """
    cursor = CURSOR_START
    rounds = 0
    delivered = 0

    while True:
        try:
            cursor, keys = await fetch_page(cursor)
        except STORE_ERRORS as e:
            logger.error(f"Error scanning keys on {label}: {e}")
            raise StoreError(f"failed to scan keys on {label}: {e}") from e

        rounds += 1
        delivered += len(keys)
        logger.debug(f"SCAN round {rounds} on {label}: {len(keys)} keys, next cursor {cursor}")

        await deliver(on_batch, keys)

        if int(cursor) == CURSOR_DONE:
            logger.info(f"Scan completed on {label}: {delivered} keys in {rounds} rounds")
            return delivered


class FirstError:
    """
    Write-once slot for the first failure seen across shard workers.

    Which shard's error lands here first is decided by the scheduler and is
    not deterministic when several shards fail.
    """

    def __init__(self):
        self._lock = asyncio.Lock()
        self._error: Optional[BaseException] = None
        self._shard: Optional[str] = None
        self.dropped = 0

    @property
    def error(self) -> Optional[BaseException]:
        return self._error

    @property
    def shard(self) -> Optional[str]:
        return self._shard

    async def record(self, shard: str, error: BaseException) -> bool:
        """
        Record a shard failure.

        Returns:
            True if this error is now the one reported, False if dropped
        """
        async with self._lock:
            if self._error is None:
                self._error = error
                self._shard = shard
                logger.error(f"Scan failed on shard {shard}: {error}")
                return True
            self.dropped += 1
            logger.error(f"Scan also failed on shard {shard} (not reported): {error}")
            return False


async def scan_shards(shards: Dict[str, PageFetcher], on_batch: BatchCallback) -> None:
    """
    Scan every shard concurrently, one task per shard.

    All tasks are joined before returning. A failing shard does not stop
    the others. The callback is called from several tasks and gets no
    ordering guarantee across shards.

    Args:
        shards: Shard name -> page fetcher for that shard
        on_batch: Callback invoked with every batch from every shard

    Raises:
        StoreError or the callback's exception: The first failure recorded
    """
    first_error = FirstError()

    async def worker(shard: str, fetch_page: PageFetcher) -> None:
        try:
            await scan_cursor(fetch_page, on_batch, label=shard)
        except Exception as e:
            await first_error.record(shard, e)

    tasks = [
        asyncio.create_task(worker(shard, fetch_page), name=f"scan:{shard}")
        for shard, fetch_page in shards.items()
    ]
    logger.debug(f"Started {len(tasks)} shard scan tasks")

    try:
        await asyncio.gather(*tasks)
    finally:
        # Cancelled from outside: make sure no worker outlives the call
        for task in tasks:
            if not task.done():
                task.cancel()

    if first_error.error is not None:
        raise first_error.error
