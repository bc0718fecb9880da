"""
Cluster Store Connection

Scans fan out over every master shard. Each shard keeps its own cursor and
runs in its own task (see ``scanner.scan_shards``). Type and value lookups
are routed by key slot inside the driver.
"""

import logging
from typing import Dict, List

from ..errors import StoreError
from .base import StoreConnection
from .scanner import STORE_ERRORS, BatchCallback, PageFetcher, scan_shards

logger = logging.getLogger(__name__)


class ClusterStore(StoreConnection):
    """StoreConnection over a ``redis.asyncio.RedisCluster`` client."""

    mode = "cluster"

    def masters(self) -> List[str]:
        """Names (``host:port``) of the current master shards."""
        return [node.name for node in self._client.get_primaries()]

    def _page_fetcher(self, node, pattern: str, count: int) -> PageFetcher:
        """
        Build a fetcher that runs SCAN on one master only.

        When targeted at a single node the driver replies with
        ({node_name: next_cursor}, keys).
        """
        async def fetch_page(cursor: int):
            cursors, keys = await self._client.scan(
                cursor=cursor, match=pattern, count=count, target_nodes=node
            )
            return cursors[node.name], keys

        return fetch_page

    async def scan(self, pattern: str, count: int, on_batch: BatchCallback) -> None:
        count = self._count(count)

        # The primaries list stays empty until the client has loaded the slot
        # map. initialize() is a no-op once that has happened.
        try:
            await self._client.initialize()
        except STORE_ERRORS as e:
            logger.error(f"Error loading cluster topology: {e}")
            raise StoreError(f"failed to load cluster topology: {e}") from e

        shards: Dict[str, PageFetcher] = {
            node.name: self._page_fetcher(node, pattern, count)
            for node in self._client.get_primaries()
        }
        if not shards:
            logger.warning("No master shards known, nothing to scan")
            return

        logger.debug(f"Scanning {len(shards)} masters for {pattern!r} (count={count})")
        await scan_shards(shards, on_batch)
