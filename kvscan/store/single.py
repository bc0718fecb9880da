"""Single node store connection."""

import logging
from typing import List

from .base import StoreConnection
from .scanner import BatchCallback, scan_cursor

logger = logging.getLogger(__name__)


class SingleNodeStore(StoreConnection):
    """StoreConnection over one ``redis.asyncio.Redis`` client."""

    mode = "single"

    def __init__(self, client, address: str = ""):
        super().__init__(client)
        self.address = address

    def masters(self) -> List[str]:
        return [self.address]

    async def scan(self, pattern: str, count: int, on_batch: BatchCallback) -> None:
        count = self._count(count)

        async def fetch_page(cursor: int):
            return await self._client.scan(cursor=cursor, match=pattern, count=count)

        logger.debug(f"Scanning {self.address} for {pattern!r} (count={count})")
        await scan_cursor(fetch_page, on_batch, label=self.address or self.mode)
