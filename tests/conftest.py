"""
Pytest Configuration and Fixtures

This module provides shared fixtures and configuration for all tests.

The redis driver is replaced by small in-memory fakes implementing only
the surface KV-Scan uses: ping, scan, type, get, aclose and, for clusters,
initialize, get_primaries plus scan(target_nodes=...).
"""

import asyncio
import fnmatch
import json
from pathlib import Path
from typing import Dict, List, Optional

import pytest
import pytest_asyncio
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import ResponseError

from kvscan.config.loader import StoreConfig
from kvscan.store.cluster import ClusterStore
from kvscan.store.single import SingleNodeStore


# ============================================================================
# Driver Fakes
# ============================================================================

def type_of(value) -> str:
    """Redis type name for a Python value held by a fake."""
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "list"
    if isinstance(value, dict):
        return "hash"
    if isinstance(value, set):
        return "set"
    raise TypeError(f"unsupported fake value {value!r}")


class FakeRedis:
    """
    In-memory stand-in for redis.asyncio.Redis.

    SCAN walks the sorted keyspace: the cursor is an offset, COUNT keys are
    examined per round and MATCH filters them, so batches may be empty.

    Attributes:
        data: key -> value (str, list, dict or set)
        scan_cursors: Cursor passed to every SCAN round, in order
        fail_scan_on_round: 1-based SCAN round that raises, None for never
        ping_error: Exception raised by ping, None for success
    """

    def __init__(self, data: Optional[Dict] = None, name: str = "127.0.0.1:6379"):
        self.data = dict(data or {})
        self.name = name
        self.scan_cursors: List[int] = []
        self.fail_scan_on_round: Optional[int] = None
        self.ping_error: Optional[Exception] = None
        self.closed = False

    async def ping(self) -> bool:
        await asyncio.sleep(0)
        if self.ping_error is not None:
            raise self.ping_error
        return True

    async def scan(self, cursor: int = 0, match: str = None, count: int = None, **kwargs):
        # Yield so concurrent shard tasks interleave
        await asyncio.sleep(0)
        self.scan_cursors.append(cursor)
        if self.fail_scan_on_round is not None and len(self.scan_cursors) >= self.fail_scan_on_round:
            raise RedisConnectionError(f"connection lost to {self.name}")

        keys = sorted(self.data)
        count = count or 10
        window = keys[cursor:cursor + count]
        next_cursor = cursor + count if cursor + count < len(keys) else 0
        matched = [k for k in window if fnmatch.fnmatchcase(k, match or "*")]
        return next_cursor, matched

    async def type(self, key: str) -> str:
        await asyncio.sleep(0)
        if key not in self.data:
            return "none"
        return type_of(self.data[key])

    async def get(self, key: str) -> Optional[str]:
        await asyncio.sleep(0)
        value = self.data.get(key)
        if value is not None and not isinstance(value, str):
            raise ResponseError("WRONGTYPE Operation against a key holding the wrong kind of value")
        return value

    async def aclose(self) -> None:
        self.closed = True


class FakeNode:
    """Stand-in for redis.asyncio.cluster.ClusterNode."""

    def __init__(self, name: str):
        self.name = name

    def __repr__(self) -> str:
        return f"FakeNode({self.name})"


class FakeRedisCluster:
    """
    In-memory stand-in for redis.asyncio.RedisCluster.

    Each master is a FakeRedis holding its own slice of the keyspace.
    Targeted SCAN replies with ({node_name: next_cursor}, keys) like the
    real driver. Until initialize() has run, get_primaries() is empty.
    """

    def __init__(self, shards: Dict[str, FakeRedis], initialized: bool = True):
        self.shards = shards
        self.initialized = initialized
        self.initialize_calls = 0
        self.initialize_error: Optional[Exception] = None
        self.ping_error: Optional[Exception] = None
        self.closed = False

    async def initialize(self) -> "FakeRedisCluster":
        await asyncio.sleep(0)
        self.initialize_calls += 1
        if self.initialize_error is not None:
            raise self.initialize_error
        self.initialized = True
        return self

    def get_primaries(self) -> List[FakeNode]:
        if not self.initialized:
            return []
        return [FakeNode(name) for name in self.shards]

    async def ping(self) -> bool:
        await asyncio.sleep(0)
        if self.ping_error is not None:
            raise self.ping_error
        return True

    async def scan(self, cursor: int = 0, match: str = None, count: int = None, target_nodes=None, **kwargs):
        shard = self.shards[target_nodes.name]
        next_cursor, keys = await shard.scan(cursor=cursor, match=match, count=count)
        return {target_nodes.name: next_cursor}, keys

    def _owner(self, key: str) -> FakeRedis:
        for shard in self.shards.values():
            if key in shard.data:
                return shard
        return next(iter(self.shards.values()))

    async def type(self, key: str) -> str:
        return await self._owner(key).type(key)

    async def get(self, key: str) -> Optional[str]:
        return await self._owner(key).get(key)

    async def aclose(self) -> None:
        self.closed = True


class BatchRecorder:
    """Batch callback that records every batch it receives."""

    def __init__(self):
        self.batches: List[List[str]] = []

    def __call__(self, keys: List[str]) -> None:
        self.batches.append(list(keys))

    @property
    def keys(self) -> List[str]:
        return [key for batch in self.batches for key in batch]


# ============================================================================
# Fake Fixtures
# ============================================================================

@pytest.fixture
def fake_redis_factory():
    """Factory for FakeRedis instances."""
    return FakeRedis


@pytest.fixture
def fake_cluster_factory():
    """
    Factory for FakeRedisCluster.

    Usage:
        cluster = fake_cluster_factory({"n1:6379": {"a": "1"}, "n2:6379": {"b": "2"}})
    """
    def factory(shard_data: Dict[str, Dict], initialized: bool = True) -> FakeRedisCluster:
        return FakeRedisCluster({
            name: FakeRedis(data, name=name) for name, data in shard_data.items()
        }, initialized=initialized)
    return factory


@pytest.fixture
def recorder() -> BatchRecorder:
    """A fresh batch recorder."""
    return BatchRecorder()


# ============================================================================
# Store Fixtures
# ============================================================================

@pytest.fixture
def single_data() -> Dict:
    """Keyspace used by single node tests."""
    data = {"a:1": "one", "a:2": "two", "b:1": "bee"}
    data.update({f"user:{i:03d}": f"name{i}" for i in range(25)})
    data["list:1"] = ["x", "y"]
    data["hash:1"] = {"f": "v"}
    return data


@pytest.fixture
def single_store(single_data) -> SingleNodeStore:
    """SingleNodeStore over a populated FakeRedis."""
    return SingleNodeStore(FakeRedis(single_data), address="127.0.0.1:6379")


@pytest.fixture
def cluster_store(fake_cluster_factory) -> ClusterStore:
    """ClusterStore over three fake masters with disjoint keyspaces."""
    cluster = fake_cluster_factory({
        "10.0.0.1:7000": {f"user:{i}": f"v{i}" for i in range(0, 30, 3)},
        "10.0.0.2:7001": {f"user:{i}": f"v{i}" for i in range(1, 30, 3)},
        "10.0.0.3:7002": {**{f"user:{i}": f"v{i}" for i in range(2, 30, 3)}, "other:1": "x"},
    })
    return ClusterStore(cluster)


# ============================================================================
# Config Fixtures
# ============================================================================

@pytest.fixture
def write_config(tmp_path: Path):
    """
    Write a configuration file into a temp directory.

    Usage:
        path = write_config("redis.json", {"addr": "localhost:6379"})
    """
    def writer(file_name: str, content) -> Path:
        target = tmp_path / file_name
        if isinstance(content, str):
            target.write_text(content)
        else:
            target.write_text(json.dumps(content))
        return target
    return writer


@pytest.fixture
def single_config() -> StoreConfig:
    return StoreConfig(addr="127.0.0.1:6379", password="secret", db=2)


@pytest.fixture
def cluster_config() -> StoreConfig:
    return StoreConfig(is_cluster=True, nodes=("10.0.0.1:7000", "10.0.0.2:7001"), password="secret")


# ============================================================================
# Server Fixtures
# ============================================================================

class RespServer:
    """
    Minimal RESP2 server for driving a real redis.asyncio client.

    Holds raw bytes keys so replies can carry keys that are not valid
    UTF-8. SCAN returns the whole keyspace in one round.

    Attributes:
        data: bytes key -> bytes value
        commands: Every command received, as lists of bytes arguments
    """

    def __init__(self, data: Dict[bytes, bytes]):
        self.data = dict(data)
        self.commands: List[List[bytes]] = []
        self.port = 0
        self._server: Optional[asyncio.AbstractServer] = None

    @staticmethod
    def bulk(value: Optional[bytes]) -> bytes:
        if value is None:
            return b"$-1\r\n"
        return b"$%d\r\n%s\r\n" % (len(value), value)

    def reply(self, args: List[bytes]) -> bytes:
        command = args[0].upper()
        if command == b"PING":
            return b"+PONG\r\n"
        if command == b"SCAN":
            keys = sorted(self.data)
            return b"*2\r\n" + self.bulk(b"0") + b"*%d\r\n" % len(keys) + b"".join(self.bulk(k) for k in keys)
        if command == b"TYPE":
            return b"+string\r\n" if args[1] in self.data else b"+none\r\n"
        if command == b"GET":
            return self.bulk(self.data.get(args[1]))
        # CLIENT SETINFO and other handshake commands
        return b"+OK\r\n"

    async def handle_client(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        try:
            while True:
                header = await reader.readline()
                if not header:
                    break
                args = []
                for _ in range(int(header[1:])):
                    length = int((await reader.readline())[1:])
                    args.append((await reader.readexactly(length + 2))[:-2])
                self.commands.append(args)
                writer.write(self.reply(args))
                await writer.drain()
        except (ConnectionResetError, asyncio.IncompleteReadError):
            pass
        finally:
            writer.close()

    async def start(self) -> None:
        self._server = await asyncio.start_server(self.handle_client, "127.0.0.1", 0)
        self.port = self._server.sockets[0].getsockname()[1]

    async def stop(self) -> None:
        self._server.close()
        await self._server.wait_closed()


@pytest_asyncio.fixture
async def resp_server():
    """
    Start a RespServer holding one ASCII key and one non-UTF-8 key.

    Usage:
        store = await connect(StoreConfig(addr=f"127.0.0.1:{resp_server.port}"))
    """
    server = RespServer({b"ok1": b"plain", b"\xff\xfe": b"binary"})
    await server.start()
    yield server
    await server.stop()


# ============================================================================
# Pytest Configuration
# ============================================================================

def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests (need KVSCAN_TEST_REDIS)"
    )
