"""
Connection Manager

Builds the StoreConnection for a StoreConfig and proves it is alive before
handing it out. Call once at startup and pass the result to whoever needs
it.
"""

import logging

from redis.asyncio import Redis, RedisCluster
from redis.asyncio.cluster import ClusterNode

from ..config.loader import StoreConfig, load_config
from ..config.settings import settings
from ..errors import StoreConnectionError
from .base import StoreConnection
from .cluster import ClusterStore
from .single import SingleNodeStore

logger = logging.getLogger(__name__)


# Keys are binary-safe; undecodable bytes become lone surrogates that
# encode back to the same bytes when the key is sent to the store
ENCODING_ERRORS = "surrogateescape"


def _timeouts() -> dict:
    """Driver timeout kwargs from settings (0 means leave unset)."""
    kwargs = {}
    if settings.SOCKET_TIMEOUT > 0:
        kwargs["socket_timeout"] = settings.SOCKET_TIMEOUT
    if settings.CONNECT_TIMEOUT > 0:
        kwargs["socket_connect_timeout"] = settings.CONNECT_TIMEOUT
    return kwargs


def build_single_client(config: StoreConfig) -> Redis:
    host, port = config.single_address()
    return Redis(
        host=host,
        port=port,
        password=config.password or None,
        db=config.db,
        decode_responses=True,
        encoding_errors=ENCODING_ERRORS,
        **_timeouts(),
    )


def build_cluster_client(config: StoreConfig) -> RedisCluster:
    # db has no meaning in cluster mode
    startup_nodes = [ClusterNode(host, port) for host, port in config.node_addresses()]
    return RedisCluster(
        startup_nodes=startup_nodes,
        password=config.password or None,
        decode_responses=True,
        encoding_errors=ENCODING_ERRORS,
        **_timeouts(),
    )


async def _check_alive(store: StoreConnection) -> StoreConnection:
    try:
        await store.ping()
    except StoreConnectionError:
        await store.close()
        raise
    return store


async def connect(config: StoreConfig) -> StoreConnection:
    """
    Connect to the store described by ``config``.

    Args:
        config: Loaded store configuration

    Returns:
        A live SingleNodeStore or ClusterStore

    Raises:
        StoreConnectionError: If the liveness probe fails
    """
    if config.is_cluster:
        store = ClusterStore(build_cluster_client(config))
        await _check_alive(store)
        logger.info(f"Connected to Redis in cluster mode ({len(store.masters())} masters)")
        return store

    store = SingleNodeStore(build_single_client(config), address=config.addr)
    await _check_alive(store)
    logger.info(f"Connected to Redis in single node mode ({config.addr}, db {config.db})")
    return store


async def open_store(path: str, name: str, fmt: str) -> StoreConnection:
    """
    Load the configuration file and connect.

    Raises:
        ConfigError: If the configuration cannot be loaded
        StoreConnectionError: If the liveness probe fails
    """
    return await connect(load_config(path, name, fmt))
