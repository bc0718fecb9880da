"""
KV-Scan: Keyspace scanning over Redis

Connects to a single Redis node or a Redis Cluster from a configuration
file and walks the keyspace batch by batch, fanning out across every master
in cluster mode.
"""

from .config.loader import StoreConfig, load_config
from .errors import (
    ConfigError,
    KeyNotFoundError,
    KVScanError,
    StoreConnectionError,
    StoreError,
)
from .store import ClusterStore, SingleNodeStore, StoreConnection, connect, open_store

__version__ = "1.0.0"

__all__ = [
    "StoreConfig",
    "load_config",
    "connect",
    "open_store",
    "StoreConnection",
    "SingleNodeStore",
    "ClusterStore",
    "KVScanError",
    "ConfigError",
    "StoreConnectionError",
    "StoreError",
    "KeyNotFoundError",
]
