"""
Store module for KV-Scan.

This module provides:
- The StoreConnection contract and its single node / cluster implementations
- Cursor scanning with per-shard fan-out
- Connection setup with a liveness probe
"""

from .base import StoreConnection
from .cluster import ClusterStore
from .manager import connect, open_store
from .scanner import scan_cursor, scan_shards
from .single import SingleNodeStore

__all__ = [
    "StoreConnection",
    "SingleNodeStore",
    "ClusterStore",
    "connect",
    "open_store",
    "scan_cursor",
    "scan_shards",
]
