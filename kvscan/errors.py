"""
Error taxonomy for KV-Scan.

Initialization failures (``ConfigError``, ``StoreConnectionError``) are fatal
to the host. ``StoreError`` and ``KeyNotFoundError`` are raised by scans and
lookups. Nothing here is retried.
"""


class KVScanError(Exception):
    """Base class for every error raised by this package."""


class ConfigError(KVScanError):
    """The configuration file is missing, unreadable or malformed."""


class StoreConnectionError(KVScanError):
    """The liveness probe against the store did not succeed."""


class StoreError(KVScanError):
    """A transport or protocol failure while talking to the store."""


class KeyNotFoundError(StoreError):
    """The key does not exist. Only raised by type lookups."""

    def __init__(self, key: str):
        super().__init__(f"key {key} does not exist")
        self.key = key
