"""Configuration module for KV-Scan."""

from .loader import StoreConfig, load_config, parse_address
from .settings import settings

__all__ = ["StoreConfig", "load_config", "parse_address", "settings"]
