"""
KV-Scan Process Settings

Process-wide knobs read from the environment. Connection parameters for the
store itself live in the configuration file (see ``loader.py``), not here.
"""

import os
from dataclasses import dataclass


@dataclass
class Settings:
    """Library and entry point settings."""

    # Scan settings
    SCAN_COUNT: int = int(os.environ.get("KVSCAN_SCAN_COUNT", "100"))

    # Driver timeouts in seconds (0 means no timeout)
    SOCKET_TIMEOUT: float = float(os.environ.get("KVSCAN_SOCKET_TIMEOUT", "0"))
    CONNECT_TIMEOUT: float = float(os.environ.get("KVSCAN_CONNECT_TIMEOUT", "0"))

    # Logging settings
    DEBUG: bool = os.environ.get("KVSCAN_DEBUG", "false").lower() == "true"
    LOG_LEVEL: str = os.environ.get("KVSCAN_LOG_LEVEL", "INFO")


# Global settings instance
settings = Settings()
