"""
Store Configuration Loader

Reads the connection parameters for the store from a configuration file.

File layout (JSON shown, TOML and YAML use the same keys):

    {
        "is_cluster": false,
        "nodes": ["10.0.0.1:6379", "10.0.0.2:6379"],
        "addr": "localhost:6379",
        "password": "",
        "db": 0
    }

- ``nodes`` is only used in cluster mode, ``addr`` and ``db`` only in
  single node mode.
- Unknown keys are ignored and missing keys fall back to defaults.
"""

import json
import logging
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Tuple

import yaml

from ..errors import ConfigError

logger = logging.getLogger(__name__)


# Supported formats: format name -> file extension
SUPPORTED_FORMATS: Dict[str, str] = {
    "json": ".json",
    "toml": ".toml",
    "yaml": ".yaml",
    "yml": ".yml",
}

DEFAULT_ADDR = "localhost:6379"


def parse_address(address: str) -> Tuple[str, int]:
    """
    Split a ``host:port`` address.

    Args:
        address: Address string, IPv6 hosts may be bracketed (``[::1]:6379``)

    Returns:
        Tuple of (host, port)

    Raises:
        ConfigError: If the address has no port or the port is not a number
    """
    host, sep, port = address.rpartition(":")
    if not sep or not host or not port.isdigit():
        raise ConfigError(f"invalid address {address!r}, expected host:port")
    return host.strip("[]"), int(port)


@dataclass(frozen=True)
class StoreConfig:
    """
    Connection parameters for the store. Immutable once loaded.

    Attributes:
        is_cluster: Connect in cluster mode
        nodes: Seed addresses for cluster mode
        addr: Address of the single node
        password: Password for AUTH (empty means none)
        db: Logical database index, single node mode only
    """
    is_cluster: bool = False
    nodes: Tuple[str, ...] = ()
    addr: str = DEFAULT_ADDR
    password: str = ""
    db: int = 0

    def __post_init__(self):
        if self.is_cluster:
            if not self.nodes:
                raise ConfigError("cluster mode requires at least one entry in nodes")
            for node in self.nodes:
                parse_address(node)
        else:
            parse_address(self.addr)
        if self.db < 0:
            raise ConfigError(f"db must be >= 0, got {self.db}")

    def single_address(self) -> Tuple[str, int]:
        """Get (host, port) of the single node."""
        return parse_address(self.addr)

    def node_addresses(self) -> List[Tuple[str, int]]:
        """Get (host, port) for every cluster seed node."""
        return [parse_address(node) for node in self.nodes]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StoreConfig":
        """
        Build a config from a decoded configuration document.

        Args:
            data: Mapping decoded from the configuration file

        Returns:
            Validated StoreConfig

        Raises:
            ConfigError: If a field has the wrong type or value
        """
        if not isinstance(data, dict):
            raise ConfigError("configuration root must be a table/object")

        is_cluster = data.get("is_cluster", False)
        if not isinstance(is_cluster, bool):
            raise ConfigError("is_cluster must be a boolean")

        nodes = data.get("nodes", [])
        if not isinstance(nodes, list) or not all(isinstance(n, str) and n for n in nodes):
            raise ConfigError("nodes must be a list of non-empty strings")

        addr = data.get("addr", DEFAULT_ADDR)
        if not isinstance(addr, str):
            raise ConfigError("addr must be a string")

        password = data.get("password", "")
        if not isinstance(password, str):
            raise ConfigError("password must be a string")

        db = data.get("db", 0)
        # bool is an int subclass, reject it explicitly
        if isinstance(db, bool) or not isinstance(db, int):
            raise ConfigError("db must be an integer")

        return cls(
            is_cluster=is_cluster,
            nodes=tuple(nodes),
            addr=addr,
            password=password,
            db=db,
        )

    def __repr__(self) -> str:
        # Keep the password out of logs
        return (f"StoreConfig(is_cluster={self.is_cluster}, nodes={list(self.nodes)}, "
                f"addr={self.addr!r}, db={self.db})")


def resolve_config_file(path: str, name: str, fmt: str) -> Path:
    """
    Work out which file to read.

    Args:
        path: Directory holding the configuration file
        name: File name, with or without extension
        fmt: Format name (``json``, ``toml``, ``yaml`` or ``yml``)

    Returns:
        Path to the configuration file
    """
    fmt = fmt.lower()
    if fmt not in SUPPORTED_FORMATS:
        raise ConfigError(
            f"unsupported config format {fmt!r}, expected one of {sorted(SUPPORTED_FORMATS)}"
        )
    file_path = Path(path) / name
    if not file_path.suffix:
        file_path = file_path.with_suffix(SUPPORTED_FORMATS[fmt])
    return file_path


def load_config(path: str, name: str, fmt: str) -> StoreConfig:
    """
    Load the store configuration from ``<path>/<name>.<fmt>``.

    Args:
        path: Directory holding the configuration file
        name: File name, with or without extension
        fmt: Format name (``json``, ``toml``, ``yaml`` or ``yml``)

    Returns:
        The loaded StoreConfig

    Raises:
        ConfigError: If the file cannot be read or is malformed
    """
    file_path = resolve_config_file(path, name, fmt)

    try:
        raw = file_path.read_bytes()
    except OSError as e:
        raise ConfigError(f"failed to read config file {file_path}: {e}") from e

    fmt = fmt.lower()
    try:
        if fmt == "toml":
            data = tomllib.loads(raw.decode("utf-8"))
        elif fmt in ("yaml", "yml"):
            # An empty YAML document loads as None: every field takes its default
            data = yaml.safe_load(raw)
            if data is None:
                data = {}
        else:
            data = json.loads(raw)
    except (ValueError, UnicodeDecodeError, yaml.YAMLError) as e:
        raise ConfigError(f"failed to unmarshal config {file_path}: {e}") from e

    config = StoreConfig.from_dict(data)
    logger.debug(f"Loaded {config} from {file_path}")
    return config
