#!/usr/bin/env python3
"""
KV-Scan Command Line Entry Point

Loads the store configuration, connects, and prints every key matching a
pattern.

Usage:
    kvscan 'user:*'                                   # ./redis.json
    kvscan --config-path /etc/app --config-name redis --format toml 'user:*'
    kvscan --count 500 --show-type 'session:*'        # key<TAB>type
    kvscan --show-value 'cfg:*'                       # key<TAB>type<TAB>value
    kvscan --debug '*'                                # debug logging

Environment Variables:
    KVSCAN_SCAN_COUNT       - Default COUNT hint per SCAN round
    KVSCAN_DEBUG            - Enable debug mode (true/false)
    KVSCAN_LOG_LEVEL        - Log level when not in debug mode
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from .config.loader import SUPPORTED_FORMATS, load_config
from .config.settings import settings
from .errors import KeyNotFoundError, KVScanError, StoreError
from .store.base import StoreConnection
from .store.manager import connect

logger = logging.getLogger(__name__)


def positive_int(value: str) -> int:
    """argparse type for COUNT: an integer greater than zero."""
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid int value: {value!r}")
    if number <= 0:
        raise argparse.ArgumentTypeError(f"must be greater than zero, got {number}")
    return number


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="KV-Scan: walk a Redis keyspace by pattern",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument(
        "pattern",
        nargs="?",
        default="*",
        help="Glob-style key pattern",
    )

    parser.add_argument(
        "--config-path",
        type=str,
        default=".",
        help="Directory holding the configuration file",
    )

    parser.add_argument(
        "--config-name",
        type=str,
        default="redis",
        help="Configuration file name (extension optional)",
    )

    parser.add_argument(
        "--format",
        type=str,
        default="json",
        choices=sorted(SUPPORTED_FORMATS),
        help="Configuration file format",
    )

    parser.add_argument(
        "--count",
        type=positive_int,
        default=str(settings.SCAN_COUNT),
        help="COUNT hint per SCAN round",
    )

    parser.add_argument(
        "--show-type",
        action="store_true",
        help="Print the type of every key",
    )

    parser.add_argument(
        "--show-value",
        action="store_true",
        help="Print the value of string keys (implies --show-type)",
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        default=settings.DEBUG,
        help="Enable debug logging",
    )

    return parser.parse_args(argv)


def setup_logging(debug: bool = False) -> None:
    """Configure logging based on debug flag."""
    level = logging.DEBUG if debug else getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    # Keys go to stdout, so logs go to stderr
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stderr),
        ]
    )


async def describe_key(store: StoreConnection, key: str, show_value: bool) -> str:
    """Render one output line for a key."""
    try:
        kind = await store.type(key)
    except KeyNotFoundError:
        # Expired or deleted between SCAN and TYPE
        return f"{key}\t(gone)"

    if show_value and kind == "string":
        try:
            return f"{key}\t{kind}\t{await store.get(key)}"
        except StoreError as e:
            logger.warning(f"Could not read {key}: {e}")
    return f"{key}\t{kind}"


async def run(args: argparse.Namespace) -> int:
    """Connect, scan and print. Returns the number of keys printed."""
    config = load_config(args.config_path, args.config_name, args.format)
    show_type = args.show_type or args.show_value
    printed = 0

    async with await connect(config) as store:
        logger.info(f"Scanning {store.mode} store for {args.pattern!r} across {store.masters()}")

        async def print_batch(keys: List[str]) -> None:
            nonlocal printed
            for key in keys:
                if show_type:
                    print(await describe_key(store, key, args.show_value))
                else:
                    print(key)
                printed += 1

        await store.scan(args.pattern, args.count, print_batch)

    logger.info(f"Printed {printed} keys")
    return printed


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = parse_args(argv)
    setup_logging(debug=args.debug)

    try:
        asyncio.run(run(args))
    except KVScanError as e:
        logger.error(f"{type(e).__name__}: {e}")
        return 1
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received")
        return 130
    return 0


if __name__ == "__main__":
    sys.exit(main())
