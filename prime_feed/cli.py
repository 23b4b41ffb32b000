"""
Prime Feed - CLI.

============================================================
RESPONSIBILITY
============================================================
Command-line entry point for the top-of-book printer.

- Provides argparse-based CLI
- Loads configuration from .env, environment and flags
- Installs SIGINT/SIGTERM handlers for graceful shutdown
- Maps the session outcome to a process exit code

============================================================
USAGE
============================================================
python -m prime_feed
python -m prime_feed --products BTC-USD,ETH-USD --log-level DEBUG
prime-feed --max-reconnect-attempts 5 --initial-reconnect-delay-ms 500

EXIT CODES:
    0   graceful shutdown
    1   configuration/startup failure, exhausted reconnects, venue close
    2   invalid command-line arguments

============================================================
"""

import argparse
import asyncio
import logging
import os
import signal
import sys
from typing import List, Optional

from prime_feed.config import (
    Credentials,
    FeedConfig,
    check_feed_config,
    load_credentials,
    load_env_file,
    load_feed_config,
    parse_product_ids,
)
from prime_feed.errors import FeedError
from prime_feed.logging_utils import setup_logging
from prime_feed.supervisor import ConnectionSupervisor
from prime_feed.transport import TransportFactory


logger = logging.getLogger("prime_feed.cli")


# ============================================================
# CLI ARGUMENT PARSER
# ============================================================

def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="prime-feed",
        description="Stream level-2 data and print the best bid and ask per product",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Credentials are read from the environment (or a .env file):
  API_KEY, SECRET_KEY, PASSPHRASE, SVC_ACCOUNTID

Examples:
  %(prog)s                                   # BTC-USD on the default endpoint
  %(prog)s --products BTC-USD,ETH-USD        # Several products
  %(prog)s --log-format json                 # Structured logs
        """
    )

    # --------------------------------------------------------
    # Feed Options
    # --------------------------------------------------------
    feed_group = parser.add_argument_group("Feed Options")

    feed_group.add_argument(
        "--uri",
        type=str,
        help="WebSocket endpoint (env: PRIME_WS_URI)",
    )

    feed_group.add_argument(
        "--products",
        type=str,
        metavar="IDS",
        help="Comma separated product ids (env: PRIME_PRODUCT_IDS)",
    )

    feed_group.add_argument(
        "--env-file",
        type=str,
        metavar="PATH",
        help="Path to a .env file (default: search upwards from cwd)",
    )

    # --------------------------------------------------------
    # Connection Options
    # --------------------------------------------------------
    connection_group = parser.add_argument_group("Connection Options")

    connection_group.add_argument(
        "--max-reconnect-attempts",
        type=int,
        metavar="N",
        help="Reconnect attempts before giving up (default: 10)",
    )

    connection_group.add_argument(
        "--initial-reconnect-delay-ms",
        type=int,
        metavar="MS",
        help="First backoff delay in milliseconds (default: 1000)",
    )

    connection_group.add_argument(
        "--connect-timeout",
        type=float,
        metavar="SECONDS",
        help="WebSocket handshake timeout (default: 30)",
    )

    # --------------------------------------------------------
    # Logging Options
    # --------------------------------------------------------
    logging_group = parser.add_argument_group("Logging Options")

    logging_group.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=None,
        help="Logging level (default: INFO, env: LOG_LEVEL)",
    )

    logging_group.add_argument(
        "--log-format",
        type=str,
        choices=["json", "text"],
        default=None,
        help="Logging format (default: text, env: LOG_FORMAT)",
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version="%(prog)s 1.0.0",
    )

    return parser


# ============================================================
# CLI CONFIGURATION BUILDER
# ============================================================

def build_config(args: argparse.Namespace, base: Optional[FeedConfig] = None) -> FeedConfig:
    """
    Apply command-line overrides on top of the environment configuration.

    Raises:
        ConfigurationError: If the result is invalid
    """
    config = (base or FeedConfig()).with_overrides(
        uri=args.uri,
        product_ids=parse_product_ids(args.products) if args.products else None,
        max_reconnect_attempts=args.max_reconnect_attempts,
        initial_reconnect_delay_ms=args.initial_reconnect_delay_ms,
        connect_timeout_seconds=args.connect_timeout,
    )
    check_feed_config(config)
    return config


# ============================================================
# SIGNAL HANDLERS
# ============================================================

def install_signal_handlers(supervisor: ConnectionSupervisor) -> None:
    """Route SIGINT/SIGTERM to the supervisor's shutdown."""
    loop = asyncio.get_running_loop()

    def _on_signal(sig: signal.Signals) -> None:
        logger.info(f"Received signal {sig.name}, closing application gracefully...")
        loop.create_task(supervisor.shutdown())

    if sys.platform == "win32":
        signal.signal(signal.SIGINT, lambda signum, frame: loop.call_soon_threadsafe(
            _on_signal, signal.Signals(signum),
        ))
        return

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, _on_signal, sig)


def remove_signal_handlers() -> None:
    """Restore default SIGINT/SIGTERM handling."""
    if sys.platform == "win32":
        signal.signal(signal.SIGINT, signal.default_int_handler)
        return

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.remove_signal_handler(sig)


# ============================================================
# MAIN ENTRY POINT
# ============================================================

async def async_main(
    config: FeedConfig,
    credentials: Credentials,
    transport_factory: Optional[TransportFactory] = None,
) -> int:
    """
    Run one feed session until shutdown.

    Returns:
        Exit code
    """
    supervisor = ConnectionSupervisor(config, credentials, transport_factory=transport_factory)

    install_signal_handlers(supervisor)

    try:
        await supervisor.run()
    except FeedError as e:
        logger.error(f"Application failed: {e.message}")
        return 1
    finally:
        remove_signal_handlers()

    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Args:
        argv: Command line arguments (default: sys.argv[1:])

    Returns:
        Exit code
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    load_env_file(args.env_file)

    setup_logging(
        level=args.log_level or os.environ.get("LOG_LEVEL", "INFO"),
        log_format=args.log_format or os.environ.get("LOG_FORMAT", "text"),
    )

    try:
        config = build_config(args, base=load_feed_config())
        credentials = load_credentials()
    except FeedError as e:
        logger.error(f"Application failed to start: {e.message}")
        return 1

    logger.info(
        f"Starting feed | uri={config.uri} | products={','.join(config.product_ids)} | "
        f"credentials={credentials.to_log_dict()}"
    )

    try:
        return asyncio.run(async_main(config, credentials))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130


if __name__ == "__main__":
    sys.exit(main())
