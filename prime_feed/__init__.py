"""
Prime Feed Package - Level-2 Top-of-Book Printer.

============================================================
PACKAGE OVERVIEW
============================================================
Maintains an authenticated WebSocket subscription to the Coinbase
Prime l2_data channel and prints the best bid and ask per product
after every book update.

============================================================
ARCHITECTURE
============================================================

    +-----------------------------------------------------+
    |                ConnectionSupervisor                 |
    |-----------------------------------------------------|
    |  Transport       |  aiohttp WebSocket session       |
    |  Signer          |  HMAC-SHA256 subscribe request   |
    |  FeedProcessor   |  parse -> apply -> present       |
    |  BookRegistry    |  per-product OrderBook           |
    +-----------------------------------------------------+

============================================================
QUICK START
============================================================
Command line usage::

    export API_KEY=... SECRET_KEY=... PASSPHRASE=... SVC_ACCOUNTID=...
    python -m prime_feed --products BTC-USD

============================================================
"""

from prime_feed.config import (
    Credentials,
    FeedConfig,
    load_credentials,
    load_feed_config,
)
from prime_feed.errors import (
    FeedError,
    ConfigurationError,
    SigningError,
    ConnectError,
    TransientLinkError,
    ReconnectExhaustedError,
    FeedClosedError,
    ParseError,
)
from prime_feed.order_book import BookRegistry, OrderBook
from prime_feed.parser import FeedEventParser
from prime_feed.presenter import format_top_of_book
from prime_feed.processor import FeedProcessor, FeedStats
from prime_feed.signing import sign
from prime_feed.supervisor import ConnectionSupervisor, backoff_delay_ms
from prime_feed.transport import (
    AiohttpTransport,
    Transport,
    TransportListener,
)
from prime_feed.types import (
    BestBidAsk,
    ConnectionPhase,
    ConnectionState,
    EventType,
    FeedEvent,
    LevelUpdate,
    Side,
    SubscribeRequest,
)


__all__ = [
    # Config
    "Credentials",
    "FeedConfig",
    "load_credentials",
    "load_feed_config",
    # Errors
    "FeedError",
    "ConfigurationError",
    "SigningError",
    "ConnectError",
    "TransientLinkError",
    "ReconnectExhaustedError",
    "FeedClosedError",
    "ParseError",
    # Book
    "BookRegistry",
    "OrderBook",
    # Message path
    "FeedEventParser",
    "FeedProcessor",
    "FeedStats",
    "format_top_of_book",
    "sign",
    # Connection
    "ConnectionSupervisor",
    "backoff_delay_ms",
    "AiohttpTransport",
    "Transport",
    "TransportListener",
    # Types
    "BestBidAsk",
    "ConnectionPhase",
    "ConnectionState",
    "EventType",
    "FeedEvent",
    "LevelUpdate",
    "Side",
    "SubscribeRequest",
]
