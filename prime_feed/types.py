"""
Prime Feed - Type Definitions.

============================================================
PURPOSE
============================================================
Shared types for the market-data feed.

- Enums for sides, event types and connection phases
- Feed event and price-level update types
- Subscribe request type
- Connection state

============================================================
DESIGN PRINCIPLES
============================================================
- Immutable data structures where possible
- Decimal for every price and size
- No business logic

============================================================
"""

import json
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Tuple

from prime_feed.logging_utils import mask_params


# =============================================================
# ENUMS
# =============================================================

class Side(str, Enum):
    """Book side of a price level."""
    BID = "bid"
    ASK = "ask"


class EventType(str, Enum):
    """Type of an order-book event."""
    SNAPSHOT = "snapshot"
    UPDATE = "update"


class ConnectionPhase(str, Enum):
    """Lifecycle phases of the feed connection."""
    DISCONNECTED = "DISCONNECTED"
    CONNECTING = "CONNECTING"
    SUBSCRIBING = "SUBSCRIBING"
    STREAMING = "STREAMING"
    BACKOFF = "BACKOFF"
    SHUTTING_DOWN = "SHUTTING_DOWN"
    TERMINATED = "TERMINATED"


# =============================================================
# FEED EVENTS
# =============================================================

@dataclass(frozen=True)
class LevelUpdate:
    """A single price-level change. Size zero removes the level."""
    side: Side
    price: Decimal
    size: Decimal


@dataclass(frozen=True)
class FeedEvent:
    """One parsed order-book event. Consumed immediately, never retained."""
    event_type: EventType
    instrument_id: str
    level_updates: Tuple[LevelUpdate, ...] = ()

    @property
    def is_snapshot(self) -> bool:
        return self.event_type == EventType.SNAPSHOT


@dataclass(frozen=True)
class BestBidAsk:
    """Top-of-book for one instrument."""
    bid_price: Decimal
    bid_size: Decimal
    ask_price: Decimal
    ask_size: Decimal

    @property
    def spread(self) -> Decimal:
        return self.ask_price - self.bid_price


# =============================================================
# SUBSCRIPTION
# =============================================================

@dataclass(frozen=True)
class SubscribeRequest:
    """Signed subscribe request, built once per (re)connect attempt."""
    channel: str
    access_key: str
    api_key_id: str
    timestamp: str
    passphrase: str = field(repr=False)
    signature: str = field(repr=False)
    product_ids: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        """Wire representation."""
        return {
            "type": "subscribe",
            "channel": self.channel,
            "access_key": self.access_key,
            "api_key_id": self.api_key_id,
            "timestamp": self.timestamp,
            "passphrase": self.passphrase,
            "signature": self.signature,
            "product_ids": list(self.product_ids),
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    def to_log_dict(self) -> Dict[str, Any]:
        """Wire representation with credentials masked."""
        return mask_params(self.to_dict())


# =============================================================
# CONNECTION STATE
# =============================================================

@dataclass
class ConnectionState:
    """Process-wide connection state. Mutated only by the supervisor."""
    phase: ConnectionPhase = ConnectionPhase.DISCONNECTED
    reconnect_attempt: int = 0
    shutdown_requested: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "phase": self.phase.value,
            "reconnect_attempt": self.reconnect_attempt,
            "shutdown_requested": self.shutdown_requested,
        }
