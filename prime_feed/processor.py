"""
Prime Feed - Message Processor.

============================================================
RESPONSIBILITY
============================================================
The single sequential message-processing path.

- Parses each inbound text frame
- Applies the event to the owned BookRegistry
- Emits a formatted top-of-book line when both sides exist
- Tracks message counters

============================================================
DESIGN PRINCIPLES
============================================================
- A bad message never escapes the message boundary
- Messages are processed strictly in arrival order
- The registry is owned here, never global

============================================================
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from prime_feed.errors import ParseError
from prime_feed.logging_utils import QUOTES_LOGGER_NAME
from prime_feed.order_book import BookRegistry
from prime_feed.parser import FeedEventParser
from prime_feed.presenter import format_top_of_book


logger = logging.getLogger(__name__)


@dataclass
class FeedStats:
    """Counters for the message-processing path."""
    received: int = 0
    applied: int = 0
    skipped: int = 0
    failed: int = 0
    emitted: int = 0
    last_message_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "received": self.received,
            "applied": self.applied,
            "skipped": self.skipped,
            "failed": self.failed,
            "emitted": self.emitted,
            "last_message_at": (
                self.last_message_at.isoformat() if self.last_message_at else None
            ),
        }


def _log_quote(line: str) -> None:
    logging.getLogger(QUOTES_LOGGER_NAME).info(line)


class FeedProcessor:
    """
    Parses messages and maintains top-of-book.

    Args:
        channel: Subscribed channel; messages on other channels are skipped
        registry: Book registry (a fresh one by default)
        output: Sink for formatted lines (quotes logger by default)
    """

    def __init__(
        self,
        channel: str,
        registry: Optional[BookRegistry] = None,
        output: Optional[Callable[[str], None]] = None,
    ) -> None:
        self._parser = FeedEventParser(channel)
        self._registry = registry if registry is not None else BookRegistry()
        self._output = output or _log_quote
        self._stats = FeedStats()

    @property
    def registry(self) -> BookRegistry:
        return self._registry

    @property
    def stats(self) -> FeedStats:
        return self._stats

    def process(self, raw: str) -> Optional[str]:
        """
        Process one inbound message.

        Returns:
            The emitted line, or None when nothing was emitted
        """
        self._stats.received += 1
        self._stats.last_message_at = datetime.now(timezone.utc)

        try:
            event = self._parser.parse(raw)
        except ParseError as e:
            self._stats.failed += 1
            logger.error(f"Message parsing error: {e.message}")
            return None

        if event is None:
            self._stats.skipped += 1
            return None

        self._registry.apply_event(event)
        self._stats.applied += 1

        best = self._registry.best_bid_ask(event.instrument_id)
        if best is None:
            return None

        line = format_top_of_book(event.instrument_id, best)
        self._output(line)
        self._stats.emitted += 1
        return line
