"""
Prime Feed - Order Book.

============================================================
PURPOSE
============================================================
In-memory level-2 order book per instrument.

- Bids sorted by price descending, asks ascending
- A size of zero removes the level
- Top-of-book read from the first entry of each side

============================================================
OWNERSHIP
============================================================
Books are owned by a BookRegistry instance and mutated only by the
single message-processing path, so no locking is required.

============================================================
"""

import logging
import operator
from decimal import Decimal
from typing import Dict, Iterator, List, Optional

from sortedcontainers import SortedDict

from prime_feed.types import BestBidAsk, FeedEvent, Side


logger = logging.getLogger(__name__)


class OrderBook:
    """Price levels for one instrument."""

    def __init__(self, instrument_id: str) -> None:
        self.instrument_id = instrument_id
        self.bids: SortedDict = SortedDict(operator.neg)
        self.asks: SortedDict = SortedDict()

    def _levels(self, side: Side) -> SortedDict:
        return self.bids if side == Side.BID else self.asks

    @property
    def is_empty(self) -> bool:
        return not self.bids and not self.asks

    def depth(self, side: Side) -> int:
        """Number of price levels on one side."""
        return len(self._levels(side))

    def clear(self) -> None:
        """Empty both sides."""
        self.bids.clear()
        self.asks.clear()

    def apply_level(self, side: Side, price: Decimal, size: Decimal) -> None:
        """
        Insert, replace or remove one price level.

        A zero size removes the price; removing an absent price is a no-op.
        """
        levels = self._levels(side)
        if size == 0:
            levels.pop(price, None)
        else:
            levels[price] = size

    def best_bid_ask(self) -> Optional[BestBidAsk]:
        """Top-of-book, or None when either side is empty."""
        if not self.bids or not self.asks:
            return None
        bid_price, bid_size = self.bids.peekitem(0)
        ask_price, ask_size = self.asks.peekitem(0)
        return BestBidAsk(
            bid_price=bid_price,
            bid_size=bid_size,
            ask_price=ask_price,
            ask_size=ask_size,
        )

    def __repr__(self) -> str:
        return (
            f"OrderBook({self.instrument_id!r}, "
            f"bids={len(self.bids)}, asks={len(self.asks)})"
        )


class BookRegistry:
    """
    Mapping from instrument id to its OrderBook.

    Books are created lazily on first reference and live as long as the
    registry.
    """

    def __init__(self) -> None:
        self._books: Dict[str, OrderBook] = {}

    def get(self, instrument_id: str) -> OrderBook:
        """Return the book for an instrument, creating it if needed."""
        book = self._books.get(instrument_id)
        if book is None:
            book = OrderBook(instrument_id)
            self._books[instrument_id] = book
            logger.debug(f"Created order book for {instrument_id}")
        return book

    def instruments(self) -> List[str]:
        return list(self._books)

    def __contains__(self, instrument_id: object) -> bool:
        return instrument_id in self._books

    def __len__(self) -> int:
        return len(self._books)

    def __iter__(self) -> Iterator[OrderBook]:
        return iter(self._books.values())

    # --------------------------------------------------------
    # MUTATION
    # --------------------------------------------------------

    def apply_snapshot(self, instrument_id: str) -> None:
        """Clear both sides of an instrument's book."""
        self.get(instrument_id).clear()

    def apply_level_update(
        self,
        instrument_id: str,
        side: Side,
        price: Decimal,
        size: Decimal,
    ) -> None:
        """Apply one level change to an instrument's book."""
        self.get(instrument_id).apply_level(side, price, size)

    def apply_event(self, event: FeedEvent) -> OrderBook:
        """
        Apply a parsed event.

        A snapshot clears the book before any of its updates are applied.
        Updates are applied in feed order, so a later update for the same
        price overrides an earlier one.
        """
        book = self.get(event.instrument_id)
        if event.is_snapshot:
            book.clear()
        for update in event.level_updates:
            book.apply_level(update.side, update.price, update.size)
        return book

    # --------------------------------------------------------
    # QUERIES
    # --------------------------------------------------------

    def best_bid_ask(self, instrument_id: str) -> Optional[BestBidAsk]:
        """Top-of-book for an instrument, or None when one-sided."""
        return self.get(instrument_id).best_bid_ask()
