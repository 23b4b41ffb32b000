"""
Prime Feed - Feed Event Parser.

============================================================
PURPOSE
============================================================
Decodes a raw l2_data message into a FeedEvent.

RESULTS:
- FeedEvent: an applicable snapshot or update
- None: not applicable (foreign channel, no events, no product id)
- ParseError: malformed payload; caller logs and drops it

LIMITATION:
Only the first event of a message is processed. Additional events in
a batched message are ignored.

============================================================
"""

import json
import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from prime_feed.errors import ParseError
from prime_feed.types import EventType, FeedEvent, LevelUpdate, Side


logger = logging.getLogger(__name__)


class FeedEventParser:
    """Parser for messages on one subscribed channel."""

    def __init__(self, channel: str) -> None:
        self._channel = channel
        self._decoder = json.JSONDecoder()

    @property
    def channel(self) -> str:
        return self._channel

    def parse(self, raw: str) -> Optional[FeedEvent]:
        """
        Parse a raw message.

        Args:
            raw: Text frame received from the feed

        Returns:
            FeedEvent, or None when the message does not apply

        Raises:
            ParseError: On malformed payloads
        """
        try:
            data = self._decoder.decode(raw)
        except (json.JSONDecodeError, TypeError) as e:
            raise ParseError(f"Invalid JSON: {e}", payload=str(raw), cause=e)

        if not isinstance(data, dict):
            raise ParseError("Message is not a JSON object", payload=raw)

        if data.get("type") == "error":
            raise ParseError(
                f"Feed error: {data.get('message') or data.get('reason') or 'unknown'}",
                payload=raw,
            )

        if data.get("channel") != self._channel:
            return None

        events = data.get("events")
        if not isinstance(events, list) or not events:
            return None

        if len(events) > 1:
            logger.debug(f"Ignoring {len(events) - 1} batched events after the first")

        event = events[0]
        if not isinstance(event, dict):
            raise ParseError("Event is not a JSON object", payload=raw)

        product_id = event.get("product_id")
        if not product_id:
            return None

        event_type = self._parse_event_type(event.get("type"), raw)

        updates = event.get("updates")
        if not isinstance(updates, list):
            raise ParseError(
                f"Event for {product_id} has no updates list",
                payload=raw,
            )

        return FeedEvent(
            event_type=event_type,
            instrument_id=str(product_id),
            level_updates=tuple(self._parse_updates(updates, raw)),
        )

    # --------------------------------------------------------
    # HELPERS
    # --------------------------------------------------------

    @staticmethod
    def _parse_event_type(value: Any, raw: str) -> EventType:
        try:
            return EventType(value)
        except ValueError:
            raise ParseError(f"Unknown event type: {value!r}", payload=raw)

    def _parse_updates(self, updates: List[Any], raw: str) -> List[LevelUpdate]:
        parsed = []
        for update in updates:
            if not isinstance(update, dict):
                raise ParseError("Level update is not a JSON object", payload=raw)
            parsed.append(self._parse_update(update, raw))
        return parsed

    @staticmethod
    def _parse_update(update: Dict[str, Any], raw: str) -> LevelUpdate:
        try:
            side = Side(update.get("side"))
        except ValueError:
            raise ParseError(f"Unknown side: {update.get('side')!r}", payload=raw)

        try:
            price = Decimal(str(update["px"]))
            size = Decimal(str(update["qty"]))
        except KeyError as e:
            raise ParseError(f"Level update missing field {e}", payload=raw, cause=e)
        except InvalidOperation as e:
            raise ParseError(
                f"Non-numeric level: px={update.get('px')!r} qty={update.get('qty')!r}",
                payload=raw,
                cause=e,
            )

        if not price.is_finite() or not size.is_finite() or size < 0:
            raise ParseError(
                f"Invalid level: px={update.get('px')!r} qty={update.get('qty')!r}",
                payload=raw,
            )

        return LevelUpdate(side=side, price=price, size=size)
