"""
Prime Feed - Connection Supervisor.

============================================================
PURPOSE
============================================================
Owns the feed connection and drives its lifecycle.

STATE MACHINE:

    DISCONNECTED
         │ start()
         ▼
    CONNECTING ──────────────► (ConnectError, fatal at startup)
         │ opened
         ▼
    SUBSCRIBING   signed subscribe request sent, attempt counter reset
         │
         ▼
    STREAMING ──── closed / error ────► BACKOFF ──── delay ───► CONNECTING
         │                                 │
         │ venue close, attempts exhausted │ attempts exhausted
         ▼                                 ▼
    SHUTTING_DOWN ──────────────────► TERMINATED

    shutdown() moves any state to SHUTTING_DOWN, then TERMINATED.

BACKOFF:
    delay_ms = min(initial * 2 ** min(attempt - 1, 6), max_delay)

INVARIANTS:
- Only this class initiates network I/O
- shutdown() runs its effects exactly once
- The backoff wait is interruptible by shutdown
- One outage starts at most one reconnect ladder
- A connect that completes after shutdown is closed without subscribing

============================================================
"""

import asyncio
import logging
import time
from typing import Callable, Optional

from prime_feed.config import Credentials, FeedConfig
from prime_feed.errors import (
    ConnectError,
    FeedClosedError,
    FeedError,
    ReconnectExhaustedError,
    SigningError,
    TransientLinkError,
)
from prime_feed.order_book import BookRegistry
from prime_feed.processor import FeedProcessor
from prime_feed.signing import sign
from prime_feed.transport import (
    AiohttpTransport,
    Transport,
    TransportFactory,
    TransportListener,
)
from prime_feed.types import ConnectionPhase, ConnectionState, SubscribeRequest


logger = logging.getLogger(__name__)


# Exponent ceiling for the backoff ladder
MAX_BACKOFF_EXPONENT = 6


def backoff_delay_ms(
    attempt: int,
    initial_delay_ms: int = 1000,
    max_delay_ms: int = 30000,
) -> int:
    """
    Delay before reconnect attempt `attempt` (1-based).

    Attempts 1..7 with the defaults give
    1000, 2000, 4000, 8000, 16000, 30000, 30000.
    """
    exponent = min(max(attempt - 1, 0), MAX_BACKOFF_EXPONENT)
    return min(initial_delay_ms * (2 ** exponent), max_delay_ms)


class ConnectionSupervisor(TransportListener):
    """
    Connection lifecycle for one authenticated feed session.

    Args:
        config: Feed configuration
        credentials: API credentials
        processor: Message-processing path (a fresh one by default)
        transport_factory: Builds a transport for each connection attempt
        clock: Wall-clock source in seconds, used for request timestamps
    """

    def __init__(
        self,
        config: FeedConfig,
        credentials: Credentials,
        processor: Optional[FeedProcessor] = None,
        transport_factory: Optional[TransportFactory] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._config = config
        self._credentials = credentials
        self._processor = processor or FeedProcessor(channel=config.channel)
        self._transport_factory = transport_factory or self._default_transport
        self._clock = clock

        self._state = ConnectionState()
        self._transport: Optional[Transport] = None
        self._reconnect_task: Optional[asyncio.Task] = None
        self._failure: Optional[FeedError] = None

        # Set when shutdown begins; wakes any backoff wait
        self._stop_requested = asyncio.Event()
        # Set when shutdown completes; releases wait_closed()
        self._terminated = asyncio.Event()

    def _default_transport(self, listener: TransportListener) -> Transport:
        return AiohttpTransport(listener, heartbeat_seconds=self._config.heartbeat_seconds)

    # --------------------------------------------------------
    # PROPERTIES
    # --------------------------------------------------------

    @property
    def phase(self) -> ConnectionPhase:
        return self._state.phase

    @property
    def reconnect_attempt(self) -> int:
        return self._state.reconnect_attempt

    @property
    def shutdown_requested(self) -> bool:
        return self._state.shutdown_requested

    @property
    def failure(self) -> Optional[FeedError]:
        """Fatal error that ended the session, if any."""
        return self._failure

    @property
    def registry(self) -> BookRegistry:
        return self._processor.registry

    @property
    def processor(self) -> FeedProcessor:
        return self._processor

    def _set_phase(self, phase: ConnectionPhase) -> None:
        if self._state.phase != phase:
            logger.debug(f"Connection phase {self._state.phase.value} -> {phase.value}")
            self._state.phase = phase

    # --------------------------------------------------------
    # LIFECYCLE
    # --------------------------------------------------------

    async def start(self) -> None:
        """
        Open the initial connection.

        Raises:
            ConnectError: If the handshake does not complete in time
            SigningError: If no valid subscribe request can be built
        """
        if self._state.phase != ConnectionPhase.DISCONNECTED:
            logger.warning(f"Supervisor already started ({self._state.phase.value})")
            return

        try:
            await self._open_transport()
        except FeedError as e:
            if self._state.shutdown_requested:
                logger.info(f"Connect aborted by shutdown: {e.message}")
                return
            self._failure = e
            self._state.shutdown_requested = True
            self._set_phase(ConnectionPhase.TERMINATED)
            self._terminated.set()
            raise

    async def run(self) -> None:
        """
        Start, then block until the session terminates.

        Raises:
            FeedError: The fatal error that ended the session, if any
        """
        await self.start()
        await self.wait_closed()
        if self._failure is not None:
            raise self._failure

    async def wait_closed(self) -> None:
        """Block until shutdown has completed."""
        await self._terminated.wait()

    async def shutdown(self) -> None:
        """
        Stop the session. Safe to call any number of times, from any task.
        """
        if self._state.shutdown_requested:
            return

        self._state.shutdown_requested = True
        self._set_phase(ConnectionPhase.SHUTTING_DOWN)
        logger.info("Shutting down WebSocket connection...")

        self._stop_requested.set()

        task = self._reconnect_task
        if task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        transport = self._transport
        if transport is not None and not transport.is_closed:
            try:
                await transport.close()
            except Exception as e:
                logger.warning(f"Error closing WebSocket: {e}")

        logger.info(f"Feed statistics: {self._processor.stats.to_dict()}")

        self._set_phase(ConnectionPhase.TERMINATED)
        self._terminated.set()
        logger.info("Shutdown complete")

    # --------------------------------------------------------
    # CONNECTING
    # --------------------------------------------------------

    async def _open_transport(self) -> None:
        self._set_phase(ConnectionPhase.CONNECTING)
        transport = self._transport_factory(self)
        self._transport = transport
        await transport.connect(self._config.uri, timeout=self._config.connect_timeout_seconds)

        if self._state.shutdown_requested and not transport.is_closed:
            logger.info("Shutdown requested during connect; closing WebSocket")
            await transport.close()

    def build_subscribe_request(self) -> SubscribeRequest:
        """Sign a subscribe request with the current timestamp."""
        timestamp = str(int(self._clock()))
        creds = self._credentials
        signature = sign(
            self._config.channel,
            creds.api_key,
            creds.secret_key,
            creds.account_id,
            timestamp,
            self._config.product_ids,
        )
        return SubscribeRequest(
            channel=self._config.channel,
            access_key=creds.api_key,
            api_key_id=creds.account_id,
            timestamp=timestamp,
            passphrase=creds.passphrase,
            signature=signature,
            product_ids=tuple(self._config.product_ids),
        )

    # --------------------------------------------------------
    # TRANSPORT EVENTS
    # --------------------------------------------------------

    async def on_open(self) -> None:
        logger.info(f"WebSocket connected to {self._config.uri}")

        if self._state.shutdown_requested:
            return

        self._set_phase(ConnectionPhase.SUBSCRIBING)

        request = self.build_subscribe_request()
        logger.debug(f"Subscribing: {request.to_log_dict()}")
        await self._transport.send(request.to_json())

        if self._state.shutdown_requested:
            return

        # Only a delivered subscribe ends the outage
        self._state.reconnect_attempt = 0
        self._set_phase(ConnectionPhase.STREAMING)

    async def on_message(self, text: str) -> None:
        if self._state.shutdown_requested:
            return
        self._processor.process(text)

    async def on_close(self, code: Optional[int], reason: str, remote: bool) -> None:
        logger.warning(f"WebSocket closed: {reason} (code: {code}, remote: {remote})")

        if self._state.shutdown_requested:
            logger.info("WebSocket closed due to shutdown")
            return

        if remote:
            await self._fail(FeedClosedError(code, reason))
            return

        await self._link_failed(TransientLinkError(
            f"WebSocket closed (code: {code})",
            context={"code": code, "reason": reason},
        ))

    async def on_error(self, error: BaseException) -> None:
        logger.error(f"WebSocket error: {error}")

        if self._state.shutdown_requested:
            return

        await self._link_failed(TransientLinkError(f"WebSocket error: {error}", cause=error))

    # --------------------------------------------------------
    # RECONNECTION
    # --------------------------------------------------------

    async def _link_failed(self, error: TransientLinkError) -> None:
        if self._state.phase in (ConnectionPhase.BACKOFF, ConnectionPhase.CONNECTING):
            logger.debug(f"Already recovering, ignoring: {error.message}")
            return

        if self._state.reconnect_attempt >= self._config.max_reconnect_attempts:
            await self._fail(ReconnectExhaustedError(self._state.reconnect_attempt, cause=error))
            return

        self._set_phase(ConnectionPhase.BACKOFF)
        self._reconnect_task = asyncio.create_task(self._reconnect())

    async def _reconnect(self) -> None:
        """Walk the backoff ladder until connected, exhausted or stopped."""
        max_attempts = self._config.max_reconnect_attempts

        while not self._state.shutdown_requested:
            if self._state.reconnect_attempt >= max_attempts:
                await self._fail(ReconnectExhaustedError(self._state.reconnect_attempt))
                return

            self._state.reconnect_attempt += 1
            attempt = self._state.reconnect_attempt
            delay_ms = backoff_delay_ms(
                attempt,
                self._config.initial_reconnect_delay_ms,
                self._config.max_reconnect_delay_ms,
            )

            self._set_phase(ConnectionPhase.BACKOFF)
            logger.info(f"Reconnecting in {delay_ms} ms (attempt {attempt}/{max_attempts})")

            if await self._wait_for_stop(delay_ms / 1000):
                logger.warning("Reconnection interrupted")
                return

            try:
                await self._open_transport()
                return
            except SigningError as e:
                await self._fail(e)
                return
            except (ConnectError, TransientLinkError) as e:
                logger.error(f"Reconnection failed: {e.message}")
            except Exception as e:
                logger.error(f"Unexpected reconnection failure: {e}", exc_info=True)
                await self._fail(FeedError(f"Unexpected reconnection failure: {e}", cause=e))
                return

    async def _wait_for_stop(self, seconds: float) -> bool:
        """Sleep for `seconds`; return True if shutdown interrupted the wait."""
        try:
            await asyncio.wait_for(self._stop_requested.wait(), timeout=seconds)
            return True
        except asyncio.TimeoutError:
            return self._state.shutdown_requested

    async def _fail(self, error: FeedError) -> None:
        """Record a fatal error and shut down."""
        if self._failure is None:
            self._failure = error
        logger.error(f"Fatal feed error: {error.message}. Shutting down.")
        await self.shutdown()
