"""
Prime Feed - WebSocket Transport.

============================================================
PURPOSE
============================================================
Transport contract consumed by the connection supervisor, plus the
aiohttp implementation.

CONTRACT:
- connect(uri, timeout): open, then deliver on_open; raise ConnectError
  when the handshake fails or times out
- send(text) / close() / is_closed
- Listener events delivered serially from one receive task:
  on_open, on_message(text), on_close(code, reason, remote), on_error(exc)

Each transport instance is single-use: one connect, one session.

============================================================
USAGE
============================================================
```python
transport = AiohttpTransport(listener)
await transport.connect("wss://ws-feed.prime.coinbase.com", timeout=30)
await transport.send(message)
await transport.close()
```

============================================================
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Callable, Optional

import aiohttp

from prime_feed.errors import ConnectError, TransientLinkError


logger = logging.getLogger(__name__)


# ============================================================
# CONTRACT
# ============================================================

class TransportListener(ABC):
    """Sink for transport events."""

    @abstractmethod
    async def on_open(self) -> None:
        """Connection opened."""
        pass

    @abstractmethod
    async def on_message(self, text: str) -> None:
        """Text frame received."""
        pass

    @abstractmethod
    async def on_close(self, code: Optional[int], reason: str, remote: bool) -> None:
        """Connection closed. `remote` is True for a close frame sent by the venue."""
        pass

    @abstractmethod
    async def on_error(self, error: BaseException) -> None:
        """Connection failed with an error."""
        pass


class Transport(ABC):
    """Abstract WebSocket transport."""

    def __init__(self, listener: TransportListener) -> None:
        self._listener = listener

    @abstractmethod
    async def connect(self, uri: str, timeout: float) -> None:
        """
        Open the connection and deliver on_open.

        Raises:
            ConnectError: If not opened within the timeout
        """
        pass

    @abstractmethod
    async def send(self, text: str) -> None:
        """Send a text frame."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close the connection."""
        pass

    @property
    @abstractmethod
    def is_closed(self) -> bool:
        """Check if the connection is closed (or never opened)."""
        pass


TransportFactory = Callable[[TransportListener], Transport]


# ============================================================
# AIOHTTP TRANSPORT
# ============================================================

class AiohttpTransport(Transport):
    """
    Transport on aiohttp's client WebSocket.

    Ping/pong is handled by aiohttp's heartbeat.
    """

    def __init__(
        self,
        listener: TransportListener,
        heartbeat_seconds: float = 20.0,
        close_timeout_seconds: float = 5.0,
    ) -> None:
        super().__init__(listener)
        self._heartbeat = heartbeat_seconds
        self._close_timeout = close_timeout_seconds

        self._session: Optional[aiohttp.ClientSession] = None
        self._ws: Optional[aiohttp.ClientWebSocketResponse] = None
        self._receive_task: Optional[asyncio.Task] = None
        self._closing = False

    @property
    def is_closed(self) -> bool:
        return self._ws is None or self._ws.closed

    # --------------------------------------------------------
    # CONNECTION
    # --------------------------------------------------------

    async def connect(self, uri: str, timeout: float) -> None:
        if self._session is not None or self._ws is not None:
            raise RuntimeError("Transport already used; create a new one")

        self._session = aiohttp.ClientSession()

        try:
            self._ws = await asyncio.wait_for(
                self._session.ws_connect(uri, heartbeat=self._heartbeat),
                timeout=timeout,
            )
        except asyncio.TimeoutError as e:
            await self._release_session()
            raise ConnectError(
                f"Failed to connect to WebSocket within {timeout:g} seconds",
                uri=uri,
                cause=e,
            )
        except (aiohttp.ClientError, OSError) as e:
            await self._release_session()
            raise ConnectError(f"WebSocket connection failed: {e}", uri=uri, cause=e)
        except asyncio.CancelledError:
            await self._release_session()
            raise

        try:
            await self._listener.on_open()
        except BaseException:
            self._closing = True
            await self._ws.close()
            await self._release_session()
            raise

        self._receive_task = asyncio.create_task(self._receive_loop())

    async def close(self) -> None:
        self._closing = True

        if self._ws is not None and not self._ws.closed:
            await self._ws.close()

        task = self._receive_task
        if task is not None and task is not asyncio.current_task() and not task.done():
            try:
                await asyncio.wait_for(task, timeout=self._close_timeout)
            except asyncio.TimeoutError:
                logger.warning("Receive loop did not stop in time; cancelled")

        await self._release_session()

    async def _release_session(self) -> None:
        session, self._session = self._session, None
        if session is not None and not session.closed:
            await session.close()

    # --------------------------------------------------------
    # SENDING
    # --------------------------------------------------------

    async def send(self, text: str) -> None:
        if self.is_closed:
            raise TransientLinkError("Not connected")

        try:
            await self._ws.send_str(text)
        except (ConnectionError, aiohttp.ClientError) as e:
            raise TransientLinkError(f"Send failed: {e}", cause=e)

    # --------------------------------------------------------
    # RECEIVING
    # --------------------------------------------------------

    async def _receive_loop(self) -> None:
        """Deliver frames until the connection ends, then report why."""
        error: Optional[BaseException] = None
        code: Optional[int] = None
        reason = ""
        remote = False

        try:
            while True:
                msg = await self._ws.receive()

                if msg.type == aiohttp.WSMsgType.TEXT:
                    try:
                        await self._listener.on_message(msg.data)
                    except Exception as e:
                        logger.error(f"Error handling message: {e}", exc_info=True)

                elif msg.type == aiohttp.WSMsgType.BINARY:
                    logger.debug(f"Ignoring binary frame: {len(msg.data)} bytes")

                elif msg.type == aiohttp.WSMsgType.CLOSE:
                    code = msg.data
                    reason = msg.extra or ""
                    remote = not self._closing
                    break

                elif msg.type in (aiohttp.WSMsgType.CLOSING, aiohttp.WSMsgType.CLOSED):
                    code = self._ws.close_code
                    break

                elif msg.type == aiohttp.WSMsgType.ERROR:
                    error = self._ws.exception() or msg.data
                    break

        except asyncio.CancelledError:
            await self._release_session()
            raise

        except Exception as e:
            error = e

        # close() releases the session itself once the handshake finishes
        if not self._closing:
            await self._release_session()

        if error is not None and not self._closing:
            await self._listener.on_error(error)
        else:
            await self._listener.on_close(code, reason, remote)
