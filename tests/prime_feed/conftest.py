"""
Shared fixtures for the feed tests.

Provides a scripted in-memory transport so the supervisor can be driven
without a network.
"""

import asyncio
from typing import Callable, List, Optional

import pytest

from prime_feed.config import Credentials, FeedConfig
from prime_feed.transport import Transport, TransportListener


class FakeTransport(Transport):
    """In-memory transport; tests push events through the listener."""

    def __init__(
        self,
        listener: TransportListener,
        connect_error: Optional[BaseException] = None,
        send_error: Optional[Exception] = None,
        gate: Optional[asyncio.Event] = None,
    ):
        super().__init__(listener)
        self.connect_error = connect_error
        self.send_error = send_error
        self.gate = gate
        self.uri: Optional[str] = None
        self.sent: List[str] = []
        self.close_calls = 0
        self.connected = False

    async def connect(self, uri: str, timeout: float) -> None:
        self.uri = uri
        if self.gate is not None:
            await self.gate.wait()
        if self.connect_error is not None:
            raise self.connect_error
        self.connected = True
        try:
            await self._listener.on_open()
        except BaseException:
            self.connected = False
            raise

    async def send(self, text: str) -> None:
        if self.send_error is not None:
            raise self.send_error
        self.sent.append(text)

    async def close(self) -> None:
        self.close_calls += 1
        if self.connected:
            self.connected = False
            await self._listener.on_close(1000, "closed by client", False)

    @property
    def is_closed(self) -> bool:
        return not self.connected

    # --------------------------------------------------------
    # Test drivers
    # --------------------------------------------------------

    async def deliver(self, text: str) -> None:
        await self._listener.on_message(text)

    async def drop(self, code: int = 1006, reason: str = "", remote: bool = False) -> None:
        self.connected = False
        await self._listener.on_close(code, reason, remote)

    async def fail(self, error: Exception) -> None:
        self.connected = False
        await self._listener.on_error(error)


class FakeTransportFactory:
    """
    Builds FakeTransports.

    `outcomes` scripts connect errors in order. `send_error` and `gate` apply
    to every transport built while they are set.
    """

    def __init__(
        self,
        outcomes: Optional[List[Optional[BaseException]]] = None,
        gate: Optional[asyncio.Event] = None,
    ):
        self.outcomes = list(outcomes or [])
        self.gate = gate
        self.send_error: Optional[Exception] = None
        self.transports: List[FakeTransport] = []

    def __call__(self, listener: TransportListener) -> FakeTransport:
        error = self.outcomes.pop(0) if self.outcomes else None
        transport = FakeTransport(
            listener,
            connect_error=error,
            send_error=self.send_error,
            gate=self.gate,
        )
        self.transports.append(transport)
        return transport

    @property
    def last(self) -> FakeTransport:
        return self.transports[-1]


async def _wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.001)


@pytest.fixture
def credentials() -> Credentials:
    return Credentials(
        api_key="test-api-key",
        secret_key="test-secret-key",
        passphrase="test-passphrase",
        account_id="test-account",
    )


@pytest.fixture
def feed_config() -> FeedConfig:
    return FeedConfig(
        uri="wss://feed.test",
        product_ids=("BTC-USD",),
        max_reconnect_attempts=3,
        initial_reconnect_delay_ms=1,
        connect_timeout_seconds=1.0,
    )


@pytest.fixture
def transport_factory() -> FakeTransportFactory:
    return FakeTransportFactory()


@pytest.fixture
def make_transport_factory() -> Callable[..., FakeTransportFactory]:
    return FakeTransportFactory


@pytest.fixture
def wait_until() -> Callable:
    return _wait_until
