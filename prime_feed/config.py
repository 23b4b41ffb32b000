"""
Prime Feed - Configuration.

============================================================
PURPOSE
============================================================
All configuration for the market-data feed.

- Credentials from the environment (a .env file is honoured)
- Feed tunables with defaults, overridable from the environment
- Missing credentials are reported together, once, at startup

============================================================
ENVIRONMENT
============================================================
Required:
    API_KEY, SECRET_KEY, PASSPHRASE, SVC_ACCOUNTID

Optional:
    PRIME_WS_URI                      (default wss://ws-feed.prime.coinbase.com)
    PRIME_PRODUCT_IDS                 comma separated (default BTC-USD)
    PRIME_MAX_RECONNECT_ATTEMPTS      (default 10)
    PRIME_INITIAL_RECONNECT_DELAY_MS  (default 1000)

KNOWN CONSTRAINT:
The venue accepts at most 10 products per connection. This is not
enforced locally; a larger list only logs a warning.

============================================================
"""

import logging
import os
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Mapping, Optional, Tuple

from dotenv import load_dotenv

from prime_feed.errors import ConfigurationError
from prime_feed.logging_utils import mask_params


logger = logging.getLogger(__name__)


DEFAULT_WS_URI = "wss://ws-feed.prime.coinbase.com"
DEFAULT_CHANNEL = "l2_data"
DEFAULT_PRODUCT_IDS: Tuple[str, ...] = ("BTC-USD",)
VENUE_MAX_PRODUCTS = 10

REQUIRED_ENV_VARS: Tuple[str, ...] = ("API_KEY", "SECRET_KEY", "PASSPHRASE", "SVC_ACCOUNTID")


# ============================================================
# CREDENTIALS
# ============================================================

@dataclass(frozen=True)
class Credentials:
    """
    API credentials for the authenticated subscription.

    Secrets are excluded from repr.
    """

    api_key: str
    secret_key: str = field(repr=False)
    passphrase: str = field(repr=False)
    account_id: str = ""

    def to_log_dict(self) -> Dict[str, Any]:
        return mask_params({
            "api_key": self.api_key,
            "secret_key": self.secret_key,
            "passphrase": self.passphrase,
            "account_id": self.account_id,
        })


def load_credentials(environ: Optional[Mapping[str, str]] = None) -> Credentials:
    """
    Resolve credentials from the environment.

    Every required variable is checked before failing, so the error names
    all missing variables at once.

    Args:
        environ: Environment mapping (default: os.environ)

    Returns:
        Credentials with values trimmed

    Raises:
        ConfigurationError: If any required variable is missing or blank
    """
    env = os.environ if environ is None else environ

    values: Dict[str, str] = {}
    missing: List[str] = []
    for name in REQUIRED_ENV_VARS:
        value = (env.get(name) or "").strip()
        if value:
            values[name] = value
        else:
            missing.append(name)

    if missing:
        raise ConfigurationError(
            f"Missing required environment variables: {', '.join(missing)}",
            missing=missing,
        )

    return Credentials(
        api_key=values["API_KEY"],
        secret_key=values["SECRET_KEY"],
        passphrase=values["PASSPHRASE"],
        account_id=values["SVC_ACCOUNTID"],
    )


# ============================================================
# FEED CONFIGURATION
# ============================================================

@dataclass(frozen=True)
class FeedConfig:
    """Connection and reconnection settings."""

    uri: str = DEFAULT_WS_URI
    """WebSocket endpoint."""

    channel: str = DEFAULT_CHANNEL
    """Subscribed channel."""

    product_ids: Tuple[str, ...] = DEFAULT_PRODUCT_IDS
    """Instruments to subscribe to."""

    max_reconnect_attempts: int = 10
    """Reconnect attempts before giving up."""

    initial_reconnect_delay_ms: int = 1000
    """First backoff delay; doubles per attempt."""

    max_reconnect_delay_ms: int = 30000
    """Backoff ceiling."""

    connect_timeout_seconds: float = 30.0
    """Time allowed for the WebSocket handshake."""

    heartbeat_seconds: float = 20.0
    """Ping interval used by the transport."""

    def validate(self) -> List[str]:
        """Validate configuration, return list of errors."""
        errors = []

        if not self.uri:
            errors.append("uri must not be empty")

        if not self.channel:
            errors.append("channel must not be empty")

        if not self.product_ids:
            errors.append("product_ids must contain at least one product")

        if self.max_reconnect_attempts < 0:
            errors.append("max_reconnect_attempts must not be negative")

        if self.initial_reconnect_delay_ms < 1:
            errors.append("initial_reconnect_delay_ms must be at least 1")

        if self.max_reconnect_delay_ms < self.initial_reconnect_delay_ms:
            errors.append("max_reconnect_delay_ms must not be below initial_reconnect_delay_ms")

        if self.connect_timeout_seconds <= 0:
            errors.append("connect_timeout_seconds must be positive")

        return errors

    def with_overrides(self, **overrides: Any) -> "FeedConfig":
        """Copy with every non-None override applied."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **changes)


def parse_product_ids(value: str) -> Tuple[str, ...]:
    """Split a comma separated product list."""
    return tuple(p.strip() for p in value.split(",") if p.strip())


def _int_env(env: Mapping[str, str], name: str) -> Optional[int]:
    raw = (env.get(name) or "").strip()
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(
            f"Invalid integer for {name}: {raw!r}",
            config_key=name,
        )


def load_feed_config(
    environ: Optional[Mapping[str, str]] = None,
    base: Optional[FeedConfig] = None,
) -> FeedConfig:
    """
    Build feed configuration from optional environment overrides.

    Raises:
        ConfigurationError: On unparseable or invalid values
    """
    env = os.environ if environ is None else environ
    config = base or FeedConfig()

    products = (env.get("PRIME_PRODUCT_IDS") or "").strip()

    config = config.with_overrides(
        uri=(env.get("PRIME_WS_URI") or "").strip() or None,
        product_ids=parse_product_ids(products) if products else None,
        max_reconnect_attempts=_int_env(env, "PRIME_MAX_RECONNECT_ATTEMPTS"),
        initial_reconnect_delay_ms=_int_env(env, "PRIME_INITIAL_RECONNECT_DELAY_MS"),
    )

    check_feed_config(config)
    return config


def check_feed_config(config: FeedConfig) -> None:
    """
    Raise on an invalid configuration; warn on venue limits.

    Raises:
        ConfigurationError: If validate() reports errors
    """
    errors = config.validate()
    if errors:
        raise ConfigurationError(f"Invalid configuration: {', '.join(errors)}")

    if len(config.product_ids) > VENUE_MAX_PRODUCTS:
        logger.warning(
            f"{len(config.product_ids)} products requested; the venue accepts "
            f"at most {VENUE_MAX_PRODUCTS} per connection"
        )


def load_env_file(path: Optional[str] = None) -> bool:
    """Load a .env file into os.environ without overriding set variables."""
    return load_dotenv(dotenv_path=path, override=False)
