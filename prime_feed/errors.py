"""
Prime Feed - Exceptions.

============================================================
RESPONSIBILITY
============================================================
Defines all custom exceptions for the market-data feed.

- Provides a clear exception hierarchy
- Separates fatal (startup) errors from recoverable ones
- Includes context for debugging

============================================================
EXCEPTION HIERARCHY
============================================================
FeedError (base)
├── ConfigurationError
│   └── SigningError
├── ConnectError
├── TransientLinkError
├── ReconnectExhaustedError
├── FeedClosedError
└── ParseError

============================================================
"""

from enum import Enum
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


# ============================================================
# ERROR CLASSIFICATION
# ============================================================

class ErrorClassification(Enum):
    """Classification of error recoverability."""

    RECOVERABLE = "recoverable"
    """Handled locally, processing continues."""

    TRANSIENT = "transient"
    """Temporary error, reconnect may succeed."""

    NON_RECOVERABLE = "non_recoverable"
    """Permanent error, the process must stop."""


# ============================================================
# BASE EXCEPTION
# ============================================================

class FeedError(Exception):
    """
    Base exception for all feed errors.

    All exceptions carry:
    - context: for debugging
    - classification: for error handling decisions
    - cause: the underlying exception, if any
    - timestamp: when the error occurred
    """

    default_classification: ErrorClassification = ErrorClassification.NON_RECOVERABLE

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        classification: Optional[ErrorClassification] = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message)

        self.message = message
        self.context = context or {}
        self.classification = classification or self.default_classification
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)

        if cause:
            self.context["cause_type"] = type(cause).__name__
            self.context["cause_message"] = str(cause)

    @property
    def is_recoverable(self) -> bool:
        """Check if error is recoverable."""
        return self.classification in (
            ErrorClassification.RECOVERABLE,
            ErrorClassification.TRANSIENT,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize exception for logging."""
        return {
            "type": type(self).__name__,
            "message": self.message,
            "classification": self.classification.value,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "cause": str(self.cause) if self.cause else None,
        }


# ============================================================
# CONFIGURATION ERRORS
# ============================================================

class ConfigurationError(FeedError):
    """Missing or invalid credentials or settings."""

    def __init__(
        self,
        message: str,
        missing: Optional[List[str]] = None,
        config_key: Optional[str] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if missing:
            context["missing"] = list(missing)
        if config_key:
            context["config_key"] = config_key

        super().__init__(message, context=context, **kwargs)
        self.missing = list(missing or [])


class SigningError(ConfigurationError):
    """The secret key cannot be used to sign a subscribe request."""
    pass


# ============================================================
# LINK ERRORS
# ============================================================

class ConnectError(FeedError):
    """The transport did not open within the handshake timeout."""

    def __init__(self, message: str, uri: Optional[str] = None, **kwargs):
        context = kwargs.pop("context", {})
        if uri:
            context["uri"] = uri
        super().__init__(message, context=context, **kwargs)


class TransientLinkError(FeedError):
    """Mid-session close or transport error."""

    default_classification = ErrorClassification.TRANSIENT


class ReconnectExhaustedError(FeedError):
    """The reconnect ladder ran out of attempts."""

    def __init__(self, attempts: int, **kwargs):
        context = kwargs.pop("context", {})
        context["attempts"] = attempts
        super().__init__(
            f"Max reconnection attempts reached ({attempts})",
            context=context,
            **kwargs,
        )
        self.attempts = attempts


class FeedClosedError(FeedError):
    """The venue closed the connection cleanly without a shutdown request."""

    def __init__(self, code: Optional[int], reason: str = "", **kwargs):
        context = kwargs.pop("context", {})
        context["code"] = code
        context["reason"] = reason
        super().__init__(
            f"Feed closed by venue (code: {code}, reason: {reason or 'none'})",
            context=context,
            **kwargs,
        )
        self.code = code
        self.reason = reason


# ============================================================
# MESSAGE ERRORS
# ============================================================

class ParseError(FeedError):
    """Malformed inbound payload. The message is dropped."""

    default_classification = ErrorClassification.RECOVERABLE

    def __init__(self, message: str, payload: Optional[str] = None, **kwargs):
        context = kwargs.pop("context", {})
        if payload is not None:
            context["payload"] = payload[:200]
        super().__init__(message, context=context, **kwargs)
