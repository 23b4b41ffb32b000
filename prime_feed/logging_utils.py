"""
Prime Feed - Logging Utilities.

============================================================
PURPOSE
============================================================
Logging setup and secure logging helpers.

- Root logger configuration (json or text format)
- Credential masking (API keys, passphrases, signatures)

============================================================
SECURITY REQUIREMENTS
============================================================
1. NEVER log raw API keys, secrets or passphrases
2. Mask signatures in outbound subscribe requests

============================================================
"""

import json
import logging
import sys
from typing import Any, Dict, Optional


# Logger that receives the top-of-book lines
QUOTES_LOGGER_NAME = "prime_feed.quotes"

# Parameter names that should be masked
SENSITIVE_PARAMS = {
    "access_key",
    "api_key",
    "secret",
    "secret_key",
    "passphrase",
    "signature",
}


# ============================================================
# LOGGING SETUP
# ============================================================

def setup_logging(
    level: str = "INFO",
    log_format: str = "text",
    stream: Optional[Any] = None,
) -> logging.Logger:
    """
    Set up root logging.

    Args:
        level: Log level name
        log_format: Output format (json or text)
        stream: Output stream (default: stdout)

    Returns:
        The package logger
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    if log_format == "json":
        formatter = logging.Formatter(
            json.dumps({
                "timestamp": "%(asctime)s",
                "level": "%(levelname)s",
                "logger": "%(name)s",
                "message": "%(message)s",
            })
        )
    else:
        formatter = logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
        )

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers = [handler]

    return logging.getLogger("prime_feed")


# ============================================================
# MASKING FUNCTIONS
# ============================================================

def mask_value(value: str, show_chars: int = 4) -> str:
    """
    Mask a sensitive value, showing only first few chars.

    Args:
        value: Value to mask
        show_chars: Number of chars to show at start

    Returns:
        Masked value
    """
    if not value or len(value) <= show_chars:
        return "***"
    return f"{value[:show_chars]}...***"


def mask_params(params: Dict[str, Any]) -> Dict[str, Any]:
    """
    Mask sensitive parameters.

    Args:
        params: Message or config parameters

    Returns:
        Parameters with sensitive values masked
    """
    if not params:
        return {}

    masked = {}
    for key, value in params.items():
        if key.lower() in SENSITIVE_PARAMS:
            masked[key] = mask_value(str(value)) if value else value
        elif isinstance(value, dict):
            masked[key] = mask_params(value)
        else:
            masked[key] = value
    return masked
