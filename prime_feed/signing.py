"""
Prime Feed - Subscription Signing.

============================================================
PURPOSE
============================================================
Computes the signature for the authenticated subscribe request.

SIGNATURE:
    BASE64(HMAC-SHA256(channel + api_key + account_id + timestamp + product_ids))

No delimiters between fields; product ids are concatenated in their
given order. Pure function: no state, no I/O.

============================================================
"""

import base64
import hashlib
import hmac
from typing import Sequence

from prime_feed.errors import SigningError


def canonical_message(
    channel: str,
    api_key: str,
    account_id: str,
    timestamp: str,
    product_ids: Sequence[str],
) -> str:
    """Build the exact string covered by the signature."""
    return f"{channel}{api_key}{account_id}{timestamp}{''.join(product_ids)}"


def sign(
    channel: str,
    api_key: str,
    secret_key: str,
    account_id: str,
    timestamp: str,
    product_ids: Sequence[str],
) -> str:
    """
    Sign a subscribe request.

    Args:
        channel: Feed channel name
        api_key: API access key
        secret_key: API secret used as the HMAC key
        account_id: Service account id
        timestamp: Unix time in seconds, as a string
        product_ids: Instruments to subscribe to

    Returns:
        Base64 encoded signature

    Raises:
        SigningError: If the secret key is empty
    """
    if not secret_key or not secret_key.strip():
        raise SigningError(
            "Secret key is empty; cannot sign subscribe request",
            config_key="SECRET_KEY",
        )

    message = canonical_message(channel, api_key, account_id, str(timestamp), product_ids)
    signature = hmac.new(
        secret_key.encode("utf-8"),
        message.encode("utf-8"),
        hashlib.sha256,
    ).digest()
    return base64.b64encode(signature).decode()
