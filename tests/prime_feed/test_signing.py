"""
Tests for subscription signing.

============================================================
TEST PRINCIPLES:
- Same inputs always give the same signature
- Every signed field changes the signature
- An unusable secret is rejected before any network I/O
============================================================
"""

import base64

import pytest

from prime_feed.errors import ConfigurationError, SigningError
from prime_feed.signing import canonical_message, sign


CHANNEL = "l2_data"
API_KEY = "test-api-key"
SECRET = "test-secret-key"
ACCOUNT = "test-account"
TIMESTAMP = "1700000000"


def _sign(**overrides):
    params = {
        "channel": CHANNEL,
        "api_key": API_KEY,
        "secret_key": SECRET,
        "account_id": ACCOUNT,
        "timestamp": TIMESTAMP,
        "product_ids": ["BTC-USD"],
    }
    params.update(overrides)
    return sign(**params)


class TestCanonicalMessage:
    def test_fields_concatenated_without_delimiters(self):
        message = canonical_message(CHANNEL, API_KEY, ACCOUNT, TIMESTAMP, ["BTC-USD", "ETH-USD"])
        assert message == "l2_datatest-api-keytest-account1700000000BTC-USDETH-USD"

    def test_no_products(self):
        assert canonical_message("c", "k", "a", "1", []) == "cka1"


class TestSign:
    def test_known_signature(self):
        assert _sign() == "vu0/UwCkGkFdQfySa3psH/vLb+w+HicFQplxLk7vmPU="

    def test_known_signature_multiple_products(self):
        signature = _sign(product_ids=["BTC-USD", "ETH-USD"])
        assert signature == "inX998hVcP7FGkOfiUgy7t2jlQR7xG6tWkrnLcs76hY="

    def test_deterministic(self):
        assert _sign() == _sign()

    def test_output_is_base64_sha256(self):
        assert len(base64.b64decode(_sign())) == 32

    @pytest.mark.parametrize("field, value", [
        ("channel", "heartbeats"),
        ("api_key", "other-key"),
        ("secret_key", "other-secret"),
        ("account_id", "other-account"),
        ("product_ids", ["ETH-USD"]),
    ])
    def test_each_field_changes_signature(self, field, value):
        assert _sign(**{field: value}) != _sign()

    def test_adjacent_timestamps_differ(self):
        assert _sign(timestamp="1700000000") != _sign(timestamp="1700000001")

    def test_product_order_matters(self):
        assert (
            _sign(product_ids=["BTC-USD", "ETH-USD"])
            != _sign(product_ids=["ETH-USD", "BTC-USD"])
        )

    @pytest.mark.parametrize("secret", ["", "   "])
    def test_empty_secret_rejected(self, secret):
        with pytest.raises(SigningError) as exc_info:
            _sign(secret_key=secret)

        assert exc_info.value.context["config_key"] == "SECRET_KEY"

    def test_signing_error_is_configuration_error(self):
        with pytest.raises(ConfigurationError):
            _sign(secret_key="")
