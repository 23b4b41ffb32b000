"""Tests for logging setup and credential masking."""

import io
import json
import logging

import pytest

from prime_feed.logging_utils import mask_params, mask_value, setup_logging
from prime_feed.types import SubscribeRequest


@pytest.fixture
def restore_root_logging():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers = handlers
    root.setLevel(level)


class TestMasking:
    def test_mask_value(self):
        assert mask_value("abcdefgh") == "abcd...***"
        assert mask_value("abc") == "***"
        assert mask_value("") == "***"

    def test_mask_params_nested(self):
        masked = mask_params({
            "channel": "l2_data",
            "signature": "c2lnbmF0dXJl",
            "nested": {"passphrase": "hunter22"},
        })

        assert masked["channel"] == "l2_data"
        assert masked["signature"] == "c2ln...***"
        assert masked["nested"]["passphrase"] == "hunt...***"

    def test_subscribe_request_log_dict(self):
        request = SubscribeRequest(
            channel="l2_data",
            access_key="access-key",
            api_key_id="account",
            timestamp="1700000000",
            passphrase="passphrase",
            signature="signature",
            product_ids=("BTC-USD",),
        )

        logged = request.to_log_dict()

        assert logged["access_key"] == "acce...***"
        assert logged["api_key_id"] == "account"
        assert logged["product_ids"] == ["BTC-USD"]
        assert "passphrase" not in repr(request)


class TestSetupLogging:
    def test_json_format(self, restore_root_logging):
        stream = io.StringIO()
        setup_logging(level="DEBUG", log_format="json", stream=stream)

        logging.getLogger("prime_feed.test").info("hello")

        record = json.loads(stream.getvalue().strip())
        assert record["level"] == "INFO"
        assert record["logger"] == "prime_feed.test"
        assert record["message"] == "hello"

    def test_text_format_and_level(self, restore_root_logging):
        stream = io.StringIO()
        logger = setup_logging(level="warning", stream=stream)

        logging.getLogger("prime_feed.test").info("hidden")
        logging.getLogger("prime_feed.test").warning("shown")

        output = stream.getvalue()
        assert "hidden" not in output
        assert "| WARNING  | prime_feed.test | shown" in output
        assert logger.name == "prime_feed"
