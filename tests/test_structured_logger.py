import io
import json
import logging

import httpx
import pytest

from config.settings import settings
from ops.structured_logger import SMS_LOGGER, SmsJsonFormatter, enable_sms_logging
from sms import nexmo
from sms.gateway import TextMessage
from sms.nexmo import NexmoGateway


@pytest.fixture
def sms_logger():
    logger = logging.getLogger(SMS_LOGGER)
    handlers, level = logger.handlers[:], logger.level
    yield logger
    logger.handlers[:] = handlers
    logger.setLevel(level)


def _record(msg, extra=None, level=logging.INFO):
    record = logging.LogRecord("sms.nexmo", level, __file__, 1, msg, None, None)
    if extra is not None:
        record.extra = extra
    return record


def test_formatter_lifts_event_fields_in_order():
    extra = {"latency_ms": 12, "custom": "x", "dest": "...4567", "event": "sms_send_result", "provider": "nexmo"}
    payload = json.loads(SmsJsonFormatter().format(_record("sms_send_result", extra)))

    assert list(payload)[:4] == ["ts", "severity", "logger", "service"]
    assert list(payload)[4:] == ["event", "provider", "dest", "latency_ms", "custom"]
    assert payload["severity"] == "INFO"
    assert payload["logger"] == "sms.nexmo"
    assert payload["service"] == settings.SERVICE_NAME


def test_formatter_drops_credentials_and_text():
    extra = {"event": "x", "api_key": "k1", "api_secret": "s1", "text": "hello"}
    payload = json.loads(SmsJsonFormatter().format(_record("x", extra)))
    assert "api_key" not in payload
    assert "api_secret" not in payload
    assert "text" not in payload


def test_formatter_falls_back_to_message_as_event():
    payload = json.loads(SmsJsonFormatter().format(_record("plain message")))
    assert payload["event"] == "plain message"


def test_enable_sms_logging_only_touches_sms_tree(sms_logger):
    root_handlers = logging.getLogger().handlers[:]
    logger = enable_sms_logging("DEBUG")

    assert logger is sms_logger
    assert logger.level == logging.DEBUG
    assert len(logger.handlers) == 1
    assert isinstance(logger.handlers[0].formatter, SmsJsonFormatter)
    assert logging.getLogger().handlers == root_handlers

    enable_sms_logging("INFO")
    assert len(logger.handlers) == 1


def test_gateway_events_render_as_json_lines(sms_logger, monkeypatch):
    monkeypatch.setattr(nexmo, "NEXMO_ENDPOINT", "https://mock.nexmo.test/sms/json")
    stream = io.StringIO()
    enable_sms_logging("INFO", stream=stream)

    client = httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(200, json={"message-count": "1"})))
    NexmoGateway(api_key="k1", api_secret="s1", client=client).send("15551234567", TextMessage("hello"))

    lines = [json.loads(line) for line in stream.getvalue().splitlines()]
    assert [line["event"] for line in lines] == ["sms_send_attempt", "sms_send_result"]
    assert lines[1]["provider"] == "nexmo"
    assert lines[1]["dest"] == "...4567"
    assert lines[1]["status_code"] == 200
    assert lines[1]["message_count"] == "1"
    assert "s1" not in stream.getvalue()
    assert "hello" not in stream.getvalue()
