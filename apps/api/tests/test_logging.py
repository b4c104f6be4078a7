"""
Tests for structured log output.
"""
import json
import logging
import sys

from core.logging import JSONFormatter, safe_fields


def make_record(extra=None, exc_info=None):
    record = logging.LogRecord(
        name="services.chat_orchestrator",
        level=logging.INFO,
        pathname=__file__,
        lineno=42,
        msg="Chat reply sent for %s",
        args=("user-1",),
        exc_info=exc_info,
    )
    if extra is not None:
        record.extra_fields = extra
    return record


def test_json_line_with_context_fields():
    line = JSONFormatter().format(make_record({"user_id": "user-1", "message_count": 3}))
    entry = json.loads(line)

    assert entry["msg"] == "Chat reply sent for user-1"
    assert entry["level"] == "INFO"
    assert entry["service"] == "coach-chat-api"
    assert entry["user_id"] == "user-1"
    assert entry["message_count"] == 3


def test_conversation_text_is_never_logged():
    entry = json.loads(JSONFormatter().format(make_record({
        "user_id": "user-1",
        "message": "my private worries",
        "response": "coach reply",
    })))
    assert "message" not in entry
    assert "response" not in entry
    assert "my private worries" not in json.dumps(entry)


def test_safe_fields_keeps_metadata():
    assert safe_fields({"chat_id": "c1", "content": "hi"}) == {"chat_id": "c1"}


def test_exception_is_included():
    try:
        raise RuntimeError("db down")
    except RuntimeError:
        record = make_record(exc_info=sys.exc_info())

    entry = json.loads(JSONFormatter().format(record))
    assert "RuntimeError: db down" in entry["exc"]
