# pylint: disable=missing-module-docstring,missing-function-docstring

import json
from typing import Any

from observability import logger


def test_log_event_emits_valid_jsonl(log_lines: list[str]):
    """
    - log_event emits exactly one JSONL line
    - payload is serialized as-is
    - output sink is patchable
    """
    payload: dict[str, Any] = {
        "event_type": "TEST",
        "value": 123,
    }

    logger.log_event(payload)

    assert len(log_lines) == 1
    assert json.loads(log_lines[0]) == payload


def test_unserializable_event_falls_back(log_lines: list[str]):
    logger.log_event({"ts_ms": 5, "event_type": "TEST", "bad": object()})

    decoded = json.loads(log_lines[0])
    assert decoded["event_type"] == "LOGGER_SERIALIZATION_ERROR"
    assert decoded["ts_ms"] == 5


def test_disabled_logger_writes_nothing(log_lines: list[str]):
    logger.set_enabled(False)
    logger.log_event({"event_type": "TEST"})

    assert not log_lines
