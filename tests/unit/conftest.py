# pylint: disable=missing-module-docstring,missing-function-docstring

import pytest

from observability import logger


@pytest.fixture(autouse=True)
def log_lines(monkeypatch: pytest.MonkeyPatch) -> list[str]:
    """Capture JSONL log output instead of writing to stdout."""
    captured: list[str] = []
    monkeypatch.setattr(logger, "_print", captured.append)
    monkeypatch.setattr(logger, "_enabled", True)
    return captured
