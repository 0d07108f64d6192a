"""
Message dispatcher.

Turns an operator's catalog selection into a validated speak task and
forwards it to the session handle.

Rules:
- Text is trimmed before anything else.
- Empty / whitespace-only text never reaches the session handle.
  This is a silent drop, not an error.
- Every produced task is verbatim-repeat and fire-and-forget.
- Errors from the session handle propagate unchanged.
"""

from __future__ import annotations

import time

from avatar.enums.task import TaskMode, TaskType
from avatar.session_handle import AvatarSessionHandle
from avatar.tasks import SpeakAck, SpeakTask
from catalog.messages import MessageCatalog
from observability.logger import log_event


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


class MessageDispatcher:
    """Forwards catalog selections to one AvatarSessionHandle."""

    def __init__(self, *, handle: AvatarSessionHandle) -> None:
        self._handle = handle

    async def dispatch(self, raw_text: str) -> SpeakAck | None:
        """
        Submit `raw_text` for verbatim speech.

        Returns:
            The remote acknowledgement, or None when the text was empty
            after trimming and nothing was sent.
        """
        text = raw_text.strip()
        if not text:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "DISPATCH_SKIPPED",
                "session_id": self._handle.session_id,
                "decision": "empty_text",
            })
            return None

        task = SpeakTask(text=text, task_type=TaskType.REPEAT, task_mode=TaskMode.ASYNC)
        return await self._handle.submit_speak(task)

    async def dispatch_entry(self, catalog: MessageCatalog, index: int) -> SpeakAck | None:
        """
        Dispatch the catalog entry at a 0-based position.

        Raises:
            IndexError if the position is not in the catalog.
        """
        return await self.dispatch(catalog[index])
