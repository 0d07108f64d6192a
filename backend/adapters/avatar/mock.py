"""
In-process avatar client for demos and tests without credentials.

Simulates a streaming avatar: speak() starts a timed "utterance" that
emits AVATAR_START_TALKING immediately and AVATAR_STOP_TALKING when it
ends. interrupt() cuts the utterance short. Async tasks queue behind the
current one, as the remote service does.
"""

from __future__ import annotations

import asyncio
import time
from collections import deque
from uuid import uuid4

from adapters.avatar.base import AvatarServiceClient, AvatarServiceError
from avatar.enums.task import TaskMode, TaskType
from avatar.events import RemoteEvent, RemoteEventType
from avatar.tasks import SpeakAck, StreamInfo

from spec import MOCK_SPEECH_MIN_MS, MOCK_SPEECH_MS_PER_CHAR


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


def _speech_ms(text: str) -> int:
    return max(MOCK_SPEECH_MIN_MS, len(text) * MOCK_SPEECH_MS_PER_CHAR)


class MockAvatarClient(AvatarServiceClient):
    """Avatar client that speaks into the void on a timer."""

    def __init__(self, *, ms_per_char: int | None = None) -> None:
        super().__init__()
        self._ms_per_char = ms_per_char
        self._session_id: str | None = None
        self._pending: deque[tuple[str, str]] = deque()
        self._player: asyncio.Task[None] | None = None

        # Call log for inspection
        self.calls: list[tuple[str, ...]] = []

    async def open(self) -> StreamInfo:
        self.calls.append(("open",))
        self._session_id = f"mock_{uuid4().hex[:8]}"
        return StreamInfo(session_id=self._session_id)

    async def speak(
        self,
        *,
        text: str,
        task_type: TaskType,
        task_mode: TaskMode,
    ) -> SpeakAck:
        if self._session_id is None:
            raise AvatarServiceError("no open streaming session")

        self.calls.append(("speak", text, task_type.value, task_mode.value))
        task_id = uuid4().hex[:12]
        duration_ms = self._duration_ms(text)

        if task_mode == TaskMode.SYNC:
            await self._play(task_id, duration_ms)
        else:
            self._pending.append((task_id, text))
            if self._player is None or self._player.done():
                self._player = asyncio.create_task(self._drain())

        return SpeakAck(task_id=task_id, duration_ms=float(duration_ms))

    async def interrupt(self) -> None:
        self.calls.append(("interrupt",))
        self._pending.clear()
        if self._player is not None and not self._player.done():
            self._player.cancel()
            self._player = None
            await self._emit(
                RemoteEvent(event_type=RemoteEventType.AVATAR_STOP_TALKING, ts_ms=_now_ms())
            )

    async def close(self) -> None:
        self.calls.append(("close",))
        self._pending.clear()
        if self._player is not None:
            self._player.cancel()
            self._player = None
        self._session_id = None

    # ------------------------------------------------------------------
    # Simulation
    # ------------------------------------------------------------------

    def _duration_ms(self, text: str) -> int:
        if self._ms_per_char is not None:
            return len(text) * self._ms_per_char
        return _speech_ms(text)

    async def _drain(self) -> None:
        while self._pending:
            task_id, text = self._pending.popleft()
            await self._play(task_id, self._duration_ms(text))

    async def _play(self, task_id: str, duration_ms: int) -> None:
        await self._emit(
            RemoteEvent(
                event_type=RemoteEventType.AVATAR_START_TALKING,
                ts_ms=_now_ms(),
                task_id=task_id,
            )
        )
        await asyncio.sleep(duration_ms / 1000.0)
        await self._emit(
            RemoteEvent(
                event_type=RemoteEventType.AVATAR_STOP_TALKING,
                ts_ms=_now_ms(),
                task_id=task_id,
            )
        )
