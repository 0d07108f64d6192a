"""
Avatar service client contract.

This module defines the *interface only*. Concrete clients talk to a
remote avatar rendering service; the session core never sees transports.

Key invariants:
- The client performs exactly one remote call per method invocation.
- The client never retries internally; retry policy is the caller's.
- The client never mutates SessionState. It reports remote facts as
  RemoteEvents through the attached event sink.
- Failures surface as AvatarServiceError with a human-readable reason.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Awaitable, Callable

from avatar.enums.task import TaskMode, TaskType
from avatar.events import RemoteEvent
from avatar.tasks import SpeakAck, StreamInfo

RemoteEventSink = Callable[[RemoteEvent], Awaitable[None]]


class AvatarServiceError(Exception):
    """The remote avatar service rejected or failed a call."""


class AvatarServiceClient(ABC):
    """
    Abstract interface for a streaming avatar service.

    Note: the event sink must be async.

    Implementations are responsible for:
    - Opening and closing one remote streaming session
    - Submitting speak tasks without waiting for the utterance to end
    - Forwarding interrupt requests
    - Delivering start/stop talking notifications to the sink

    Non-responsibilities:
    - No state machine logic (READY/SPEAKING/etc.)
    - No text validation
    - No direct interaction with the browser
    """

    def __init__(self) -> None:
        self._event_sink: RemoteEventSink | None = None

    def attach_event_sink(self, sink: RemoteEventSink) -> None:
        """
        Attach the async callback that receives RemoteEvents.

        Called once by AvatarSessionHandle during construction.
        """
        self._event_sink = sink

    async def _emit(self, event: RemoteEvent) -> None:
        if self._event_sink is not None:
            await self._event_sink(event)

    @abstractmethod
    async def open(self) -> StreamInfo:
        """
        Create and start a remote streaming session.

        Raises:
            AvatarServiceError if the session cannot be established.
        """
        raise NotImplementedError

    @abstractmethod
    async def speak(
        self,
        *,
        text: str,
        task_type: TaskType,
        task_mode: TaskMode,
    ) -> SpeakAck:
        """
        Submit text for the avatar to speak.

        Contract:
        - With TaskMode.ASYNC, returns once the service accepted the task,
          not when the utterance ends.
        - The end of speech is reported later as AVATAR_STOP_TALKING.
        """
        raise NotImplementedError

    @abstractmethod
    async def interrupt(self) -> None:
        """
        Ask the service to halt current speech.

        Contract:
        - Takes no arguments.
        - Idempotent on the remote side.
        """
        raise NotImplementedError

    @abstractmethod
    async def close(self) -> None:
        """
        Stop the remote session and release transport resources.

        Must be safe to call on a client that never opened.
        """
        raise NotImplementedError
