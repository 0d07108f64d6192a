"""
Avatar session handle.

Responsibilities:
- Sole owner of one live connection to the remote avatar service
- Owns SessionState; nothing else mutates it
- Validates when speaking / interrupting is legal
- Serializes remote calls in invocation order
- Translates remote events into state transitions
- Notifies subscribers of every state transition

Non-responsibilities:
- Text validation (MessageDispatcher)
- Retries or timeouts (transport layer)
- Any knowledge of the browser or WebSocket
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Callable
from uuid import uuid4

from adapters.avatar.base import AvatarServiceClient, AvatarServiceError
from avatar.enums.state import SessionState
from avatar.enums.task import SpeakPolicy, TaskMode
from avatar.errors import SessionBusy, SessionClosed, SessionError, SessionNotReady
from avatar.events import RemoteEvent, RemoteEventType
from avatar.tasks import SpeakAck, SpeakTask, StreamInfo
from observability.logger import log_event

StateListener = Callable[[SessionState, SessionState], None]


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------

def _now_ms() -> int:
    return time.time_ns() // 1_000_000


def _new_session_id() -> str:
    return f"sess_{uuid4().hex[:12]}"


_NOT_CONNECTED = {SessionState.UNINITIALIZED, SessionState.CONNECTING}


# ------------------------------------------------------------------
# AvatarSessionHandle
# ------------------------------------------------------------------

class AvatarSessionHandle:
    """
    One handle == one remote avatar session.

    All remote calls go through a single asyncio.Lock. The lock is FIFO,
    so calls reach the service in the order they were made. State checks
    that decide whether a call is legal are repeated once the lock is
    held, against the state left by the previous call.
    """

    def __init__(
        self,
        *,
        client: AvatarServiceClient,
        policy: SpeakPolicy = SpeakPolicy.QUEUE,
        session_id: str | None = None,
    ) -> None:
        self._client = client
        self._policy = policy
        self._session_id = session_id or _new_session_id()

        self._state = SessionState.UNINITIALIZED
        self._current_task: SpeakTask | None = None
        self._stream: StreamInfo | None = None
        self._released = False

        self._lock = asyncio.Lock()
        self._listeners: list[StateListener] = []

        client.attach_event_sink(self._on_remote_event)

    # ------------------------------------------------------------------
    # Read-only accessors
    # ------------------------------------------------------------------

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def current_task(self) -> SpeakTask | None:
        """The task most recently accepted while SPEAKING, if any."""
        return self._current_task

    @property
    def stream_info(self) -> StreamInfo | None:
        return self._stream

    @property
    def policy(self) -> SpeakPolicy:
        return self._policy

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """
        Register listener(old_state, new_state) for every transition.

        Returns a callable that removes the listener.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> StreamInfo | None:
        """
        Open the remote session: UNINITIALIZED -> CONNECTING -> READY.

        No-op if already connecting or connected.

        Raises:
            SessionClosed if the handle was closed.
            SessionError if the remote session cannot be opened; the
            handle returns to UNINITIALIZED and may be connected again.
        """
        if self._state == SessionState.CLOSED:
            raise SessionClosed("session is closed; start a new session")
        if self._state != SessionState.UNINITIALIZED:
            return self._stream

        self._set_state(SessionState.CONNECTING, decision="connect_started")

        async with self._lock:
            if self._state != SessionState.CONNECTING:
                # closed while waiting for the lock
                raise SessionClosed("session closed while connecting")

            try:
                stream = await self._client.open()
            except AvatarServiceError as e:
                self._set_state(
                    SessionState.UNINITIALIZED,
                    decision="connect_failed",
                    error=str(e),
                )
                raise SessionError(f"could not connect to avatar service: {e}") from e

            self._stream = stream
            if self._state == SessionState.CONNECTING:
                self._set_state(
                    SessionState.READY,
                    decision="connected",
                    remote_session_id=stream.session_id,
                )
            return stream

    async def close(self) -> None:
        """
        Tear the session down and release the remote connection.

        Idempotent. Remote teardown failures are logged, never raised.
        """
        if self._released:
            return

        async with self._lock:
            if self._released:
                return
            self._released = True

            try:
                await self._client.close()
            except AvatarServiceError as e:
                log_event({
                    "ts_ms": _now_ms(),
                    "event_type": "AVATAR_CLOSE_ERROR",
                    "session_id": self._session_id,
                    "error": str(e),
                })

            self._current_task = None
            self._stream = None
            if self._state != SessionState.CLOSED:
                self._set_state(SessionState.CLOSED, decision="closed")

    # ------------------------------------------------------------------
    # Speaking
    # ------------------------------------------------------------------

    async def submit_speak(self, task: SpeakTask) -> SpeakAck:
        """
        Stream a speak task to the remote service.

        Returns once the service accepted the task; the utterance itself
        finishes later (observed as a transition back to READY).

        Raises:
            SessionNotReady before the session finished connecting.
            SessionClosed after teardown.
            SessionBusy while SPEAKING under the "reject" policy.
            SessionError if the service rejects or fails the call.
            SessionState is left unchanged, except under the "replace"
            policy when the interrupt succeeded and the new task then
            failed: the old utterance is already halted, so it stays READY.
        """
        self._check_can_speak()

        async with self._lock:
            self._check_can_speak()

            if self._state == SessionState.SPEAKING:
                if self._policy == SpeakPolicy.REJECT:
                    raise SessionBusy("avatar is speaking; interrupt first")
                if self._policy == SpeakPolicy.REPLACE:
                    await self._remote_interrupt(decision="replaced")

            try:
                ack = await self._client.speak(
                    text=task.text,
                    task_type=task.task_type,
                    task_mode=task.task_mode,
                )
            except AvatarServiceError as e:
                log_event({
                    "ts_ms": _now_ms(),
                    "event_type": "SPEAK_FAILED",
                    "session_id": self._session_id,
                    "state": self._state.value,
                    "error": str(e),
                })
                raise SessionError(f"avatar rejected speak task: {e}") from e

            log_event({
                "ts_ms": _now_ms(),
                "event_type": "SPEAK_ACCEPTED",
                "session_id": self._session_id,
                "task_id": ack.task_id,
                "task_type": task.task_type.value,
                "task_mode": task.task_mode.value,
                "text_len": len(task.text),
            })

            # SYNC tasks return after the utterance already ended
            if task.task_mode == TaskMode.ASYNC and self._state in (
                SessionState.READY,
                SessionState.SPEAKING,
            ):
                self._current_task = task
                if self._state != SessionState.SPEAKING:
                    self._set_state(SessionState.SPEAKING, decision="speak_accepted")

            return ack

    async def interrupt(self) -> bool:
        """
        Halt current speech.

        Valid in every state. Only when SPEAKING does it reach the remote
        service and move to READY; otherwise it is a no-op.

        Returns:
            True if a remote interrupt was sent.

        Raises:
            SessionError if the remote interrupt fails (state stays SPEAKING).
        """
        async with self._lock:
            if self._state != SessionState.SPEAKING:
                log_event({
                    "ts_ms": _now_ms(),
                    "event_type": "INTERRUPT_NOOP",
                    "session_id": self._session_id,
                    "state": self._state.value,
                })
                return False

            await self._remote_interrupt(decision="interrupted")
            return True

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _check_can_speak(self) -> None:
        if self._state in _NOT_CONNECTED:
            raise SessionNotReady(
                f"avatar session is {self._state.value.lower()}; wait until it is ready"
            )
        if self._state == SessionState.CLOSED:
            raise SessionClosed("session is closed; start a new session")

    async def _remote_interrupt(self, *, decision: str) -> None:
        """Must be called with the lock held."""
        try:
            await self._client.interrupt()
        except AvatarServiceError as e:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "INTERRUPT_FAILED",
                "session_id": self._session_id,
                "error": str(e),
            })
            raise SessionError(f"avatar interrupt failed: {e}") from e

        self._current_task = None
        if self._state == SessionState.SPEAKING:
            self._set_state(SessionState.READY, decision=decision)

    async def _on_remote_event(self, event: RemoteEvent) -> None:
        """Event sink attached to the avatar client."""
        log_event({
            "ts_ms": event.ts_ms,
            "event_type": "AVATAR_REMOTE_EVENT",
            "session_id": self._session_id,
            "remote_event": event.event_type.value,
            "task_id": event.task_id,
            "state": self._state.value,
        })

        if event.event_type == RemoteEventType.AVATAR_STOP_TALKING:
            if self._state == SessionState.SPEAKING:
                self._current_task = None
                self._set_state(SessionState.READY, decision="remote_speech_ended")

        elif event.event_type == RemoteEventType.AVATAR_START_TALKING:
            if self._state == SessionState.READY:
                self._set_state(SessionState.SPEAKING, decision="remote_speech_started")

        elif event.event_type == RemoteEventType.STREAM_DISCONNECTED:
            if self._state != SessionState.CLOSED:
                self._current_task = None
                self._set_state(SessionState.CLOSED, decision="remote_disconnected")

    def _set_state(self, new_state: SessionState, *, decision: str, **extra: Any) -> None:
        old_state = self._state
        if old_state == new_state:
            return
        self._state = new_state

        log_event({
            "ts_ms": _now_ms(),
            "event_type": "SESSION_STATE_CHANGED",
            "session_id": self._session_id,
            "from": old_state.value,
            "to": new_state.value,
            "decision": decision,
            **extra,
        })

        for listener in tuple(self._listeners):
            listener(old_state, new_state)
