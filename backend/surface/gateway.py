"""
Control surface gateway.

Responsibilities:
- Composition root for one browser tab: builds the avatar client,
  session handle, message dispatcher and interrupt controller
- Routes inbound JSON control messages -> dispatcher / controller
- Runs operator actions as fire-and-forget background tasks, started in
  arrival order
- Pushes state transitions, acknowledgements and errors to the client
  through an outbound queue
- Disables catalog input until the session has connected

NOT responsible for:
- Session state rules (AvatarSessionHandle)
- Text validation (MessageDispatcher)
- WebSocket I/O (server.routes)
"""

from __future__ import annotations

import asyncio
import functools
import json
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, TYPE_CHECKING

from adapters.avatar.base import AvatarServiceClient
from adapters.avatar.factory import build_avatar_client
from avatar.dispatcher import MessageDispatcher
from avatar.enums.state import SessionState
from avatar.enums.task import SpeakPolicy
from avatar.errors import SessionError
from avatar.interrupt import InterruptController
from avatar.session_handle import AvatarSessionHandle
from catalog.messages import MessageCatalog
from observability.logger import log_event

from spec import LOG_PAYLOAD_PREVIEW_CHARS

if TYPE_CHECKING:
    from config import AppConfig

ClientFactory = Callable[["AppConfig"], AvatarServiceClient]

# Catalog buttons are disabled in these states; Interrupt never is
_INPUT_DISABLED_STATES = {SessionState.UNINITIALIZED, SessionState.CONNECTING}


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------

def _now_ms() -> int:
    return time.time_ns() // 1_000_000


# ------------------------------------------------------------------
# Gateway result
# ------------------------------------------------------------------

@dataclass(frozen=True)
class GatewayResult:
    """
    Immediate replies for a gateway boundary method.

    Anything produced later (by background operations or remote events)
    arrives through next_outbound() instead.
    """
    outbound_json: tuple[dict[str, Any], ...] = ()


# ------------------------------------------------------------------
# ControlSurfaceGateway
# ------------------------------------------------------------------

class ControlSurfaceGateway:
    """
    One gateway == one browser tab == one avatar session.
    """

    def __init__(
        self,
        *,
        config: AppConfig,
        catalog: MessageCatalog,
        client_factory: ClientFactory | None = None,
    ) -> None:
        self._config = config
        self._catalog = catalog
        self._client_factory = client_factory or build_avatar_client

        self.handle: AvatarSessionHandle | None = None
        self._dispatcher: MessageDispatcher | None = None
        self._interrupts: InterruptController | None = None
        self._unsubscribe: Callable[[], None] | None = None

        self._outbound: asyncio.Queue[dict[str, Any]] = asyncio.Queue()
        self._ops: set[asyncio.Task[None]] = set()

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        if self.handle is None:
            return SessionState.UNINITIALIZED
        return self.handle.state

    @property
    def input_enabled(self) -> bool:
        return self.state not in _INPUT_DISABLED_STATES

    async def next_outbound(self) -> dict[str, Any]:
        """Wait for the next asynchronous message for the client."""
        return await self._outbound.get()

    def drain_outbound(self) -> tuple[dict[str, Any], ...]:
        """
        Drain all pending asynchronous messages without waiting.

        Returns a FIFO-ordered tuple; empty if nothing is pending.
        """
        out: list[dict[str, Any]] = []
        while not self._outbound.empty():
            out.append(self._outbound.get_nowait())
        return tuple(out)

    async def wait_idle(self) -> None:
        """Wait until every background operation started so far has finished."""
        while self._ops:
            await asyncio.gather(*tuple(self._ops), return_exceptions=True)

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    async def on_ws_connect(self) -> GatewayResult:
        """Called when a WebSocket connection is established."""
        client = self._client_factory(self._config)
        handle = AvatarSessionHandle(
            client=client,
            policy=SpeakPolicy(self._config.speak_while_speaking),
        )

        self.handle = handle
        self._dispatcher = MessageDispatcher(handle=handle)
        self._interrupts = InterruptController(handle=handle)
        self._unsubscribe = handle.subscribe(self._on_state_change)

        log_event({
            "ts_ms": _now_ms(),
            "event_type": "SESSION_STARTED",
            "session_id": handle.session_id,
            "catalog_size": len(self._catalog),
            "speak_policy": handle.policy.value,
        })

        init_msg: dict[str, Any] = {
            "type": "SESSION_INIT",
            "session_id": handle.session_id,
            "state": handle.state.value,
            "input_enabled": self.input_enabled,
            "catalog": self._catalog.to_json(),
        }

        self._spawn("connect", self._connect)

        return GatewayResult(outbound_json=(init_msg,))

    async def on_ws_disconnect(self, reason: str | None = None) -> GatewayResult:
        """Called when the WebSocket disconnects. Closes the avatar session."""
        if self.handle is None:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "WS_DISCONNECT_WITHOUT_SESSION",
                "reason": reason,
            })
            return GatewayResult()

        # Operations already received still reach the service before teardown
        self._spawn("disconnect", self.handle.close)
        await self.wait_idle()

        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

        log_event({
            "ts_ms": _now_ms(),
            "event_type": "SESSION_ENDED",
            "session_id": self.handle.session_id,
            "reason": reason,
        })
        return GatewayResult()

    # ------------------------------------------------------------------
    # Inbound control messages
    # ------------------------------------------------------------------

    async def on_json_message(self, payload: str) -> GatewayResult:
        """Route one inbound JSON control message."""
        if self.handle is None:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "MESSAGE_WITHOUT_SESSION",
                "payload_preview": payload[:LOG_PAYLOAD_PREVIEW_CHARS],
            })
            return GatewayResult()

        try:
            data = json.loads(payload)
        except json.JSONDecodeError as e:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "JSON_DECODE_ERROR",
                "session_id": self.handle.session_id,
                "error": str(e),
                "payload_preview": payload[:LOG_PAYLOAD_PREVIEW_CHARS],
            })
            return GatewayResult()

        msg_type = data.get("type") if isinstance(data, dict) else None

        if msg_type == "SELECT":
            return self._on_select(data.get("index"))
        if msg_type == "INTERRUPT":
            self._spawn("interrupt", self._interrupt)
            return GatewayResult()
        if msg_type == "SESSION_END":
            self._spawn("session_end", self.handle.close)
            return GatewayResult()
        if msg_type == "CONNECT":
            return self._on_connect_retry()

        log_event({
            "ts_ms": _now_ms(),
            "event_type": "UNKNOWN_MESSAGE_TYPE",
            "msg_type": msg_type,
            "session_id": self.handle.session_id,
        })
        return GatewayResult()

    def _on_select(self, index: Any) -> GatewayResult:
        assert self.handle is not None

        if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < len(self._catalog):
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "INVALID_CATALOG_INDEX",
                "session_id": self.handle.session_id,
                "index": repr(index),
                "catalog_size": len(self._catalog),
            })
            return GatewayResult()

        if not self.input_enabled:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "SELECT_WHILE_DISABLED",
                "session_id": self.handle.session_id,
                "state": self.state.value,
                "index": index,
            })
            return GatewayResult(outbound_json=({
                "type": "INPUT_DISABLED",
                "state": self.state.value,
                "index": index,
            },))

        self._spawn("select", functools.partial(self._select, index))
        return GatewayResult()

    def _on_connect_retry(self) -> GatewayResult:
        """Re-run connect after a failed attempt; ignored in any other state."""
        assert self.handle is not None

        if self.state != SessionState.UNINITIALIZED:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "CONNECT_IGNORED",
                "session_id": self.handle.session_id,
                "state": self.state.value,
            })
            return GatewayResult()

        log_event({
            "ts_ms": _now_ms(),
            "event_type": "CONNECT_RETRY",
            "session_id": self.handle.session_id,
        })
        self._spawn("connect", self._connect)
        return GatewayResult()

    # ------------------------------------------------------------------
    # Background operations
    # ------------------------------------------------------------------

    async def _connect(self) -> None:
        assert self.handle is not None
        if self.handle.state != SessionState.UNINITIALIZED:
            return
        stream = await self.handle.connect()
        if stream is not None:
            self._push({"type": "STREAM_READY", **stream.to_client_json()})

    async def _select(self, index: int) -> None:
        assert self._dispatcher is not None
        ack = await self._dispatcher.dispatch_entry(self._catalog, index)
        if ack is None:
            return
        self._push({
            "type": "SPEAK_ACCEPTED",
            "index": index,
            "label": self._catalog.entry(index).label,
            "task_id": ack.task_id,
            "duration_ms": ack.duration_ms,
        })

    async def _interrupt(self) -> None:
        assert self._interrupts is not None
        halted = await self._interrupts.request_interrupt()
        self._push({"type": "INTERRUPTED", "halted": halted})

    def _spawn(self, op: str, start: Callable[[], Awaitable[None]]) -> None:
        task = asyncio.create_task(self._run_op(op, start))
        self._ops.add(task)
        task.add_done_callback(self._ops.discard)

    async def _run_op(self, op: str, start: Callable[[], Awaitable[None]]) -> None:
        session_id = self.handle.session_id if self.handle else None
        try:
            await start()
        except SessionError as e:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "OPERATION_FAILED",
                "session_id": session_id,
                "op": op,
                "error_type": type(e).__name__,
                "message": e.cause,
            })
            self._push({
                "type": "ERROR",
                "op": op,
                "error_type": type(e).__name__,
                "message": e.cause,
                "recoverable": e.recoverable,
            })
        except Exception as exc:  # pylint: disable=broad-exception-caught
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "OPERATION_FATAL_ERROR",
                "session_id": session_id,
                "op": op,
                "exception": type(exc).__name__,
                "message": str(exc),
            })
            self._push({
                "type": "ERROR",
                "op": op,
                "error_type": type(exc).__name__,
                "message": "internal error",
                "recoverable": True,
            })

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------

    def _on_state_change(self, old: SessionState, new: SessionState) -> None:
        self._push({
            "type": "STATE",
            "state": new.value,
            "previous": old.value,
            "input_enabled": new not in _INPUT_DISABLED_STATES,
        })

    def _push(self, msg: dict[str, Any]) -> None:
        self._outbound.put_nowait(msg)
