"""
HeyGen Streaming Avatar client.

Implements AvatarServiceClient against the HeyGen Streaming REST API.

Role in the system:
- Creates a session token, opens and starts one streaming session.
- Submits speak tasks (POST /v1/streaming.task).
- Forwards interrupts (POST /v1/streaming.interrupt).
- Stops the session on close (POST /v1/streaming.stop).
- Listens on the session's realtime WebSocket (when offered) and
  forwards start/stop talking notifications to the event sink.

Architectural constraints:
- No retries. One HTTP request per public call.
- No state machine transitions or validation.
- Media transport (video/audio) is not handled here; the browser attaches
  to it using StreamInfo.url / access_token.
"""

from __future__ import annotations

import asyncio
import json
import time
from typing import Any, Awaitable, Callable

import httpx
from websockets.asyncio.client import ClientConnection, connect as ws_connect
from websockets.exceptions import ConnectionClosed, WebSocketException

from adapters.avatar.base import AvatarServiceClient, AvatarServiceError
from avatar.enums.task import TaskMode, TaskType
from avatar.events import RemoteEvent, RemoteEventType
from avatar.tasks import SpeakAck, StreamInfo
from observability.logger import log_event

from spec import (
    HEYGEN_API_VERSION,
    HEYGEN_DEFAULT_BASE_URL,
    HEYGEN_DEFAULT_LANGUAGE,
    HEYGEN_DEFAULT_QUALITY,
    HEYGEN_HTTP_TIMEOUT_S,
    HEYGEN_SUCCESS_CODE,
)

EventConnector = Callable[[str], Awaitable[ClientConnection]]


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


def _parse_event(raw: str | bytes) -> RemoteEvent | None:
    """Map one realtime message to a RemoteEvent; None if irrelevant."""
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None
    if not isinstance(data, dict):
        return None

    kind = data.get("type") or data.get("event_type")
    try:
        event_type = RemoteEventType(kind)
    except ValueError:
        return None

    task_id = data.get("task_id")
    return RemoteEvent(
        event_type=event_type,
        ts_ms=_now_ms(),
        task_id=str(task_id) if task_id is not None else None,
        detail=data,
    )


class HeyGenStreamingClient(AvatarServiceClient):
    """
    HeyGen streaming session client.

    Design:
    - One instance == one remote streaming session
    - httpx.AsyncClient for REST calls (owned unless injected)
    - Optional websockets connection for remote talking events
    """

    def __init__(
        self,
        *,
        api_key: str,
        base_url: str = HEYGEN_DEFAULT_BASE_URL,
        avatar_id: str | None = None,
        voice_id: str | None = None,
        quality: str = HEYGEN_DEFAULT_QUALITY,
        language: str = HEYGEN_DEFAULT_LANGUAGE,
        http_client: httpx.AsyncClient | None = None,
        connect_events: EventConnector | None = None,
    ) -> None:
        super().__init__()
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._avatar_id = avatar_id
        self._voice_id = voice_id
        self._quality = quality
        self._language = language

        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=HEYGEN_HTTP_TIMEOUT_S)
        self._connect_events: EventConnector = connect_events or ws_connect

        self._token: str | None = None
        self._stream: StreamInfo | None = None

        self._ws: ClientConnection | None = None
        self._recv_task: asyncio.Task[None] | None = None
        self._closing: bool = False

    # ------------------------------------------------------------------
    # AvatarServiceClient contract
    # ------------------------------------------------------------------

    async def open(self) -> StreamInfo:
        data = await self._post(
            "/v1/streaming.create_token",
            {},
            headers={"x-api-key": self._api_key},
        )
        token = data.get("token")
        if not token:
            raise AvatarServiceError("create_token returned no token")
        self._token = str(token)

        data = await self._post("/v1/streaming.new", self._new_session_payload())
        session_id = data.get("session_id")
        if not session_id:
            raise AvatarServiceError("streaming.new returned no session_id")

        self._stream = StreamInfo(
            session_id=str(session_id),
            url=data.get("url"),
            access_token=data.get("access_token"),
            realtime_endpoint=data.get("realtime_endpoint"),
        )

        try:
            await self._post("/v1/streaming.start", {"session_id": self._stream.session_id})

            if self._stream.realtime_endpoint:
                await self._open_event_feed(self._stream.realtime_endpoint)
            else:
                log_event({
                    "ts_ms": _now_ms(),
                    "event_type": "AVATAR_EVENT_FEED_UNAVAILABLE",
                    "remote_session_id": self._stream.session_id,
                })
        except AvatarServiceError:
            await self._abandon_session()
            raise

        return self._stream

    async def speak(
        self,
        *,
        text: str,
        task_type: TaskType,
        task_mode: TaskMode,
    ) -> SpeakAck:
        session_id = self._require_session()
        data = await self._post(
            "/v1/streaming.task",
            {
                "session_id": session_id,
                "text": text,
                "task_type": task_type.value,
                "task_mode": task_mode.value,
            },
        )
        task_id = data.get("task_id")
        return SpeakAck(
            task_id=str(task_id) if task_id is not None else None,
            duration_ms=data.get("duration_ms"),
        )

    async def interrupt(self) -> None:
        session_id = self._require_session()
        await self._post("/v1/streaming.interrupt", {"session_id": session_id})

    async def close(self) -> None:
        self._closing = True
        try:
            if self._stream is not None:
                await self._post("/v1/streaming.stop", {"session_id": self._stream.session_id})
        finally:
            await self._close_event_feed()
            if self._owns_http:
                await self._http.aclose()
            self._stream = None

    # ------------------------------------------------------------------
    # REST helpers
    # ------------------------------------------------------------------

    def _new_session_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "quality": self._quality,
            "language": self._language,
            "version": HEYGEN_API_VERSION,
            "video_encoding": "H264",
        }
        if self._avatar_id:
            payload["avatar_name"] = self._avatar_id
        if self._voice_id:
            payload["voice"] = {"voice_id": self._voice_id}
        return payload

    async def _abandon_session(self) -> None:
        """Stop a session that was created but never fully opened."""
        stream = self._stream
        self._stream = None
        await self._close_event_feed()
        if stream is None:
            return
        try:
            await self._post("/v1/streaming.stop", {"session_id": stream.session_id})
        except AvatarServiceError as e:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "AVATAR_ABANDON_ERROR",
                "remote_session_id": stream.session_id,
                "error": str(e),
            })

    def _require_session(self) -> str:
        if self._stream is None:
            raise AvatarServiceError("no open streaming session")
        return self._stream.session_id

    async def _post(
        self,
        path: str,
        payload: dict[str, Any],
        *,
        headers: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        """
        POST one JSON request and unwrap HeyGen's response envelope.

        Returns the `data` object (empty dict when absent).
        """
        if headers is None:
            if self._token is None:
                raise AvatarServiceError(f"{path}: no session token")
            headers = {"Authorization": f"Bearer {self._token}"}

        try:
            response = await self._http.post(
                f"{self._base_url}{path}",
                json=payload,
                headers=headers,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise AvatarServiceError(
                f"{path} failed with HTTP {e.response.status_code}: "
                f"{_error_message(e.response)}"
            ) from e
        except httpx.HTTPError as e:
            raise AvatarServiceError(f"{path} transport error: {e}") from e

        try:
            body = response.json()
        except ValueError as e:
            raise AvatarServiceError(f"{path} returned non-JSON body") from e

        if not isinstance(body, dict):
            return {}

        code = body.get("code")
        if code is not None and code != HEYGEN_SUCCESS_CODE:
            raise AvatarServiceError(f"{path} rejected (code {code}): {body.get('message')}")

        data = body.get("data")
        return data if isinstance(data, dict) else {}

    # ------------------------------------------------------------------
    # Event feed
    # ------------------------------------------------------------------

    async def _open_event_feed(self, endpoint: str) -> None:
        try:
            self._ws = await self._connect_events(endpoint)
        except (OSError, WebSocketException) as e:
            raise AvatarServiceError(f"event feed connection failed: {e}") from e

        self._recv_task = asyncio.create_task(self._recv_loop())

    async def _close_event_feed(self) -> None:
        if self._recv_task is not None:
            self._recv_task.cancel()
            self._recv_task = None
        if self._ws is not None:
            await self._ws.close()
            self._ws = None

    async def _recv_loop(self) -> None:
        ws = self._ws
        assert ws is not None
        reason: str | None = None
        try:
            async for raw in ws:
                event = _parse_event(raw)
                if event is not None:
                    await self._emit(event)
        except ConnectionClosed as e:
            reason = str(e)

        if not self._closing:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "AVATAR_EVENT_FEED_CLOSED",
                "reason": reason,
            })
            await self._emit(
                RemoteEvent(
                    event_type=RemoteEventType.STREAM_DISCONNECTED,
                    ts_ms=_now_ms(),
                    detail={"reason": reason},
                )
            )


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(body, dict):
        return str(body.get("message") or body.get("error") or body)
    return str(body)
