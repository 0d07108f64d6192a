# pylint: disable=missing-module-docstring,missing-function-docstring

import asyncio
import json
from typing import Any, Callable

import httpx
import pytest

from adapters.avatar.base import AvatarServiceError
from adapters.avatar.heygen import HeyGenStreamingClient, _parse_event
from avatar.enums.task import TaskMode, TaskType
from avatar.events import RemoteEvent, RemoteEventType

BASE_URL = "https://heygen.test"


def ok(data: dict[str, Any] | None = None) -> httpx.Response:
    return httpx.Response(200, json={"code": 100, "message": "success", "data": data})


class Recorder:
    """MockTransport handler that answers like the streaming API."""

    def __init__(self, realtime_endpoint: str | None = None) -> None:
        self.requests: list[httpx.Request] = []
        self.realtime_endpoint = realtime_endpoint
        self.overrides: dict[str, httpx.Response] = {}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path in self.overrides:
            return self.overrides[path]
        if path == "/v1/streaming.create_token":
            return ok({"token": "session-token"})
        if path == "/v1/streaming.new":
            return ok({
                "session_id": "remote_42",
                "url": "wss://livekit.test",
                "access_token": "lk-token",
                "realtime_endpoint": self.realtime_endpoint,
            })
        if path == "/v1/streaming.task":
            return ok({"task_id": "t_1", "duration_ms": 2100.5})
        return ok()

    def paths(self) -> list[str]:
        return [r.url.path for r in self.requests]

    def body(self, index: int) -> dict[str, Any]:
        return json.loads(self.requests[index].content)


def run_with_client(
    recorder: Recorder,
    body: Callable[[HeyGenStreamingClient], Any],
    **kwargs: Any,
) -> Any:
    async def scenario():
        async with httpx.AsyncClient(transport=httpx.MockTransport(recorder)) as http:
            client = HeyGenStreamingClient(
                api_key="secret",
                base_url=BASE_URL,
                avatar_id="Ann_Therapist_public",
                voice_id="voice_1",
                http_client=http,
                **kwargs,
            )
            return await body(client)

    return asyncio.run(scenario())


# ---------------------------------------------------------------------
# open
# ---------------------------------------------------------------------

def test_open_creates_token_then_starts_session():
    recorder = Recorder()

    stream = run_with_client(recorder, lambda c: c.open())

    assert recorder.paths() == [
        "/v1/streaming.create_token",
        "/v1/streaming.new",
        "/v1/streaming.start",
    ]
    assert recorder.requests[0].headers["x-api-key"] == "secret"
    assert recorder.requests[1].headers["authorization"] == "Bearer session-token"

    new_body = recorder.body(1)
    assert new_body["avatar_name"] == "Ann_Therapist_public"
    assert new_body["voice"] == {"voice_id": "voice_1"}
    assert new_body["version"] == "v2"
    assert recorder.body(2) == {"session_id": "remote_42"}

    assert stream.session_id == "remote_42"
    assert stream.url == "wss://livekit.test"
    assert stream.access_token == "lk-token"


def test_open_without_token_fails():
    recorder = Recorder()
    recorder.overrides["/v1/streaming.create_token"] = ok({})

    with pytest.raises(AvatarServiceError, match="no token"):
        run_with_client(recorder, lambda c: c.open())


class FlakyStartRecorder(Recorder):
    """Hands out a new remote session per streaming.new; the first start fails."""

    def __init__(self) -> None:
        super().__init__()
        self.sessions = iter(["remote_A", "remote_B"])
        self.start_failures = 1

    def __call__(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path == "/v1/streaming.new":
            self.requests.append(request)
            return ok({"session_id": next(self.sessions)})
        if path == "/v1/streaming.start" and self.start_failures:
            self.requests.append(request)
            self.start_failures -= 1
            return httpx.Response(500, json={"message": "start failed"})
        return super().__call__(request)

    def stopped(self) -> list[str]:
        return [
            json.loads(r.content)["session_id"]
            for r in self.requests
            if r.url.path == "/v1/streaming.stop"
        ]


def test_failed_start_stops_new_session_before_retry():
    recorder = FlakyStartRecorder()

    async def body(client: HeyGenStreamingClient):
        with pytest.raises(AvatarServiceError, match="HTTP 500"):
            await client.open()
        stopped_after_failure = recorder.stopped()
        stream = await client.open()
        await client.close()
        return stopped_after_failure, stream

    stopped_after_failure, stream = run_with_client(recorder, body)

    assert stopped_after_failure == ["remote_A"]
    assert stream.session_id == "remote_B"
    assert recorder.stopped() == ["remote_A", "remote_B"]


def test_failed_event_feed_stops_new_session():
    recorder = Recorder(realtime_endpoint="wss://events.test")

    async def refuse(_url: str):
        raise OSError("connection refused")

    async def body(client: HeyGenStreamingClient):
        await client.open()

    with pytest.raises(AvatarServiceError, match="event feed connection failed"):
        run_with_client(recorder, body, connect_events=refuse)

    assert recorder.paths()[-1] == "/v1/streaming.stop"
    assert recorder.body(-1) == {"session_id": "remote_42"}


def test_speak_after_failed_open_is_refused():
    recorder = Recorder()
    recorder.overrides["/v1/streaming.start"] = httpx.Response(503, json={"message": "busy"})

    async def body(client: HeyGenStreamingClient):
        with pytest.raises(AvatarServiceError):
            await client.open()
        await client.speak(text="Hi", task_type=TaskType.REPEAT, task_mode=TaskMode.ASYNC)

    with pytest.raises(AvatarServiceError, match="no open streaming session"):
        run_with_client(recorder, body)


# ---------------------------------------------------------------------
# speak / interrupt / close
# ---------------------------------------------------------------------

def test_speak_posts_repeat_async_task():
    recorder = Recorder()

    async def body(client: HeyGenStreamingClient):
        await client.open()
        return await client.speak(
            text="What is your name?",
            task_type=TaskType.REPEAT,
            task_mode=TaskMode.ASYNC,
        )

    ack = run_with_client(recorder, body)

    assert recorder.paths()[-1] == "/v1/streaming.task"
    assert recorder.body(-1) == {
        "session_id": "remote_42",
        "text": "What is your name?",
        "task_type": "repeat",
        "task_mode": "async",
    }
    assert ack.task_id == "t_1"
    assert ack.duration_ms == 2100.5


def test_speak_before_open_fails_without_request():
    recorder = Recorder()

    async def body(client: HeyGenStreamingClient):
        await client.speak(text="Hi", task_type=TaskType.REPEAT, task_mode=TaskMode.ASYNC)

    with pytest.raises(AvatarServiceError, match="no open streaming session"):
        run_with_client(recorder, body)
    assert not recorder.requests


def test_interrupt_and_close_use_session_id():
    recorder = Recorder()

    async def body(client: HeyGenStreamingClient):
        await client.open()
        await client.interrupt()
        await client.close()

    run_with_client(recorder, body)

    assert recorder.paths()[-2:] == ["/v1/streaming.interrupt", "/v1/streaming.stop"]
    assert recorder.body(-2) == {"session_id": "remote_42"}
    assert recorder.body(-1) == {"session_id": "remote_42"}


def test_close_without_open_sends_nothing():
    recorder = Recorder()

    run_with_client(recorder, lambda c: c.close())

    assert not recorder.requests


# ---------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------

def test_http_error_becomes_service_error():
    recorder = Recorder()
    recorder.overrides["/v1/streaming.task"] = httpx.Response(
        500, json={"message": "avatar busy"}
    )

    async def body(client: HeyGenStreamingClient):
        await client.open()
        await client.speak(text="Hi", task_type=TaskType.REPEAT, task_mode=TaskMode.ASYNC)

    with pytest.raises(AvatarServiceError, match="HTTP 500: avatar busy"):
        run_with_client(recorder, body)


def test_envelope_error_code_becomes_service_error():
    recorder = Recorder()
    recorder.overrides["/v1/streaming.interrupt"] = httpx.Response(
        200, json={"code": 10004, "message": "session not found"}
    )

    async def body(client: HeyGenStreamingClient):
        await client.open()
        await client.interrupt()

    with pytest.raises(AvatarServiceError, match="session not found"):
        run_with_client(recorder, body)


def test_transport_error_becomes_service_error():
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async def scenario():
        async with httpx.AsyncClient(transport=httpx.MockTransport(refuse)) as http:
            client = HeyGenStreamingClient(api_key="secret", base_url=BASE_URL, http_client=http)
            await client.open()

    with pytest.raises(AvatarServiceError, match="transport error"):
        asyncio.run(scenario())


# ---------------------------------------------------------------------
# Event feed
# ---------------------------------------------------------------------

class FakeEventSocket:
    def __init__(self, messages: list[str]) -> None:
        self._messages = messages
        self.closed = False

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for message in self._messages:
            yield message

    async def close(self) -> None:
        self.closed = True


def test_event_feed_forwards_talking_events():
    recorder = Recorder(realtime_endpoint="wss://events.test")
    socket = FakeEventSocket([
        json.dumps({"type": "avatar_start_talking", "task_id": "t_1"}),
        json.dumps({"type": "something_else"}),
        "not json",
        json.dumps({"type": "avatar_stop_talking", "task_id": "t_1"}),
    ])
    connected_to: list[str] = []
    received: list[RemoteEvent] = []

    async def connect_events(url: str) -> FakeEventSocket:
        connected_to.append(url)
        return socket

    async def sink(event: RemoteEvent) -> None:
        received.append(event)

    async def body(client: HeyGenStreamingClient):
        client.attach_event_sink(sink)
        await client.open()
        for _ in range(5):
            await asyncio.sleep(0)

    run_with_client(recorder, body, connect_events=connect_events)

    assert connected_to == ["wss://events.test"]
    assert [e.event_type for e in received] == [
        RemoteEventType.AVATAR_START_TALKING,
        RemoteEventType.AVATAR_STOP_TALKING,
        RemoteEventType.STREAM_DISCONNECTED,
    ]
    assert received[0].task_id == "t_1"


def test_close_shuts_event_feed_without_disconnect_event():
    recorder = Recorder(realtime_endpoint="wss://events.test")
    socket = FakeEventSocket([])
    received: list[RemoteEvent] = []

    async def connect_events(_url: str) -> FakeEventSocket:
        return socket

    async def sink(event: RemoteEvent) -> None:
        received.append(event)

    async def body(client: HeyGenStreamingClient):
        client.attach_event_sink(sink)
        await client.open()
        await client.close()
        await asyncio.sleep(0)

    run_with_client(recorder, body, connect_events=connect_events)

    assert socket.closed
    assert not received


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ('{"type": "avatar_stop_talking"}', RemoteEventType.AVATAR_STOP_TALKING),
        ('{"event_type": "avatar_start_talking"}', RemoteEventType.AVATAR_START_TALKING),
        ('{"type": "user_start"}', None),
        ("[1, 2]", None),
        ("{", None),
    ],
)
def test_parse_event(raw: str, expected: RemoteEventType | None):
    event = _parse_event(raw)

    assert (event.event_type if event else None) == expected
