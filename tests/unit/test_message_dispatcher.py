# pylint: disable=missing-module-docstring,missing-function-docstring

import asyncio
import json

import pytest

from avatar.dispatcher import MessageDispatcher
from avatar.enums.state import SessionState
from avatar.enums.task import TaskMode, TaskType
from avatar.errors import SessionClosed, SessionError, SessionNotReady
from avatar.session_handle import AvatarSessionHandle
from avatar.tasks import SpeakTask
from catalog.messages import MessageCatalog

from fakes import FakeAvatarClient


async def connected() -> tuple[MessageDispatcher, AvatarSessionHandle, FakeAvatarClient]:
    client = FakeAvatarClient()
    handle = AvatarSessionHandle(client=client)
    await handle.connect()
    return MessageDispatcher(handle=handle), handle, client


def spoken(client: FakeAvatarClient) -> list[tuple[str, TaskType, TaskMode]]:
    return [(c[1], c[2], c[3]) for c in client.calls if c[0] == "speak"]


# ---------------------------------------------------------------------
# Empty text never reaches the session
# ---------------------------------------------------------------------

@pytest.mark.parametrize("raw", ["", " ", "   ", "\t", "\n \t "])
def test_blank_text_is_dropped(raw: str, log_lines: list[str]):
    async def scenario():
        dispatcher, handle, client = await connected()
        result = await dispatcher.dispatch(raw)
        return result, handle, client

    result, handle, client = asyncio.run(scenario())

    assert result is None
    assert not spoken(client)
    assert handle.state == SessionState.READY
    skipped = [json.loads(line) for line in log_lines if "DISPATCH_SKIPPED" in line]
    assert skipped and skipped[0]["decision"] == "empty_text"


def test_blank_text_is_dropped_even_before_connect():
    async def scenario():
        client = FakeAvatarClient()
        dispatcher = MessageDispatcher(handle=AvatarSessionHandle(client=client))
        return await dispatcher.dispatch("   "), client

    result, client = asyncio.run(scenario())

    assert result is None
    assert not client.calls


# ---------------------------------------------------------------------
# Valid text
# ---------------------------------------------------------------------

@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("Hello", "Hello"),
        ("  How are you?  ", "How are you?"),
        ("\tWhat is your name?\n", "What is your name?"),
    ],
)
def test_text_is_trimmed_and_sent_once(raw: str, expected: str):
    async def scenario():
        dispatcher, handle, client = await connected()
        ack = await dispatcher.dispatch(raw)
        return ack, handle, client

    ack, handle, client = asyncio.run(scenario())

    assert ack is not None
    assert spoken(client) == [(expected, TaskType.REPEAT, TaskMode.ASYNC)]
    assert handle.current_task == SpeakTask(text=expected)


def test_sequential_dispatches_keep_order():
    async def scenario():
        dispatcher, _, client = await connected()
        await dispatcher.dispatch("first")
        await dispatcher.dispatch("second")
        return client

    client = asyncio.run(scenario())

    assert [s[0] for s in spoken(client)] == ["first", "second"]


def test_dispatch_entry_uses_catalog_position():
    catalog = MessageCatalog(["Hello", "How are you?"])

    async def scenario():
        dispatcher, handle, client = await connected()
        await dispatcher.dispatch_entry(catalog, 0)
        return handle, client

    handle, client = asyncio.run(scenario())

    assert spoken(client) == [("Hello", TaskType.REPEAT, TaskMode.ASYNC)]
    assert handle.state == SessionState.SPEAKING


def test_dispatch_entry_rejects_unknown_index():
    catalog = MessageCatalog(["Hello"])

    async def scenario():
        dispatcher, _, client = await connected()
        with pytest.raises(IndexError):
            await dispatcher.dispatch_entry(catalog, 1)
        return client

    assert not spoken(asyncio.run(scenario()))


# ---------------------------------------------------------------------
# Errors propagate unchanged
# ---------------------------------------------------------------------

def test_not_ready_propagates():
    async def scenario():
        dispatcher = MessageDispatcher(handle=AvatarSessionHandle(client=FakeAvatarClient()))
        with pytest.raises(SessionNotReady):
            await dispatcher.dispatch("Hello")

    asyncio.run(scenario())


def test_closed_propagates():
    async def scenario():
        dispatcher, handle, _ = await connected()
        await handle.close()
        with pytest.raises(SessionClosed):
            await dispatcher.dispatch("Hello")

    asyncio.run(scenario())


def test_remote_failure_propagates():
    async def scenario():
        dispatcher, handle, client = await connected()
        client.fail_on.add("speak")
        with pytest.raises(SessionError):
            await dispatcher.dispatch("Hello")
        return handle

    assert asyncio.run(scenario()).state == SessionState.READY


# ---------------------------------------------------------------------
# SpeakTask
# ---------------------------------------------------------------------

def test_speak_task_defaults_to_verbatim_fire_and_forget():
    task = SpeakTask(text="Hello")

    assert task.task_type == TaskType.REPEAT
    assert task.task_mode == TaskMode.ASYNC


@pytest.mark.parametrize("text", ["", "  ", "\n"])
def test_speak_task_rejects_blank_text(text: str):
    with pytest.raises(ValueError):
        SpeakTask(text=text)
