"""
Value objects exchanged between the session core and the avatar client.

Invariant:
    - All types here are frozen dataclasses.
    - A SpeakTask never carries empty or whitespace-only text.
"""

from __future__ import annotations

from dataclasses import dataclass

from avatar.enums.task import TaskMode, TaskType


@dataclass(frozen=True)
class SpeakTask:
    """
    Request to have the avatar utter `text`.

    Defaults describe the only task this control surface sends:
    verbatim repeat, fire-and-forget.
    """
    text: str
    task_type: TaskType = TaskType.REPEAT
    task_mode: TaskMode = TaskMode.ASYNC

    def __post_init__(self) -> None:
        if not self.text.strip():
            raise ValueError("SpeakTask text must be non-empty after trimming")


@dataclass(frozen=True)
class SpeakAck:
    """Remote acknowledgement of an accepted speak task."""
    task_id: str | None = None
    duration_ms: float | None = None


@dataclass(frozen=True)
class StreamInfo:
    """
    Remote session details returned when the avatar stream opens.

    url / access_token let the browser attach the media stream.
    realtime_endpoint is the event feed, when the service offers one.
    """
    session_id: str
    url: str | None = None
    access_token: str | None = None
    realtime_endpoint: str | None = None

    def to_client_json(self) -> dict[str, str | None]:
        return {
            "remote_session_id": self.session_id,
            "url": self.url,
            "access_token": self.access_token,
        }
