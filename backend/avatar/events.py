"""
Notifications emitted by the remote avatar service.

Events describe facts that have occurred on the remote side.
They carry data only; AvatarSessionHandle decides what they mean
for SessionState.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class RemoteEventType(str, Enum):
    """Remote event discriminants (wire names of the avatar service)."""

    AVATAR_START_TALKING = "avatar_start_talking"
    AVATAR_STOP_TALKING = "avatar_stop_talking"
    STREAM_DISCONNECTED = "stream_disconnected"


@dataclass(frozen=True)
class RemoteEvent:
    """A single notification from the avatar service."""
    event_type: RemoteEventType
    ts_ms: int
    task_id: str | None = None
    detail: dict[str, Any] = field(default_factory=dict)
