"""
Authoritative avatar session state enumeration.

Rules:
- This enum defines ONLY the session lifecycle states.
- No behavior, no side effects.
- Transitions happen exclusively inside AvatarSessionHandle.
"""

from __future__ import annotations

from enum import Enum


class SessionState(str, Enum):
    """
    Lifecycle of one connection to the remote avatar service.

    UNINITIALIZED -> CONNECTING -> READY <-> SPEAKING -> CLOSED
    """

    UNINITIALIZED = "UNINITIALIZED"
    CONNECTING = "CONNECTING"
    READY = "READY"
    SPEAKING = "SPEAKING"
    CLOSED = "CLOSED"
