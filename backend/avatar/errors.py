"""
Session error taxonomy.

- SessionError: the remote service rejected or failed a call
- SessionNotReady: submission before the connection is established
  (recoverable: retry the user action once READY)
- SessionClosed: submission after teardown (needs a fresh session)
- SessionBusy: submission while speaking under the "reject" policy

Empty text is not an error: the dispatcher drops it silently.
"""

from __future__ import annotations


class SessionError(Exception):
    """Base error for avatar session operations."""

    recoverable: bool = True

    def __init__(self, cause: str) -> None:
        super().__init__(cause)
        self.cause = cause


class SessionNotReady(SessionError):
    """Session has not finished connecting."""


class SessionClosed(SessionError):
    """Session was torn down."""

    recoverable = False


class SessionBusy(SessionError):
    """Avatar is speaking and the speak policy refuses to overlap."""
