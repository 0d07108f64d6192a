"""
Interrupt controller.

One "stop speaking now" action, decoupled from message selection.
Whether there is anything to stop is decided by the session handle
against live session state, so this is safe to press at any time,
including right after a speak task was submitted.
"""

from __future__ import annotations

from avatar.session_handle import AvatarSessionHandle


class InterruptController:
    """Forwards interrupt requests to one AvatarSessionHandle."""

    def __init__(self, *, handle: AvatarSessionHandle) -> None:
        self._handle = handle

    async def request_interrupt(self) -> bool:
        """
        Ask the avatar to stop speaking.

        Returns:
            True if the avatar was speaking and a halt was sent.
        """
        return await self._handle.interrupt()
