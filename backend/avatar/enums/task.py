"""
Speak task enumerations.

Values are the wire strings the streaming avatar API expects.
"""

from __future__ import annotations

from enum import Enum


class TaskType(str, Enum):
    """
    How the avatar treats submitted text.

    REPEAT:
        Speak the literal text verbatim.

    CHAT:
        Treat the text as a prompt for the avatar's backing model.
        Never produced by this control surface.
    """

    REPEAT = "repeat"
    CHAT = "chat"


class TaskMode(str, Enum):
    """
    Whether the remote call returns before the utterance finishes.

    ASYNC is fire-and-forget; completion arrives as a remote event.
    """

    SYNC = "sync"
    ASYNC = "async"


class SpeakPolicy(str, Enum):
    """
    What submit_speak does while the avatar is already speaking.

    QUEUE:
        Forward the task; the remote service queues async tasks.

    REPLACE:
        Halt the current utterance remotely, then submit.

    REJECT:
        Refuse with SessionBusy.
    """

    QUEUE = "queue"
    REPLACE = "replace"
    REJECT = "reject"
