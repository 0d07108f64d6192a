"""
Application configuration.

Responsibilities:
- Load deployment-specific configuration
- Read environment variables
- Provide a typed, immutable config object

Non-responsibilities:
- No session logic
- No behavioral constants (see spec.py)
- No runtime mutation
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from spec import (
    DEFAULT_PAGE_TITLE,
    HEYGEN_DEFAULT_BASE_URL,
    HEYGEN_DEFAULT_LANGUAGE,
    HEYGEN_DEFAULT_QUALITY,
)

DEFAULT_CATALOG_PATH = Path(__file__).resolve().parent / "catalog" / "agent_messages.json"


@dataclass(frozen=True)
class AppConfig:
    """
    Immutable application configuration.

    Constructed once at process startup.
    Passed downward to the app factory and every ControlSurfaceGateway.
    """

    # ------------------------------------------------------------------
    # Environment
    # ------------------------------------------------------------------

    env: str = "dev"

    # ------------------------------------------------------------------
    # Observability
    # ------------------------------------------------------------------

    enable_json_logs: bool = True

    # ------------------------------------------------------------------
    # Avatar service
    # ------------------------------------------------------------------

    avatar_provider: str = "heygen"
    heygen_api_key: str | None = None
    heygen_base_url: str = HEYGEN_DEFAULT_BASE_URL
    heygen_avatar_id: str | None = None
    heygen_voice_id: str | None = None
    heygen_quality: str = HEYGEN_DEFAULT_QUALITY
    heygen_language: str = HEYGEN_DEFAULT_LANGUAGE

    # What submit_speak does while the avatar is already speaking:
    # "queue" | "replace" | "reject"
    speak_while_speaking: str = "queue"

    # ------------------------------------------------------------------
    # Control surface
    # ------------------------------------------------------------------

    catalog_path: str = str(DEFAULT_CATALOG_PATH)
    page_title: str = DEFAULT_PAGE_TITLE

    # ------------------------------------------------------------------
    # Factory
    # ------------------------------------------------------------------

    @staticmethod
    def load_from_env() -> AppConfig:
        """
        Load configuration from environment variables.

        Missing variables fall back to the dataclass defaults.
        """
        return AppConfig(
            env=os.environ.get("ENV", "dev"),
            enable_json_logs=os.environ.get("ENABLE_JSON_LOGS", "1") == "1",

            avatar_provider=os.environ.get("AVATAR_PROVIDER", "heygen").lower(),
            heygen_api_key=os.environ.get("HEYGEN_API_KEY"),
            heygen_base_url=os.environ.get("HEYGEN_BASE_URL", HEYGEN_DEFAULT_BASE_URL),
            heygen_avatar_id=os.environ.get("HEYGEN_AVATAR_ID"),
            heygen_voice_id=os.environ.get("HEYGEN_VOICE_ID"),
            heygen_quality=os.environ.get("HEYGEN_QUALITY", HEYGEN_DEFAULT_QUALITY),
            heygen_language=os.environ.get("HEYGEN_LANGUAGE", HEYGEN_DEFAULT_LANGUAGE),
            speak_while_speaking=os.environ.get("SPEAK_WHILE_SPEAKING", "queue").lower(),

            catalog_path=os.environ.get("CATALOG_PATH", str(DEFAULT_CATALOG_PATH)),
            page_title=os.environ.get("PAGE_TITLE", DEFAULT_PAGE_TITLE),
        )
