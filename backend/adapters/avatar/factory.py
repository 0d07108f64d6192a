"""
Avatar client construction from configuration.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from adapters.avatar.base import AvatarServiceClient
from adapters.avatar.heygen import HeyGenStreamingClient
from adapters.avatar.mock import MockAvatarClient

if TYPE_CHECKING:
    from config import AppConfig

AVATAR_PROVIDERS = ("heygen", "mock")


def build_avatar_client(config: AppConfig) -> AvatarServiceClient:
    """Build a fresh client (one per session) for the configured provider."""
    if config.avatar_provider == "mock":
        return MockAvatarClient()

    if config.avatar_provider == "heygen":
        if not config.heygen_api_key:
            raise RuntimeError("HEYGEN_API_KEY environment variable not set")
        return HeyGenStreamingClient(
            api_key=config.heygen_api_key,
            base_url=config.heygen_base_url,
            avatar_id=config.heygen_avatar_id,
            voice_id=config.heygen_voice_id,
            quality=config.heygen_quality,
            language=config.heygen_language,
        )

    raise RuntimeError(f"Unknown AVATAR_PROVIDER: {config.avatar_provider}")
