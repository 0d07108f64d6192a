"""
FastAPI app factory.

Responsibilities:
- Create and configure FastAPI app
- Set up middleware
- Load shared resources (message catalog)
- Register routes
"""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from adapters.avatar.factory import AVATAR_PROVIDERS
from avatar.enums.task import SpeakPolicy
from catalog.messages import MessageCatalog
from config import AppConfig
from observability import logger

from server.routes import register_routes


def create_app(config: AppConfig | None = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    This is the app factory pattern that allows:
    - Testing with different configurations
    - Environment-specific setup
    - ASGI server compatibility
    """
    config = config or AppConfig.load_from_env()
    _validate(config)

    logger.set_enabled(config.enable_json_logs)

    app = FastAPI(title="Avatar Control Surface")

    app.state.config = config

    # Middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # tighten later
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Catalog is loaded ONCE per process and shared read-only by all sessions
    app.state.catalog = MessageCatalog.from_json_file(config.catalog_path)

    # Routes
    register_routes(app)

    return app


def _validate(config: AppConfig) -> None:
    """Fail at startup, not on the first WebSocket connection."""
    if config.avatar_provider not in AVATAR_PROVIDERS:
        raise RuntimeError(f"Unknown AVATAR_PROVIDER: {config.avatar_provider}")

    if config.avatar_provider == "heygen" and not config.heygen_api_key:
        raise RuntimeError("HEYGEN_API_KEY environment variable not set")

    try:
        SpeakPolicy(config.speak_while_speaking)
    except ValueError as e:
        raise RuntimeError(
            f"Unknown SPEAK_WHILE_SPEAKING: {config.speak_while_speaking}"
        ) from e
