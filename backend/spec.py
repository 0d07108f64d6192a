"""
SPEC-AS-CONSTANTS
-----------------
Single source of truth for behavioral constants of the control surface.

Rules:
- If changing a value changes runtime behavior, it belongs here.
- No magic numbers elsewhere in the codebase.
- Other modules MUST import from this file.
"""

from __future__ import annotations

from typing import Final

# =============================================================================
# Control surface layout
# =============================================================================

# Buttons per row in the catalog grid
CATALOG_GRID_COLUMNS: Final[int] = 5

# Labels are 1-based: entry at position N is shown as N + 1
CATALOG_LABEL_OFFSET: Final[int] = 1

DEFAULT_PAGE_TITLE: Final[str] = "Early Literacy Interview Avatar"

# =============================================================================
# Remote avatar service (HeyGen Streaming API)
# =============================================================================

HEYGEN_DEFAULT_BASE_URL: Final[str] = "https://api.heygen.com"
HEYGEN_DEFAULT_QUALITY: Final[str] = "low"
HEYGEN_DEFAULT_LANGUAGE: Final[str] = "en"
HEYGEN_API_VERSION: Final[str] = "v2"

# HeyGen wraps responses as {"code": 100, "data": {...}, "message": "success"}
HEYGEN_SUCCESS_CODE: Final[int] = 100

# Transport-level timeout; the session core imposes none of its own
HEYGEN_HTTP_TIMEOUT_S: Final[float] = 30.0

# =============================================================================
# Mock avatar (no credentials)
# =============================================================================

MOCK_SPEECH_MS_PER_CHAR: Final[int] = 60
MOCK_SPEECH_MIN_MS: Final[int] = 300

# =============================================================================
# Logging
# =============================================================================

LOG_PAYLOAD_PREVIEW_CHARS: Final[int] = 100
