"""
Message catalog.

Static, ordered list of canned utterances the operator can send to the
avatar. Loaded once at startup from a JSON array of strings.

Rules:
- Entries are immutable; there is no mutation API.
- Position N is displayed as label N + 1 for the lifetime of the catalog.
- Every entry is a non-empty string after trimming. Bad data fails at
  load time, never at dispatch time.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Iterator

from spec import CATALOG_LABEL_OFFSET


class CatalogError(ValueError):
    """Catalog source is not a JSON array of non-empty strings."""


@dataclass(frozen=True)
class CatalogEntry:
    """One canned message and its position in the catalog."""
    index: int
    text: str

    @property
    def label(self) -> str:
        return str(self.index + CATALOG_LABEL_OFFSET)

    def to_json(self) -> dict[str, Any]:
        return {"index": self.index, "label": self.label, "text": self.text}


class MessageCatalog:
    """Immutable ordered sequence of canned messages."""

    def __init__(self, messages: Iterable[Any]) -> None:
        entries: list[CatalogEntry] = []
        for index, message in enumerate(messages):
            if not isinstance(message, str):
                raise CatalogError(
                    f"catalog entry {index} must be a string, got {type(message).__name__}"
                )
            if not message.strip():
                raise CatalogError(f"catalog entry {index} is empty")
            entries.append(CatalogEntry(index=index, text=message))

        self._entries: tuple[CatalogEntry, ...] = tuple(entries)

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    @classmethod
    def from_json(cls, raw: str) -> MessageCatalog:
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise CatalogError(f"catalog is not valid JSON: {e}") from e

        if not isinstance(data, list):
            raise CatalogError("catalog must be a JSON array of strings")

        return cls(data)

    @classmethod
    def from_json_file(cls, path: str | Path) -> MessageCatalog:
        try:
            raw = Path(path).read_text(encoding="utf-8")
        except OSError as e:
            raise CatalogError(f"cannot read catalog {path}: {e}") from e
        return cls.from_json(raw)

    # ------------------------------------------------------------------
    # Read-only access
    # ------------------------------------------------------------------

    @property
    def entries(self) -> tuple[CatalogEntry, ...]:
        return self._entries

    def entry(self, index: int) -> CatalogEntry:
        """
        Return the entry at a 0-based position.

        Raises:
            IndexError for negative or out-of-range positions.
        """
        if index < 0 or index >= len(self._entries):
            raise IndexError(f"catalog index {index} out of range (size {len(self._entries)})")
        return self._entries[index]

    def __getitem__(self, index: int) -> str:
        return self.entry(index).text

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return (e.text for e in self._entries)

    def to_json(self) -> list[dict[str, Any]]:
        return [e.to_json() for e in self._entries]
