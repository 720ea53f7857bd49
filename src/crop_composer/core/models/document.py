"""
Module: core.models.document

Purpose:
    The CompositionDocument: the full saved unit of work, an ordered
    sequence of pages plus the mode flag.

Key Classes:
    - CompositionDocument

Used By:
    - core.utils.serialization
    - composer.state: load / save
    - render.export: Multi-page export
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .pages import CompositionMode, Page


@dataclass(frozen=True, slots=True)
class CompositionDocument:
    """
    Mode plus ordered pages.

    Invariants:
        - at least one page
        - page ids unique
    """

    pages: tuple[Page, ...]
    mode: CompositionMode = CompositionMode.FREEFORM

    def __post_init__(self) -> None:
        """Validate document on construction."""
        if len(self.pages) < 1:
            raise ValueError("document must contain at least one page")
        ids = [page.id for page in self.pages]
        if len(ids) != len(set(ids)):
            raise ValueError("duplicate page ids in document")

    @property
    def page_count(self) -> int:
        return len(self.pages)

    def to_dict(self) -> dict[str, Any]:
        return {
            "mode": self.mode.value,
            "pages": [page.to_dict() for page in self.pages],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CompositionDocument:
        """Deserialize the current (multi-page) document shape."""
        return cls(
            pages=tuple(Page.from_dict(p) for p in data["pages"]),
            mode=CompositionMode(data.get("mode") or CompositionMode.FREEFORM.value),
        )
