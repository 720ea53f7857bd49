"""
Module: core.models.pages

Purpose:
    Page-level models: the composition mode flag, panel assignments and the
    Page record holding either panel assignments or placed items.

Key Classes:
    - CompositionMode: panels | freeform
    - PanelAssignment: Crop (plus pan/zoom) bound to one panel slot
    - Page: One output canvas

Dependencies:
    - dataclasses (std)
    - core.models.items

Used By:
    - core.models.document
    - composer.state
    - render.renderer
"""

from __future__ import annotations

import math
import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Optional

from .crops import EntityId
from .items import PlacedItem

DEFAULT_PAGE_PRESET = "A4_PORTRAIT"
DEFAULT_BACKGROUND = "#1a1a1a"
DEFAULT_MARGIN = 40.0
DEFAULT_LAYOUT = "single"


def now_ms() -> int:
    """Wall-clock timestamp in epoch milliseconds."""
    return int(time.time() * 1000)


class CompositionMode(str, Enum):
    PANELS = "panels"
    FREEFORM = "freeform"


@dataclass(frozen=True, slots=True)
class PanelAssignment:
    """
    Crop bound to one panel slot.

    ``offset_x``/``offset_y`` are page pixels applied after ``zoom``.

    Invariants:
        - panel_index >= 0
        - zoom > 0
    """

    panel_index: int
    crop_id: Optional[EntityId] = None
    zoom: float = 1.0
    offset_x: float = 0.0
    offset_y: float = 0.0

    def __post_init__(self) -> None:
        """Validate assignment on construction."""
        if self.panel_index < 0:
            raise ValueError(f"panel_index must be >= 0: {self.panel_index}")
        if not (math.isfinite(self.zoom) and self.zoom > 0):
            raise ValueError(f"zoom must be > 0: {self.zoom}")

    @classmethod
    def empty(cls, panel_index: int) -> PanelAssignment:
        return cls(panel_index=panel_index)

    @property
    def is_assigned(self) -> bool:
        return self.crop_id is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "panelIndex": self.panel_index,
            "cropId": self.crop_id,
            "zoom": self.zoom,
            "offsetX": self.offset_x,
            "offsetY": self.offset_y,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any], index: int) -> PanelAssignment:
        """Deserialize; the array position wins over a stored panelIndex."""
        zoom = data.get("zoom")
        return cls(
            panel_index=index,
            crop_id=data.get("cropId"),
            zoom=float(zoom) if zoom is not None else 1.0,
            offset_x=float(data.get("offsetX") or 0),
            offset_y=float(data.get("offsetY") or 0),
        )


@dataclass(frozen=True, slots=True)
class Page:
    """
    One output canvas.

    Panel-mode data (``layout_id``, ``assignments``) and freeform data
    (``placed_items``) live side by side so switching the document mode
    never loses work.

    Invariants:
        - page_width > 0 and page_height > 0
        - margin >= 0
        - assignments[i].panel_index == i (dense, positional)
        - placed item ids unique within the page
    """

    id: EntityId
    name: str
    page_width: float
    page_height: float
    page_preset: str = DEFAULT_PAGE_PRESET
    background_color: str = DEFAULT_BACKGROUND
    margin: float = DEFAULT_MARGIN
    layout_id: str = DEFAULT_LAYOUT
    assignments: tuple[PanelAssignment, ...] = ()
    placed_items: tuple[PlacedItem, ...] = ()
    created_at: int = field(default_factory=now_ms)
    updated_at: int = field(default_factory=now_ms)

    def __post_init__(self) -> None:
        """Validate page on construction."""
        if self.page_width <= 0:
            raise ValueError(f"page_width must be > 0: {self.page_width}")
        if self.page_height <= 0:
            raise ValueError(f"page_height must be > 0: {self.page_height}")
        if self.margin < 0:
            raise ValueError(f"margin must be >= 0: {self.margin}")
        for position, assignment in enumerate(self.assignments):
            if assignment.panel_index != position:
                raise ValueError(
                    f"assignment at position {position} has panel_index "
                    f"{assignment.panel_index}"
                )
        ids = [item.id for item in self.placed_items]
        if len(ids) != len(set(ids)):
            raise ValueError(f"duplicate placed item ids on page {self.id!r}")

    # ─────────────────────────────────────────────────────────────────────────
    # Queries
    # ─────────────────────────────────────────────────────────────────────────

    @property
    def size(self) -> tuple[float, float]:
        return self.page_width, self.page_height

    def find_item(self, item_id: EntityId) -> Optional[PlacedItem]:
        for item in self.placed_items:
            if item.id == item_id:
                return item
        return None

    def referenced_crop_ids(self) -> set[EntityId]:
        """Crop ids used by placed items and assigned panels."""
        ids = {item.crop_id for item in self.placed_items if item.crop_id is not None}
        ids.update(a.crop_id for a in self.assignments if a.crop_id is not None)
        return ids

    def with_changes(self, **changes: Any) -> Page:
        return replace(self, **changes)

    # ─────────────────────────────────────────────────────────────────────────
    # Serialization
    # ─────────────────────────────────────────────────────────────────────────

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "pagePreset": self.page_preset,
            "pageWidth": self.page_width,
            "pageHeight": self.page_height,
            "backgroundColor": self.background_color,
            "margin": self.margin,
            "layoutId": self.layout_id,
            "assignments": [a.to_dict() for a in self.assignments],
            "placedItems": [item.to_dict() for item in self.placed_items],
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Page:
        """
        Deserialize a page record.

        Older records may omit panel fields, margin or timestamps; those
        take their defaults.
        """
        created = data.get("createdAt") or now_ms()
        margin = data.get("margin")
        return cls(
            id=data["id"],
            name=data.get("name") or "Page",
            page_preset=data.get("pagePreset") or DEFAULT_PAGE_PRESET,
            page_width=float(data["pageWidth"]),
            page_height=float(data["pageHeight"]),
            background_color=data.get("backgroundColor") or DEFAULT_BACKGROUND,
            margin=float(margin) if margin is not None else DEFAULT_MARGIN,
            layout_id=data.get("layoutId") or DEFAULT_LAYOUT,
            assignments=tuple(
                PanelAssignment.from_dict(a, i)
                for i, a in enumerate(data.get("assignments") or [])
            ),
            placed_items=tuple(
                PlacedItem.from_dict(item) for item in data.get("placedItems") or []
            ),
            created_at=int(created),
            updated_at=int(data.get("updatedAt") or created),
        )
