"""
Module: layout.models

Purpose:
    Data models for panel layouts and page presets.
    Immutable dataclasses; panel geometry is stored as ratios of the
    content area and converted to pixels on demand.

Key Classes:
    - PanelRatio: One panel slot as ratios of the content area
    - PanelLayout: Named ordered list of panel slots
    - PanelRect: A panel slot resolved to page pixels
    - PagePreset: Named page size in pixels

Dependencies:
    - dataclasses (std)

Used By:
    - layout.catalog
    - render.renderer
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True, slots=True)
class PanelRatio:
    """
    Panel slot expressed as ratios of the page content area.

    Invariants:
        - x, y, width, height each in [0, 1]
        - x + width <= 1 and y + height <= 1
    """

    x: float
    y: float
    width: float
    height: float

    def __post_init__(self) -> None:
        """Validate ratios on construction."""
        for name in ("x", "y", "width", "height"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} ratio must be in [0, 1]: {value}")
        if self.x + self.width > 1.0 + 1e-9:
            raise ValueError(f"panel exceeds content width: x={self.x} width={self.width}")
        if self.y + self.height > 1.0 + 1e-9:
            raise ValueError(f"panel exceeds content height: y={self.y} height={self.height}")


@dataclass(frozen=True, slots=True)
class PanelLayout:
    """
    Named panel grid.

    Attributes:
        id: Stable identifier stored in documents (e.g. "4-grid")
        name: Display name
        description: One-line description for pickers
        panels: Ordered panel slots; position in the tuple is the panel index
    """

    id: str
    name: str
    description: str
    panels: tuple[PanelRatio, ...]

    @property
    def panel_count(self) -> int:
        return len(self.panels)


@dataclass(frozen=True, slots=True)
class PanelRect:
    """A panel slot resolved to absolute page pixels."""

    index: int
    x: float
    y: float
    width: float
    height: float
    ratio: PanelRatio

    @property
    def center(self) -> tuple[float, float]:
        return self.x + self.width / 2, self.y + self.height / 2

    def scaled(self, scale: float) -> PanelRect:
        """Same slot at an output scale."""
        return PanelRect(
            index=self.index,
            x=self.x * scale,
            y=self.y * scale,
            width=self.width * scale,
            height=self.height * scale,
            ratio=self.ratio,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
            "ratioX": self.ratio.x,
            "ratioY": self.ratio.y,
            "ratioWidth": self.ratio.width,
            "ratioHeight": self.ratio.height,
        }


@dataclass(frozen=True, slots=True)
class PagePreset:
    """Named page size in pixels (150 DPI for the paper sizes)."""

    id: str
    width: int
    height: int
    label: str
