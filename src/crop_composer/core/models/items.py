"""
Module: core.models.items

Purpose:
    The PlacedItem model: one crop instance positioned, sized, rotated and
    shaped on a freeform page. The crop is referenced by id only; a
    dangling reference is a valid state and renders as an empty frame.

Key Classes:
    - BorderStyle: Border stroke styles
    - PlacedItem: Immutable placed item

Dependencies:
    - dataclasses (std)
    - geometry.shapes: Frame shape ids and shape variants

Used By:
    - core.models.pages.Page
    - composer.state: Freeform mutators
    - render.renderer: Freeform rendering
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from enum import Enum
from typing import TYPE_CHECKING, Any, Optional

from crop_composer.geometry.polygon import Point, normalize_rotation
from crop_composer.geometry.shapes import FrameShape, Shape, resolve_shape, shape_polygon

from .crops import EntityId

if TYPE_CHECKING:
    from .crops import Crop

logger = logging.getLogger(__name__)

DEFAULT_BORDER_COLOR = "#000"
DEFAULT_BORDER_WIDTH = 3.0

# Percent <-> unit conversion is rounded so stored outlines round-trip exactly.
_PCT_DIGITS = 10
_UNIT_DIGITS = 12


class BorderStyle(str, Enum):
    """How an item's outline is stroked."""

    MANGA = "manga"
    SOLID = "solid"
    DASHED = "dashed"
    NONE = "none"

    @classmethod
    def parse(cls, value: Optional[str]) -> BorderStyle:
        if not value:
            return cls.MANGA
        try:
            return cls(value)
        except ValueError:
            logger.warning(f"Unknown border style {value!r}, using manga")
            return cls.MANGA


@dataclass(frozen=True, slots=True)
class PlacedItem:
    """
    Crop instance on a freeform page.

    Geometry is in page pixels. ``rotation`` is None when the item has never
    been rotated on the page; the crop's own rotation applies then.
    ``custom_points`` are unit fractions of the item box and override
    ``frame_shape`` when there are at least three of them.

    Attributes:
        id: Identifier, unique within its page
        crop_id: Non-owning reference to a Crop
        x: Left edge
        y: Top edge
        width: Width (> 0)
        height: Height (> 0)
        rotation: Degrees, any real; None defers to the crop
        frame_shape: Built-in outline id
        custom_points: Hand-edited outline in unit box space
        border_color: Any colour string Pillow's ImageColor accepts
        border_width: Outer stroke width in page pixels (>= 0)
        border_style: Stroke style

    Invariants:
        - width > 0 and height > 0
        - border_width >= 0
        - all coordinates finite
    """

    id: EntityId
    crop_id: Optional[EntityId]
    x: float
    y: float
    width: float
    height: float
    rotation: Optional[float] = None
    frame_shape: FrameShape = FrameShape.RECTANGLE
    custom_points: Optional[tuple[Point, ...]] = None
    border_color: str = DEFAULT_BORDER_COLOR
    border_width: float = DEFAULT_BORDER_WIDTH
    border_style: BorderStyle = BorderStyle.MANGA

    def __post_init__(self) -> None:
        """Validate item on construction."""
        for name in ("x", "y", "width", "height"):
            value = getattr(self, name)
            if not math.isfinite(value):
                raise ValueError(f"{name} must be finite: {value}")
        if self.width <= 0:
            raise ValueError(f"width must be > 0: {self.width}")
        if self.height <= 0:
            raise ValueError(f"height must be > 0: {self.height}")
        if self.rotation is not None and not math.isfinite(self.rotation):
            raise ValueError(f"rotation must be finite: {self.rotation}")
        if self.border_width < 0:
            raise ValueError(f"border_width must be >= 0: {self.border_width}")

    # ─────────────────────────────────────────────────────────────────────────
    # Properties
    # ─────────────────────────────────────────────────────────────────────────

    @property
    def shape(self) -> Shape:
        """The resolved shape variant (custom outline or built-in)."""
        return resolve_shape(self.frame_shape, self.custom_points)

    @property
    def center(self) -> tuple[float, float]:
        return self.x + self.width / 2, self.y + self.height / 2

    @property
    def display_rotation(self) -> float:
        """Own rotation normalized to (-180, 180]; 0 when unset."""
        return normalize_rotation(self.rotation or 0.0)

    def effective_rotation(self, crop: Optional[Crop]) -> float:
        """Rotation used for rendering: own override, else the crop's, else 0."""
        if self.rotation is not None:
            return self.rotation
        if crop is not None:
            return crop.rotation
        return 0.0

    def polygon(self, scale: float = 1.0) -> list[Point]:
        """Outline in page pixels at an output scale."""
        return shape_polygon(
            self.shape,
            self.x * scale,
            self.y * scale,
            self.width * scale,
            self.height * scale,
        )

    # ─────────────────────────────────────────────────────────────────────────
    # Derivation
    # ─────────────────────────────────────────────────────────────────────────

    def with_changes(self, **changes: Any) -> PlacedItem:
        """Copy with fields replaced (validated by the constructor)."""
        return replace(self, **changes)

    def translated(self, dx: float, dy: float) -> PlacedItem:
        return replace(self, x=self.x + dx, y=self.y + dy)

    # ─────────────────────────────────────────────────────────────────────────
    # Serialization
    # ─────────────────────────────────────────────────────────────────────────

    def to_dict(self) -> dict[str, Any]:
        """
        Serialize to the document format.

        Custom points are written as percentages of the item box.
        """
        return {
            "id": self.id,
            "cropId": self.crop_id,
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
            "rotation": self.rotation,
            "frameShape": self.frame_shape.value,
            "customPoints": (
                [
                    [round(px * 100.0, _PCT_DIGITS), round(py * 100.0, _PCT_DIGITS)]
                    for px, py in self.custom_points
                ]
                if self.custom_points is not None
                else None
            ),
            "borderColor": self.border_color,
            "borderWidth": self.border_width,
            "borderStyle": self.border_style.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PlacedItem:
        """
        Deserialize from the document format.

        Missing style fields take their defaults, unknown frame shapes fall
        back to rectangle.

        Raises:
            KeyError: If id or geometry fields are missing
            ValueError: If geometry is invalid
        """
        raw_points = data.get("customPoints")
        custom_points = None
        if raw_points:
            custom_points = tuple(
                (round(float(px) / 100.0, _UNIT_DIGITS), round(float(py) / 100.0, _UNIT_DIGITS))
                for px, py in raw_points
            )
        rotation = data.get("rotation")
        border_width = data.get("borderWidth")
        return cls(
            id=data["id"],
            crop_id=data.get("cropId"),
            x=float(data["x"]),
            y=float(data["y"]),
            width=float(data["width"]),
            height=float(data["height"]),
            rotation=float(rotation) if rotation is not None else None,
            frame_shape=FrameShape.parse(data.get("frameShape")),
            custom_points=custom_points,
            border_color=data.get("borderColor") or DEFAULT_BORDER_COLOR,
            border_width=(
                float(border_width) if border_width is not None else DEFAULT_BORDER_WIDTH
            ),
            border_style=BorderStyle.parse(data.get("borderStyle")),
        )
