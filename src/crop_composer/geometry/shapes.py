"""
Module: geometry.shapes

Purpose:
    Frame-shape polygon generation for placed items. A shape is either a
    built-in id or a custom point list; both resolve to an ordered list of
    absolute points usable as a clip boundary and as a stroke path.

    Regular shapes are generated by distributing their vertices evenly on
    the inscribed ellipse of the box (diamond, pentagon, hexagon) or from
    the box corners (rectangle, trapezoid, parallelogram), so every
    generated outline is simple for any box with positive width and height.

Key Classes:
    - FrameShape: Enum of built-in shape ids
    - BuiltinShape: Shape variant naming a built-in id
    - CustomShape: Shape variant carrying a hand-edited point list

Key Functions:
    - unit_polygon(): Built-in outline in unit box space
    - shape_polygon(): Resolve any shape variant inside a box
    - resolve_shape(): Pick the variant for a frame-shape id + custom points
    - manga_inset_box(): Box of the inner stroke of a manga border
    - list_shapes(): Shape ids in picker order

Dependencies:
    - math (std)
    - geometry.polygon

Used By:
    - core.models.items.PlacedItem
    - render.renderer
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence, Union

from .polygon import Point, is_simple_polygon

logger = logging.getLogger(__name__)

MIN_CUSTOM_POINTS = 3
MANGA_MIN_INSET_PX = 4


class FrameShape(str, Enum):
    """Built-in frame shape ids, as stored in documents."""

    RECTANGLE = "rectangle"
    DIAMOND = "diamond"
    PENTAGON = "pentagon"
    HEXAGON = "hexagon"
    TRAPEZOID = "trapezoid"
    PARALLELOGRAM = "parallelogram"
    # Fixed manga outlines
    TRIANGLE = "triangle"
    DIAGONAL_TR = "diagonal-tr"
    DIAGONAL_TL = "diagonal-tl"
    DIAGONAL_BR = "diagonal-br"
    DIAGONAL_BL = "diagonal-bl"
    DIAGONAL_DOUBLE = "diagonal-double"
    PARALLELOGRAM_LEFT = "parallelogram-left"
    TRAPEZOID_BOTTOM = "trapezoid-bottom"
    ARROW_RIGHT = "arrow-right"
    ARROW_LEFT = "arrow-left"
    NOTCH_TR = "notch-tr"
    NOTCH_TL = "notch-tl"
    CHEVRON_RIGHT = "chevron-right"
    BURST = "burst"

    @classmethod
    def parse(cls, value: Optional[str]) -> FrameShape:
        """
        Parse a stored shape id, falling back to rectangle.

        Unknown ids come from documents written by newer or older tools;
        they must not prevent a document from loading.
        """
        if value is None or value == "":
            return cls.RECTANGLE
        if value in _SHAPE_ALIASES:
            return _SHAPE_ALIASES[value]
        try:
            return cls(value)
        except ValueError:
            logger.warning(f"Unknown frame shape {value!r}, using rectangle")
            return cls.RECTANGLE


# Mirror-image ids of the generic outlines
_SHAPE_ALIASES = {
    "parallelogram-right": FrameShape.PARALLELOGRAM,
    "trapezoid-top": FrameShape.TRAPEZOID,
}


# ─────────────────────────────────────────────────────────────────────────────
# Unit-space outlines
# ─────────────────────────────────────────────────────────────────────────────

def _ellipse_vertices(count: int, start_deg: float) -> tuple[Point, ...]:
    """Evenly spaced vertices on the ellipse inscribed in the unit box."""
    step = 360.0 / count
    out = []
    for k in range(count):
        theta = math.radians(start_deg + k * step)
        out.append((0.5 + 0.5 * math.cos(theta), 0.5 + 0.5 * math.sin(theta)))
    return tuple(out)


def _pct(*pairs: tuple[float, float]) -> tuple[Point, ...]:
    return tuple((x / 100.0, y / 100.0) for x, y in pairs)


_GENERATED: dict[FrameShape, tuple[Point, ...]] = {
    FrameShape.RECTANGLE: ((0.0, 0.0), (1.0, 0.0), (1.0, 1.0), (0.0, 1.0)),
    # Top vertex first, clockwise on screen
    FrameShape.DIAMOND: _ellipse_vertices(4, -90.0),
    FrameShape.PENTAGON: _ellipse_vertices(5, -90.0),
    # Flat top: first vertex at upper left
    FrameShape.HEXAGON: _ellipse_vertices(6, -120.0),
    FrameShape.TRAPEZOID: ((0.1, 0.0), (0.9, 0.0), (1.0, 1.0), (0.0, 1.0)),
    FrameShape.PARALLELOGRAM: ((0.12, 0.0), (1.0, 0.0), (0.88, 1.0), (0.0, 1.0)),
}

_PRESET_TABLES: dict[FrameShape, tuple[Point, ...]] = {
    FrameShape.TRIANGLE: _pct((50, 0), (100, 100), (0, 100)),
    FrameShape.DIAGONAL_TR: _pct((0, 0), (100, 15), (100, 100), (0, 100)),
    FrameShape.DIAGONAL_TL: _pct((0, 15), (100, 0), (100, 100), (0, 100)),
    FrameShape.DIAGONAL_BR: _pct((0, 0), (100, 0), (100, 85), (0, 100)),
    FrameShape.DIAGONAL_BL: _pct((0, 0), (100, 0), (100, 100), (0, 85)),
    FrameShape.DIAGONAL_DOUBLE: _pct((0, 12), (100, 0), (100, 88), (0, 100)),
    FrameShape.PARALLELOGRAM_LEFT: _pct((0, 0), (88, 0), (100, 100), (12, 100)),
    FrameShape.TRAPEZOID_BOTTOM: _pct((0, 0), (100, 0), (90, 100), (10, 100)),
    FrameShape.ARROW_RIGHT: _pct((0, 0), (75, 0), (100, 50), (75, 100), (0, 100)),
    FrameShape.ARROW_LEFT: _pct((25, 0), (100, 0), (100, 100), (25, 100), (0, 50)),
    FrameShape.NOTCH_TR: _pct((0, 0), (70, 0), (100, 30), (100, 100), (0, 100)),
    FrameShape.NOTCH_TL: _pct((30, 0), (100, 0), (100, 100), (0, 100), (0, 30)),
    FrameShape.CHEVRON_RIGHT: _pct(
        (0, 0), (70, 0), (100, 50), (70, 100), (0, 100), (30, 50)
    ),
    FrameShape.BURST: _pct(
        (50, 0), (62, 35), (100, 35), (70, 57), (82, 100),
        (50, 72), (18, 100), (30, 57), (0, 35), (38, 35),
    ),
}

SHAPE_NAMES: dict[FrameShape, str] = {
    shape: shape.value.replace("-", " ").title() for shape in FrameShape
}


def unit_polygon(shape: FrameShape) -> tuple[Point, ...]:
    """
    Outline of a built-in shape in the unit box [0, 1] x [0, 1].

    Args:
        shape: Built-in shape id

    Returns:
        Ordered vertices, closing edge implied
    """
    if shape in _GENERATED:
        return _GENERATED[shape]
    return _PRESET_TABLES[shape]


def list_shapes() -> list[FrameShape]:
    """All built-in shape ids in picker order."""
    return list(FrameShape)


def vertex_count(shape: FrameShape) -> int:
    """Number of vertices a built-in shape generates."""
    return len(unit_polygon(shape))


# ─────────────────────────────────────────────────────────────────────────────
# Shape variants
# ─────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True, slots=True)
class BuiltinShape:
    """A frame shape generated from a built-in id."""

    shape: FrameShape = FrameShape.RECTANGLE

    def unit_points(self) -> tuple[Point, ...]:
        return unit_polygon(self.shape)


@dataclass(frozen=True, slots=True)
class CustomShape:
    """
    A hand-edited outline.

    Points are unit fractions of the item box, so the outline follows the
    box when the item is resized.

    Invariants:
        - at least 3 points
        - every coordinate is finite
    """

    points: tuple[Point, ...]

    def __post_init__(self) -> None:
        """Validate point list on construction."""
        if len(self.points) < MIN_CUSTOM_POINTS:
            raise ValueError(
                f"custom shape needs >= {MIN_CUSTOM_POINTS} points: {len(self.points)}"
            )
        for x, y in self.points:
            if not (math.isfinite(x) and math.isfinite(y)):
                raise ValueError(f"custom shape point must be finite: ({x}, {y})")

    def unit_points(self) -> tuple[Point, ...]:
        return self.points

    @property
    def is_simple(self) -> bool:
        return is_simple_polygon(self.points)


Shape = Union[BuiltinShape, CustomShape]


def resolve_shape(
    frame_shape: FrameShape,
    custom_points: Optional[Sequence[Point]] = None,
) -> Shape:
    """
    Choose the shape variant for an item.

    Custom points override the built-in id only when there are at least
    three of them; shorter lists fall back to the rectangle.

    Args:
        frame_shape: The item's built-in shape id
        custom_points: The item's custom points in unit space, if any

    Returns:
        BuiltinShape or CustomShape
    """
    if custom_points:
        if len(custom_points) >= MIN_CUSTOM_POINTS:
            return CustomShape(tuple((float(x), float(y)) for x, y in custom_points))
        logger.warning(
            f"Custom outline has {len(custom_points)} points, using rectangle"
        )
        return BuiltinShape(FrameShape.RECTANGLE)
    return BuiltinShape(frame_shape)


def shape_polygon(
    shape: Shape,
    x: float,
    y: float,
    width: float,
    height: float,
) -> list[Point]:
    """
    Resolve a shape into absolute points inside a box.

    Args:
        shape: Shape variant
        x: Box left edge
        y: Box top edge
        width: Box width (> 0)
        height: Box height (> 0)

    Returns:
        Ordered absolute vertices, closing edge implied

    Raises:
        ValueError: If width or height is not positive

    Example:
        >>> shape_polygon(BuiltinShape(FrameShape.RECTANGLE), 10, 20, 100, 50)
        [(10.0, 20.0), (110.0, 20.0), (110.0, 70.0), (10.0, 70.0)]
    """
    if width <= 0 or height <= 0:
        raise ValueError(f"box must have positive size: {width}x{height}")
    return [
        (float(x + px * width), float(y + py * height))
        for px, py in shape.unit_points()
    ]


def manga_inset_box(
    x: float,
    y: float,
    width: float,
    height: float,
    border_width: float,
) -> tuple[float, float, float, float]:
    """
    Box of the inner stroke of a manga-style border.

    The inset is ``max(border_width, 4) / min(width, height)`` of each
    dimension, applied on every side.

    Returns:
        (x, y, width, height) of the inset box; width/height may reach 0
        for very small boxes
    """
    inset = max(border_width, MANGA_MIN_INSET_PX) / min(width, height)
    inner_w = max(0.0, width * (1 - 2 * inset))
    inner_h = max(0.0, height * (1 - 2 * inset))
    return x + width * inset, y + height * inset, inner_w, inner_h
