"""
Geometry Package

Frame-shape generation and the polygon math used for clipping and
border strokes.
"""

from .polygon import (
    Point,
    dash_segments,
    is_simple_polygon,
    normalize_rotation,
    polygon_area,
    polygon_bounds,
)
from .shapes import (
    BuiltinShape,
    CustomShape,
    FrameShape,
    Shape,
    list_shapes,
    manga_inset_box,
    resolve_shape,
    shape_polygon,
    unit_polygon,
    vertex_count,
)

__all__ = [
    "Point",
    "dash_segments",
    "is_simple_polygon",
    "normalize_rotation",
    "polygon_area",
    "polygon_bounds",
    "BuiltinShape",
    "CustomShape",
    "FrameShape",
    "Shape",
    "list_shapes",
    "manga_inset_box",
    "resolve_shape",
    "shape_polygon",
    "unit_polygon",
    "vertex_count",
]
