"""
Module: geometry.polygon

Purpose:
    Plain polygon math shared by the shape library and the renderer:
    simplicity checks, bounds, rotation normalisation and dash splitting
    of closed outlines.

Key Functions:
    - is_simple_polygon(): True when no two non-adjacent edges touch
    - polygon_area(): Signed shoelace area
    - polygon_bounds(): Axis-aligned bounding box of a point list
    - normalize_rotation(): Map degrees into (-180, 180]
    - dash_segments(): Split a closed outline into dash polylines

Dependencies:
    - math (std)

Used By:
    - geometry.shapes
    - render.renderer
"""

from __future__ import annotations

import math
from typing import Iterable, Sequence

Point = tuple[float, float]

_EPS = 1e-9


def polygon_area(points: Sequence[Point]) -> float:
    """Signed area by the shoelace formula (positive = clockwise on screen)."""
    total = 0.0
    n = len(points)
    for i in range(n):
        x1, y1 = points[i]
        x2, y2 = points[(i + 1) % n]
        total += x1 * y2 - x2 * y1
    return total / 2.0


def polygon_bounds(points: Iterable[Point]) -> tuple[float, float, float, float]:
    """
    Axis-aligned bounds of a point list.

    Returns:
        (min_x, min_y, max_x, max_y)

    Raises:
        ValueError: If points is empty
    """
    xs: list[float] = []
    ys: list[float] = []
    for x, y in points:
        xs.append(x)
        ys.append(y)
    if not xs:
        raise ValueError("Cannot compute bounds of an empty polygon")
    return min(xs), min(ys), max(xs), max(ys)


def _orientation(p: Point, q: Point, r: Point) -> int:
    val = (q[1] - p[1]) * (r[0] - q[0]) - (q[0] - p[0]) * (r[1] - q[1])
    if abs(val) < _EPS:
        return 0
    return 1 if val > 0 else 2


def _on_segment(p: Point, q: Point, r: Point) -> bool:
    """True if q lies on segment pr, given p, q, r are collinear."""
    return (
        min(p[0], r[0]) - _EPS <= q[0] <= max(p[0], r[0]) + _EPS
        and min(p[1], r[1]) - _EPS <= q[1] <= max(p[1], r[1]) + _EPS
    )


def segments_intersect(p1: Point, q1: Point, p2: Point, q2: Point) -> bool:
    """True if closed segments p1q1 and p2q2 share at least one point."""
    o1 = _orientation(p1, q1, p2)
    o2 = _orientation(p1, q1, q2)
    o3 = _orientation(p2, q2, p1)
    o4 = _orientation(p2, q2, q1)

    if o1 != o2 and o3 != o4:
        return True
    if o1 == 0 and _on_segment(p1, p2, q1):
        return True
    if o2 == 0 and _on_segment(p1, q2, q1):
        return True
    if o3 == 0 and _on_segment(p2, p1, q2):
        return True
    if o4 == 0 and _on_segment(p2, q1, q2):
        return True
    return False


def is_simple_polygon(points: Sequence[Point]) -> bool:
    """
    Check that a closed polygon is simple (non-self-intersecting).

    A polygon is simple when it has at least 3 vertices, a non-zero area,
    adjacent edges meet only at their shared vertex and non-adjacent edges
    never touch.

    Args:
        points: Ordered vertices; the closing edge is implied

    Returns:
        True if the polygon is simple
    """
    n = len(points)
    if n < 3:
        return False
    if abs(polygon_area(points)) < _EPS:
        return False

    for i in range(n):
        prev, vertex, nxt = points[i - 1], points[i], points[(i + 1) % n]
        if math.dist(vertex, nxt) < _EPS:
            return False
        # Adjacent edges folding back onto each other overlap along a run.
        if _orientation(prev, vertex, nxt) == 0:
            dot = (prev[0] - vertex[0]) * (nxt[0] - vertex[0]) + (
                prev[1] - vertex[1]
            ) * (nxt[1] - vertex[1])
            if dot > 0:
                return False

    edges = [(points[i], points[(i + 1) % n]) for i in range(n)]
    for i in range(n):
        for j in range(i + 2, n):
            if i == 0 and j == n - 1:
                continue
            if segments_intersect(*edges[i], *edges[j]):
                return False
    return True


def normalize_rotation(degrees: float) -> float:
    """
    Normalize an angle in degrees into the half-open range (-180, 180].

    Example:
        >>> normalize_rotation(270)
        -90.0
        >>> normalize_rotation(-180)
        180.0
    """
    value = math.fmod(float(degrees), 360.0)
    if value <= -180.0:
        value += 360.0
    elif value > 180.0:
        value -= 360.0
    return value


def dash_segments(
    points: Sequence[Point],
    dash: float,
    gap: float,
    *,
    closed: bool = True,
) -> list[list[Point]]:
    """
    Split an outline into dash polylines following an on/off pattern.

    The pattern restarts at the first vertex and carries across corners,
    so a dash may bend around a vertex.

    Args:
        points: Outline vertices
        dash: Length of each drawn run (> 0)
        gap: Length of each skipped run (>= 0)
        closed: Whether the closing edge back to the first vertex is stroked

    Returns:
        List of polylines, each with at least two points
    """
    if dash <= 0:
        raise ValueError(f"dash must be > 0: {dash}")
    if gap < 0:
        raise ValueError(f"gap must be >= 0: {gap}")
    if len(points) < 2:
        return []

    path = list(points) + ([points[0]] if closed else [])
    if gap == 0:
        return [path]

    dashes: list[list[Point]] = []
    drawing = True
    remaining = dash
    current: list[Point] = [path[0]]

    for start, end in zip(path, path[1:]):
        seg_len = math.dist(start, end)
        travelled = 0.0
        while seg_len - travelled > _EPS:
            step = min(remaining, seg_len - travelled)
            travelled += step
            t = travelled / seg_len
            pt = (start[0] + (end[0] - start[0]) * t, start[1] + (end[1] - start[1]) * t)
            remaining -= step
            if drawing:
                current.append(pt)
            if remaining <= _EPS:
                if drawing:
                    dashes.append(current)
                drawing = not drawing
                remaining = dash if drawing else gap
                current = [pt]
        if drawing and current[-1] != end:
            current.append(end)

    if drawing and len(current) >= 2:
        dashes.append(current)
    return [d for d in dashes if len(d) >= 2]
