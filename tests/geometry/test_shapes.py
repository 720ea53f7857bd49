"""
Unit Tests for Frame Shapes

Tests for shape polygon generation, shape resolution and the manga inset.
"""

import pytest

from crop_composer.geometry.polygon import is_simple_polygon, polygon_bounds
from crop_composer.geometry.shapes import (
    BuiltinShape,
    CustomShape,
    FrameShape,
    list_shapes,
    manga_inset_box,
    resolve_shape,
    shape_polygon,
    unit_polygon,
    vertex_count,
)


class TestBuiltinShapes:
    """Tests for the built-in shape table."""

    @pytest.mark.parametrize(
        "shape,count",
        [
            (FrameShape.RECTANGLE, 4),
            (FrameShape.DIAMOND, 4),
            (FrameShape.PENTAGON, 5),
            (FrameShape.HEXAGON, 6),
            (FrameShape.TRAPEZOID, 4),
            (FrameShape.PARALLELOGRAM, 4),
            (FrameShape.TRIANGLE, 3),
            (FrameShape.CHEVRON_RIGHT, 6),
            (FrameShape.BURST, 10),
        ],
    )
    def test_vertex_count_when_shape_given_then_matches_outline(self, shape, count):
        """Each built-in shape generates its documented number of vertices."""
        assert vertex_count(shape) == count

    @pytest.mark.parametrize("shape", list(FrameShape))
    @pytest.mark.parametrize("box", [(0, 0, 200, 100), (5, 5, 1, 1), (0, 0, 30, 900)])
    def test_shape_polygon_when_any_box_then_simple_and_inside(self, shape, box):
        """Every built-in outline is simple and stays inside its box."""
        x, y, w, h = box
        points = shape_polygon(BuiltinShape(shape), x, y, w, h)

        assert is_simple_polygon(points)
        min_x, min_y, max_x, max_y = polygon_bounds(points)
        assert min_x >= x - 1e-9 and max_x <= x + w + 1e-9
        assert min_y >= y - 1e-9 and max_y <= y + h + 1e-9

    def test_unit_polygon_when_diamond_then_top_vertex_first(self):
        """Diamond starts at the top centre."""
        px, py = unit_polygon(FrameShape.DIAMOND)[0]

        assert px == pytest.approx(0.5)
        assert py == pytest.approx(0.0)

    def test_list_shapes_when_called_then_rectangle_first(self):
        """Picker order starts with the rectangle and covers every id."""
        shapes = list_shapes()

        assert shapes[0] == FrameShape.RECTANGLE
        assert set(shapes) == set(FrameShape)

    def test_parse_when_unknown_id_then_rectangle(self):
        assert FrameShape.parse("star-of-david") == FrameShape.RECTANGLE
        assert FrameShape.parse(None) == FrameShape.RECTANGLE
        assert FrameShape.parse("burst") == FrameShape.BURST

    def test_parse_when_mirror_alias_then_generic_shape(self):
        assert FrameShape.parse("parallelogram-right") == FrameShape.PARALLELOGRAM
        assert FrameShape.parse("trapezoid-top") == FrameShape.TRAPEZOID
        assert FrameShape.parse("parallelogram-left") == FrameShape.PARALLELOGRAM_LEFT


class TestShapePolygon:
    """Tests for shape_polygon()."""

    def test_shape_polygon_when_rectangle_then_box_corners(self):
        points = shape_polygon(BuiltinShape(FrameShape.RECTANGLE), 10, 20, 100, 50)

        assert points == [(10.0, 20.0), (110.0, 20.0), (110.0, 70.0), (10.0, 70.0)]

    @pytest.mark.parametrize("w,h", [(0, 10), (10, 0), (-5, 10)])
    def test_shape_polygon_when_degenerate_box_then_raises(self, w, h):
        with pytest.raises(ValueError):
            shape_polygon(BuiltinShape(), 0, 0, w, h)

    def test_shape_polygon_when_custom_then_scaled_to_box(self):
        shape = CustomShape(((0.0, 0.0), (1.0, 0.5), (0.0, 1.0)))

        points = shape_polygon(shape, 100, 100, 200, 40)

        assert points == [(100.0, 100.0), (300.0, 120.0), (100.0, 140.0)]


class TestResolveShape:
    """Tests for resolve_shape()."""

    def test_resolve_when_three_custom_points_then_custom_wins(self):
        shape = resolve_shape(FrameShape.HEXAGON, [(0, 0), (1, 0), (0, 1)])

        assert isinstance(shape, CustomShape)
        assert shape.points == ((0.0, 0.0), (1.0, 0.0), (0.0, 1.0))

    def test_resolve_when_two_custom_points_then_rectangle(self):
        shape = resolve_shape(FrameShape.HEXAGON, [(0, 0), (1, 1)])

        assert shape == BuiltinShape(FrameShape.RECTANGLE)

    def test_resolve_when_no_custom_points_then_builtin(self):
        assert resolve_shape(FrameShape.PENTAGON) == BuiltinShape(FrameShape.PENTAGON)
        assert resolve_shape(FrameShape.PENTAGON, []) == BuiltinShape(FrameShape.PENTAGON)

    def test_custom_shape_when_too_few_points_then_raises(self):
        with pytest.raises(ValueError):
            CustomShape(((0.0, 0.0), (1.0, 1.0)))

    def test_custom_shape_when_non_finite_point_then_raises(self):
        with pytest.raises(ValueError):
            CustomShape(((0.0, 0.0), (float("nan"), 1.0), (1.0, 0.0)))

    def test_custom_shape_when_bowtie_then_not_simple(self):
        shape = CustomShape(((0.0, 0.0), (1.0, 1.0), (1.0, 0.0), (0.0, 1.0)))

        assert not shape.is_simple


class TestMangaInset:
    """Tests for manga_inset_box()."""

    def test_inset_when_thin_border_then_uses_minimum(self):
        """A 3px border still insets by 4px relative to the short side."""
        x, y, w, h = manga_inset_box(0, 0, 100, 50, 3)

        assert (x, y) == pytest.approx((8.0, 4.0))
        assert (w, h) == pytest.approx((84.0, 42.0))

    def test_inset_when_thick_border_then_uses_border_width(self):
        x, y, w, h = manga_inset_box(10, 10, 100, 100, 10)

        assert (x, y, w, h) == pytest.approx((20.0, 20.0, 80.0, 80.0))

    def test_inset_when_tiny_box_then_clamped_to_zero(self):
        _, _, w, h = manga_inset_box(0, 0, 6, 6, 4)

        assert w == 0.0 and h == 0.0
