"""
Unit Tests for PageRenderer

Pixel-sampling tests for freeform and panel rendering, borders, filters
and the rotated-original path.
"""

import io

import pytest
from PIL import Image

from conftest import BLUE, RED, WHITE, MemoryCropRepository, png_bytes
from crop_composer.core.models import (
    BorderStyle,
    CompositionMode,
    Crop,
    Page,
    PanelAssignment,
    PlacedItem,
)
from crop_composer.render.renderer import PageRenderer, output_size, render_page

BLACK = (0, 0, 0)


def assert_pixel(image, xy, expected, tolerance=3):
    actual = image.getpixel(xy)[:3]
    assert all(abs(a - e) <= tolerance for a, e in zip(actual, expected)), (
        f"pixel {xy} is {actual}, expected {expected}"
    )


def _page(items=(), **overrides) -> Page:
    fields = dict(
        id="p",
        name="P",
        page_width=200,
        page_height=200,
        background_color="#ffffff",
        margin=0,
        placed_items=tuple(items),
    )
    fields.update(overrides)
    return Page(**fields)


def _item(crop_id="c1", **overrides) -> PlacedItem:
    fields = dict(
        id="i", crop_id=crop_id, x=50, y=50, width=100, height=100,
        border_style=BorderStyle.NONE,
    )
    fields.update(overrides)
    return PlacedItem(**fields)


@pytest.fixture
def renderer(repository) -> PageRenderer:
    return PageRenderer(repository)


class TestOutputSize:
    def test_output_size_when_scaled_then_rounded(self):
        page = _page(page_width=1240, page_height=1754)

        assert output_size(page) == (1240, 1754)
        assert output_size(page, 0.5) == (620, 877)
        assert output_size(page, 0.0001) == (1, 1)

    @pytest.mark.parametrize("scale", [0, -1, float("nan")])
    def test_render_when_scale_not_positive_then_raises(self, renderer, scale):
        with pytest.raises(ValueError):
            renderer.render(_page(), CompositionMode.FREEFORM, scale)


class TestFreeform:
    def test_render_when_empty_page_then_background(self, renderer):
        image = renderer.render(_page(background_color="#1a1a1a"), CompositionMode.FREEFORM)

        assert image.mode == "RGB"
        assert image.size == (200, 200)
        assert_pixel(image, (100, 100), (0x1A, 0x1A, 0x1A), tolerance=0)

    def test_render_when_item_then_preview_inside_box_only(self, renderer):
        image = renderer.render(_page([_item()]), CompositionMode.FREEFORM)

        assert_pixel(image, (100, 100), RED)
        assert_pixel(image, (60, 60), RED)
        assert_pixel(image, (20, 20), WHITE)
        assert_pixel(image, (180, 100), WHITE)

    def test_render_when_half_scale_then_geometry_scaled(self, renderer):
        image = renderer.render(_page([_item()]), CompositionMode.FREEFORM, 0.5)

        assert image.size == (100, 100)
        assert_pixel(image, (50, 50), RED)
        assert_pixel(image, (10, 10), WHITE)

    def test_render_when_wide_preview_then_contained_and_centred(self, repository):
        repository.add(Crop(id="w", x=0, y=0, width=20, height=10), png_bytes(BLUE, (20, 10)))

        image = PageRenderer(repository).render(_page([_item("w")]), CompositionMode.FREEFORM)

        # 100x50 drawn at y 75..125 inside a 100x100 box
        assert_pixel(image, (100, 100), BLUE)
        assert_pixel(image, (100, 60), WHITE)
        assert_pixel(image, (100, 140), WHITE)

    def test_render_when_items_overlap_then_later_on_top(self, renderer):
        items = [_item("c1", id="a"), _item("c2", id="b", x=100, y=100)]

        image = renderer.render(_page(items), CompositionMode.FREEFORM)

        assert_pixel(image, (75, 75), RED)
        assert_pixel(image, (125, 125), BLUE)

    def test_render_when_triangle_then_clipped_to_outline(self, renderer):
        from crop_composer.geometry.shapes import FrameShape

        image = renderer.render(
            _page([_item(frame_shape=FrameShape.TRIANGLE)]), CompositionMode.FREEFORM
        )

        assert_pixel(image, (100, 140), RED)
        assert_pixel(image, (55, 55), WHITE)
        assert_pixel(image, (145, 55), WHITE)

    def test_render_when_item_off_page_then_clipped(self, renderer):
        image = renderer.render(_page([_item(x=150, y=150)]), CompositionMode.FREEFORM)

        assert_pixel(image, (190, 190), RED)
        assert image.size == (200, 200)

    def test_render_when_crop_missing_then_border_only(self, renderer):
        item = _item("ghost", border_style=BorderStyle.SOLID, border_width=4)

        image = renderer.render(_page([item]), CompositionMode.FREEFORM)

        assert_pixel(image, (100, 100), WHITE)
        assert_pixel(image, (50, 100), BLACK)

    def test_render_when_preview_missing_then_border_only(self, repository):
        repository.add(Crop(id="bare", x=0, y=0, width=10, height=10))
        item = _item("bare", border_style=BorderStyle.SOLID, border_width=4)

        image = PageRenderer(repository).render(_page([item]), CompositionMode.FREEFORM)

        assert_pixel(image, (100, 100), WHITE)
        assert_pixel(image, (150, 100), BLACK)


class TestBorders:
    def test_border_when_solid_then_outline_stroked(self, renderer):
        item = _item(None, border_style=BorderStyle.SOLID, border_width=4, border_color="#0000ff")

        image = renderer.render(_page([item]), CompositionMode.FREEFORM)

        assert_pixel(image, (50, 100), BLUE)
        assert_pixel(image, (100, 150), BLUE)
        assert_pixel(image, (100, 100), WHITE)

    def test_border_when_dashed_then_gaps_between_runs(self, renderer):
        """Width 4 gives 12px dashes and 8px gaps from the top-left corner."""
        item = _item(None, border_style=BorderStyle.DASHED, border_width=4)

        image = renderer.render(_page([item]), CompositionMode.FREEFORM)

        assert_pixel(image, (56, 50), BLACK)
        assert_pixel(image, (66, 50), WHITE)
        assert_pixel(image, (76, 50), BLACK)

    def test_border_when_manga_then_inner_stroke(self, renderer):
        item = _item(None, border_style=BorderStyle.MANGA, border_width=4)

        image = renderer.render(_page([item]), CompositionMode.FREEFORM)

        # Outer stroke at x=50, 2px inner stroke on the inset box at x=54
        assert_pixel(image, (50, 100), BLACK)
        assert any(image.getpixel((x, 100)) == BLACK for x in (53, 54, 55))
        assert_pixel(image, (100, 100), WHITE)

    def test_border_when_none_or_zero_width_then_not_drawn(self, renderer):
        items = [
            _item(None, id="a", border_style=BorderStyle.NONE, border_width=8),
            _item(None, id="b", border_style=BorderStyle.SOLID, border_width=0, x=0, y=0),
        ]

        image = renderer.render(_page(items), CompositionMode.FREEFORM)

        assert_pixel(image, (50, 100), WHITE)
        assert_pixel(image, (0, 50), WHITE)


class TestRotation:
    def test_rotation_when_original_missing_then_stretched_preview(self, repository):
        repository.add(
            Crop(id="r", x=0, y=0, width=10, height=10, rotation=90, image_id="gone"),
            png_bytes(RED),
        )

        image = PageRenderer(repository).render(_page([_item("r")]), CompositionMode.FREEFORM)

        assert_pixel(image, (100, 100), RED)
        assert_pixel(image, (55, 55), RED)

    def test_rotation_when_original_available_then_rederived_from_source(self):
        """Rotating reveals source pixels outside the crop rectangle."""
        source = Image.new("RGB", (100, 100), RED)
        source.paste(BLUE, (50, 0, 100, 100))
        buffer = io.BytesIO()
        source.save(buffer, format="PNG")

        repository = MemoryCropRepository()
        repository.originals["img"] = buffer.getvalue()
        repository.add(Crop(id="half", x=0, y=0, width=50, height=100, image_id="img"))
        item = _item("half", x=0, y=0, width=50, height=100, rotation=90)
        page = _page([item], page_width=100, page_height=100)

        image = PageRenderer(repository).render(page, CompositionMode.FREEFORM)

        assert_pixel(image, (25, 50), RED)
        assert_pixel(image, (25, 10), BLUE)
        assert_pixel(image, (25, 92), WHITE)
        assert_pixel(image, (75, 50), WHITE)

    def test_rotation_when_rendered_twice_then_original_decoded_once(self):
        repository = MemoryCropRepository()
        repository.originals["img"] = png_bytes(RED, (40, 40))
        repository.add(Crop(id="c", x=10, y=10, width=20, height=20, image_id="img"))
        renderer = PageRenderer(repository)
        page = _page([_item("c", rotation=30)])

        renderer.render(page, CompositionMode.FREEFORM)
        renderer.render(page, CompositionMode.FREEFORM)

        assert repository.original_reads == 1
        assert renderer.cache.has_original("c")

    def test_rotation_when_item_rotation_zero_then_crop_rotation_ignored(self, repository):
        repository.add(
            Crop(id="r", x=0, y=0, width=10, height=10, rotation=45, image_id="img"),
            png_bytes(RED),
        )

        image = PageRenderer(repository).render(
            _page([_item("r", rotation=0)]), CompositionMode.FREEFORM
        )

        assert repository.original_reads == 0
        assert_pixel(image, (55, 55), RED)


class TestFilters:
    def test_render_when_noir_filter_then_grey(self, repository):
        repository.add(Crop(id="n", x=0, y=0, width=10, height=10, filter="noir"), png_bytes(RED))

        image = PageRenderer(repository).render(_page([_item("n")]), CompositionMode.FREEFORM)

        r, g, b = image.getpixel((100, 100))
        assert r == g == b
        assert r < 100

    def test_render_when_ghost_filter_then_blended_with_background(self, repository):
        repository.add(Crop(id="g", x=0, y=0, width=10, height=10, filter="ghost"), png_bytes(RED))

        image = PageRenderer(repository).render(_page([_item("g")]), CompositionMode.FREEFORM)

        r, g, b = image.getpixel((100, 100))
        assert r > 200
        assert g > 80 and b > 80


class TestPanels:
    def _panel_page(self, layout_id="single", assignments=None, **overrides):
        assignments = assignments or (PanelAssignment(0, crop_id="c1"),)
        return _page(
            page_width=100, page_height=100, layout_id=layout_id,
            assignments=tuple(assignments), **overrides,
        )

    def test_panels_when_single_no_margin_then_cover_whole_page(self, renderer):
        image = renderer.render(self._panel_page(), CompositionMode.PANELS)

        assert_pixel(image, (50, 50), RED)
        assert_pixel(image, (2, 2), RED)
        assert_pixel(image, (97, 97), RED)

    def test_panels_when_margin_then_background_around(self, renderer):
        image = renderer.render(self._panel_page(margin=20), CompositionMode.PANELS)

        assert_pixel(image, (5, 5), WHITE)
        assert_pixel(image, (50, 50), RED)

    def test_panels_when_second_panel_assigned_then_only_its_rect(self, renderer):
        page = self._panel_page(
            "2-horizontal", (PanelAssignment(0), PanelAssignment(1, crop_id="c2"))
        )

        image = renderer.render(page, CompositionMode.PANELS)

        assert_pixel(image, (50, 80), BLUE)
        assert_pixel(image, (50, 20), WHITE)
        assert_pixel(image, (50, 50), WHITE)

    def test_panels_when_panned_then_image_shifted(self, renderer):
        page = self._panel_page(assignments=(PanelAssignment(0, crop_id="c1", offset_x=50),))

        image = renderer.render(page, CompositionMode.PANELS)

        assert_pixel(image, (20, 50), WHITE)
        assert_pixel(image, (75, 50), RED)

    def test_panels_when_zoomed_out_then_shrunk_about_centre(self, renderer):
        page = self._panel_page(assignments=(PanelAssignment(0, crop_id="c1", zoom=0.5),))

        image = renderer.render(page, CompositionMode.PANELS)

        assert_pixel(image, (50, 50), RED)
        assert_pixel(image, (10, 10), WHITE)

    def test_panels_when_crop_missing_then_background(self, renderer):
        page = self._panel_page(assignments=(PanelAssignment(0, crop_id="ghost"),))

        image = renderer.render(page, CompositionMode.PANELS)

        assert_pixel(image, (50, 50), WHITE)

    def test_panels_when_unknown_layout_then_single(self, renderer):
        image = renderer.render(self._panel_page("13-chaos"), CompositionMode.PANELS)

        assert_pixel(image, (50, 50), RED)

    def test_mode_when_panels_then_items_ignored(self, renderer):
        page = self._panel_page(assignments=(PanelAssignment(0),))
        page = page.with_changes(placed_items=(_item("c2", x=0, y=0),))

        panels = renderer.render(page, CompositionMode.PANELS)
        freeform = renderer.render(page, CompositionMode.FREEFORM)

        assert_pixel(panels, (50, 50), WHITE)
        assert_pixel(freeform, (50, 50), BLUE)

    def test_render_page_when_called_then_same_as_renderer(self, repository):
        image = render_page(self._panel_page(), CompositionMode.PANELS, repository, scale=0.5)

        assert image.size == (50, 50)
        assert_pixel(image, (25, 25), RED)
