"""
Unit Tests for Page Export

Covers single-page encoding, thumbnails and the multi-page outputs
(directory, ZIP, PDF).
"""

import io
import zipfile

import pytest
from PIL import Image

from crop_composer.config import ComposerConfig
from crop_composer.core.models import (
    BorderStyle,
    CompositionDocument,
    CompositionMode,
    Page,
    PanelAssignment,
    PlacedItem,
)
from crop_composer.render.export import (
    document_thumbnail,
    export_page,
    export_pages_to_directory,
    generate_thumbnail,
    has_visible_content,
    page_filename,
    render_pages_to_pdf,
    thumbnail_scale,
    write_pages_zip,
)
from crop_composer.render.renderer import PageRenderer


def _page(page_id="p1", items=(), **overrides) -> Page:
    fields = dict(
        id=page_id, name=page_id, page_width=1240, page_height=1754,
        background_color="#ffffff", placed_items=tuple(items),
    )
    fields.update(overrides)
    return Page(**fields)


def _item() -> PlacedItem:
    return PlacedItem(
        id="i1", crop_id="c1", x=100, y=100, width=200, height=200,
        border_style=BorderStyle.NONE,
    )


@pytest.fixture
def renderer(repository) -> PageRenderer:
    return PageRenderer(repository)


@pytest.fixture
def document() -> CompositionDocument:
    return CompositionDocument(
        pages=(
            _page("p1", page_width=300, page_height=200),
            _page("p2", [_item()], page_width=400, page_height=400),
            _page("p3", page_width=300, page_height=200),
        )
    )


class TestSinglePage:
    def test_page_filename_when_index_zero_then_one_based(self):
        assert page_filename(0) == "page-1.png"
        assert page_filename(4, "webp") == "page-5.webp"

    def test_export_page_when_default_config_then_full_size_png(self, renderer):
        data = export_page(renderer, _page(items=[_item()]), CompositionMode.FREEFORM)

        with Image.open(io.BytesIO(data)) as image:
            assert image.format == "PNG"
            assert image.size == (1240, 1754)
            assert image.getpixel((150, 150))[:3] == (255, 0, 0)


class TestThumbnail:
    def test_thumbnail_scale_when_small_page_then_capped_at_one(self):
        assert thumbnail_scale(_page(page_width=400, page_height=300), 800, 600) == 1.0

    def test_thumbnail_when_page_empty_then_none(self, renderer):
        assert generate_thumbnail(renderer, _page(), CompositionMode.FREEFORM) is None

    def test_thumbnail_when_a4_content_then_fits_box_as_webp(self, renderer):
        data = generate_thumbnail(renderer, _page(items=[_item()]), CompositionMode.FREEFORM)

        with Image.open(io.BytesIO(data)) as image:
            assert image.format == "WEBP"
            assert image.size == (424, 600)

    def test_has_visible_content_when_panels_then_assignment_counts(self):
        page = _page(items=[_item()])
        assigned = _page(assignments=(PanelAssignment(0, "c1"),))

        assert not has_visible_content(page, CompositionMode.PANELS)
        assert has_visible_content(page, CompositionMode.FREEFORM)
        assert has_visible_content(assigned, CompositionMode.PANELS)

    def test_document_thumbnail_when_first_page_empty_then_next_with_content(
        self, renderer, document
    ):
        data = document_thumbnail(renderer, document)

        with Image.open(io.BytesIO(data)) as image:
            assert image.size == (400, 400)

    def test_document_thumbnail_when_all_empty_then_none(self, renderer):
        document = CompositionDocument(pages=(_page(),))

        assert document_thumbnail(renderer, document) is None


class TestMultiPage:
    def test_directory_when_three_pages_then_files_in_order_with_pauses(
        self, renderer, document, tmp_path
    ):
        pauses = []

        paths = export_pages_to_directory(
            renderer, document, tmp_path / "out", sleep=pauses.append
        )

        assert [p.name for p in paths] == ["page-1.png", "page-2.png", "page-3.png"]
        assert pauses == [0.2, 0.2]
        with Image.open(paths[1]) as image:
            assert image.size == (400, 400)

    def test_directory_when_delay_zero_then_no_pause(self, renderer, document, tmp_path):
        pauses = []

        export_pages_to_directory(
            renderer, document, tmp_path,
            config=ComposerConfig(export_delay_s=0), sleep=pauses.append,
        )

        assert pauses == []

    def test_zip_when_suffix_missing_then_appended(self, renderer, document, tmp_path):
        path = write_pages_zip(renderer, document, tmp_path / "composition")

        assert path.name == "composition.zip"
        with zipfile.ZipFile(path) as zf:
            assert zf.namelist() == ["page-1.png", "page-2.png", "page-3.png"]

    def test_pdf_when_rendered_then_valid_file(self, renderer, document, tmp_path):
        path = render_pages_to_pdf(renderer, document, tmp_path / "doc.pdf")

        content = path.read_bytes()
        assert content.startswith(b"%PDF")
