"""
Unit Tests for ExportService
"""

import io
import zipfile

import pytest
from PIL import Image

from crop_composer.composer.state import CompositionState
from crop_composer.config import ComposerConfig
from crop_composer.core.models import BorderStyle, CompositionDocument, Page, PlacedItem
from crop_composer.errors import InvalidInputError, PageNotFoundError
from crop_composer.render.service import ExportService, snapshot


def _document(page_count=1) -> CompositionDocument:
    item = PlacedItem(
        id="i1", crop_id="c1", x=20, y=20, width=50, height=50, border_style=BorderStyle.NONE
    )
    pages = tuple(
        Page(
            id=f"p{n}", name=f"Page {n}", page_width=300, page_height=200,
            background_color="#ffffff", placed_items=(item,),
        )
        for n in range(1, page_count + 1)
    )
    return CompositionDocument(pages=pages)


@pytest.fixture
def service(repository):
    with ExportService(repository, config=ComposerConfig(export_delay_s=0)) as service:
        yield service


class TestExportService:
    def test_submit_page_when_valid_then_png_bytes(self, service):
        data = service.submit_page(_document(), 0).result(timeout=10)

        with Image.open(io.BytesIO(data)) as image:
            assert image.size == (300, 200)
            assert image.getpixel((40, 40))[:3] == (255, 0, 0)

    @pytest.mark.parametrize("index", [-1, 1])
    def test_submit_page_when_index_out_of_range_then_raises_now(self, service, index):
        with pytest.raises(PageNotFoundError):
            service.submit_page(_document(), index)

    def test_submit_thumbnail_when_page_has_content_then_bytes(self, service):
        data = service.submit_thumbnail(_document()).result(timeout=10)

        with Image.open(io.BytesIO(data)) as image:
            assert image.format == "WEBP"

    def test_export_all_when_unknown_kind_then_invalid_input(self, service, tmp_path):
        with pytest.raises(InvalidInputError):
            service.submit_export_all(_document(), tmp_path, kind="gif")

    def test_export_all_when_zip_then_one_entry_per_page(self, service, tmp_path):
        path = service.submit_export_all(_document(2), tmp_path / "out", kind="zip").result(10)

        with zipfile.ZipFile(path) as zf:
            assert zf.namelist() == ["page-1.png", "page-2.png"]

    def test_wait_all_when_exports_queued_then_counts_completed(self, service, tmp_path):
        service.submit_page(_document(), 0)
        service.submit_export_all(_document(2), tmp_path / "pngs")

        assert service.wait_all(timeout=10) == 2
        assert (tmp_path / "pngs" / "page-2.png").exists()

    def test_submit_page_when_state_changes_after_submit_then_snapshot_rendered(
        self, service
    ):
        """The export reflects the composition at the moment it was requested."""
        state = CompositionState(_document())

        future = service.submit_page(state, 0)
        state.set_background_color("#000000")

        with Image.open(io.BytesIO(future.result(timeout=10))) as image:
            assert image.getpixel((250, 150))[:3] == (255, 255, 255)

    def test_snapshot_when_document_then_same_object(self):
        document = _document()

        assert snapshot(document) is document
        assert snapshot(CompositionState(document)).pages[0].id == "p1"
