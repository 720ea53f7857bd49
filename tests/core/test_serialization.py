"""
Unit Tests for Serialization Utilities

Tests for document serialization, legacy upconversion and file I/O.
"""

import json

import pytest

from crop_composer.core.models import CompositionDocument, CompositionMode, Page, PlacedItem
from crop_composer.core.schemas.validator import ValidationError
from crop_composer.core.utils.serialization import (
    deserialize_document,
    load_document,
    save_document,
    serialize_document,
    upconvert_legacy,
)


@pytest.fixture
def sample_document() -> CompositionDocument:
    item = PlacedItem(id="i1", crop_id="c1", x=1, y=2, width=30, height=40, rotation=12)
    return CompositionDocument(
        pages=(
            Page(id="p1", name="Page 1", page_width=1240, page_height=1754,
                 placed_items=(item,), created_at=10, updated_at=20),
        ),
        mode=CompositionMode.FREEFORM,
    )


@pytest.fixture
def legacy_payload() -> dict:
    return {
        "composition": {
            "id": 99,
            "pagePreset": "SQUARE",
            "pageWidth": 1500,
            "pageHeight": 1500,
            "backgroundColor": "#ffffff",
            "layoutId": "2-vertical",
            "assignments": [{"panelIndex": 0, "cropId": "c1"}, {"panelIndex": 1}],
            "createdAt": 1000,
        },
        "placedItems": [
            {"id": "a", "cropId": "c1", "x": 0, "y": 0, "width": 10, "height": 10},
        ],
    }


class TestDocumentSerialization:
    def test_serialize_when_document_given_then_current_shape(self, sample_document):
        data = serialize_document(sample_document)

        assert data["mode"] == "freeform"
        assert len(data["pages"]) == 1
        assert data["pages"][0]["placedItems"][0]["rotation"] == 12

    def test_roundtrip_when_serialized_then_equal(self, sample_document):
        data = json.loads(json.dumps(serialize_document(sample_document)))

        assert deserialize_document(data) == sample_document

    def test_deserialize_when_invalid_then_validation_error(self):
        with pytest.raises(ValidationError):
            deserialize_document({"pages": []})

    def test_deserialize_when_unvalidated_and_broken_then_validation_error(self):
        data = {"pages": [{"id": "p", "pageWidth": 10, "pageHeight": 10,
                           "placedItems": [{"id": "x", "x": 0, "y": 0, "width": -1, "height": 1}]}]}

        with pytest.raises(ValidationError):
            deserialize_document(data, validate=False)


class TestLegacyUpconversion:
    def test_upconvert_when_legacy_then_single_page(self, legacy_payload):
        data = upconvert_legacy(legacy_payload)

        assert data["mode"] == "freeform"
        (page,) = data["pages"]
        assert page["name"] == "Page 1"
        assert page["id"] == 99
        assert page["placedItems"][0]["id"] == "a"

    def test_deserialize_when_legacy_then_items_and_panels_kept(self, legacy_payload):
        document = deserialize_document(legacy_payload)

        assert document.page_count == 1
        page = document.pages[0]
        assert page.page_preset == "SQUARE"
        assert page.size == (1500, 1500)
        assert page.layout_id == "2-vertical"
        assert page.assignments[0].crop_id == "c1"
        assert page.placed_items[0].crop_id == "c1"
        assert page.created_at == 1000

    def test_deserialize_when_legacy_mode_given_then_kept(self, legacy_payload):
        legacy_payload["mode"] = "panels"

        assert deserialize_document(legacy_payload).mode == CompositionMode.PANELS


class TestFileIO:
    def test_save_then_load_when_path_given_then_equal(self, tmp_path, sample_document):
        path = tmp_path / "nested" / "doc.json"

        save_document(sample_document, path)

        assert load_document(path) == sample_document

    def test_load_when_bad_json_then_validation_error(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text("{not json", encoding="utf-8")

        with pytest.raises(ValidationError):
            load_document(path)

    def test_load_when_missing_then_file_not_found(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_document(tmp_path / "missing.json")
