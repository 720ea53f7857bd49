"""
Serialization Utilities

Provides to/from JSON utilities for composition documents.

- ``serialize_*`` and ``deserialize_*`` functions wrap the models'
  ``to_dict()`` / ``from_dict()`` methods
- Validation via schemas before deserialization
- Legacy single-page documents ``{composition, placedItems}`` are
  upconverted into a one-page ``pages`` document on load
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from ..models.document import CompositionDocument
from ..models.pages import CompositionMode, Page, now_ms
from ..schemas.validator import ValidationError, is_legacy_document, validate_document

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────────────────────
# Document Serialization
# ─────────────────────────────────────────────────────────────────────────────

def serialize_document(document: CompositionDocument) -> dict[str, Any]:
    """
    Serialize a document to a dictionary in the current multi-page shape.

    Args:
        document: Document to serialize

    Returns:
        Dictionary suitable for JSON serialization
    """
    return document.to_dict()


def deserialize_document(
    data: dict[str, Any],
    *,
    validate: bool = True,
) -> CompositionDocument:
    """
    Deserialize a document, upconverting the legacy single-page shape.

    Args:
        data: Dictionary from JSON
        validate: Whether to validate structure first

    Returns:
        CompositionDocument instance

    Raises:
        ValidationError: If validate=True and data is invalid, or if the
            payload cannot be turned into models
    """
    if validate:
        validate_document(data, strict=False)

    if is_legacy_document(data):
        data = upconvert_legacy(data)

    try:
        return CompositionDocument.from_dict(data)
    except (KeyError, TypeError, ValueError) as e:
        raise ValidationError(f"Invalid document: {e}", errors=[str(e)]) from e


def upconvert_legacy(data: dict[str, Any]) -> dict[str, Any]:
    """
    Convert ``{composition: {...}, placedItems: [...]}`` into ``{mode, pages}``.

    The single composition becomes "Page 1", keeping its size, background,
    panel layout and assignments; the top-level placed items move into it.

    Args:
        data: Legacy document payload

    Returns:
        Payload in the current document shape
    """
    composition = data["composition"]
    created = composition.get("createdAt") or now_ms()
    page: dict[str, Any] = {
        "id": composition.get("id") or created,
        "name": "Page 1",
        "pagePreset": composition.get("pagePreset"),
        "pageWidth": composition["pageWidth"],
        "pageHeight": composition["pageHeight"],
        "backgroundColor": composition.get("backgroundColor"),
        "margin": composition.get("margin"),
        "layoutId": composition.get("layoutId"),
        "assignments": composition.get("assignments") or [],
        "placedItems": data.get("placedItems") or [],
        "createdAt": created,
        "updatedAt": now_ms(),
    }
    logger.info("Upconverted legacy single-page document")
    return {
        "mode": data.get("mode") or CompositionMode.FREEFORM.value,
        "pages": [page],
    }


def serialize_page(page: Page) -> dict[str, Any]:
    return page.to_dict()


def deserialize_page(data: dict[str, Any]) -> Page:
    return Page.from_dict(data)


# ─────────────────────────────────────────────────────────────────────────────
# File I/O
# ─────────────────────────────────────────────────────────────────────────────

def save_document(document: CompositionDocument, path: Path) -> None:
    """
    Write a document to a JSON file.

    Args:
        document: Document to save
        path: Output JSON path (parent directories are created)
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(serialize_document(document), f, indent=2, ensure_ascii=False)


def load_document(path: Path, *, validate: bool = True) -> CompositionDocument:
    """
    Read a document from a JSON file.

    Raises:
        FileNotFoundError: If path does not exist
        ValidationError: If the content is not a valid document
    """
    with open(path, "r", encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValidationError(f"Invalid JSON in {path}: {e}") from e
    return deserialize_document(data, validate=validate)
