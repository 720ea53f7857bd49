"""
Schema Validation Utilities

Validates persisted composition documents before deserialization.

Two layers:
- Quick structural checks with precise error paths (always run)
- Full JSON Schema validation via jsonschema (``strict=True``)

The legacy single-page shape ``{composition, placedItems}`` is accepted by
``validate_document`` and checked against its own minimal requirements.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import jsonschema

# Load schemas lazily
_SCHEMAS: dict[str, dict] = {}


def _load_schema(name: str) -> dict:
    """Load a schema from the schemas directory."""
    if name not in _SCHEMAS:
        schema_path = Path(__file__).parent / f"{name}.schema.json"
        if not schema_path.exists():
            raise FileNotFoundError(f"Schema not found: {schema_path}")
        with open(schema_path, "r", encoding="utf-8") as f:
            _SCHEMAS[name] = json.load(f)
    return _SCHEMAS[name]


class ValidationError(Exception):
    """Raised when data fails schema validation."""

    def __init__(self, message: str, path: str = "", errors: list[str] | None = None):
        super().__init__(message)
        self.path = path
        self.errors = errors or []


def is_legacy_document(data: dict[str, Any]) -> bool:
    """True for the single-page ``{composition, placedItems}`` shape."""
    return "pages" not in data and "composition" in data


def validate_document(data: Any, *, strict: bool = False) -> None:
    """
    Validate a composition document.

    Args:
        data: Parsed JSON payload
        strict: If True, also run full JSON Schema validation

    Raises:
        ValidationError: If data is invalid
    """
    if not isinstance(data, dict):
        raise ValidationError(
            f"Document must be an object, got {type(data).__name__}", path=""
        )

    if is_legacy_document(data):
        _validate_legacy(data)
        return

    if "pages" not in data:
        raise ValidationError(
            "Missing required fields: ['pages']",
            path="",
            errors=["Missing field: pages"],
        )

    mode = data.get("mode")
    if mode is not None and mode not in ("panels", "freeform"):
        raise ValidationError(f"Invalid mode: {mode!r}", path="mode")

    pages = data["pages"]
    if not isinstance(pages, list) or not pages:
        raise ValidationError("pages must be a non-empty list", path="pages")
    for i, page in enumerate(pages):
        _validate_page(page, f"pages[{i}]")

    if strict:
        schema = _load_schema("document")
        try:
            jsonschema.validate(data, schema)
        except jsonschema.ValidationError as e:
            raise ValidationError(
                f"Schema validation failed: {e.message}",
                path=".".join(str(p) for p in e.absolute_path),
                errors=[e.message],
            )


def _validate_legacy(data: dict[str, Any]) -> None:
    composition = data.get("composition")
    if not isinstance(composition, dict):
        raise ValidationError("composition must be an object", path="composition")
    _validate_size(composition, "composition")
    items = data.get("placedItems", [])
    if items is not None and not isinstance(items, list):
        raise ValidationError("placedItems must be a list", path="placedItems")
    for i, item in enumerate(items or []):
        _validate_item(item, f"placedItems[{i}]")


def _validate_page(data: Any, path: str) -> None:
    """Validate one page record."""
    if not isinstance(data, dict):
        raise ValidationError("page must be an object", path=path)
    if "id" not in data:
        raise ValidationError(
            "Page missing required fields: ['id']",
            path=path,
            errors=["Missing field: id"],
        )
    _validate_size(data, path)

    items = data.get("placedItems") or []
    if not isinstance(items, list):
        raise ValidationError("placedItems must be a list", path=f"{path}.placedItems")
    for i, item in enumerate(items):
        _validate_item(item, f"{path}.placedItems[{i}]")

    assignments = data.get("assignments") or []
    if not isinstance(assignments, list):
        raise ValidationError("assignments must be a list", path=f"{path}.assignments")
    for i, assignment in enumerate(assignments):
        if not isinstance(assignment, dict):
            raise ValidationError(
                "assignment must be an object", path=f"{path}.assignments[{i}]"
            )
        zoom = assignment.get("zoom")
        if zoom is not None and (not _is_number(zoom) or zoom <= 0):
            raise ValidationError(
                f"Invalid zoom: {zoom} (must be > 0)",
                path=f"{path}.assignments[{i}].zoom",
            )


def _validate_size(data: dict[str, Any], path: str) -> None:
    for key in ("pageWidth", "pageHeight"):
        value = data.get(key)
        if not _is_number(value) or value <= 0:
            raise ValidationError(
                f"Invalid {key}: {value!r} (must be > 0)", path=f"{path}.{key}"
            )


def _validate_item(data: Any, path: str) -> None:
    """Validate a placed item record."""
    if not isinstance(data, dict):
        raise ValidationError("placed item must be an object", path=path)
    required = ["id", "x", "y", "width", "height"]
    missing = [f for f in required if f not in data]
    if missing:
        raise ValidationError(
            f"Placed item missing required fields: {missing}",
            path=path,
            errors=[f"Missing field: {f}" for f in missing],
        )
    for key in ("x", "y", "width", "height"):
        if not _is_number(data[key]):
            raise ValidationError(
                f"Invalid {key}: {data[key]!r} (must be a number)", path=f"{path}.{key}"
            )
    for key in ("width", "height"):
        if data[key] <= 0:
            raise ValidationError(
                f"Invalid {key}: {data[key]} (must be > 0)", path=f"{path}.{key}"
            )
    border_width = data.get("borderWidth")
    if border_width is not None and (not _is_number(border_width) or border_width < 0):
        raise ValidationError(
            f"Invalid borderWidth: {border_width!r} (must be >= 0)",
            path=f"{path}.borderWidth",
        )


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)
