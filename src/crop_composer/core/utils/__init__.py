"""Utilities for core data models."""

from .serialization import (
    serialize_document,
    deserialize_document,
    upconvert_legacy,
    serialize_page,
    deserialize_page,
    save_document,
    load_document,
)

__all__ = [
    "serialize_document",
    "deserialize_document",
    "upconvert_legacy",
    "serialize_page",
    "deserialize_page",
    "save_document",
    "load_document",
]
