"""
Schemas Package

JSON schema definitions and validation utilities.
"""

from .validator import (
    validate_document,
    is_legacy_document,
    ValidationError,
)

__all__ = [
    "validate_document",
    "is_legacy_document",
    "ValidationError",
]
