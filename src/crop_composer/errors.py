"""
Module: crop_composer.errors

Purpose:
    Exception taxonomy shared by the composition model, the renderer and
    the stores.

Key Classes:
    - ComposerError: Base class
    - NotFoundError: A referenced composition, page, item, crop or image is absent
    - InvalidInputError: Arguments rejected before any state change
    - PersistenceError: A store operation failed

Used By:
    - composer.state: Mutator validation
    - layout.catalog: Unknown layout / preset ids
    - storage: Store lookups and writes
"""

from __future__ import annotations


class ComposerError(Exception):
    """Base class for every error raised by this package."""


class NotFoundError(ComposerError):
    """Raised when a referenced entity does not exist."""

    kind = "entity"

    def __init__(self, identifier: object, message: str | None = None):
        self.identifier = identifier
        super().__init__(message or f"{self.kind} not found: {identifier!r}")


class ItemNotFoundError(NotFoundError):
    kind = "placed item"


class PageNotFoundError(NotFoundError):
    kind = "page"


class CompositionNotFoundError(NotFoundError):
    kind = "composition"


class CropNotFoundError(NotFoundError):
    kind = "crop"


class ImageNotFoundError(NotFoundError):
    kind = "image"


class InvalidInputError(ComposerError, ValueError):
    """
    Raised when mutator arguments are rejected.

    Validation always happens before state is touched, so catching this
    leaves the composition exactly as it was.
    """


class PersistenceError(ComposerError):
    """Raised when a store cannot complete a save, load or delete."""
