"""
Core Models Package

Immutable, validated data models that serve as the single source of truth
for a composition.

All models in this package are frozen dataclasses. Mutators in
``composer.state`` derive new instances with ``dataclasses.replace``, which
is what makes history snapshots cheap: a snapshot is just the tuple of
items that was current at the time.
"""

from .crops import Crop, EntityId
from .items import BorderStyle, PlacedItem
from .pages import CompositionMode, PanelAssignment, Page
from .document import CompositionDocument

__all__ = [
    "Crop",
    "EntityId",
    "BorderStyle",
    "PlacedItem",
    "CompositionMode",
    "PanelAssignment",
    "Page",
    "CompositionDocument",
]
