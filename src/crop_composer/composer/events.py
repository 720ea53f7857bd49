"""
Change notifications emitted by CompositionState.

Observers (auto-save, a live view) subscribe with a callable and receive a
StateChange after every mutation, outside the state lock.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable


class ChangeKind(str, Enum):
    ITEMS_COMMITTED = "items_committed"
    ITEMS_SILENT = "items_silent"
    HISTORY = "history"
    PAGE_UPDATED = "page_updated"
    PAGES_CHANGED = "pages_changed"
    PAGE_SELECTED = "page_selected"
    MODE_CHANGED = "mode_changed"
    DOCUMENT_LOADED = "document_loaded"


# Kinds that leave the document different from what was last loaded/saved
_PERSISTENT = frozenset({
    ChangeKind.ITEMS_COMMITTED,
    ChangeKind.HISTORY,
    ChangeKind.PAGE_UPDATED,
    ChangeKind.PAGES_CHANGED,
    ChangeKind.MODE_CHANGED,
})


@dataclass(frozen=True, slots=True)
class StateChange:
    kind: ChangeKind
    page_index: int

    @property
    def is_persistent(self) -> bool:
        """True if the change should be saved."""
        return self.kind in _PERSISTENT


Listener = Callable[[StateChange], None]
