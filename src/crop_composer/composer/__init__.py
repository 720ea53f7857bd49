"""
Composer Package

Composition state, undo/redo history and change notifications.
"""

from .events import ChangeKind, Listener, StateChange
from .history import DEFAULT_HISTORY_LIMIT, HistoryManager
from .state import CompositionState

__all__ = [
    "ChangeKind",
    "Listener",
    "StateChange",
    "DEFAULT_HISTORY_LIMIT",
    "HistoryManager",
    "CompositionState",
]
