"""
Module: composer.history

Purpose:
    Undo/redo stacks over placed-item snapshots for the current page.

    Snapshots are tuples of frozen PlacedItem instances, so storing one is
    a reference copy and no later mutation can reach into history.

    Two ways in:
    - push(): a committed change is about to be applied; clears redo
    - record(): explicit checkpoint of the current state; keeps redo

    Silent updates never touch history. Whatever state they leave behind is
    what the next push() or record() snapshots.

Key Classes:
    - HistoryManager: Bounded undo/redo stacks

Dependencies:
    - collections.deque (std)

Used By:
    - composer.state.CompositionState
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 50

T = TypeVar("T")


class HistoryManager(Generic[T]):
    """
    Bounded undo/redo stacks.

    Both stacks hold at most ``limit`` snapshots; pushing onto a full
    stack evicts its oldest entry.

    Example:
        >>> history = HistoryManager(limit=50)
        >>> history.push(())
        >>> history.can_undo
        True
        >>> history.undo(current=("a",))
        ()
        >>> history.can_redo
        True
    """

    def __init__(self, limit: int = DEFAULT_HISTORY_LIMIT):
        if limit < 1:
            raise ValueError(f"limit must be >= 1: {limit}")
        self.limit = limit
        self._undo: deque[T] = deque(maxlen=limit)
        self._redo: deque[T] = deque(maxlen=limit)

    # ─────────────────────────────────────────────────────────────────────────
    # Properties
    # ─────────────────────────────────────────────────────────────────────────

    @property
    def can_undo(self) -> bool:
        return len(self._undo) > 0

    @property
    def can_redo(self) -> bool:
        return len(self._redo) > 0

    @property
    def undo_depth(self) -> int:
        return len(self._undo)

    @property
    def redo_depth(self) -> int:
        return len(self._redo)

    # ─────────────────────────────────────────────────────────────────────────
    # Recording
    # ─────────────────────────────────────────────────────────────────────────

    def push(self, current: T) -> None:
        """Snapshot before a committed change and discard the redo branch."""
        self._undo.append(current)
        if self._redo:
            logger.debug(f"Discarding {len(self._redo)} redo entries")
        self._redo.clear()

    def record(self, current: T) -> None:
        """Snapshot the current state; redo is kept."""
        self._undo.append(current)

    # ─────────────────────────────────────────────────────────────────────────
    # Navigation
    # ─────────────────────────────────────────────────────────────────────────

    def undo(self, current: T) -> Optional[T]:
        """
        Step back.

        Args:
            current: Working state before the undo

        Returns:
            State to restore, or None when there is nothing to undo
        """
        if not self._undo:
            return None
        previous = self._undo.pop()
        self._redo.append(current)
        return previous

    def redo(self, current: T) -> Optional[T]:
        """Step forward; mirror image of undo()."""
        if not self._redo:
            return None
        following = self._redo.pop()
        self._undo.append(current)
        return following

    def reset(self) -> None:
        """Drop all history (page switch, document load)."""
        self._undo.clear()
        self._redo.clear()
