"""
Module: storage.autosave

Purpose:
    Debounced auto-persistence of a CompositionState. Every persistent
    change marks the document dirty and restarts a timer; when the timer
    fires the current snapshot (plus an optional thumbnail) is written to
    the store.

    Saves are skipped when nothing changed since the last save or when no
    composition id is assigned. A failed save is logged, keeps the dirty
    flag and re-arms the timer, so the next cycle retries.

Key Classes:
    - AutoSaver: Observer that debounces saves

Dependencies:
    - threading.Timer (std): Debounce
    - composer.events: Change notifications

Used By:
    - Applications editing a CompositionState against a store
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

from crop_composer.composer.events import ChangeKind, StateChange
from crop_composer.composer.state import CompositionState
from crop_composer.config import ComposerConfig
from crop_composer.core.models.document import CompositionDocument
from crop_composer.errors import PersistenceError

from .repository import CompositionStore

logger = logging.getLogger(__name__)

Thumbnailer = Callable[[CompositionDocument], Optional[bytes]]
TimerFactory = Callable[[float, Callable[[], None]], threading.Timer]


class AutoSaver:
    """
    Debounced saver for one composition.

    Usage:
        saver = AutoSaver(state, store, composition_id="1712345678901")
        saver.start()
        ...            # mutations schedule saves
        saver.close()  # cancels the pending timer

    Args:
        state: Composition to observe
        store: Destination store
        composition_id: Stored record id; saves are skipped while None
        config: Debounce delay
        thumbnailer: Builds the thumbnail stored with each save
        timer_factory: Creates the debounce timer (replaceable in tests)
    """

    def __init__(
        self,
        state: CompositionState,
        store: CompositionStore,
        *,
        composition_id: Optional[str] = None,
        config: Optional[ComposerConfig] = None,
        thumbnailer: Optional[Thumbnailer] = None,
        timer_factory: TimerFactory = threading.Timer,
    ):
        self.state = state
        self.store = store
        self.composition_id = composition_id
        self.config = config or state.config
        self._thumbnailer = thumbnailer
        self._timer_factory = timer_factory
        self._lock = threading.RLock()
        self._timer: Optional[threading.Timer] = None
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._dirty = False
        self._revision = 0
        self.save_count = 0

    # ─────────────────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────────────────

    def start(self) -> None:
        with self._lock:
            if self._unsubscribe is None:
                self._unsubscribe = self.state.subscribe(self._on_change)

    def close(self) -> None:
        """Stop observing and cancel the pending timer; unsaved changes stay unsaved."""
        with self._lock:
            if self._unsubscribe is not None:
                self._unsubscribe()
                self._unsubscribe = None
            self._cancel_timer()

    def assign(self, composition_id: str) -> None:
        """Attach to a stored record (e.g. after the first manual save)."""
        with self._lock:
            self.composition_id = composition_id

    @property
    def has_unsaved_changes(self) -> bool:
        return self._dirty

    @property
    def is_scheduled(self) -> bool:
        return self._timer is not None

    # ─────────────────────────────────────────────────────────────────────────
    # Scheduling
    # ─────────────────────────────────────────────────────────────────────────

    def _on_change(self, change: StateChange) -> None:
        with self._lock:
            if change.kind == ChangeKind.PAGE_SELECTED:
                self._cancel_timer()
                return
            if change.kind == ChangeKind.DOCUMENT_LOADED:
                self._dirty = False
                self._cancel_timer()
                return
            if not change.is_persistent:
                return
            self._dirty = True
            self._revision += 1
            self._schedule()

    def _schedule(self) -> None:
        self._cancel_timer()
        timer = self._timer_factory(self.config.autosave_delay_s, self._on_timer)
        timer.daemon = True
        self._timer = timer
        timer.start()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _on_timer(self) -> None:
        with self._lock:
            self._timer = None
        try:
            self.flush()
        except (PersistenceError, OSError) as e:
            logger.error(f"Auto-save of composition {self.composition_id} failed: {e}")
            with self._lock:
                if self._unsubscribe is not None:
                    self._schedule()

    # ─────────────────────────────────────────────────────────────────────────
    # Saving
    # ─────────────────────────────────────────────────────────────────────────

    def flush(self) -> bool:
        """
        Save now if there is something to save.

        Returns:
            True if a save happened

        Raises:
            PersistenceError: If the store rejects the save
        """
        with self._lock:
            if self.composition_id is None or not self._dirty:
                return False
            composition_id = self.composition_id
            revision = self._revision
            self._cancel_timer()

        document = self.state.to_document()
        thumbnail = self._thumbnail(document)
        self.store.save(composition_id, document, thumbnail=thumbnail)

        with self._lock:
            # Changes made while saving keep the document dirty.
            if self._revision == revision:
                self._dirty = False
            self.save_count += 1
        logger.info(f"Auto-saved composition {composition_id}")
        return True

    def _thumbnail(self, document: CompositionDocument) -> Optional[bytes]:
        if self._thumbnailer is None:
            return None
        try:
            return self._thumbnailer(document)
        except (OSError, ValueError) as e:
            logger.warning(f"Thumbnail generation failed, saving without one: {e}")
            return None
