"""
Module: composer.state

Purpose:
    The composition model: ordered pages, the current page's working set of
    placed items, undo/redo history and every mutation the input layer can
    request.

    Mutations of placed items go through exactly two entry points:
    - apply_silent(): update working state only (live drag feedback)
    - apply_and_record(): snapshot for undo, clear redo, then apply

    Every mutator validates its arguments before touching state and either
    fully applies or raises, leaving state unchanged. Panel-mode and
    page-level mutators update the page record directly and are not part
    of item history.

Key Classes:
    - CompositionState: Owned, lock-protected composition state

Dependencies:
    - Pillow (ImageColor): colour validation
    - composer.history, composer.events
    - layout.catalog, core.models

Used By:
    - render.export: Snapshots for rendering
    - storage.autosave: Change subscription
"""

from __future__ import annotations

import logging
import math
import threading
import uuid
from dataclasses import replace
from typing import Any, Callable, Iterable, Optional, Sequence, Union

from PIL import ImageColor

from crop_composer.config import ComposerConfig
from crop_composer.core.models.crops import Crop, EntityId
from crop_composer.core.models.document import CompositionDocument
from crop_composer.core.models.items import BorderStyle, PlacedItem
from crop_composer.core.models.pages import CompositionMode, PanelAssignment, Page, now_ms
from crop_composer.errors import (
    InvalidInputError,
    ItemNotFoundError,
    PageNotFoundError,
)
from crop_composer.geometry.shapes import MIN_CUSTOM_POINTS, FrameShape
from crop_composer.layout.catalog import (
    CUSTOM_PRESET_ID,
    DEFAULT_LAYOUT_ID,
    change_layout as carry_assignments,
    empty_assignments,
    get_layout,
    get_page_preset,
    layout_or_default,
)

from .events import ChangeKind, Listener, StateChange
from .history import HistoryManager

logger = logging.getLogger(__name__)

Items = tuple[PlacedItem, ...]
ItemsTransform = Callable[[Items], Items]
CropRef = Union[Crop, EntityId]

# Freeform placement constants
DROP_WIDTH_FRACTION = 0.25
DROP_MAX_FRACTION = 0.5
GRID_CELL_FRACTION = 0.2
GRID_PADDING_PX = 20.0

_UPDATABLE_FIELDS = frozenset({
    "crop_id",
    "x",
    "y",
    "width",
    "height",
    "rotation",
    "frame_shape",
    "custom_points",
    "border_color",
    "border_width",
    "border_style",
})


def _default_id() -> str:
    return uuid.uuid4().hex


def _require_finite(**values: float) -> None:
    for name, value in values.items():
        if not isinstance(value, (int, float)) or not math.isfinite(value):
            raise InvalidInputError(f"{name} must be a finite number: {value!r}")


def _require_positive(**values: float) -> None:
    _require_finite(**values)
    for name, value in values.items():
        if value <= 0:
            raise InvalidInputError(f"{name} must be > 0: {value}")


def _require_color(value: str) -> None:
    try:
        ImageColor.getrgb(value)
    except (ValueError, AttributeError) as e:
        raise InvalidInputError(f"Invalid colour {value!r}: {e}") from e


class CompositionState:
    """
    Owned composition state.

    All public methods are safe to call from several threads; they are
    serialized by one re-entrant lock, so no two mutations interleave.
    Change listeners run after the lock is released.

    Args:
        document: Initial document; a single empty page when omitted
        config: Engine configuration
        id_factory: Produces fresh ids for pages and items
        clock: Returns epoch milliseconds for page timestamps
        crop_lookup: Resolves crop ids passed to the drop mutators; it must
            raise CropNotFoundError for unknown ids

    Example:
        >>> state = CompositionState()
        >>> crop = Crop(id="c1", x=0, y=0, width=400, height=200)
        >>> item_id = state.drop_crop_to_freeform(crop, 500, 500, 1240, 1754)
        >>> state.get_item(item_id).width
        310.0
    """

    def __init__(
        self,
        document: Optional[CompositionDocument] = None,
        *,
        config: Optional[ComposerConfig] = None,
        id_factory: Callable[[], EntityId] = _default_id,
        clock: Callable[[], int] = now_ms,
        crop_lookup: Optional[Callable[[EntityId], Crop]] = None,
    ):
        self.config = config or ComposerConfig()
        self._id_factory = id_factory
        self._clock = clock
        self._crop_lookup = crop_lookup
        self._lock = threading.RLock()
        self._listeners: list[Listener] = []
        self._history: HistoryManager[Items] = HistoryManager(self.config.history_limit)

        self._mode = CompositionMode.FREEFORM
        self._pages: list[Page] = []
        self._current = 0
        self._items: Items = ()

        if document is None:
            preset_id = self.config.default_page_preset
            preset = get_page_preset(preset_id)
            document = CompositionDocument(
                pages=(self._new_page(1, preset_id, preset.width, preset.height),)
            )
        self._install(document)

    # ─────────────────────────────────────────────────────────────────────────
    # Observers
    # ─────────────────────────────────────────────────────────────────────────

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Register a change listener.

        Returns:
            Callable that unsubscribes the listener
        """
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, kind: ChangeKind) -> None:
        with self._lock:
            listeners = list(self._listeners)
            change = StateChange(kind=kind, page_index=self._current)
        for listener in listeners:
            try:
                listener(change)
            except Exception:
                # A broken observer must not undo a mutation that already applied.
                logger.exception(f"Change listener failed for {kind.value}")

    # ─────────────────────────────────────────────────────────────────────────
    # Read access
    # ─────────────────────────────────────────────────────────────────────────

    @property
    def mode(self) -> CompositionMode:
        return self._mode

    @property
    def current_page_index(self) -> int:
        return self._current

    @property
    def page_count(self) -> int:
        return len(self._pages)

    @property
    def placed_items(self) -> Items:
        """Working set of the current page."""
        return self._items

    @property
    def current_page(self) -> Page:
        """Current page with the working items folded in."""
        with self._lock:
            return replace(self._pages[self._current], placed_items=self._items)

    @property
    def pages(self) -> tuple[Page, ...]:
        return self.pages_for_save()

    @property
    def can_undo(self) -> bool:
        return self._history.can_undo

    @property
    def can_redo(self) -> bool:
        return self._history.can_redo

    @property
    def history(self) -> HistoryManager[Items]:
        return self._history

    def get_item(self, item_id: EntityId) -> Optional[PlacedItem]:
        for item in self._items:
            if item.id == item_id:
                return item
        return None

    def pages_for_save(self) -> tuple[Page, ...]:
        """All pages, with the current page carrying the working items."""
        with self._lock:
            pages = list(self._pages)
            pages[self._current] = replace(pages[self._current], placed_items=self._items)
            return tuple(pages)

    def to_document(self) -> CompositionDocument:
        """
        Immutable snapshot of the whole composition.

        Safe to hand to another thread: later mutations build new objects
        and never touch the snapshot.
        """
        with self._lock:
            return CompositionDocument(pages=self.pages_for_save(), mode=self._mode)

    # ─────────────────────────────────────────────────────────────────────────
    # Loading
    # ─────────────────────────────────────────────────────────────────────────

    def load_document(self, document: CompositionDocument) -> None:
        """Replace the whole composition; page 0 becomes current, history is cleared."""
        with self._lock:
            self._install(document)
        logger.info(f"Loaded document with {document.page_count} page(s)")
        self._emit(ChangeKind.DOCUMENT_LOADED)

    def _install(self, document: CompositionDocument) -> None:
        self._pages = [self._normalize_page(p) for p in document.pages]
        self._mode = document.mode
        self._current = 0
        self._items = self._pages[0].placed_items
        self._history.reset()

    @staticmethod
    def _normalize_page(page: Page) -> Page:
        """Size the assignment array to the page's layout."""
        layout = layout_or_default(page.layout_id)
        if len(page.assignments) == layout.panel_count:
            return page
        return replace(page, assignments=carry_assignments(page.assignments, layout))

    # ─────────────────────────────────────────────────────────────────────────
    # Silent / committed channels
    # ─────────────────────────────────────────────────────────────────────────

    def apply_silent(self, transform: ItemsTransform) -> Items:
        """
        Update the working items without touching history.

        The next commit snapshots the state silent updates left behind,
        so undoing that commit keeps them. Call push_to_undo_stack()
        first to make a run of silent updates undoable on its own.

        Args:
            transform: Pure function from the current items to the new items;
                any exception it raises leaves state unchanged

        Returns:
            The new working items
        """
        with self._lock:
            new_items = self._silent(transform)
        self._emit(ChangeKind.ITEMS_SILENT)
        return new_items

    def apply_and_record(self, transform: ItemsTransform) -> Items:
        """
        Snapshot for undo, clear redo, then apply.

        Args:
            transform: Pure function from the current items to the new items;
                any exception it raises leaves state and history unchanged

        Returns:
            The new working items
        """
        with self._lock:
            new_items = self._record(transform)
        self._emit(ChangeKind.ITEMS_COMMITTED)
        return new_items

    # Callers of _silent/_record hold the lock and emit afterwards.

    def _silent(self, transform: ItemsTransform) -> Items:
        new_items = self._checked(transform(self._items))
        self._items = new_items
        return new_items

    def _record(self, transform: ItemsTransform) -> Items:
        new_items = self._checked(transform(self._items))
        self._history.push(self._items)
        self._items = new_items
        self._sync_items()
        return new_items

    def _checked(self, items: Iterable[PlacedItem]) -> Items:
        items = tuple(items)
        ids = [item.id for item in items]
        if len(ids) != len(set(ids)):
            raise InvalidInputError("placed item ids must be unique within a page")
        return items

    def _sync_items(self) -> None:
        """Push the working items into the owning page record."""
        page = self._pages[self._current]
        if page.placed_items is self._items:
            return
        self._pages[self._current] = replace(
            page, placed_items=self._items, updated_at=self._clock()
        )

    # ─────────────────────────────────────────────────────────────────────────
    # History
    # ─────────────────────────────────────────────────────────────────────────

    def handle_drag_end(self) -> None:
        """
        Close a gesture: record the current state and push items to the page.

        Redo is kept.
        """
        with self._lock:
            self._history.record(self._items)
            self._sync_items()
        self._emit(ChangeKind.ITEMS_COMMITTED)

    def push_to_undo_stack(self) -> None:
        """Snapshot the working items for undo and discard the redo branch."""
        with self._lock:
            self._history.push(self._items)

    def record_state(self) -> None:
        """Snapshot the working items for undo; redo is kept."""
        with self._lock:
            self._history.record(self._items)

    def undo(self) -> bool:
        """Step back one committed change. Returns False if nothing to undo."""
        with self._lock:
            previous = self._history.undo(self._items)
            if previous is None:
                return False
            self._items = previous
            self._sync_items()
        self._emit(ChangeKind.HISTORY)
        return True

    def redo(self) -> bool:
        """Re-apply the last undone change. Returns False if nothing to redo."""
        with self._lock:
            following = self._history.redo(self._items)
            if following is None:
                return False
            self._items = following
            self._sync_items()
        self._emit(ChangeKind.HISTORY)
        return True

    # ─────────────────────────────────────────────────────────────────────────
    # Freeform mutators
    # ─────────────────────────────────────────────────────────────────────────

    def _resolve_crop(self, crop: CropRef) -> Crop:
        if isinstance(crop, Crop):
            return crop
        if self._crop_lookup is None:
            raise InvalidInputError(f"No crop lookup configured to resolve {crop!r}")
        return self._crop_lookup(crop)

    def _page_size(
        self, page_width: Optional[float], page_height: Optional[float]
    ) -> tuple[float, float]:
        page = self._pages[self._current]
        width = page.page_width if page_width is None else page_width
        height = page.page_height if page_height is None else page_height
        _require_positive(page_width=width, page_height=height)
        return width, height

    def _fresh_id(self, taken: set) -> EntityId:
        new_id = self._id_factory()
        while new_id in taken:
            new_id = self._id_factory()
        taken.add(new_id)
        return new_id

    def drop_crop_to_freeform(
        self,
        crop: CropRef,
        x: float,
        y: float,
        page_width: Optional[float] = None,
        page_height: Optional[float] = None,
    ) -> EntityId:
        """
        Place a crop centred on (x, y). Committed.

        The item starts at 25% of the page width with the crop's aspect
        ratio, shrunk to fit 50% of the page height and then 50% of the
        page width. Its top-left corner is clamped to be non-negative.

        Args:
            crop: Crop, or crop id resolved through the crop lookup
            x: Drop point x in page pixels
            y: Drop point y in page pixels
            page_width: Page width; current page's when omitted
            page_height: Page height; current page's when omitted

        Returns:
            Id of the new item

        Raises:
            CropNotFoundError: If a crop id cannot be resolved
            InvalidInputError: If the page size or drop point is invalid
        """
        with self._lock:
            resolved = self._resolve_crop(crop)
            _require_finite(x=x, y=y)
            pw, ph = self._page_size(page_width, page_height)

            aspect = resolved.aspect_ratio
            width = pw * DROP_WIDTH_FRACTION
            height = width / aspect
            max_width = pw * DROP_MAX_FRACTION
            max_height = ph * DROP_MAX_FRACTION
            if height > max_height:
                height = max_height
                width = height * aspect
            if width > max_width:
                width = max_width
                height = width / aspect

            new_id = self._fresh_id({item.id for item in self._items})
            item = PlacedItem(
                id=new_id,
                crop_id=resolved.id,
                x=max(0.0, x - width / 2),
                y=max(0.0, y - height / 2),
                width=width,
                height=height,
            )
            self._record(lambda items: items + (item,))
        self._emit(ChangeKind.ITEMS_COMMITTED)
        logger.debug(f"Dropped crop {resolved.id!r} as item {new_id!r}")
        return new_id

    def add_multiple_crops(
        self,
        crops: Sequence[CropRef],
        page_width: Optional[float] = None,
        page_height: Optional[float] = None,
    ) -> Optional[EntityId]:
        """
        Lay several crops out in a row-major grid. Committed.

        Cells are 20% of the page width with 20px padding; each item keeps
        its crop's aspect ratio, shrunk to fit the cell.

        Returns:
            Id of the last new item, or None when ``crops`` is empty
        """
        with self._lock:
            resolved = [self._resolve_crop(c) for c in crops]
            if not resolved:
                return None
            pw, _ = self._page_size(page_width, page_height)

            cell = pw * GRID_CELL_FRACTION
            pad = GRID_PADDING_PX
            per_row = max(1, math.floor(pw / (cell + pad)))

            taken = {item.id for item in self._items}
            new_items = []
            for index, crop in enumerate(resolved):
                row, col = divmod(index, per_row)
                aspect = crop.aspect_ratio
                width = cell
                height = width / aspect
                if height > cell:
                    height = cell
                    width = height * aspect
                new_items.append(
                    PlacedItem(
                        id=self._fresh_id(taken),
                        crop_id=crop.id,
                        x=pad + col * (cell + pad),
                        y=pad + row * (cell + pad),
                        width=width,
                        height=height,
                    )
                )
            self._record(lambda items: items + tuple(new_items))
        self._emit(ChangeKind.ITEMS_COMMITTED)
        logger.debug(f"Added {len(new_items)} crops in a {per_row}-column grid")
        return new_items[-1].id

    def _coerce_changes(self, changes: dict[str, Any]) -> dict[str, Any]:
        unknown = set(changes) - _UPDATABLE_FIELDS
        if unknown:
            raise InvalidInputError(f"Cannot update item fields: {sorted(unknown)}")

        coerced = dict(changes)
        for name in ("x", "y"):
            if name in coerced:
                _require_finite(**{name: coerced[name]})
        for name in ("width", "height"):
            if name in coerced:
                _require_positive(**{name: coerced[name]})
        if coerced.get("rotation") is not None:
            _require_finite(rotation=coerced["rotation"])
        if "border_width" in coerced:
            _require_finite(border_width=coerced["border_width"])
            if coerced["border_width"] < 0:
                raise InvalidInputError(
                    f"border_width must be >= 0: {coerced['border_width']}"
                )
        if "border_color" in coerced:
            _require_color(coerced["border_color"])
        if "frame_shape" in coerced:
            try:
                coerced["frame_shape"] = FrameShape(coerced["frame_shape"])
            except ValueError as e:
                raise InvalidInputError(f"Unknown frame shape: {coerced['frame_shape']!r}") from e
        if "border_style" in coerced:
            try:
                coerced["border_style"] = BorderStyle(coerced["border_style"])
            except ValueError as e:
                raise InvalidInputError(f"Unknown border style: {coerced['border_style']!r}") from e
        if coerced.get("custom_points") is not None:
            points = tuple((float(px), float(py)) for px, py in coerced["custom_points"])
            if len(points) < MIN_CUSTOM_POINTS:
                raise InvalidInputError(
                    f"custom outline needs >= {MIN_CUSTOM_POINTS} points: {len(points)}"
                )
            _require_finite(**{f"point_{i}": v for i, p in enumerate(points) for v in p})
            coerced["custom_points"] = points
        return coerced

    def _replace_item(self, item_id: EntityId, changes: dict[str, Any]) -> ItemsTransform:
        coerced = self._coerce_changes(changes)
        if self.get_item(item_id) is None:
            raise ItemNotFoundError(item_id)

        def transform(items: Items) -> Items:
            try:
                return tuple(
                    item.with_changes(**coerced) if item.id == item_id else item
                    for item in items
                )
            except ValueError as e:
                raise InvalidInputError(str(e)) from e

        return transform

    def update_item(self, item_id: EntityId, **changes: Any) -> PlacedItem:
        """
        Merge field changes into one item. Committed.

        Raises:
            ItemNotFoundError: If no item has this id
            InvalidInputError: If a field is unknown or a value invalid
        """
        with self._lock:
            self._record(self._replace_item(item_id, changes))
            updated = self.get_item(item_id)
        self._emit(ChangeKind.ITEMS_COMMITTED)
        return updated  # type: ignore[return-value]

    def update_item_silent(self, item_id: EntityId, **changes: Any) -> PlacedItem:
        """Merge field changes into one item without recording history."""
        with self._lock:
            self._silent(self._replace_item(item_id, changes))
            updated = self.get_item(item_id)
        self._emit(ChangeKind.ITEMS_SILENT)
        return updated  # type: ignore[return-value]

    def delete_item(self, item_id: EntityId) -> None:
        """Remove one item. Committed."""
        with self._lock:
            if self.get_item(item_id) is None:
                raise ItemNotFoundError(item_id)
            self._record(
                lambda items: tuple(item for item in items if item.id != item_id)
            )
        self._emit(ChangeKind.ITEMS_COMMITTED)

    def clear_items(self) -> None:
        """Remove every item from the current page. Committed."""
        self.apply_and_record(lambda items: ())

    def nudge_item(self, item_id: EntityId, dx: float, dy: float) -> PlacedItem:
        """Translate one item by a fixed delta. Committed."""
        _require_finite(dx=dx, dy=dy)
        with self._lock:
            item = self.get_item(item_id)
            if item is None:
                raise ItemNotFoundError(item_id)
            self._record(self._replace_item(item_id, {"x": item.x + dx, "y": item.y + dy}))
            updated = self.get_item(item_id)
        self._emit(ChangeKind.ITEMS_COMMITTED)
        return updated  # type: ignore[return-value]

    # ─────────────────────────────────────────────────────────────────────────
    # Panel mutators (page-level, not in item history)
    # ─────────────────────────────────────────────────────────────────────────

    def _update_assignment(self, panel_index: int, **changes: Any) -> PanelAssignment:
        with self._lock:
            page = self._pages[self._current]
            if not isinstance(panel_index, int) or not 0 <= panel_index < len(page.assignments):
                raise InvalidInputError(
                    f"panel index {panel_index!r} out of range for layout "
                    f"{page.layout_id!r} ({len(page.assignments)} panels)"
                )
            try:
                updated = replace(page.assignments[panel_index], **changes)
            except ValueError as e:
                raise InvalidInputError(str(e)) from e
            assignments = list(page.assignments)
            assignments[panel_index] = updated
            self._update_current_page(assignments=tuple(assignments))
            return updated

    def drop_crop_to_panel(self, panel_index: int, crop: CropRef) -> PanelAssignment:
        """Assign a crop to a panel, keeping its zoom and offsets."""
        with self._lock:
            if isinstance(crop, Crop) or self._crop_lookup is not None:
                crop_id = self._resolve_crop(crop).id
            else:
                crop_id = crop
            updated = self._update_assignment(panel_index, crop_id=crop_id)
        self._emit(ChangeKind.PAGE_UPDATED)
        return updated

    def clear_panel(self, panel_index: int) -> PanelAssignment:
        """Unassign a panel and reset its zoom and offsets."""
        with self._lock:
            updated = self._update_assignment(
                panel_index, crop_id=None, zoom=1.0, offset_x=0.0, offset_y=0.0
            )
        self._emit(ChangeKind.PAGE_UPDATED)
        return updated

    def handle_panel_zoom(self, panel_index: int, zoom: float) -> PanelAssignment:
        _require_positive(zoom=zoom)
        with self._lock:
            updated = self._update_assignment(panel_index, zoom=float(zoom))
        self._emit(ChangeKind.PAGE_UPDATED)
        return updated

    def handle_panel_pan(
        self, panel_index: int, offset_x: float, offset_y: float
    ) -> PanelAssignment:
        _require_finite(offset_x=offset_x, offset_y=offset_y)
        with self._lock:
            updated = self._update_assignment(
                panel_index, offset_x=float(offset_x), offset_y=float(offset_y)
            )
        self._emit(ChangeKind.PAGE_UPDATED)
        return updated

    # ─────────────────────────────────────────────────────────────────────────
    # Page settings
    # ─────────────────────────────────────────────────────────────────────────

    def _update_current_page(self, **changes: Any) -> Page:
        page = self._pages[self._current]
        try:
            updated = replace(page, updated_at=self._clock(), **changes)
        except ValueError as e:
            raise InvalidInputError(str(e)) from e
        self._pages[self._current] = updated
        return updated

    def change_layout(self, layout_id: str) -> Page:
        """
        Switch the current page's panel layout.

        Assignments carry over positionally; extra ones are dropped and new
        panels start empty.

        Raises:
            InvalidInputError: If the layout id is unknown
        """
        layout = get_layout(layout_id)
        with self._lock:
            page = self._pages[self._current]
            updated = self._update_current_page(
                layout_id=layout.id,
                assignments=carry_assignments(page.assignments, layout),
            )
        logger.debug(f"Page {self._current} layout -> {layout.id}")
        self._emit(ChangeKind.PAGE_UPDATED)
        return updated

    def change_page_preset(self, preset_id: str) -> Page:
        """Resize the current page to a named preset."""
        preset = get_page_preset(preset_id)
        with self._lock:
            updated = self._update_current_page(
                page_preset=preset.id,
                page_width=preset.width,
                page_height=preset.height,
            )
        self._emit(ChangeKind.PAGE_UPDATED)
        return updated

    def update_page_size(
        self,
        width: Optional[float] = None,
        height: Optional[float] = None,
    ) -> Page:
        """
        Set a custom page size; the page preset becomes CUSTOM.

        Raises:
            InvalidInputError: If an edge is below the configured minimum
        """
        minimum = self.config.min_page_size
        with self._lock:
            page = self._pages[self._current]
            new_width = page.page_width if width is None else width
            new_height = page.page_height if height is None else height
            _require_positive(width=new_width, height=new_height)
            if new_width < minimum or new_height < minimum:
                raise InvalidInputError(
                    f"page size must be at least {minimum}px: {new_width}x{new_height}"
                )
            updated = self._update_current_page(
                page_preset=CUSTOM_PRESET_ID,
                page_width=float(new_width),
                page_height=float(new_height),
            )
        self._emit(ChangeKind.PAGE_UPDATED)
        return updated

    def set_background_color(self, color: str) -> Page:
        _require_color(color)
        with self._lock:
            updated = self._update_current_page(background_color=color)
        self._emit(ChangeKind.PAGE_UPDATED)
        return updated

    def set_margin(self, margin: float) -> Page:
        _require_finite(margin=margin)
        with self._lock:
            page = self._pages[self._current]
            if margin < 0 or margin * 2 >= min(page.page_width, page.page_height):
                raise InvalidInputError(f"margin out of range for page: {margin}")
            updated = self._update_current_page(margin=float(margin))
        self._emit(ChangeKind.PAGE_UPDATED)
        return updated

    def set_mode(self, mode: Union[CompositionMode, str]) -> None:
        try:
            new_mode = CompositionMode(mode)
        except ValueError as e:
            raise InvalidInputError(f"Unknown mode: {mode!r}") from e
        with self._lock:
            if new_mode == self._mode:
                return
            self._mode = new_mode
        self._emit(ChangeKind.MODE_CHANGED)

    # ─────────────────────────────────────────────────────────────────────────
    # Multi-page
    # ─────────────────────────────────────────────────────────────────────────

    def _new_page(
        self, number: int, preset_id: str, width: float, height: float
    ) -> Page:
        now = self._clock()
        return Page(
            id=self._id_factory(),
            name=f"Page {number}",
            page_preset=preset_id,
            page_width=width,
            page_height=height,
            background_color=self.config.default_background,
            margin=self.config.default_margin,
            layout_id=DEFAULT_LAYOUT_ID,
            assignments=empty_assignments(layout_or_default(DEFAULT_LAYOUT_ID)),
            created_at=now,
            updated_at=now,
        )

    def _check_page_index(self, index: int) -> None:
        if not isinstance(index, int) or not 0 <= index < len(self._pages):
            raise PageNotFoundError(index)

    def _switch_to(self, index: int) -> None:
        """Make ``index`` current with its saved items and a fresh history."""
        self._current = index
        self._items = self._pages[index].placed_items
        self._history.reset()

    def add_page(self) -> int:
        """
        Append a page with the current page's size preset and select it.

        Returns:
            Index of the new page
        """
        with self._lock:
            self._sync_items()
            current = self._pages[self._current]
            page_ids = {p.id for p in self._pages}
            page = self._new_page(
                len(self._pages) + 1,
                current.page_preset,
                current.page_width,
                current.page_height,
            )
            if page.id in page_ids:
                page = replace(page, id=self._fresh_id(page_ids))
            self._pages.append(page)
            self._switch_to(len(self._pages) - 1)
            index = self._current
        logger.debug(f"Added page {index}")
        self._emit(ChangeKind.PAGES_CHANGED)
        return index

    def delete_page(self, index: int) -> None:
        """
        Remove a page.

        If the current page is removed, the previous page (or the new first
        page) becomes current with a fresh history; otherwise the current
        page stays current and keeps its history.

        Raises:
            PageNotFoundError: If index is out of range
            InvalidInputError: If it is the only page
        """
        with self._lock:
            self._check_page_index(index)
            if len(self._pages) <= 1:
                raise InvalidInputError("Cannot delete the only page")
            self._sync_items()
            del self._pages[index]

            current = self._current
            if index < current:
                self._current = current - 1
            elif index == current:
                self._switch_to(max(0, min(current - 1, len(self._pages) - 1)))
        logger.debug(f"Deleted page {index}; current page is {self._current}")
        self._emit(ChangeKind.PAGES_CHANGED)

    def duplicate_page(self, index: int) -> int:
        """
        Insert a deep copy of a page right after it.

        Every placed item of the copy gets a fresh id. The current page does
        not change, though its index shifts if the copy lands before it.

        Returns:
            Index of the copy
        """
        with self._lock:
            self._check_page_index(index)
            self._sync_items()
            source = self._pages[index]
            now = self._clock()
            page_ids = {p.id for p in self._pages}
            item_ids: set = set()
            copy = replace(
                source,
                id=self._fresh_id(page_ids),
                name=f"{source.name} (copy)",
                placed_items=tuple(
                    replace(item, id=self._fresh_id(item_ids))
                    for item in source.placed_items
                ),
                created_at=now,
                updated_at=now,
            )
            position = index + 1
            self._pages.insert(position, copy)
            if position <= self._current:
                self._current += 1
        self._emit(ChangeKind.PAGES_CHANGED)
        return position

    def select_page(self, index: int) -> None:
        """
        Make another page current.

        The outgoing page keeps its items; history restarts empty for the
        incoming page.
        """
        with self._lock:
            self._check_page_index(index)
            if index == self._current:
                return
            self._sync_items()
            self._switch_to(index)
        self._emit(ChangeKind.PAGE_SELECTED)
