"""
Module: layout.catalog

Purpose:
    Pure lookup tables of panel layouts and page presets, plus the
    ratio-to-pixel conversion and the positional assignment carry-over used
    when a page switches layout.

Key Functions:
    - get_layout(): Layout by id (InvalidInputError when unknown)
    - layout_or_default(): Layout by id, falling back to "single"
    - list_layouts(): All layouts in catalog order
    - get_page_preset(): Page preset by id
    - calculate_panel_positions(): Panel ratios to page pixels
    - empty_assignments(): Fresh dense assignment array for a layout
    - change_layout(): Carry assignments over to another layout

Dependencies:
    - layout.models
    - core.models.pages.PanelAssignment

Used By:
    - composer.state: Layout and preset mutators
    - render.renderer: Panel rectangles
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Sequence

from crop_composer.core.models.pages import PanelAssignment
from crop_composer.errors import InvalidInputError

from .models import PagePreset, PanelLayout, PanelRatio, PanelRect

logger = logging.getLogger(__name__)

DEFAULT_LAYOUT_ID = "single"
DEFAULT_MARGIN = 40.0
CUSTOM_PRESET_ID = "CUSTOM"


def _layout(layout_id: str, name: str, description: str, *panels: tuple) -> PanelLayout:
    return PanelLayout(
        id=layout_id,
        name=name,
        description=description,
        panels=tuple(PanelRatio(*p) for p in panels),
    )


# Panel ratios are relative to the content area (page minus margins).
_LAYOUTS: tuple[PanelLayout, ...] = (
    _layout("single", "Single", "Full page splash", (0, 0, 1, 1)),
    _layout(
        "2-horizontal", "2 Horizontal", "Two horizontal panels",
        (0, 0, 1, 0.48), (0, 0.52, 1, 0.48),
    ),
    _layout(
        "2-vertical", "2 Vertical", "Two vertical panels",
        (0, 0, 0.48, 1), (0.52, 0, 0.48, 1),
    ),
    _layout(
        "3-top-heavy", "3 Top Heavy", "Large top, two bottom",
        (0, 0, 1, 0.58), (0, 0.62, 0.48, 0.38), (0.52, 0.62, 0.48, 0.38),
    ),
    _layout(
        "3-bottom-heavy", "3 Bottom Heavy", "Two top, large bottom",
        (0, 0, 0.48, 0.38), (0.52, 0, 0.48, 0.38), (0, 0.42, 1, 0.58),
    ),
    _layout(
        "3-left-heavy", "3 Left Heavy", "Large left, two right",
        (0, 0, 0.58, 1), (0.62, 0, 0.38, 0.48), (0.62, 0.52, 0.38, 0.48),
    ),
    _layout(
        "3-horizontal", "3 Horizontal", "Three horizontal strips",
        (0, 0, 1, 0.3), (0, 0.35, 1, 0.3), (0, 0.7, 1, 0.3),
    ),
    _layout(
        "4-grid", "4 Grid", "Classic 2x2 grid",
        (0, 0, 0.48, 0.48), (0.52, 0, 0.48, 0.48),
        (0, 0.52, 0.48, 0.48), (0.52, 0.52, 0.48, 0.48),
    ),
    _layout(
        "4-vertical-strip", "4 Vertical", "Four vertical strips",
        (0, 0, 0.22, 1), (0.26, 0, 0.22, 1), (0.52, 0, 0.22, 1), (0.78, 0, 0.22, 1),
    ),
    _layout(
        "4-manga", "4 Manga", "Manga-style varied panels",
        (0, 0, 0.58, 0.48), (0.62, 0, 0.38, 0.28),
        (0.62, 0.32, 0.38, 0.16), (0, 0.52, 1, 0.48),
    ),
    _layout(
        "6-grid", "6 Grid", "Classic 2x3 grid",
        (0, 0, 0.48, 0.3), (0.52, 0, 0.48, 0.3),
        (0, 0.35, 0.48, 0.3), (0.52, 0.35, 0.48, 0.3),
        (0, 0.7, 0.48, 0.3), (0.52, 0.7, 0.48, 0.3),
    ),
    _layout(
        "6-manga", "6 Manga", "Dynamic manga layout",
        (0, 0, 0.65, 0.35), (0.69, 0, 0.31, 0.35),
        (0, 0.39, 0.31, 0.26), (0.35, 0.39, 0.65, 0.26),
        (0, 0.69, 0.48, 0.31), (0.52, 0.69, 0.48, 0.31),
    ),
)

PANEL_LAYOUTS: dict[str, PanelLayout] = {layout.id: layout for layout in _LAYOUTS}

# Pixel sizes at 150 DPI for the paper formats
PAGE_PRESETS: dict[str, PagePreset] = {
    preset.id: preset
    for preset in (
        PagePreset("A4_PORTRAIT", 1240, 1754, "A4 Portrait"),
        PagePreset("A4_LANDSCAPE", 1754, 1240, "A4 Landscape"),
        PagePreset("LETTER_PORTRAIT", 1275, 1650, "Letter Portrait"),
        PagePreset("LETTER_LANDSCAPE", 1650, 1275, "Letter Landscape"),
        PagePreset("SQUARE", 1500, 1500, "Square"),
        PagePreset(CUSTOM_PRESET_ID, 1200, 1600, "Custom"),
    )
}


# ─────────────────────────────────────────────────────────────────────────────
# Lookup
# ─────────────────────────────────────────────────────────────────────────────

def get_layout(layout_id: str) -> PanelLayout:
    """
    Look up a layout by id.

    Raises:
        InvalidInputError: If the id is not in the catalog
    """
    try:
        return PANEL_LAYOUTS[layout_id]
    except KeyError:
        raise InvalidInputError(f"Unknown layout: {layout_id!r}") from None


def layout_or_default(layout_id: str | None) -> PanelLayout:
    """Look up a layout, falling back to "single" for unknown ids."""
    layout = PANEL_LAYOUTS.get(layout_id or DEFAULT_LAYOUT_ID)
    if layout is None:
        logger.warning(f"Unknown layout {layout_id!r}, using {DEFAULT_LAYOUT_ID!r}")
        return PANEL_LAYOUTS[DEFAULT_LAYOUT_ID]
    return layout


def list_layouts() -> list[PanelLayout]:
    return list(_LAYOUTS)


def get_page_preset(preset_id: str) -> PagePreset:
    """
    Look up a page preset by id.

    Raises:
        InvalidInputError: If the id is not in the catalog
    """
    try:
        return PAGE_PRESETS[preset_id]
    except KeyError:
        raise InvalidInputError(f"Unknown page preset: {preset_id!r}") from None


def list_page_presets() -> list[PagePreset]:
    return list(PAGE_PRESETS.values())


# ─────────────────────────────────────────────────────────────────────────────
# Conversion
# ─────────────────────────────────────────────────────────────────────────────

def calculate_panel_positions(
    layout: PanelLayout,
    page_width: float,
    page_height: float,
    margin: float = DEFAULT_MARGIN,
) -> list[PanelRect]:
    """
    Convert a layout's ratio panels to absolute page pixels.

    ``content = page - 2 * margin`` on each axis; each panel's rect is
    ``margin + ratio * content`` for its origin and ``ratio * content`` for
    its size. The catalog is never modified.

    Args:
        layout: Layout definition
        page_width: Page width in pixels
        page_height: Page height in pixels
        margin: Margin applied on all four sides

    Returns:
        One PanelRect per panel, in panel-index order

    Example:
        >>> rects = calculate_panel_positions(get_layout("2-horizontal"), 1000, 1000, 40)
        >>> [round(v, 1) for v in (rects[1].x, rects[1].y, rects[1].width, rects[1].height)]
        [40.0, 518.4, 920.0, 441.6]
    """
    content_width = page_width - margin * 2
    content_height = page_height - margin * 2
    return [
        PanelRect(
            index=index,
            x=float(margin + panel.x * content_width),
            y=float(margin + panel.y * content_height),
            width=float(panel.width * content_width),
            height=float(panel.height * content_height),
            ratio=panel,
        )
        for index, panel in enumerate(layout.panels)
    ]


def empty_assignments(layout: PanelLayout) -> tuple[PanelAssignment, ...]:
    """Dense, unassigned assignment array for every panel of a layout."""
    return tuple(PanelAssignment.empty(i) for i in range(layout.panel_count))


def change_layout(
    assignments: Sequence[PanelAssignment],
    new_layout: PanelLayout,
) -> tuple[PanelAssignment, ...]:
    """
    Carry assignments over to a different layout, positionally.

    Indices that exist in both layouts keep their crop, zoom and offsets;
    indices beyond the new panel count are dropped; new indices start
    empty.

    Args:
        assignments: Current dense assignment array
        new_layout: Target layout

    Returns:
        Dense assignment array sized to the new layout
    """
    carried = []
    for index in range(new_layout.panel_count):
        if index < len(assignments):
            carried.append(replace(assignments[index], panel_index=index))
        else:
            carried.append(PanelAssignment.empty(index))
    return tuple(carried)
