"""
Layout Package

Panel layouts, page presets and the ratio-to-pixel conversion.
"""

from .models import PagePreset, PanelLayout, PanelRatio, PanelRect
from .catalog import (
    CUSTOM_PRESET_ID,
    DEFAULT_LAYOUT_ID,
    PAGE_PRESETS,
    PANEL_LAYOUTS,
    calculate_panel_positions,
    change_layout,
    empty_assignments,
    get_layout,
    get_page_preset,
    layout_or_default,
    list_layouts,
    list_page_presets,
)

__all__ = [
    "PagePreset",
    "PanelLayout",
    "PanelRatio",
    "PanelRect",
    "CUSTOM_PRESET_ID",
    "DEFAULT_LAYOUT_ID",
    "PAGE_PRESETS",
    "PANEL_LAYOUTS",
    "calculate_panel_positions",
    "change_layout",
    "empty_assignments",
    "get_layout",
    "get_page_preset",
    "layout_or_default",
    "list_layouts",
    "list_page_presets",
]
