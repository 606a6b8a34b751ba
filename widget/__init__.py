from .grid import GridRenderer, build_day_cells
from .model import (
    GRID_SLOTS,
    MAX_ITEMS,
    MAX_TOTAL_BYTES,
    TARGET_SIZE,
    CalendarMonth,
    CellKind,
    CellStyle,
    GridDescriptor,
    NavigationState,
    RenderBudget,
)
from .selector import select_days
from .state import JsonFileStore, MemoryStore, NavigationStore
from .styler import CellStyler
from .thumbnails import ImageAvailabilityIndex, ImageSource, ThumbnailLoader, compute_sample_size

__all__ = [
    "GRID_SLOTS",
    "MAX_ITEMS",
    "MAX_TOTAL_BYTES",
    "TARGET_SIZE",
    "CalendarMonth",
    "CellKind",
    "CellStyle",
    "CellStyler",
    "GridDescriptor",
    "GridRenderer",
    "ImageAvailabilityIndex",
    "ImageSource",
    "JsonFileStore",
    "MemoryStore",
    "NavigationState",
    "NavigationStore",
    "RenderBudget",
    "ThumbnailLoader",
    "build_day_cells",
    "compute_sample_size",
    "select_days",
]
