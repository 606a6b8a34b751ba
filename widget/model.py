from dataclasses import dataclass, field
from enum import Enum, IntEnum
from threading import Lock
from typing import Dict, List, Optional

from PIL import Image

GRID_SLOTS = 42

# Designed ceilings for one render pass. The platform hard ceiling is
# ~15,552,000 bytes.
MAX_ITEMS = 15
MAX_TOTAL_BYTES = 12_000_000
TARGET_SIZE = 96


class Weekday(IntEnum):
    SUN = 0
    MON = 1
    TUE = 2
    WED = 3
    THU = 4
    FRI = 5
    SAT = 6


@dataclass(frozen=True)
class CalendarMonth:
    year: int
    month: int  # 0..11

    @property
    def number(self):
        """1-based month number, as used in file names and titles."""
        return self.month + 1


@dataclass(frozen=True)
class NavigationState:
    displayed_month: CalendarMonth
    selected_day: int
    initialized: bool = True


@dataclass(frozen=True)
class DayCell:
    day: int
    grid_position: int
    weekday: Weekday
    is_today: bool = False
    is_selected: bool = False
    has_image: bool = False


@dataclass(frozen=True)
class ImageCandidate:
    day: int
    path: str
    native_width: int
    native_height: int


@dataclass
class Thumbnail:
    image: Image.Image
    byte_size: int

    @property
    def size(self):
        return self.image.size


@dataclass
class RenderBudget:
    max_items: int = MAX_ITEMS
    max_total_bytes: int = MAX_TOTAL_BYTES
    used_bytes: int = 0
    loaded_count: int = 0
    _lock: Lock = field(default_factory=Lock, repr=False, compare=False)

    def try_commit(self, byte_size):
        """Reserve room for one decoded image.

        The check and the increment happen under one lock, so concurrent
        decodes can never push the budget past its ceiling.
        """
        with self._lock:
            if self.loaded_count >= self.max_items:
                return False
            if self.used_bytes + byte_size > self.max_total_bytes:
                return False
            self.used_bytes += byte_size
            self.loaded_count += 1
            return True


class LoadState(str, Enum):
    SHOWN = "shown"
    SKIPPED = "skipped"


@dataclass
class LoadReport:
    shown: Dict[int, Thumbnail] = field(default_factory=dict)
    skipped: Dict[int, str] = field(default_factory=dict)

    def state_for(self, day):
        if day in self.shown:
            return LoadState.SHOWN
        if day in self.skipped:
            return LoadState.SKIPPED
        return None


class CellKind(str, Enum):
    BLANK = "blank"
    SELECTED = "selected"
    TODAY = "today"
    THUMBNAIL = "thumbnail"
    MARKER = "marker"
    SATURDAY = "saturday"
    SUNDAY = "sunday"
    DEFAULT = "default"


@dataclass
class CellStyle:
    kind: CellKind
    day: Optional[int] = None
    text: str = ""
    text_color: str = "black"
    background: Optional[str] = None
    visible: bool = False
    image: Optional[Thumbnail] = None
    label_color: Optional[str] = None
    label_background: Optional[str] = None

    def to_dict(self):
        data = {
            "kind": self.kind.value,
            "day": self.day,
            "text": self.text,
            "text_color": self.text_color,
            "background": self.background,
            "visible": self.visible,
            "image": None,
        }
        if self.image is not None:
            width, height = self.image.size
            data["image"] = {"width": width, "height": height, "bytes": self.image.byte_size}
            data["label_color"] = self.label_color
            data["label_background"] = self.label_background
        return data


@dataclass
class GridDescriptor:
    title: str
    state: NavigationState
    cells: List[CellStyle]
    report: LoadReport = field(default_factory=LoadReport)
    used_bytes: int = 0

    @property
    def month(self):
        return self.state.displayed_month

    def cell_for_day(self, day):
        for cell in self.cells:
            if cell.day == day:
                return cell
        return None

    def to_dict(self):
        month = self.state.displayed_month
        return {
            "title": self.title,
            "year": month.year,
            "month": month.month,
            "selected_day": self.state.selected_day,
            "used_bytes": self.used_bytes,
            "shown_days": sorted(self.report.shown),
            "skipped_days": sorted(self.report.skipped),
            "cells": [cell.to_dict() for cell in self.cells],
        }
