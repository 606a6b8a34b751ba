"""Persisted navigation/selection state.

The state lives in a small key/value store behind ``get_int``/``set_int``/
``contains``. ``NavigationStore`` is the only writer; every read-modify-write
goes through its lock, and ``compare_and_set`` lets a caller detect that the
stored state moved since it was read.
"""

import json
import logging
import os
import tempfile
import threading
from datetime import MAXYEAR, MINYEAR, date
from pathlib import Path

from . import datemath
from .model import CalendarMonth, NavigationState

logger = logging.getLogger(__name__)

KEY_MONTH = "displayed_month"
KEY_YEAR = "displayed_year"
KEY_SELECTED_DAY = "selected_day"


class MemoryStore:
    def __init__(self, data=None):
        self.data = dict(data or {})

    def get_int(self, key, default):
        value = self.data.get(key, default)
        try:
            return int(value)
        except (TypeError, ValueError):
            return default

    def set_int(self, key, value):
        self.data[key] = int(value)

    def contains(self, key):
        return key in self.data


class JsonFileStore(MemoryStore):
    """Key/value store backed by one JSON file, rewritten on every set."""

    def __init__(self, path):
        self.path = Path(path)
        super().__init__(self._read())

    def _read(self):
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text())
        except (OSError, ValueError) as exc:
            logger.warning("unreadable state file %s, using defaults: %s", self.path, exc)
            return {}
        if not isinstance(data, dict):
            logger.warning("state file %s does not hold an object, using defaults", self.path)
            return {}
        return data

    def reload(self):
        self.data = self._read()

    def set_int(self, key, value):
        super().set_int(key, value)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        # readers in other processes must never see a half-written file
        fd, tmp_name = tempfile.mkstemp(prefix=f".{self.path.name}.", dir=self.path.parent)
        try:
            with os.fdopen(fd, "w") as handle:
                json.dump(self.data, handle, indent=2)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise


class NavigationStore:
    def __init__(self, store, clock=None):
        self.store = store
        self._clock = clock or date.today
        self._lock = threading.RLock()

    def load(self):
        today = self._clock()
        with self._lock:
            # pick up writes made by other processes
            reload = getattr(self.store, "reload", None)
            if reload is not None:
                reload()
            if not self.store.contains(KEY_MONTH):
                state = NavigationState(datemath.month_of(today), today.day, initialized=True)
                self._write(state)
                logger.info("initialized navigation state to %s", today.isoformat())
                return state
            month = self.store.get_int(KEY_MONTH, today.month - 1)
            year = self.store.get_int(KEY_YEAR, today.year)
            selected = self.store.get_int(KEY_SELECTED_DAY, today.day)
            if not 0 <= month <= 11:
                logger.warning("stored month %s out of range, using current month", month)
                month = today.month - 1
            if not MINYEAR <= year <= MAXYEAR:
                logger.warning("stored year %s out of range, using current year", year)
                year = today.year
            return NavigationState(CalendarMonth(year, month), selected, initialized=True)

    def _write(self, state):
        self.store.set_int(KEY_MONTH, state.displayed_month.month)
        self.store.set_int(KEY_YEAR, state.displayed_month.year)
        self.store.set_int(KEY_SELECTED_DAY, state.selected_day)

    def set_displayed_month(self, month):
        with self._lock:
            self.store.set_int(KEY_MONTH, month.month)
            self.store.set_int(KEY_YEAR, month.year)

    def set_selected_day(self, day):
        with self._lock:
            self.store.set_int(KEY_SELECTED_DAY, day)

    def compare_and_set(self, expected, new):
        with self._lock:
            current = self.load()
            if current != expected:
                return False
            self._write(new)
            return True

    def update(self, change):
        """Apply ``change(state) -> state`` as one read-modify-write."""
        with self._lock:
            state = self.load()
            new_state = change(state)
            if new_state != state:
                self._write(new_state)
            return new_state

    def navigate(self, direction):
        if direction == "next":
            step = datemath.advance
        elif direction == "prev":
            step = datemath.retreat
        else:
            raise ValueError(f"Unknown direction: {direction}")
        return self.update(
            lambda state: NavigationState(step(state.displayed_month), state.selected_day)
        )

    def select_day(self, day):
        return self.update(
            lambda state: NavigationState(state.displayed_month, int(day))
        )
