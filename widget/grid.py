import logging
from datetime import date

from . import datemath
from .model import MAX_ITEMS, MAX_TOTAL_BYTES, DayCell, GridDescriptor, LoadReport, RenderBudget
from .selector import select_days
from .styler import CellStyler
from .thumbnails import ImageAvailabilityIndex, ThumbnailLoader

logger = logging.getLogger(__name__)


def build_day_cells(state, today, days_with_image=()):
    month = state.displayed_month
    with_image = set(days_with_image)
    is_current_month = datemath.month_of(today) == month
    cells = []
    for day in range(1, datemath.days_in(month) + 1):
        cells.append(
            DayCell(
                day=day,
                grid_position=datemath.grid_position(month, day),
                weekday=datemath.weekday_of(month, day),
                is_today=is_current_month and day == today.day,
                is_selected=state.selected_day > 0 and day == state.selected_day,
                has_image=day in with_image,
            )
        )
    return cells


class GridRenderer:
    def __init__(
        self,
        index,
        loader=None,
        styler=None,
        max_items=MAX_ITEMS,
        max_total_bytes=MAX_TOTAL_BYTES,
        title_format="%B %Y",
    ):
        self.index = index
        self.loader = loader or ThumbnailLoader(source=index.source)
        self.styler = styler or CellStyler()
        self.max_items = max_items
        self.max_total_bytes = max_total_bytes
        self.title_format = title_format

    def render(self, state, today=None):
        today = today or date.today()
        month = state.displayed_month
        budget = RenderBudget(self.max_items, self.max_total_bytes)

        days_with_image = self.index.days_with_image(month)
        report = LoadReport()
        if self.styler.supports_thumbnails and days_with_image:
            selected = select_days(days_with_image, self.max_items)
            self.loader.load(month, selected, self.index, budget, report)
            logger.info(
                "%s: %s days with images, %s selected, %s shown, %s bytes",
                datemath.month_title(month, "%Y-%m"),
                len(days_with_image),
                len(selected),
                len(report.shown),
                budget.used_bytes,
            )

        cells = build_day_cells(state, today, days_with_image)
        return GridDescriptor(
            title=datemath.month_title(month, self.title_format),
            state=state,
            cells=self.styler.style_grid(cells, report),
            report=report,
            used_bytes=budget.used_bytes,
        )
