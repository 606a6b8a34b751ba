import calendar
from datetime import date

from .model import GRID_SLOTS, CalendarMonth, Weekday


def month_of(day):
    return CalendarMonth(day.year, day.month - 1)


def weekday_of_first(month):
    # date.weekday() is Monday-based; the grid starts on Sunday.
    return Weekday((date(month.year, month.number, 1).weekday() + 1) % 7)


def weekday_of(month, day):
    return Weekday((date(month.year, month.number, day).weekday() + 1) % 7)


def days_in(month):
    return calendar.monthrange(month.year, month.number)[1]


def advance(month):
    if month.month + 1 > 11:
        return CalendarMonth(month.year + 1, 0)
    return CalendarMonth(month.year, month.month + 1)


def retreat(month):
    if month.month - 1 < 0:
        return CalendarMonth(month.year - 1, 11)
    return CalendarMonth(month.year, month.month - 1)


def grid_position(month, day):
    """Return the 0-based slot of `day`; the weekday of the 1st is the
    number of blank leading slots."""
    position = int(weekday_of_first(month)) + day - 1
    if not 0 <= position < GRID_SLOTS:
        raise ValueError(f"day {day} falls outside the {GRID_SLOTS}-slot grid")
    return position


def month_title(month, fmt="%B %Y"):
    return date(month.year, month.number, 1).strftime(fmt)
