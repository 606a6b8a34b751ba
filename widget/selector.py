from .model import MAX_ITEMS


def select_days(days_with_image, max_items=MAX_ITEMS):
    """Pick which days get a thumbnail attempt.

    Everything is kept when it fits. Otherwise the list is walked from the
    most recent day backward in steps of ``len // max_items`` so the picks
    spread over the month while favouring later days. When that step
    truncates to 1 the result is simply the last ``max_items`` days.

    The result is always sorted ascending and never longer than
    ``max_items``.
    """
    days = list(days_with_image)
    if max_items <= 0:
        return []
    if len(days) <= max_items:
        return days
    interval = len(days) // max_items
    if interval > 1:
        picked = []
        idx = len(days) - 1
        while idx >= 0 and len(picked) < max_items:
            picked.append(days[idx])
            idx -= interval
        return sorted(picked)
    return sorted(days[-max_items:])
