from .model import GRID_SLOTS, CellKind, CellStyle, LoadState, Weekday

DEFAULT_THEME = {
    "text": "black",
    "background": "white",
    "selected_background": "blue",
    "selected_text": "white",
    "today_background": "green",
    "today_text": "white",
    "marker_background": "orange",
    "marker_text": "white",
    "label_text": "black",
    "label_background": "white",
    "saturday_text": "blue",
    "sunday_text": "red",
}


def blank_cell():
    return CellStyle(CellKind.BLANK, text="", visible=False)


class CellStyler:
    """Resolve the visual state of each grid slot.

    Rules are checked top-down, first match wins: selected, today, shown
    thumbnail, image present but not shown, Saturday, Sunday, default.
    When thumbnails are supported, a selected day that also has a shown
    thumbnail keeps the image and carries the accent on its label.
    """

    def __init__(self, supports_thumbnails=True, theme=None):
        self.supports_thumbnails = supports_thumbnails
        self.theme = {**DEFAULT_THEME, **(theme or {})}

    def style(self, cell, load_state=None, thumbnail=None):
        theme = self.theme
        text = str(cell.day)
        shown = self.supports_thumbnails and load_state == LoadState.SHOWN and thumbnail is not None

        if cell.is_selected:
            style = CellStyle(
                CellKind.SELECTED,
                day=cell.day,
                text=text,
                text_color=theme["selected_text"],
                background=theme["selected_background"],
                visible=True,
            )
            if shown:
                style.image = thumbnail
                style.label_color = theme["selected_text"]
                style.label_background = theme["selected_background"]
            return style
        if cell.is_today:
            return CellStyle(
                CellKind.TODAY,
                day=cell.day,
                text=text,
                text_color=theme["today_text"],
                background=theme["today_background"],
                visible=True,
            )
        if shown:
            return CellStyle(
                CellKind.THUMBNAIL,
                day=cell.day,
                text=text,
                text_color=theme["label_text"],
                background=theme["background"],
                visible=True,
                image=thumbnail,
                label_color=theme["label_text"],
                label_background=theme["label_background"],
            )
        if cell.has_image:
            return CellStyle(
                CellKind.MARKER,
                day=cell.day,
                text=text,
                text_color=theme["marker_text"],
                background=theme["marker_background"],
                visible=True,
            )
        if cell.weekday == Weekday.SAT:
            return CellStyle(
                CellKind.SATURDAY,
                day=cell.day,
                text=text,
                text_color=theme["saturday_text"],
                background=theme["background"],
                visible=True,
            )
        if cell.weekday == Weekday.SUN:
            return CellStyle(
                CellKind.SUNDAY,
                day=cell.day,
                text=text,
                text_color=theme["sunday_text"],
                background=theme["background"],
                visible=True,
            )
        return CellStyle(
            CellKind.DEFAULT,
            day=cell.day,
            text=text,
            text_color=theme["text"],
            background=theme["background"],
            visible=True,
        )

    def style_grid(self, day_cells, report):
        slots = [blank_cell() for _ in range(GRID_SLOTS)]
        for cell in day_cells:
            slots[cell.grid_position] = self.style(
                cell,
                report.state_for(cell.day),
                report.shown.get(cell.day),
            )
        return slots
