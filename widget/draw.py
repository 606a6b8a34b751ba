from PIL import Image, ImageDraw

from utils import PALETTE_IMAGE, color_index, line_height, text_size, truncate_text

from .model import GRID_SLOTS

WEEKDAY_LABELS = ["SUN", "MON", "TUE", "WED", "THU", "FRI", "SAT"]
WEEKDAY_COLORS = ["red", "black", "black", "black", "black", "black", "blue"]


def new_canvas(width, height):
    img = Image.new("P", (width, height), color_index("white"))
    img.putpalette(PALETTE_IMAGE.getpalette())
    return img


def fit_cover(img, target_w, target_h):
    img_w, img_h = img.size
    if img_w == 0 or img_h == 0 or target_w <= 0 or target_h <= 0:
        return None
    scale = max(target_w / img_w, target_h / img_h)
    new_w = max(1, int(img_w * scale))
    new_h = max(1, int(img_h * scale))
    # resize in RGB so palette indices are not interpolated
    img = img.convert("RGB").resize((new_w, new_h), Image.LANCZOS)
    left = (new_w - target_w) // 2
    top = (new_h - target_h) // 2
    cropped = img.crop((left, top, left + target_w, top + target_h))
    return cropped.quantize(palette=PALETTE_IMAGE, dither=Image.NONE)


def draw_header(draw, bbox, title, fonts):
    x0, y0, x1, _ = bbox
    font = fonts["title"]
    black = color_index("black")
    title_w, _ = text_size(draw, title, font)
    draw.text((x0 + (x1 - x0 - title_w) // 2, y0), title, black, font=font)
    # navigation affordances; the host maps clicks on them to prev/next
    draw.text((x0, y0), "<", black, font=font)
    arrow_w, _ = text_size(draw, ">", font)
    draw.text((x1 - arrow_w, y0), ">", black, font=font)
    return line_height(draw, font) + 6


def draw_cell(img, draw, bbox, cell, fonts):
    x0, y0, x1, y1 = bbox
    if not cell.visible:
        return
    font = fonts["meta"]
    if cell.image is not None:
        fitted = fit_cover(cell.image.image, x1 - x0 - 1, y1 - y0 - 1)
        if fitted is not None:
            img.paste(fitted, (x0 + 1, y0 + 1))
        label_w, _ = text_size(draw, cell.text, font)
        label_bg = cell.label_background or "white"
        draw.rectangle((x0 + 1, y0 + 1, x0 + label_w + 5, y0 + line_height(draw, font) + 2), fill=color_index(label_bg))
        draw.text((x0 + 3, y0 + 1), cell.text, color_index(cell.label_color or cell.text_color), font=font)
        return
    if cell.background and cell.background != "white":
        draw.rectangle((x0 + 1, y0 + 1, x1 - 1, y1 - 1), fill=color_index(cell.background))
    body = fonts["body"]
    text = truncate_text(draw, cell.text, x1 - x0 - 4, body)
    text_w, _ = text_size(draw, text, body)
    draw.text(
        (x0 + (x1 - x0 - text_w) // 2, y0 + (y1 - y0 - line_height(draw, body)) // 2),
        text,
        color_index(cell.text_color),
        font=body,
    )


def draw_grid(descriptor, size, fonts, pad=8):
    """Rasterize a grid descriptor into a palette image of ``size``."""
    width, height = size
    img = new_canvas(width, height)
    draw = ImageDraw.Draw(img)
    black = color_index("black")

    x0, y0, x1, y1 = pad, pad, width - 1 - pad, height - 1 - pad
    header_h = draw_header(draw, (x0, y0, x1, y1), descriptor.title, fonts)

    cols, rows = 7, GRID_SLOTS // 7
    cell_w = max(1, (x1 - x0) // cols)
    weekday_h = line_height(draw, fonts["meta"]) + 4
    for idx, label in enumerate(WEEKDAY_LABELS):
        label_w, _ = text_size(draw, label, fonts["meta"])
        lx = x0 + idx * cell_w + (cell_w - label_w) // 2
        draw.text((lx, y0 + header_h), label, color_index(WEEKDAY_COLORS[idx]), font=fonts["meta"])

    grid_top = y0 + header_h + weekday_h
    cell_h = max(1, (y1 - grid_top) // rows)
    for position, cell in enumerate(descriptor.cells):
        row, col = divmod(position, cols)
        cx = x0 + col * cell_w
        cy = grid_top + row * cell_h
        bbox = (cx, cy, cx + cell_w, cy + cell_h)
        draw_cell(img, draw, bbox, cell, fonts)
        draw.rectangle(bbox, outline=black)
    return img


def draw_error(size, message, fonts):
    width, height = size
    img = new_canvas(width, height)
    draw = ImageDraw.Draw(img)
    pad = 6
    draw.rectangle((0, 0, width - 1, height - 1), outline=color_index("black"), fill=color_index("white"))
    draw.text((pad, pad), "Error", color_index("red"), font=fonts["body"])
    y = pad + line_height(draw, fonts["body"]) + 4
    text = truncate_text(draw, message, width - pad * 2, fonts["meta"])
    draw.text((pad, y), text, color_index("black"), font=fonts["meta"])
    return img
