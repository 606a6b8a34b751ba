import os
from pathlib import Path

from PIL import Image, ImageFont

# Inky 7-colour panel, in driver index order
PALETTE = {
    "black": (0, 0, 0),
    "white": (255, 255, 255),
    "green": (0, 128, 0),
    "blue": (0, 0, 255),
    "red": (255, 0, 0),
    "yellow": (255, 255, 0),
    "orange": (255, 165, 0),
}
PALETTE_NAMES = list(PALETTE)


def _palette_image():
    img = Image.new("P", (1, 1))
    flat = [channel for rgb in PALETTE.values() for channel in rgb]
    img.putpalette(flat + [0, 0, 0] * (256 - len(PALETTE)))
    return img


PALETTE_IMAGE = _palette_image()

ENV_PATH = Path(__file__).resolve().parent / ".env"
FONT_FILE = "DejaVuSans.ttf"
FONT_SIZES = {"title": 22, "body": 15, "meta": 12}


def color_index(name):
    """Palette index for a colour name; unknown names draw black."""
    try:
        return PALETTE_NAMES.index((name or "black").lower())
    except ValueError:
        return 0


def read_env_file(path=ENV_PATH):
    path = Path(path)
    try:
        lines = path.read_text().splitlines()
    except OSError:
        return {}
    values = {}
    for line in lines:
        line = line.strip()
        if line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        if sep and key.strip():
            values[key.strip()] = value.strip().strip('"')
    return values


def get_env(key, default=None, path=ENV_PATH):
    if key in os.environ:
        return os.environ[key]
    return read_env_file(path).get(key, default)


def text_size(draw, text, font):
    left, top, right, bottom = draw.textbbox((0, 0), text, font=font)
    return right - left, bottom - top


def line_height(draw, font):
    if hasattr(font, "getmetrics"):
        ascent, descent = font.getmetrics()
        return ascent + descent
    return text_size(draw, "Ag", font)[1]


def truncate_text(draw, text, max_width, font, suffix="…"):
    if max_width <= 0:
        return ""
    if text_size(draw, text, font)[0] <= max_width:
        return text
    for end in range(len(text) - 1, 0, -1):
        candidate = text[:end] + suffix
        if text_size(draw, candidate, font)[0] <= max_width:
            return candidate
    return ""


def load_fonts():
    try:
        return {name: ImageFont.truetype(FONT_FILE, size) for name, size in FONT_SIZES.items()}
    except OSError:
        default = ImageFont.load_default()
        return {name: default for name in FONT_SIZES}
