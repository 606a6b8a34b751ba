import logging
import re
from io import BytesIO
from pathlib import Path

from PIL import Image

from utils import PALETTE_IMAGE

from . import datemath
from .model import TARGET_SIZE, ImageCandidate, LoadReport, Thumbnail

try:
    from cairosvg import svg2png
    from cairosvg.parser import Tree
    SVG_AVAILABLE = True
except Exception:
    svg2png = None
    Tree = None
    SVG_AVAILABLE = False

logger = logging.getLogger(__name__)

DEFAULT_EXTENSIONS = ("png", "svg")
MAX_SAMPLE_SIZE = 8

# CSS absolute units at cairosvg's default 96 dpi
SVG_UNITS = {"": 1.0, "px": 1.0, "pt": 96 / 72, "pc": 16.0, "mm": 96 / 25.4, "cm": 96 / 2.54, "in": 96.0}
_LENGTH_RE = re.compile(r"^\s*([0-9]*\.?[0-9]+)\s*([a-z]*)\s*$")


def svg_length(value):
    match = _LENGTH_RE.match(value or "")
    if not match or match.group(2) not in SVG_UNITS:
        return None
    return float(match.group(1)) * SVG_UNITS[match.group(2)]


def svg_size(attrs):
    """Pixel size of an SVG root element from width/height, else its viewBox."""
    width = svg_length(attrs.get("width"))
    height = svg_length(attrs.get("height"))
    if width and height:
        return round(width), round(height)
    parts = re.split(r"[\s,]+", (attrs.get("viewBox") or "").strip())
    if len(parts) != 4:
        raise ValueError("SVG has no usable width/height or viewBox")
    box_w, box_h = float(parts[2]), float(parts[3])
    # a single given dimension scales the other by the viewBox ratio
    if width and box_w:
        return round(width), round(width * box_h / box_w)
    if height and box_h:
        return round(height * box_w / box_h), round(height)
    return round(box_w), round(box_h)


def image_name(month, day, ext):
    return f"{month.year}-{month.number:02d}-{day:02d}.{ext}"


def compute_sample_size(native_width, native_height, target_size=TARGET_SIZE):
    """Power-of-two decode divisor, leaving the image 2-4x the target size."""
    # whole-number scales: 800x600 at 96 gives 8x6 and stops at 4
    width_scale = native_width // target_size
    height_scale = native_height // target_size
    sample_size = 1
    while (width_scale // sample_size > 2 or height_scale // sample_size > 2) and sample_size < MAX_SAMPLE_SIZE:
        sample_size *= 2
    return sample_size


def _is_svg(path):
    return str(path).lower().endswith(".svg")


def _to_thumbnail(img):
    quantized = img.convert("RGB").quantize(palette=PALETTE_IMAGE, dither=Image.FLOYDSTEINBERG)
    # palette images hold one byte per pixel
    return Thumbnail(quantized, quantized.width * quantized.height)


class ImageSource:
    """Filesystem access to activity images: existence, bounds and decode."""

    def exists(self, path):
        return Path(path).is_file()

    def decode_bounds(self, path):
        if _is_svg(path):
            if not SVG_AVAILABLE:
                raise OSError("SVG rendering requires cairosvg")
            # parse only; the root element carries the size
            return svg_size(Tree(url=str(path)))
        with Image.open(path) as img:
            return img.size

    def decode(self, path, sample_size):
        if _is_svg(path):
            width, height = self.decode_bounds(path)
            target = (max(1, width // sample_size), max(1, height // sample_size))
            img = self._render_svg(path, target)
            if img.size != target:
                img = img.resize(target, Image.BOX)
            return _to_thumbnail(img)
        with Image.open(path) as img:
            width, height = img.size
            target = (max(1, width // sample_size), max(1, height // sample_size))
            # JPEG decodes straight at 1/2, 1/4 or 1/8 scale; other formats ignore this
            img.draft("RGB", target)
            if img.mode not in ("L", "LA", "RGB", "RGBA"):
                img = img.convert("RGBA" if "transparency" in img.info else "RGB")
            factor = min(img.width // target[0], img.height // target[1])
            if factor > 1:
                img = img.reduce(factor)
            img = img.convert("RGB")
        if img.size != target:
            img = img.resize(target, Image.BOX)
        return _to_thumbnail(img)

    def _render_svg(self, path, size):
        if not SVG_AVAILABLE:
            raise OSError("SVG rendering requires cairosvg")
        png_data = svg2png(url=str(path), output_width=size[0], output_height=size[1])
        img = Image.open(BytesIO(png_data))
        img.load()
        if img.mode in ("RGBA", "LA", "P"):
            background = Image.new("RGB", img.size, "white")
            rgba = img.convert("RGBA")
            background.paste(rgba, (0, 0), rgba)
            return background
        return img.convert("RGB")


class ImageAvailabilityIndex:
    def __init__(self, base_dir, extensions=DEFAULT_EXTENSIONS, source=None):
        self.base_dir = Path(base_dir)
        self.extensions = tuple(ext.lower().lstrip(".") for ext in extensions)
        self.source = source or ImageSource()

    def path_for(self, month, day):
        for ext in self.extensions:
            path = self.base_dir / image_name(month, day, ext)
            if self.source.exists(path):
                return str(path)
        return None

    def days_with_image(self, month):
        return [
            day
            for day in range(1, datemath.days_in(month) + 1)
            if self.path_for(month, day) is not None
        ]


class ThumbnailLoader:
    def __init__(self, source=None, target_size=TARGET_SIZE):
        self.source = source or ImageSource()
        self.target_size = target_size

    def probe(self, day, path):
        width, height = self.source.decode_bounds(path)
        if width <= 0 or height <= 0:
            raise ValueError(f"invalid image size {width}x{height}")
        return ImageCandidate(day, str(path), int(width), int(height))

    def load_day(self, day, path, budget, report):
        try:
            candidate = self.probe(day, path)
        except Exception as exc:
            logger.warning("skipping %s: cannot read image bounds: %s", path, exc)
            report.skipped[day] = "unreadable"
            return
        sample_size = compute_sample_size(candidate.native_width, candidate.native_height, self.target_size)
        try:
            thumbnail = self.source.decode(path, sample_size)
        except Exception as exc:
            logger.warning("skipping %s: decode failed: %s", path, exc)
            report.skipped[day] = "decode_failed"
            return
        if not budget.try_commit(thumbnail.byte_size):
            logger.debug(
                "budget exhausted for day %s (%s bytes, %s/%s used, %s/%s items)",
                day,
                thumbnail.byte_size,
                budget.used_bytes,
                budget.max_total_bytes,
                budget.loaded_count,
                budget.max_items,
            )
            thumbnail.image.close()
            report.skipped[day] = "budget"
            return
        report.shown[day] = thumbnail

    def load(self, month, days, index, budget, report=None):
        report = report or LoadReport()
        for day in days:
            path = index.path_for(month, day)
            if path is None:
                report.skipped[day] = "missing"
                continue
            self.load_day(day, path, budget, report)
        return report
