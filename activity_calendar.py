import argparse
import json
import logging
import subprocess
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path

from utils import get_env, load_fonts
from widget import (
    MAX_ITEMS,
    MAX_TOTAL_BYTES,
    TARGET_SIZE,
    CellStyler,
    GridRenderer,
    ImageAvailabilityIndex,
    ImageSource,
    JsonFileStore,
    NavigationStore,
    ThumbnailLoader,
)
from widget.draw import draw_error, draw_grid

logger = logging.getLogger(__name__)

BASE_DIR = Path(__file__).resolve().parent
CONFIG_PATH = BASE_DIR / "config.json"
OUTPUT_DIR = BASE_DIR / ".generated"
CONFIG_VERSION = 1

DEFAULT_WIDTH = 480
DEFAULT_HEIGHT = 400


@dataclass
class InstanceSpec:
    id: str
    width: int = DEFAULT_WIDTH
    height: int = DEFAULT_HEIGHT


def default_config():
    return {
        "version": CONFIG_VERSION,
        "image_dir": get_env("ACTIVITY_IMAGE_DIR") or str(BASE_DIR / "activities"),
        "image_extensions": ["png", "svg"],
        "state_path": get_env("ACTIVITY_STATE_PATH") or str(BASE_DIR / ".state.json"),
        "title_format": "%B %Y",
        "max_items": MAX_ITEMS,
        "max_total_bytes": MAX_TOTAL_BYTES,
        "target_size": TARGET_SIZE,
        "supports_thumbnails": True,
        "launch_command": [],
        "instances": [
            {"id": "main", "width": DEFAULT_WIDTH, "height": DEFAULT_HEIGHT},
        ],
    }


def _int_setting(cfg, key, default, minimum):
    try:
        value = int(cfg.get(key, default))
    except (TypeError, ValueError):
        return default
    return max(minimum, value)


def normalize_config(cfg):
    base = default_config()
    merged = {**base, **(cfg or {})}
    merged["max_items"] = _int_setting(merged, "max_items", MAX_ITEMS, 0)
    merged["max_total_bytes"] = _int_setting(merged, "max_total_bytes", MAX_TOTAL_BYTES, 0)
    merged["target_size"] = _int_setting(merged, "target_size", TARGET_SIZE, 1)
    merged["supports_thumbnails"] = bool(merged.get("supports_thumbnails", True))
    extensions = merged.get("image_extensions")
    if not isinstance(extensions, list) or not extensions:
        extensions = base["image_extensions"]
    merged["image_extensions"] = [str(ext).lower().lstrip(".") for ext in extensions]
    command = merged.get("launch_command")
    merged["launch_command"] = [str(part) for part in command] if isinstance(command, list) else []
    instances = []
    for idx, item in enumerate(merged.get("instances") or []):
        if not isinstance(item, dict):
            continue
        instances.append({
            "id": str(item.get("id") or f"instance-{idx}"),
            "width": _int_setting(item, "width", DEFAULT_WIDTH, 64),
            "height": _int_setting(item, "height", DEFAULT_HEIGHT, 64),
        })
    merged["instances"] = instances or base["instances"]
    merged["version"] = CONFIG_VERSION
    return merged


def load_config(path=CONFIG_PATH):
    path = Path(path)
    if not path.exists():
        return default_config()
    try:
        return normalize_config(json.loads(path.read_text()))
    except (OSError, ValueError) as exc:
        logger.warning("unreadable config %s, using defaults: %s", path, exc)
        return default_config()


def build_instances(config):
    return [
        InstanceSpec(id=item["id"], width=item["width"], height=item["height"])
        for item in config.get("instances", [])
    ]


def open_store(config, clock=None):
    return NavigationStore(JsonFileStore(config["state_path"]), clock=clock)


def build_renderer(config, source=None):
    source = source or ImageSource()
    index = ImageAvailabilityIndex(config["image_dir"], config["image_extensions"], source=source)
    return GridRenderer(
        index,
        loader=ThumbnailLoader(source=source, target_size=config["target_size"]),
        styler=CellStyler(supports_thumbnails=config["supports_thumbnails"]),
        max_items=config["max_items"],
        max_total_bytes=config["max_total_bytes"],
        title_format=config["title_format"],
    )


def render_instance(renderer, spec, state, fonts, today=None, output_dir=None):
    """Render one instance; a failure yields an error image instead."""
    size = (spec.width, spec.height)
    try:
        descriptor = renderer.render(state, today=today)
        img = draw_grid(descriptor, size, fonts)
    except Exception as exc:
        logger.exception("render failed for instance %s", spec.id)
        descriptor = None
        img = draw_error(size, str(exc), fonts)
    if output_dir:
        try:
            Path(output_dir).mkdir(parents=True, exist_ok=True)
            img.convert("RGB").save(Path(output_dir) / f"{spec.id}.png", format="PNG")
        except OSError as exc:
            logger.warning("could not save %s: %s", spec.id, exc)
    return descriptor, img


def render_all(config, store, today=None, output_dir=OUTPUT_DIR, source=None):
    """Render every live instance from the current navigation state.

    Each instance builds its own renderer and so its own render budget.
    """
    state = store.load()
    fonts = load_fonts()
    specs = build_instances(config)

    def run(spec):
        renderer = build_renderer(config, source=source)
        return spec.id, render_instance(renderer, spec, state, fonts, today=today, output_dir=output_dir)

    with ThreadPoolExecutor(max_workers=max(1, len(specs))) as pool:
        return dict(pool.map(run, specs))


def on_render_requested(config, store, instance_id, today=None, output_dir=OUTPUT_DIR, source=None):
    for spec in build_instances(config):
        if spec.id == instance_id:
            state = store.load()
            renderer = build_renderer(config, source=source)
            return render_instance(renderer, spec, state, load_fonts(), today=today, output_dir=output_dir)
    raise KeyError(f"Unknown instance: {instance_id}")


def on_navigate(config, store, direction, today=None, output_dir=OUTPUT_DIR, source=None):
    state = store.navigate(direction)
    logger.info("navigated %s to %s-%02d", direction, state.displayed_month.year, state.displayed_month.number)
    return state, render_all(config, store, today=today, output_dir=output_dir, source=source)


def launch_selection(command, day, month, year):
    """Start the configured viewer for a selected day; month is 0-based."""
    if not command:
        return False
    try:
        args = [part.format(day=day, month=month + 1, year=year) for part in command]
        subprocess.Popen(args, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)
    except (OSError, ValueError, KeyError, IndexError) as exc:
        logger.warning("could not launch %s: %s", command[0], exc)
        return False
    return True


def on_day_selected(config, store, day, month, year, today=None, output_dir=OUTPUT_DIR, source=None):
    state = store.select_day(day)
    launch_selection(config.get("launch_command"), day, month, year)
    return state, render_all(config, store, today=today, output_dir=output_dir, source=source)


def upload_to_display(config, store):
    from inky.auto import auto

    inky = auto()
    width, height = inky.resolution
    spec = InstanceSpec(id="display", width=width, height=height)
    _, img = render_instance(build_renderer(config), spec, store.load(), load_fonts())
    inky.set_image(img)
    inky.show()


def main(argv=None):
    parser = argparse.ArgumentParser(description="Render the activity calendar")
    parser.add_argument("--config", default=str(CONFIG_PATH))
    nav = parser.add_mutually_exclusive_group()
    nav.add_argument("--prev", action="store_true", help="show the previous month")
    nav.add_argument("--next", action="store_true", help="show the next month")
    nav.add_argument("--select", type=int, metavar="DAY", help="select a day of the displayed month")
    parser.add_argument("--upload", action="store_true", help="push the grid to the e-paper display")
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    cfg = load_config(args.config)
    store = open_store(cfg)
    if args.prev or args.next:
        on_navigate(cfg, store, "prev" if args.prev else "next")
    elif args.select is not None:
        month = store.load().displayed_month
        on_day_selected(cfg, store, args.select, month.month, month.year)
    else:
        render_all(cfg, store)
    if args.upload:
        upload_to_display(cfg, store)
    print("done")


if __name__ == "__main__":
    main()
