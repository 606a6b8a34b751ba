#!/usr/bin/env python3
import argparse
import base64
import json
import logging
import threading
from io import BytesIO
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from urllib.parse import parse_qs, urlparse

from activity_calendar import (
    OUTPUT_DIR,
    load_config,
    on_day_selected,
    on_navigate,
    on_render_requested,
    open_store,
    render_all,
)

logger = logging.getLogger(__name__)

_nav_lock = threading.Lock()


def encode_png(img):
    buffer = BytesIO()
    img.convert("RGB").save(buffer, format="PNG")
    encoded = base64.b64encode(buffer.getvalue()).decode("ascii")
    return f"data:image/png;base64,{encoded}"


def state_payload(state):
    month = state.displayed_month
    return {
        "year": month.year,
        "month": month.month,
        "selected_day": state.selected_day,
    }


def renders_payload(results):
    instances = {}
    for instance_id, (descriptor, img) in results.items():
        instances[instance_id] = {
            "image": f"/generated/{instance_id}.png",
            "image_data": encode_png(img),
            "ok": descriptor is not None,
        }
    return instances


class CalendarHandler(BaseHTTPRequestHandler):
    config = None
    store = None
    output_dir = OUTPUT_DIR

    def _read_json(self):
        try:
            length = int(self.headers.get("Content-Length", "0"))
        except ValueError:
            return None
        if length <= 0:
            return None
        data = self.rfile.read(length)
        try:
            payload = json.loads(data.decode("utf-8"))
        except (UnicodeDecodeError, ValueError):
            return None
        # every endpoint takes a JSON object
        return payload if isinstance(payload, dict) else None

    def _send_json(self, payload, status=200):
        body = json.dumps(payload).encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def _send_file(self, path):
        try:
            body = path.read_bytes()
        except OSError:
            return self._send_json({"error": "Not found"}, status=404)
        self.send_response(200)
        self.send_header("Content-Type", "image/png")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format, *args):
        logger.debug("%s - %s", self.address_string(), format % args)

    def do_GET(self):
        parsed = urlparse(self.path)
        if parsed.path.startswith("/generated/"):
            name = Path(parsed.path[len("/generated/"):]).name
            return self._send_file(Path(self.output_dir) / name)
        if parsed.path == "/api/state":
            return self._send_json(state_payload(self.store.load()))
        if parsed.path == "/api/grid":
            params = parse_qs(parsed.query)
            instance_id = (params.get("instance") or ["main"])[0]
            try:
                descriptor, img = on_render_requested(
                    self.config, self.store, instance_id, output_dir=self.output_dir
                )
            except KeyError:
                return self._send_json({"error": f"Unknown instance: {instance_id}"}, status=404)
            if descriptor is None:
                return self._send_json({"error": "Render failed", "image_data": encode_png(img)}, status=500)
            payload = descriptor.to_dict()
            payload["image_data"] = encode_png(img)
            return self._send_json(payload)
        return self._send_json({"error": "Not found"}, status=404)

    def do_POST(self):
        if self.path.startswith("/api/navigate"):
            payload = self._read_json()
            if payload is None:
                return self._send_json({"error": "Expected a JSON object"}, status=400)
            direction = str(payload.get("direction") or "").lower()
            if direction not in ("prev", "next"):
                return self._send_json({"error": "direction must be prev or next"}, status=400)
            with _nav_lock:
                state, results = on_navigate(self.config, self.store, direction, output_dir=self.output_dir)
            return self._send_json({"ok": True, "state": state_payload(state), "instances": renders_payload(results)})

        if self.path.startswith("/api/select"):
            payload = self._read_json()
            if payload is None:
                return self._send_json({"error": "Expected a JSON object"}, status=400)
            current = self.store.load().displayed_month
            try:
                day = int(payload.get("day"))
                month = int(payload.get("month", current.month))
                year = int(payload.get("year", current.year))
            except (TypeError, ValueError):
                return self._send_json({"error": "day, month and year must be integers"}, status=400)
            if not 1 <= day <= 31 or not 0 <= month <= 11:
                return self._send_json({"error": "day or month out of range"}, status=400)
            with _nav_lock:
                state, results = on_day_selected(
                    self.config, self.store, day, month, year, output_dir=self.output_dir
                )
            return self._send_json({"ok": True, "state": state_payload(state), "instances": renders_payload(results)})

        if self.path.startswith("/api/render"):
            results = render_all(self.config, self.store, output_dir=self.output_dir)
            return self._send_json({"ok": True, "instances": renders_payload(results)})

        return self._send_json({"error": "Not found"}, status=404)


def make_server(host, port, config=None, store=None, output_dir=OUTPUT_DIR):
    cfg = config or load_config()
    handler = type(
        "BoundCalendarHandler",
        (CalendarHandler,),
        {"config": cfg, "store": store or open_store(cfg), "output_dir": output_dir},
    )
    return ThreadingHTTPServer((host, port), handler)


def main():
    parser = argparse.ArgumentParser(description="Activity calendar HTTP server")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=8000)
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    server = make_server(args.host, args.port)
    print(f"Serving on http://{args.host}:{args.port}")
    server.serve_forever()


if __name__ == "__main__":
    main()
