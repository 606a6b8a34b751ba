import sys
from pathlib import Path

import pytest
from PIL import Image

# Ensure project root is on sys.path for tests
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from widget.model import Thumbnail  # noqa: E402


class FakeSource:
    """Image source over an in-memory {file name: (width, height, byte_size)} map."""

    def __init__(self, images=None, broken=()):
        self.images = dict(images or {})
        self.broken = set(broken)
        self.decoded = []

    def exists(self, path):
        name = Path(path).name
        return name in self.images or name in self.broken

    def decode_bounds(self, path):
        name = Path(path).name
        if name in self.broken:
            raise OSError(f"cannot identify image file {name}")
        width, height, _ = self.images[name]
        return width, height

    def decode(self, path, sample_size):
        name = Path(path).name
        width, height, byte_size = self.images[name]
        self.decoded.append((name, sample_size))
        img = Image.new("P", (max(1, width // sample_size), max(1, height // sample_size)), 1)
        return Thumbnail(img, byte_size)


@pytest.fixture
def fake_source():
    return FakeSource
