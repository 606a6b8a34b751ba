import threading

import pytest
from PIL import Image

from widget import thumbnails
from widget.model import CalendarMonth, LoadReport, LoadState, RenderBudget
from widget.thumbnails import (
    ImageAvailabilityIndex,
    ImageSource,
    ThumbnailLoader,
    compute_sample_size,
    image_name,
    svg_size,
)

APRIL = CalendarMonth(2024, 3)


def write_png(path, size, color=(200, 30, 30)):
    Image.new("RGB", size, color).save(path, format="PNG")


def test_sample_size_for_800x600_is_four():
    assert compute_sample_size(800, 600, 96) == 4


def test_sample_size_small_and_huge_images():
    assert compute_sample_size(96, 96) == 1
    assert compute_sample_size(200, 150) == 1
    assert compute_sample_size(300, 100) == 2
    assert compute_sample_size(10000, 10000) == 8


def test_image_name_is_zero_padded():
    assert image_name(CalendarMonth(2024, 0), 5, "png") == "2024-01-05.png"
    assert image_name(CalendarMonth(2024, 11), 25, "svg") == "2024-12-25.svg"


def test_decode_800x600_png_at_sample_four(tmp_path):
    path = tmp_path / "2024-04-10.png"
    write_png(path, (800, 600))
    source = ImageSource()
    assert source.decode_bounds(path) == (800, 600)
    thumbnail = source.decode(path, 4)
    assert thumbnail.size == (200, 150)
    assert thumbnail.image.mode == "P"
    assert thumbnail.byte_size == 200 * 150


def test_decode_jpeg_uses_reduced_size(tmp_path):
    path = tmp_path / "2024-04-11.jpg"
    Image.new("RGB", (800, 600), (10, 120, 200)).save(path, format="JPEG")
    thumbnail = ImageSource().decode(path, 4)
    assert thumbnail.size == (200, 150)


def test_index_probes_every_day_in_order(tmp_path):
    for day in (30, 2, 15):
        write_png(tmp_path / image_name(APRIL, day, "png"), (10, 10))
    (tmp_path / "2024-05-01.png").write_bytes(b"")
    index = ImageAvailabilityIndex(tmp_path)
    assert index.days_with_image(APRIL) == [2, 15, 30]


def test_index_prefers_first_configured_extension(tmp_path):
    write_png(tmp_path / "2024-04-03.png", (10, 10))
    (tmp_path / "2024-04-03.svg").write_text("<svg/>")
    (tmp_path / "2024-04-04.svg").write_text("<svg/>")
    index = ImageAvailabilityIndex(tmp_path, extensions=("png", "svg"))
    assert index.path_for(APRIL, 3).endswith("2024-04-03.png")
    assert index.path_for(APRIL, 4).endswith("2024-04-04.svg")
    assert index.path_for(APRIL, 5) is None
    assert ImageAvailabilityIndex(tmp_path, extensions=("png",)).days_with_image(APRIL) == [3]


def test_corrupt_file_is_skipped_without_stopping_others(tmp_path):
    (tmp_path / "2024-04-01.png").write_bytes(b"not an image")
    write_png(tmp_path / "2024-04-02.png", (400, 300))
    index = ImageAvailabilityIndex(tmp_path)
    loader = ThumbnailLoader()
    report = loader.load(APRIL, [1, 2], index, RenderBudget())
    assert report.state_for(1) == LoadState.SKIPPED
    assert report.skipped[1] == "unreadable"
    assert report.state_for(2) == LoadState.SHOWN


def test_budget_bytes_are_never_oversubscribed(fake_source):
    images = {image_name(APRIL, day, "png"): (800, 600, 5_000_000) for day in (1, 2, 3)}
    source = fake_source(images)
    index = ImageAvailabilityIndex("/activities", source=source)
    budget = RenderBudget(max_items=15, max_total_bytes=12_000_000)
    report = ThumbnailLoader(source=source).load(APRIL, [1, 2, 3], index, budget)
    assert sorted(report.shown) == [1, 2]
    assert report.skipped == {3: "budget"}
    assert budget.used_bytes == 10_000_000
    assert budget.used_bytes <= budget.max_total_bytes
    assert budget.loaded_count == 2


def test_smaller_image_still_fits_after_a_skip(fake_source):
    images = {
        image_name(APRIL, 1, "png"): (800, 600, 8_000_000),
        image_name(APRIL, 2, "png"): (800, 600, 6_000_000),
        image_name(APRIL, 3, "png"): (800, 600, 3_000_000),
    }
    source = fake_source(images)
    index = ImageAvailabilityIndex("/activities", source=source)
    budget = RenderBudget(max_items=15, max_total_bytes=12_000_000)
    report = ThumbnailLoader(source=source).load(APRIL, [1, 2, 3], index, budget)
    assert sorted(report.shown) == [1, 3]
    assert report.skipped == {2: "budget"}
    assert budget.used_bytes == 11_000_000


def test_item_ceiling_applies_inside_the_loader(fake_source):
    images = {image_name(APRIL, day, "png"): (100, 100, 10) for day in range(1, 6)}
    source = fake_source(images)
    index = ImageAvailabilityIndex("/activities", source=source)
    budget = RenderBudget(max_items=3, max_total_bytes=1_000)
    report = ThumbnailLoader(source=source).load(APRIL, range(1, 6), index, budget)
    assert sorted(report.shown) == [1, 2, 3]
    assert budget.loaded_count == 3


def test_missing_file_between_probe_and_load(fake_source):
    source = fake_source({})
    index = ImageAvailabilityIndex("/activities", source=source)
    report = ThumbnailLoader(source=source).load(APRIL, [7], index, RenderBudget())
    assert report.skipped == {7: "missing"}


def test_loader_passes_computed_sample_size(fake_source):
    name = image_name(APRIL, 9, "png")
    source = fake_source({name: (800, 600, 30_000)})
    index = ImageAvailabilityIndex("/activities", source=source)
    report = LoadReport()
    ThumbnailLoader(source=source).load(APRIL, [9], index, RenderBudget(), report)
    assert source.decoded == [(name, 4)]
    assert report.shown[9].size == (200, 150)


def test_concurrent_commits_respect_the_ceiling():
    budget = RenderBudget(max_items=1000, max_total_bytes=1_000)
    results = []

    def worker():
        for _ in range(50):
            results.append(budget.try_commit(7))

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    assert budget.used_bytes <= budget.max_total_bytes
    assert budget.used_bytes == 7 * sum(results)
    assert budget.loaded_count == sum(results) == 1_000 // 7


SVG = (
    '<svg xmlns="http://www.w3.org/2000/svg" width="800" height="600">'
    '<rect width="800" height="600" fill="red"/></svg>'
)


@pytest.mark.skipif(not thumbnails.SVG_AVAILABLE, reason="cairosvg cannot load cairo")
def test_svg_is_rasterized_at_reduced_size(tmp_path):
    path = tmp_path / "2024-04-12.svg"
    path.write_text(SVG)
    source = ImageSource()
    assert source.decode_bounds(path) == (800, 600)
    assert source.decode(path, 4).size == (200, 150)


def test_svg_without_renderer_is_skipped(tmp_path, monkeypatch):
    monkeypatch.setattr(thumbnails, "SVG_AVAILABLE", False)
    (tmp_path / "2024-04-12.svg").write_text(SVG)
    index = ImageAvailabilityIndex(tmp_path)
    report = ThumbnailLoader().load(APRIL, index.days_with_image(APRIL), index, RenderBudget())
    assert report.skipped == {12: "unreadable"}


def test_svg_size_from_root_attributes():
    assert svg_size({"width": "800", "height": "600px"}) == (800, 600)
    assert svg_size({"width": "1in", "height": "72pt"}) == (96, 96)
    assert svg_size({"viewBox": "0 0 400 300"}) == (400, 300)
    assert svg_size({"width": "100%", "height": "100%", "viewBox": "0,0,40,30"}) == (40, 30)
    assert svg_size({"width": "200", "viewBox": "0 0 40 30"}) == (200, 150)
    with pytest.raises(ValueError):
        svg_size({"width": "auto"})


@pytest.mark.skipif(not thumbnails.SVG_AVAILABLE, reason="cairosvg cannot load cairo")
def test_large_svg_is_only_rendered_at_reduced_size(tmp_path, monkeypatch):
    path = tmp_path / "2024-04-13.svg"
    path.write_text(
        '<svg xmlns="http://www.w3.org/2000/svg" width="4000" height="3000">'
        '<rect width="4000" height="3000" fill="blue"/></svg>'
    )
    calls = []
    real_svg2png = thumbnails.svg2png

    def spy(**kwargs):
        calls.append((kwargs.get("output_width"), kwargs.get("output_height")))
        return real_svg2png(**kwargs)

    monkeypatch.setattr(thumbnails, "svg2png", spy)
    source = ImageSource()
    assert source.decode_bounds(path) == (4000, 3000)
    assert source.decode(path, 8).size == (500, 375)
    assert calls == [(500, 375)]


def test_png_is_shrunk_with_reduce(tmp_path, monkeypatch):
    path = tmp_path / "2024-04-14.png"
    write_png(path, (800, 600))
    factors = []
    real_reduce = Image.Image.reduce

    def spy(self, factor, box=None):
        factors.append(factor)
        return real_reduce(self, factor, box)

    monkeypatch.setattr(Image.Image, "reduce", spy)
    assert ImageSource().decode(path, 4).size == (200, 150)
    assert factors == [4]
