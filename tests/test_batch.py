"""Tests for input gathering and parallel batch processing."""

from __future__ import annotations

from PIL import Image

from pixel_cutout.batch import (
    assign_output_paths,
    default_output_name,
    gather_images,
    process_batch,
)
from pixel_cutout.config import CutoutConfig

from conftest import make_red_square


def _populate(directory):
    directory.mkdir(parents=True, exist_ok=True)
    for name in ("b.png", "a.png"):
        Image.fromarray(make_red_square()).save(directory / name)
    (directory / "broken.png").write_bytes(b"")
    (directory / "notes.txt").write_text("not an image")


class TestGather:
    def test_directory_sorted_and_filtered(self, tmp_path):
        _populate(tmp_path / "in")
        names = [p.name for p in gather_images([tmp_path / "in"])]
        assert names == ["a.png", "b.png", "broken.png"]

    def test_duplicates_and_missing(self, tmp_path):
        _populate(tmp_path / "in")
        a = tmp_path / "in" / "a.png"
        found = gather_images([a, tmp_path / "in", tmp_path / "missing.png"])
        assert [p.name for p in found].count("a.png") == 1

    def test_unsupported_file_skipped(self, tmp_path):
        _populate(tmp_path / "in")
        assert gather_images([tmp_path / "in" / "notes.txt"]) == []

    def test_recursive(self, tmp_path):
        _populate(tmp_path / "in" / "nested")
        assert gather_images([tmp_path / "in"]) == []
        assert len(gather_images([tmp_path / "in"], recursive=True)) == 3


class TestProcessBatch:
    def test_order_and_failures(self, tmp_path):
        src = tmp_path / "in"
        _populate(src)
        inputs = [src / "b.png", src / "broken.png", src / "a.png"]

        results = process_batch(inputs, tmp_path / "out", CutoutConfig(target_size=16),
                                max_workers=3)

        assert [r.input_path.name for r in results] == ["b.png", "broken.png", "a.png"]
        assert results[0].ok and results[2].ok
        assert not results[1].ok
        assert results[1].output_path is None
        assert results[1].error
        assert (tmp_path / "out" / "a_no_bg.png").exists()
        assert (tmp_path / "out" / "b_no_bg.png").exists()
        assert not (tmp_path / "out" / "broken_no_bg.png").exists()

    def test_empty_batch(self, tmp_path):
        assert process_batch([], tmp_path / "out") == []
        assert not (tmp_path / "out").exists()

    def test_default_output_name(self):
        assert default_output_name("/x/sword.jpg") == "sword_no_bg.png"

    def test_same_stem_inputs_get_distinct_outputs(self, tmp_path):
        first = tmp_path / "a" / "sword.png"
        second = tmp_path / "b" / "sword.png"
        for path in (first, second):
            path.parent.mkdir(parents=True)
            Image.fromarray(make_red_square()).save(path)

        results = process_batch([first, second], tmp_path / "out",
                                 CutoutConfig(target_size=16), max_workers=2)

        assert all(r.ok for r in results)
        outputs = [r.output_path for r in results]
        assert len(set(outputs)) == 2, "each input needs its own texture"
        assert [p.name for p in outputs] == ["sword_no_bg.png", "sword_no_bg_1.png"]
        for path in outputs:
            assert path.exists()


class TestAssignOutputPaths:
    def test_unique_names_untouched(self, tmp_path):
        targets = assign_output_paths([tmp_path / "a.png", tmp_path / "b.jpg"], tmp_path)
        assert [t.name for t in targets] == ["a_no_bg.png", "b_no_bg.png"]

    def test_extension_and_case_collisions(self, tmp_path):
        paths = [tmp_path / "x.png", tmp_path / "x.jpg", tmp_path / "X.webp"]
        targets = assign_output_paths(paths, tmp_path / "out")
        assert [t.name for t in targets] == ["x_no_bg.png", "x_no_bg_1.png", "X_no_bg_2.png"]
        assert all(t.parent == tmp_path / "out" for t in targets)
