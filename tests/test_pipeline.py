"""End-to-end tests for run_pipeline on synthetic sprites."""

from __future__ import annotations

import numpy as np
import pytest

from pixel_cutout import CutoutConfig, create_pixel_art, run_pipeline
from pixel_cutout.errors import ConfigError, ImageTooSmallError

from conftest import make_red_square


def _assert_binary_alpha(texture: np.ndarray) -> None:
    alphas = set(np.unique(texture[:, :, 3]).tolist())
    assert alphas <= {0, 255}, f"alpha not binary: {sorted(alphas)}"


class TestRedSquare:
    @pytest.mark.parametrize("remove_glow", [True, False])
    def test_cutout_at_64(self, red_square, remove_glow):
        cfg = CutoutConfig(target_size=64, remove_glow=remove_glow)
        result = run_pipeline(red_square, cfg)
        texture = result.texture

        assert texture.shape == (64, 64, 4)
        _assert_binary_alpha(texture)
        for y, x in [(0, 0), (0, 63), (63, 0), (63, 63), (10, 32)]:
            assert texture[y, x, 3] == 0, f"background at ({x},{y}) not transparent"

        opaque = texture[:, :, 3] == 255
        assert opaque[32, 32]
        assert (texture[opaque][:, :3] == (255, 0, 0)).all(), "opaque pixels must stay red"
        # 40px of 100 scaled to 64 covers 25 destination rows/columns
        assert int(opaque.sum()) == 25 * 25

    def test_keeps_source_size(self, red_square):
        result = run_pipeline(red_square, CutoutConfig(target_size=None))
        assert result.texture.shape == (100, 100, 4)
        assert int((result.texture[:, :, 3] == 255).sum()) == 40 * 40

    @pytest.mark.parametrize("size", [16, 32])
    def test_small_textures(self, red_square, size):
        texture = create_pixel_art(red_square, CutoutConfig(target_size=size))
        assert texture.shape == (size, size, 4)
        _assert_binary_alpha(texture)
        assert texture[size // 2, size // 2].tolist() == [255, 0, 0, 255]
        assert texture[0, 0, 3] == 0

    def test_metrics_and_intermediates(self, red_square):
        result = run_pipeline(red_square)
        assert result.metrics["source_size"] == (100, 100)
        assert result.metrics["size"] == (64, 64)
        assert result.metrics["method"] == "sampled"
        assert result.metrics["glow_interior"] > 0
        assert 0.0 < result.metrics["transparent_ratio"] < 1.0
        assert result.mask.shape == (64, 64)
        assert result.prepared.shape == (64, 64, 4)
        assert len(result.samples) == result.metrics["samples"]

    def test_input_untouched(self, red_square):
        before = red_square.copy()
        run_pipeline(red_square)
        np.testing.assert_array_equal(red_square, before)

    def test_enhance(self):
        img = make_red_square()
        img[30:70, 30:70, :3] = (100, 150, 200)
        texture = create_pixel_art(img, CutoutConfig(target_size=None, enhance=True))
        assert texture[50, 50].tolist() == [110, 165, 220, 255]


class TestInputs:
    def test_rgb_input(self, red_square):
        texture = create_pixel_art(red_square[:, :, :3])
        assert texture.shape == (64, 64, 4)
        _assert_binary_alpha(texture)

    def test_random_noise_still_binary(self):
        rng = np.random.RandomState(0)
        img = rng.randint(0, 256, (40, 30, 4)).astype(np.uint8)
        _assert_binary_alpha(create_pixel_art(img))

    def test_empty_image(self):
        with pytest.raises(ImageTooSmallError):
            run_pipeline(np.zeros((0, 0, 4), dtype=np.uint8))

    def test_invalid_config(self, red_square):
        with pytest.raises(ConfigError):
            run_pipeline(red_square, CutoutConfig(method="magic"))

    @pytest.mark.parametrize("method", ["corner", "flood"])
    def test_alternative_methods(self, red_square, method):
        texture = create_pixel_art(red_square, CutoutConfig(method=method))
        _assert_binary_alpha(texture)
        assert texture[0, 0, 3] == 0
        assert texture[32, 32].tolist() == [255, 0, 0, 255]


class TestPrecutInput:
    def _outlined_sprite(self) -> np.ndarray:
        """Already transparent canvas; blue sprite with a near-black outline."""
        img = np.zeros((20, 20, 4), dtype=np.uint8)
        img[5:15, 5:15] = (10, 10, 10, 255)
        img[6:14, 6:14] = (0, 0, 200, 255)
        return img

    def test_skip_transparent_keeps_dark_outline(self):
        cfg = CutoutConfig(target_size=None, remove_glow=False,
                           skip_transparent_samples=True)
        result = run_pipeline(self._outlined_sprite(), cfg)
        assert result.samples == []
        assert result.texture[5, 5].tolist() == [10, 10, 10, 255]
        assert result.texture[10, 10].tolist() == [0, 0, 200, 255]
        assert result.texture[0, 0].tolist() == [0, 0, 0, 0]
        _assert_binary_alpha(result.texture)

    def test_default_samples_transparent_black(self):
        cfg = CutoutConfig(target_size=None, remove_glow=False)
        result = run_pipeline(self._outlined_sprite(), cfg)
        assert result.samples == [(0, 0, 0)]
