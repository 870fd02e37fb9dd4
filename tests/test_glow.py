"""Tests for HSB conversion and glow suppression."""

from __future__ import annotations

import numpy as np
import pytest

from pixel_cutout.config import CutoutConfig
from pixel_cutout.cutout import (
    find_alpha_boundary,
    find_glow_candidates,
    find_gradient_pixels,
    hsb_to_rgb,
    remove_glow,
    rgb_to_hsb,
)


def _half_transparent(size: int = 5) -> np.ndarray:
    """Left two columns transparent black, the rest opaque mid blue."""
    img = np.zeros((size, size, 4), dtype=np.uint8)
    img[:, 2:, :3] = (30, 60, 120)
    img[:, 2:, 3] = 255
    return img


# ---------------------------------------------------------------------------
# Tests: colour model
# ---------------------------------------------------------------------------

class TestHsb:
    def test_primary_and_gray_round_trip(self):
        rgb = np.array([[255, 0, 0], [0, 0, 255], [128, 128, 128]], dtype=np.uint8)
        hue, sat, bri = rgb_to_hsb(rgb)
        assert hue[0] == pytest.approx(0.0)
        assert hue[1] == pytest.approx(4.0 / 6.0)
        assert sat[2] == 0.0
        np.testing.assert_array_equal(hsb_to_rgb(hue, sat, bri), rgb)

    def test_achromatic_hue_is_zero(self):
        hue, sat, bri = rgb_to_hsb(np.array([[255, 255, 255], [0, 0, 0]]))
        assert hue.tolist() == [0.0, 0.0]
        assert sat.tolist() == [0.0, 0.0]
        assert bri.tolist() == [1.0, 0.0]

    def test_brightness_rounds_half_up(self):
        out = hsb_to_rgb(np.array([0.0]), np.array([0.0]), np.array([0.7]))
        assert out.tolist() == [[179, 179, 179]]


# ---------------------------------------------------------------------------
# Tests: detectors
# ---------------------------------------------------------------------------

class TestDetectors:
    def test_gradient_stripes(self):
        hue = np.full((6, 6), 0.5)
        bri = np.tile([0.2, 0.8], (6, 3))
        assert find_gradient_pixels(hue, bri).all()

    def test_flat_region_is_not_gradient(self):
        hue = np.full((6, 6), 0.5)
        bri = np.full((6, 6), 0.5)
        assert not find_gradient_pixels(hue, bri).any()

    def test_hue_change_is_not_gradient(self):
        hue = np.tile([0.1, 0.6], (6, 3))
        bri = np.tile([0.2, 0.8], (6, 3))
        assert not find_gradient_pixels(hue, bri).any()

    def test_single_pixel_has_no_neighbours(self):
        assert not find_gradient_pixels(np.zeros((1, 1)), np.zeros((1, 1))).any()

    def test_alpha_boundary(self):
        boundary = find_alpha_boundary(_half_transparent())
        assert boundary[:, 1].all() and boundary[:, 2].all()
        assert not boundary[:, 0].any()
        assert not boundary[:, 3:].any()

    def test_bright_washed_out_is_candidate(self):
        img = _half_transparent()
        img[2, 3, :3] = (242, 230, 218)
        candidates = find_glow_candidates(img)
        assert candidates[2, 3]
        assert not candidates[0, 4]


# ---------------------------------------------------------------------------
# Tests: suppression
# ---------------------------------------------------------------------------

class TestRemoveGlow:
    def test_edge_glow_becomes_transparent(self):
        img = _half_transparent()
        # brightness ~0.95, saturation ~0.1, sitting on the alpha boundary
        img[2, 2, :3] = (242, 230, 218)
        out = remove_glow(img)
        assert out[2, 2].tolist() == [0, 0, 0, 0]

    def test_interior_glow_is_dimmed(self):
        img = np.full((5, 5, 4), 255, dtype=np.uint8)
        out = remove_glow(img)
        assert (out[:, :, :3] == 179).all()
        assert (out[:, :, 3] == 255).all(), "dimming keeps alpha"

    def test_dim_floor(self):
        cfg = CutoutConfig(glow_dim_factor=0.1, glow_min_brightness=0.3)
        out = remove_glow(np.full((3, 3, 4), 255, dtype=np.uint8), cfg)
        assert (out[:, :, :3] == 77).all()

    def test_saturated_pixels_untouched(self):
        img = np.zeros((4, 4, 4), dtype=np.uint8)
        img[:, :] = (200, 20, 20, 255)
        np.testing.assert_array_equal(remove_glow(img), img)

    def test_input_not_modified(self):
        img = np.full((4, 4, 4), 255, dtype=np.uint8)
        before = img.copy()
        remove_glow(img)
        np.testing.assert_array_equal(img, before)

    def test_dimmed_glow_keeps_partial_alpha(self):
        img = np.full((4, 4, 4), 255, dtype=np.uint8)
        img[:, :, 3] = 60
        out = remove_glow(img)
        assert (out[:, :, :3] == 179).all()
        assert (out[:, :, 3] == 60).all()
