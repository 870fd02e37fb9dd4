"""Visual QC output for cut-out textures.

Generates inspection-friendly images:
  - Blown-up texture on a checkerboard with a pixel grid overlay
  - Background mask tinted over the prepared image
  - Side-by-side panel: prepared | mask overlay | final texture, plus metrics
"""

import logging
from pathlib import Path
from typing import Optional, Tuple, Union

import cv2
import numpy as np

from .cutout import CutoutResult
from .files import save_png

logger = logging.getLogger(__name__)

GRID_COLOR = (90, 90, 90)
MASK_COLOR = (255, 0, 255)
MASK_ALPHA = 0.55
CHECKER_LIGHT = 204
CHECKER_DARK = 153


def render_checkerboard(height: int, width: int, cell: int = 8) -> np.ndarray:
    """RGB checkerboard used to show transparency."""
    ys, xs = np.indices((height, width))
    light = ((ys // cell) + (xs // cell)) % 2 == 0
    board = np.where(light, CHECKER_LIGHT, CHECKER_DARK).astype(np.uint8)
    return np.dstack([board, board, board])


def composite_on_checkerboard(image: np.ndarray, cell: int = 8) -> np.ndarray:
    """Alpha-composite an RGBA array over a checkerboard; returns RGB."""
    h, w = image.shape[:2]
    board = render_checkerboard(h, w, cell).astype(np.float32)
    if image.shape[2] < 4:
        return image[:, :, :3].copy()
    alpha = image[:, :, 3:4].astype(np.float32) / 255.0
    rgb = image[:, :, :3].astype(np.float32)
    return (rgb * alpha + board * (1 - alpha)).astype(np.uint8)


def render_texture_grid(
    texture: np.ndarray,
    scale: int = 16,
    grid_color: Tuple[int, int, int] = GRID_COLOR,
    grid_width: int = 1,
) -> np.ndarray:
    """Blow up a texture, show transparency as a checkerboard, overlay a pixel grid.

    Args:
        texture: RGBA texture (H x W x 4) or RGB.
        scale: How much to magnify each pixel.
        grid_color: RGB colour for the grid lines.
        grid_width: Width of grid lines in output pixels.

    Returns:
        RGB numpy array of the blown-up image with grid overlay.
    """
    h, w = texture.shape[:2]
    big = cv2.resize(texture, (w * scale, h * scale), interpolation=cv2.INTER_NEAREST)
    big_rgb = composite_on_checkerboard(big, cell=max(2, scale // 2))

    if grid_width > 0 and scale >= 4:
        out_h, out_w = big_rgb.shape[:2]
        for y in range(0, out_h + 1, scale):
            y_clamped = min(y, out_h - 1)
            big_rgb[max(0, y_clamped - grid_width + 1):y_clamped + 1, :] = grid_color
        for x in range(0, out_w + 1, scale):
            x_clamped = min(x, out_w - 1)
            big_rgb[:, max(0, x_clamped - grid_width + 1):x_clamped + 1] = grid_color

    return big_rgb


def render_mask_overlay(
    image: np.ndarray,
    mask: np.ndarray,
    color: Tuple[int, int, int] = MASK_COLOR,
    opacity: float = MASK_ALPHA,
) -> np.ndarray:
    """Tint background-masked pixels of ``image``; returns RGB."""
    rgb = composite_on_checkerboard(image) if image.shape[2] == 4 else image[:, :, :3].copy()
    tint = np.zeros_like(rgb)
    tint[:] = color
    blended = cv2.addWeighted(rgb, 1.0 - opacity, tint, opacity, 0)
    rgb[mask] = blended[mask]
    return rgb


def render_preview_panel(
    result: CutoutResult,
    source_name: str = "",
    max_panel_height: int = 512,
) -> np.ndarray:
    """Create a full QC panel: prepared | mask overlay | final texture | metrics bar."""
    h, w = result.texture.shape[:2]
    scale = max(1, min(32, max_panel_height // max(h, w, 1)))

    def enlarge(img: np.ndarray) -> np.ndarray:
        return cv2.resize(img, (w * scale, h * scale), interpolation=cv2.INTER_NEAREST)

    prepared_panel = enlarge(composite_on_checkerboard(result.prepared))
    mask_panel = enlarge(render_mask_overlay(result.prepared, result.mask))
    texture_panel = render_texture_grid(result.texture, scale=scale)

    panel_h = prepared_panel.shape[0]
    sep = np.full((panel_h, 3, 3), 128, dtype=np.uint8)
    composite = np.hstack([prepared_panel, sep, mask_panel, sep, texture_panel])

    bar_h = 60
    bar = np.full((bar_h, composite.shape[1], 3), 30, dtype=np.uint8)
    metrics = result.metrics
    src_w, src_h = metrics.get("source_size", (w, h))
    lines = [
        f"{source_name}  |  {src_w}x{src_h} -> {w}x{h}  |  method: {metrics.get('method', '?')}"
        f"  |  samples: {metrics.get('samples', len(result.samples))}",
        f"transparent: {metrics.get('transparent_ratio', 0.0) * 100:.1f}%  |  "
        f"glow edge/interior: {metrics.get('glow_edge', 0)}/{metrics.get('glow_interior', 0)}"
        f"  |  fringe reclaimed: {metrics.get('fringe_reclaimed', 0)}",
    ]
    for i, line in enumerate(lines):
        cv2.putText(bar, line, (10, 18 + i * 22), cv2.FONT_HERSHEY_SIMPLEX,
                    0.45, (220, 220, 220), 1, cv2.LINE_AA)

    return np.vstack([composite, bar])


def save_preview(
    result: CutoutResult,
    output_path: Union[str, Path],
    source_name: Optional[str] = None,
) -> Path:
    """Generate and save a QC panel image.

    Returns the output path.
    """
    name = source_name if source_name is not None else Path(output_path).stem
    panel = render_preview_panel(result, source_name=name)
    rgba = np.dstack([panel, np.full(panel.shape[:2], 255, dtype=np.uint8)])
    written = save_png(rgba, output_path)
    logger.debug("Preview saved: %s", written)
    return written
