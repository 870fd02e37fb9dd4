"""Public interface for the pixel cutout toolkit.

Turns AI-generated sprites on flat backgrounds into square pixel-art
textures with a hard binary alpha channel.
"""

from __future__ import annotations

from .batch import BatchResult, gather_images, process_batch
from .config import TEXTURE_SIZES, CutoutConfig
from .cutout import (
    CutoutResult,
    build_background_mask,
    create_pixel_art,
    optimize_texture,
    remove_glow,
    run_pipeline,
)
from .errors import (
    ConfigError,
    CutoutError,
    DecodeError,
    ImageTooSmallError,
    OutputWriteError,
)
from .files import decode_image, optimize_file, process_file, process_image, save_png

__all__ = [
    "BatchResult",
    "ConfigError",
    "CutoutConfig",
    "CutoutError",
    "CutoutResult",
    "DecodeError",
    "ImageTooSmallError",
    "OutputWriteError",
    "TEXTURE_SIZES",
    "build_background_mask",
    "create_pixel_art",
    "decode_image",
    "gather_images",
    "optimize_file",
    "optimize_texture",
    "process_batch",
    "process_file",
    "process_image",
    "remove_glow",
    "run_pipeline",
    "save_png",
]
