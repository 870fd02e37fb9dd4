"""Decode source images and write finished textures as PNG."""

import logging
from io import BytesIO
from pathlib import Path
from typing import BinaryIO, Optional, Union

import numpy as np
from PIL import Image

from .config import CutoutConfig
from .cutout import CutoutResult, optimize_texture, remove_glow, run_pipeline
from .errors import DecodeError, ImageTooSmallError, OutputWriteError

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = {".png", ".jpg", ".jpeg", ".bmp", ".gif", ".webp"}

# Generated art is at most a few megapixels; anything larger is refused
# before Pillow allocates the full bitmap.
MAX_DECODE_PIXELS = 4096 * 4096

ImageSource = Union[str, Path, bytes, bytearray, BinaryIO]


def decode_image(source: ImageSource) -> np.ndarray:
    """Decode a path, byte buffer or binary stream into an RGBA array.

    Raises:
        DecodeError: missing/empty input, or bytes that are not an image.
        ImageTooSmallError: the decoded image has no pixels.
    """
    if isinstance(source, (bytes, bytearray, memoryview)):
        data = bytes(source)
        name = "<buffer>"
        if not data:
            raise DecodeError("Empty image buffer")
        stream: Union[Path, BinaryIO] = BytesIO(data)
    elif isinstance(source, (str, Path)):
        path = Path(source)
        name = str(path)
        if not path.is_file():
            raise DecodeError(f"Input image not found: {path}")
        if path.stat().st_size == 0:
            raise DecodeError(f"Empty image file: {path}")
        stream = path
    else:
        name = getattr(source, "name", "<stream>")
        stream = source

    try:
        with Image.open(stream) as pil:
            w, h = pil.size
            if w * h > MAX_DECODE_PIXELS:
                raise DecodeError(f"{name} is too large to decode ({w}x{h})")
            pil.load()
            rgba = np.array(pil.convert("RGBA"))
    except DecodeError:
        raise
    except (OSError, ValueError, SyntaxError, Image.DecompressionBombError) as exc:
        raise DecodeError(f"Cannot decode {name}: {exc}") from exc

    if rgba.shape[0] == 0 or rgba.shape[1] == 0:
        raise ImageTooSmallError(rgba.shape[1], rgba.shape[0])
    logger.debug("Decoded %s (%dx%d)", name, rgba.shape[1], rgba.shape[0])
    return rgba


def encode_png(image: np.ndarray) -> bytes:
    """Encode an RGBA array as PNG bytes."""
    buffer = BytesIO()
    Image.fromarray(np.ascontiguousarray(image)).save(buffer, format="PNG")
    return buffer.getvalue()


def png_path(path: Union[str, Path]) -> Path:
    """Force a ``.png`` suffix; textures always need lossless alpha."""
    out = Path(path)
    if out.suffix.lower() != ".png":
        out = out.with_suffix(".png")
    return out


def save_png(image: np.ndarray, path: Union[str, Path]) -> Path:
    """Write ``image`` as PNG, creating parent directories.

    The file is encoded in memory first so a failure never leaves a
    half-written texture behind.  Returns the path actually written.
    """
    out = png_path(path)
    data = encode_png(image)
    try:
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_bytes(data)
    except OSError as exc:
        raise OutputWriteError(f"Cannot write {out}: {exc}") from exc
    logger.info("Texture saved: %s", out)
    return out


def process_file(
    input_path: ImageSource,
    output_path: Union[str, Path],
    config: Optional[CutoutConfig] = None,
) -> Path:
    """Decode, run the full cutout pipeline and save the PNG texture."""
    result = process_image(input_path, config)
    return save_png(result.texture, output_path)


def process_image(
    source: ImageSource,
    config: Optional[CutoutConfig] = None,
) -> CutoutResult:
    """Decode ``source`` and run the pipeline without touching the disk."""
    image = decode_image(source)
    return run_pipeline(image, config)


def remove_glow_file(
    input_path: ImageSource,
    output_path: Union[str, Path],
    config: Optional[CutoutConfig] = None,
) -> Path:
    """Only strip glow halos, keeping size and background."""
    image = decode_image(input_path)
    return save_png(remove_glow(image, config), output_path)


def optimize_file(
    input_path: ImageSource,
    output_path: Union[str, Path],
    size: int = 64,
) -> Path:
    """Resize an already-cut texture and snap its alpha at 128."""
    image = decode_image(input_path)
    return save_png(optimize_texture(image, size), output_path)
