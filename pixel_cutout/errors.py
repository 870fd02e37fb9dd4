"""Exception types raised by the cutout pipeline."""


class CutoutError(Exception):
    """Base class for every failure the pipeline reports."""


class DecodeError(CutoutError):
    """Input bytes could not be decoded as a raster image."""


class OutputWriteError(CutoutError):
    """The processed texture could not be written to disk."""


class ImageTooSmallError(CutoutError):
    """Image has no pixels to sample a background from."""

    def __init__(self, width: int, height: int):
        super().__init__(f"Image too small: {width}x{height}")
        self.width = width
        self.height = height


class ConfigError(CutoutError):
    """A configuration value is out of range."""
