"""Cutout configuration: texture sizes, mask strategies, tunable thresholds."""

import json
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional, Tuple, Union

from .errors import ConfigError


# ---------------------------------------------------------------------------
# Square texture sizes the game accepts
# ---------------------------------------------------------------------------
TEXTURE_SIZES: Tuple[int, ...] = (16, 32, 64)
DEFAULT_TEXTURE_SIZE = 64

# sampled: corner/edge samples + Sobel refinement + morphology
# corner:  single dominant corner colour
# flood:   corner flood fill over similar pixels
MASK_METHODS: Tuple[str, ...] = ("sampled", "corner", "flood")

# Sentinel accepted by from_dict / the CLI for "keep the source size"
NO_RESIZE = "none"

_BOOL_FIELDS = ("remove_glow", "reclaim_fringe", "enhance", "skip_transparent_samples")
_INT_FIELDS = ("target_size", "corner_threshold", "alpha_cutoff", "edge_alpha")


@dataclass
class CutoutConfig:
    """Every knob of the background / glow cleanup pipeline.

    The glow heuristics are empirical defaults tuned on AI-generated item
    sprites. They are not optimal for every art style, so all of them are
    exposed here rather than baked into the stages.
    """

    # Stages
    target_size: Optional[int] = DEFAULT_TEXTURE_SIZE   # None = keep source size
    remove_glow: bool = True
    method: str = "sampled"
    reclaim_fringe: bool = True
    enhance: bool = False

    # Background mask
    color_threshold: float = 30.0      # Euclidean RGB distance (sampled)
    corner_threshold: int = 30         # Manhattan RGB distance (corner/flood)
    edge_threshold: float = 50.0       # Sobel magnitude
    fringe_tolerance: float = 8.0      # Euclidean distance for fringe reclaim
    skip_transparent_samples: bool = False  # ignore alpha-0 sample points

    # Alpha
    alpha_cutoff: int = 10             # below this -> fully transparent

    # Glow heuristics (HSB, all in 0..1)
    glow_brightness: float = 0.8
    glow_saturation: float = 0.3
    gradient_hue_delta: float = 0.1
    gradient_brightness_delta: float = 0.1
    edge_alpha: int = 128
    glow_dim_factor: float = 0.7
    glow_min_brightness: float = 0.3

    # Enhancement
    contrast_factor: float = 1.1

    def _check_types(self) -> None:
        for f in fields(self):
            value = getattr(self, f.name)
            if f.name == "target_size" and value is None:
                continue
            if f.name in _BOOL_FIELDS:
                ok = isinstance(value, bool)
                expected = "a boolean"
            elif f.name == "method":
                ok = isinstance(value, str)
                expected = "a string"
            elif f.name in _INT_FIELDS:
                ok = isinstance(value, int) and not isinstance(value, bool)
                expected = "an integer"
            else:
                ok = isinstance(value, (int, float)) and not isinstance(value, bool)
                expected = "a number"
            if not ok:
                raise ConfigError(f"{f.name} must be {expected}, got {value!r}")

    def validate(self) -> "CutoutConfig":
        """Raise ConfigError for wrongly typed or out-of-range values; returns self."""
        self._check_types()
        if self.target_size is not None and self.target_size < 1:
            raise ConfigError(f"target_size must be positive, got {self.target_size}")
        if self.method not in MASK_METHODS:
            raise ConfigError(
                f"method must be one of {', '.join(MASK_METHODS)}, got {self.method!r}"
            )
        for name in ("color_threshold", "edge_threshold", "fringe_tolerance",
                     "contrast_factor", "glow_dim_factor"):
            if getattr(self, name) < 0:
                raise ConfigError(f"{name} must be >= 0, got {getattr(self, name)}")
        if self.corner_threshold < 0:
            raise ConfigError(f"corner_threshold must be >= 0, got {self.corner_threshold}")
        if not 0 <= self.alpha_cutoff <= 255:
            raise ConfigError(f"alpha_cutoff must be in 0..255, got {self.alpha_cutoff}")
        if not 0 <= self.edge_alpha <= 255:
            raise ConfigError(f"edge_alpha must be in 0..255, got {self.edge_alpha}")
        for name in ("glow_brightness", "glow_saturation", "gradient_hue_delta",
                     "gradient_brightness_delta", "glow_min_brightness"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ConfigError(f"{name} must be in 0..1, got {value}")
        return self

    def to_dict(self) -> dict:
        d = {}
        for f in fields(self):
            d[f.name] = getattr(self, f.name)
        if d["target_size"] is None:
            d["target_size"] = NO_RESIZE
        return d

    @classmethod
    def from_dict(cls, d: dict) -> "CutoutConfig":
        d = dict(d)
        if d.get("target_size") == NO_RESIZE:
            d["target_size"] = None
        unknown = sorted(k for k in d if k not in cls.__dataclass_fields__)
        if unknown:
            raise ConfigError(f"Unknown config keys: {', '.join(unknown)}")
        return cls(**d).validate()

    @classmethod
    def from_json(cls, path: Union[str, Path]) -> "CutoutConfig":
        try:
            with open(path, encoding="utf-8") as handle:
                data = json.load(handle)
        except (OSError, json.JSONDecodeError) as exc:
            raise ConfigError(f"Cannot read config {path}: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigError(f"Config {path} must contain a JSON object")
        return cls.from_dict(data)
