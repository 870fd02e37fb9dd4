"""Command line interface for turning generated images into game textures.

Usage:
    pixel-cutout process  <input> -o <output.png>  [--size 16|32|64] [--no-glow] [--preview <panel.png>]
    pixel-cutout batch    <inputs...> -o <dir>     [--workers 4] [--recursive]
    pixel-cutout optimize <input> -o <output.png>  [--size 64]
    pixel-cutout deglow   <input> -o <output.png>
    pixel-cutout preview  <input> -o <panel.png>

Each subcommand maps onto a library call:
  process  -- full pipeline: resize, glow removal, background cutout, binary alpha
  batch    -- process many images in parallel into <dir>/<stem>_no_bg.png
  optimize -- resize an image that already has alpha and snap alpha at 128
  deglow   -- glow removal only
  preview  -- render a QC panel (prepared | mask | texture) without saving the texture
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .batch import DEFAULT_WORKERS, gather_images, process_batch
from .config import MASK_METHODS, TEXTURE_SIZES, CutoutConfig
from .errors import CutoutError
from .files import optimize_file, process_image, remove_glow_file, save_png
from .preview import save_preview

logger = logging.getLogger("pixel_cutout")


def _setup_logging(debug: bool = False):
    level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _build_config(args) -> CutoutConfig:
    """Start from --config (or defaults) and apply explicit flag overrides."""
    if args.config:
        cfg = CutoutConfig.from_json(args.config)
    else:
        cfg = CutoutConfig()

    if args.no_resize:
        cfg.target_size = None
    elif args.size is not None:
        cfg.target_size = args.size
    if args.no_glow:
        cfg.remove_glow = False
    if args.method is not None:
        cfg.method = args.method
    if args.threshold is not None:
        cfg.color_threshold = args.threshold
    if args.edge_threshold is not None:
        cfg.edge_threshold = args.edge_threshold
    if args.no_fringe:
        cfg.reclaim_fringe = False
    if args.skip_transparent:
        cfg.skip_transparent_samples = True
    if args.enhance:
        cfg.enhance = True
    return cfg.validate()


# ---- Subcommand: process ----

def cmd_process(args):
    cfg = _build_config(args)
    result = process_image(args.input, cfg)
    written = save_png(result.texture, args.output)
    if args.preview:
        save_preview(result, args.preview, source_name=Path(args.input).name)
    logger.info("Processed %s -> %s", args.input, written)
    return 0


# ---- Subcommand: batch ----

def cmd_batch(args):
    cfg = _build_config(args)
    images = gather_images(args.inputs, recursive=args.recursive)
    if not images:
        logger.error("No images found in %s", args.inputs)
        return 1

    results = process_batch(images, args.output, cfg, max_workers=args.workers)
    failed = [r for r in results if not r.ok]
    for r in failed:
        logger.error("  %s: %s", r.input_path.name, r.error)
    return 1 if failed else 0


# ---- Subcommand: optimize ----

def cmd_optimize(args):
    size = args.size if args.size is not None else TEXTURE_SIZES[-1]
    written = optimize_file(args.input, args.output, size=size)
    logger.info("Optimized %s -> %s (%dx%d)", args.input, written, size, size)
    return 0


# ---- Subcommand: deglow ----

def cmd_deglow(args):
    cfg = _build_config(args)
    written = remove_glow_file(args.input, args.output, cfg)
    logger.info("Glow removed %s -> %s", args.input, written)
    return 0


# ---- Subcommand: preview ----

def cmd_preview(args):
    cfg = _build_config(args)
    result = process_image(args.input, cfg)
    save_preview(result, args.output, source_name=Path(args.input).name)
    return 0


def _add_pipeline_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--size", type=int, choices=TEXTURE_SIZES, default=None,
                        help="Square texture size (default: 64)")
    parser.add_argument("--no-resize", action="store_true",
                        help="Keep the source dimensions")
    parser.add_argument("--no-glow", action="store_true",
                        help="Skip glow removal")
    parser.add_argument("--method", choices=MASK_METHODS, default=None,
                        help="Background mask strategy (default: sampled)")
    parser.add_argument("--threshold", type=float, default=None,
                        help="Colour similarity threshold, RGB distance (default: 30)")
    parser.add_argument("--edge-threshold", type=float, default=None,
                        help="Sobel magnitude that protects a pixel (default: 50)")
    parser.add_argument("--no-fringe", action="store_true",
                        help="Do not reclaim the background ring next to strong edges")
    parser.add_argument("--skip-transparent", action="store_true",
                        help="Ignore fully transparent border pixels when sampling the background")
    parser.add_argument("--enhance", action="store_true",
                        help="Boost contrast of the finished texture")
    parser.add_argument("--config", default=None,
                        help="JSON file with CutoutConfig fields")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pixel-cutout",
        description="Cut AI-generated sprites into transparent pixel art textures",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    # -- process --
    p_process = sub.add_parser("process", help="Run the full cutout pipeline on one image")
    p_process.add_argument("input", help="Source image (PNG/JPEG)")
    p_process.add_argument("-o", "--output", required=True, help="Output PNG path")
    p_process.add_argument("--preview", default=None,
                           help="Also write a QC panel to this path")
    _add_pipeline_args(p_process)
    p_process.set_defaults(func=cmd_process)

    # -- batch --
    p_batch = sub.add_parser("batch", help="Process many images in parallel")
    p_batch.add_argument("inputs", nargs="+", help="Image files or directories")
    p_batch.add_argument("-o", "--output", required=True, help="Output directory")
    p_batch.add_argument("--workers", type=int, default=DEFAULT_WORKERS,
                         help=f"Worker threads (default: {DEFAULT_WORKERS})")
    p_batch.add_argument("--recursive", "-r", action="store_true",
                         help="Walk input directories recursively")
    _add_pipeline_args(p_batch)
    p_batch.set_defaults(func=cmd_batch)

    # -- optimize --
    p_opt = sub.add_parser("optimize",
                           help="Resize a texture with alpha and snap alpha at 128")
    p_opt.add_argument("input", help="Source image")
    p_opt.add_argument("-o", "--output", required=True, help="Output PNG path")
    p_opt.add_argument("--size", type=int, choices=TEXTURE_SIZES, default=None,
                       help="Square texture size (default: 64)")
    p_opt.set_defaults(func=cmd_optimize)

    # -- deglow --
    p_deglow = sub.add_parser("deglow", help="Only remove glow halos")
    p_deglow.add_argument("input", help="Source image")
    p_deglow.add_argument("-o", "--output", required=True, help="Output PNG path")
    _add_pipeline_args(p_deglow)
    p_deglow.set_defaults(func=cmd_deglow)

    # -- preview --
    p_preview = sub.add_parser("preview", help="Render a QC panel for one image")
    p_preview.add_argument("input", help="Source image")
    p_preview.add_argument("-o", "--output", required=True, help="Output panel PNG path")
    _add_pipeline_args(p_preview)
    p_preview.set_defaults(func=cmd_preview)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    _setup_logging(args.debug)
    try:
        return args.func(args)
    except CutoutError as exc:
        logger.error("%s", exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())
