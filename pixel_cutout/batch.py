"""Run the cutout pipeline over many images on a worker pool.

Every invocation owns its own arrays, so images are processed on plain
threads without locking.  A failure in one image is recorded in its
BatchResult and never stops the others.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Union

from .config import CutoutConfig
from .errors import CutoutError
from .files import IMAGE_EXTENSIONS, process_file

logger = logging.getLogger(__name__)

DEFAULT_WORKERS = 4
OUTPUT_SUFFIX = "_no_bg"


@dataclass
class BatchResult:
    """Outcome for a single input of a batch run."""
    input_path: Path
    output_path: Optional[Path] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def default_output_name(path: Union[str, Path]) -> str:
    return f"{Path(path).stem}{OUTPUT_SUFFIX}.png"


def gather_images(sources: Sequence[Union[str, Path]], recursive: bool = False) -> List[Path]:
    """Collect image files from file and directory arguments, sorted, no duplicates."""
    seen: set = set()
    images: List[Path] = []

    for source in sources:
        source = Path(source)
        if source.is_dir():
            iterator: Iterable[Path]
            iterator = source.rglob("*") if recursive else source.iterdir()
            candidates = [p for p in iterator if p.is_file()]
        elif source.is_file():
            candidates = [source]
        else:
            logger.warning("Input path not found: %s", source)
            continue

        for candidate in candidates:
            if candidate.suffix.lower() not in IMAGE_EXTENSIONS:
                if candidate == source:
                    logger.warning("Skipping unsupported file: %s", source)
                continue
            resolved = candidate.resolve()
            if resolved in seen:
                continue
            seen.add(resolved)
            images.append(resolved)

    images.sort()
    return images


def assign_output_paths(paths: Sequence[Path], output_dir: Path) -> List[Path]:
    """One distinct target per input.

    Inputs sharing a stem (``a/sword.png`` and ``b/sword.png``, or ``x.png``
    and ``x.jpg``) would map to the same file, so later ones get a numeric
    suffix: ``sword_no_bg.png``, ``sword_no_bg_1.png``, ...  Names are
    compared case-insensitively.
    """
    taken: set = set()
    targets: List[Path] = []
    for path in paths:
        name = default_output_name(path)
        target = output_dir / name
        counter = 1
        while target.name.lower() in taken:
            target = output_dir / f"{Path(name).stem}_{counter}.png"
            counter += 1
        taken.add(target.name.lower())
        targets.append(target)
    return targets


def _process_one(path: Path, target: Path, cfg: CutoutConfig) -> BatchResult:
    try:
        written = process_file(path, target, cfg)
    except CutoutError as exc:
        logger.warning("Failed to process %s: %s", path.name, exc)
        return BatchResult(input_path=path, error=str(exc))
    return BatchResult(input_path=path, output_path=written)


def process_batch(
    inputs: Sequence[Union[str, Path]],
    output_dir: Union[str, Path],
    config: Optional[CutoutConfig] = None,
    max_workers: int = DEFAULT_WORKERS,
) -> List[BatchResult]:
    """Process every input into ``output_dir/<stem>_no_bg.png``.

    Colliding names are made unique with assign_output_paths.  Returns one
    BatchResult per input, in input order.
    """
    cfg = (config or CutoutConfig()).validate()
    paths = [Path(p) for p in inputs]
    if not paths:
        return []

    out_dir = Path(output_dir)
    targets = assign_output_paths(paths, out_dir)
    results: List[Optional[BatchResult]] = [None] * len(paths)
    workers = max(1, min(max_workers, len(paths)))
    logger.info("Processing %d image(s) on %d worker(s) -> %s", len(paths), workers, out_dir)

    with ThreadPoolExecutor(max_workers=workers) as executor:
        futures = {
            executor.submit(_process_one, path, target, cfg): idx
            for idx, (path, target) in enumerate(zip(paths, targets))
        }
        for future in as_completed(futures):
            results[futures[future]] = future.result()

    done = [r for r in results if r is not None]
    failed = sum(1 for r in done if not r.ok)
    logger.info("Batch finished: %d ok, %d failed", len(done) - failed, failed)
    return done
