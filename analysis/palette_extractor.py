"""Dominant color extraction via bounded-sample k-means, and brand palette aggregation"""

import logging
import os
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from asset_processor import load_rgb_pixels
from models.palette import ColorExtractionResult, DominantColor

logger = logging.getLogger("PaletteExtractor")

# Hard cap on files sent to clustering per batch
MAX_CLUSTER_FILES = 5
MAX_PALETTE_SIZE = 6

DEFAULT_NUM_COLORS = 5
DEFAULT_MAX_ITERATIONS = 10
DEFAULT_MAX_DIM = 1024
DEFAULT_SAMPLE_STRIDE = 10


def rgb_to_hex(rgb: Sequence[float]) -> str:
    channels = [max(0, min(255, int(round(c)))) for c in rgb]
    return "#{:02x}{:02x}{:02x}".format(*channels)


def _round_half_up(values: np.ndarray) -> np.ndarray:
    return np.floor(values + 0.5)


def _assign(points: np.ndarray, centroids: np.ndarray) -> np.ndarray:
    """Index of the nearest centroid for every point; ties go to the lower index"""
    distances = ((points[:, None, :] - centroids[None, :, :]) ** 2).sum(axis=2)
    return distances.argmin(axis=1)


def kmeans(
    points: np.ndarray,
    k: int = DEFAULT_NUM_COLORS,
    max_iterations: int = DEFAULT_MAX_ITERATIONS,
    rng: Optional[np.random.Generator] = None,
) -> List[Tuple[Tuple[int, int, int], int]]:
    """Cluster (N, 3) RGB points and return (centroid, member_count) pairs.

    Centroids start at randomly chosen points and are rounded to integer RGB after
    every update. Iteration stops early once no centroid moves. Empty clusters
    are dropped from the result.
    """
    if len(points) == 0 or k <= 0:
        return []
    rng = rng or np.random.default_rng()
    points = points.astype(np.float64)
    centroids = points[rng.integers(0, len(points), size=k)].copy()

    for _ in range(max_iterations):
        labels = _assign(points, centroids)
        changed = False
        for i in range(k):
            members = points[labels == i]
            if len(members) == 0:
                continue
            updated = _round_half_up(members.mean(axis=0))
            if not np.array_equal(updated, centroids[i]):
                centroids[i] = updated
                changed = True
        if not changed:
            break

    counts = np.bincount(_assign(points, centroids), minlength=k)
    return [
        (tuple(int(c) for c in centroids[i]), int(counts[i]))
        for i in range(k)
        if counts[i] > 0
    ]


def extract_dominant_colors(
    image_bytes: bytes,
    num_colors: int = DEFAULT_NUM_COLORS,
    max_iterations: int = DEFAULT_MAX_ITERATIONS,
    max_dim: int = DEFAULT_MAX_DIM,
    sample_stride: int = DEFAULT_SAMPLE_STRIDE,
    rng: Optional[np.random.Generator] = None,
) -> List[DominantColor]:
    """Dominant colors of one image, sorted by share of sampled pixels descending.

    Raises:
        ValueError: If the image cannot be decoded
    """
    pixels = load_rgb_pixels(image_bytes, max_dim=max_dim)
    samples = pixels[::max(1, sample_stride)]
    total = len(samples)
    if total == 0:
        return []

    clusters = kmeans(samples, num_colors, max_iterations, rng)
    colors = [
        DominantColor(hex=rgb_to_hex(center), rgb=center, percentage=count / total * 100)
        for center, count in clusters
    ]
    colors.sort(key=lambda color: color.percentage, reverse=True)
    return colors


def _extract_one(
    filename: str,
    image_bytes: bytes,
    num_colors: int,
    max_iterations: int,
    max_dim: int,
    sample_stride: int,
    seed: Optional[int],
) -> ColorExtractionResult:
    start = time.perf_counter()
    try:
        colors = extract_dominant_colors(
            image_bytes,
            num_colors=num_colors,
            max_iterations=max_iterations,
            max_dim=max_dim,
            sample_stride=sample_stride,
            rng=np.random.default_rng(seed),
        )
    except (ValueError, MemoryError) as e:
        logger.warning(f"Color extraction failed for {filename}: {e}")
        return ColorExtractionResult(
            filename=filename,
            processing_time_ms=(time.perf_counter() - start) * 1000,
            error=str(e),
        )
    return ColorExtractionResult(
        filename=filename,
        dominant_colors=colors,
        processing_time_ms=(time.perf_counter() - start) * 1000,
    )


def batch_extract_colors(
    logo_files: Iterable[Tuple[str, bytes]],
    num_colors: int = DEFAULT_NUM_COLORS,
    max_iterations: int = DEFAULT_MAX_ITERATIONS,
    max_dim: int = DEFAULT_MAX_DIM,
    sample_stride: int = DEFAULT_SAMPLE_STRIDE,
    max_workers: Optional[int] = None,
    seed: Optional[int] = None,
) -> List[ColorExtractionResult]:
    """Extract colors from at most MAX_CLUSTER_FILES logo files in parallel.

    Files past the cap are ignored. A file that fails to decode yields a result
    with no colors instead of raising.
    """
    files = list(logo_files)
    if len(files) > MAX_CLUSTER_FILES:
        logger.warning(f"Dropping {len(files) - MAX_CLUSTER_FILES} logo files over the clustering cap")
        files = files[:MAX_CLUSTER_FILES]
    if not files:
        return []

    workers = max(1, min(max_workers or os.cpu_count() or 1, len(files)))
    with ThreadPoolExecutor(max_workers=workers) as executor:
        futures = [
            executor.submit(
                _extract_one, filename, content, num_colors, max_iterations, max_dim, sample_stride, seed
            )
            for filename, content in files
        ]
        results = [future.result() for future in futures]

    logger.info(
        f"Color extraction complete: {len(results)} files, "
        f"{sum(len(r.dominant_colors) for r in results)} colors"
    )
    return results


@dataclass
class _Swatch:
    hex: str
    rgb: Tuple[int, int, int]
    total_percentage: float = 0.0
    count: int = 0


def _color_distance(a: Sequence[int], b: Sequence[int]) -> float:
    return float(np.linalg.norm(np.subtract(a, b, dtype=np.float64)))


def aggregate_brand_colors(
    results: Iterable[ColorExtractionResult],
    max_colors: int = MAX_PALETTE_SIZE,
    merge_distance: float = 0.0,
) -> List[DominantColor]:
    """Merge per-file colors into one brand palette.

    Colors are grouped by exact hex; each group's percentage is the average over
    the files it appeared in. With merge_distance > 0, a color within that RGB
    distance of an earlier swatch is folded into it. At most MAX_PALETTE_SIZE
    swatches are returned, ties in percentage keep first-seen order.
    """
    swatches: Dict[str, _Swatch] = {}
    for result in results:
        for color in result.dominant_colors:
            swatch = swatches.get(color.hex)
            if swatch is None and merge_distance > 0:
                swatch = next(
                    (s for s in swatches.values() if _color_distance(s.rgb, color.rgb) <= merge_distance),
                    None,
                )
            if swatch is None:
                swatch = swatches[color.hex] = _Swatch(hex=color.hex, rgb=tuple(color.rgb))
            swatch.total_percentage += color.percentage
            swatch.count += 1

    palette = [
        DominantColor(hex=s.hex, rgb=s.rgb, percentage=min(100.0, s.total_percentage / s.count))
        for s in swatches.values()
    ]
    palette.sort(key=lambda color: color.percentage, reverse=True)
    limit = max(0, min(max_colors, MAX_PALETTE_SIZE))
    return palette[:limit]
