"""Rule-based logo candidate detection from filenames and image headers"""

import logging
import re
from concurrent.futures import ThreadPoolExecutor
from functools import lru_cache
from typing import Iterable, List, Optional, Sequence, Tuple

from asset_processor import read_image_dimensions
from models.logo import LogoConfidence, LogoDetectionResult

logger = logging.getLogger("LogoDetector")

LOGO_KEYWORDS: Tuple[str, ...] = ("logo", "icon", "badge", "mark", "symbol", "emblem", "watermark")
MAX_LOGO_DIMENSION = 500
MAX_PALETTE_CANDIDATES = 5

FILENAME_REASON = "Filename contains logo-related keyword"


@lru_cache(maxsize=16)
def _keyword_pattern(keywords: Tuple[str, ...]) -> "re.Pattern[str]":
    # Underscores, dashes and dots count as separators so "logo_final" matches "logo"
    alternatives = "|".join(re.escape(keyword.lower()) for keyword in keywords)
    return re.compile(rf"(?<![a-z0-9])(?:{alternatives})(?![a-z0-9])", re.IGNORECASE)


def has_logo_filename(filename: str, keywords: Sequence[str] = LOGO_KEYWORDS) -> bool:
    base = filename.replace("\\", "/").rsplit("/", 1)[-1]
    return _keyword_pattern(tuple(keywords)).search(base) is not None


def has_logo_dimensions(width: int, height: int, max_dimension: int = MAX_LOGO_DIMENSION) -> bool:
    """Both axes strictly under the threshold"""
    return width < max_dimension and height < max_dimension


def confidence_for(filename_signal: bool, dimension_signal: bool) -> LogoConfidence:
    if filename_signal and dimension_signal:
        return LogoConfidence.HIGH
    if filename_signal or dimension_signal:
        return LogoConfidence.MEDIUM
    return LogoConfidence.LOW


def detect_logo(
    filename: str,
    content: Optional[bytes],
    max_dimension: int = MAX_LOGO_DIMENSION,
    keywords: Sequence[str] = LOGO_KEYWORDS,
) -> LogoDetectionResult:
    """Evaluate the filename and dimension signals for one image.

    Only the image header is read. When dimensions cannot be determined the
    result is based on the filename signal alone.
    """
    reasons: List[str] = []

    name_signal = has_logo_filename(filename, keywords)
    if name_signal:
        reasons.append(FILENAME_REASON)

    dimensions = read_image_dimensions(content) if content else None
    dims_signal = False
    if dimensions is not None:
        width, height = dimensions
        dims_signal = has_logo_dimensions(width, height, max_dimension)
        if dims_signal:
            reasons.append(f"Small dimensions ({width}x{height}px)")
    else:
        logger.debug(f"No readable dimensions for {filename}, using filename signal only")

    return LogoDetectionResult(
        filename=filename,
        confidence=confidence_for(name_signal, dims_signal),
        reasons=reasons,
        dimensions=dimensions,
    )


def batch_detect_logos(
    files: Iterable[Tuple[str, bytes]],
    max_dimension: int = MAX_LOGO_DIMENSION,
    keywords: Sequence[str] = LOGO_KEYWORDS,
    max_workers: int = 4,
) -> List[LogoDetectionResult]:
    """Run detect_logo over (filename, bytes) pairs; results keep input order"""
    files = list(files)
    if not files:
        return []
    with ThreadPoolExecutor(max_workers=max(1, max_workers)) as executor:
        results = list(executor.map(
            lambda item: detect_logo(item[0], item[1], max_dimension, keywords),
            files,
        ))
    likely = sum(1 for result in results if result.is_likely_logo)
    logger.info(f"Logo detection complete: {len(results)} images, {likely} likely logos")
    return results


def _selection_key(indexed: Tuple[int, LogoDetectionResult]):
    index, result = indexed
    area = result.area
    # Unknown area sorts after known area within a tier; encounter order breaks ties
    return (-result.confidence.rank, area is None, area or 0, index)


def select_top_logos(
    results: Sequence[LogoDetectionResult],
    max_logos: int = MAX_PALETTE_CANDIDATES,
) -> List[LogoDetectionResult]:
    """Pick the palette candidates: likely logos only, best tier first, smallest first.

    Never returns more than MAX_PALETTE_CANDIDATES results, whatever max_logos says.
    """
    limit = max(0, min(max_logos, MAX_PALETTE_CANDIDATES))
    candidates = [(i, r) for i, r in enumerate(results) if r.is_likely_logo]
    candidates.sort(key=_selection_key)
    return [result for _, result in candidates[:limit]]
