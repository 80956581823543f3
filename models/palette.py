"""Color palette data models"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple


@dataclass(frozen=True)
class DominantColor:
    """One cluster centroid and the share of sampled pixels it covers"""
    hex: str  # "#rrggbb"
    rgb: Tuple[int, int, int]
    percentage: float  # 0-100, per-file sets need not sum to 100

    def __post_init__(self):
        if not 0.0 <= self.percentage <= 100.0:
            raise ValueError(f"Color percentage out of range: {self.percentage}")

    def to_dict(self) -> Dict[str, Any]:
        r, g, b = self.rgb
        return {"hex": self.hex, "rgb": {"r": r, "g": g, "b": b}, "percentage": self.percentage}


@dataclass(frozen=True)
class ColorExtractionResult:
    filename: str
    dominant_colors: List[DominantColor] = field(default_factory=list)
    processing_time_ms: float = 0.0
    error: str = ""
