"""Logo detection data models"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple


class LogoConfidence(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        return {"high": 3, "medium": 2, "low": 1}[self.value]


@dataclass(frozen=True)
class LogoDetectionResult:
    """Outcome of the filename and dimension heuristics for one image"""
    filename: str
    confidence: LogoConfidence
    reasons: List[str] = field(default_factory=list)
    dimensions: Optional[Tuple[int, int]] = None  # None when the header could not be read

    @property
    def is_likely_logo(self) -> bool:
        return self.confidence in (LogoConfidence.HIGH, LogoConfidence.MEDIUM)

    @property
    def area(self) -> Optional[int]:
        if self.dimensions is None:
            return None
        return self.dimensions[0] * self.dimensions[1]
