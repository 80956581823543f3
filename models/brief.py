"""Minimal brief data models"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from models.palette import DominantColor


@dataclass(frozen=True)
class AssetInventory:
    source_files: int = 0
    images: int = 0
    video: int = 0
    reference: int = 0
    misc: int = 0

    @property
    def total(self) -> int:
        return self.source_files + self.images + self.video + self.reference + self.misc

    @property
    def creative_total(self) -> int:
        return self.source_files + self.images + self.video

    @classmethod
    def from_stats(cls, stats: Dict[str, int]) -> "AssetInventory":
        return cls(
            source_files=stats.get("source_files", 0),
            images=stats.get("images", 0),
            video=stats.get("video", 0),
            reference=stats.get("reference", 0),
            misc=stats.get("misc", 0),
        )

    def to_dict(self) -> Dict[str, int]:
        return {
            "source_files": self.source_files,
            "images": self.images,
            "video": self.video,
            "reference": self.reference,
            "misc": self.misc,
            "total": self.total,
        }


@dataclass(frozen=True)
class BrandBasics:
    brand_colors: List[DominantColor] = field(default_factory=list)
    brand_guidelines_doc: Optional[str] = None
    logo_files: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class MinimalBrief:
    """One-page brief derived from a batch inventory; regenerate rather than edit"""
    project_name: str
    summary: str
    asset_inventory: AssetInventory
    brand_basics: Optional[BrandBasics]
    suggested_starting_file: Optional[str]
    critical_blockers: List[str]
    generated_at: datetime
    processing_time_ms: int

    def to_dict(self) -> Dict[str, Any]:
        basics = None
        if self.brand_basics is not None:
            basics = {
                "brand_colors": [color.to_dict() for color in self.brand_basics.brand_colors],
                "brand_guidelines_doc": self.brand_basics.brand_guidelines_doc,
                "logo_files": list(self.brand_basics.logo_files),
            }
        return {
            "project_name": self.project_name,
            "summary": self.summary,
            "asset_inventory": self.asset_inventory.to_dict(),
            "brand_basics": basics,
            "suggested_starting_file": self.suggested_starting_file,
            "critical_blockers": list(self.critical_blockers),
            "generated_at": self.generated_at.isoformat(),
            "processing_time_ms": self.processing_time_ms,
        }
