"""Document scan data models"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class DocumentFlag(str, Enum):
    """Keyword categories a reference document can be flagged under"""
    BRAND_GUIDELINES = "brand_guidelines"
    COPY = "copy"
    CAMPAIGN_BRIEF = "campaign_brief"
    SPECS = "specs"
    REFERENCE = "reference"


@dataclass(frozen=True)
class DocumentMetadata:
    title: Optional[str] = None
    author: Optional[str] = None
    page_count: Optional[int] = None


@dataclass(frozen=True)
class DocumentScanResult:
    """Flags and lightweight metadata for one reference document"""
    filename: str
    flagged_as: List[DocumentFlag] = field(default_factory=list)  # Encounter order, no duplicates
    metadata: DocumentMetadata = field(default_factory=DocumentMetadata)
    excerpt: Optional[str] = None  # First page / first N characters only
    processing_time_ms: float = 0.0
    parse_error: Optional[str] = None

    @property
    def has_keywords(self) -> bool:
        return bool(self.flagged_as)

    def has_flag(self, flag: DocumentFlag) -> bool:
        return flag in self.flagged_as

    def to_dict(self) -> Dict[str, Any]:
        return {
            "filename": self.filename,
            "flagged_as": [flag.value for flag in self.flagged_as],
            "metadata": {
                "title": self.metadata.title,
                "author": self.metadata.author,
                "page_count": self.metadata.page_count,
            },
            "excerpt": self.excerpt,
        }
