"""Asset data models"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class AssetCategory(str, Enum):
    """Fixed set of inventory categories"""
    SOURCE_FILES = "source_files"
    IMAGES = "images"
    VIDEO = "video"
    REFERENCE = "reference"
    MISC = "misc"


class ProcessingStatus(str, Enum):
    READY = "ready"
    FAILED = "failed"


@dataclass(frozen=True)
class UploadedFile:
    """A single (filename, bytes) pair entering the pipeline"""
    filename: str
    content: bytes
    content_type: Optional[str] = None
    original_path: Optional[str] = None  # Path inside the archive it came from
    from_archive: bool = False

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass
class AssetRecord:
    """Record of one file within an intake batch"""
    record_id: str
    batch_id: str
    original_filename: str
    bytes_size: int
    mime_type: str
    category: AssetCategory = AssetCategory.MISC
    classification_confidence: float = 0.0
    file_extension: str = ""
    storage_key: Optional[str] = None
    storage_url: Optional[str] = None
    sha256: Optional[str] = None  # Content hash for deduplication
    original_path: Optional[str] = None
    from_archive: bool = False
    # Logo fields are only populated for image-category records
    is_likely_logo: bool = False
    logo_confidence: Optional[str] = None
    logo_reasons: List[str] = field(default_factory=list)
    dimensions: Optional[Tuple[int, int]] = None
    is_suggested_start: bool = False
    tags: List[str] = field(default_factory=list)
    status: ProcessingStatus = ProcessingStatus.READY
    error: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.now)
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def width(self) -> Optional[int]:
        return self.dimensions[0] if self.dimensions else None

    @property
    def height(self) -> Optional[int]:
        return self.dimensions[1] if self.dimensions else None

    @property
    def is_ready(self) -> bool:
        return self.status == ProcessingStatus.READY

    def to_dict(self) -> Dict[str, Any]:
        return {
            "record_id": self.record_id,
            "batch_id": self.batch_id,
            "original_filename": self.original_filename,
            "bytes_size": self.bytes_size,
            "mime_type": self.mime_type,
            "category": self.category.value,
            "classification_confidence": self.classification_confidence,
            "file_extension": self.file_extension,
            "storage_key": self.storage_key,
            "storage_url": self.storage_url,
            "sha256": self.sha256,
            "original_path": self.original_path,
            "from_archive": self.from_archive,
            "is_likely_logo": self.is_likely_logo,
            "logo_confidence": self.logo_confidence,
            "logo_reasons": list(self.logo_reasons),
            "width": self.width,
            "height": self.height,
            "is_suggested_start": self.is_suggested_start,
            "tags": list(self.tags),
            "status": self.status.value,
            "error": self.error,
            "created_at": self.created_at.isoformat(),
        }
