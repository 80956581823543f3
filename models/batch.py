"""Intake batch data models"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from models.asset import AssetRecord, ProcessingStatus
from models.brief import MinimalBrief
from models.palette import DominantColor

TARGET_DURATION_MS = 120_000


class BatchStatus(str, Enum):
    """Pipeline state machine, in the order the phases run"""
    INTAKE = "intake"
    CATEGORIZING = "categorizing"
    UPLOADING = "uploading"
    LOGO_DETECTION = "logo_detection"
    DOCUMENT_SCANNING = "document_scanning"
    BRIEF_GENERATION = "brief_generation"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (BatchStatus.COMPLETED, BatchStatus.FAILED)


class BatchFinalizedError(RuntimeError):
    """Raised when something tries to mutate a finalized batch"""


@dataclass
class AssetBatch:
    """One intake operation; owns its records and brief"""
    batch_id: str
    campaign_id: str
    project_name: str
    status: BatchStatus = BatchStatus.INTAKE
    records: List[AssetRecord] = field(default_factory=list)
    phase_timings_ms: Dict[str, float] = field(default_factory=dict)
    category_stats: Dict[str, int] = field(default_factory=dict)
    brand_palette: List[DominantColor] = field(default_factory=list)
    logo_files: List[str] = field(default_factory=list)
    brief: Optional[MinimalBrief] = None
    brief_text: Optional[str] = None
    scan_summary: Dict[str, Any] = field(default_factory=dict)
    archive_errors: List[str] = field(default_factory=list)
    target_ms: int = TARGET_DURATION_MS
    created_at: datetime = field(default_factory=datetime.now)
    completed_at: Optional[datetime] = None
    finalized: bool = False

    def _ensure_mutable(self):
        if self.finalized:
            raise BatchFinalizedError(f"Batch {self.batch_id} is finalized ({self.status.value})")

    def advance(self, status: BatchStatus):
        self._ensure_mutable()
        self.status = status

    def add_records(self, records: List[AssetRecord]):
        self._ensure_mutable()
        self.records.extend(records)

    def record_phase(self, phase: str, duration_ms: float):
        self._ensure_mutable()
        self.phase_timings_ms[phase] = duration_ms

    def update(self, **fields: Any):
        self._ensure_mutable()
        for name, value in fields.items():
            if not hasattr(self, name):
                raise AttributeError(f"AssetBatch has no field '{name}'")
            setattr(self, name, value)

    def finalize(self, status: BatchStatus):
        self._ensure_mutable()
        self.status = status
        self.completed_at = datetime.now()
        self.finalized = True

    @property
    def total_files(self) -> int:
        return len(self.records)

    @property
    def total_bytes(self) -> int:
        return sum(record.bytes_size for record in self.records)

    @property
    def processing_time_ms(self) -> float:
        return sum(self.phase_timings_ms.values())

    @property
    def target_met(self) -> bool:
        return self.processing_time_ms < self.target_ms

    @property
    def failed_records(self) -> List[AssetRecord]:
        return [record for record in self.records if record.status == ProcessingStatus.FAILED]

    def to_dict(self, include_records: bool = True) -> Dict[str, Any]:
        data = {
            "batch_id": self.batch_id,
            "campaign_id": self.campaign_id,
            "project_name": self.project_name,
            "status": self.status.value,
            "total_files": self.total_files,
            "total_bytes": self.total_bytes,
            "failed_files": len(self.failed_records),
            "processing_time_ms": round(self.processing_time_ms, 2),
            "target_met": self.target_met,
            "phase_timings_ms": {name: round(ms, 2) for name, ms in self.phase_timings_ms.items()},
            "category_stats": dict(self.category_stats),
            "brand_palette": [color.to_dict() for color in self.brand_palette],
            "logo_files": list(self.logo_files),
            "scan_summary": dict(self.scan_summary),
            "archive_errors": list(self.archive_errors),
            "brief": self.brief.to_dict() if self.brief else None,
            "created_at": self.created_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }
        if include_records:
            data["records"] = [record.to_dict() for record in self.records]
        return data
