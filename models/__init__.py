"""Data models for the asset intake pipeline"""

from models.asset import AssetCategory, AssetRecord, ProcessingStatus, UploadedFile
from models.batch import AssetBatch, BatchFinalizedError, BatchStatus
from models.brief import AssetInventory, BrandBasics, MinimalBrief
from models.document import DocumentFlag, DocumentMetadata, DocumentScanResult
from models.logo import LogoConfidence, LogoDetectionResult
from models.palette import ColorExtractionResult, DominantColor

__all__ = [
    "AssetBatch",
    "AssetCategory",
    "AssetInventory",
    "AssetRecord",
    "BatchFinalizedError",
    "BatchStatus",
    "BrandBasics",
    "ColorExtractionResult",
    "DocumentFlag",
    "DocumentMetadata",
    "DocumentScanResult",
    "DominantColor",
    "LogoConfidence",
    "LogoDetectionResult",
    "MinimalBrief",
    "ProcessingStatus",
    "UploadedFile",
]
