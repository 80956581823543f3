"""Per-phase analysis for the asset intake pipeline"""

from analysis.archive_expander import ArchiveExpansionError, expand_uploads, extract_archive
from analysis.brief_synthesizer import generate_minimal_brief, render_html, render_text
from analysis.document_scanner import batch_scan_documents, scan_document
from analysis.extension_classifier import ExtensionClassifier, guess_mime_type
from analysis.logo_detector import batch_detect_logos, detect_logo, select_top_logos
from analysis.palette_extractor import aggregate_brand_colors, batch_extract_colors, extract_dominant_colors

__all__ = [
    "ArchiveExpansionError",
    "ExtensionClassifier",
    "aggregate_brand_colors",
    "batch_detect_logos",
    "batch_extract_colors",
    "batch_scan_documents",
    "detect_logo",
    "expand_uploads",
    "extract_archive",
    "extract_dominant_colors",
    "generate_minimal_brief",
    "guess_mime_type",
    "render_html",
    "render_text",
    "scan_document",
    "select_top_logos",
]
