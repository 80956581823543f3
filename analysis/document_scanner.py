"""Lightweight reference-document flagging.

Keyword checks over the filename, title/author metadata and, when asked, the
first page or first few hundred characters of text. Documents are never read
past that point.
"""

import logging
import re
import time
import zipfile
from concurrent.futures import ThreadPoolExecutor
from io import BytesIO
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import docx
from docx.opc.exceptions import PackageNotFoundError
from pypdf import PdfReader
from pypdf.errors import PyPdfError

from analysis.extension_classifier import get_file_extension
from models.document import DocumentFlag, DocumentMetadata, DocumentScanResult

logger = logging.getLogger("DocumentScanner")

EXCERPT_CHARS = 500

_SEP = r"[\s_\-]*"


def _pattern(*terms: str) -> "re.Pattern[str]":
    # Treat _ and - as word separators so "brand_guidelines_2024" matches "brand"
    return re.compile(rf"(?<![a-z0-9])(?:{'|'.join(terms)})(?![a-z0-9])", re.IGNORECASE)


KEYWORD_PATTERNS: Dict[DocumentFlag, "re.Pattern[str]"] = {
    DocumentFlag.BRAND_GUIDELINES: _pattern(
        "brand", "guidelines?", f"style{_SEP}guide", f"visual{_SEP}identity", f"logo{_SEP}usage"
    ),
    DocumentFlag.COPY: _pattern("copy", "content", "messaging", "text", "headlines?", f"body{_SEP}copy"),
    DocumentFlag.CAMPAIGN_BRIEF: _pattern(
        "brief", "campaign", f"project{_SEP}overview", f"creative{_SEP}brief", "rfp"
    ),
    DocumentFlag.SPECS: _pattern("spec", "specs", "specification", "dimensions?", "requirements?", "deliverables?"),
    DocumentFlag.REFERENCE: _pattern("reference", "inspiration", f"mood{_SEP}board", "examples?", "competitive"),
}

PDF_EXTENSIONS = (".pdf",)
DOCX_EXTENSIONS = (".docx",)
TEXT_EXTENSIONS = (".txt",)

PARSE_ERRORS = (PyPdfError, PackageNotFoundError, zipfile.BadZipFile, KeyError, ValueError, OSError)


def scan_text(text: Optional[str], patterns: Dict[DocumentFlag, "re.Pattern[str]"] = KEYWORD_PATTERNS) -> List[DocumentFlag]:
    if not text:
        return []
    return [flag for flag, pattern in patterns.items() if pattern.search(text)]


def scan_filename(filename: str) -> List[DocumentFlag]:
    return scan_text(filename)


def _merge_flags(flags: List[DocumentFlag], extra: Iterable[DocumentFlag]) -> None:
    for flag in extra:
        if flag not in flags:
            flags.append(flag)


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def read_pdf(content: bytes, extract_first_page: bool = False, excerpt_chars: int = EXCERPT_CHARS) -> Tuple[DocumentMetadata, Optional[str]]:
    """Title, author, page count and optionally the first page's opening text"""
    reader = PdfReader(BytesIO(content))
    info = reader.metadata
    metadata = DocumentMetadata(
        title=_clean(info.title) if info else None,
        author=_clean(info.author) if info else None,
        page_count=len(reader.pages),
    )
    excerpt = None
    if extract_first_page and metadata.page_count:
        text = reader.pages[0].extract_text() or ""
        excerpt = text[:excerpt_chars] or None
    return metadata, excerpt


def read_docx(content: bytes, extract_first_page: bool = False, excerpt_chars: int = EXCERPT_CHARS) -> Tuple[DocumentMetadata, Optional[str]]:
    """Core-properties title/author and optionally the opening paragraphs"""
    document = docx.Document(BytesIO(content))
    props = document.core_properties
    metadata = DocumentMetadata(title=_clean(props.title), author=_clean(props.author))
    excerpt = None
    if extract_first_page:
        collected = ""
        for paragraph in document.paragraphs:
            if len(collected) >= excerpt_chars:
                break
            if paragraph.text:
                collected += paragraph.text + "\n"
        excerpt = collected[:excerpt_chars].strip() or None
    return metadata, excerpt


def read_plain_text(content: bytes, extract_first_page: bool = False, excerpt_chars: int = EXCERPT_CHARS) -> Tuple[DocumentMetadata, Optional[str]]:
    if not extract_first_page:
        return DocumentMetadata(), None
    text = content[: excerpt_chars * 4].decode("utf-8", errors="replace")
    return DocumentMetadata(), text[:excerpt_chars].strip() or None


def _reader_for(filename: str):
    extension = get_file_extension(filename)
    if extension in PDF_EXTENSIONS:
        return read_pdf
    if extension in DOCX_EXTENSIONS:
        return read_docx
    if extension in TEXT_EXTENSIONS:
        return read_plain_text
    return None


def scan_document(
    filename: str,
    content: Optional[bytes] = None,
    extract_first_page: bool = False,
    excerpt_chars: int = EXCERPT_CHARS,
) -> DocumentScanResult:
    """Flag one document. Parse failures fall back to the filename flags alone."""
    start = time.perf_counter()
    flags = scan_filename(filename)
    metadata = DocumentMetadata()
    excerpt = None
    parse_error = None

    reader = _reader_for(filename)
    if reader is not None and content:
        try:
            metadata, excerpt = reader(content, extract_first_page, excerpt_chars)
        except PARSE_ERRORS as e:
            logger.warning(f"Could not parse {filename}, using filename flags only: {e}")
            parse_error = str(e)
        else:
            metadata_text = " ".join(part for part in (metadata.title, metadata.author) if part)
            _merge_flags(flags, scan_text(metadata_text))
            _merge_flags(flags, scan_text(excerpt))

    return DocumentScanResult(
        filename=filename,
        flagged_as=flags,
        metadata=metadata,
        excerpt=excerpt,
        processing_time_ms=(time.perf_counter() - start) * 1000,
        parse_error=parse_error,
    )


def batch_scan_documents(
    documents: Iterable[Tuple[str, Optional[bytes]]],
    extract_first_page: bool = False,
    excerpt_chars: int = EXCERPT_CHARS,
    max_workers: int = 4,
) -> List[DocumentScanResult]:
    """Scan (filename, bytes) pairs concurrently; results keep input order"""
    documents = list(documents)
    if not documents:
        return []
    with ThreadPoolExecutor(max_workers=max(1, max_workers)) as executor:
        results = list(executor.map(
            lambda doc: scan_document(doc[0], doc[1], extract_first_page, excerpt_chars),
            documents,
        ))
    flagged = sum(1 for result in results if result.has_keywords)
    logger.info(f"Document scan complete: {len(results)} documents, {flagged} flagged")
    return results


def _identify(results: Sequence[DocumentScanResult], flag: DocumentFlag) -> Optional[str]:
    best: Optional[DocumentScanResult] = None
    for result in results:
        # Strictly greater keeps the first encountered on ties
        if result.has_flag(flag) and (best is None or len(result.flagged_as) > len(best.flagged_as)):
            best = result
    return best.filename if best else None


def identify_brand_guidelines(results: Sequence[DocumentScanResult]) -> Optional[str]:
    return _identify(results, DocumentFlag.BRAND_GUIDELINES)


def identify_campaign_brief(results: Sequence[DocumentScanResult]) -> Optional[str]:
    return _identify(results, DocumentFlag.CAMPAIGN_BRIEF)
