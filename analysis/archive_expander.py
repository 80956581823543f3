"""Expand uploaded bundles (loose files, ZIP and TAR archives, nested archives) into flat files"""

import logging
import posixpath
import tarfile
import zipfile
import zlib
from dataclasses import dataclass, field
from io import BytesIO
from typing import Iterable, List, Optional

from models.asset import UploadedFile

logger = logging.getLogger("ArchiveExpander")

MAX_NESTING_DEPTH = 5
ZIP_EXTENSIONS = (".zip",)
TAR_EXTENSIONS = (".tar", ".tar.gz", ".tgz")
ZIP_MIME_TYPES = ("application/zip", "application/x-zip-compressed")
TAR_MIME_TYPES = ("application/x-tar", "application/x-gtar")
RESERVED_FOLDERS = ("__MACOSX",)
OS_METADATA_FILES = ("thumbs.db", "desktop.ini")
# zipfile raises RuntimeError for encrypted entries and NotImplementedError for unsupported methods
READ_ERRORS = (
    zipfile.BadZipFile,
    tarfile.TarError,
    zlib.error,
    EOFError,
    OSError,
    ValueError,
    RuntimeError,
    NotImplementedError,
)


class ArchiveExpansionError(Exception):
    """An archive could not be opened or read; fatal to that blob only"""

    def __init__(self, archive_name: str, cause: Exception):
        self.archive_name = archive_name
        self.cause = cause
        super().__init__(f"Failed to expand archive '{archive_name}': {cause}")


@dataclass
class ExpansionResult:
    files: List[UploadedFile] = field(default_factory=list)
    errors: List[ArchiveExpansionError] = field(default_factory=list)

    @property
    def failed_archives(self) -> List[str]:
        return [error.archive_name for error in self.errors]


def _archive_kind(filename: str, content_type: Optional[str] = None) -> Optional[str]:
    lowered = filename.lower()
    if lowered.endswith(ZIP_EXTENSIONS) or content_type in ZIP_MIME_TYPES:
        return "zip"
    if lowered.endswith(TAR_EXTENSIONS) or content_type in TAR_MIME_TYPES:
        return "tar"
    return None


def is_archive(filename: str, content_type: Optional[str] = None) -> bool:
    """Check whether a blob's name or declared type marks it as an archive"""
    return _archive_kind(filename, content_type) is not None


def should_skip_entry(entry_path: str) -> bool:
    """Hidden files, OS metadata folders and metadata artifacts never leave the archive"""
    parts = [part for part in entry_path.replace("\\", "/").split("/") if part]
    if not parts:
        return True
    if any(part in RESERVED_FOLDERS for part in parts):
        return True
    if any(part.startswith(".") for part in parts):
        return True
    return parts[-1].lower() in OS_METADATA_FILES


def _read_zip(content: bytes):
    with zipfile.ZipFile(BytesIO(content)) as zf:
        for info in zf.infolist():
            if info.is_dir():
                continue
            yield info.filename, zf.read(info)


def _read_tar(content: bytes):
    with tarfile.open(fileobj=BytesIO(content), mode="r:*") as tf:
        for member in tf.getmembers():
            if not member.isfile():
                continue
            handle = tf.extractfile(member)
            if handle is None:
                continue
            yield member.name, handle.read()


def _expand(content: bytes, archive_name: str, kind: str, depth: int) -> List[UploadedFile]:
    if depth > MAX_NESTING_DEPTH:
        raise ValueError(f"archive nesting deeper than {MAX_NESTING_DEPTH} levels")

    reader = _read_zip if kind == "zip" else _read_tar
    files: List[UploadedFile] = []
    for entry_path, data in reader(content):
        if should_skip_entry(entry_path):
            logger.debug(f"Skipping hidden or metadata entry {entry_path} in {archive_name}")
            continue
        filename = posixpath.basename(entry_path.replace("\\", "/"))
        nested_kind = _archive_kind(filename)
        if nested_kind:
            nested_name = f"{archive_name}/{entry_path}"
            try:
                files.extend(_expand(data, nested_name, nested_kind, depth + 1))
            except READ_ERRORS as e:
                raise ArchiveExpansionError(nested_name, e) from e
            continue
        files.append(UploadedFile(
            filename=filename,
            content=data,
            original_path=entry_path,
            from_archive=True,
        ))
    return files


def extract_archive(content: bytes, archive_name: str, content_type: Optional[str] = None) -> List[UploadedFile]:
    """Extract every non-hidden file from an archive blob, flattening folders and nested archives.

    Raises:
        ArchiveExpansionError: If the archive (or an archive nested in it) cannot be read
    """
    kind = _archive_kind(archive_name, content_type) or "zip"
    try:
        files = _expand(content, archive_name, kind, depth=1)
    except ArchiveExpansionError as e:
        logger.error(f"Archive extraction failed for {archive_name}: {e.cause}")
        raise
    except READ_ERRORS as e:
        logger.error(f"Archive extraction failed for {archive_name}: {e}")
        raise ArchiveExpansionError(archive_name, e) from e

    logger.info(
        f"Archive extraction complete: {archive_name} files={len(files)} "
        f"bytes={sum(f.size for f in files)}"
    )
    return files


def expand_uploads(uploads: Iterable[UploadedFile]) -> ExpansionResult:
    """Normalize a set of uploaded blobs into a flat list of files.

    Non-archive blobs pass through unchanged. A corrupt archive contributes nothing
    and is reported in ExpansionResult.errors; sibling blobs are unaffected.
    """
    result = ExpansionResult()
    for upload in uploads:
        if not is_archive(upload.filename, upload.content_type):
            result.files.append(upload)
            continue
        try:
            result.files.extend(extract_archive(upload.content, upload.filename, upload.content_type))
        except ArchiveExpansionError as e:
            result.errors.append(e)
    return result


def archive_info(content: bytes, archive_name: str = "archive.zip") -> dict:
    """Get archive entry info without extracting file data"""
    kind = _archive_kind(archive_name) or "zip"
    try:
        if kind == "zip":
            with zipfile.ZipFile(BytesIO(content)) as zf:
                entries = [(info.filename, info.file_size) for info in zf.infolist() if not info.is_dir()]
        else:
            with tarfile.open(fileobj=BytesIO(content), mode="r:*") as tf:
                entries = [(m.name, m.size) for m in tf.getmembers() if m.isfile()]
    except READ_ERRORS as e:
        raise ArchiveExpansionError(archive_name, e) from e

    return {
        "file_count": len(entries),
        "total_size": sum(size for _, size in entries),
        "files": [name for name, _ in entries],
    }
