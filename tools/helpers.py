"""Shared helper functions for tool implementations"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Sequence
from urllib.parse import unquote, urlparse

from analysis.extension_classifier import guess_mime_type
from asset_processor import fetch_asset_bytes
from models.asset import UploadedFile
from models.batch import AssetBatch

logger = logging.getLogger("AssetIntake")


def _is_remote(source: str) -> bool:
    return urlparse(source).scheme in ("http", "https")


def load_source(source: str) -> UploadedFile:
    """Read one bundle from a local path or an http(s) URL.

    Raises:
        FileNotFoundError: If a local path does not exist
        requests.RequestException: If a remote fetch fails
    """
    if _is_remote(source):
        filename = Path(unquote(urlparse(source).path)).name or "download"
        content = fetch_asset_bytes(source)
    else:
        path = Path(source).expanduser()
        if not path.is_file():
            raise FileNotFoundError(f"No such file: {source}")
        filename = path.name
        content = path.read_bytes()
    logger.debug(f"Loaded {len(content)} bytes from {source}")
    return UploadedFile(filename=filename, content=content, content_type=guess_mime_type(filename))


def load_sources(sources: Sequence[str]) -> List[UploadedFile]:
    return [load_source(source) for source in sources]


def build_batch_response(batch: AssetBatch, include_records: bool = False) -> Dict[str, Any]:
    """Serialize a batch for a tool response.

    The brief is returned as rendered text alongside the structured form so a
    client can show it without further calls.
    """
    response = batch.to_dict(include_records=include_records)
    response["brief_text"] = batch.brief_text
    return response
