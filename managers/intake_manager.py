"""Pipeline orchestration for asset intake batches"""

import hashlib
import logging
import re
import time
import uuid
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple, Union

from analysis.archive_expander import expand_uploads
from analysis.brief_synthesizer import generate_minimal_brief, render_text
from analysis.document_scanner import batch_scan_documents, identify_brand_guidelines, identify_campaign_brief
from analysis.extension_classifier import (
    GENERIC_MIME_TYPE,
    Classification,
    ExtensionClassifier,
    get_file_extension,
    guess_mime_type,
)
from analysis.logo_detector import batch_detect_logos, select_top_logos
from analysis.palette_extractor import aggregate_brand_colors, batch_extract_colors
from managers.batch_repository import BatchRepository, RepositoryError
from managers.defaults_manager import DefaultsManager
from managers.object_store import ObjectStore
from models.asset import AssetCategory, AssetRecord, ProcessingStatus, UploadedFile
from models.batch import AssetBatch, BatchStatus
from models.document import DocumentScanResult

logger = logging.getLogger("AssetIntake")

FileInput = Union[UploadedFile, Tuple[str, bytes]]

FILENAME_MARKERS = ("final", "draft", "source")


class BatchProcessingError(Exception):
    """Raised when archive expansion leaves a batch with nothing to process"""

    def __init__(self, batch: AssetBatch, archive_errors: List[str]):
        self.batch = batch
        self.archive_errors = archive_errors
        super().__init__(f"Batch {batch.batch_id} failed: {'; '.join(archive_errors)}")


def build_storage_key(campaign_id: str, batch_id: str, position: int, filename: str) -> str:
    timestamp = int(time.time() * 1000)
    return f"campaigns/{campaign_id}/asset-packs/{batch_id}/{timestamp}_{position}_{filename}"


def build_search_tags(
    filename: str,
    category: AssetCategory,
    mime_type: str,
    dimensions: Optional[Tuple[int, int]] = None,
    is_logo: bool = False,
) -> List[str]:
    """Search tags for inventory queries, deduplicated in first-seen order"""
    tags = [category.value]
    extension = get_file_extension(filename)
    if extension:
        tags.append(extension)
    tags.append(mime_type.split("/")[0])
    if dimensions:
        size = f"{dimensions[0]}x{dimensions[1]}"
        tags += [size, f"size_{size}"]
    tags += [word.lower() for word in re.split(r"[^a-zA-Z0-9]+", filename) if len(word) > 2]
    lowered = filename.lower()
    tags += [marker for marker in FILENAME_MARKERS if marker in lowered]
    if is_logo:
        tags.append("logo")
    return list(dict.fromkeys(tags))


def _as_upload(item: FileInput) -> UploadedFile:
    if isinstance(item, UploadedFile):
        return item
    filename, content = item
    return UploadedFile(filename=filename, content=content)


class IntakeManager:
    """Runs uploaded bundles through expansion, classification, upload, logo
    detection, palette extraction, document scanning and brief synthesis."""

    def __init__(
        self,
        repository: BatchRepository,
        object_store: ObjectStore,
        defaults_manager: Optional[DefaultsManager] = None,
        classifier: Optional[ExtensionClassifier] = None,
        seed: Optional[int] = None,
    ):
        self.repository = repository
        self.object_store = object_store
        self.defaults_manager = defaults_manager or DefaultsManager()
        self.classifier = classifier or ExtensionClassifier()
        self.seed = seed  # k-means initialization seed; None means nondeterministic
        logger.info("Initialized IntakeManager")

    @contextmanager
    def _phase(self, batch: AssetBatch, name: str) -> Iterator[None]:
        start = time.perf_counter()
        yield
        duration_ms = (time.perf_counter() - start) * 1000
        batch.record_phase(name, duration_ms)
        logger.info(f"Batch {batch.batch_id}: {name} took {duration_ms:.1f}ms")

    def process_batch(
        self,
        batch_id: str,
        campaign_id: str,
        files: Iterable[FileInput],
        project_name: Optional[str] = None,
    ) -> AssetBatch:
        """Process one uploaded batch end to end and return the finalized AssetBatch.

        Per-file failures become FAILED records and never abort the batch. A corrupt
        archive drops only its own files and is listed in archive_errors. Any other
        exception finalizes the stored batch as FAILED before propagating.

        Raises:
            BatchProcessingError: If archive expansion failed and no file survived
        """
        settings = self.defaults_manager.get_all_defaults()
        batch = AssetBatch(
            batch_id=batch_id,
            campaign_id=campaign_id,
            project_name=project_name or campaign_id,
            target_ms=settings["pipeline"]["target_ms"],
        )
        self.repository.create_batch(batch)
        try:
            return self._run_phases(batch, [_as_upload(item) for item in files], settings)
        except Exception as e:
            if not batch.finalized:
                phase = batch.status.value
                batch.finalize(BatchStatus.FAILED)
                logger.error(f"Batch {batch_id} failed during {phase}: {e}")
            raise

    def _run_phases(
        self,
        batch: AssetBatch,
        uploads: List[UploadedFile],
        settings: Dict[str, Dict[str, Any]],
    ) -> AssetBatch:
        batch_id = batch.batch_id
        with self._phase(batch, "archive_expansion"):
            expansion = expand_uploads(uploads)
        archive_errors = [str(error) for error in expansion.errors]
        batch.update(archive_errors=archive_errors)

        if expansion.errors and not expansion.files:
            batch.finalize(BatchStatus.FAILED)
            logger.error(f"Batch {batch_id} failed: no files survived archive expansion")
            raise BatchProcessingError(batch, archive_errors)

        batch.advance(BatchStatus.CATEGORIZING)
        with self._phase(batch, "categorization"):
            mime_types = [self._resolve_mime_type(upload) for upload in expansion.files]
            classifications = [
                self.classifier.classify(upload.filename, mime)
                for upload, mime in zip(expansion.files, mime_types)
            ]
            category_stats = self._category_stats(classifications)
        logger.info(f"Batch {batch_id} categories: {category_stats}")

        batch.advance(BatchStatus.UPLOADING)
        with self._phase(batch, "upload"):
            records = self._upload_all(batch, expansion.files, mime_types, classifications, settings)
            self.repository.add_records(batch_id, records)
        contents = {record.record_id: upload.content for record, upload in zip(records, expansion.files)}

        batch.advance(BatchStatus.LOGO_DETECTION)
        with self._phase(batch, "logo_detection"):
            logo_files, palette = self._detect_logos(records, contents, settings)

        batch.advance(BatchStatus.DOCUMENT_SCANNING)
        with self._phase(batch, "document_scan"):
            scans = self._scan_documents(records, contents, settings)

        batch.advance(BatchStatus.BRIEF_GENERATION)
        with self._phase(batch, "brief_generation"):
            source_files = [
                r.original_filename for r in records
                if r.is_ready and r.category == AssetCategory.SOURCE_FILES
            ]
            brief = generate_minimal_brief(
                batch.project_name,
                category_stats,
                brand_colors=palette,
                document_scans=scans,
                source_files=source_files,
                logo_files=logo_files,
                generated_at=datetime.now(),
                processing_time_ms=int(batch.processing_time_ms),
            )
            brief_text = render_text(brief)
            self._mark_suggested_start(records, brief.suggested_starting_file)

        scan_summary = {
            "logo_count": len(logo_files),
            "brand_guidelines_found": identify_brand_guidelines(scans) is not None,
            "campaign_brief_found": identify_campaign_brief(scans) is not None,
            "category_stats": dict(category_stats),
            "archive_errors": list(archive_errors),
        }
        self._commit(
            batch,
            settings["pipeline"]["commit_attempts"],
            category_stats=category_stats,
            brand_palette=palette,
            logo_files=logo_files,
            brief=brief,
            brief_text=brief_text,
            scan_summary=scan_summary,
        )

        breakdown = ", ".join(f"{name}={ms:.1f}ms" for name, ms in batch.phase_timings_ms.items())
        logger.info(
            f"Batch {batch_id} complete: {batch.total_files} files, "
            f"{len(batch.failed_records)} failed, total={batch.processing_time_ms:.1f}ms "
            f"({breakdown}), target_met={batch.target_met}"
        )
        return batch

    def _resolve_mime_type(self, upload: UploadedFile) -> str:
        if upload.content_type and upload.content_type != GENERIC_MIME_TYPE:
            return upload.content_type
        return guess_mime_type(upload.filename)

    @staticmethod
    def _category_stats(classifications: Sequence[Classification]) -> Dict[str, int]:
        counts = Counter(c.category for c in classifications)
        return {category.value: counts[category] for category in AssetCategory if counts[category]}

    def _upload_one(
        self,
        batch: AssetBatch,
        position: int,
        upload: UploadedFile,
        mime_type: str,
        classification: Classification,
    ) -> AssetRecord:
        record = AssetRecord(
            record_id=str(uuid.uuid4()),
            batch_id=batch.batch_id,
            original_filename=upload.filename,
            bytes_size=upload.size,
            mime_type=mime_type,
            category=classification.category,
            classification_confidence=classification.confidence,
            file_extension=get_file_extension(upload.filename),
            original_path=upload.original_path,
            from_archive=upload.from_archive,
            tags=build_search_tags(upload.filename, classification.category, mime_type),
        )
        try:
            record.sha256 = hashlib.sha256(upload.content).hexdigest()
            key = build_storage_key(batch.campaign_id, batch.batch_id, position, upload.filename)
            record.storage_url = self.object_store.store(key, upload.content, mime_type)
            record.storage_key = key
        except Exception as e:
            logger.warning(f"Upload failed for {upload.filename} in batch {batch.batch_id}: {e}")
            record.status = ProcessingStatus.FAILED
            record.error = str(e)
        return record

    def _upload_all(
        self,
        batch: AssetBatch,
        uploads: Sequence[UploadedFile],
        mime_types: Sequence[str],
        classifications: Sequence[Classification],
        settings: Dict[str, Dict[str, Any]],
    ) -> List[AssetRecord]:
        if not uploads:
            return []
        with ThreadPoolExecutor(max_workers=settings["pipeline"]["io_workers"]) as executor:
            futures = [
                executor.submit(self._upload_one, batch, i, upload, mime, classification)
                for i, (upload, mime, classification) in enumerate(zip(uploads, mime_types, classifications))
            ]
            return [future.result() for future in futures]

    def _detect_logos(
        self,
        records: Sequence[AssetRecord],
        contents: Dict[str, bytes],
        settings: Dict[str, Dict[str, Any]],
    ) -> Tuple[List[str], list]:
        images = [r for r in records if r.is_ready and r.category == AssetCategory.IMAGES]
        if not images:
            return [], []

        logo_settings = settings["logo"]
        palette_settings = settings["palette"]
        results = batch_detect_logos(
            [(r.original_filename, contents[r.record_id]) for r in images],
            max_dimension=logo_settings["max_dimension"],
            keywords=logo_settings["keywords"],
            max_workers=settings["pipeline"]["io_workers"],
        )
        record_for = {}
        for record, result in zip(images, results):
            record_for[id(result)] = record
            self.repository.update_record(
                record.record_id,
                is_likely_logo=result.is_likely_logo,
                logo_confidence=result.confidence.value,
                logo_reasons=list(result.reasons),
                dimensions=result.dimensions,
                tags=build_search_tags(
                    record.original_filename,
                    record.category,
                    record.mime_type,
                    dimensions=result.dimensions,
                    is_logo=result.is_likely_logo,
                ),
            )

        top = select_top_logos(results, palette_settings["max_candidates"])
        if not top:
            return [], []

        top_records = [record_for[id(result)] for result in top]
        color_results = batch_extract_colors(
            [(r.original_filename, contents[r.record_id]) for r in top_records],
            num_colors=palette_settings["num_colors"],
            max_iterations=palette_settings["max_iterations"],
            max_dim=palette_settings["max_dim"],
            sample_stride=palette_settings["sample_stride"],
            max_workers=settings["pipeline"]["cluster_workers"],
            seed=self.seed,
        )
        palette = aggregate_brand_colors(
            color_results,
            max_colors=palette_settings["max_palette_size"],
            merge_distance=palette_settings["merge_distance"],
        )
        return [r.original_filename for r in top_records], palette

    def _scan_documents(
        self,
        records: Sequence[AssetRecord],
        contents: Dict[str, bytes],
        settings: Dict[str, Dict[str, Any]],
    ) -> List[DocumentScanResult]:
        documents = [r for r in records if r.is_ready and r.category == AssetCategory.REFERENCE]
        doc_settings = settings["documents"]
        return batch_scan_documents(
            [(r.original_filename, contents[r.record_id]) for r in documents],
            extract_first_page=doc_settings["extract_first_page"],
            excerpt_chars=doc_settings["excerpt_chars"],
            max_workers=settings["pipeline"]["io_workers"],
        )

    def _mark_suggested_start(self, records: Sequence[AssetRecord], filename: Optional[str]):
        if not filename:
            return
        for record in records:
            if record.is_ready and record.original_filename == filename:
                self.repository.update_record(record.record_id, is_suggested_start=True)
                return

    def _commit(self, batch: AssetBatch, attempts: int, **fields: Any):
        """Land every derived field and finalize, retrying transient persistence failures"""
        for attempt in range(1, attempts + 1):
            try:
                self.repository.commit_batch(batch.batch_id, BatchStatus.COMPLETED, **fields)
                return
            except RepositoryError as e:
                if attempt == attempts:
                    logger.error(f"Commit failed for batch {batch.batch_id} after {attempts} attempts: {e}")
                    raise
                logger.warning(f"Commit attempt {attempt} failed for batch {batch.batch_id}: {e}, retrying")
