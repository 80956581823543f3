"""In-process persistence for intake batches and their records"""

import copy
import logging
import threading
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Set

from managers.object_store import ObjectStore
from models.asset import AssetCategory, AssetRecord
from models.batch import AssetBatch, BatchFinalizedError, BatchStatus

logger = logging.getLogger("AssetIntake")


class RepositoryError(Exception):
    """Transient persistence failure; the operation may be retried"""


class BatchNotFoundError(KeyError):
    pass


class RecordNotFoundError(KeyError):
    pass


class BatchRepository:
    """Transactional CRUD over AssetBatch and AssetRecord.

    A transaction snapshots the batch and restores it in place if the block
    raises, so every field written inside the block lands together or not at all.
    """

    def __init__(self, object_store: Optional[ObjectStore] = None):
        self.object_store = object_store
        self._batches: Dict[str, AssetBatch] = {}
        self._record_index: Dict[str, str] = {}  # record_id -> batch_id
        self._deleted: Set[str] = set()
        self._lock = threading.RLock()
        logger.info("Initialized BatchRepository")

    def create_batch(self, batch: AssetBatch) -> AssetBatch:
        with self._lock:
            if batch.batch_id in self._batches:
                raise ValueError(f"Batch {batch.batch_id} already exists")
            self._batches[batch.batch_id] = batch
        logger.debug(f"Created batch {batch.batch_id} for campaign {batch.campaign_id}")
        return batch

    def get_batch(self, batch_id: str) -> Optional[AssetBatch]:
        with self._lock:
            return self._batches.get(batch_id)

    def _require_batch(self, batch_id: str) -> AssetBatch:
        batch = self.get_batch(batch_id)
        if batch is None:
            raise BatchNotFoundError(batch_id)
        return batch

    def list_batches(self, campaign_id: Optional[str] = None) -> List[AssetBatch]:
        with self._lock:
            batches = list(self._batches.values())
        if campaign_id is not None:
            batches = [b for b in batches if b.campaign_id == campaign_id]
        return sorted(batches, key=lambda b: b.created_at)

    @contextmanager
    def transaction(self, batch_id: str) -> Iterator[AssetBatch]:
        with self._lock:
            batch = self._require_batch(batch_id)
            snapshot = copy.deepcopy(batch.__dict__)
            try:
                yield batch
            except BaseException:
                batch.__dict__.clear()
                batch.__dict__.update(snapshot)
                self._reindex(batch)
                logger.warning(f"Rolled back transaction on batch {batch_id}")
                raise

    def _reindex(self, batch: AssetBatch):
        stale = [rid for rid, bid in self._record_index.items() if bid == batch.batch_id]
        for record_id in stale:
            del self._record_index[record_id]
        for record in batch.records:
            self._record_index[record.record_id] = batch.batch_id

    def add_records(self, batch_id: str, records: List[AssetRecord]):
        with self._lock:
            batch = self._require_batch(batch_id)
            batch.add_records(records)
            for record in records:
                self._record_index[record.record_id] = batch_id

    def add_record(self, record: AssetRecord):
        self.add_records(record.batch_id, [record])

    def get_record(self, record_id: str) -> Optional[AssetRecord]:
        with self._lock:
            if record_id in self._deleted:
                return None
            batch_id = self._record_index.get(record_id)
            if batch_id is None:
                return None
            for record in self._batches[batch_id].records:
                if record.record_id == record_id:
                    return record
        return None

    def update_record(self, record_id: str, **fields: Any) -> AssetRecord:
        with self._lock:
            record = self.get_record(record_id)
            if record is None:
                raise RecordNotFoundError(record_id)
            batch = self._batches[record.batch_id]
            if batch.finalized:
                raise BatchFinalizedError(f"Batch {batch.batch_id} is finalized ({batch.status.value})")
            for name in fields:
                if not hasattr(record, name):
                    raise AttributeError(f"AssetRecord has no field '{name}'")
            for name, value in fields.items():
                setattr(record, name, value)
            return record

    def update_batch(self, batch_id: str, **fields: Any) -> AssetBatch:
        """Write several batch fields atomically"""
        with self.transaction(batch_id) as batch:
            batch.update(**fields)
        return batch

    def commit_batch(self, batch_id: str, status: BatchStatus, **fields: Any) -> AssetBatch:
        """Write derived fields and finalize the batch in one transaction"""
        with self.transaction(batch_id) as batch:
            batch.update(**fields)
            batch.finalize(status)
        return batch

    def list_records(self, batch_id: str) -> List[AssetRecord]:
        """Suggested start first, then likely logos, then by category and filename"""
        with self._lock:
            batch = self._require_batch(batch_id)
            records = [r for r in batch.records if r.record_id not in self._deleted]
        categories = list(AssetCategory)
        return sorted(
            records,
            key=lambda r: (
                not r.is_suggested_start,
                not r.is_likely_logo,
                categories.index(r.category),
                r.original_filename.lower(),
            ),
        )

    def search_records(
        self,
        batch_id: str,
        query: str,
        category: Optional[AssetCategory] = None,
    ) -> List[AssetRecord]:
        """Case-insensitive match of query against filename and tags among ready records"""
        needle = query.strip().lower()
        results = []
        for record in self.list_records(batch_id):
            if not record.is_ready:
                continue
            if category is not None and record.category != category:
                continue
            haystack = [record.original_filename.lower()] + [tag.lower() for tag in record.tags]
            if not needle or any(needle in text for text in haystack):
                results.append(record)
        return results

    def delete_record(self, record_id: str) -> bool:
        """Hide a record from queries and remove its stored bytes.

        The finalized batch itself is left untouched.
        """
        with self._lock:
            record = self.get_record(record_id)
            if record is None:
                return False
            self._deleted.add(record_id)
        if self.object_store is not None and record.storage_key:
            self.object_store.delete(record.storage_key)
        logger.info(f"Deleted record {record_id} ({record.original_filename})")
        return True
