"""Tests for batch and record persistence"""

import pytest

from managers.batch_repository import BatchNotFoundError, BatchRepository, RecordNotFoundError
from managers.object_store import InMemoryObjectStore, LocalObjectStore, ObjectStore
from models.asset import AssetCategory, AssetRecord, ProcessingStatus
from models.batch import AssetBatch, BatchFinalizedError, BatchStatus


def _record(record_id, filename, category=AssetCategory.IMAGES, batch_id="b1", **fields):
    return AssetRecord(
        record_id=record_id,
        batch_id=batch_id,
        original_filename=filename,
        bytes_size=10,
        mime_type="application/octet-stream",
        category=category,
        **fields,
    )


@pytest.fixture
def store():
    return InMemoryObjectStore()


@pytest.fixture
def repository(store):
    repo = BatchRepository(object_store=store)
    repo.create_batch(AssetBatch(batch_id="b1", campaign_id="c1", project_name="Acme"))
    return repo


class TestBatches:
    """Tests for batch CRUD"""

    def test_create_and_get(self, repository):
        """Test a created batch can be fetched"""
        assert repository.get_batch("b1").project_name == "Acme"
        assert repository.get_batch("missing") is None

    def test_duplicate_rejected(self, repository):
        """Test batch ids are unique"""
        with pytest.raises(ValueError):
            repository.create_batch(AssetBatch(batch_id="b1", campaign_id="c1", project_name="Other"))

    def test_list_by_campaign(self, repository):
        """Test batches can be filtered by campaign"""
        repository.create_batch(AssetBatch(batch_id="b2", campaign_id="c2", project_name="Other"))

        assert [b.batch_id for b in repository.list_batches()] == ["b1", "b2"]
        assert [b.batch_id for b in repository.list_batches("c2")] == ["b2"]

    def test_missing_batch(self, repository):
        """Test operations on unknown batches raise"""
        with pytest.raises(BatchNotFoundError):
            repository.list_records("missing")


class TestTransactions:
    """Tests for atomic batch writes"""

    def test_rollback_restores_fields(self, repository):
        """Test a failing transaction leaves no partial writes"""
        with pytest.raises(RuntimeError):
            with repository.transaction("b1") as batch:
                batch.update(logo_files=["logo.png"], category_stats={"images": 1})
                raise RuntimeError("write failed")

        batch = repository.get_batch("b1")
        assert batch.logo_files == []
        assert batch.category_stats == {}

    def test_rollback_keeps_identity(self, repository):
        """Test the stored batch object is restored in place"""
        before = repository.get_batch("b1")
        with pytest.raises(RuntimeError):
            with repository.transaction("b1") as batch:
                batch.advance(BatchStatus.UPLOADING)
                raise RuntimeError("boom")

        assert repository.get_batch("b1") is before
        assert before.status == BatchStatus.INTAKE

    def test_commit_batch_finalizes(self, repository):
        """Test commit writes fields and finalizes together"""
        batch = repository.commit_batch("b1", BatchStatus.COMPLETED, logo_files=["logo.png"])

        assert batch.finalized is True
        assert batch.status == BatchStatus.COMPLETED
        assert batch.logo_files == ["logo.png"]

    def test_commit_with_unknown_field_rolls_back(self, repository):
        """Test a bad field aborts the whole commit"""
        with pytest.raises(AttributeError):
            repository.commit_batch("b1", BatchStatus.COMPLETED, logo_files=["x.png"], nonsense=1)

        batch = repository.get_batch("b1")
        assert batch.finalized is False
        assert batch.logo_files == []

    def test_update_batch(self, repository):
        """Test several fields can be written at once"""
        batch = repository.update_batch("b1", archive_errors=["bad.zip"], project_name="Renamed")
        assert batch.archive_errors == ["bad.zip"]
        assert batch.project_name == "Renamed"


class TestRecords:
    """Tests for record CRUD, ordering and search"""

    def test_add_and_get(self, repository):
        """Test records are indexed by id"""
        repository.add_record(_record("r1", "logo.png"))

        assert repository.get_record("r1").original_filename == "logo.png"
        assert repository.get_record("missing") is None

    def test_update_record(self, repository):
        """Test record fields can be updated before finalization"""
        repository.add_record(_record("r1", "logo.png"))

        record = repository.update_record("r1", is_likely_logo=True, tags=["logo"])

        assert record.is_likely_logo is True
        assert repository.get_record("r1").tags == ["logo"]

    def test_update_unknown_record_or_field(self, repository):
        """Test unknown records and fields are rejected"""
        repository.add_record(_record("r1", "logo.png"))

        with pytest.raises(RecordNotFoundError):
            repository.update_record("missing", tags=[])
        with pytest.raises(AttributeError):
            repository.update_record("r1", colour="red")

    def test_update_after_finalize_rejected(self, repository):
        """Test records of a finalized batch are read-only"""
        repository.add_record(_record("r1", "logo.png"))
        repository.commit_batch("b1", BatchStatus.COMPLETED)

        with pytest.raises(BatchFinalizedError):
            repository.update_record("r1", tags=["late"])
        with pytest.raises(BatchFinalizedError):
            repository.add_record(_record("r2", "late.png"))

    def test_list_records_order(self, repository):
        """Test suggested start, then logos, then category order, then filename"""
        repository.add_records("b1", [
            _record("r1", "zeta.png"),
            _record("r2", "Alpha.png"),
            _record("r3", "notes.pdf", AssetCategory.REFERENCE),
            _record("r4", "main.psd", AssetCategory.SOURCE_FILES),
            _record("r5", "mark.png", is_likely_logo=True),
            _record("r6", "brief.pdf", AssetCategory.REFERENCE, is_suggested_start=True),
        ])

        names = [r.original_filename for r in repository.list_records("b1")]

        assert names == ["brief.pdf", "mark.png", "main.psd", "Alpha.png", "zeta.png", "notes.pdf"]

    def test_search(self, repository):
        """Test search matches filenames and tags among ready records"""
        repository.add_records("b1", [
            _record("r1", "hero.png", tags=["images", "1200x800"]),
            _record("r2", "Hero_Alt.png", status=ProcessingStatus.FAILED),
            _record("r3", "hero_brief.pdf", AssetCategory.REFERENCE),
        ])

        assert [r.record_id for r in repository.search_records("b1", "HERO")] == ["r1", "r3"]
        assert [r.record_id for r in repository.search_records("b1", "1200x800")] == ["r1"]
        assert [r.record_id for r in repository.search_records("b1", "hero", AssetCategory.REFERENCE)] == ["r3"]

    def test_delete_record(self, repository, store):
        """Test deletion hides the record and removes its bytes"""
        store.store("campaigns/c1/logo.png", b"bytes")
        repository.add_record(_record("r1", "logo.png", storage_key="campaigns/c1/logo.png"))
        repository.commit_batch("b1", BatchStatus.COMPLETED)

        assert repository.delete_record("r1") is True

        assert repository.get_record("r1") is None
        assert repository.list_records("b1") == []
        assert "campaigns/c1/logo.png" not in store
        assert len(repository.get_batch("b1").records) == 1
        assert repository.delete_record("r1") is False


class TestObjectStores:
    """Tests for the storage collaborators"""

    def test_stores_satisfy_protocol(self, tmp_path):
        """Test both stores expose store, retrieve and delete"""
        assert isinstance(InMemoryObjectStore(), ObjectStore)
        assert isinstance(LocalObjectStore(tmp_path), ObjectStore)

    def test_local_store_round_trip(self, tmp_path):
        """Test bytes land under the root and can be removed"""
        store = LocalObjectStore(tmp_path)

        url = store.store("campaigns/c1/logo.png", b"bytes", "image/png")

        assert url.startswith("file://")
        assert store.retrieve("campaigns/c1/logo.png") == b"bytes"
        store.delete("campaigns/c1/logo.png")
        assert not (tmp_path / "campaigns" / "c1" / "logo.png").exists()

    def test_local_store_rejects_escaping_keys(self, tmp_path):
        """Test keys cannot point outside the store root"""
        with pytest.raises(ValueError):
            LocalObjectStore(tmp_path / "root").store("../outside.png", b"x")
