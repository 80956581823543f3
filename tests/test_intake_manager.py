"""End-to-end tests for batch processing through IntakeManager"""

import hashlib
from unittest.mock import patch

import pytest

from analysis.palette_extractor import batch_extract_colors
from managers.batch_repository import BatchRepository, RepositoryError
from managers.defaults_manager import DefaultsManager
from managers.intake_manager import BatchProcessingError, IntakeManager, build_search_tags
from managers.object_store import InMemoryObjectStore
from models.asset import AssetCategory, ProcessingStatus, UploadedFile
from models.batch import BatchFinalizedError, BatchStatus
from models.logo import LogoConfidence

PHASES = ["archive_expansion", "categorization", "upload", "logo_detection", "document_scan", "brief_generation"]


@pytest.fixture
def store():
    return InMemoryObjectStore()


@pytest.fixture
def repository(store):
    return BatchRepository(object_store=store)


@pytest.fixture
def defaults(tmp_path):
    return DefaultsManager(config_file=tmp_path / "config.json")


@pytest.fixture
def manager(repository, store, defaults):
    return IntakeManager(repository, store, defaults_manager=defaults, seed=0)


@pytest.fixture
def scenario_a(make_png, make_pdf):
    return [
        ("logo_final.png", make_png(200, 150, color=(255, 0, 0))),
        ("hero.jpg", make_png(1200, 800, color=(0, 0, 255), fmt="JPEG")),
        ("brand_guidelines_2024.pdf", make_pdf(title="Acme Brand Guidelines")),
        ("poster_master.psd", b"8BPS\x00\x01fake-photoshop"),
    ]


def _by_name(batch):
    return {record.original_filename: record for record in batch.records}


class TestMixedBundle:
    """A small mixed bundle runs through every phase"""

    def test_batch_completes(self, manager, scenario_a):
        """Test the batch is finalized with every file ready"""
        batch = manager.process_batch("batch-1", "camp-1", scenario_a, project_name="Acme Launch")

        assert batch.status == BatchStatus.COMPLETED
        assert batch.finalized is True
        assert batch.completed_at is not None
        assert batch.total_files == 4
        assert batch.failed_records == []

    def test_categories(self, manager, scenario_a):
        """Test each file lands in its category"""
        batch = manager.process_batch("batch-1", "camp-1", scenario_a)
        records = _by_name(batch)

        assert batch.category_stats == {"source_files": 1, "images": 2, "reference": 1}
        assert records["poster_master.psd"].category == AssetCategory.SOURCE_FILES
        assert records["hero.jpg"].category == AssetCategory.IMAGES
        assert records["brand_guidelines_2024.pdf"].category == AssetCategory.REFERENCE

    def test_logo_and_palette(self, manager, scenario_a):
        """Test the small logo is detected and drives the brand palette"""
        batch = manager.process_batch("batch-1", "camp-1", scenario_a)
        records = _by_name(batch)

        logo = records["logo_final.png"]
        assert logo.is_likely_logo is True
        assert logo.logo_confidence == LogoConfidence.HIGH.value
        assert logo.dimensions == (200, 150)
        assert records["hero.jpg"].is_likely_logo is False
        assert records["brand_guidelines_2024.pdf"].logo_confidence is None

        assert batch.logo_files == ["logo_final.png"]
        assert [c.hex for c in batch.brand_palette] == ["#ff0000"]

    def test_brief_and_suggested_start(self, manager, scenario_a):
        """Test the guidelines document is flagged and suggested as the starting file"""
        batch = manager.process_batch("batch-1", "camp-1", scenario_a, project_name="Acme Launch")
        records = _by_name(batch)

        assert batch.brief.project_name == "Acme Launch"
        assert batch.brief.suggested_starting_file == "brand_guidelines_2024.pdf"
        assert batch.brief.critical_blockers == []
        assert batch.brief.brand_basics.brand_guidelines_doc == "brand_guidelines_2024.pdf"
        assert records["brand_guidelines_2024.pdf"].is_suggested_start is True
        assert batch.brief_text.startswith("=" * 60)
        assert batch.scan_summary["brand_guidelines_found"] is True
        assert batch.scan_summary["campaign_brief_found"] is False
        assert batch.scan_summary["logo_count"] == 1

    def test_storage(self, manager, store, scenario_a):
        """Test bytes are stored under campaign-scoped keys with content hashes"""
        batch = manager.process_batch("batch-1", "camp-1", scenario_a)
        contents = dict(scenario_a)

        for record in batch.records:
            assert record.storage_key.startswith("campaigns/camp-1/asset-packs/batch-1/")
            assert record.storage_key.endswith(f"_{record.original_filename}")
            assert record.storage_url == f"memory://assets/{record.storage_key}"
            assert store.retrieve(record.storage_key) == contents[record.original_filename]
            assert record.sha256 == hashlib.sha256(contents[record.original_filename]).hexdigest()
        assert len(store) == 4

    def test_phase_timings(self, manager, scenario_a):
        """Test every phase is timed and the run meets its target"""
        batch = manager.process_batch("batch-1", "camp-1", scenario_a)

        assert list(batch.phase_timings_ms) == PHASES
        assert all(ms >= 0 for ms in batch.phase_timings_ms.values())
        assert batch.target_met is True

    def test_logo_tags_searchable(self, manager, repository, scenario_a):
        """Test logo records get dimension and logo tags"""
        batch = manager.process_batch("batch-1", "camp-1", scenario_a)
        logo = _by_name(batch)["logo_final.png"]

        assert "logo" in logo.tags
        assert "200x150" in logo.tags
        assert "final" in logo.tags
        assert [r.original_filename for r in repository.search_records("batch-1", "size_200x150")] == ["logo_final.png"]

    def test_finalized_batch_is_immutable(self, manager, repository, scenario_a):
        """Test nothing can be changed once the batch is finalized"""
        batch = manager.process_batch("batch-1", "camp-1", scenario_a)

        with pytest.raises(BatchFinalizedError):
            repository.update_record(batch.records[0].record_id, tags=[])
        with pytest.raises(BatchFinalizedError):
            batch.advance(BatchStatus.UPLOADING)


class TestPaletteCandidates:
    """Tests for which images reach clustering"""

    def test_no_logos_skips_clustering(self, manager, make_png):
        """Test large photos without logo names never reach k-means"""
        files = [(f"photo_{i}.jpg", make_png(600, 600, fmt="JPEG")) for i in range(8)]

        with patch("managers.intake_manager.batch_extract_colors") as extract:
            batch = manager.process_batch("batch-d", "camp-1", files)

        extract.assert_not_called()
        assert batch.brand_palette == []
        assert batch.logo_files == []
        assert batch.brief.brand_basics is None
        assert batch.status == BatchStatus.COMPLETED

    def test_at_most_five_files_clustered(self, manager, make_png):
        """Test eight logo candidates are cut down to five before clustering"""
        files = [(f"logo_{i}.png", make_png(50, 50)) for i in range(8)]

        with patch("managers.intake_manager.batch_extract_colors", wraps=batch_extract_colors) as extract:
            batch = manager.process_batch("batch-cap", "camp-1", files)

        clustered = extract.call_args[0][0]
        assert len(clustered) == 5
        assert len(batch.logo_files) == 5

    def test_candidate_limit_from_defaults(self, manager, defaults, make_png):
        """Test the candidate limit can be lowered at runtime"""
        defaults.set_defaults("palette", {"max_candidates": 2})
        files = [(f"icon_{i}.png", make_png(50, 50)) for i in range(4)]

        batch = manager.process_batch("batch-limit", "camp-1", files)

        assert len(batch.logo_files) == 2


class TestArchives:
    """Tests for archive handling inside a batch"""

    def test_corrupt_archive_among_siblings(self, manager, make_zip, make_png, make_pdf):
        """Test a corrupt archive drops only its own files"""
        good = make_zip({"brand/logo.png": make_png(64, 64), "docs/creative_brief.pdf": make_pdf()})
        uploads = [
            ("bundle.zip", good),
            ("broken.zip", b"definitely not a zip"),
            ("hero.png", make_png(800, 600)),
        ]

        batch = manager.process_batch("batch-e", "camp-1", uploads)
        records = _by_name(batch)

        assert batch.status == BatchStatus.COMPLETED
        assert sorted(records) == ["creative_brief.pdf", "hero.png", "logo.png"]
        assert len(batch.archive_errors) == 1
        assert "broken.zip" in batch.archive_errors[0]
        assert batch.scan_summary["archive_errors"] == batch.archive_errors
        assert records["logo.png"].from_archive is True
        assert records["logo.png"].original_path == "brand/logo.png"
        assert records["hero.png"].from_archive is False

    def test_all_archives_corrupt_fails_batch(self, manager, repository):
        """Test the batch fails when nothing survives expansion"""
        with pytest.raises(BatchProcessingError) as excinfo:
            manager.process_batch("batch-bad", "camp-1", [("broken.zip", b"not a zip")])

        assert excinfo.value.batch.status == BatchStatus.FAILED
        assert len(excinfo.value.archive_errors) == 1
        assert repository.get_batch("batch-bad").status == BatchStatus.FAILED
        assert repository.get_batch("batch-bad").finalized is True


class FailingStore(InMemoryObjectStore):
    """Store that rejects keys containing a marker"""

    def __init__(self, marker):
        super().__init__()
        self.marker = marker

    def store(self, key, content, content_type=None):
        if self.marker in key:
            raise OSError("bucket unavailable")
        return super().store(key, content, content_type)


class TestFailures:
    """Tests for partial and transient failures"""

    def test_upload_failure_is_per_file(self, defaults, make_png, make_pdf):
        """Test one failed upload becomes a failed record, not a failed batch"""
        store = FailingStore("hero")
        repository = BatchRepository(object_store=store)
        manager = IntakeManager(repository, store, defaults_manager=defaults, seed=0)

        batch = manager.process_batch("batch-f", "camp-1", [
            ("hero.png", make_png(800, 600)),
            ("logo.png", make_png(100, 100)),
            ("specs.pdf", make_pdf()),
        ])
        records = _by_name(batch)

        assert batch.status == BatchStatus.COMPLETED
        assert records["hero.png"].status == ProcessingStatus.FAILED
        assert "bucket unavailable" in records["hero.png"].error
        assert records["hero.png"].storage_url is None
        assert records["logo.png"].is_ready
        assert [r.original_filename for r in batch.failed_records] == ["hero.png"]
        assert batch.logo_files == ["logo.png"]

    def test_commit_retried_on_transient_error(self, manager, repository, scenario_a):
        """Test a transient commit failure is retried"""
        real_commit = repository.commit_batch
        calls = []

        def flaky(*args, **kwargs):
            calls.append(args)
            if len(calls) == 1:
                raise RepositoryError("connection reset")
            return real_commit(*args, **kwargs)

        with patch.object(repository, "commit_batch", side_effect=flaky):
            batch = manager.process_batch("batch-r", "camp-1", scenario_a)

        assert len(calls) == 2
        assert batch.status == BatchStatus.COMPLETED

    def test_commit_gives_up_after_attempts(self, manager, repository, scenario_a):
        """Test exhausted retries surface the error and fail the batch without a brief"""
        with patch.object(repository, "commit_batch", side_effect=RepositoryError("down")) as commit:
            with pytest.raises(RepositoryError):
                manager.process_batch("batch-x", "camp-1", scenario_a)

        assert commit.call_count == 3
        batch = repository.get_batch("batch-x")
        assert batch.status == BatchStatus.FAILED
        assert batch.finalized is True
        assert batch.brief is None

    def test_unexpected_phase_error_fails_batch(self, manager, repository, scenario_a):
        """Test an exception escaping a phase leaves the stored batch failed, not stuck mid-pipeline"""
        with patch("managers.intake_manager.batch_scan_documents", side_effect=RuntimeError("scanner crashed")):
            with pytest.raises(RuntimeError):
                manager.process_batch("batch-crash", "camp-1", scenario_a)

        batch = repository.get_batch("batch-crash")
        assert batch.status == BatchStatus.FAILED
        assert batch.finalized is True
        assert batch.completed_at is not None
        assert "document_scan" not in batch.phase_timings_ms

    def test_oversized_image_does_not_abort_batch(self, manager, make_png, make_png_header):
        """Test an image past Pillow's pixel limit is kept with unknown dimensions"""
        batch = manager.process_batch("batch-big", "camp-1", [
            ("hero_poster.png", make_png_header(20000, 12000)),
            ("logo.png", make_png(100, 100)),
        ])
        records = _by_name(batch)

        assert batch.status == BatchStatus.COMPLETED
        assert records["hero_poster.png"].is_ready
        assert records["hero_poster.png"].dimensions is None
        assert records["hero_poster.png"].logo_confidence == LogoConfidence.LOW.value
        assert batch.logo_files == ["logo.png"]

    def test_encrypted_archive_among_siblings(self, manager, make_zip, make_png):
        """Test a password-protected archive is reported while loose files complete"""
        locked = bytearray(make_zip({"inner/logo.png": make_png(64, 64)}))
        for signature, flag_offset in ((b"PK\x03\x04", 6), (b"PK\x01\x02", 8)):
            position = locked.find(signature)
            locked[position + flag_offset] |= 0x01

        batch = manager.process_batch("batch-locked", "camp-1", [
            ("locked.zip", bytes(locked)),
            ("hero.png", make_png(800, 600)),
        ])

        assert batch.status == BatchStatus.COMPLETED
        assert [r.original_filename for r in batch.records] == ["hero.png"]
        assert "locked.zip" in batch.archive_errors[0]


class TestInputs:
    """Tests for input shapes and edge cases"""

    def test_thousand_unknown_files(self, manager):
        """Test 1,000 unknown files all land in misc"""
        files = [(f"file_{i}.xyz", b"x") for i in range(1000)]

        batch = manager.process_batch("batch-c", "camp-1", files)

        assert batch.status == BatchStatus.COMPLETED
        assert batch.category_stats == {"misc": 1000}
        assert batch.failed_records == []
        assert len({r.storage_key for r in batch.records}) == 1000

    def test_same_name_files_get_distinct_keys(self, manager, make_zip):
        """Test files sharing a name in different folders do not overwrite each other"""
        bundle = make_zip({"a/readme.txt": b"one", "b/readme.txt": b"two"})

        batch = manager.process_batch("batch-dup", "camp-1", [("bundle.zip", bundle)])

        assert len({r.storage_key for r in batch.records}) == 2

    def test_duplicate_batch_id_rejected(self, manager, make_png):
        """Test a batch id cannot be reused"""
        manager.process_batch("batch-1", "camp-1", [("a.png", make_png())])
        with pytest.raises(ValueError):
            manager.process_batch("batch-1", "camp-1", [("b.png", make_png())])

    def test_accepts_uploaded_files_and_tuples(self, manager, make_png):
        """Test both input shapes are accepted and declared types are kept"""
        files = [
            UploadedFile(filename="upload_1234", content=make_png(), content_type="image/png"),
            ("notes.txt", b"hello"),
        ]

        batch = manager.process_batch("batch-in", "camp-1", files)
        records = _by_name(batch)

        assert records["upload_1234"].category == AssetCategory.IMAGES
        assert records["upload_1234"].mime_type == "image/png"
        assert records["notes.txt"].category == AssetCategory.REFERENCE

    def test_project_name_defaults_to_campaign(self, manager, make_png):
        """Test the campaign id names the project when none is given"""
        batch = manager.process_batch("batch-p", "spring-24", [("a.png", make_png())])
        assert batch.brief.project_name == "spring-24"

    def test_empty_bundle(self, manager):
        """Test an empty bundle still produces a brief with a blocker"""
        batch = manager.process_batch("batch-0", "camp-1", [])

        assert batch.status == BatchStatus.COMPLETED
        assert batch.total_files == 0
        assert batch.brief.critical_blockers


class TestSearchTags:
    """Tests for tag generation"""

    def test_tags(self):
        """Test category, extension, MIME, size, words and markers"""
        tags = build_search_tags("Logo_Final_v2.png", AssetCategory.IMAGES, "image/png", (120, 80), is_logo=True)

        assert tags[:3] == ["images", ".png", "image"]
        assert "120x80" in tags
        assert "size_120x80" in tags
        assert "final" in tags
        assert tags.count("logo") == 1
        assert "v2" not in tags
