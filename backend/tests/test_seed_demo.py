"""Tests for the demo data seeder."""
from app.core.config import Settings
from app.main import create_app
from app.seed_demo import DEMO_DOCUMENT_NAME, DEMO_USER_ID, find_by_mrn, seed_demo_data
from conftest import MemoryBlobStorage


class TestSeedDemoData:
    def test_creates_demo_patients(self, store):
        seed_demo_data(store)
        jane = find_by_mrn(store, "MRN-00001")
        john = find_by_mrn(store, "MRN-00002")
        assert jane.full_name == "Jane Doe"
        assert jane.email == "jane.doe@example.com"
        assert john.full_name == "John Smith"
        assert john.email is None
        assert jane.created_by == DEMO_USER_ID

    def test_creates_demo_document_for_jane(self, store):
        seed_demo_data(store)
        jane = find_by_mrn(store, "MRN-00001")
        [document] = store.list_documents(jane.id)
        assert document.file_name == DEMO_DOCUMENT_NAME
        assert document.file_size == 234567
        assert document.file_type == "application/pdf"

    def test_idempotent(self, store):
        seed_demo_data(store)
        seed_demo_data(store)
        assert len(store.list_patients()) == 2
        jane = find_by_mrn(store, "MRN-00001")
        assert len(store.list_documents(jane.id)) == 1

    def test_seeded_on_startup_when_enabled(self, tmp_path, store):
        settings = Settings(SEED_DEMO_DATA=True, LOCAL_STORAGE_ROOT=str(tmp_path))
        create_app(settings, store=store, blob_storage=MemoryBlobStorage())
        assert find_by_mrn(store, "MRN-00002") is not None
