"""Shared fixtures: isolated settings, in-memory records and blob storage fakes."""
import io
import os
import tempfile
import threading
import time
from datetime import date, timedelta

# Keep the module-level app (imported by API tests) away from the working directory
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("LOCAL_STORAGE_ROOT", tempfile.mkdtemp(prefix="khumalo-test-"))

import pytest  # noqa: E402
from docx import Document as DocxDocument  # noqa: E402
from reportlab.pdfgen import canvas  # noqa: E402

from app.core.config import Settings  # noqa: E402
from app.core.exceptions import ConfigurationError, UploadError  # noqa: E402
from app.models.records import NewPatient  # noqa: E402
from app.services.blob_storage import BlobStorage, LocalBlobStorage, StorageStats  # noqa: E402
from app.stores.sql_store import SQLRecordStore  # noqa: E402

DOCTOR_ID = "doctor-1"
OTHER_DOCTOR_ID = "doctor-2"


@pytest.fixture()
def settings(tmp_path):
    return Settings(
        DATABASE_URL="sqlite://",
        LOCAL_STORAGE_ROOT=str(tmp_path / "blobs"),
        UPLOAD_BATCH_DELAY_MS=0,
        AZURE_OPENAI_ENDPOINT=None,
        AZURE_OPENAI_API_KEY=None,
        AZURE_OPENAI_DEPLOYMENT=None,
        SEED_DEMO_DATA=False,
    )


@pytest.fixture()
def store():
    record_store = SQLRecordStore.from_url("sqlite://")
    yield record_store
    record_store.close()


@pytest.fixture()
def local_storage(tmp_path):
    return LocalBlobStorage(str(tmp_path / "blobs"), "patient-documents")


@pytest.fixture()
def jane(store):
    return store.create_patient(jane_doe(), created_by=DOCTOR_ID)


def jane_doe() -> NewPatient:
    return NewPatient(
        first_name="Jane",
        last_name="Doe",
        date_of_birth=date(1985, 4, 12),
        medical_record_number="MRN-00001",
        email="jane.doe@example.com",
        phone="+1 (555) 111-2233",
        address="123 Main St, Springfield",
    )


class MemoryBlobStorage(BlobStorage):
    """In-memory blob storage that can fail chosen files and records concurrency."""

    name = "memory"

    def __init__(self, fail_names=(), ready=True, upload_delay=0.0):
        super().__init__("patient-documents")
        self.fail_names = set(fail_names)
        self.ready = ready
        self.upload_delay = upload_delay
        self.blobs = {}
        self.metadata = {}
        self.in_flight = 0
        self.max_in_flight = 0
        self.upload_calls = 0
        self._lock = threading.Lock()

    def ensure_ready(self):
        if not self.ready:
            raise ConfigurationError("Azure Storage credentials not configured")

    def upload(self, blob_name, data, content_type, metadata):
        with self._lock:
            self.upload_calls += 1
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.upload_delay:
                time.sleep(self.upload_delay)
            if metadata["original_file_name"] in self.fail_names:
                raise UploadError("connection reset by peer")
            with self._lock:
                if blob_name in self.blobs:
                    raise UploadError(f"Blob already exists: {blob_name}")
                self.blobs[blob_name] = data
                self.metadata[blob_name] = metadata
            return f"memory://{self.container}/{blob_name}"
        finally:
            with self._lock:
                self.in_flight -= 1

    def download(self, blob_name):
        if blob_name not in self.blobs:
            raise FileNotFoundError(blob_name)
        return self.blobs[blob_name]

    def delete(self, blob_name):
        self.blobs.pop(blob_name, None)

    def generate_read_url(self, blob_name, expires_in: timedelta):
        if blob_name not in self.blobs:
            raise FileNotFoundError(blob_name)
        return f"memory://{self.container}/{blob_name}?se={int(expires_in.total_seconds())}"

    def stats(self):
        return StorageStats(
            total_files=len(self.blobs),
            total_size=sum(len(b) for b in self.blobs.values()),
            container_name=self.container,
        )


@pytest.fixture()
def memory_storage():
    return MemoryBlobStorage()


# ---------------------------------------------------------------------------
# Fixture documents
# ---------------------------------------------------------------------------

def make_pdf(*pages: str) -> bytes:
    buffer = io.BytesIO()
    pdf = canvas.Canvas(buffer)
    for text in pages:
        pdf.drawString(72, 720, text)
        pdf.showPage()
    pdf.save()
    return buffer.getvalue()


def make_docx(*paragraphs: str) -> bytes:
    document = DocxDocument()
    for text in paragraphs:
        document.add_paragraph(text)
    buffer = io.BytesIO()
    document.save(buffer)
    return buffer.getvalue()
