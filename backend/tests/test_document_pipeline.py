"""End-to-end tests for one upload request through the document pipeline."""
import asyncio
import time

import pytest

from app.core.config import Settings
from app.core.exceptions import ConfigurationError, RecordNotFoundError, RequestTooLargeError
from app.services.content_extractor import OLE_MAGIC
from app.services.document_pipeline import DocumentPipeline
from app.services.relevance import WARN_SHORT_TEXT
from app.services.validator import REASON_TOO_LARGE, REASON_UNSUPPORTED_TYPE, UploadCandidate
from conftest import DOCTOR_ID, MemoryBlobStorage, make_pdf

CBC_TEXT = (
    "Complete Blood Count Results\n"
    "Patient: Jane Doe. Lab test result: hemoglobin 14.2 g/dL, normal range.\n"
)


def _cbc_text_file(size=234567):
    body = CBC_TEXT.encode()
    return UploadCandidate("cbc_results.txt", "text/plain", body + b" " * (size - len(body)))


def _cbc_pdf(size=234567):
    body = make_pdf(*CBC_TEXT.splitlines()) + b"\n"
    return UploadCandidate("cbc_results.pdf", "application/pdf", body + b" " * (size - len(body)))


class SlowStore:
    """Record store whose lookups and inserts take ``latency`` seconds, like a remote table."""

    def __init__(self, store, latency):
        self.store = store
        self.latency = latency

    def __getattr__(self, name):
        return getattr(self.store, name)

    def get_patient(self, patient_id):
        time.sleep(self.latency)
        return self.store.get_patient(patient_id)

    def create_document(self, data):
        time.sleep(self.latency)
        return self.store.create_document(data)


async def _longest_stall(coro):
    """Await ``coro`` while a 10 ms ticker runs; return its result and the longest tick gap."""
    gaps = []
    done = asyncio.Event()

    async def ticker():
        last = time.perf_counter()
        while not done.is_set():
            await asyncio.sleep(0.01)
            now = time.perf_counter()
            gaps.append(now - last)
            last = now

    task = asyncio.create_task(ticker())
    try:
        result = await coro
    finally:
        done.set()
        await task
    return result, max(gaps)


def _process(pipeline, patient_id, files, **kwargs):
    return asyncio.run(pipeline.process(patient_id, files, uploaded_by=DOCTOR_ID, **kwargs))


class TestDocumentPipeline:
    def setup_method(self):
        self.settings = Settings(UPLOAD_BATCH_DELAY_MS=0, MAX_UPLOAD_BYTES=300_000, OCR_ENABLED=False)

    def test_single_document_for_jane_doe(self, store, jane):
        storage = MemoryBlobStorage()
        pdf = _cbc_pdf()
        report = _process(DocumentPipeline(store, storage, settings=self.settings), jane.id, [pdf],
                          description="Complete blood count - normal range")

        assert (report.accepted, report.successful, report.failed) == (1, 1, 0)
        [file_report] = report.files
        assert file_report.extraction_error is None
        assert file_report.page_count == 2
        assert file_report.confidence == 1.0
        assert file_report.word_count > 0
        [document] = store.list_documents(jane.id)
        assert document.file_name == "cbc_results.pdf"
        assert document.file_size == 234567
        assert document.file_type == "application/pdf"
        assert "hemoglobin 14.2" in document.processed_text
        assert document.uploaded_by == DOCTOR_ID
        assert document.description == "Complete blood count - normal range"
        assert document.file_path.startswith(f"{jane.id}/")
        assert document.file_path.endswith("-cbc_results.pdf")
        assert storage.blobs[document.file_path] == pdf.data
        assert report.files[0].relevance.is_valid

    def test_processed_text_is_truncated(self, store, jane):
        pipeline = DocumentPipeline(store, MemoryBlobStorage(), settings=self.settings)
        _process(pipeline, jane.id, [UploadCandidate("long.txt", "text/plain", b"a" * 5000)])
        [document] = store.list_documents(jane.id)
        assert document.processed_text == "a" * 1000

    def test_mixed_batch(self, store, jane):
        files = [
            UploadCandidate("note.txt", "text/plain", b"short note"),
            UploadCandidate("archive.zip", "application/zip", b"PK\x03\x04"),
            UploadCandidate("huge.txt", "text/plain", b"x" * 300_001),
            UploadCandidate("legacy.doc", "application/msword", OLE_MAGIC + b"\x00" * 32),
            UploadCandidate("xray.png", "image/png", b"\x89PNG\r\n\x1a\n"),
            UploadCandidate("flaky.pdf", "application/pdf", make_pdf("Patient lab result")),
            UploadCandidate("labs.pdf", "application/pdf", make_pdf("Glucose 95 normal lab test result")),
        ]
        storage = MemoryBlobStorage(fail_names={"flaky.pdf"})
        report = _process(DocumentPipeline(store, storage, settings=self.settings), jane.id, files)

        by_name = {f.file_name: f for f in report.files}
        assert by_name["archive.zip"].rejection_reason == REASON_UNSUPPORTED_TYPE
        assert by_name["huge.txt"].rejection_reason == REASON_TOO_LARGE
        assert by_name["legacy.doc"].extraction_error
        assert by_name["xray.png"].extraction_error == "OCR required but disabled"
        assert WARN_SHORT_TEXT in by_name["note.txt"].relevance.warnings
        assert by_name["flaky.pdf"].upload_error

        assert (report.accepted, report.rejected) == (5, 2)
        assert report.extraction_failures == 2
        assert (report.successful, report.failed) == (4, 1)

        # Files whose extraction failed are still stored, without text
        documents = {d.file_name: d for d in store.list_documents(jane.id)}
        assert set(documents) == {"note.txt", "legacy.doc", "xray.png", "labs.pdf"}
        assert documents["legacy.doc"].processed_text is None
        assert "Glucose 95" in documents["labs.pdf"].processed_text
        for name, document in documents.items():
            assert by_name[name].document_id == document.id
            assert storage.metadata[document.file_path]["original_file_name"] == name

    def test_unknown_patient_uploads_nothing(self, store):
        storage = MemoryBlobStorage()
        with pytest.raises(RecordNotFoundError):
            _process(DocumentPipeline(store, storage, settings=self.settings), "missing", [_cbc_text_file(100)])
        assert storage.upload_calls == 0

    def test_storage_misconfiguration_is_fatal(self, store, jane):
        pipeline = DocumentPipeline(store, MemoryBlobStorage(ready=False), settings=self.settings)
        with pytest.raises(ConfigurationError):
            _process(pipeline, jane.id, [_cbc_text_file(100)])
        assert store.list_documents(jane.id) == []

    def test_all_rejected(self, store, jane):
        storage = MemoryBlobStorage()
        report = _process(DocumentPipeline(store, storage, settings=self.settings), jane.id,
                          [UploadCandidate("a.exe", "application/octet-stream", b"MZ")])
        assert (report.accepted, report.rejected, report.successful, report.failed) == (0, 1, 0, 0)
        assert storage.upload_calls == 0

    def test_plain_text_upload_with_charset(self, store, jane):
        report = _process(DocumentPipeline(store, MemoryBlobStorage(), settings=self.settings), jane.id,
                          [UploadCandidate("note.txt", "text/plain; charset=utf-8", b"Patient note")])
        assert (report.accepted, report.successful) == (1, 1)
        assert store.list_documents(jane.id)[0].processed_text == "Patient note"

    def test_store_latency_does_not_block_event_loop(self, store, jane):
        pipeline = DocumentPipeline(SlowStore(store, latency=0.3), MemoryBlobStorage(), settings=self.settings)
        files = [UploadCandidate(f"note{i}.txt", "text/plain", b"Lab test result normal") for i in range(2)]

        report, stall = asyncio.run(_longest_stall(pipeline.process(jane.id, files, uploaded_by=DOCTOR_ID)))

        assert report.successful == 2
        assert stall < 0.2

    def test_request_limits_checked_before_any_work(self, store, jane):
        storage = MemoryBlobStorage()
        settings = Settings(UPLOAD_BATCH_DELAY_MS=0, MAX_FILES_PER_REQUEST=2)
        files = [UploadCandidate(f"note{i}.txt", "text/plain", b"x") for i in range(3)]
        with pytest.raises(RequestTooLargeError):
            _process(DocumentPipeline(store, storage, settings=settings), jane.id, files)
        assert storage.upload_calls == 0
        assert store.list_documents(jane.id) == []
