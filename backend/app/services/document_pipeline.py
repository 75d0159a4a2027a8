"""
Upload pipeline for one request: validate, extract, check relevance, upload,
then write a metadata row for every file that reached blob storage.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from ..core.config import settings as default_settings
from ..core.exceptions import DocumentServiceError, ExtractionError
from ..core.permissions import PERM_UPLOAD_DOCUMENTS, require_permission
from ..models.records import DocumentRecord, NewDocument
from ..stores.base import RecordStore
from .batch_upload import BatchUploadCoordinator, ProgressCallback
from .blob_storage import BlobStorage
from .content_extractor import ContentExtractor, ProcessedDocument
from .relevance import RelevanceReport, check_medical_relevance
from .validator import UploadCandidate, check_request_limits, validate_file

logger = logging.getLogger(__name__)


@dataclass
class FileReport:
    index: int
    file_name: str
    content_type: str
    size: int
    accepted: bool = False
    rejection_reason: Optional[str] = None
    extraction_error: Optional[str] = None
    word_count: Optional[int] = None
    page_count: Optional[int] = None
    confidence: Optional[float] = None
    relevance: Optional[RelevanceReport] = None
    uploaded: bool = False
    upload_error: Optional[str] = None
    document_id: Optional[str] = None


@dataclass
class PipelineReport:
    patient_id: str
    files: List[FileReport] = field(default_factory=list)
    documents: List[DocumentRecord] = field(default_factory=list)

    @property
    def accepted(self) -> int:
        return sum(1 for f in self.files if f.accepted)

    @property
    def rejected(self) -> int:
        return sum(1 for f in self.files if not f.accepted)

    @property
    def extraction_failures(self) -> int:
        return sum(1 for f in self.files if f.extraction_error)

    @property
    def relevance_warnings(self) -> int:
        return sum(1 for f in self.files if f.relevance and not f.relevance.is_valid)

    @property
    def successful(self) -> int:
        return sum(1 for f in self.files if f.uploaded)

    @property
    def failed(self) -> int:
        return sum(1 for f in self.files if f.accepted and not f.uploaded)


class DocumentPipeline:
    def __init__(
        self,
        store: RecordStore,
        blob_storage: BlobStorage,
        extractor: Optional[ContentExtractor] = None,
        settings=None,
    ):
        self.settings = settings or default_settings
        self.store = store
        self.blob_storage = blob_storage
        self.extractor = extractor or ContentExtractor(self.settings)
        self.coordinator = BatchUploadCoordinator(blob_storage, self.settings)

    async def process(
        self,
        patient_id: str,
        files: Sequence[UploadCandidate],
        uploaded_by: str,
        description: Optional[str] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> PipelineReport:
        require_permission(uploaded_by, PERM_UPLOAD_DOCUMENTS)
        check_request_limits(len(files), sum(f.size for f in files), self.settings)
        # Store calls run in worker threads; the table backend is a network round trip.
        await asyncio.to_thread(self.store.get_patient, patient_id)

        report = PipelineReport(patient_id=patient_id)
        accepted: List[UploadCandidate] = []
        accepted_reports: List[FileReport] = []
        extracted: Dict[int, ProcessedDocument] = {}

        for index, candidate in enumerate(files):
            file_report = FileReport(
                index=index,
                file_name=candidate.file_name,
                content_type=candidate.content_type,
                size=candidate.size,
            )
            report.files.append(file_report)

            verdict = validate_file(candidate, self.settings)
            if not verdict.accepted:
                file_report.rejection_reason = verdict.reason
                logger.info("Rejected %s: %s", candidate.file_name, verdict.reason)
                continue
            file_report.accepted = True

            processed = await self._extract(candidate, file_report)
            if processed is not None:
                extracted[len(accepted)] = processed
            accepted.append(candidate)
            accepted_reports.append(file_report)

        batch = await self.coordinator.upload_all(
            accepted, patient_id, on_progress=on_progress, description=description
        )

        # Coordinator indices refer to positions in ``accepted``.
        for result in batch.failed:
            accepted_reports[result.index].upload_error = result.error
        for result in batch.successful:
            file_report = accepted_reports[result.index]
            candidate = accepted[result.index]
            processed = extracted.get(result.index)
            try:
                document = await asyncio.to_thread(self.store.create_document, NewDocument(
                    patient_id=patient_id,
                    file_name=candidate.file_name,
                    file_path=result.blob_name,
                    file_type=candidate.content_type,
                    file_size=candidate.size,
                    uploaded_by=uploaded_by,
                    description=description,
                    processed_text=self._truncate(processed),
                ))
            except DocumentServiceError as exc:
                logger.error("Metadata write failed for %s (%s): %s", candidate.file_name, result.blob_name, exc)
                file_report.upload_error = f"Failed to save document record: {exc}"
                continue
            file_report.uploaded = True
            file_report.document_id = document.id
            report.documents.append(document)

        logger.info(
            "Processed %d file(s) for patient %s: %d accepted, %d uploaded, %d failed",
            len(report.files), patient_id, report.accepted, report.successful, report.failed,
        )
        return report

    async def _extract(self, candidate: UploadCandidate, file_report: FileReport) -> Optional[ProcessedDocument]:
        try:
            processed = await asyncio.to_thread(self.extractor.extract, candidate.data, candidate.content_type)
        except ExtractionError as exc:
            file_report.extraction_error = str(exc)
            logger.warning("Extraction failed for %s: %s", candidate.file_name, exc)
            return None

        file_report.word_count = processed.word_count
        file_report.page_count = processed.page_count
        file_report.confidence = processed.confidence
        file_report.relevance = check_medical_relevance(processed.text)
        for warning in file_report.relevance.warnings:
            logger.info("Relevance warning for %s: %s", candidate.file_name, warning)
        return processed

    def _truncate(self, processed: Optional[ProcessedDocument]) -> Optional[str]:
        if processed is None or not processed.text:
            return None
        return processed.text[: self.settings.PROCESSED_TEXT_LIMIT]
