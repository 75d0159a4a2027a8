"""Document upload, listing, signed read URLs and deletion."""
import logging
from dataclasses import asdict
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from pydantic import BaseModel, ConfigDict

from ..core.container import ServiceContainer
from ..core.exceptions import ExtractionError
from ..core.permissions import PERM_VIEW_RECORDS, require_permission
from ..core.security import CurrentUser, get_current_user
from ..services.blob_storage import BlobStorage
from ..services.document_pipeline import DocumentPipeline, PipelineReport
from ..services.medical_data import extract_medical_data
from ..services.validator import UploadCandidate, check_request_limits
from ..stores.base import RecordStore
from .deps import get_blob_storage, get_container, get_pipeline, get_store

logger = logging.getLogger(__name__)

router = APIRouter(tags=["documents"])


class DocumentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    patient_id: str
    file_name: str
    file_path: str
    file_type: str
    file_size: int
    description: Optional[str]
    uploaded_by: str
    created_at: datetime
    processed_text: Optional[str]


class RelevanceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    is_valid: bool
    warnings: List[str]
    suggestions: List[str]


class FileReportResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    index: int
    file_name: str
    content_type: str
    size: int
    accepted: bool
    rejection_reason: Optional[str]
    extraction_error: Optional[str]
    word_count: Optional[int]
    page_count: Optional[int]
    confidence: Optional[float]
    relevance: Optional[RelevanceResponse]
    uploaded: bool
    upload_error: Optional[str]
    document_id: Optional[str]


class UploadReportResponse(BaseModel):
    patient_id: str
    accepted: int
    rejected: int
    extraction_failures: int
    relevance_warnings: int
    successful: int
    failed: int
    files: List[FileReportResponse]
    documents: List[DocumentResponse]

    @classmethod
    def from_report(cls, report: PipelineReport) -> "UploadReportResponse":
        return cls(
            patient_id=report.patient_id,
            accepted=report.accepted,
            rejected=report.rejected,
            extraction_failures=report.extraction_failures,
            relevance_warnings=report.relevance_warnings,
            successful=report.successful,
            failed=report.failed,
            files=[FileReportResponse.model_validate(f) for f in report.files],
            documents=[DocumentResponse.model_validate(d) for d in report.documents],
        )


class ReadUrlResponse(BaseModel):
    url: str
    expires_in_minutes: int


class MedicalDataResponse(BaseModel):
    document_id: str
    vital_signs: Dict[str, str]
    medications: List[str]
    diagnoses: List[str]
    lab_values: Dict[str, str]


@router.post(
    "/patients/{patient_id}/documents",
    response_model=UploadReportResponse,
    status_code=status.HTTP_201_CREATED,
)
async def upload_documents(
    patient_id: str,
    files: List[UploadFile] = File(...),
    description: Optional[str] = Form(None),
    pipeline: DocumentPipeline = Depends(get_pipeline),
    current_user: CurrentUser = Depends(get_current_user),
):
    """Validate, extract and upload a batch of files for one patient.

    Always answers with per-file outcomes; a partially failed batch is not an
    error response.
    """
    # Parts are spooled to disk by the multipart parser; stop reading them into
    # memory as soon as the request exceeds its limits.
    check_request_limits(len(files), sum(upload.size or 0 for upload in files), pipeline.settings)
    candidates = []
    total_bytes = 0
    for upload in files:
        data = await upload.read()
        total_bytes += len(data)
        check_request_limits(len(files), total_bytes, pipeline.settings)
        candidates.append(UploadCandidate(
            file_name=upload.filename or "unnamed",
            content_type=upload.content_type or "application/octet-stream",
            data=data,
        ))
    report = await pipeline.process(
        patient_id, candidates, uploaded_by=current_user.id, description=description or None
    )
    return UploadReportResponse.from_report(report)


@router.get("/patients/{patient_id}/documents", response_model=List[DocumentResponse])
def list_documents(
    patient_id: str,
    store: RecordStore = Depends(get_store),
    current_user: CurrentUser = Depends(get_current_user),
):
    require_permission(current_user.id, PERM_VIEW_RECORDS)
    store.get_patient(patient_id)
    return store.list_documents(patient_id)


@router.get("/documents/{patient_id}/{document_id}/url", response_model=ReadUrlResponse)
def get_document_url(
    patient_id: str,
    document_id: str,
    container: ServiceContainer = Depends(get_container),
    current_user: CurrentUser = Depends(get_current_user),
):
    """Time-limited read URL; the container itself is never public."""
    require_permission(current_user.id, PERM_VIEW_RECORDS)
    document = container.store.get_document(patient_id, document_id)
    minutes = container.settings.SAS_EXPIRY_MINUTES
    try:
        url = container.blob_storage.generate_read_url(document.file_path, timedelta(minutes=minutes))
    except FileNotFoundError:
        raise HTTPException(status_code=404, detail="Document file not found in storage")
    return ReadUrlResponse(url=url, expires_in_minutes=minutes)


@router.delete("/documents/{patient_id}/{document_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_document(
    patient_id: str,
    document_id: str,
    store: RecordStore = Depends(get_store),
    blob_storage: BlobStorage = Depends(get_blob_storage),
    current_user: CurrentUser = Depends(get_current_user),
):
    """Delete the metadata row, then the blob. Only the uploader may do this."""
    document = store.delete_document(patient_id, document_id, requested_by=current_user.id)
    blob_storage.delete(document.file_path)
    logger.info("Deleted document %s for patient %s", document_id, patient_id)


@router.get("/documents/{patient_id}/{document_id}/medical-data", response_model=MedicalDataResponse)
def get_medical_data(
    patient_id: str,
    document_id: str,
    container: ServiceContainer = Depends(get_container),
    current_user: CurrentUser = Depends(get_current_user),
):
    require_permission(current_user.id, PERM_VIEW_RECORDS)
    document = container.store.get_document(patient_id, document_id)
    text = document.processed_text
    if not text:
        try:
            data = container.blob_storage.download(document.file_path)
            text = container.extractor.extract(data, document.file_type).text
        except (FileNotFoundError, ExtractionError) as exc:
            raise HTTPException(status_code=422, detail=f"No extractable text for this document: {exc}")
    return MedicalDataResponse(document_id=document.id, **asdict(extract_medical_data(text)))
