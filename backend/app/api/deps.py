"""FastAPI dependencies resolving services from the application's container."""
from fastapi import Request

from ..core.container import ServiceContainer
from ..services.blob_storage import BlobStorage
from ..services.document_pipeline import DocumentPipeline
from ..services.summary_generator import SummaryService
from ..stores.base import RecordStore


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


def get_store(request: Request) -> RecordStore:
    return get_container(request).store


def get_blob_storage(request: Request) -> BlobStorage:
    return get_container(request).blob_storage


def get_pipeline(request: Request) -> DocumentPipeline:
    return get_container(request).pipeline


def get_summary_service(request: Request) -> SummaryService:
    return get_container(request).summaries
