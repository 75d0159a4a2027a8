"""
Khumalo Health Records - patient document management API.

Doctors register patients, upload clinical documents (PDF, Word, text,
scanned images) and generate clinical summaries across a patient's files.
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api import admin, documents, patients, summaries
from .core.access_log import AccessLogMiddleware
from .core.config import settings as default_settings
from .core.container import build_container
from .core.exceptions import (
    ConfigurationError,
    DocumentServiceError,
    DuplicateRecordError,
    PermissionDeniedError,
    RecordNotFoundError,
    RequestTooLargeError,
)
from .seed_demo import seed_demo_data
from .services.blob_storage import BlobStorage
from .stores.base import RecordStore

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    RecordNotFoundError: 404,
    DuplicateRecordError: 409,
    PermissionDeniedError: 403,
    RequestTooLargeError: 413,
    ConfigurationError: 503,
}


async def service_error_handler(request: Request, exc: DocumentServiceError) -> JSONResponse:
    status_code = next(
        (code for exc_type, code in ERROR_STATUS.items() if isinstance(exc, exc_type)),
        500,
    )
    if status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc, exc_info=exc)
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


def create_app(
    settings=None,
    store: Optional[RecordStore] = None,
    blob_storage: Optional[BlobStorage] = None,
    summary_client=None,
) -> FastAPI:
    settings = settings or default_settings
    logging.basicConfig(level=settings.LOG_LEVEL.upper())

    container = build_container(settings, store=store, blob_storage=blob_storage, summary_client=summary_client)

    # Seed demo patients and document (idempotent)
    if settings.SEED_DEMO_DATA:
        seed_demo_data(container.store)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        container.close()

    app = FastAPI(
        title=f"{settings.APP_NAME} API",
        description=(
            "Patient registry and clinical document store with text extraction, "
            "OCR for scanned images and AI-assisted clinical summaries."
        ),
        version=settings.VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.container = container

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # TODO: Restrict to specific origins in production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_middleware(AccessLogMiddleware)
    app.add_exception_handler(DocumentServiceError, service_error_handler)

    app.include_router(patients.router, prefix="/api/v1")
    app.include_router(documents.router, prefix="/api/v1")
    app.include_router(summaries.router, prefix="/api/v1")
    app.include_router(admin.router, prefix="/api/v1")

    @app.get("/health")
    def health_check():
        return {
            "status": "healthy",
            "service": settings.APP_NAME,
            "version": settings.VERSION,
            "records": container.store.name,
            "blobs": container.blob_storage.name,
        }

    return app


app = create_app()
