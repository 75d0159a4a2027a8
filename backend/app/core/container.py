"""Service wiring: one container per application instance, built at startup."""
import logging
from dataclasses import dataclass
from typing import Optional

from ..services.blob_storage import BlobStorage, build_blob_storage
from ..services.content_extractor import ContentExtractor
from ..services.document_pipeline import DocumentPipeline
from ..services.summary_generator import SummaryGenerator, SummaryService
from ..stores.base import RecordStore
from ..stores.factory import build_record_store

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    settings: object
    store: RecordStore
    blob_storage: BlobStorage
    extractor: ContentExtractor
    pipeline: DocumentPipeline
    summaries: SummaryService

    def close(self) -> None:
        self.store.close()


def build_container(
    settings,
    store: Optional[RecordStore] = None,
    blob_storage: Optional[BlobStorage] = None,
    summary_client=None,
) -> ServiceContainer:
    """Build every service from ``settings``; explicit arguments replace the configured backends."""
    store = store or build_record_store(settings)
    blob_storage = blob_storage or build_blob_storage(settings)
    extractor = ContentExtractor(settings)
    generator = SummaryGenerator(settings, blob_storage, extractor, client=summary_client)
    logger.info(
        "Services ready: records=%s blobs=%s summarizer=%s",
        store.name, blob_storage.__class__.__name__,
        "azure-openai" if generator.remote_enabled else "local",
    )
    return ServiceContainer(
        settings=settings,
        store=store,
        blob_storage=blob_storage,
        extractor=extractor,
        pipeline=DocumentPipeline(store, blob_storage, extractor, settings),
        summaries=SummaryService(store, generator),
    )
