"""
Batch upload of documents to blob storage.

Files are uploaded in fixed-size groups. Every upload in a group runs
concurrently and the whole group settles before the next one starts, which
caps in-flight connections at the group size. A single file
failing never cancels its siblings; it becomes a failed ``UploadResult``.
Only a configuration problem (no credentials, unknown backend) aborts the
batch.
"""
import asyncio
import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, List, Optional, Sequence

from ..core.config import settings as default_settings
from ..core.exceptions import UploadError
from .blob_storage import BlobStorage, build_blob_name
from .validator import UploadCandidate

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


@dataclass
class UploadResult:
    index: int  # Position of the file in the submitted batch
    file_name: str
    success: bool
    blob_name: Optional[str] = None
    url: Optional[str] = None
    error: Optional[str] = None


@dataclass
class BatchUploadResult:
    successful: List[UploadResult] = field(default_factory=list)
    failed: List[UploadResult] = field(default_factory=list)


class BatchUploadCoordinator:
    def __init__(self, storage: BlobStorage, settings=None):
        settings = settings or default_settings
        self.storage = storage
        self.batch_size = max(1, settings.UPLOAD_BATCH_SIZE)
        self.delay_seconds = max(0, settings.UPLOAD_BATCH_DELAY_MS) / 1000.0
        self._last_timestamp_ms = 0
        self._timestamp_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def upload_all(
        self,
        files: Sequence[UploadCandidate],
        patient_id: str,
        on_progress: Optional[ProgressCallback] = None,
        description: Optional[str] = None,
    ) -> BatchUploadResult:
        """Upload ``files`` for ``patient_id``; results keep the input order.

        Raises ``ConfigurationError`` before any upload if storage is unusable.
        """
        total = len(files)
        if total == 0:
            return BatchUploadResult()

        await asyncio.to_thread(self.storage.ensure_ready)

        # Names are fixed up front so each result can be traced to its file.
        blob_names = [build_blob_name(patient_id, f.file_name, self._next_timestamp()) for f in files]

        results: List[UploadResult] = []
        completed = 0
        for start in range(0, total, self.batch_size):
            indices = range(start, min(start + self.batch_size, total))
            group = await asyncio.gather(
                *(
                    asyncio.to_thread(
                        self.upload_one, files[i], patient_id, i, blob_names[i], description
                    )
                    for i in indices
                ),
                return_exceptions=True,
            )
            for i, outcome in zip(indices, group):
                if isinstance(outcome, BaseException):
                    logger.error("Unexpected error uploading %s", files[i].file_name, exc_info=outcome)
                    outcome = self._failure(i, files[i], blob_names[i], outcome)
                results.append(outcome)

            completed += len(indices)
            if on_progress is not None:
                on_progress(completed, total)

            if completed < total and self.delay_seconds:
                await asyncio.sleep(self.delay_seconds)

        batch = BatchUploadResult(
            successful=[r for r in results if r.success],
            failed=[r for r in results if not r.success],
        )
        logger.info(
            "Batch upload for patient %s: %d succeeded, %d failed",
            patient_id, len(batch.successful), len(batch.failed),
        )
        return batch

    def upload_one(
        self,
        candidate: UploadCandidate,
        patient_id: str,
        index: int,
        blob_name: str,
        description: Optional[str] = None,
    ) -> UploadResult:
        """Upload a single file; errors are returned as a failed result, never raised."""
        metadata = {
            "patient_id": patient_id,
            "original_file_name": candidate.file_name,
            "uploaded_at": datetime.now(timezone.utc).isoformat(),
            "description": description or f"Batch upload - {candidate.file_name}",
        }
        try:
            url = self.storage.upload(blob_name, candidate.data, candidate.content_type, metadata)
        except UploadError as exc:
            return self._failure(index, candidate, blob_name, exc)
        except Exception as exc:
            logger.error("Unexpected error uploading %s", candidate.file_name, exc_info=exc)
            return self._failure(index, candidate, blob_name, exc)
        return UploadResult(
            index=index,
            file_name=candidate.file_name,
            success=True,
            blob_name=blob_name,
            url=url,
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _next_timestamp(self) -> int:
        """Millisecond timestamp, strictly increasing per coordinator."""
        with self._timestamp_lock:
            now = time.time_ns() // 1_000_000
            self._last_timestamp_ms = max(now, self._last_timestamp_ms + 1)
            return self._last_timestamp_ms

    @staticmethod
    def _failure(index: int, candidate: UploadCandidate, blob_name: str, exc: BaseException) -> UploadResult:
        logger.warning("Upload failed for %s (%s): %s", candidate.file_name, blob_name, exc)
        return UploadResult(
            index=index,
            file_name=candidate.file_name,
            success=False,
            blob_name=blob_name,
            error=str(exc) or exc.__class__.__name__,
        )
