"""
Exception hierarchy for the document service.

File-level failures (extraction, upload) are caught by the pipeline and turned
into per-file results. Operation-level failures (configuration) propagate to
the API layer, which maps them to HTTP responses.
"""


class DocumentServiceError(Exception):
    """Base exception for all document service errors."""


class ConfigurationError(DocumentServiceError):
    """A required credential or endpoint is missing; fatal for the operation."""


class ExtractionError(DocumentServiceError):
    """Text could not be extracted from a single file."""


class UploadError(DocumentServiceError):
    """A single blob upload failed."""


class RecordNotFoundError(DocumentServiceError):
    """Requested patient, document or summary does not exist."""


class DuplicateRecordError(DocumentServiceError):
    """A uniqueness constraint (e.g. medical record number) would be violated."""


class PermissionDeniedError(DocumentServiceError):
    """The current user does not own the record they are trying to change."""


class RequestTooLargeError(DocumentServiceError):
    """An upload request carries more files or bytes than one request may hold."""
