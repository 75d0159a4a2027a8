"""
Upload validation: size limit and MIME-type allow-list per file, plus
file-count and total-size limits per request.

Rejection of a file is final for that file; the rest of the batch carries on.
Exceeding a request limit rejects the whole request before anything is
extracted or uploaded.
"""
from dataclasses import dataclass
from typing import Optional

from ..core.config import settings as default_settings
from ..core.exceptions import RequestTooLargeError

REASON_TOO_LARGE = "file too large"
REASON_UNSUPPORTED_TYPE = "unsupported type"


def normalize_mime_type(content_type: Optional[str]) -> str:
    """``"Text/Plain; charset=utf-8"`` -> ``"text/plain"``."""
    return (content_type or "").split(";")[0].strip().lower()


@dataclass
class UploadCandidate:
    """A file received from the client, held in memory for the duration of the request."""
    file_name: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class ValidationResult:
    accepted: bool
    reason: Optional[str] = None

    @classmethod
    def accept(cls) -> "ValidationResult":
        return cls(accepted=True)

    @classmethod
    def reject(cls, reason: str) -> "ValidationResult":
        return cls(accepted=False, reason=reason)


def validate_file(candidate: UploadCandidate, settings=None) -> ValidationResult:
    settings = settings or default_settings
    if candidate.size > settings.MAX_UPLOAD_BYTES:
        return ValidationResult.reject(REASON_TOO_LARGE)
    allowed = {normalize_mime_type(m) for m in settings.ALLOWED_MIME_TYPES}
    if normalize_mime_type(candidate.content_type) not in allowed:
        return ValidationResult.reject(REASON_UNSUPPORTED_TYPE)
    return ValidationResult.accept()


def check_request_limits(file_count: int, total_bytes: int, settings=None) -> None:
    """Raise ``RequestTooLargeError`` if one request carries too many files or bytes.

    Every payload of a request is held in memory until its group is uploaded,
    so these two limits bound the memory one upload request can pin.
    """
    settings = settings or default_settings
    if file_count > settings.MAX_FILES_PER_REQUEST:
        raise RequestTooLargeError(
            f"Too many files in one request: {file_count} (limit {settings.MAX_FILES_PER_REQUEST})"
        )
    if total_bytes > settings.MAX_REQUEST_BYTES:
        raise RequestTooLargeError(
            f"Request payload too large: {total_bytes} bytes (limit {settings.MAX_REQUEST_BYTES})"
        )
