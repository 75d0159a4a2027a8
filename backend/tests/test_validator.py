"""Tests for upload validation."""
import pytest

from app.core.config import DEFAULT_ALLOWED_MIME_TYPES, Settings
from app.core.exceptions import RequestTooLargeError
from app.services.content_extractor import ContentExtractor
from app.services.validator import (
    REASON_TOO_LARGE,
    REASON_UNSUPPORTED_TYPE,
    UploadCandidate,
    check_request_limits,
    normalize_mime_type,
    validate_file,
)


class TestValidateFile:
    def setup_method(self):
        self.settings = Settings(MAX_UPLOAD_BYTES=1024)

    def test_accepts_every_allowed_type(self):
        for mime in DEFAULT_ALLOWED_MIME_TYPES:
            result = validate_file(UploadCandidate("a", mime, b"x"), self.settings)
            assert result.accepted, mime
            assert result.reason is None

    def test_size_limit_is_inclusive(self):
        at_limit = UploadCandidate("a.txt", "text/plain", b"x" * 1024)
        over = UploadCandidate("a.txt", "text/plain", b"x" * 1025)
        assert validate_file(at_limit, self.settings).accepted
        result = validate_file(over, self.settings)
        assert not result.accepted
        assert result.reason == REASON_TOO_LARGE

    def test_rejects_unlisted_type(self):
        result = validate_file(UploadCandidate("a.zip", "application/zip", b"PK"), self.settings)
        assert not result.accepted
        assert result.reason == REASON_UNSUPPORTED_TYPE

    def test_size_checked_before_type(self):
        result = validate_file(UploadCandidate("a.zip", "application/zip", b"x" * 2048), self.settings)
        assert result.reason == REASON_TOO_LARGE

    def test_default_limit_is_50_mib(self):
        assert Settings().MAX_UPLOAD_BYTES == 50 * 1024 * 1024

    def test_type_parameters_and_case_are_ignored(self):
        for mime in ("text/plain; charset=utf-8", "Application/PDF", " IMAGE/PNG "):
            assert validate_file(UploadCandidate("a", mime, b"x"), self.settings).accepted, mime

    def test_accepted_parameterized_text_is_extractable(self):
        candidate = UploadCandidate("note.txt", "text/plain; charset=utf-8", b"Patient note")
        assert validate_file(candidate, self.settings).accepted
        assert ContentExtractor(self.settings).extract(candidate.data, candidate.content_type).text == "Patient note"

    def test_normalize_mime_type(self):
        assert normalize_mime_type("Text/Plain; charset=UTF-8") == "text/plain"
        assert normalize_mime_type(None) == ""


class TestRequestLimits:
    def setup_method(self):
        self.settings = Settings(MAX_FILES_PER_REQUEST=3, MAX_REQUEST_BYTES=1000)

    def test_within_limits(self):
        check_request_limits(3, 1000, self.settings)

    def test_too_many_files(self):
        with pytest.raises(RequestTooLargeError, match="Too many files"):
            check_request_limits(4, 10, self.settings)

    def test_too_many_bytes(self):
        with pytest.raises(RequestTooLargeError, match="payload too large"):
            check_request_limits(1, 1001, self.settings)

    def test_defaults_bound_request_memory(self):
        settings = Settings()
        assert settings.MAX_FILES_PER_REQUEST == 20
        assert settings.MAX_REQUEST_BYTES == 100 * 1024 * 1024
