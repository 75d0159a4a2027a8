"""Tests for per-format text extraction."""
import io

import pytest
from PIL import Image

from app.core.config import DEFAULT_ALLOWED_MIME_TYPES, Settings
from app.core.exceptions import ExtractionError
from app.services import content_extractor
from app.services.content_extractor import (
    OLE_MAGIC,
    ContentExtractor,
    DocumentFormat,
    _FORMAT_HANDLERS,
    classify_mime,
    count_words,
)
from conftest import make_docx, make_pdf

DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"


def _png() -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (40, 20), "white").save(buffer, format="PNG")
    return buffer.getvalue()


class TestClassification:
    def test_every_format_has_a_handler(self):
        assert set(_FORMAT_HANDLERS) == set(DocumentFormat)
        for method in _FORMAT_HANDLERS.values():
            assert callable(getattr(ContentExtractor, method))

    def test_every_allowed_type_is_classified(self):
        for mime in DEFAULT_ALLOWED_MIME_TYPES:
            assert classify_mime(mime) is not None, mime

    def test_parameters_and_case_are_ignored(self):
        assert classify_mime("Text/Plain; charset=utf-8") is DocumentFormat.TEXT

    def test_unknown_type(self):
        assert classify_mime("application/zip") is None

    def test_word_count_is_whitespace_tokens(self):
        assert count_words("  one two\tthree\nfour  ") == 4
        assert count_words("") == 0


class TestContentExtractor:
    def setup_method(self):
        self.extractor = ContentExtractor(Settings(OCR_ENABLED=True))

    def test_plain_text_is_verbatim(self):
        text = "Patient reports mild headache.\nNo fever.  Résumé ok"
        result = self.extractor.extract(text.encode("utf-8"), "text/plain")
        assert result.text == text
        assert result.word_count == len(text.split())
        assert result.confidence == 1.0

    def test_invalid_utf8_is_replaced_not_rejected(self):
        result = self.extractor.extract(b"temp \xff 37.2", "text/plain")
        assert "temp" in result.text
        assert "�" in result.text

    def test_pdf_pages_are_counted(self):
        data = make_pdf("Complete blood count results", "Hemoglobin 14.2 normal")
        result = self.extractor.extract(data, "application/pdf")
        assert result.page_count == 2
        assert "Complete blood count results" in result.text
        assert "Hemoglobin" in result.text
        assert result.word_count == len(result.text.split())

    def test_docx_paragraphs(self):
        data = make_docx("Clinical Visit Note", "Diagnosis: hypertension")
        result = self.extractor.extract(data, DOCX_MIME)
        assert result.text.splitlines()[:2] == ["Clinical Visit Note", "Diagnosis: hypertension"]
        assert result.word_count == 5

    def test_legacy_doc_is_an_extraction_error(self):
        with pytest.raises(ExtractionError):
            self.extractor.extract(OLE_MAGIC + b"\x00" * 64, "application/msword")

    def test_unsupported_type(self):
        with pytest.raises(ExtractionError, match="unsupported type"):
            self.extractor.extract(b"PK\x03\x04", "application/zip")

    def test_corrupt_pdf(self):
        with pytest.raises(ExtractionError, match="Failed to process document"):
            self.extractor.extract(b"not a pdf at all", "application/pdf")

    def test_image_requires_ocr(self):
        extractor = ContentExtractor(Settings(OCR_ENABLED=False))
        with pytest.raises(ExtractionError, match="OCR required but disabled"):
            extractor.extract(_png(), "image/png")

    def test_image_ocr(self, monkeypatch):
        calls = {}

        def fake_image_to_data(image, lang, output_type, timeout):
            calls.update(lang=lang, timeout=timeout, size=image.size)
            return {
                "text": ["", "Glucose", "95", "mg/dL", "normal"],
                "conf": ["-1", "90", "80", "70", "60"],
                "block_num": [0, 1, 1, 1, 1],
                "par_num": [0, 1, 1, 1, 1],
                "line_num": [0, 1, 1, 1, 2],
            }

        monkeypatch.setattr(content_extractor.pytesseract, "image_to_data", fake_image_to_data)
        result = self.extractor.extract(_png(), "image/png")

        assert result.text == "Glucose 95 mg/dL\nnormal"
        assert result.word_count == 4
        assert result.confidence == pytest.approx(0.75)
        assert result.language == "eng"
        assert calls == {"lang": "eng", "timeout": 120, "size": (40, 20)}

    def test_ocr_failure_is_an_extraction_error(self, monkeypatch):
        def boom(*args, **kwargs):
            raise RuntimeError("Tesseract process timeout")

        monkeypatch.setattr(content_extractor.pytesseract, "image_to_data", boom)
        with pytest.raises(ExtractionError, match="timeout"):
            self.extractor.extract(_png(), "image/png")
