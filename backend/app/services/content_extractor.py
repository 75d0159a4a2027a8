"""
Text extraction for uploaded documents.

The declared MIME type is mapped onto a closed set of document formats and
each format has exactly one extraction strategy:

- PDF: pdfplumber, page-aware
- Word (OOXML): python-docx raw paragraph and table text
- Plain text: bytes decoded verbatim
- Images: Tesseract OCR via pytesseract, only when OCR is enabled

There is no fallback between strategies. Any failure raises
``ExtractionError`` for that file only.
"""
import io
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional

import pdfplumber
import pytesseract
from docx import Document as DocxDocument
from PIL import Image

from ..core.config import settings as default_settings
from ..core.exceptions import ExtractionError
from .validator import normalize_mime_type

logger = logging.getLogger(__name__)

# Compound File Binary header used by legacy .doc files
OLE_MAGIC = b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1"


class DocumentFormat(str, Enum):
    PDF = "pdf"
    WORD = "word"
    TEXT = "text"
    IMAGE = "image"


MIME_FORMATS: Dict[str, DocumentFormat] = {
    "application/pdf": DocumentFormat.PDF,
    "application/msword": DocumentFormat.WORD,
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": DocumentFormat.WORD,
    "text/plain": DocumentFormat.TEXT,
    "image/jpeg": DocumentFormat.IMAGE,
    "image/png": DocumentFormat.IMAGE,
    "image/tiff": DocumentFormat.IMAGE,
    "image/bmp": DocumentFormat.IMAGE,
}

# One extraction method per format; checked below so a new format cannot be
# added without a handler.
_FORMAT_HANDLERS: Dict[DocumentFormat, str] = {
    DocumentFormat.PDF: "_extract_pdf",
    DocumentFormat.WORD: "_extract_word",
    DocumentFormat.TEXT: "_extract_text",
    DocumentFormat.IMAGE: "_extract_image",
}

_unhandled = set(DocumentFormat) - set(_FORMAT_HANDLERS)
if _unhandled:
    raise RuntimeError(f"No extraction handler for formats: {sorted(f.value for f in _unhandled)}")


def classify_mime(content_type: str) -> Optional[DocumentFormat]:
    return MIME_FORMATS.get(normalize_mime_type(content_type))


def count_words(text: str) -> int:
    return len(text.split())


@dataclass
class ProcessedDocument:
    """Extraction result; only lives for the duration of the upload pipeline."""
    text: str
    word_count: int
    page_count: Optional[int] = None
    confidence: Optional[float] = None
    language: Optional[str] = None


class ContentExtractor:
    """Dispatch a file to the extraction strategy for its declared type."""

    def __init__(self, settings=None):
        settings = settings or default_settings
        self.ocr_enabled = settings.OCR_ENABLED
        self.ocr_language = settings.OCR_LANGUAGE
        self.ocr_timeout = settings.OCR_TIMEOUT_SECONDS

    def extract(self, data: bytes, content_type: str) -> ProcessedDocument:
        doc_format = classify_mime(content_type)
        if doc_format is None:
            raise ExtractionError("unsupported type")

        handler = getattr(self, _FORMAT_HANDLERS[doc_format])
        try:
            return handler(data)
        except ExtractionError:
            raise
        except Exception as exc:
            raise ExtractionError(f"Failed to process document: {exc}") from exc

    # ------------------------------------------------------------------
    # Strategies
    # ------------------------------------------------------------------

    def _extract_pdf(self, data: bytes) -> ProcessedDocument:
        with pdfplumber.open(io.BytesIO(data)) as pdf:
            pages = [page.extract_text() or "" for page in pdf.pages]
        text = "\n".join(pages)
        return ProcessedDocument(
            text=text,
            word_count=count_words(text),
            page_count=len(pages),
            confidence=1.0,
        )

    def _extract_word(self, data: bytes) -> ProcessedDocument:
        if data.startswith(OLE_MAGIC):
            raise ExtractionError("Legacy .doc files are stored but their text cannot be extracted")
        document = DocxDocument(io.BytesIO(data))
        parts: List[str] = [p.text for p in document.paragraphs]
        for table in document.tables:
            for row in table.rows:
                parts.append("\t".join(cell.text for cell in row.cells))
        text = "\n".join(parts)
        return ProcessedDocument(text=text, word_count=count_words(text), confidence=1.0)

    def _extract_text(self, data: bytes) -> ProcessedDocument:
        try:
            text = data.decode("utf-8")
        except UnicodeDecodeError:
            logger.warning("Plain-text upload is not valid UTF-8; undecodable bytes replaced")
            text = data.decode("utf-8", errors="replace")
        return ProcessedDocument(text=text, word_count=count_words(text), confidence=1.0)

    def _extract_image(self, data: bytes) -> ProcessedDocument:
        if not self.ocr_enabled:
            raise ExtractionError("OCR required but disabled")

        image = Image.open(io.BytesIO(data))
        image.load()
        if image.mode not in ("RGB", "L"):
            image = image.convert("RGB")

        ocr = pytesseract.image_to_data(
            image,
            lang=self.ocr_language,
            output_type=pytesseract.Output.DICT,
            timeout=self.ocr_timeout,
        )
        text, confidence = _assemble_ocr_text(ocr)
        return ProcessedDocument(
            text=text,
            word_count=count_words(text),
            confidence=confidence,
            language=self.ocr_language,
        )


def _assemble_ocr_text(ocr: Dict[str, list]):
    """Rebuild line-broken text and mean word confidence (0-1) from Tesseract's word table."""
    lines: Dict[tuple, List[str]] = {}
    confidences: List[float] = []

    for i, word in enumerate(ocr["text"]):
        conf = float(ocr["conf"][i])
        word = (word or "").strip()
        if conf < 0 or not word:
            continue
        key = (ocr["block_num"][i], ocr["par_num"][i], ocr["line_num"][i])
        lines.setdefault(key, []).append(word)
        confidences.append(conf / 100.0)

    text = "\n".join(" ".join(words) for _, words in sorted(lines.items()))
    confidence = sum(confidences) / len(confidences) if confidences else 0.0
    return text, min(max(confidence, 0.0), 1.0)
