"""
Medical-relevance check for extracted text.

Advisory only: the report is logged and returned to the client, it never
blocks an upload.
"""
import re
from dataclasses import dataclass, field
from typing import List

MIN_TEXT_LENGTH = 50
MIN_KEYWORDS = 3

MEDICAL_KEYWORDS = (
    "patient", "diagnosis", "treatment", "medication", "symptoms",
    "blood pressure", "heart rate", "temperature", "weight", "height",
    "lab", "test", "result", "normal", "abnormal", "prescription",
)

PERSONAL_INFO_PATTERNS = (
    re.compile(r"\b\d{3}-\d{2}-\d{4}\b"),  # SSN
    re.compile(r"\b\d{3}-\d{3}-\d{4}\b"),  # Phone
    re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b"),  # Email
)

WARN_SHORT_TEXT = "Document appears to be very short and may not contain useful medical information"
WARN_FEW_KEYWORDS = "Document may not contain sufficient medical information"
SUGGEST_MORE_DETAIL = "Consider adding more clinical details or context"
WARN_PERSONAL_INFO = "Document contains personal information that should be handled securely"


@dataclass
class RelevanceReport:
    is_valid: bool
    warnings: List[str] = field(default_factory=list)
    suggestions: List[str] = field(default_factory=list)


def find_keywords(text: str) -> List[str]:
    lowered = text.lower()
    return [k for k in MEDICAL_KEYWORDS if k in lowered]


def contains_personal_info(text: str) -> bool:
    return any(p.search(text) for p in PERSONAL_INFO_PATTERNS)


def check_medical_relevance(text: str) -> RelevanceReport:
    warnings: List[str] = []
    suggestions: List[str] = []

    if len(text) < MIN_TEXT_LENGTH:
        warnings.append(WARN_SHORT_TEXT)

    if len(find_keywords(text)) < MIN_KEYWORDS:
        warnings.append(WARN_FEW_KEYWORDS)
        suggestions.append(SUGGEST_MORE_DETAIL)

    if contains_personal_info(text):
        warnings.append(WARN_PERSONAL_INFO)

    return RelevanceReport(is_valid=not warnings, warnings=warnings, suggestions=suggestions)
