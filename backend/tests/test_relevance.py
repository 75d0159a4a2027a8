"""Tests for the advisory medical-relevance check."""
from app.services.relevance import (
    MIN_TEXT_LENGTH,
    SUGGEST_MORE_DETAIL,
    WARN_FEW_KEYWORDS,
    WARN_PERSONAL_INFO,
    WARN_SHORT_TEXT,
    check_medical_relevance,
    find_keywords,
)

KEYWORDS = "patient diagnosis treatment"


def _text_of_length(n: int) -> str:
    return (KEYWORDS + " " + "x" * n)[:n]


class TestMedicalRelevance:
    def test_length_boundary(self):
        short = check_medical_relevance(_text_of_length(MIN_TEXT_LENGTH - 1))
        exact = check_medical_relevance(_text_of_length(MIN_TEXT_LENGTH))
        assert WARN_SHORT_TEXT in short.warnings
        assert not short.is_valid
        assert exact.warnings == []
        assert exact.is_valid

    def test_few_keywords_adds_suggestion(self):
        report = check_medical_relevance("The patient went home after a long and uneventful afternoon.")
        assert WARN_FEW_KEYWORDS in report.warnings
        assert report.suggestions == [SUGGEST_MORE_DETAIL]

    def test_keywords_are_case_insensitive_and_distinct(self):
        assert find_keywords("PATIENT patient Lab LAB result") == ["patient", "lab", "result"]

    def test_personal_info_patterns(self):
        base = "Patient lab result normal, treatment unchanged for the next visit. "
        for sample in ("SSN 123-45-6789", "call 555-123-4567", "mail jane.doe@example.com"):
            report = check_medical_relevance(base + sample)
            assert report.warnings == [WARN_PERSONAL_INFO], sample

    def test_clean_clinical_text_is_valid(self):
        report = check_medical_relevance(
            "Patient blood pressure and heart rate normal. Lab test result within range."
        )
        assert report.is_valid
        assert report.suggestions == []

    def test_is_deterministic(self):
        text = "short"
        assert check_medical_relevance(text) == check_medical_relevance(text)
