"""
Pattern-based extraction of structured values from clinical text.

Basic keyword/regex matching for vital signs, medications, diagnoses and
common lab values. Results are hints for the reader, not coded data.
"""
import re
from dataclasses import dataclass, field
from typing import Dict, List

VITAL_SIGN_PATTERNS = {
    "blood_pressure": re.compile(r"\b(?:BP|blood pressure)[:\s]*(\d{2,3}/\d{2,3})", re.IGNORECASE),
    "heart_rate": re.compile(r"\b(?:HR|heart rate|pulse)[:\s]*(\d{2,3})", re.IGNORECASE),
    "temperature": re.compile(r"\b(?:temp|temperature)[:\s]*(\d{2,3}\.?\d*)", re.IGNORECASE),
    "weight": re.compile(r"\b(?:weight|wt)[:\s]*(\d{2,3}\.?\d*)\s*(?:kg|lbs|lb|pounds?)", re.IGNORECASE),
    "height": re.compile(r"\b(?:height|ht)[:\s]*(\d{1,2}['\"]?\d*)\s*(?:inches|inch|in|cm|feet|foot)", re.IGNORECASE),
}

LAB_VALUE_PATTERNS = {
    "glucose": re.compile(r"\bglucose[:\s]*(\d{2,3})", re.IGNORECASE),
    "cholesterol": re.compile(r"\bcholesterol[:\s]*(\d{2,3})", re.IGNORECASE),
    "hemoglobin": re.compile(r"\bhemoglobin[:\s]*(\d{1,2}\.?\d*)", re.IGNORECASE),
    "creatinine": re.compile(r"\bcreatinine[:\s]*(\d\.?\d*)", re.IGNORECASE),
}

MEDICATION_PATTERN = re.compile(r"\b(?:medication|med|drug)[:\s]+([^.\n]+)", re.IGNORECASE)
DIAGNOSIS_PATTERN = re.compile(r"\b(?:diagnosis|dx|condition)[:\s]+([^.\n]+)", re.IGNORECASE)


@dataclass
class MedicalData:
    vital_signs: Dict[str, str] = field(default_factory=dict)
    medications: List[str] = field(default_factory=list)
    diagnoses: List[str] = field(default_factory=list)
    lab_values: Dict[str, str] = field(default_factory=dict)


def _first_matches(patterns: Dict[str, "re.Pattern"], text: str) -> Dict[str, str]:
    found = {}
    for key, pattern in patterns.items():
        match = pattern.search(text)
        if match:
            found[key] = match.group(0).strip()
    return found


def extract_medical_data(text: str) -> MedicalData:
    return MedicalData(
        vital_signs=_first_matches(VITAL_SIGN_PATTERNS, text),
        medications=[m.group(1).strip() for m in MEDICATION_PATTERN.finditer(text)],
        diagnoses=[m.group(1).strip() for m in DIAGNOSIS_PATTERN.finditer(text)],
        lab_values=_first_matches(LAB_VALUE_PATTERNS, text),
    )
