"""Tests for pattern-based medical value extraction."""
from app.services.medical_data import extract_medical_data

VISIT_NOTE = """Clinical Visit Note
Vital Signs: BP 120/80, HR 72, Temp 98.6
Weight: 82 kg
Medication: Lisinopril 10mg daily
Diagnosis: Essential hypertension
Glucose: 95 mg/dL
Creatinine 0.9
"""


class TestExtractMedicalData:
    def test_vital_signs(self):
        data = extract_medical_data(VISIT_NOTE)
        assert data.vital_signs["blood_pressure"] == "BP 120/80"
        assert data.vital_signs["heart_rate"] == "HR 72"
        assert data.vital_signs["temperature"] == "Temp 98.6"
        assert data.vital_signs["weight"] == "Weight: 82 kg"

    def test_medications_and_diagnoses(self):
        data = extract_medical_data(VISIT_NOTE)
        assert data.medications == ["Lisinopril 10mg daily"]
        assert data.diagnoses == ["Essential hypertension"]

    def test_lab_values(self):
        data = extract_medical_data(VISIT_NOTE)
        assert data.lab_values == {"glucose": "Glucose: 95", "creatinine": "Creatinine 0.9"}

    def test_words_containing_keywords_do_not_match(self):
        data = extract_medical_data("The contemporary chart was reviewed 12 times.")
        assert data.vital_signs == {}
        assert data.lab_values == {}

    def test_empty_text(self):
        data = extract_medical_data("")
        assert (data.vital_signs, data.medications, data.diagnoses, data.lab_values) == ({}, [], [], {})
