"""
Demo data seeder.

Creates two demo patients and a sample lab document so the patient list,
document list and summary flows have something to show on a fresh start.

  Jane Doe   (MRN-00001) with cbc_results.pdf
  John Smith (MRN-00002) with no documents

This seeder is idempotent - it is safe to call on every startup. Only
metadata rows are created; the sample document has no blob behind it, so
summaries fall back to its description.
"""
import logging
from datetime import date
from typing import Optional

from .core.exceptions import DuplicateRecordError
from .models.records import NewDocument, NewPatient, PatientRecord
from .stores.base import RecordStore

logger = logging.getLogger(__name__)

DEMO_USER_ID = "demo-user-1"

DEMO_PATIENTS = (
    NewPatient(
        first_name="Jane",
        last_name="Doe",
        date_of_birth=date(1985, 4, 12),
        email="jane.doe@example.com",
        phone="+1 (555) 111-2233",
        address="123 Main St, Springfield",
        medical_record_number="MRN-00001",
    ),
    NewPatient(
        first_name="John",
        last_name="Smith",
        date_of_birth=date(1979, 11, 23),
        medical_record_number="MRN-00002",
    ),
)

DEMO_DOCUMENT_NAME = "cbc_results.pdf"


def seed_demo_data(store: RecordStore, user_id: str = DEMO_USER_ID) -> None:
    """Create demo patients and document if they do not already exist."""
    patients = [_seed_patient(store, data, user_id) for data in DEMO_PATIENTS]
    _seed_document(store, patients[0], user_id)


# ── helpers ──────────────────────────────────────────────────────────────────

def find_by_mrn(store: RecordStore, mrn: str) -> Optional[PatientRecord]:
    for patient in store.search_patients(mrn):
        if patient.medical_record_number == mrn:
            return patient
    return None


def _seed_patient(store: RecordStore, data: NewPatient, user_id: str) -> PatientRecord:
    patient = find_by_mrn(store, data.medical_record_number)
    if patient is None:
        try:
            patient = store.create_patient(data, created_by=user_id)
        except DuplicateRecordError:
            # Another worker seeded it first
            return find_by_mrn(store, data.medical_record_number)
        logger.info("[seed] Created demo patient: %s (MRN: %s)", patient.full_name, patient.medical_record_number)
    return patient


def _seed_document(store: RecordStore, patient: PatientRecord, user_id: str) -> None:
    if any(d.file_name == DEMO_DOCUMENT_NAME for d in store.list_documents(patient.id)):
        return
    document = store.create_document(NewDocument(
        patient_id=patient.id,
        file_name=DEMO_DOCUMENT_NAME,
        file_path=f"{patient.id}/{DEMO_DOCUMENT_NAME}",
        file_type="application/pdf",
        file_size=234567,
        uploaded_by=user_id,
        description="Complete blood count - normal range",
    ))
    logger.info("[seed] Created demo document: %s (id: %s)", document.file_name, document.id)
