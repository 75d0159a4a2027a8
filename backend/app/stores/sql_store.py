"""Relational record store backed by SQLAlchemy."""
import logging
from contextlib import contextmanager
from typing import Iterator, List

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from ..core.exceptions import DuplicateRecordError, RecordNotFoundError
from ..core.permissions import PERM_DELETE_DOCUMENT, PERM_DELETE_PATIENT, require_permission
from ..models.base import create_session_factory, generate_uuid, utcnow
from ..models.document import Document
from ..models.patient import Patient
from ..models.records import (
    DocumentRecord,
    NewDocument,
    NewPatient,
    PatientRecord,
    SummaryRecord,
    ensure_utc,
)
from ..models.summary import AISummary
from .base import SEARCH_LIMIT, RecordStore

logger = logging.getLogger(__name__)


def _patient_record(row: Patient) -> PatientRecord:
    return PatientRecord(
        id=row.id,
        first_name=row.first_name,
        last_name=row.last_name,
        date_of_birth=row.date_of_birth,
        medical_record_number=row.medical_record_number,
        created_by=row.created_by,
        created_at=ensure_utc(row.created_at),
        updated_at=ensure_utc(row.updated_at),
        email=row.email,
        phone=row.phone,
        address=row.address,
    )


def _document_record(row: Document) -> DocumentRecord:
    return DocumentRecord(
        id=row.id,
        patient_id=row.patient_id,
        file_name=row.file_name,
        file_path=row.file_path,
        file_type=row.file_type,
        file_size=row.file_size,
        uploaded_by=row.uploaded_by,
        created_at=ensure_utc(row.created_at),
        description=row.description,
        processed_text=row.processed_text,
    )


def _summary_record(row: AISummary) -> SummaryRecord:
    ids = [i for i in (row.document_ids or "").split(",") if i]
    return SummaryRecord(
        id=row.id,
        patient_id=row.patient_id,
        summary_text=row.summary_text,
        generated_by=row.generated_by,
        created_at=ensure_utc(row.created_at),
        document_ids=ids,
    )


class SQLRecordStore(RecordStore):
    """Patients, documents and summaries in a relational database.

    Documents and summaries cascade-delete with their patient. Deletes are
    restricted to the creating/uploading user.
    """

    name = "sql"

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    @classmethod
    def from_url(cls, database_url: str) -> "SQLRecordStore":
        return cls(create_session_factory(database_url))

    @contextmanager
    def _session(self) -> Iterator[Session]:
        db = self.session_factory()
        try:
            yield db
        finally:
            db.close()

    # -- patients ----------------------------------------------------------

    def create_patient(self, data: NewPatient, created_by: str) -> PatientRecord:
        with self._session() as db:
            existing = (
                db.query(Patient)
                .filter(Patient.medical_record_number == data.medical_record_number)
                .first()
            )
            if existing:
                raise DuplicateRecordError("Medical record number already exists")
            now = utcnow()
            patient = Patient(
                id=generate_uuid(),
                created_by=created_by,
                created_at=now,
                updated_at=now,
                **vars(data),
            )
            db.add(patient)
            self._commit_patient(db)
            db.refresh(patient)
            return _patient_record(patient)

    @staticmethod
    def _commit_patient(db: Session) -> None:
        # A concurrent writer can take the MRN between the check and the commit
        try:
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            raise DuplicateRecordError("Medical record number already exists") from exc

    def list_patients(self) -> List[PatientRecord]:
        with self._session() as db:
            rows = db.query(Patient).order_by(Patient.created_at.desc()).all()
            return [_patient_record(r) for r in rows]

    def _get_patient_row(self, db: Session, patient_id: str) -> Patient:
        patient = db.query(Patient).filter(Patient.id == patient_id).first()
        if not patient:
            raise RecordNotFoundError("Patient not found")
        return patient

    def get_patient(self, patient_id: str) -> PatientRecord:
        with self._session() as db:
            return _patient_record(self._get_patient_row(db, patient_id))

    def update_patient(self, patient_id: str, data: NewPatient) -> PatientRecord:
        with self._session() as db:
            patient = self._get_patient_row(db, patient_id)
            clash = (
                db.query(Patient)
                .filter(Patient.medical_record_number == data.medical_record_number)
                .filter(Patient.id != patient_id)
                .first()
            )
            if clash:
                raise DuplicateRecordError("Medical record number already exists")
            for key, value in vars(data).items():
                setattr(patient, key, value)
            patient.updated_at = utcnow()
            self._commit_patient(db)
            db.refresh(patient)
            return _patient_record(patient)

    def delete_patient(self, patient_id: str, requested_by: str) -> None:
        with self._session() as db:
            patient = self._get_patient_row(db, patient_id)
            require_permission(requested_by, PERM_DELETE_PATIENT, owner_id=patient.created_by)
            db.delete(patient)
            db.commit()
            logger.info("Deleted patient %s and its documents/summaries", patient_id)

    def search_patients(self, query: str) -> List[PatientRecord]:
        term = f"%{query.strip()}%"
        with self._session() as db:
            rows = (
                db.query(Patient)
                .filter(
                    Patient.first_name.ilike(term)
                    | Patient.last_name.ilike(term)
                    | Patient.medical_record_number.ilike(term)
                    | Patient.email.ilike(term)
                )
                .order_by(Patient.created_at.desc())
                .limit(SEARCH_LIMIT)
                .all()
            )
            return [_patient_record(r) for r in rows]

    # -- documents ---------------------------------------------------------

    def create_document(self, data: NewDocument) -> DocumentRecord:
        with self._session() as db:
            self._get_patient_row(db, data.patient_id)
            document = Document(id=generate_uuid(), created_at=utcnow(), **vars(data))
            db.add(document)
            db.commit()
            db.refresh(document)
            return _document_record(document)

    def list_documents(self, patient_id: str) -> List[DocumentRecord]:
        with self._session() as db:
            rows = (
                db.query(Document)
                .filter(Document.patient_id == patient_id)
                .order_by(Document.created_at.desc())
                .all()
            )
            return [_document_record(r) for r in rows]

    def _get_document_row(self, db: Session, patient_id: str, document_id: str) -> Document:
        document = (
            db.query(Document)
            .filter(Document.id == document_id, Document.patient_id == patient_id)
            .first()
        )
        if not document:
            raise RecordNotFoundError("Document not found")
        return document

    def get_document(self, patient_id: str, document_id: str) -> DocumentRecord:
        with self._session() as db:
            return _document_record(self._get_document_row(db, patient_id, document_id))

    def delete_document(self, patient_id: str, document_id: str, requested_by: str) -> DocumentRecord:
        with self._session() as db:
            document = self._get_document_row(db, patient_id, document_id)
            require_permission(requested_by, PERM_DELETE_DOCUMENT, owner_id=document.uploaded_by)
            record = _document_record(document)
            db.delete(document)
            db.commit()
            return record

    # -- summaries ---------------------------------------------------------

    def create_summary(
        self,
        patient_id: str,
        summary_text: str,
        generated_by: str,
        document_ids: List[str],
    ) -> SummaryRecord:
        with self._session() as db:
            self._get_patient_row(db, patient_id)
            summary = AISummary(
                id=generate_uuid(),
                patient_id=patient_id,
                summary_text=summary_text,
                generated_by=generated_by,
                document_ids=",".join(document_ids) or None,
                created_at=utcnow(),
            )
            db.add(summary)
            db.commit()
            db.refresh(summary)
            return _summary_record(summary)

    def list_summaries(self, patient_id: str) -> List[SummaryRecord]:
        with self._session() as db:
            rows = (
                db.query(AISummary)
                .filter(AISummary.patient_id == patient_id)
                .order_by(AISummary.created_at.desc())
                .all()
            )
            return [_summary_record(r) for r in rows]

    def close(self) -> None:
        self.session_factory.kw["bind"].dispose()
