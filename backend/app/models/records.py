"""
Backend-independent records returned by every record store.

The relational store maps ORM rows onto these and the table store maps
entities onto them, so API handlers and services never see which backend
is in use.
"""
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import List, Optional


def ensure_utc(value: datetime) -> datetime:
    """SQLite drops tzinfo; treat naive timestamps as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


@dataclass
class PatientRecord:
    id: str
    first_name: str
    last_name: str
    date_of_birth: date
    medical_record_number: str
    created_by: str
    created_at: datetime
    updated_at: datetime
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


@dataclass
class DocumentRecord:
    id: str
    patient_id: str
    file_name: str
    file_path: str
    file_type: str
    file_size: int
    uploaded_by: str
    created_at: datetime
    description: Optional[str] = None
    processed_text: Optional[str] = None


@dataclass
class SummaryRecord:
    id: str
    patient_id: str
    summary_text: str
    generated_by: str
    created_at: datetime
    document_ids: List[str] = field(default_factory=list)


@dataclass
class NewPatient:
    """Fields supplied on patient registration or edit."""
    first_name: str
    last_name: str
    date_of_birth: date
    medical_record_number: str
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None


@dataclass
class NewDocument:
    """Metadata row written after a successful blob upload."""
    patient_id: str
    file_name: str
    file_path: str
    file_type: str
    file_size: int
    uploaded_by: str
    description: Optional[str] = None
    processed_text: Optional[str] = None
