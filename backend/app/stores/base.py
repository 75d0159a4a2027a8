"""Abstract interface shared by the relational and table record stores."""
from abc import ABC, abstractmethod
from typing import List, Optional

from ..models.records import (
    DocumentRecord,
    NewDocument,
    NewPatient,
    PatientRecord,
    SummaryRecord,
)

SEARCH_LIMIT = 50


class RecordStore(ABC):
    """Patient, document and summary persistence.

    Listing methods return records newest first. Lookups of missing records
    raise :class:`~app.core.exceptions.RecordNotFoundError`.
    """

    name: str = "base"

    # -- patients ----------------------------------------------------------

    @abstractmethod
    def create_patient(self, data: NewPatient, created_by: str) -> PatientRecord:
        """Insert a patient; raises ``DuplicateRecordError`` if the MRN is taken."""

    @abstractmethod
    def list_patients(self) -> List[PatientRecord]:
        ...

    @abstractmethod
    def get_patient(self, patient_id: str) -> PatientRecord:
        ...

    @abstractmethod
    def update_patient(self, patient_id: str, data: NewPatient) -> PatientRecord:
        ...

    @abstractmethod
    def delete_patient(self, patient_id: str, requested_by: str) -> None:
        ...

    @abstractmethod
    def search_patients(self, query: str) -> List[PatientRecord]:
        """Case-insensitive match on first name, last name, MRN or email; at most ``SEARCH_LIMIT`` rows, newest first."""

    # -- documents ---------------------------------------------------------

    @abstractmethod
    def create_document(self, data: NewDocument) -> DocumentRecord:
        ...

    @abstractmethod
    def list_documents(self, patient_id: str) -> List[DocumentRecord]:
        ...

    @abstractmethod
    def get_document(self, patient_id: str, document_id: str) -> DocumentRecord:
        ...

    @abstractmethod
    def delete_document(self, patient_id: str, document_id: str, requested_by: str) -> DocumentRecord:
        """Delete the metadata row and return it so the caller can remove the blob."""

    # -- summaries ---------------------------------------------------------

    @abstractmethod
    def create_summary(
        self,
        patient_id: str,
        summary_text: str,
        generated_by: str,
        document_ids: List[str],
    ) -> SummaryRecord:
        ...

    @abstractmethod
    def list_summaries(self, patient_id: str) -> List[SummaryRecord]:
        ...

    # ------------------------------------------------------------------
    # Convenience helpers shared by all stores
    # ------------------------------------------------------------------

    def latest_summary(self, patient_id: str) -> Optional[SummaryRecord]:
        """Most recently stored summary, or ``None`` if none were generated yet."""
        summaries = self.list_summaries(patient_id)
        return summaries[0] if summaries else None

    def close(self) -> None:
        """Release connections held by the store."""
