"""
Record store backed by Azure Table Storage.

All records live in one table. Patients share the fixed partition
``patient``; documents and summaries are partitioned by their patient id and
told apart by a type prefix on the row key.
"""
import logging
import uuid
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from azure.core.credentials import AzureNamedKeyCredential
from azure.core.exceptions import ResourceNotFoundError
from azure.data.tables import TableServiceClient, UpdateMode

from ..core.exceptions import (
    ConfigurationError,
    DuplicateRecordError,
    PermissionDeniedError,
    RecordNotFoundError,
)
from ..core.permissions import PERM_DELETE_DOCUMENT, require_permission
from ..models.base import utcnow
from ..models.records import (
    DocumentRecord,
    NewDocument,
    NewPatient,
    PatientRecord,
    SummaryRecord,
)
from .base import SEARCH_LIMIT, RecordStore

logger = logging.getLogger(__name__)

PATIENT_PARTITION = "patient"
DOCUMENT_PREFIX = "doc_"
SUMMARY_PREFIX = "summary_"


def _new_row_key(prefix: str = "") -> str:
    return f"{prefix}{uuid.uuid4()}"


def _patient_record(entity: Dict[str, Any]) -> PatientRecord:
    return PatientRecord(
        id=entity["RowKey"],
        first_name=entity["first_name"],
        last_name=entity["last_name"],
        date_of_birth=date.fromisoformat(entity["date_of_birth"]),
        medical_record_number=entity["medical_record_number"],
        created_by=entity["created_by"],
        created_at=datetime.fromisoformat(entity["created_at"]),
        updated_at=datetime.fromisoformat(entity["updated_at"]),
        email=entity.get("email") or None,
        phone=entity.get("phone") or None,
        address=entity.get("address") or None,
    )


def _document_record(entity: Dict[str, Any]) -> DocumentRecord:
    return DocumentRecord(
        id=entity["RowKey"],
        patient_id=entity["PartitionKey"],
        file_name=entity["file_name"],
        file_path=entity["file_path"],
        file_type=entity["file_type"],
        file_size=int(entity["file_size"]),
        uploaded_by=entity["uploaded_by"],
        created_at=datetime.fromisoformat(entity["created_at"]),
        description=entity.get("description") or None,
        processed_text=entity.get("processed_text") or None,
    )


def _summary_record(entity: Dict[str, Any]) -> SummaryRecord:
    ids = [i for i in (entity.get("document_ids") or "").split(",") if i]
    return SummaryRecord(
        id=entity["RowKey"],
        patient_id=entity["PartitionKey"],
        summary_text=entity["summary_text"],
        generated_by=entity["generated_by"],
        created_at=datetime.fromisoformat(entity["created_at"]),
        document_ids=ids,
    )


def _patient_fields(data: NewPatient) -> Dict[str, Any]:
    return {
        "first_name": data.first_name,
        "last_name": data.last_name,
        "date_of_birth": data.date_of_birth.isoformat(),
        "medical_record_number": data.medical_record_number,
        # Table storage has no nulls; empty string means "not provided"
        "email": data.email or "",
        "phone": data.phone or "",
        "address": data.address or "",
    }


class TableRecordStore(RecordStore):
    """Patients, documents and summaries as entities in a single Azure table.

    Patient entities are never hard-deleted in this store.
    """

    name = "table"

    def __init__(self, table_client):
        self.table_client = table_client

    @classmethod
    def from_settings(cls, settings) -> "TableRecordStore":
        if settings.AZURE_STORAGE_CONNECTION_STRING:
            service = TableServiceClient.from_connection_string(settings.AZURE_STORAGE_CONNECTION_STRING)
        elif settings.AZURE_STORAGE_ACCOUNT_NAME and settings.AZURE_STORAGE_ACCOUNT_KEY:
            credential = AzureNamedKeyCredential(
                settings.AZURE_STORAGE_ACCOUNT_NAME, settings.AZURE_STORAGE_ACCOUNT_KEY
            )
            service = TableServiceClient(
                endpoint=f"https://{settings.AZURE_STORAGE_ACCOUNT_NAME}.table.core.windows.net",
                credential=credential,
            )
        else:
            raise ConfigurationError("Azure Storage credentials not configured")

        table_client = service.create_table_if_not_exists(table_name=settings.AZURE_TABLE_NAME)
        return cls(table_client)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _query(self, query_filter: str, parameters: Dict[str, Any]) -> List[Dict[str, Any]]:
        return list(self.table_client.query_entities(query_filter, parameters=parameters))

    def _partition(self, partition_key: str) -> List[Dict[str, Any]]:
        return self._query("PartitionKey eq @pk", {"pk": partition_key})

    def _get_entity(self, partition_key: str, row_key: str, not_found: str) -> Dict[str, Any]:
        try:
            return self.table_client.get_entity(partition_key=partition_key, row_key=row_key)
        except ResourceNotFoundError as exc:
            raise RecordNotFoundError(not_found) from exc

    def _mrn_owner(self, mrn: str) -> Optional[str]:
        matches = self._query(
            "PartitionKey eq @pk and medical_record_number eq @mrn",
            {"pk": PATIENT_PARTITION, "mrn": mrn},
        )
        return matches[0]["RowKey"] if matches else None

    # -- patients ----------------------------------------------------------

    def create_patient(self, data: NewPatient, created_by: str) -> PatientRecord:
        if self._mrn_owner(data.medical_record_number):
            raise DuplicateRecordError("Medical record number already exists")
        now = utcnow().isoformat()
        entity = {
            "PartitionKey": PATIENT_PARTITION,
            "RowKey": _new_row_key(),
            "created_by": created_by,
            "created_at": now,
            "updated_at": now,
            **_patient_fields(data),
        }
        self.table_client.create_entity(entity=entity)
        return _patient_record(entity)

    def list_patients(self) -> List[PatientRecord]:
        patients = [_patient_record(e) for e in self._partition(PATIENT_PARTITION)]
        return sorted(patients, key=lambda p: p.created_at, reverse=True)

    def get_patient(self, patient_id: str) -> PatientRecord:
        return _patient_record(self._get_entity(PATIENT_PARTITION, patient_id, "Patient not found"))

    def update_patient(self, patient_id: str, data: NewPatient) -> PatientRecord:
        entity = dict(self._get_entity(PATIENT_PARTITION, patient_id, "Patient not found"))
        owner = self._mrn_owner(data.medical_record_number)
        if owner and owner != patient_id:
            raise DuplicateRecordError("Medical record number already exists")
        entity.update(_patient_fields(data))
        entity["updated_at"] = utcnow().isoformat()
        self.table_client.update_entity(entity=entity, mode=UpdateMode.REPLACE)
        return _patient_record(entity)

    def delete_patient(self, patient_id: str, requested_by: str) -> None:
        self.get_patient(patient_id)
        raise PermissionDeniedError("Patient records cannot be deleted in table storage")

    def search_patients(self, query: str) -> List[PatientRecord]:
        term = query.strip().lower()
        matches = [
            p for p in self.list_patients()
            if term in p.first_name.lower()
            or term in p.last_name.lower()
            or term in p.medical_record_number.lower()
            or (p.email and term in p.email.lower())
        ]
        return matches[:SEARCH_LIMIT]

    # -- documents ---------------------------------------------------------

    def create_document(self, data: NewDocument) -> DocumentRecord:
        self.get_patient(data.patient_id)
        entity = {
            "PartitionKey": data.patient_id,
            "RowKey": _new_row_key(DOCUMENT_PREFIX),
            "file_name": data.file_name,
            "file_path": data.file_path,
            "file_type": data.file_type,
            "file_size": data.file_size,
            "description": data.description or "",
            "uploaded_by": data.uploaded_by,
            "processed_text": data.processed_text or "",
            "created_at": utcnow().isoformat(),
        }
        self.table_client.create_entity(entity=entity)
        return _document_record(entity)

    def list_documents(self, patient_id: str) -> List[DocumentRecord]:
        documents = [
            _document_record(e) for e in self._partition(patient_id)
            if e["RowKey"].startswith(DOCUMENT_PREFIX)
        ]
        return sorted(documents, key=lambda d: d.created_at, reverse=True)

    def get_document(self, patient_id: str, document_id: str) -> DocumentRecord:
        if not document_id.startswith(DOCUMENT_PREFIX):
            raise RecordNotFoundError("Document not found")
        return _document_record(self._get_entity(patient_id, document_id, "Document not found"))

    def delete_document(self, patient_id: str, document_id: str, requested_by: str) -> DocumentRecord:
        document = self.get_document(patient_id, document_id)
        require_permission(requested_by, PERM_DELETE_DOCUMENT, owner_id=document.uploaded_by)
        self.table_client.delete_entity(partition_key=patient_id, row_key=document_id)
        return document

    # -- summaries ---------------------------------------------------------

    def create_summary(
        self,
        patient_id: str,
        summary_text: str,
        generated_by: str,
        document_ids: List[str],
    ) -> SummaryRecord:
        self.get_patient(patient_id)
        entity = {
            "PartitionKey": patient_id,
            "RowKey": _new_row_key(SUMMARY_PREFIX),
            "summary_text": summary_text,
            "generated_by": generated_by,
            "document_ids": ",".join(document_ids),
            "created_at": utcnow().isoformat(),
        }
        self.table_client.create_entity(entity=entity)
        return _summary_record(entity)

    def list_summaries(self, patient_id: str) -> List[SummaryRecord]:
        summaries = [
            _summary_record(e) for e in self._partition(patient_id)
            if e["RowKey"].startswith(SUMMARY_PREFIX)
        ]
        return sorted(summaries, key=lambda s: s.created_at, reverse=True)

    def close(self) -> None:
        self.table_client.close()
