"""
Clinical summary generation for a patient's documents.

When Azure OpenAI is configured the summary comes from a chat completion
over the patient's demographics and document texts. Otherwise, or whenever
the remote call fails or returns nothing, a deterministic local summary is
rendered from the metadata alone. Callers always get a non-empty string.
"""
import logging
from collections import Counter
from datetime import date, datetime, timezone
from typing import List, Optional, Sequence

import httpx
from openai import AzureOpenAI

from ..core.config import settings as default_settings
from ..core.permissions import PERM_GENERATE_SUMMARY, require_permission
from ..models.records import DocumentRecord, PatientRecord, SummaryRecord, ensure_utc
from ..stores.base import RecordStore
from .blob_storage import BlobStorage
from .content_extractor import ContentExtractor

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a clinical documentation assistant for doctors. Analyze the provided "
    "medical documents and create comprehensive summaries focusing on medical "
    "relevance. Use bullet points and be clinically accurate."
)

CLINICAL_NOTES = (
    "- Review abnormal findings, test results and care plans in attached documents.",
    "- Ensure follow-up based on most recent uploads and clinical context.",
)


# ----------------------------------------------------------------------
# Formatting helpers
# ----------------------------------------------------------------------

def format_file_size(size: int) -> str:
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    return f"{size / (1024 * 1024):.1f} MB"


def format_date(value: date) -> str:
    return value.strftime("%b %d, %Y")


def format_datetime(value: datetime) -> str:
    return ensure_utc(value).strftime("%b %d, %Y %H:%M UTC")


def calculate_age(date_of_birth: date, today: date) -> int:
    age = today.year - date_of_birth.year
    if (today.month, today.day) < (date_of_birth.month, date_of_birth.day):
        age -= 1
    return age


def newest_first(documents: Sequence[DocumentRecord]) -> List[DocumentRecord]:
    return sorted(documents, key=lambda d: ensure_utc(d.created_at), reverse=True)


def _contact_lines(patient: PatientRecord) -> List[str]:
    lines = []
    if patient.email:
        lines.append(f"- Email: {patient.email}")
    if patient.phone:
        lines.append(f"- Phone: {patient.phone}")
    if patient.address:
        lines.append(f"- Address: {patient.address}")
    return lines


def render_local_summary(
    patient: PatientRecord,
    documents: Sequence[DocumentRecord],
    now: Optional[datetime] = None,
) -> str:
    """Deterministic summary built from patient and document metadata."""
    now = ensure_utc(now or datetime.now(timezone.utc))
    ordered = newest_first(documents)

    lines = [
        f"Patient Summary for {patient.full_name}",
        "",
        "Demographics:",
        f"- Medical Record Number: {patient.medical_record_number}",
        f"- Date of Birth: {format_date(patient.date_of_birth)}",
        f"- Age: {calculate_age(patient.date_of_birth, now.date())} years",
        *_contact_lines(patient),
        "",
        "Documents Overview:",
        f"- Total Documents: {len(ordered)}",
    ]
    if ordered:
        type_counts = Counter(d.file_type or "unknown" for d in ordered)
        lines.append(f"- Most Recent Upload: {format_datetime(ordered[0].created_at)}")
        lines.append(
            "- Document Types: " + ", ".join(f"{t} ({n})" for t, n in type_counts.items())
        )

    lines += ["", "All Documents:"]
    if ordered:
        for i, doc in enumerate(ordered, start=1):
            line = (
                f"  {i}. {doc.file_name} ({doc.file_type or 'unknown'}, "
                f"{format_file_size(doc.file_size)}) - uploaded {format_datetime(doc.created_at)}"
            )
            if doc.description:
                line += f" - {doc.description}"
            lines.append(line)
    else:
        lines.append("  None")

    lines += ["", "Clinical Notes (auto-generated):", *CLINICAL_NOTES, "", f"Generated: {format_datetime(now)}"]
    return "\n".join(lines)


def build_clinical_prompt(
    patient: PatientRecord,
    documents: Sequence[DocumentRecord],
    contents: Sequence[str],
    today: date,
) -> str:
    """User prompt for the remote model; ``contents`` is aligned with ``documents``."""
    sections = [
        f"Document {i}: {doc.file_name} ({format_datetime(doc.created_at)})\n{text or 'Content not available'}"
        for i, (doc, text) in enumerate(zip(documents, contents), start=1)
    ]
    patient_lines = [
        f"- Name: {patient.full_name}",
        f"- Medical Record Number: {patient.medical_record_number}",
        f"- Date of Birth: {format_date(patient.date_of_birth)}",
        f"- Age: {calculate_age(patient.date_of_birth, today)} years",
        *_contact_lines(patient),
    ]
    return "\n".join([
        "Create a comprehensive clinical summary for a doctor based on the patient's medical documents.",
        "",
        "Patient Information:",
        *patient_lines,
        "",
        f"Medical Documents ({len(documents)} total):",
        "\n\n".join(sections),
        "",
        "Please analyze the document contents and provide a structured clinical summary including:",
        "- Key medical findings and abnormal values",
        "- Diagnoses and conditions identified",
        "- Test results and trends over time",
        "- Treatment plans and medications",
        "- Follow-up recommendations",
        "- Clinical concerns or red flags",
        "",
        "Use bullet points and be clinically accurate. Base your analysis on the actual "
        "document contents provided.",
    ])


# ----------------------------------------------------------------------
# Generator
# ----------------------------------------------------------------------

class SummaryGenerator:
    def __init__(
        self,
        settings=None,
        blob_storage: Optional[BlobStorage] = None,
        extractor: Optional[ContentExtractor] = None,
        client=None,
    ):
        self.settings = settings or default_settings
        self.blob_storage = blob_storage
        self.extractor = extractor or ContentExtractor(self.settings)
        self._client = client

    @property
    def remote_enabled(self) -> bool:
        return self._client is not None or self.settings.summarizer_configured

    @property
    def client(self):
        if self._client is None:
            self._client = AzureOpenAI(
                api_key=self.settings.AZURE_OPENAI_API_KEY,
                api_version=self.settings.AZURE_OPENAI_API_VERSION,
                azure_endpoint=self.settings.AZURE_OPENAI_ENDPOINT,
                http_client=httpx.Client(timeout=self.settings.SUMMARY_TIMEOUT_SECONDS),
                max_retries=1,
            )
        return self._client

    def generate(
        self,
        patient: PatientRecord,
        documents: Sequence[DocumentRecord],
        now: Optional[datetime] = None,
    ) -> str:
        now = ensure_utc(now or datetime.now(timezone.utc))
        if self.remote_enabled:
            try:
                summary = self._generate_remote(patient, documents, now)
                if summary:
                    return summary
                logger.warning("Remote summarizer returned an empty response; using local summary")
            except Exception as exc:
                logger.warning("Remote summarizer failed, using local summary: %s", exc)
        return render_local_summary(patient, documents, now)

    def _generate_remote(self, patient, documents, now: datetime) -> str:
        ordered = newest_first(documents)
        contents = [self.document_text(doc) for doc in ordered]
        prompt = build_clinical_prompt(patient, ordered, contents, now.date())

        response = self.client.chat.completions.create(
            model=self.settings.AZURE_OPENAI_DEPLOYMENT,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            max_completion_tokens=self.settings.SUMMARY_MAX_TOKENS,
        )
        if not response.choices:
            return ""
        return (response.choices[0].message.content or "").strip()

    def document_text(self, document: DocumentRecord) -> str:
        """Best available text for one document; never raises."""
        if document.processed_text:
            return document.processed_text
        if self.blob_storage is not None:
            try:
                data = self.blob_storage.download(document.file_path)
                return self.extractor.extract(data, document.file_type).text
            except Exception as exc:
                logger.info("No text for document %s: %s", document.id, exc)
        return f"Document Content: {document.description or 'Medical document - content not extracted'}"


class SummaryService:
    """Generates a summary and appends it to the patient's summary history."""

    def __init__(self, store: RecordStore, generator: SummaryGenerator):
        self.store = store
        self.generator = generator

    def create_summary(self, patient_id: str, generated_by: str, now: Optional[datetime] = None) -> SummaryRecord:
        require_permission(generated_by, PERM_GENERATE_SUMMARY)
        patient = self.store.get_patient(patient_id)
        documents = self.store.list_documents(patient_id)
        text = self.generator.generate(patient, documents, now=now)
        record = self.store.create_summary(
            patient_id=patient_id,
            summary_text=text,
            generated_by=generated_by,
            document_ids=[d.id for d in documents],
        )
        logger.info("Stored summary %s for patient %s (%d documents)", record.id, patient_id, len(documents))
        return record
