from sqlalchemy import Column, String, Text, ForeignKey
from sqlalchemy.orm import relationship
from .base import Base, TimestampMixin, generate_uuid


class AISummary(Base, TimestampMixin):
    """Generated clinical summary. Append-only: rows are never updated or deleted by the app."""
    __tablename__ = "ai_summaries"

    id = Column(String, primary_key=True, default=generate_uuid)
    patient_id = Column(String, ForeignKey("patients.id", ondelete="CASCADE"), nullable=False, index=True)
    summary_text = Column(Text, nullable=False)
    generated_by = Column(String(100), nullable=False)
    document_ids = Column(Text, nullable=True)  # Comma-separated document IDs

    patient = relationship("Patient", back_populates="summaries")
