from sqlalchemy import Column, String, Integer, Text, ForeignKey
from sqlalchemy.orm import relationship
from .base import Base, TimestampMixin, generate_uuid


class Document(Base, TimestampMixin):
    __tablename__ = "documents"

    id = Column(String, primary_key=True, default=generate_uuid)
    patient_id = Column(String, ForeignKey("patients.id", ondelete="CASCADE"), nullable=False, index=True)
    file_name = Column(String(255), nullable=False)
    file_path = Column(String(500), nullable=False)  # Blob key inside the private container
    file_type = Column(String(150), nullable=False)  # Declared MIME type
    file_size = Column(Integer, nullable=False, default=0)
    description = Column(Text, nullable=True)
    uploaded_by = Column(String(100), nullable=False, index=True)
    processed_text = Column(Text, nullable=True)  # Excerpt of extracted text

    patient = relationship("Patient", back_populates="documents")
