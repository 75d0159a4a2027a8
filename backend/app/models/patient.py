from sqlalchemy import Column, String, Date, Text, DateTime
from sqlalchemy.orm import relationship
from .base import Base, TimestampMixin, generate_uuid, utcnow


class Patient(Base, TimestampMixin):
    __tablename__ = "patients"

    id = Column(String, primary_key=True, default=generate_uuid)
    # PHI fields - encrypted at rest in production
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    date_of_birth = Column(Date, nullable=False)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    address = Column(Text, nullable=True)
    medical_record_number = Column(String(50), unique=True, nullable=False, index=True)
    created_by = Column(String(100), nullable=False, index=True)  # User ID from identity provider
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    documents = relationship("Document", back_populates="patient", cascade="all, delete-orphan")
    summaries = relationship("AISummary", back_populates="patient", cascade="all, delete-orphan")
