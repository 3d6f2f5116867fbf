"""Document model for uploaded medical files."""
import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, String, Text, Uuid
from sqlalchemy.orm import relationship

from rexai.database import Base


class Document(Base):
    """An uploaded medical document and its extracted text."""

    __tablename__ = "documents"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), nullable=False, index=True)

    file_url = Column(String, nullable=False)  # Storage URL or local path
    file_name = Column(String, nullable=False)
    file_type = Column(String, nullable=True)  # MIME type, e.g. application/pdf

    extracted_text = Column(Text, nullable=True)  # Parsed markdown, reused across analyses
    summary = Column(Text, nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    insights = relationship(
        "AnalysisInsight", back_populates="document", cascade="all, delete-orphan"
    )

    def __repr__(self):
        return f"<Document(id={self.id}, file_name={self.file_name})>"
