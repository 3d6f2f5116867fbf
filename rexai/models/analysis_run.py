"""AnalysisRun model for tracking background pipeline execution."""
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text, Uuid

from rexai.database import Base


class AnalysisRun(Base):
    """Records each queued analysis of a document."""

    __tablename__ = "analysis_runs"

    id = Column(Integer, primary_key=True, index=True)
    document_id = Column(
        Uuid(as_uuid=True), ForeignKey("documents.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    force_refresh = Column(Boolean, nullable=False, default=False)

    status = Column(String, nullable=False, default="pending")  # pending, processing, completed, failed
    stage = Column(String, nullable=True)  # Latest pipeline stage reached
    cache_hit = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    error_message = Column(Text, nullable=True)

    def __repr__(self):
        return f"<AnalysisRun(id={self.id}, document_id={self.document_id}, status={self.status})>"
