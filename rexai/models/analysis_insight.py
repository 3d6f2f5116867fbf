"""AnalysisInsight model: cached full-analysis results per document."""
from datetime import datetime

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
    text,
)
from sqlalchemy.orm import relationship

from rexai.database import Base
from rexai.models.types import JSONType


class AnalysisInsight(Base):
    """
    One full-analysis run for a document.

    Each document has at most one row with is_current=True; older runs are
    kept with is_current=False as history.
    """

    __tablename__ = "analysis_insights"
    __table_args__ = (
        Index(
            "uq_analysis_insights_current_document",
            "document_id",
            unique=True,
            postgresql_where=text("is_current"),
            sqlite_where=text("is_current = 1"),
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    document_id = Column(
        Uuid(as_uuid=True), ForeignKey("documents.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id = Column(Uuid(as_uuid=True), nullable=False, index=True)

    insight_type = Column(String, nullable=False, default="full_analysis")
    title = Column(String, nullable=True)
    document_type = Column(String, nullable=True)  # prescription, diagnosis, medical_document

    # Denormalized sections
    ai_summary = Column(Text, nullable=True)
    doctor_assessment = Column(JSONType, nullable=True)
    key_findings = Column(JSONType, nullable=False, default=list)
    conditions = Column(JSONType, nullable=False, default=list)
    diagnosed_conditions = Column(JSONType, nullable=False, default=list)
    medications = Column(JSONType, nullable=False, default=list)
    medication_insights = Column(JSONType, nullable=False, default=list)
    drug_interactions = Column(JSONType, nullable=False, default=list)
    food_recommendations = Column(JSONType, nullable=False, default=list)
    safety_qa = Column(JSONType, nullable=False, default=list)
    charts = Column(JSONType, nullable=False, default=dict)
    follow_up_actions = Column(JSONType, nullable=False, default=list)
    recommendations = Column(JSONType, nullable=False, default=list)

    # Complete result for cache reads
    full_analysis = Column(JSONType, nullable=True)

    # Metadata
    model_used = Column(String, nullable=True)
    processing_time_ms = Column(Integer, nullable=True)
    is_current = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    document = relationship("Document", back_populates="insights")

    def __repr__(self):
        return f"<AnalysisInsight(id={self.id}, document_id={self.document_id}, current={self.is_current})>"
