"""UserCondition model: conditions stated in or inferred from documents."""
import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, Float, ForeignKey, String, Text, UniqueConstraint, Uuid

from rexai.database import Base
from rexai.models.types import JSONType


class UserCondition(Base):
    """A health condition linked to a user, tagged by where it came from."""

    __tablename__ = "user_conditions"
    __table_args__ = (
        UniqueConstraint("document_id", "condition", "source", name="uq_user_conditions_document_condition_source"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    document_id = Column(
        Uuid(as_uuid=True), ForeignKey("documents.id", ondelete="SET NULL"), nullable=True, index=True
    )

    condition = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    severity = Column(String, nullable=False, default="medium")  # low, medium, high
    status = Column(String, nullable=False, default="active")
    source = Column(String, nullable=False, default="document")  # document, medication_inferred
    confidence = Column(Float, nullable=False, default=1.0)
    medications_linked = Column(JSONType, nullable=False, default=list)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<UserCondition(condition={self.condition}, source={self.source})>"
