"""PrescriptionNutrition model: food recommendations scoped to a document."""
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text, Uuid

from rexai.database import Base
from rexai.models.types import JSONType


class PrescriptionNutrition(Base):
    """One recommended food category generated for a document."""

    __tablename__ = "prescription_nutrition"

    id = Column(Integer, primary_key=True, index=True)
    document_id = Column(
        Uuid(as_uuid=True), ForeignKey("documents.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id = Column(Uuid(as_uuid=True), nullable=False, index=True)

    category = Column(String, nullable=False)
    benefit = Column(Text, nullable=True)
    foods = Column(JSONType, nullable=False, default=list)
    nutrition = Column(JSONType, nullable=False, default=dict)
    benefit_score = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    def __repr__(self):
        return f"<PrescriptionNutrition(document_id={self.document_id}, category={self.category})>"
