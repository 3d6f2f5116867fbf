"""AIUsageLog model for tracking text-generation usage and costs."""
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Boolean, Text, Numeric, Uuid
from rexai.database import Base


class AIUsageLog(Base):
    """Tracks all text-generation calls for cost monitoring and analytics."""

    __tablename__ = "ai_usage_logs"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Uuid(as_uuid=True), nullable=True, index=True)
    timestamp = Column(DateTime, default=datetime.utcnow, index=True)

    # Service identification
    service_type = Column(String, nullable=False)  # 'medical_extraction', 'doctor_assessment', etc.
    provider = Column(String, nullable=False)  # 'anthropic', 'openai'
    model = Column(String, nullable=False)

    # Token usage
    input_tokens = Column(Integer, nullable=False, default=0)
    output_tokens = Column(Integer, nullable=False, default=0)

    # Cost tracking (in cents for precision)
    estimated_cost_cents = Column(Numeric(10, 4), nullable=False, default=0)

    # Request linking
    request_id = Column(String, index=True, nullable=True)  # Document id of the analysis
    request_type = Column(String, nullable=True)  # 'document_analysis'

    # Status
    success = Column(Boolean, default=True)
    error_message = Column(Text, nullable=True)

    def __repr__(self):
        return f"<AIUsageLog(id={self.id}, service={self.service_type}, cost={self.estimated_cost_cents}c)>"
