"""
AI usage tracking service for monitoring text-generation costs.

Logs every provider attempt of an analysis run with token usage and
estimated cost.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from rexai.config import settings
from rexai.models import AIUsageLog
from rexai.services.llm_service import LLMUsageRecord

REQUEST_TYPE_DOCUMENT_ANALYSIS = "document_analysis"


class AIUsageService:
    """Service for logging and calculating text-generation usage costs."""

    def __init__(self, db: Session):
        self.db = db

    def calculate_cost_cents(self, provider: str, input_tokens: int, output_tokens: int) -> Decimal:
        """
        Calculate estimated cost in cents for one call.

        Uses provider-specific pricing from settings; unknown providers are
        priced like Anthropic.
        """
        if provider == "openai":
            input_cost = settings.openai_input_cost_per_1k
            output_cost = settings.openai_output_cost_per_1k
        else:
            input_cost = settings.anthropic_input_cost_per_1k
            output_cost = settings.anthropic_output_cost_per_1k

        total_cost = (input_tokens / 1000) * input_cost + (output_tokens / 1000) * output_cost
        return Decimal(str(round(total_cost, 4)))

    def log_usage(
        self,
        service_type: str,
        provider: str,
        model: str,
        input_tokens: int,
        output_tokens: int,
        user_id: Optional[uuid.UUID] = None,
        request_id: Optional[str] = None,
        request_type: Optional[str] = None,
        success: bool = True,
        error_message: Optional[str] = None,
        commit: bool = True,
    ) -> AIUsageLog:
        """
        Log a text-generation usage event.

        Args:
            service_type: Stage that made the call ('medical_extraction', 'safety_insights', ...)
            provider: Provider name ('anthropic', 'openai')
            model: Model name used
            input_tokens: Number of input tokens
            output_tokens: Number of output tokens
            user_id: Optional user ID
            request_id: Optional request ID for linking (document id)
            request_type: Optional request type ('document_analysis')
            success: Whether the call succeeded
            error_message: Error message if failed
            commit: Commit immediately (False when batching)

        Returns:
            Created AIUsageLog record
        """
        log_entry = AIUsageLog(
            user_id=user_id,
            timestamp=datetime.utcnow(),
            service_type=service_type,
            provider=provider,
            model=model,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            estimated_cost_cents=self.calculate_cost_cents(provider, input_tokens, output_tokens),
            request_id=request_id,
            request_type=request_type,
            success=success,
            error_message=error_message,
        )

        self.db.add(log_entry)
        if commit:
            self.db.commit()
            self.db.refresh(log_entry)

        return log_entry

    def log_records(
        self, records: list[LLMUsageRecord], user_id: Optional[uuid.UUID], document_id: uuid.UUID
    ) -> int:
        """Log all usage records from one analysis run in a single transaction."""
        for record in records:
            self.log_usage(
                service_type=record.purpose,
                provider=record.provider,
                model=record.model,
                input_tokens=record.input_tokens,
                output_tokens=record.output_tokens,
                user_id=user_id,
                request_id=str(document_id),
                request_type=REQUEST_TYPE_DOCUMENT_ANALYSIS,
                success=record.success,
                error_message=record.error,
                commit=False,
            )
        self.db.commit()
        return len(records)

    def get_total_cost_for_document(self, document_id: uuid.UUID) -> Decimal:
        """Total estimated cost in cents of every analysis run for a document."""
        result = (
            self.db.query(func.sum(AIUsageLog.estimated_cost_cents))
            .filter(
                AIUsageLog.request_id == str(document_id),
                AIUsageLog.request_type == REQUEST_TYPE_DOCUMENT_ANALYSIS,
            )
            .scalar()
        )

        return result or Decimal("0")
