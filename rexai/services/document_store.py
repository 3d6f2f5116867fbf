"""
Document storage, analysis cache and result persistence.

Each document has at most one current AnalysisInsight. Writing a new analysis
marks the previous one non-current in the same transaction; superseded rows are
kept as history and feed the trend charts of later runs.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from rexai.models import AnalysisInsight, Document, PrescriptionNutrition, UserCondition
from rexai.services.ai_schemas import (
    ConditionSchema,
    DiagnosedCondition,
    DoctorAssessment,
    ExtractedMedicalData,
    FoodRecommendation,
)
from rexai.services.analysis_schemas import AnalysisHistoryPoint, FullAnalysisResult

logger = logging.getLogger(__name__)

SOURCE_DOCUMENT = "document"
SOURCE_MEDICATION_INFERRED = "medication_inferred"

INFERRED_CONFIDENCE_SCORES = {"high": 0.9, "medium": 0.7, "low": 0.5}

# Substituted when a stored row predates full_analysis and has no assessment column
RECONSTRUCTED_ASSESSMENT = {
    "greeting": "Based on your medical records...",
    "treatment_plan": "Please follow the prescribed treatment.",
    "advice": [],
    "warnings": [],
    "follow_up": "Consult your doctor as needed.",
}


@dataclass
class DocumentRecord:
    id: uuid.UUID
    user_id: uuid.UUID
    file_url: str
    file_name: str
    file_type: Optional[str] = None
    existing_text: Optional[str] = None
    existing_summary: Optional[str] = None


def build_condition_rows(
    document_id: uuid.UUID,
    user_id: uuid.UUID,
    conditions: list[ConditionSchema],
    diagnosed_conditions: list[DiagnosedCondition],
) -> list[dict]:
    """Condition rows for both stated (document) and inferred (medication) conditions."""
    rows = [
        {
            "user_id": user_id,
            "document_id": document_id,
            "condition": c.name,
            "description": c.description,
            "severity": c.severity,
            "source": SOURCE_DOCUMENT,
            "confidence": 1.0,
            "medications_linked": [],
        }
        for c in conditions
    ]
    rows.extend(
        {
            "user_id": user_id,
            "document_id": document_id,
            "condition": d.condition,
            "description": d.description,
            "severity": d.confidence,
            "source": SOURCE_MEDICATION_INFERRED,
            "confidence": INFERRED_CONFIDENCE_SCORES[d.confidence],
            "medications_linked": d.inferred_from,
        }
        for d in diagnosed_conditions
    )
    return rows


class DocumentStore:
    """SQLAlchemy-backed document store and analysis cache."""

    def __init__(self, db: Session):
        self.db = db

    # =========================================================================
    # DOCUMENTS
    # =========================================================================

    def fetch_document(self, document_id: uuid.UUID) -> Optional[DocumentRecord]:
        document = self.db.query(Document).filter(Document.id == document_id).first()
        if document is None:
            return None

        return DocumentRecord(
            id=document.id,
            user_id=document.user_id,
            file_url=document.file_url,
            file_name=document.file_name,
            file_type=document.file_type,
            existing_text=document.extracted_text,
            existing_summary=document.summary,
        )

    def update_document_text(self, document_id: uuid.UUID, text: str) -> None:
        self.db.query(Document).filter(Document.id == document_id).update(
            {"extracted_text": text}, synchronize_session=False
        )
        self.db.commit()

    # =========================================================================
    # CACHE
    # =========================================================================

    def _current_row(self, document_id: uuid.UUID) -> Optional[AnalysisInsight]:
        return (
            self.db.query(AnalysisInsight)
            .filter(AnalysisInsight.document_id == document_id, AnalysisInsight.is_current.is_(True))
            .first()
        )

    def get_cached_analysis(self, document_id: uuid.UUID) -> Optional[FullAnalysisResult]:
        """
        Return the current analysis with cached_at set, or None.

        Rows without a full_analysis payload are rebuilt from their columns.
        """
        row = self._current_row(document_id)
        if row is None:
            return None

        if row.full_analysis:
            result = FullAnalysisResult.model_validate(row.full_analysis)
        else:
            logger.info("Reconstructing analysis %s from stored columns", row.id)
            result = self._reconstruct(row)

        return result.model_copy(update={"cached_at": row.created_at})

    @staticmethod
    def _reconstruct(row: AnalysisInsight) -> FullAnalysisResult:
        assessment = row.doctor_assessment or {**RECONSTRUCTED_ASSESSMENT, "diagnosis": row.ai_summary or ""}
        return FullAnalysisResult.model_validate(
            {
                "title": row.title or "Medical Document Analysis",
                "document_type": row.document_type or "medical_document",
                "overview": row.ai_summary or "",
                "doctor_assessment": DoctorAssessment.model_validate(assessment),
                "diagnosed_conditions": row.diagnosed_conditions or [],
                "extracted_data": ExtractedMedicalData(medications=row.medications or []),
                "medication_insights": row.medication_insights or [],
                "drug_interactions": row.drug_interactions or [],
                "food_recommendations": row.food_recommendations or [],
                "safety_insights": row.safety_qa or [],
                "key_findings": row.key_findings or [],
                "recommendations": row.recommendations or [],
                "follow_up_actions": row.follow_up_actions or [],
                "conditions": row.conditions or [],
                "charts": row.charts or {},
            }
        )

    def get_analysis_history(self, document_id: uuid.UUID) -> list[AnalysisHistoryPoint]:
        """Counts from every stored analysis of the document, oldest first."""
        rows = (
            self.db.query(AnalysisInsight)
            .filter(AnalysisInsight.document_id == document_id)
            .order_by(AnalysisInsight.created_at.asc(), AnalysisInsight.id.asc())
            .all()
        )
        return [
            AnalysisHistoryPoint(
                analyzed_at=row.created_at,
                conditions=len(row.conditions or []),
                drug_interactions=len(row.drug_interactions or []),
            )
            for row in rows
        ]

    # =========================================================================
    # WRITES
    # =========================================================================

    def upsert_analysis(
        self,
        document_id: uuid.UUID,
        user_id: uuid.UUID,
        result: FullAnalysisResult,
        model_used: Optional[str] = None,
        processing_time_ms: Optional[int] = None,
    ) -> AnalysisInsight:
        """
        Store result as the document's current analysis.

        A concurrent writer for the same document trips the partial unique
        index; the write is retried once so the later writer wins.
        """
        for attempt in range(2):
            try:
                return self._write_current(document_id, user_id, result, model_used, processing_time_ms)
            except IntegrityError:
                self.db.rollback()
                if attempt == 1:
                    raise
                logger.warning("Concurrent analysis write for document %s, retrying", document_id)

    def _write_current(self, document_id, user_id, result, model_used, processing_time_ms) -> AnalysisInsight:
        now = datetime.utcnow()
        self.db.query(AnalysisInsight).filter(
            AnalysisInsight.document_id == document_id, AnalysisInsight.is_current.is_(True)
        ).update({"is_current": False, "updated_at": now}, synchronize_session=False)

        payload = result.model_dump(mode="json")
        row = AnalysisInsight(
            document_id=document_id,
            user_id=user_id,
            insight_type="full_analysis",
            title=result.title,
            document_type=result.document_type,
            ai_summary=result.overview,
            doctor_assessment=payload["doctor_assessment"],
            key_findings=payload["key_findings"],
            conditions=payload["conditions"],
            diagnosed_conditions=payload["diagnosed_conditions"],
            medications=payload["extracted_data"]["medications"],
            medication_insights=payload["medication_insights"],
            drug_interactions=payload["drug_interactions"],
            food_recommendations=payload["food_recommendations"],
            safety_qa=payload["safety_insights"],
            charts=payload["charts"],
            follow_up_actions=payload["follow_up_actions"],
            recommendations=payload["recommendations"],
            full_analysis=payload,
            model_used=model_used,
            processing_time_ms=processing_time_ms,
            is_current=True,
            created_at=now,
            updated_at=now,
        )
        self.db.add(row)
        self.db.commit()
        self.db.refresh(row)

        logger.info("Stored analysis %s for document %s", row.id, document_id)
        return row

    def upsert_conditions(self, rows: list[dict]) -> int:
        """Insert or update condition rows keyed on (document_id, condition, source)."""
        for values in rows:
            existing = (
                self.db.query(UserCondition)
                .filter(
                    UserCondition.document_id == values["document_id"],
                    UserCondition.condition == values["condition"],
                    UserCondition.source == values["source"],
                )
                .first()
            )
            if existing is None:
                self.db.add(UserCondition(status="active", **values))
            else:
                for key, value in values.items():
                    setattr(existing, key, value)
                existing.updated_at = datetime.utcnow()
            # Duplicate names within one batch must see the earlier insert
            self.db.flush()

        self.db.commit()
        return len(rows)

    def replace_food_recommendations(
        self,
        document_id: uuid.UUID,
        user_id: uuid.UUID,
        recommendations: list[FoodRecommendation],
    ) -> int:
        """Delete the document's food rows, then insert the new set."""
        self.db.query(PrescriptionNutrition).filter(PrescriptionNutrition.document_id == document_id).delete(
            synchronize_session=False
        )
        for rec in recommendations:
            self.db.add(
                PrescriptionNutrition(
                    document_id=document_id,
                    user_id=user_id,
                    category=rec.category,
                    benefit=rec.benefit,
                    foods=rec.foods,
                    nutrition=rec.nutrition.model_dump() if rec.nutrition else {},
                    benefit_score=rec.score,
                    is_active=True,
                )
            )
        self.db.commit()
        return len(recommendations)
