"""
Full document-analysis pipeline.

Runs the stages in dependency order for one document:

    cache check -> text acquisition -> extraction -> RxNorm enrichment ->
    interaction check -> condition inference -> doctor assessment ->
    {medication insights, food recommendations, safety Q&A} -> assembly ->
    persistence

Only a missing document or a failed text acquisition aborts the run. Every
other stage degrades to its documented default, and persistence is best effort.
"""

import logging
import time
import uuid
from datetime import date
from enum import Enum
from typing import Callable, Optional

from sqlalchemy.orm import Session

from rexai.services.ai_schemas import FoodRecommendation
from rexai.services.ai_usage_service import AIUsageService
from rexai.services.analysis_schemas import AnalysisHistoryPoint, FullAnalysisResult
from rexai.services.clinical_reasoning import AssessmentGenerator, ConditionInferencer
from rexai.services.document_parser import DocumentParser
from rexai.services.document_store import DocumentStore, build_condition_rows
from rexai.services.drug_enrichment import DrugEnrichment, InteractionChecker
from rexai.services.insight_generators import InsightGenerators
from rexai.services.llm_service import LLMService
from rexai.services.medical_extraction import MedicalDataExtractor
from rexai.services.result_assembler import ResultAssembler
from rexai.services.rxnorm_client import RxNormClient
from rexai.services.stage_result import StageError, StageResult
from rexai.services.text_acquisition import (
    AcquiredText,
    DocumentNotFoundError,
    TextAcquisition,
    TextAcquisitionError,
)

logger = logging.getLogger(__name__)


class PipelineStage(str, Enum):
    NOT_STARTED = "not_started"
    CACHE_CHECK = "cache_check"
    CACHE_HIT = "cache_hit"
    ACQUIRING = "acquiring"
    EXTRACTING = "extracting"
    ENRICHING = "enriching"
    CHECKING_INTERACTIONS = "checking_interactions"
    INFERRING_CONDITIONS = "inferring_conditions"
    ASSESSING = "assessing"
    GENERATING_INSIGHTS = "generating_insights"
    ASSEMBLING = "assembling"
    PERSISTING = "persisting"
    DONE = "done"
    FAILED = "failed"


class AnalysisPipeline:
    """Orchestrates one analysis run per call; holds no state between runs."""

    def __init__(
        self,
        db: Session,
        llm_service: Optional[LLMService] = None,
        rxnorm_client: Optional[RxNormClient] = None,
        document_parser: Optional[DocumentParser] = None,
        on_stage: Optional[Callable[[PipelineStage], None]] = None,
        today: Optional[date] = None,
    ):
        self.db = db
        self.store = DocumentStore(db)
        self.llm_service = llm_service or LLMService()
        self.rxnorm_client = rxnorm_client or RxNormClient()
        self.document_parser = document_parser or DocumentParser()
        self.on_stage = on_stage
        self.today = today

        self.text_acquisition = TextAcquisition(self.document_parser)
        self.extractor = MedicalDataExtractor(self.llm_service)
        self.enrichment = DrugEnrichment(self.rxnorm_client)
        self.interaction_checker = InteractionChecker(self.rxnorm_client)
        self.condition_inferencer = ConditionInferencer(self.llm_service)
        self.assessment_generator = AssessmentGenerator(self.llm_service)
        self.insight_generators = InsightGenerators(self.llm_service)
        self.assembler = ResultAssembler()

        self.stage = PipelineStage.NOT_STARTED
        self.stage_errors: list[StageError] = []
        self.cache_hit = False

    def _enter(self, stage: PipelineStage) -> None:
        self.stage = stage
        logger.info("Pipeline stage: %s", stage.value)
        if self.on_stage is not None:
            self.on_stage(stage)

    def _unwrap(self, result: StageResult):
        if not result.ok:
            self.stage_errors.append(result.error)
        return result.value

    async def run_full_analysis_pipeline(
        self, document_id: uuid.UUID, user_id: Optional[uuid.UUID] = None, force_refresh: bool = False
    ) -> FullAnalysisResult:
        """
        Return the document's full analysis, from cache unless force_refresh.

        Args:
            document_id: Document to analyse
            user_id: Owner for persisted rows (defaults to the document's owner)
            force_refresh: Skip the cache and re-run every stage

        Returns:
            FullAnalysisResult (cached_at set only when served from cache)

        Raises:
            DocumentNotFoundError: No such document
            TextAcquisitionError: No usable text could be obtained
        """
        started = time.monotonic()
        self.stage_errors = []
        self.cache_hit = False
        self.llm_service.reset_usage()

        self._enter(PipelineStage.CACHE_CHECK)
        if not force_refresh:
            cached = self._cached_analysis(document_id)
            if cached is not None:
                self.cache_hit = True
                self._enter(PipelineStage.CACHE_HIT)
                self._enter(PipelineStage.DONE)
                return cached

        self._enter(PipelineStage.ACQUIRING)
        document = self.store.fetch_document(document_id)
        if document is None:
            self._enter(PipelineStage.FAILED)
            raise DocumentNotFoundError(f"Document {document_id} not found")
        user_id = user_id or document.user_id

        try:
            acquired = await self.text_acquisition.acquire(document)
        except TextAcquisitionError as e:
            logger.error("Text acquisition failed for document %s: %s", document_id, e)
            self._enter(PipelineStage.FAILED)
            raise

        self._enter(PipelineStage.EXTRACTING)
        extracted = self._unwrap(await self.extractor.extract(acquired.text))

        self._enter(PipelineStage.ENRICHING)
        await self.enrichment.enrich(extracted)

        self._enter(PipelineStage.CHECKING_INTERACTIONS)
        interactions = self._unwrap(await self.interaction_checker.check(extracted.medications))

        self._enter(PipelineStage.INFERRING_CONDITIONS)
        diagnosed = self._unwrap(await self.condition_inferencer.infer(extracted.medications))

        self._enter(PipelineStage.ASSESSING)
        assessment = self._unwrap(
            await self.assessment_generator.assess(extracted.conditions, extracted.medications, diagnosed, interactions)
        )

        self._enter(PipelineStage.GENERATING_INSIGHTS)
        insights = await self.insight_generators.generate_all(
            extracted.conditions, extracted.medications, interactions, diagnosed
        )
        medication_insights = self._unwrap(insights.medication_insights)
        food_recommendations = self._unwrap(insights.food_recommendations)
        safety_insights = self._unwrap(insights.safety_insights)

        self._enter(PipelineStage.ASSEMBLING)
        result = self.assembler.assemble(
            extracted_data=extracted,
            diagnosed_conditions=diagnosed,
            drug_interactions=interactions,
            doctor_assessment=assessment,
            medication_insights=medication_insights,
            food_recommendations=food_recommendations,
            safety_insights=safety_insights,
            history=self._analysis_history(document_id),
            today=self.today,
        )

        self._enter(PipelineStage.PERSISTING)
        processing_time_ms = int((time.monotonic() - started) * 1000)
        self._persist(document_id, user_id, acquired, result, food_recommendations, processing_time_ms)

        if self.stage_errors:
            logger.warning(
                "Analysis of document %s completed with %d degraded stage(s): %s",
                document_id,
                len(self.stage_errors),
                ", ".join(e.stage for e in self.stage_errors),
            )
        self._enter(PipelineStage.DONE)
        return result

    # =========================================================================
    # CACHE + HISTORY READS
    # =========================================================================

    def _cached_analysis(self, document_id: uuid.UUID) -> Optional[FullAnalysisResult]:
        try:
            return self.store.get_cached_analysis(document_id)
        except Exception as e:
            self.db.rollback()
            logger.warning("Cache check failed for document %s, treating as miss: %s", document_id, e)
            return None

    def _analysis_history(self, document_id: uuid.UUID) -> list[AnalysisHistoryPoint]:
        try:
            return self.store.get_analysis_history(document_id)
        except Exception as e:
            self.db.rollback()
            logger.warning("Could not load analysis history for document %s: %s", document_id, e)
            return []

    # =========================================================================
    # PERSISTENCE (best effort)
    # =========================================================================

    def _best_effort(self, label: str, document_id: uuid.UUID, operation: Callable[[], object]) -> None:
        try:
            operation()
        except Exception as e:
            self.db.rollback()
            logger.error("Failed to %s for document %s: %s", label, document_id, e)

    def _persist(
        self,
        document_id: uuid.UUID,
        user_id: uuid.UUID,
        acquired: AcquiredText,
        result: FullAnalysisResult,
        food_recommendations: list[FoodRecommendation],
        processing_time_ms: int,
    ) -> None:
        if acquired.freshly_parsed:
            self._best_effort(
                "store extracted text", document_id, lambda: self.store.update_document_text(document_id, acquired.text)
            )

        self._best_effort(
            "store analysis",
            document_id,
            lambda: self.store.upsert_analysis(
                document_id,
                user_id,
                result,
                model_used=self.llm_service.models_used(),
                processing_time_ms=processing_time_ms,
            ),
        )

        condition_rows = build_condition_rows(
            document_id, user_id, result.extracted_data.conditions, result.diagnosed_conditions
        )
        if condition_rows:
            self._best_effort("store conditions", document_id, lambda: self.store.upsert_conditions(condition_rows))

        if food_recommendations:
            self._best_effort(
                "store food recommendations",
                document_id,
                lambda: self.store.replace_food_recommendations(document_id, user_id, food_recommendations),
            )

        usage = self.llm_service.reset_usage()
        if usage:
            self._best_effort(
                "log AI usage", document_id, lambda: AIUsageService(self.db).log_records(usage, user_id, document_id)
            )

    async def aclose(self) -> None:
        await self.rxnorm_client.aclose()
        await self.document_parser.aclose()
