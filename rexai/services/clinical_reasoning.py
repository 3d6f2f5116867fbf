"""
Clinical reasoning stages: conditions inferred from medications, and the
doctor-style assessment narrative.
"""

import logging

from rexai.config import settings
from rexai.services.ai_schemas import (
    ConditionSchema,
    DiagnosedCondition,
    DoctorAssessment,
    DrugInteraction,
    MedicationSchema,
)
from rexai.services.llm_service import LLMResponseError, LLMService
from rexai.services.prompts import (
    CONDITION_INFERENCE_PROMPT,
    DOCTOR_ASSESSMENT_PROMPT,
    build_assessment_prompt,
    build_condition_inference_prompt,
)
from rexai.services.response_parsing import bare_array, extract_items, unwrap_key, validate_items
from rexai.services.stage_result import StageResult, run_stage

logger = logging.getLogger(__name__)

CONDITION_PARSE_STRATEGIES = (
    unwrap_key("diagnosed_conditions"),
    unwrap_key("diagnosedConditions"),
    unwrap_key("conditions"),
    bare_array(),
)


def merge_condition_names(conditions: list[ConditionSchema], diagnosed: list[DiagnosedCondition]) -> list[str]:
    """Extracted then inferred condition names, de-duplicated (first occurrence wins)."""
    names = [c.name for c in conditions] + [d.condition for d in diagnosed]
    return list(dict.fromkeys(names))


class ConditionInferencer:
    STAGE = "condition_inference"

    def __init__(self, llm_service: LLMService, timeout: float | None = None):
        self.llm_service = llm_service
        self.timeout = timeout if timeout is not None else settings.analysis_stage_timeout

    async def infer(self, medications: list[MedicationSchema]) -> StageResult[list[DiagnosedCondition]]:
        if not medications:
            return StageResult.success(self.STAGE, [])
        return await run_stage(self.STAGE, lambda: self._infer(medications), list, self.timeout)

    async def _infer(self, medications: list[MedicationSchema]) -> list[DiagnosedCondition]:
        payload = await self.llm_service.generate_json(
            CONDITION_INFERENCE_PROMPT,
            build_condition_inference_prompt(medications),
            temperature=0.2,
            purpose=self.STAGE,
        )
        conditions = validate_items(
            extract_items(payload, CONDITION_PARSE_STRATEGIES), DiagnosedCondition, "diagnosed condition"
        )
        logger.info("Inferred %d conditions from %d medications", len(conditions), len(medications))
        return conditions


class AssessmentGenerator:
    STAGE = "doctor_assessment"

    def __init__(self, llm_service: LLMService, timeout: float | None = None):
        self.llm_service = llm_service
        self.timeout = timeout if timeout is not None else settings.analysis_stage_timeout

    async def assess(
        self,
        conditions: list[ConditionSchema],
        medications: list[MedicationSchema],
        diagnosed: list[DiagnosedCondition],
        interactions: list[DrugInteraction],
    ) -> StageResult[DoctorAssessment]:
        """Six-field narrative; the fixed default narrative on failure."""
        user_prompt = build_assessment_prompt(merge_condition_names(conditions, diagnosed), medications, interactions)
        return await run_stage(self.STAGE, lambda: self._assess(user_prompt), DoctorAssessment, self.timeout)

    async def _assess(self, user_prompt: str) -> DoctorAssessment:
        payload = await self.llm_service.generate_json(
            DOCTOR_ASSESSMENT_PROMPT, user_prompt, temperature=0.4, purpose=self.STAGE
        )
        if not isinstance(payload, dict):
            raise LLMResponseError("Expected a JSON object for the assessment", response_content=str(payload))
        return DoctorAssessment.model_validate(payload)
