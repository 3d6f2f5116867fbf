"""
Patient-facing insight generators: medication explanations, food
recommendations and safety Q&A.

The three generators only read upstream results, so they run concurrently.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from rexai.config import settings
from rexai.services.ai_schemas import (
    ConditionSchema,
    DiagnosedCondition,
    DrugInteraction,
    FoodRecommendation,
    MedicationInsight,
    MedicationSchema,
    SafetyInsight,
)
from rexai.services.llm_service import LLMService
from rexai.services.prompts import (
    FOOD_RECOMMENDATION_PROMPT,
    MEDICATION_INSIGHT_PROMPT,
    SAFETY_INSIGHT_PROMPT,
    build_food_prompt,
    build_medication_insight_prompt,
    build_safety_prompt,
)
from rexai.services.response_parsing import bare_array, extract_items, single_item, unwrap_key, validate_items
from rexai.services.stage_result import StageResult, run_stage

logger = logging.getLogger(__name__)

MEDICATION_INSIGHT_STRATEGIES = (
    bare_array(),
    unwrap_key("insights"),
    unwrap_key("medications"),
    single_item("medication"),
)
FOOD_RECOMMENDATION_STRATEGIES = (unwrap_key("recommendations"), bare_array(), unwrap_key("foods"))
SAFETY_INSIGHT_STRATEGIES = (unwrap_key("insights"), bare_array(), unwrap_key("questions"))


def match_rxcui(medication_name: str, medications: list[MedicationSchema]) -> Optional[str]:
    """rxcui of the first medication whose name contains (or is contained in) the given name."""
    target = medication_name.strip().lower()
    if not target:
        return None
    for medication in medications:
        name = medication.name.lower()
        if target in name or name in target:
            return medication.rxcui
    return None


class MedicationInsightGenerator:
    STAGE = "medication_insights"

    def __init__(self, llm_service: LLMService, timeout: float | None = None):
        self.llm_service = llm_service
        self.timeout = timeout if timeout is not None else settings.analysis_stage_timeout

    async def generate(
        self, medications: list[MedicationSchema], conditions: list[ConditionSchema]
    ) -> StageResult[list[MedicationInsight]]:
        if not medications:
            return StageResult.success(self.STAGE, [])
        return await run_stage(self.STAGE, lambda: self._generate(medications, conditions), list, self.timeout)

    async def _generate(self, medications, conditions) -> list[MedicationInsight]:
        payload = await self.llm_service.generate_json(
            MEDICATION_INSIGHT_PROMPT,
            build_medication_insight_prompt(medications, conditions),
            temperature=0.3,
            purpose=self.STAGE,
        )
        insights = validate_items(
            extract_items(payload, MEDICATION_INSIGHT_STRATEGIES), MedicationInsight, "medication insight"
        )
        return [
            insight.model_copy(update={"rxcui": match_rxcui(insight.medication, medications)})
            for insight in insights
        ]


class FoodRecommendationGenerator:
    STAGE = "food_recommendations"

    def __init__(self, llm_service: LLMService, timeout: float | None = None):
        self.llm_service = llm_service
        self.timeout = timeout if timeout is not None else settings.analysis_stage_timeout

    async def generate(
        self,
        conditions: list[ConditionSchema],
        medications: list[MedicationSchema],
        diagnosed: list[DiagnosedCondition],
    ) -> StageResult[list[FoodRecommendation]]:
        return await run_stage(
            self.STAGE, lambda: self._generate(conditions, medications, diagnosed), list, self.timeout
        )

    async def _generate(self, conditions, medications, diagnosed) -> list[FoodRecommendation]:
        payload = await self.llm_service.generate_json(
            FOOD_RECOMMENDATION_PROMPT,
            build_food_prompt(conditions, medications, diagnosed),
            temperature=0.3,
            purpose=self.STAGE,
        )
        return validate_items(
            extract_items(payload, FOOD_RECOMMENDATION_STRATEGIES), FoodRecommendation, "food recommendation"
        )


class SafetyInsightGenerator:
    STAGE = "safety_insights"

    def __init__(self, llm_service: LLMService, max_items: int | None = None, timeout: float | None = None):
        self.llm_service = llm_service
        self.max_items = max_items or settings.analysis_max_safety_insights
        self.timeout = timeout if timeout is not None else settings.analysis_stage_timeout

    async def generate(
        self,
        conditions: list[ConditionSchema],
        medications: list[MedicationSchema],
        interactions: list[DrugInteraction],
        diagnosed: list[DiagnosedCondition],
    ) -> StageResult[list[SafetyInsight]]:
        return await run_stage(
            self.STAGE,
            lambda: self._generate(conditions, medications, interactions, diagnosed),
            list,
            self.timeout,
        )

    async def _generate(self, conditions, medications, interactions, diagnosed) -> list[SafetyInsight]:
        payload = await self.llm_service.generate_json(
            SAFETY_INSIGHT_PROMPT,
            build_safety_prompt(conditions, medications, interactions, diagnosed),
            temperature=0.3,
            purpose=self.STAGE,
        )
        insights = validate_items(extract_items(payload, SAFETY_INSIGHT_STRATEGIES), SafetyInsight, "safety insight")
        return insights[: self.max_items]


@dataclass
class InsightBundle:
    medication_insights: StageResult[list[MedicationInsight]]
    food_recommendations: StageResult[list[FoodRecommendation]]
    safety_insights: StageResult[list[SafetyInsight]]


class InsightGenerators:
    """Runs the three generators concurrently; each degrades independently."""

    def __init__(self, llm_service: LLMService, timeout: float | None = None):
        self.medication = MedicationInsightGenerator(llm_service, timeout=timeout)
        self.food = FoodRecommendationGenerator(llm_service, timeout=timeout)
        self.safety = SafetyInsightGenerator(llm_service, timeout=timeout)

    async def generate_all(
        self,
        conditions: list[ConditionSchema],
        medications: list[MedicationSchema],
        interactions: list[DrugInteraction],
        diagnosed: list[DiagnosedCondition],
    ) -> InsightBundle:
        medication_insights, food_recommendations, safety_insights = await asyncio.gather(
            self.medication.generate(medications, conditions),
            self.food.generate(conditions, medications, diagnosed),
            self.safety.generate(conditions, medications, interactions, diagnosed),
        )
        logger.info(
            "Generated %d medication insights, %d food recommendations, %d safety insights",
            len(medication_insights.value),
            len(food_recommendations.value),
            len(safety_insights.value),
        )
        return InsightBundle(medication_insights, food_recommendations, safety_insights)
