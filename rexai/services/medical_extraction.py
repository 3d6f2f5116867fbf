"""Structured medical data extraction from document text."""

import logging

from rexai.config import settings
from rexai.services.ai_schemas import ConditionSchema, ExtractedMedicalData, MedicationSchema
from rexai.services.llm_service import LLMResponseError, LLMService
from rexai.services.prompts import MEDICAL_EXTRACTION_PROMPT, build_extraction_prompt
from rexai.services.response_parsing import as_list, validate_items
from rexai.services.stage_result import StageResult, run_stage

logger = logging.getLogger(__name__)


class MedicalDataExtractor:
    STAGE = "medical_extraction"

    def __init__(self, llm_service: LLMService, max_chars: int | None = None, timeout: float | None = None):
        self.llm_service = llm_service
        self.max_chars = max_chars or settings.analysis_max_document_chars
        self.timeout = timeout if timeout is not None else settings.analysis_stage_timeout

    async def extract(self, text: str) -> StageResult[ExtractedMedicalData]:
        """Extract conditions, medications, diagnoses and symptoms; all-empty on failure."""
        return await run_stage(self.STAGE, lambda: self._extract(text), ExtractedMedicalData, self.timeout)

    async def _extract(self, text: str) -> ExtractedMedicalData:
        payload = await self.llm_service.generate_json(
            MEDICAL_EXTRACTION_PROMPT,
            build_extraction_prompt(text, self.max_chars),
            temperature=0.2,
            purpose=self.STAGE,
        )
        if not isinstance(payload, dict):
            raise LLMResponseError("Expected a JSON object of medical data", response_content=str(payload))

        data = ExtractedMedicalData.model_validate(
            {
                **payload,
                "conditions": validate_items(as_list(payload.get("conditions")), ConditionSchema, "condition"),
                "medications": validate_items(as_list(payload.get("medications")), MedicationSchema, "medication"),
            }
        )
        logger.info(
            "Extracted %d conditions, %d medications, %d diagnoses",
            len(data.conditions),
            len(data.medications),
            len(data.diagnoses),
        )
        return data
