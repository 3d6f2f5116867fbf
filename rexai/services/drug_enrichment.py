"""RxNorm enrichment of extracted medications and the drug-pair interaction check."""

import asyncio
import logging

from rexai.config import settings
from rexai.services.ai_schemas import DrugInteraction, ExtractedMedicalData, MedicationSchema
from rexai.services.rxnorm_client import RxNormClient
from rexai.services.stage_result import StageResult, run_stage

logger = logging.getLogger(__name__)


class DrugEnrichment:
    """Per-medication lookups, bounded by a semaphore; a failed lookup leaves its item unchanged."""

    STAGE = "drug_enrichment"

    def __init__(self, client: RxNormClient, max_concurrency: int | None = None, timeout: float | None = None):
        self.client = client
        self.max_concurrency = max_concurrency or settings.rxnorm_max_concurrency
        self.timeout = timeout if timeout is not None else settings.analysis_stage_timeout

    async def enrich(self, data: ExtractedMedicalData) -> list[MedicationSchema]:
        """Attach rxcui and lookup data in place. Length and order are preserved."""
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def lookup(index: int, medication: MedicationSchema) -> MedicationSchema:
            async with semaphore:
                try:
                    info = await asyncio.wait_for(self.client.search_drug(medication.name), timeout=self.timeout)
                except Exception as e:
                    logger.warning("RxNorm lookup failed for %s (%s: %s)", medication.name, type(e).__name__, e)
                    return medication

            if info is None:
                logger.info("[%d/%d] No RxNorm match for %s", index + 1, len(data.medications), medication.name)
                return medication

            logger.info("[%d/%d] %s -> rxcui %s", index + 1, len(data.medications), medication.name, info.rxcui)
            return medication.model_copy(update={"rxcui": info.rxcui, "rxnorm_data": info})

        data.medications = list(await asyncio.gather(*(lookup(i, m) for i, m in enumerate(data.medications))))

        found = sum(1 for m in data.medications if m.rxcui)
        logger.info("Enriched %d/%d medications with RxNorm data", found, len(data.medications))
        return data.medications


class InteractionChecker:
    STAGE = "interaction_check"

    def __init__(self, client: RxNormClient, timeout: float | None = None):
        self.client = client
        self.timeout = timeout if timeout is not None else settings.analysis_stage_timeout

    async def check(self, medications: list[MedicationSchema]) -> StageResult[list[DrugInteraction]]:
        """One batched query across every identified medication; [] with fewer than two."""
        rxcuis = [m.rxcui for m in medications if m.rxcui]
        if len(rxcuis) < 2:
            logger.info("Fewer than 2 identified medications, skipping interaction check")
            return StageResult.success(self.STAGE, [])

        return await run_stage(self.STAGE, lambda: self.client.check_interactions(rxcuis), list, self.timeout)
