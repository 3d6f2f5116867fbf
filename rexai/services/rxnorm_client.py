"""
RxNorm (NIH RxNav) client for drug-name normalisation and interaction checks.

API docs: https://lhncbc.nlm.nih.gov/RxNav/APIs/RxNormAPIs.html
"""

import logging
from typing import Optional

import httpx

from rexai.config import settings
from rexai.services.ai_schemas import DrugInteraction, RxDrugInfo

logger = logging.getLogger(__name__)

# Related-concept term types collected from allrelated.json
TTY_BRAND_NAME = "BN"
TTY_INGREDIENT = "IN"
TTY_DOSE_FORM = "DF"
TTY_CLINICAL_DRUG = "SCD"


class RxNormError(Exception):
    """RxNav could not be reached or returned an unusable response."""

    pass


def _unique(values: list[str]) -> list[str]:
    return list(dict.fromkeys(v for v in values if v))


class RxNormClient:
    """Async RxNav client. Pass an httpx.AsyncClient to share a pool or to mock transport."""

    def __init__(self, client: httpx.AsyncClient | None = None, base_url: str | None = None):
        self.base_url = (base_url or settings.rxnorm_base_url).rstrip("/")
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(settings.rxnorm_timeout))
        return self._client

    async def aclose(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _get_json(self, path: str, params: dict | None = None) -> Optional[dict]:
        """GET a JSON document; None for non-2xx or non-JSON responses."""
        try:
            response = await self._get_client().get(f"{self.base_url}/{path}", params=params)
        except httpx.HTTPError as e:
            raise RxNormError(f"RxNav request failed for {path}: {e}") from e

        if response.status_code >= 400:
            logger.info("RxNav %s returned %d", path, response.status_code)
            return None

        content_type = response.headers.get("content-type", "")
        if "application/json" not in content_type:
            logger.info("RxNav %s returned non-JSON response: %s", path, response.text[:100])
            return None

        try:
            return response.json()
        except ValueError:
            logger.info("RxNav %s returned malformed JSON", path)
            return None

    # =========================================================================
    # DRUG LOOKUP
    # =========================================================================

    async def search_drug(self, drug_name: str) -> Optional[RxDrugInfo]:
        """
        Resolve a free-text drug name to its RxNorm concept.

        Tries an approximate-term match first, then an exact drugs match, and
        finally loads properties and related concepts for the resolved rxcui.

        Returns:
            RxDrugInfo, or None when no concept matches
        """
        rxcui = await self._approximate_rxcui(drug_name) or await self._exact_rxcui(drug_name)
        if not rxcui:
            logger.info("No rxcui found for %s", drug_name)
            return None

        return await self.get_drug_details(rxcui)

    async def _approximate_rxcui(self, drug_name: str) -> Optional[str]:
        data = await self._get_json("approximateTerm.json", {"term": drug_name, "maxEntries": 1})
        candidates = ((data or {}).get("approximateGroup") or {}).get("candidate") or []
        if candidates and candidates[0].get("rxcui"):
            return str(candidates[0]["rxcui"])
        return None

    async def _exact_rxcui(self, drug_name: str) -> Optional[str]:
        data = await self._get_json("drugs.json", {"name": drug_name})
        for group in ((data or {}).get("drugGroup") or {}).get("conceptGroup") or []:
            concepts = group.get("conceptProperties") or []
            if concepts and concepts[0].get("rxcui"):
                return str(concepts[0]["rxcui"])
        return None

    async def get_drug_details(self, rxcui: str) -> RxDrugInfo:
        """Load name, strength and related brand/ingredient/dose-form concepts."""
        props = await self._get_json(f"rxcui/{rxcui}/properties.json")
        related = await self._get_json(f"rxcui/{rxcui}/allrelated.json")

        properties = (props or {}).get("properties") or {}
        groups = ((related or {}).get("allRelatedGroup") or {}).get("conceptGroup") or []

        brand_names: list[str] = []
        ingredients: list[str] = []
        dosage_forms: list[str] = []
        generic_name = None

        for group in groups:
            names = [c.get("name", "") for c in group.get("conceptProperties") or []]
            tty = group.get("tty")
            if tty == TTY_BRAND_NAME:
                brand_names.extend(names)
            elif tty == TTY_INGREDIENT:
                ingredients.extend(names)
            elif tty == TTY_DOSE_FORM:
                dosage_forms.extend(names)
            elif tty == TTY_CLINICAL_DRUG and generic_name is None and names:
                generic_name = names[0]

        return RxDrugInfo(
            rxcui=rxcui,
            name=properties.get("name") or "",
            generic_name=generic_name,
            brand_names=_unique(brand_names),
            ingredients=_unique(ingredients),
            dosage_forms=_unique(dosage_forms),
            strength=properties.get("strength") or None,
        )

    # =========================================================================
    # INTERACTIONS
    # =========================================================================

    async def check_interactions(self, rxcuis: list[str]) -> list[DrugInteraction]:
        """One batched interaction query for all rxcuis; [] on unusable responses."""
        if len(rxcuis) < 2:
            return []

        # RxNav expects literal "+" separators, which params= would percent-encode
        data = await self._get_json(f"interaction/list.json?rxcuis={'+'.join(rxcuis)}")
        if data is None:
            return []

        interactions = []
        for group in data.get("fullInteractionTypeGroup") or []:
            for interaction_type in group.get("fullInteractionType") or []:
                for pair in interaction_type.get("interactionPair") or []:
                    concepts = pair.get("interactionConcept") or []
                    interactions.append(
                        DrugInteraction.model_validate(
                            {
                                "severity": pair.get("severity"),
                                "description": pair.get("description"),
                                "drug1": _concept_name(concepts, 0),
                                "drug2": _concept_name(concepts, 1),
                            }
                        )
                    )

        logger.info("RxNav reported %d interactions for %d drugs", len(interactions), len(rxcuis))
        return interactions


def _concept_name(concepts: list, index: int) -> Optional[str]:
    if len(concepts) <= index:
        return None
    return ((concepts[index] or {}).get("minConceptItem") or {}).get("name")
