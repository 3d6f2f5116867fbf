"""
Pydantic models for the structured JSON produced by text generation and drug lookups.

Each schema is lenient: null fields fall back to defaults, camelCase keys are
accepted alongside snake_case, and closed vocabularies are normalised. Partially
formed model output therefore still validates; items that cannot be salvaged
(e.g. a condition with no name) are dropped by the calling stage.
"""

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


def _normalize_choice(value, allowed: tuple[str, ...], default: str) -> str:
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in allowed:
            return lowered
    return default


def _item_text(value) -> Optional[str]:
    # Lists of objects usually carry the label under "name" or "condition"
    if isinstance(value, dict):
        value = value.get("name") or value.get("condition")
    if isinstance(value, (str, int, float)) and not isinstance(value, bool):
        text = str(value).strip()
        return text or None
    return None


def _as_str_list(value) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value.strip() else []
    if isinstance(value, (list, tuple)):
        return [text for text in map(_item_text, value) if text]
    return []


def _as_str(value):
    """Flatten scalars, objects and lists into text; anything else is left for validation."""
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, dict):
        return ", ".join(f"{k}: {v}" for k, v in value.items() if v is not None and str(v).strip())
    if isinstance(value, (list, tuple)):
        return " ".join(str(v).strip() for v in value if v is not None and str(v).strip())
    return value


class LenientSchema(BaseModel):
    """Base for model-produced objects: ignores extras, treats null as missing."""

    model_config = ConfigDict(
        extra="ignore",
        alias_generator=to_camel,
        populate_by_name=True,
    )

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, data):
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if v is not None}
        return data


# --- Drug lookups (rxnorm_client) ---


class RxDrugInfo(LenientSchema):
    rxcui: str
    name: str = ""
    generic_name: Optional[str] = None
    brand_names: list[str] = []
    dosage_forms: list[str] = []
    ingredients: list[str] = []
    strength: Optional[str] = None

    coerce_lists = field_validator("brand_names", "dosage_forms", "ingredients", mode="before")(
        _as_str_list
    )


class DrugInteraction(LenientSchema):
    severity: Literal["high", "moderate", "low"] = "moderate"
    description: str = "Potential interaction"
    drug1: str = "Drug 1"
    drug2: str = "Drug 2"

    @field_validator("severity", mode="before")
    @classmethod
    def _map_severity(cls, value):
        # Lookup vocabularies vary ("High", "N/A", "moderate risk"); map by containment
        text = str(value or "").lower()
        if "high" in text:
            return "high"
        if "low" in text:
            return "low"
        return "moderate"


# --- Medical data extraction (medical_extraction) ---


class ConditionSchema(LenientSchema):
    name: str = Field(min_length=1)
    severity: Literal["low", "medium", "high"] = "medium"
    description: str = ""

    @field_validator("severity", mode="before")
    @classmethod
    def _severity(cls, value):
        return _normalize_choice(value, ("low", "medium", "high"), "medium")


class MedicationSchema(LenientSchema):
    name: str = Field(min_length=1)
    dosage: str = ""
    frequency: str = ""
    purpose: str = ""
    rxcui: Optional[str] = None
    rxnorm_data: Optional[RxDrugInfo] = None

    coerce_text = field_validator("dosage", "frequency", "purpose", "rxcui", mode="before")(_as_str)


class ExtractedMedicalData(LenientSchema):
    conditions: list[ConditionSchema] = []
    medications: list[MedicationSchema] = []
    diagnoses: list[str] = []
    symptoms: list[str] = []
    doctor_name: Optional[str] = None
    patient_info: Optional[str] = None
    date_of_visit: Optional[str] = None

    coerce_lists = field_validator("diagnoses", "symptoms", mode="before")(_as_str_list)
    coerce_text = field_validator("doctor_name", "patient_info", "date_of_visit", mode="before")(_as_str)


# --- Condition inference (clinical_reasoning) ---


class DiagnosedCondition(LenientSchema):
    condition: str = Field(min_length=1)
    confidence: Literal["high", "medium", "low"] = "medium"
    inferred_from: list[str] = []
    description: str = ""
    common_symptoms: list[str] = []

    coerce_lists = field_validator("inferred_from", "common_symptoms", mode="before")(_as_str_list)

    @field_validator("confidence", mode="before")
    @classmethod
    def _confidence(cls, value):
        return _normalize_choice(value, ("high", "medium", "low"), "medium")


# --- Doctor's assessment (clinical_reasoning) ---


class DoctorAssessment(LenientSchema):
    greeting: str = "Thank you for your visit."
    diagnosis: str = "Please review the prescription details."
    treatment_plan: str = "Follow medication instructions carefully."
    advice: list[str] = ["Take medications as prescribed", "Stay hydrated", "Get adequate rest"]
    warnings: list[str] = ["Report any adverse reactions immediately"]
    follow_up: str = "Schedule a follow-up as needed."

    coerce_text = field_validator("greeting", "diagnosis", "treatment_plan", "follow_up", mode="before")(_as_str)

    @field_validator("advice", "warnings", mode="before")
    @classmethod
    def _lists(cls, value):
        return _as_str_list(value)

    @field_validator("greeting", "diagnosis", "treatment_plan", "follow_up")
    @classmethod
    def _not_blank(cls, value, info):
        if not value.strip():
            return cls.model_fields[info.field_name].default
        return value


# --- Insight generators (insight_generators) ---


class MedicationInsight(LenientSchema):
    medication: str = Field(min_length=1)
    rxcui: Optional[str] = None
    why_prescribed: str = ""
    treatment_goal: str = ""
    side_effects: list[str] = []
    precautions: list[str] = []

    coerce_lists = field_validator("side_effects", "precautions", mode="before")(_as_str_list)
    coerce_text = field_validator("rxcui", mode="before")(_as_str)


class NutritionInfo(LenientSchema):
    calories: float = 0
    protein: float = 0
    carbs: float = 0
    fiber: float = 0
    vitamins: list[str] = []

    coerce_lists = field_validator("vitamins", mode="before")(_as_str_list)


class FoodRecommendation(LenientSchema):
    category: str = "General"
    foods: list[str] = []
    benefit: str = ""
    score: int = 50
    nutrition: Optional[NutritionInfo] = None

    coerce_lists = field_validator("foods", mode="before")(_as_str_list)

    @field_validator("score", mode="before")
    @classmethod
    def _clamp_score(cls, value):
        try:
            score = round(float(value))
        except (TypeError, ValueError):
            return 50
        return max(0, min(100, score))


class SafetyInsight(LenientSchema):
    question: str = Field(min_length=1)
    answer: str = ""
    risk_level: Literal["safe", "caution", "warning"] = "caution"

    @field_validator("risk_level", mode="before")
    @classmethod
    def _risk_level(cls, value):
        return _normalize_choice(value, ("safe", "caution", "warning"), "caution")


DEFAULT_DOCTOR_ASSESSMENT = DoctorAssessment()
