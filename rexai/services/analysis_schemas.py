"""Pydantic models for the assembled, user-facing full-analysis artifact."""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel

from rexai.services.ai_schemas import (
    DiagnosedCondition,
    DoctorAssessment,
    DrugInteraction,
    ExtractedMedicalData,
    FoodRecommendation,
    MedicationInsight,
    SafetyInsight,
)


class KeyFinding(BaseModel):
    category: str
    finding: str
    status: Literal["normal", "abnormal", "critical", "info"]
    value: Optional[str] = None
    reference: Optional[str] = None


class FollowUpAction(BaseModel):
    action: str
    priority: Literal["high", "medium", "low"]
    timeframe: Optional[str] = None


class ConditionSummary(BaseModel):
    name: str
    severity: Literal["low", "medium", "high"]
    notes: str = ""


class VitalReading(BaseModel):
    label: str
    value: float
    min: float
    max: float
    unit: str


class ProgressBar(BaseModel):
    label: str
    current: float
    target: float
    unit: str


class FoodScore(BaseModel):
    category: str
    score: int


class NutritionBar(BaseModel):
    nutrient: str
    value: float
    daily_value: float
    unit: str


class TrendPoint(BaseModel):
    date: str  # YYYY-MM-DD
    value: float


class TrendSeries(BaseModel):
    label: str
    data: list[TrendPoint] = []


class AnalysisCharts(BaseModel):
    vitals: list[VitalReading] = []
    progress_bars: list[ProgressBar] = []
    food_scores: list[FoodScore] = []
    nutrition_bars: list[NutritionBar] = []
    trends: list[TrendSeries] = []


class AnalysisHistoryPoint(BaseModel):
    """Counts from one earlier analysis of the same document."""

    analyzed_at: datetime
    conditions: int
    drug_interactions: int


class FullAnalysisResult(BaseModel):
    title: str
    document_type: str  # prescription, diagnosis, medical_document
    overview: str
    doctor_assessment: DoctorAssessment
    diagnosed_conditions: list[DiagnosedCondition] = []
    extracted_data: ExtractedMedicalData
    medication_insights: list[MedicationInsight] = []
    drug_interactions: list[DrugInteraction] = []
    food_recommendations: list[FoodRecommendation] = []
    safety_insights: list[SafetyInsight] = []
    key_findings: list[KeyFinding] = []
    recommendations: list[str] = []
    follow_up_actions: list[FollowUpAction] = []
    conditions: list[ConditionSummary] = []
    charts: AnalysisCharts = AnalysisCharts()
    cached_at: Optional[datetime] = None
