"""
Deterministic assembly of the full-analysis artifact from stage outputs.

No external calls and no randomness: the same inputs (and the same `today`)
always produce the same result.
"""

import logging
from datetime import date, datetime, time
from typing import Optional

from rexai.config import settings
from rexai.services.ai_schemas import (
    DiagnosedCondition,
    DoctorAssessment,
    DrugInteraction,
    ExtractedMedicalData,
    FoodRecommendation,
    MedicationInsight,
    SafetyInsight,
)
from rexai.services.analysis_schemas import (
    AnalysisCharts,
    AnalysisHistoryPoint,
    ConditionSummary,
    FollowUpAction,
    FoodScore,
    FullAnalysisResult,
    KeyFinding,
    NutritionBar,
    ProgressBar,
    TrendPoint,
    TrendSeries,
)
from rexai.services.clinical_reasoning import merge_condition_names

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Medical Document Analysis"

LEVEL_SCORES = {"high": 90, "medium": 60, "low": 30}
CONDITION_FINDING_STATUS = {"high": "critical", "medium": "abnormal", "low": "info"}
INTERACTION_FINDING_STATUS = {"high": "critical", "moderate": "abnormal", "low": "info"}

# (nutrient attribute, label, daily value, unit)
NUTRITION_DAILY_VALUES = (
    ("protein", "Protein", 50, "g"),
    ("fiber", "Fiber", 25, "g"),
    ("calories", "Calories", 2000, "kcal"),
)

TREND_CONDITIONS = "Conditions Identified"
TREND_INTERACTIONS = "Drug Interactions Flagged"


def classify_document(data: ExtractedMedicalData) -> str:
    if data.medications:
        return "prescription"
    if data.conditions:
        return "diagnosis"
    return "medical_document"


def build_title(data: ExtractedMedicalData, diagnosed: list[DiagnosedCondition]) -> str:
    if data.diagnoses:
        return data.diagnoses[0]
    if diagnosed:
        return diagnosed[0].condition
    return DEFAULT_TITLE


def build_overview(
    data: ExtractedMedicalData,
    diagnosed: list[DiagnosedCondition],
    interactions: list[DrugInteraction],
    food_recommendations: list[FoodRecommendation],
) -> str:
    """Clinical, factual summary; the conversational tone belongs to the doctor assessment."""
    condition_names = merge_condition_names(data.conditions, diagnosed)
    medications = data.medications
    parts = []

    if medications:
        sentence = f"This prescription contains {len(medications)} medication(s)"
        if condition_names:
            sentence += f" targeting {', '.join(condition_names[:3])}"
            if len(condition_names) > 3:
                sentence += f" and {len(condition_names) - 3} other condition(s)"
        parts.append(sentence + ".")
    elif condition_names:
        parts.append(
            f"Analysis identified {len(condition_names)} health condition(s): {', '.join(condition_names[:4])}."
        )
    else:
        parts.append("Medical document analyzed.")

    if medications:
        sentence = f"Prescribed medications include {', '.join(m.name for m in medications[:4])}"
        if len(medications) > 4:
            sentence += f" and {len(medications) - 4} more"
        parts.append(sentence + ".")

    high_risk = sum(1 for i in interactions if i.severity == "high")
    if high_risk:
        parts.append(
            f"ALERT: {high_risk} high-risk drug interaction(s) detected - "
            "consult your healthcare provider immediately."
        )
    elif interactions:
        parts.append(
            f"{len(interactions)} potential drug interaction(s) identified - review the safety Q&A below."
        )
    elif len(medications) > 1:
        parts.append("No significant drug interactions detected.")

    if food_recommendations:
        parts.append(
            f"{len(food_recommendations)} dietary recommendation(s) provided based on your medications and conditions."
        )

    return " ".join(parts)


def build_key_findings(
    data: ExtractedMedicalData, diagnosed: list[DiagnosedCondition], interactions: list[DrugInteraction]
) -> list[KeyFinding]:
    findings = [
        KeyFinding(
            category="Diagnosed Condition",
            finding=f"{d.condition}: {d.description}" if d.description else d.condition,
            status="abnormal" if d.confidence == "high" else "info",
            reference=f"Inferred from: {', '.join(d.inferred_from)}" if d.inferred_from else None,
        )
        for d in diagnosed
    ]
    findings.extend(
        KeyFinding(
            category="Condition",
            finding=c.description or c.name,
            status=CONDITION_FINDING_STATUS[c.severity],
        )
        for c in data.conditions
    )
    findings.extend(
        KeyFinding(
            category="Medication",
            finding=f"{' '.join(filter(None, [m.name, m.dosage]))} - {m.purpose or 'Prescribed'}",
            status="info",
            value=m.dosage or None,
            reference=m.frequency or None,
        )
        for m in data.medications
    )
    findings.extend(
        KeyFinding(
            category="Drug Interaction",
            finding=f"{i.drug1} + {i.drug2}: {i.description}",
            status=INTERACTION_FINDING_STATUS[i.severity],
        )
        for i in interactions
    )
    return findings


def build_recommendations(
    assessment: DoctorAssessment,
    medication_insights: list[MedicationInsight],
    food_recommendations: list[FoodRecommendation],
    limit: int,
) -> list[str]:
    candidates = list(assessment.advice)
    for insight in medication_insights:
        if insight.treatment_goal:
            candidates.append(insight.treatment_goal)
        candidates.extend(insight.precautions[:2])
    candidates.extend(f"{r.category}: {r.benefit}" for r in food_recommendations if r.benefit)

    return list(dict.fromkeys(c for c in candidates if c.strip()))[:limit]


def build_follow_up_actions(data: ExtractedMedicalData, interactions: list[DrugInteraction]) -> list[FollowUpAction]:
    actions = []
    if any(i.severity == "high" for i in interactions):
        actions.append(
            FollowUpAction(
                action="Consult doctor about potential drug interactions", priority="high", timeframe="Immediately"
            )
        )
    actions.extend(
        FollowUpAction(action=f"Follow up on {c.name}", priority="high", timeframe="1-2 weeks")
        for c in data.conditions
        if c.severity == "high"
    )
    if data.medications:
        actions.append(FollowUpAction(action="Take medications as prescribed", priority="high", timeframe="Daily"))
    return actions


def build_condition_summaries(
    data: ExtractedMedicalData, diagnosed: list[DiagnosedCondition]
) -> list[ConditionSummary]:
    summaries = [ConditionSummary(name=c.name, severity=c.severity, notes=c.description) for c in data.conditions]
    summaries.extend(
        ConditionSummary(name=d.condition, severity=d.confidence, notes=d.description) for d in diagnosed
    )
    return summaries


def build_trends(history: list[AnalysisHistoryPoint], current: AnalysisHistoryPoint) -> list[TrendSeries]:
    """Series over real analyses only: prior runs of the document plus this one."""
    if not history:
        return []

    points = [*history, current]
    return [
        TrendSeries(
            label=TREND_CONDITIONS,
            data=[TrendPoint(date=p.analyzed_at.date().isoformat(), value=p.conditions) for p in points],
        ),
        TrendSeries(
            label=TREND_INTERACTIONS,
            data=[TrendPoint(date=p.analyzed_at.date().isoformat(), value=p.drug_interactions) for p in points],
        ),
    ]


def build_charts(
    data: ExtractedMedicalData,
    diagnosed: list[DiagnosedCondition],
    food_recommendations: list[FoodRecommendation],
    trends: list[TrendSeries],
) -> AnalysisCharts:
    nutrition_bars = []
    for rec in food_recommendations:
        if rec.nutrition is None:
            continue
        for attribute, label, daily_value, unit in NUTRITION_DAILY_VALUES:
            value = getattr(rec.nutrition, attribute)
            if value:
                nutrition_bars.append(
                    NutritionBar(nutrient=f"{rec.category} - {label}", value=value, daily_value=daily_value, unit=unit)
                )

    progress_bars = [
        ProgressBar(label=c.name, current=LEVEL_SCORES[c.severity], target=100, unit="% severity")
        for c in data.conditions
    ]
    progress_bars.extend(
        ProgressBar(
            label=f"{d.condition} (inferred)", current=LEVEL_SCORES[d.confidence], target=100, unit="% confidence"
        )
        for d in diagnosed
    )

    return AnalysisCharts(
        vitals=[],
        progress_bars=progress_bars,
        food_scores=[FoodScore(category=r.category, score=r.score) for r in food_recommendations],
        nutrition_bars=nutrition_bars,
        trends=trends,
    )


class ResultAssembler:
    """Combines every stage output into one FullAnalysisResult."""

    def __init__(self, max_recommendations: int | None = None):
        self.max_recommendations = max_recommendations or settings.analysis_max_recommendations

    def assemble(
        self,
        extracted_data: ExtractedMedicalData,
        diagnosed_conditions: list[DiagnosedCondition],
        drug_interactions: list[DrugInteraction],
        doctor_assessment: DoctorAssessment,
        medication_insights: list[MedicationInsight],
        food_recommendations: list[FoodRecommendation],
        safety_insights: list[SafetyInsight],
        history: Optional[list[AnalysisHistoryPoint]] = None,
        today: Optional[date] = None,
    ) -> FullAnalysisResult:
        conditions = build_condition_summaries(extracted_data, diagnosed_conditions)
        current = AnalysisHistoryPoint(
            analyzed_at=datetime.combine(today or date.today(), time.min),
            conditions=len(conditions),
            drug_interactions=len(drug_interactions),
        )

        result = FullAnalysisResult(
            title=build_title(extracted_data, diagnosed_conditions),
            document_type=classify_document(extracted_data),
            overview=build_overview(extracted_data, diagnosed_conditions, drug_interactions, food_recommendations),
            doctor_assessment=doctor_assessment,
            diagnosed_conditions=diagnosed_conditions,
            extracted_data=extracted_data,
            medication_insights=medication_insights,
            drug_interactions=drug_interactions,
            food_recommendations=food_recommendations,
            safety_insights=safety_insights,
            key_findings=build_key_findings(extracted_data, diagnosed_conditions, drug_interactions),
            recommendations=build_recommendations(
                doctor_assessment, medication_insights, food_recommendations, self.max_recommendations
            ),
            follow_up_actions=build_follow_up_actions(extracted_data, drug_interactions),
            conditions=conditions,
            charts=build_charts(
                extracted_data, diagnosed_conditions, food_recommendations, build_trends(history or [], current)
            ),
            cached_at=None,
        )

        logger.info(
            "Assembled %s result: %d key findings, %d recommendations, %d follow-up actions",
            result.document_type,
            len(result.key_findings),
            len(result.recommendations),
            len(result.follow_up_actions),
        )
        return result
