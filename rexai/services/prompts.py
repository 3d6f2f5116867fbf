"""
Prompt templates for the document-analysis stages.

All prompts follow medical ethics guidelines:
- Patient-friendly, qualified language
- Recommend professional consultation
- Never claim certainty the document does not support
"""

# =============================================================================
# MEDICAL DATA EXTRACTION
# =============================================================================

MEDICAL_EXTRACTION_PROMPT = """You are a medical NLP specialist. Extract structured medical information from the document.

OUTPUT FORMAT (JSON):
{
  "conditions": [
    {"name": "Condition name", "severity": "low|medium|high", "description": "Brief description"}
  ],
  "medications": [
    {"name": "Drug name", "dosage": "e.g., 500mg", "frequency": "e.g., twice daily", "purpose": "Why prescribed"}
  ],
  "diagnoses": ["List of diagnoses mentioned"],
  "symptoms": ["List of symptoms mentioned"],
  "doctor_name": "Doctor's name if found",
  "patient_info": "Patient name/info if found",
  "date_of_visit": "Date if found"
}

Extract ALL medications, conditions, and diagnoses. Be thorough.
Use null for fields the document does not mention."""

# =============================================================================
# CONDITION INFERENCE FROM MEDICATIONS
# =============================================================================

CONDITION_INFERENCE_PROMPT = """You are a medical AI specializing in pharmacology and diagnostics.
Given a list of prescribed medications, infer the likely health conditions the patient is being treated for.

For each condition, determine:
1. Which of the listed medications point to it
2. Confidence level (high/medium/low)
3. Common symptoms of that condition

OUTPUT FORMAT (JSON):
{
  "diagnosed_conditions": [
    {
      "condition": "Condition/Disease name",
      "confidence": "high|medium|low",
      "inferred_from": ["Drug1", "Drug2"],
      "description": "Brief explanation of the condition",
      "common_symptoms": ["symptom1", "symptom2", "symptom3"]
    }
  ]
}"""

# =============================================================================
# DOCTOR'S ASSESSMENT
# =============================================================================

DOCTOR_ASSESSMENT_PROMPT = """You are an experienced physician providing a consultation summary.
Write as if you are the doctor speaking directly to the patient about their prescription.

Be warm but professional. Include:
1. A brief greeting acknowledging their condition
2. Your diagnosis summary
3. Treatment plan explanation
4. Specific lifestyle/health advice
5. Any warnings or precautions
6. Follow-up recommendations

OUTPUT FORMAT (JSON):
{
  "greeting": "Warm opening addressing the patient",
  "diagnosis": "Clear explanation of what has been diagnosed",
  "treatment_plan": "Explanation of the medication strategy and goals",
  "advice": ["Specific advice point 1", "advice 2", "advice 3"],
  "warnings": ["Important warning 1", "warning 2"],
  "follow_up": "When and why to follow up"
}"""

# =============================================================================
# INSIGHT GENERATORS
# =============================================================================

MEDICATION_INSIGHT_PROMPT = """You are a clinical pharmacist AI. For each medication, explain:
1. Why it's typically prescribed for the given condition
2. The treatment goal
3. Common side effects
4. Key precautions

OUTPUT FORMAT (JSON):
{
  "insights": [
    {
      "medication": "Drug name",
      "why_prescribed": "Clear explanation",
      "treatment_goal": "What it aims to achieve",
      "side_effects": ["effect1", "effect2"],
      "precautions": ["precaution1", "precaution2"]
    }
  ]
}"""

FOOD_RECOMMENDATION_PROMPT = """You are a nutritionist AI. Based on the patient's conditions and medications, recommend foods that can help improve their health.

For each food category, provide:
- Foods to EAT (beneficial for the condition)
- How it helps the condition
- Suitability score (0-100)
- Estimated nutrition per serving

OUTPUT FORMAT (JSON):
{
  "recommendations": [
    {
      "category": "Category (e.g., Proteins, Fruits, Vegetables, Whole Grains)",
      "foods": ["food1", "food2", "food3"],
      "benefit": "How these foods help manage the condition",
      "score": 85,
      "nutrition": {
        "calories": 150,
        "protein": 20,
        "carbs": 10,
        "fiber": 5,
        "vitamins": ["Vitamin C", "Iron", "Potassium"]
      }
    }
  ]
}

Focus on foods that can significantly improve the patient's condition, not just general healthy eating."""

SAFETY_INSIGHT_PROMPT = """You are a medical safety AI. Answer specific safety questions about the patient's treatment.

Answer 3-5 of these questions based on relevance:
1. "Is this safe?" - Overall safety assessment of the treatment
2. "How it affects recovery?" - Impact on healing and recovery timeline
3. "Protein gap?" - Any protein/nutritional deficiencies to address
4. "Drug interactions?" - Safety of taking these medications together
5. "Side effects to watch?" - Key symptoms to monitor

OUTPUT FORMAT (JSON):
{
  "insights": [
    {
      "question": "Is this safe?",
      "answer": "Clear, patient-friendly answer specific to their situation",
      "risk_level": "safe|caution|warning"
    }
  ]
}

Be specific to the patient's actual medications and conditions. Maximum 5 questions."""


# =============================================================================
# CONTEXT BUILDERS
# =============================================================================


def format_interactions(interactions) -> str:
    if not interactions:
        return "None detected"
    return "; ".join(f"{i.drug1} + {i.drug2}: {i.severity}" for i in interactions)


def build_extraction_prompt(text: str, max_chars: int) -> str:
    return f"MEDICAL DOCUMENT:\n{text[:max_chars]}"


def build_condition_inference_prompt(medications) -> str:
    lines = [f"{m.name} {m.dosage} ({m.purpose or 'unknown purpose'})" for m in medications]
    return "MEDICATIONS PRESCRIBED:\n" + "\n".join(lines)


def build_assessment_prompt(condition_names: list[str], medications, interactions) -> str:
    meds = "; ".join(f"{m.name} {m.dosage} {m.frequency}".strip() for m in medications)
    return (
        f"PATIENT CONDITIONS: {', '.join(condition_names) or 'General health consultation'}\n"
        f"MEDICATIONS PRESCRIBED: {meds or 'None'}\n"
        f"DRUG INTERACTIONS: {format_interactions(interactions)}"
    )


def build_medication_insight_prompt(medications, conditions) -> str:
    meds = "; ".join(f"{m.name} {m.dosage} {m.frequency}".strip() for m in medications)
    return f"CONDITIONS: {', '.join(c.name for c in conditions)}\nMEDICATIONS: {meds}"


def build_food_prompt(conditions, medications, diagnosed_conditions) -> str:
    labels = [f"{c.name} ({c.severity})" for c in conditions] + [
        f"{d.condition} (inferred)" for d in diagnosed_conditions
    ]
    return (
        f"CONDITIONS TO ADDRESS: {', '.join(labels) or 'General health improvement'}\n"
        f"MEDICATIONS: {', '.join(m.name for m in medications) or 'None specified'}\n\n"
        "Recommend foods that can significantly improve these conditions."
    )


def build_safety_prompt(conditions, medications, interactions, diagnosed_conditions) -> str:
    labels = [f"{c.name} ({c.severity})" for c in conditions] + [
        f"{d.condition} (inferred from meds)" for d in diagnosed_conditions
    ]
    meds = "; ".join(f"{m.name} {m.dosage}".strip() for m in medications)
    return (
        f"CONDITIONS: {', '.join(labels) or 'None specified'}\n"
        f"MEDICATIONS: {meds or 'None specified'}\n"
        f"DRUG INTERACTIONS: {format_interactions(interactions)}"
    )
