"""
Database models for RexAI document analysis.

Import all models here so metadata.create_all sees every table.
"""

from rexai.database import Base
from rexai.models.document import Document
from rexai.models.analysis_insight import AnalysisInsight
from rexai.models.analysis_run import AnalysisRun
from rexai.models.user_condition import UserCondition
from rexai.models.prescription_nutrition import PrescriptionNutrition
from rexai.models.ai_usage_log import AIUsageLog

__all__ = [
    "Base",
    "Document",
    "AnalysisInsight",
    "AnalysisRun",
    "UserCondition",
    "PrescriptionNutrition",
    "AIUsageLog",
]
