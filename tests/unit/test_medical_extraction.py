"""
Unit tests for MedicalDataExtractor.
"""

import pytest

from rexai.services.llm_service import AllProvidersFailedError
from rexai.services.medical_extraction import MedicalDataExtractor
from tests.fixtures.mocks import MockLLMService


class TestExtract:
    """Tests for MedicalDataExtractor.extract."""

    @pytest.mark.asyncio
    async def test_extracts_default_prescription(self):
        llm = MockLLMService()

        result = await MedicalDataExtractor(llm).extract("Metformin 500mg, Lisinopril 10mg")

        assert result.ok
        assert [m.name for m in result.value.medications] == ["Metformin", "Lisinopril"]
        assert [c.name for c in result.value.conditions] == ["Type 2 Diabetes", "Hypertension"]
        assert result.value.doctor_name == "Dr. Alan Smith"
        assert llm.calls["generate"][0]["kwargs"]["temperature"] == 0.2

    @pytest.mark.asyncio
    async def test_truncates_document_text(self):
        llm = MockLLMService()

        await MedicalDataExtractor(llm, max_chars=10).extract("A" * 10 + "B" * 100)

        prompt = llm.calls["generate"][0]["kwargs"]["user_prompt"]
        assert "A" * 10 in prompt
        assert "B" not in prompt

    @pytest.mark.asyncio
    async def test_invalid_items_dropped(self):
        llm = MockLLMService()
        llm.set_response(
            "medical_extraction",
            {
                "conditions": [{"name": ""}, {"name": "Asthma", "severity": "severe"}],
                "medications": [{"dosage": "5mg"}, {"name": "Albuterol"}],
                "diagnoses": None,
            },
        )

        result = await MedicalDataExtractor(llm).extract("text")

        assert result.ok
        assert [c.name for c in result.value.conditions] == ["Asthma"]
        assert result.value.conditions[0].severity == "medium"
        assert [m.name for m in result.value.medications] == ["Albuterol"]
        assert result.value.diagnoses == []

    @pytest.mark.asyncio
    async def test_non_object_response_degrades(self):
        llm = MockLLMService()
        llm.set_response("medical_extraction", [1, 2, 3])

        result = await MedicalDataExtractor(llm).extract("text")

        assert not result.ok
        assert result.value.medications == []
        assert result.error.error_type == "LLMResponseError"

    @pytest.mark.asyncio
    async def test_provider_failure_degrades_to_empty(self):
        llm = MockLLMService()
        llm.set_error(AllProvidersFailedError([]))

        result = await MedicalDataExtractor(llm).extract("text")

        assert not result.ok
        assert result.value.conditions == []
        assert result.value.medications == []
        assert result.value.diagnoses == []

    @pytest.mark.asyncio
    async def test_structured_patient_info_keeps_extraction(self):
        llm = MockLLMService()
        llm.set_response(
            "medical_extraction",
            {
                "medications": [{"name": "Lisinopril", "dosage": "10mg"}],
                "conditions": [{"name": "Hypertension"}],
                "patientInfo": {"name": "Jane Doe", "age": 54},
                "diagnoses": [{"name": "Essential hypertension"}, {"code": "I10"}],
            },
        )

        result = await MedicalDataExtractor(llm).extract("text")

        assert result.ok
        assert [m.name for m in result.value.medications] == ["Lisinopril"]
        assert [c.name for c in result.value.conditions] == ["Hypertension"]
        assert result.value.patient_info == "name: Jane Doe, age: 54"
        assert result.value.diagnoses == ["Essential hypertension"]
