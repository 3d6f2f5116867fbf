"""
Unit tests for StageResult and run_stage.
"""

import asyncio

import pytest

from rexai.services.stage_result import StageError, StageResult, run_stage


class TestStageResult:
    """Tests for the result constructors."""

    def test_success_is_ok(self):
        result = StageResult.success("medical_extraction", [1])

        assert result.ok
        assert result.value == [1]
        assert result.error is None

    def test_degraded_carries_error(self):
        error = StageError("safety_insights", "ValueError", "bad")
        result = StageResult.degraded("safety_insights", [], error)

        assert not result.ok
        assert result.value == []
        assert result.error.error_type == "ValueError"


class TestRunStage:
    """Tests for run_stage failure handling."""

    @pytest.mark.asyncio
    async def test_returns_value(self):
        async def operation():
            return ["Metformin"]

        result = await run_stage("medication_insights", operation, list, timeout=1)

        assert result.ok
        assert result.value == ["Metformin"]

    @pytest.mark.asyncio
    async def test_exception_becomes_default(self):
        async def operation():
            raise RuntimeError("provider exploded")

        result = await run_stage("food_recommendations", operation, list, timeout=1)

        assert not result.ok
        assert result.value == []
        assert result.error.stage == "food_recommendations"
        assert result.error.error_type == "RuntimeError"
        assert result.error.message == "provider exploded"
        assert result.error.timed_out is False

    @pytest.mark.asyncio
    async def test_timeout_becomes_default(self):
        async def operation():
            await asyncio.sleep(5)
            return ["never"]

        result = await run_stage("condition_inference", operation, list, timeout=0.01)

        assert result.value == []
        assert result.error.timed_out is True
        assert result.error.error_type == "TimeoutError"

    @pytest.mark.asyncio
    async def test_default_factory_builds_fresh_values(self):
        async def operation():
            raise ValueError("bad")

        first = await run_stage("a", operation, list)
        second = await run_stage("a", operation, list)

        first.value.append(1)
        assert second.value == []
