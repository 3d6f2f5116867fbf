"""
Unit tests for analysis_worker - the Dramatiq actor for queued analyses.

The actor is called synchronously with SessionLocal patched to the test
session and AnalysisPipeline patched to a mock-backed pipeline.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from sqlalchemy.orm import Session

from rexai.models import AnalysisInsight, AnalysisRun
from rexai.services.analysis_pipeline import AnalysisPipeline
from rexai.services.document_parser import DocumentParseError
from rexai.workers.analysis_worker import analyze_document
from tests.factories import TEST_TODAY, create_analysis_run, create_document


@pytest.fixture
def pipeline_factory(mock_llm, mock_rxnorm, mock_parser):
    """Stand-in for the AnalysisPipeline class that injects the mocks."""

    def factory(db, on_stage=None):
        return AnalysisPipeline(
            db,
            llm_service=mock_llm,
            rxnorm_client=mock_rxnorm,
            document_parser=mock_parser,
            on_stage=on_stage,
            today=TEST_TODAY,
        )

    return factory


def run_actor(db: Session, run_id: int, pipeline_factory):
    # The actor closes its session; keep the shared test session bound
    with patch("rexai.workers.analysis_worker.SessionLocal", return_value=db), patch(
        "rexai.workers.analysis_worker.AnalysisPipeline", side_effect=pipeline_factory
    ), patch.object(db, "close"):
        analyze_document(run_id)


def reload_run(db: Session, run_id: int) -> AnalysisRun:
    db.expire_all()
    return db.query(AnalysisRun).filter(AnalysisRun.id == run_id).one()


class TestAnalyzeDocument:
    """Tests for the analyze_document actor."""

    def test_completes_run(self, db: Session, pipeline_factory):
        document = create_document(db)
        run_id = create_analysis_run(db, document).id

        run_actor(db, run_id, pipeline_factory)

        run = reload_run(db, run_id)
        assert run.status == "completed"
        assert run.stage == "done"
        assert run.cache_hit is False
        assert run.started_at is not None
        assert run.completed_at is not None
        assert run.error_message is None
        assert db.query(AnalysisInsight).filter(AnalysisInsight.document_id == document.id).count() == 1

    def test_records_cache_hit(self, db: Session, pipeline_factory):
        document = create_document(db)
        first_id = create_analysis_run(db, document).id
        run_actor(db, first_id, pipeline_factory)
        second_id = create_analysis_run(db, document).id

        run_actor(db, second_id, pipeline_factory)

        run = reload_run(db, second_id)
        assert run.status == "completed"
        assert run.cache_hit is True
        assert run.stage == "done"

    def test_fatal_pipeline_error_marks_failed(self, db: Session, pipeline_factory, mock_parser):
        document = create_document(db)
        run_id = create_analysis_run(db, document).id
        mock_parser.set_error(DocumentParseError("LlamaParse job job-1 ended with status ERROR"))

        run_actor(db, run_id, pipeline_factory)

        run = reload_run(db, run_id)
        assert run.status == "failed"
        assert run.stage == "failed"
        assert "ERROR" in run.error_message

    def test_unexpected_error_marks_failed_and_raises(self, db: Session):
        document = create_document(db)
        run_id = create_analysis_run(db, document).id
        mock_pipeline = MagicMock()
        mock_pipeline.run_full_analysis_pipeline = AsyncMock(side_effect=RuntimeError("boom"))
        mock_pipeline.aclose = AsyncMock()

        with pytest.raises(RuntimeError, match="boom"):
            run_actor(db, run_id, lambda db, on_stage=None: mock_pipeline)

        run = reload_run(db, run_id)
        assert run.status == "failed"
        assert run.error_message == "boom"
        mock_pipeline.aclose.assert_awaited_once()

    def test_missing_run_raises(self, db: Session, pipeline_factory):
        with pytest.raises(ValueError, match="not found"):
            run_actor(db, 9999, pipeline_factory)
