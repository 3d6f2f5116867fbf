"""
Dramatiq worker for queued full-document analyses.

The pipeline already degrades per stage, so the actor is not retried: a run
either completes or records the fatal error that stopped it.
"""
import asyncio
import logging
from datetime import datetime

import dramatiq

# Import broker setup (must be before actor definitions)
from rexai.workers import redis_broker  # noqa: F401
from rexai.database import SessionLocal
from rexai.models import AnalysisRun
from rexai.services.analysis_pipeline import AnalysisPipeline, PipelineStage
from rexai.services.text_acquisition import AnalysisPipelineError

logger = logging.getLogger(__name__)


def run_async(coro):
    """Helper to run async code in sync context."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


async def _run_pipeline(pipeline: AnalysisPipeline, run: AnalysisRun):
    try:
        return await pipeline.run_full_analysis_pipeline(
            run.document_id, run.user_id, force_refresh=run.force_refresh
        )
    finally:
        await pipeline.aclose()


def _mark_finished(db, run: AnalysisRun, status: str, error_message: str | None = None) -> None:
    run.status = status
    run.error_message = error_message
    run.completed_at = datetime.utcnow()
    db.commit()


@dramatiq.actor(max_retries=0)
def analyze_document(run_id: int):
    """
    Run the full analysis pipeline for a queued AnalysisRun.

    This actor:
    1. Marks the run as processing
    2. Runs the pipeline, recording each stage on the run
    3. Marks the run completed (with cache_hit) or failed (with the error)

    Args:
        run_id: AnalysisRun ID to process
    """
    db = SessionLocal()

    try:
        run = db.query(AnalysisRun).filter(AnalysisRun.id == run_id).first()
        if not run:
            raise ValueError(f"AnalysisRun {run_id} not found")

        run.status = "processing"
        run.started_at = datetime.utcnow()
        db.commit()

        def record_stage(stage: PipelineStage) -> None:
            run.stage = stage.value
            db.commit()

        pipeline = AnalysisPipeline(db, on_stage=record_stage)

        try:
            result = run_async(_run_pipeline(pipeline, run))
        except AnalysisPipelineError as e:
            db.rollback()
            logger.error("Analysis run %s failed: %s", run_id, e)
            _mark_finished(db, run, "failed", str(e))
            return

        run.cache_hit = result.cached_at is not None
        _mark_finished(db, run, "completed")
        logger.info("Analysis run %s completed (cache_hit=%s)", run_id, run.cache_hit)

    except Exception as e:
        db.rollback()
        logger.error("Analysis run %s crashed: %s", run_id, e)
        run = db.query(AnalysisRun).filter(AnalysisRun.id == run_id).first()
        if run:
            _mark_finished(db, run, "failed", str(e))
        raise
    finally:
        db.close()
