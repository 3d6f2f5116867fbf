"""Document analysis API endpoints."""
import logging
import uuid

from fastapi import APIRouter, Body, Depends, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session

from rexai.database import get_db
from rexai.models import AnalysisRun, Document
from rexai.services.analysis_pipeline import AnalysisPipeline
from rexai.services.document_store import DocumentStore
from rexai.services.text_acquisition import DocumentNotFoundError, TextAcquisitionError
from rexai.workers.analysis_worker import analyze_document

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/insights", tags=["insights"])


class AnalyzeRequest(BaseModel):
    """Request model for running a full document analysis."""

    document_id: uuid.UUID
    force_refresh: bool = False
    async_mode: bool = False  # Queue on the worker instead of blocking


async def get_analysis_pipeline(db: Session = Depends(get_db)):
    """Pipeline per request; overridden in tests to inject mock collaborators."""
    pipeline = AnalysisPipeline(db)
    try:
        yield pipeline
    finally:
        await pipeline.aclose()


@router.post("/analyze-full")
async def analyze_full(
    request: AnalyzeRequest = Body(...),
    db: Session = Depends(get_db),
    pipeline: AnalysisPipeline = Depends(get_analysis_pipeline),
):
    """
    Run (or serve from cache) the full analysis of one document.

    In sync mode (default) this blocks until the result is ready. In async
    mode it queues an AnalysisRun and returns its id for polling.

    Returns:
        JSON with success, cached flag and the analysis (sync), or run_id (async)
    """
    document = db.query(Document).filter(Document.id == request.document_id).first()
    if document is None:
        raise HTTPException(status_code=404, detail="Document not found")

    if request.async_mode:
        run = AnalysisRun(
            document_id=document.id,
            user_id=document.user_id,
            force_refresh=request.force_refresh,
            status="pending",
        )
        db.add(run)
        db.commit()
        db.refresh(run)

        analyze_document.send(run.id)
        logger.info("Queued analysis run %s for document %s", run.id, document.id)
        return JSONResponse(status_code=202, content={"run_id": run.id, "status": "pending"})

    try:
        analysis = await pipeline.run_full_analysis_pipeline(
            document.id, document.user_id, force_refresh=request.force_refresh
        )
    except DocumentNotFoundError:
        raise HTTPException(status_code=404, detail="Document not found")
    except TextAcquisitionError as e:
        raise HTTPException(
            status_code=422,
            detail={
                "error": "text_acquisition_failed",
                "message": f"Could not read the document: {e}",
            },
        )

    return {
        "success": True,
        "cached": analysis.cached_at is not None,
        "analysis": analysis.model_dump(mode="json"),
    }


@router.get("/document/{document_id}")
async def get_document_analysis(document_id: uuid.UUID, db: Session = Depends(get_db)):
    """Return the current cached analysis of a document without running anything."""
    analysis = DocumentStore(db).get_cached_analysis(document_id)
    if analysis is None:
        raise HTTPException(status_code=404, detail="No analysis found for this document")

    return {"success": True, "cached": True, "analysis": analysis.model_dump(mode="json")}


@router.get("/runs/{run_id}")
async def get_analysis_run(run_id: int, db: Session = Depends(get_db)):
    """Status of a queued analysis run."""
    run = db.query(AnalysisRun).filter(AnalysisRun.id == run_id).first()
    if run is None:
        raise HTTPException(status_code=404, detail="Analysis run not found")

    return {
        "run_id": run.id,
        "document_id": str(run.document_id),
        "status": run.status,
        "stage": run.stage,
        "cache_hit": run.cache_hit,
        "created_at": run.created_at.isoformat() if run.created_at else None,
        "started_at": run.started_at.isoformat() if run.started_at else None,
        "completed_at": run.completed_at.isoformat() if run.completed_at else None,
        "error_message": run.error_message,
    }
