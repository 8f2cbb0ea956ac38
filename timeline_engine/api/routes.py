"""
API Routes for the Timeline Engine.
Scheduler control, manual generation and frequency configuration tools.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from timeline_engine import __version__
from timeline_engine.api.models import (
    ErrorResponse,
    FrequencyConfigRequest,
    FrequencyConfigResponse,
    FrequencyPreviewRequest,
    FrequencyPreviewResponse,
    GenerationSummaryResponse,
    HealthResponse,
    JobRunResponse,
    MaterializeRequest,
    MaterializeResponse,
    SchedulerActionResponse,
    SchedulerStatusResponse,
)
from timeline_engine.engine import TimelineEngine
from timeline_engine.errors import ConfigValidationError, DateComputationError
from timeline_engine.models import JobRunResult
from timeline_engine.processing.due_dates import current_period_due_date, occurrences_in_financial_year
from timeline_engine.processing.frequency_config import validate_frequency_config
from timeline_engine.processing.periods import financial_year_for
from timeline_engine.utils.clock import PRACTICE_TIMEZONE

logger = logging.getLogger(__name__)
router = APIRouter()


def get_engine(request: Request) -> TimelineEngine:
    return request.app.state.engine


def _config_error(e: ConfigValidationError) -> JSONResponse:
    return JSONResponse(status_code=422, content={"detail": e.message, "field": e.field})


def _results(results: Dict[str, JobRunResult]) -> Dict[str, JobRunResponse]:
    return {name: JobRunResponse(**result.to_dict()) for name, result in results.items()}


@router.get("/health", response_model=HealthResponse, tags=["System"])
async def health_check():
    """Health check endpoint."""
    return HealthResponse(
        status="healthy",
        version=__version__,
        timestamp=datetime.now(timezone.utc).isoformat()
    )


# ==================== SCHEDULER ====================

@router.get("/scheduler/status", response_model=SchedulerStatusResponse, tags=["Scheduler"])
async def scheduler_status(engine: TimelineEngine = Depends(get_engine)):
    """Scheduler state and the next run of each trigger."""
    return engine.scheduler.status()


@router.post("/scheduler/start", response_model=SchedulerActionResponse, tags=["Scheduler"])
async def start_scheduler(engine: TimelineEngine = Depends(get_engine)):
    started = engine.scheduler.start()
    message = "Scheduler started" if started else "Scheduler already running"
    return {"message": message, "status": engine.scheduler.status()}


@router.post("/scheduler/stop", response_model=SchedulerActionResponse, tags=["Scheduler"])
async def stop_scheduler(engine: TimelineEngine = Depends(get_engine)):
    engine.scheduler.stop()
    return {"message": "Scheduler stopped", "status": engine.scheduler.status()}


@router.post("/scheduler/restart", response_model=SchedulerActionResponse, tags=["Scheduler"])
async def restart_scheduler(engine: TimelineEngine = Depends(get_engine)):
    engine.scheduler.restart()
    return {"message": "Scheduler restarted", "status": engine.scheduler.status()}


# ==================== GENERATION ====================

@router.post("/timelines/generate", response_model=GenerationSummaryResponse, tags=["Timelines"])
async def generate_all(engine: TimelineEngine = Depends(get_engine)):
    """Run Daily, Monthly, Quarterly and Yearly generation now."""
    try:
        summary = await engine.scheduler.run_all()
    except Exception as e:
        logger.error(f"Manual timeline generation failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Timeline generation failed: {e}")
    return summary.to_dict()


@router.post("/timelines/generate/{cadence}", response_model=JobRunResponse, tags=["Timelines"])
async def generate_cadence(cadence: str, engine: TimelineEngine = Depends(get_engine)):
    """Run generation for one cadence now."""
    try:
        result = await engine.scheduler.run_cadence(cadence)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Manual {cadence} timeline generation failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Timeline generation failed: {e}")
    return result.to_dict()


@router.post(
    "/clients/{client_id}/obligations/{obligation_id}/materialize",
    response_model=MaterializeResponse,
    tags=["Timelines"]
)
async def materialize_assignment(
    client_id: str,
    obligation_id: str,
    request: Optional[MaterializeRequest] = None,
    engine: TimelineEngine = Depends(get_engine)
):
    """Create the current period's timelines for an obligation just assigned to a client."""
    try:
        results = await asyncio.to_thread(
            engine.processor.materialize_assignment,
            client_id,
            obligation_id,
            request.sub_obligation_id if request else None
        )
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        logger.error(
            f"Materialization failed for client {client_id}, obligation {obligation_id}: {e}",
            exc_info=True
        )
        raise HTTPException(status_code=500, detail=f"Materialization failed: {e}")

    return MaterializeResponse(
        client_id=client_id,
        obligation_id=obligation_id,
        created=sum(result.created for result in results.values()),
        results=_results(results),
    )


# ==================== FREQUENCY CONFIG ====================

@router.post(
    "/frequency-config/validate",
    response_model=FrequencyConfigResponse,
    responses={422: {"model": ErrorResponse}},
    tags=["Frequency Config"]
)
async def validate_config(request: FrequencyConfigRequest):
    """Validate a frequency configuration and return its normalized form."""
    try:
        config = validate_frequency_config(request.frequency, request.frequency_config)
    except ConfigValidationError as e:
        return _config_error(e)
    return FrequencyConfigResponse(frequency=config.cadence.value, frequency_config=config.to_dict())


@router.post(
    "/frequency-config/preview",
    response_model=FrequencyPreviewResponse,
    responses={422: {"model": ErrorResponse}},
    tags=["Frequency Config"]
)
async def preview_config(request: FrequencyPreviewRequest, engine: TimelineEngine = Depends(get_engine)):
    """List the due dates a configuration produces across a financial year."""
    try:
        config = validate_frequency_config(request.frequency, request.frequency_config)
    except ConfigValidationError as e:
        return _config_error(e)

    reference = engine.clock()
    if request.reference_date:
        try:
            reference = datetime.fromisoformat(request.reference_date)
        except ValueError:
            raise HTTPException(status_code=400, detail=f"Invalid reference_date '{request.reference_date}'")
        if reference.tzinfo is None:
            reference = reference.replace(tzinfo=PRACTICE_TIMEZONE)

    try:
        occurrences = occurrences_in_financial_year(config.cadence, config, reference, limit=request.limit)
        next_due = current_period_due_date(config.cadence, config, reference)
    except DateComputationError as e:
        raise HTTPException(status_code=422, detail=str(e))

    return FrequencyPreviewResponse(
        frequency=config.cadence.value,
        financial_year=financial_year_for(reference).label,
        next_due_date=next_due.isoformat(),
        occurrences=[moment.isoformat() for moment in occurrences],
    )
