"""
Adherence summary routes.

On-demand recompute of one employee-day and a manual trigger for the
daily batch. The nightly run normally comes from Celery beat
(workers/celery_app.py); these endpoints exist for back-fills and for
re-running a day after exceptions were approved.
"""
import logging
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, ConfigDict, Field

from adherence.config import EngineConfig
from adherence.services.adherence_engine import AdherenceCalculationService
from adherence.services.errors import ScheduleNotFoundError, StorageWriteError, StoreReadError
from adherence.services.stores import EventStore, ExceptionStore, ScheduleStore, SummaryWriter

router = APIRouter(prefix="/api/v1/adherence", tags=["Adherence"])
logger = logging.getLogger("adherence-api")


def get_adherence_service() -> AdherenceCalculationService:
    """Database-backed service; replaced with in-memory stores in tests."""
    return AdherenceCalculationService(
        event_store=EventStore(),
        schedule_store=ScheduleStore(),
        exception_store=ExceptionStore(),
        summary_writer=SummaryWriter(),
        config=EngineConfig.from_env(),
    )


class CalculateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    employee_id: str = Field(..., min_length=1)
    schedule_date: date = Field(..., alias="date")


class SummaryResponse(BaseModel):
    employee_id: str
    schedule_date: date
    scheduled_duration_minutes: int
    actual_duration_minutes: int
    start_variance_minutes: int
    end_variance_minutes: int
    break_compliance_percentage: float
    missed_breaks_count: int
    extended_breaks_count: int
    productive_time_minutes: int
    idle_time_minutes: int
    away_time_minutes: int
    non_work_app_time_minutes: int
    adherence_percentage: float
    scheduled_breaks: list = []
    actual_breaks: list = []
    exception_adjustments: list = []
    score_breakdown: dict = {}
    calculated_at: Optional[str] = None


class BatchErrorItem(BaseModel):
    employee_id: str
    message: str


class BatchResponse(BaseModel):
    schedule_date: date
    processed_count: int
    failed_count: int
    skipped_count: int = 0
    errors: List[BatchErrorItem] = []


@router.post("/summaries/calculate", response_model=SummaryResponse)
async def calculate_summary(
    req: CalculateRequest,
    service: AdherenceCalculationService = Depends(get_adherence_service),
):
    """Recompute and upsert the summary for one employee-day."""
    try:
        record = await service.calculate_for_employee(req.employee_id, req.schedule_date)
    except ScheduleNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except (StoreReadError, StorageWriteError) as e:
        logger.error(f"Adherence recompute failed for {req.employee_id}: {e}")
        raise HTTPException(status_code=503, detail="Adherence store unavailable")

    return SummaryResponse(
        employee_id=record.employee_id,
        schedule_date=record.schedule_date,
        scheduled_duration_minutes=record.scheduled_duration_minutes,
        actual_duration_minutes=record.actual_duration_minutes,
        start_variance_minutes=record.start_variance_minutes,
        end_variance_minutes=record.end_variance_minutes,
        break_compliance_percentage=record.break_compliance_percentage,
        missed_breaks_count=record.missed_breaks_count,
        extended_breaks_count=record.extended_breaks_count,
        productive_time_minutes=record.productive_time_minutes,
        idle_time_minutes=record.idle_time_minutes,
        away_time_minutes=record.away_time_minutes,
        non_work_app_time_minutes=record.non_work_app_time_minutes,
        adherence_percentage=record.adherence_percentage,
        scheduled_breaks=record.scheduled_breaks,
        actual_breaks=record.actual_breaks,
        exception_adjustments=record.exception_adjustments,
        score_breakdown=record.score_breakdown,
        calculated_at=record.calculated_at.isoformat() if record.calculated_at else None,
    )


@router.post("/summaries/batch-calculate", response_model=BatchResponse)
async def batch_calculate(
    schedule_date: Optional[date] = Query(None, alias="date"),
    batch_size: Optional[int] = Query(None),
    service: AdherenceCalculationService = Depends(get_adherence_service),
):
    """
    Run the batch for a date (default: yesterday in the configured timezone).

    Per-employee failures are reported inside the result, not as HTTP errors.
    """
    target = schedule_date or service.config.local_yesterday()
    try:
        result = await service.batch_calculate_adherence(target, batch_size=batch_size)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except StoreReadError as e:
        logger.error(f"Batch run for {target.isoformat()} could not list schedules: {e}")
        raise HTTPException(status_code=503, detail="Adherence store unavailable")

    logger.info(
        f"Manual batch run for {target.isoformat()}: "
        f"{result.processed_count} processed, {result.failed_count} failed"
    )
    return BatchResponse(schedule_date=target, **result.to_dict())
