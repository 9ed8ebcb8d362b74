"""
Celery Tasks — adherence runs off the API process.

- batch_calculate_adherence: nightly beat job (and manual back-fills)
- calculate_employee_adherence: recompute one employee-day, e.g. after an
  exception was approved
"""
import logging
import asyncio
from datetime import date
from typing import Optional

from adherence.workers.celery_app import celery_app

logger = logging.getLogger("adherence-celery")


def _run_async(coro):
    """Run an async coroutine in a sync Celery task context (new event loop)."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


def _build_service():
    from adherence.config import EngineConfig
    from adherence.services.adherence_engine import AdherenceCalculationService
    from adherence.services.stores import EventStore, ExceptionStore, ScheduleStore, SummaryWriter

    return AdherenceCalculationService(
        event_store=EventStore(),
        schedule_store=ScheduleStore(),
        exception_store=ExceptionStore(),
        summary_writer=SummaryWriter(),
        config=EngineConfig.from_env(),
    )


@celery_app.task(bind=True, name="tasks.batch_calculate_adherence")
def batch_calculate_adherence(self, date_str: Optional[str] = None, batch_size: Optional[int] = None):
    """
    Compute summaries for every employee scheduled on ``date_str``
    (ISO date; defaults to yesterday in the configured timezone).
    """
    service = _build_service()
    schedule_date = date.fromisoformat(date_str) if date_str else service.config.local_yesterday()

    self.update_state(state="PROGRESS", meta={"step": "Computing adherence", "date": schedule_date.isoformat()})
    try:
        result = _run_async(service.batch_calculate_adherence(schedule_date, batch_size=batch_size))
    except Exception as e:
        logger.error(f"Adherence batch failed for {schedule_date.isoformat()}: {e}")
        raise

    logger.info(
        f"Adherence batch for {schedule_date.isoformat()}: "
        f"{result.processed_count} processed, {result.failed_count} failed"
    )
    return {"status": "success", "schedule_date": schedule_date.isoformat(), **result.to_dict()}


@celery_app.task(name="tasks.calculate_employee_adherence")
def calculate_employee_adherence(employee_id: str, date_str: str):
    """Recompute and upsert a single employee-day."""
    service = _build_service()
    schedule_date = date.fromisoformat(date_str)
    record = _run_async(service.calculate_for_employee(employee_id, schedule_date))
    return {
        "status": "success",
        "employee_id": employee_id,
        "schedule_date": schedule_date.isoformat(),
        "adherence_percentage": record.adherence_percentage,
    }
