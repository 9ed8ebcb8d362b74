"""Performance monitoring for adherence batch runs."""
import time
import logging
import threading
import functools
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger("adherence-engine.perf")


def timed(func: Callable) -> Callable:
    """
    Decorator that measures and logs execution time for synchronous functions.

    Usage::

        @timed
        def compute_summary(...):
            ...
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        start = time.perf_counter()
        try:
            return func(*args, **kwargs)
        finally:
            duration_ms = round((time.perf_counter() - start) * 1000, 2)
            logger.debug(
                "function timed",
                extra={"function_name": func.__qualname__, "duration_ms": duration_ms},
            )
    return wrapper


def timed_async(func: Callable) -> Callable:
    """Async twin of :func:`timed`."""
    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        start = time.perf_counter()
        try:
            return await func(*args, **kwargs)
        finally:
            duration_ms = round((time.perf_counter() - start) * 1000, 2)
            logger.debug(
                "async function timed",
                extra={"function_name": func.__qualname__, "duration_ms": duration_ms},
            )
    return wrapper


class BatchTracker:
    """
    Thread-safe in-memory tracker for adherence computations.

    Tracks:
    - Employee-days computed and failed
    - Average and slowest per-employee pipeline duration
    - Batch runs completed, with the last run's outcome
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._employees_processed: int = 0
        self._employees_failed: int = 0
        self._total_employee_duration_ms: float = 0.0
        self._slowest_employee: Optional[str] = None
        self._slowest_employee_ms: float = 0.0
        self._batch_runs: int = 0
        self._last_run: Optional[Dict[str, Any]] = None

    # ------------------------------------------------------------------
    # Public write API
    # ------------------------------------------------------------------

    def record_employee_complete(self, employee_id: str, duration_ms: float) -> None:
        with self._lock:
            self._employees_processed += 1
            self._total_employee_duration_ms += duration_ms
            if duration_ms > self._slowest_employee_ms:
                self._slowest_employee_ms = duration_ms
                self._slowest_employee = employee_id

    def record_employee_failure(self, employee_id: str) -> None:
        with self._lock:
            self._employees_failed += 1

    def record_batch_run(self, schedule_date: str, processed: int, failed: int, duration_ms: float) -> None:
        """Call once when a whole date has been processed (all batches)."""
        with self._lock:
            self._batch_runs += 1
            self._last_run = {
                "schedule_date": schedule_date,
                "processed": processed,
                "failed": failed,
                "duration_ms": round(duration_ms, 2),
            }

    # ------------------------------------------------------------------
    # Public read API
    # ------------------------------------------------------------------

    def get_metrics(self) -> Dict[str, Any]:
        """
        Return a snapshot of all collected metrics.

        Returns
        -------
        dict with keys:
            employees_processed       : int
            employees_failed          : int
            avg_employee_duration_ms  : float  (0 if none processed)
            slowest_employee          : str | None
            slowest_employee_ms       : float
            batch_runs                : int
            last_run                  : dict | None
        """
        with self._lock:
            avg = (
                round(self._total_employee_duration_ms / self._employees_processed, 2)
                if self._employees_processed > 0
                else 0.0
            )
            return {
                "employees_processed": self._employees_processed,
                "employees_failed": self._employees_failed,
                "avg_employee_duration_ms": avg,
                "slowest_employee": self._slowest_employee,
                "slowest_employee_ms": round(self._slowest_employee_ms, 2),
                "batch_runs": self._batch_runs,
                "last_run": dict(self._last_run) if self._last_run else None,
            }

    def reset(self) -> None:
        """Reset all counters (useful in tests)."""
        with self._lock:
            self._employees_processed = 0
            self._employees_failed = 0
            self._total_employee_duration_ms = 0.0
            self._slowest_employee = None
            self._slowest_employee_ms = 0.0
            self._batch_runs = 0
            self._last_run = None


# Module-level singleton; import this instance everywhere else.
tracker = BatchTracker()
