"""
conftest.py — Shared pytest fixtures for the Adherence Engine test suite.

No database or external service fixtures are defined here. The calculation
service is exercised against the in-memory stores in ``fakes.py``.

Import-path bootstrapping:
    The ``backend/`` directory is inserted into sys.path so that all
    ``adherence.*`` imports resolve correctly regardless of where pytest is
    invoked.
"""

import sys
import os
import pytest

# ---------------------------------------------------------------------------
# Ensure ``backend/`` is on the import path before any adherence imports occur.
# ---------------------------------------------------------------------------
_BACKEND_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if _BACKEND_DIR not in sys.path:
    sys.path.insert(0, _BACKEND_DIR)


# ---------------------------------------------------------------------------
# Engine configuration
# ---------------------------------------------------------------------------

@pytest.fixture(scope="session")
def engine_config():
    """
    EngineConfig used throughout: UTC+02:00, batches of 50, 5 min break tolerance.
    """
    from adherence.config import EngineConfig
    from fakes import LOCAL_TZ
    return EngineConfig(local_timezone=LOCAL_TZ, batch_size=50, break_tolerance_minutes=5)


@pytest.fixture
def day_window():
    """DayWindow for the shared test date in UTC+02:00."""
    from adherence.services.timeline import DayWindow
    from fakes import DAY, LOCAL_TZ
    return DayWindow.for_date(DAY, LOCAL_TZ)


# ---------------------------------------------------------------------------
# Service factory
# ---------------------------------------------------------------------------

@pytest.fixture
def make_service(engine_config):
    """
    Build an AdherenceCalculationService over in-memory stores.

    Usage::

        service, writer = make_service(events=[...], schedule=[...])
    """
    from adherence.services.adherence_engine import AdherenceCalculationService
    from fakes import (
        InMemoryEventStore,
        InMemoryExceptionStore,
        InMemoryScheduleStore,
        InMemorySummaryWriter,
    )

    def _make(events=(), schedule=(), exceptions=(), failing_events=(), failing_writes=(), config=None):
        writer = InMemorySummaryWriter(failing_employees=failing_writes)
        service = AdherenceCalculationService(
            event_store=InMemoryEventStore(events, failing_employees=failing_events),
            schedule_store=InMemoryScheduleStore(schedule),
            exception_store=InMemoryExceptionStore(exceptions),
            summary_writer=writer,
            config=config or engine_config,
        )
        return service, writer

    return _make


@pytest.fixture(autouse=True)
def reset_tracker():
    """The performance tracker is a process singleton; isolate each test."""
    from adherence.services.perf_monitor import tracker
    tracker.reset()
    yield
    tracker.reset()
