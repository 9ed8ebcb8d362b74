"""Engine exception hierarchy."""


class AdherenceError(Exception):
    """Base class for errors raised by the adherence engine."""


class StoreReadError(AdherenceError):
    """A collaborator store (events, schedules, exceptions) could not be read."""


class StorageWriteError(AdherenceError):
    """The summary upsert failed; nothing was written for the employee-day."""


class ScheduleNotFoundError(AdherenceError):
    """No confirmed shift exists for the requested employee-day."""

    def __init__(self, employee_id: str, schedule_date):
        self.employee_id = employee_id
        self.schedule_date = schedule_date
        super().__init__(
            f"No schedule found for employee {employee_id} on date {schedule_date.isoformat()}"
        )
