"""
Error taxonomy for the timesheet engine.

Every failure the engine can name carries a stable ``code`` so callers
(the HTTP layer, scripts, tests) can branch on it without parsing messages.

  ValidationError    bad hours / clock input, never persisted
  StateGuardFailure  transition from the wrong state, or by a caller without the role
  NoOpenWeekError    the week walk ran out of weeks
  TimesheetNotFound  header id unknown or not visible to the caller
  PersistenceFailure storage error, session already rolled back
"""


class TimesheetError(Exception):
    code = "timesheet_error"

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code

    def __str__(self) -> str:
        return self.message


class ValidationError(TimesheetError):
    code = "validation_error"


class StateGuardFailure(TimesheetError):
    code = "state_guard_failure"

    WRONG_STATE = "wrong_state"
    FORBIDDEN = "forbidden"

    def __init__(self, message: str, reason: str = WRONG_STATE, code: str | None = None):
        super().__init__(message, code)
        self.reason = reason


class NoOpenWeekError(TimesheetError):
    code = "no_open_week"


class TimesheetNotFound(TimesheetError):
    code = "timesheet_not_found"


class PersistenceFailure(TimesheetError):
    code = "persistence_failure"
