"""Domain errors raised by the progress core.

Storage failures are never wrapped here; they propagate as raised by the
driver / SQLAlchemy.
"""


class ProgressError(Exception):
    """Base class for all progress-core errors."""


class InvalidAttempt(ProgressError):
    """An attempt event was rejected; nothing was recorded."""

    def __init__(self, message: str, student_id: str | None = None) -> None:
        super().__init__(message)
        self.student_id = student_id


class InvalidCriteria(ProgressError):
    """An achievement criteria expression could not be compiled."""

    def __init__(self, message: str, expression: str | None = None) -> None:
        super().__init__(message)
        self.expression = expression


class ConcurrentWriteConflict(ProgressError):
    """A conditional insert lost a race and the winning row could not be read back."""


class DuplicateAttempt(InvalidAttempt):
    """The same (student, exercise, occurred_at) event was already recorded."""
