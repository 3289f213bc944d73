"""
Exceptions raised by the workout assignment logic.

The store raises WorkoutStoreError for anything that goes wrong talking to
the backing collection. The resolver wraps those into more specific errors
so callers can tell a failed conflict check from a half-finished replace.
"""

from typing import Optional


class WorkoutStoreError(Exception):
    """Raised when the backing workout store cannot complete an operation."""
    pass


class RecordNotFoundError(WorkoutStoreError):
    """Raised when a workout record doesn't exist."""

    def __init__(self, record_id: str) -> None:
        super().__init__(f"Workout {record_id} not found")
        self.record_id = record_id


class ConflictCheckError(Exception):
    """
    Raised when the pre-write conflict check could not read current state.

    The assignment attempt must be aborted. Treating an unreadable store
    as "no conflict" would let a duplicate slip through.
    """

    def __init__(self, message: str, cause: Optional[Exception] = None) -> None:
        super().__init__(message)
        self.cause = cause


class ReplaceError(Exception):
    """
    Raised when replacing a conflicting workout fails part-way.

    slot_cleared tells the caller whether the old record is already gone.
    When it is True the slot is empty and the in-memory view is stale;
    re-list before showing anything to the user.
    """

    def __init__(
        self,
        message: str,
        slot_cleared: bool,
        cause: Optional[Exception] = None,
    ) -> None:
        super().__init__(message)
        self.slot_cleared = slot_cleared
        self.cause = cause


class InvalidTransitionError(Exception):
    """Raised when an assignment attempt is moved to a state it can't reach."""
    pass
