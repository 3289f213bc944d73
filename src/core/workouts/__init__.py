"""
Workout assignment logic.

Contains the workout domain models, the store interface, and the
conflict resolver that keeps one workout per client/week/slot.
"""

from .errors import (
    ConflictCheckError,
    InvalidTransitionError,
    RecordNotFoundError,
    ReplaceError,
    WorkoutStoreError,
)
from .models import Modification, Prescription, WorkoutRecord, WorkoutStatus
from .resolver import (
    AssignmentAttempt,
    AssignmentResult,
    AssignmentState,
    UserDecision,
    WorkoutConflictResolver,
)
from .store import DEFAULT_COLLECTION, WorkoutStore

__all__ = [
    "AssignmentAttempt",
    "AssignmentResult",
    "AssignmentState",
    "ConflictCheckError",
    "DEFAULT_COLLECTION",
    "InvalidTransitionError",
    "Modification",
    "Prescription",
    "RecordNotFoundError",
    "ReplaceError",
    "UserDecision",
    "WorkoutConflictResolver",
    "WorkoutRecord",
    "WorkoutStatus",
    "WorkoutStore",
    "WorkoutStoreError",
]
