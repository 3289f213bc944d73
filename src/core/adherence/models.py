"""
Adherence signals shown on the trainer dashboard.

Signals are derived, never stored. They're recomputed from the workout
records every time the dashboard loads. Difficulty feedback is the one
thing clients submit directly; it is stored and folded into the signal.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from uuid import uuid4

MIN_DIFFICULTY = 1
MAX_DIFFICULTY = 5
MAX_FEEDBACK_NOTE_LENGTH = 200

# Average rating at or beyond these marks flags the programme
TOO_HARD_AT = 4.5
TOO_EASY_AT = 2.0


class AdherenceStatus(Enum):
    """Coarse engagement level used for trainer triage."""
    ON_TRACK = "On Track"
    AT_RISK = "At Risk"
    INACTIVE = "Inactive"


class DifficultyFlag(Enum):
    """
    How the client rates the programme's difficulty.

    Reported next to the status rather than as a status of its own, so a
    client can be both At Risk and finding things Too Hard.
    """
    TOO_HARD = "Too Hard"
    TOO_EASY = "Too Easy"


# Lower sorts first in the attention list
STATUS_SEVERITY = {
    AdherenceStatus.INACTIVE: 0,
    AdherenceStatus.AT_RISK: 1,
    AdherenceStatus.ON_TRACK: 2,
}


@dataclass
class WorkoutFeedback:
    """A client's difficulty rating (1-5) for a workout they did."""
    client_id: str
    workout_id: str
    difficulty_rating: int
    feedback_note: Optional[str] = None
    id: str = field(default_factory=lambda: str(uuid4()))
    submitted_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self) -> None:
        if not self.client_id:
            raise ValueError("Feedback must belong to a client")
        if not self.workout_id:
            raise ValueError("Feedback must reference a workout")
        if not MIN_DIFFICULTY <= self.difficulty_rating <= MAX_DIFFICULTY:
            raise ValueError(
                f"Difficulty rating must be between {MIN_DIFFICULTY} and {MAX_DIFFICULTY}"
            )
        if self.feedback_note and len(self.feedback_note) > MAX_FEEDBACK_NOTE_LENGTH:
            raise ValueError(
                f"Feedback note must be at most {MAX_FEEDBACK_NOTE_LENGTH} characters"
            )


@dataclass(frozen=True)
class AdherenceSignal:
    """
    How engaged a client is right now.

    days_since_last_activity is None when the client has never completed
    a workout. That counts as the longest possible gap. avg_difficulty is
    None when no feedback arrived in the window.
    """
    client_id: str
    status: AdherenceStatus
    reason: Optional[str] = None
    days_since_last_activity: Optional[int] = None
    missed_workouts_last_7_days: int = 0
    last_workout_date: Optional[datetime] = None
    avg_difficulty: Optional[float] = None
    difficulty_flag: Optional[DifficultyFlag] = None

    @property
    def needs_attention(self) -> bool:
        return self.status != AdherenceStatus.ON_TRACK


@dataclass(frozen=True)
class ActivitySummary:
    """Completed vs. missed workouts over a recent period."""
    completed: int
    missed: int
    total: int
    completion_rate: int  # percent, 0-100
    period: str
