"""
Domain models for trainer-assigned workouts.

A WorkoutRecord is one prescribed exercise placed in a numbered slot of a
client's training week. These models know nothing about how records are
stored; the WorkoutStore protocol handles that.
"""

from dataclasses import dataclass, field, fields, replace
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from .weeks import DateLike, get_week_start, is_same_week

MIN_WORKOUT_SLOT = 1
MAX_WORKOUT_SLOT = 4
MAX_MODIFICATIONS = 3


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class WorkoutStatus(Enum):
    """
    Lifecycle of an assigned workout.

    Records start as ASSIGNED and become COMPLETED when the client
    finishes them. There is no way back.
    """
    ASSIGNED = "assigned"
    COMPLETED = "completed"


@dataclass(frozen=True)
class Modification:
    """An easier or harder variant of the prescribed exercise."""
    title: str
    description: str = ""

    def __post_init__(self) -> None:
        if not self.title.strip():
            raise ValueError("Modification title cannot be empty")


@dataclass(frozen=True)
class Prescription:
    """
    What the client is asked to do.

    Frozen because a prescription only changes through an explicit trainer
    edit, which produces a new value via with_changes().
    """
    exercise_name: str
    sets: Optional[int] = None
    reps: Optional[str] = None  # "8-10", "AMRAP", "30s"
    weight_or_resistance: Optional[str] = None
    tempo: Optional[str] = None
    rest_time_seconds: Optional[int] = None
    exercise_notes: Optional[str] = None
    exercise_video_url: Optional[str] = None
    modifications: tuple[Modification, ...] = ()

    def __post_init__(self) -> None:
        if not self.exercise_name or not self.exercise_name.strip():
            raise ValueError("Exercise name cannot be empty")
        if len(self.modifications) > MAX_MODIFICATIONS:
            raise ValueError(
                f"A prescription supports at most {MAX_MODIFICATIONS} modifications"
            )
        if self.sets is not None and self.sets < 0:
            raise ValueError("Sets cannot be negative")
        if self.rest_time_seconds is not None and self.rest_time_seconds < 0:
            raise ValueError("Rest time cannot be negative")

    def with_changes(self, **changes: Any) -> "Prescription":
        """Return a copy with only the given fields replaced."""
        unknown = set(changes) - {f.name for f in fields(self)}
        if unknown:
            raise ValueError(f"Unknown prescription fields: {sorted(unknown)}")
        if "modifications" in changes:
            changes["modifications"] = tuple(changes["modifications"])
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        return {
            "exercise_name": self.exercise_name,
            "sets": self.sets,
            "reps": self.reps,
            "weight_or_resistance": self.weight_or_resistance,
            "tempo": self.tempo,
            "rest_time_seconds": self.rest_time_seconds,
            "exercise_notes": self.exercise_notes,
            "exercise_video_url": self.exercise_video_url,
            "modifications": [
                {"title": m.title, "description": m.description}
                for m in self.modifications
            ],
        }


PRESCRIPTION_FIELDS = frozenset(f.name for f in fields(Prescription))


@dataclass
class WorkoutRecord:
    """
    A single prescribed exercise instance in a client's week.

    At most one record should exist per (client_id, week_start_date,
    workout_slot). Nothing in storage enforces that; the conflict resolver
    checks it before every write.
    """
    client_id: str
    trainer_id: str
    week_start_date: date
    workout_slot: int
    prescription: Prescription
    week_number: int = 1
    status: WorkoutStatus = WorkoutStatus.ASSIGNED
    id: str = field(default_factory=lambda: str(uuid4()))
    created_date: Optional[datetime] = field(default_factory=utcnow)
    # Doubles as the completion time once COMPLETED. None if never recorded.
    updated_date: Optional[datetime] = field(default_factory=utcnow)

    def __post_init__(self) -> None:
        # Scoping fields: a record without them can't be found again
        if not self.client_id:
            raise ValueError("Workout must belong to a client")
        if not self.trainer_id:
            raise ValueError("Workout must belong to a trainer")
        if not self.week_number or self.week_number < 1:
            raise ValueError("Week number must be 1 or greater")
        if not MIN_WORKOUT_SLOT <= self.workout_slot <= MAX_WORKOUT_SLOT:
            raise ValueError(
                f"Workout slot must be between {MIN_WORKOUT_SLOT} and {MAX_WORKOUT_SLOT}"
            )
        self.week_start_date = get_week_start(self.week_start_date)

    @property
    def is_completed(self) -> bool:
        return self.status == WorkoutStatus.COMPLETED

    def matches_slot(self, client_id: str, week_start_date: DateLike, slot: int) -> bool:
        """True if this record occupies the given client/week/slot."""
        return (
            self.client_id == client_id
            and self.workout_slot == slot
            and is_same_week(self.week_start_date, week_start_date)
        )

    def mark_completed(self, at: Optional[datetime] = None) -> None:
        """Move the record to COMPLETED. Completing twice changes nothing."""
        if self.is_completed:
            return
        self.status = WorkoutStatus.COMPLETED
        self.updated_date = at or utcnow()
