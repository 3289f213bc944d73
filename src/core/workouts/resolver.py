"""
Weekly workout assignment with conflict detection.

A client's week has four numbered workout slots and each slot should hold
at most one workout. The hosted collection can't enforce that, so every
assignment goes through a check-then-act sequence:

1. Re-list the collection and look for a record in the same
   client/week/slot.
2. No conflict: create the new record.
3. Conflict: stop and let the trainer decide. Replacing deletes the old
   record, then creates the new one.

This is a best-effort check, not a lock. Two sessions that pass the check
at the same moment can both write, and the store will keep both records.
Closing that gap needs a store with unique constraints or conditional
writes, which the hosted platform doesn't offer.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Optional

from .errors import (
    ConflictCheckError,
    InvalidTransitionError,
    RecordNotFoundError,
    ReplaceError,
    WorkoutStoreError,
)
from .models import (
    MAX_MODIFICATIONS,
    PRESCRIPTION_FIELDS,
    Modification,
    Prescription,
    WorkoutRecord,
    WorkoutStatus,
    utcnow,
)
from .store import DEFAULT_COLLECTION, WorkoutStore
from .weeks import DateLike, get_week_start, is_same_week

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Assignment state machine
# ---------------------------------------------------------------------------

class AssignmentState(Enum):
    IDLE = "idle"
    CHECKING = "checking"
    NO_CONFLICT = "no_conflict"
    CONFLICT = "conflict"
    AWAITING_USER_DECISION = "awaiting_user_decision"
    CANCELLED = "cancelled"
    REPLACING = "replacing"
    WRITING = "writing"
    DONE = "done"
    FAILED = "failed"


# IDLE -> WRITING is a forced assign, IDLE -> REPLACING a replace against a
# conflict the caller already knows about.
_TRANSITIONS: dict[AssignmentState, frozenset[AssignmentState]] = {
    AssignmentState.IDLE: frozenset({
        AssignmentState.CHECKING,
        AssignmentState.WRITING,
        AssignmentState.REPLACING,
    }),
    AssignmentState.CHECKING: frozenset({
        AssignmentState.NO_CONFLICT,
        AssignmentState.CONFLICT,
        AssignmentState.FAILED,
    }),
    AssignmentState.NO_CONFLICT: frozenset({AssignmentState.WRITING}),
    AssignmentState.CONFLICT: frozenset({AssignmentState.AWAITING_USER_DECISION}),
    AssignmentState.AWAITING_USER_DECISION: frozenset({
        AssignmentState.CANCELLED,
        AssignmentState.REPLACING,
    }),
    AssignmentState.REPLACING: frozenset({
        AssignmentState.WRITING,
        AssignmentState.FAILED,
    }),
    AssignmentState.WRITING: frozenset({
        AssignmentState.DONE,
        AssignmentState.FAILED,
    }),
    AssignmentState.DONE: frozenset(),
    AssignmentState.CANCELLED: frozenset(),
    AssignmentState.FAILED: frozenset(),
}


class UserDecision(Enum):
    """What the trainer chose when told the slot is taken."""
    REPLACE = "replace"
    CANCEL = "cancel"


@dataclass
class AssignmentAttempt:
    """
    One trainer's attempt to put a workout into a slot.

    Tracks where the attempt is in the check/confirm/write sequence so the
    UI can tell a pending confirmation from a finished or failed write.
    """
    client_id: str
    trainer_id: str
    week_start_date: date
    workout_slot: int
    prescription: Prescription
    week_number: int = 1
    state: AssignmentState = AssignmentState.IDLE
    history: list[AssignmentState] = field(default_factory=list)
    conflict: Optional[WorkoutRecord] = None
    record: Optional[WorkoutRecord] = None
    error: Optional[str] = None

    def __post_init__(self) -> None:
        self.week_start_date = get_week_start(self.week_start_date)
        if not self.history:
            self.history.append(self.state)

    @classmethod
    def for_record(cls, record: WorkoutRecord) -> "AssignmentAttempt":
        return cls(
            client_id=record.client_id,
            trainer_id=record.trainer_id,
            week_start_date=record.week_start_date,
            workout_slot=record.workout_slot,
            prescription=record.prescription,
            week_number=record.week_number,
        )

    @property
    def is_finished(self) -> bool:
        return not _TRANSITIONS[self.state]

    def advance(self, new_state: AssignmentState) -> None:
        if new_state not in _TRANSITIONS[self.state]:
            raise InvalidTransitionError(
                f"Cannot move assignment from {self.state.value} to {new_state.value}"
            )
        self.state = new_state
        self.history.append(new_state)

    def fail(self, message: str) -> None:
        self.error = message
        self.advance(AssignmentState.FAILED)

    def build_record(self) -> WorkoutRecord:
        """The record this attempt will write."""
        return WorkoutRecord(
            client_id=self.client_id,
            trainer_id=self.trainer_id,
            week_start_date=self.week_start_date,
            workout_slot=self.workout_slot,
            prescription=self.prescription,
            week_number=self.week_number,
        )


@dataclass
class AssignmentResult:
    """
    Outcome of assign/replace.

    A conflict is not an error: success is False, conflict holds the
    record occupying the slot, and nothing was written.
    """
    success: bool
    record: Optional[WorkoutRecord] = None
    conflict: Optional[WorkoutRecord] = None
    message: str = ""
    attempt: Optional[AssignmentAttempt] = None

    @property
    def conflict_found(self) -> bool:
        return self.conflict is not None


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------

IMMUTABLE_FIELDS = frozenset({
    "id",
    "client_id",
    "trainer_id",
    "week_start_date",
    "workout_slot",
    "status",
    "created_date",
})

EDITABLE_FIELDS = PRESCRIPTION_FIELDS | {"week_number"}


class WorkoutConflictResolver:
    """
    Assigns, replaces, edits and deletes workouts against a WorkoutStore.

    Stateless apart from its store: every check re-reads the collection,
    so nothing from an earlier page load is trusted.
    """

    def __init__(
        self,
        store: WorkoutStore,
        collection: str = DEFAULT_COLLECTION,
    ) -> None:
        self._store = store
        self._collection = collection

    # -----------------------------------------------------------------------
    # Conflict handling
    # -----------------------------------------------------------------------

    def check_conflict(
        self,
        client_id: str,
        week_start_date: DateLike,
        slot: int,
    ) -> Optional[WorkoutRecord]:
        """
        Return the record occupying client/week/slot, or None.

        Must run immediately before a write. If several records match
        (the store allowed a duplicate), the first one listed is returned.

        Raises:
            ConflictCheckError: if the collection couldn't be read.
        """
        try:
            records = self._store.list(self._collection)
        except WorkoutStoreError as e:
            logger.error(
                "Conflict check failed",
                extra={"client_id": client_id, "slot": slot, "error": str(e)},
            )
            raise ConflictCheckError(
                "Could not verify existing workouts. Please try again.",
                cause=e,
            ) from e

        matches = [r for r in records if r.matches_slot(client_id, week_start_date, slot)]

        if len(matches) > 1:
            logger.warning(
                "Multiple workouts occupy the same slot",
                extra={
                    "client_id": client_id,
                    "week_start_date": get_week_start(week_start_date).isoformat(),
                    "slot": slot,
                    "record_ids": [r.id for r in matches],
                },
            )

        return matches[0] if matches else None

    def assign(
        self,
        client_id: str,
        trainer_id: str,
        week_start_date: DateLike,
        slot: int,
        prescription: Prescription,
        force: bool = False,
        week_number: int = 1,
    ) -> AssignmentResult:
        """
        Put a workout into a client's weekly slot.

        With force=False an occupied slot returns a conflict result and
        nothing is written. With force=True the caller asserts the conflict
        was already dealt with and the record is created unconditionally.

        Raises:
            ConflictCheckError: if the pre-write check couldn't read the store.
            WorkoutStoreError: if the create itself failed.
        """
        attempt = AssignmentAttempt(
            client_id=client_id,
            trainer_id=trainer_id,
            week_start_date=week_start_date,
            workout_slot=slot,
            prescription=prescription,
            week_number=week_number,
        )

        if force:
            return self._create(attempt)

        attempt.advance(AssignmentState.CHECKING)
        try:
            conflict = self.check_conflict(client_id, week_start_date, slot)
        except ConflictCheckError as e:
            attempt.fail(str(e))
            raise

        if conflict is not None:
            attempt.conflict = conflict
            attempt.advance(AssignmentState.CONFLICT)
            attempt.advance(AssignmentState.AWAITING_USER_DECISION)

            logger.info(
                "Workout slot already taken",
                extra={
                    "client_id": client_id,
                    "slot": slot,
                    "conflict_id": conflict.id,
                },
            )

            return AssignmentResult(
                success=False,
                conflict=conflict,
                message=f"A workout already exists for Workout {slot} this week. Replace it?",
                attempt=attempt,
            )

        attempt.advance(AssignmentState.NO_CONFLICT)
        return self._create(attempt)

    def resolve(
        self,
        attempt: AssignmentAttempt,
        decision: UserDecision,
    ) -> AssignmentResult:
        """Apply the trainer's answer to a pending conflict."""
        if attempt.state != AssignmentState.AWAITING_USER_DECISION or attempt.conflict is None:
            raise InvalidTransitionError("Assignment is not waiting for a decision")

        if decision == UserDecision.CANCEL:
            attempt.advance(AssignmentState.CANCELLED)
            return AssignmentResult(
                success=False,
                conflict=attempt.conflict,
                message="Assignment cancelled",
                attempt=attempt,
            )

        return self._replace(attempt, attempt.conflict.id)

    def replace(
        self,
        conflicting_record_id: str,
        new_record: WorkoutRecord,
    ) -> AssignmentResult:
        """
        Delete the conflicting record, then create the new one.

        The two calls are independent. If the delete fails nothing else
        happens. If the create fails the slot is left empty.

        Raises:
            ReplaceError: slot_cleared says whether the old record is gone.
        """
        return self._replace(AssignmentAttempt.for_record(new_record), conflicting_record_id)

    # -----------------------------------------------------------------------
    # Single-record operations
    # -----------------------------------------------------------------------

    def update(self, record_id: str, **changes: Any) -> None:
        """
        Edit a workout's prescription in place.

        Identity, owner, week and slot are fixed. To move a workout,
        delete it and assign a new one.
        """
        locked = IMMUTABLE_FIELDS & set(changes)
        if locked:
            raise ValueError(f"Cannot change {', '.join(sorted(locked))} on an existing workout")

        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown workout fields: {', '.join(sorted(unknown))}")

        if not changes:
            return

        fields = _validate_changes(changes)
        fields["updated_date"] = utcnow()

        self._store.update(self._collection, record_id, fields)

        logger.info(
            "Workout updated",
            extra={"record_id": record_id, "fields": sorted(changes)},
        )

    def complete(self, record_id: str, at: Optional[datetime] = None) -> WorkoutRecord:
        """Mark a workout completed. Completing it again is a no-op."""
        record = self.get(record_id)

        if record.is_completed:
            return record

        record.mark_completed(at)
        self._store.update(
            self._collection,
            record_id,
            {"status": WorkoutStatus.COMPLETED, "updated_date": record.updated_date},
        )

        logger.info(
            "Workout completed",
            extra={"record_id": record_id, "client_id": record.client_id},
        )

        return record

    def delete(self, record_id: str) -> None:
        """Remove a workout. What happens for an unknown id is up to the store."""
        self._store.delete(self._collection, record_id)
        logger.info("Workout deleted", extra={"record_id": record_id})

    def get(self, record_id: str) -> WorkoutRecord:
        for record in self._store.list(self._collection):
            if record.id == record_id:
                return record
        raise RecordNotFoundError(record_id)

    # -----------------------------------------------------------------------
    # Week views
    # -----------------------------------------------------------------------

    def list_week_for_client(
        self,
        client_id: str,
        week_start_date: Optional[DateLike] = None,
    ) -> list[WorkoutRecord]:
        """A client's workouts for one week, ordered by slot."""
        week = get_week_start(week_start_date)
        records = [
            r for r in self._store.list(self._collection)
            if r.client_id == client_id and is_same_week(r.week_start_date, week)
        ]
        return sorted(records, key=lambda r: r.workout_slot)

    def list_week_for_trainer(
        self,
        trainer_id: str,
        week_start_date: Optional[DateLike] = None,
    ) -> list[WorkoutRecord]:
        """All of a trainer's assignments for one week, by client then slot."""
        week = get_week_start(week_start_date)
        records = [
            r for r in self._store.list(self._collection)
            if r.trainer_id == trainer_id and is_same_week(r.week_start_date, week)
        ]
        return sorted(records, key=lambda r: (r.client_id, r.workout_slot))

    # -----------------------------------------------------------------------
    # Private Methods
    # -----------------------------------------------------------------------

    def _create(self, attempt: AssignmentAttempt) -> AssignmentResult:
        attempt.advance(AssignmentState.WRITING)

        try:
            created = self._store.create(self._collection, attempt.build_record())
        except WorkoutStoreError as e:
            attempt.fail(str(e))
            logger.error(
                "Failed to create workout",
                extra={
                    "client_id": attempt.client_id,
                    "slot": attempt.workout_slot,
                    "error": str(e),
                },
            )
            raise

        attempt.record = created
        attempt.advance(AssignmentState.DONE)

        logger.info(
            "Workout assigned",
            extra={
                "record_id": created.id,
                "client_id": created.client_id,
                "week_start_date": created.week_start_date.isoformat(),
                "slot": created.workout_slot,
            },
        )

        return AssignmentResult(
            success=True,
            record=created,
            message="Workout assigned successfully",
            attempt=attempt,
        )

    def _replace(
        self,
        attempt: AssignmentAttempt,
        conflicting_record_id: str,
    ) -> AssignmentResult:
        attempt.advance(AssignmentState.REPLACING)

        try:
            self._store.delete(self._collection, conflicting_record_id)
        except WorkoutStoreError as e:
            attempt.fail(str(e))
            logger.error(
                "Failed to remove conflicting workout",
                extra={"record_id": conflicting_record_id, "error": str(e)},
            )
            raise ReplaceError(
                "Could not remove the existing workout. Nothing was changed.",
                slot_cleared=False,
                cause=e,
            ) from e

        logger.info(
            "Removed conflicting workout",
            extra={"record_id": conflicting_record_id},
        )

        try:
            return self._create(attempt)
        except WorkoutStoreError as e:
            raise ReplaceError(
                "The existing workout was removed but the new one could not be saved. "
                "Reload the week before trying again.",
                slot_cleared=True,
                cause=e,
            ) from e


def _validate_changes(changes: dict[str, Any]) -> dict[str, Any]:
    """Check a partial prescription edit the same way Prescription does."""
    fields = dict(changes)

    if "exercise_name" in fields:
        name = fields["exercise_name"]
        if not name or not name.strip():
            raise ValueError("Exercise name cannot be empty")

    for key in ("sets", "rest_time_seconds"):
        if fields.get(key) is not None and fields[key] < 0:
            raise ValueError(f"{key} cannot be negative")

    if "week_number" in fields and (not fields["week_number"] or fields["week_number"] < 1):
        raise ValueError("Week number must be 1 or greater")

    if "modifications" in fields:
        mods = tuple(
            m if isinstance(m, Modification) else Modification(**m)
            for m in fields["modifications"] or ()
        )
        if len(mods) > MAX_MODIFICATIONS:
            raise ValueError(
                f"A prescription supports at most {MAX_MODIFICATIONS} modifications"
            )
        fields["modifications"] = mods

    return fields
