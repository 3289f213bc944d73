"""Shared fixtures and fakes for the trainer portal tests."""

import copy
from datetime import date, datetime, timedelta, timezone

import pytest

from src.core.workouts.errors import RecordNotFoundError, WorkoutStoreError
from src.core.workouts.models import (
    PRESCRIPTION_FIELDS,
    Prescription,
    WorkoutRecord,
    WorkoutStatus,
)

# Wednesday; the week starts Monday 2024-01-08
NOW = datetime(2024, 1, 10, 12, 0, tzinfo=timezone.utc)
THIS_WEEK = date(2024, 1, 8)
LAST_WEEK = date(2024, 1, 1)
NEXT_WEEK = date(2024, 1, 15)


def make_record(
    client_id: str = "client-1",
    trainer_id: str = "trainer-1",
    week_start_date: date = THIS_WEEK,
    workout_slot: int = 1,
    exercise_name: str = "Goblet Squat",
    status: WorkoutStatus = WorkoutStatus.ASSIGNED,
    updated_date: datetime = NOW,
    **kwargs,
) -> WorkoutRecord:
    return WorkoutRecord(
        client_id=client_id,
        trainer_id=trainer_id,
        week_start_date=week_start_date,
        workout_slot=workout_slot,
        prescription=Prescription(exercise_name=exercise_name, sets=3, reps="8-10"),
        status=status,
        updated_date=updated_date,
        **kwargs,
    )


class RecordingStore:
    """
    In-memory WorkoutStore that records every call. list/create work for
    any item type, so it also stands in for a FeedbackStore.

    Add an operation name to fail_on to make that call raise
    WorkoutStoreError. The call is still recorded.
    """

    def __init__(self, records=None) -> None:
        self.records: list[WorkoutRecord] = list(records or [])
        self.calls: list[str] = []
        self.fail_on: set[str] = set()

    def _record_call(self, operation: str) -> None:
        self.calls.append(operation)
        if operation in self.fail_on:
            raise WorkoutStoreError(f"{operation} failed")

    def list(self, collection):
        self._record_call("list")
        return copy.deepcopy(self.records)

    def create(self, collection, record):
        self._record_call("create")
        self.records.append(copy.deepcopy(record))
        return record

    def update(self, collection, record_id, fields):
        self._record_call("update")
        for record in self.records:
            if record.id == record_id:
                break
        else:
            raise RecordNotFoundError(record_id)

        prescription_changes = {k: v for k, v in fields.items() if k in PRESCRIPTION_FIELDS}
        if prescription_changes:
            record.prescription = record.prescription.with_changes(**prescription_changes)
        if "week_number" in fields:
            record.week_number = fields["week_number"]
        if "status" in fields:
            record.status = WorkoutStatus(fields["status"])
        if "updated_date" in fields:
            record.updated_date = fields["updated_date"]

    def delete(self, collection, record_id):
        self._record_call("delete")
        self.records = [r for r in self.records if r.id != record_id]


@pytest.fixture
def store() -> RecordingStore:
    return RecordingStore()


@pytest.fixture
def days_ago():
    """Timestamp helper relative to NOW."""
    def _days_ago(days: float) -> datetime:
        return NOW - timedelta(days=days)
    return _days_ago
