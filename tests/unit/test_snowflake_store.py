"""
Tests for the Snowflake workout store, run against the in-memory mock
connection.
"""

from datetime import timedelta

import pytest

from src.core.adherence.models import AdherenceStatus, WorkoutFeedback
from src.core.adherence.service import AdherenceService
from src.core.adherence.store import DEFAULT_FEEDBACK_COLLECTION
from src.core.workouts.errors import (
    ConflictCheckError,
    RecordNotFoundError,
    WorkoutStoreError,
)
from src.core.workouts.models import Modification, Prescription, WorkoutStatus
from src.core.workouts.resolver import WorkoutConflictResolver
from src.core.workouts.store import DEFAULT_COLLECTION
from src.infrastructure.snowflake.client import MockSnowflakeConnection
from src.infrastructure.snowflake.repositories.feedback import SnowflakeFeedbackStore
from src.infrastructure.snowflake.repositories.workouts import SnowflakeWorkoutStore

from conftest import NOW, THIS_WEEK, make_record


@pytest.fixture
def connection() -> MockSnowflakeConnection:
    return MockSnowflakeConnection()


@pytest.fixture
def sf_store(connection) -> SnowflakeWorkoutStore:
    return SnowflakeWorkoutStore(connection)


def seed_raw_row(sf_store, connection, **overrides):
    """Insert a valid record, then overwrite columns directly in storage."""
    record = make_record(**{k: v for k, v in overrides.items() if k == "client_id"})
    sf_store.create(DEFAULT_COLLECTION, record)
    row = connection._storage["client_assigned_workouts"][record.id]
    row.update({k: v for k, v in overrides.items() if k != "client_id"})
    return record


class TestSnowflakeWorkoutStore:

    def test_created_record_lists_back_unchanged(self, sf_store):
        record = make_record(workout_slot=2)
        record.prescription = Prescription(
            exercise_name="Split Squat",
            sets=3,
            reps="10 each",
            weight_or_resistance="Bodyweight",
            tempo="3-1-1",
            rest_time_seconds=60,
            exercise_notes="Keep torso upright",
            exercise_video_url="https://example.com/split-squat",
            modifications=(
                Modification(title="Assisted", description="Hold a rail"),
                Modification(title="Weighted"),
            ),
        )

        sf_store.create(DEFAULT_COLLECTION, record)
        listed = sf_store.list(DEFAULT_COLLECTION)

        assert len(listed) == 1
        assert listed[0].id == record.id
        assert listed[0].prescription == record.prescription
        assert listed[0].week_start_date == THIS_WEEK
        assert listed[0].workout_slot == 2
        assert listed[0].status == WorkoutStatus.ASSIGNED

    def test_list_keeps_insertion_order(self, sf_store):
        first = make_record(exercise_name="First")
        second = make_record(exercise_name="Second")

        sf_store.create(DEFAULT_COLLECTION, first)
        sf_store.create(DEFAULT_COLLECTION, second)

        assert [r.id for r in sf_store.list(DEFAULT_COLLECTION)] == [first.id, second.id]

    def test_partial_update_leaves_other_columns(self, sf_store):
        record = make_record()
        sf_store.create(DEFAULT_COLLECTION, record)
        later = NOW + timedelta(hours=1)

        sf_store.update(DEFAULT_COLLECTION, record.id, {
            "sets": 5,
            "modifications": (Modification(title="Box squat"),),
            "updated_date": later,
        })

        updated = sf_store.list(DEFAULT_COLLECTION)[0]
        assert updated.prescription.sets == 5
        assert updated.prescription.reps == "8-10"
        assert updated.prescription.modifications == (Modification(title="Box squat"),)
        assert updated.updated_date == later

    def test_status_update(self, sf_store):
        record = make_record()
        sf_store.create(DEFAULT_COLLECTION, record)

        sf_store.update(DEFAULT_COLLECTION, record.id, {"status": WorkoutStatus.COMPLETED})

        assert sf_store.list(DEFAULT_COLLECTION)[0].is_completed

    def test_update_missing_record(self, sf_store):
        with pytest.raises(RecordNotFoundError):
            sf_store.update(DEFAULT_COLLECTION, "missing", {"sets": 1})

    def test_update_rejects_unknown_columns(self, sf_store):
        with pytest.raises(ValueError):
            sf_store.update(DEFAULT_COLLECTION, "any", {"workout_slot": 3})

    def test_delete(self, sf_store, connection):
        record = make_record()
        sf_store.create(DEFAULT_COLLECTION, record)

        sf_store.delete(DEFAULT_COLLECTION, record.id)

        assert connection._rows() == []

    def test_delete_missing_is_noop(self, sf_store):
        sf_store.delete(DEFAULT_COLLECTION, "missing")

    @pytest.mark.parametrize("operation, call", [
        ("select", lambda s: s.list(DEFAULT_COLLECTION)),
        ("insert", lambda s: s.create(DEFAULT_COLLECTION, make_record())),
        ("delete", lambda s: s.delete(DEFAULT_COLLECTION, "x")),
    ])
    def test_database_errors_become_store_errors(self, sf_store, connection, operation, call):
        connection._fail_next(operation)

        with pytest.raises(WorkoutStoreError):
            call(sf_store)

    def test_unknown_collection(self, sf_store):
        with pytest.raises(WorkoutStoreError, match="Unknown collection"):
            sf_store.list("somethingelse")


class TestResolverOnSnowflake:
    """The resolver's check-then-act flow against the SQL store."""

    def test_conflict_then_replace(self, sf_store, connection):
        resolver = WorkoutConflictResolver(sf_store)
        first = resolver.assign("client-1", "trainer-1", THIS_WEEK, 1, Prescription("Squat"))

        conflict = resolver.assign("client-1", "trainer-1", THIS_WEEK, 1, Prescription("Lunge"))
        assert conflict.conflict.id == first.record.id

        resolver.replace(conflict.conflict.id, conflict.attempt.build_record())

        rows = connection._rows()
        assert len(rows) == 1
        assert rows[0]["exercise_name"] == "Lunge"

    def test_failed_check_writes_nothing(self, sf_store, connection):
        resolver = WorkoutConflictResolver(sf_store)
        connection._fail_next("select")

        with pytest.raises(ConflictCheckError):
            resolver.assign("client-1", "trainer-1", THIS_WEEK, 1, Prescription("Squat"))

        assert connection._rows() == []


class TestMalformedRows:
    """Rows written by other tools may not pass model validation."""

    def test_invalid_row_is_skipped_not_fatal(self, sf_store, connection):
        good = make_record(workout_slot=2)
        sf_store.create(DEFAULT_COLLECTION, good)
        seed_raw_row(sf_store, connection, client_id="client-2", workout_slot=0)
        seed_raw_row(sf_store, connection, client_id="client-3", exercise_name=None)

        listed = sf_store.list(DEFAULT_COLLECTION)

        assert [r.id for r in listed] == [good.id]

    def test_conflict_check_survives_other_clients_bad_row(self, sf_store, connection):
        good = make_record(workout_slot=2)
        sf_store.create(DEFAULT_COLLECTION, good)
        seed_raw_row(sf_store, connection, client_id="client-2", workout_slot=0)

        conflict = WorkoutConflictResolver(sf_store).check_conflict("client-1", THIS_WEEK, 2)

        assert conflict.id == good.id

    def test_trainer_signals_survive_bad_row(self, sf_store, connection):
        sf_store.create(DEFAULT_COLLECTION, make_record())
        seed_raw_row(sf_store, connection, client_id="client-2", exercise_name=None)

        signals = AdherenceService(sf_store).signals_for_trainer("trainer-1", now=NOW)

        assert [s.client_id for s in signals] == ["client-1"]

    def test_missing_updated_at_falls_back_to_created_at(self, sf_store, connection):
        record = seed_raw_row(sf_store, connection, updated_at=None)

        listed = sf_store.list(DEFAULT_COLLECTION)[0]

        assert listed.updated_date == record.created_date

    def test_completed_row_without_timestamps_is_not_activity(self, sf_store, connection):
        seed_raw_row(
            sf_store, connection, status="completed", updated_at=None, created_at=None
        )

        signal = AdherenceService(sf_store).signal_for_client("client-1", now=NOW)

        assert signal.status == AdherenceStatus.INACTIVE
        assert signal.last_workout_date is None


class TestSnowflakeFeedbackStore:

    @pytest.fixture
    def feedback_store(self, connection) -> SnowflakeFeedbackStore:
        return SnowflakeFeedbackStore(connection)

    def test_created_feedback_lists_back(self, feedback_store):
        feedback = WorkoutFeedback("client-1", "workout-1", 4, feedback_note="Tough", submitted_at=NOW)

        feedback_store.create(DEFAULT_FEEDBACK_COLLECTION, feedback)
        listed = feedback_store.list(DEFAULT_FEEDBACK_COLLECTION)

        assert listed == [feedback]

    def test_out_of_range_rating_row_is_skipped(self, feedback_store, connection):
        feedback = WorkoutFeedback("client-1", "workout-1", 4, submitted_at=NOW)
        feedback_store.create(DEFAULT_FEEDBACK_COLLECTION, feedback)
        connection._storage["client_workout_feedback"][feedback.id]["difficulty_rating"] = 9

        assert feedback_store.list(DEFAULT_FEEDBACK_COLLECTION) == []

    def test_database_error_becomes_store_error(self, feedback_store, connection):
        connection._fail_next("select")

        with pytest.raises(WorkoutStoreError):
            feedback_store.list(DEFAULT_FEEDBACK_COLLECTION)

    def test_unknown_collection(self, feedback_store):
        with pytest.raises(WorkoutStoreError, match="Unknown collection"):
            feedback_store.list(DEFAULT_COLLECTION)
