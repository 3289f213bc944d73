"""
Unit tests for the workout domain models and week helpers.

These tests verify the core business logic without touching
external services (no database, no HTTP).
"""

from datetime import date, datetime, timedelta, timezone
from uuid import UUID

import pytest

from src.core.workouts.models import (
    Modification,
    Prescription,
    WorkoutRecord,
    WorkoutStatus,
)
from src.core.workouts.weeks import (
    describe_days_since_update,
    format_week_display,
    get_week_end,
    get_week_start,
    is_same_week,
)

from conftest import NOW, THIS_WEEK, make_record


# ---------------------------------------------------------------------------
# Week Helper Tests
# ---------------------------------------------------------------------------

class TestWeeks:
    """Tests for Monday-anchored week arithmetic."""

    def test_week_start_is_monday(self):
        """Any day of the week maps to its Monday."""
        assert get_week_start(date(2024, 1, 10)) == date(2024, 1, 8)
        assert get_week_start(date(2024, 1, 14)) == date(2024, 1, 8)
        assert get_week_start(date(2024, 1, 8)) == date(2024, 1, 8)

    def test_week_end_is_sunday(self):
        assert get_week_end(date(2024, 1, 10)) == date(2024, 1, 14)

    def test_accepts_iso_strings_and_datetimes(self):
        assert get_week_start("2024-01-10") == date(2024, 1, 8)
        assert get_week_start(NOW) == date(2024, 1, 8)

    def test_same_week_ignores_day(self):
        assert is_same_week(date(2024, 1, 8), date(2024, 1, 14))
        assert not is_same_week(date(2024, 1, 7), date(2024, 1, 8))

    def test_week_display(self):
        assert format_week_display(date(2024, 8, 12)) == "Week of Aug 12"

    def test_days_since_update_labels(self):
        assert describe_days_since_update(None) == ""
        assert describe_days_since_update(NOW, now=NOW) == "Updated today"
        assert describe_days_since_update(NOW - timedelta(days=1), now=NOW) == "Updated yesterday"
        assert describe_days_since_update(NOW - timedelta(days=5), now=NOW) == "Updated 5 days ago"

    def test_update_slightly_in_the_future_is_today(self):
        """Clock skew between writer and reader must not read as yesterday."""
        assert describe_days_since_update(NOW + timedelta(hours=1), now=NOW) == "Updated today"


# ---------------------------------------------------------------------------
# Prescription Tests
# ---------------------------------------------------------------------------

class TestPrescription:
    """Tests for the Prescription value object."""

    def test_rejects_empty_exercise_name(self):
        with pytest.raises(ValueError, match="cannot be empty"):
            Prescription(exercise_name="   ")

    def test_allows_up_to_three_modifications(self):
        mods = tuple(Modification(title=f"Option {i}") for i in range(3))
        assert len(Prescription(exercise_name="Row", modifications=mods).modifications) == 3

    def test_rejects_fourth_modification(self):
        mods = tuple(Modification(title=f"Option {i}") for i in range(4))
        with pytest.raises(ValueError, match="at most 3"):
            Prescription(exercise_name="Row", modifications=mods)

    def test_rejects_negative_rest(self):
        with pytest.raises(ValueError, match="Rest time"):
            Prescription(exercise_name="Row", rest_time_seconds=-30)

    @pytest.mark.parametrize("reps", ["8-10", "AMRAP", "30s", "-"])
    def test_reps_is_free_form(self, reps):
        assert Prescription(exercise_name="Row", reps=reps).reps == reps

    def test_with_changes_only_touches_given_fields(self):
        original = Prescription(exercise_name="Row", sets=3, reps="10", tempo="2-0-2")

        edited = original.with_changes(sets=4)

        assert edited.sets == 4
        assert edited.reps == "10"
        assert edited.tempo == "2-0-2"
        assert original.sets == 3

    def test_with_changes_rejects_unknown_field(self):
        with pytest.raises(ValueError, match="Unknown"):
            Prescription(exercise_name="Row").with_changes(workout_slot=2)


# ---------------------------------------------------------------------------
# WorkoutRecord Tests
# ---------------------------------------------------------------------------

class TestWorkoutRecord:
    """Tests for the WorkoutRecord entity."""

    def test_new_record_is_assigned(self):
        record = make_record()
        assert record.status == WorkoutStatus.ASSIGNED
        assert not record.is_completed
        assert record.id

    def test_default_id_is_dashed_uuid(self):
        record = make_record()

        assert str(UUID(record.id)) == record.id

    def test_week_start_normalised_to_monday(self):
        record = make_record(week_start_date=date(2024, 1, 11))
        assert record.week_start_date == THIS_WEEK

    @pytest.mark.parametrize("slot", [0, 5])
    def test_rejects_slot_outside_one_to_four(self, slot):
        with pytest.raises(ValueError, match="slot"):
            make_record(workout_slot=slot)

    def test_requires_scoping_fields(self):
        with pytest.raises(ValueError, match="client"):
            make_record(client_id="")
        with pytest.raises(ValueError, match="trainer"):
            make_record(trainer_id="")

    def test_matches_slot_uses_same_week(self):
        record = make_record(workout_slot=2)

        assert record.matches_slot("client-1", date(2024, 1, 12), 2)
        assert not record.matches_slot("client-1", date(2024, 1, 12), 3)
        assert not record.matches_slot("client-2", date(2024, 1, 12), 2)
        assert not record.matches_slot("client-1", date(2024, 1, 15), 2)

    def test_mark_completed_sets_timestamp(self):
        record = make_record(updated_date=NOW - timedelta(days=3))

        record.mark_completed(at=NOW)

        assert record.is_completed
        assert record.updated_date == NOW

    def test_completing_twice_keeps_first_timestamp(self):
        record = make_record()
        first = datetime(2024, 1, 9, tzinfo=timezone.utc)

        record.mark_completed(at=first)
        record.mark_completed(at=NOW)

        assert record.updated_date == first
