"""
Client adherence classification.

Turns a client's workout records into an On Track / At Risk / Inactive
signal so trainers can see who needs a check-in. Pure computation over
records that were already fetched; nothing here touches the store.

Rules, in priority order:
- No completed workout in the last 7 days (or ever): Inactive.
- 2 or more unfinished workouts in weeks starting within the last 7 days:
  At Risk.
- Otherwise: On Track.

"Within the last 7 days" means after the day exactly 7 days back, so on a
Monday last week's Monday no longer counts.

Recent difficulty feedback is averaged separately and reported as a
Too Hard / Too Easy flag next to the status.
"""

from datetime import date, datetime, timedelta, timezone
from typing import Iterable, Mapping, Optional

from ..workouts.models import WorkoutRecord
from .models import (
    STATUS_SEVERITY,
    TOO_EASY_AT,
    TOO_HARD_AT,
    ActivitySummary,
    AdherenceSignal,
    AdherenceStatus,
    DifficultyFlag,
    WorkoutFeedback,
)

INACTIVE_REASON = "No completed workouts in 7+ days"
AT_RISK_REASON = "2+ missed workouts this week"


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _in_window(week_start: date, now: datetime, days: int) -> bool:
    today = now.date()
    return today - timedelta(days=days) < week_start <= today


class AdherenceClassifier:
    """
    Classifies client engagement from workout records.

    Thresholds are configurable so they can follow settings, but the
    defaults are what the trainer dashboard describes to users.
    """

    def __init__(
        self,
        inactive_after_days: int = 7,
        at_risk_missed_workouts: int = 2,
        window_days: int = 7,
    ) -> None:
        self._inactive_after_days = inactive_after_days
        self._at_risk_missed = at_risk_missed_workouts
        self._window_days = window_days

    def classify(
        self,
        client_id: str,
        records: Iterable[WorkoutRecord],
        now: Optional[datetime] = None,
        feedback: Iterable[WorkoutFeedback] = (),
    ) -> AdherenceSignal:
        """Compute the signal for one client. Other clients' records are ignored."""
        now = _as_utc(now or datetime.now(timezone.utc))
        own = [r for r in records if r.client_id == client_id]

        # A completion without a timestamp is no evidence of when it happened
        completed = [r for r in own if r.is_completed and r.updated_date is not None]
        last_workout = max((_as_utc(r.updated_date) for r in completed), default=None)

        days_since: Optional[int] = None
        if last_workout is not None:
            days_since = max(0, (now - last_workout).days)

        missed = sum(
            1 for r in own
            if not r.is_completed and _in_window(r.week_start_date, now, self._window_days)
        )

        if days_since is None or days_since >= self._inactive_after_days:
            status, reason = AdherenceStatus.INACTIVE, INACTIVE_REASON
        elif missed >= self._at_risk_missed:
            status, reason = AdherenceStatus.AT_RISK, AT_RISK_REASON
        else:
            status, reason = AdherenceStatus.ON_TRACK, None

        avg_difficulty = self.average_difficulty(client_id, feedback, now=now)

        return AdherenceSignal(
            client_id=client_id,
            status=status,
            reason=reason,
            days_since_last_activity=days_since,
            missed_workouts_last_7_days=missed,
            last_workout_date=last_workout,
            avg_difficulty=avg_difficulty,
            difficulty_flag=self.difficulty_flag(avg_difficulty),
        )

    def classify_many(
        self,
        records_by_client: Mapping[str, Iterable[WorkoutRecord]],
        now: Optional[datetime] = None,
        feedback: Iterable[WorkoutFeedback] = (),
    ) -> list[AdherenceSignal]:
        """
        Classify every client in the mapping.

        Only clients present in the mapping are classified, so a partial
        fetch still yields signals for whatever arrived.
        """
        feedback = list(feedback)
        return [
            self.classify(client_id, records, now=now, feedback=feedback)
            for client_id, records in records_by_client.items()
        ]

    @staticmethod
    def attention_list(signals: Iterable[AdherenceSignal]) -> list[AdherenceSignal]:
        """At Risk and Inactive clients, Inactive first. Order is otherwise kept."""
        flagged = [s for s in signals if s.needs_attention]
        return sorted(flagged, key=lambda s: STATUS_SEVERITY[s.status])

    @staticmethod
    def group_by_client(
        records: Iterable[WorkoutRecord],
        client_ids: Optional[Iterable[str]] = None,
    ) -> dict[str, list[WorkoutRecord]]:
        """
        Bucket records per client.

        client_ids seeds the result so clients without any records still
        get a (empty) bucket and come out Inactive.
        """
        grouped: dict[str, list[WorkoutRecord]] = {c: [] for c in client_ids or ()}
        for record in records:
            grouped.setdefault(record.client_id, []).append(record)
        return grouped

    # -----------------------------------------------------------------------
    # Feedback
    # -----------------------------------------------------------------------

    def recent_feedback(
        self,
        client_id: str,
        feedback: Iterable[WorkoutFeedback],
        now: Optional[datetime] = None,
        days: Optional[int] = None,
    ) -> list[WorkoutFeedback]:
        """A client's feedback from the last `days` days, newest first."""
        now = _as_utc(now or datetime.now(timezone.utc))
        cutoff = now - timedelta(days=self._window_days if days is None else days)

        recent = [
            f for f in feedback
            if f.client_id == client_id and _as_utc(f.submitted_at) >= cutoff
        ]
        return sorted(recent, key=lambda f: _as_utc(f.submitted_at), reverse=True)

    def average_difficulty(
        self,
        client_id: str,
        feedback: Iterable[WorkoutFeedback],
        now: Optional[datetime] = None,
    ) -> Optional[float]:
        ratings = [f.difficulty_rating for f in self.recent_feedback(client_id, feedback, now=now)]
        if not ratings:
            return None
        return sum(ratings) / len(ratings)

    @staticmethod
    def difficulty_flag(avg_difficulty: Optional[float]) -> Optional[DifficultyFlag]:
        if avg_difficulty is None:
            return None
        if avg_difficulty >= TOO_HARD_AT:
            return DifficultyFlag.TOO_HARD
        if avg_difficulty <= TOO_EASY_AT:
            return DifficultyFlag.TOO_EASY
        return None

    def summarize_activity(
        self,
        records: Iterable[WorkoutRecord],
        now: Optional[datetime] = None,
        days: int = 7,
    ) -> ActivitySummary:
        """Completion counts for workouts in weeks that started in the last `days` days."""
        now = _as_utc(now or datetime.now(timezone.utc))

        recent = [r for r in records if _in_window(r.week_start_date, now, days)]
        completed = sum(1 for r in recent if r.is_completed)
        total = len(recent)

        return ActivitySummary(
            completed=completed,
            missed=total - completed,
            total=total,
            completion_rate=round(completed / total * 100) if total else 0,
            period=f"Last {days} days",
        )
