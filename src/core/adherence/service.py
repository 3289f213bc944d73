"""
Adherence lookups backed by the workout store.

Fetches the workout collection (and the feedback collection, when one is
configured) once per call and hands them to the classifier. Store
failures propagate to the caller; a failed fetch must never look like a
roster of healthy clients.
"""

import logging
from datetime import datetime
from typing import Iterable, Optional

from ..workouts.errors import WorkoutStoreError
from ..workouts.store import DEFAULT_COLLECTION, WorkoutStore
from .classifier import AdherenceClassifier
from .models import ActivitySummary, AdherenceSignal, WorkoutFeedback
from .store import DEFAULT_FEEDBACK_COLLECTION, FeedbackStore

logger = logging.getLogger(__name__)


class AdherenceService:
    """Computes adherence signals for clients and trainers."""

    def __init__(
        self,
        store: WorkoutStore,
        classifier: Optional[AdherenceClassifier] = None,
        collection: str = DEFAULT_COLLECTION,
        feedback_store: Optional[FeedbackStore] = None,
        feedback_collection: str = DEFAULT_FEEDBACK_COLLECTION,
    ) -> None:
        self._store = store
        self._classifier = classifier or AdherenceClassifier()
        self._collection = collection
        self._feedback_store = feedback_store
        self._feedback_collection = feedback_collection

    def signal_for_client(
        self,
        client_id: str,
        now: Optional[datetime] = None,
    ) -> AdherenceSignal:
        records = self._store.list(self._collection)
        return self._classifier.classify(
            client_id, records, now=now, feedback=self._list_feedback()
        )

    def signals_for_trainer(
        self,
        trainer_id: str,
        client_ids: Optional[Iterable[str]] = None,
        now: Optional[datetime] = None,
    ) -> list[AdherenceSignal]:
        """
        Signals for every client the trainer works with.

        Clients are those with at least one workout from this trainer,
        plus any listed in client_ids (so a new client with nothing
        assigned yet still shows up).
        """
        records = [r for r in self._store.list(self._collection) if r.trainer_id == trainer_id]
        grouped = self._classifier.group_by_client(records, client_ids=client_ids)
        signals = self._classifier.classify_many(grouped, now=now, feedback=self._list_feedback())

        logger.info(
            "Computed trainer adherence signals",
            extra={
                "trainer_id": trainer_id,
                "clients": len(signals),
                "flagged": sum(1 for s in signals if s.needs_attention),
            },
        )

        return signals

    def attention_list_for_trainer(
        self,
        trainer_id: str,
        client_ids: Optional[Iterable[str]] = None,
        now: Optional[datetime] = None,
    ) -> list[AdherenceSignal]:
        """Only the clients who need a check-in, Inactive first."""
        signals = self.signals_for_trainer(trainer_id, client_ids=client_ids, now=now)
        return self._classifier.attention_list(signals)

    def activity_summary(
        self,
        client_id: str,
        days: int = 7,
        now: Optional[datetime] = None,
    ) -> ActivitySummary:
        records = [r for r in self._store.list(self._collection) if r.client_id == client_id]
        return self._classifier.summarize_activity(records, now=now, days=days)

    # -----------------------------------------------------------------------
    # Feedback
    # -----------------------------------------------------------------------

    def record_feedback(
        self,
        client_id: str,
        workout_id: str,
        difficulty_rating: int,
        feedback_note: Optional[str] = None,
    ) -> WorkoutFeedback:
        """
        Store a client's difficulty rating for a workout.

        Raises:
            ValueError: rating outside 1-5, or note too long.
            WorkoutStoreError: no feedback store, or the write failed.
        """
        feedback = WorkoutFeedback(
            client_id=client_id,
            workout_id=workout_id,
            difficulty_rating=difficulty_rating,
            feedback_note=feedback_note or None,
        )

        created = self._require_feedback_store().create(self._feedback_collection, feedback)

        logger.info(
            "Workout feedback recorded",
            extra={
                "client_id": client_id,
                "workout_id": workout_id,
                "difficulty_rating": difficulty_rating,
            },
        )

        return created

    def recent_feedback(
        self,
        client_id: str,
        days: int = 7,
        now: Optional[datetime] = None,
    ) -> list[WorkoutFeedback]:
        """A client's feedback from the last `days` days, newest first."""
        feedback = self._require_feedback_store().list(self._feedback_collection)
        return self._classifier.recent_feedback(client_id, feedback, now=now, days=days)

    def _list_feedback(self) -> list[WorkoutFeedback]:
        if self._feedback_store is None:
            return []
        return self._feedback_store.list(self._feedback_collection)

    def _require_feedback_store(self) -> FeedbackStore:
        if self._feedback_store is None:
            raise WorkoutStoreError("No feedback store configured")
        return self._feedback_store
