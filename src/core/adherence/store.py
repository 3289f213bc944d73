"""Interface for the hosted workout feedback collection."""

from typing import Protocol

from .models import WorkoutFeedback

DEFAULT_FEEDBACK_COLLECTION = "clientworkoutfeedback"


class FeedbackStore(Protocol):
    """
    Append-only access to client difficulty feedback.

    Same rules as WorkoutStore: list returns everything, and failures
    raise WorkoutStoreError.
    """

    def list(self, collection: str) -> list[WorkoutFeedback]:
        ...

    def create(self, collection: str, feedback: WorkoutFeedback) -> WorkoutFeedback:
        ...
