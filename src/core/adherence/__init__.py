"""
Client adherence tracking.

Classifies how engaged each client is so trainers know who to check in
with, and collects the difficulty feedback clients give after a workout.
"""

from .classifier import AT_RISK_REASON, INACTIVE_REASON, AdherenceClassifier
from .models import (
    ActivitySummary,
    AdherenceSignal,
    AdherenceStatus,
    DifficultyFlag,
    WorkoutFeedback,
)
from .service import AdherenceService
from .store import DEFAULT_FEEDBACK_COLLECTION, FeedbackStore

__all__ = [
    "AT_RISK_REASON",
    "DEFAULT_FEEDBACK_COLLECTION",
    "INACTIVE_REASON",
    "ActivitySummary",
    "AdherenceClassifier",
    "AdherenceService",
    "AdherenceSignal",
    "AdherenceStatus",
    "DifficultyFlag",
    "FeedbackStore",
    "WorkoutFeedback",
]
