"""
Repository pattern implementations for Snowflake.

Repositories translate between domain models and database representations.
"""

from .feedback import SnowflakeFeedbackStore
from .workouts import SnowflakeWorkoutStore

__all__ = ["SnowflakeFeedbackStore", "SnowflakeWorkoutStore"]
