"""
Snowflake-backed feedback store.

Client difficulty ratings live in client_workout_feedback. Rows are only
ever inserted and listed.
"""

import logging

from src.core.adherence.models import WorkoutFeedback
from src.core.adherence.store import DEFAULT_FEEDBACK_COLLECTION
from src.core.workouts.errors import WorkoutStoreError

from .workouts import SnowflakeConnection, _as_aware

logger = logging.getLogger(__name__)


FEEDBACK_TABLES = {
    DEFAULT_FEEDBACK_COLLECTION: "client_workout_feedback",
}

FEEDBACK_COLUMNS = (
    "feedback_id",
    "client_id",
    "workout_id",
    "difficulty_rating",
    "feedback_note",
    "submitted_at",
)


class SnowflakeFeedbackStore:
    """FeedbackStore implementation on Snowflake."""

    def __init__(self, connection: SnowflakeConnection) -> None:
        self._conn = connection

    def list(self, collection: str) -> list[WorkoutFeedback]:
        table = self._table(collection)
        cursor = self._conn.cursor()

        try:
            cursor.execute(f"""
                SELECT {", ".join(FEEDBACK_COLUMNS)}
                FROM {table}
                ORDER BY submitted_at
            """)
            rows = cursor.fetchall()

        except Exception as e:
            logger.error(
                "Failed to list feedback",
                extra={"collection": collection, "error": str(e)}
            )
            raise WorkoutStoreError(f"Failed to list {collection}: {e}") from e

        finally:
            cursor.close()

        feedback = []
        for row in rows:
            values = dict(zip(FEEDBACK_COLUMNS, row))
            submitted_at = _as_aware(values["submitted_at"])
            try:
                if submitted_at is None:
                    raise ValueError("Feedback has no submission time")
                feedback.append(WorkoutFeedback(
                    id=values["feedback_id"],
                    client_id=values["client_id"],
                    workout_id=values["workout_id"],
                    difficulty_rating=values["difficulty_rating"],
                    feedback_note=values["feedback_note"],
                    submitted_at=submitted_at,
                ))
            except (ValueError, TypeError) as e:
                logger.warning(
                    "Skipping invalid feedback row",
                    extra={"feedback_id": values.get("feedback_id"), "error": str(e)}
                )

        return feedback

    def create(self, collection: str, feedback: WorkoutFeedback) -> WorkoutFeedback:
        table = self._table(collection)
        cursor = self._conn.cursor()

        try:
            cursor.execute(f"""
                INSERT INTO {table} ({", ".join(FEEDBACK_COLUMNS)})
                VALUES (%s, %s, %s, %s, %s, %s)
            """, (
                feedback.id,
                feedback.client_id,
                feedback.workout_id,
                feedback.difficulty_rating,
                feedback.feedback_note,
                feedback.submitted_at,
            ))
            self._conn.commit()

        except Exception as e:
            logger.error(
                "Failed to record feedback",
                extra={"feedback_id": feedback.id, "error": str(e)}
            )
            raise WorkoutStoreError(f"Failed to record feedback: {e}") from e

        finally:
            cursor.close()

        return feedback

    @staticmethod
    def _table(collection: str) -> str:
        try:
            return FEEDBACK_TABLES[collection]
        except KeyError:
            raise WorkoutStoreError(f"Unknown collection: {collection}")
