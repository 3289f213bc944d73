"""
Snowflake-backed workout store.

Implements the WorkoutStore protocol over the client_assigned_workouts
table. Like the hosted collection it replaces, it exposes only plain
CRUD: list everything, create, partial update, delete. All filtering
stays in the core layer.

The application code never writes SQL directly; it asks the store for
records in domain terms.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Optional, Protocol

from src.core.workouts.errors import RecordNotFoundError, WorkoutStoreError
from src.core.workouts.models import (
    Modification,
    Prescription,
    WorkoutRecord,
    WorkoutStatus,
)
from src.core.workouts.store import DEFAULT_COLLECTION


logger = logging.getLogger(__name__)


class SnowflakeConnection(Protocol):
    """
    Protocol for Snowflake connections.

    Using a protocol means tests can provide a mock without
    importing the actual snowflake-connector-python.
    """

    def cursor(self): ...
    def commit(self) -> None: ...
    def rollback(self) -> None: ...


@dataclass
class SnowflakeConfig:
    """Configuration for Snowflake connection."""
    account: str
    user: str
    password: Optional[str] = None
    private_key_path: Optional[str] = None
    private_key_base64: Optional[str] = None
    database: str = "TRAINER_PORTAL"
    schema: str = "COACHING"
    warehouse: str = "COMPUTE_WH"
    role: Optional[str] = None


# Collection name -> table. Table names are never taken from user input.
COLLECTION_TABLES = {
    DEFAULT_COLLECTION: "client_assigned_workouts",
}

SELECT_COLUMNS = (
    "workout_id",
    "client_id",
    "trainer_id",
    "week_start_date",
    "week_number",
    "workout_slot",
    "status",
    "exercise_name",
    "sets",
    "reps",
    "weight_or_resistance",
    "tempo",
    "rest_time_seconds",
    "exercise_notes",
    "exercise_video_url",
    "modifications",
    "created_at",
    "updated_at",
)

# Domain field -> column for partial updates
UPDATE_COLUMNS = {
    "exercise_name": "exercise_name",
    "sets": "sets",
    "reps": "reps",
    "weight_or_resistance": "weight_or_resistance",
    "tempo": "tempo",
    "rest_time_seconds": "rest_time_seconds",
    "exercise_notes": "exercise_notes",
    "exercise_video_url": "exercise_video_url",
    "modifications": "modifications",
    "week_number": "week_number",
    "status": "status",
    "updated_date": "updated_at",
}


class SnowflakeWorkoutStore:
    """
    WorkoutStore implementation on Snowflake.

    Each method maps to one statement. There are no transactions spanning
    calls; a replace is a DELETE followed by a separate INSERT.
    """

    def __init__(self, connection: SnowflakeConnection) -> None:
        self._conn = connection

    def list(self, collection: str) -> list[WorkoutRecord]:
        """Return every workout in the collection."""
        table = self._table(collection)
        cursor = self._conn.cursor()

        try:
            cursor.execute(f"""
                SELECT {", ".join(SELECT_COLUMNS)}
                FROM {table}
                ORDER BY created_at
            """)
            rows = cursor.fetchall()

        except Exception as e:
            logger.error(
                "Failed to list workouts",
                extra={"collection": collection, "error": str(e)}
            )
            raise WorkoutStoreError(f"Failed to list {collection}: {e}") from e

        finally:
            cursor.close()

        return self._build_records(rows)

    def create(self, collection: str, record: WorkoutRecord) -> WorkoutRecord:
        """Insert a new workout row."""
        table = self._table(collection)
        p = record.prescription
        cursor = self._conn.cursor()

        try:
            # INSERT ... SELECT because PARSE_JSON isn't allowed in VALUES
            cursor.execute(f"""
                INSERT INTO {table} ({", ".join(SELECT_COLUMNS)})
                SELECT %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s,
                       PARSE_JSON(%s), %s, %s
            """, (
                record.id,
                record.client_id,
                record.trainer_id,
                record.week_start_date,
                record.week_number,
                record.workout_slot,
                record.status.value,
                p.exercise_name,
                p.sets,
                p.reps,
                p.weight_or_resistance,
                p.tempo,
                p.rest_time_seconds,
                p.exercise_notes,
                p.exercise_video_url,
                self._modifications_json(p.modifications),
                record.created_date,
                record.updated_date,
            ))
            self._conn.commit()

        except Exception as e:
            logger.error(
                "Failed to create workout",
                extra={"record_id": record.id, "error": str(e)}
            )
            raise WorkoutStoreError(f"Failed to create workout: {e}") from e

        finally:
            cursor.close()

        return record

    def update(self, collection: str, record_id: str, fields: dict[str, Any]) -> None:
        """
        Apply a partial update.

        Raises:
            RecordNotFoundError: if no row has this id.
        """
        table = self._table(collection)

        unknown = set(fields) - set(UPDATE_COLUMNS)
        if unknown:
            raise ValueError(f"Cannot update fields: {sorted(unknown)}")
        if not fields:
            return

        assignments = []
        params: list[Any] = []
        for name, value in fields.items():
            column = UPDATE_COLUMNS[name]
            if name == "modifications":
                assignments.append(f"{column} = PARSE_JSON(%s)")
                params.append(self._modifications_json(value))
            elif name == "status":
                assignments.append(f"{column} = %s")
                params.append(WorkoutStatus(value).value)
            else:
                assignments.append(f"{column} = %s")
                params.append(value)
        params.append(record_id)

        cursor = self._conn.cursor()
        try:
            cursor.execute(f"""
                UPDATE {table}
                SET {", ".join(assignments)}
                WHERE workout_id = %s
            """, tuple(params))
            self._conn.commit()
            updated = cursor.rowcount

        except Exception as e:
            logger.error(
                "Failed to update workout",
                extra={"record_id": record_id, "error": str(e)}
            )
            raise WorkoutStoreError(f"Failed to update workout {record_id}: {e}") from e

        finally:
            cursor.close()

        if not updated:
            raise RecordNotFoundError(record_id)

    def delete(self, collection: str, record_id: str) -> None:
        """Delete a workout row. Deleting a missing id does nothing."""
        table = self._table(collection)
        cursor = self._conn.cursor()

        try:
            cursor.execute(f"""
                DELETE FROM {table}
                WHERE workout_id = %s
            """, (record_id,))
            self._conn.commit()
            deleted = cursor.rowcount

        except Exception as e:
            logger.error(
                "Failed to delete workout",
                extra={"record_id": record_id, "error": str(e)}
            )
            raise WorkoutStoreError(f"Failed to delete workout {record_id}: {e}") from e

        finally:
            cursor.close()

        if not deleted:
            logger.debug("Delete matched no workout", extra={"record_id": record_id})

    # -----------------------------------------------------------------------
    # Private Methods
    # -----------------------------------------------------------------------

    @staticmethod
    def _table(collection: str) -> str:
        try:
            return COLLECTION_TABLES[collection]
        except KeyError:
            raise WorkoutStoreError(f"Unknown collection: {collection}")

    @staticmethod
    def _modifications_json(modifications) -> str:
        return json.dumps([
            {"title": m.title, "description": m.description}
            for m in modifications or ()
        ])

    def _build_records(self, rows) -> list[WorkoutRecord]:
        """
        Convert rows, skipping any that fail validation.

        One malformed row (slot 0, no exercise name) must not hide every
        other client's workouts.
        """
        records = []
        for row in rows:
            try:
                records.append(self._build_record(row))
            except (ValueError, TypeError, KeyError) as e:
                logger.warning(
                    "Skipping invalid workout row",
                    extra={"workout_id": row[0] if row else None, "error": str(e)}
                )
        return records

    def _build_record(self, row) -> WorkoutRecord:
        """Construct a WorkoutRecord from a SELECT_COLUMNS row."""
        values = dict(zip(SELECT_COLUMNS, row))
        created = _as_aware(values["created_at"])
        # Completion time lives in updated_at; never invent one
        updated = _as_aware(values["updated_at"]) or created

        return WorkoutRecord(
            id=values["workout_id"],
            client_id=values["client_id"],
            trainer_id=values["trainer_id"],
            week_start_date=_as_date(values["week_start_date"]),
            week_number=values["week_number"] or 1,
            workout_slot=values["workout_slot"],
            status=WorkoutStatus(values["status"] or "assigned"),
            prescription=Prescription(
                exercise_name=values["exercise_name"],
                sets=values["sets"],
                reps=values["reps"],
                weight_or_resistance=values["weight_or_resistance"],
                tempo=values["tempo"],
                rest_time_seconds=values["rest_time_seconds"],
                exercise_notes=values["exercise_notes"],
                exercise_video_url=values["exercise_video_url"],
                modifications=self._parse_modifications(values["modifications"]),
            ),
            created_date=created,
            updated_date=updated,
        )

    def _parse_modifications(self, variant_data) -> tuple[Modification, ...]:
        """
        Parse the modifications VARIANT column.

        snowflake-connector-python hands VARIANT back as a JSON string;
        other drivers may return it already parsed.
        """
        if not variant_data:
            return ()

        if isinstance(variant_data, str):
            try:
                variant_data = json.loads(variant_data)
            except json.JSONDecodeError as e:
                logger.error(
                    "Failed to parse modifications JSON",
                    extra={"variant_data": variant_data[:100], "error": str(e)}
                )
                return ()

        if not isinstance(variant_data, list):
            logger.warning(
                "Modifications data is not a list after parsing",
                extra={"type": str(type(variant_data))}
            )
            return ()

        return tuple(
            Modification(title=m.get("title", ""), description=m.get("description", ""))
            for m in variant_data
            if isinstance(m, dict) and m.get("title")
        )


def _as_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, str):
        return date.fromisoformat(value[:10])
    return value


def _as_aware(value) -> Optional[datetime]:
    # TIMESTAMP_NTZ columns come back naive; they're written as UTC
    if value is None:
        return None
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
