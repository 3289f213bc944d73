"""
Interface for the hosted workout collection.

The backing service is a plain CRUD collection: no server-side filters,
no pagination, no transactions, no conditional writes. Every "did this
change?" question is answered by listing the whole collection again.
"""

from typing import Any, Protocol

from .models import WorkoutRecord

DEFAULT_COLLECTION = "clientassignedworkouts"


class WorkoutStore(Protocol):
    """
    CRUD access to a collection of workout records.

    Implementations raise WorkoutStoreError when the store is unreachable
    or rejects the request.
    """

    def list(self, collection: str) -> list[WorkoutRecord]:
        """Return every record in the collection, unfiltered."""
        ...

    def create(self, collection: str, record: WorkoutRecord) -> WorkoutRecord:
        """Persist a new record and return it as stored."""
        ...

    def update(self, collection: str, record_id: str, fields: dict[str, Any]) -> None:
        """Apply a partial update to an existing record."""
        ...

    def delete(self, collection: str, record_id: str) -> None:
        """Remove a record."""
        ...
