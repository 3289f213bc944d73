"""
Snowflake database connection management.

Provides a context manager for real Snowflake connections, plus an
in-memory mock connection for local development and tests.

Most code never touches this module directly - it goes through
SnowflakeWorkoutStore, which handles the translation between domain
models and database rows.
"""

import base64
import logging
import re
from contextlib import contextmanager
from typing import Generator, Optional

from .repositories.workouts import SnowflakeConfig, SnowflakeConnection

logger = logging.getLogger(__name__)


class SnowflakeConnectionError(Exception):
    """Raised when Snowflake connection fails."""
    pass


def _load_private_key(key_path: Optional[str] = None, key_base64: Optional[str] = None):
    """
    Load private key for key-pair authentication.

    Snowflake requires the private key as DER bytes, not a file path.
    The key comes either from a PEM file or from a base64-encoded PEM
    string (for deployments where mounting files is awkward).
    """
    from cryptography.hazmat.backends import default_backend
    from cryptography.hazmat.primitives import serialization

    if key_base64:
        pem = base64.b64decode(key_base64)
    else:
        with open(key_path, 'rb') as key_file:
            pem = key_file.read()

    private_key = serialization.load_pem_private_key(
        pem,
        password=None,  # No password on the key
        backend=default_backend()
    )

    return private_key.private_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption()
    )


@contextmanager
def get_snowflake_connection(config: SnowflakeConfig) -> Generator[SnowflakeConnection, None, None]:
    """
    Provide Snowflake connection with automatic cleanup.

    Supports both password and key-pair authentication:
    - If a private key (path or base64) is set, uses key-pair auth
    - Otherwise, uses password auth

    Usage:
        with get_snowflake_connection(config) as conn:
            store = SnowflakeWorkoutStore(conn)
    """
    try:
        import snowflake.connector
    except ImportError:
        raise ImportError(
            "snowflake-connector-python is required. "
            "Install with: pip install snowflake-connector-python"
        )

    connect_params = {
        'account': config.account,
        'user': config.user,
        'database': config.database,
        'schema': config.schema,
        'warehouse': config.warehouse,
        'role': config.role,
        'client_session_keep_alive': True,
    }

    if config.private_key_path or config.private_key_base64:
        logger.info("Using key-pair authentication for Snowflake")
        connect_params['private_key'] = _load_private_key(
            config.private_key_path, config.private_key_base64
        )
    elif config.password:
        logger.info("Using password authentication for Snowflake")
        connect_params['password'] = config.password
    else:
        raise SnowflakeConnectionError(
            "Either password or a private key must be provided"
        )

    try:
        conn = snowflake.connector.connect(**connect_params)
    except snowflake.connector.errors.DatabaseError as e:
        logger.error(
            "Snowflake connection failed",
            extra={"error": str(e), "account": config.account}
        )
        raise SnowflakeConnectionError(f"Database connection failed: {e}") from e

    logger.debug(
        "Established Snowflake connection",
        extra={
            "account": config.account,
            "database": config.database,
            "schema": config.schema,
        }
    )

    try:
        yield conn
    finally:
        try:
            conn.close()
            logger.debug("Closed Snowflake connection")
        except Exception as e:
            logger.warning(
                "Error closing Snowflake connection",
                extra={"error": str(e)}
            )


# ---------------------------------------------------------------------------
# Mock Connection for Local Development
# ---------------------------------------------------------------------------

class MockDatabaseError(Exception):
    """Simulated database failure raised by the mock connection."""
    pass


_SELECT_RE = re.compile(r"^SELECT\s+(?P<columns>.*?)\s+FROM\s+(?P<table>\w+)", re.DOTALL)
_INSERT_RE = re.compile(r"^INSERT INTO\s+(?P<table>\w+)\s*\((?P<columns>[^)]*)\)", re.DOTALL)
_UPDATE_RE = re.compile(
    r"^UPDATE\s+(?P<table>\w+)\s+SET\s+(?P<assignments>.*?)\s+WHERE\s+(?P<key>\w+)\s*=\s*%S",
    re.DOTALL,
)
_DELETE_RE = re.compile(
    r"^DELETE FROM\s+(?P<table>\w+)\s+WHERE\s+(?P<key>\w+)\s*=\s*%S",
    re.DOTALL,
)


class MockSnowflakeCursor:
    """
    Mock Snowflake cursor for testing.

    Implements just enough of the cursor interface to support
    SnowflakeWorkoutStore without a real database. Rows live in a dict
    per table, keyed by the row's primary key (its first column).

    Handles the single-table SELECT, INSERT, UPDATE and DELETE statements
    the store issues by pattern matching. Joins and predicates on SELECT
    are not supported.
    """

    def __init__(self, connection: 'MockSnowflakeConnection') -> None:
        self._connection = connection
        self._storage = connection._storage
        self._results: list = []
        self._rowcount: int = 0

    def execute(self, query: str, params: Optional[tuple] = None) -> 'MockSnowflakeCursor':
        """Execute a query against mock storage."""
        logger.debug(
            "Mock cursor execute",
            extra={"query": query[:100], "params": params}
        )

        query_upper = query.upper().strip()
        operation = query_upper.split(None, 1)[0].lower()

        if operation in self._connection._failures:
            self._connection._failures.discard(operation)
            raise MockDatabaseError(f"Simulated {operation} failure")

        if operation == 'select':
            self._handle_select(query_upper)
        elif operation == 'insert':
            self._handle_insert(query_upper, params or ())
        elif operation == 'update':
            self._handle_update(query_upper, params or ())
        elif operation == 'delete':
            self._handle_delete(query_upper, params or ())

        return self

    def _table(self, name: str) -> dict:
        return self._storage.setdefault(name.lower(), {})

    def _handle_select(self, query: str) -> None:
        match = _SELECT_RE.match(query)
        if not match:
            self._results = []
            return

        columns = [c.strip().lower() for c in match.group('columns').split(',')]
        rows = sorted(
            self._table(match.group('table')).values(),
            key=lambda row: row['_sequence'],
        )
        self._results = [tuple(row.get(c) for c in columns) for row in rows]
        self._rowcount = len(self._results)

    def _handle_insert(self, query: str, params: tuple) -> None:
        match = _INSERT_RE.match(query)
        if not match:
            return

        columns = [c.strip().lower() for c in match.group('columns').split(',')]
        row = dict(zip(columns, params))
        self._connection._sequence += 1
        row['_sequence'] = self._connection._sequence

        self._table(match.group('table'))[str(params[0])] = row
        self._rowcount = 1

    def _handle_update(self, query: str, params: tuple) -> None:
        match = _UPDATE_RE.match(query)
        if not match:
            return

        columns = [
            part.split('=')[0].strip().lower()
            for part in match.group('assignments').split(',')
        ]
        row = self._table(match.group('table')).get(str(params[-1]))
        if row is None:
            self._rowcount = 0
            return

        row.update(zip(columns, params[:-1]))
        self._rowcount = 1

    def _handle_delete(self, query: str, params: tuple) -> None:
        match = _DELETE_RE.match(query)
        if not match:
            return

        removed = self._table(match.group('table')).pop(str(params[0]), None)
        self._rowcount = 1 if removed is not None else 0

    def fetchall(self) -> list:
        """Fetch all rows from results."""
        return self._results

    def close(self) -> None:
        """Close cursor (no-op for mock)."""
        pass

    @property
    def rowcount(self) -> int:
        """Return number of rows affected."""
        return self._rowcount


class MockSnowflakeConnection:
    """
    Mock Snowflake connection for local development.

    Stores data in memory using a simple dictionary structure.
    This enables testing the full API without a real database.

    Not suitable for production, but perfect for:
    - Local development
    - Unit tests
    - CI/CD environments
    """

    def __init__(self) -> None:
        # In-memory storage: {table_name: {id: row_dict}}
        self._storage: dict[str, dict[str, dict]] = {
            'client_assigned_workouts': {},
            'client_workout_feedback': {},
        }
        self._sequence = 0
        self._failures: set[str] = set()

        logger.info("Initialized mock Snowflake connection (in-memory)")

    def cursor(self) -> MockSnowflakeCursor:
        """Create a mock cursor."""
        return MockSnowflakeCursor(self)

    def commit(self) -> None:
        """Commit transaction (no-op for mock, always auto-commits)."""
        logger.debug("Mock connection commit")

    def rollback(self) -> None:
        """Rollback transaction (no-op for mock)."""
        logger.debug("Mock connection rollback")

    def close(self) -> None:
        """Close connection (no-op for mock)."""
        logger.debug("Mock connection close")

    # Helper methods for testing
    def _fail_next(self, operation: str) -> None:
        """Make the next select/insert/update/delete raise MockDatabaseError."""
        self._failures.add(operation.lower())

    def _rows(self, table: str = 'client_assigned_workouts') -> list[dict]:
        """Raw rows of a table (for test assertions)."""
        return list(self._storage.get(table, {}).values())

