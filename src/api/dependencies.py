"""
FastAPI dependency injection.

Dependencies provide instances of services, stores, and configuration
to route handlers. Using dependency injection means:
- Routes don't instantiate their own dependencies (easier to test)
- Dependencies can be overridden in tests
- Configuration is centralized
- Connection lifecycle is managed per request

Each dependency is a function that FastAPI calls when needed.
"""

import logging
from typing import Annotated, Generator

from fastapi import Depends, HTTPException, Security, status
from fastapi.security import APIKeyHeader

from ..config.settings import Settings, get_settings
from ..core.adherence.classifier import AdherenceClassifier
from ..core.adherence.service import AdherenceService
from ..core.adherence.store import FeedbackStore
from ..core.workouts.resolver import WorkoutConflictResolver
from ..core.workouts.store import WorkoutStore
from ..infrastructure.snowflake.client import (
    MockSnowflakeConnection,
    get_snowflake_connection,
)
from ..infrastructure.snowflake.repositories.feedback import SnowflakeFeedbackStore
from ..infrastructure.snowflake.repositories.workouts import (
    SnowflakeConfig,
    SnowflakeConnection,
    SnowflakeWorkoutStore,
)

logger = logging.getLogger(__name__)

# API Key security scheme
api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)

# Shared mock connection so data persists across requests in mock mode
_mock_snowflake_connection = None


def get_mock_connection() -> MockSnowflakeConnection:
    global _mock_snowflake_connection

    if _mock_snowflake_connection is None:
        _mock_snowflake_connection = MockSnowflakeConnection()
        logger.info("Created shared mock Snowflake connection")
    return _mock_snowflake_connection


def reset_mock_connection() -> None:
    """Drop the shared mock connection (tests start from an empty store)."""
    global _mock_snowflake_connection
    _mock_snowflake_connection = None


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------

async def verify_api_key(
    settings: Annotated[Settings, Depends(get_settings)],
    api_key: str = Security(api_key_header),
) -> str:
    """
    Validate API key from request header.

    Raises 403 if key is invalid or missing.
    """
    if not api_key:
        logger.warning("Request missing API key")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="API key required. Provide X-API-Key header.",
        )

    if api_key not in settings.api_keys_list:
        logger.warning(
            "Invalid API key attempt",
            extra={"key_prefix": api_key[:8]}
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid API key",
        )

    return api_key


# ---------------------------------------------------------------------------
# Store and Service Dependencies
# ---------------------------------------------------------------------------

def get_connection(
    settings: Annotated[Settings, Depends(get_settings)],
) -> Generator[SnowflakeConnection, None, None]:
    """
    Provide a database connection for the request.

    A generator so the connection is closed after the request. FastAPI
    caches it per request, so every store in one request shares it.
    In mock mode the same in-memory connection is reused across requests.
    """
    if settings.snowflake_mock_mode:
        logger.debug("Using shared mock Snowflake connection")
        yield get_mock_connection()
        return

    config = SnowflakeConfig(
        account=settings.snowflake_account,
        user=settings.snowflake_user,
        password=settings.snowflake_password or None,
        private_key_path=settings.snowflake_private_key_path,
        private_key_base64=settings.snowflake_private_key_base64,
        database=settings.snowflake_database,
        schema=settings.snowflake_schema,
        warehouse=settings.snowflake_warehouse,
        role=settings.snowflake_role,
    )

    with get_snowflake_connection(config) as conn:
        yield conn


def get_workout_store(
    conn: Annotated[SnowflakeConnection, Depends(get_connection)],
) -> WorkoutStore:
    return SnowflakeWorkoutStore(conn)


def get_feedback_store(
    conn: Annotated[SnowflakeConnection, Depends(get_connection)],
) -> FeedbackStore:
    return SnowflakeFeedbackStore(conn)


def get_conflict_resolver(
    settings: Annotated[Settings, Depends(get_settings)],
    store: Annotated[WorkoutStore, Depends(get_workout_store)],
) -> WorkoutConflictResolver:
    return WorkoutConflictResolver(store, collection=settings.workouts_collection)


def get_adherence_classifier(
    settings: Annotated[Settings, Depends(get_settings)],
) -> AdherenceClassifier:
    return AdherenceClassifier(
        inactive_after_days=settings.adherence_inactive_days,
        at_risk_missed_workouts=settings.adherence_at_risk_missed,
        window_days=settings.adherence_window_days,
    )


def get_adherence_service(
    settings: Annotated[Settings, Depends(get_settings)],
    store: Annotated[WorkoutStore, Depends(get_workout_store)],
    classifier: Annotated[AdherenceClassifier, Depends(get_adherence_classifier)],
    feedback_store: Annotated[FeedbackStore, Depends(get_feedback_store)],
) -> AdherenceService:
    return AdherenceService(
        store,
        classifier,
        collection=settings.workouts_collection,
        feedback_store=feedback_store,
        feedback_collection=settings.feedback_collection,
    )


# ---------------------------------------------------------------------------
# Convenience Type Aliases
# ---------------------------------------------------------------------------

# These type aliases make route signatures cleaner
AuthenticatedUser = Annotated[str, Depends(verify_api_key)]
WorkoutStoreDep = Annotated[WorkoutStore, Depends(get_workout_store)]
ConflictResolverDep = Annotated[WorkoutConflictResolver, Depends(get_conflict_resolver)]
AdherenceServiceDep = Annotated[AdherenceService, Depends(get_adherence_service)]
SettingsDep = Annotated[Settings, Depends(get_settings)]
