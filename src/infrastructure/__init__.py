"""
Infrastructure layer - external service integrations.

Each subdirectory wraps an external dependency:
- snowflake: Workout persistence (with an in-memory mock for local dev)

These wrappers translate between external formats and our domain models.
"""
