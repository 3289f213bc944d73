"""
Application configuration using Pydantic settings.

Settings come from environment variables (or .env). Snowflake mock mode
lets the API run locally with an in-memory workout store.
"""

from .settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
