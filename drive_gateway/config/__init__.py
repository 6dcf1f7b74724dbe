"""
Application configuration using Pydantic settings.

Configuration comes from environment variables with sensible defaults.
Supports a mock Drive mode for local development.
"""

from .settings import DEFAULT_CATEGORIES, Settings, get_settings

__all__ = ["DEFAULT_CATEGORIES", "Settings", "get_settings"]
