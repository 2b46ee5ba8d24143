"""
statecraft configuration.

Pydantic-based settings loaded from environment variables and .env files.
"""

from statecraft.config.settings import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
]
