"""
Converge configuration.

Pydantic-based settings read from environment variables and ``.env`` files.
"""

from converge.config.settings import DEFAULT_API_URL, Settings, get_settings

__all__ = [
    "DEFAULT_API_URL",
    "Settings",
    "get_settings",
]
