"""
Configuration package.

Exports the singleton settings instance for easy importing.

Usage:
    from aegis.config import settings

    print(settings.database_url)
"""

from aegis.config.settings import Settings, settings, print_settings

__all__ = [
    "Settings",
    "settings",
    "print_settings",
]
