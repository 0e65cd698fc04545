"""
Settings dependency for the HTTP layer.

Routes receive ``AppSettings`` through ``Depends(get_app_settings)`` so tests
can swap in a copy via ``app.dependency_overrides``.
"""

from toniesync.core.config import AppSettings, get_settings


def get_app_settings() -> AppSettings:
    return get_settings()


__all__ = ["get_app_settings"]
