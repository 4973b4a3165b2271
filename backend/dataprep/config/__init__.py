"""
Configuration access point

    from dataprep.config import get_settings

    settings = get_settings()
    topic = settings.analysis.format_analysis_topic
"""

from .settings import (
    AnalysisSettings,
    ApplicationSettings,
    DatabaseSettings,
    Environment,
    LockSettings,
    ServiceSettings,
    StorageBackend,
    StorageSettings,
    get_settings,
    reload_settings,
)

__all__ = [
    "AnalysisSettings",
    "ApplicationSettings",
    "DatabaseSettings",
    "Environment",
    "LockSettings",
    "ServiceSettings",
    "StorageBackend",
    "StorageSettings",
    "get_settings",
    "reload_settings",
]
