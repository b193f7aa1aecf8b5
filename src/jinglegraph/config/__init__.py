"""Configuration Module."""

from jinglegraph.config.settings import (
    Neo4jSettings,
    ObservabilitySettings,
    QualitySettings,
    Settings,
    get_settings,
)

__all__ = [
    "Neo4jSettings",
    "ObservabilitySettings",
    "QualitySettings",
    "Settings",
    "get_settings",
]
