"""Configuration models and loaders."""

from hubcatalog.config.app import (
    CacheSettings,
    CatalogConfig,
    GitSettings,
    LocalizationSettings,
    LoggingSettings,
    SourceSettings,
    load_config,
    save_config,
)

__all__ = [
    "CacheSettings",
    "CatalogConfig",
    "GitSettings",
    "LocalizationSettings",
    "LoggingSettings",
    "SourceSettings",
    "load_config",
    "save_config",
]
