"""Configuration package for kalimat."""

from kalimat.config.app_config import (
    AppConfig,
    PlaybackConfig,
    QuranApiConfig,
    StoreConfig,
    clear_config_cache,
    load_app_config,
)

__all__ = [
    "AppConfig",
    "PlaybackConfig",
    "QuranApiConfig",
    "StoreConfig",
    "clear_config_cache",
    "load_app_config",
]
