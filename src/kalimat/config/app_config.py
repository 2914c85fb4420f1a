"""Application configuration loader.

Loads centralized configuration from data/config/app_config_v1.yaml and
applies environment overrides for the store URL and keys.

Usage:
    from kalimat.config.app_config import load_app_config

    config = load_app_config()
    key = config.store.get_service_key()
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import structlog
import yaml

logger = structlog.get_logger(__name__)

# Config file path (relative to project root)
CONFIG_FILE = Path("data/config/app_config_v1.yaml")

AYAH_AUDIO_FALLBACKS = (
    "https://verses.quran.com/{surah}_{ayah}.mp3",
    "https://cdn.alquran.cloud/media/audio/ayah/ar.alafasy/{surah}:{ayah}",
    "https://everyayah.com/data/Alafasy_128kbps/{surah:03d}{ayah:03d}.mp3",
)


@dataclass
class StoreConfig:
    """Configuration for the relational store.

    ``kind`` is "sqlite" for a local database file or "supabase" for the
    hosted REST endpoint. Keys are read from the named environment variables.
    """

    kind: str = "sqlite"
    db_path: str = "db/kalimat.db"
    url: str | None = None
    anon_key_env: str | None = "SUPABASE_ANON_KEY"
    service_key_env: str | None = "SUPABASE_SERVICE_ROLE_KEY"
    page_size: int = 1000

    def get_anon_key(self) -> str | None:
        """Get the public (row-level-security) key from environment."""
        if self.anon_key_env:
            return os.environ.get(self.anon_key_env)
        return None

    def get_service_key(self) -> str | None:
        """Get the elevated service-role key from environment."""
        if self.service_key_env:
            return os.environ.get(self.service_key_env)
        return None


@dataclass
class QuranApiConfig:
    """Endpoints of the third-party Quran services."""

    base_url: str = "https://api.quran.com/api/v4"
    word_audio_base: str = "https://verses.quran.com/"
    ayah_audio_base: str = "https://everyayah.com/data"
    default_reciter: str = "Husary_128kbps"
    # Mirrors tried in order when the reciter clip fails; {surah} and {ayah} are filled in
    ayah_audio_fallbacks: list[str] = field(default_factory=lambda: list(AYAH_AUDIO_FALLBACKS))
    timeout_seconds: float = 30.0


@dataclass
class PlaybackConfig:
    """Timing for the audio sequencers (milliseconds)."""

    word_gap_ms: int = 400
    ayah_gap_ms: int = 500
    playback_rate: float = 1.0


@dataclass
class AppConfig:
    """Application-wide configuration."""

    store: StoreConfig = field(default_factory=StoreConfig)
    quran_api: QuranApiConfig = field(default_factory=QuranApiConfig)
    playback: PlaybackConfig = field(default_factory=PlaybackConfig)
    paths: dict[str, str] = field(default_factory=dict)


# Module-level cache
_cached_config: AppConfig | None = None


def _get_defaults() -> dict[str, Any]:
    """Get default configuration values."""
    return {
        "store": {
            "kind": "sqlite",
            "db_path": "db/kalimat.db",
            "url": None,
            "anon_key_env": "SUPABASE_ANON_KEY",
            "service_key_env": "SUPABASE_SERVICE_ROLE_KEY",
            "page_size": 1000,
        },
        "quran_api": {
            "base_url": "https://api.quran.com/api/v4",
            "word_audio_base": "https://verses.quran.com/",
            "ayah_audio_base": "https://everyayah.com/data",
            "default_reciter": "Husary_128kbps",
            "ayah_audio_fallbacks": list(AYAH_AUDIO_FALLBACKS),
            "timeout_seconds": 30.0,
        },
        "playback": {
            "word_gap_ms": 400,
            "ayah_gap_ms": 500,
            "playback_rate": 1.0,
        },
        "paths": {
            "config_dir": "data/config",
        },
    }


def _apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    """Apply SUPABASE_URL / KALIMAT_DB_PATH from the environment.

    A SUPABASE_URL switches the store to the hosted backend unless the
    config file pins ``kind`` explicitly.
    """
    store = data.setdefault("store", {})

    url = os.environ.get("SUPABASE_URL")
    if url:
        store["url"] = url
        if not store.get("kind_pinned"):
            store["kind"] = "supabase"

    db_path = os.environ.get("KALIMAT_DB_PATH")
    if db_path:
        store["db_path"] = db_path

    return data


def _parse_config(data: dict[str, Any]) -> AppConfig:
    """Parse configuration dictionary into AppConfig object."""
    defaults = _get_defaults()

    store_data = {**defaults["store"], **(data.get("store") or {})}
    store = StoreConfig(
        kind=store_data["kind"],
        db_path=store_data["db_path"],
        url=store_data.get("url"),
        anon_key_env=store_data.get("anon_key_env"),
        service_key_env=store_data.get("service_key_env"),
        page_size=int(store_data.get("page_size", 1000)),
    )

    api_data = {**defaults["quran_api"], **(data.get("quran_api") or {})}
    quran_api = QuranApiConfig(
        base_url=api_data["base_url"].rstrip("/"),
        word_audio_base=api_data["word_audio_base"],
        ayah_audio_base=api_data["ayah_audio_base"].rstrip("/"),
        default_reciter=api_data["default_reciter"],
        ayah_audio_fallbacks=list(api_data.get("ayah_audio_fallbacks") or []),
        timeout_seconds=float(api_data["timeout_seconds"]),
    )

    playback_data = {**defaults["playback"], **(data.get("playback") or {})}
    playback = PlaybackConfig(
        word_gap_ms=int(playback_data["word_gap_ms"]),
        ayah_gap_ms=int(playback_data["ayah_gap_ms"]),
        playback_rate=float(playback_data["playback_rate"]),
    )

    paths = data.get("paths", defaults["paths"])

    return AppConfig(store=store, quran_api=quran_api, playback=playback, paths=paths)


def load_app_config(force_reload: bool = False) -> AppConfig:
    """Load application config, falling back to defaults.

    Args:
        force_reload: If True, ignore cached config and reload from file.

    Returns:
        AppConfig object with all settings.
    """
    global _cached_config

    if _cached_config is not None and not force_reload:
        return _cached_config

    data: dict[str, Any]

    if CONFIG_FILE.exists():
        logger.debug("loading_app_config", source=str(CONFIG_FILE))
        data = yaml.safe_load(CONFIG_FILE.read_text(encoding="utf-8")) or {}
        if "kind" in (data.get("store") or {}):
            data["store"]["kind_pinned"] = True
    else:
        logger.info("using_default_config")
        data = _get_defaults()

    data = _apply_env_overrides(data)

    _cached_config = _parse_config(data)
    logger.debug("store_configured", kind=_cached_config.store.kind)
    return _cached_config


def clear_config_cache() -> None:
    """Clear the configuration cache.

    Useful for testing or when config is modified at runtime.
    """
    global _cached_config
    _cached_config = None
