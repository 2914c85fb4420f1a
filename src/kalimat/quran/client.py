"""Client for the public Quran text, audio and tafsir services.

Endpoints:
- {base_url}/verses/by_key/{surah}:{ayah}?words=true&word_fields=text_uthmani,audio_url
- {base_url}/quran/tafsirs/{tafsir_id}
- {ayah_audio_base}/{reciter}/{SSS}{AAA}.mp3, then the configured mirrors

Word audio URLs come back relative ("wbw/001_001_001.mp3") and are resolved
against the word audio host.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import httpx
import structlog

from kalimat.config.app_config import QuranApiConfig
from kalimat.errors import QuranApiError

logger = structlog.get_logger(__name__)


@dataclass
class VerseWord:
    """One word of a verse as returned by the verses endpoint."""

    position: int
    text: str
    audio_url: str | None = None
    char_type: str = "word"


class QuranApiClient:
    """Async client for the Quran API.

    Args:
        config: Endpoint configuration (default: built-in endpoints)
        transport: Optional httpx transport, used by tests
    """

    def __init__(
        self,
        config: QuranApiConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.config = config or QuranApiConfig()
        self.transport = transport

    async def _fetch(self, endpoint: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        """GET a JSON document from the API.

        Raises:
            QuranApiError: On HTTP or transport failure
        """
        url = f"{self.config.base_url}{endpoint}"
        async with httpx.AsyncClient(
            transport=self.transport, timeout=self.config.timeout_seconds
        ) as client:
            try:
                response = await client.get(url, params=params)
                response.raise_for_status()
                return response.json()
            except httpx.HTTPStatusError as e:
                logger.error("quran_api.http_error", status=e.response.status_code, endpoint=endpoint)
                raise QuranApiError(f"Quran API returned {e.response.status_code} for {endpoint}") from e
            except httpx.RequestError as e:
                logger.error("quran_api.request_error", endpoint=endpoint, error=str(e))
                raise QuranApiError(f"Quran API request failed: {e}") from e

    def word_audio_url(self, audio_url: str | None) -> str | None:
        """Absolute URL for a word clip."""
        if not audio_url:
            return None
        if audio_url.startswith(("http://", "https://")):
            return audio_url
        base = self.config.word_audio_base.rstrip("/")
        return f"{base}/{audio_url.lstrip('/')}"

    def ayah_audio_url(self, surah: int, ayah: int, reciter: str | None = None) -> str:
        """URL of a full-ayah recitation, e.g. .../Husary_128kbps/002255.mp3."""
        reciter = reciter or self.config.default_reciter
        return f"{self.config.ayah_audio_base}/{reciter}/{surah:03d}{ayah:03d}.mp3"

    def ayah_audio_sources(self, surah: int, ayah: int, reciter: str | None = None) -> list[str]:
        """Candidate URLs for an ayah: the reciter clip, then the configured mirrors."""
        sources = [self.ayah_audio_url(surah, ayah, reciter)]
        for template in self.config.ayah_audio_fallbacks:
            url = template.format(surah=surah, ayah=ayah)
            if url not in sources:
                sources.append(url)
        return sources

    async def verse_words(self, surah: int, ayah: int) -> list[VerseWord]:
        """Words of a verse with their audio clips, in reading order.

        Raises:
            QuranApiError: If the verse cannot be fetched
        """
        data = await self._fetch(
            f"/verses/by_key/{surah}:{ayah}",
            params={"words": "true", "word_fields": "text_uthmani,audio_url"},
        )
        raw_words = (data.get("verse") or {}).get("words") or []
        words = [
            VerseWord(
                position=w.get("position") or i + 1,
                text=w.get("text_uthmani") or w.get("text") or "",
                audio_url=self.word_audio_url(w.get("audio_url")),
                char_type=w.get("char_type_name") or "word",
            )
            for i, w in enumerate(raw_words)
        ]
        logger.debug("quran_api.verse_words", verse_key=f"{surah}:{ayah}", words=len(words))
        return words

    async def tafsir(self, tafsir_id: str | int) -> list[dict[str, Any]]:
        """All entries of a tafsir resource.

        Returns:
            List of dicts with at least verse_key and text
        """
        data = await self._fetch(f"/quran/tafsirs/{tafsir_id}")
        return data.get("tafsirs") or []
