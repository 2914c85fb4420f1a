"""Tafsir lookup: local rows first, the public API as fallback."""

from __future__ import annotations

from typing import Any

import structlog

from kalimat.errors import QuranApiError
from kalimat.quran.client import QuranApiClient

logger = structlog.get_logger(__name__)

NO_TAFSIR = "none"
TAFSIR_PREFIX = "ar-tafseer-"


def tafsir_id_for(tafsir_name: str) -> str:
    """API resource id for a tafsir name such as "ar-tafseer-16"."""
    return tafsir_name.replace(TAFSIR_PREFIX, "")


def surah_entries(entries: list[dict[str, Any]], surah_number: int) -> dict[int, str]:
    """Map ayah number -> text for the entries of one surah."""
    result: dict[int, str] = {}
    for entry in entries:
        verse_key = entry.get("verse_key") or ""
        surah, _, ayah = verse_key.partition(":")
        if not surah.isdigit() or not ayah.isdigit():
            continue
        if int(surah) == surah_number:
            result[int(ayah)] = entry.get("text") or ""
    return result


async def load_tafsir(
    client: Any, api: QuranApiClient, surah_number: int, tafsir_name: str
) -> dict[int, str]:
    """Tafsir of a surah keyed by ayah number.

    Local quran_tafsirs rows win. When there are none the public API is
    asked; if that fails too the result is empty.
    """
    if tafsir_name == NO_TAFSIR:
        return {}

    rows = client.QuranTafsir.filter({"surah_number": surah_number, "tafsir_name": tafsir_name})
    if rows:
        return {row["ayah_number"]: row.get("tafsir_text") or "" for row in rows}

    try:
        entries = await api.tafsir(tafsir_id_for(tafsir_name))
    except QuranApiError as e:
        logger.warning("tafsir.fallback_failed", surah=surah_number, tafsir=tafsir_name, error=str(e))
        return {}

    result = surah_entries(entries, surah_number)
    logger.debug("tafsir.loaded_from_api", surah=surah_number, tafsir=tafsir_name, ayahs=len(result))
    return result
