"""Ayah search and word-meaning lookup over normalized Arabic."""

from __future__ import annotations

from typing import Any

from kalimat.utils.text_utils import normalize_arabic, strip_tashkeel

FULL_QURAN_LIMIT = 7000
LONGEST_SURAH = 500


def search_ayahs(ayahs: list[dict[str, Any]], query: str) -> list[dict[str, Any]]:
    """Ayahs whose normalized text contains the normalized query.

    An empty query returns the input unchanged.
    """
    needle = normalize_arabic(query)
    if not needle:
        return ayahs
    return [
        ayah
        for ayah in ayahs
        if needle in normalize_arabic(ayah.get("ayah_text") or ayah.get("ayah_text_simple") or "")
    ]


def load_surah(client: Any, surah_number: int) -> list[dict[str, Any]]:
    """All ayahs of a surah in order."""
    ayahs = client.QuranAyah.filter({"surah_number": surah_number}, "ayah_number", LONGEST_SURAH)
    return sorted(ayahs, key=lambda a: a.get("ayah_number") or 0)


def search_quran(
    client: Any, query: str, surah_number: int | None = None
) -> list[dict[str, Any]]:
    """Search one surah, or the whole Quran when no surah is given."""
    if surah_number is not None:
        ayahs = load_surah(client, surah_number)
    else:
        ayahs = client.QuranAyah.list("-id", FULL_QURAN_LIMIT)
    return search_ayahs(ayahs, query)


def word_meanings(words: list[dict[str, Any]]) -> dict[str, str]:
    """Map of word without tashkeel -> meaning."""
    meanings: dict[str, str] = {}
    for word in words:
        key = strip_tashkeel(word.get("word"))
        if key:
            meanings[key] = word.get("meaning") or ""
    return meanings
