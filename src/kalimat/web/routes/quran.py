"""Quran reader endpoints: search, tafsir and word lists."""

from typing import Any

from fastapi import APIRouter, Depends, Query

from kalimat.core.search import search_quran, word_meanings
from kalimat.db.repository import EntityClient
from kalimat.errors import KalimatError
from kalimat.quran.tafsir import load_tafsir
from kalimat.web.deps import Services, get_elevated_client, get_services, http_error

router = APIRouter(prefix="/api/quran", tags=["quran"])


@router.get("/search")
async def search(
    q: str = Query(..., min_length=1),
    surah: int | None = Query(default=None, ge=1, le=114),
    client: EntityClient = Depends(get_elevated_client),
) -> dict[str, Any]:
    """Search ayahs with or without tashkeel, in one surah or everywhere."""
    try:
        results = search_quran(client, q, surah)
    except KalimatError as e:
        raise http_error(e) from e
    return {"query": q, "count": len(results), "results": results}


@router.get("/surahs/{surah}/tafsir")
async def surah_tafsir(
    surah: int,
    name: str = Query(...),
    client: EntityClient = Depends(get_elevated_client),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    """Tafsir of a surah keyed by ayah number."""
    try:
        tafsir = await load_tafsir(client, services.quran_api, surah, name)
    except KalimatError as e:
        raise http_error(e) from e
    return {"surah": surah, "tafsir_name": name, "ayahs": tafsir}


@router.get("/surahs/{surah}/meanings")
async def surah_meanings(
    surah: int,
    client: EntityClient = Depends(get_elevated_client),
) -> dict[str, str]:
    """Meaning of each word of a surah, keyed by the word without tashkeel."""
    try:
        words = client.QuranicWord.filter({"surah_number": surah})
    except KalimatError as e:
        raise http_error(e) from e
    return word_meanings(words)


@router.get("/verses/{surah}/{ayah}/words")
async def verse_words(
    surah: int,
    ayah: int,
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    """Words of a verse with absolute audio URLs."""
    try:
        words = await services.quran_api.verse_words(surah, ayah)
    except KalimatError as e:
        raise http_error(e) from e
    return {
        "verse_key": f"{surah}:{ayah}",
        "words": [
            {"position": w.position, "text": w.text, "audio_url": w.audio_url, "char_type": w.char_type}
            for w in words
        ],
        "ayah_audio_url": services.quran_api.ayah_audio_url(surah, ayah),
    }
