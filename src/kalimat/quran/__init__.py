"""Quran text, tafsir and audio services."""

from kalimat.quran.client import QuranApiClient, VerseWord
from kalimat.quran.playback import (
    AudioSink,
    AyahRangePlayer,
    PlaybackObserver,
    PlaybackResult,
    WordByWordPlayer,
)
from kalimat.quran.tafsir import load_tafsir

__all__ = [
    "QuranApiClient",
    "VerseWord",
    "AudioSink",
    "AyahRangePlayer",
    "PlaybackObserver",
    "PlaybackResult",
    "WordByWordPlayer",
    "load_tafsir",
]
