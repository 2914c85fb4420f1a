"""Audio sequencers: word-by-word, phrase and ayah-range playback.

The players drive an AudioSink one clip at a time and publish progress to
an observer. Stopping sets a flag that is checked between clips; the sink is
also asked to stop so a clip in progress ends early, but nothing is
interrupted mid-iteration.

Usage:
    player = WordByWordPlayer(QuranApiClient(), sink, observer)
    result = await player.play(1, 1)
    # from another task
    player.stop()
"""

from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass
from typing import Protocol

import structlog

from kalimat.config.app_config import PlaybackConfig
from kalimat.errors import QuranApiError, ValidationError
from kalimat.quran.client import QuranApiClient, VerseWord
from kalimat.utils.text_utils import normalize_arabic

logger = structlog.get_logger(__name__)

STATUS_COMPLETED = "completed"
STATUS_STOPPED = "stopped"
STATUS_UNAVAILABLE = "unavailable"
STATUS_FAILED = "failed"
STATUS_NOT_FOUND = "not_found"


class AudioSink(Protocol):
    """Something that can play one clip at a time."""

    async def play(self, url: str, rate: float = 1.0) -> None:
        """Play a clip and return when it ends."""
        ...

    def stop(self) -> None:
        """Stop the clip in progress, if any."""
        ...


class PlaybackObserver:
    """Receives playback progress. Override the hooks you need."""

    def started(self, items: list[str]) -> None:
        pass

    def word(self, index: int) -> None:
        pass

    def ayah(self, number: int) -> None:
        pass

    def finished(self, completed: bool) -> None:
        pass


@dataclass
class PlaybackResult:
    """Outcome of one playback run."""

    status: str
    played: int = 0
    skipped: int = 0
    error: str | None = None

    @property
    def completed(self) -> bool:
        return self.status == STATUS_COMPLETED


# =============================================================================
# PHRASE MATCHING
# =============================================================================

# Anything outside the Arabic block (punctuation, latin, ...) and tatweel
_NON_ARABIC_RE = re.compile(r"[^\u0600-\u06FF\s]|\u0640")


def phrase_key(text: str | None) -> str:
    """Normalized form used to compare a phrase with verse words."""
    return _NON_ARABIC_RE.sub("", normalize_arabic(text)).strip()


def _similar(verse_word: str, part: str) -> bool:
    if not verse_word or not part:
        return False
    return verse_word == part or part in verse_word or verse_word in part


def match_phrase(words: list[VerseWord], phrase: str) -> list[VerseWord]:
    """Verse words that spell ``phrase``, a single word or several.

    Tried in order:
    1. a run of consecutive words matching each part of the phrase in order
    2. for multi-word phrases, the first match of every part in any order
    3. for single words, a match that also ignores alef

    A word matches a part when either contains the other after
    normalization, so prefixed forms ("والنهار" for "النهار") still match.

    Raises:
        ValidationError: If the phrase has no Arabic letters
    """
    parts = phrase_key(phrase).split()
    if not parts:
        raise ValidationError("Phrase has no Arabic letters")

    # the ayah-number marker is not a word
    words = [w for w in words if w.char_type != "end"]
    keys = [phrase_key(w.text) for w in words]

    for start in range(len(words) - len(parts) + 1):
        if all(_similar(keys[start + j], part) for j, part in enumerate(parts)):
            return words[start : start + len(parts)]

    if len(parts) > 1:
        found: list[VerseWord] = []
        for part in parts:
            for word, key in zip(words, keys):
                if _similar(key, part):
                    found.append(word)
                    break
        return found if len(found) == len(parts) else []

    target = parts[0].replace("ا", "")
    if target:
        for word, key in zip(words, keys):
            bare = key.replace("ا", "")
            if bare and (bare == target or target in bare):
                return [word]
    return []


class _Sequencer:
    def __init__(
        self,
        sink: AudioSink,
        observer: PlaybackObserver | None = None,
        gap_ms: int = 0,
        rate: float = 1.0,
    ):
        self.sink = sink
        self.observer = observer or PlaybackObserver()
        self.gap_ms = gap_ms
        self.rate = rate
        self._stop_requested = False
        self._playing = False

    @property
    def is_playing(self) -> bool:
        return self._playing

    def stop(self) -> None:
        """Request the run to stop before the next clip."""
        self._stop_requested = True
        self.sink.stop()

    async def _play_clip(self, url: str) -> bool:
        """Play one clip; a failing clip is logged and reported as skipped."""
        try:
            await self.sink.play(url, self.rate)
        except Exception as e:
            logger.warning("playback.clip_failed", url=url, error=str(e))
            return False
        return True

    async def _play_first(self, urls: list[str]) -> bool:
        """Try each source in turn until one plays."""
        for url in urls:
            if self._stop_requested:
                return False
            if await self._play_clip(url):
                return True
        logger.error("playback.sources_exhausted", sources=urls)
        return False

    async def _gap(self) -> None:
        await asyncio.sleep(self.gap_ms / 1000)

    def _finish(self, result: PlaybackResult) -> PlaybackResult:
        self._playing = False
        self.observer.finished(result.completed)
        return result


class WordByWordPlayer(_Sequencer):
    """Plays a verse one word at a time, highlighting each word."""

    def __init__(
        self,
        api: QuranApiClient,
        sink: AudioSink,
        observer: PlaybackObserver | None = None,
        config: PlaybackConfig | None = None,
    ):
        config = config or PlaybackConfig()
        super().__init__(sink, observer, config.word_gap_ms, config.playback_rate)
        self.api = api

    async def play(self, surah: int, ayah: int) -> PlaybackResult:
        """Play every word of a verse that has audio.

        Returns:
            PlaybackResult; status is "unavailable" when the verse has no
            words and "failed" when they could not be fetched
        """
        self._stop_requested = False
        self._playing = True
        verse_key = f"{surah}:{ayah}"

        try:
            words = await self.api.verse_words(surah, ayah)
        except QuranApiError as e:
            logger.error("playback.words_fetch_failed", verse_key=verse_key, error=str(e))
            return self._finish(PlaybackResult(STATUS_FAILED, error=str(e)))

        if not words:
            logger.info("playback.words_unavailable", verse_key=verse_key)
            return self._finish(PlaybackResult(STATUS_UNAVAILABLE))

        self.observer.started([w.text for w in words])
        played = skipped = 0

        for index, word in enumerate(words):
            if self._stop_requested:
                break
            if not word.audio_url:
                continue
            self.observer.word(index)
            if await self._play_clip(word.audio_url):
                played += 1
            else:
                skipped += 1
            await self._gap()

        status = STATUS_STOPPED if self._stop_requested else STATUS_COMPLETED
        logger.info("playback.words_done", verse_key=verse_key, status=status, played=played, skipped=skipped)
        return self._finish(PlaybackResult(status, played, skipped))


class WordPhrasePlayer(_Sequencer):
    """Plays the clips of one word or phrase of a verse, back to back."""

    def __init__(
        self,
        api: QuranApiClient,
        sink: AudioSink,
        observer: PlaybackObserver | None = None,
        config: PlaybackConfig | None = None,
    ):
        config = config or PlaybackConfig()
        super().__init__(sink, observer, 0, config.playback_rate)
        self.api = api

    async def play(self, surah: int, ayah: int, phrase: str) -> PlaybackResult:
        """Find ``phrase`` among the verse words and play its clips.

        Returns:
            PlaybackResult; status is "not_found" when the phrase is not in
            the verse, "unavailable" when the matched words have no audio
            and "failed" when the verse could not be fetched

        Raises:
            ValidationError: If the phrase has no Arabic letters
        """
        if not phrase_key(phrase):
            raise ValidationError("Phrase has no Arabic letters")
        self._stop_requested = False
        self._playing = True
        verse_key = f"{surah}:{ayah}"

        try:
            words = await self.api.verse_words(surah, ayah)
        except QuranApiError as e:
            logger.error("playback.words_fetch_failed", verse_key=verse_key, error=str(e))
            return self._finish(PlaybackResult(STATUS_FAILED, error=str(e)))

        matched = match_phrase(words, phrase)
        if not matched:
            logger.warning(
                "playback.phrase_not_found",
                verse_key=verse_key,
                phrase=phrase,
                verse_words=[w.text for w in words],
            )
            return self._finish(PlaybackResult(STATUS_NOT_FOUND))

        clips = [w for w in matched if w.audio_url]
        if not clips:
            logger.info("playback.phrase_without_audio", verse_key=verse_key, phrase=phrase)
            return self._finish(PlaybackResult(STATUS_UNAVAILABLE))

        self.observer.started([w.text for w in matched])
        played = skipped = 0
        for word in clips:
            if self._stop_requested:
                break
            self.observer.word(words.index(word))
            if await self._play_clip(word.audio_url):
                played += 1
            else:
                skipped += 1

        status = STATUS_STOPPED if self._stop_requested else STATUS_COMPLETED
        logger.info("playback.phrase_done", verse_key=verse_key, status=status, played=played)
        return self._finish(PlaybackResult(status, played, skipped))


class AyahRangePlayer(_Sequencer):
    """Plays a range of ayahs of one surah, optionally repeating the current one."""

    def __init__(
        self,
        api: QuranApiClient,
        sink: AudioSink,
        observer: PlaybackObserver | None = None,
        config: PlaybackConfig | None = None,
        reciter: str | None = None,
    ):
        config = config or PlaybackConfig()
        super().__init__(sink, observer, config.ayah_gap_ms, config.playback_rate)
        self.api = api
        self.reciter = reciter
        self.repeat = False
        self.current_ayah: int | None = None

    @staticmethod
    def validate_range(from_ayah: int, to_ayah: int, ayah_count: int) -> None:
        """Raises ValidationError unless 1 <= from <= to <= ayah_count."""
        if not 1 <= from_ayah <= to_ayah <= ayah_count:
            raise ValidationError(
                f"Invalid ayah range {from_ayah}-{to_ayah} for a surah of {ayah_count} ayahs"
            )

    async def play_range(
        self, surah: int, from_ayah: int, to_ayah: int, ayah_count: int
    ) -> PlaybackResult:
        """Play ayahs from_ayah..to_ayah in order.

        While ``repeat`` is set the current ayah is played again instead of
        advancing; it can be toggled during the run.

        Raises:
            ValidationError: If the range is out of bounds
        """
        self.validate_range(from_ayah, to_ayah, ayah_count)
        self._stop_requested = False
        self._playing = True
        self.observer.started([str(n) for n in range(from_ayah, to_ayah + 1)])

        current = from_ayah
        played = skipped = 0
        while not self._stop_requested:
            self.current_ayah = current
            self.observer.ayah(current)
            sources = self.api.ayah_audio_sources(surah, current, self.reciter)
            if await self._play_first(sources):
                played += 1
            elif not self._stop_requested:
                skipped += 1

            if self._stop_requested:
                break
            if self.repeat:
                await self._gap()
                continue
            if current >= to_ayah:
                break
            await self._gap()
            current += 1

        self.current_ayah = None
        status = STATUS_STOPPED if self._stop_requested else STATUS_COMPLETED
        logger.info(
            "playback.range_done",
            surah=surah,
            from_ayah=from_ayah,
            to_ayah=to_ayah,
            status=status,
            played=played,
        )
        return self._finish(PlaybackResult(status, played, skipped))
