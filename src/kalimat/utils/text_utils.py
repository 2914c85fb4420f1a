"""Arabic text utilities.

Search over Quranic text compares normalized forms so that a query typed
without tashkeel, or with a different hamza seat, still matches.
"""

import re

# Tashkeel (harakat, tanween, shadda, sukun, ...), the superscript alef and
# the Quranic annotation marks of Uthmani script (small high letters, pause
# signs, rounded zero, ...)
DIACRITICS_RE = re.compile(r"[\u064B-\u065F\u0670\u06D6-\u06ED]")

# Letter folding applied after diacritics are removed
LETTER_FOLDS = [
    (re.compile(r"[أإآٱ]"), "ا"),
    (re.compile(r"ى"), "ي"),
    (re.compile(r"ؤ"), "و"),
    (re.compile(r"ئ"), "ي"),
    (re.compile(r"ة"), "ه"),
]


def strip_tashkeel(text: str | None) -> str:
    """Remove diacritics only, keeping letter forms."""
    if not text:
        return ""
    return DIACRITICS_RE.sub("", text)


def normalize_arabic(text: str | None) -> str:
    """Normalize Arabic text for matching.

    Removes diacritics, unifies alef forms, folds alef maqsura and hamza
    seats to their base letters and taa marbuta to haa.

    Args:
        text: Raw Arabic text (may be None)

    Returns:
        Normalized, stripped text
    """
    result = strip_tashkeel(text)
    for pattern, replacement in LETTER_FOLDS:
        result = pattern.sub(replacement, result)
    return result.strip()
