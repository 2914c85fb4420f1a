"""Tests for Arabic normalization and ayah search."""

from kalimat.core.search import search_ayahs, search_quran, word_meanings
from kalimat.utils.text_utils import normalize_arabic, strip_tashkeel

BISMILLAH = "بِسْمِ اللَّهِ الرَّحْمَٰنِ الرَّحِيمِ"


class TestTextUtils:
    """Tests for tashkeel stripping and letter folding."""

    def test_strip_tashkeel(self):
        assert strip_tashkeel(BISMILLAH) == "بسم الله الرحمن الرحيم"

    def test_strip_keeps_letters(self):
        assert strip_tashkeel("إِيمَان") == "إيمان"

    def test_normalize_folds_letters(self):
        assert normalize_arabic("أَإِآ") == "ااا"
        assert normalize_arabic("هُدَى") == "هدي"
        assert normalize_arabic("رَحْمَة") == "رحمه"
        assert normalize_arabic("مُؤْمِن") == "مومن"

    def test_strip_uthmani_marks(self):
        """Sukun variant, small high letters and pause signs are removed."""
        assert strip_tashkeel("قُلۡ") == "قل"
        assert strip_tashkeel("ٱلرَّحِيمِۖ") == "ٱلرحيم"
        assert normalize_arabic("يَعۡلَمُونَۚ") == "يعلمون"

    def test_empty(self):
        assert strip_tashkeel(None) == ""
        assert normalize_arabic("  ") == ""


AYAHS = [
    {"surah_number": 1, "ayah_number": 1, "ayah_text": BISMILLAH},
    {"surah_number": 1, "ayah_number": 2, "ayah_text": "الْحَمْدُ لِلَّهِ رَبِّ الْعَالَمِينَ"},
    {"surah_number": 1, "ayah_number": 3, "ayah_text": None, "ayah_text_simple": "الرحمن الرحيم"},
]


class TestSearchAyahs:
    """Tests for search_ayahs."""

    def test_query_without_tashkeel(self):
        assert [a["ayah_number"] for a in search_ayahs(AYAHS, "الرحيم")] == [1, 3]

    def test_query_with_tashkeel(self):
        assert [a["ayah_number"] for a in search_ayahs(AYAHS, "الْعَالَمِينَ")] == [2]

    def test_empty_query_returns_all(self):
        assert search_ayahs(AYAHS, "  ") == AYAHS

    def test_no_match(self):
        assert search_ayahs(AYAHS, "كتاب") == []

    def test_uthmani_text_matches_plain_query(self):
        ikhlas = [{"surah_number": 112, "ayah_number": 1, "ayah_text": "قُلۡ هُوَ ٱللَّهُ أَحَدٌ"}]
        assert search_ayahs(ikhlas, "قل هو") == ikhlas
        assert search_ayahs(ikhlas, "هو الله احد") == ikhlas


class TestSearchQuran:
    """Tests for search_quran against the store."""

    def test_single_surah_sorted(self, store):
        store.QuranAyah.bulk_create(
            [
                {"surah_number": 2, "ayah_number": 3, "ayah_text": "الَّذِينَ يُؤْمِنُونَ بِالْغَيْبِ"},
                {"surah_number": 2, "ayah_number": 2, "ayah_text": "ذَٰلِكَ الْكِتَابُ لَا رَيْبَ فِيهِ هُدًى"},
                {"surah_number": 1, "ayah_number": 1, "ayah_text": BISMILLAH},
            ]
        )
        assert [a["ayah_number"] for a in search_quran(store, "", 2)] == [2, 3]
        assert [a["ayah_number"] for a in search_quran(store, "يؤمنون", 2)] == [3]

    def test_whole_quran(self, store):
        store.QuranAyah.bulk_create(
            [
                {"surah_number": 1, "ayah_number": 1, "ayah_text": BISMILLAH},
                {"surah_number": 27, "ayah_number": 30, "ayah_text": "إِنَّهُ مِن سُلَيْمَانَ وَإِنَّهُ بِسْمِ اللَّهِ"},
            ]
        )
        assert {a["surah_number"] for a in search_quran(store, "بسم الله")} == {1, 27}


class TestWordMeanings:
    """Tests for word_meanings."""

    def test_keys_without_tashkeel(self):
        meanings = word_meanings(
            [{"word": "الْكِتَابُ", "meaning": "the book"}, {"word": "", "meaning": "x"}, {"word": "هُدًى"}]
        )
        assert meanings == {"الكتاب": "the book", "هدى": ""}
