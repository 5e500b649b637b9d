# quran_audio/quran_info.py
from typing import List, Tuple

# Fixed facts about the Madani mushaf used for range and validity checks.

SURA_FIRST = 1
SURA_TAWBA = 9
SURA_LAST = 114
NUMBER_OF_SURAHS = 114

SURA_NUM_AYAHS: List[int] = [
    7, 286, 200, 176, 120, 165, 206, 75, 129, 109,
    123, 111, 43, 52, 99, 128, 111, 110, 98, 135,
    112, 78, 118, 64, 77, 227, 93, 88, 69, 60,
    34, 30, 73, 54, 45, 83, 182, 88, 75, 85,
    54, 53, 89, 59, 37, 35, 38, 29, 18, 45,
    60, 49, 62, 55, 78, 96, 29, 22, 24, 13,
    14, 11, 11, 18, 12, 12, 30, 52, 52, 44,
    28, 28, 20, 56, 40, 31, 50, 40, 46, 42,
    29, 19, 36, 25, 22, 17, 19, 26, 30, 20,
    15, 21, 11, 8, 8, 19, 5, 8, 8, 11,
    11, 8, 3, 9, 5, 4, 7, 3, 6, 3,
    5, 4, 5, 6,
]

# (surah, ayah) where each of the 30 juz begins
JUZ_START: List[Tuple[int, int]] = [
    (1, 1), (2, 142), (2, 253), (3, 93), (4, 24),
    (4, 148), (5, 82), (6, 111), (7, 88), (8, 41),
    (9, 93), (11, 6), (12, 53), (15, 1), (17, 1),
    (18, 75), (21, 1), (23, 1), (25, 21), (27, 56),
    (29, 46), (33, 31), (36, 28), (39, 32), (41, 47),
    (46, 1), (51, 31), (58, 1), (67, 1), (78, 1),
]

# --- Opening formula (bismillah) rule table ---
# Surahs whose recitation does not begin with a separate opening formula.
# Al-Fatiha counts it as its own first verse; At-Tawba is recited without it.
NO_OPENING_FORMULA_SURAHS = {
    SURA_FIRST: "opening formula is verse 1 itself",
    SURA_TAWBA: "recited without opening formula",
}


def has_opening_formula(surah: int) -> bool:
    """True if playback of this surah starts with the opening formula (verse 0)."""
    return surah not in NO_OPENING_FORMULA_SURAHS


def get_surah_ayah_count(surah: int) -> int:
    """Number of verses in a surah. Raises ValueError for unknown surahs."""
    if surah < SURA_FIRST or surah > SURA_LAST:
        raise ValueError(f"Invalid surah number: {surah}")
    return SURA_NUM_AYAHS[surah - 1]


def is_valid(surah: int, ayah: int) -> bool:
    """Check that (surah, ayah) addresses a verse or an opening formula."""
    if surah < SURA_FIRST or surah > SURA_LAST:
        return False
    if ayah < 0 or ayah > SURA_NUM_AYAHS[surah - 1]:
        return False
    if ayah == 0 and not has_opening_formula(surah):
        return False
    return True


def get_juz_for_verse(surah: int, ayah: int) -> int:
    """Juz number (1-30) containing the verse."""
    position = (surah, max(ayah, 1))
    juz = 1
    for index, start in enumerate(JUZ_START, start=1):
        if start <= position:
            juz = index
        else:
            break
    return juz
