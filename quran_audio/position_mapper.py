# quran_audio/position_mapper.py
import bisect
import json
import sys
from typing import List, Optional, Sequence, Tuple

from colorama import Fore, Style

from .models import PageBounds, Verse
from .quran_info import (JUZ_START, SURA_LAST, SURA_NUM_AYAHS,
                         get_juz_for_verse, get_surah_ayah_count,
                         has_opening_formula)


class PageLayout:
    """First verse of every page of a mushaf, page 1 first."""

    def __init__(self, pages: Sequence[Tuple[int, int]]):
        if not pages:
            raise ValueError("Page layout must contain at least one page")
        self._starts: List[Tuple[int, int]] = [(int(s), int(a)) for s, a in pages]
        if self._starts != sorted(self._starts):
            raise ValueError("Page layout must be ordered by verse")

    @classmethod
    def from_json(cls, path) -> Optional["PageLayout"]:
        """Load a layout file of the form {"pages": [[surah, ayah], ...]}."""
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
            return cls(data["pages"])
        except FileNotFoundError:
            print(f"{Fore.RED}Error: Page layout database not found at {path}{Style.RESET_ALL}", file=sys.stderr)
            return None
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            print(f"{Fore.RED}Error: Failed to parse page layout database ({path}): {e}{Style.RESET_ALL}", file=sys.stderr)
            return None

    @property
    def page_count(self) -> int:
        return len(self._starts)

    def start_of(self, page: int) -> Tuple[int, int]:
        return self._starts[page - 1]

    def page_containing(self, surah: int, ayah: int) -> int:
        # Last page whose first verse is at or before the position
        index = bisect.bisect_right(self._starts, (surah, ayah))
        return max(index, 1)


def normalize_for_display(verse: Verse) -> Verse:
    """The opening formula is never shown as its own verse: 0 becomes 1."""
    if verse.ayah == 0:
        return Verse(surah=verse.surah, ayah=1)
    return verse


def _verse_before(surah: int, ayah: int) -> Verse:
    if ayah > 1:
        return Verse(surah=surah, ayah=ayah - 1)
    previous = surah - 1
    return Verse(surah=previous, ayah=get_surah_ayah_count(previous))


class PositionMapper:
    """Maps between page numbers and verses for a given page layout."""

    def __init__(self, layout: PageLayout):
        self.layout = layout

    @property
    def page_count(self) -> int:
        return self.layout.page_count

    def _check_page(self, page: int):
        if page < 1 or page > self.layout.page_count:
            raise ValueError(f"Page {page} is outside 1..{self.layout.page_count}")

    def first_verse_of_page(self, page: int) -> Verse:
        self._check_page(page)
        surah, ayah = self.layout.start_of(page)
        return Verse(surah=surah, ayah=ayah)

    def last_verse_of_page(self, page: int) -> Verse:
        self._check_page(page)
        if page == self.layout.page_count:
            return Verse(surah=SURA_LAST, ayah=SURA_NUM_AYAHS[-1])
        next_surah, next_ayah = self.layout.start_of(page + 1)
        return _verse_before(next_surah, next_ayah)

    def page_bounds(self, page: int) -> PageBounds:
        """First and last verse of a page."""
        return PageBounds(first=self.first_verse_of_page(page), last=self.last_verse_of_page(page))

    def default_start_verse_for_page(self, page: int) -> Verse:
        """
        Where playback begins when nothing is selected on a page.

        A page starting at verse 1 of a surah begins with that surah's opening
        formula (verse 0), except for the surahs in the opening formula rule table.
        """
        first = self.first_verse_of_page(page)
        if first.ayah == 1 and has_opening_formula(first.surah):
            return Verse(surah=first.surah, ayah=0)
        return first

    def page_for_verse(self, verse: Verse) -> int:
        """Page that displays the verse. The opening formula lives on its surah's first page."""
        get_surah_ayah_count(verse.surah)  # validates the surah
        return self.layout.page_containing(verse.surah, max(verse.ayah, 1))

    def normalize_for_display(self, verse: Verse) -> Verse:
        return normalize_for_display(verse)

    # --- End-of-range helpers used to size playback requests ---

    def last_verse_of_surah(self, verse: Verse) -> Verse:
        return Verse(surah=verse.surah, ayah=get_surah_ayah_count(verse.surah))

    def last_verse_of_juz(self, verse: Verse) -> Verse:
        juz = get_juz_for_verse(verse.surah, verse.ayah)
        if juz == len(JUZ_START):
            return Verse(surah=SURA_LAST, ayah=SURA_NUM_AYAHS[-1])
        next_surah, next_ayah = JUZ_START[juz]
        return _verse_before(next_surah, next_ayah)
