# quran_audio/audio_files.py
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional
from urllib.parse import urlparse

import platformdirs
from colorama import Fore

from .interfaces import ReciterLookup
from .models import PlaybackRequest, Reciter, Verse
from .quran_info import (SURA_FIRST, SURA_LAST, get_surah_ayah_count,
                         has_opening_formula)

# --- Define constants for platformdirs ---
APP_NAME = "QuranAudio"
APP_AUTHOR = "FadSecLab"


@dataclass
class AudioFile:
    """One file a reciter needs for playback: where it lives remotely and locally."""
    verse: Verse        # First verse played from this file
    url: str
    path: Path


def verse_file_name(verse: Verse) -> str:
    # The opening formula is recited from Al-Fatiha's first verse file
    if verse.ayah == 0:
        return f"{SURA_FIRST:03d}001.mp3"
    return f"{verse.surah:03d}{verse.ayah:03d}.mp3"


def surah_file_name(surah: int) -> str:
    return f"{surah:03d}.mp3"


def iter_verses(start: Verse, end: Verse) -> List[Verse]:
    """
    Verses from start to end inclusive, in recitation order. Every surah that
    begins inside the range gets its opening formula (ayah 0) before verse 1.
    """
    verses = []
    surah, ayah = start.surah, start.ayah
    while (surah, ayah) <= (end.surah, end.ayah):
        if ayah == 0 and not has_opening_formula(surah):
            ayah = 1
            continue
        verses.append(Verse(surah=surah, ayah=ayah))
        if ayah >= get_surah_ayah_count(surah):
            surah += 1
            ayah = 0
            if surah > SURA_LAST:
                break
        else:
            ayah += 1
    return verses


class AudioFileStore:
    """Knows where audio and gapless databases live in the local cache."""

    def __init__(self, catalog: ReciterLookup, base_dir: Optional[Path] = None):
        self.catalog = catalog
        if base_dir is None:
            base_dir = Path(platformdirs.user_cache_dir(APP_NAME, APP_AUTHOR))
        self.base_dir = Path(base_dir)
        self.audio_dir = self.base_dir / 'audio_cache'
        self.database_dir = self.base_dir / 'databases'

    def ensure_directory_exists(self, path: Path) -> None:
        os.makedirs(path, exist_ok=True)

    def reciter_directory(self, reciter: Reciter) -> Path:
        return self.audio_dir / reciter.local_path

    # --- Gapless index database ---

    def gapless_database_path(self, reciter: Reciter) -> Path:
        url = reciter.gapless_database_url or ""
        file_name = os.path.basename(urlparse(url).path) or f"{reciter.local_path}.db"
        return self.database_dir / reciter.local_path / file_name

    def gapless_database_exists(self, reciter: Reciter) -> bool:
        return self.gapless_database_path(reciter).is_file()

    # --- Audio files ---

    def files_for_range(self, reciter: Reciter, start: Verse, end: Verse) -> List[AudioFile]:
        """Files needed to play [start, end] with this reciter, in playback order."""
        directory = self.reciter_directory(reciter)
        if reciter.is_gapless:
            # One file per surah; playback inside it is positioned by the gapless database
            files = []
            for surah in range(start.surah, end.surah + 1):
                if surah == start.surah:
                    first = start
                else:
                    first = Verse(surah=surah, ayah=0 if has_opening_formula(surah) else 1)
                files.append(AudioFile(verse=first,
                                       url=reciter.server_url + surah_file_name(surah),
                                       path=directory / surah_file_name(surah)))
            return files
        return [
            AudioFile(verse=verse,
                      url=reciter.server_url + verse_file_name(verse),
                      path=directory / verse_file_name(verse))
            for verse in iter_verses(start, end)
        ]

    def files_for_request(self, request: PlaybackRequest) -> List[AudioFile]:
        reciter = self.catalog.resolve(request.reciter_id)
        if reciter is None:
            print(f"{Fore.RED}Error: Unknown reciter id {request.reciter_id}.", file=sys.stderr)
            return []
        return self.files_for_range(reciter, request.start_verse, request.end_verse)

    def have_all_files(self, request: PlaybackRequest) -> bool:
        """True if every file the request plays is already in the cache."""
        files = self.files_for_request(request)
        if not files:
            return False
        return all(f.path.is_file() and f.path.stat().st_size > 0 for f in files)
