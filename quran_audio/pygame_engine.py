# quran_audio/pygame_engine.py
import asyncio
import bisect
import sqlite3
import sys
import zipfile
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import pygame
from colorama import Fore, Style

from .audio_files import AudioFile, AudioFileStore
from .interfaces import ReciterLookup
from .models import (EngineState, PlaybackRequest, Reciter, RepeatAmount,
                     Verse)


def load_gapless_timings(db_path: Path, surah: int) -> List[Tuple[int, int]]:
    """(ayah, start ms) pairs for one surah from a gapless timing database."""
    db_path = Path(db_path)
    if db_path.suffix.lower() == '.zip':
        db_path = _extract_database(db_path)
    with sqlite3.connect(str(db_path)) as conn:
        rows = conn.execute(
            "SELECT ayah, time FROM timings WHERE sura = ? ORDER BY ayah", (surah,)
        ).fetchall()
    return [(int(ayah), int(time_ms)) for ayah, time_ms in rows]


def _extract_database(zip_path: Path) -> Path:
    with zipfile.ZipFile(zip_path) as archive:
        names = [n for n in archive.namelist() if n.endswith('.db')]
        if not names:
            raise ValueError(f"No timing database inside {zip_path.name}")
        target = zip_path.parent / Path(names[0]).name
        if not target.exists():
            archive.extract(names[0], zip_path.parent)
            extracted = zip_path.parent / names[0]
            if extracted != target:
                extracted.replace(target)
    return target


class PygameAudioEngine:
    """
    Audio engine on top of pygame.mixer.music.

    Plays the files of a PlaybackRequest from the local cache in order,
    reporting state and current verse through the subscribed callbacks. A
    streaming request fetches each missing file just before it plays. For
    gapless reciters the current verse inside a surah file comes from the
    reciter's timing database.
    """

    POLL_INTERVAL = 0.1

    def __init__(self, file_store: AudioFileStore, catalog: ReciterLookup, transport=None):
        self.file_store = file_store
        self.catalog = catalog
        self.transport = transport

        # --- Pygame init ---
        try:
            pygame.mixer.init()
        except pygame.error as e:
            print(f"{Fore.RED}Error initializing pygame mixer: {e}", file=sys.stderr)
            print(f"{Fore.YELLOW}Audio playback will be disabled.", file=sys.stderr)
            self.mixer_initialized = False
        else:
            self.mixer_initialized = True

        self._state = EngineState.STOPPED
        self._request: Optional[PlaybackRequest] = None
        self._reciter: Optional[Reciter] = None
        self._current: Optional[PlaybackRequest] = None
        self._playlist: List[AudioFile] = []
        self._index = 0
        self._plays_left = 0              # extra plays of the current verse/range
        self._timings: Dict[int, List[Tuple[int, int]]] = {}
        self._offset_ms = 0               # where the current file started playing
        self._state_callbacks = []
        self._track_callbacks = []
        self._poll_task: Optional[asyncio.Task] = None
        self._load_task: Optional[asyncio.Task] = None

    # --- Observed state ---

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def current_track(self) -> Optional[PlaybackRequest]:
        return self._current

    def subscribe(self, on_state_changed, on_track_changed):
        self._state_callbacks.append(on_state_changed)
        self._track_callbacks.append(on_track_changed)

    def _set_state(self, state: EngineState):
        if state == self._state:
            return
        self._state = state
        for callback in list(self._state_callbacks):
            callback(state)

    def _set_current(self, verse: Optional[Verse]):
        track = self._request.at(verse) if (verse is not None and self._request) else None
        if track == self._current:
            return
        self._current = track
        for callback in list(self._track_callbacks):
            callback(track)

    # --- Commands ---

    def set_track(self, request: PlaybackRequest):
        """Replace whatever is playing with a new request."""
        if not self.mixer_initialized:
            print(Fore.RED + "Audio system not initialized. Cannot play.", file=sys.stderr)
            return
        self._halt()
        self._request = request
        self._reciter = self.catalog.resolve(request.reciter_id)
        self._playlist = self.file_store.files_for_request(request)
        self._timings = {}
        if not self._playlist:
            self._set_current(None)
            self._set_state(EngineState.STOPPED)
            return
        self._reset_repeats()
        self._start(0)

    def play(self):
        if not self.mixer_initialized:
            return
        if self._state == EngineState.PAUSED:
            try:
                pygame.mixer.music.unpause()
            except pygame.error as e:
                print(f"{Fore.RED}Error resuming audio: {e}", file=sys.stderr)
                return
            self._set_state(EngineState.PLAYING)
        elif self._state in (EngineState.STOPPED, EngineState.CLOSED) and self._playlist:
            self._start(self._index)

    def pause(self):
        if not self.mixer_initialized or self._state != EngineState.PLAYING:
            return
        try:
            pygame.mixer.music.pause()
        except pygame.error as e:
            print(f"{Fore.RED}Error pausing audio: {e}", file=sys.stderr)
            return
        self._set_state(EngineState.PAUSED)

    def stop(self):
        if not self.mixer_initialized:
            return
        self._halt()
        self._set_state(EngineState.STOPPED)

    def next(self):
        self._skip(1)

    def previous(self):
        self._skip(-1)

    def close(self):
        """Stop playback and release the mixer."""
        self.stop()
        if self.mixer_initialized:
            pygame.mixer.quit()
            self.mixer_initialized = False
        self._set_current(None)
        self._set_state(EngineState.CLOSED)

    # --- Playback internals ---

    def _halt(self):
        running = asyncio.current_task() if self._in_loop() else None
        for task in (self._load_task, self._poll_task):
            if task is not None and task is not running and not task.done():
                task.cancel()
        self._load_task = None
        self._poll_task = None
        try:
            pygame.mixer.music.stop()
            pygame.mixer.music.unload()  # Important to release file handles
        except pygame.error as e:
            print(f"{Fore.YELLOW}Note: Pygame mixer error during stop/unload: {e}", file=sys.stderr)

    @staticmethod
    def _in_loop() -> bool:
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return False
        return True

    def _reset_repeats(self):
        repeat = self._request.repeat if self._request else None
        self._plays_left = repeat.count if repeat is not None and repeat.enabled else 0

    def _is_gapless(self) -> bool:
        return self._reciter is not None and self._reciter.is_gapless

    def _start(self, index: int, verse: Optional[Verse] = None):
        self._halt()
        self._index = index
        self._load_task = asyncio.get_running_loop().create_task(self._load_and_play(index, verse))

    async def _load_and_play(self, index: int, verse: Optional[Verse] = None):
        item = self._playlist[index]
        verse = verse or item.verse
        if not item.path.is_file():
            if not (self._request.streaming_preferred and self.transport is not None):
                print(f"{Fore.RED}Audio file missing: {item.path}{Style.RESET_ALL}", file=sys.stderr)
                self._set_state(EngineState.STOPPED)
                return
            self._set_state(EngineState.BUFFERING)
            if not await self.transport.download_file(item.url, item.path):
                self._set_state(EngineState.STOPPED)
                return

        self._set_state(EngineState.OPENING)
        self._offset_ms = self._verse_offset_ms(verse) if self._is_gapless() else 0
        try:
            pygame.mixer.music.load(str(item.path))
            pygame.mixer.music.play(start=self._offset_ms / 1000.0)
        except pygame.error as e_play:
            print(Fore.RED + f"\nError playing audio: {e_play}", file=sys.stderr)
            self._set_state(EngineState.STOPPED)
            return

        self._set_current(verse)
        self._set_state(EngineState.PLAYING)
        self._poll_task = asyncio.get_running_loop().create_task(self._track_progress())

    async def _track_progress(self):
        """Follows playback: verse changes inside gapless files and end of file."""
        while self._state in (EngineState.PLAYING, EngineState.PAUSED):
            await asyncio.sleep(self.POLL_INTERVAL)
            if self._state != EngineState.PLAYING:
                continue
            if self._is_gapless():
                if self._follow_gapless_position():
                    return
            if not pygame.mixer.music.get_busy():
                self._on_item_finished()
                return

    def _on_item_finished(self):
        repeat = self._request.repeat
        if self._plays_left > 0 and repeat.amount == RepeatAmount.VERSE and not self._is_gapless():
            self._plays_left -= 1
            self._start(self._index)
            return
        if self._index + 1 < len(self._playlist):
            if repeat.amount == RepeatAmount.VERSE:
                self._reset_repeats()
            self._start(self._index + 1)
            return
        if self._plays_left > 0 and repeat.amount != RepeatAmount.VERSE:
            self._plays_left -= 1
            self._start(0, self._request.start_verse)
            return
        self._halt()
        self._set_current(None)
        self._set_state(EngineState.STOPPED)

    # --- Gapless positioning ---

    def _timings_for(self, surah: int) -> List[Tuple[int, int]]:
        if surah not in self._timings:
            try:
                self._timings[surah] = load_gapless_timings(
                    self.file_store.gapless_database_path(self._reciter), surah)
            except (sqlite3.Error, OSError, ValueError, zipfile.BadZipFile) as e:
                print(f"{Fore.YELLOW}Warning: No gapless timings for surah {surah}: {e}", file=sys.stderr)
                self._timings[surah] = []
        return self._timings[surah]

    def _verse_offset_ms(self, verse: Verse) -> int:
        for ayah, time_ms in self._timings_for(verse.surah):
            if ayah == verse.ayah:
                return time_ms
        return 0

    def _follow_gapless_position(self) -> bool:
        """Report verse changes inside a surah file. True once the request's end is passed."""
        current = self._current.start_verse if self._current else None
        if current is None:
            return False
        timings = self._timings_for(current.surah)
        if not timings:
            return False
        position_ms = self._offset_ms + max(pygame.mixer.music.get_pos(), 0)
        starts = [time_ms for _, time_ms in timings]
        ayah = timings[max(bisect.bisect_right(starts, position_ms) - 1, 0)][0]
        verse = Verse(surah=current.surah, ayah=ayah)
        if verse == current:
            return False

        repeat = self._request.repeat
        if self._plays_left > 0 and repeat.amount == RepeatAmount.VERSE:
            self._plays_left -= 1
            self._start(self._index, current)
            return True
        if repeat.amount == RepeatAmount.VERSE:
            self._reset_repeats()
        if verse > self._request.end_verse:
            self._on_range_finished()
            return True
        self._set_current(verse)
        return False

    def _on_range_finished(self):
        repeat = self._request.repeat
        if self._plays_left > 0 and repeat.amount != RepeatAmount.VERSE:
            self._plays_left -= 1
            self._start(0, self._request.start_verse)
            return
        self._halt()
        self._set_current(None)
        self._set_state(EngineState.STOPPED)

    def _skip(self, step: int):
        if not self._playlist or self._state not in (EngineState.PLAYING, EngineState.PAUSED):
            return
        if self._is_gapless() and self._current is not None:
            current = self._current.start_verse
            ayahs = [ayah for ayah, _ in self._timings_for(current.surah)]
            if current.ayah in ayahs:
                position = ayahs.index(current.ayah) + step
                if 0 <= position < len(ayahs):
                    target = Verse(surah=current.surah, ayah=ayahs[position])
                    if self._request.start_verse <= target <= self._request.end_verse:
                        self._reset_repeats()
                        self._start(self._index, target)
                    return
        target = self._index + step
        if 0 <= target < len(self._playlist):
            self._reset_repeats()
            self._start(target)
