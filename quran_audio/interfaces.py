# quran_audio/interfaces.py
"""
Contracts of the collaborators the playback core talks to. The bundled
adapters (pygame engine, JSON settings, aiohttp transport, cache file store,
console notifier, JSON reciter catalog) implement these; tests use fakes.
"""
from pathlib import Path
from typing import Any, Callable, Optional, Protocol

from .models import EngineState, PlaybackRequest, Reciter, Verse

StateChangedCallback = Callable[[EngineState], None]
TrackChangedCallback = Callable[[Optional[PlaybackRequest]], None]


class AudioEngine(Protocol):
    @property
    def state(self) -> EngineState: ...

    @property
    def current_track(self) -> Optional[PlaybackRequest]: ...

    def play(self) -> None: ...

    def pause(self) -> None: ...

    def stop(self) -> None: ...

    def next(self) -> None: ...

    def previous(self) -> None: ...

    def set_track(self, request: PlaybackRequest) -> None: ...

    def subscribe(self, on_state_changed: StateChangedCallback,
                  on_track_changed: TrackChangedCallback) -> None: ...


class SettingsStore(Protocol):
    def get(self, key: str, default: Any = None) -> Any: ...


class DownloadTransport(Protocol):
    async def download_file(self, url: str, destination: Path) -> bool: ...

    async def download_gapless_range(self, reciter: Reciter, start: Verse, end: Verse) -> bool: ...

    async def download_range(self, request: PlaybackRequest) -> bool: ...


class FileStore(Protocol):
    def ensure_directory_exists(self, path: Path) -> None: ...

    def reciter_directory(self, reciter: Reciter) -> Path: ...

    def gapless_database_path(self, reciter: Reciter) -> Path: ...

    def gapless_database_exists(self, reciter: Reciter) -> bool: ...

    def have_all_files(self, request: PlaybackRequest) -> bool: ...


class ErrorNotifier(Protocol):
    def show_error(self, message: str) -> None: ...


class ReciterLookup(Protocol):
    def resolve(self, reciter_id: int) -> Optional[Reciter]: ...

    def find_by_name(self, name: str) -> Optional[Reciter]: ...

    def resolve_preference(self, value: Any) -> Optional[Reciter]: ...
