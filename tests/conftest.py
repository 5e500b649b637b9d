# tests/conftest.py
import asyncio
from pathlib import Path

import pytest

from quran_audio.audio_files import AudioFileStore
from quran_audio.models import EngineState, Reciter
from quran_audio.position_mapper import PageLayout, PositionMapper
from quran_audio.reciters import ReciterCatalog

# A small made-up mushaf: enough pages to cover the opening formula cases
TEST_PAGES = [
    (1, 1),    # 1
    (2, 1),    # 2
    (2, 6),    # 3
    (2, 17),   # 4
    (3, 1),    # 5
    (9, 1),    # 6
    (9, 50),   # 7
    (18, 1),   # 8
    (18, 50),  # 9
    (114, 1),  # 10
]

SEGMENTED = Reciter(id=1, name="Segmented Qari", server_url="https://audio.example/seg/",
                    local_path="segmented")
GAPLESS = Reciter(id=2, name="Gapless Qari", server_url="https://audio.example/gapless/",
                  local_path="gapless", gapless_database_url="https://audio.example/db/gapless.db",
                  is_gapless=True)


class FakeEngine:
    def __init__(self):
        self.state = EngineState.STOPPED
        self.current_track = None
        self.calls = []
        self._state_callbacks = []
        self._track_callbacks = []

    def play(self):
        self.calls.append("play")

    def pause(self):
        self.calls.append("pause")

    def stop(self):
        self.calls.append("stop")

    def next(self):
        self.calls.append("next")

    def previous(self):
        self.calls.append("previous")

    def set_track(self, request):
        self.calls.append(("set_track", request))

    def subscribe(self, on_state_changed, on_track_changed):
        self._state_callbacks.append(on_state_changed)
        self._track_callbacks.append(on_track_changed)

    def fire_state(self, state):
        self.state = state
        for callback in self._state_callbacks:
            callback(state)

    def fire_track(self, track):
        self.current_track = track
        for callback in self._track_callbacks:
            callback(track)

    @property
    def tracks_set(self):
        return [call[1] for call in self.calls if isinstance(call, tuple) and call[0] == "set_track"]


class FakeSettings:
    def __init__(self, **values):
        self.values = values

    def get(self, key, default=None):
        return self.values.get(key, default)


class RecordingNotifier:
    def __init__(self):
        self.messages = []

    def show_error(self, message):
        self.messages.append(message)


class FakeTransport:
    """Writes placeholder files instead of downloading. Can fail or block on demand."""

    def __init__(self, file_store):
        self.file_store = file_store
        self.calls = []
        self.fail_files = False
        self.fail_audio = False
        self.gate = None   # asyncio.Event that downloads wait on

    async def _wait(self):
        # a real transfer always suspends at least once
        if self.gate is not None:
            await self.gate.wait()
        await asyncio.sleep(0)

    async def download_file(self, url, destination):
        self.calls.append(("file", url, Path(destination)))
        await self._wait()
        if self.fail_files:
            return False
        Path(destination).parent.mkdir(parents=True, exist_ok=True)
        Path(destination).write_bytes(b"data")
        return True

    async def download_gapless_range(self, reciter, start, end):
        self.calls.append(("gapless_range", reciter.id, start, end))
        await self._wait()
        if self.fail_audio:
            return False
        for audio_file in self.file_store.files_for_range(reciter, start, end):
            audio_file.path.parent.mkdir(parents=True, exist_ok=True)
            audio_file.path.write_bytes(b"audio")
        return True

    async def download_range(self, request):
        self.calls.append(("range", request.start_verse, request.end_verse))
        await self._wait()
        if self.fail_audio:
            return False
        for audio_file in self.file_store.files_for_request(request):
            audio_file.path.parent.mkdir(parents=True, exist_ok=True)
            audio_file.path.write_bytes(b"audio")
        return True


@pytest.fixture
def layout():
    return PageLayout(TEST_PAGES)


@pytest.fixture
def mapper(layout):
    return PositionMapper(layout)


@pytest.fixture
def catalog():
    return ReciterCatalog([SEGMENTED, GAPLESS])


@pytest.fixture
def file_store(catalog, tmp_path):
    return AudioFileStore(catalog, base_dir=tmp_path)


@pytest.fixture
def transport(file_store):
    return FakeTransport(file_store)


@pytest.fixture
def engine():
    return FakeEngine()


@pytest.fixture
def notifier():
    return RecordingNotifier()
