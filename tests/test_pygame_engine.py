# tests/test_pygame_engine.py
import asyncio
import sqlite3

import pygame
import pytest
from conftest import GAPLESS, SEGMENTED

from quran_audio.models import (EngineState, PlaybackRequest, RepeatAmount,
                                RepeatPolicy, Verse)
from quran_audio.pygame_engine import PygameAudioEngine, load_gapless_timings


class FakeMusic:
    """Just enough of pygame.mixer.music to drive the engine without a sound card."""

    def __init__(self):
        self.loaded = []
        self.starts = []
        self.busy = False
        self.paused = False
        self.position_ms = 0

    def load(self, path):
        self.loaded.append(path)

    def play(self, loops=0, start=0.0):
        self.starts.append(start)
        self.busy = True
        self.position_ms = 0

    def stop(self):
        self.busy = False

    def unload(self):
        pass

    def pause(self):
        self.paused = True

    def unpause(self):
        self.paused = False

    def get_busy(self):
        return self.busy

    def get_pos(self):
        return self.position_ms


@pytest.fixture
def music(monkeypatch):
    fake = FakeMusic()
    monkeypatch.setattr(pygame.mixer, "init", lambda *args, **kwargs: None)
    monkeypatch.setattr(pygame.mixer, "quit", lambda: None)
    monkeypatch.setattr(pygame.mixer, "music", fake)
    return fake


@pytest.fixture
def audio_engine(music, file_store, catalog, transport):
    engine = PygameAudioEngine(file_store, catalog, transport)
    engine.POLL_INTERVAL = 0.001
    return engine


@pytest.fixture
def events(audio_engine):
    recorded = {"states": [], "tracks": []}
    audio_engine.subscribe(recorded["states"].append, recorded["tracks"].append)
    return recorded


async def wait_for(predicate):
    for _ in range(500):
        if predicate():
            return
        await asyncio.sleep(0.002)
    raise AssertionError("condition never became true")


def write_verse_files(file_store, reciter, start, end):
    for audio_file in file_store.files_for_range(reciter, start, end):
        audio_file.path.parent.mkdir(parents=True, exist_ok=True)
        audio_file.path.write_bytes(b"audio")


def request(start, end, **kwargs):
    return PlaybackRequest(reciter_id=SEGMENTED.id, start_verse=Verse(surah=1, ayah=start),
                           end_verse=Verse(surah=1, ayah=end), **kwargs)


def current_ayah(engine):
    return engine.current_track.start_verse.ayah if engine.current_track else None


def test_plays_through_range_and_stops(audio_engine, music, file_store, events):
    write_verse_files(file_store, SEGMENTED, Verse(surah=1, ayah=1), Verse(surah=1, ayah=3))

    async def scenario():
        audio_engine.set_track(request(1, 3))
        await wait_for(lambda: audio_engine.state == EngineState.PLAYING)
        assert current_ayah(audio_engine) == 1
        music.busy = False
        await wait_for(lambda: current_ayah(audio_engine) == 2)
        music.busy = False
        await wait_for(lambda: current_ayah(audio_engine) == 3)
        music.busy = False
        await wait_for(lambda: audio_engine.state == EngineState.STOPPED)

    asyncio.run(scenario())
    assert [path[-10:] for path in music.loaded] == ["001001.mp3", "001002.mp3", "001003.mp3"]
    assert audio_engine.current_track is None
    assert events["tracks"][-1] is None
    assert EngineState.OPENING in events["states"]


def test_next_and_previous(audio_engine, file_store):
    write_verse_files(file_store, SEGMENTED, Verse(surah=1, ayah=1), Verse(surah=1, ayah=3))

    async def scenario():
        audio_engine.set_track(request(1, 3))
        await wait_for(lambda: audio_engine.state == EngineState.PLAYING)
        audio_engine.next()
        await wait_for(lambda: current_ayah(audio_engine) == 2)
        audio_engine.next()
        await wait_for(lambda: current_ayah(audio_engine) == 3)
        audio_engine.next()
        await asyncio.sleep(0.01)
        assert current_ayah(audio_engine) == 3
        audio_engine.previous()
        await wait_for(lambda: current_ayah(audio_engine) == 2)
        audio_engine.stop()

    asyncio.run(scenario())
    assert audio_engine.state == EngineState.STOPPED


def test_pause_and_resume(audio_engine, music, file_store):
    write_verse_files(file_store, SEGMENTED, Verse(surah=1, ayah=1), Verse(surah=1, ayah=1))

    async def scenario():
        audio_engine.set_track(request(1, 1))
        await wait_for(lambda: audio_engine.state == EngineState.PLAYING)
        audio_engine.pause()
        assert audio_engine.state == EngineState.PAUSED and music.paused
        audio_engine.play()
        assert audio_engine.state == EngineState.PLAYING and not music.paused
        audio_engine.stop()

    asyncio.run(scenario())


def test_verse_repeat_replays_each_verse(audio_engine, music, file_store):
    write_verse_files(file_store, SEGMENTED, Verse(surah=1, ayah=1), Verse(surah=1, ayah=2))
    repeat = RepeatPolicy(amount=RepeatAmount.VERSE, count=1)

    async def scenario():
        audio_engine.set_track(request(1, 2, repeat=repeat))
        await wait_for(lambda: audio_engine.state == EngineState.PLAYING)
        for expected_loads in (2, 3, 4):
            music.busy = False
            await wait_for(lambda: len(music.loaded) == expected_loads and music.busy)
        music.busy = False
        await wait_for(lambda: audio_engine.state == EngineState.STOPPED)

    asyncio.run(scenario())
    assert [path[-10:] for path in music.loaded] == ["001001.mp3", "001001.mp3", "001002.mp3", "001002.mp3"]


def test_missing_file_without_streaming_stops(audio_engine, music, transport, capsys):
    async def scenario():
        audio_engine.set_track(request(1, 1))
        await wait_for(lambda: audio_engine._load_task.done())

    asyncio.run(scenario())
    assert music.loaded == []
    assert transport.calls == []
    assert audio_engine.state == EngineState.STOPPED
    assert "Audio file missing" in capsys.readouterr().err


def test_streaming_fetches_missing_file(audio_engine, music, transport, events):
    async def scenario():
        audio_engine.set_track(request(1, 1, streaming_preferred=True))
        await wait_for(lambda: audio_engine.state == EngineState.PLAYING)
        audio_engine.stop()

    asyncio.run(scenario())
    assert [call[0] for call in transport.calls] == ["file"]
    assert events["states"][:3] == [EngineState.BUFFERING, EngineState.OPENING, EngineState.PLAYING]


def test_mixer_failure_disables_playback(monkeypatch, file_store, catalog, capsys):
    def broken_init(*args, **kwargs):
        raise pygame.error("no audio device")

    monkeypatch.setattr(pygame.mixer, "init", broken_init)
    engine = PygameAudioEngine(file_store, catalog)
    assert not engine.mixer_initialized
    engine.set_track(request(1, 1))
    assert engine.state == EngineState.STOPPED
    assert "not initialized" in capsys.readouterr().err


def make_timing_db(path, rows):
    path.parent.mkdir(parents=True, exist_ok=True)
    with sqlite3.connect(str(path)) as conn:
        conn.execute("CREATE TABLE timings (sura INTEGER, ayah INTEGER, time INTEGER)")
        conn.executemany("INSERT INTO timings VALUES (?, ?, ?)", rows)
    conn.close()


def test_load_gapless_timings(tmp_path):
    db = tmp_path / "timings.db"
    make_timing_db(db, [(2, 2, 9000), (2, 1, 4000), (1, 1, 0), (2, 0, 0)])
    assert load_gapless_timings(db, 2) == [(0, 0), (1, 4000), (2, 9000)]
    assert load_gapless_timings(db, 3) == []


def test_gapless_follows_position_inside_surah_file(audio_engine, music, file_store):
    make_timing_db(file_store.gapless_database_path(GAPLESS),
                   [(2, 1, 0), (2, 2, 1000), (2, 3, 2000), (2, 4, 3000)])
    gapless_request = PlaybackRequest(reciter_id=GAPLESS.id, start_verse=Verse(surah=2, ayah=2),
                                      end_verse=Verse(surah=2, ayah=3))
    write_verse_files(file_store, GAPLESS, gapless_request.start_verse, gapless_request.end_verse)

    async def scenario():
        audio_engine.set_track(gapless_request)
        await wait_for(lambda: audio_engine.state == EngineState.PLAYING)
        assert current_ayah(audio_engine) == 2
        music.position_ms = 1500
        await wait_for(lambda: current_ayah(audio_engine) == 3)
        music.position_ms = 2500
        await wait_for(lambda: audio_engine.state == EngineState.STOPPED)

    asyncio.run(scenario())
    assert music.loaded[0].endswith("002.mp3")
    # playback started at the timing of 2:2
    assert music.starts == [1.0]
