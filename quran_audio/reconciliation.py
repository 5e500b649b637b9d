# quran_audio/reconciliation.py
import asyncio
import sys
from typing import Awaitable, Callable, Optional

from colorama import Fore, Style

from .exceptions import TrackInterpretationError
from .interfaces import AudioEngine, ErrorNotifier
from .models import AudioState, EngineState, PlaybackRequest
from .position_mapper import PositionMapper
from .reader_state import ReaderState

SETTLE_INTERVAL = 0.5

# Engine states that may only be a hiccup (e.g. momentary rebuffering)
TRANSIENT_STOP_STATES = frozenset({EngineState.STOPPED, EngineState.CLOSED, EngineState.BUFFERING})
LOADING_STATES = frozenset({EngineState.OPENING, EngineState.BUFFERING})


class AudioStateReconciler:
    """
    Turns engine notifications into ReaderState updates.

    Every notification, state or track, re-derives the whole visible state.
    Notifications are queued and handled one at a time by a single worker,
    settle waits included, so two of them never interleave.
    """

    def __init__(self, engine: AudioEngine, mapper: PositionMapper, state: ReaderState,
                 notifier: ErrorNotifier, settle_interval: float = SETTLE_INTERVAL,
                 sleep: Callable[[float], Awaitable[None]] = asyncio.sleep):
        self.engine = engine
        self.mapper = mapper
        self.state = state
        self.notifier = notifier
        self.settle_interval = settle_interval
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self._queue: Optional[asyncio.Queue] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._worker: Optional[asyncio.Task] = None

    # --- Notification channel ---

    def attach(self):
        """Subscribe to the engine's state and track notifications."""
        self.engine.subscribe(self.on_state_changed, self.on_track_changed)

    def on_state_changed(self, engine_state: EngineState):
        self._enqueue()

    def on_track_changed(self, track: Optional[PlaybackRequest]):
        self._enqueue()

    def _enqueue(self):
        if self._queue is None or self._loop is None:
            # Not started; nothing consumes notifications yet
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is self._loop:
            self._queue.put_nowait(None)
        else:
            # Engine callbacks may come from another thread
            self._loop.call_soon_threadsafe(self._queue.put_nowait, None)

    async def start(self):
        if self._worker is not None:
            return
        self._loop = asyncio.get_running_loop()
        self._queue = asyncio.Queue()
        self._worker = asyncio.create_task(self._run())

    async def stop(self):
        if self._worker is None:
            return
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        self._worker = None
        self._queue = None

    async def join(self):
        """Wait until every queued notification has been reconciled."""
        if self._queue is not None:
            await self._queue.join()

    async def _run(self):
        while True:
            await self._queue.get()
            try:
                await self.reconcile()
            except Exception as e:
                # The worker must survive anything a single pass throws
                print(f"{Fore.RED}Error reconciling audio state: {e}{Style.RESET_ALL}", file=sys.stderr)
            finally:
                self._queue.task_done()

    # --- Reconciliation ---

    async def reconcile(self):
        async with self._lock:
            await self._update_audio_state()
            self.state.is_loading_audio = self.engine.state in LOADING_STATES
            try:
                await self._update_position()
            except Exception as e:
                # Bad track: report it, keep the state derived above
                self.notifier.show_error(str(e))

    async def _update_audio_state(self):
        engine_state = self.engine.state
        if engine_state in TRANSIENT_STOP_STATES:
            await self._sleep(self.settle_interval)
            # Check if still stopped
            if self.engine.state in TRANSIENT_STOP_STATES:
                self.state.audio_state = AudioState.STOPPED
        elif engine_state == EngineState.PAUSED:
            self.state.audio_state = AudioState.PAUSED
        elif engine_state == EngineState.PLAYING:
            self.state.audio_state = AudioState.PLAYING

    async def _update_position(self):
        track = self.engine.current_track
        if track is None:
            self.state.selected_verse = None
            return

        verse = getattr(track, "start_verse", None)
        if verse is None:
            raise TrackInterpretationError(f"Track has no position: {track!r}")
        try:
            page = self.mapper.page_for_verse(verse)
        except (ValueError, TypeError, AttributeError) as e:
            raise TrackInterpretationError(f"Cannot map track position {verse}: {e}") from e

        if page != self.state.current_page:
            # Let a rapid auto-advance settle before turning the page
            await self._sleep(self.settle_interval)
            self.state.current_page = page
        self.state.selected_verse = self.mapper.normalize_for_display(verse)
