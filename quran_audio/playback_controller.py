# quran_audio/playback_controller.py
from typing import Optional

from .download_orchestrator import AcquireOutcome, DownloadOrchestrator
from .exceptions import (DownloadFailedError, InvalidVerseError,
                         NoReciterSelectedError, QuranAudioError)
from .interfaces import (AudioEngine, ErrorNotifier, ReciterLookup,
                         SettingsStore)
from .models import (AudioState, DownloadAmount, EngineState, PlaybackRequest,
                     Reciter, Verse)
from .position_mapper import PositionMapper
from .quran_info import is_valid
from .reader_state import ReaderState
from .settings import (PREF_ACTIVE_QARI, read_download_amount,
                       read_prefer_streaming, read_repeat_policy)

DOWNLOAD_ERROR_MESSAGE = "Something went wrong. Unable to download audio."


class PlaybackController:
    """
    Transport commands for the reader. Commands act on the engine only;
    the visible audio state follows through AudioStateReconciler.
    """

    def __init__(self, engine: AudioEngine, settings: SettingsStore, catalog: ReciterLookup,
                 orchestrator: DownloadOrchestrator, mapper: PositionMapper,
                 state: ReaderState, notifier: ErrorNotifier):
        self.engine = engine
        self.settings = settings
        self.catalog = catalog
        self.orchestrator = orchestrator
        self.mapper = mapper
        self.state = state
        self.notifier = notifier
        self.last_error: Optional[QuranAudioError] = None

    def _fail(self, error: QuranAudioError) -> bool:
        self.last_error = error
        return False

    async def play(self) -> bool:
        """Resume, keep playing, or start from the selection (or the current page)."""
        self.last_error = None
        engine_state = self.engine.state
        if engine_state == EngineState.PLAYING:
            # Do nothing
            return True
        if engine_state == EngineState.PAUSED:
            self.engine.play()
            return True

        verse = self.state.selected_verse
        if verse is None:
            try:
                verse = self.mapper.default_start_verse_for_page(self.state.current_page)
            except ValueError as e:
                return self._fail(InvalidVerseError(str(e)))
        if not is_valid(verse.surah, verse.ayah):
            return self._fail(InvalidVerseError(f"Invalid start verse {verse}"))
        return await self.play_from(verse)

    def pause(self):
        self.engine.pause()

    def stop(self):
        self.engine.stop()

    def next_track(self):
        # Skipping only makes sense while something is audibly playing
        if self.state.selected_verse is not None and self.state.audio_state == AudioState.PLAYING:
            self.engine.next()

    def previous_track(self):
        if self.state.selected_verse is not None and self.state.audio_state == AudioState.PLAYING:
            self.engine.previous()

    def active_reciter(self) -> Reciter:
        reciter = self.catalog.resolve_preference(self.settings.get(PREF_ACTIVE_QARI))
        if reciter is None:
            raise NoReciterSelectedError("No reciter selected")
        return reciter

    def _end_verse(self, start: Verse) -> Verse:
        amount = read_download_amount(self.settings)
        if amount == DownloadAmount.SURAH:
            return self.mapper.last_verse_of_surah(start)
        if amount == DownloadAmount.JUZ:
            return self.mapper.last_verse_of_juz(start)
        return self.mapper.last_verse_of_page(self.mapper.page_for_verse(start))

    def build_request(self, start: Verse, reciter: Reciter) -> PlaybackRequest:
        return PlaybackRequest(
            reciter_id=reciter.id,
            start_verse=start,
            end_verse=self._end_verse(start),
            streaming_preferred=read_prefer_streaming(self.settings),
            repeat=read_repeat_policy(self.settings),
        )

    async def play_from(self, start: Verse) -> bool:
        """
        Start playback at a verse with the active reciter.

        Streaming requests go straight to the engine. Otherwise the audio is
        acquired first; a failed acquisition is shown once and returns False,
        the caller may call again to retry.
        """
        self.last_error = None
        try:
            reciter = self.active_reciter()
        except NoReciterSelectedError as e:
            return self._fail(e)
        if not is_valid(start.surah, start.ayah):
            return self._fail(InvalidVerseError(f"Invalid start verse {start}"))

        request = self.build_request(start, reciter)

        # if necessary download the gapless index, position lookups need it either way
        index_ready = await self.orchestrator.ensure_gapless_index(request)

        if request.streaming_preferred:
            self.engine.set_track(request)
            return True

        try:
            if not index_ready:
                raise DownloadFailedError("gapless index download", reciter.gapless_database_url or "")
            outcome = await self.orchestrator.acquire(request)
        except DownloadFailedError as e:
            self.notifier.show_error(DOWNLOAD_ERROR_MESSAGE)
            return self._fail(e)

        if outcome == AcquireOutcome.ALREADY_IN_FLIGHT:
            # Another request owns the pipeline; treat this one as done
            return True
        self.engine.set_track(request)
        return True
