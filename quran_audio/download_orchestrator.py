# quran_audio/download_orchestrator.py
import asyncio
import sys
from enum import Enum
from typing import Callable, Dict, List, Optional

from colorama import Fore, Style

from .exceptions import DownloadFailedError
from .interfaces import DownloadTransport, FileStore, ReciterLookup
from .models import PlaybackRequest, Reciter

StageListener = Callable[[Optional[str]], None]


class AcquireOutcome(Enum):
    COMPLETED = "completed"
    ALREADY_IN_FLIGHT = "already_in_flight"


class ActiveDownload:
    """
    Single-slot guard for the acquisition pipeline. It is not a queue: a
    request arriving while the slot is taken does not wait and does not start
    its own pipeline, its caller carries on as if the download succeeded.

    The current stage ("Loading data", "Downloading audio") is reported to
    subscribers so a loading indicator can show it.
    """

    def __init__(self):
        self.in_progress = False
        self._stage: Optional[str] = None
        self._listeners: List[StageListener] = []

    def subscribe(self, listener: StageListener):
        self._listeners.append(listener)

    @property
    def stage(self) -> Optional[str]:
        return self._stage

    @stage.setter
    def stage(self, value: Optional[str]):
        if value == self._stage:
            return
        self._stage = value
        for listener in list(self._listeners):
            listener(value)

    def claim(self) -> bool:
        # No await between check and set, so this is atomic on the event loop
        if self.in_progress:
            return False
        self.in_progress = True
        return True

    def release(self):
        self.in_progress = False
        self.stage = None


class DownloadOrchestrator:
    """Makes the audio of a playback request available locally, one stage at a time."""

    def __init__(self, transport: DownloadTransport, file_store: FileStore, catalog: ReciterLookup):
        self.transport = transport
        self.file_store = file_store
        self.catalog = catalog
        self.active_download = ActiveDownload()
        self._index_fetches: Dict[int, asyncio.Future] = {}   # reciter id -> in-flight index fetch

    def _reciter_for(self, request: PlaybackRequest) -> Reciter:
        reciter = self.catalog.resolve(request.reciter_id)
        if reciter is None:
            raise DownloadFailedError(f"reciter lookup for id {request.reciter_id}")
        return reciter

    def should_download_gapless_index(self, reciter: Reciter) -> bool:
        return (reciter.is_gapless and bool(reciter.gapless_database_url)
                and not self.file_store.gapless_database_exists(reciter))

    async def _download_gapless_index(self, reciter: Reciter):
        url = reciter.gapless_database_url
        destination = self.file_store.gapless_database_path(reciter)
        self.active_download.stage = "Loading data"
        if not await self.transport.download_file(url, destination):
            raise DownloadFailedError("gapless index download", url)

    async def _fetch_gapless_index(self, reciter: Reciter) -> bool:
        try:
            await self._download_gapless_index(reciter)
        except DownloadFailedError as e:
            print(f"{Fore.YELLOW}Warning: {e}{Style.RESET_ALL}", file=sys.stderr)
            return False
        finally:
            self._index_fetches.pop(reciter.id, None)
            if not self.active_download.in_progress:
                self.active_download.stage = None
        return True

    async def ensure_gapless_index(self, request: PlaybackRequest) -> bool:
        """
        Fetch the reciter's gapless index if it is needed and missing. False on failure.

        Callers asking for the same reciter while a fetch is running share
        that fetch and its result instead of starting another one.
        """
        if self.active_download.in_progress:
            # the pipeline in flight fetches the index itself
            return True
        reciter = self.catalog.resolve(request.reciter_id)
        if reciter is None:
            return True
        fetch = self._index_fetches.get(reciter.id)
        if fetch is None:
            if not self.should_download_gapless_index(reciter):
                return True
            fetch = asyncio.ensure_future(self._fetch_gapless_index(reciter))
            self._index_fetches[reciter.id] = fetch
        return await asyncio.shield(fetch)

    async def acquire(self, request: PlaybackRequest) -> AcquireOutcome:
        """
        Run the acquisition pipeline for a request.

        Stages run strictly in order and the first failure aborts the rest
        with DownloadFailedError. Nothing is retried. The active download slot
        is always released before returning or raising.
        """
        if not self.active_download.claim():
            return AcquireOutcome.ALREADY_IN_FLIGHT

        try:
            reciter = self._reciter_for(request)

            # checking if need to download gapless database file
            if self.should_download_gapless_index(reciter):
                await self._download_gapless_index(reciter)

            # checking if need to download audio
            if not self.file_store.have_all_files(request):
                directory = self.file_store.reciter_directory(reciter)
                try:
                    self.file_store.ensure_directory_exists(directory)
                except OSError as e:
                    raise DownloadFailedError(f"creating {directory}") from e
                self.active_download.stage = "Downloading audio"
                if reciter.is_gapless:
                    ok = await self.transport.download_gapless_range(
                        reciter, request.start_verse, request.end_verse)
                else:
                    ok = await self.transport.download_range(request)
                if not ok:
                    raise DownloadFailedError("audio download", reciter.server_url)
        finally:
            self.active_download.release()

        return AcquireOutcome.COMPLETED
