# quran_audio/transport.py
import asyncio
import sys
from pathlib import Path
from typing import Optional

import aiofiles
import aiohttp
import tqdm
from colorama import Fore, Style
from mutagen import MutagenError
from mutagen.mp3 import MP3

from .audio_files import AudioFileStore
from .interfaces import ReciterLookup
from .models import PlaybackRequest, Reciter, Verse


class AiohttpDownloadTransport:
    """Downloads reciter audio and gapless databases over HTTP."""

    CHUNK_SIZE = 8192

    def __init__(self, file_store: AudioFileStore, catalog: ReciterLookup,
                 timeout: float = 30, show_progress: bool = True,
                 session: Optional[aiohttp.ClientSession] = None):
        self.file_store = file_store
        self.catalog = catalog
        self.timeout = aiohttp.ClientTimeout(total=None, sock_connect=timeout, sock_read=timeout)
        self.show_progress = show_progress
        self._session = session

    async def download_file(self, url: str, destination: Path) -> bool:
        """
        Download url to destination through a .tmp file.

        MP3 files are validated with mutagen before being moved into place.
        On any failure the .tmp file is removed and False is returned; a
        destination that already holds data is left alone and counts as done.
        """
        destination = Path(destination)
        if destination.exists() and destination.stat().st_size > 0:
            return True

        destination.parent.mkdir(parents=True, exist_ok=True)
        temp_file = destination.with_name(destination.name + '.tmp')
        # --- Clean up any leftover .tmp file before starting download ---
        temp_file.unlink(missing_ok=True)

        try:
            if self._session is not None:
                await self._fetch(self._session, url, temp_file, destination.name)
            else:
                async with aiohttp.ClientSession(timeout=self.timeout) as session:
                    await self._fetch(session, url, temp_file, destination.name)

            if destination.suffix.lower() == '.mp3':
                try:
                    MP3(temp_file)
                except MutagenError as e:
                    raise ValueError(f"MP3 validation failed: {e}")

            temp_file.replace(destination)
            return True
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            print(f"{Fore.RED}Network error downloading {url}: {e}{Style.RESET_ALL}", file=sys.stderr)
        except ValueError as e:
            print(f"{Fore.RED}Invalid download from {url}: {e}{Style.RESET_ALL}", file=sys.stderr)
        except OSError as e:
            print(f"{Fore.RED}Could not write {destination}: {e}{Style.RESET_ALL}", file=sys.stderr)
        temp_file.unlink(missing_ok=True)
        return False

    async def _fetch(self, session: aiohttp.ClientSession, url: str, temp_file: Path, label: str):
        async with session.get(url, timeout=self.timeout) as response:
            response.raise_for_status()

            content_length = response.headers.get('content-length')
            total_size = int(content_length) if content_length else None

            pbar_kwargs = {
                "desc": f"Downloading {label}",
                "unit": 'MB',
                "total": total_size / (1024 * 1024) if total_size else None,
                "bar_format": '{desc}: {percentage:3.0f}%|{bar:30}| {n:.1f}/{total:.1f} MB • {rate_fmt}' if total_size else '{desc}: {n:.1f} MB downloaded @ {rate_fmt}',
                "colour": 'red',
                "mininterval": 0.1,
                "leave": False,
                "disable": not self.show_progress,
            }
            async with aiofiles.open(temp_file, mode='wb') as f:
                with tqdm.tqdm(**pbar_kwargs) as pbar:
                    async for chunk in response.content.iter_chunked(self.CHUNK_SIZE):
                        await f.write(chunk)
                        pbar.update(len(chunk) / (1024 * 1024))

        final_size = temp_file.stat().st_size
        if total_size is not None and final_size != total_size:
            raise ValueError(f"Download incomplete: Expected {total_size}, Got {final_size}")
        if final_size == 0:
            raise ValueError("Download resulted in empty file.")

    async def download_gapless_range(self, reciter: Reciter, start: Verse, end: Verse) -> bool:
        """Download the surah files of a gapless reciter that cover [start, end]."""
        for audio_file in self.file_store.files_for_range(reciter, start, end):
            if not await self.download_file(audio_file.url, audio_file.path):
                return False
        return True

    async def download_range(self, request: PlaybackRequest) -> bool:
        """Download every verse file a segmented request plays, one after another."""
        reciter = self.catalog.resolve(request.reciter_id)
        if reciter is None:
            print(f"{Fore.RED}Error: Unknown reciter id {request.reciter_id}.{Style.RESET_ALL}", file=sys.stderr)
            return False
        files = self.file_store.files_for_range(reciter, request.start_verse, request.end_verse)
        seen = set()
        for audio_file in files:
            if audio_file.path in seen:
                continue
            seen.add(audio_file.path)
            if not await self.download_file(audio_file.url, audio_file.path):
                return False
        return True
