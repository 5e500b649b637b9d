# quran_audio/app.py
import asyncio
import os
import sys
from typing import Optional

import platformdirs
from colorama import Fore, Style, init

from .audio_files import APP_AUTHOR, APP_NAME, AudioFileStore
from .download_orchestrator import DownloadOrchestrator
from .models import AudioState, Verse
from .notifier import ConsoleErrorNotifier
from .playback_controller import PlaybackController
from .position_mapper import PageLayout, PositionMapper
from .pygame_engine import PygameAudioEngine
from .reader_state import ReaderState
from .reciters import ReciterCatalog
from .reconciliation import AudioStateReconciler
from .settings import (PREF_ACTIVE_QARI, PREF_PREFER_STREAMING,
                       JsonSettingsStore)
from .transport import AiohttpDownloadTransport

LAYOUT_FILENAME = "page_layout.json"

COMMANDS = [
    ("play [s:a]", "Play, resume, or start at surah:ayah"),
    ("pause", "Pause playback"),
    ("stop", "Stop playback"),
    ("next/prev", "Skip to next/previous verse"),
    ("page N", "Go to page N"),
    ("reciter [ID]", "List reciters or choose one"),
    ("stream", "Toggle streaming"),
    ("quit/q", "Exit"),
]


class QuranAudioApp:
    """Console front end wiring the playback core to its bundled adapters."""

    def __init__(self, layout: PageLayout):
        self.settings = JsonSettingsStore()
        self.catalog = ReciterCatalog.load()
        self.file_store = AudioFileStore(self.catalog)
        self.transport = AiohttpDownloadTransport(self.file_store, self.catalog)
        self.notifier = ConsoleErrorNotifier()
        self.mapper = PositionMapper(layout)
        self.state = ReaderState(current_page=1)
        self.engine = PygameAudioEngine(self.file_store, self.catalog, self.transport)
        self.orchestrator = DownloadOrchestrator(self.transport, self.file_store, self.catalog)
        self.controller = PlaybackController(self.engine, self.settings, self.catalog,
                                             self.orchestrator, self.mapper, self.state,
                                             self.notifier)
        self.reconciler = AudioStateReconciler(self.engine, self.mapper, self.state, self.notifier)
        self.state.subscribe(self._on_state_change)
        self.orchestrator.active_download.subscribe(self._on_download_stage)

    def _on_state_change(self, name: str, value):
        if name == "audio_state":
            color = Fore.GREEN if value == AudioState.PLAYING else Fore.YELLOW
            print(f"{color}♪ {value.value}{Style.RESET_ALL}")
        elif name == "selected_verse" and value is not None:
            print(f"{Fore.CYAN}▶ {value}  {Style.DIM}(page {self.state.current_page}){Style.RESET_ALL}")
        elif name == "is_loading_audio" and value:
            print(f"{Fore.YELLOW}⏳ Loading audio...{Style.RESET_ALL}")

    def _on_download_stage(self, stage: Optional[str]):
        if stage:
            print(f"{Fore.YELLOW}⏳ {stage}...{Style.RESET_ALL}")

    def _display_header(self):
        reciter = self.catalog.resolve_preference(self.settings.get(PREF_ACTIVE_QARI))
        print(Fore.RED + "╭─ " + Style.BRIGHT + Fore.GREEN + "🎧 Quran Audio")
        print(Fore.RED + f"│ • {Fore.CYAN}Reciter:   {Fore.WHITE}{reciter.name if reciter else 'none selected'}")
        print(Fore.RED + f"│ • {Fore.CYAN}Page:      {Fore.WHITE}{self.state.current_page}/{self.mapper.page_count}")
        print(Fore.RED + f"│ • {Fore.CYAN}Streaming: {Fore.WHITE}{'on' if self.settings.get(PREF_PREFER_STREAMING) else 'off'}")
        width = max(len(cmd) for cmd, _ in COMMANDS)
        for cmd, desc in COMMANDS:
            print(Fore.RED + f"├─ {Fore.CYAN}{cmd.ljust(width)}{Fore.WHITE} : {desc}")
        print(Fore.RED + "╰────────────────────────────────────────" + Style.RESET_ALL)

    def _list_reciters(self):
        for reciter in self.catalog.all():
            mode = "gapless" if reciter.is_gapless else "per verse"
            print(f"  {Fore.CYAN}{reciter.id:>3}{Fore.WHITE} : {reciter.name} {Style.DIM}({mode}){Style.RESET_ALL}")

    async def _handle(self, command: str, arg: Optional[str]) -> bool:
        """Run one command. Returns False when the user wants to quit."""
        if command in ('quit', 'exit', 'q'):
            return False
        if command == 'play':
            if arg:
                try:
                    surah, ayah = (int(part) for part in arg.split(':', 1))
                    ok = await self.controller.play_from(Verse(surah=surah, ayah=ayah))
                except ValueError:
                    print(f"{Fore.YELLOW}Use surah:ayah, e.g. 2:255{Style.RESET_ALL}")
                    return True
            else:
                ok = await self.controller.play()
            if not ok and self.controller.last_error is not None:
                print(f"{Fore.RED}Could not play: {self.controller.last_error}{Style.RESET_ALL}")
        elif command == 'pause':
            self.controller.pause()
        elif command == 'stop':
            self.controller.stop()
        elif command == 'next':
            self.controller.next_track()
        elif command in ('prev', 'previous'):
            self.controller.previous_track()
        elif command == 'page' and arg and arg.isdigit():
            page = int(arg)
            if 1 <= page <= self.mapper.page_count:
                self.state.current_page = page
                self.state.selected_verse = None
            else:
                print(f"{Fore.YELLOW}Page must be between 1 and {self.mapper.page_count}.{Style.RESET_ALL}")
        elif command == 'reciter':
            if arg and self.catalog.resolve_preference(arg):
                self.settings.set(PREF_ACTIVE_QARI, self.catalog.resolve_preference(arg).id)
            else:
                self._list_reciters()
        elif command == 'stream':
            self.settings.set(PREF_PREFER_STREAMING, not self.settings.get(PREF_PREFER_STREAMING))
        else:
            print(f"{Fore.YELLOW}Invalid option. Please try again.{Style.RESET_ALL}")
        return True

    async def run(self):
        self.reconciler.attach()
        await self.reconciler.start()
        loop = asyncio.get_running_loop()
        try:
            self._display_header()
            while True:
                line = await loop.run_in_executor(None, input, Fore.RED + "  ❯ " + Fore.WHITE)
                parts = line.strip().lower().split(maxsplit=1)
                if not parts:
                    continue
                if not await self._handle(parts[0], parts[1] if len(parts) > 1 else None):
                    break
        finally:
            self.engine.close()
            await self.reconciler.stop()


def default_layout_path() -> str:
    return os.path.join(platformdirs.user_data_dir(APP_NAME, APP_AUTHOR), LAYOUT_FILENAME)


def main(argv=None) -> int:
    init(autoreset=True)
    argv = sys.argv[1:] if argv is None else argv
    layout_path = argv[0] if argv else default_layout_path()
    layout = PageLayout.from_json(layout_path)
    if layout is None:
        print(Fore.YELLOW + "Pass the page layout file as the first argument, or place it at:")
        print(Fore.WHITE + f"  {default_layout_path()}")
        return 1
    try:
        asyncio.run(QuranAudioApp(layout).run())
    except (KeyboardInterrupt, EOFError):
        print(Style.BRIGHT + Fore.YELLOW + "\n⚠ Playback stopped.")
        return 1
    return 0
