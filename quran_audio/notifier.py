# quran_audio/notifier.py
import sys

from colorama import Fore, Style


class ConsoleErrorNotifier:
    """Shows user-facing errors on the terminal. Fire and forget."""

    def __init__(self, stream=None):
        self.stream = stream

    def show_error(self, message: str) -> None:
        stream = self.stream or sys.stdout
        try:
            print(f"\n{Fore.RED}❌ {message}{Style.RESET_ALL}", file=stream)
            print(f"{Fore.YELLOW}Please try again or choose a different reciter.{Style.RESET_ALL}", file=stream)
        except (OSError, ValueError):
            # Closed or broken stream; the message has nowhere to go
            pass
