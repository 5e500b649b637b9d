# quran_audio/settings.py
import json
import os
import sys
from typing import Any, Optional

import platformdirs
from colorama import Fore, Style

from .audio_files import APP_AUTHOR, APP_NAME
from .models import DownloadAmount, RepeatAmount, RepeatPolicy

PREF_FILENAME = "QuranAudio-Settings.json"

# --- Preference keys ---
PREF_ACTIVE_QARI = "active_qari"
PREF_AUDIO_REPEAT = "audio_repeat"
PREF_REPEAT_AMOUNT = "repeat_amount"
PREF_REPEAT_TIMES = "repeat_times"
PREF_DOWNLOAD_AMOUNT = "download_amount"
PREF_PREFER_STREAMING = "prefer_streaming"

DEFAULTS = {
    PREF_ACTIVE_QARI: None,
    PREF_AUDIO_REPEAT: False,
    PREF_REPEAT_AMOUNT: RepeatAmount.NONE.value,
    PREF_REPEAT_TIMES: 0,
    PREF_DOWNLOAD_AMOUNT: DownloadAmount.PAGE.value,
    PREF_PREFER_STREAMING: False,
}


class JsonSettingsStore:
    """Preferences kept in a JSON file in the user's config directory."""

    def __init__(self, preferences_file: Optional[str] = None):
        if preferences_file is None:
            try:
                config_dir = platformdirs.user_config_dir(APP_NAME, APP_AUTHOR)
                os.makedirs(config_dir, exist_ok=True)
                preferences_file = os.path.join(config_dir, PREF_FILENAME)
            except OSError as e_path:
                print(f"{Fore.RED}Critical Error determining preferences path: {e_path}", file=sys.stderr)
                print(f"{Fore.YELLOW}Preferences may not save correctly.", file=sys.stderr)
        self.preferences_file = preferences_file
        self.preferences = self._load_preferences()

    def _load_preferences(self) -> dict:
        """Load preferences from file, falling back to an empty dict."""
        if not self.preferences_file:
            return {}
        try:
            with open(self.preferences_file, 'r', encoding='utf-8') as f:
                data = json.load(f)
            if not isinstance(data, dict):
                raise json.JSONDecodeError("top level is not an object", "", 0)
            return data
        except FileNotFoundError:
            return {}
        except json.JSONDecodeError:
            print(Fore.YELLOW + f"Preferences file '{self.preferences_file}' is corrupted, resetting.", file=sys.stderr)
            return {}
        except OSError as e:
            print(Fore.RED + f"Error loading preferences from '{self.preferences_file}': {e}", file=sys.stderr)
            return {}

    def save(self) -> bool:
        if not self.preferences_file:
            print(Fore.RED + "Error: Preferences file path not determined. Cannot save.", file=sys.stderr)
            return False
        try:
            pref_dir = os.path.dirname(self.preferences_file)
            if pref_dir:
                os.makedirs(pref_dir, exist_ok=True)
            with open(self.preferences_file, 'w', encoding='utf-8') as f:
                json.dump(self.preferences, f, ensure_ascii=False, indent=2)
            return True
        except (OSError, TypeError) as e:
            print(Fore.RED + f"Error saving preferences to '{self.preferences_file}': {e}{Style.RESET_ALL}", file=sys.stderr)
            return False

    def get(self, key: str, default: Any = None) -> Any:
        if key in self.preferences:
            return self.preferences[key]
        if default is not None:
            return default
        return DEFAULTS.get(key)

    def set(self, key: str, value: Any):
        self.preferences[key] = value
        self.save()


# --- Typed readers shared by every SettingsStore ---

def read_repeat_policy(settings) -> RepeatPolicy:
    """Repeat policy for a new request; empty unless repeat is switched on."""
    if not bool(settings.get(PREF_AUDIO_REPEAT, False)):
        return RepeatPolicy()
    try:
        amount = RepeatAmount(settings.get(PREF_REPEAT_AMOUNT, RepeatAmount.NONE.value))
        count = max(int(settings.get(PREF_REPEAT_TIMES, 0)), 0)
    except (TypeError, ValueError):
        print(f"{Fore.YELLOW}Warning: Ignoring invalid repeat preferences.{Style.RESET_ALL}", file=sys.stderr)
        return RepeatPolicy()
    return RepeatPolicy(amount=amount, count=count)


def read_download_amount(settings) -> DownloadAmount:
    try:
        return DownloadAmount(settings.get(PREF_DOWNLOAD_AMOUNT, DownloadAmount.PAGE.value))
    except ValueError:
        return DownloadAmount.PAGE


def read_prefer_streaming(settings) -> bool:
    return bool(settings.get(PREF_PREFER_STREAMING, False))
