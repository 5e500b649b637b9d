# tests/test_settings.py
import json

from conftest import FakeSettings

from quran_audio.models import DownloadAmount, RepeatAmount, RepeatPolicy
from quran_audio.settings import (PREF_ACTIVE_QARI, PREF_AUDIO_REPEAT,
                                  PREF_DOWNLOAD_AMOUNT, PREF_PREFER_STREAMING,
                                  PREF_REPEAT_AMOUNT, PREF_REPEAT_TIMES,
                                  JsonSettingsStore, read_download_amount,
                                  read_prefer_streaming, read_repeat_policy)


def test_missing_file_gives_defaults(tmp_path):
    store = JsonSettingsStore(str(tmp_path / "prefs.json"))
    assert store.get(PREF_ACTIVE_QARI) is None
    assert store.get(PREF_PREFER_STREAMING) is False
    assert store.get(PREF_DOWNLOAD_AMOUNT) == "page"


def test_corrupt_file_is_reset(tmp_path, capsys):
    path = tmp_path / "prefs.json"
    path.write_text("{broken", encoding="utf-8")
    store = JsonSettingsStore(str(path))
    assert store.preferences == {}
    assert "corrupted" in capsys.readouterr().err


def test_set_persists(tmp_path):
    path = tmp_path / "nested" / "prefs.json"
    store = JsonSettingsStore(str(path))
    store.set(PREF_ACTIVE_QARI, 3)
    store.set(PREF_PREFER_STREAMING, True)
    assert json.loads(path.read_text(encoding="utf-8")) == {PREF_ACTIVE_QARI: 3, PREF_PREFER_STREAMING: True}
    reloaded = JsonSettingsStore(str(path))
    assert reloaded.get(PREF_ACTIVE_QARI) == 3
    assert read_prefer_streaming(reloaded)


def test_repeat_policy_disabled_by_default():
    settings = FakeSettings(**{PREF_REPEAT_AMOUNT: "page", PREF_REPEAT_TIMES: 2})
    assert read_repeat_policy(settings) == RepeatPolicy()


def test_repeat_policy_enabled():
    settings = FakeSettings(**{PREF_AUDIO_REPEAT: True, PREF_REPEAT_AMOUNT: "page", PREF_REPEAT_TIMES: 2})
    assert read_repeat_policy(settings) == RepeatPolicy(amount=RepeatAmount.PAGE, count=2)


def test_repeat_policy_invalid_values(capsys):
    settings = FakeSettings(**{PREF_AUDIO_REPEAT: True, PREF_REPEAT_AMOUNT: "forever", PREF_REPEAT_TIMES: 2})
    assert read_repeat_policy(settings) == RepeatPolicy()
    assert "invalid repeat" in capsys.readouterr().err


def test_download_amount():
    assert read_download_amount(FakeSettings()) == DownloadAmount.PAGE
    assert read_download_amount(FakeSettings(**{PREF_DOWNLOAD_AMOUNT: "juz"})) == DownloadAmount.JUZ
    assert read_download_amount(FakeSettings(**{PREF_DOWNLOAD_AMOUNT: "galaxy"})) == DownloadAmount.PAGE
