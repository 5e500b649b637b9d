# quran_audio/reader_state.py
from typing import Callable, List, Optional

from .models import AudioState, Verse

StateListener = Callable[[str, object], None]


class ReaderState:
    """
    Session state of the reader view: current page, selected verse and the
    audio indicators. Listeners are told about every real change.

    audio_state and is_loading_audio are written only by AudioStateReconciler.
    """

    def __init__(self, current_page: int = 1):
        self._current_page = current_page
        self._selected_verse: Optional[Verse] = None
        self._audio_state = AudioState.STOPPED
        self._is_loading_audio = False
        self._listeners: List[StateListener] = []

    def subscribe(self, listener: StateListener):
        self._listeners.append(listener)

    def _changed(self, name: str, value):
        for listener in list(self._listeners):
            listener(name, value)

    @property
    def current_page(self) -> int:
        return self._current_page

    @current_page.setter
    def current_page(self, value: int):
        if value == self._current_page:
            return
        self._current_page = value
        self._changed("current_page", value)

    @property
    def selected_verse(self) -> Optional[Verse]:
        return self._selected_verse

    @selected_verse.setter
    def selected_verse(self, value: Optional[Verse]):
        if value == self._selected_verse:
            return
        self._selected_verse = value
        self._changed("selected_verse", value)

    @property
    def audio_state(self) -> AudioState:
        return self._audio_state

    @audio_state.setter
    def audio_state(self, value: AudioState):
        if value == self._audio_state:
            return
        self._audio_state = value
        self._changed("audio_state", value)

    @property
    def is_loading_audio(self) -> bool:
        return self._is_loading_audio

    @is_loading_audio.setter
    def is_loading_audio(self, value: bool):
        if value == self._is_loading_audio:
            return
        self._is_loading_audio = value
        self._changed("is_loading_audio", value)
