# quran_audio/exceptions.py
"""
Errors raised inside the playback core. They are caught at the component
boundary and turned into a False result or a single user-facing message.
"""


class QuranAudioError(Exception):
    """Base exception for all quran_audio errors."""


class NoReciterSelectedError(QuranAudioError):
    """Raised when the active reciter preference does not resolve to a reciter."""


class InvalidVerseError(QuranAudioError):
    """Raised when a start position is outside the known surahs/verses."""


class AcquisitionError(QuranAudioError):
    """Raised when audio needed for a request cannot be made available locally."""


class DownloadFailedError(AcquisitionError):
    """Raised when any stage of the download pipeline fails."""

    def __init__(self, stage: str, url: str = ""):
        self.stage = stage
        self.url = url
        message = f"Download failed during {stage}"
        if url:
            message += f" ({url})"
        super().__init__(message)


class TrackInterpretationError(QuranAudioError):
    """Raised when the engine reports a track whose position cannot be mapped."""
