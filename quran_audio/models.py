# quran_audio/models.py
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class EngineState(str, Enum):
    """Play state reported by the audio engine. Observed, never set by us."""
    STOPPED = "stopped"
    PAUSED = "paused"
    PLAYING = "playing"
    OPENING = "opening"
    BUFFERING = "buffering"
    CLOSED = "closed"


class AudioState(str, Enum):
    """Play state shown to the user, derived from EngineState."""
    STOPPED = "stopped"
    PAUSED = "paused"
    PLAYING = "playing"


class RepeatAmount(str, Enum):
    NONE = "none"
    VERSE = "verse"
    PAGE = "page"
    SURAH = "surah"
    JUZ = "juz"


class DownloadAmount(str, Enum):
    """How far past the start verse a playback request reaches."""
    PAGE = "page"
    SURAH = "surah"
    JUZ = "juz"


class Verse(BaseModel):
    """A (surah, ayah) address. ayah 0 is the opening formula before verse 1."""
    model_config = ConfigDict(frozen=True)

    surah: int = Field(ge=1)
    ayah: int = Field(ge=0)

    def key(self):
        return (self.surah, self.ayah)

    def __lt__(self, other: "Verse") -> bool:
        return self.key() < other.key()

    def __le__(self, other: "Verse") -> bool:
        return self.key() <= other.key()

    def __gt__(self, other: "Verse") -> bool:
        return self.key() > other.key()

    def __ge__(self, other: "Verse") -> bool:
        return self.key() >= other.key()

    def __str__(self) -> str:
        return f"{self.surah}:{self.ayah}"


class PageBounds(BaseModel):
    model_config = ConfigDict(frozen=True)

    first: Verse
    last: Verse


class RepeatPolicy(BaseModel):
    model_config = ConfigDict(frozen=True)

    amount: RepeatAmount = RepeatAmount.NONE
    count: int = Field(default=0, ge=0)

    @property
    def enabled(self) -> bool:
        return self.amount != RepeatAmount.NONE and self.count > 0


class Reciter(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    server_url: str              # Base URL for audio files (ends with '/')
    local_path: str              # Folder name inside the audio cache
    gapless_database_url: Optional[str] = None
    is_gapless: bool = False


class PlaybackRequest(BaseModel):
    """One playback attempt: what to play, for whom, and how to get it."""
    model_config = ConfigDict(frozen=True)

    reciter_id: int
    start_verse: Verse
    end_verse: Verse
    streaming_preferred: bool = False
    repeat: RepeatPolicy = RepeatPolicy()

    def at(self, verse: Verse) -> "PlaybackRequest":
        """Copy of this request positioned at another verse (engine's current track)."""
        return self.model_copy(update={"start_verse": verse})
