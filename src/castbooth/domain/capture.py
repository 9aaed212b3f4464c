"""Domain models for capture streams."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class StreamHandle:
    """Represents a live audio/video stream held by a session."""

    id: str
    video_enabled: bool
    audio_enabled: bool
    source: object | None = field(default=None, compare=False, repr=False)
