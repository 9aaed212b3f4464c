"""Domain models for recording sessions."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from castbooth.domain.capture import StreamHandle


class MediaType(str, Enum):
    """Kinds of media a session can produce."""

    VIDEO = "Video"


class LifecycleState(str, Enum):
    """States of the in-flight session controller."""

    IDLE = "idle"
    PREPARED = "prepared"
    PAID = "paid"
    RECORDING = "recording"
    FINALIZING = "finalizing"


@dataclass(frozen=True)
class SessionRecord:
    """Represents a completed session persisted in the record store."""

    id: str
    customer_id: str
    actor_id: str
    title: str
    media_type: MediaType
    is_paid: bool
    is_complete: bool
    date_created: datetime
    storage_url: str
    duration: str


@dataclass
class InFlightSession:
    """Session being prepared, paid for or recorded. Never persisted as-is."""

    id: str
    customer_id: str
    actor_id: str
    title: str
    media_type: MediaType = MediaType.VIDEO
    is_paid: bool = False
    is_complete: bool = False
    stream: StreamHandle | None = None
    recording_started_at: datetime | None = None
