"""Lifecycle controller for a single in-flight recording session."""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Protocol
from uuid import uuid4

from castbooth.domain.capture import StreamHandle
from castbooth.domain.sessions import (
    InFlightSession,
    LifecycleState,
    MediaType,
    SessionRecord,
)
from castbooth.errors import DeviceError, RecordExistsError, StoreError
from castbooth.services.actors import ActorSelector
from castbooth.services.notices import NoticeBoard
from castbooth.services.records import RecordStore
from castbooth.services.retry import call_with_backoff

_logger = logging.getLogger(__name__)

CAMERA_REQUIRED_MESSAGE = "Camera access is required. Please check permissions."
SELF_BOOKING_MESSAGE = "You cannot book a session with yourself."

_CAPTURE_STATES = {LifecycleState.PREPARED, LifecycleState.PAID}


class CaptureDevice(Protocol):
    """Interface for the camera and microphone."""

    async def acquire(self, video_enabled: bool, audio_enabled: bool) -> StreamHandle:
        """Open a live stream, raising DeviceError when unavailable."""

    def release(self, handle: StreamHandle) -> None:
        """Stop a stream. Safe to call on an already released handle."""


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


def _new_session_id() -> str:
    return str(uuid4())


@dataclass
class SessionService:
    """State machine for preparing, paying for, recording and saving a session.

    Idle -> Prepared -> Paid -> Recording -> Finalizing -> Idle. Each call
    checks its preconditions against the current state and is rejected
    without a transition when they do not hold. State always advances before
    the first await, so an overlapping call sees the new state.
    """

    record_store: RecordStore
    capture_device: CaptureDevice
    actor_selector: ActorSelector
    notices: NoticeBoard
    collection_path: str
    retry_attempts: int = 3
    retry_base_delay_seconds: float = 1.0
    clock: Callable[[], datetime] = _utcnow
    id_factory: Callable[[], str] = _new_session_id
    _state: LifecycleState = field(default=LifecycleState.IDLE, init=False)
    _session: InFlightSession | None = field(default=None, init=False)
    _acquiring_for: str | None = field(default=None, init=False)

    @property
    def state(self) -> LifecycleState:
        """Current lifecycle state."""
        return self._state

    @property
    def current_session(self) -> InFlightSession | None:
        """The in-flight session, if any."""
        return self._session

    @property
    def is_recording(self) -> bool:
        """Whether recording is active."""
        return self._state is LifecycleState.RECORDING

    @property
    def has_stream(self) -> bool:
        """Whether the in-flight session holds a capture stream."""
        return self._session is not None and self._session.stream is not None

    async def start_session(self, customer_id: str) -> InFlightSession | None:
        """Prepare a new session for a customer and request the camera."""
        if self._state is not LifecycleState.IDLE:
            self._reject("start_session")
            return None
        actor_id = self.actor_selector.select_actor(customer_id)
        if actor_id == customer_id:
            self.notices.report_error(SELF_BOOKING_MESSAGE)
            return None

        session = InFlightSession(
            id=self.id_factory(),
            customer_id=customer_id,
            actor_id=actor_id,
            title=f"Session {self.clock().astimezone():%Y-%m-%d}",
            media_type=MediaType.VIDEO,
        )
        self._session = session
        self._transition(LifecycleState.PREPARED)
        await self.acquire_capture()
        return session

    async def acquire_capture(self) -> bool:
        """Request the camera for the in-flight session if it holds none."""
        session = self._session
        if (
            session is None
            or self._state not in _CAPTURE_STATES
            or session.stream is not None
            or self._acquiring_for == session.id
        ):
            return self._reject("acquire_capture")

        if self.notices.error == CAMERA_REQUIRED_MESSAGE:
            self.notices.clear_error()
        self._acquiring_for = session.id
        try:
            handle = await self.capture_device.acquire(
                video_enabled=True, audio_enabled=True
            )
        except DeviceError as exc:
            _logger.warning("Camera access denied or failed: %s", exc)
            if self._session is session:
                self.notices.report_error(CAMERA_REQUIRED_MESSAGE)
            return False
        finally:
            if self._acquiring_for == session.id:
                self._acquiring_for = None

        if self._session is not session or self._state not in _CAPTURE_STATES:
            # Session was dropped while the camera was opening.
            self.capture_device.release(handle)
            return False
        session.stream = handle
        _logger.info("Session %s acquired capture stream %s", session.id, handle.id)
        return True

    def pay(self) -> bool:
        """Mark the in-flight session as paid."""
        session = self._session
        if (
            session is None
            or self._state is not LifecycleState.PREPARED
            or session.is_paid
        ):
            return self._reject("pay")
        session.is_paid = True
        self._transition(LifecycleState.PAID)
        self.notices.notify(
            "Payment Success!",
            "The actor has been paid. You may now begin filming.",
        )
        return True

    def start_recording(self) -> bool:
        """Start recording once the session is paid and a stream is held."""
        session = self._session
        if (
            session is None
            or self._state is not LifecycleState.PAID
            or not session.is_paid
            or session.stream is None
        ):
            return self._reject("start_recording")
        session.recording_started_at = self.clock()
        self._transition(LifecycleState.RECORDING)
        return True

    async def stop_recording(self) -> SessionRecord | None:
        """Stop recording, release the camera and persist the session once.

        The in-flight session is dropped whether or not the write succeeds.
        """
        session = self._session
        if session is None or self._state is not LifecycleState.RECORDING:
            self._reject("stop_recording")
            return None

        self._transition(LifecycleState.FINALIZING)
        self._release_stream(session)
        record = self._build_record(session)
        discarded = False
        try:
            await self._persist(record)
        except StoreError as exc:
            _logger.exception("Failed to save session %s", record.id)
            self.notices.report_error(f"Failed to save session data: {exc}")
            return None
        finally:
            discarded = self._session is not session
            if not discarded:
                self._session = None
                self._transition(LifecycleState.IDLE)

        if not discarded:
            self.notices.notify(
                "Success!",
                "Recording session metadata saved to the database. "
                "The actor will see it in their portfolio.",
            )
        return record

    def cancel(self) -> None:
        """Drop the in-flight session without saving and release the camera."""
        session = self._session
        if session is not None:
            self._release_stream(session)
            _logger.info("Session %s discarded", session.id)
        self._session = None
        if self._state is not LifecycleState.IDLE:
            self._transition(LifecycleState.IDLE)

    def snapshot(self) -> dict[str, object]:
        """Return the lifecycle state for the presentation layer."""
        session = self._session
        payload: dict[str, object] = {
            "state": self._state.value,
            "is_recording": self.is_recording,
            "has_stream": self.has_stream,
            "session": None,
        }
        if session is not None:
            payload["session"] = {
                "id": session.id,
                "customer_id": session.customer_id,
                "actor_id": session.actor_id,
                "title": session.title,
                "media_type": session.media_type.value,
                "is_paid": session.is_paid,
                "is_complete": session.is_complete,
            }
        return payload

    async def _persist(self, record: SessionRecord) -> None:
        attempts = 0

        async def write() -> None:
            nonlocal attempts
            attempts += 1
            try:
                await self.record_store.create(self.collection_path, record.id, record)
            except RecordExistsError:
                if attempts == 1:
                    raise
                # An earlier attempt landed before its response was lost.
                _logger.info("Session %s was already saved", record.id)

        await call_with_backoff(
            write,
            action=f"Save session {record.id}",
            attempts=self.retry_attempts,
            base_delay_seconds=self.retry_base_delay_seconds,
            retry_on=(StoreError,),
            no_retry_on=(RecordExistsError,),
        )

    def _build_record(self, session: InFlightSession) -> SessionRecord:
        finished_at = self.clock()
        return SessionRecord(
            id=session.id,
            customer_id=session.customer_id,
            actor_id=session.actor_id,
            title=session.title,
            media_type=session.media_type,
            is_paid=session.is_paid,
            is_complete=True,
            date_created=finished_at,
            storage_url=f"/media/placeholder/{session.id}.mov",
            duration=_format_duration(session.recording_started_at, finished_at),
        )

    def _release_stream(self, session: InFlightSession) -> None:
        handle = session.stream
        session.stream = None
        if handle is not None:
            self.capture_device.release(handle)

    def _transition(self, new_state: LifecycleState) -> None:
        _logger.info("Session state %s -> %s", self._state.value, new_state.value)
        self._state = new_state

    def _reject(self, action: str) -> bool:
        _logger.debug("Rejected %s in state %s", action, self._state.value)
        return False


def _format_duration(started_at: datetime | None, finished_at: datetime) -> str:
    """Format elapsed recording time as M:SS."""
    if started_at is None:
        return "0:00"
    seconds = max(int((finished_at - started_at).total_seconds()), 0)
    minutes, seconds = divmod(seconds, 60)
    return f"{minutes}:{seconds:02d}"
