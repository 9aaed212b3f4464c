"""Wires identity, role selection, the session controller and the library."""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Protocol

from castbooth.config import Settings
from castbooth.domain.identity import IdentityHandle, Role
from castbooth.domain.sessions import InFlightSession, SessionRecord
from castbooth.errors import AuthError
from castbooth.services.library import LibraryService
from castbooth.services.notices import NoticeBoard
from castbooth.services.retry import call_with_backoff
from castbooth.services.sessions import SessionService

_logger = logging.getLogger(__name__)

IdentityListener = Callable[[IdentityHandle | None], None]


class IdentityProvider(Protocol):
    """Interface for resolving the caller's identity."""

    async def sign_in_anonymous(self) -> IdentityHandle:
        """Sign in without credentials, raising AuthError on failure."""

    async def sign_in_with_token(self, token: str) -> IdentityHandle:
        """Sign in with an issued token, raising AuthError on failure."""

    def on_identity_change(self, callback: IdentityListener) -> Callable[[], None]:
        """Register a listener for sign-in/sign-out and return an unsubscriber."""


@dataclass
class Orchestrator:
    """Application controller behind the presentation layer."""

    settings: Settings
    identity_provider: IdentityProvider
    session_service: SessionService
    library_service: LibraryService
    notices: NoticeBoard
    _identity: IdentityHandle | None = field(default=None, init=False)
    _role: Role | None = field(default=None, init=False)
    _fatal_error: str | None = field(default=None, init=False)
    _unsubscribe_identity: Callable[[], None] | None = field(default=None, init=False)

    @property
    def identity(self) -> IdentityHandle | None:
        """Currently signed-in identity."""
        return self._identity

    @property
    def role(self) -> Role | None:
        """Currently selected role."""
        return self._role

    @property
    def view(self) -> str:
        """Which screen the presentation layer should show."""
        if self._fatal_error is not None:
            return "error"
        if self._identity is None:
            return "loading"
        if self._role is None:
            return "role_selection"
        return self._role.value

    async def start(self) -> None:
        """Listen for identity changes and sign in."""
        if self._unsubscribe_identity is None:
            self._unsubscribe_identity = self.identity_provider.on_identity_change(
                self._on_identity_change
            )
        token = self.settings.initial_auth_token

        async def sign_in() -> IdentityHandle:
            if token:
                return await self.identity_provider.sign_in_with_token(token)
            return await self.identity_provider.sign_in_anonymous()

        try:
            identity = await call_with_backoff(
                sign_in,
                action="Sign in",
                attempts=self.settings.retry_attempts,
                base_delay_seconds=self.settings.retry_base_delay_seconds,
                retry_on=(AuthError,),
            )
        except AuthError as exc:
            self.fail(f"Authentication Failed: {exc}")
            return
        self._on_identity_change(identity)

    def fail(self, message: str) -> None:
        """Enter the blocking error state."""
        _logger.error(message)
        self._fatal_error = message
        self.notices.report_error(message)

    def select_role(self, role: Role) -> bool:
        """Switch to a role and subscribe to its library."""
        if self._identity is None or self._fatal_error is not None:
            _logger.debug("Rejected select_role without identity")
            return False
        if self._role is not role:
            self.session_service.cancel()
        self._role = role
        self.library_service.activate(role, self._identity.uid)
        return True

    async def start_session(self) -> InFlightSession | None:
        """Start a new session for the signed-in customer."""
        if self._identity is None or self._role is not Role.CUSTOMER:
            _logger.debug("Rejected start_session outside the customer role")
            return None
        return await self.session_service.start_session(self._identity.uid)

    async def acquire_capture(self) -> bool:
        """Retry opening the camera for the in-flight session."""
        return await self.session_service.acquire_capture()

    def pay(self) -> bool:
        """Confirm payment for the in-flight session."""
        return self.session_service.pay()

    def start_recording(self) -> bool:
        """Begin recording the in-flight session."""
        return self.session_service.start_recording()

    async def stop_recording(self) -> SessionRecord | None:
        """Finish recording and save the session."""
        return await self.session_service.stop_recording()

    def cancel_session(self) -> None:
        """Discard the in-flight session."""
        self.session_service.cancel()

    def logout(self) -> None:
        """Return to role selection, keeping the signed-in identity."""
        self._reset()

    async def shutdown(self) -> None:
        """Release resources and stop listening for identity changes."""
        self._reset()
        if self._unsubscribe_identity is not None:
            self._unsubscribe_identity()
            self._unsubscribe_identity = None

    def snapshot(self) -> dict[str, object]:
        """Everything the presentation layer renders."""
        return {
            "view": self.view,
            "identity": self._identity.uid if self._identity else None,
            "role": self._role.value if self._role else None,
            "lifecycle": self.session_service.snapshot(),
            "library": [
                record_payload(record) for record in self.library_service.projection
            ],
            "error": self.notices.error,
            "notices": [
                {"title": notice.title, "message": notice.message}
                for notice in self.notices.notices
            ],
        }

    def _on_identity_change(self, identity: IdentityHandle | None) -> None:
        if identity is None:
            if self._identity is not None:
                _logger.info("Signed out")
            self._reset()
            self._identity = None
            return
        if self._identity is not None and self._identity.uid != identity.uid:
            self._reset()
        if self._identity != identity:
            _logger.info("Signed in as %s", identity.uid)
        self._identity = identity

    def _reset(self) -> None:
        self.session_service.cancel()
        self.library_service.deactivate()
        self._role = None


def record_payload(record: SessionRecord) -> dict[str, object]:
    """Serialize a session record for the presentation layer."""
    return {
        "id": record.id,
        "customer_id": record.customer_id,
        "actor_id": record.actor_id,
        "title": record.title,
        "media_type": record.media_type.value,
        "is_paid": record.is_paid,
        "is_complete": record.is_complete,
        "date_created": record.date_created.isoformat(),
        "storage_url": record.storage_url,
        "duration": record.duration,
    }
