"""Supabase Auth identity provider."""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field

from supabase import Client

from castbooth.domain.identity import IdentityHandle
from castbooth.errors import AuthError
from castbooth.services.orchestrator import IdentityListener, IdentityProvider


@dataclass
class SupabaseIdentityProvider(IdentityProvider):
    """Resolves identities through Supabase Auth."""

    client: Client
    _listeners: list[IdentityListener] = field(default_factory=list, init=False)

    async def sign_in_anonymous(self) -> IdentityHandle:
        """Create an anonymous Supabase user session."""
        try:
            response = await asyncio.to_thread(self.client.auth.sign_in_anonymously)
        except Exception as exc:
            raise AuthError(str(exc)) from exc
        return _identity_from_user(getattr(response, "user", None))

    async def sign_in_with_token(self, token: str) -> IdentityHandle:
        """Resolve the user an issued access token belongs to."""
        try:
            response = await asyncio.to_thread(self.client.auth.get_user, token)
        except Exception as exc:
            raise AuthError(str(exc)) from exc
        identity = _identity_from_user(getattr(response, "user", None))
        for listener in list(self._listeners):
            listener(identity)
        return identity

    def on_identity_change(self, callback: IdentityListener) -> Callable[[], None]:
        """Forward Supabase auth state changes as identity handles."""
        self._listeners.append(callback)
        subscription = self.client.auth.on_auth_state_change(
            lambda _event, session: callback(_identity_from_session(session))
        )

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)
            subscription.unsubscribe()

        return unsubscribe


def _identity_from_user(user: object | None) -> IdentityHandle:
    """Build an identity handle from a Supabase user."""
    if user is None or not getattr(user, "id", None):
        raise AuthError("Sign-in returned no user")
    return IdentityHandle(
        uid=str(user.id),
        is_anonymous=bool(getattr(user, "is_anonymous", False)),
    )


def _identity_from_session(session: object | None) -> IdentityHandle | None:
    user = getattr(session, "user", None)
    if user is None:
        return None
    return _identity_from_user(user)
