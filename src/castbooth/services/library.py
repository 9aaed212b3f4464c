"""Live, role-filtered library of completed sessions."""

import asyncio
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field

from castbooth.domain.identity import Role
from castbooth.domain.sessions import SessionRecord
from castbooth.services.records import RecordStore, SnapshotChannel

_logger = logging.getLogger(__name__)

_FILTER_FIELDS = {
    Role.CUSTOMER: "customer_id",
    Role.ACTOR: "actor_id",
}

_LIBRARY_NAMES = {
    Role.CUSTOMER: "Customer library",
    Role.ACTOR: "Actor portfolio",
}

LibraryListener = Callable[[Role, tuple[SessionRecord, ...]], None]


@dataclass
class LibraryService:
    """Keeps the active role's projection in sync with the record store.

    Only one subscription is open at a time. The store query is a plain
    equality filter with a limit; ordering happens here, newest first, on
    every delivered snapshot.
    """

    record_store: RecordStore
    collection_path: str
    limit: int = 20
    _role: Role | None = field(default=None, init=False)
    _uid: str | None = field(default=None, init=False)
    _channel: SnapshotChannel | None = field(default=None, init=False)
    _task: "asyncio.Task[None] | None" = field(default=None, init=False)
    _projection: tuple[SessionRecord, ...] = field(default=(), init=False)
    _listeners: list[LibraryListener] = field(default_factory=list, init=False)

    @property
    def role(self) -> Role | None:
        """Role whose projection is active."""
        return self._role

    @property
    def projection(self) -> tuple[SessionRecord, ...]:
        """Current projection for the active role, newest first."""
        return self._projection

    def projection_for(self, role: Role) -> tuple[SessionRecord, ...]:
        """Projection for a role; empty unless that role is active."""
        if role is not self._role:
            return ()
        return self._projection

    def add_listener(self, listener: LibraryListener) -> None:
        """Register a callback invoked after every applied snapshot."""
        self._listeners.append(listener)

    def activate(self, role: Role, uid: str) -> None:
        """Subscribe to the sessions a user sees in the given role.

        Must be called from a running event loop.
        """
        if (
            self._channel is not None
            and self._task is not None
            and not self._task.done()
            and self._role is role
            and self._uid == uid
        ):
            return
        self.deactivate()
        channel = self.record_store.subscribe(
            self.collection_path, {_FILTER_FIELDS[role]: uid}, self.limit
        )
        self._role = role
        self._uid = uid
        self._channel = channel
        self._projection = ()
        self._task = asyncio.get_running_loop().create_task(self._consume(channel))
        _logger.info("%s subscribed for %s", _LIBRARY_NAMES[role], uid)

    def deactivate(self) -> None:
        """Tear down the active subscription, if any."""
        channel, task, role = self._channel, self._task, self._role
        self._channel = None
        self._task = None
        self._role = None
        self._uid = None
        self._projection = ()
        if channel is not None:
            channel.close()
        if task is not None and not task.done():
            task.cancel()
        if role is not None:
            _logger.info("%s unsubscribed", _LIBRARY_NAMES[role])

    async def _consume(self, channel: SnapshotChannel) -> None:
        async for event in channel:
            if channel is not self._channel or self._role is None:
                return
            if event.error is not None:
                _logger.error(
                    "%s fetch failed: %s", _LIBRARY_NAMES[self._role], event.error
                )
                continue
            try:
                self._apply(self._role, event.records)
            except Exception:
                # Last applied projection stays visible.
                _logger.exception(
                    "%s snapshot could not be applied", _LIBRARY_NAMES[self._role]
                )

    def _apply(self, role: Role, records: Iterable[SessionRecord]) -> None:
        self._projection = sort_newest_first(records)
        for listener in list(self._listeners):
            try:
                listener(role, self._projection)
            except Exception:
                _logger.exception("Library listener failed")


def sort_newest_first(
    records: Iterable[SessionRecord],
) -> tuple[SessionRecord, ...]:
    """Order records by creation time, newest first, one entry per id."""
    unique = {record.id: record for record in records}
    return tuple(
        sorted(
            unique.values(),
            key=lambda record: (record.date_created, record.id),
            reverse=True,
        )
    )
