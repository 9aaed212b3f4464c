"""Record store interface and the snapshot channel used for subscriptions."""

import asyncio
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Protocol

from castbooth.domain.sessions import SessionRecord

SESSION_COLLECTION = "media_sessions"


def session_collection_path(app_id: str) -> str:
    """Return the shared collection path for session records."""
    return f"artifacts/{app_id}/public/data/{SESSION_COLLECTION}"


@dataclass(frozen=True)
class SnapshotEvent:
    """One delivery on a subscription: the full matching set, or an error."""

    records: tuple[SessionRecord, ...] = ()
    error: Exception | None = None


class SnapshotChannel:
    """Cancellable async stream of snapshot events.

    Holds at most ``maxsize`` undelivered events; the oldest is dropped when a
    slow consumer falls behind. Iteration ends once the channel is closed.
    """

    def __init__(
        self, maxsize: int = 16, on_close: Callable[[], None] | None = None
    ) -> None:
        self._queue: asyncio.Queue[SnapshotEvent | None] = asyncio.Queue(
            maxsize=maxsize
        )
        self._closed = False
        self.on_close = on_close

    @property
    def closed(self) -> bool:
        """Whether the channel has been closed."""
        return self._closed

    def publish(self, records: Iterable[SessionRecord]) -> None:
        """Deliver a full snapshot of matching records."""
        self._put(SnapshotEvent(records=tuple(records)))

    def fail(self, error: Exception) -> None:
        """Deliver a subscription error without closing the channel."""
        self._put(SnapshotEvent(error=error))

    def close(self) -> None:
        """Stop the channel. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        if self.on_close is not None:
            self.on_close()
        while not self._queue.empty():
            self._queue.get_nowait()
        self._queue.put_nowait(None)

    def _put(self, event: SnapshotEvent) -> None:
        if self._closed:
            return
        if self._queue.full():
            try:
                self._queue.get_nowait()
            except asyncio.QueueEmpty:
                pass
        self._queue.put_nowait(event)

    def __aiter__(self) -> "SnapshotChannel":
        return self

    async def __anext__(self) -> SnapshotEvent:
        event = await self._queue.get()
        if event is None:
            raise StopAsyncIteration
        return event


class RecordStore(Protocol):
    """Interface for the shared store of completed session records."""

    async def create(
        self, collection_path: str, record_id: str, record: SessionRecord
    ) -> None:
        """Write a record once under its id.

        Raises RecordExistsError if the id is taken and StoreError otherwise.
        """

    def subscribe(
        self, collection_path: str, filters: dict[str, str], limit: int
    ) -> SnapshotChannel:
        """Open a live, equality-filtered, bounded view of the collection."""
