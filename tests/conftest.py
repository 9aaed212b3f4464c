"""Shared test fixtures."""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from uuid import uuid4

import pytest

from castbooth.config import Settings
from castbooth.containers import AppContainer, assemble_container
from castbooth.domain.capture import StreamHandle
from castbooth.domain.identity import IdentityHandle
from castbooth.domain.sessions import MediaType, SessionRecord
from castbooth.errors import AuthError, DeviceError, RecordExistsError, StoreError
from castbooth.services.orchestrator import IdentityListener, IdentityProvider
from castbooth.services.records import RecordStore, SnapshotChannel
from castbooth.services.sessions import CaptureDevice

TEST_SUPABASE_KEY = (
    "eyJhbGciOiJIUzI1NiIsInR5cCI6IkpXVCJ9."
    "eyJyb2xlIjoiYW5vbiJ9."
    "c2lnbmF0dXJlLWZvci10ZXN0cw"
)


async def settle(rounds: int = 5) -> None:
    """Let pending subscription deliveries run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


def make_record(
    record_id: str,
    *,
    customer_id: str = "customer-a",
    actor_id: str = "ACTOR_DEMO_456",
    minutes_ago: int = 0,
) -> SessionRecord:
    """Build a completed session record for store fixtures."""
    return SessionRecord(
        id=record_id,
        customer_id=customer_id,
        actor_id=actor_id,
        title=f"Session {record_id}",
        media_type=MediaType.VIDEO,
        is_paid=True,
        is_complete=True,
        date_created=datetime(2026, 5, 1, 12, 0, tzinfo=UTC)
        - timedelta(minutes=minutes_ago),
        storage_url=f"/media/placeholder/{record_id}.mov",
        duration="0:35",
    )


@dataclass
class StepClock:
    """Clock that only moves when a test advances it."""

    now: datetime = field(
        default_factory=lambda: datetime(2026, 5, 1, 12, 0, tzinfo=UTC)
    )

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@dataclass
class InMemoryRecordStore(RecordStore):
    """In-memory record store that pushes snapshots to open channels."""

    collections: dict[str, dict[str, SessionRecord]] = field(default_factory=dict)
    subscriptions: list[tuple[str, dict[str, str], int, SnapshotChannel]] = field(
        default_factory=list
    )
    create_calls: list[str] = field(default_factory=list)
    fail_creates: int = 0
    lose_responses: int = 0

    async def create(
        self, collection_path: str, record_id: str, record: SessionRecord
    ) -> None:
        self.create_calls.append(record_id)
        if self.fail_creates:
            self.fail_creates -= 1
            raise StoreError("store unavailable")
        collection = self.collections.setdefault(collection_path, {})
        if record_id in collection:
            raise RecordExistsError(f"Session {record_id} already exists")
        collection[record_id] = record
        self.broadcast(collection_path)
        if self.lose_responses:
            self.lose_responses -= 1
            raise StoreError("response lost")

    def subscribe(
        self, collection_path: str, filters: dict[str, str], limit: int
    ) -> SnapshotChannel:
        channel = SnapshotChannel()
        entry = (collection_path, dict(filters), limit, channel)
        self.subscriptions.append(entry)
        channel.on_close = lambda: self.subscriptions.remove(entry)
        channel.publish(self.matching(collection_path, filters, limit))
        return channel

    def put(self, collection_path: str, record: SessionRecord) -> None:
        """Write a record directly, as another client would."""
        self.collections.setdefault(collection_path, {})[record.id] = record
        self.broadcast(collection_path)

    def broadcast(self, collection_path: str) -> None:
        for path, filters, limit, channel in list(self.subscriptions):
            if path == collection_path:
                channel.publish(self.matching(path, filters, limit))

    def fail_subscriptions(self, error: Exception) -> None:
        for _path, _filters, _limit, channel in list(self.subscriptions):
            channel.fail(error)

    def matching(
        self, collection_path: str, filters: dict[str, str], limit: int
    ) -> list[SessionRecord]:
        records = [
            record
            for record in self.collections.get(collection_path, {}).values()
            if all(getattr(record, key) == value for key, value in filters.items())
        ]
        return records[:limit]

    def all_records(self) -> list[SessionRecord]:
        return [
            record
            for collection in self.collections.values()
            for record in collection.values()
        ]


@dataclass
class FakeCaptureDevice(CaptureDevice):
    """Fake camera that can deny access or hold acquisition on a gate."""

    deny: bool = False
    gate: asyncio.Event | None = None
    acquired: list[StreamHandle] = field(default_factory=list)
    released: list[StreamHandle] = field(default_factory=list)

    async def acquire(self, video_enabled: bool, audio_enabled: bool) -> StreamHandle:
        if self.gate is not None:
            await self.gate.wait()
        if self.deny:
            raise DeviceError("Permission denied")
        handle = StreamHandle(
            id=str(uuid4()),
            video_enabled=video_enabled,
            audio_enabled=audio_enabled,
        )
        self.acquired.append(handle)
        return handle

    def release(self, handle: StreamHandle) -> None:
        self.released.append(handle)

    @property
    def held(self) -> list[StreamHandle]:
        released_ids = {handle.id for handle in self.released}
        return [handle for handle in self.acquired if handle.id not in released_ids]


@dataclass
class FakeIdentityProvider(IdentityProvider):
    """Fake identity provider with scripted failures."""

    uid: str = "customer-a"
    failures: int = 0
    sign_in_calls: list[str] = field(default_factory=list)
    listeners: list[IdentityListener] = field(default_factory=list)

    async def sign_in_anonymous(self) -> IdentityHandle:
        return self._sign_in("anonymous", is_anonymous=True)

    async def sign_in_with_token(self, token: str) -> IdentityHandle:
        return self._sign_in(f"token:{token}", is_anonymous=False)

    def on_identity_change(self, callback: IdentityListener) -> Callable[[], None]:
        self.listeners.append(callback)
        return lambda: self.listeners.remove(callback)

    def emit(self, identity: IdentityHandle | None) -> None:
        for listener in list(self.listeners):
            listener(identity)

    def _sign_in(self, method: str, *, is_anonymous: bool) -> IdentityHandle:
        self.sign_in_calls.append(method)
        if self.failures:
            self.failures -= 1
            raise AuthError("network unreachable")
        identity = IdentityHandle(uid=self.uid, is_anonymous=is_anonymous)
        self.emit(identity)
        return identity


@pytest.fixture
def settings() -> Settings:
    return Settings(
        supabase_url="https://example.supabase.co",
        supabase_key=TEST_SUPABASE_KEY,
        retry_base_delay_seconds=0.0,
        poll_interval_seconds=0.0,
    )


@pytest.fixture
def record_store() -> InMemoryRecordStore:
    return InMemoryRecordStore()


@pytest.fixture
def capture_device() -> FakeCaptureDevice:
    return FakeCaptureDevice()


@pytest.fixture
def identity_provider() -> FakeIdentityProvider:
    return FakeIdentityProvider()


@pytest.fixture
def container(
    settings: Settings,
    record_store: InMemoryRecordStore,
    capture_device: FakeCaptureDevice,
    identity_provider: FakeIdentityProvider,
) -> AppContainer:
    return assemble_container(
        settings,
        record_store=record_store,
        capture_device=capture_device,
        identity_provider=identity_provider,
    )
