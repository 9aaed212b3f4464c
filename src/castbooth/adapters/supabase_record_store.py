"""Supabase-backed store for completed session records."""

import asyncio
from dataclasses import dataclass
from datetime import UTC, datetime

from supabase import Client

from castbooth.domain.sessions import MediaType, SessionRecord
from castbooth.errors import RecordExistsError, StoreError
from castbooth.services.records import RecordStore, SnapshotChannel

_UNIQUE_VIOLATION = "23505"


@dataclass
class SupabaseRecordStore(RecordStore):
    """Supabase implementation of the session record store.

    A collection path maps to the table named by its last segment, with rows
    scoped by a ``collection_path`` column. Subscriptions poll the bounded
    query and publish whenever the matching rows change.
    """

    client: Client
    poll_interval_seconds: float = 2.0

    async def create(
        self, collection_path: str, record_id: str, record: SessionRecord
    ) -> None:
        """Insert a session row keyed by its id."""
        row = _record_to_row(collection_path, record_id, record)
        try:
            response = await asyncio.to_thread(self._insert, collection_path, row)
        except Exception as exc:
            if _is_unique_violation(exc):
                raise RecordExistsError(
                    f"Session {record_id} already exists"
                ) from exc
            raise StoreError(str(exc)) from exc
        if not response.data:
            raise StoreError("Failed to create session record")

    def subscribe(
        self, collection_path: str, filters: dict[str, str], limit: int
    ) -> SnapshotChannel:
        """Start polling the filtered query into a new channel."""
        channel = SnapshotChannel()
        task = asyncio.get_running_loop().create_task(
            self._poll(channel, collection_path, dict(filters), limit)
        )
        channel.on_close = task.cancel
        return channel

    async def _poll(
        self,
        channel: SnapshotChannel,
        collection_path: str,
        filters: dict[str, str],
        limit: int,
    ) -> None:
        last_seen: list[tuple[str, ...]] | None = None
        while not channel.closed:
            try:
                rows = await asyncio.to_thread(
                    self._select, collection_path, filters, limit
                )
                records = [_parse_record(row) for row in rows]
            except Exception as exc:
                channel.fail(StoreError(str(exc)))
            else:
                seen = sorted(_fingerprint(row) for row in rows)
                if seen != last_seen:
                    last_seen = seen
                    channel.publish(records)
            await asyncio.sleep(self.poll_interval_seconds)

    def _insert(self, collection_path: str, row: dict[str, object]):  # type: ignore[no-untyped-def]
        return self.client.table(_table_name(collection_path)).insert(row).execute()

    def _select(
        self, collection_path: str, filters: dict[str, str], limit: int
    ) -> list[dict[str, object]]:
        query = (
            self.client.table(_table_name(collection_path))
            .select("*")
            .eq("collection_path", collection_path)
        )
        for column, value in filters.items():
            query = query.eq(column, value)
        response = query.limit(limit).execute()
        return list(response.data or [])


def _table_name(collection_path: str) -> str:
    return collection_path.rstrip("/").rsplit("/", 1)[-1]


def _is_unique_violation(exc: Exception) -> bool:
    """Detect a primary-key conflict from a PostgREST error."""
    if getattr(exc, "code", None) == _UNIQUE_VIOLATION:
        return True
    return "duplicate key" in str(exc).lower()


def _fingerprint(row: dict[str, object]) -> tuple[str, ...]:
    return tuple(f"{key}={row[key]}" for key in sorted(row))


def _record_to_row(
    collection_path: str, record_id: str, record: SessionRecord
) -> dict[str, object]:
    return {
        "id": record_id,
        "collection_path": collection_path,
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


def _parse_record(row: dict[str, object]) -> SessionRecord:
    """Parse a session row into a domain model."""
    return SessionRecord(
        id=str(row["id"]),
        customer_id=str(row["customer_id"]),
        actor_id=str(row["actor_id"]),
        title=str(row.get("title", "")),
        media_type=MediaType(row.get("media_type", MediaType.VIDEO.value)),
        is_paid=bool(row.get("is_paid", False)),
        is_complete=bool(row.get("is_complete", False)),
        date_created=_parse_timestamp(row["date_created"]),
        storage_url=str(row.get("storage_url", "")),
        duration=str(row.get("duration", "")),
    )


def _parse_timestamp(value: object) -> datetime:
    """Parse an ISO-8601 timestamp; naive values are taken as UTC."""
    parsed = datetime.fromisoformat(str(value))
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed
