"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import create_client

from castbooth.adapters.opencv_capture_device import OpenCvCaptureDevice
from castbooth.adapters.supabase_identity_provider import SupabaseIdentityProvider
from castbooth.adapters.supabase_record_store import SupabaseRecordStore
from castbooth.config import Settings
from castbooth.services.actors import FixedActorSelector
from castbooth.services.library import LibraryService
from castbooth.services.notices import NoticeBoard
from castbooth.services.orchestrator import IdentityProvider, Orchestrator
from castbooth.services.records import RecordStore, session_collection_path
from castbooth.services.sessions import CaptureDevice, SessionService


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    notices: NoticeBoard
    record_store: RecordStore
    capture_device: CaptureDevice
    identity_provider: IdentityProvider
    session_service: SessionService
    library_service: LibraryService
    orchestrator: Orchestrator
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container.

    Raises ConfigError when the backend is not configured.
    """
    resolved_settings = settings or Settings()
    supabase_url, supabase_key = resolved_settings.require_backend()
    supabase_client = create_client(supabase_url, supabase_key)
    record_store = SupabaseRecordStore(
        supabase_client,
        poll_interval_seconds=resolved_settings.poll_interval_seconds,
    )
    identity_provider = SupabaseIdentityProvider(supabase_client)
    capture_device = OpenCvCaptureDevice(
        device_index=resolved_settings.capture_device_index
    )
    return assemble_container(
        resolved_settings,
        record_store=record_store,
        capture_device=capture_device,
        identity_provider=identity_provider,
    )


def assemble_container(
    settings: Settings,
    *,
    record_store: RecordStore,
    capture_device: CaptureDevice,
    identity_provider: IdentityProvider,
) -> AppContainer:
    """Wire services around already constructed adapters."""
    notices = NoticeBoard()
    collection_path = session_collection_path(settings.app_id)
    session_service = SessionService(
        record_store=record_store,
        capture_device=capture_device,
        actor_selector=FixedActorSelector(settings.placeholder_actor_id),
        notices=notices,
        collection_path=collection_path,
        retry_attempts=settings.retry_attempts,
        retry_base_delay_seconds=settings.retry_base_delay_seconds,
    )
    library_service = LibraryService(
        record_store=record_store,
        collection_path=collection_path,
        limit=settings.library_limit,
    )
    orchestrator = Orchestrator(
        settings=settings,
        identity_provider=identity_provider,
        session_service=session_service,
        library_service=library_service,
        notices=notices,
    )

    async def close_resources() -> None:
        await orchestrator.shutdown()

    return AppContainer(
        settings=settings,
        notices=notices,
        record_store=record_store,
        capture_device=capture_device,
        identity_provider=identity_provider,
        session_service=session_service,
        library_service=library_service,
        orchestrator=orchestrator,
        close_resources=close_resources,
    )
