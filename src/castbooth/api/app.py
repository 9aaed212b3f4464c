"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request, status

from castbooth.api.models import ActionResult, RoleSelection
from castbooth.app_logging import configure_logging
from castbooth.containers import AppContainer
from castbooth.domain.sessions import LifecycleState
from castbooth.errors import ConfigError
from castbooth.services.orchestrator import Orchestrator, record_payload


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging()
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        await app.state.container.orchestrator.start()
        yield
        try:
            await app.state.container.close_resources()
        except Exception:
            logger.exception("Failed to release resources on shutdown")

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.get("/state")
    async def state(request: Request) -> dict[str, object]:
        """Return everything the presentation layer renders."""
        return _orchestrator(request).snapshot()

    @app.get("/library")
    async def library(request: Request) -> dict[str, object]:
        """Return the active role's library, newest first."""
        orchestrator = _orchestrator(request)
        return {
            "role": orchestrator.role.value if orchestrator.role else None,
            "sessions": [
                record_payload(record)
                for record in orchestrator.library_service.projection
            ],
        }

    @app.post("/role")
    async def select_role(selection: RoleSelection, request: Request) -> ActionResult:
        """Select the customer or actor role."""
        orchestrator = _orchestrator(request)
        return _result(orchestrator, orchestrator.select_role(selection.role))

    @app.post("/sessions")
    async def start_session(request: Request) -> ActionResult:
        """Prepare a new session and open the camera."""
        orchestrator = _orchestrator(request)
        session = await orchestrator.start_session()
        return _result(orchestrator, session is not None)

    @app.post("/sessions/camera")
    async def acquire_camera(request: Request) -> ActionResult:
        """Retry opening the camera for the in-flight session."""
        orchestrator = _orchestrator(request)
        return _result(orchestrator, await orchestrator.acquire_capture())

    @app.post("/sessions/pay")
    async def pay(request: Request) -> ActionResult:
        """Simulate payment for the in-flight session."""
        orchestrator = _orchestrator(request)
        return _result(orchestrator, orchestrator.pay())

    @app.post("/sessions/recording/start")
    async def start_recording(request: Request) -> ActionResult:
        """Begin recording."""
        orchestrator = _orchestrator(request)
        return _result(orchestrator, orchestrator.start_recording())

    @app.post("/sessions/recording/stop")
    async def stop_recording(request: Request) -> ActionResult:
        """Stop recording and save the session."""
        orchestrator = _orchestrator(request)
        if orchestrator.session_service.state is not LifecycleState.RECORDING:
            return _result(orchestrator, False)
        await orchestrator.stop_recording()
        return _result(orchestrator, True)

    @app.post("/sessions/cancel")
    async def cancel_session(request: Request) -> ActionResult:
        """Discard the in-flight session."""
        orchestrator = _orchestrator(request)
        orchestrator.cancel_session()
        return _result(orchestrator, True)

    @app.post("/logout")
    async def logout(request: Request) -> ActionResult:
        """Return to role selection."""
        orchestrator = _orchestrator(request)
        orchestrator.logout()
        return _result(orchestrator, True)

    @app.delete("/notices/error")
    async def clear_error(request: Request) -> dict[str, str]:
        """Dismiss the current error message."""
        _orchestrator(request).notices.clear_error()
        return {"status": "ok"}

    @app.post("/notices/drain")
    async def drain_notices(request: Request) -> dict[str, object]:
        """Return and clear pending notices."""
        notices = _orchestrator(request).notices.drain()
        return {
            "notices": [
                {"title": notice.title, "message": notice.message}
                for notice in notices
            ]
        }

    return app


def create_error_app(error: ConfigError) -> FastAPI:
    """Create an app that only reports a fatal startup error."""
    configure_logging()
    logging.getLogger(__name__).error("Startup failed: %s", error)
    app = FastAPI()

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Report the blocking error."""
        return {"status": "error"}

    @app.get("/state")
    async def state() -> dict[str, object]:
        """Return the blocking error view."""
        return {"view": "error", "error": str(error)}

    @app.api_route(
        "/{path:path}", methods=["GET", "POST", "DELETE"], include_in_schema=False
    )
    async def unavailable(path: str) -> None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(error)
        )

    return app


def _orchestrator(request: Request) -> Orchestrator:
    container: AppContainer = request.app.state.container
    return container.orchestrator


def _result(orchestrator: Orchestrator, accepted: bool) -> ActionResult:
    if not accepted:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=ActionResult(accepted=False, state=orchestrator.snapshot()).model_dump(
                mode="json"
            ),
        )
    return ActionResult(accepted=True, state=orchestrator.snapshot())
