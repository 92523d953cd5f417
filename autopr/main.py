"""FastAPI server exposing the session actor over WebSocket."""

from __future__ import annotations

import uuid
from contextlib import asynccontextmanager
from typing import Any

import structlog
from fastapi import FastAPI, WebSocket, WebSocketDisconnect, status
from fastapi.responses import JSONResponse

from autopr import __version__
from autopr.actor import SessionActor
from autopr.exceptions import AutoPRError
from autopr.github.client import RepositoryClient
from autopr.llm.suggestions import SuggestionEngine
from autopr.observability import SESSION_COUNT, setup_logging, setup_metrics, setup_tracing, span
from autopr.observability.tracing import shutdown_tracing
from autopr.protocol.serializer import parse_command
from autopr.sessions import SessionManager
from autopr.settings import Settings, get_settings
from autopr.streaming.emitter import ResponseEmitter

logger = structlog.get_logger(__name__)


def create_app(
    settings: Settings | None = None,
    repository: Any | None = None,
    engine: Any | None = None,
) -> FastAPI:
    """Build the application.

    Args:
        settings: Settings to use (defaults to the global settings).
        repository: Repository client shared by all sessions; built from
            settings at startup when omitted.
        engine: Suggestion engine shared by all sessions; built from settings
            at startup when omitted.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app_settings = settings or get_settings()
        setup_logging(app_settings.log_level, json_format=app_settings.log_json)
        setup_tracing(endpoint=app_settings.otel_endpoint, enabled=app_settings.otel_enabled)
        setup_metrics(port=app_settings.metrics_port, enabled=app_settings.metrics_enabled)

        owned_repository = None
        if repository is None:
            owned_repository = RepositoryClient.from_settings(app_settings)

        app.state.settings = app_settings
        app.state.repository = repository or owned_repository
        app.state.engine = engine or SuggestionEngine.from_settings(app_settings)
        app.state.session_manager = SessionManager(max_sessions=app_settings.max_sessions)

        logger.info(
            "autopr server started",
            version=__version__,
            repository=f"{app_settings.github_owner}/{app_settings.github_repo}",
            base_branch=app_settings.github_base_branch,
            llm_provider=app_settings.llm_provider,
        )

        yield

        logger.info("Shutting down autopr server")
        if owned_repository is not None:
            await owned_repository.close()
        shutdown_tracing()

    app = FastAPI(title="autopr", version=__version__, lifespan=lifespan)

    @app.get("/health")
    async def health() -> JSONResponse:
        """Health check endpoint."""
        session_manager: SessionManager | None = getattr(app.state, "session_manager", None)
        if session_manager is None:
            return JSONResponse(
                {"status": "starting", "version": __version__},
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            )
        return JSONResponse(
            {
                "status": "healthy",
                "version": __version__,
                "active_sessions": len(session_manager.list_sessions()),
            }
        )

    @app.get("/ready")
    async def ready() -> JSONResponse:
        """Readiness probe."""
        return JSONResponse({"ready": hasattr(app.state, "session_manager")})

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket):
        """One session per connection; commands arrive as JSON text frames."""
        await websocket.accept()
        await serve_session(websocket, app)

    return app


async def serve_session(websocket: WebSocket, app: FastAPI) -> None:
    """Drive one client's session until it disconnects."""
    settings: Settings = app.state.settings
    session_manager: SessionManager = app.state.session_manager
    client_id = str(uuid.uuid4())[:8]

    try:
        session = session_manager.create_session()
    except AutoPRError as e:
        SESSION_COUNT.labels(event_type="rejected").inc()
        logger.warning("Session rejected", client_id=client_id, error=e.message)
        await ResponseEmitter(websocket, session_id="").error_from_exception(e)
        await websocket.close(code=1013)
        return

    SESSION_COUNT.labels(event_type="opened").inc()
    emitter = ResponseEmitter(websocket, session.session_id)
    actor = SessionActor(
        session,
        app.state.repository,
        app.state.engine,
        emitter,
        base_branch=settings.github_base_branch,
        root_path=settings.github_root_path,
        branch_prefix=settings.branch_prefix,
    )
    log = logger.bind(client_id=client_id, session_id=session.session_id)
    log.info("Client connected")

    try:
        with span("websocket_session", {"session_id": session.session_id}):
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    raise WebSocketDisconnect(message.get("code", 1000))
                # Binary frames go through the same parser; bad bytes are an invalid command.
                data = message.get("text")
                if data is None:
                    data = message.get("bytes") or b""
                try:
                    command = parse_command(data)
                    actor.submit(command)
                except AutoPRError as e:
                    log.warning("Command not accepted", code=e.code.value, error=e.message)
                    await emitter.error_from_exception(e)
                    continue
                log.debug("Command accepted", command=command.type)
    except WebSocketDisconnect:
        log.info("Client disconnected")
    except Exception as e:
        log.exception("WebSocket error", error=str(e))
    finally:
        await actor.cancel()
        session_manager.delete_session(session.session_id)
        SESSION_COUNT.labels(event_type="closed").inc()


app = create_app()


def main():
    """Entry point for running the server."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "autopr.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level,
    )


if __name__ == "__main__":
    main()
