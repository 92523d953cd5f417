"""Response emitter for streaming actor responses to the connected client."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from autopr.exceptions import AutoPRError
from autopr.models import ChangeSet
from autopr.protocol.responses import (
    AnalysisResult,
    Error,
    ProposedChanges,
    PullRequestResult,
    Response,
)
from autopr.protocol.serializer import serialize_response

if TYPE_CHECKING:
    from fastapi import WebSocket

logger = structlog.get_logger(__name__)


class ResponseEmitter:
    """Emits responses to one connected WebSocket client."""

    def __init__(self, websocket: WebSocket, session_id: str) -> None:
        self.websocket = websocket
        self.session_id = session_id

    async def emit(self, response: Response) -> None:
        """Send a response to the client."""
        try:
            await self.websocket.send_text(serialize_response(response))
        except Exception as e:
            logger.error(
                "Failed to emit response",
                session_id=self.session_id,
                response_type=response.type,
                error=str(e),
            )
            raise

    async def analysis_result(self, suggestion: str) -> None:
        await self.emit(AnalysisResult(suggestion=suggestion))

    async def proposed_changes(self, change_set: ChangeSet) -> None:
        await self.emit(ProposedChanges(changes=change_set.changes))

    async def pull_request_result(self, url: str) -> None:
        await self.emit(PullRequestResult(url=url))

    async def error(self, message: str, code: str = "internal_error") -> None:
        await self.emit(Error(message=message, code=code))

    async def error_from_exception(self, error: AutoPRError, prefix: str | None = None) -> None:
        """Emit an error response built from an AutoPRError."""
        message = f"{prefix}: {error.message}" if prefix else error.message
        await self.error(message, code=error.code.value)
