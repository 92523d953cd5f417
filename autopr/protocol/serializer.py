"""JSON serialization helpers for protocol commands and responses."""

from __future__ import annotations

import json

from pydantic import TypeAdapter, ValidationError

from autopr.exceptions import InvalidCommandError
from autopr.protocol.commands import Analyze, Command, CreatePullRequest
from autopr.protocol.responses import Response

COMMAND_TYPES: dict[str, type[Command]] = {
    "analyze": Analyze,
    "create_pull_request": CreatePullRequest,
}

_response_adapter: TypeAdapter[Response] = TypeAdapter(Response)


def serialize_response(response: Response) -> str:
    """Serialize a response to JSON string."""
    return response.model_dump_json()


def parse_command(data: str | bytes) -> Command:
    """Deserialize a client command from JSON.

    Raises:
        InvalidCommandError: If the frame is not JSON, not an object, or
            carries an unknown or malformed command.
    """
    try:
        obj = json.loads(data)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise InvalidCommandError("frame is not valid JSON") from e

    if not isinstance(obj, dict):
        raise InvalidCommandError("frame is not a JSON object")

    command_type = COMMAND_TYPES.get(obj.get("type"))  # type: ignore[arg-type]
    if command_type is None:
        raise InvalidCommandError(f"unknown command type: {obj.get('type')!r}")

    try:
        return command_type.model_validate(obj)
    except ValidationError as e:
        raise InvalidCommandError(str(e)) from e


def parse_response(data: str | bytes) -> Response:
    """Deserialize a server response (used by clients and tests)."""
    return _response_adapter.validate_json(data)
