"""Wire protocol between clients and the session actor."""

from autopr.protocol.commands import Analyze, Command, CreatePullRequest
from autopr.protocol.responses import (
    AnalysisResult,
    Error,
    ProposedChanges,
    PullRequestResult,
    Response,
)
from autopr.protocol.serializer import parse_command, parse_response, serialize_response

__all__ = [
    "AnalysisResult",
    "Analyze",
    "Command",
    "CreatePullRequest",
    "Error",
    "ProposedChanges",
    "PullRequestResult",
    "Response",
    "parse_command",
    "parse_response",
    "serialize_response",
]
