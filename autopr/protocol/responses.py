"""Server to client response models."""

from __future__ import annotations

from typing import Literal, Union

from pydantic import BaseModel, Field

from autopr.models import FileChange


class AnalysisResult(BaseModel):
    """Sent when an analyze command succeeds."""

    type: Literal["analysis_result"] = "analysis_result"
    suggestion: str


class ProposedChanges(BaseModel):
    """Intermediate response: the change set about to be committed."""

    type: Literal["proposed_changes"] = "proposed_changes"
    changes: list[FileChange] = Field(default_factory=list)


class PullRequestResult(BaseModel):
    """Sent when the pull request has been opened."""

    type: Literal["pull_request_result"] = "pull_request_result"
    url: str


class Error(BaseModel):
    """Sent when a command fails."""

    type: Literal["error"] = "error"
    message: str
    code: str = "internal_error"


Response = Union[AnalysisResult, ProposedChanges, PullRequestResult, Error]
