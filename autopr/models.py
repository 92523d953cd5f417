"""Shared models for autopr.

Core domain models used across the application.
These are separate from protocol models to avoid circular imports.
"""

from __future__ import annotations

from enum import Enum

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, StrictStr


class SessionState(str, Enum):
    """Orchestration state of a session."""

    IDLE = "idle"
    ANALYZING = "analyzing"
    READY = "ready"
    COMMITTING = "committing"


class FileChange(BaseModel):
    """Complete replacement content for one file plus its rationale.

    The suggestion engine names the path ``file``; ``path`` is accepted too
    and is what gets serialized back to clients.
    """

    model_config = ConfigDict(extra="ignore")

    path: StrictStr = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("path", "file"),
        description="Repository-relative file path",
    )
    description: StrictStr = Field(..., description="Human-readable rationale")
    content: StrictStr = Field(..., description="Full intended file body")


class ChangeSet(BaseModel):
    """Ordered, non-empty list of file changes. Order is commit order."""

    changes: list[FileChange] = Field(..., min_length=1)

    @property
    def paths(self) -> list[str]:
        return [change.path for change in self.changes]


class PullRequest(BaseModel):
    """Pull request opened on the remote repository."""

    url: str
    number: int | None = None
