"""Client to server command models."""

from __future__ import annotations

from typing import Literal, Union

from pydantic import BaseModel, ConfigDict


class Analyze(BaseModel):
    """Fetch the codebase and ask for an improvement suggestion."""

    model_config = ConfigDict(extra="forbid")

    type: Literal["analyze"] = "analyze"


class CreatePullRequest(BaseModel):
    """Materialize the pending suggestion as a branch and pull request."""

    model_config = ConfigDict(extra="forbid")

    type: Literal["create_pull_request"] = "create_pull_request"


Command = Union[Analyze, CreatePullRequest]
