"""Shared test fixtures and configuration."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest
from pydantic_settings import SettingsConfigDict

from autopr.exceptions import AutoPRError
from autopr.llm.suggestions import parse_change_set
from autopr.models import ChangeSet, FileChange, PullRequest
from autopr.protocol.responses import Response
from autopr.settings import Settings
from autopr.streaming.emitter import ResponseEmitter


# ============================================================================
# PYTEST CONFIG & MARKERS
# ============================================================================


def pytest_configure(config: Any) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: mark test as a unit test (fast, no I/O)")
    config.addinivalue_line("markers", "integration: mark test as integration (app + fakes)")


# ============================================================================
# SETTINGS
# ============================================================================


class IsolatedSettings(Settings):
    """Settings that ignore .env files and accept field names."""

    model_config = SettingsConfigDict(
        env_file=None,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )


@pytest.fixture
def make_settings():
    """Factory for isolated settings pointing at a test repository."""

    def _make(**overrides: Any) -> IsolatedSettings:
        values: dict[str, Any] = {
            "github_token": "ghp-test",
            "github_owner": "acme",
            "github_repo": "widgets",
        }
        values.update(overrides)
        return IsolatedSettings(**values)

    return _make


# ============================================================================
# FAKE COLLABORATORS
# ============================================================================


class FakeRepository:
    """In-memory stand-in for RepositoryClient that records every call in order."""

    def __init__(
        self,
        files: dict[str, str] | None = None,
        shas: dict[str, str] | None = None,
        base_sha: str = "base-sha",
        pull_request_url: str = "https://github.com/acme/widgets/pull/1",
    ):
        self.files = dict(files or {})
        self.shas = dict(shas or {})
        self.base_sha = base_sha
        self.pull_request_url = pull_request_url
        self.calls: list[tuple] = []
        self.failures: dict[str, AutoPRError] = {}
        self.write_failures: dict[str, AutoPRError] = {}

    def fail(self, operation: str, error: AutoPRError) -> None:
        self.failures[operation] = error

    def _check(self, operation: str) -> None:
        if operation in self.failures:
            raise self.failures[operation]

    def operations(self) -> list[str]:
        return [call[0] for call in self.calls]

    async def read_tree(self, root_path: str = "", ref: str | None = None):
        self.calls.append(("read_tree", root_path, ref))
        for path, content in self.files.items():
            await asyncio.sleep(0)
            yield path, content
        self._check("read_tree")

    async def get_branch_head(self, branch: str) -> str:
        self.calls.append(("get_branch_head", branch))
        self._check("get_branch_head")
        return self.base_sha

    async def create_branch(self, name: str, from_sha: str) -> None:
        self.calls.append(("create_branch", name, from_sha))
        self._check("create_branch")

    async def get_file_sha(self, path: str, branch: str) -> str | None:
        self.calls.append(("get_file_sha", path, branch))
        self._check("get_file_sha")
        return self.shas.get(path)

    async def write_file(
        self, path: str, content: str, branch: str, message: str, known_sha: str | None
    ) -> dict[str, Any]:
        self.calls.append(("write_file_started", path, known_sha, message))
        await asyncio.sleep(0)
        if path in self.write_failures:
            raise self.write_failures[path]
        self.shas[path] = f"sha-of-{path}"
        self.calls.append(("write_file_finished", path))
        return {"content": {"path": path, "sha": self.shas[path]}}

    async def open_pull_request(self, title: str, body: str, head: str, base: str) -> PullRequest:
        self.calls.append(("open_pull_request", title, body, head, base))
        self._check("open_pull_request")
        return PullRequest(url=self.pull_request_url, number=1)


class FakeEngine:
    """Suggestion engine double.

    ``raw_changes`` goes through the real parser so malformed output behaves
    exactly as it would from a model. Set ``gate`` to hold the summarize call
    until the test releases it.
    """

    def __init__(
        self,
        suggestion: str = "Simplify foo.go",
        raw_changes: str | None = None,
        change_set: ChangeSet | None = None,
    ):
        self.suggestion = suggestion
        self.raw_changes = raw_changes
        self.change_set = change_set or ChangeSet(
            changes=[FileChange(path="foo.go", description="simplify", content="package foo\n")]
        )
        self.calls: list[tuple[str, str]] = []
        self.failures: dict[str, AutoPRError] = {}
        self.gate: asyncio.Event | None = None
        self.entered = asyncio.Event()

    async def summarize_improvements(self, codebase: str) -> str:
        self.calls.append(("summarize_improvements", codebase))
        self.entered.set()
        if self.gate is not None:
            await self.gate.wait()
        if "summarize_improvements" in self.failures:
            raise self.failures["summarize_improvements"]
        return self.suggestion

    async def structure_changes(self, suggestion: str) -> ChangeSet:
        self.calls.append(("structure_changes", suggestion))
        if "structure_changes" in self.failures:
            raise self.failures["structure_changes"]
        if self.raw_changes is not None:
            return parse_change_set(self.raw_changes)
        return self.change_set


class RecordingEmitter(ResponseEmitter):
    """Emitter that keeps responses instead of sending them."""

    def __init__(self, session_id: str = "test-session"):
        super().__init__(websocket=None, session_id=session_id)
        self.responses: list[Response] = []

    async def emit(self, response: Response) -> None:
        self.responses.append(response)

    def types(self) -> list[str]:
        return [response.type for response in self.responses]


@pytest.fixture
def repository() -> FakeRepository:
    return FakeRepository(
        files={
            "foo.go": "package foo\n\nfunc Foo() {}\n",
            "bar.go": "package foo\n\nfunc Bar() {}\n",
        }
    )


@pytest.fixture
def engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture
def emitter() -> RecordingEmitter:
    return RecordingEmitter()
