"""Session actor: drives analyze and pull-request commands for one session.

State machine::

    idle -> analyzing -> ready -> committing -> idle

A failed command never leaves the session half-updated: new values are only
written once the whole pipeline for that command has succeeded, and the state
falls back to ``ready`` or ``idle`` depending on whether a suggestion is still
pending. Remote side effects (a created branch, commits already pushed) are
not undone.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager, suppress
from typing import TYPE_CHECKING

import structlog

from autopr.exceptions import AutoPRError, ErrorCode, PreconditionFailedError, SessionBusyError
from autopr.github.codebase import collect_codebase
from autopr.models import ChangeSet, FileChange, PullRequest, SessionState
from autopr.observability import COMMAND_COUNT, span
from autopr.protocol.commands import Analyze, Command, CreatePullRequest

if TYPE_CHECKING:
    from autopr.github.client import RepositoryClient
    from autopr.llm.suggestions import SuggestionEngine
    from autopr.sessions import Session
    from autopr.streaming.emitter import ResponseEmitter

logger = structlog.get_logger(__name__)

PULL_REQUEST_TITLE = "Update files"


class CommandFailed(Exception):
    """An AutoPRError tagged with the pipeline stage it interrupted."""

    def __init__(self, stage: str, error: AutoPRError):
        super().__init__(f"{stage}: {error.message}")
        self.stage = stage
        self.error = error


@contextmanager
def stage(description: str) -> Iterator[None]:
    """Attribute any AutoPRError raised inside the block to ``description``."""
    try:
        yield
    except AutoPRError as e:
        raise CommandFailed(description, e) from e


def commit_message(change: FileChange) -> str:
    return f"Update {change.path}: {change.description}"


def pull_request_body(change_set: ChangeSet) -> str:
    lines = ["Changes:", ""]
    lines.extend(f"- `{change.path}`: {change.description}" for change in change_set.changes)
    return "\n".join(lines)


class SessionActor:
    """Runs one command at a time against a session's state.

    ``submit`` claims the session synchronously before scheduling the command,
    so a second command arriving while one is in flight is rejected instead of
    interleaving with it.
    """

    def __init__(
        self,
        session: Session,
        repository: RepositoryClient,
        engine: SuggestionEngine,
        emitter: ResponseEmitter,
        *,
        base_branch: str = "main",
        root_path: str = "",
        branch_prefix: str = "autopr",
        clock: Callable[[], float] = time.time,
    ):
        self.session = session
        self.repository = repository
        self.engine = engine
        self.emitter = emitter
        self.base_branch = base_branch
        self.root_path = root_path
        self.branch_prefix = branch_prefix
        self.clock = clock
        self._task: asyncio.Task | None = None
        self.log = logger.bind(session_id=session.session_id)

    @property
    def busy(self) -> bool:
        return self._task is not None and not self._task.done()

    def submit(self, command: Command) -> asyncio.Task:
        """Schedule ``command`` as this session's single active task.

        Raises:
            SessionBusyError: If another command is still running.
        """
        if self.busy:
            COMMAND_COUNT.labels(command=command.type, status="rejected").inc()
            raise SessionBusyError(self.session.session_id)

        self._task = asyncio.create_task(
            self.execute(command), name=f"{command.type}:{self.session.short_id}"
        )
        self._task.add_done_callback(self._log_task_failure)
        return self._task

    async def cancel(self) -> None:
        """Cancel the in-flight command, if any, and wait for it to unwind."""
        if self._task is not None and not self._task.done():
            self._task.cancel()
            with suppress(asyncio.CancelledError):
                await self._task
            self.session.state = self.session.settled_state()

    async def execute(self, command: Command) -> None:
        """Run ``command`` to completion, emitting exactly one terminal response."""
        self.session.touch()
        log = self.log.bind(command=command.type)
        status = "success"

        with span(f"command.{command.type}", {"session_id": self.session.session_id}):
            try:
                if isinstance(command, Analyze):
                    await self._analyze()
                elif isinstance(command, CreatePullRequest):
                    await self._create_pull_request()
            except CommandFailed as e:
                status = "error"
                self.session.state = self.session.settled_state()
                log.warning("Command failed", stage=e.stage, code=e.error.code.value, error=e.error.message)
                await self.emitter.error_from_exception(e.error, prefix=e.stage)
            except AutoPRError as e:
                status = "error"
                self.session.state = self.session.settled_state()
                log.warning("Command rejected", code=e.code.value, error=e.message)
                await self.emitter.error_from_exception(e)
            except Exception as e:
                status = "error"
                self.session.state = self.session.settled_state()
                log.exception("Unexpected error while handling command")
                await self.emitter.error(f"Internal error: {e}", code=ErrorCode.INTERNAL_ERROR.value)
            finally:
                COMMAND_COUNT.labels(command=command.type, status=status).inc()

    # ========================================================================
    # Analyze
    # ========================================================================

    async def _analyze(self) -> None:
        session = self.session
        session.state = SessionState.ANALYZING

        with stage("Failed to analyze code"):
            with span("github.read_tree", {"root_path": self.root_path, "ref": self.base_branch}):
                codebase = await collect_codebase(
                    self.repository.read_tree(self.root_path, ref=self.base_branch)
                )
            suggestion = await self.engine.summarize_improvements(codebase)

        session.codebase = codebase
        session.pending_suggestion = suggestion
        session.state = SessionState.READY
        self.log.info("Analysis complete", codebase_chars=len(codebase))
        await self.emitter.analysis_result(suggestion)

    # ========================================================================
    # Create pull request
    # ========================================================================

    async def _create_pull_request(self) -> None:
        session = self.session
        suggestion = session.pending_suggestion
        if suggestion is None:
            raise PreconditionFailedError("No pending suggestion; run analyze first")

        session.state = SessionState.COMMITTING

        with stage("Failed to generate changes"):
            change_set = await self.engine.structure_changes(suggestion)
        await self.emitter.proposed_changes(change_set)

        with stage("Failed to create pull request"):
            pull_request = await self._publish(change_set)

        session.pending_suggestion = None
        session.state = SessionState.IDLE
        self.log.info("Pull request opened", url=pull_request.url)
        await self.emitter.pull_request_result(pull_request.url)

    def branch_name(self) -> str:
        """Branch name unique per session and millisecond."""
        return f"{self.branch_prefix}-{int(self.clock() * 1000)}-{self.session.short_id}"

    async def _publish(self, change_set: ChangeSet) -> PullRequest:
        """Create a branch, commit each change in order, and open the pull request.

        Writes are strictly sequential: each file's SHA is read from the new
        branch only after the previous write has landed.
        """
        repository = self.repository
        base_sha = await repository.get_branch_head(self.base_branch)
        branch = self.branch_name()
        await repository.create_branch(branch, base_sha)

        try:
            for change in change_set.changes:
                known_sha = await repository.get_file_sha(change.path, branch)
                await repository.write_file(
                    change.path, change.content, branch, commit_message(change), known_sha
                )
            return await repository.open_pull_request(
                PULL_REQUEST_TITLE,
                pull_request_body(change_set),
                head=branch,
                base=self.base_branch,
            )
        except AutoPRError as e:
            e.details["branch"] = branch
            self.log.warning("Branch left on remote after failure", branch=branch, error=e.message)
            raise

    def _log_task_failure(self, task: asyncio.Task) -> None:
        if task.cancelled():
            self.log.info("Command cancelled")
            return
        error = task.exception()
        if error is not None:
            self.log.error("Command task crashed", error=str(error), exc_info=error)
