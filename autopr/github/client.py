"""GitHub REST API client for the repository operations the session actor needs."""

from __future__ import annotations

import base64
from collections.abc import AsyncIterator
from typing import Any
from urllib.parse import quote

import httpx
import structlog

from autopr.exceptions import ConfigurationError, ConflictError, NotFoundError, TransportError
from autopr.github.exclusions import ExclusionFilter
from autopr.models import PullRequest
from autopr.observability import span, timed

logger = structlog.get_logger(__name__)


def _quote_path(path: str) -> str:
    return quote(path.strip("/"), safe="/")


class RepositoryClient:
    """Async client for GitHub REST API v3, bound to a single repository.

    Holds no state besides the pooled HTTP connection, so one instance is
    shared by every session.
    """

    def __init__(
        self,
        token: str,
        owner: str,
        repo: str,
        *,
        api_url: str = "https://api.github.com",
        user_agent: str = "autopr",
        api_version: str = "2022-11-28",
        timeout: float | None = 60.0,
        exclusions: ExclusionFilter | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the repository client.

        Args:
            token: Bearer token for the GitHub API.
            owner: Repository owner (user or organization).
            repo: Repository name.
            api_url: Base URL of the REST API.
            user_agent: Value of the required User-Agent header.
            api_version: Value of the X-GitHub-Api-Version header.
            timeout: Per-request timeout in seconds.
            exclusions: Filter applied to every path the tree walk sees.
            transport: Optional httpx transport (used by tests).
        """
        self.owner = owner
        self.repo = repo
        self.exclusions = exclusions or ExclusionFilter()
        self.client = httpx.AsyncClient(
            base_url=f"{api_url.rstrip('/')}/repos/{owner}/{repo}",
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": api_version,
                "User-Agent": user_agent,
            },
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings: Any, **kwargs: Any) -> RepositoryClient:
        """Build a client from application settings."""
        if settings.github_token is None:
            raise ConfigurationError("github_token", "GITHUB_TOKEN is not set")
        owner, repo = settings.repository.split("/", 1)
        return cls(
            token=settings.github_token.get_secret_value(),
            owner=owner,
            repo=repo,
            api_url=settings.github_api_url,
            user_agent=settings.github_user_agent,
            api_version=settings.github_api_version,
            timeout=settings.github_timeout_seconds,
            exclusions=ExclusionFilter(settings.exclude_patterns),
            **kwargs,
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()

    async def __aenter__(self) -> RepositoryClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def _request(
        self,
        method: str,
        url: str,
        *,
        resource: str,
        not_found_ok: bool = False,
        conflict_statuses: tuple[int, ...] = (409,),
        **kwargs: Any,
    ) -> httpx.Response | None:
        """Send a request and map failures onto the repository error taxonomy.

        Returns None for a 404 when ``not_found_ok`` is set.
        """
        try:
            response = await self.client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.warning("Repository request failed", method=method, resource=resource, error=str(e))
            raise TransportError(f"{type(e).__name__}: {e}", url=url) from e

        if response.is_success:
            return response

        reason = _error_message(response)
        if response.status_code == 404:
            if not_found_ok:
                return None
            raise NotFoundError(resource)
        if response.status_code in conflict_statuses:
            raise ConflictError(resource, reason)
        raise TransportError(reason, status_code=response.status_code, url=str(response.url))

    # ========================================================================
    # Tree reads
    # ========================================================================

    async def list_directory(self, path: str, ref: str | None = None) -> list[dict[str, Any]]:
        """List a directory's entries via the contents endpoint."""
        params = {"ref": ref} if ref else None
        url = f"/contents/{_quote_path(path)}" if path.strip("/") else "/contents"
        response = await self._request("GET", url, resource=f"directory '{path or '/'}'", params=params)
        entries = response.json()
        if not isinstance(entries, list):
            raise TransportError(f"'{path}' is not a directory")
        return entries

    async def download(self, download_url: str, path: str) -> str:
        """Fetch a file's raw content and decode it as UTF-8."""
        response = await self._request("GET", download_url, resource=f"file '{path}'")
        return response.content.decode("utf-8", errors="replace")

    async def read_tree(
        self, root_path: str = "", ref: str | None = None
    ) -> AsyncIterator[tuple[str, str]]:
        """Recursively yield ``(path, content)`` for every readable file under root_path.

        Directories are walked with an explicit stack; excluded paths are
        skipped before anything is downloaded. Symlinks and submodules are
        ignored. Any failed request aborts the walk by raising.
        """
        pending = [root_path.strip("/")]
        while pending:
            directory = pending.pop()
            subdirectories = []
            for entry in await self.list_directory(directory, ref=ref):
                path = entry.get("path", "")
                if self.exclusions.is_excluded(path):
                    logger.debug("Skipping excluded path", path=path)
                    continue
                entry_type = entry.get("type")
                if entry_type == "file" and entry.get("download_url"):
                    yield path, await self.download(entry["download_url"], path)
                elif entry_type == "dir":
                    subdirectories.append(path)
            # Reverse so directories are visited in listing order.
            pending.extend(reversed(subdirectories))

    # ========================================================================
    # Branches
    # ========================================================================

    @timed("github", "get_branch_head")
    async def get_branch_head(self, branch: str) -> str:
        """Return the commit SHA at the head of ``branch``.

        Raises:
            NotFoundError: If the branch does not exist.
        """
        with span("github.get_branch_head", {"branch": branch}):
            response = await self._request(
                "GET", f"/git/ref/heads/{quote(branch, safe='/')}", resource=f"branch '{branch}'"
            )
        return response.json()["object"]["sha"]

    @timed("github", "create_branch")
    async def create_branch(self, name: str, from_sha: str) -> None:
        """Create ``name`` pointing at ``from_sha``.

        Raises:
            ConflictError: If a branch with that name already exists.
        """
        with span("github.create_branch", {"branch": name}):
            await self._request(
                "POST",
                "/git/refs",
                resource=f"branch '{name}'",
                conflict_statuses=(409, 422),
                json={"ref": f"refs/heads/{name}", "sha": from_sha},
            )
        logger.info("Created branch", branch=name, sha=from_sha)

    # ========================================================================
    # Files
    # ========================================================================

    @timed("github", "get_file_sha")
    async def get_file_sha(self, path: str, branch: str) -> str | None:
        """Return the blob SHA of ``path`` on ``branch``, or None if the file is new."""
        with span("github.get_file_sha", {"path": path, "branch": branch}):
            response = await self._request(
                "GET",
                f"/contents/{_quote_path(path)}",
                resource=f"file '{path}'",
                not_found_ok=True,
                params={"ref": branch},
            )
        if response is None:
            return None
        metadata = response.json()
        if not isinstance(metadata, dict):
            raise ConflictError(f"file '{path}'", "path refers to a directory")
        return metadata.get("sha")

    @timed("github", "write_file")
    async def write_file(
        self,
        path: str,
        content: str,
        branch: str,
        message: str,
        known_sha: str | None,
    ) -> dict[str, Any]:
        """Commit ``content`` as the full body of ``path`` on ``branch``.

        ``known_sha`` is the compare-and-swap precondition: it must be the blob
        SHA last read for this path on this branch, or None for a new file.

        Raises:
            ConflictError: If ``known_sha`` is stale.
        """
        payload: dict[str, Any] = {
            "message": message,
            "content": base64.b64encode(content.encode("utf-8")).decode("ascii"),
            "branch": branch,
        }
        if known_sha:
            payload["sha"] = known_sha

        with span("github.write_file", {"path": path, "branch": branch}):
            response = await self._request(
                "PUT",
                f"/contents/{_quote_path(path)}",
                resource=f"file '{path}'",
                conflict_statuses=(409, 422),
                json=payload,
            )
        logger.info("Committed file", path=path, branch=branch)
        return response.json()

    # ========================================================================
    # Pull requests
    # ========================================================================

    @timed("github", "open_pull_request")
    async def open_pull_request(self, title: str, body: str, head: str, base: str) -> PullRequest:
        """Open a pull request from ``head`` into ``base``.

        Raises:
            ConflictError: If an equivalent pull request is already open.
        """
        with span("github.open_pull_request", {"head": head, "base": base}):
            response = await self._request(
                "POST",
                "/pulls",
                resource=f"pull request {head} -> {base}",
                conflict_statuses=(409, 422),
                json={"title": title, "body": body, "head": head, "base": base},
            )
        data = response.json()
        logger.info("Opened pull request", url=data.get("html_url"), head=head, base=base)
        return PullRequest(url=data["html_url"], number=data.get("number"))


def _error_message(response: httpx.Response) -> str:
    """Extract GitHub's error message from a failed response."""
    try:
        data = response.json()
    except ValueError:
        return response.reason_phrase or f"HTTP {response.status_code}"
    if isinstance(data, dict) and data.get("message"):
        return str(data["message"])
    return response.reason_phrase or f"HTTP {response.status_code}"
