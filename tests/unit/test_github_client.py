"""Unit tests for the GitHub repository client."""

from __future__ import annotations

import base64
import json

import httpx
import pytest

from autopr.exceptions import (
    ConfigurationError,
    ConflictError,
    NotFoundError,
    TransportError,
)
from autopr.github import ExclusionFilter, RepositoryClient, collect_codebase

API = "https://api.github.com"
RAW = "https://raw.githubusercontent.com/acme/widgets/main"
PREFIX = "/repos/acme/widgets"


def file_entry(path: str) -> dict:
    return {"type": "file", "path": path, "download_url": f"{RAW}/{path}"}


def dir_entry(path: str) -> dict:
    return {"type": "dir", "path": path, "download_url": None}


class FakeGitHub:
    """Routes MockTransport requests and records them."""

    def __init__(self, tree: dict[str, list[dict]] | None = None, raw: dict[str, str] | None = None):
        self.tree = tree or {}
        self.raw = raw or {}
        self.requests: list[httpx.Request] = []
        self.routes: dict[tuple[str, str], httpx.Response] = {}

    def route(self, method: str, path: str, response: httpx.Response) -> None:
        self.routes[(method, PREFIX + path)] = response

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.host == "raw.githubusercontent.com":
            path = request.url.path.removeprefix("/acme/widgets/main/")
            if path in self.raw:
                return httpx.Response(200, content=self.raw[path].encode("utf-8"))
            return httpx.Response(404, json={"message": "Not Found"})

        key = (request.method, request.url.path)
        if key in self.routes:
            return self.routes[key]

        if request.method == "GET" and request.url.path.startswith(PREFIX + "/contents"):
            directory = request.url.path.removeprefix(PREFIX + "/contents").strip("/")
            if directory in self.tree:
                return httpx.Response(200, json=self.tree[directory])
        return httpx.Response(404, json={"message": "Not Found"})

    def paths(self) -> list[str]:
        return [request.url.path for request in self.requests]


def make_client(handler, **kwargs) -> RepositoryClient:
    return RepositoryClient(
        "ghp-test",
        "acme",
        "widgets",
        api_url=API,
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


class TestHeaders:
    """Test request headers."""

    @pytest.mark.asyncio
    async def test_required_headers(self):
        """Every API call carries auth, media type, API version and user agent."""
        github = FakeGitHub()
        github.route("GET", "/git/ref/heads/main", httpx.Response(200, json={"object": {"sha": "abc"}}))

        async with make_client(github, user_agent="autopr-tests") as client:
            await client.get_branch_head("main")

        headers = github.requests[0].headers
        assert headers["Authorization"] == "Bearer ghp-test"
        assert headers["Accept"] == "application/vnd.github+json"
        assert headers["X-GitHub-Api-Version"] == "2022-11-28"
        assert headers["User-Agent"] == "autopr-tests"


class TestReadTree:
    """Test the recursive tree walk."""

    @pytest.mark.asyncio
    async def test_walks_subdirectories_in_listing_order(self):
        """Files are yielded depth-first in the order they are listed."""
        github = FakeGitHub(
            tree={
                "": [file_entry("README.md"), dir_entry("src"), dir_entry("docs")],
                "src": [file_entry("src/main.go"), dir_entry("src/util")],
                "src/util": [file_entry("src/util/strings.go")],
                "docs": [file_entry("docs/guide.md")],
            },
            raw={
                "README.md": "# widgets",
                "src/main.go": "package main",
                "src/util/strings.go": "package util",
                "docs/guide.md": "guide",
            },
        )

        async with make_client(github) as client:
            files = [item async for item in client.read_tree()]

        assert [path for path, _ in files] == [
            "README.md",
            "src/main.go",
            "src/util/strings.go",
            "docs/guide.md",
        ]
        assert dict(files)["src/main.go"] == "package main"

    @pytest.mark.asyncio
    async def test_excluded_paths_are_never_downloaded(self):
        """Dependency directories and secrets stay out of the assembled codebase."""
        github = FakeGitHub(
            tree={
                "": [
                    file_entry("index.js"),
                    file_entry(".env"),
                    file_entry("package-lock.json"),
                    dir_entry("node_modules"),
                ],
                "node_modules": [file_entry("node_modules/left-pad/index.js")],
            },
            raw={
                "index.js": "console.log('hi')",
                ".env": "SECRET=1",
                "package-lock.json": "{}",
                "node_modules/left-pad/index.js": "module.exports = pad",
            },
        )

        async with make_client(github) as client:
            codebase = await collect_codebase(client.read_tree())

        assert codebase == "// File: index.js\nconsole.log('hi')\n\n"
        assert not any("node_modules" in path for path in github.paths())
        assert not any(path.endswith("/.env") for path in github.paths())

    @pytest.mark.asyncio
    async def test_extra_exclusion_patterns(self):
        """Configured patterns are applied on top of the built-in list."""
        github = FakeGitHub(
            tree={"": [file_entry("app.py"), file_entry("data.csv")]},
            raw={"app.py": "print(1)", "data.csv": "a,b"},
        )

        async with make_client(github, exclusions=ExclusionFilter(["*.csv"])) as client:
            files = [path async for path, _ in client.read_tree()]

        assert files == ["app.py"]

    @pytest.mark.asyncio
    async def test_root_path_and_skipped_entries(self):
        """The walk starts at root_path and ignores symlinks and submodules."""
        github = FakeGitHub(
            tree={
                "src": [
                    file_entry("src/a.py"),
                    {"type": "symlink", "path": "src/link", "download_url": None},
                    {"type": "submodule", "path": "src/lib", "download_url": None},
                ]
            },
            raw={"src/a.py": "A = 1"},
        )

        async with make_client(github) as client:
            files = [path async for path, _ in client.read_tree("src")]

        assert files == ["src/a.py"]
        assert github.paths()[0] == PREFIX + "/contents/src"

    @pytest.mark.asyncio
    async def test_failed_subdirectory_aborts_walk(self):
        """A failing listing fails the whole read instead of returning a partial tree."""
        github = FakeGitHub(
            tree={"": [file_entry("a.py"), dir_entry("src")]},
            raw={"a.py": "A = 1"},
        )
        github.route("GET", "/contents/src", httpx.Response(500, json={"message": "Server Error"}))

        async with make_client(github) as client:
            with pytest.raises(TransportError) as exc_info:
                await collect_codebase(client.read_tree())

        assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_network_error_is_transport_error(self):
        """Connection failures surface as TransportError."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with make_client(handler) as client:
            with pytest.raises(TransportError):
                await collect_codebase(client.read_tree())


class TestBranches:
    """Test branch operations."""

    @pytest.mark.asyncio
    async def test_get_branch_head(self):
        github = FakeGitHub()
        github.route(
            "GET", "/git/ref/heads/main", httpx.Response(200, json={"object": {"sha": "deadbeef"}})
        )

        async with make_client(github) as client:
            assert await client.get_branch_head("main") == "deadbeef"

    @pytest.mark.asyncio
    async def test_missing_branch_is_not_found(self):
        github = FakeGitHub()

        async with make_client(github) as client:
            with pytest.raises(NotFoundError):
                await client.get_branch_head("missing")

    @pytest.mark.asyncio
    async def test_create_branch_payload(self):
        github = FakeGitHub()
        github.route("POST", "/git/refs", httpx.Response(201, json={"ref": "refs/heads/feature"}))

        async with make_client(github) as client:
            await client.create_branch("feature", "deadbeef")

        assert json.loads(github.requests[0].content) == {
            "ref": "refs/heads/feature",
            "sha": "deadbeef",
        }

    @pytest.mark.asyncio
    async def test_existing_branch_is_conflict(self):
        github = FakeGitHub()
        github.route(
            "POST", "/git/refs", httpx.Response(422, json={"message": "Reference already exists"})
        )

        async with make_client(github) as client:
            with pytest.raises(ConflictError) as exc_info:
                await client.create_branch("feature", "deadbeef")

        assert "Reference already exists" in exc_info.value.message


class TestFiles:
    """Test file reads and writes."""

    @pytest.mark.asyncio
    async def test_get_file_sha(self):
        github = FakeGitHub()
        github.route("GET", "/contents/src/a.py", httpx.Response(200, json={"sha": "blob1"}))

        async with make_client(github) as client:
            assert await client.get_file_sha("src/a.py", "feature") == "blob1"

        assert github.requests[0].url.params["ref"] == "feature"

    @pytest.mark.asyncio
    async def test_missing_file_has_no_sha(self):
        github = FakeGitHub()

        async with make_client(github) as client:
            assert await client.get_file_sha("new.py", "feature") is None

    @pytest.mark.asyncio
    async def test_write_new_file_omits_sha(self):
        """New files are created without a SHA precondition."""
        github = FakeGitHub()
        github.route("PUT", "/contents/new.py", httpx.Response(201, json={"content": {}}))

        async with make_client(github) as client:
            await client.write_file("new.py", "x = 1\n", "feature", "Update new.py: add", None)

        payload = json.loads(github.requests[0].content)
        assert payload["message"] == "Update new.py: add"
        assert payload["branch"] == "feature"
        assert "sha" not in payload
        assert base64.b64decode(payload["content"]).decode("utf-8") == "x = 1\n"

    @pytest.mark.asyncio
    async def test_write_existing_file_sends_sha(self):
        """Non-ASCII content is encoded as UTF-8 before base64."""
        github = FakeGitHub()
        github.route("PUT", "/contents/a.py", httpx.Response(200, json={"content": {}}))

        async with make_client(github) as client:
            await client.write_file("a.py", "naïve = '✓'\n", "feature", "msg", "blob1")

        payload = json.loads(github.requests[0].content)
        assert payload["sha"] == "blob1"
        assert base64.b64decode(payload["content"]).decode("utf-8") == "naïve = '✓'\n"

    @pytest.mark.asyncio
    async def test_stale_sha_is_conflict(self):
        github = FakeGitHub()
        github.route(
            "PUT", "/contents/a.py", httpx.Response(409, json={"message": "a.py does not match"})
        )

        async with make_client(github) as client:
            with pytest.raises(ConflictError):
                await client.write_file("a.py", "", "feature", "msg", "stale")

    @pytest.mark.asyncio
    async def test_server_error_is_transport_error(self):
        github = FakeGitHub()
        github.route("PUT", "/contents/a.py", httpx.Response(502, text="Bad Gateway"))

        async with make_client(github) as client:
            with pytest.raises(TransportError) as exc_info:
                await client.write_file("a.py", "", "feature", "msg", None)

        assert exc_info.value.status_code == 502


class TestPullRequests:
    """Test pull request creation."""

    @pytest.mark.asyncio
    async def test_open_pull_request(self):
        github = FakeGitHub()
        github.route(
            "POST",
            "/pulls",
            httpx.Response(
                201, json={"html_url": "https://github.com/acme/widgets/pull/7", "number": 7}
            ),
        )

        async with make_client(github) as client:
            pull_request = await client.open_pull_request("Update files", "body", "feature", "main")

        assert pull_request.url == "https://github.com/acme/widgets/pull/7"
        assert pull_request.number == 7
        assert json.loads(github.requests[0].content) == {
            "title": "Update files",
            "body": "body",
            "head": "feature",
            "base": "main",
        }

    @pytest.mark.asyncio
    async def test_duplicate_pull_request_is_conflict(self):
        github = FakeGitHub()
        github.route(
            "POST", "/pulls", httpx.Response(422, json={"message": "A pull request already exists"})
        )

        async with make_client(github) as client:
            with pytest.raises(ConflictError):
                await client.open_pull_request("Update files", "body", "feature", "main")


class TestFromSettings:
    """Test construction from settings."""

    def test_requires_token(self, make_settings):
        with pytest.raises(ConfigurationError):
            RepositoryClient.from_settings(make_settings(github_token=None))

    def test_requires_repository(self, make_settings):
        with pytest.raises(ConfigurationError):
            RepositoryClient.from_settings(make_settings(github_owner=None))

    @pytest.mark.asyncio
    async def test_builds_base_url(self, make_settings):
        client = RepositoryClient.from_settings(make_settings(exclude_patterns=["*.csv"]))
        try:
            assert str(client.client.base_url) == "https://api.github.com/repos/acme/widgets/"
            assert client.exclusions.is_excluded("data.csv")
        finally:
            await client.close()
