"""Paths that are never read from the repository.

Anything read by the tree walk is sent to the suggestion engine, so this is a
hard filter: dependency caches, build output, lock files and secrets stay out.
"""

from __future__ import annotations

import fnmatch
from collections.abc import Iterable
from pathlib import PurePosixPath

EXCLUDED_DIRECTORIES: frozenset[str] = frozenset(
    {
        ".git",
        ".next",
        ".svelte-kit",
        ".venv",
        ".wrangler",
        "__pycache__",
        "build",
        "coverage",
        "dist",
        "node_modules",
        "target",
        "vendor",
        "venv",
    }
)

EXCLUDED_FILES: frozenset[str] = frozenset(
    {
        "Cargo.lock",
        "Gemfile.lock",
        "Pipfile.lock",
        "bun.lockb",
        "composer.lock",
        "go.sum",
        "package-lock.json",
        "pnpm-lock.yaml",
        "poetry.lock",
        "uv.lock",
        "yarn.lock",
        ".dev.vars",
        ".env",
    }
)

EXCLUDED_GLOBS: tuple[str, ...] = (".env.*", "*.pem", "*.key", "*.lock")


class ExclusionFilter:
    """Decides whether a repository path may be read.

    Args:
        extra_patterns: Additional glob patterns matched against both the full
            path and the file name.
    """

    def __init__(self, extra_patterns: Iterable[str] = ()):
        self.extra_patterns = tuple(extra_patterns)

    def is_excluded(self, path: str) -> bool:
        parts = PurePosixPath(path.strip("/")).parts
        if not parts:
            return False
        if any(part in EXCLUDED_DIRECTORIES for part in parts):
            return True

        name = parts[-1]
        if name in EXCLUDED_FILES:
            return True
        if any(fnmatch.fnmatchcase(name, pattern) for pattern in EXCLUDED_GLOBS):
            return True
        return any(
            fnmatch.fnmatchcase(path, pattern) or fnmatch.fnmatchcase(name, pattern)
            for pattern in self.extra_patterns
        )

    def __call__(self, path: str) -> bool:
        return self.is_excluded(path)
