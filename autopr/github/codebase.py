"""Assembly of fetched repository files into the text sent for analysis."""

from __future__ import annotations

from collections.abc import AsyncIterable


def format_file(path: str, content: str) -> str:
    """Tag one file's content with its repository path."""
    return f"// File: {path}\n{content}\n\n"


async def collect_codebase(files: AsyncIterable[tuple[str, str]]) -> str:
    """Drain ``files`` into one tagged text block.

    Nothing is returned if the underlying walk fails part way: the exception
    propagates and the partial text is discarded.
    """
    parts = [format_file(path, content) async for path, content in files]
    return "".join(parts)
