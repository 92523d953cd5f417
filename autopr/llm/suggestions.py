"""Suggestion engine client: improvement prose and structured change sets."""

from __future__ import annotations

import json
import re
from typing import Any

import structlog
from langchain_core.messages import BaseMessage, HumanMessage, SystemMessage
from pydantic import ValidationError

from autopr.exceptions import EngineError, MalformedResponseError
from autopr.llm.prompts import STRUCTURE_DIRECTIVE, SUMMARIZE_DIRECTIVE
from autopr.models import ChangeSet, FileChange
from autopr.observability import span, timed

logger = structlog.get_logger(__name__)

_CODE_FENCE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)


def _content_text(message: BaseMessage) -> str:
    """Flatten a chat message's content (string or content blocks) to text."""
    content = message.content
    if isinstance(content, str):
        return content
    parts = []
    for block in content:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(str(block.get("text", "")))
    return "".join(parts)


def parse_change_set(raw: str) -> ChangeSet:
    """Validate untrusted engine output into a ChangeSet.

    Raises:
        MalformedResponseError: If the text is not a JSON object with a
            non-empty ``changes`` list of well-formed entries.
    """
    text = raw.strip()
    fenced = _CODE_FENCE.match(text)
    if fenced:
        text = fenced.group(1)

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise MalformedResponseError(f"response is not valid JSON ({e.msg})") from e

    if not isinstance(data, dict) or "changes" not in data:
        raise MalformedResponseError("top-level 'changes' field is missing")
    entries = data["changes"]
    if not isinstance(entries, list):
        raise MalformedResponseError("'changes' is not a list")
    if not entries:
        raise MalformedResponseError("change set is empty")

    changes = []
    for index, entry in enumerate(entries):
        if not isinstance(entry, dict):
            raise MalformedResponseError(f"change {index} is not an object")
        try:
            changes.append(FileChange.model_validate(entry))
        except ValidationError as e:
            fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
            raise MalformedResponseError(f"change {index} has invalid fields: {fields}") from e

    return ChangeSet(changes=changes)


class SuggestionEngine:
    """Wraps a LangChain chat model with the two calls the session actor makes.

    Holds no per-session state, so one instance is shared by every session.
    """

    def __init__(self, model: Any, model_name: str = "mock"):
        """Initialize the engine.

        Args:
            model: A LangChain chat model (anything with ``ainvoke`` and ``bind``).
            model_name: Model identifier, used for logging.
        """
        self.model = model
        self.model_name = model_name

    @classmethod
    def from_settings(cls, settings: Any) -> SuggestionEngine:
        from autopr.llm.registry import create_chat_model

        return cls(create_chat_model(settings), model_name=settings.llm_model)

    @timed("llm", "summarize_improvements")
    async def summarize_improvements(self, codebase: str) -> str:
        """Ask for free-form improvement suggestions on ``codebase``.

        Raises:
            EngineError: If the call fails or the engine returns nothing.
        """
        messages = [SystemMessage(content=SUMMARIZE_DIRECTIVE), HumanMessage(content=codebase)]
        with span("llm.summarize_improvements", {"model": self.model_name}):
            try:
                response = await self.model.ainvoke(messages)
            except Exception as e:
                logger.warning("Suggestion engine call failed", operation="summarize", error=str(e))
                raise EngineError("summarize_improvements", str(e)) from e

        suggestion = _content_text(response).strip()
        if not suggestion:
            raise EngineError("summarize_improvements", "engine returned an empty suggestion")
        logger.info("Received suggestion", model=self.model_name, length=len(suggestion))
        return suggestion

    @timed("llm", "structure_changes")
    async def structure_changes(self, suggestion: str) -> ChangeSet:
        """Turn ``suggestion`` into a validated, non-empty ChangeSet.

        Raises:
            EngineError: If the call fails.
            MalformedResponseError: If the output fails validation.
        """
        messages = [SystemMessage(content=STRUCTURE_DIRECTIVE), HumanMessage(content=suggestion)]
        structured = self.model.bind(response_format={"type": "json_object"})
        with span("llm.structure_changes", {"model": self.model_name}):
            try:
                response = await structured.ainvoke(messages)
            except Exception as e:
                logger.warning("Suggestion engine call failed", operation="structure", error=str(e))
                raise EngineError("structure_changes", str(e)) from e

        change_set = parse_change_set(_content_text(response))
        logger.info("Structured change set", model=self.model_name, files=change_set.paths)
        return change_set
