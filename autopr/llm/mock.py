"""Mock LLM for offline runs and tests."""

from __future__ import annotations

import json
import re
from typing import Any

from langchain_core.callbacks import CallbackManagerForLLMRun
from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage
from langchain_core.outputs import ChatGeneration, ChatResult

FILE_HEADER = re.compile(r"^// File: (.+)$", re.MULTILINE)

SUGGESTIONS_FILE = "AUTOPR_SUGGESTIONS.md"


class MockLLM(BaseChatModel):
    """Deterministic stand-in for a chat model.

    A plain call reviews the ``// File:`` headers it is given and returns a
    short suggestion. A call bound to JSON output returns a one-entry change
    set that records the suggestion in a markdown file.
    """

    @property
    def _llm_type(self) -> str:
        return "mock"

    def _generate(
        self,
        messages: list[BaseMessage],
        stop: list[str] | None = None,
        run_manager: CallbackManagerForLLMRun | None = None,
        **kwargs: Any,
    ) -> ChatResult:
        payload = str(messages[-1].content)

        if kwargs.get("response_format"):
            text = json.dumps(
                {
                    "changes": [
                        {
                            "file": SUGGESTIONS_FILE,
                            "description": "Record suggested improvements",
                            "content": f"# Suggested improvements\n\n{payload.strip()}\n",
                        }
                    ]
                }
            )
        else:
            paths = FILE_HEADER.findall(payload)
            if paths:
                lines = [f"- {path}: review naming and remove dead code" for path in paths]
                text = f"Reviewed {len(paths)} files.\n" + "\n".join(lines)
            else:
                text = "No source files were provided; nothing to improve."

        return ChatResult(generations=[ChatGeneration(message=AIMessage(content=text))])
