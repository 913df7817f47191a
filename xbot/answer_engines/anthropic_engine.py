"""Anthropic messages-API answer engine."""

import logging
from typing import Dict, List, Optional

import anthropic

from ..errors import BotError, ErrorType
from ..models.context import Context
from .base import build_system_prompt, finalize_response

logger = logging.getLogger(__name__)


def to_alternating_messages(thread: List[Dict[str, str]]) -> List[Dict[str, str]]:
    """Merge consecutive same-role messages; the messages API needs strict
    user/assistant alternation starting with a user turn."""
    merged: List[Dict[str, str]] = []
    for entry in thread:
        if merged and merged[-1]["role"] == entry["role"]:
            merged[-1] = {
                "role": entry["role"],
                "content": f"{merged[-1]['content']}\n\n{entry['content']}",
            }
        else:
            merged.append(dict(entry))
    if merged and merged[0]["role"] != "user":
        merged.insert(0, {"role": "user", "content": "(earlier in the thread)"})
    return merged


class AnthropicAnswerEngine:
    """Answer engine backed by the Anthropic messages API."""

    name = "anthropic"

    def __init__(
        self,
        api_key: str = "",
        model: str = "claude-3-5-haiku-latest",
        max_tokens: int = 100,
        client: Optional[anthropic.Anthropic] = None,
    ):
        self.model = model
        self.max_tokens = max_tokens
        self.client = client or anthropic.Anthropic(api_key=api_key)

    def generate_response(self, thread: List[Dict[str, str]], ctx: Context) -> str:
        try:
            res = self.client.messages.create(
                model=self.model,
                system=build_system_prompt(ctx),
                messages=to_alternating_messages(thread),
                max_tokens=self.max_tokens,
            )
        except anthropic.BadRequestError as e:
            raise BotError(
                f"Anthropic rejected the request: {e}",
                error_type=ErrorType.ANSWER_ENGINE,
                status=e.status_code,
                is_final=True,
            ) from e
        except anthropic.AnthropicError as e:
            raise BotError(
                f"Anthropic request failed: {e}",
                error_type=ErrorType.ANSWER_ENGINE,
                status=getattr(e, "status_code", None),
                is_final=False,
            ) from e

        text = "".join(block.text for block in res.content if block.type == "text")
        response = finalize_response(text)
        if not response:
            raise BotError("Anthropic returned an empty response", error_type=ErrorType.ANSWER_ENGINE)

        logger.debug(f"Anthropic response ({self.model}): {response}")
        return response
