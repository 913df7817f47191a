"""OpenAI chat-completions answer engine."""

import logging
from typing import Dict, List, Optional

import openai
from openai import OpenAI

from ..errors import BotError, ErrorType
from ..models.context import Context
from .base import build_system_prompt, finalize_response

logger = logging.getLogger(__name__)


class OpenAIAnswerEngine:
    """Answer engine backed by the OpenAI chat completions API."""

    name = "openai"

    def __init__(
        self,
        api_key: str = "",
        model: str = "gpt-4o-mini",
        max_tokens: int = 100,
        client: Optional[OpenAI] = None,
    ):
        self.model = model
        self.max_tokens = max_tokens
        self.client = client or OpenAI(api_key=api_key)

    def generate_response(self, thread: List[Dict[str, str]], ctx: Context) -> str:
        messages = [{"role": "system", "content": build_system_prompt(ctx)}, *thread]

        try:
            res = self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                max_tokens=self.max_tokens,
            )
        except openai.BadRequestError as e:
            raise BotError(
                f"OpenAI rejected the request: {e}",
                error_type=ErrorType.ANSWER_ENGINE,
                status=e.status_code,
                is_final=True,
            ) from e
        except openai.OpenAIError as e:
            raise BotError(
                f"OpenAI request failed: {e}",
                error_type=ErrorType.ANSWER_ENGINE,
                status=getattr(e, "status_code", None),
                is_final=False,
            ) from e

        response = finalize_response(res.choices[0].message.content or "")
        if not response:
            raise BotError("OpenAI returned an empty response", error_type=ErrorType.ANSWER_ENGINE)

        logger.debug(f"OpenAI response ({self.model}): {response}")
        return response
