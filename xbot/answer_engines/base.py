"""Answer engine interface and helpers shared by all backends."""

import re
from datetime import datetime, timezone
from typing import Dict, List, Protocol

from ..models.context import Context

MAX_TWEET_LENGTH = 280

_USER_MENTION_RE = re.compile(r"(?<!\w)@\w+\s*")


class AnswerEngine(Protocol):
    """Generates reply text from a resolved conversation thread."""

    name: str

    def generate_response(self, thread: List[Dict[str, str]], ctx: Context) -> str:
        ...


def build_system_prompt(ctx: Context) -> str:
    current_date = datetime.now(timezone.utc).date().isoformat()
    return f"""You are a friendly, expert, helpful twitter bot with the handle {ctx.twitter_bot_handle}.
You answer concisely and creatively to tweets.
You are very concise and informal.
You can sometimes be a bit sassy and sarcastic, but try not to be rude.
DO NOT use emoji very often.
DO NOT use hashtags.
DO NOT reply using JSON.
DO NOT use @mention usernames in your reply.
DO NOT use markdown.
Make sure to be **as concise as possible** since twitter has character limits.
Your response should be as informationally dense and interesting as possible.
Current date: {current_date}."""


def strip_user_mentions(text: str) -> str:
    return _USER_MENTION_RE.sub("", text).strip()


def finalize_response(text: str, max_length: int = MAX_TWEET_LENGTH) -> str:
    """Clean up model output and cap it to the tweet character budget."""
    response = strip_user_mentions(text.strip().strip('"'))
    if len(response) <= max_length:
        return response

    truncated = response[: max_length - 1]
    # Prefer cutting on a word boundary
    if " " in truncated:
        truncated = truncated.rsplit(" ", 1)[0]
    return truncated.rstrip(" ,.;:") + "…"
