"""Helpers for turning raw mention tweets into prompts."""

import html
import re

from ..models.tweet import Tweet

_LEADING_MENTIONS_RE = re.compile(r"^(?:\s*@\w+)+")
_MENTION_RE = re.compile(r"(?<!\w)@\w+")
_WHITESPACE_RE = re.compile(r"\s+")


def get_prompt(text: str, bot_handle: str) -> str:
    """Normalize mention text into a prompt.

    Drops the leading ``@user`` reply prefix Twitter prepends to replies and
    any remaining mention of the bot itself.
    """
    prompt = html.unescape(text)
    prompt = _LEADING_MENTIONS_RE.sub("", prompt)
    prompt = re.sub(rf"(?<!\w){re.escape(bot_handle)}(?!\w)", "", prompt, flags=re.IGNORECASE)
    return _WHITESPACE_RE.sub(" ", prompt).strip()


def get_num_mentions(tweet: Tweet) -> int:
    """Number of users mentioned by a tweet."""
    if tweet.entities and tweet.entities.get("mentions") is not None:
        return len(tweet.entities["mentions"])
    return len(_MENTION_RE.findall(tweet.text))


def get_tweet_url(username: str, tweet_id: str) -> str:
    return f"https://twitter.com/{username}/status/{tweet_id}"
