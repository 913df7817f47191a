"""Reconstruction of the conversation thread leading to a message."""

import logging
from typing import Dict, List, Optional

from ..errors import BotError, ErrorType
from ..models.context import Context
from ..models.message import Message
from ..models.tweet import Tweet
from ..sources.twitter import TwitterAPIAdapter
from .storage_service import BotStore

logger = logging.getLogger(__name__)

# A missing or protected tweet just truncates the thread
TRUNCATING_ERROR_TYPES = (ErrorType.TWITTER_NOT_FOUND, ErrorType.TWITTER_FORBIDDEN)


def try_get_tweet_by_id(
    twitter: TwitterAPIAdapter,
    store: BotStore,
    tweet_id: str,
    force: bool = False,
) -> Optional[Tweet]:
    """Get a tweet from the store, falling back to (or forcing) an API lookup.

    Returns:
        The tweet, or None if it was deleted or is not visible to the bot

    Raises:
        BotError: For rate limit, auth, network and unknown errors
    """
    if not force:
        tweet = store.get_tweet(tweet_id)
        if tweet:
            return tweet

    try:
        tweet = twitter.get_tweet(tweet_id)
    except BotError as e:
        if e.error_type in TRUNCATING_ERROR_TYPES:
            logger.info(f"Tweet {tweet_id} unavailable ({e.error_type.value})")
            return None
        raise

    store.upsert_tweets([tweet])
    return tweet


def resolve_message_thread(
    message: Message,
    store: BotStore,
    twitter: TwitterAPIAdapter,
    ctx: Context,
    include_external_thread: bool = True,
) -> List[Dict[str, str]]:
    """Resolve the chat messages of the thread ending at ``message``.

    Previous bot messages are found by following ``parent_message_id`` through
    the store. Earlier tweets in the thread which the bot was not part of are
    found by following ``replied_to`` references on Twitter, starting from
    the oldest bot message.

    Returns:
        Chat-completion style ``{"role", "content"}`` dicts, oldest first
    """
    leaf = message
    messages = [message]
    prev_tweets: List[Tweet] = []
    seen_ids = {message.id}

    # Resolve all previous bot-related messages in the thread
    while message.parent_message_id and message.parent_message_id not in seen_ids:
        parent = store.get_message(message.parent_message_id)
        if not parent:
            break
        message = parent
        seen_ids.add(message.id)
        messages.append(message)

    # Resolve any previous non-bot tweets in the thread
    if include_external_thread:
        tweet = try_get_tweet_by_id(twitter, store, message.prompt_tweet_id, force=True)
        while tweet and tweet.replied_to_id:
            tweet = try_get_tweet_by_id(twitter, store, tweet.replied_to_id, force=True)
            if not tweet:
                break
            prev_tweets.append(tweet)

    messages.reverse()
    prev_tweets.reverse()

    # Messages which failed are left out, except the leaf which may be a retry
    messages = [m for m in messages if not m.error or m.id == leaf.id]

    logger.debug(
        f"Resolved thread for {leaf.id} ({ctx.twitter_bot_handle}): "
        f"{len(prev_tweets)} tweets, {len(messages)} bot messages"
    )

    chat_messages = [{"role": "user", "content": tweet.text} for tweet in prev_tweets]
    for m in messages:
        chat_messages.append({"role": "user", "content": m.prompt})
        if m.response and m.id != leaf.id:
            chat_messages.append({"role": "assistant", "content": m.response})

    return chat_messages
