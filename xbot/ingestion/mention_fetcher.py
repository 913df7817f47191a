"""Incremental, cursor-bounded fetching of bot mentions."""

import logging
from typing import Optional

from ..errors import BotError, ErrorType
from ..models.context import Context
from ..models.results import MentionFetchResult
from ..sources.twitter import TwitterAPIAdapter
from .storage_service import BotStore

logger = logging.getLogger(__name__)

# Below this many new mentions per query we assume the backlog is drained
MIN_NEW_MENTIONS_TO_CONTINUE = 5


def fetch_user_mentions(
    twitter: TwitterAPIAdapter,
    store: BotStore,
    user_id: str,
    since_mention_id: Optional[str],
    ctx: Context,
    max_results: int = 100,
) -> MentionFetchResult:
    """Fetch mentions of ``user_id`` newer than ``since_mention_id``.

    Cached mentions are used first (unless the cache is disabled), then the
    Twitter API is queried starting from the newest id seen so far. In
    ``resolve_all_mentions`` mode queries repeat until a query returns fewer
    than ``MIN_NEW_MENTIONS_TO_CONTINUE`` mentions.

    Args:
        twitter: Twitter API adapter
        store: Bot store used for the mention cache and tweet/user upserts
        user_id: Id of the mentioned (bot) user
        since_mention_id: Only return mentions newer than this id
        ctx: Runtime context

    Returns:
        Fetched mentions with referenced users/tweets; ``since_mention_id`` is
        the max id among all returned mentions (or the input id if none)

    Raises:
        BotError: If the API fails before any mention was gathered
    """
    result = MentionFetchResult(since_mention_id=since_mention_id)

    if not ctx.no_mentions_cache:
        cached = store.get_cached_mentions_since(user_id, since_mention_id or "0")
        if cached and cached.mentions:
            result.merge(cached.mentions, list(cached.users.values()), list(cached.tweets.values()))
            logger.info(
                f"Mentions cache hit: {len(result.mentions)} mentions "
                f"(since {since_mention_id} -> {result.since_mention_id})"
            )
        else:
            logger.debug(f"Mentions cache miss (since {since_mention_id})")

    while True:
        logger.debug(f"Fetching mentions since {result.since_mention_id}")
        num_mentions_in_query = 0
        num_pages_in_query = 0

        try:
            for page in twitter.iter_user_mentions(
                user_id, since_id=result.since_mention_id, max_results=max_results
            ):
                num_pages_in_query += 1
                num_mentions_in_query += len(page.mentions)

                if page.mentions and not ctx.no_mentions_cache:
                    store.upsert_mentions_for_user(user_id, page.mentions)

                result.merge(page.mentions, page.users, page.tweets)
        except Exception as e:
            error_type = e.error_type if isinstance(e, BotError) else ErrorType.UNKNOWN
            logger.error(f"Twitter error fetching user mentions ({error_type.value}): {e}")

            if result.mentions:
                result.error_type = error_type
                logger.warning(
                    f"⚠️  Returning {len(result.mentions)} mentions gathered before the error"
                )
                break
            if isinstance(e, BotError):
                raise
            raise BotError(f"Error fetching twitter user mentions: {e}") from e

        logger.info(
            f"Fetched {num_mentions_in_query} mentions in {num_pages_in_query} pages "
            f"(since id now {result.since_mention_id})"
        )
        if num_mentions_in_query < MIN_NEW_MENTIONS_TO_CONTINUE or not ctx.resolve_all_mentions:
            break

    store.upsert_tweets(result.mentions + list(result.tweets.values()))
    store.upsert_twitter_users(list(result.users.values()))

    return result
