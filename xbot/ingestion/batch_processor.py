"""Batch processing of new mentions: filter, rank, answer and reply."""

import logging
from datetime import datetime, timezone
from typing import Callable, List, Optional, Set, Tuple

from ..answer_engines.base import AnswerEngine
from ..errors import BotError, ErrorType, StorageError
from ..models.context import Context
from ..models.message import Message
from ..models.results import MentionFetchResult, TweetMention, TweetMentionBatch
from ..models.tweet import Tweet, TwitterUser, max_twitter_id
from ..sources.twitter import TwitterAPIAdapter
from .known_bots import is_likely_bot
from .mention_fetcher import fetch_user_mentions
from .mention_utils import get_num_mentions, get_prompt, get_tweet_url
from .priority import PriorityFn, PriorityPolicy
from .storage_service import BotStore
from .thread_resolver import resolve_message_thread

logger = logging.getLogger(__name__)

# Upper bound on parent lookups when measuring thread depth for ranking
MAX_THREAD_DEPTH = 10

# Author lookups failing with these mean the author is gone for good
UNRESOLVABLE_AUTHOR_ERROR_TYPES = (ErrorType.TWITTER_NOT_FOUND, ErrorType.TWITTER_FORBIDDEN)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class InvalidMentionError(BotError):
    """A mention which will never be answered (bot account, empty prompt, ...)."""

    def __init__(self, message: str):
        super().__init__(message, error_type=ErrorType.INVALID_MENTION, is_final=True)


class BatchProcessor:
    """Orchestrates one batch of mention processing."""

    def __init__(
        self,
        twitter: TwitterAPIAdapter,
        store: BotStore,
        answer_engine: AnswerEngine,
        priority_fn: Optional[PriorityFn] = None,
        is_bot: Callable[[str], bool] = is_likely_bot,
    ) -> None:
        """Initialize batch processor.

        Args:
            twitter: Twitter API adapter
            store: Persistent bot store
            answer_engine: Generates reply text for resolved threads
            priority_fn: Scores mentions (defaults to ``PriorityPolicy()``)
            is_bot: Bot-noise classifier for author usernames
        """
        self.twitter = twitter
        self.store = store
        self.answer_engine = answer_engine
        self.priority_fn = priority_fn or PriorityPolicy()
        self.is_bot = is_bot

    def process_batch(self, ctx: Context) -> TweetMentionBatch:
        """Fetch, filter, rank and respond to the next batch of mentions."""
        batch = TweetMentionBatch(min_since_mention_id=ctx.since_mention_id)

        try:
            fetched = self._fetch_mentions(ctx)
        except BotError as e:
            batch.flags.record(e.error_type)
            logger.error(f"❌ Failed to fetch mentions ({e.error_type.value}): {e}")
            return batch

        batch.users = fetched.users
        batch.tweets = fetched.tweets
        if fetched.error_type:
            batch.flags.record(fetched.error_type)

        mentions = sorted(
            fetched.mentions,
            key=lambda t: (len(t.id), t.id),
        )
        candidates: List[Tuple[TweetMention, Message]] = []
        deferred_ids: Set[str] = set()
        for tweet in mentions:
            try:
                prepared = self._prepare_mention(tweet, fetched, batch, ctx)
            except StorageError as e:
                # Unknown whether this mention was already answered
                logger.error(f"❌ Deferring mention {tweet.id}: {e}")
                deferred_ids.add(tweet.id)
                continue
            if prepared:
                candidates.append(prepared)

        # Highest priority first; ties keep chronological order
        candidates.sort(key=lambda c: c[0].priority_score, reverse=True)
        admitted = candidates[: ctx.max_num_mentions_to_process]
        postponed = candidates[ctx.max_num_mentions_to_process :]

        batch.mentions = [mention for mention, _ in candidates]
        batch.num_mentions_postponed = len(postponed)
        logger.info(
            f"📥 {len(mentions)} mentions fetched, {len(candidates)} valid, "
            f"{len(admitted)} to process, {len(postponed)} postponed"
        )

        if ctx.early_exit:
            return batch

        for mention, message in admitted:
            self._respond_to_mention(mention, message, batch, ctx)

        if not ctx.debug_tweet_ids:
            blocking_ids = {mention.id for mention, _ in postponed} | deferred_ids
            blocking_ids.update(m.id for m in batch.messages if m.error and not m.is_error_final)
            batch.since_mention_id = self._advance_since_mention_id(
                [t.id for t in mentions], blocking_ids, fetched.since_mention_id, ctx.since_mention_id
            )

        return batch

    def _fetch_mentions(self, ctx: Context) -> MentionFetchResult:
        if not ctx.debug_tweet_ids:
            return fetch_user_mentions(
                self.twitter, self.store, ctx.twitter_bot_user_id, ctx.since_mention_id, ctx
            )

        # Replay explicit tweets instead of the cursor-bounded mentions timeline
        page = self.twitter.get_tweets(ctx.debug_tweet_ids)
        result = MentionFetchResult()
        result.merge(page.mentions, page.users, page.tweets)
        self.store.upsert_tweets(result.mentions + list(result.tweets.values()))
        self.store.upsert_twitter_users(list(result.users.values()))
        return result

    @staticmethod
    def _advance_since_mention_id(
        mention_ids: List[str],
        blocking_ids: Set[str],
        fetched_since_mention_id: Optional[str],
        since_mention_id: Optional[str],
    ) -> Optional[str]:
        """Advance the cursor up to (but not past) the oldest unfinished mention."""
        if not blocking_ids:
            return max_twitter_id(fetched_since_mention_id, since_mention_id)

        cursor = since_mention_id
        for mention_id in mention_ids:
            if mention_id in blocking_ids:
                break
            cursor = max_twitter_id(cursor, mention_id)
        return cursor

    def _get_author(self, tweet: Tweet, fetched: MentionFetchResult) -> Optional[TwitterUser]:
        if not tweet.author_id:
            return None
        user = fetched.users.get(tweet.author_id) or self.store.get_twitter_user(tweet.author_id)
        if user:
            return user
        try:
            user = self.twitter.get_user(tweet.author_id)
        except BotError as e:
            if e.error_type not in UNRESOLVABLE_AUTHOR_ERROR_TYPES:
                raise
            logger.warning(f"Unable to resolve author {tweet.author_id}: {e}")
            return None
        self.store.upsert_twitter_users([user])
        return user

    def _resolve_parent_message_id(self, tweet: Tweet) -> Optional[str]:
        replied_to_id = tweet.replied_to_id
        if not replied_to_id:
            return None
        parent = self.store.get_message_by_response_tweet_id(replied_to_id)
        if not parent:
            parent = self.store.get_message(replied_to_id)
        return parent.id if parent else None

    def _thread_depth(self, message: Message) -> int:
        depth = 0
        parent_id = message.parent_message_id
        while parent_id and depth < MAX_THREAD_DEPTH:
            depth += 1
            parent = self.store.get_message(parent_id)
            parent_id = parent.parent_message_id if parent else None
        return depth

    def _prepare_mention(
        self,
        tweet: Tweet,
        fetched: MentionFetchResult,
        batch: TweetMentionBatch,
        ctx: Context,
    ) -> Optional[Tuple[TweetMention, Message]]:
        """Validate and annotate one mention.

        Returns:
            The populated mention and its message, or None if it is skipped

        Raises:
            StorageError: If the mention's stored turn or parent can't be read
        """
        if tweet.author_id == ctx.twitter_bot_user_id or tweet.is_retweet:
            return None

        existing = self.store.get_message(tweet.id)
        if existing and not existing.is_retryable and not ctx.force_reply:
            logger.debug(f"Skipping mention {tweet.id}: already handled")
            return None

        message = existing or Message(
            id=tweet.id,
            prompt=tweet.text,
            prompt_tweet_id=tweet.id,
            prompt_user_id=tweet.author_id or "0",
            answer_engine=self.answer_engine.name,
        )
        message.prompt_likes = tweet.metric("like_count")
        message.prompt_retweets = tweet.metric("retweet_count")
        message.prompt_replies = tweet.metric("reply_count")
        message.prompt_date = tweet.created_at.isoformat() if tweet.created_at else None
        message.parent_message_id = self._resolve_parent_message_id(tweet)

        try:
            author = self._get_author(tweet, fetched)
        except BotError as e:
            batch.flags.record(e.error_type)
            message.set_error(e)
            logger.error(
                f"❌ Failed to resolve author of mention {tweet.id} ({e.error_type.value}): {e}"
            )
            self._record_message(message, batch, ctx)
            return None

        username = author.username if author else None
        message.prompt_username = username

        try:
            if not username:
                raise InvalidMentionError(f"Unable to resolve author of mention {tweet.id}")
            if self.is_bot(username) and not ctx.force_reply:
                raise InvalidMentionError(f"Ignoring mention from likely bot @{username}")

            prompt = get_prompt(tweet.text, ctx.twitter_bot_handle)
            if not prompt:
                raise InvalidMentionError(f"Mention {tweet.id} has an empty prompt")
        except InvalidMentionError as e:
            logger.info(f"Skipping mention {tweet.id}: {e}")
            message.set_error(e)
            if not ctx.dry_run:
                self.store.upsert_message(message)
            return None

        mention = TweetMention(tweet=tweet)
        mention.username = username
        mention.prompt = prompt
        mention.num_mentions = get_num_mentions(tweet)
        mention.num_followers = author.followers_count
        mention.prompt_url = get_tweet_url(username, tweet.id)
        mention.is_reply = tweet.replied_to_id is not None
        mention.priority_score = self.priority_fn(
            mention.num_followers, self._thread_depth(message), mention.is_reply
        )

        message.prompt = prompt
        message.prompt_url = mention.prompt_url
        message.num_followers = mention.num_followers
        message.is_reply = mention.is_reply
        message.priority_score = mention.priority_score

        return mention, message

    def _respond_to_mention(
        self,
        mention: TweetMention,
        message: Message,
        batch: TweetMentionBatch,
        ctx: Context,
    ) -> None:
        """Generate and post a reply; errors are recorded on the message."""
        try:
            thread = resolve_message_thread(message, self.store, self.twitter, ctx)
            response = self.answer_engine.generate_response(thread, ctx)
            message.response = response
            message.answer_engine = self.answer_engine.name

            if ctx.dry_run:
                logger.info(f"[dry run] Reply to {mention.prompt_url}: {response}")
            else:
                response_tweet_id = self.twitter.create_reply(mention.id, response)
                message.response_tweet_id = response_tweet_id
                message.response_url = get_tweet_url(ctx.twitter_bot_username, response_tweet_id)
                message.response_date = _now_iso()
                logger.info(f"✅ Replied to {mention.prompt_url}: {message.response_url}")

            message.clear_error()
        except BotError as e:
            batch.flags.record(e.error_type)
            message.set_error(e)
            logger.error(
                f"❌ Error responding to {mention.prompt_url} "
                f"({e.error_type.value}, final={e.is_final}): {e}"
            )
        except Exception as e:
            message.set_error(BotError(f"Unexpected error: {e}", error_type=ErrorType.UNKNOWN))
            logger.error(f"❌ Unexpected error responding to {mention.prompt_url}: {e}", exc_info=True)

        self._record_message(message, batch, ctx)

    def _record_message(self, message: Message, batch: TweetMentionBatch, ctx: Context) -> None:
        if not ctx.dry_run:
            result = self.store.upsert_message(message)
            if not result.success:
                logger.error(f"Failed to persist message {message.id}: {result.errors}")

        batch.messages.append(message)
