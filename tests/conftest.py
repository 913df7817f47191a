"""Shared test fixtures and utilities."""

from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Tuple

import pytest

from xbot.errors import ErrorType, TwitterAPIError
from xbot.models.context import Context
from xbot.models.message import Message
from xbot.models.results import MentionFetchResult, StorageResult
from xbot.models.tweet import ReferencedTweet, Tweet, TwitterUser, compare_twitter_ids
from xbot.sources.twitter import MentionPage

BOT_USER_ID = "1"
BOT_USERNAME = "xbot"

BASE_TIME = datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def _ok(count: int) -> StorageResult:
    return StorageResult(success=True, records_stored=count, errors=[], execution_time_ms=0)


class InMemoryStore:
    """In-memory stand-in for BotStore with the same public methods."""

    def __init__(self):
        self.tweets: Dict[str, Tweet] = {}
        self.users: Dict[str, TwitterUser] = {}
        self.messages: Dict[str, Message] = {}
        self.mention_cache: Dict[str, Dict[str, Tweet]] = {}
        self.since_mention_ids: Dict[str, str] = {}
        self.tokens: Dict[str, Tuple[str, str]] = {}
        self.since_mention_id_writes: List[str] = []

    def upsert_tweets(self, tweets) -> StorageResult:
        tweets = list(tweets)
        for tweet in tweets:
            self.tweets[tweet.id] = tweet
        return _ok(len(tweets))

    def upsert_twitter_users(self, users) -> StorageResult:
        users = list(users)
        for user in users:
            self.users[user.id] = user
        return _ok(len(users))

    def get_tweet(self, tweet_id: str) -> Optional[Tweet]:
        return self.tweets.get(tweet_id)

    def get_tweets(self, tweet_ids: List[str]) -> List[Tweet]:
        return [self.tweets[i] for i in tweet_ids if i in self.tweets]

    def get_twitter_user(self, user_id: str) -> Optional[TwitterUser]:
        return self.users.get(user_id)

    def get_twitter_users(self, user_ids: List[str]) -> List[TwitterUser]:
        return [self.users[i] for i in user_ids if i in self.users]

    def upsert_mentions_for_user(self, user_id: str, mentions) -> StorageResult:
        mentions = list(mentions)
        cache = self.mention_cache.setdefault(user_id, {})
        for mention in mentions:
            cache[mention.id] = mention
        return _ok(len(mentions))

    def get_cached_mentions_since(
        self, user_id: str, since_mention_id: str
    ) -> Optional[MentionFetchResult]:
        cached = [
            m
            for m in self.mention_cache.get(user_id, {}).values()
            if compare_twitter_ids(m.id, since_mention_id or "0") > 0
        ]
        if not cached:
            return None
        cached.sort(key=lambda m: (len(m.id), m.id))
        author_ids = [m.author_id for m in cached if m.author_id]
        ref_ids = [ref.id for m in cached for ref in m.referenced_tweets]
        result = MentionFetchResult(since_mention_id=since_mention_id)
        result.merge(cached, self.get_twitter_users(author_ids), self.get_tweets(ref_ids))
        return result

    def upsert_message(self, message: Message) -> StorageResult:
        self.messages[message.id] = message.model_copy(deep=True)
        return _ok(1)

    def get_message(self, message_id: str) -> Optional[Message]:
        message = self.messages.get(message_id)
        return message.model_copy(deep=True) if message else None

    def get_message_by_response_tweet_id(self, tweet_id: str) -> Optional[Message]:
        for message in self.messages.values():
            if message.response_tweet_id == tweet_id:
                return message.model_copy(deep=True)
        return None

    def get_since_mention_id(self, user_id: str) -> Optional[str]:
        return self.since_mention_ids.get(user_id)

    def set_since_mention_id(self, user_id: str, since_mention_id: str) -> StorageResult:
        self.since_mention_ids[user_id] = since_mention_id
        self.since_mention_id_writes.append(since_mention_id)
        return _ok(1)

    def get_twitter_tokens(self, auth_key: str) -> Optional[Tuple[str, str]]:
        return self.tokens.get(auth_key)

    def set_twitter_tokens(self, auth_key: str, access_token: str, refresh_token: str) -> StorageResult:
        self.tokens[auth_key] = (access_token, refresh_token)
        return _ok(1)


class FakeTwitterAPI:
    """Scriptable stand-in for TwitterAPIAdapter.

    ``mention_queries`` holds one entry per call to ``iter_user_mentions``;
    each entry is a list of pages, where a page may also be an exception to
    raise at that point.
    """

    def __init__(self):
        self.mention_queries: List[list] = []
        self.mention_calls: List[Optional[str]] = []
        self.tweets: Dict[str, Tweet] = {}
        self.users: Dict[str, TwitterUser] = {}
        self.tweet_errors: Dict[str, Exception] = {}
        self.user_errors: Dict[str, Exception] = {}
        self.reply_errors: Dict[str, Exception] = {}
        self.replies: List[Tuple[str, str]] = []
        self.get_tweet_calls: List[str] = []
        self.next_reply_id = 9000
        self.refresh_count = 0

    def iter_user_mentions(self, user_id, since_id=None, max_results=100):
        self.mention_calls.append(since_id)
        pages = self.mention_queries.pop(0) if self.mention_queries else [MentionPage()]
        for page in pages:
            if isinstance(page, Exception):
                raise page
            yield page

    def get_tweet(self, tweet_id: str) -> Tweet:
        self.get_tweet_calls.append(tweet_id)
        if tweet_id in self.tweet_errors:
            raise self.tweet_errors[tweet_id]
        if tweet_id not in self.tweets:
            raise TwitterAPIError(
                f"Tweet {tweet_id} not found", error_type=ErrorType.TWITTER_NOT_FOUND
            )
        return self.tweets[tweet_id]

    def get_tweets(self, tweet_ids: List[str]) -> MentionPage:
        mentions = [self.tweets[i] for i in tweet_ids if i in self.tweets]
        users = [self.users[m.author_id] for m in mentions if m.author_id in self.users]
        return MentionPage(mentions=mentions, users=users)

    def get_user(self, user_id: str) -> TwitterUser:
        if user_id in self.user_errors:
            raise self.user_errors[user_id]
        if user_id not in self.users:
            raise TwitterAPIError(
                f"User {user_id} not found", error_type=ErrorType.TWITTER_NOT_FOUND
            )
        return self.users[user_id]

    def create_reply(self, in_reply_to_tweet_id: str, text: str) -> str:
        if in_reply_to_tweet_id in self.reply_errors:
            raise self.reply_errors[in_reply_to_tweet_id]
        self.replies.append((in_reply_to_tweet_id, text))
        self.next_reply_id += 1
        return str(self.next_reply_id)

    def refresh_auth(self) -> None:
        self.refresh_count += 1


class StubAnswerEngine:
    """Answer engine returning a canned reply and recording the threads it saw."""

    name = "openai"

    def __init__(self, response: str = "Here is your answer", error: Exception = None):
        self.response = response
        self.error = error
        self.threads: List[List[Dict[str, str]]] = []

    def generate_response(self, thread, ctx) -> str:
        self.threads.append(thread)
        if self.error:
            raise self.error
        return self.response


def make_tweet(
    tweet_id: str,
    text: str = "@xbot hello there",
    author_id: str = "101",
    replied_to: Optional[str] = None,
    retweeted: Optional[str] = None,
    public_metrics: Optional[dict] = None,
) -> Tweet:
    """Helper to create a tweet.

    Args:
        tweet_id: Numeric tweet id
        text: Tweet text
        author_id: Author user id
        replied_to: Id of the tweet this one replies to
        retweeted: Id of the retweeted tweet
        public_metrics: Engagement metrics

    Returns:
        Tweet object
    """
    refs = []
    if replied_to:
        refs.append(ReferencedTweet(type="replied_to", id=replied_to))
    if retweeted:
        refs.append(ReferencedTweet(type="retweeted", id=retweeted))
    return Tweet(
        id=tweet_id,
        text=text,
        author_id=author_id,
        conversation_id=replied_to or tweet_id,
        created_at=BASE_TIME + timedelta(seconds=int(tweet_id) % 100000),
        referenced_tweets=refs,
        public_metrics=public_metrics,
    )


def make_user(user_id: str = "101", username: str = "alice", followers_count: int = 100) -> TwitterUser:
    """Helper to create a twitter user."""
    return TwitterUser(id=user_id, username=username, name=username.title(), followers_count=followers_count)


def make_message(
    message_id: str,
    prompt: str = "hello there",
    response: Optional[str] = None,
    response_tweet_id: Optional[str] = None,
    parent_message_id: Optional[str] = None,
    error: Optional[str] = None,
    is_error_final: bool = False,
) -> Message:
    """Helper to create a conversation turn."""
    return Message(
        id=message_id,
        prompt=prompt,
        prompt_tweet_id=message_id,
        prompt_user_id="101",
        response=response,
        response_tweet_id=response_tweet_id,
        parent_message_id=parent_message_id,
        error=error,
        error_type=ErrorType.UNKNOWN.value if error else None,
        is_error_final=is_error_final,
    )


@pytest.fixture
def store():
    """Create an empty in-memory bot store."""
    return InMemoryStore()


@pytest.fixture
def twitter():
    """Create a fake Twitter API."""
    return FakeTwitterAPI()


@pytest.fixture
def answer_engine():
    """Create a stub answer engine."""
    return StubAnswerEngine()


@pytest.fixture
def ctx():
    """Create a runtime context for the test bot."""
    return Context(
        twitter_bot_user_id=BOT_USER_ID,
        twitter_bot_handle=f"@{BOT_USERNAME}",
        since_mention_id="0",
    )
