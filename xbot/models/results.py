"""Result models for mention fetching and batch processing."""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ..errors import ErrorType
from .message import Message
from .tweet import Tweet, TwitterUser, max_twitter_id


@dataclass
class StorageResult:
    """Result of storage operation."""

    success: bool
    records_stored: int
    errors: List[str]
    execution_time_ms: int


@dataclass
class MentionFetchResult:
    """Mentions fetched from the cache and/or the Twitter API."""

    mentions: List[Tweet] = field(default_factory=list)
    users: Dict[str, TwitterUser] = field(default_factory=dict)
    tweets: Dict[str, Tweet] = field(default_factory=dict)
    since_mention_id: Optional[str] = None
    # Set when the API failed after some mentions were already gathered
    error_type: Optional[ErrorType] = None

    def merge(
        self,
        mentions: List[Tweet],
        users: List[TwitterUser],
        tweets: List[Tweet],
    ) -> None:
        """Merge one page of results and raise the since id accordingly."""
        seen_ids = {mention.id for mention in self.mentions}
        self.mentions.extend(m for m in mentions if m.id not in seen_ids)
        for user in users:
            self.users[user.id] = user
        for tweet in tweets:
            self.tweets[tweet.id] = tweet
        self.since_mention_id = max_twitter_id(
            self.since_mention_id, *(mention.id for mention in mentions)
        )


@dataclass
class TweetMention:
    """A tweet mentioning the bot, plus the annotations used for ranking.

    The annotation fields are None until the mention has been populated; only
    fully populated mentions are processed.
    """

    tweet: Tweet
    prompt: Optional[str] = None
    num_mentions: Optional[int] = None
    priority_score: Optional[float] = None
    num_followers: Optional[int] = None
    prompt_url: Optional[str] = None
    is_reply: Optional[bool] = None
    username: Optional[str] = None

    @property
    def id(self) -> str:
        return self.tweet.id

    @property
    def is_populated(self) -> bool:
        return None not in (
            self.prompt,
            self.num_mentions,
            self.priority_score,
            self.num_followers,
            self.prompt_url,
            self.is_reply,
        )


@dataclass
class BatchErrorFlags:
    """Sticky OR-accumulator of error classes seen during one batch."""

    has_twitter_rate_limit_error: bool = False
    has_twitter_auth_error: bool = False
    has_network_error: bool = False

    def record(self, error_type: ErrorType) -> None:
        if error_type == ErrorType.TWITTER_RATE_LIMIT:
            self.has_twitter_rate_limit_error = True
        elif error_type == ErrorType.TWITTER_AUTH:
            self.has_twitter_auth_error = True
        elif error_type == ErrorType.NETWORK:
            self.has_network_error = True


@dataclass
class TweetMentionBatch:
    """Outcome of one batch of mention processing."""

    mentions: List[TweetMention] = field(default_factory=list)
    num_mentions_postponed: int = 0

    users: Dict[str, TwitterUser] = field(default_factory=dict)
    tweets: Dict[str, Tweet] = field(default_factory=dict)

    min_since_mention_id: Optional[str] = None
    since_mention_id: Optional[str] = None

    # Messages generated from this batch
    messages: List[Message] = field(default_factory=list)

    flags: BatchErrorFlags = field(default_factory=BatchErrorFlags)

    @property
    def has_twitter_rate_limit_error(self) -> bool:
        return self.flags.has_twitter_rate_limit_error

    @property
    def has_twitter_auth_error(self) -> bool:
        return self.flags.has_twitter_auth_error

    @property
    def has_network_error(self) -> bool:
        return self.flags.has_network_error
