"""Canonical tweet and twitter user models."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from dateutil import parser


def compare_twitter_ids(a: str, b: str) -> int:
    """Compare two numeric-string tweet ids without converting to int.

    Returns:
        -1, 0 or 1 like a classic cmp function
    """
    if len(a) != len(b):
        return -1 if len(a) < len(b) else 1
    if a == b:
        return 0
    return -1 if a < b else 1


def max_twitter_id(*ids: Optional[str]) -> Optional[str]:
    """Return the largest of the given tweet ids, ignoring empty values."""
    result = None
    for tweet_id in ids:
        if not tweet_id:
            continue
        if result is None or compare_twitter_ids(tweet_id, result) > 0:
            result = tweet_id
    return result


def _parse_created_at(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return parser.isoparse(value)
    except (ValueError, TypeError):
        return parser.parse(value)


@dataclass
class ReferencedTweet:
    """Reference from one tweet to another (replied_to, quoted, retweeted)."""

    type: str
    id: str


@dataclass
class Tweet:
    """Twitter/X tweet data as returned by the v2 API."""

    id: str
    text: str
    author_id: Optional[str] = None
    conversation_id: Optional[str] = None
    created_at: Optional[datetime] = None
    in_reply_to_user_id: Optional[str] = None
    referenced_tweets: List[ReferencedTweet] = field(default_factory=list)
    entities: Optional[dict] = None  # mentions, urls, hashtags
    public_metrics: Optional[dict] = None  # like_count, retweet_count, ...

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Tweet":
        """Build a Tweet from a v2 API tweet object."""
        return cls(
            id=str(data["id"]),
            text=data.get("text", ""),
            author_id=data.get("author_id"),
            conversation_id=data.get("conversation_id"),
            created_at=_parse_created_at(data.get("created_at")),
            in_reply_to_user_id=data.get("in_reply_to_user_id"),
            referenced_tweets=[
                ReferencedTweet(type=ref["type"], id=str(ref["id"]))
                for ref in data.get("referenced_tweets") or []
            ],
            entities=data.get("entities"),
            public_metrics=data.get("public_metrics"),
        )

    def to_api(self) -> Dict[str, Any]:
        """Serialize back to the v2 API shape (used for caching)."""
        data: Dict[str, Any] = {"id": self.id, "text": self.text}
        if self.author_id:
            data["author_id"] = self.author_id
        if self.conversation_id:
            data["conversation_id"] = self.conversation_id
        if self.created_at:
            data["created_at"] = self.created_at.isoformat()
        if self.in_reply_to_user_id:
            data["in_reply_to_user_id"] = self.in_reply_to_user_id
        if self.referenced_tweets:
            data["referenced_tweets"] = [
                {"type": ref.type, "id": ref.id} for ref in self.referenced_tweets
            ]
        if self.entities:
            data["entities"] = self.entities
        if self.public_metrics:
            data["public_metrics"] = self.public_metrics
        return data

    def _referenced_id(self, ref_type: str) -> Optional[str]:
        for ref in self.referenced_tweets:
            if ref.type == ref_type:
                return ref.id
        return None

    @property
    def replied_to_id(self) -> Optional[str]:
        return self._referenced_id("replied_to")

    @property
    def is_retweet(self) -> bool:
        return self._referenced_id("retweeted") is not None

    def metric(self, name: str) -> Optional[int]:
        if not self.public_metrics:
            return None
        return self.public_metrics.get(name)


@dataclass
class TwitterUser:
    """Twitter/X user data."""

    id: str
    username: str
    name: Optional[str] = None
    followers_count: int = 0

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "TwitterUser":
        metrics = data.get("public_metrics") or {}
        return cls(
            id=str(data["id"]),
            username=data.get("username", ""),
            name=data.get("name"),
            followers_count=metrics.get("followers_count", 0),
        )

    def to_api(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "username": self.username,
            "name": self.name,
            "public_metrics": {"followers_count": self.followers_count},
        }
