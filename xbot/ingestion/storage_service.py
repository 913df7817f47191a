"""Storage service for ClickHouse."""

import json
import logging
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Tuple

from ..db.clickhouse_client import ClickHouseClient
from ..errors import StorageError
from ..models.message import Message
from ..models.results import MentionFetchResult, StorageResult
from ..models.tweet import Tweet, TwitterUser

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class BotStore:
    """Persistent store for tweets, users, messages, cached mentions and cursors.

    All writes are inserts into ReplacingMergeTree tables, so writing the same
    record twice leaves the store in the same state as writing it once.
    """

    def __init__(self, client=None):
        """Initialize storage service.

        Args:
            client: Optional ClickHouse client (defaults to the shared client)
        """
        self.client = client or ClickHouseClient.get_client()
        ClickHouseClient.ensure_all_tables(client=self.client)

    def _insert(self, table: str, rows: List[tuple], column_names: List[str]) -> StorageResult:
        start_time = datetime.now()
        if not rows:
            return StorageResult(success=True, records_stored=0, errors=[], execution_time_ms=0)
        try:
            self.client.insert(table, rows, column_names=column_names)
            execution_time = int((datetime.now() - start_time).total_seconds() * 1000)
            logger.debug(f"Stored {len(rows)} rows in {table}")
            return StorageResult(
                success=True,
                records_stored=len(rows),
                errors=[],
                execution_time_ms=execution_time,
            )
        except Exception as e:
            execution_time = int((datetime.now() - start_time).total_seconds() * 1000)
            error_msg = f"Failed to store rows in {table}: {str(e)}"
            logger.error(error_msg, exc_info=True)
            return StorageResult(
                success=False,
                records_stored=0,
                errors=[error_msg],
                execution_time_ms=execution_time,
            )

    def _query_payloads(self, query: str, parameters: dict) -> List[str]:
        result = self.client.query(query, parameters=parameters)
        return [row[0] for row in result.result_rows]

    # Tweets and users

    def upsert_tweets(self, tweets: Iterable[Tweet]) -> StorageResult:
        now = _now()
        rows = [
            (tweet.id, tweet.author_id or "", json.dumps(tweet.to_api()), now)
            for tweet in tweets
        ]
        return self._insert("tweets", rows, ["id", "author_id", "payload", "updated_at"])

    def upsert_twitter_users(self, users: Iterable[TwitterUser]) -> StorageResult:
        now = _now()
        rows = [(user.id, user.username, json.dumps(user.to_api()), now) for user in users]
        return self._insert("twitter_users", rows, ["id", "username", "payload", "updated_at"])

    def get_tweet(self, tweet_id: str) -> Optional[Tweet]:
        try:
            payloads = self._query_payloads(
                "SELECT payload FROM tweets FINAL WHERE id = %(id)s LIMIT 1",
                {"id": tweet_id},
            )
        except Exception as e:
            logger.error(f"Failed to get tweet {tweet_id}: {e}")
            return None
        return Tweet.from_api(json.loads(payloads[0])) if payloads else None

    def get_tweets(self, tweet_ids: List[str]) -> List[Tweet]:
        if not tweet_ids:
            return []
        try:
            payloads = self._query_payloads(
                "SELECT payload FROM tweets FINAL WHERE id IN %(ids)s",
                {"ids": list(tweet_ids)},
            )
        except Exception as e:
            logger.error(f"Failed to get {len(tweet_ids)} tweets: {e}")
            return []
        return [Tweet.from_api(json.loads(p)) for p in payloads]

    def get_twitter_user(self, user_id: str) -> Optional[TwitterUser]:
        users = self.get_twitter_users([user_id])
        return users[0] if users else None

    def get_twitter_users(self, user_ids: List[str]) -> List[TwitterUser]:
        if not user_ids:
            return []
        try:
            payloads = self._query_payloads(
                "SELECT payload FROM twitter_users FINAL WHERE id IN %(ids)s",
                {"ids": list(user_ids)},
            )
        except Exception as e:
            logger.error(f"Failed to get {len(user_ids)} twitter users: {e}")
            return []
        return [TwitterUser.from_api(json.loads(p)) for p in payloads]

    # Mention cache

    def upsert_mentions_for_user(self, user_id: str, mentions: Iterable[Tweet]) -> StorageResult:
        now = _now()
        rows = [(user_id, m.id, json.dumps(m.to_api()), now) for m in mentions]
        return self._insert(
            "mention_cache", rows, ["user_id", "tweet_id", "payload", "updated_at"]
        )

    def get_cached_mentions_since(
        self, user_id: str, since_mention_id: str
    ) -> Optional[MentionFetchResult]:
        """Get cached mentions of ``user_id`` newer than ``since_mention_id``.

        Returns:
            Cached result with referenced users/tweets, or None if nothing is cached
        """
        try:
            payloads = self._query_payloads(
                """
                SELECT payload
                FROM mention_cache FINAL
                WHERE user_id = %(user_id)s
                  AND toUInt64(tweet_id) > toUInt64(%(since_id)s)
                ORDER BY toUInt64(tweet_id)
                """,
                {"user_id": user_id, "since_id": since_mention_id or "0"},
            )
        except Exception as e:
            logger.error(f"Failed to read cached mentions for {user_id}: {e}")
            return None

        if not payloads:
            return None

        mentions = [Tweet.from_api(json.loads(p)) for p in payloads]
        author_ids = sorted({m.author_id for m in mentions if m.author_id})
        ref_ids = sorted({ref.id for m in mentions for ref in m.referenced_tweets})

        result = MentionFetchResult(since_mention_id=since_mention_id)
        result.merge(mentions, self.get_twitter_users(author_ids), self.get_tweets(ref_ids))
        return result

    # Messages

    def upsert_message(self, message: Message) -> StorageResult:
        row = (message.id, message.response_tweet_id or "", message.model_dump_json(), _now())
        return self._insert("messages", [row], ["id", "response_tweet_id", "payload", "updated_at"])

    def get_message(self, message_id: str) -> Optional[Message]:
        """Get a conversation turn by id.

        Raises:
            StorageError: If the query fails (a failed read is not a miss)
        """
        try:
            payloads = self._query_payloads(
                "SELECT payload FROM messages FINAL WHERE id = %(id)s LIMIT 1",
                {"id": message_id},
            )
        except Exception as e:
            logger.error(f"Failed to get message {message_id}: {e}")
            raise StorageError(f"Failed to get message {message_id}: {e}") from e
        return Message.model_validate_json(payloads[0]) if payloads else None

    def get_message_by_response_tweet_id(self, tweet_id: str) -> Optional[Message]:
        try:
            payloads = self._query_payloads(
                "SELECT payload FROM messages FINAL WHERE response_tweet_id = %(id)s LIMIT 1",
                {"id": tweet_id},
            )
        except Exception as e:
            logger.error(f"Failed to get message for response tweet {tweet_id}: {e}")
            raise StorageError(f"Failed to get message for response tweet {tweet_id}: {e}") from e
        return Message.model_validate_json(payloads[0]) if payloads else None

    # Bot state

    def get_since_mention_id(self, user_id: str) -> Optional[str]:
        try:
            result = self.client.query(
                "SELECT since_mention_id FROM bot_state FINAL WHERE user_id = %(user_id)s LIMIT 1",
                parameters={"user_id": user_id},
            )
        except Exception as e:
            logger.error(f"Failed to get since mention id for {user_id}: {e}")
            return None
        if result.result_rows:
            return result.result_rows[0][0] or None
        return None

    def set_since_mention_id(self, user_id: str, since_mention_id: str) -> StorageResult:
        return self._insert(
            "bot_state",
            [(user_id, since_mention_id, _now())],
            ["user_id", "since_mention_id", "updated_at"],
        )

    def get_twitter_tokens(self, auth_key: str) -> Optional[Tuple[str, str]]:
        """Get the most recently rotated (access_token, refresh_token) pair."""
        try:
            result = self.client.query(
                "SELECT access_token, refresh_token FROM twitter_auth FINAL "
                "WHERE auth_key = %(auth_key)s LIMIT 1",
                parameters={"auth_key": auth_key},
            )
        except Exception as e:
            logger.error(f"Failed to get twitter tokens: {e}")
            return None
        if result.result_rows:
            access_token, refresh_token = result.result_rows[0]
            return access_token, refresh_token
        return None

    def set_twitter_tokens(self, auth_key: str, access_token: str, refresh_token: str) -> StorageResult:
        return self._insert(
            "twitter_auth",
            [(auth_key, access_token, refresh_token, _now())],
            ["auth_key", "access_token", "refresh_token", "updated_at"],
        )
