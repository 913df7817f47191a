"""ClickHouse client and connection management."""

import logging
import os
from typing import Optional

import clickhouse_connect

logger = logging.getLogger(__name__)

# Every table is a ReplacingMergeTree keyed by record id, so re-inserting a
# record replaces it (reads must use FINAL to see the merged state).
TABLE_SCHEMAS = {
    "tweets": """
        (
            id String,
            author_id String,
            payload String,
            updated_at DateTime64(3, 'UTC')
        )
        ENGINE = ReplacingMergeTree(updated_at)
        ORDER BY id
    """,
    "twitter_users": """
        (
            id String,
            username String,
            payload String,
            updated_at DateTime64(3, 'UTC')
        )
        ENGINE = ReplacingMergeTree(updated_at)
        ORDER BY id
    """,
    "messages": """
        (
            id String,
            response_tweet_id String,
            payload String,
            updated_at DateTime64(3, 'UTC')
        )
        ENGINE = ReplacingMergeTree(updated_at)
        ORDER BY id
    """,
    "mention_cache": """
        (
            user_id String,
            tweet_id String,
            payload String,
            updated_at DateTime64(3, 'UTC')
        )
        ENGINE = ReplacingMergeTree(updated_at)
        ORDER BY (user_id, tweet_id)
    """,
    "bot_state": """
        (
            user_id String,
            since_mention_id String,
            updated_at DateTime64(3, 'UTC')
        )
        ENGINE = ReplacingMergeTree(updated_at)
        ORDER BY user_id
    """,
    "twitter_auth": """
        (
            auth_key String,
            access_token String,
            refresh_token String,
            updated_at DateTime64(3, 'UTC')
        )
        ENGINE = ReplacingMergeTree(updated_at)
        ORDER BY auth_key
    """,
}


class ClickHouseClient:
    """ClickHouse client for the bot store.

    Automatically uses environment variables for configuration.
    """

    _client: Optional[clickhouse_connect.driver.Client] = None

    @classmethod
    def get_client(cls) -> clickhouse_connect.driver.Client:
        """Get or create ClickHouse client.

        Reads configuration from environment variables:
        - CLICKHOUSE_HOST (default: localhost)
        - CLICKHOUSE_PORT (default: 8123)
        - CLICKHOUSE_USERNAME or CLICKHOUSE_USER (default: default)
        - CLICKHOUSE_PASSWORD (optional)
        - CLICKHOUSE_DATABASE or CLICKHOUSE_DB (default: default)
        """
        if cls._client is None:
            host = os.getenv("CLICKHOUSE_HOST", "localhost")
            port = int(os.getenv("CLICKHOUSE_PORT", "8123"))
            # Support both variable names for backward compatibility
            username = os.getenv("CLICKHOUSE_USERNAME") or os.getenv("CLICKHOUSE_USER", "default")
            password = os.getenv("CLICKHOUSE_PASSWORD", "")
            database = os.getenv("CLICKHOUSE_DATABASE") or os.getenv("CLICKHOUSE_DB", "default")

            cls._client = clickhouse_connect.get_client(
                host=host,
                port=port,
                username=username,
                password=password,
                database=database,
            )
            logger.info(f"ClickHouse client connected to {host}:{port}/{database}")
        return cls._client

    @classmethod
    def reset_client(cls) -> None:
        """Reset client (useful for testing)."""
        cls._client = None

    @classmethod
    def ensure_table(cls, table_name: str, client=None) -> None:
        """Ensure a bot store table exists with its schema.

        Creates table if it doesn't exist.
        """
        if table_name not in TABLE_SCHEMAS:
            raise ValueError(f"Unknown table: {table_name}")
        client = client or cls.get_client()
        client.command(f"CREATE TABLE IF NOT EXISTS {table_name} {TABLE_SCHEMAS[table_name]}")
        logger.info(f"Table {table_name} ensured")

    @classmethod
    def ensure_all_tables(cls, client=None) -> None:
        """Ensure all bot store tables exist."""
        for table_name in TABLE_SCHEMAS:
            cls.ensure_table(table_name, client=client)
