"""Runtime context shared by the bot loop and batch processing."""

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class Context:
    """Bot identity, runtime flags and the in-memory mention cursor.

    Everything except ``since_mention_id`` is constant for the lifetime of the
    process. The cursor is advanced by the bot loop between batches.
    """

    twitter_bot_user_id: str
    twitter_bot_handle: str  # "@username"

    # Dynamic state which gets persisted to the store
    since_mention_id: Optional[str] = None

    debug: bool = False
    dry_run: bool = False
    no_mentions_cache: bool = False
    early_exit: bool = False
    force_reply: bool = False
    resolve_all_mentions: bool = False
    max_num_mentions_to_process: int = 10
    debug_tweet_ids: List[str] = field(default_factory=list)
    answer_engine: str = "openai"

    @property
    def twitter_bot_username(self) -> str:
        return self.twitter_bot_handle.lstrip("@")
