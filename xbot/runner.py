"""Bot control loop: repeated batches, cursor persistence and backoff."""

import logging
import time
from dataclasses import dataclass
from typing import Callable, List, Optional

from .config import BotConfig
from .ingestion.batch_processor import BatchProcessor
from .ingestion.storage_service import BotStore
from .models.context import Context
from .models.results import TweetMentionBatch
from .models.tweet import max_twitter_id

logger = logging.getLogger(__name__)


@dataclass
class BackoffPolicy:
    """Delays (in seconds) applied between batches after errors."""

    network_error_delay: float = 10.0
    rate_limit_delay: float = 30.0
    error_delay: float = 5.0
    idle_delay: float = 15.0

    @classmethod
    def from_config(cls, config: BotConfig) -> "BackoffPolicy":
        return cls(
            network_error_delay=config.network_error_delay_seconds,
            rate_limit_delay=config.rate_limit_delay_seconds,
            error_delay=config.error_delay_seconds,
            idle_delay=config.idle_delay_seconds,
        )


class BotRunner:
    """Drives batch processing until early exit or a stop request."""

    def __init__(
        self,
        processor: BatchProcessor,
        store: BotStore,
        ctx: Context,
        refresh_auth: Callable[[], None],
        backoff: Optional[BackoffPolicy] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize bot runner.

        Args:
            processor: Batch processor
            store: Bot store holding the persisted mention cursor
            ctx: Runtime context (its cursor is advanced between batches)
            refresh_auth: Re-establishes Twitter credentials
            backoff: Backoff delays (defaults to ``BackoffPolicy()``)
            sleep: Sleep function, injectable for tests
        """
        self.processor = processor
        self.store = store
        self.ctx = ctx
        self.refresh_auth = refresh_auth
        self.backoff = backoff or BackoffPolicy()
        self.sleep = sleep

    def update_since_mention_id(self, batch: TweetMentionBatch) -> None:
        """Advance the in-memory cursor and persist it.

        The persisted value is re-read first so that another process writing
        the same cursor can't make it go backwards. This is a best-effort
        read-merge-write, not a lock.
        """
        if not batch.since_mention_id or self.ctx.debug_tweet_ids:
            return

        ctx = self.ctx
        ctx.since_mention_id = max_twitter_id(ctx.since_mention_id, batch.since_mention_id)

        if ctx.resolve_all_mentions:
            return

        recent_since_mention_id = self.store.get_since_mention_id(ctx.twitter_bot_user_id)
        ctx.since_mention_id = max_twitter_id(ctx.since_mention_id, recent_since_mention_id)

        if ctx.since_mention_id and not ctx.dry_run:
            if ctx.since_mention_id != recent_since_mention_id:
                self.store.set_since_mention_id(ctx.twitter_bot_user_id, ctx.since_mention_id)
                logger.info(f"Since mention id persisted: {ctx.since_mention_id}")

    def apply_backoff(self, batch: TweetMentionBatch) -> None:
        """Mitigate the error classes seen during a batch (each independently)."""
        if batch.has_network_error:
            logger.warning(f"⚠️  Network error; sleeping {self.backoff.network_error_delay}s...")
            self.sleep(self.backoff.network_error_delay)

        if batch.has_twitter_rate_limit_error:
            logger.warning(f"⚠️  Twitter rate limit error; sleeping {self.backoff.rate_limit_delay}s...")
            self.sleep(self.backoff.rate_limit_delay)

        if batch.has_twitter_auth_error:
            logger.warning("⚠️  Twitter auth error; refreshing credentials...")
            self.refresh_auth()

    def run(self, should_stop: Callable[[], bool] = lambda: False) -> List[TweetMentionBatch]:
        """Process batches until early exit, debug tweets are done, or ``should_stop``.

        Returns:
            All processed batches
        """
        batches: List[TweetMentionBatch] = []

        while not should_stop():
            try:
                batch = self.processor.process_batch(self.ctx)
                batches.append(batch)

                if self.ctx.early_exit:
                    logger.info(
                        f"Early exit: {len(batch.mentions)} mentions resolved, "
                        f"{batch.num_mentions_postponed} postponed"
                    )
                    break

                self.update_since_mention_id(batch)
                logger.info(f"✅ Processed {len(batch.messages)} messages")

                if self.ctx.debug_tweet_ids:
                    break

                self.apply_backoff(batch)

                if not batch.mentions:
                    logger.debug(f"No new mentions; sleeping {self.backoff.idle_delay}s")
                    self.sleep(self.backoff.idle_delay)
            except Exception as e:
                logger.error(f"❌ Top-level error in bot loop: {e}", exc_info=True)
                self.sleep(self.backoff.error_delay)
                try:
                    self.refresh_auth()
                except Exception as refresh_error:
                    logger.error(f"Failed to refresh twitter auth: {refresh_error}")

        return batches
