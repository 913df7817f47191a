"""Twitter mention-reply bot service.

Polls the bot's mentions, answers them with the configured answer engine and
persists the advancing mention cursor between batches.
"""

import logging
import signal
import sys
from pathlib import Path

from dotenv import load_dotenv

# Load .env file if it exists
env_path = Path(__file__).parent.parent / ".env"
if env_path.exists():
    load_dotenv(env_path)

# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger(__name__)

# Imports after logging setup (required for proper logging configuration)
from xbot.answer_engines.factory import create_answer_engine  # noqa: E402
from xbot.config import BotConfig  # noqa: E402
from xbot.ingestion.batch_processor import BatchProcessor  # noqa: E402
from xbot.ingestion.storage_service import BotStore  # noqa: E402
from xbot.models.context import Context  # noqa: E402
from xbot.runner import BackoffPolicy, BotRunner  # noqa: E402
from xbot.sources.twitter import TwitterAPIAdapter  # noqa: E402

# Global flag for graceful shutdown
shutdown = False


def signal_handler(sig, frame):
    """Handle shutdown signals gracefully."""
    global shutdown
    logger.info("\n🛑 Shutting down...")
    shutdown = True


def create_twitter_adapter(config: BotConfig, store: BotStore) -> TwitterAPIAdapter:
    """Create the Twitter adapter, preferring persisted (rotated) tokens.

    Twitter invalidates a refresh token once it has been used, so the pair
    from the last refresh wins over the one in the environment.
    """
    auth_key = config.twitter_client_id or "default"
    stored_tokens = store.get_twitter_tokens(auth_key)
    if stored_tokens and stored_tokens[0]:
        logger.info("   - Using persisted Twitter tokens")
        config.twitter_access_token, config.twitter_refresh_token = stored_tokens

    config.validate()

    def persist_tokens(access_token: str, refresh_token: str) -> None:
        result = store.set_twitter_tokens(auth_key, access_token, refresh_token)
        if not result.success:
            logger.error(f"Failed to persist refreshed Twitter tokens: {result.errors}")

    return TwitterAPIAdapter(
        access_token=config.twitter_access_token,
        refresh_token=config.twitter_refresh_token,
        client_id=config.twitter_client_id,
        client_secret=config.twitter_client_secret,
        base_url=config.twitter_api_base_url,
        on_token_refresh=persist_tokens,
    )


def create_context(config: BotConfig, store: BotStore, twitter: TwitterAPIAdapter) -> Context:
    """Resolve the bot identity and the initial mention cursor."""
    bot_user = twitter.get_me()

    if config.resolve_all_mentions:
        since_mention_id = None
    else:
        since_mention_id = (
            config.since_mention_id or store.get_since_mention_id(bot_user.id) or "0"
        )

    return Context(
        twitter_bot_user_id=bot_user.id,
        twitter_bot_handle=f"@{bot_user.username}",
        since_mention_id=since_mention_id,
        debug=config.debug,
        dry_run=config.dry_run,
        no_mentions_cache=config.no_mentions_cache,
        early_exit=config.early_exit,
        force_reply=config.force_reply,
        resolve_all_mentions=config.resolve_all_mentions,
        max_num_mentions_to_process=config.max_num_mentions_to_process,
        debug_tweet_ids=config.debug_tweet_ids,
        answer_engine=config.answer_engine,
    )


def apply_log_level(ctx: Context) -> None:
    """Switch the root logger to DEBUG for debug runs."""
    if ctx.debug:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.debug("Debug logging enabled")


def build_runner(config: BotConfig) -> BotRunner:
    """Wire the store, Twitter adapter, answer engine and batch processor."""
    store = BotStore()
    logger.info("✅ Bot store initialized")

    twitter = create_twitter_adapter(config, store)
    ctx = create_context(config, store, twitter)
    logger.info(f"✅ Authenticated as {ctx.twitter_bot_handle} ({ctx.twitter_bot_user_id})")
    logger.info(f"   - Since mention id: {ctx.since_mention_id}")
    apply_log_level(ctx)

    answer_engine = create_answer_engine(config)
    logger.info(f"✅ Answer engine initialized: {answer_engine.name}")

    processor = BatchProcessor(twitter, store, answer_engine)
    return BotRunner(
        processor,
        store,
        ctx,
        refresh_auth=twitter.refresh_auth,
        backoff=BackoffPolicy.from_config(config),
    )


def main():
    """Main entry point for the bot service."""
    logger.info("🚀 Starting xbot...")

    try:
        config = BotConfig.from_env()
        logger.info("✅ Configuration loaded")
        logger.info(f"   - Answer engine: {config.answer_engine}")
        logger.info(f"   - Dry run: {config.dry_run}")
        logger.info(f"   - Max mentions per batch: {config.max_num_mentions_to_process}")
        if config.debug_tweet_ids:
            logger.info(f"   - Debug tweet ids: {config.debug_tweet_ids}")

        runner = build_runner(config)

        # Register signal handlers
        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)

        logger.info("📡 Starting mention loop...")
        logger.info("   Press Ctrl+C to stop\n")

        runner.run(should_stop=lambda: shutdown)

    except KeyboardInterrupt:
        logger.info("Shutting down...")
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        sys.exit(1)
    finally:
        logger.info("✅ Bot stopped")


if __name__ == "__main__":
    main()
