#!/usr/bin/env python3
"""Batch job entry point for running a single mention batch directly.

With XBOT_DEBUG_TWEET_IDS set, the given tweets are processed instead of the
mentions timeline and the resolved thread of the first one is printed.
"""

import json
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

# Load .env file if it exists
env_path = Path(__file__).parent / ".env"
if env_path.exists():
    load_dotenv(env_path)

# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

from xbot.config import BotConfig
from xbot.ingestion.thread_resolver import resolve_message_thread
from xbot.main import build_runner


def main():
    """Run one batch of mention processing."""
    logger.info("🚀 Starting batch mention job...")

    try:
        try:
            config = BotConfig.from_env()
            runner = build_runner(config)
        except ValueError as config_error:
            error_msg = (
                f"❌ CRITICAL: Bot configuration invalid: {config_error}\n"
                f"Required environment variables:\n"
                f"  - TWITTER_ACCESS_TOKEN\n"
                f"  - OPENAI_API_KEY or ANTHROPIC_API_KEY (matching ANSWER_ENGINE)\n"
                f"Optional: TWITTER_REFRESH_TOKEN, TWITTER_CLIENT_ID, XBOT_DRY_RUN, "
                f"XBOT_DEBUG_TWEET_IDS"
            )
            logger.error(error_msg)
            raise ValueError(error_msg) from config_error

        ctx = runner.ctx
        processor = runner.processor

        batch = processor.process_batch(ctx)
        if not ctx.early_exit:
            runner.update_since_mention_id(batch)

        logger.info(
            f"✅ Batch completed: {len(batch.mentions)} mentions, "
            f"{batch.num_mentions_postponed} postponed, {len(batch.messages)} messages"
        )
        for message in batch.messages:
            print(message.model_dump_json(indent=2, exclude_none=True))

        if ctx.debug_tweet_ids and batch.messages:
            thread = resolve_message_thread(
                batch.messages[0], processor.store, processor.twitter, ctx
            )
            print(json.dumps(thread, indent=2, ensure_ascii=False))

        # Exit with success
        sys.exit(0)

    except Exception as e:
        logger.error(f"❌ Job failed: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
