"""Configuration management."""

import os
from dataclasses import dataclass, field
from typing import List, Optional

ANSWER_ENGINE_TYPES = ("openai", "anthropic")


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes"}


def _env_list(name: str) -> List[str]:
    value = os.getenv(name, "")
    return [item.strip() for item in value.split(",") if item.strip()]


@dataclass
class BotConfig:
    """Bot configuration from environment variables."""

    twitter_access_token: str
    twitter_refresh_token: str = ""
    twitter_client_id: str = ""
    twitter_client_secret: str = ""
    twitter_api_base_url: str = "https://api.twitter.com"

    answer_engine: str = "openai"
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-3-5-haiku-latest"

    debug: bool = False
    dry_run: bool = False
    no_mentions_cache: bool = False
    early_exit: bool = False
    force_reply: bool = False
    resolve_all_mentions: bool = False
    max_num_mentions_to_process: int = 10
    debug_tweet_ids: List[str] = field(default_factory=list)
    since_mention_id: Optional[str] = None

    network_error_delay_seconds: float = 10.0
    rate_limit_delay_seconds: float = 30.0
    error_delay_seconds: float = 5.0
    idle_delay_seconds: float = 15.0

    @classmethod
    def from_env(cls) -> "BotConfig":
        """Load configuration from environment variables.

        The Twitter access token may be empty here when a rotated token has
        already been persisted; ``validate`` is run after that lookup.
        """
        try:
            max_mentions = int(os.getenv("XBOT_MAX_MENTIONS_PER_BATCH", "10"))
        except ValueError as e:
            raise ValueError(f"XBOT_MAX_MENTIONS_PER_BATCH must be an integer: {e}") from e

        try:
            network_delay = float(os.getenv("XBOT_NETWORK_ERROR_DELAY_SECONDS", "10"))
            rate_limit_delay = float(os.getenv("XBOT_RATE_LIMIT_DELAY_SECONDS", "30"))
            error_delay = float(os.getenv("XBOT_ERROR_DELAY_SECONDS", "5"))
            idle_delay = float(os.getenv("XBOT_IDLE_DELAY_SECONDS", "15"))
        except ValueError as e:
            raise ValueError(f"Backoff delays must be numbers of seconds: {e}") from e

        return cls(
            twitter_access_token=os.getenv("TWITTER_ACCESS_TOKEN", ""),
            twitter_refresh_token=os.getenv("TWITTER_REFRESH_TOKEN", ""),
            twitter_client_id=os.getenv("TWITTER_CLIENT_ID", ""),
            twitter_client_secret=os.getenv("TWITTER_CLIENT_SECRET", ""),
            twitter_api_base_url=os.getenv("TWITTER_API_BASE_URL", "https://api.twitter.com"),
            answer_engine=os.getenv("ANSWER_ENGINE", "openai").strip().lower(),
            openai_api_key=os.getenv("OPENAI_API_KEY", ""),
            openai_model=os.getenv("OPENAI_MODEL", "gpt-4o-mini"),
            anthropic_api_key=os.getenv("ANTHROPIC_API_KEY", ""),
            anthropic_model=os.getenv("ANTHROPIC_MODEL", "claude-3-5-haiku-latest"),
            debug=_env_flag("XBOT_DEBUG"),
            dry_run=_env_flag("XBOT_DRY_RUN"),
            no_mentions_cache=_env_flag("XBOT_NO_MENTIONS_CACHE"),
            early_exit=_env_flag("XBOT_EARLY_EXIT"),
            force_reply=_env_flag("XBOT_FORCE_REPLY"),
            resolve_all_mentions=_env_flag("XBOT_RESOLVE_ALL_MENTIONS"),
            max_num_mentions_to_process=max_mentions,
            debug_tweet_ids=_env_list("XBOT_DEBUG_TWEET_IDS"),
            since_mention_id=os.getenv("XBOT_SINCE_MENTION_ID") or None,
            network_error_delay_seconds=network_delay,
            rate_limit_delay_seconds=rate_limit_delay,
            error_delay_seconds=error_delay,
            idle_delay_seconds=idle_delay,
        )

    def validate(self) -> None:
        """Validate configuration."""
        if not self.twitter_access_token:
            raise ValueError(
                "TWITTER_ACCESS_TOKEN is required\n"
                "  - Provide an OAuth 2.0 user-context access token for the bot account"
            )
        if self.twitter_refresh_token and not self.twitter_client_id:
            raise ValueError("TWITTER_CLIENT_ID is required to refresh the access token")
        if self.answer_engine not in ANSWER_ENGINE_TYPES:
            raise ValueError(
                f"ANSWER_ENGINE must be one of {', '.join(ANSWER_ENGINE_TYPES)} "
                f"(got {self.answer_engine!r})"
            )
        if self.answer_engine == "openai" and not self.openai_api_key:
            raise ValueError("OPENAI_API_KEY is required when ANSWER_ENGINE=openai")
        if self.answer_engine == "anthropic" and not self.anthropic_api_key:
            raise ValueError("ANTHROPIC_API_KEY is required when ANSWER_ENGINE=anthropic")
        if self.max_num_mentions_to_process < 1:
            raise ValueError("XBOT_MAX_MENTIONS_PER_BATCH must be at least 1")
        if self.since_mention_id and not self.since_mention_id.isdigit():
            raise ValueError("XBOT_SINCE_MENTION_ID must be a numeric tweet id")
