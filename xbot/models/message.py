"""Conversation turn model persisted in ClickHouse."""

from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator

from ..errors import BotError


class Message(BaseModel):
    """One bot-tracked prompt/response exchange.

    The message id is the id of the tweet which prompted it.
    """

    id: str = Field(..., description="Id of the tweet which prompted this message")
    type: Literal["tweet", "dm"] = "tweet"
    role: Literal["user", "assistant"] = "user"

    prompt: str = Field(..., description="Normalized prompt text")
    prompt_tweet_id: str
    prompt_user_id: str
    prompt_username: Optional[str] = None
    prompt_url: Optional[str] = None
    prompt_likes: Optional[int] = None
    prompt_retweets: Optional[int] = None
    prompt_replies: Optional[int] = None
    prompt_date: Optional[str] = None

    response: Optional[str] = None
    response_tweet_id: Optional[str] = None
    response_url: Optional[str] = None
    response_date: Optional[str] = None
    answer_engine: str = "openai"

    # Links to the message this one replies to, so the thread can be rebuilt
    parent_message_id: Optional[str] = None

    error: Optional[str] = None
    error_type: Optional[str] = None
    error_status: Optional[int] = None
    is_error_final: bool = False

    priority_score: Optional[float] = None
    num_followers: Optional[int] = None
    is_reply: Optional[bool] = None

    @field_validator("id", "prompt_tweet_id", "prompt_user_id")
    @classmethod
    def ids_must_be_numeric(cls, v):
        """Tweet and user ids are numeric strings."""
        if not v or not v.isdigit():
            raise ValueError(f"Expected a numeric id, got {v!r}")
        return v

    @property
    def is_responded(self) -> bool:
        return bool(self.response_tweet_id) and not self.error

    @property
    def is_retryable(self) -> bool:
        """Whether a later batch may process this message again."""
        return not self.is_responded and not self.is_error_final

    def set_error(self, err: BotError) -> None:
        self.error = str(err)
        self.error_type = err.error_type.value
        self.error_status = err.status
        self.is_error_final = err.is_final

    def clear_error(self) -> None:
        self.error = None
        self.error_type = None
        self.error_status = None
        self.is_error_final = False
