"""Answer engine selection."""

from ..config import BotConfig
from .anthropic_engine import AnthropicAnswerEngine
from .base import AnswerEngine
from .openai_engine import OpenAIAnswerEngine


def create_answer_engine(config: BotConfig) -> AnswerEngine:
    """Create the answer engine configured by ``ANSWER_ENGINE``."""
    if config.answer_engine == "openai":
        return OpenAIAnswerEngine(api_key=config.openai_api_key, model=config.openai_model)
    if config.answer_engine == "anthropic":
        return AnthropicAnswerEngine(
            api_key=config.anthropic_api_key, model=config.anthropic_model
        )
    raise ValueError(f"Unsupported answer engine: {config.answer_engine}")
