import logging
import os

from pydantic import BaseModel

from chatstream.exceptions import ProviderError

DEFAULT_ERROR_NOTICE = "Sorry, I encountered an error. Please try again."


class StreamSettings(BaseModel):
    """Behaviour of a single response stream.

    Args:
        error_notice: Content of the synthetic assistant message shown when
            a stream fails.
        flush_trailing_line: Decode a final line that arrives without a
            newline terminator.
        log_raw_lines: Log every raw wire line at DEBUG level.
    """

    error_notice: str = DEFAULT_ERROR_NOTICE
    flush_trailing_line: bool = True
    log_raw_lines: bool = False


class ProviderSettings(BaseModel):
    id: str
    display_name: str
    base_url: str
    api_key_env: str
    default_model: str

    def api_key(self) -> str:
        key = os.getenv(self.api_key_env)
        if not key:
            raise ProviderError(
                f"{self.display_name} API key not configured; set {self.api_key_env}"
            )
        return key


PROVIDERS: dict[str, ProviderSettings] = {
    "groq": ProviderSettings(
        id="groq",
        display_name="Groq",
        base_url="https://api.groq.com/openai/v1",
        api_key_env="GROQ_API_KEY",
        default_model="meta-llama/llama-4-scout-17b-16e-instruct",
    ),
    "openai": ProviderSettings(
        id="openai",
        display_name="OpenAI",
        base_url="https://api.openai.com/v1",
        api_key_env="OPENAI_API_KEY",
        default_model="gpt-4o-mini",
    ),
    "anthropic": ProviderSettings(
        id="anthropic",
        display_name="Anthropic",
        base_url="https://api.anthropic.com/v1/",
        api_key_env="ANTHROPIC_API_KEY",
        default_model="claude-3-5-sonnet-20241022",
    ),
}


def get_provider_settings(provider_id: str) -> ProviderSettings:
    try:
        return PROVIDERS[provider_id]
    except KeyError:
        raise ProviderError(f"Unsupported provider: {provider_id}") from None


def configure_logging(
    level: int = logging.INFO, log_file: str | None = None
) -> None:
    """Install the chatstream log format on the root logger."""
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    logging.basicConfig(
        level=level,
        format='%(asctime)s:%(name)s:%(levelname)s:%(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
        handlers=handlers,
    )
