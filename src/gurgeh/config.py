import logging

from pydantic import BaseModel, Field

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"
DEFAULT_MODEL = "anthropic/claude-3-haiku"

LOG_FORMAT = '%(asctime)s:%(name)s:%(levelname)s:%(message)s'
LOG_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


class AgentSettings(BaseModel):
    """Everything an exchange needs from its host.

    The host decides where these values come from (settings screen,
    keychain, environment). Nothing in gurgeh reads them on its own.

    Args:
        api_key: Provider credential.
        model: Target model identifier.
        base_url: OpenAI-compatible endpoint root.
        max_rounds: Maximum model round-trips per exchange.
        request_timeout: Deadline in seconds for one whole model round.
        read_timeout: Longest wait in seconds for a single network read.
        connect_timeout: Connection timeout in seconds.
        tool_timeout: Per-tool execution timeout in seconds.
        max_history: Prior user/assistant turns sent with each exchange.
        app_url: Sent as ``HTTP-Referer`` for OpenRouter attribution.
        app_title: Sent as ``X-Title`` for OpenRouter attribution.
    """

    api_key: str
    model: str = DEFAULT_MODEL
    base_url: str = OPENROUTER_BASE_URL
    max_rounds: int = Field(default=5, ge=1)
    request_timeout: float = Field(default=180.0, gt=0)
    read_timeout: float = Field(default=60.0, gt=0)
    connect_timeout: float = Field(default=30.0, gt=0)
    tool_timeout: float | None = Field(default=30.0, gt=0)
    max_history: int = Field(default=20, ge=0)
    app_url: str = "https://github.com/tacticus-chess"
    app_title: str = "Tacticus Chess Trainer"


def configure_logging(level: int = logging.INFO, log_file: str | None = None) -> None:
    """Install the gurgeh log format on the root logger.

    Meant to be called once by the host application at startup.
    """
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
        handlers=handlers,
    )
