from gurgeh.agent import Agent
from gurgeh.capability import Capability
from gurgeh.config import AgentSettings, configure_logging
from gurgeh.errors import (
    AgentError,
    LLMRecoverableError,
    MalformedRecordError,
    ToolArgumentParseError,
    ToolExecutionError,
    TransportError,
    UnknownToolError,
)
from gurgeh.instrumentation import instrument, uninstrument
from gurgeh.message import Message, MessageRole
from gurgeh.provider import ModelProvider, OpenAICompatibleProvider, OpenRouter
from gurgeh.runner import (
    ExchangeCallbacks,
    ExchangeHandle,
    ExchangeState,
    Runner,
    RunResult,
    generate_response,
    run_exchange,
)
from gurgeh.session import Conversation
from gurgeh.tools import Tool, ToolRegistry, ToolResult, tool

__all__ = [
    "Agent",
    "AgentError",
    "AgentSettings",
    "Capability",
    "Conversation",
    "ExchangeCallbacks",
    "ExchangeHandle",
    "ExchangeState",
    "LLMRecoverableError",
    "MalformedRecordError",
    "Message",
    "MessageRole",
    "ModelProvider",
    "OpenAICompatibleProvider",
    "OpenRouter",
    "Runner",
    "RunResult",
    "Tool",
    "ToolArgumentParseError",
    "ToolExecutionError",
    "ToolRegistry",
    "ToolResult",
    "TransportError",
    "UnknownToolError",
    "configure_logging",
    "generate_response",
    "instrument",
    "run_exchange",
    "tool",
    "uninstrument",
]
