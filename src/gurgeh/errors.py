"""Error taxonomy for the agent loop.

Only :class:`TransportError` ends an exchange. Everything else is contained
to a single stream record or a single tool call.
"""


class AgentError(Exception):
    """Base error for all gurgeh operations."""


class TransportError(AgentError):
    """The provider request failed: non-2xx status, connection loss or timeout.

    Args:
        message: Human-readable description.
        status: HTTP status code, when the server answered.
        body: Response body text, when the server answered.
    """

    def __init__(self, message: str, status: int | None = None, body: str = ""):
        self.status = status
        self.body = body
        super().__init__(message)


class MalformedRecordError(AgentError):
    """A single stream record could not be decoded. Skipped by the provider."""


class ToolArgumentParseError(AgentError):
    """A completed tool call whose arguments are not a JSON object."""

    def __init__(self, tool_name: str, raw_arguments: str, reason: str):
        self.tool_name = tool_name
        self.raw_arguments = raw_arguments
        super().__init__(f"invalid arguments for {tool_name or '<unnamed>'}: {reason}")


class UnknownToolError(AgentError):
    """A tool call names a tool that is not registered."""

    def __init__(self, tool_name: str):
        self.tool_name = tool_name
        super().__init__(f"Unknown tool: {tool_name}")


class ToolExecutionError(AgentError):
    """A tool's executor failed or timed out."""

    def __init__(self, tool_name: str, message: str):
        self.tool_name = tool_name
        super().__init__(f"Error calling {tool_name}: {message}")


class LLMRecoverableError(AgentError):
    """Raised by a tool to hand a corrective message back to the model.

    The message becomes the tool result so the model can retry with
    better arguments.
    """
