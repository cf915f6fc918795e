from gurgeh.message import (
    Message,
    MessageRole,
    ToolCallRequestMessage,
    ToolCallResultMessage,
)
from gurgeh.streaming import ToolCall
from gurgeh.tools import ToolResult


class TranscriptBuilder:
    """Assembles the message sequence sent to the provider each round.

    The system prompt is injected here and never stored in the caller's
    conversation. Prior tool traffic and failure notices are not replayed:
    only plain user and assistant turns from the history are kept,
    trimmed to the most recent ``max_history``.

    Args:
        system_prompt: Fixed system prompt, always the first message.
        history: The caller's prior messages.
        max_history: How many prior turns to keep. ``None`` keeps all.
    """

    def __init__(
        self,
        system_prompt: str,
        history: list[Message] | None = None,
        max_history: int | None = 20,
    ):
        turns = [
            m for m in history or []
            if type(m) is Message
            and m.role in (MessageRole.USER, MessageRole.ASSISTANT)
        ]
        if max_history is not None:
            turns = turns[-max_history:] if max_history else []
        self.messages: list[Message] = [
            Message(role=MessageRole.SYSTEM, content=system_prompt),
            *turns,
        ]

    def add_user(self, content: str) -> Message:
        msg = Message(role=MessageRole.USER, content=content)
        self.messages.append(msg)
        return msg

    def add_round(
        self,
        content: str,
        calls: list[ToolCall],
        results: list[ToolResult],
    ) -> list[Message]:
        """Append one assistant tool-call message and one result per call.

        Results must be given in the same order as ``calls``.

        Returns:
            The appended messages, assistant message first.

        Raises:
            ValueError: If calls and results do not pair up.
        """
        if len(calls) != len(results):
            raise ValueError(
                f"{len(calls)} tool calls but {len(results)} results"
            )
        ids = [tc.id for tc in calls]
        if len(set(ids)) != len(ids):
            raise ValueError(f"Duplicate tool call ids in round: {ids}")

        appended: list[Message] = [
            ToolCallRequestMessage(content=content, tool_calls=list(calls))
        ]
        for tc, result in zip(calls, results):
            appended.append(ToolCallResultMessage(
                content=result.to_content(), tool_call_id=tc.id,
            ))
        self.messages.extend(appended)
        return appended

    def to_wire(self) -> list[dict]:
        return [m.model_dump() for m in self.messages]
