from pydantic import BaseModel, Field, SerializeAsAny

from gurgeh.message import Message, MessageRole


class Conversation(BaseModel):
    """Caller-owned message history, long-lived across exchanges.

    The runner only ever appends to ``messages``. Two exchanges must never
    extend the same instance at once; give each its own :meth:`branch`.
    """

    conversation_id: str
    messages: list[SerializeAsAny[Message]] = Field(default_factory=list)

    def append(self, message: Message) -> None:
        self.messages.append(message)

    def branch(self, conversation_id: str | None = None) -> "Conversation":
        """Return an independent copy that shares no list with this one."""
        return Conversation(
            conversation_id=conversation_id or self.conversation_id,
            messages=list(self.messages),
        )

    def turns(self) -> list[Message]:
        """Plain user and assistant turns, without tool traffic."""
        return [
            m for m in self.messages
            if type(m) is Message
            and m.role in (MessageRole.USER, MessageRole.ASSISTANT)
        ]
