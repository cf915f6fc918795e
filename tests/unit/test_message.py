from gurgeh.message import (
    Message,
    MessageRole,
    ToolCallRequestMessage,
    ToolCallResultMessage,
)
from gurgeh.streaming import ToolCall


def test_plain_message_serializes_role_value():
    msg = Message(role=MessageRole.USER, content="What is a pin?")
    assert msg.model_dump() == {"role": "user", "content": "What is a pin?"}


def test_tool_call_request_serializes_function_shape():
    tc = ToolCall(id="call_abc", name="searchGamesByOpening", arguments='{"openingName": "Caro-Kann"}')
    msg = ToolCallRequestMessage(tool_calls=[tc])

    dumped = msg.model_dump()
    assert dumped["role"] == "assistant"
    assert dumped["content"] == ""
    assert dumped["tool_calls"] == [
        {
            "id": "call_abc",
            "type": "function",
            "function": {
                "name": "searchGamesByOpening",
                "arguments": '{"openingName": "Caro-Kann"}',
            },
        }
    ]


def test_tool_call_arguments_sent_verbatim():
    """Unparseable argument text is echoed back as received."""
    tc = ToolCall(id="c1", name="getRecentGames", arguments='{"count": ')
    dumped = ToolCallRequestMessage(tool_calls=[tc]).model_dump()
    assert dumped["tool_calls"][0]["function"]["arguments"] == '{"count": '


def test_tool_result_message():
    msg = ToolCallResultMessage(content='{"success": true}', tool_call_id="call_abc")
    assert msg.model_dump() == {
        "role": "tool",
        "content": '{"success": true}',
        "tool_call_id": "call_abc",
    }
