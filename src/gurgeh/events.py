"""Streaming events emitted during an exchange."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class StreamEvent:
    """Base for all streaming events."""


@dataclass
class RawResponseEvent(StreamEvent):
    """Text delta from the provider stream, in wire order."""

    content: str = ""


@dataclass
class RunItemEvent(StreamEvent):
    """A discrete step in the agent loop.

    ``name`` values: ``"tool_start"`` (data: tool_name, call_id,
    arguments), ``"tool_result"`` (data: tool_name, call_id, result,
    is_error) and ``"message"`` (data: content).
    """

    name: str = ""
    data: dict = field(default_factory=dict)


@dataclass
class RunCompleteEvent(StreamEvent):
    """Final event of a successful exchange."""

    result: Any = None


@dataclass
class RunFailedEvent(StreamEvent):
    """Final event of a failed exchange."""

    error: BaseException | None = None
