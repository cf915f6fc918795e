"""Streaming primitives for provider responses.

Providers yield :class:`StreamChunk` objects.  The
:class:`ToolCallAccumulator` reassembles tool calls whose arguments
arrive in fragments across multiple chunks.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass

from gurgeh.errors import ToolArgumentParseError

logger = logging.getLogger(__name__)


@dataclass
class ToolCallFragment:
    """A fragment of a tool call from a streaming chunk.

    Every field is optional on the wire. ``call_id`` is only present on the
    first fragment of a call for most providers.
    """

    index: int | None = None
    call_id: str | None = None
    name: str | None = None
    arguments_delta: str | None = None


@dataclass
class StreamChunk:
    """Normalised streaming chunk from any provider."""

    content_delta: str | None = None
    tool_call_fragments: list[ToolCallFragment] | None = None
    finish_reason: str | None = None


@dataclass
class ToolCall:
    """A tool call as requested by the model.

    ``arguments`` is the raw argument text exactly as concatenated from the
    stream. It is only parsed once the round is over.
    """

    id: str = ""
    name: str = ""
    arguments: str = ""

    def parse_arguments(self) -> dict:
        """Parse the argument text into a dict.

        Empty text means "no arguments" and parses as ``{}``.

        Raises:
            ToolArgumentParseError: If the text is not a JSON object.
        """
        if not self.arguments.strip():
            return {}
        try:
            parsed = json.loads(self.arguments)
        except json.JSONDecodeError as e:
            raise ToolArgumentParseError(self.name, self.arguments, str(e)) from e
        if not isinstance(parsed, dict):
            raise ToolArgumentParseError(
                self.name, self.arguments,
                f"expected a JSON object, got {type(parsed).__name__}",
            )
        return parsed


class ToolCallAccumulator:
    """Assembles complete tool calls from streaming fragments.

    Entries are keyed by call id and kept in first-seen order. Argument
    fragments are only ever appended, never substituted, because a JSON
    document may be split at any byte.

    One accumulator lives for exactly one round.
    """

    def __init__(self) -> None:
        self._pending: dict[str, ToolCall] = {}
        self._by_index: dict[int, str] = {}
        self._last_id: str | None = None

    def feed(self, fragment: ToolCallFragment) -> None:
        call_id = self._resolve(fragment)
        if call_id is None:
            logger.warning(f"Dropping tool-call fragment with no call to attach to: {fragment}")
            return

        tc = self._pending[call_id]
        if fragment.name:
            if not tc.name:
                tc.name = fragment.name
            elif fragment.name != tc.name:
                tc.name += fragment.name
        if fragment.arguments_delta:
            tc.arguments += fragment.arguments_delta

    def _resolve(self, fragment: ToolCallFragment) -> str | None:
        if fragment.call_id:
            if fragment.call_id not in self._pending:
                self._pending[fragment.call_id] = ToolCall(id=fragment.call_id)
                self._last_id = fragment.call_id
            if fragment.index is not None:
                self._by_index[fragment.index] = fragment.call_id
            return fragment.call_id
        if fragment.index is not None and fragment.index in self._by_index:
            return self._by_index[fragment.index]
        return self._last_id

    def finalize(self) -> list[ToolCall]:
        """Return completed tool calls in first-seen order."""
        return list(self._pending.values())
