"""Server-Sent Events decoding for provider response bodies."""

from __future__ import annotations

from collections.abc import AsyncIterator

DONE_SENTINEL = "[DONE]"


class SSEDecoder:
    """Incrementally split an event-stream body into ``data`` payloads.

    Text may arrive cut at any point; only complete records (terminated
    by a blank line) are returned.  Multiple ``data:`` lines within one
    record are joined with newlines.  Comments (``:`` prefix) and other
    fields (``event:``, ``id:``, ``retry:``) are ignored.
    """

    def __init__(self) -> None:
        self._buffer = ""
        self._data: list[str] = []

    def feed(self, text: str) -> list[str]:
        self._buffer += text
        payloads = []
        while True:
            newline = self._buffer.find("\n")
            if newline == -1:
                break
            line = self._buffer[:newline].rstrip("\r")
            self._buffer = self._buffer[newline + 1:]
            payload = self._process_line(line)
            if payload is not None:
                payloads.append(payload)
        return payloads

    def flush(self) -> list[str]:
        """Emit whatever is left when the body ends without a blank line."""
        payloads = []
        if self._buffer:
            line, self._buffer = self._buffer.rstrip("\r"), ""
            self._process_line(line)
        if self._data:
            payloads.append("\n".join(self._data))
            self._data = []
        return payloads

    def _process_line(self, line: str) -> str | None:
        if line == "":
            if not self._data:
                return None
            payload = "\n".join(self._data)
            self._data = []
            return payload
        if line.startswith(":"):
            return None
        field, _, value = line.partition(":")
        if field != "data":
            return None
        if value.startswith(" "):
            value = value[1:]
        self._data.append(value)
        return None


async def iter_sse_data(text_stream: AsyncIterator[str]) -> AsyncIterator[str]:
    """Yield each record's data payload until the ``[DONE]`` sentinel."""
    decoder = SSEDecoder()
    async for text in text_stream:
        for payload in decoder.feed(text):
            if payload.strip() == DONE_SENTINEL:
                return
            yield payload
    for payload in decoder.flush():
        if payload.strip() == DONE_SENTINEL:
            return
        yield payload
