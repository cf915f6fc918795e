import asyncio
import json
import logging
from collections.abc import AsyncIterator

import httpx
from openai import APIConnectionError, APIStatusError, AsyncOpenAI

from gurgeh.config import OPENROUTER_BASE_URL, AgentSettings
from gurgeh.errors import MalformedRecordError, TransportError
from gurgeh.sse import iter_sse_data
from gurgeh.streaming import StreamChunk, ToolCallFragment

logger = logging.getLogger(__name__)


class ModelProvider:
    """Interface every provider implements.

    ``stream_complete`` performs one round: a single request carrying the
    transcript and the tool schemas, yielding :class:`StreamChunk` objects
    as the response arrives. Transport failures are raised as
    :class:`~gurgeh.errors.TransportError`.
    """

    name = "custom"

    def stream_complete(
            self,
            model: str,
            messages: list[dict],
            tools: list[dict] | None = None,
    ) -> AsyncIterator[StreamChunk]:
        raise NotImplementedError


def parse_record(payload: str) -> StreamChunk | None:
    """Decode one ``data:`` payload of a chat-completion stream.

    Returns ``None`` for well-formed records that carry nothing the
    agent loop uses (usage reports, keep-alives, role-only deltas).

    Raises:
        MalformedRecordError: If the payload is not valid JSON or does not
            have the chat-completion chunk shape.
        TransportError: If the provider reports an error inside the stream.
    """
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as e:
        raise MalformedRecordError(f"invalid JSON: {e}") from e
    if not isinstance(data, dict):
        raise MalformedRecordError(f"expected an object, got {type(data).__name__}")

    if data.get("error"):
        error = data["error"]
        message = error.get("message", str(error)) if isinstance(error, dict) else str(error)
        raise TransportError(f"Provider error in stream: {message}", body=payload)

    choices = data.get("choices")
    if not choices:
        return None
    try:
        choice = choices[0]
        delta = choice.get("delta") or {}
        content = delta.get("content") or None
        if content is not None and not isinstance(content, str):
            raise MalformedRecordError(f"content is {type(content).__name__}")
        fragments = []
        for tc in delta.get("tool_calls") or []:
            function = tc.get("function") or {}
            fragments.append(ToolCallFragment(
                index=tc.get("index"),
                call_id=tc.get("id"),
                name=function.get("name"),
                arguments_delta=function.get("arguments"),
            ))
        finish_reason = choice.get("finish_reason")
    except (AttributeError, TypeError, KeyError, IndexError) as e:
        raise MalformedRecordError(f"unexpected chunk shape: {e}") from e

    if content is None and not fragments and not finish_reason:
        return None
    return StreamChunk(
        content_delta=content,
        tool_call_fragments=fragments or None,
        finish_reason=finish_reason,
    )


class OpenAICompatibleProvider(ModelProvider):
    """Streams chat completions from any OpenAI-compatible endpoint.

    The SDK handles authentication and the request; the response body is
    read raw and decoded record by record, so a corrupt record costs
    only itself. Retries are disabled: retry policy belongs to the caller.

    Args:
        api_key: Bearer credential for the endpoint.
        base_url: Endpoint root, e.g. ``https://api.openai.com/v1``.
        timeout: Deadline in seconds for a whole round, from request to
            the last record. Keep-alive comments do not extend it.
        read_timeout: Longest wait in seconds for any single network read.
        connect_timeout: Connection timeout in seconds.
        default_headers: Extra headers sent on every request.
        http_client: Optional preconfigured ``httpx.AsyncClient``.
    """

    name = "openai"

    def __init__(
            self,
            api_key: str,
            base_url: str = "https://api.openai.com/v1",
            timeout: float = 180.0,
            read_timeout: float = 60.0,
            connect_timeout: float = 30.0,
            default_headers: dict[str, str] | None = None,
            http_client: httpx.AsyncClient | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.client = AsyncOpenAI(
            api_key=api_key,
            base_url=self.base_url,
            max_retries=0,
            timeout=httpx.Timeout(read_timeout, connect=connect_timeout),
            default_headers=default_headers,
            http_client=http_client,
        )

    async def stream_complete(
            self,
            model: str,
            messages: list[dict],
            tools: list[dict] | None = None,
    ) -> AsyncIterator[StreamChunk]:
        kwargs = {"model": model, "messages": messages, "stream": True}
        if tools:
            kwargs["tools"] = tools
            kwargs["tool_choice"] = "auto"

        deadline = asyncio.get_running_loop().time() + self.timeout
        try:
            async with self.client.chat.completions.with_streaming_response.create(
                **kwargs
            ) as response:
                body = self._until(response.iter_text(), deadline)
                async for payload in iter_sse_data(body):
                    try:
                        chunk = parse_record(payload)
                    except MalformedRecordError as e:
                        logger.debug(f"Skipping malformed stream record: {e}")
                        continue
                    if chunk is not None:
                        yield chunk
        except APIStatusError as e:
            body = e.response.text
            raise TransportError(
                f"API error ({e.status_code}): {body}",
                status=e.status_code, body=body,
            ) from e
        except APIConnectionError as e:
            raise TransportError(f"Cannot reach {self.base_url}: {e}") from e
        except httpx.HTTPError as e:
            raise TransportError(f"Stream interrupted: {type(e).__name__}: {e}") from e

    async def _until(self, texts: AsyncIterator[str], deadline: float) -> AsyncIterator[str]:
        loop = asyncio.get_running_loop()
        async for text in texts:
            if loop.time() > deadline:
                raise TransportError(f"Round exceeded {self.timeout}s deadline")
            yield text


class OpenRouter(OpenAICompatibleProvider):
    """OpenRouter endpoint with its attribution headers."""

    name = "openrouter"

    def __init__(
            self,
            api_key: str,
            base_url: str = OPENROUTER_BASE_URL,
            app_url: str | None = None,
            app_title: str | None = None,
            timeout: float = 180.0,
            read_timeout: float = 60.0,
            connect_timeout: float = 30.0,
            http_client: httpx.AsyncClient | None = None,
    ):
        headers = {}
        if app_url:
            headers["HTTP-Referer"] = app_url
        if app_title:
            headers["X-Title"] = app_title
        super().__init__(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout,
            read_timeout=read_timeout,
            connect_timeout=connect_timeout,
            default_headers=headers or None,
            http_client=http_client,
        )

    @classmethod
    def from_settings(
            cls, settings: AgentSettings, http_client: httpx.AsyncClient | None = None,
    ) -> "OpenRouter":
        return cls(
            api_key=settings.api_key,
            base_url=settings.base_url,
            app_url=settings.app_url,
            app_title=settings.app_title,
            timeout=settings.request_timeout,
            read_timeout=settings.read_timeout,
            connect_timeout=settings.connect_timeout,
            http_client=http_client,
        )
