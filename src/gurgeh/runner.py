import asyncio
import inspect
import logging
from collections.abc import AsyncIterator, Callable
from contextlib import aclosing
from dataclasses import dataclass
from enum import Enum
from typing import Any

from gurgeh import instrumentation
from gurgeh.agent import Agent
from gurgeh.config import AgentSettings
from gurgeh.errors import ToolArgumentParseError, TransportError
from gurgeh.events import (
    RawResponseEvent,
    RunCompleteEvent,
    RunFailedEvent,
    RunItemEvent,
    StreamEvent,
)
from gurgeh.message import FailureNoticeMessage, Message, MessageRole
from gurgeh.session import Conversation
from gurgeh.streaming import ToolCall, ToolCallAccumulator
from gurgeh.tools import ToolRegistry, ToolResult
from gurgeh.transcript import TranscriptBuilder

logger = logging.getLogger(__name__)


class ExchangeState(Enum):
    AWAITING_MODEL = "awaiting_model"
    AWAITING_TOOL_RESULTS = "awaiting_tool_results"
    DONE = "done"
    FAILED = "failed"


@dataclass
class RoundState:
    """Mutable state of one exchange. Never shared between exchanges."""

    remaining_rounds: int
    rounds_started: int = 0
    text: str = ""
    round_text: str = ""
    finish_reason: str | None = None
    phase: ExchangeState = ExchangeState.AWAITING_MODEL

    def begin_round(self) -> None:
        self.rounds_started += 1
        self.round_text = ""
        self.finish_reason = None

    def add_text(self, delta: str) -> None:
        self.round_text += delta
        self.text += delta


@dataclass
class RunResult:
    """The result of a single exchange."""

    last_message: Message
    agent_name: str
    rounds: int
    budget_exhausted: bool = False
    state: ExchangeState = ExchangeState.DONE

    @property
    def text(self) -> str:
        return self.last_message.content


def failure_message(error: TransportError) -> str:
    if error.status is not None:
        return f"Something went wrong (API error {error.status}). Try asking your question again."
    return "Something went wrong while reaching the model. Try asking your question again."


class Runner:
    """Executes the bounded tool-calling loop for one exchange at a time.

    The Runner builds the transcript from the caller's conversation,
    streams each round from the agent's provider, executes requested
    tools in first-seen order and feeds their results back until the
    model answers in plain text or the round budget runs out. Running
    out of budget is a soft stop: the exchange completes with whatever
    text was produced. Only a transport failure ends an exchange as
    failed.

    ``run()`` drains ``iter()``.  ``iter()`` is the streaming entry point.

    Args:
        max_rounds: Maximum number of provider round-trips per exchange.
        tool_timeout: Seconds each tool may run, or ``None`` for no limit.
        max_history: Prior user/assistant turns to replay.
    """

    def __init__(
        self,
        max_rounds: int = 5,
        tool_timeout: float | None = 30.0,
        max_history: int | None = 20,
    ):
        if max_rounds < 1:
            raise ValueError("max_rounds must be at least 1")
        self.max_rounds = max_rounds
        self.tool_timeout = tool_timeout
        self.max_history = max_history

    @classmethod
    def from_settings(cls, settings: AgentSettings) -> "Runner":
        return cls(
            max_rounds=settings.max_rounds,
            tool_timeout=settings.tool_timeout,
            max_history=settings.max_history,
        )

    async def run(
        self, agent: Agent, conversation: Conversation, user_message: str,
    ) -> RunResult:
        """Run one exchange to completion.

        Raises:
            TransportError: If the exchange failed.
        """
        result: RunResult | None = None
        async with aclosing(self.iter(agent, conversation, user_message)) as events:
            async for event in events:
                if isinstance(event, RunCompleteEvent):
                    result = event.result
                elif isinstance(event, RunFailedEvent):
                    raise event.error
        if result is None:
            raise RuntimeError("iter() ended without emitting RunCompleteEvent")
        return result

    async def iter(
        self,
        agent: Agent,
        conversation: Conversation,
        user_message: str,
        state: RoundState | None = None,
    ) -> AsyncIterator[StreamEvent]:
        """Run one exchange, yielding events as execution proceeds.

        The user message and every message the exchange produces are
        appended to ``conversation``. The last event is always a
        :class:`RunCompleteEvent` or a :class:`RunFailedEvent`.

        Pass ``state`` to observe the exchange's phase from outside;
        a fresh one is used otherwise.
        """
        registry = agent.tool_registry
        tool_schemas = registry.schemas() or None
        transcript = TranscriptBuilder(
            agent.system_prompt, conversation.messages, self.max_history,
        )
        conversation.append(transcript.add_user(user_message))
        if state is None:
            state = RoundState(remaining_rounds=self.max_rounds)

        async with instrumentation.exchange_span(
            agent.name, agent.model, self.max_rounds,
        ) as span:
            while True:
                if state.remaining_rounds <= 0:
                    logger.info(
                        f"Round budget of {self.max_rounds} exhausted, "
                        f"stopping with {len(state.text)} chars of text"
                    )
                    state.phase = ExchangeState.DONE
                    async for event in self._complete(
                        agent, conversation, state, state.text, budget_exhausted=True,
                    ):
                        yield event
                    return

                state.phase = ExchangeState.AWAITING_MODEL
                state.begin_round()
                logger.debug(f"Round {state.rounds_started} for {agent.name}")
                try:
                    async with instrumentation.round_span(
                        agent.provider.name, agent.model, state.rounds_started, parent=span,
                    ) as rspan:
                        acc = ToolCallAccumulator()
                        async for chunk in agent.provider.stream_complete(
                            model=agent.model,
                            messages=transcript.to_wire(),
                            tools=tool_schemas,
                        ):
                            if chunk.content_delta:
                                state.add_text(chunk.content_delta)
                                yield RawResponseEvent(content=chunk.content_delta)
                            for frag in chunk.tool_call_fragments or []:
                                acc.feed(frag)
                            if chunk.finish_reason:
                                state.finish_reason = chunk.finish_reason
                        completed_calls = acc.finalize()
                        instrumentation.record_round(
                            rspan, state.round_text, len(completed_calls), state.finish_reason,
                        )
                    if state.finish_reason == "length":
                        logger.warning(
                            f"Round {state.rounds_started} was cut off at the token limit"
                        )
                except TransportError as e:
                    logger.error(f"Round {state.rounds_started} failed: {e}")
                    instrumentation.record_error(span, e)
                    state.phase = ExchangeState.FAILED
                    conversation.append(FailureNoticeMessage(content=failure_message(e)))
                    yield RunFailedEvent(error=e)
                    return

                # No tool calls: final text response
                if not completed_calls:
                    state.phase = ExchangeState.DONE
                    async for event in self._complete(
                        agent, conversation, state, state.round_text,
                    ):
                        yield event
                    return

                state.phase = ExchangeState.AWAITING_TOOL_RESULTS
                results: list[ToolResult] = []
                for tc in completed_calls:
                    async for event in self._execute_one(tc, registry, results, span):
                        yield event

                for msg in transcript.add_round(state.round_text, completed_calls, results):
                    conversation.append(msg)
                state.remaining_rounds -= 1

    async def _complete(
        self,
        agent: Agent,
        conversation: Conversation,
        state: RoundState,
        content: str,
        budget_exhausted: bool = False,
    ) -> AsyncIterator[StreamEvent]:
        msg = Message(role=MessageRole.ASSISTANT, content=content)
        conversation.append(msg)
        yield RunItemEvent(name="message", data={"content": content})
        yield RunCompleteEvent(result=RunResult(
            last_message=msg,
            agent_name=agent.name,
            rounds=state.rounds_started,
            budget_exhausted=budget_exhausted,
            state=state.phase,
        ))

    # ------------------------------------------------------------------
    # Tool execution
    # ------------------------------------------------------------------

    async def _execute_one(
        self,
        tc: ToolCall,
        registry: ToolRegistry,
        results: list[ToolResult],
        parent_span=None,
    ) -> AsyncIterator[StreamEvent]:
        """Execute one call, appending its result to ``results``.

        Argument and lookup problems become failed results; they never
        end the round.
        """
        try:
            arguments = tc.parse_arguments()
            parse_error = None
        except ToolArgumentParseError as e:
            logger.warning(f"Invalid JSON in arguments for {tc.name}: {e}")
            arguments = None
            parse_error = e

        yield RunItemEvent(name="tool_start", data={
            "tool_name": tc.name,
            "call_id": tc.id,
            "arguments": arguments if arguments is not None else tc.arguments,
        })

        async with instrumentation.tool_span(tc.name, tc.id, parent=parent_span) as tspan:
            if parse_error is not None:
                result = ToolResult.failure(str(parse_error))
            else:
                result = await registry.execute(tc.name, arguments, timeout=self.tool_timeout)
            instrumentation.record_tool_result(tspan, result.success)

        results.append(result)
        yield RunItemEvent(name="tool_result", data={
            "tool_name": tc.name,
            "call_id": tc.id,
            "result": result.as_dict(),
            "is_error": not result.success,
        })


# ----------------------------------------------------------------------
# Caller-facing entry points
# ----------------------------------------------------------------------

@dataclass
class ExchangeCallbacks:
    """Hooks a host registers for one exchange.

    Each hook may be a plain function or a coroutine function.
    """

    on_chunk: Callable[[str], Any] | None = None
    on_tool_start: Callable[[str, Any], Any] | None = None
    on_tool_result: Callable[[str, dict], Any] | None = None
    on_complete: Callable[[str], Any] | None = None
    on_error: Callable[[BaseException], Any] | None = None


class ExchangeHandle:
    """Handle on a running exchange.

    ``cancel()`` takes effect at the exchange's next suspension point.
    Text already delivered is not retracted.
    """

    def __init__(self, task: asyncio.Task, state: RoundState):
        self._task = task
        self._state = state

    @property
    def state(self) -> ExchangeState:
        """Current phase. Stays where it was if the exchange is cancelled."""
        return self._state.phase

    def cancel(self) -> bool:
        return self._task.cancel()

    def cancelled(self) -> bool:
        return self._task.cancelled()

    def done(self) -> bool:
        return self._task.done()

    async def wait(self) -> RunResult | None:
        """Wait for the exchange to end.

        Returns the result, or ``None`` if it failed or was cancelled.
        """
        await asyncio.wait([self._task])
        if self._task.cancelled():
            return None
        return self._task.result()


async def _notify(callback: Callable | None, *args) -> None:
    if callback is None:
        return
    result = callback(*args)
    if inspect.isawaitable(result):
        await result


async def _drive(
    runner: Runner,
    agent: Agent,
    conversation: Conversation,
    user_message: str,
    callbacks: ExchangeCallbacks,
    state: RoundState,
) -> RunResult | None:
    result: RunResult | None = None
    async with aclosing(runner.iter(agent, conversation, user_message, state)) as events:
        async for event in events:
            if isinstance(event, RawResponseEvent):
                await _notify(callbacks.on_chunk, event.content)
            elif isinstance(event, RunItemEvent) and event.name == "tool_start":
                await _notify(
                    callbacks.on_tool_start,
                    event.data["tool_name"], event.data["arguments"],
                )
            elif isinstance(event, RunItemEvent) and event.name == "tool_result":
                await _notify(
                    callbacks.on_tool_result,
                    event.data["tool_name"], event.data["result"],
                )
            elif isinstance(event, RunCompleteEvent):
                result = event.result
                await _notify(callbacks.on_complete, result.text)
            elif isinstance(event, RunFailedEvent):
                await _notify(callbacks.on_error, event.error)
    return result


def run_exchange(
    agent: Agent,
    conversation: Conversation,
    user_message: str,
    callbacks: ExchangeCallbacks | None = None,
    runner: Runner | None = None,
) -> ExchangeHandle:
    """Start an exchange in the background and return its handle.

    Must be called from within a running event loop. ``conversation``
    belongs to this exchange until it ends; run concurrent exchanges on
    separate :meth:`Conversation.branch` copies.
    """
    runner = runner or Runner()
    state = RoundState(remaining_rounds=runner.max_rounds)
    task = asyncio.get_running_loop().create_task(_drive(
        runner, agent, conversation, user_message,
        callbacks or ExchangeCallbacks(), state,
    ))
    return ExchangeHandle(task, state)


async def generate_response(
    agent: Agent,
    conversation: Conversation,
    user_message: str,
    runner: Runner | None = None,
) -> str:
    """Run an exchange without streaming and return the final text.

    Raises:
        TransportError: If the exchange failed.
    """
    result = await (runner or Runner()).run(agent, conversation, user_message)
    return result.text
