import asyncio
import json

import pytest

from gurgeh.agent import Agent
from gurgeh.coach import (
    CoachTools,
    Game,
    ImprovementTrend,
    InMemoryCoachStore,
    PlayerStats,
    TrainingProgress,
    WeaknessEntry,
)
from gurgeh.errors import TransportError
from gurgeh.provider import ModelProvider
from gurgeh.streaming import StreamChunk, ToolCallFragment
from gurgeh.tools import tool


# ---------------------------------------------------------------------------
# Mock provider
# ---------------------------------------------------------------------------

class MockProvider(ModelProvider):
    """Provider that replays pre-queued rounds. No network calls.

    Each queued round is a list of :class:`StreamChunk`. A
    :class:`TransportError` placed in the list is raised at that point
    of the stream, after the preceding chunks were delivered.
    """

    name = "mock"

    def __init__(self):
        self.rounds: list[list] = []
        self.call_log: list[dict] = []

    async def stream_complete(self, model, messages, tools=None):
        self.call_log.append({
            "model": model,
            "messages": json.loads(json.dumps(messages)),
            "tools": tools,
        })
        if not self.rounds:
            raise AssertionError("MockProvider ran out of queued rounds")
        for item in self.rounds.pop(0):
            if isinstance(item, BaseException):
                raise item
            await asyncio.sleep(0)
            yield item


# ---------------------------------------------------------------------------
# Stream builder helpers
# ---------------------------------------------------------------------------

def text_round(text: str, pieces: int = 1) -> list[StreamChunk]:
    """A round that streams *text* split into roughly equal pieces."""
    if not text:
        return [StreamChunk(finish_reason="stop")]
    size = max(1, -(-len(text) // pieces))
    chunks = [
        StreamChunk(content_delta=text[i:i + size])
        for i in range(0, len(text), size)
    ]
    chunks.append(StreamChunk(finish_reason="stop"))
    return chunks


def tool_call_chunks(
    name: str,
    args: dict | str,
    call_id: str = "call_1",
    index: int = 0,
    split: int = 1,
) -> list[StreamChunk]:
    """Chunks for one tool call whose argument text arrives in *split* pieces.

    Only the first fragment carries the id and name, as real providers do.
    """
    raw = args if isinstance(args, str) else json.dumps(args)
    size = max(1, -(-len(raw) // split)) if raw else 1
    pieces = [raw[i:i + size] for i in range(0, len(raw), size)] or [""]
    chunks = [StreamChunk(tool_call_fragments=[ToolCallFragment(
        index=index, call_id=call_id, name=name, arguments_delta=pieces[0],
    )])]
    for piece in pieces[1:]:
        chunks.append(StreamChunk(tool_call_fragments=[ToolCallFragment(
            index=index, arguments_delta=piece,
        )]))
    return chunks


def tool_round(
    calls: list[tuple[str, dict | str, str]],
    content: str = "",
    split: int = 1,
) -> list[StreamChunk]:
    """A round requesting each ``(name, args, call_id)`` in order."""
    chunks = text_round(content)[:-1] if content else []
    for i, (name, args, call_id) in enumerate(calls):
        chunks.extend(tool_call_chunks(name, args, call_id, index=i, split=split))
    chunks.append(StreamChunk(finish_reason="tool_calls"))
    return chunks


def transport_failure(status: int = 503) -> TransportError:
    return TransportError(f"API error ({status}): unavailable", status=status, body="unavailable")


# ---------------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------------

@tool
def echo(text: str):
    """Echo text back."""
    return {"success": True, "text": text}


@tool
async def async_echo(text: str):
    """Async echo."""
    return f"async: {text}"


@tool
def explode():
    """Always fails."""
    raise RuntimeError("boom")


# ---------------------------------------------------------------------------
# Coach data
# ---------------------------------------------------------------------------

def sample_games() -> list[Game]:
    return [
        Game(
            id=1, result="loss", player_color="white", opponent_elo=1250,
            moves=["e4", "e5", "Nf3", "Nc6", "Bc4", "Nd4"],
            mistakes=3, blunders=1, opening_name="Italian Game",
            created_at="2026-10-01T18:00:00Z",
        ),
        Game(
            id=2, result="win", player_color="black", opponent_elo=1190,
            moves=["d4", "d5", "c4", "e6"],
            mistakes=0, blunders=0, opening_name="Queen's Gambit Declined",
            created_at="2026-10-03T18:00:00Z",
        ),
        Game(
            id=3, result="draw", player_color="white", opponent_elo=1300,
            moves=["e4", "c5"],
            mistakes=1, blunders=0, opening_name="Sicilian Defense",
            created_at="2026-10-05T18:00:00Z",
        ),
    ]


def sample_store() -> InMemoryCoachStore:
    return InMemoryCoachStore(
        stats=PlayerStats(
            current_elo=1215, peak_elo=1260, games_played=3,
            wins=1, losses=1, draws=1, win_rate=33.333,
            exercises_completed=40, exercises_solved=29,
            exercise_success_rate=72.5, streak=4, style="aggressive",
            weaknesses=["back rank"], strengths=["forks"],
        ),
        games=sample_games(),
        weaknesses=[
            WeaknessEntry(exercise_type="pin", total_attempts=12, success_rate=41.66, recent_trend="declining"),
            WeaknessEntry(exercise_type="fork", total_attempts=20, success_rate=85.0, recent_trend="improving"),
        ],
        progress={
            None: TrainingProgress(
                total_attempted=40, total_solved=29, success_rate=72.5,
                avg_time_seconds=41.6, avg_hints_used=0.35,
            ),
            "pin": TrainingProgress(
                total_attempted=12, total_solved=5, success_rate=41.666,
                avg_time_seconds=63.2, avg_hints_used=1.0,
            ),
        },
        trend=ImprovementTrend(
            elo_change=15, games_in_period=3, win_rate_in_period=33.333,
            exercises_in_period=40, exercise_success_rate_in_period=72.5,
        ),
    )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def mock_provider():
    return MockProvider()


@pytest.fixture
def coach_store():
    return sample_store()


@pytest.fixture
def make_agent(mock_provider):
    """Factory fixture to build agents with the mock provider."""
    def _make(
        name="test_agent",
        tools=None,
        capabilities=None,
        system_prompt="You are helpful.",
        provider=None,
    ):
        return Agent(
            name=name,
            system_prompt=system_prompt,
            tools=tools or [],
            capabilities=capabilities or [],
            model="mock-model",
            provider=provider or mock_provider,
        )
    return _make


@pytest.fixture
def coach_agent(make_agent, coach_store):
    return make_agent(name="gurgeh", capabilities=[CoachTools(coach_store)])
