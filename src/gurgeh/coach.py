"""The Gurgeh chess coach: data-query tools over the player's records.

The coach never touches storage directly. It talks to a
:class:`CoachDataStore` and projects the store's records into compact
structures the model can read (rates pre-formatted as percentages,
move lists reduced to counts, at most ten games per search).
"""

from abc import ABC, abstractmethod

from pydantic import BaseModel, Field

from gurgeh.agent import Agent
from gurgeh.capability import Capability
from gurgeh.config import AgentSettings
from gurgeh.errors import LLMRecoverableError
from gurgeh.prompts import (
    GURGEH_SYSTEM_PROMPT,
    game_review_prompt,
    personalized_greeting_request,
    position_analysis_prompt,
)
from gurgeh.provider import ModelProvider, OpenRouter
from gurgeh.runner import Runner, generate_response
from gurgeh.session import Conversation
from gurgeh.tools import Tool, tool

SEARCH_RESULT_LIMIT = 10


# ---------------------------------------------------------------------------
# Collaborator records
# ---------------------------------------------------------------------------

class Game(BaseModel):
    id: int
    profile_id: int = 0
    initial_fen: str = ""
    final_fen: str = ""
    moves: list[str] = Field(default_factory=list)
    result: str
    player_color: str
    opponent_type: str = "engine"
    opponent_elo: int | None = None
    analysis: str | None = None
    mistakes: int = 0
    blunders: int = 0
    opening_name: str | None = None
    created_at: str = ""
    finished_at: str | None = None


class PlayerStats(BaseModel):
    current_elo: int
    peak_elo: int
    games_played: int = 0
    wins: int = 0
    losses: int = 0
    draws: int = 0
    win_rate: float = 0.0
    exercises_completed: int = 0
    exercises_solved: int = 0
    exercise_success_rate: float = 0.0
    streak: int = 0
    style: str = ""
    weaknesses: list[str] = Field(default_factory=list)
    strengths: list[str] = Field(default_factory=list)


class TrainingProgress(BaseModel):
    total_attempted: int = 0
    total_solved: int = 0
    success_rate: float = 0.0
    avg_time_seconds: float = 0.0
    avg_hints_used: float = 0.0


class ImprovementTrend(BaseModel):
    elo_change: int = 0
    games_in_period: int = 0
    win_rate_in_period: float = 0.0
    exercises_in_period: int = 0
    exercise_success_rate_in_period: float = 0.0


class WeaknessEntry(BaseModel):
    exercise_type: str
    total_attempts: int
    success_rate: float
    recent_trend: str


class CoachDataStore(ABC):
    """Read-only queries the coach tools rely on.

    Rates are percentages in ``[0, 100]``. Implementations may block on
    I/O; every method is a coroutine.
    """

    @abstractmethod
    async def get_recent_games(self, count: int) -> list[Game]:
        """Most recent games first."""

    @abstractmethod
    async def get_player_stats(self) -> PlayerStats:
        ...

    @abstractmethod
    async def get_weakness_history(self, days: int) -> list[WeaknessEntry]:
        ...

    @abstractmethod
    async def search_games_by_opening(self, opening_name: str) -> list[Game]:
        ...

    @abstractmethod
    async def get_games_with_mistakes(self, min_mistakes: int) -> list[Game]:
        ...

    @abstractmethod
    async def get_training_progress(self, exercise_type: str | None) -> TrainingProgress:
        ...

    @abstractmethod
    async def get_improvement_trend(self, days: int) -> ImprovementTrend:
        ...


class InMemoryCoachStore(CoachDataStore):
    """Store over records held in memory, for demos and tests.

    Weakness history and the improvement trend are snapshots: the
    ``days`` window is not applied to them.
    """

    def __init__(
        self,
        stats: PlayerStats,
        games: list[Game] | None = None,
        weaknesses: list[WeaknessEntry] | None = None,
        progress: dict[str | None, TrainingProgress] | None = None,
        trend: ImprovementTrend | None = None,
    ):
        self.stats = stats
        self.games = sorted(games or [], key=lambda g: g.created_at, reverse=True)
        self.weaknesses = sorted(weaknesses or [], key=lambda w: w.success_rate)
        self.progress = progress or {}
        self.trend = trend or ImprovementTrend()

    async def get_recent_games(self, count: int) -> list[Game]:
        return self.games[:count]

    async def get_player_stats(self) -> PlayerStats:
        return self.stats

    async def get_weakness_history(self, days: int) -> list[WeaknessEntry]:
        return list(self.weaknesses)

    async def search_games_by_opening(self, opening_name: str) -> list[Game]:
        needle = opening_name.lower()
        return [
            g for g in self.games
            if g.opening_name and needle in g.opening_name.lower()
        ]

    async def get_games_with_mistakes(self, min_mistakes: int) -> list[Game]:
        return [g for g in self.games if g.mistakes >= min_mistakes]

    async def get_training_progress(self, exercise_type: str | None) -> TrainingProgress:
        return self.progress.get(exercise_type, TrainingProgress())

    async def get_improvement_trend(self, days: int) -> ImprovementTrend:
        return self.trend


# ---------------------------------------------------------------------------
# Projections
# ---------------------------------------------------------------------------

def _pct(value: float) -> str:
    return f"{value:.1f}%"


def _bounded_int(value, name: str, low: int, high: int) -> int:
    try:
        number = int(float(value))
    except (TypeError, ValueError):
        raise LLMRecoverableError(
            f"'{name}' must be a number between {low} and {high}, got {value!r}"
        ) from None
    return max(low, min(high, number))


def _game_summary(g: Game) -> dict:
    return {
        "id": g.id,
        "result": g.result,
        "playerColor": g.player_color,
        "opening": g.opening_name,
        "mistakes": g.mistakes,
        "blunders": g.blunders,
        "playedAt": g.created_at,
    }


def _search_results(games: list[Game]) -> dict:
    return {
        "success": True,
        "totalGames": len(games),
        "games": [_game_summary(g) for g in games[:SEARCH_RESULT_LIMIT]],
    }


class CoachTools(Capability):
    """The seven player-data tools of the Gurgeh coach."""

    def __init__(self, store: CoachDataStore):
        super().__init__("coach_data")
        self._store = store

    def tools(self) -> list[Tool]:
        store = self._store

        @tool(
            name="getRecentGames",
            description="Get the player's most recent games with analysis data",
            parameters_schema={
                "type": "object",
                "properties": {
                    "count": {
                        "type": "number",
                        "description": "Number of recent games to retrieve (1-20)",
                    },
                },
                "required": ["count"],
            },
        )
        async def get_recent_games(count):
            games = await store.get_recent_games(_bounded_int(count, "count", 1, 20))
            return {
                "success": True,
                "games": [
                    {
                        "id": g.id,
                        "result": g.result,
                        "playerColor": g.player_color,
                        "opponentType": g.opponent_type,
                        "opponentElo": g.opponent_elo,
                        "moves": len(g.moves),
                        "mistakes": g.mistakes,
                        "blunders": g.blunders,
                        "opening": g.opening_name,
                        "playedAt": g.created_at,
                    }
                    for g in games
                ],
            }

        @tool(
            name="getPlayerStats",
            description=(
                "Get comprehensive player statistics including ELO, win rate, "
                "and identified weaknesses"
            ),
            parameters_schema={"type": "object", "properties": {}},
        )
        async def get_player_stats():
            stats = await store.get_player_stats()
            return {
                "success": True,
                "stats": {
                    "currentElo": stats.current_elo,
                    "peakElo": stats.peak_elo,
                    "gamesPlayed": stats.games_played,
                    "wins": stats.wins,
                    "losses": stats.losses,
                    "draws": stats.draws,
                    "winRate": _pct(stats.win_rate),
                    "exercisesCompleted": stats.exercises_completed,
                    "exerciseSuccessRate": _pct(stats.exercise_success_rate),
                    "streak": stats.streak,
                    "style": stats.style,
                    "weaknesses": stats.weaknesses,
                    "strengths": stats.strengths,
                },
            }

        @tool(
            name="getWeaknessHistory",
            description=(
                "Get the player's weakness history showing exercise types "
                "where they struggle"
            ),
            parameters_schema={
                "type": "object",
                "properties": {
                    "days": {
                        "type": "number",
                        "description": "Number of days to look back (1-365)",
                    },
                },
                "required": ["days"],
            },
        )
        async def get_weakness_history(days):
            entries = await store.get_weakness_history(_bounded_int(days, "days", 1, 365))
            return {
                "success": True,
                "weaknesses": [
                    {
                        "exerciseType": w.exercise_type,
                        "attempts": w.total_attempts,
                        "successRate": _pct(w.success_rate),
                        "trend": w.recent_trend,
                    }
                    for w in entries
                ],
            }

        @tool(
            name="searchGamesByOpening",
            description="Search the player's games by opening name",
            parameters_schema={
                "type": "object",
                "properties": {
                    "openingName": {
                        "type": "string",
                        "description": "Name of the opening to search for",
                    },
                },
                "required": ["openingName"],
            },
        )
        async def search_games_by_opening(opening_name):
            if not isinstance(opening_name, str) or not opening_name.strip():
                raise LLMRecoverableError("'openingName' must be a non-empty string")
            return _search_results(
                await store.search_games_by_opening(opening_name.strip())
            )

        @tool(
            name="getGamesWithMistakes",
            description="Get games where the player made significant mistakes",
            parameters_schema={
                "type": "object",
                "properties": {
                    "minMistakes": {
                        "type": "number",
                        "description": "Minimum number of mistakes to filter by (1-10)",
                    },
                },
                "required": ["minMistakes"],
            },
        )
        async def get_games_with_mistakes(min_mistakes):
            return _search_results(await store.get_games_with_mistakes(
                _bounded_int(min_mistakes, "minMistakes", 1, 10)
            ))

        @tool(
            name="getTrainingProgress",
            description="Get the player's training exercise progress",
            parameters_schema={
                "type": "object",
                "properties": {
                    "exerciseType": {
                        "type": "string",
                        "description": "Optional exercise type to filter by",
                    },
                },
            },
        )
        async def get_training_progress(exercise_type=None):
            progress = await store.get_training_progress(exercise_type or None)
            return {
                "success": True,
                "progress": {
                    "totalAttempted": progress.total_attempted,
                    "totalSolved": progress.total_solved,
                    "successRate": _pct(progress.success_rate),
                    "avgTimeSeconds": round(progress.avg_time_seconds),
                    "avgHintsUsed": f"{progress.avg_hints_used:.1f}",
                },
            }

        @tool(
            name="getImprovementTrend",
            description="Get the player's improvement trend over a period of time",
            parameters_schema={
                "type": "object",
                "properties": {
                    "days": {
                        "type": "number",
                        "description": "Number of days to analyze (1-365)",
                    },
                },
                "required": ["days"],
            },
        )
        async def get_improvement_trend(days):
            trend = await store.get_improvement_trend(_bounded_int(days, "days", 1, 365))
            return {
                "success": True,
                "trend": {
                    "eloChange": trend.elo_change,
                    "gamesPlayed": trend.games_in_period,
                    "winRate": _pct(trend.win_rate_in_period),
                    "exercisesCompleted": trend.exercises_in_period,
                    "exerciseSuccessRate": _pct(trend.exercise_success_rate_in_period),
                },
            }

        return [
            get_recent_games,
            get_player_stats,
            get_weakness_history,
            search_games_by_opening,
            get_games_with_mistakes,
            get_training_progress,
            get_improvement_trend,
        ]


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------

def create_coach_agent(
    settings: AgentSettings,
    store: CoachDataStore,
    provider: ModelProvider | None = None,
) -> Agent:
    """Build the Gurgeh agent. The provider defaults to OpenRouter."""
    return Agent(
        name="gurgeh",
        description="Chess coach with access to the player's records",
        system_prompt=GURGEH_SYSTEM_PROMPT,
        model=settings.model,
        provider=provider or OpenRouter.from_settings(settings),
        capabilities=[CoachTools(store)],
    )


async def personalized_greeting(
    agent: Agent, user_name: str, runner: Runner | None = None,
) -> str:
    """Ask the coach to greet the player, looking up their stats first."""
    conversation = Conversation(conversation_id="greeting")
    return await generate_response(
        agent, conversation, personalized_greeting_request(user_name), runner,
    )


async def analyze_position(
    agent: Agent, fen: str, runner: Runner | None = None,
) -> str:
    """One-shot analysis of a FEN position."""
    conversation = Conversation(conversation_id="analysis")
    return await generate_response(
        agent, conversation, position_analysis_prompt(fen), runner,
    )


async def review_game(
    agent: Agent, game: Game, runner: Runner | None = None,
) -> str:
    conversation = Conversation(conversation_id=f"review-{game.id}")
    return await generate_response(
        agent, conversation,
        game_review_prompt(game.moves, game.result, game.player_color),
        runner,
    )
