import pytest

from gurgeh.coach import (
    SEARCH_RESULT_LIMIT,
    CoachTools,
    Game,
    InMemoryCoachStore,
    PlayerStats,
    create_coach_agent,
)
from gurgeh.config import AgentSettings
from gurgeh.prompts import GURGEH_SYSTEM_PROMPT, greeting_prompt, position_analysis_prompt
from gurgeh.provider import OpenRouter
from gurgeh.tools import ToolRegistry

from tests.conftest import MockProvider, sample_store

COACH_TOOL_NAMES = [
    "getRecentGames",
    "getPlayerStats",
    "getWeaknessHistory",
    "searchGamesByOpening",
    "getGamesWithMistakes",
    "getTrainingProgress",
    "getImprovementTrend",
]


@pytest.fixture
def registry(coach_store):
    return ToolRegistry(CoachTools(coach_store).tools())


class TestCoachToolSchemas:
    def test_seven_tools_in_order(self, registry):
        assert registry.names == COACH_TOOL_NAMES

    def test_argument_names_are_camel_case(self, registry):
        props = {
            s["function"]["name"]: s["function"]["parameters"].get("properties", {})
            for s in registry.schemas()
        }
        assert list(props["searchGamesByOpening"]) == ["openingName"]
        assert list(props["getGamesWithMistakes"]) == ["minMistakes"]
        assert list(props["getTrainingProgress"]) == ["exerciseType"]
        assert props["getPlayerStats"] == {}

    def test_training_progress_argument_is_optional(self, registry):
        assert registry.lookup("getTrainingProgress").required_params() == []


class TestCoachToolResults:
    @pytest.mark.asyncio
    async def test_player_stats_projection(self, registry):
        result = await registry.execute("getPlayerStats", {})
        stats = result.as_dict()["stats"]

        assert result.success
        assert stats["currentElo"] == 1215
        assert stats["winRate"] == "33.3%"
        assert stats["exerciseSuccessRate"] == "72.5%"
        assert stats["weaknesses"] == ["back rank"]

    @pytest.mark.asyncio
    async def test_recent_games_newest_first_with_move_counts(self, registry):
        result = await registry.execute("getRecentGames", {"count": 2})
        games = result.payload["games"]

        assert [g["id"] for g in games] == [3, 2]
        assert games[0]["moves"] == 2
        assert games[0]["opening"] == "Sicilian Defense"
        assert games[0]["playerColor"] == "white"

    @pytest.mark.asyncio
    async def test_count_clamped_to_range(self, registry):
        result = await registry.execute("getRecentGames", {"count": 500})
        assert len(result.payload["games"]) == 3

        result = await registry.execute("getRecentGames", {"count": 0})
        assert len(result.payload["games"]) == 1

    @pytest.mark.asyncio
    async def test_non_numeric_count_is_recoverable(self, registry):
        result = await registry.execute("getRecentGames", {"count": "several"})
        assert result.success is False
        assert "'count' must be a number" in result.payload["error"]

    @pytest.mark.asyncio
    async def test_numeric_string_accepted(self, registry):
        result = await registry.execute("getRecentGames", {"count": "1"})
        assert len(result.payload["games"]) == 1

    @pytest.mark.asyncio
    async def test_weakness_history_weakest_first(self, registry):
        result = await registry.execute("getWeaknessHistory", {"days": 30})
        weaknesses = result.payload["weaknesses"]

        assert weaknesses[0] == {
            "exerciseType": "pin",
            "attempts": 12,
            "successRate": "41.7%",
            "trend": "declining",
        }
        assert weaknesses[1]["exerciseType"] == "fork"

    @pytest.mark.asyncio
    async def test_search_by_opening_is_case_insensitive_substring(self, registry):
        result = await registry.execute("searchGamesByOpening", {"openingName": "sicilian"})

        assert result.payload["totalGames"] == 1
        assert result.payload["games"][0]["opening"] == "Sicilian Defense"

    @pytest.mark.asyncio
    async def test_search_requires_non_empty_name(self, registry):
        result = await registry.execute("searchGamesByOpening", {"openingName": "   "})
        assert result.success is False

    @pytest.mark.asyncio
    async def test_search_results_capped(self):
        games = [
            Game(id=i, result="win", player_color="white", opening_name="London System",
                 created_at=f"2026-09-{i:02d}")
            for i in range(1, 16)
        ]
        store = InMemoryCoachStore(stats=PlayerStats(current_elo=1200, peak_elo=1200), games=games)
        registry = ToolRegistry(CoachTools(store).tools())

        result = await registry.execute("searchGamesByOpening", {"openingName": "London"})

        assert result.payload["totalGames"] == 15
        assert len(result.payload["games"]) == SEARCH_RESULT_LIMIT
        assert result.payload["games"][0]["id"] == 15

    @pytest.mark.asyncio
    async def test_games_with_mistakes(self, registry):
        result = await registry.execute("getGamesWithMistakes", {"minMistakes": 2})

        assert result.payload["totalGames"] == 1
        assert result.payload["games"][0]["id"] == 1
        assert result.payload["games"][0]["blunders"] == 1

    @pytest.mark.asyncio
    async def test_training_progress_overall(self, registry):
        result = await registry.execute("getTrainingProgress", {})
        assert result.payload["progress"] == {
            "totalAttempted": 40,
            "totalSolved": 29,
            "successRate": "72.5%",
            "avgTimeSeconds": 42,
            "avgHintsUsed": "0.3",
        }

    @pytest.mark.asyncio
    async def test_training_progress_by_type(self, registry):
        result = await registry.execute("getTrainingProgress", {"exerciseType": "pin"})
        assert result.payload["progress"]["totalAttempted"] == 12
        assert result.payload["progress"]["successRate"] == "41.7%"

    @pytest.mark.asyncio
    async def test_training_progress_unknown_type_is_empty(self, registry):
        result = await registry.execute("getTrainingProgress", {"exerciseType": "zugzwang"})
        assert result.payload["progress"]["totalAttempted"] == 0

    @pytest.mark.asyncio
    async def test_improvement_trend(self, registry):
        result = await registry.execute("getImprovementTrend", {"days": 30})
        assert result.payload["trend"] == {
            "eloChange": 15,
            "gamesPlayed": 3,
            "winRate": "33.3%",
            "exercisesCompleted": 40,
            "exerciseSuccessRate": "72.5%",
        }


class TestCreateCoachAgent:
    def test_uses_given_provider(self):
        provider = MockProvider()
        agent = create_coach_agent(AgentSettings(api_key="k", model="m"), sample_store(), provider)

        assert agent.name == "gurgeh"
        assert agent.model == "m"
        assert agent.provider is provider
        assert agent.system_prompt == GURGEH_SYSTEM_PROMPT
        assert agent.tool_registry.names == COACH_TOOL_NAMES

    def test_defaults_to_openrouter(self):
        agent = create_coach_agent(AgentSettings(api_key="k"), sample_store())
        assert isinstance(agent.provider, OpenRouter)


class TestPrompts:
    def test_position_prompt_contains_fen(self):
        fen = "rnbqkbnr/pppppppp/8/8/4P3/8/PPPP1PPP/RNBQKBNR b KQkq - 0 1"
        assert fen in position_analysis_prompt(fen)

    def test_static_greeting_for_new_player(self):
        text = greeting_prompt("Ada", 1200, 0)
        assert "Welcome to Tacticus, Ada" in text
        assert "1200 ELO" in text

    def test_static_greeting_for_returning_player(self):
        text = greeting_prompt("Ada", 1340, 12)
        assert text.startswith("Welcome back, Ada")
        assert "12 exercises" in text
