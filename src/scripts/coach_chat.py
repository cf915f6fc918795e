import asyncio
import logging
import os
import uuid

from gurgeh.coach import (
    Game,
    ImprovementTrend,
    InMemoryCoachStore,
    PlayerStats,
    TrainingProgress,
    WeaknessEntry,
    create_coach_agent,
    personalized_greeting,
)
from gurgeh.config import DEFAULT_MODEL, AgentSettings, configure_logging
from gurgeh.errors import TransportError
from gurgeh.prompts import greeting_prompt
from gurgeh.runner import ExchangeCallbacks, Runner, run_exchange
from gurgeh.session import Conversation

PLAYER_NAME = "Ada"


def demo_store() -> InMemoryCoachStore:
    return InMemoryCoachStore(
        stats=PlayerStats(
            current_elo=1215, peak_elo=1260, games_played=3,
            wins=1, losses=1, draws=1, win_rate=33.3,
            exercises_completed=40, exercises_solved=29,
            exercise_success_rate=72.5, streak=4, style="aggressive",
            weaknesses=["back rank", "pins"], strengths=["forks"],
        ),
        games=[
            Game(id=1, result="loss", player_color="white", opponent_elo=1250,
                 moves="e4 e5 Nf3 Nc6 Bc4 Nd4 Nxe5 Qg5".split(),
                 mistakes=3, blunders=1, opening_name="Italian Game",
                 created_at="2026-10-01T18:00:00Z"),
            Game(id=2, result="win", player_color="black", opponent_elo=1190,
                 moves="d4 d5 c4 e6 Nc3 Nf6".split(),
                 opening_name="Queen's Gambit Declined",
                 created_at="2026-10-03T18:00:00Z"),
            Game(id=3, result="draw", player_color="white", opponent_elo=1300,
                 moves="e4 c5 Nf3 d6".split(), mistakes=1,
                 opening_name="Sicilian Defense", created_at="2026-10-05T18:00:00Z"),
        ],
        weaknesses=[
            WeaknessEntry(exercise_type="pin", total_attempts=12, success_rate=41.7, recent_trend="declining"),
            WeaknessEntry(exercise_type="back_rank", total_attempts=8, success_rate=50.0, recent_trend="stable"),
        ],
        progress={
            None: TrainingProgress(total_attempted=40, total_solved=29, success_rate=72.5,
                                   avg_time_seconds=41.6, avg_hints_used=0.35),
        },
        trend=ImprovementTrend(elo_change=15, games_in_period=3, win_rate_in_period=33.3,
                               exercises_in_period=40, exercise_success_rate_in_period=72.5),
    )


def print_callbacks() -> ExchangeCallbacks:
    return ExchangeCallbacks(
        on_chunk=lambda text: print(text, end="", flush=True),
        on_tool_start=lambda name, args: print(f"\n[{name} {args}]", flush=True),
        on_complete=lambda text: print("\n"),
        on_error=lambda err: print(f"\n[error: {err}]\n"),
    )


async def run_chat_loop():
    api_key = os.environ.get("OPENROUTER_API_KEY")
    store = demo_store()
    if not api_key:
        stats = store.stats
        print(greeting_prompt(PLAYER_NAME, stats.current_elo, stats.exercises_completed))
        print("\nSet OPENROUTER_API_KEY to chat with the coach.")
        return

    settings = AgentSettings(api_key=api_key, model=os.environ.get("GURGEH_MODEL", DEFAULT_MODEL))
    agent = create_coach_agent(settings, store)
    runner = Runner.from_settings(settings)

    try:
        print(f"Gurgeh: {await personalized_greeting(agent, PLAYER_NAME, runner)}\n")
    except TransportError as e:
        logging.getLogger(__name__).warning(f"Greeting failed: {e}")

    conversation = Conversation(conversation_id=str(uuid.uuid4()))
    while True:
        try:
            user_input = input("You: ").strip()
        except (EOFError, KeyboardInterrupt):
            print("\nFarewell.")
            return
        if not user_input:
            continue
        if user_input in ("/quit", "/exit"):
            print("Farewell.")
            return

        print("Gurgeh: ", end="", flush=True)
        handle = run_exchange(agent, conversation, user_input, print_callbacks(), runner)
        try:
            await handle.wait()
        except asyncio.CancelledError:
            handle.cancel()
            raise


if __name__ == "__main__":
    configure_logging(level=logging.WARNING)
    asyncio.run(run_chat_loop())
