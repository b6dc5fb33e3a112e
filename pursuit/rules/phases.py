from __future__ import annotations

import logging
import math
import random
from datetime import datetime

from pursuit.api.models import GameState
from pursuit.config import get_settings
from pursuit.errors import TimingError
from pursuit.fsm import advance_phase
from pursuit.game_store import GameSession
from pursuit.rules.cards import deal_hand
from pursuit.rules.effects import EffectStack
from pursuit.turn_processing.validators import validate_action

logger = logging.getLogger(__name__)


def positioning_remaining_seconds(state: GameState, now: datetime) -> int:
    """Whole seconds until the Runner may start; 0 once the window has passed."""

    started = state.positioning_start_time
    if started is None:
        return 0
    remaining = get_settings().positioning_duration - (now - started)
    return max(0, math.ceil(remaining.total_seconds()))


def start_positioning(session: GameSession, *, actor_id: str, rng: random.Random | None = None) -> None:
    state = session.state
    validate_action(state=state, player_id=actor_id, action="start_positioning")

    advance_phase(state, "start_positioning", message="Positioning can only be started from the intermission")
    state.positioning_start_time = session.now
    deal_hand(session, get_settings().starting_hand_size, rng=rng)
    logger.info("Positioning started by %s in game %s", actor_id, session.game_id)


def start_run(session: GameSession, *, actor_id: str) -> None:
    state = session.state
    validate_action(state=state, player_id=actor_id, action="start_run")

    remaining = positioning_remaining_seconds(state, session.now)
    if remaining > 0:
        raise TimingError(
            f"Positioning phase not complete. {remaining // 60}:{remaining % 60:02d} remaining.",
            remaining_seconds=remaining,
        )

    advance_phase(state, "start_run", message="Run can only be started from the positioning phase")
    state.game_log = [state.runner_node] if state.runner_node else []
    state.runner_points = 0
    state.run_start_time = session.now
    logger.info("Run started by %s at %s in game %s", actor_id, state.runner_node, session.game_id)


def end_run(session: GameSession, *, actor_id: str) -> str:
    """Close the run: rotate the Runner and reset the round. Returns the new runner id."""

    state = session.state
    validate_action(state=state, player_id=actor_id, action="end_run")

    next_runner = state.next_runner_id()
    session.clear_obstacles()
    advance_phase(state, "end_run", message="Run can only be ended during the running phase")

    # The caught location becomes the seekers' rally point.
    state.seeker_node = state.runner_node
    state.current_runner_id = next_runner
    state.positioning_start_time = None
    state.run_start_time = None
    state.runner_points = 0
    EffectStack(state).clear()
    state.game_log = []
    state.cards_in_hand = []
    logger.info("Run ended by %s in game %s; next runner %s", actor_id, session.game_id, next_runner)
    return next_runner
