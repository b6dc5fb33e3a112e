from __future__ import annotations

import logging
import random
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Literal, get_args
from uuid import UUID

import redis

from pursuit.api.models import GameState, GameView, PendingAction
from pursuit.config import get_settings
from pursuit.errors import GameError, ValidationError
from pursuit.game_store import GameSession, _now, load_session, require_game
from pursuit.lock import game_lock
from pursuit.rules import cards, movement, obstacles, phases


logger = logging.getLogger(__name__)


ActionName = Literal[
    "start_positioning",
    "start_run",
    "end_run",
    "move",
    "play_card",
    "clear_roadblock",
    "clear_curse",
    "clear_challenge",
    "discard",
]

ACTION_NAMES: frozenset[str] = frozenset(get_args(ActionName))


@dataclass(frozen=True, slots=True)
class ActionResult:
    state: GameState
    # Anything the rule returned (drawn card, new runner id, cleared count...).
    detail: Any = None
    points_awarded: int = 0


def _str(payload: dict[str, Any], key: str, *, required: bool = False) -> str | None:
    value = payload.get(key)
    if value is None or value == "":
        if required:
            raise ValidationError(f"'{key}' is required")
        return None
    return str(value)


def _apply_start_positioning(session: GameSession, player_id: str, payload: dict[str, Any], rng: random.Random | None) -> Any:
    return phases.start_positioning(session, actor_id=player_id, rng=rng)


def _apply_start_run(session: GameSession, player_id: str, payload: dict[str, Any], rng: random.Random | None) -> Any:
    return phases.start_run(session, actor_id=player_id)


def _apply_end_run(session: GameSession, player_id: str, payload: dict[str, Any], rng: random.Random | None) -> Any:
    return phases.end_run(session, actor_id=player_id)


def _apply_move(session: GameSession, player_id: str, payload: dict[str, Any], rng: random.Random | None) -> Any:
    node = _str(payload, "node", required=True)
    return movement.move_to_node(session, actor_id=player_id, node=str(node), rng=rng)


def _apply_play_card(session: GameSession, player_id: str, payload: dict[str, Any], rng: random.Random | None) -> Any:
    return cards.play_card(
        session,
        actor_id=player_id,
        card_id=str(_str(payload, "card_id", required=True)),
        target=_str(payload, "target"),
        node=_str(payload, "node"),
        node2=_str(payload, "node2"),
        rng=rng,
    )


def _apply_clear_roadblock(session: GameSession, player_id: str, payload: dict[str, Any], rng: random.Random | None) -> Any:
    node = _str(payload, "node", required=True)
    return obstacles.clear_roadblock(session, actor_id=player_id, node=str(node))


def _apply_clear_curse(session: GameSession, player_id: str, payload: dict[str, Any], rng: random.Random | None) -> Any:
    curse_id = _str(payload, "curse_id", required=True)
    return obstacles.clear_curse(session, actor_id=player_id, curse_id=str(curse_id))


def _apply_clear_challenge(session: GameSession, player_id: str, payload: dict[str, Any], rng: random.Random | None) -> Any:
    challenge_id = _str(payload, "challenge_id", required=True)
    return obstacles.clear_challenge(session, actor_id=player_id, challenge_id=str(challenge_id))


def _apply_discard(session: GameSession, player_id: str, payload: dict[str, Any], rng: random.Random | None) -> Any:
    card_ids = payload.get("card_ids")
    if not isinstance(card_ids, list):
        raise ValidationError("You must discard exactly 2 cards")
    return cards.discard_cards(session, actor_id=player_id, card_ids=[str(c) for c in card_ids])


_Handler = Callable[[GameSession, str, dict[str, Any], random.Random | None], Any]

ACTION_HANDLERS: dict[str, _Handler] = {
    "start_positioning": _apply_start_positioning,
    "start_run": _apply_start_run,
    "end_run": _apply_end_run,
    "move": _apply_move,
    "play_card": _apply_play_card,
    "clear_roadblock": _apply_clear_roadblock,
    "clear_curse": _apply_clear_curse,
    "clear_challenge": _apply_clear_challenge,
    "discard": _apply_discard,
}


def dispatch_action(
    *,
    r: redis.Redis,
    game_id: UUID,
    player_id: str,
    action: ActionName,
    payload: dict[str, Any] | None = None,
    rng: random.Random | None = None,
) -> ActionResult:
    """Single entry point for every state-changing player action.

    Applies an action by:
    - acquiring the per-game lock
    - loading the game session (state, map, card pool, obstacles)
    - running the rule, which validates before it mutates
    - committing everything in one Redis transaction

    A rejected action raises a GameError and writes nothing.
    """

    handler = ACTION_HANDLERS.get(action)
    if handler is None:
        raise ValidationError(f"Unknown action: {action}")

    settings = get_settings()
    with game_lock(r=r, game_id=str(game_id), ttl_ms=settings.lock_ttl_ms, wait_ms=settings.lock_wait_ms):
        session = load_session(r=r, game_id=game_id)
        points_before = session.state.runner_points
        try:
            detail = handler(session, player_id, payload or {}, rng)
        except GameError as e:
            logger.info("Rejected %s by %s in game %s: %s %s", action, player_id, game_id, e.kind.value, e.message)
            raise
        state = session.commit()

    logger.info("Applied %s by %s in game %s (version %d)", action, player_id, game_id, state.version)
    return ActionResult(state=state, detail=detail, points_awarded=max(0, state.runner_points - points_before))


def get_pending_actions(*, r: redis.Redis, game_id: UUID, player_id: str) -> list[PendingAction]:
    session = load_session(r=r, game_id=game_id)
    return cards.get_pending_actions(session, actor_id=player_id)


def get_game_view(*, r: redis.Redis, game_id: UUID) -> GameView:
    """Game state plus the countdown/elapsed values clients poll for."""

    state = require_game(r=r, game_id=game_id)
    now = _now()
    remaining: int | None = None
    if state.positioning_start_time is not None:
        remaining = phases.positioning_remaining_seconds(state, now)
    elapsed: int | None = None
    if state.run_start_time is not None:
        elapsed = max(0, int((now - state.run_start_time).total_seconds()))
    return GameView(state=state, positioning_remaining_seconds=remaining, run_elapsed_seconds=elapsed)
