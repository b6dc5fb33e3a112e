from __future__ import annotations

import logging
import random

from pursuit.api.models import Card
from pursuit.errors import ValidationError
from pursuit.game_store import GameSession
from pursuit.rules.cards import draw
from pursuit.rules.scoring import check_and_award_points
from pursuit.turn_processing.validators import validate_action

logger = logging.getLogger(__name__)


def move_to_node(
    session: GameSession,
    *,
    actor_id: str,
    node: str,
    rng: random.Random | None = None,
) -> Card | None:
    """Move the Runner or the seeker party.

    The Runner may only step along an outgoing edge to a node not yet in
    this run's game log, and only while running; arriving triggers the
    scoring check. Seekers may jump to any node during positioning or
    running and draw one card per move. Returns the drawn card, if any.
    """

    state = session.state
    if state.is_runner(actor_id):
        validate_action(state=state, player_id=actor_id, action="runner_move")
        target = session.game_map.resolve_node(node)
        if target is None or not session.game_map.is_adjacent(state.runner_node, target):
            raise ValidationError("You can only move to connected nodes")
        if target in state.game_log:
            raise ValidationError("You cannot move to a node you have already visited")

        previous = state.runner_node
        state.runner_node = target
        logger.info("Runner %s moved %s -> %s in game %s", actor_id, previous, target, session.game_id)
        check_and_award_points(session)
        return None

    validate_action(state=state, player_id=actor_id, action="seeker_move")
    target = session.game_map.resolve_node(node)
    if target is None:
        raise ValidationError(f"Unknown node: {node}")

    state.seeker_node = target
    card = draw(session, rng=rng)
    if card is not None:
        state.cards_in_hand.append(card)
    logger.info("Seekers moved to %s in game %s (drew %s)", target, session.game_id, card.name if card else None)
    return card
