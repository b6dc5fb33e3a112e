from __future__ import annotations

import logging
from datetime import timedelta

from pursuit.api.models import Challenge, Curse, EffectType, Roadblock
from pursuit.errors import ValidationError
from pursuit.game_store import GameSession, new_obstacle_id
from pursuit.rules.effects import EffectStack
from pursuit.rules.scoring import check_and_award_points
from pursuit.turn_processing.validators import validate_action

logger = logging.getLogger(__name__)


def _require_node(session: GameSession, node: str | None, *, what: str) -> str:
    resolved = session.game_map.resolve_node(node)
    if resolved is None:
        if not node:
            raise ValidationError(f"You must select a node for the {what}")
        raise ValidationError(f"Unknown node: {node}")
    return resolved


def place_roadblock(
    session: GameSession,
    *,
    placed_by: str,
    node: str | None = None,
    description: str = "Roadblock",
    ttl: timedelta | None = None,
) -> Roadblock:
    """Place a roadblock for the seeker side.

    Default: only on the seekers' current node. `misdirection` widens that to
    the current node's neighbours, `global_placement` to any node, and
    `hidden_roadblock` hides it from the Runner. Every roadblock modifier that
    is active is used up by this placement; curse-only effects stay.
    """

    state = session.state
    effects = EffectStack(state)
    seeker_node = state.seeker_node
    target = _require_node(session, node or seeker_node, what="roadblock")

    if effects.has(EffectType.global_placement):
        pass
    elif effects.has(EffectType.misdirection):
        if target != seeker_node and not session.game_map.is_adjacent(seeker_node, target):
            raise ValidationError(
                "With Misdirection, you can only place roadblocks on your current node or adjacent nodes"
            )
    elif target != seeker_node:
        raise ValidationError("You can only place roadblocks on your current node")

    hidden = effects.has(EffectType.hidden_roadblock)
    for used in (EffectType.global_placement, EffectType.misdirection, EffectType.hidden_roadblock):
        effects.consume(used)

    roadblock = Roadblock(
        id=new_obstacle_id(),
        game_id=session.game_id,
        node_name=target,
        placed_by=placed_by,
        is_hidden=hidden,
        description=description,
        created_at=session.now,
        expires_at=session.now + ttl if ttl else None,
    )
    session.add_roadblock(roadblock)
    logger.info("Roadblock placed at %s (hidden=%s) in game %s", target, hidden, session.game_id)
    return roadblock


def _curse_target(session: GameSession, node: str | None, *, global_placement: bool) -> str:
    target = _require_node(session, node, what="curse")
    if not global_placement and not session.game_map.is_adjacent(session.state.seeker_node, target):
        raise ValidationError("You can only curse paths to adjacent nodes")
    return target


def place_curse(
    session: GameSession,
    *,
    placed_by: str | None,
    node: str | None,
    node2: str | None = None,
    description: str = "Curse",
) -> list[Curse]:
    """Curse the path from the seekers' node to `node`.

    With `see_double` active and `node2` given, a second path is cursed by the
    same rule. A bad second target is logged and skipped; the first curse stands.
    """

    state = session.state
    effects = EffectStack(state)
    global_placement = effects.has(EffectType.global_placement)
    see_double = effects.has(EffectType.see_double)

    first = _curse_target(session, node, global_placement=global_placement)
    second: str | None = None
    if see_double and node2:
        try:
            second = _curse_target(session, node2, global_placement=global_placement)
        except ValidationError as e:
            logger.warning("Second curse target rejected in game %s: %s", session.game_id, e.message)

    effects.consume(EffectType.global_placement)
    effects.consume(EffectType.see_double)

    placed: list[Curse] = []
    for target, desc in ((first, description), (second, f"{description} (See Double)")):
        if target is None:
            continue
        curse = Curse(
            id=new_obstacle_id(),
            game_id=session.game_id,
            start_node=state.seeker_node or target,
            end_node=target,
            placed_by=placed_by,
            description=desc,
            created_at=session.now,
        )
        session.add_curse(curse)
        placed.append(curse)

    logger.info("Placed %d curse(s) from %s in game %s", len(placed), state.seeker_node, session.game_id)
    return placed


def place_challenge(session: GameSession, *, placed_by: str, description: str = "Challenge") -> Challenge:
    node = _require_node(session, session.state.seeker_node, what="challenge")
    challenge = Challenge(
        id=new_obstacle_id(),
        game_id=session.game_id,
        node_name=node,
        placed_by=placed_by,
        description=description,
        created_at=session.now,
    )
    session.add_challenge(challenge)
    logger.info("Challenge placed at %s in game %s", node, session.game_id)
    return challenge


def clear_roadblock(session: GameSession, *, actor_id: str, node: str) -> int:
    """Remove every roadblock on `node`, then re-check scoring. Returns how many were removed."""

    validate_action(state=session.state, player_id=actor_id, action="clear_roadblock")
    target = session.game_map.resolve_node(node) or node
    removed = session.remove_roadblocks_at(target)
    if not removed:
        logger.info("No roadblock at %s to clear in game %s", target, session.game_id)
    check_and_award_points(session)
    return len(removed)


def clear_curse(session: GameSession, *, actor_id: str, curse_id: str) -> int:
    validate_action(state=session.state, player_id=actor_id, action="clear_curse")
    removed = session.remove_curse(curse_id)
    if not removed:
        logger.info("No curse %s to clear in game %s", curse_id, session.game_id)
    check_and_award_points(session)
    return len(removed)


def clear_challenge(session: GameSession, *, actor_id: str, challenge_id: str) -> int:
    validate_action(state=session.state, player_id=actor_id, action="clear_challenge")
    removed = session.remove_challenge(challenge_id)
    if not removed:
        logger.info("No challenge %s to clear in game %s", challenge_id, session.game_id)
    check_and_award_points(session)
    return len(removed)
