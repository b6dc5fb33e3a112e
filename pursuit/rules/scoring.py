from __future__ import annotations

import logging

from pursuit.game_store import GameSession

logger = logging.getLogger(__name__)


def blocking_obstacles(session: GameSession) -> list:
    """Obstacles that keep the Runner from scoring their current node."""

    state = session.state
    node = state.runner_node
    if not node:
        return []

    previous = state.game_log[-1] if state.game_log else None

    blocking: list = [rb for rb in session.roadblocks.values() if rb.node_name == node]
    blocking.extend(ch for ch in session.challenges.values() if ch.node_name == node)
    if previous is not None:
        blocking.extend(c for c in session.curses.values() if c.matches(previous, node))
    return blocking


def check_and_award_points(session: GameSession) -> int:
    """Score the Runner's current node if it is unscored and unobstructed.

    Returns the points awarded (0 when nothing happened). Safe to call any
    number of times: a node already in the game log is never scored again.
    """

    state = session.state
    node = state.runner_node
    if not node or node in state.game_log:
        return 0

    session.purge_expired_roadblocks()
    if blocking_obstacles(session):
        logger.info("Runner blocked at %s in game %s", node, session.game_id)
        return 0

    previous = state.game_log[-1] if state.game_log else None
    points = 0
    if previous is not None:
        edge_points = session.game_map.edge_points(previous, node)
        if edge_points is None:
            logger.warning("No map edge %s -> %s in game %s; scoring 0", previous, node, session.game_id)
        else:
            points = edge_points

    state.runner_points += points
    state.game_log.append(node)
    logger.info("Runner scored %d at %s in game %s (total %d)", points, node, session.game_id, state.runner_points)
    return points
