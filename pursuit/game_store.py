from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from uuid import UUID, uuid4

import redis
from pydantic import TypeAdapter

from pursuit.api.models import CardDefinition, Challenge, Curse, GameMap, GamePhase, GameState, Roadblock
from pursuit.errors import AuthError, GameBusyError, NotFoundError, PersistenceError, RoleError, ValidationError


logger = logging.getLogger(__name__)

GAMES_SET_KEY = "pursuit:games"
GAME_KEY_PREFIX = "pursuit:game:"  # + {uuid}

_CARD_POOL = TypeAdapter(list[CardDefinition])


def _now() -> datetime:
    return datetime.now(tz=UTC)


def _game_key(game_id: UUID) -> str:
    return f"{GAME_KEY_PREFIX}{game_id}"


def _map_key(game_id: UUID) -> str:
    return f"{_game_key(game_id)}:map"


def _cards_key(game_id: UUID) -> str:
    return f"{_game_key(game_id)}:cards"


def _roadblocks_key(game_id: UUID) -> str:
    return f"{_game_key(game_id)}:roadblocks"


def _curses_key(game_id: UUID) -> str:
    return f"{_game_key(game_id)}:curses"


def _challenges_key(game_id: UUID) -> str:
    return f"{_game_key(game_id)}:challenges"


def new_obstacle_id() -> str:
    return uuid4().hex


def validate_player_order(player_order: list[str]) -> None:
    if len(player_order) < 2:
        raise ValidationError("Need at least 2 players to start the game")
    if any(not p for p in player_order):
        raise ValidationError("Player ids must be non-empty")
    if len(set(player_order)) != len(player_order):
        raise ValidationError("Player ids must be unique")


def save_game(*, r: redis.Redis, state: GameState) -> None:
    state.last_updated_at = _now()
    state.version += 1
    try:
        r.set(_game_key(state.game_id), state.model_dump_json())
    except redis.RedisError as e:
        raise PersistenceError(f"Failed to save game state: {e}") from e


def get_game(*, r: redis.Redis, game_id: UUID) -> GameState | None:
    try:
        raw = r.get(_game_key(game_id))
    except redis.RedisError as e:
        raise PersistenceError(f"Failed to load game state: {e}") from e
    if not raw:
        return None
    return GameState.model_validate_json(raw)


def require_game(*, r: redis.Redis, game_id: UUID) -> GameState:
    state = get_game(r=r, game_id=game_id)
    if state is None:
        raise NotFoundError("Game state not found")
    return state


def require_member(*, state: GameState, player_id: str | None) -> str:
    """Return the acting player id, rejecting anonymous callers and outsiders."""

    if not player_id:
        raise AuthError("You must be logged in")
    if not state.is_member(player_id):
        raise RoleError("You are not a player in this game")
    return player_id


def get_map(*, r: redis.Redis, game_id: UUID) -> GameMap:
    try:
        raw = r.get(_map_key(game_id))
    except redis.RedisError as e:
        raise PersistenceError(f"Failed to load map: {e}") from e
    if not raw:
        raise NotFoundError("Map not found")
    return GameMap.model_validate_json(raw)


def get_card_pool(*, r: redis.Redis, game_id: UUID) -> list[CardDefinition]:
    try:
        raw = r.get(_cards_key(game_id))
    except redis.RedisError as e:
        raise PersistenceError(f"Failed to load card pool: {e}") from e
    if not raw:
        return []
    return _CARD_POOL.validate_json(raw)


def _load_hash(r: redis.Redis, key: str, model: type) -> dict:
    try:
        raw = r.hgetall(key)
    except redis.RedisError as e:
        raise PersistenceError(f"Failed to load {key}: {e}") from e
    return {oid: model.model_validate_json(v) for oid, v in raw.items()}


def list_roadblocks(*, r: redis.Redis, game_id: UUID, viewer_id: str | None = None) -> list[Roadblock]:
    """Active roadblocks, oldest first.

    Expired roadblocks are purged before anything is returned. Hidden
    roadblocks are left out when the viewer is the current Runner.
    """

    now = _now()
    by_id: dict[str, Roadblock] = _load_hash(r, _roadblocks_key(game_id), Roadblock)
    expired = [oid for oid, rb in by_id.items() if rb.is_expired(now)]
    if expired:
        try:
            r.hdel(_roadblocks_key(game_id), *expired)
        except redis.RedisError:
            logger.warning("Failed to purge %d expired roadblocks for game %s", len(expired), game_id, exc_info=True)

    active = sorted((rb for oid, rb in by_id.items() if oid not in expired), key=lambda rb: rb.created_at)
    if viewer_id is not None:
        state = get_game(r=r, game_id=game_id)
        if state is not None and state.is_runner(viewer_id):
            active = [rb for rb in active if not rb.is_hidden]
    return active


def list_curses(*, r: redis.Redis, game_id: UUID) -> list[Curse]:
    curses: dict[str, Curse] = _load_hash(r, _curses_key(game_id), Curse)
    return sorted(curses.values(), key=lambda c: c.created_at)


def list_challenges(*, r: redis.Redis, game_id: UUID) -> list[Challenge]:
    challenges: dict[str, Challenge] = _load_hash(r, _challenges_key(game_id), Challenge)
    return sorted(challenges.values(), key=lambda c: c.created_at)


@dataclass(slots=True)
class _Collection:
    """In-memory view of one obstacle hash plus the writes pending against it."""

    items: dict
    added: dict = field(default_factory=dict)
    removed: set[str] = field(default_factory=set)

    def add(self, oid: str, item: object) -> None:
        self.items[oid] = item
        self.added[oid] = item
        self.removed.discard(oid)

    def remove(self, oids: Iterable[str]) -> list:
        out = []
        for oid in list(oids):
            item = self.items.pop(oid, None)
            if item is None:
                continue
            out.append(item)
            self.added.pop(oid, None)
            self.removed.add(oid)
        return out

    def values(self) -> list:
        return sorted(self.items.values(), key=lambda o: o.created_at)


@dataclass(slots=True)
class GameSession:
    """Everything one engine operation reads and writes, for one game.

    Rule functions mutate the session in memory; nothing reaches Redis until
    `commit()`, which writes the state and all obstacle changes in a single
    MULTI/EXEC. A rejected operation simply never commits.
    """

    r: redis.Redis
    state: GameState
    game_map: GameMap
    card_pool: list[CardDefinition]
    roadblocks: _Collection
    curses: _Collection
    challenges: _Collection
    now: datetime
    # GameState.version as read; commit refuses to write over anything newer.
    loaded_version: int = 0

    @property
    def game_id(self) -> UUID:
        return self.state.game_id

    def add_roadblock(self, rb: Roadblock) -> None:
        self.roadblocks.add(rb.id, rb)

    def add_curse(self, curse: Curse) -> None:
        self.curses.add(curse.id, curse)

    def add_challenge(self, challenge: Challenge) -> None:
        self.challenges.add(challenge.id, challenge)

    def remove_roadblocks_at(self, node: str) -> list[Roadblock]:
        return self.roadblocks.remove(oid for oid, rb in self.roadblocks.items.items() if rb.node_name == node)

    def remove_curse(self, curse_id: str) -> list[Curse]:
        return self.curses.remove([curse_id])

    def remove_challenge(self, challenge_id: str) -> list[Challenge]:
        return self.challenges.remove([challenge_id])

    def clear_obstacles(self) -> None:
        self.roadblocks.remove(list(self.roadblocks.items))
        self.curses.remove(list(self.curses.items))
        self.challenges.remove(list(self.challenges.items))

    def purge_expired_roadblocks(self) -> None:
        expired = [oid for oid, rb in self.roadblocks.items.items() if rb.is_expired(self.now)]
        if expired:
            logger.debug("Purging %d expired roadblocks for game %s", len(expired), self.game_id)
            self.roadblocks.remove(expired)

    def commit(self) -> GameState:
        """Write the state and obstacle changes in one MULTI/EXEC.

        The game key is WATCHed and its stored version must still be the one
        this session loaded; otherwise another writer got in (for example
        after our lock lease ran out) and GameBusyError is raised with
        nothing written.
        """

        gid = self.game_id
        game_key = _game_key(gid)
        try:
            with self.r.pipeline(transaction=True) as pipe:
                pipe.watch(game_key)
                raw = pipe.get(game_key)
                stored = GameState.model_validate_json(raw).version if raw else None
                if stored != self.loaded_version:
                    logger.warning(
                        "Game %s moved from version %d to %s during an action; not committing",
                        gid,
                        self.loaded_version,
                        stored,
                    )
                    raise GameBusyError("Game changed while the action was running, try again")

                self.state.last_updated_at = _now()
                self.state.version = self.loaded_version + 1
                pipe.multi()
                pipe.set(game_key, self.state.model_dump_json())
                for key, coll in (
                    (_roadblocks_key(gid), self.roadblocks),
                    (_curses_key(gid), self.curses),
                    (_challenges_key(gid), self.challenges),
                ):
                    if coll.removed:
                        pipe.hdel(key, *coll.removed)
                    if coll.added:
                        pipe.hset(key, mapping={oid: o.model_dump_json() for oid, o in coll.added.items()})
                pipe.execute()
        except redis.WatchError as e:
            raise GameBusyError("Game changed while the action was running, try again") from e
        except redis.RedisError as e:
            raise PersistenceError(f"Failed to update game state: {e}") from e

        self.loaded_version = self.state.version
        for coll in (self.roadblocks, self.curses, self.challenges):
            coll.added.clear()
            coll.removed.clear()
        return self.state


def load_session(*, r: redis.Redis, game_id: UUID) -> GameSession:
    state = require_game(r=r, game_id=game_id)
    session = GameSession(
        r=r,
        state=state,
        game_map=get_map(r=r, game_id=game_id),
        card_pool=get_card_pool(r=r, game_id=game_id),
        roadblocks=_Collection(items=_load_hash(r, _roadblocks_key(game_id), Roadblock)),
        curses=_Collection(items=_load_hash(r, _curses_key(game_id), Curse)),
        challenges=_Collection(items=_load_hash(r, _challenges_key(game_id), Challenge)),
        now=_now(),
        loaded_version=state.version,
    )
    session.purge_expired_roadblocks()
    return session


def create_game(
    *,
    r: redis.Redis,
    player_order: list[str],
    game_map: GameMap,
    card_pool: list[CardDefinition],
    start_node: str | None = None,
) -> GameState:
    """Activate a game: store its map and card pool and the initial GameState.

    The first player in `player_order` is the first Runner; both cursors
    start on `start_node` (default: the map's first node).
    """

    validate_player_order(player_order)

    node = game_map.resolve_node(start_node) if start_node else game_map.nodes[0]
    if node is None:
        raise ValidationError(f"Unknown start node: {start_node}")

    game_id = uuid4()
    now = _now()
    state = GameState(
        game_id=game_id,
        created_at=now,
        last_updated_at=now,
        player_order=list(player_order),
        current_runner_id=player_order[0],
        phase=GamePhase.intermission,
        runner_node=node,
        seeker_node=node,
    )

    try:
        with r.pipeline(transaction=True) as pipe:
            pipe.set(_game_key(game_id), state.model_dump_json())
            pipe.set(_map_key(game_id), game_map.model_dump_json())
            pipe.set(_cards_key(game_id), _CARD_POOL.dump_json(card_pool))
            pipe.sadd(GAMES_SET_KEY, str(game_id))
            pipe.execute()
    except redis.RedisError as e:
        raise PersistenceError(f"Failed to create game: {e}") from e

    logger.info("Created game %s with %d players on map %r", game_id, len(player_order), game_map.name)
    return state


def list_games(*, r: redis.Redis) -> list[GameState]:
    ids = sorted(r.smembers(GAMES_SET_KEY))
    out: list[GameState] = []
    for sid in ids:
        try:
            gid = UUID(sid)
        except ValueError:
            continue
        state = get_game(r=r, game_id=gid)
        if state is not None:
            out.append(state)
    out.sort(key=lambda s: s.created_at, reverse=True)
    return out
