from __future__ import annotations

from datetime import datetime
from enum import StrEnum
import re
from uuid import UUID

from pydantic import BaseModel, Field, model_validator


def _norm_key(s: str) -> str:
    return re.sub(r"\s+", " ", s).strip().casefold()


class GamePhase(StrEnum):
    intermission = "intermission"
    positioning = "positioning"
    running = "running"


class CardType(StrEnum):
    battle = "battle"
    roadblock = "roadblock"
    curse = "curse"
    utility = "utility"


class UtilityKind(StrEnum):
    """Closed set of utility behaviours, resolved from the card name."""

    draw_then_discard_two = "draw_then_discard_two"
    misdirection = "misdirection"
    see_double = "see_double"
    hand_refresh = "hand_refresh"
    hidden_placement = "hidden_placement"
    tutor_and_random_discard = "tutor_and_random_discard"
    global_placement = "global_placement"
    # Any utility card whose name is not one of the above.
    draw_two = "draw_two"


UTILITY_CARD_NAMES: dict[str, UtilityKind] = {
    "faithless looting": UtilityKind.draw_then_discard_two,
    "misdirection": UtilityKind.misdirection,
    "see double": UtilityKind.see_double,
    "wheel of fortune": UtilityKind.hand_refresh,
    "yarus, roar of the old gods": UtilityKind.hidden_placement,
    "gamble": UtilityKind.tutor_and_random_discard,
    "goblin charbelcher": UtilityKind.global_placement,
}


def utility_kind_for(name: str) -> UtilityKind:
    return UTILITY_CARD_NAMES.get(_norm_key(name), UtilityKind.draw_two)


class EffectType(StrEnum):
    discard_two = "discard_two"
    misdirection = "misdirection"
    see_double = "see_double"
    hidden_roadblock = "hidden_roadblock"
    global_placement = "global_placement"
    location_revealed = "location_revealed"


# Effects that must be resolved by the seekers before they are cleared.
REQUIRED_EFFECTS: frozenset[EffectType] = frozenset({EffectType.discard_two})


class CardDefinition(BaseModel):
    """One entry of a game's card pool. Drawing instantiates a `Card` from it."""

    id: str
    name: str
    type: CardType
    description: str = ""


class Card(BaseModel):
    # Unique per dealt instance; re-drawing the same definition yields a new id.
    id: str
    definition_id: str | None = None
    name: str
    type: CardType
    description: str = ""

    @property
    def utility_kind(self) -> UtilityKind | None:
        if self.type != CardType.utility:
            return None
        return utility_kind_for(self.name)


class DiscardReason(StrEnum):
    played = "played"
    discarded = "discarded"


class DiscardedCard(Card):
    reason: DiscardReason = DiscardReason.played
    used_by: str
    used_at: datetime
    target: str | None = None
    target_node: str | None = None
    target_node2: str | None = None


class Effect(BaseModel):
    type: EffectType
    description: str
    card_id: str | None = None
    player_id: str | None = None
    # Informational effects carry an expiry; display layers compare it with "now".
    expires_at: datetime | None = None


class PendingAction(BaseModel):
    type: EffectType
    description: str
    required: bool


class Roadblock(BaseModel):
    id: str
    game_id: UUID
    node_name: str
    placed_by: str
    is_hidden: bool = False
    description: str = "Roadblock"
    created_at: datetime
    expires_at: datetime | None = None

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and self.expires_at <= now


class Curse(BaseModel):
    id: str
    game_id: UUID
    start_node: str
    end_node: str
    placed_by: str | None = None
    description: str = "Curse"
    created_at: datetime

    def matches(self, a: str, b: str) -> bool:
        """Curses are undirected: either orientation of the pair matches."""

        return (self.start_node, self.end_node) in {(a, b), (b, a)}


class Challenge(BaseModel):
    id: str
    game_id: UUID
    node_name: str
    placed_by: str
    description: str = "Challenge"
    created_at: datetime


class MapEdge(BaseModel):
    from_node: str = Field(..., alias="from")
    to_node: str = Field(..., alias="to")
    points: int = Field(0, ge=0)

    model_config = {"populate_by_name": True}


class GameMap(BaseModel):
    """Static node/edge graph for one game.

    Edges are directed for traversal. Point lookups fall back to the reverse
    edge so a pair scores the same whichever way it was authored.
    Node names are canonical; lookups are case/whitespace forgiving.
    """

    name: str
    nodes: list[str]
    edges: list[MapEdge] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_graph(self) -> "GameMap":
        if not self.nodes:
            raise ValueError("Map must have at least one node")
        keys = [_norm_key(n) for n in self.nodes]
        if len(set(keys)) != len(keys):
            raise ValueError("Map node names must be unique")
        known = set(keys)
        for e in self.edges:
            for endpoint in (e.from_node, e.to_node):
                if _norm_key(endpoint) not in known:
                    raise ValueError(f"Edge references unknown node: {endpoint}")
        return self

    def resolve_node(self, name: str | None) -> str | None:
        if not name:
            return None
        key = _norm_key(name)
        return next((n for n in self.nodes if _norm_key(n) == key), None)

    def neighbours(self, node: str | None) -> list[str]:
        if not node:
            return []
        key = _norm_key(node)
        out: list[str] = []
        for e in self.edges:
            if _norm_key(e.from_node) == key:
                to = self.resolve_node(e.to_node)
                if to is not None and to not in out:
                    out.append(to)
        return out

    def is_adjacent(self, a: str | None, b: str | None) -> bool:
        target = self.resolve_node(b)
        return target is not None and target in self.neighbours(a)

    def edge_points(self, a: str, b: str) -> int | None:
        ka, kb = _norm_key(a), _norm_key(b)
        for e in self.edges:
            if _norm_key(e.from_node) == ka and _norm_key(e.to_node) == kb:
                return e.points
        for e in self.edges:
            if _norm_key(e.from_node) == kb and _norm_key(e.to_node) == ka:
                return e.points
        return None


class GameState(BaseModel):
    game_id: UUID
    created_at: datetime
    last_updated_at: datetime
    # Bumped on every committed write.
    version: int = 0

    # Fixed circular runner rotation.
    player_order: list[str]
    current_runner_id: str

    phase: GamePhase = GamePhase.intermission

    runner_node: str | None = None
    # Shared cursor for the whole seeker party.
    seeker_node: str | None = None

    cards_in_hand: list[Card] = Field(default_factory=list)
    discard_pile: list[DiscardedCard] = Field(default_factory=list)
    active_effects: list[Effect] = Field(default_factory=list)

    # Nodes the Runner has scored this run, in order, without duplicates.
    game_log: list[str] = Field(default_factory=list)
    runner_points: int = Field(0, ge=0)

    positioning_start_time: datetime | None = None
    run_start_time: datetime | None = None

    def is_runner(self, player_id: str) -> bool:
        return player_id == self.current_runner_id

    def is_member(self, player_id: str) -> bool:
        return player_id in self.player_order

    def next_runner_id(self) -> str:
        idx = self.player_order.index(self.current_runner_id)
        return self.player_order[(idx + 1) % len(self.player_order)]


class GameView(BaseModel):
    """GameState plus values derived from its timestamps at read time."""

    state: GameState
    positioning_remaining_seconds: int | None = None
    run_elapsed_seconds: int | None = None


class GameCreateRequest(BaseModel):
    player_order: list[str] = Field(..., min_length=2)
    map: GameMap
    card_pool: list[CardDefinition] = Field(default_factory=list)
    start_node: str | None = None


class MoveRequest(BaseModel):
    node: str


class PlayCardRequest(BaseModel):
    card_id: str
    target: str | None = None
    node: str | None = None
    node2: str | None = None


class ClearRoadblockRequest(BaseModel):
    node: str


class ClearCurseRequest(BaseModel):
    curse_id: str


class ClearChallengeRequest(BaseModel):
    challenge_id: str


class DiscardRequest(BaseModel):
    card_ids: list[str]


class PendingActionsResponse(BaseModel):
    pending_actions: list[PendingAction]


class GameListResponse(BaseModel):
    games: list[GameState]
