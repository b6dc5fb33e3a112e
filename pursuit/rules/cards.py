from __future__ import annotations

import logging
import random
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from pursuit.api.models import (
    Card,
    CardDefinition,
    CardType,
    DiscardedCard,
    DiscardReason,
    Effect,
    EffectType,
    PendingAction,
    UtilityKind,
)
from pursuit.config import get_settings
from pursuit.errors import NotFoundError, PreconditionError, ValidationError
from pursuit.game_store import GameSession, new_obstacle_id
from pursuit.rules.effects import EffectStack, pending_actions
from pursuit.rules.obstacles import place_challenge, place_curse, place_roadblock
from pursuit.turn_processing.validators import validate_action

logger = logging.getLogger(__name__)

_rng = random.SystemRandom()


def instantiate(definition: CardDefinition) -> Card:
    return Card(
        id=f"{definition.id}_{new_obstacle_id()}",
        definition_id=definition.id,
        name=definition.name,
        type=definition.type,
        description=definition.description,
    )


def draw(session: GameSession, *, rng: random.Random | None = None) -> Card | None:
    """Instantiate a uniformly random card from the game's pool.

    Returns None when the pool is empty. Does not touch the hand or effects.
    """

    if not session.card_pool:
        logger.warning("Card pool is empty for game %s", session.game_id)
        return None
    definition = (rng or _rng).choice(session.card_pool)
    return instantiate(definition)


def draw_into_hand(session: GameSession, n: int, *, rng: random.Random | None = None) -> list[Card]:
    drawn: list[Card] = []
    for _ in range(n):
        card = draw(session, rng=rng)
        if card is None:
            break
        drawn.append(card)
    session.state.cards_in_hand.extend(drawn)
    return drawn


def deal_hand(session: GameSession, n: int, *, rng: random.Random | None = None) -> list[Card]:
    """Replace the seeker hand with `n` fresh cards."""

    session.state.cards_in_hand = []
    return draw_into_hand(session, n, rng=rng)


@dataclass(frozen=True, slots=True)
class PlayContext:
    session: GameSession
    card: Card
    actor_id: str
    target: str | None
    node: str | None
    node2: str | None
    rng: random.Random | None

    @property
    def now(self) -> datetime:
        return self.session.now

    def push(self, effect_type: EffectType, description: str, *, expires_at: datetime | None = None) -> None:
        EffectStack(self.session.state).push(
            Effect(
                type=effect_type,
                description=description,
                card_id=self.card.id,
                player_id=self.actor_id,
                expires_at=expires_at,
            )
        )


def _play_battle(ctx: PlayContext) -> None:
    place_challenge(ctx.session, placed_by=ctx.actor_id, description=ctx.card.description or ctx.card.name)
    ctx.push(
        EffectType.location_revealed,
        "Runner location revealed",
        expires_at=ctx.now + get_settings().reveal_window,
    )


def _play_roadblock(ctx: PlayContext) -> None:
    place_roadblock(
        ctx.session,
        placed_by=ctx.actor_id,
        node=ctx.node,
        description=ctx.card.description or "Roadblock",
        ttl=get_settings().roadblock_ttl,
    )


def _play_curse(ctx: PlayContext) -> None:
    if not ctx.node:
        raise ValidationError("You must select an adjacent node to curse the path to")
    place_curse(
        ctx.session,
        placed_by=ctx.actor_id,
        node=ctx.node,
        node2=ctx.node2,
        description=ctx.card.description or "Curse",
    )


def _utility_draw_then_discard_two(ctx: PlayContext) -> None:
    draw_into_hand(ctx.session, 2, rng=ctx.rng)
    ctx.push(EffectType.discard_two, "Must discard two cards")


def _utility_misdirection(ctx: PlayContext) -> None:
    ctx.push(EffectType.misdirection, "Next roadblock can be placed on an adjacent node")


def _utility_see_double(ctx: PlayContext) -> None:
    ctx.push(EffectType.see_double, "Next curse can target two separate paths")


def _utility_hand_refresh(ctx: PlayContext) -> None:
    deal_hand(ctx.session, 3, rng=ctx.rng)


def _utility_hidden_placement(ctx: PlayContext) -> None:
    ctx.push(EffectType.hidden_roadblock, "Next roadblock placement is hidden from runner")


def _find_definition(pool: list[CardDefinition], wanted: str) -> CardDefinition | None:
    key = wanted.strip().casefold()
    return next((d for d in pool if d.id == wanted or d.name.casefold() == key), None)


def _utility_tutor_and_random_discard(ctx: PlayContext) -> None:
    """Take a chosen card from the pool, then lose a random card that was already in hand.

    The chosen definition is named by `target` (id or name); without a
    choice a random definition is taken. With nothing left in hand to lose,
    the card does nothing.
    """

    session = ctx.session
    if not session.card_pool:
        logger.warning("Card pool is empty for game %s", session.game_id)
        return
    hand = session.state.cards_in_hand
    if not hand:
        logger.info("Gamble played with an empty hand in game %s; no effect", session.game_id)
        return

    if ctx.target:
        definition = _find_definition(session.card_pool, ctx.target)
        if definition is None:
            raise ValidationError(f"Card not found in the deck: {ctx.target}")
    else:
        definition = (ctx.rng or _rng).choice(session.card_pool)

    lost = hand.pop((ctx.rng or _rng).randrange(len(hand)))
    logger.info("Random discard of %s in game %s", lost.name, session.game_id)
    hand.append(instantiate(definition))


def _utility_global_placement(ctx: PlayContext) -> None:
    ctx.push(EffectType.global_placement, "Next roadblock or curse can be placed anywhere on the map")


def _utility_draw_two(ctx: PlayContext) -> None:
    draw_into_hand(ctx.session, 2, rng=ctx.rng)


UTILITY_HANDLERS: dict[UtilityKind, Callable[[PlayContext], None]] = {
    UtilityKind.draw_then_discard_two: _utility_draw_then_discard_two,
    UtilityKind.misdirection: _utility_misdirection,
    UtilityKind.see_double: _utility_see_double,
    UtilityKind.hand_refresh: _utility_hand_refresh,
    UtilityKind.hidden_placement: _utility_hidden_placement,
    UtilityKind.tutor_and_random_discard: _utility_tutor_and_random_discard,
    UtilityKind.global_placement: _utility_global_placement,
    UtilityKind.draw_two: _utility_draw_two,
}


def _play_utility(ctx: PlayContext) -> None:
    kind = ctx.card.utility_kind
    if kind is None:
        raise ValidationError(f"{ctx.card.name} is not a utility card")
    logger.debug("Utility card %r resolved as %s", ctx.card.name, kind.value)
    UTILITY_HANDLERS[kind](ctx)


CARD_HANDLERS: dict[CardType, Callable[[PlayContext], None]] = {
    CardType.battle: _play_battle,
    CardType.roadblock: _play_roadblock,
    CardType.curse: _play_curse,
    CardType.utility: _play_utility,
}


def _take_from_hand(session: GameSession, card_id: str) -> Card:
    hand = session.state.cards_in_hand
    for idx, card in enumerate(hand):
        if card.id == card_id:
            return hand.pop(idx)
    raise NotFoundError("Card not found in your hand")


def play_card(
    session: GameSession,
    *,
    actor_id: str,
    card_id: str,
    target: str | None = None,
    node: str | None = None,
    node2: str | None = None,
    rng: random.Random | None = None,
) -> Card:
    """Play a card from the seeker hand.

    The card moves to the discard pile and its effect resolves. If the effect
    is rejected the whole call fails; the session is then discarded uncommitted,
    so the card is still in hand.
    """

    validate_action(state=session.state, player_id=actor_id, action="play_card")
    card = _take_from_hand(session, card_id)

    session.state.discard_pile.append(
        DiscardedCard(
            **card.model_dump(),
            reason=DiscardReason.played,
            used_by=actor_id,
            used_at=session.now,
            target=target,
            target_node=node,
            target_node2=node2,
        )
    )

    ctx = PlayContext(
        session=session,
        card=card,
        actor_id=actor_id,
        target=target,
        node=node,
        node2=node2,
        rng=rng,
    )
    CARD_HANDLERS[card.type](ctx)
    logger.info("Player %s played %s (%s) in game %s", actor_id, card.name, card.type.value, session.game_id)
    return card


def discard_cards(session: GameSession, *, actor_id: str, card_ids: list[str]) -> list[Card]:
    """Resolve a pending `discard_two` by discarding exactly two cards from hand."""

    state = session.state
    validate_action(state=state, player_id=actor_id, action="discard")

    effects = EffectStack(state)
    if not effects.has(EffectType.discard_two):
        raise PreconditionError("No discard effect active")
    if len(card_ids) != 2 or len(set(card_ids)) != 2:
        raise ValidationError("You must discard exactly 2 cards")

    hand_ids = {c.id for c in state.cards_in_hand}
    if any(cid not in hand_ids for cid in card_ids):
        raise ValidationError("One or more cards not found in your hand")

    discarded = [c for c in state.cards_in_hand if c.id in card_ids]
    state.cards_in_hand = [c for c in state.cards_in_hand if c.id not in card_ids]
    state.discard_pile.extend(
        DiscardedCard(**c.model_dump(), reason=DiscardReason.discarded, used_by=actor_id, used_at=session.now)
        for c in discarded
    )
    effects.consume(EffectType.discard_two)
    logger.info("Player %s discarded %d cards in game %s", actor_id, len(discarded), session.game_id)
    return discarded


def get_pending_actions(session: GameSession, *, actor_id: str) -> list[PendingAction]:
    validate_action(state=session.state, player_id=actor_id, action="pending")
    return pending_actions(session.state)
