from __future__ import annotations

import random
from datetime import timedelta

import pytest

from pursuit.api.models import CardType, DiscardReason, EffectType, UtilityKind
from pursuit.errors import NotFoundError, PhaseError, PreconditionError, RoleError, ValidationError
from pursuit.game_store import list_challenges, list_curses, list_roadblocks, require_game
from pursuit.rules.cards import UTILITY_HANDLERS, draw, instantiate

from conftest import act, give_cards, make_pool, start_running, utility


@pytest.fixture()
def positioned(r, game_id):
    act(r, game_id, "bob", "start_positioning")
    return game_id


def _hand(r, game_id) -> list[str]:
    return [c.id for c in require_game(r=r, game_id=game_id).cards_in_hand]


def test_instances_get_unique_ids() -> None:
    d = make_pool()[0]
    a, b = instantiate(d), instantiate(d)
    assert a.id != b.id
    assert a.definition_id == b.definition_id == "rb"


def test_draw_from_an_empty_pool_returns_none(session) -> None:
    session.card_pool = []
    assert draw(session) is None


def test_every_utility_kind_has_a_handler() -> None:
    assert set(UTILITY_HANDLERS) == set(UtilityKind)


@pytest.mark.parametrize("index", [0, 1, 2])
def test_playing_moves_exactly_one_card_to_discard(r, positioned, index: int) -> None:
    game_id = positioned
    (card_id,) = give_cards(r, game_id, make_pool()[index])
    before = require_game(r=r, game_id=game_id)

    res = act(r, game_id, "bob", "play_card", card_id=card_id, node="A" if index == 1 else None)

    assert card_id not in [c.id for c in res.state.cards_in_hand]
    assert len(res.state.cards_in_hand) == len(before.cards_in_hand) - 1
    assert len(res.state.discard_pile) == len(before.discard_pile) + 1
    played = res.state.discard_pile[-1]
    assert played.id == card_id
    assert played.reason == DiscardReason.played
    assert played.used_by == "bob"


def test_roadblock_card_places_a_roadblock(r, positioned) -> None:
    (card_id,) = give_cards(r, positioned, make_pool()[0])
    act(r, positioned, "bob", "play_card", card_id=card_id)

    (rb,) = list_roadblocks(r=r, game_id=positioned)
    assert rb.node_name == "Start"
    assert rb.placed_by == "bob"
    assert rb.description == "Roadblock card"
    assert rb.expires_at is None


def test_roadblock_ttl_comes_from_settings(r, positioned, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PURSUIT_ROADBLOCK_TTL_SECONDS", "600")
    (card_id,) = give_cards(r, positioned, make_pool()[0])
    act(r, positioned, "bob", "play_card", card_id=card_id)

    (rb,) = list_roadblocks(r=r, game_id=positioned)
    assert rb.expires_at - rb.created_at == timedelta(minutes=10)


def test_curse_card_curses_the_chosen_path(r, positioned) -> None:
    (card_id,) = give_cards(r, positioned, make_pool()[1])
    act(r, positioned, "bob", "play_card", card_id=card_id, node="A")

    (curse,) = list_curses(r=r, game_id=positioned)
    assert (curse.start_node, curse.end_node) == ("Start", "A")


def test_failed_curse_leaves_the_card_in_hand(r, positioned) -> None:
    (card_id,) = give_cards(r, positioned, make_pool()[1])
    before = require_game(r=r, game_id=positioned)

    with pytest.raises(ValidationError):
        act(r, positioned, "bob", "play_card", card_id=card_id)
    with pytest.raises(ValidationError):
        act(r, positioned, "bob", "play_card", card_id=card_id, node="C")

    after = require_game(r=r, game_id=positioned)
    assert card_id in [c.id for c in after.cards_in_hand]
    assert after.discard_pile == before.discard_pile
    assert after.version == before.version
    assert list_curses(r=r, game_id=positioned) == []


def test_battle_card_reveals_runner_and_places_challenge(r, positioned) -> None:
    (card_id,) = give_cards(r, positioned, make_pool()[2])
    res = act(r, positioned, "bob", "play_card", card_id=card_id)

    (effect,) = res.state.active_effects
    assert effect.type == EffectType.location_revealed
    assert effect.card_id == card_id
    assert effect.expires_at is not None
    (challenge,) = list_challenges(r=r, game_id=positioned)
    assert challenge.node_name == "Start"


def test_runner_cannot_play_cards(r, game_id) -> None:
    start_running(r, game_id)
    (card_id,) = give_cards(r, game_id, make_pool()[0])
    with pytest.raises(RoleError):
        act(r, game_id, "alice", "play_card", card_id=card_id)


def test_no_cards_in_intermission(r, game_id) -> None:
    (card_id,) = give_cards(r, game_id, make_pool()[0])
    with pytest.raises(PhaseError):
        act(r, game_id, "bob", "play_card", card_id=card_id)


def test_unknown_card_is_not_found(r, positioned) -> None:
    with pytest.raises(NotFoundError) as e:
        act(r, positioned, "bob", "play_card", card_id="nope")
    assert e.value.message == "Card not found in your hand"


def test_faithless_looting_draws_then_forces_a_discard(r, positioned) -> None:
    (card_id,) = give_cards(r, positioned, utility("Faithless Looting"))
    before = _hand(r, positioned)

    res = act(r, positioned, "bob", "play_card", card_id=card_id)

    assert len(res.state.cards_in_hand) == len(before) - 1 + 2
    pending = _pending(r, positioned, "carol")
    assert [(p.type, p.required) for p in pending] == [(EffectType.discard_two, True)]

    keep, *rest = _hand(r, positioned)
    res = act(r, positioned, "carol", "discard", card_ids=rest[:2])

    assert [c.id for c in res.state.cards_in_hand] == [keep] + rest[2:]
    assert [d.reason for d in res.state.discard_pile[-2:]] == [DiscardReason.discarded] * 2
    assert not any(e.type == EffectType.discard_two for e in res.state.active_effects)


def _pending(r, game_id, player_id):
    from pursuit.actions import get_pending_actions

    return get_pending_actions(r=r, game_id=game_id, player_id=player_id)


def test_discard_without_effect_is_a_precondition_error(r, positioned) -> None:
    with pytest.raises(PreconditionError):
        act(r, positioned, "bob", "discard", card_ids=_hand(r, positioned))


@pytest.mark.parametrize("pick", ["one", "dupe", "missing"])
def test_discard_validates_its_card_ids(r, positioned, pick: str) -> None:
    (card_id,) = give_cards(r, positioned, utility("Faithless Looting"))
    act(r, positioned, "bob", "play_card", card_id=card_id)
    hand = _hand(r, positioned)
    card_ids = {"one": hand[:1], "dupe": [hand[0], hand[0]], "missing": [hand[0], "nope"]}[pick]

    with pytest.raises(ValidationError):
        act(r, positioned, "bob", "discard", card_ids=card_ids)
    assert _hand(r, positioned) == hand


def test_misdirection_see_double_yarus_and_charbelcher_push_effects(r, positioned) -> None:
    names = ["Misdirection", "See Double", "Yarus, Roar of the Old Gods", "Goblin Charbelcher"]
    ids = give_cards(r, positioned, *(utility(n) for n in names))
    for card_id in ids:
        res = act(r, positioned, "bob", "play_card", card_id=card_id)

    assert [e.type for e in res.state.active_effects] == [
        EffectType.misdirection,
        EffectType.see_double,
        EffectType.hidden_roadblock,
        EffectType.global_placement,
    ]
    assert all(not p.required for p in _pending(r, positioned, "bob"))


def test_wheel_of_fortune_replaces_the_hand(r, positioned) -> None:
    (card_id,) = give_cards(r, positioned, utility("Wheel of Fortune"))
    old = set(_hand(r, positioned))

    res = act(r, positioned, "bob", "play_card", card_id=card_id)

    new = [c.id for c in res.state.cards_in_hand]
    assert len(new) == 3
    assert not old & set(new)
    assert {c.type for c in res.state.cards_in_hand} <= {CardType.roadblock, CardType.curse, CardType.battle}
    # Only the Wheel itself is recorded as discarded.
    assert [d.id for d in res.state.discard_pile] == [card_id]


def test_gamble_tutors_the_named_card_and_loses_a_random_one(r, positioned) -> None:
    from pursuit.actions import dispatch_action

    (card_id,) = give_cards(r, positioned, utility("Gamble"))
    before = _hand(r, positioned)

    res = dispatch_action(
        r=r,
        game_id=positioned,
        player_id="bob",
        action="play_card",
        payload={"card_id": card_id, "target": "Hex"},
        rng=random.Random(3),
    )

    hand = res.state.cards_in_hand
    assert len(hand) == len(before) - 1
    assert hand[-1].definition_id == "cu"
    assert hand[-1].id not in before
    assert len(set(before) - {card_id} - {c.id for c in hand}) == 1


def test_gamble_with_unknown_target_fails_cleanly(r, positioned) -> None:
    (card_id,) = give_cards(r, positioned, utility("Gamble"))
    before = _hand(r, positioned)

    with pytest.raises(ValidationError):
        act(r, positioned, "bob", "play_card", card_id=card_id, target="Black Lotus")
    assert _hand(r, positioned) == before


def test_unlisted_utility_draws_two(r, positioned) -> None:
    (card_id,) = give_cards(r, positioned, utility("Brainstorm"))
    before = _hand(r, positioned)

    res = act(r, positioned, "bob", "play_card", card_id=card_id)

    assert len(res.state.cards_in_hand) == len(before) + 1
    assert res.state.active_effects == []


def test_gamble_with_an_otherwise_empty_hand_does_nothing(r, positioned) -> None:
    from pursuit.game_store import save_game

    state = require_game(r=r, game_id=positioned)
    state.cards_in_hand = []
    save_game(r=r, state=state)
    (card_id,) = give_cards(r, positioned, utility("Gamble"))

    res = act(r, positioned, "bob", "play_card", card_id=card_id, target="Hex")

    assert res.state.cards_in_hand == []
    assert [d.id for d in res.state.discard_pile] == [card_id]


def test_utility_resolution_rejects_other_card_types(session) -> None:
    from pursuit.rules.cards import PlayContext, _play_utility

    ctx = PlayContext(
        session=session,
        card=instantiate(make_pool()[0]),
        actor_id="bob",
        target=None,
        node=None,
        node2=None,
        rng=None,
    )
    with pytest.raises(ValidationError):
        _play_utility(ctx)
