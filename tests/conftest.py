from __future__ import annotations

import os
from collections.abc import Generator
from datetime import timedelta
from pathlib import Path
from uuid import UUID

import fakeredis
import pytest
from fastapi.testclient import TestClient

from pursuit.api.models import CardDefinition, CardType, GameMap, MapEdge
from pursuit.game_store import create_game, load_session


@pytest.fixture(scope="session", autouse=True)
def _load_dotenv_for_tests() -> None:
    """Load repo .env for local runs (PyCharm/CLI).

    In CI, we *don't* auto-load `.env` so local overrides never leak into CI runs.
    Opt-in with: PURSUIT_LOAD_DOTENV_FOR_TESTS=1
    """

    if os.environ.get("CI") and os.environ.get("PURSUIT_LOAD_DOTENV_FOR_TESTS") != "1":
        return

    env_path = Path(__file__).resolve().parents[1] / ".env"
    if env_path.exists():
        from dotenv import load_dotenv

        load_dotenv(dotenv_path=env_path, override=False)


@pytest.fixture(autouse=True)
def _default_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    # Tests assume the stock timings regardless of the developer's environment.
    for name in (
        "PURSUIT_POSITIONING_SECONDS",
        "PURSUIT_REVEAL_SECONDS",
        "PURSUIT_ROADBLOCK_TTL_SECONDS",
        "PURSUIT_LOCK_TTL_MS",
        "PURSUIT_LOCK_WAIT_MS",
        "REDIS_URL",
    ):
        monkeypatch.delenv(name, raising=False)


PLAYERS = ["alice", "bob", "carol"]


def make_map() -> GameMap:
    """Small test map.

        Start -> A -> B -> C
                 A -> D
        D -> Start
    """

    return GameMap(
        name="test-map",
        nodes=["Start", "A", "B", "C", "D"],
        edges=[
            MapEdge(from_node="Start", to_node="A", points=5),
            MapEdge(from_node="A", to_node="B", points=15),
            MapEdge(from_node="B", to_node="C", points=20),
            MapEdge(from_node="A", to_node="D", points=10),
            MapEdge(from_node="D", to_node="Start", points=7),
            MapEdge(from_node="B", to_node="A", points=15),
        ],
    )


def make_pool() -> list[CardDefinition]:
    return [
        CardDefinition(id="rb", name="Spike Strip", type=CardType.roadblock, description="Roadblock card"),
        CardDefinition(id="cu", name="Hex", type=CardType.curse, description="Curse card"),
        CardDefinition(id="ba", name="Duel", type=CardType.battle, description="Battle card"),
    ]


@pytest.fixture()
def r() -> fakeredis.FakeRedis:
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture()
def game_id(r: fakeredis.FakeRedis) -> UUID:
    state = create_game(r=r, player_order=list(PLAYERS), game_map=make_map(), card_pool=make_pool())
    return state.game_id


@pytest.fixture()
def session(r: fakeredis.FakeRedis, game_id: UUID):
    return load_session(r=r, game_id=game_id)


def rewind_positioning(r: fakeredis.FakeRedis, game_id: UUID, *, minutes: int = 21) -> None:
    """Pretend positioning started `minutes` ago."""

    from pursuit.game_store import require_game, save_game

    state = require_game(r=r, game_id=game_id)
    assert state.positioning_start_time is not None
    state.positioning_start_time = state.positioning_start_time - timedelta(minutes=minutes)
    save_game(r=r, state=state)


@pytest.fixture()
def client_and_redis() -> Generator[tuple[TestClient, fakeredis.FakeRedis], None, None]:
    """FastAPI TestClient wired to a fakeredis instance."""

    from pursuit.api.deps import get_redis
    from pursuit.main import app

    fake = fakeredis.FakeRedis(decode_responses=True)

    def _override() -> Generator[fakeredis.FakeRedis, None, None]:
        yield fake

    app.dependency_overrides[get_redis] = _override
    with TestClient(app) as c:
        yield c, fake
    app.dependency_overrides.clear()


def act(r: fakeredis.FakeRedis, game_id: UUID, player_id: str, action: str, **payload):
    from pursuit.actions import dispatch_action

    return dispatch_action(r=r, game_id=game_id, player_id=player_id, action=action, payload=payload)  # type: ignore[arg-type]


def start_running(r: fakeredis.FakeRedis, game_id: UUID) -> None:
    """Drive a fresh game from intermission into the running phase (alice runs)."""

    act(r, game_id, "bob", "start_positioning")
    rewind_positioning(r, game_id)
    act(r, game_id, "alice", "start_run")


def give_cards(r: fakeredis.FakeRedis, game_id: UUID, *definitions: CardDefinition) -> list[str]:
    """Put fresh instances of `definitions` into the seeker hand; returns their ids."""

    from pursuit.game_store import require_game, save_game
    from pursuit.rules.cards import instantiate

    state = require_game(r=r, game_id=game_id)
    cards = [instantiate(d) for d in definitions]
    state.cards_in_hand.extend(cards)
    save_game(r=r, state=state)
    return [c.id for c in cards]


def utility(name: str) -> CardDefinition:
    return CardDefinition(id=name.casefold().replace(" ", "-"), name=name, type=CardType.utility, description=name)
