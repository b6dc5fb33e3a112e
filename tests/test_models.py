from __future__ import annotations

import pytest
from pydantic import ValidationError

from pursuit.api.models import Curse, GameMap, MapEdge, UtilityKind, utility_kind_for

from conftest import make_map


def test_map_rejects_edges_to_unknown_nodes() -> None:
    with pytest.raises(ValidationError) as e:
        GameMap(name="bad", nodes=["A"], edges=[MapEdge(from_node="A", to_node="Z", points=1)])
    assert "unknown node" in str(e.value)


def test_map_rejects_duplicate_nodes() -> None:
    with pytest.raises(ValidationError):
        GameMap(name="dup", nodes=["A", " a "], edges=[])


def test_map_accepts_from_to_aliases() -> None:
    m = GameMap.model_validate({"name": "m", "nodes": ["A", "B"], "edges": [{"from": "A", "to": "B", "points": 3}]})
    assert m.edges[0].from_node == "A"
    assert m.edge_points("A", "B") == 3


def test_node_lookup_is_forgiving() -> None:
    m = make_map()
    assert m.resolve_node("  start ") == "Start"
    assert m.resolve_node("nowhere") is None
    assert m.neighbours("a") == ["B", "D"]
    assert m.is_adjacent("A", "b")
    assert not m.is_adjacent("B", "D")


def test_edge_points_falls_back_to_reverse_edge() -> None:
    m = make_map()
    assert m.edge_points("A", "D") == 10
    assert m.edge_points("D", "A") == 10
    assert m.edge_points("C", "D") is None


def test_curse_matches_either_direction() -> None:
    from datetime import UTC, datetime
    from uuid import uuid4

    c = Curse(id="c1", game_id=uuid4(), start_node="A", end_node="B", created_at=datetime.now(tz=UTC))
    assert c.matches("A", "B")
    assert c.matches("B", "A")
    assert not c.matches("A", "C")


def test_utility_names_map_to_kinds() -> None:
    assert utility_kind_for("Faithless Looting") == UtilityKind.draw_then_discard_two
    assert utility_kind_for("wheel  of fortune") == UtilityKind.hand_refresh
    assert utility_kind_for("Yarus, Roar of the Old Gods") == UtilityKind.hidden_placement
    assert utility_kind_for("Goblin Charbelcher") == UtilityKind.global_placement
    assert utility_kind_for("Something Else") == UtilityKind.draw_two


def test_settings_read_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    from datetime import timedelta

    from pursuit.config import DEFAULT_REDIS_URL, get_settings

    assert get_settings().redis_url == DEFAULT_REDIS_URL
    assert get_settings().positioning_duration == timedelta(minutes=20)

    monkeypatch.setenv("REDIS_URL", "redis://cache:6380/2")
    monkeypatch.setenv("PURSUIT_REVEAL_SECONDS", "90")
    settings = get_settings()
    assert settings.redis_url == "redis://cache:6380/2"
    assert settings.reveal_window == timedelta(seconds=90)
