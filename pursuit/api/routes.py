from __future__ import annotations

from typing import Any
from uuid import UUID

import redis
from fastapi import APIRouter, Depends, HTTPException, status

from pursuit.actions import ACTION_NAMES, ActionName, dispatch_action, get_game_view, get_pending_actions
from pursuit.api.deps import get_redis
from pursuit.api.models import (
    Challenge,
    ClearChallengeRequest,
    ClearCurseRequest,
    ClearRoadblockRequest,
    Curse,
    DiscardRequest,
    GameCreateRequest,
    GameListResponse,
    GameState,
    GameView,
    MoveRequest,
    PendingActionsResponse,
    PlayCardRequest,
    Roadblock,
)
from pursuit.errors import ErrorKind, GameError
from pursuit.game_store import create_game, list_challenges, list_curses, list_games, list_roadblocks, require_game

router = APIRouter()


_STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.auth: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.role: status.HTTP_403_FORBIDDEN,
    ErrorKind.phase: status.HTTP_409_CONFLICT,
    ErrorKind.timing: status.HTTP_409_CONFLICT,
    ErrorKind.validation: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorKind.not_found: status.HTTP_404_NOT_FOUND,
    ErrorKind.precondition: status.HTTP_409_CONFLICT,
    ErrorKind.persistence: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def status_for(exc: GameError) -> int:
    return _STATUS_BY_KIND.get(exc.kind, status.HTTP_422_UNPROCESSABLE_ENTITY)


def _act(r: redis.Redis, game_id: UUID, player_id: str, action: ActionName, payload: dict[str, Any]) -> GameState:
    return dispatch_action(r=r, game_id=game_id, player_id=player_id, action=action, payload=payload).state


@router.get("/healthcheck")
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.post("/game", response_model=GameState, status_code=status.HTTP_201_CREATED)
def create_game_route(payload: GameCreateRequest, r: redis.Redis = Depends(get_redis)) -> GameState:
    return create_game(
        r=r,
        player_order=payload.player_order,
        game_map=payload.map,
        card_pool=payload.card_pool,
        start_node=payload.start_node,
    )


@router.get("/game", response_model=GameListResponse)
def list_games_route(r: redis.Redis = Depends(get_redis)) -> GameListResponse:
    return GameListResponse(games=list_games(r=r))


@router.get("/game/{game_id}", response_model=GameView)
def get_game_route(game_id: UUID, r: redis.Redis = Depends(get_redis)) -> GameView:
    return get_game_view(r=r, game_id=game_id)


@router.get("/game/{game_id}/roadblocks", response_model=list[Roadblock])
def roadblocks_route(game_id: UUID, viewer: str | None = None, r: redis.Redis = Depends(get_redis)) -> list[Roadblock]:
    require_game(r=r, game_id=game_id)
    return list_roadblocks(r=r, game_id=game_id, viewer_id=viewer)


@router.get("/game/{game_id}/curses", response_model=list[Curse])
def curses_route(game_id: UUID, r: redis.Redis = Depends(get_redis)) -> list[Curse]:
    require_game(r=r, game_id=game_id)
    return list_curses(r=r, game_id=game_id)


@router.get("/game/{game_id}/challenges", response_model=list[Challenge])
def challenges_route(game_id: UUID, r: redis.Redis = Depends(get_redis)) -> list[Challenge]:
    require_game(r=r, game_id=game_id)
    return list_challenges(r=r, game_id=game_id)


@router.get("/game/{game_id}/player/{player_id}/pending", response_model=PendingActionsResponse)
def pending_route(game_id: UUID, player_id: str, r: redis.Redis = Depends(get_redis)) -> PendingActionsResponse:
    return PendingActionsResponse(pending_actions=get_pending_actions(r=r, game_id=game_id, player_id=player_id))


@router.post("/game/{game_id}/player/{player_id}/start_positioning", response_model=GameState)
def start_positioning_route(game_id: UUID, player_id: str, r: redis.Redis = Depends(get_redis)) -> GameState:
    return _act(r, game_id, player_id, "start_positioning", {})


@router.post("/game/{game_id}/player/{player_id}/start_run", response_model=GameState)
def start_run_route(game_id: UUID, player_id: str, r: redis.Redis = Depends(get_redis)) -> GameState:
    return _act(r, game_id, player_id, "start_run", {})


@router.post("/game/{game_id}/player/{player_id}/end_run", response_model=GameState)
def end_run_route(game_id: UUID, player_id: str, r: redis.Redis = Depends(get_redis)) -> GameState:
    return _act(r, game_id, player_id, "end_run", {})


@router.post("/game/{game_id}/player/{player_id}/move", response_model=GameState)
def move_route(
    game_id: UUID,
    player_id: str,
    payload: MoveRequest,
    r: redis.Redis = Depends(get_redis),
) -> GameState:
    return _act(r, game_id, player_id, "move", payload.model_dump())


@router.post("/game/{game_id}/player/{player_id}/play_card", response_model=GameState)
def play_card_route(
    game_id: UUID,
    player_id: str,
    payload: PlayCardRequest,
    r: redis.Redis = Depends(get_redis),
) -> GameState:
    return _act(r, game_id, player_id, "play_card", payload.model_dump())


@router.post("/game/{game_id}/player/{player_id}/clear_roadblock", response_model=GameState)
def clear_roadblock_route(
    game_id: UUID,
    player_id: str,
    payload: ClearRoadblockRequest,
    r: redis.Redis = Depends(get_redis),
) -> GameState:
    return _act(r, game_id, player_id, "clear_roadblock", payload.model_dump())


@router.post("/game/{game_id}/player/{player_id}/clear_curse", response_model=GameState)
def clear_curse_route(
    game_id: UUID,
    player_id: str,
    payload: ClearCurseRequest,
    r: redis.Redis = Depends(get_redis),
) -> GameState:
    return _act(r, game_id, player_id, "clear_curse", payload.model_dump())


@router.post("/game/{game_id}/player/{player_id}/clear_challenge", response_model=GameState)
def clear_challenge_route(
    game_id: UUID,
    player_id: str,
    payload: ClearChallengeRequest,
    r: redis.Redis = Depends(get_redis),
) -> GameState:
    return _act(r, game_id, player_id, "clear_challenge", payload.model_dump())


@router.post("/game/{game_id}/player/{player_id}/discard", response_model=GameState)
def discard_route(
    game_id: UUID,
    player_id: str,
    payload: DiscardRequest,
    r: redis.Redis = Depends(get_redis),
) -> GameState:
    return _act(r, game_id, player_id, "discard", payload.model_dump())


@router.post("/games/{game_id}/actions/{action}", response_model=GameState)
def generic_action_route(
    game_id: UUID,
    action: str,
    body: dict[str, Any],
    r: redis.Redis = Depends(get_redis),
) -> GameState:
    if action not in ACTION_NAMES:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Unknown action: {action}")
    act: ActionName = action  # type: ignore[assignment]
    return _act(r, game_id, str(body.get("player_id") or ""), act, body)
