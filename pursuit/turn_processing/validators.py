from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Literal

from pursuit.api.models import GamePhase, GameState
from pursuit.errors import PhaseError, RoleError
from pursuit.game_store import require_member


Side = Literal["runner", "seeker"]


@dataclass(frozen=True, slots=True)
class ValidationContext:
    """Inputs available to validators.

    Keep this tight and serializable-ish so we can safely log it.
    """

    game_id: str
    player_id: str
    action: str


class TurnValidator(ABC):
    """A small, composable validation unit for an incoming action."""

    @abstractmethod
    def validate(self, *, ctx: ValidationContext, state: GameState) -> None:
        raise NotImplementedError


@dataclass(frozen=True, slots=True)
class MembershipValidator(TurnValidator):
    """The actor must be authenticated and seated in this game."""

    def validate(self, *, ctx: ValidationContext, state: GameState) -> None:
        require_member(state=state, player_id=ctx.player_id)


@dataclass(frozen=True, slots=True)
class PhaseValidator(TurnValidator):
    """Validates current game phase for a given action."""

    allowed_phases: frozenset[GamePhase]
    message: str | None = None

    def validate(self, *, ctx: ValidationContext, state: GameState) -> None:
        if state.phase not in self.allowed_phases:
            if self.message:
                raise PhaseError(self.message)
            allowed = ",".join(sorted(p.value for p in self.allowed_phases))
            raise PhaseError(f"Action '{ctx.action}' not allowed in phase '{state.phase.value}' (allowed: {allowed})")


@dataclass(frozen=True, slots=True)
class SideValidator(TurnValidator):
    """Validate that the actor is on the side (Runner or Seeker) the action needs."""

    side: Side
    message: str | None = None

    def validate(self, *, ctx: ValidationContext, state: GameState) -> None:
        actual: Side = "runner" if state.is_runner(ctx.player_id) else "seeker"
        if actual != self.side:
            raise RoleError(self.message or f"Action '{ctx.action}' not allowed for the {actual}")


@dataclass(frozen=True, slots=True)
class ValidatorPipeline:
    validators: tuple[TurnValidator, ...]

    def validate(self, *, ctx: ValidationContext, state: GameState) -> None:
        for v in self.validators:
            v.validate(ctx=ctx, state=state)


_ALL_PHASES = frozenset(GamePhase)
_ACTIVE_PHASES = frozenset({GamePhase.positioning, GamePhase.running})


# Membership first, then phase, then side. Preconditions that need the map or
# the hand (adjacency, card lookup, pending effects) live with the rules.
DEFAULT_ACTION_PIPELINES: dict[str, ValidatorPipeline] = {
    "start_positioning": ValidatorPipeline(
        validators=(
            MembershipValidator(),
            PhaseValidator(
                allowed_phases=frozenset({GamePhase.intermission}),
                message="Positioning can only be started from the intermission",
            ),
            SideValidator(side="seeker", message="Only seekers can start the positioning phase"),
        )
    ),
    "start_run": ValidatorPipeline(
        validators=(
            MembershipValidator(),
            PhaseValidator(
                allowed_phases=frozenset({GamePhase.positioning}),
                message="Run can only be started from the positioning phase",
            ),
            SideValidator(side="runner", message="Only the current runner can start the run"),
        )
    ),
    "end_run": ValidatorPipeline(
        validators=(
            MembershipValidator(),
            PhaseValidator(
                allowed_phases=frozenset({GamePhase.running}),
                message="Run can only be ended during the running phase",
            ),
            SideValidator(side="runner", message="You are not the current runner"),
        )
    ),
    "runner_move": ValidatorPipeline(
        validators=(
            MembershipValidator(),
            PhaseValidator(
                allowed_phases=frozenset({GamePhase.running}),
                message="Runner can only move during the running phase",
            ),
        )
    ),
    "seeker_move": ValidatorPipeline(
        validators=(
            MembershipValidator(),
            PhaseValidator(allowed_phases=_ACTIVE_PHASES, message="Invalid game phase for movement"),
        )
    ),
    "play_card": ValidatorPipeline(
        validators=(
            MembershipValidator(),
            PhaseValidator(allowed_phases=_ACTIVE_PHASES, message="Cards cannot be played during the intermission"),
            SideValidator(side="seeker", message="Only seekers can play cards"),
        )
    ),
    "clear_roadblock": ValidatorPipeline(
        validators=(
            MembershipValidator(),
            PhaseValidator(
                allowed_phases=_ACTIVE_PHASES,
                message="Roadblocks cannot be cleared during the intermission",
            ),
            SideValidator(side="runner", message="Only the current runner can clear roadblocks"),
        )
    ),
    "clear_curse": ValidatorPipeline(
        validators=(
            MembershipValidator(),
            PhaseValidator(allowed_phases=_ACTIVE_PHASES, message="Curses cannot be cleared during the intermission"),
            SideValidator(side="runner", message="Only the current runner can clear curses"),
        )
    ),
    "clear_challenge": ValidatorPipeline(
        validators=(
            MembershipValidator(),
            PhaseValidator(
                allowed_phases=_ACTIVE_PHASES,
                message="Challenges cannot be cleared during the intermission",
            ),
            SideValidator(side="runner", message="Only the current runner can clear challenges"),
        )
    ),
    "discard": ValidatorPipeline(
        validators=(
            MembershipValidator(),
            PhaseValidator(allowed_phases=_ALL_PHASES),
            SideValidator(side="seeker", message="Only seekers hold cards"),
        )
    ),
    "pending": ValidatorPipeline(validators=(MembershipValidator(),)),
}


def pipeline_for_action(action: str) -> ValidatorPipeline:
    pipe = DEFAULT_ACTION_PIPELINES.get(action)
    if pipe is None:
        raise ValueError(f"Unknown action: {action}")
    return pipe


def validate_action(*, state: GameState, player_id: str, action: str) -> None:
    ctx = ValidationContext(game_id=str(state.game_id), player_id=player_id, action=action)
    pipeline_for_action(action).validate(ctx=ctx, state=state)
