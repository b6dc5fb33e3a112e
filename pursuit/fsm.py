from __future__ import annotations

from statemachine import State, StateMachine
from statemachine.exceptions import TransitionNotAllowed

from pursuit.api.models import GamePhase, GameState
from pursuit.errors import PhaseError


class PhaseMachine(StateMachine):
    """FSM wrapper around GameState.phase.

    The cycle is strictly linear: intermission -> positioning -> running -> intermission.
    Rule modules perform the state changes; the FSM only guards transitions.
    """

    intermission = State(GamePhase.intermission.value, value=GamePhase.intermission.value, initial=True)
    positioning = State(GamePhase.positioning.value, value=GamePhase.positioning.value)
    running = State(GamePhase.running.value, value=GamePhase.running.value)

    start_positioning = intermission.to(positioning)
    start_run = positioning.to(running)
    end_run = running.to(intermission)

    def __init__(self, game: GameState):
        self.game = game
        super().__init__(start_value=game.phase.value)

    def sync_phase_to_model(self) -> None:
        self.game.phase = GamePhase(str(self.current_state.value))


def advance_phase(game: GameState, event: str, *, message: str) -> None:
    """Fire `event` on the phase machine and write the new phase back to `game`.

    Raises PhaseError (with `message`) if the event is not legal from the current phase.
    """

    fsm = PhaseMachine(game)
    try:
        fsm.send(event)
    except TransitionNotAllowed as e:
        raise PhaseError(message) from e
    fsm.sync_phase_to_model()
