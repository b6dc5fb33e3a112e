from __future__ import annotations

from datetime import datetime

from pursuit.api.models import REQUIRED_EFFECTS, Effect, EffectType, GameState, PendingAction


class EffectStack:
    """Ordered queue view over `GameState.active_effects`.

    Effects are single use: `consume` removes the first entry of the given
    type and leaves everything else in place. Expiring informational effects
    are never purged here; readers compare `expires_at` with their own clock.
    """

    def __init__(self, state: GameState):
        self._state = state

    def __iter__(self):
        return iter(list(self._state.active_effects))

    def __len__(self) -> int:
        return len(self._state.active_effects)

    def push(self, effect: Effect) -> Effect:
        self._state.active_effects.append(effect)
        return effect

    def has(self, effect_type: EffectType) -> bool:
        return any(e.type == effect_type for e in self._state.active_effects)

    def peek(self, effect_type: EffectType) -> Effect | None:
        return next((e for e in self._state.active_effects if e.type == effect_type), None)

    def consume(self, effect_type: EffectType) -> Effect | None:
        for idx, e in enumerate(self._state.active_effects):
            if e.type == effect_type:
                return self._state.active_effects.pop(idx)
        return None

    def clear(self) -> None:
        self._state.active_effects = []

    def fresh(self, now: datetime) -> list[Effect]:
        return [e for e in self._state.active_effects if e.expires_at is None or e.expires_at > now]


def pending_actions(state: GameState) -> list[PendingAction]:
    return [
        PendingAction(type=e.type, description=e.description, required=e.type in REQUIRED_EFFECTS)
        for e in state.active_effects
    ]
