from __future__ import annotations

from enum import StrEnum


class ErrorKind(StrEnum):
    auth = "AuthError"
    role = "RoleError"
    phase = "PhaseError"
    timing = "TimingError"
    validation = "ValidationError"
    not_found = "NotFoundError"
    precondition = "PreconditionError"
    persistence = "PersistenceError"


class GameError(Exception):
    """Base class for every rejection raised by the rules engine.

    `kind` is the stable machine-readable category returned to callers;
    the exception message is the human-readable explanation.
    """

    kind: ErrorKind = ErrorKind.validation

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict[str, str]:
        return {"error": self.kind.value, "message": self.message}


class AuthError(GameError):
    kind = ErrorKind.auth


class RoleError(GameError):
    kind = ErrorKind.role


class PhaseError(GameError):
    kind = ErrorKind.phase


class TimingError(GameError):
    kind = ErrorKind.timing

    def __init__(self, message: str, *, remaining_seconds: int) -> None:
        self.remaining_seconds = remaining_seconds
        super().__init__(message)


class ValidationError(GameError):
    kind = ErrorKind.validation


class NotFoundError(GameError):
    kind = ErrorKind.not_found


class PreconditionError(GameError):
    kind = ErrorKind.precondition


class PersistenceError(GameError):
    kind = ErrorKind.persistence


class GameBusyError(PersistenceError):
    """The per-game lock could not be acquired within the wait budget."""
