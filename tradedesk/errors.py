from __future__ import annotations

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    NOT_FOUND = "NotFound"
    VALIDATION_FAILED = "ValidationFailed"
    PRECONDITION_FAILED = "PreconditionFailed"
    EXTERNAL_CALL_FAILED = "ExternalCallFailed"


class TradeError(ValueError):
    """
    Base error for every rejected command.

    Subclasses ValueError so pages can keep a single `except Exception` around
    a command and show `str(e)` inline.
    """

    kind: ErrorKind = ErrorKind.VALIDATION_FAILED

    def __init__(self, message: str, *, kind: Optional[ErrorKind] = None):
        super().__init__(message)
        if kind is not None:
            self.kind = kind


class NotFoundError(TradeError):
    kind = ErrorKind.NOT_FOUND


class ValidationError(TradeError):
    kind = ErrorKind.VALIDATION_FAILED


class DomainError(ValidationError):
    pass


class PreconditionError(TradeError):
    kind = ErrorKind.PRECONDITION_FAILED


class IllegalTransitionError(PreconditionError):
    def __init__(self, entity: str, current: str, target: str):
        super().__init__(f"{entity} cannot move from {current} to {target}.")
        self.entity = entity
        self.current = current
        self.target = target


class ExternalCallError(TradeError):
    kind = ErrorKind.EXTERNAL_CALL_FAILED
