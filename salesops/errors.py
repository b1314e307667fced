"""Error taxonomy shared by the automation engine and the confirmation scheduler."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class ErrorKind(str, enum.Enum):
    """Where a failure originated."""
    CONFIGURATION = "configuration"  # malformed rule, condition or step config
    COLLABORATOR = "collaborator"  # store / provider / webhook unavailable
    INPUT = "input"  # required payload fields missing


class SalesOpsError(Exception):
    """Base class for errors raised by this package."""

    kind: ErrorKind = ErrorKind.INPUT


class ConfigurationError(SalesOpsError):
    kind = ErrorKind.CONFIGURATION


class CollaboratorError(SalesOpsError):
    kind = ErrorKind.COLLABORATOR


class InputError(SalesOpsError):
    kind = ErrorKind.INPUT


class ConfirmationConflictError(SalesOpsError):
    """An attempt was recorded against a task that is already Done."""

    def __init__(self, task_id: Optional[str], required: int):
        self.task_id = task_id
        self.required = required
        super().__init__(
            f"Confirmation task {task_id or '<unsaved>'} already has {required}/{required} confirmations"
        )


class ScheduleEditError(SalesOpsError):
    """A confirmation schedule edit would leave the schedule invalid."""


@dataclass(frozen=True)
class Result(Generic[T]):
    """Outcome of one internal step: either a value or a classified error."""

    value: Optional[T] = None
    error_kind: Optional[ErrorKind] = None
    message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error_kind is None

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, kind: ErrorKind, message: str) -> "Result[T]":
        return cls(error_kind=kind, message=message)

    @classmethod
    def from_exception(cls, exc: Exception, default: ErrorKind = ErrorKind.COLLABORATOR) -> "Result[T]":
        kind = exc.kind if isinstance(exc, SalesOpsError) else default
        return cls(error_kind=kind, message=str(exc) or exc.__class__.__name__)
