"""Exception types raised by the lending registry."""

from typing import Optional


class LendingError(Exception):
    """Base exception for lending registry errors."""


class InvalidOperation(LendingError, ValueError):
    """A precondition failed because of caller input or entity state.

    Raised before any entity is mutated, so the caller may recover.
    """

    def __init__(self, message: str, operation: Optional[str] = None):
        super().__init__(message)
        self.operation = operation


class InvariantBroken(LendingError, RuntimeError):
    """An entity invariant does not hold after a mutation.

    Signals an internal defect in the coordination between items,
    borrowers and loan records. Never retried.
    """
