"""Error taxonomy for the reconciliation engine."""

from typing import Any, Iterable, Optional


class ReconciliationError(Exception):
    """Base class for all reconciliation engine errors."""


class ValidationError(ReconciliationError):
    """Input rejected before any mutation was applied."""


class AmountMismatchError(ValidationError):
    """Partial amounts do not add up to the amount they replace."""

    def __init__(self, message: str, expected_cents: int, actual_cents: int):
        super().__init__(message)
        self.expected_cents = expected_cents
        self.actual_cents = actual_cents

    @property
    def difference_cents(self) -> int:
        return self.expected_cents - self.actual_cents


class InvalidStateError(ReconciliationError):
    """Operation not permitted in the current state."""


class NotFoundError(ReconciliationError):
    """Operation referenced an id that is not in the collection."""

    def __init__(self, message: str, ids: Optional[Iterable[str]] = None):
        super().__init__(message)
        self.ids = list(ids or [])


class CollaboratorUnavailableError(ReconciliationError):
    """
    The AI matching collaborator failed or could not be reached.

    Distinct from an empty suggestion list, which means the collaborator
    answered and found nothing.
    """

    def __init__(self, message: str, details: Any = None):
        super().__init__(message)
        self.details = details
