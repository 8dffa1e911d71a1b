"""
Error taxonomy shared by services, factories and the HTTP layer.
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional


@dataclass
class FieldError:
    """A single field-level validation failure."""
    field: str
    message: str

    def to_dict(self) -> Dict[str, str]:
        return {"field": self.field, "message": self.message}


class AlgoLabError(Exception):
    """Base class for every error raised by the service layer."""


class ValidationError(AlgoLabError):
    """Input failed validation. Carries every field error, not just the first."""

    def __init__(self, message: str, errors: Optional[Iterable[FieldError]] = None):
        super().__init__(message)
        self.message = message
        self.errors: List[FieldError] = list(errors or [])

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message": self.message,
            "validation_errors": [e.to_dict() for e in self.errors],
        }


class NotFoundError(AlgoLabError):
    """Unknown id or alias."""


class ConflictError(AlgoLabError):
    """The entity is not in a state that allows the operation."""


class AuthorizationError(AlgoLabError):
    """Mutation of an entity that does not exist or is not owned by the caller."""


class ConfigurationError(AlgoLabError):
    """A classifier or estimate could not be configured."""


class TransactionError(AlgoLabError):
    """Commit failed; the transaction was rolled back."""


class InvalidArgumentError(AlgoLabError, ValueError):
    """A factory was called with an unusable argument."""
