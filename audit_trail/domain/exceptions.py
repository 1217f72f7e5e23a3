"""Domain-specific exceptions. Pure domain layer. No infrastructure."""

from typing import Dict, List, Optional


class DomainError(Exception):
    """Base for all domain-layer errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class DomainValidationError(DomainError):
    """Raised when input validation rules are violated. Carries itemized per-field errors."""

    def __init__(self, message: str, errors: Optional[List[Dict[str, str]]] = None) -> None:
        super().__init__(message)
        self.errors = errors or []


class InvalidStatusTransitionError(DomainError):
    """Raised when a tracked resource status transition is not allowed."""
