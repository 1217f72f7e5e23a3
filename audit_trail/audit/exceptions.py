"""Audit-layer exceptions. Typed, no HTTP."""


class AuditError(Exception):
    """Base for all audit-layer errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class AuditStoreError(AuditError):
    """Raised by the record store when persistence or retrieval fails."""


class AuditRecordValidationError(AuditError):
    """Raised when a record is missing required fields (actor, ip address, user agent) or exceeds bounds."""


class ImmutableRecordError(AuditError):
    """Raised when something attempts to modify a persisted audit record."""
