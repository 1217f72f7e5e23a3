"""Application-layer exceptions. Do not reuse domain exceptions."""


class ApplicationError(Exception):
    """Base for all application-layer errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class NotFoundError(ApplicationError):
    """Raised when a requested audit record or actor does not exist."""


class AuditReadError(ApplicationError):
    """Raised when the audit store cannot be read. Carries a generic message only."""


class RetentionCleanupError(ApplicationError):
    """Raised when a retention purge fails. Surfaced to the administrative caller."""
