"""Security-layer exceptions. Typed, no HTTP."""


class SecurityError(Exception):
    """Base for all security-layer errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class AuthenticationError(SecurityError):
    """Raised when no authenticated actor is attached to the request, or its credentials are malformed."""


class AuthorizationError(SecurityError):
    """Raised when the actor's role does not permit the operation."""
