"""
Typed error taxonomy shared by services and the HTTP layer.

Services raise these; exception handlers in main.py turn them into
``{"error": message}`` responses with the matching status code.
"""


class PairChatError(Exception):
    """Base class for errors that map onto a caller-visible status code."""

    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(PairChatError):
    """Missing or malformed input."""
    status_code = 400
    default_message = "Invalid request"


class SelfConversationError(ValidationError):
    """A conversation needs two distinct users."""
    default_message = "Cannot start a conversation with yourself"


class ConflictError(PairChatError):
    """Duplicate resource where uniqueness is required (e.g. username)."""
    status_code = 400
    default_message = "Resource already exists"


class AuthenticationError(PairChatError):
    """No credential was presented."""
    status_code = 401
    default_message = "Authentication required"


class AuthorizationError(PairChatError):
    """Invalid credential, or valid credential without access to the resource."""
    status_code = 403
    default_message = "Forbidden"


class InternalError(PairChatError):
    """Persistence or infrastructure failure. Callers only ever see the default message."""
    status_code = 500
    default_message = "Server error"
