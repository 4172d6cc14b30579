"""
Identity Provider adapter.

Authentication is modelled as explicit stages that either return a value
or raise a typed error, composed by the caller:

    token = extract_bearer(authorization_header)      # AuthenticationError
    identity = identity_provider.validate(token)      # AuthorizationError

Token validation is stateless: it checks signature, expiry and claims and
never touches the database.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from pairchat.core.config import Settings
from pairchat.core.errors import AuthenticationError, AuthorizationError
from pairchat.core.security import create_access_token, decode_access_token

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    """Validated claims of a bearer credential."""
    user_id: int
    username: str


def extract_bearer(authorization: Optional[str]) -> str:
    """
    Pull the token out of an ``Authorization: Bearer <token>`` header value.

    Raises:
        AuthenticationError: header missing, empty or not a bearer credential
    """
    if not authorization:
        raise AuthenticationError()
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthenticationError()
    return token.strip()


class IdentityProvider:
    """Issues and validates JWT bearer credentials carrying ``{userId, username}``."""

    def __init__(self, secret_key: str, algorithm: str = "HS256", expire_minutes: int = 60):
        self._secret_key = secret_key
        self._algorithm = algorithm
        self._expire_minutes = expire_minutes

    @classmethod
    def from_settings(cls, settings: Settings) -> "IdentityProvider":
        return cls(
            secret_key=settings.jwt_secret_key,
            algorithm=settings.jwt_algorithm,
            expire_minutes=settings.access_token_expire_minutes,
        )

    def issue(self, user_id: int, username: str) -> str:
        token_data = create_access_token(
            user_id=user_id,
            username=username,
            secret_key=self._secret_key,
            algorithm=self._algorithm,
            expire_minutes=self._expire_minutes,
        )
        return token_data["token"]

    def validate(self, token: str) -> Identity:
        """
        Validate a bearer token and return the identity it carries.

        Raises:
            AuthorizationError: bad signature, expired, wrong type or missing claims
        """
        payload = decode_access_token(token, self._secret_key, self._algorithm)
        if not payload or payload.get("type") != "access":
            logger.info("Rejected invalid or expired token")
            raise AuthorizationError("Invalid or expired token")

        user_id = payload.get("user_id")
        username = payload.get("username")
        if not isinstance(user_id, int) or not username:
            logger.info("Rejected token with incomplete claims")
            raise AuthorizationError("Invalid or expired token")

        return Identity(user_id=user_id, username=username)
