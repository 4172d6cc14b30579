"""
Account sign-up and login backing the identity provider adapter.
"""
import logging
from dataclasses import dataclass
from sqlalchemy.exc import IntegrityError

from pairchat.core.errors import ConflictError, ValidationError
from pairchat.core.identity import IdentityProvider
from pairchat.core.security import hash_password, verify_password
from pairchat.db.database import Database
from pairchat.db.repository import Repository

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid username or password"

# bcrypt only hashes the first 72 bytes and rejects longer input
MAX_PASSWORD_BYTES = 72


@dataclass(frozen=True)
class Account:
    id: int
    username: str


class AccountService:
    """Creates users and exchanges credentials for bearer tokens."""

    def __init__(
        self,
        database: Database,
        identity_provider: IdentityProvider,
        bcrypt_rounds: int = 12,
        min_password_length: int = 8
    ):
        self._database = database
        self._identity_provider = identity_provider
        self._bcrypt_rounds = bcrypt_rounds
        self._min_password_length = min_password_length

    def signup(self, username: str, password: str) -> Account:
        """
        Raises:
            ValidationError: empty username, too-short or over-long password
            ConflictError: username already taken
        """
        username = (username or "").strip()
        if not username or not password:
            raise ValidationError("Username and password are required")
        if len(password) < self._min_password_length:
            raise ValidationError(f"Password must be at least {self._min_password_length} characters")
        if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValidationError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")

        with self._database.session() as db:
            repository = Repository(db)
            if repository.get_user_by_username(username):
                raise ConflictError("Username already exists")

            password_hash = hash_password(password, rounds=self._bcrypt_rounds)
            try:
                user = repository.create_user(username, password_hash)
                db.commit()
            except IntegrityError:
                db.rollback()
                raise ConflictError("Username already exists")

            logger.info(f"User {user.username} signed up with id {user.id}")
            return Account(id=user.id, username=user.username)

    def login(self, username: str, password: str) -> str:
        """
        Verify credentials and issue a bearer token.

        Raises:
            ValidationError: unknown username or wrong password (same message)
        """
        username = (username or "").strip()
        password = password or ""
        if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
            logger.warning(f"Failed login attempt for username: {username}")
            raise ValidationError(INVALID_CREDENTIALS)

        with self._database.session() as db:
            user = Repository(db).get_user_by_username(username)
            if not user or not verify_password(password, user.password_hash):
                logger.warning(f"Failed login attempt for username: {username}")
                raise ValidationError(INVALID_CREDENTIALS)
            user_id, user_name = user.id, user.username

        logger.info(f"User {user_name} logged in")
        return self._identity_provider.issue(user_id, user_name)
