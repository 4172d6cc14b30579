"""
Participation authorizer: the mandatory gate in front of every message
read and write.
"""
import logging

from pairchat.core.errors import AuthorizationError
from pairchat.db.database import Database
from pairchat.db.repository import Repository

logger = logging.getLogger(__name__)

# Same text whether or not the conversation exists
NOT_A_PARTICIPANT = "You are not a member of this conversation"


class ParticipationAuthorizer:
    """Checks membership against participant records."""

    def __init__(self, database: Database):
        self._database = database

    def is_participant(self, user_id: int, conversation_id: int) -> bool:
        with self._database.session() as db:
            return Repository(db).is_conversation_member(conversation_id, user_id)

    def authorize(self, user_id: int, conversation_id: int) -> None:
        """
        Raise AuthorizationError unless the user participates in the conversation.

        Unknown conversation ids fail exactly like conversations the user is
        not part of.
        """
        if not self.is_participant(user_id, conversation_id):
            logger.info(f"Denied user {user_id} access to conversation {conversation_id}")
            raise AuthorizationError(NOT_A_PARTICIPANT)
