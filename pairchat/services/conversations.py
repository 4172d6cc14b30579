"""
Conversation directory.

Maps an unordered pair of user ids to exactly one conversation. Creation is
an insert-if-absent guarded by the UNIQUE(user_low_id, user_high_id)
constraint: when two callers race past the lookup, the loser's insert fails
on the constraint, is rolled back, and the winner's conversation is returned.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Tuple
from sqlalchemy.exc import IntegrityError

from pairchat.core.errors import SelfConversationError, ValidationError, InternalError
from pairchat.core.metrics import conversations_resolved_total
from pairchat.db.database import Database
from pairchat.db.models import as_utc, normalize_pair
from pairchat.db.repository import Repository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConversationSummary:
    conversation_id: int
    participant_ids: Tuple[int, int]
    created_at: datetime


class ConversationDirectory:
    """Deduplicating lookup-or-create of two-party conversations."""

    def __init__(self, database: Database):
        self._database = database

    def get_or_create(self, user_a: int, user_b: int) -> Tuple[int, bool]:
        """
        Return ``(conversation_id, created)`` for the pair.

        ``created`` is False whenever the conversation already existed,
        including when a concurrent caller created it first.

        Raises:
            SelfConversationError: user_a == user_b
            ValidationError: one of the users does not exist
        """
        if user_a == user_b:
            raise SelfConversationError()

        user_low_id, user_high_id = normalize_pair(user_a, user_b)

        with self._database.session() as db:
            repository = Repository(db)

            existing = repository.find_conversation_by_pair(user_low_id, user_high_id)
            if existing:
                conversations_resolved_total.labels(outcome="existing", instance="api").inc()
                return existing.id, False

            if repository.count_existing_users([user_low_id, user_high_id]) != 2:
                raise ValidationError("Recipient not found")

            try:
                conversation = repository.create_conversation_with_participants(user_low_id, user_high_id)
                db.commit()
            except IntegrityError:
                db.rollback()
                existing = repository.find_conversation_by_pair(user_low_id, user_high_id)
                if existing is None:
                    logger.exception(f"Conversation insert for users {user_low_id}/{user_high_id} failed")
                    raise InternalError()
                logger.info(
                    f"Concurrent creation for users {user_low_id}/{user_high_id} resolved "
                    f"to conversation {existing.id}"
                )
                conversations_resolved_total.labels(outcome="existing", instance="api").inc()
                return existing.id, False

            conversations_resolved_total.labels(outcome="created", instance="api").inc()
            logger.info(f"Conversation {conversation.id} created for users {user_low_id}/{user_high_id}")
            return conversation.id, True

    def participants(self, conversation_id: int) -> Tuple[int, ...]:
        with self._database.session() as db:
            return tuple(Repository(db).get_participant_ids(conversation_id))

    def list_for_user(self, user_id: int) -> List[ConversationSummary]:
        """Conversations the user belongs to, newest first."""
        with self._database.session() as db:
            conversations = Repository(db).get_user_conversations(user_id)
            return [
                ConversationSummary(
                    conversation_id=conversation.id,
                    participant_ids=(conversation.user_low_id, conversation.user_high_id),
                    created_at=as_utc(conversation.created_at),
                )
                for conversation in conversations
            ]
