"""
Message store: append-only, totally ordered log per conversation.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from pairchat.core.errors import ValidationError
from pairchat.core.metrics import messages_created_total
from pairchat.db.database import Database
from pairchat.db.models import as_utc
from pairchat.db.repository import Repository
from pairchat.services.authorization import ParticipationAuthorizer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MessageRecord:
    """A stored message with its sender's display name attached."""
    id: int
    conversation_id: int
    sender_id: int
    text: str
    sent_at: datetime
    sender_username: str

    def to_payload(self) -> Dict[str, Any]:
        """Wire shape used for real-time events."""
        return {
            "id": self.id,
            "conversationId": self.conversation_id,
            "senderId": self.sender_id,
            "text": self.text,
            "sentAt": self.sent_at.isoformat(),
            "senderUsername": self.sender_username,
        }


class MessageStore:
    """Authorization-gated append and ordered read of conversation messages."""

    def __init__(self, database: Database, authorizer: ParticipationAuthorizer, max_length: int = 4000):
        self._database = database
        self._authorizer = authorizer
        self._max_length = max_length

    def append(self, conversation_id: int, sender_id: int, text: Optional[str]) -> MessageRecord:
        """
        Persist a message from a participant and return the stored record.

        Raises:
            ValidationError: missing conversation id, empty or oversized text
            AuthorizationError: sender is not a participant
        """
        if conversation_id is None:
            raise ValidationError("Conversation ID and message text are required")
        if text is None or not text.strip():
            raise ValidationError("Conversation ID and message text are required")
        if len(text) > self._max_length:
            raise ValidationError(f"Message text exceeds {self._max_length} characters")

        self._authorizer.authorize(sender_id, conversation_id)

        with self._database.session() as db:
            repository = Repository(db)
            message = repository.create_message(conversation_id, sender_id, text)
            sender = repository.get_user_by_id(sender_id)
            db.commit()
            db.refresh(message)

            record = MessageRecord(
                id=message.id,
                conversation_id=message.conversation_id,
                sender_id=message.sender_id,
                text=message.text,
                sent_at=as_utc(message.sent_at),
                sender_username=sender.username if sender else "unknown",
            )

        messages_created_total.labels(instance="api").inc()
        logger.info(f"Message {record.id} appended to conversation {conversation_id} by user {sender_id}")
        return record

    def list(self, conversation_id: int, requester_id: int) -> List[MessageRecord]:
        """
        Return every message of the conversation ordered by sent_at, then id.

        Raises:
            AuthorizationError: requester is not a participant
        """
        self._authorizer.authorize(requester_id, conversation_id)

        with self._database.session() as db:
            rows = Repository(db).get_conversation_messages(conversation_id)
            return [
                MessageRecord(
                    id=message.id,
                    conversation_id=message.conversation_id,
                    sender_id=message.sender_id,
                    text=message.text,
                    sent_at=as_utc(message.sent_at),
                    sender_username=username,
                )
                for message, username in rows
            ]
