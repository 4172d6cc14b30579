"""
Repository layer for database operations.
Provides high-level methods for common database queries and operations.

Methods add and flush but never commit: the calling service owns the
transaction boundary.
"""
from datetime import datetime
from typing import List, Optional, Tuple
from sqlalchemy.orm import Session
from pairchat.db.models import User, Conversation, Participant, Message


class Repository:
    """Repository class for database operations."""

    def __init__(self, db: Session):
        """
        Initialize repository with database session.

        Args:
            db: SQLAlchemy database session
        """
        self.db = db

    # User operations
    def create_user(self, username: str, password_hash: str) -> User:
        """Create a new user."""
        user = User(username=username, password_hash=password_hash)
        self.db.add(user)
        self.db.flush()
        return user

    def get_user_by_username(self, username: str) -> Optional[User]:
        """Get user by username."""
        return self.db.query(User).filter(User.username == username).first()

    def get_user_by_id(self, user_id: int) -> Optional[User]:
        """Get user by ID."""
        return self.db.query(User).filter(User.id == user_id).first()

    def count_existing_users(self, user_ids: List[int]) -> int:
        """Count how many of the given user IDs exist."""
        return self.db.query(User).filter(User.id.in_(set(user_ids))).count()

    # Conversation operations
    def find_conversation_by_pair(self, user_low_id: int, user_high_id: int) -> Optional[Conversation]:
        """Get the conversation for a normalized user pair, if any."""
        return self.db.query(Conversation).filter(
            Conversation.user_low_id == user_low_id,
            Conversation.user_high_id == user_high_id
        ).first()

    def create_conversation_with_participants(self, user_low_id: int, user_high_id: int) -> Conversation:
        """
        Stage a conversation row together with both participant rows.

        Raises IntegrityError on flush if the pair already has a conversation.
        """
        conversation = Conversation(user_low_id=user_low_id, user_high_id=user_high_id)
        self.db.add(conversation)
        self.db.flush()

        self.db.add_all([
            Participant(conversation_id=conversation.id, user_id=user_low_id),
            Participant(conversation_id=conversation.id, user_id=user_high_id),
        ])
        self.db.flush()
        return conversation

    def get_participant_ids(self, conversation_id: int) -> List[int]:
        """Get the user IDs of all participants, ascending."""
        rows = self.db.query(Participant.user_id).filter(
            Participant.conversation_id == conversation_id
        ).order_by(Participant.user_id).all()
        return [row.user_id for row in rows]

    def is_conversation_member(self, conversation_id: int, user_id: int) -> bool:
        """Check if user is a member of conversation."""
        member = self.db.query(Participant.id).filter(
            Participant.conversation_id == conversation_id,
            Participant.user_id == user_id
        ).first()
        return member is not None

    def get_user_conversations(self, user_id: int) -> List[Conversation]:
        """Get all conversations a user participates in, newest first."""
        return self.db.query(Conversation).join(Participant).filter(
            Participant.user_id == user_id
        ).order_by(Conversation.created_at.desc(), Conversation.id.desc()).all()

    # Message operations
    def create_message(
        self,
        conversation_id: int,
        sender_id: int,
        text: str,
        sent_at: Optional[datetime] = None
    ) -> Message:
        """Stage a new message. ``sent_at`` defaults to the server clock."""
        message = Message(
            conversation_id=conversation_id,
            sender_id=sender_id,
            text=text
        )
        if sent_at is not None:
            message.sent_at = sent_at
        self.db.add(message)
        self.db.flush()
        return message

    def get_conversation_messages(self, conversation_id: int) -> List[Tuple[Message, str]]:
        """Get all messages of a conversation with the sender's username, oldest first."""
        return self.db.query(Message, User.username).join(
            User, Message.sender_id == User.id
        ).filter(
            Message.conversation_id == conversation_id
        ).order_by(Message.sent_at.asc(), Message.id.asc()).all()
