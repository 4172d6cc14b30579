"""
SQLAlchemy ORM models for the PairChat database.
Defines all entities: User, Conversation, Participant, Message.
"""
from datetime import datetime, timezone
from sqlalchemy import (
    Column, String, Integer, DateTime, ForeignKey, Text,
    UniqueConstraint, CheckConstraint, Index
)
from sqlalchemy.orm import relationship
from pairchat.db.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive timestamps read back from backends without time zones (SQLite)."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def normalize_pair(user_a: int, user_b: int) -> tuple:
    """Order a pair of user ids so (A, B) and (B, A) share one key."""
    return (user_a, user_b) if user_a < user_b else (user_b, user_a)


class User(Base):
    """User entity - owned by the identity provider adapter."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(50), unique=True, nullable=False, index=True)
    password_hash = Column(String(100), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    # Relationships
    participations = relationship("Participant", back_populates="user")
    messages = relationship("Message", back_populates="sender")


class Conversation(Base):
    """
    Two-party conversation.

    The normalized participant pair is stored on the row itself so that the
    UNIQUE constraint makes a second conversation for the same pair impossible.
    """
    __tablename__ = "conversations"
    __table_args__ = (
        UniqueConstraint("user_low_id", "user_high_id", name="uq_conversations_pair"),
        CheckConstraint("user_low_id < user_high_id", name="ck_conversations_pair_order"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_low_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    user_high_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    # Relationships
    participants = relationship("Participant", back_populates="conversation")
    messages = relationship("Message", back_populates="conversation")


class Participant(Base):
    """Membership record binding a user to a conversation."""
    __tablename__ = "participants"
    __table_args__ = (
        UniqueConstraint("conversation_id", "user_id", name="uq_participants_member"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    conversation_id = Column(Integer, ForeignKey("conversations.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    joined_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    # Relationships
    conversation = relationship("Conversation", back_populates="participants")
    user = relationship("User", back_populates="participations")


class Message(Base):
    """Append-only message. ``id`` doubles as the insertion-order tie-break."""
    __tablename__ = "messages"
    __table_args__ = (
        Index("ix_messages_conversation_order", "conversation_id", "sent_at", "id"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    conversation_id = Column(Integer, ForeignKey("conversations.id"), nullable=False, index=True)
    sender_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    text = Column(Text, nullable=False)
    sent_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    # Relationships
    conversation = relationship("Conversation", back_populates="messages")
    sender = relationship("User", back_populates="messages")
