"""
Pydantic schemas for request/response validation.
Defines all data transfer objects (DTOs) for the API.

Every schema is exposed with camelCase keys on the wire and accepts the
snake_case field names as well.
"""
from datetime import datetime
from typing import List
from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# Authentication Schemas
class SignupRequest(CamelModel):
    """
    Sign-up request.

    Example:
        ```json
        {"username": "alice", "password": "password123"}
        ```
    """
    username: str = Field(..., min_length=1, max_length=50, description="Unique username")
    password: str = Field(..., min_length=1, description="Plain text password")


class UserOut(CamelModel):
    id: int = Field(..., description="User identifier")
    username: str = Field(..., description="Username")


class SignupResponse(CamelModel):
    message: str = Field(..., description="Status message")
    user: UserOut


class LoginRequest(CamelModel):
    username: str = Field(..., description="Username")
    password: str = Field(..., description="Plain text password")


class LoginResponse(CamelModel):
    """
    Login response carrying the bearer token.

    Example:
        ```json
        {"message": "Logged in successfully", "token": "eyJhbGciOiJIUzI1NiIs..."}
        ```
    """
    message: str = Field(..., description="Status message")
    token: str = Field(..., description="JWT bearer token")


class IdentityOut(CamelModel):
    user_id: int = Field(..., description="Authenticated user ID")
    username: str = Field(..., description="Authenticated username")


class ProfileResponse(CamelModel):
    message: str
    user: IdentityOut


# Conversation Schemas
class ConversationCreate(CamelModel):
    """
    Create-or-find a conversation with another user.

    Example:
        ```json
        {"recipientId": 2}
        ```
    """
    recipient_id: int = Field(..., description="User ID of the other participant")


class ConversationResponse(CamelModel):
    """
    Returned with 201 when the conversation was created and 200 when it
    already existed.
    """
    message: str = Field(..., description="Status message")
    conversation_id: int = Field(..., description="Conversation identifier")


class ConversationListItem(CamelModel):
    conversation_id: int = Field(..., description="Conversation identifier")
    participant_ids: List[int] = Field(..., description="Both participants' user IDs")
    created_at: datetime = Field(..., description="Creation timestamp (UTC)")


# Message Schemas
class MessageCreate(CamelModel):
    """
    Send a text message to a conversation.

    ``messageText`` is accepted in place of ``text``.

    Example:
        ```json
        {"conversationId": 1, "text": "hi"}
        ```
    """
    conversation_id: int = Field(..., description="Target conversation ID")
    text: str = Field(
        ...,
        validation_alias=AliasChoices("text", "messageText", "message_text"),
        description="Message text"
    )


class MessageOut(CamelModel):
    id: int = Field(..., description="Message identifier")
    conversation_id: int = Field(..., description="Parent conversation ID")
    sender_id: int = Field(..., description="Sender's user ID")
    text: str = Field(..., description="Message text")
    sent_at: datetime = Field(..., description="Server timestamp (UTC)")
    sender_username: str = Field(..., description="Sender's username")


class SendMessageResponse(CamelModel):
    message: str = Field(..., description="Status message")
    sent_message: MessageOut
