"""
API endpoint implementations.
Defines REST endpoints for accounts, conversations and messages, plus the
WebSocket endpoint for real-time delivery.
"""
import json
import logging
from typing import Any, Dict, List, Optional
from fastapi import APIRouter, Depends, Query, Response, WebSocket, WebSocketDisconnect, status
from starlette.concurrency import run_in_threadpool

from pairchat.api.dependencies import (
    get_accounts, get_broadcaster, get_current_identity, get_directory, get_message_store
)
from pairchat.api.schemas import (
    SignupRequest, SignupResponse, UserOut, LoginRequest, LoginResponse,
    IdentityOut, ProfileResponse,
    ConversationCreate, ConversationResponse, ConversationListItem,
    MessageCreate, MessageOut, SendMessageResponse
)
from pairchat.api.websocket_manager import Connection
from pairchat.core.errors import AuthorizationError
from pairchat.core.identity import Identity
from pairchat.services.accounts import AccountService
from pairchat.services.broadcaster import RealtimeBroadcaster
from pairchat.services.conversations import ConversationDirectory
from pairchat.services.messages import MessageStore

logger = logging.getLogger(__name__)

# Create routers
auth_router = APIRouter()
profile_router = APIRouter()
conversations_router = APIRouter()
messages_router = APIRouter()
websocket_router = APIRouter()


# Authentication Endpoints
@auth_router.post("/signup", response_model=SignupResponse, status_code=status.HTTP_201_CREATED)
def signup(request: SignupRequest, accounts: AccountService = Depends(get_accounts)):
    """
    Register a new user.

    Raises:
        400 if the username is taken or the password is too short or too long
    """
    account = accounts.signup(request.username, request.password)
    return SignupResponse(
        message="User created successfully",
        user=UserOut(id=account.id, username=account.username)
    )


@auth_router.post("/login", response_model=LoginResponse, status_code=status.HTTP_200_OK)
def login(request: LoginRequest, accounts: AccountService = Depends(get_accounts)):
    """
    Exchange username and password for a bearer token.

    Example Request:
        ```json
        POST /auth/login
        {"username": "alice", "password": "password123"}
        ```
    """
    token = accounts.login(request.username, request.password)
    return LoginResponse(message="Logged in successfully", token=token)


@profile_router.get("/profile", response_model=ProfileResponse)
def profile(identity: Identity = Depends(get_current_identity)):
    return ProfileResponse(
        message=f"Welcome, {identity.username}! This is protected data.",
        user=IdentityOut(user_id=identity.user_id, username=identity.username)
    )


# Conversation Endpoints
@conversations_router.post("", response_model=ConversationResponse, status_code=status.HTTP_201_CREATED)
def create_or_find_conversation(
    request: ConversationCreate,
    response: Response,
    identity: Identity = Depends(get_current_identity),
    directory: ConversationDirectory = Depends(get_directory)
):
    """
    Find the conversation between the caller and the recipient, creating it
    if it does not exist yet.

    Returns:
        201 with the new conversation id, or 200 when it already existed

    Raises:
        400 for a self-conversation or unknown recipient

    Example Request:
        ```json
        POST /api/conversations
        Authorization: Bearer <token>
        {"recipientId": 2}
        ```
    """
    conversation_id, created = directory.get_or_create(identity.user_id, request.recipient_id)

    if not created:
        response.status_code = status.HTTP_200_OK
        return ConversationResponse(message="Conversation already exists", conversation_id=conversation_id)

    return ConversationResponse(message="Conversation created successfully", conversation_id=conversation_id)


@conversations_router.get("", response_model=List[ConversationListItem])
def list_conversations(
    identity: Identity = Depends(get_current_identity),
    directory: ConversationDirectory = Depends(get_directory)
):
    """List the caller's conversations, newest first."""
    return [
        ConversationListItem(
            conversation_id=summary.conversation_id,
            participant_ids=list(summary.participant_ids),
            created_at=summary.created_at
        )
        for summary in directory.list_for_user(identity.user_id)
    ]


@conversations_router.get("/{conversation_id}/messages", response_model=List[MessageOut])
def get_conversation_messages(
    conversation_id: int,
    identity: Identity = Depends(get_current_identity),
    store: MessageStore = Depends(get_message_store)
):
    """
    Full message history of a conversation, oldest first.

    Raises:
        403 if the caller is not a participant (also for unknown conversations)
    """
    records = store.list(conversation_id, identity.user_id)
    return [MessageOut.model_validate(record) for record in records]


# Message Endpoints
@messages_router.post("", response_model=SendMessageResponse, status_code=status.HTTP_201_CREATED)
async def send_message(
    request: MessageCreate,
    identity: Identity = Depends(get_current_identity),
    store: MessageStore = Depends(get_message_store),
    broadcaster: RealtimeBroadcaster = Depends(get_broadcaster)
):
    """
    Append a message and fan it out to the conversation room.

    The append runs in the threadpool. The broadcast happens after the
    message is committed and never changes the response: subscribers that
    miss it recover through the history.

    Example Request:
        ```json
        POST /api/messages
        Authorization: Bearer <token>
        {"conversationId": 1, "text": "hi"}
        ```
    """
    record = await run_in_threadpool(store.append, request.conversation_id, identity.user_id, request.text)
    await broadcaster.publish(record.conversation_id, record)

    return SendMessageResponse(
        message="Message sent successfully",
        sent_message=MessageOut.model_validate(record)
    )


# WebSocket Endpoint
def _error_frame(error: str, code: str) -> Dict[str, Any]:
    return {"type": "error", "error": error, "code": code}


def _parse_conversation_id(message: Dict[str, Any]) -> Optional[int]:
    value = message.get("conversationId", message.get("conversation_id"))
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value)
    return None


@websocket_router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket, token: Optional[str] = Query(None)):
    """
    WebSocket endpoint for real-time message delivery.

    Connection Flow:
        1. Client connects, optionally with a bearer token: ws://host/ws?token={jwt}
        2. Client joins rooms: {"action": "join_conversation", "conversationId": 1}
        3. Server pushes {"type": "receive_message", "data": {...}} for every
           message appended to a joined conversation
        4. Disconnecting drops every subscription; reconnecting clients re-join

    WebSocket Commands (Client -> Server):
        - join_conversation: {"action": "join_conversation", "conversationId": 1}
        - leave_conversation: {"action": "leave_conversation", "conversationId": 1}

    Error Codes:
        - 4001: Authentication failed (token present but invalid)
    """
    state = websocket.app.state

    identity = None
    if token:
        try:
            identity = state.identity_provider.validate(token)
        except AuthorizationError:
            logger.warning("WebSocket authentication failed")
            await websocket.close(code=4001, reason="Authentication failed")
            return

    gateway = state.gateway
    connection = Connection(websocket, identity)
    await gateway.accept(connection)

    try:
        await connection.send_json({
            "type": "connected",
            "connectionId": connection.id,
            "userId": connection.user_id
        })

        # Message loop
        while True:
            data = await websocket.receive_text()

            try:
                message = json.loads(data)
            except json.JSONDecodeError:
                await connection.send_json(_error_frame("Invalid JSON format", "INVALID_JSON"))
                continue

            if not isinstance(message, dict):
                await connection.send_json(_error_frame("Expected a JSON object", "INVALID_MESSAGE"))
                continue

            action = message.get("action")
            if action not in ("join_conversation", "leave_conversation"):
                await connection.send_json(_error_frame(f"Unknown action: {action}", "INVALID_ACTION"))
                continue

            conversation_id = _parse_conversation_id(message)
            if conversation_id is None:
                await connection.send_json(_error_frame("Missing conversationId", "INVALID_MESSAGE"))
                continue

            if action == "join_conversation":
                if state.settings.require_participation_on_join and (
                    connection.user_id is None
                    or not await run_in_threadpool(
                        state.authorizer.is_participant, connection.user_id, conversation_id
                    )
                ):
                    await connection.send_json(_error_frame(
                        "You are not a member of this conversation", "FORBIDDEN"
                    ))
                    continue

                gateway.join(connection, conversation_id)
                await connection.send_json({"type": "joined", "conversationId": conversation_id})
            else:
                gateway.leave(connection, conversation_id)
                await connection.send_json({"type": "left", "conversationId": conversation_id})

    except WebSocketDisconnect:
        logger.info(f"Connection {connection.id} closed by client")
    finally:
        gateway.disconnect(connection)
