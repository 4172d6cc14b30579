"""
Dependency injection functions for FastAPI.

Components are built once per application by ``create_app`` and stored on
``app.state``; these helpers hand them to endpoints. Authentication runs as
two explicit stages (extract the bearer token, validate it) and yields an
``Identity`` without touching the request object.
"""
from typing import Optional
from fastapi import Depends, Header, Request

from pairchat.api.websocket_manager import ConnectionGateway
from pairchat.core.config import Settings
from pairchat.core.identity import Identity, IdentityProvider, extract_bearer
from pairchat.db.database import Database
from pairchat.services.accounts import AccountService
from pairchat.services.authorization import ParticipationAuthorizer
from pairchat.services.broadcaster import RealtimeBroadcaster
from pairchat.services.conversations import ConversationDirectory
from pairchat.services.messages import MessageStore


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_database(request: Request) -> Database:
    return request.app.state.database


def get_identity_provider(request: Request) -> IdentityProvider:
    return request.app.state.identity_provider


def get_accounts(request: Request) -> AccountService:
    return request.app.state.accounts


def get_directory(request: Request) -> ConversationDirectory:
    return request.app.state.directory


def get_authorizer(request: Request) -> ParticipationAuthorizer:
    return request.app.state.authorizer


def get_message_store(request: Request) -> MessageStore:
    return request.app.state.message_store


def get_gateway(request: Request) -> ConnectionGateway:
    return request.app.state.gateway


def get_broadcaster(request: Request) -> RealtimeBroadcaster:
    return request.app.state.broadcaster


def get_current_identity(
    authorization: Optional[str] = Header(None),
    identity_provider: IdentityProvider = Depends(get_identity_provider)
) -> Identity:
    """
    Bearer authentication dependency.

    Raises:
        AuthenticationError: no bearer credential (401)
        AuthorizationError: credential present but invalid or expired (403)
    """
    token = extract_bearer(authorization)
    return identity_provider.validate(token)
