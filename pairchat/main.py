"""
Main FastAPI application entry point.
Builds the application with its components, middleware, exception handlers
and routes.
"""
import logging
from uuid import uuid4
from contextlib import asynccontextmanager
from typing import Optional
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware

from pairchat.api.endpoints import (
    auth_router, profile_router, conversations_router, messages_router, websocket_router
)
from pairchat.api.health import router as health_router
from pairchat.api.websocket_manager import ConnectionGateway
from pairchat.core.config import Settings, settings as default_settings
from pairchat.core.errors import InternalError, PairChatError
from pairchat.core.identity import IdentityProvider
from pairchat.core.logging_config import configure_logging, request_id_var
from pairchat.core.metrics import registry, update_websocket_metrics
from pairchat.db.database import Database
from pairchat.services.accounts import AccountService
from pairchat.services.authorization import ParticipationAuthorizer
from pairchat.services.broadcaster import RealtimeBroadcaster
from pairchat.services.conversations import ConversationDirectory
from pairchat.services.messages import MessageStore

logger = logging.getLogger(__name__)


# Request ID middleware
class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Middleware to add unique request_id to each request.
    The request_id is included in logs for request tracing.
    """
    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid4())
        request.state.request_id = request_id
        token = request_id_var.set(request_id)

        try:
            logger.info(
                f"{request.method} {request.url.path} - "
                f"Client: {request.client.host if request.client else 'unknown'}"
            )

            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id

            logger.info(f"Response: {response.status_code}")
            return response
        finally:
            request_id_var.reset(token)


def _describe_validation_error(exc: RequestValidationError) -> str:
    missing = []
    invalid = []
    for error in exc.errors():
        field = str(error["loc"][-1]) if error.get("loc") else "body"
        if error.get("type") == "missing":
            missing.append(field)
        else:
            invalid.append(field)

    if missing:
        return f"Missing required fields: {', '.join(missing)}"
    if invalid:
        return f"Invalid fields: {', '.join(invalid)}"
    return "Invalid request"


def register_exception_handlers(app: FastAPI) -> None:
    """Map every failure to a JSON body of the form {"error": message}."""

    @app.exception_handler(PairChatError)
    async def pairchat_error_handler(request: Request, exc: PairChatError):
        message = exc.message
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
            message = InternalError.default_message
        return JSONResponse(status_code=exc.status_code, content={"error": message})

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        details = [
            {"loc": [str(part) for part in error.get("loc", ())], "msg": error.get("msg", "")}
            for error in exc.errors()
        ]
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": _describe_validation_error(exc), "details": details}
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        # Runs outside RequestIDMiddleware, after the context variable was reset
        request_id = getattr(request.state, "request_id", "no-request")
        logger.exception(
            f"Unhandled error on {request.method} {request.url.path}: {exc}",
            extra={"request_id": request_id}
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Server error"}
        )


def create_app(settings: Optional[Settings] = None, database: Optional[Database] = None) -> FastAPI:
    """
    Build the application and its components.

    Every component receives its collaborators here and is stored on
    ``app.state``; nothing is shared through module globals except the
    metrics registry.
    """
    settings = settings or default_settings
    database = database or Database.from_settings(settings)

    identity_provider = IdentityProvider.from_settings(settings)
    authorizer = ParticipationAuthorizer(database)
    gateway = ConnectionGateway()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Application lifespan manager.
        Handles startup and shutdown events.
        """
        logger.info("Starting PairChat API...")
        database.startup()

        yield

        logger.info("Shutting down PairChat API...")
        database.shutdown()

    app = FastAPI(
        title="PairChat API",
        description="Two-party conversations with persistent history and real-time delivery",
        version="1.0.0",
        lifespan=lifespan
    )

    app.state.settings = settings
    app.state.database = database
    app.state.identity_provider = identity_provider
    app.state.authorizer = authorizer
    app.state.accounts = AccountService(
        database,
        identity_provider,
        bcrypt_rounds=settings.bcrypt_rounds,
        min_password_length=settings.min_password_length
    )
    app.state.directory = ConversationDirectory(database)
    app.state.message_store = MessageStore(database, authorizer, max_length=settings.max_message_length)
    app.state.gateway = gateway
    app.state.broadcaster = RealtimeBroadcaster(gateway)

    # Add middlewares
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    @app.get("/", tags=["Health"])
    async def root():
        return {
            "message": "PairChat API",
            "version": "1.0.0",
            "docs": "/docs",
            "health": "/health"
        }

    @app.get("/metrics", tags=["Metrics"])
    async def metrics():
        update_websocket_metrics(gateway)
        return Response(content=generate_latest(registry), media_type=CONTENT_TYPE_LATEST)

    # Register endpoint routers
    app.include_router(health_router)
    app.include_router(auth_router, prefix="/auth", tags=["Authentication"])
    app.include_router(profile_router, prefix="/api", tags=["Authentication"])
    app.include_router(conversations_router, prefix="/api/conversations", tags=["Conversations"])
    app.include_router(messages_router, prefix="/api/messages", tags=["Messages"])
    app.include_router(websocket_router, tags=["WebSocket"])

    return app


# Configure structured JSON logging
configure_logging(
    service_name="pairchat-api",
    level=default_settings.log_level,
    enable_json=default_settings.log_json
)

app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "pairchat.main:app",
        host=default_settings.api_host,
        port=default_settings.api_port,
        log_level=default_settings.log_level.lower()
    )
