"""
Health check endpoint.
Reports process liveness together with database connectivity.
"""
import logging
from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from pairchat.api.dependencies import get_database, get_gateway
from pairchat.api.websocket_manager import ConnectionGateway
from pairchat.db.database import Database

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])


@router.get("/health", status_code=status.HTTP_200_OK)
def health_check(
    database: Database = Depends(get_database),
    gateway: ConnectionGateway = Depends(get_gateway)
):
    """
    Liveness and readiness probe.

    Returns 503 when the database cannot be reached or is draining.

    Example Response:
        {
            "status": "healthy",
            "database": "ok",
            "connections": 3
        }
    """
    database_ok = database.ping()
    body = {
        "status": "healthy" if database_ok else "unhealthy",
        "database": "ok" if database_ok else "unavailable",
        "connections": gateway.get_connection_count()
    }

    if not database_ok:
        logger.warning("Health check failed: database unavailable")
        return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content=body)

    return body
