"""Health check endpoint."""
import logging
from fastapi import APIRouter, Depends, Request

from app.core.dependencies import get_session_store
from app.services.session.base import SessionStore, SessionStoreError
from app.services.session.call_session import SERVICE_STATUS_KEY

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/health")
async def health_check(request: Request, store: SessionStore = Depends(get_session_store)):
    """Health check endpoint. Reports whether the session store answers."""
    logger.debug(
        f"[HEALTH] Health check requested - Client: {request.client.host if request.client else 'unknown'}"
    )
    try:
        await store.get(SERVICE_STATUS_KEY)
    except SessionStoreError:
        return {"status": "degraded", "session_store": "unreachable"}
    return {"status": "healthy", "session_store": "ok"}
