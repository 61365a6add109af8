"""Twilio request signature validation."""
import logging
from fastapi import HTTPException, Request
from twilio.request_validator import RequestValidator

from app.core.config import settings

logger = logging.getLogger(__name__)


def get_public_url(request: Request) -> str:
    """
    Get the URL Twilio signed.

    Uses BASE_URL if set (the app usually sits behind a proxy that rewrites
    the scheme and host), otherwise the URL the request arrived on.
    """
    if settings.base_url:
        url = settings.base_url.rstrip("/") + request.url.path
        if request.url.query:
            url += f"?{request.url.query}"
        return url
    return str(request.url)


async def verify_twilio_signature(request: Request) -> None:
    """Dependency rejecting webhook requests not signed by Twilio."""
    if not settings.validate_twilio_signature:
        return

    form = await request.form()
    signature = request.headers.get("X-Twilio-Signature", "")
    url = get_public_url(request)
    validator = RequestValidator(settings.twilio_auth_token)
    if not validator.validate(url, dict(form), signature):
        logger.warning(
            f"[SECURITY] Rejected unsigned webhook - URL: {url}, "
            f"Client: {request.client.host if request.client else 'unknown'}"
        )
        raise HTTPException(status_code=403, detail="Invalid Twilio signature")
