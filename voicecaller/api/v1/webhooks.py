"""Twilio webhook endpoints."""

# ruff: noqa: N803

from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, Form, HTTPException, Request, Response, status
from twilio.request_validator import RequestValidator

from voicecaller.config import get_settings
from voicecaller.services.dependencies import get_event_reconciler
from voicecaller.services.event_reconciler import EventReconciler

logger = structlog.get_logger(__name__)

EMPTY_TWIML = '<?xml version="1.0" encoding="UTF-8"?><Response></Response>'


def _build_public_url(request: Request, public_base_url: str | None) -> str:
    if not public_base_url:
        return str(request.url)
    return f"{public_base_url.rstrip('/')}{request.url.path}"


async def verify_twilio_signature(request: Request) -> None:
    """Validate Twilio webhook signature when enabled."""
    settings = get_settings()
    if not settings.twilio_validate_signature:
        return

    if not settings.twilio_auth_token:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Twilio auth token not configured",
        )

    signature = request.headers.get("X-Twilio-Signature")
    if not signature:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Missing Twilio signature")

    form = await request.form()
    validator = RequestValidator(settings.twilio_auth_token)
    url = _build_public_url(request, settings.public_base_url)

    if not validator.validate(url, dict(form), signature):
        logger.warning("twilio_signature_rejected", path=request.url.path)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid Twilio signature")


router = APIRouter(
    prefix="/webhooks/twilio",
    tags=["webhooks"],
    dependencies=[Depends(verify_twilio_signature)],
)


def twiml_response(content: str) -> Response:
    """Create a TwiML XML response."""
    return Response(
        content=content,
        media_type="application/xml",
    )


def _parse_duration(value: str | None) -> int | None:
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        return None


@router.post("/status")
async def call_status_webhook(
    reconciler: Annotated[EventReconciler, Depends(get_event_reconciler)],
    CallSid: str = Form(...),
    CallStatus: str = Form(...),
    CallDuration: str = Form(None),
    ErrorCode: str = Form(None),
    ErrorMessage: str = Form(None),
) -> Response:
    """
    Handle Twilio call status updates.

    Terminal statuses update the call log, the lead and the campaign
    counters:
    - completed: Call connected and ended normally
    - busy, no-answer, failed, canceled: Call never connected

    Always answers 200 so Twilio does not retry; failures are logged.
    """
    if ErrorCode:
        logger.warning(
            "twilio_call_error",
            call_sid=CallSid,
            error_code=ErrorCode,
            error_message=ErrorMessage,
        )

    try:
        await reconciler.handle_call_status(
            CallSid,
            CallStatus,
            duration=_parse_duration(CallDuration),
        )
    except Exception:
        logger.exception("call_status_update_failed", call_sid=CallSid, status=CallStatus)

    return twiml_response(EMPTY_TWIML)
