"""Real Twilio service implementation."""

import asyncio
from typing import Any

import requests
import structlog
from twilio.base.exceptions import TwilioException
from twilio.rest import Client
from twilio.twiml.voice_response import Connect, VoiceResponse

from voicecaller.config import get_settings
from voicecaller.exceptions import TelephonyError
from voicecaller.services.twilio_protocol import CallResult, CallStatus, TwilioServiceProtocol

logger = structlog.get_logger(__name__)


def build_stream_twiml(stream_url: str, parameters: dict[str, str] | None = None) -> str:
    """
    Build TwiML that connects the answered call to a bidirectional media stream.

    Twilio ignores query strings on stream URLs, so per-call data travels
    as <Parameter> elements and comes back in the start frame.
    """
    response = VoiceResponse()
    connect = Connect()
    stream = connect.stream(url=stream_url)
    for name, value in (parameters or {}).items():
        stream.parameter(name=name, value=value)
    response.append(connect)
    return str(response)


class TwilioService(TwilioServiceProtocol):
    """
    Real Twilio service implementation.

    Uses the Twilio Python SDK to interact with the Twilio API. The SDK is
    blocking, so requests run in a worker thread.
    """

    def __init__(self) -> None:
        """Initialize with Twilio credentials from settings."""
        settings = get_settings()
        self._client = Client(settings.twilio_account_sid, settings.twilio_auth_token)
        self._from_number = settings.twilio_phone_number

    async def make_call(
        self,
        to: str,
        from_: str,
        stream_url: str,
        stream_parameters: dict[str, str] | None = None,
        status_callback_url: str | None = None,
    ) -> CallResult:
        """Initiate an outbound call via Twilio."""
        call_params: dict[str, Any] = {
            "to": to,
            "from_": from_ or self._from_number,
            "twiml": build_stream_twiml(stream_url, stream_parameters),
        }

        if status_callback_url:
            call_params["status_callback"] = status_callback_url
            call_params["status_callback_method"] = "POST"
            call_params["status_callback_event"] = ["initiated", "ringing", "answered", "completed"]

        try:
            call = await asyncio.to_thread(self._client.calls.create, **call_params)
        except (TwilioException, requests.RequestException) as exc:
            logger.warning("twilio_dial_failed", to=to, error=str(exc))
            raise TelephonyError(str(exc)) from exc

        try:
            status = CallStatus(call.status)
        except ValueError:
            # Call is already placed
            logger.warning("twilio_unknown_call_status", call_sid=call.sid, status=call.status)
            status = CallStatus.QUEUED

        return CallResult(
            call_sid=call.sid,
            status=status,
            to=to,
            from_=from_ or self._from_number,
        )
