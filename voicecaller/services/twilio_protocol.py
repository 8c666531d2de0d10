"""Twilio service protocol definition."""

from dataclasses import dataclass
from enum import Enum
from typing import Protocol


class CallStatus(str, Enum):
    """Twilio call statuses."""

    QUEUED = "queued"
    INITIATED = "initiated"
    RINGING = "ringing"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    BUSY = "busy"
    FAILED = "failed"
    NO_ANSWER = "no-answer"
    CANCELED = "canceled"


@dataclass
class CallResult:
    """Result of a call initiation."""

    call_sid: str
    status: CallStatus
    to: str
    from_: str


class TwilioServiceProtocol(Protocol):
    """Protocol for Twilio service implementations."""

    async def make_call(
        self,
        to: str,
        from_: str,
        stream_url: str,
        stream_parameters: dict[str, str] | None = None,
        status_callback_url: str | None = None,
    ) -> CallResult:
        """
        Initiate an outbound call whose audio is streamed to us.

        Args:
            to: Destination phone number (E.164 format)
            from_: Caller ID phone number (E.164 format)
            stream_url: WebSocket URL the media stream connects to
            stream_parameters: Custom parameters delivered in the stream's start frame
            status_callback_url: URL to receive call status updates

        Returns:
            CallResult with call SID and initial status

        Raises:
            TelephonyError: If the provider rejects the call
        """
        ...
