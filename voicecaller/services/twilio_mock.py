"""Mock Twilio service for development and testing."""

import uuid
from dataclasses import dataclass, field

from voicecaller.exceptions import TelephonyError
from voicecaller.services.twilio_protocol import CallResult, CallStatus, TwilioServiceProtocol


@dataclass
class MockCall:
    """Internal representation of a mock call."""

    call_sid: str
    to: str
    from_: str
    stream_url: str
    stream_parameters: dict[str, str] = field(default_factory=dict)
    status_callback_url: str | None = None
    status: CallStatus = CallStatus.QUEUED


class MockTwilioService(TwilioServiceProtocol):
    """
    Mock implementation of Twilio service.

    Records every dial request instead of placing it. Specific numbers can
    be configured to fail so provider errors can be exercised without a
    real account.
    """

    def __init__(self, failing_numbers: set[str] | None = None):
        self.failing_numbers: set[str] = set(failing_numbers or ())
        self._calls: dict[str, MockCall] = {}

    def _generate_sid(self, prefix: str) -> str:
        """Generate a Twilio-like SID."""
        return f"{prefix}{uuid.uuid4().hex[:32]}"

    async def make_call(
        self,
        to: str,
        from_: str,
        stream_url: str,
        stream_parameters: dict[str, str] | None = None,
        status_callback_url: str | None = None,
    ) -> CallResult:
        """Record a mock call."""
        if to in self.failing_numbers:
            raise TelephonyError(f"Mock dial failure for {to}")

        call_sid = self._generate_sid("CA")
        self._calls[call_sid] = MockCall(
            call_sid=call_sid,
            to=to,
            from_=from_,
            stream_url=stream_url,
            stream_parameters=dict(stream_parameters or {}),
            status_callback_url=status_callback_url,
        )

        return CallResult(
            call_sid=call_sid,
            status=CallStatus.QUEUED,
            to=to,
            from_=from_,
        )

    # Test helper methods

    @property
    def calls(self) -> list[MockCall]:
        """All recorded calls in dial order."""
        return list(self._calls.values())

    def get_call(self, call_sid: str) -> MockCall | None:
        """Get a mock call by SID (for testing)."""
        return self._calls.get(call_sid)

    def reset(self) -> None:
        """Reset all mock data (for testing)."""
        self._calls.clear()
        self.failing_numbers.clear()
