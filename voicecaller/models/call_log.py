"""Call log domain model."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class CallLogStatus(str, Enum):
    """Lifecycle of a single dialed call."""

    INITIATED = "initiated"
    RINGING = "ringing"
    ANSWERED = "answered"
    COMPLETED = "completed"
    FAILED = "failed"
    BUSY = "busy"
    NO_ANSWER = "no-answer"

    @property
    def never_connected(self) -> bool:
        """Terminal outcomes where nobody picked up."""
        return self in (CallLogStatus.FAILED, CallLogStatus.BUSY, CallLogStatus.NO_ANSWER)

    @classmethod
    def from_provider(cls, provider_status: str) -> "CallLogStatus | None":
        """
        Map a Twilio call status onto a call log status.

        Returns None for statuses we do not track.
        """
        value = provider_status.strip().lower()
        aliases = {
            "queued": cls.INITIATED,
            "in-progress": cls.ANSWERED,
            "canceled": cls.FAILED,
        }
        if value in aliases:
            return aliases[value]
        try:
            return cls(value)
        except ValueError:
            return None


@dataclass
class CallLog:
    """Durable record of one dialed call."""

    id: int
    campaign_id: int
    phone_number: str
    status: CallLogStatus = CallLogStatus.INITIATED
    lead_id: int | None = None  # None for test calls
    duration: int | None = None
    provider_call_id: str | None = None
    agent_conversation_id: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_active(self) -> bool:
        """A call that still blocks re-dialing the same lead."""
        return self.status != CallLogStatus.FAILED

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "campaign_id": self.campaign_id,
            "lead_id": self.lead_id,
            "phone_number": self.phone_number,
            "status": self.status.value,
            "duration": self.duration,
            "provider_call_id": self.provider_call_id,
            "agent_conversation_id": self.agent_conversation_id,
            "created_at": self.created_at.isoformat(),
        }
