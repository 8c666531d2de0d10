"""Lead domain model."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class LeadStatus(str, Enum):
    """Lead status in the calling workflow."""

    PENDING = "pending"  # not dialed yet
    CALLING = "calling"  # dial placed, outcome unknown
    COMPLETED = "completed"  # call connected
    FAILED = "failed"  # busy, no-answer or provider failure

    @property
    def is_open(self) -> bool:
        """True while the lead still keeps its campaign from completing."""
        return self in (LeadStatus.PENDING, LeadStatus.CALLING)


@dataclass
class Lead:
    """A contact targeted for an outbound call within a campaign."""

    id: int
    campaign_id: int
    contact_no: str
    first_name: str = ""
    last_name: str = ""
    status: LeadStatus = LeadStatus.PENDING
    call_duration: int | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "campaign_id": self.campaign_id,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "contact_no": self.contact_no,
            "status": self.status.value,
            "call_duration": self.call_duration,
            "created_at": self.created_at.isoformat(),
        }
