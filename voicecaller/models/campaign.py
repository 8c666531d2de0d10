"""Campaign domain model."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class CampaignStatus(str, Enum):
    """Campaign status."""

    DRAFT = "draft"
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class Campaign:
    """
    Outbound calling campaign.

    Holds the agent persona used for every call plus the aggregate call
    counters maintained by the event reconciler and campaign driver.
    """

    id: int
    name: str
    first_prompt: str
    system_persona: str
    selected_voice_id: str | None = None
    status: CampaignStatus = CampaignStatus.DRAFT

    # Aggregate counters
    total_leads: int = 0
    completed_calls: int = 0  # connected, regardless of talk time
    successful_calls: int = 0  # subset of completed above the duration threshold
    failed_calls: int = 0  # never connected

    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "name": self.name,
            "first_prompt": self.first_prompt,
            "system_persona": self.system_persona,
            "selected_voice_id": self.selected_voice_id,
            "status": self.status.value,
            "total_leads": self.total_leads,
            "completed_calls": self.completed_calls,
            "successful_calls": self.successful_calls,
            "failed_calls": self.failed_calls,
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class KnowledgeBaseFile:
    """Reference document attached to a campaign's agent."""

    id: int
    campaign_id: int
    filename: str
    file_url: str
    elevenlabs_doc_id: str | None = None
    uploaded_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
