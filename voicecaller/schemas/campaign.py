"""Campaign schemas."""

from datetime import datetime

from pydantic import BaseModel


class CampaignResponse(BaseModel):
    """Campaign response."""

    id: int
    name: str
    first_prompt: str
    system_persona: str
    selected_voice_id: str | None
    status: str
    total_leads: int
    completed_calls: int
    successful_calls: int
    failed_calls: int
    created_at: datetime


class LeadResponse(BaseModel):
    """Lead response."""

    id: int
    campaign_id: int
    first_name: str
    last_name: str
    contact_no: str
    status: str
    call_duration: int | None
    created_at: datetime


class CallLogResponse(BaseModel):
    """Call log response."""

    id: int
    campaign_id: int
    lead_id: int | None
    phone_number: str
    status: str
    duration: int | None
    provider_call_id: str | None
    agent_conversation_id: str | None
    created_at: datetime


class CampaignStatsResponse(BaseModel):
    """Lead counts by outcome."""

    total_leads: int
    pending_leads: int
    completed_leads: int
    failed_leads: int


class CampaignDetailResponse(BaseModel):
    """Campaign with its leads, calls and lead stats."""

    campaign: CampaignResponse
    leads: list[LeadResponse]
    call_logs: list[CallLogResponse]
    stats: CampaignStatsResponse


class CampaignStartResponse(BaseModel):
    """Accepted campaign run."""

    campaign_id: int
    status: str
    pending_leads: int
