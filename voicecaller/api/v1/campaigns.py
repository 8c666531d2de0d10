"""Campaign API endpoints."""

from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, HTTPException, status

from voicecaller.exceptions import ConfigurationError
from voicecaller.models.campaign import CampaignStatus
from voicecaller.models.lead import Lead, LeadStatus
from voicecaller.schemas.campaign import (
    CallLogResponse,
    CampaignDetailResponse,
    CampaignResponse,
    CampaignStartResponse,
    CampaignStatsResponse,
    LeadResponse,
)
from voicecaller.services.campaign_driver import CampaignDriver
from voicecaller.services.dependencies import get_campaign_driver, get_storage
from voicecaller.services.storage import StorageProtocol

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/campaigns", tags=["campaigns"])


def _lead_stats(leads: list[Lead]) -> CampaignStatsResponse:
    """Count leads by outcome. Calling leads count as pending."""
    completed = sum(1 for lead in leads if lead.status == LeadStatus.COMPLETED)
    failed = sum(1 for lead in leads if lead.status == LeadStatus.FAILED)
    return CampaignStatsResponse(
        total_leads=len(leads),
        pending_leads=len(leads) - completed - failed,
        completed_leads=completed,
        failed_leads=failed,
    )


@router.get("/{campaign_id}", response_model=CampaignDetailResponse)
async def get_campaign(
    campaign_id: int,
    storage: Annotated[StorageProtocol, Depends(get_storage)],
) -> CampaignDetailResponse:
    """Get campaign with its leads, call logs and lead stats."""
    campaign = await storage.get_campaign(campaign_id)
    if campaign is None:
        raise HTTPException(status_code=404, detail="Campaign not found")

    leads = await storage.get_leads_by_campaign(campaign_id)
    call_logs = await storage.get_call_logs_by_campaign(campaign_id)

    return CampaignDetailResponse(
        campaign=CampaignResponse(**campaign.to_dict()),
        leads=[LeadResponse(**lead.to_dict()) for lead in leads],
        call_logs=[CallLogResponse(**log.to_dict()) for log in call_logs],
        stats=_lead_stats(leads),
    )


@router.post(
    "/{campaign_id}/start",
    response_model=CampaignStartResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def start_campaign(
    campaign_id: int,
    storage: Annotated[StorageProtocol, Depends(get_storage)],
    driver: Annotated[CampaignDriver, Depends(get_campaign_driver)],
) -> CampaignStartResponse:
    """
    Start dialing a campaign's pending leads.

    The run continues in the background; progress is visible through
    the campaign, lead and call log records.
    """
    campaign = await storage.get_campaign(campaign_id)
    if campaign is None:
        raise HTTPException(status_code=404, detail="Campaign not found")

    if driver.is_running(campaign_id):
        raise HTTPException(status_code=409, detail="Campaign is already running")

    leads = await storage.get_leads_by_campaign(campaign_id)
    if not leads:
        raise HTTPException(status_code=400, detail="No leads found for this campaign")

    try:
        driver.dialer.ensure_configured()
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    await storage.update_campaign(campaign_id, status=CampaignStatus.ACTIVE)
    if not driver.start(campaign_id):
        raise HTTPException(status_code=409, detail="Campaign is already running")

    pending = sum(1 for lead in leads if lead.status == LeadStatus.PENDING)
    logger.info("campaign_start_accepted", campaign_id=campaign_id, pending_leads=pending)
    return CampaignStartResponse(
        campaign_id=campaign_id,
        status=CampaignStatus.ACTIVE.value,
        pending_leads=pending,
    )
