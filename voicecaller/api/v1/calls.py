"""Call API endpoints."""

from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, HTTPException, status

from voicecaller.exceptions import ConfigurationError
from voicecaller.schemas.calls import PlaceTestCallRequest
from voicecaller.schemas.campaign import CallLogResponse
from voicecaller.services.dependencies import get_outbound_dialer, get_storage
from voicecaller.services.outbound_dialer import OutboundDialer
from voicecaller.services.storage import StorageProtocol

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/calls", tags=["calls"])


@router.post("/test", response_model=CallLogResponse, status_code=status.HTTP_202_ACCEPTED)
async def place_test_call(
    request: PlaceTestCallRequest,
    storage: Annotated[StorageProtocol, Depends(get_storage)],
    dialer: Annotated[OutboundDialer, Depends(get_outbound_dialer)],
) -> CallLogResponse:
    """
    Place one call outside any lead list.

    The call uses the campaign's persona and prompt, and its outcome is
    recorded on the call log only; campaign counters are untouched.
    """
    campaign = await storage.get_campaign(request.campaign_id)
    if campaign is None:
        raise HTTPException(status_code=404, detail="Campaign not found")

    try:
        outcome = await dialer.dial(
            campaign_id=campaign.id,
            phone_number=request.phone_number,
            first_name=request.first_name,
            is_test_call=True,
        )
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    logger.info(
        "test_call_requested",
        campaign_id=campaign.id,
        call_log_id=outcome.call_log.id,
        success=outcome.success,
    )
    return CallLogResponse(**outcome.call_log.to_dict())
