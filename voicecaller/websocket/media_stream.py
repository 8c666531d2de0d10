"""Twilio media stream WebSocket handler."""

from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, WebSocket

from voicecaller.services.call_bridge import CallBridgeManager
from voicecaller.services.dependencies import get_call_bridge_manager

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.websocket("/media-stream/{campaign_id}")
async def media_stream_websocket(
    websocket: WebSocket,
    campaign_id: int,
    manager: Annotated[CallBridgeManager, Depends(get_call_bridge_manager)],
):
    """
    WebSocket endpoint Twilio opens for each answered call.

    Receives:
    - connected / start / media / mark / stop frames

    Sends:
    - media frames with agent audio
    - clear frames when the caller interrupts the agent
    """
    await websocket.accept()
    logger.info("media_stream_connected", campaign_id=campaign_id)

    bridge = await manager.handle_stream(campaign_id, websocket)

    logger.info(
        "media_stream_finished",
        campaign_id=campaign_id,
        stream_sid=bridge.stream_sid,
        call_sid=bridge.call_sid,
    )
