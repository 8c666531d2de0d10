"""Service dependencies for FastAPI dependency injection."""

from functools import lru_cache

from voicecaller.config import get_settings
from voicecaller.services.agent_session import AgentSessionInitiator
from voicecaller.services.call_bridge import CallBridgeManager
from voicecaller.services.call_registry import PendingCallStore, SessionRegistry
from voicecaller.services.campaign_driver import CampaignDriver
from voicecaller.services.elevenlabs_connector import AgentConnectorProtocol, ElevenLabsConnector
from voicecaller.services.event_reconciler import EventReconciler
from voicecaller.services.outbound_dialer import OutboundDialer
from voicecaller.services.storage import SqlAlchemyStorage, StorageProtocol
from voicecaller.services.twilio_mock import MockTwilioService
from voicecaller.services.twilio_protocol import TwilioServiceProtocol
from voicecaller.services.twilio_service import TwilioService


@lru_cache
def get_storage() -> StorageProtocol:
    """Get the durable store bound to the application database."""
    from voicecaller.db.session import AsyncSessionLocal

    return SqlAlchemyStorage(AsyncSessionLocal)


@lru_cache
def get_twilio_service() -> TwilioServiceProtocol:
    """
    Get Twilio service instance.

    Returns MockTwilioService in development or TwilioService in production,
    based on the TWILIO_USE_MOCK setting.
    """
    settings = get_settings()

    if settings.twilio_use_mock:
        return MockTwilioService()
    else:
        return TwilioService()


@lru_cache
def get_agent_connector() -> AgentConnectorProtocol | None:
    """Get the ElevenLabs connector, or None when no API key is configured."""
    settings = get_settings()
    if not settings.elevenlabs_api_key:
        return None
    return ElevenLabsConnector(
        api_key=settings.elevenlabs_api_key,
        api_base=settings.elevenlabs_api_base,
        timeout_seconds=settings.elevenlabs_request_timeout_seconds,
    )


@lru_cache
def get_session_registry() -> SessionRegistry:
    return SessionRegistry()


@lru_cache
def get_pending_calls() -> PendingCallStore:
    return PendingCallStore(ttl_seconds=get_settings().pending_call_ttl_seconds)


@lru_cache
def get_event_reconciler() -> EventReconciler:
    settings = get_settings()
    return EventReconciler(
        get_storage(),
        success_threshold_seconds=settings.success_threshold_seconds,
        dedupe=settings.status_webhook_dedupe,
    )


@lru_cache
def get_call_bridge_manager() -> CallBridgeManager:
    """Get the process-wide call bridge manager."""
    settings = get_settings()
    registry = get_session_registry()
    initiator = AgentSessionInitiator(
        storage=get_storage(),
        connector=get_agent_connector(),
        registry=registry,
        agent_id=settings.elevenlabs_agent_id,
    )
    return CallBridgeManager(
        registry=registry,
        pending_calls=get_pending_calls(),
        initiator=initiator,
        reconciler=get_event_reconciler(),
    )


@lru_cache
def get_outbound_dialer() -> OutboundDialer:
    return OutboundDialer(
        storage=get_storage(),
        telephony=get_twilio_service(),
        pending_calls=get_pending_calls(),
        settings=get_settings(),
    )


@lru_cache
def get_campaign_driver() -> CampaignDriver:
    settings = get_settings()
    return CampaignDriver(
        storage=get_storage(),
        dialer=get_outbound_dialer(),
        pacing_seconds=settings.dial_pacing_seconds,
        poll_interval_seconds=settings.completion_poll_seconds,
    )
