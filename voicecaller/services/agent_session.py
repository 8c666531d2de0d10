"""Agent session initiator - opens one configured agent session per call."""

import structlog

from voicecaller.exceptions import AgentSessionError, ConfigurationError
from voicecaller.services.agent_messages import initiation_message
from voicecaller.services.call_registry import (
    CallSession,
    PendingCallParams,
    SessionRegistry,
    TelephonySocket,
)
from voicecaller.services.elevenlabs_connector import AgentConnectorProtocol
from voicecaller.services.storage import StorageProtocol

logger = structlog.get_logger(__name__)


class AgentSessionInitiator:
    """
    Opens and configures the speech-agent leg of a call.

    One signed-URL round trip, one socket open and one initiation message;
    everything after that is driven by the bridge's message loop. On
    success the new call session is registered; on any failure nothing is
    registered and the caller is expected to close the telephony leg.
    """

    def __init__(
        self,
        storage: StorageProtocol,
        connector: AgentConnectorProtocol | None,
        registry: SessionRegistry,
        agent_id: str,
    ):
        self._storage = storage
        self._connector = connector
        self._registry = registry
        self._agent_id = agent_id

    async def open_session(
        self,
        *,
        stream_sid: str,
        call_sid: str,
        telephony_socket: TelephonySocket,
        params: PendingCallParams,
    ) -> CallSession:
        """
        Negotiate, open and configure an agent session for one call.

        Raises:
            ConfigurationError: If agent credentials are missing
            AgentSessionError: If the campaign is unknown or the agent cannot be reached
        """
        if self._connector is None or not self._agent_id:
            raise ConfigurationError(["ELEVENLABS_API_KEY", "ELEVENLABS_AGENT_ID"])

        campaign = await self._storage.get_campaign(params.campaign_id)
        if campaign is None:
            raise AgentSessionError(f"Campaign {params.campaign_id} not found")

        knowledge_base = await self._storage.get_knowledge_base_by_campaign(campaign.id)
        document_ids = [kb.elevenlabs_doc_id for kb in knowledge_base if kb.elevenlabs_doc_id]

        signed_url = await self._connector.get_signed_url(self._agent_id)
        agent_socket = await self._connector.connect(signed_url)

        message = initiation_message(
            system_persona=campaign.system_persona,
            first_message=campaign.first_prompt,
            knowledge_base_ids=document_ids,
            dynamic_variables={"first_name": params.first_name},
            voice_id=campaign.selected_voice_id,
        )
        try:
            await agent_socket.send(message)
        except Exception as exc:
            try:
                await agent_socket.close()
            except Exception:
                pass  # Connection might already be closed
            raise AgentSessionError(f"Failed to configure agent session: {exc}") from exc

        session = CallSession(
            stream_sid=stream_sid,
            call_sid=call_sid,
            campaign_id=campaign.id,
            telephony_socket=telephony_socket,
            agent_socket=agent_socket,
            call_log_id=params.call_log_id,
        )
        try:
            self._registry.register(session)
        except Exception:
            await agent_socket.close()
            raise

        logger.info(
            "agent_session_opened",
            stream_sid=stream_sid,
            call_sid=call_sid,
            campaign_id=campaign.id,
            knowledge_base_documents=len(document_ids),
            is_test_call=params.is_test_call,
        )
        return session
