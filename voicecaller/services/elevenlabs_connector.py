"""ElevenLabs Conversational AI connection negotiation."""

from typing import Protocol

import httpx
import structlog
import websockets

from voicecaller.exceptions import AgentSessionError
from voicecaller.services.call_registry import AgentSocket

logger = structlog.get_logger(__name__)


class AgentConnectorProtocol(Protocol):
    """Protocol for opening speech-agent sessions."""

    async def get_signed_url(self, agent_id: str) -> str:
        """
        Obtain a short-lived, single-use connection URL for an agent.

        Raises:
            AgentSessionError: On a non-success response
        """
        ...

    async def connect(self, url: str) -> AgentSocket:
        """
        Open a duplex session to a signed URL.

        Raises:
            AgentSessionError: If the socket cannot be opened
        """
        ...


class ElevenLabsConnector(AgentConnectorProtocol):
    """Talks to the ElevenLabs HTTP API and opens conversation WebSockets."""

    def __init__(
        self,
        api_key: str,
        api_base: str = "https://api.elevenlabs.io",
        timeout_seconds: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._api_key = api_key
        self._api_base = api_base.rstrip("/")
        self._timeout = timeout_seconds
        self._transport = transport

    async def get_signed_url(self, agent_id: str) -> str:
        url = f"{self._api_base}/v1/convai/conversation/get_signed_url"
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.get(
                    url,
                    params={"agent_id": agent_id},
                    headers={"xi-api-key": self._api_key},
                )
        except httpx.HTTPError as exc:
            raise AgentSessionError(f"Signed URL request failed: {exc}") from exc

        if not response.is_success:
            logger.error(
                "elevenlabs_signed_url_rejected",
                status_code=response.status_code,
                body=response.text[:200],
            )
            raise AgentSessionError(f"Failed to get signed URL: {response.status_code}")

        signed_url = response.json().get("signed_url")
        if not signed_url:
            raise AgentSessionError("No signed_url in response")
        return signed_url

    async def connect(self, url: str) -> AgentSocket:
        try:
            return await websockets.connect(url, max_size=16 * 1024 * 1024, close_timeout=5)
        except (OSError, websockets.InvalidHandshake) as exc:
            raise AgentSessionError(f"Agent WebSocket connection failed: {exc}") from exc
