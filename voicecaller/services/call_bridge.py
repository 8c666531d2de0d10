"""Call bridge - relays audio between a Twilio media stream and an agent session."""

import asyncio
from enum import Enum

import structlog
from starlette.websockets import WebSocketDisconnect
from websockets.exceptions import ConnectionClosed

from voicecaller.exceptions import AgentSessionError, ConfigurationError
from voicecaller.services.agent_messages import (
    AgentAudio,
    Interruption,
    Ping,
    decode_agent_message,
    find_conversation_id,
    pong_message,
    user_audio_message,
)
from voicecaller.services.agent_session import AgentSessionInitiator
from voicecaller.services.call_registry import (
    CallSession,
    PendingCallStore,
    SessionRegistry,
    TelephonySocket,
    pending_call_key,
)
from voicecaller.services.event_reconciler import EventReconciler
from voicecaller.services.media_stream import (
    StreamEvent,
    TelephonyFrame,
    clear_frame,
    media_frame,
    parse_frame,
)

logger = structlog.get_logger(__name__)

CALL_KEY_PARAMETER = "callKey"


class BridgeState(str, Enum):
    """Lifecycle of one bridged call."""

    AWAITING_STREAM_START = "awaiting_stream_start"
    AWAITING_AGENT_SESSION = "awaiting_agent_session"
    RELAYING = "relaying"
    CLOSED = "closed"


class CallBridge:
    """
    Per-call duplex relay.

    States:
        AWAITING_STREAM_START -> AWAITING_AGENT_SESSION -> RELAYING -> CLOSED

    CLOSED is reachable from every state and always removes the session
    from the registry and closes both sockets. Frames on each leg are
    forwarded one at a time in arrival order.
    """

    def __init__(
        self,
        campaign_id: int,
        telephony_socket: TelephonySocket,
        registry: SessionRegistry,
        pending_calls: PendingCallStore,
        initiator: AgentSessionInitiator,
        reconciler: EventReconciler,
    ):
        self.campaign_id = campaign_id
        self.telephony_socket = telephony_socket
        self.state = BridgeState.AWAITING_STREAM_START
        self.session: CallSession | None = None
        self.stream_sid: str | None = None
        self.call_sid: str | None = None
        self.conversation_id_handled = False

        self._registry = registry
        self._pending_calls = pending_calls
        self._initiator = initiator
        self._reconciler = reconciler

    async def run(self) -> None:
        """Drive the call until either leg closes."""
        try:
            start = await self._await_stream_start()
            if start is None:
                return

            params = self._pending_calls.claim(self._call_key(start))
            if params is None:
                logger.warning(
                    "stream_started_without_pending_call",
                    campaign_id=self.campaign_id,
                    call_sid=self.call_sid,
                )
                return

            self.state = BridgeState.AWAITING_AGENT_SESSION
            try:
                self.session = await self._initiator.open_session(
                    stream_sid=self.stream_sid,
                    call_sid=self.call_sid,
                    telephony_socket=self.telephony_socket,
                    params=params,
                )
            except (AgentSessionError, ConfigurationError) as exc:
                logger.error(
                    "agent_session_failed",
                    campaign_id=self.campaign_id,
                    call_sid=self.call_sid,
                    error=str(exc),
                )
                return

            self.state = BridgeState.RELAYING
            await self._relay()
        finally:
            await self.close()

    async def close(self) -> None:
        """Enter CLOSED. Idempotent."""
        if self.state == BridgeState.CLOSED:
            return
        self.state = BridgeState.CLOSED

        if self.session is not None:
            if self._registry.get(self.session.stream_sid) is self.session:
                self._registry.remove(self.session.stream_sid)
            await self.session.close()
        else:
            try:
                await self.telephony_socket.close()
            except Exception:
                pass  # Connection might already be closed

        logger.info("call_bridge_closed", campaign_id=self.campaign_id, stream_sid=self.stream_sid)

    def _call_key(self, start: TelephonyFrame) -> str:
        call_key = start.custom_parameters.get(CALL_KEY_PARAMETER)
        return call_key or pending_call_key(self.campaign_id)

    async def _receive_frame(self) -> TelephonyFrame | None:
        try:
            text = await self.telephony_socket.receive_text()
        except WebSocketDisconnect:
            return None
        return parse_frame(text)

    async def _await_stream_start(self) -> TelephonyFrame | None:
        while True:
            frame = await self._receive_frame()
            if frame is None or frame.event == StreamEvent.STOP:
                return None
            if frame.event == StreamEvent.START:
                self.stream_sid = frame.stream_sid
                self.call_sid = frame.call_sid
                logger.info(
                    "media_stream_started",
                    campaign_id=self.campaign_id,
                    stream_sid=self.stream_sid,
                    call_sid=self.call_sid,
                )
                return frame

    async def _relay(self) -> None:
        telephony_task = asyncio.create_task(self._pump_telephony())
        agent_task = asyncio.create_task(self._pump_agent())
        done, pending = await asyncio.wait(
            {telephony_task, agent_task},
            return_when=asyncio.FIRST_COMPLETED,
        )
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)

        for task in done:
            exc = task.exception()
            if exc is not None:
                logger.error(
                    "call_bridge_leg_failed",
                    call_sid=self.call_sid,
                    error=repr(exc),
                )

    async def _pump_telephony(self) -> None:
        """Caller audio -> agent."""
        agent_socket = self.session.agent_socket
        while True:
            frame = await self._receive_frame()
            if frame is None or frame.event == StreamEvent.STOP:
                logger.info("media_stream_stopped", stream_sid=self.stream_sid)
                return
            if frame.event == StreamEvent.MEDIA and frame.payload:
                try:
                    await agent_socket.send(user_audio_message(frame.payload))
                except ConnectionClosed:
                    return

    async def _pump_agent(self) -> None:
        """Agent audio and control -> caller."""
        agent_socket = self.session.agent_socket
        try:
            async for raw in agent_socket:
                await self._handle_agent_frame(raw)
        except ConnectionClosed as exc:
            logger.info("agent_socket_closed", call_sid=self.call_sid, reason=str(exc))

    async def _handle_agent_frame(self, raw: str | bytes) -> None:
        message = decode_agent_message(raw)

        if isinstance(message, AgentAudio):
            await self.telephony_socket.send_text(media_frame(self.stream_sid, message.audio_base64))
            return

        if isinstance(message, Interruption):
            await self.telephony_socket.send_text(clear_frame(self.stream_sid))
            return

        if isinstance(message, Ping):
            await self.session.agent_socket.send(pong_message(message.event_id))
            return

        # One lookup per call; later id-bearing messages are ignored
        if self.conversation_id_handled or find_conversation_id(message.raw) is None:
            return
        await self._reconciler.handle_agent_message(self.campaign_id, self.call_sid, message)
        self.conversation_id_handled = True


class CallBridgeManager:
    """
    Owns the per-process call state and hands each media stream to a bridge.

    Constructed once at startup and shared by the WebSocket route.
    """

    def __init__(
        self,
        registry: SessionRegistry,
        pending_calls: PendingCallStore,
        initiator: AgentSessionInitiator,
        reconciler: EventReconciler,
    ):
        self.registry = registry
        self.pending_calls = pending_calls
        self.initiator = initiator
        self.reconciler = reconciler

    def create_bridge(self, campaign_id: int, telephony_socket: TelephonySocket) -> CallBridge:
        return CallBridge(
            campaign_id=campaign_id,
            telephony_socket=telephony_socket,
            registry=self.registry,
            pending_calls=self.pending_calls,
            initiator=self.initiator,
            reconciler=self.reconciler,
        )

    async def handle_stream(self, campaign_id: int, telephony_socket: TelephonySocket) -> CallBridge:
        """Run one accepted media stream to completion."""
        bridge = self.create_bridge(campaign_id, telephony_socket)
        await bridge.run()
        return bridge
