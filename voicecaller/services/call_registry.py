"""In-memory registries for live call sessions and pending call parameters."""

import asyncio
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Protocol

import structlog

from voicecaller.exceptions import SessionAlreadyRegisteredError

logger = structlog.get_logger(__name__)


class TelephonySocket(Protocol):
    """The Twilio side of a bridged call (a FastAPI WebSocket in production)."""

    async def receive_text(self) -> str: ...

    async def send_text(self, data: str) -> None: ...

    async def close(self, code: int = 1000) -> None: ...


class AgentSocket(Protocol):
    """The speech-agent side of a bridged call (a websockets client connection)."""

    async def send(self, message: str) -> None: ...

    async def close(self) -> None: ...

    def __aiter__(self) -> Any: ...


@dataclass
class CallSession:
    """
    Runtime record of one bridged call.

    Owned by the bridge while the media stream is connected and dropped
    from the registry as soon as either socket closes.
    """

    stream_sid: str
    call_sid: str
    campaign_id: int
    telephony_socket: TelephonySocket
    agent_socket: AgentSocket | None = None
    call_log_id: int | None = None
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    _closed: bool = field(default=False, repr=False)

    @property
    def closed(self) -> bool:
        return self._closed

    async def close(self) -> None:
        """Close both legs. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True

        if self.agent_socket is not None:
            try:
                await self.agent_socket.close()
            except Exception:
                pass  # Connection might already be closed

        try:
            await self.telephony_socket.close()
        except Exception:
            pass  # Connection might already be closed


class SessionRegistry:
    """Maps a telephony stream SID to its live call session."""

    def __init__(self) -> None:
        self._sessions: dict[str, CallSession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, stream_sid: object) -> bool:
        return stream_sid in self._sessions

    def register(self, session: CallSession) -> None:
        """
        Register a session.

        Raises:
            SessionAlreadyRegisteredError: If the stream already has a session
        """
        if session.stream_sid in self._sessions:
            raise SessionAlreadyRegisteredError(session.stream_sid)
        self._sessions[session.stream_sid] = session
        logger.info(
            "call_session_registered",
            stream_sid=session.stream_sid,
            call_sid=session.call_sid,
            active_sessions=len(self._sessions),
        )

    def get(self, stream_sid: str) -> CallSession | None:
        return self._sessions.get(stream_sid)

    def remove(self, stream_sid: str) -> CallSession | None:
        """Remove a session. Removing an unknown stream is a no-op."""
        session = self._sessions.pop(stream_sid, None)
        if session:
            logger.info(
                "call_session_removed",
                stream_sid=stream_sid,
                active_sessions=len(self._sessions),
            )
        return session

    def active_sessions(self) -> list[CallSession]:
        return list(self._sessions.values())


@dataclass
class PendingCallParams:
    """Call-setup data stashed between dialing and the media stream connecting."""

    campaign_id: int
    first_name: str = ""
    is_test_call: bool = False
    lead_id: int | None = None
    call_log_id: int | None = None


def pending_call_key(campaign_id: int, call_log_id: int | None = None) -> str:
    """Key shared by the dial step and the stream start frame."""
    if call_log_id is None:
        return str(campaign_id)
    return f"{campaign_id}:{call_log_id}"


class PendingCallStore:
    """
    Short-lived, read-once store of pending call parameters.

    Entries that are never claimed (the dial failed or the callee never
    answered) expire after ``ttl_seconds``.
    """

    def __init__(
        self,
        ttl_seconds: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, tuple[float, PendingCallParams]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def put(self, key: str, params: PendingCallParams) -> None:
        self.purge_expired()
        self._entries[key] = (self._clock() + self.ttl_seconds, params)

    def claim(self, key: str) -> PendingCallParams | None:
        """Return and delete the entry for ``key``; None if absent or expired."""
        entry = self._entries.pop(key, None)
        if entry is None:
            return None
        expires_at, params = entry
        if expires_at <= self._clock():
            logger.info("pending_call_expired", key=key)
            return None
        return params

    def discard(self, key: str) -> None:
        self._entries.pop(key, None)

    def purge_expired(self) -> int:
        """Drop expired entries and return how many were removed."""
        now = self._clock()
        expired = [key for key, (expires_at, _) in self._entries.items() if expires_at <= now]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.info("pending_calls_purged", count=len(expired))
        return len(expired)

    async def run_sweeper(self, interval_seconds: float) -> None:
        """Purge expired entries forever; cancel the task to stop."""
        while True:
            await asyncio.sleep(interval_seconds)
            self.purge_expired()
