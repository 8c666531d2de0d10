"""Global test fixtures for VoiceCaller."""

import asyncio
import json
from collections.abc import AsyncIterator, Awaitable, Callable
from pathlib import Path
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool
from starlette.websockets import WebSocketDisconnect

from voicecaller.config import Settings
from voicecaller.db.base import Base
from voicecaller.models.campaign import Campaign
from voicecaller.services.agent_session import AgentSessionInitiator
from voicecaller.services.call_bridge import CallBridgeManager
from voicecaller.services.call_registry import PendingCallStore, SessionRegistry
from voicecaller.services.campaign_driver import CampaignDriver
from voicecaller.services.event_reconciler import EventReconciler
from voicecaller.services.outbound_dialer import OutboundDialer
from voicecaller.services.storage import SqlAlchemyStorage
from voicecaller.services.twilio_mock import MockTwilioService

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


# Fakes


class FakeTelephonySocket:
    """
    Stand-in for the Twilio media stream WebSocket.

    Frames are queued with :meth:`push`; :meth:`disconnect` makes the
    next receive raise ``WebSocketDisconnect`` like Starlette does.
    """

    def __init__(self, frames: list[dict[str, Any]] | None = None):
        self._incoming: asyncio.Queue[str | None] = asyncio.Queue()
        self.sent: list[dict[str, Any]] = []
        self.closed = False
        for frame in frames or []:
            self.push(frame)

    def push(self, frame: dict[str, Any] | str) -> None:
        text = frame if isinstance(frame, str) else json.dumps(frame)
        self._incoming.put_nowait(text)

    def disconnect(self) -> None:
        self._incoming.put_nowait(None)

    async def receive_text(self) -> str:
        item = await self._incoming.get()
        if item is None:
            raise WebSocketDisconnect(code=1000)
        return item

    async def send_text(self, data: str) -> None:
        self.sent.append(json.loads(data))

    async def close(self, code: int = 1000) -> None:
        self.closed = True


class FakeAgentSocket:
    """
    Stand-in for the ElevenLabs conversation WebSocket.

    Iteration yields queued messages and ends once the socket is closed
    or :meth:`finish` is called. A queued exception is raised in place.
    """

    def __init__(self, messages: list[dict[str, Any]] | None = None, fail_send: bool = False):
        self._incoming: asyncio.Queue[Any] = asyncio.Queue()
        self.sent: list[dict[str, Any]] = []
        self.closed = False
        self.fail_send = fail_send
        for message in messages or []:
            self.push(message)

    def push(self, message: dict[str, Any]) -> None:
        self._incoming.put_nowait(json.dumps(message))

    def raise_error(self, exc: BaseException) -> None:
        self._incoming.put_nowait(exc)

    def finish(self) -> None:
        self._incoming.put_nowait(None)

    async def send(self, message: str) -> None:
        if self.fail_send:
            raise RuntimeError("agent socket rejected message")
        self.sent.append(json.loads(message))

    async def close(self) -> None:
        self.closed = True
        self._incoming.put_nowait(None)

    def __aiter__(self) -> "FakeAgentSocket":
        return self

    async def __anext__(self) -> str:
        item = await self._incoming.get()
        if item is None:
            raise StopAsyncIteration
        if isinstance(item, BaseException):
            raise item
        return item


class FakeAgentConnector:
    """Hands out one prepared agent socket and records every request."""

    def __init__(
        self,
        socket: FakeAgentSocket | None = None,
        signed_url: str = "wss://agent.test/v1/convai/conversation?token=signed",
        error: Exception | None = None,
    ):
        self.socket = socket or FakeAgentSocket()
        self.signed_url = signed_url
        self.error = error
        self.signed_url_requests: list[str] = []
        self.connected_urls: list[str] = []

    async def get_signed_url(self, agent_id: str) -> str:
        self.signed_url_requests.append(agent_id)
        if self.error is not None:
            raise self.error
        return self.signed_url

    async def connect(self, url: str) -> FakeAgentSocket:
        self.connected_urls.append(url)
        return self.socket


def start_frame(
    stream_sid: str = "MZ0001",
    call_sid: str = "CA0001",
    custom_parameters: dict[str, str] | None = None,
) -> dict[str, Any]:
    """Twilio ``start`` frame."""
    return {
        "event": "start",
        "sequenceNumber": "1",
        "start": {
            "streamSid": stream_sid,
            "callSid": call_sid,
            "accountSid": "AC0001",
            "tracks": ["inbound"],
            "customParameters": custom_parameters or {},
            "mediaFormat": {"encoding": "audio/x-mulaw", "sampleRate": 8000, "channels": 1},
        },
        "streamSid": stream_sid,
    }


def media_frame_in(payload: str, stream_sid: str = "MZ0001") -> dict[str, Any]:
    """Twilio ``media`` frame carrying caller audio."""
    return {
        "event": "media",
        "streamSid": stream_sid,
        "media": {"track": "inbound", "chunk": "1", "timestamp": "5", "payload": payload},
    }


def stop_frame(stream_sid: str = "MZ0001", call_sid: str = "CA0001") -> dict[str, Any]:
    """Twilio ``stop`` frame."""
    return {"event": "stop", "streamSid": stream_sid, "stop": {"callSid": call_sid}}


async def _eventually(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


# Fixtures


@pytest.fixture
def anyio_backend() -> str:
    """Use asyncio for async tests."""
    return "asyncio"


@pytest.fixture
def eventually() -> Callable[..., Awaitable[None]]:
    """Wait for a condition driven by a background task."""
    return _eventually


@pytest.fixture
def frames() -> dict[str, Callable[..., dict[str, Any]]]:
    """Builders for inbound Twilio media stream frames."""
    return {"start": start_frame, "media": media_frame_in, "stop": stop_frame}


@pytest.fixture
def telephony_socket_factory() -> type[FakeTelephonySocket]:
    return FakeTelephonySocket


@pytest.fixture
def agent_socket() -> FakeAgentSocket:
    return FakeAgentSocket()


@pytest.fixture
def agent_connector(agent_socket: FakeAgentSocket) -> FakeAgentConnector:
    return FakeAgentConnector(socket=agent_socket)


@pytest.fixture
def agent_connector_factory() -> type[FakeAgentConnector]:
    return FakeAgentConnector


@pytest.fixture
def agent_socket_factory() -> type[FakeAgentSocket]:
    return FakeAgentSocket


@pytest.fixture
async def session_factory(tmp_path) -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    """Fresh file-backed database per test, one connection per session."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        connect_args={"check_same_thread": False},
        poolclass=NullPool,
    )
    async with engine.begin() as connection:
        await connection.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(bind=engine, expire_on_commit=False, class_=AsyncSession)

    async with engine.begin() as connection:
        await connection.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def storage(session_factory: async_sessionmaker[AsyncSession]) -> SqlAlchemyStorage:
    return SqlAlchemyStorage(session_factory)


@pytest.fixture
async def campaign(storage: SqlAlchemyStorage) -> Campaign:
    """Campaign with a templated first message and a knowledge base document."""
    created = await storage.create_campaign(
        name="Spring renewals",
        first_prompt="Hi {{first_name}}, this is Ava from Northwind Insurance.",
        system_persona="You are Ava, a friendly renewals assistant. Keep answers short.",
        selected_voice_id="voice-ava",
    )
    await storage.create_knowledge_base_file(
        campaign_id=created.id,
        filename="policy-faq.pdf",
        file_url="https://files.test/policy-faq.pdf",
        elevenlabs_doc_id="doc-faq-1",
    )
    return created


@pytest.fixture
def dial_settings() -> Settings:
    """Settings with every credential a dial needs."""
    return Settings(
        _env_file=None,
        public_base_url="https://voice.example.com",
        twilio_use_mock=True,
        twilio_phone_number="+15550000000",
        elevenlabs_api_key="xi-test-key",
        elevenlabs_agent_id="agent-123",
    )


@pytest.fixture
def twilio_mock() -> MockTwilioService:
    return MockTwilioService()


@pytest.fixture
def registry() -> SessionRegistry:
    return SessionRegistry()


@pytest.fixture
def pending_calls() -> PendingCallStore:
    return PendingCallStore(ttl_seconds=300)


@pytest.fixture
def reconciler(storage: SqlAlchemyStorage) -> EventReconciler:
    return EventReconciler(storage, success_threshold_seconds=3, dedupe=True)


@pytest.fixture
def dialer(
    storage: SqlAlchemyStorage,
    twilio_mock: MockTwilioService,
    pending_calls: PendingCallStore,
    dial_settings: Settings,
) -> OutboundDialer:
    return OutboundDialer(
        storage=storage,
        telephony=twilio_mock,
        pending_calls=pending_calls,
        settings=dial_settings,
    )


@pytest.fixture
def driver_polls() -> list[float]:
    """Poll sleeps requested by the campaign driver fixture."""
    return []


@pytest.fixture
def campaign_driver(
    storage: SqlAlchemyStorage,
    dialer: OutboundDialer,
    driver_polls: list[float],
) -> CampaignDriver:
    """Driver that dials without pacing and then waits until cancelled."""

    async def sleep(seconds: float) -> None:
        if seconds == 0:
            return
        driver_polls.append(seconds)
        await asyncio.Event().wait()

    return CampaignDriver(
        storage=storage,
        dialer=dialer,
        pacing_seconds=0,
        poll_interval_seconds=60,
        sleep=sleep,
    )


@pytest.fixture
def initiator(
    storage: SqlAlchemyStorage,
    agent_connector: FakeAgentConnector,
    registry: SessionRegistry,
) -> AgentSessionInitiator:
    return AgentSessionInitiator(
        storage=storage,
        connector=agent_connector,
        registry=registry,
        agent_id="agent-123",
    )


@pytest.fixture
def bridge_manager(
    registry: SessionRegistry,
    pending_calls: PendingCallStore,
    initiator: AgentSessionInitiator,
    reconciler: EventReconciler,
) -> CallBridgeManager:
    return CallBridgeManager(
        registry=registry,
        pending_calls=pending_calls,
        initiator=initiator,
        reconciler=reconciler,
    )


@pytest.fixture
async def client(
    storage: SqlAlchemyStorage,
    dialer: OutboundDialer,
    reconciler: EventReconciler,
    campaign_driver: CampaignDriver,
    bridge_manager: CallBridgeManager,
) -> AsyncIterator[AsyncClient]:
    """Create async HTTP client wired to the per-test services."""
    from voicecaller.main import app
    from voicecaller.services import dependencies

    app.dependency_overrides.update(
        {
            dependencies.get_storage: lambda: storage,
            dependencies.get_outbound_dialer: lambda: dialer,
            dependencies.get_event_reconciler: lambda: reconciler,
            dependencies.get_campaign_driver: lambda: campaign_driver,
            dependencies.get_call_bridge_manager: lambda: bridge_manager,
        }
    )

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()
    tasks = list(campaign_driver._tasks)
    for task in tasks:
        task.cancel()
    await asyncio.gather(*tasks, return_exceptions=True)


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Auto-apply test markers based on directory."""
    for item in items:
        path = Path(str(item.fspath))
        parts = path.parts
        if "tests" in parts:
            if "unit" in parts:
                item.add_marker(pytest.mark.unit)
            elif "e2e" in parts:
                item.add_marker(pytest.mark.e2e)
            elif "integration" in parts:
                item.add_marker(pytest.mark.integration)
