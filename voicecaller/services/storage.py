"""Durable store used by the call-bridging core."""

from typing import Any, Protocol

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from voicecaller.db.models import CallLogDB, CampaignDB, KnowledgeBaseFileDB, LeadDB
from voicecaller.models.call_log import CallLog
from voicecaller.models.campaign import Campaign, KnowledgeBaseFile
from voicecaller.models.lead import Lead


class StorageProtocol(Protocol):
    """Protocol for durable store implementations."""

    async def get_campaign(self, campaign_id: int) -> Campaign | None: ...

    async def update_campaign(self, campaign_id: int, **fields: Any) -> Campaign | None: ...

    async def increment_campaign_counters(
        self,
        campaign_id: int,
        completed: int = 0,
        successful: int = 0,
        failed: int = 0,
    ) -> None:
        """Atomically add deltas to the aggregate call counters."""
        ...

    async def get_leads_by_campaign(self, campaign_id: int) -> list[Lead]: ...

    async def update_lead(self, lead_id: int, **fields: Any) -> Lead | None: ...

    async def create_call_log(self, **fields: Any) -> CallLog: ...

    async def update_call_log(self, call_log_id: int, **fields: Any) -> CallLog | None: ...

    async def get_call_logs_by_campaign(self, campaign_id: int) -> list[CallLog]: ...

    async def get_all_call_logs(self) -> list[CallLog]: ...

    async def get_call_log_by_provider_call_id(self, provider_call_id: str) -> CallLog | None: ...

    async def get_knowledge_base_by_campaign(self, campaign_id: int) -> list[KnowledgeBaseFile]: ...


def _campaign_from_row(row: CampaignDB) -> Campaign:
    return Campaign(
        id=row.id,
        name=row.name,
        first_prompt=row.first_prompt,
        system_persona=row.system_persona,
        selected_voice_id=row.selected_voice_id,
        status=row.status,
        total_leads=row.total_leads,
        completed_calls=row.completed_calls,
        successful_calls=row.successful_calls,
        failed_calls=row.failed_calls,
        created_at=row.created_at,
    )


def _lead_from_row(row: LeadDB) -> Lead:
    return Lead(
        id=row.id,
        campaign_id=row.campaign_id,
        contact_no=row.contact_no,
        first_name=row.first_name,
        last_name=row.last_name,
        status=row.status,
        call_duration=row.call_duration,
        created_at=row.created_at,
    )


def _call_log_from_row(row: CallLogDB) -> CallLog:
    return CallLog(
        id=row.id,
        campaign_id=row.campaign_id,
        lead_id=row.lead_id,
        phone_number=row.phone_number,
        status=row.status,
        duration=row.duration,
        provider_call_id=row.provider_call_id,
        agent_conversation_id=row.agent_conversation_id,
        created_at=row.created_at,
    )


def _knowledge_base_from_row(row: KnowledgeBaseFileDB) -> KnowledgeBaseFile:
    return KnowledgeBaseFile(
        id=row.id,
        campaign_id=row.campaign_id,
        filename=row.filename,
        file_url=row.file_url,
        elevenlabs_doc_id=row.elevenlabs_doc_id,
        uploaded_at=row.uploaded_at,
    )


class SqlAlchemyStorage(StorageProtocol):
    """
    Store backed by the SQLAlchemy async ORM.

    Each operation runs in its own short session and returns detached
    domain dataclasses, so callers never hold ORM state across awaits.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    # Campaigns

    async def create_campaign(
        self,
        name: str,
        first_prompt: str,
        system_persona: str,
        selected_voice_id: str | None = None,
        **fields: Any,
    ) -> Campaign:
        async with self._session_factory() as session:
            row = CampaignDB(
                name=name,
                first_prompt=first_prompt,
                system_persona=system_persona,
                selected_voice_id=selected_voice_id,
                **fields,
            )
            session.add(row)
            await session.commit()
            await session.refresh(row)
            return _campaign_from_row(row)

    async def get_campaign(self, campaign_id: int) -> Campaign | None:
        async with self._session_factory() as session:
            row = await session.get(CampaignDB, campaign_id)
            return _campaign_from_row(row) if row else None

    async def update_campaign(self, campaign_id: int, **fields: Any) -> Campaign | None:
        async with self._session_factory() as session:
            await session.execute(
                update(CampaignDB).where(CampaignDB.id == campaign_id).values(**fields)
            )
            await session.commit()
            row = await session.get(CampaignDB, campaign_id, populate_existing=True)
            return _campaign_from_row(row) if row else None

    async def increment_campaign_counters(
        self,
        campaign_id: int,
        completed: int = 0,
        successful: int = 0,
        failed: int = 0,
    ) -> None:
        deltas: dict[str, Any] = {}
        if completed:
            deltas["completed_calls"] = CampaignDB.completed_calls + completed
        if successful:
            deltas["successful_calls"] = CampaignDB.successful_calls + successful
        if failed:
            deltas["failed_calls"] = CampaignDB.failed_calls + failed
        if not deltas:
            return

        async with self._session_factory() as session:
            await session.execute(
                update(CampaignDB).where(CampaignDB.id == campaign_id).values(**deltas)
            )
            await session.commit()

    # Leads

    async def create_lead(
        self,
        campaign_id: int,
        contact_no: str,
        first_name: str = "",
        last_name: str = "",
        **fields: Any,
    ) -> Lead:
        async with self._session_factory() as session:
            row = LeadDB(
                campaign_id=campaign_id,
                contact_no=contact_no,
                first_name=first_name,
                last_name=last_name,
                **fields,
            )
            session.add(row)
            await session.commit()
            await session.refresh(row)
            return _lead_from_row(row)

    async def get_leads_by_campaign(self, campaign_id: int) -> list[Lead]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(LeadDB).where(LeadDB.campaign_id == campaign_id).order_by(LeadDB.id)
            )
            return [_lead_from_row(row) for row in result.scalars()]

    async def update_lead(self, lead_id: int, **fields: Any) -> Lead | None:
        async with self._session_factory() as session:
            await session.execute(update(LeadDB).where(LeadDB.id == lead_id).values(**fields))
            await session.commit()
            row = await session.get(LeadDB, lead_id, populate_existing=True)
            return _lead_from_row(row) if row else None

    # Call logs

    async def create_call_log(self, **fields: Any) -> CallLog:
        async with self._session_factory() as session:
            row = CallLogDB(**fields)
            session.add(row)
            await session.commit()
            await session.refresh(row)
            return _call_log_from_row(row)

    async def update_call_log(self, call_log_id: int, **fields: Any) -> CallLog | None:
        async with self._session_factory() as session:
            await session.execute(
                update(CallLogDB).where(CallLogDB.id == call_log_id).values(**fields)
            )
            await session.commit()
            row = await session.get(CallLogDB, call_log_id, populate_existing=True)
            return _call_log_from_row(row) if row else None

    async def get_call_logs_by_campaign(self, campaign_id: int) -> list[CallLog]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(CallLogDB)
                .where(CallLogDB.campaign_id == campaign_id)
                .order_by(CallLogDB.id)
            )
            return [_call_log_from_row(row) for row in result.scalars()]

    async def get_all_call_logs(self) -> list[CallLog]:
        async with self._session_factory() as session:
            result = await session.execute(select(CallLogDB).order_by(CallLogDB.id))
            return [_call_log_from_row(row) for row in result.scalars()]

    async def get_call_log_by_provider_call_id(self, provider_call_id: str) -> CallLog | None:
        async with self._session_factory() as session:
            result = await session.execute(
                select(CallLogDB)
                .where(CallLogDB.provider_call_id == provider_call_id)
                .order_by(CallLogDB.id.desc())
                .limit(1)
            )
            row = result.scalar_one_or_none()
            return _call_log_from_row(row) if row else None

    # Knowledge base

    async def create_knowledge_base_file(
        self,
        campaign_id: int,
        filename: str,
        file_url: str,
        elevenlabs_doc_id: str | None = None,
    ) -> KnowledgeBaseFile:
        async with self._session_factory() as session:
            row = KnowledgeBaseFileDB(
                campaign_id=campaign_id,
                filename=filename,
                file_url=file_url,
                elevenlabs_doc_id=elevenlabs_doc_id,
            )
            session.add(row)
            await session.commit()
            await session.refresh(row)
            return _knowledge_base_from_row(row)

    async def get_knowledge_base_by_campaign(self, campaign_id: int) -> list[KnowledgeBaseFile]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(KnowledgeBaseFileDB)
                .where(KnowledgeBaseFileDB.campaign_id == campaign_id)
                .order_by(KnowledgeBaseFileDB.id)
            )
            return [_knowledge_base_from_row(row) for row in result.scalars()]
