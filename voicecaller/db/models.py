"""SQLAlchemy ORM models."""

from datetime import UTC, datetime

from sqlalchemy import DateTime, Enum, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from voicecaller.db.base import Base
from voicecaller.models.call_log import CallLogStatus
from voicecaller.models.campaign import CampaignStatus
from voicecaller.models.lead import LeadStatus


def utc_now() -> datetime:
    """Timezone-aware UTC now for defaults."""
    return datetime.now(UTC)


def _enum_values(enum_cls: type) -> list[str]:
    return [member.value for member in enum_cls]


class CampaignDB(Base):
    """Campaign table."""

    __tablename__ = "campaigns"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    first_prompt: Mapped[str] = mapped_column(Text, nullable=False)
    system_persona: Mapped[str] = mapped_column(Text, nullable=False)
    selected_voice_id: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[CampaignStatus] = mapped_column(
        Enum(CampaignStatus, name="campaign_status", values_callable=_enum_values),
        default=CampaignStatus.DRAFT,
        nullable=False,
    )

    total_leads: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    completed_calls: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    successful_calls: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    failed_calls: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)

    leads: Mapped[list["LeadDB"]] = relationship(
        back_populates="campaign",
        cascade="all, delete-orphan",
    )
    call_logs: Mapped[list["CallLogDB"]] = relationship(cascade="all, delete-orphan")
    knowledge_base_files: Mapped[list["KnowledgeBaseFileDB"]] = relationship(
        cascade="all, delete-orphan",
    )


class LeadDB(Base):
    """Lead table."""

    __tablename__ = "leads"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    campaign_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("campaigns.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    first_name: Mapped[str] = mapped_column(Text, default="", nullable=False)
    last_name: Mapped[str] = mapped_column(Text, default="", nullable=False)
    contact_no: Mapped[str] = mapped_column(String(32), nullable=False)
    status: Mapped[LeadStatus] = mapped_column(
        Enum(LeadStatus, name="lead_status", values_callable=_enum_values),
        default=LeadStatus.PENDING,
        nullable=False,
    )
    call_duration: Mapped[int | None] = mapped_column(Integer, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)

    campaign: Mapped[CampaignDB] = relationship(back_populates="leads")


class CallLogDB(Base):
    """Call log table."""

    __tablename__ = "call_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    campaign_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("campaigns.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    lead_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("leads.id", ondelete="CASCADE"),
        nullable=True,
    )
    phone_number: Mapped[str] = mapped_column(String(32), nullable=False)
    status: Mapped[CallLogStatus] = mapped_column(
        Enum(CallLogStatus, name="call_log_status", values_callable=_enum_values),
        default=CallLogStatus.INITIATED,
        nullable=False,
    )
    duration: Mapped[int | None] = mapped_column(Integer, nullable=True)
    provider_call_id: Mapped[str | None] = mapped_column(String(64), index=True, nullable=True)
    agent_conversation_id: Mapped[str | None] = mapped_column(String(128), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)


class KnowledgeBaseFileDB(Base):
    """Knowledge base document table."""

    __tablename__ = "knowledge_base_files"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    campaign_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("campaigns.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    filename: Mapped[str] = mapped_column(Text, nullable=False)
    file_url: Mapped[str] = mapped_column(Text, nullable=False)
    elevenlabs_doc_id: Mapped[str | None] = mapped_column(Text, nullable=True)

    uploaded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
