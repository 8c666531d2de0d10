"""create campaign, lead, call log and knowledge base tables"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "campaigns",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("first_prompt", sa.Text(), nullable=False),
        sa.Column("system_persona", sa.Text(), nullable=False),
        sa.Column("selected_voice_id", sa.Text(), nullable=True),
        sa.Column(
            "status",
            sa.Enum(
                "draft",
                "active",
                "paused",
                "completed",
                "failed",
                name="campaign_status",
            ),
            nullable=False,
            server_default="draft",
        ),
        sa.Column("total_leads", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("completed_calls", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("successful_calls", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("failed_calls", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
    )

    op.create_table(
        "leads",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "campaign_id",
            sa.Integer(),
            sa.ForeignKey("campaigns.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("first_name", sa.Text(), nullable=False, server_default=""),
        sa.Column("last_name", sa.Text(), nullable=False, server_default=""),
        sa.Column("contact_no", sa.String(length=32), nullable=False),
        sa.Column(
            "status",
            sa.Enum("pending", "calling", "completed", "failed", name="lead_status"),
            nullable=False,
            server_default="pending",
        ),
        sa.Column("call_duration", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_leads_campaign_id", "leads", ["campaign_id"])

    op.create_table(
        "call_logs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "campaign_id",
            sa.Integer(),
            sa.ForeignKey("campaigns.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "lead_id",
            sa.Integer(),
            sa.ForeignKey("leads.id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column("phone_number", sa.String(length=32), nullable=False),
        sa.Column(
            "status",
            sa.Enum(
                "initiated",
                "ringing",
                "answered",
                "completed",
                "failed",
                "busy",
                "no-answer",
                name="call_log_status",
            ),
            nullable=False,
            server_default="initiated",
        ),
        sa.Column("duration", sa.Integer(), nullable=True),
        sa.Column("provider_call_id", sa.String(length=64), nullable=True),
        sa.Column("agent_conversation_id", sa.String(length=128), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_call_logs_campaign_id", "call_logs", ["campaign_id"])
    op.create_index("ix_call_logs_provider_call_id", "call_logs", ["provider_call_id"])

    op.create_table(
        "knowledge_base_files",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "campaign_id",
            sa.Integer(),
            sa.ForeignKey("campaigns.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("filename", sa.Text(), nullable=False),
        sa.Column("file_url", sa.Text(), nullable=False),
        sa.Column("elevenlabs_doc_id", sa.Text(), nullable=True),
        sa.Column("uploaded_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_knowledge_base_files_campaign_id", "knowledge_base_files", ["campaign_id"])


def downgrade() -> None:
    op.drop_index("ix_knowledge_base_files_campaign_id", table_name="knowledge_base_files")
    op.drop_table("knowledge_base_files")
    op.drop_index("ix_call_logs_provider_call_id", table_name="call_logs")
    op.drop_index("ix_call_logs_campaign_id", table_name="call_logs")
    op.drop_table("call_logs")
    op.drop_index("ix_leads_campaign_id", table_name="leads")
    op.drop_table("leads")
    op.drop_table("campaigns")
    op.execute("DROP TYPE IF EXISTS call_log_status")
    op.execute("DROP TYPE IF EXISTS lead_status")
    op.execute("DROP TYPE IF EXISTS campaign_status")
