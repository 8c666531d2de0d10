"""Database package exports."""

from voicecaller.db.base import Base
from voicecaller.db.models import CallLogDB, CampaignDB, KnowledgeBaseFileDB, LeadDB

__all__ = ["Base", "CallLogDB", "CampaignDB", "KnowledgeBaseFileDB", "LeadDB"]
