"""Event reconciler - folds provider events into durable call state."""

from collections import OrderedDict
from dataclasses import dataclass

import structlog

from voicecaller.models.call_log import CallLogStatus
from voicecaller.models.lead import LeadStatus
from voicecaller.services.agent_messages import AgentMessage, find_conversation_id
from voicecaller.services.storage import StorageProtocol

logger = structlog.get_logger(__name__)


@dataclass
class StatusUpdateResult:
    """What a status webhook changed."""

    call_log_id: int | None = None
    status: CallLogStatus | None = None
    completed_delta: int = 0
    successful_delta: int = 0
    failed_delta: int = 0
    duplicate: bool = False

    @property
    def applied(self) -> bool:
        return self.call_log_id is not None


class EventReconciler:
    """
    Applies telephony status webhooks and agent-side discoveries.

    Both event sources are independent of the live bridge: a webhook may
    arrive after the media stream is gone, and either may arrive first.
    Unknown calls are logged and dropped, never raised.

    Counter semantics (lead calls only):
        - ``completed_calls`` counts every call that connected
        - ``successful_calls`` counts connected calls longer than the threshold
        - ``failed_calls`` counts calls that never connected
    """

    def __init__(
        self,
        storage: StorageProtocol,
        success_threshold_seconds: int = 3,
        dedupe: bool = True,
        dedupe_capacity: int = 10_000,
    ):
        """
        Args:
            storage: Durable store
            success_threshold_seconds: Talk time a completed call must exceed to count as successful
            dedupe: Skip counter deltas for a repeated (call sid, status) delivery
            dedupe_capacity: Most recent deliveries remembered for deduplication
        """
        self.storage = storage
        self.success_threshold_seconds = success_threshold_seconds
        self.dedupe = dedupe
        self._dedupe_capacity = dedupe_capacity
        self._seen: OrderedDict[tuple[str, CallLogStatus], None] = OrderedDict()

    def _already_applied(self, provider_call_id: str, status: CallLogStatus) -> bool:
        key = (provider_call_id, status)
        if key in self._seen:
            return True
        self._seen[key] = None
        if len(self._seen) > self._dedupe_capacity:
            self._seen.popitem(last=False)
        return False

    async def handle_call_status(
        self,
        provider_call_id: str,
        provider_status: str,
        duration: int | None = None,
    ) -> StatusUpdateResult:
        """Apply one telephony status webhook."""
        status = CallLogStatus.from_provider(provider_status)
        if status is None:
            logger.info("call_status_ignored", call_sid=provider_call_id, status=provider_status)
            return StatusUpdateResult()

        call_log = await self.storage.get_call_log_by_provider_call_id(provider_call_id)
        if call_log is None:
            logger.info("call_status_for_unknown_call", call_sid=provider_call_id, status=status.value)
            return StatusUpdateResult()

        updates: dict[str, object] = {"status": status}
        if duration is not None:
            updates["duration"] = duration
        await self.storage.update_call_log(call_log.id, **updates)

        result = StatusUpdateResult(call_log_id=call_log.id, status=status)

        if call_log.lead_id is not None:
            if status == CallLogStatus.COMPLETED:
                await self.storage.update_lead(
                    call_log.lead_id, status=LeadStatus.COMPLETED, call_duration=duration
                )
            elif status.never_connected:
                await self.storage.update_lead(call_log.lead_id, status=LeadStatus.FAILED)

        if status != CallLogStatus.COMPLETED and not status.never_connected:
            return result

        # Test calls have no lead and stay out of the campaign totals
        if call_log.lead_id is None:
            return result

        if self.dedupe and self._already_applied(provider_call_id, status):
            logger.warning("duplicate_call_status", call_sid=provider_call_id, status=status.value)
            result.duplicate = True
            return result

        if status == CallLogStatus.COMPLETED:
            result.completed_delta = 1
            if duration is not None and duration > self.success_threshold_seconds:
                result.successful_delta = 1
        else:
            result.failed_delta = 1

        try:
            await self.storage.increment_campaign_counters(
                call_log.campaign_id,
                completed=result.completed_delta,
                successful=result.successful_delta,
                failed=result.failed_delta,
            )
        except Exception:
            # Forget the delivery so a retry is counted
            self._seen.pop((provider_call_id, status), None)
            raise
        logger.info(
            "call_outcome_recorded",
            call_sid=provider_call_id,
            campaign_id=call_log.campaign_id,
            status=status.value,
            duration=duration,
            successful=bool(result.successful_delta),
        )
        return result

    async def record_conversation_id(
        self,
        campaign_id: int,
        provider_call_id: str,
        conversation_id: str,
    ) -> bool:
        """
        Store the agent conversation id on the matching call log.

        Write-once: an id already on the log is kept. Returns True only
        when this call stored the id.
        """
        call_log = await self.storage.get_call_log_by_provider_call_id(provider_call_id)
        if call_log is None or call_log.campaign_id != campaign_id:
            logger.info(
                "conversation_id_for_unknown_call",
                campaign_id=campaign_id,
                call_sid=provider_call_id,
            )
            return False
        if call_log.agent_conversation_id:
            return False

        await self.storage.update_call_log(call_log.id, agent_conversation_id=conversation_id)
        logger.info(
            "conversation_id_recorded",
            call_log_id=call_log.id,
            call_sid=provider_call_id,
            conversation_id=conversation_id,
        )
        return True

    async def handle_agent_message(
        self,
        campaign_id: int,
        provider_call_id: str,
        message: AgentMessage,
    ) -> bool:
        """
        Look for a conversation id in an agent message and record it.

        Returns True once an id has been stored. Storage failures are
        logged; the call carries on without the id.
        """
        match = find_conversation_id(message.raw)
        if match is None:
            return False
        try:
            return await self.record_conversation_id(campaign_id, provider_call_id, match.value)
        except Exception:
            logger.exception(
                "conversation_id_store_failed",
                campaign_id=campaign_id,
                call_sid=provider_call_id,
                path=".".join(match.path),
            )
            return False
