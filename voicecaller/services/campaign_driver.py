"""Campaign driver - sequences outbound calls for a campaign's leads."""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

import structlog

from voicecaller.exceptions import ConfigurationError
from voicecaller.models.campaign import CampaignStatus
from voicecaller.models.lead import Lead, LeadStatus
from voicecaller.services.outbound_dialer import OutboundDialer
from voicecaller.services.storage import StorageProtocol

logger = structlog.get_logger(__name__)


@dataclass
class CampaignRunResult:
    """Summary of one campaign run."""

    campaign_id: int
    dialed: list[int] = field(default_factory=list)
    skipped: list[int] = field(default_factory=list)
    failed: list[int] = field(default_factory=list)
    final_status: CampaignStatus | None = None


class CampaignDriver:
    """
    Dials every pending lead of a campaign, one at a time.

    At most one run per campaign is active in this process; a second
    request for the same campaign is a no-op until the first finishes.

    The run:
        1. loads leads; with none pending the campaign completes at once
        2. dials each pending lead in order, pacing successive dials
        3. polls until no lead is pending or calling, then completes
    Any unexpected error marks the campaign failed.
    """

    def __init__(
        self,
        storage: StorageProtocol,
        dialer: OutboundDialer,
        pacing_seconds: float = 5.0,
        poll_interval_seconds: float = 60.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Args:
            storage: Durable store
            dialer: Places the individual calls
            pacing_seconds: Delay between successive dial attempts
            poll_interval_seconds: Interval between completion checks
            sleep: Awaitable delay, replaceable in tests
        """
        self.storage = storage
        self.dialer = dialer
        self.pacing_seconds = pacing_seconds
        self.poll_interval_seconds = poll_interval_seconds
        self._sleep = sleep
        self._running: set[int] = set()
        self._tasks: set[asyncio.Task] = set()

    def is_running(self, campaign_id: int) -> bool:
        return campaign_id in self._running

    @property
    def running_campaigns(self) -> frozenset[int]:
        return frozenset(self._running)

    def start(self, campaign_id: int) -> bool:
        """
        Launch a run in the background.

        Returns:
            False if the campaign is already running
        """
        if self.is_running(campaign_id):
            logger.info("campaign_already_running", campaign_id=campaign_id)
            return False
        self._running.add(campaign_id)
        task = asyncio.create_task(self._run_claimed(campaign_id))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return True

    async def run(self, campaign_id: int) -> CampaignRunResult | None:
        """
        Run a campaign to completion.

        Returns:
            None when another run for the campaign is already active
        """
        if campaign_id in self._running:
            logger.info("campaign_already_running", campaign_id=campaign_id)
            return None
        self._running.add(campaign_id)
        return await self._run_claimed(campaign_id)

    async def _run_claimed(self, campaign_id: int) -> CampaignRunResult:
        result = CampaignRunResult(campaign_id=campaign_id)
        try:
            pending = [
                lead
                for lead in await self.storage.get_leads_by_campaign(campaign_id)
                if lead.status == LeadStatus.PENDING
            ]
            if not pending:
                await self._finish(result, CampaignStatus.COMPLETED)
                return result

            self.dialer.ensure_configured()
            await self.storage.update_campaign(campaign_id, status=CampaignStatus.ACTIVE)
            logger.info("campaign_started", campaign_id=campaign_id, pending_leads=len(pending))

            await self._dial_leads(campaign_id, pending, result)
            await self._wait_for_completion(result)
            return result
        except ConfigurationError as exc:
            logger.error("campaign_not_configured", campaign_id=campaign_id, missing=exc.missing)
            await self._finish(result, CampaignStatus.FAILED)
            return result
        except Exception:
            logger.exception("campaign_run_failed", campaign_id=campaign_id)
            await self._finish(result, CampaignStatus.FAILED)
            return result
        finally:
            self._running.discard(campaign_id)

    async def _dial_leads(self, campaign_id: int, leads: list[Lead], result: CampaignRunResult) -> None:
        dialed_any = False
        for lead in leads:
            if await self._has_active_call(campaign_id, lead.id):
                logger.info("lead_already_called", campaign_id=campaign_id, lead_id=lead.id)
                result.skipped.append(lead.id)
                continue

            if dialed_any:
                await self._sleep(self.pacing_seconds)
            dialed_any = True

            await self.storage.update_lead(lead.id, status=LeadStatus.CALLING)
            outcome = await self.dialer.dial(
                campaign_id=campaign_id,
                phone_number=lead.contact_no,
                first_name=lead.first_name,
                lead_id=lead.id,
            )
            if outcome.success:
                result.dialed.append(lead.id)
            else:
                result.failed.append(lead.id)

    async def _has_active_call(self, campaign_id: int, lead_id: int) -> bool:
        call_logs = await self.storage.get_call_logs_by_campaign(campaign_id)
        return any(log.lead_id == lead_id and log.is_active for log in call_logs)

    async def _wait_for_completion(self, result: CampaignRunResult) -> None:
        while True:
            await self._sleep(self.poll_interval_seconds)
            leads = await self.storage.get_leads_by_campaign(result.campaign_id)
            open_leads = sum(1 for lead in leads if lead.status.is_open)
            if open_leads == 0:
                await self._finish(result, CampaignStatus.COMPLETED)
                return
            logger.debug(
                "campaign_waiting_for_calls",
                campaign_id=result.campaign_id,
                open_leads=open_leads,
            )

    async def _finish(self, result: CampaignRunResult, status: CampaignStatus) -> None:
        await self.storage.update_campaign(result.campaign_id, status=status)
        result.final_status = status
        logger.info("campaign_finished", campaign_id=result.campaign_id, status=status.value)
