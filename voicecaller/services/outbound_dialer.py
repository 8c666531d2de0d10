"""Outbound dialer - places one provider call and records its setup state."""

from dataclasses import dataclass

import structlog

from voicecaller.config import Settings
from voicecaller.exceptions import ConfigurationError, TelephonyError
from voicecaller.models.call_log import CallLog, CallLogStatus
from voicecaller.models.lead import LeadStatus
from voicecaller.services.call_bridge import CALL_KEY_PARAMETER
from voicecaller.services.call_registry import PendingCallParams, PendingCallStore, pending_call_key
from voicecaller.services.storage import StorageProtocol
from voicecaller.services.twilio_protocol import TwilioServiceProtocol

logger = structlog.get_logger(__name__)


@dataclass
class DialOutcome:
    """Result of one dial attempt."""

    call_log: CallLog
    success: bool
    error: str | None = None


class OutboundDialer:
    """
    Places outbound calls whose media is streamed back to the bridge.

    Order of operations for every call:
        1. create the call log (``initiated``)
        2. stash pending parameters under the call key
        3. ask the provider to dial
        4. record the provider call id, or mark the call failed
    """

    def __init__(
        self,
        storage: StorageProtocol,
        telephony: TwilioServiceProtocol,
        pending_calls: PendingCallStore,
        settings: Settings,
    ):
        self.storage = storage
        self.telephony = telephony
        self.pending_calls = pending_calls
        self.settings = settings

    def missing_configuration(self) -> list[str]:
        """Names of settings a real dial needs but does not have."""
        missing = []
        if not self.settings.twilio_use_mock:
            if not self.settings.twilio_account_sid:
                missing.append("TWILIO_ACCOUNT_SID")
            if not self.settings.twilio_auth_token:
                missing.append("TWILIO_AUTH_TOKEN")
        if not self.settings.twilio_phone_number:
            missing.append("TWILIO_PHONE_NUMBER")
        if not self.settings.elevenlabs_agent_id:
            missing.append("ELEVENLABS_AGENT_ID")
        if not self.settings.public_base_url:
            missing.append("PUBLIC_BASE_URL")
        return missing

    def ensure_configured(self) -> None:
        """
        Raises:
            ConfigurationError: If anything needed to dial is missing
        """
        missing = self.missing_configuration()
        if missing:
            raise ConfigurationError(missing)

    async def dial(
        self,
        *,
        campaign_id: int,
        phone_number: str,
        first_name: str = "",
        lead_id: int | None = None,
        is_test_call: bool = False,
    ) -> DialOutcome:
        """
        Dial one number.

        Provider failures of any kind are recorded and returned, not raised. For lead
        calls they also fail the lead and count against the campaign.

        Raises:
            ConfigurationError: If credentials or public URLs are missing
                (the call log is left ``failed``)
        """
        call_log = await self.storage.create_call_log(
            campaign_id=campaign_id,
            lead_id=lead_id,
            phone_number=phone_number,
            status=CallLogStatus.INITIATED,
        )

        try:
            self.ensure_configured()
        except ConfigurationError:
            await self.storage.update_call_log(call_log.id, status=CallLogStatus.FAILED)
            raise

        key = pending_call_key(campaign_id, call_log.id)
        self.pending_calls.put(
            key,
            PendingCallParams(
                campaign_id=campaign_id,
                first_name=first_name,
                is_test_call=is_test_call,
                lead_id=lead_id,
                call_log_id=call_log.id,
            ),
        )

        try:
            result = await self.telephony.make_call(
                to=phone_number,
                from_=self.settings.twilio_phone_number,
                stream_url=self.settings.media_stream_url(campaign_id),
                stream_parameters={CALL_KEY_PARAMETER: key},
                status_callback_url=self.settings.status_callback_url(),
            )
        except TelephonyError as exc:
            self.pending_calls.discard(key)
            failed_log = await self._record_dial_failure(call_log, lead_id, str(exc))
            return DialOutcome(call_log=failed_log, success=False, error=str(exc))
        except Exception as exc:
            logger.exception("call_dial_error", campaign_id=campaign_id, call_log_id=call_log.id)
            self.pending_calls.discard(key)
            failed_log = await self._record_dial_failure(call_log, lead_id, repr(exc))
            return DialOutcome(call_log=failed_log, success=False, error=repr(exc))

        updated = await self.storage.update_call_log(call_log.id, provider_call_id=result.call_sid)
        logger.info(
            "call_dialed",
            campaign_id=campaign_id,
            lead_id=lead_id,
            call_log_id=call_log.id,
            call_sid=result.call_sid,
            is_test_call=is_test_call,
        )
        return DialOutcome(call_log=updated or call_log, success=True)

    async def _record_dial_failure(
        self,
        call_log: CallLog,
        lead_id: int | None,
        error: str,
    ) -> CallLog:
        logger.warning(
            "call_dial_failed",
            campaign_id=call_log.campaign_id,
            lead_id=lead_id,
            call_log_id=call_log.id,
            error=error,
        )
        updated = await self.storage.update_call_log(call_log.id, status=CallLogStatus.FAILED)
        if lead_id is not None:
            await self.storage.update_lead(lead_id, status=LeadStatus.FAILED)
            await self.storage.increment_campaign_counters(call_log.campaign_id, failed=1)
        return updated or call_log
