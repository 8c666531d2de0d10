"""E2E Test: Campaign Lifecycle

A campaign run from first dial to completion, with Twilio status
callbacks delivered while the driver waits between completion checks.
"""

import pytest
from httpx import AsyncClient

from voicecaller.models.campaign import CampaignStatus
from voicecaller.models.lead import LeadStatus
from voicecaller.services.campaign_driver import CampaignDriver

# Outcome Twilio reports for each number once the driver starts polling
OUTCOMES = {
    "+15550000001": {"CallStatus": "completed", "CallDuration": "45"},
    "+15550000002": {"CallStatus": "busy"},
    "+15550000003": {"CallStatus": "completed", "CallDuration": "2"},
}


@pytest.fixture
async def leads(storage, campaign):
    return [
        await storage.create_lead(campaign_id=campaign.id, contact_no=number, first_name=name)
        for number, name in zip(OUTCOMES, ("Amy", "Ben", "Cat"))
    ]


@pytest.fixture
def delivered() -> set[str]:
    return set()


@pytest.fixture
def settling_driver(client: AsyncClient, storage, dialer, twilio_mock, delivered) -> CampaignDriver:
    """Driver whose poll sleep delivers the status callback of every dialed call."""

    async def sleep(seconds: float) -> None:
        if seconds == 0:
            return
        for call in twilio_mock.calls:
            if call.call_sid in delivered:
                continue
            delivered.add(call.call_sid)
            response = await client.post(
                "/webhooks/twilio/status",
                data={"CallSid": call.call_sid, **OUTCOMES[call.to]},
            )
            assert response.status_code == 200

    return CampaignDriver(storage=storage, dialer=dialer, pacing_seconds=0, poll_interval_seconds=60, sleep=sleep)


class TestCampaignLifecycle:
    """Tests for a campaign run end to end."""

    async def test_run_completes_with_counters(self, settling_driver, storage, campaign, leads, twilio_mock):
        result = await settling_driver.run(campaign.id)

        assert result.final_status == CampaignStatus.COMPLETED
        assert result.dialed == [lead.id for lead in leads]
        assert [call.to for call in twilio_mock.calls] == list(OUTCOMES)

        finished = await storage.get_campaign(campaign.id)
        assert finished.status == CampaignStatus.COMPLETED
        assert finished.completed_calls == 2
        assert finished.successful_calls == 1
        assert finished.failed_calls == 1

        statuses = {lead.first_name: lead.status for lead in await storage.get_leads_by_campaign(campaign.id)}
        assert statuses == {"Amy": LeadStatus.COMPLETED, "Ben": LeadStatus.FAILED, "Cat": LeadStatus.COMPLETED}

    async def test_failed_lead_is_redialed_on_rerun(
        self, settling_driver, storage, campaign, leads, twilio_mock
    ):
        """A lead whose dial failed can be put back to pending and dialed again"""
        ben = leads[1]
        twilio_mock.failing_numbers.add(ben.contact_no)
        await settling_driver.run(campaign.id)
        twilio_mock.failing_numbers.clear()
        await storage.update_lead(ben.id, status=LeadStatus.PENDING)

        result = await settling_driver.run(campaign.id)

        assert result.dialed == [ben.id]
        assert [call.to for call in twilio_mock.calls][-1] == ben.contact_no
        assert len(twilio_mock.calls) == 3
        assert (await storage.get_campaign(campaign.id)).failed_calls == 2

    async def test_rerun_of_finished_campaign_dials_nobody(self, settling_driver, campaign, leads, twilio_mock):
        await settling_driver.run(campaign.id)

        result = await settling_driver.run(campaign.id)

        assert result.final_status == CampaignStatus.COMPLETED
        assert result.dialed == []
        assert len(twilio_mock.calls) == 3

    async def test_dial_failure_counts_as_failed(self, settling_driver, storage, campaign, leads, twilio_mock):
        twilio_mock.failing_numbers.add("+15550000002")

        result = await settling_driver.run(campaign.id)

        assert result.failed == [leads[1].id]
        assert result.final_status == CampaignStatus.COMPLETED
        finished = await storage.get_campaign(campaign.id)
        assert finished.failed_calls == 1
        assert finished.completed_calls == 2

    async def test_test_call_leaves_campaign_counters(
        self, client: AsyncClient, storage, campaign, twilio_mock
    ):
        """Test calls are logged but never counted"""
        response = await client.post(
            "/api/v1/calls/test",
            json={"campaign_id": campaign.id, "phone_number": "+15559999999", "first_name": "Tess"},
        )
        call_sid = response.json()["provider_call_id"]

        await client.post(
            "/webhooks/twilio/status",
            data={"CallSid": call_sid, "CallStatus": "completed", "CallDuration": "60"},
        )

        unchanged = await storage.get_campaign(campaign.id)
        assert unchanged.completed_calls == 0
        assert unchanged.successful_calls == 0
        [log] = await storage.get_call_logs_by_campaign(campaign.id)
        assert log.lead_id is None
        assert log.duration == 60
