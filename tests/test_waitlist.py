from datetime import timedelta

import pytest
import pytest_asyncio

from camphub.core.exceptions import BusinessRuleError, NotFoundError
from camphub.models.base import utcnow
from camphub.models.registration import RegistrationStatus
from camphub.schemas.registration import WaitlistJoinRequest
from camphub.services.registration_service import RegistrationService
from camphub.services.stripe_service import StripeService
from camphub.services.waitlist_service import WaitlistService


def _join(camp, first_name: str, email: str) -> WaitlistJoinRequest:
    return WaitlistJoinRequest(
        camp_id=camp.id,
        parent={"email": email, "first_name": "Sam"},
        camper={"first_name": first_name, "last_name": "Waiter"},
    )


@pytest_asyncio.fixture
async def full_camp(db, tenant, make_camp, make_registration):
    camp = await make_camp(tenant.id, capacity=1)
    holder = await make_registration(camp)
    return camp, holder


@pytest.mark.asyncio
async def test_join_requires_full_camp(db, tenant, make_camp, outbox):
    camp = await make_camp(tenant.id, capacity=5)
    with pytest.raises(BusinessRuleError, match="still has spots"):
        await WaitlistService.join_waitlist(db, _join(camp, "Ivy", "ivy@example.com"), tenant.id)


@pytest.mark.asyncio
async def test_positions_are_fifo_and_duplicates_rejected(db, tenant, full_camp, outbox):
    camp, _ = full_camp
    first = await WaitlistService.join_waitlist(db, _join(camp, "Ivy", "ivy@example.com"), tenant.id)
    second = await WaitlistService.join_waitlist(db, _join(camp, "Max", "max@example.com"), tenant.id)
    assert (first.waitlist_position, second.waitlist_position) == (1, 2)
    assert first.status == RegistrationStatus.WAITLISTED
    assert [m["to"] for m in outbox] == ["ivy@example.com", "max@example.com"]

    with pytest.raises(BusinessRuleError, match="already on the waitlist"):
        await WaitlistService.join_waitlist(db, _join(camp, "Ivy", "ivy@example.com"), tenant.id)


@pytest.mark.asyncio
async def test_cancellation_offers_spot_and_acceptance_confirms(db, tenant, full_camp, outbox):
    camp, holder = full_camp
    first = await WaitlistService.join_waitlist(db, _join(camp, "Ivy", "ivy@example.com"), tenant.id)
    second = await WaitlistService.join_waitlist(db, _join(camp, "Max", "max@example.com"), tenant.id)
    outbox.clear()

    await RegistrationService.cancel_registration(db, holder.id, tenant.id)
    assert first.waitlist_offer_sent_at is not None
    assert first.waitlist_offer_expires_at - first.waitlist_offer_sent_at == timedelta(hours=48)
    assert second.waitlist_offer_sent_at is None
    assert outbox[-1]["to"] == "ivy@example.com"
    assert first.waitlist_offer_token in outbox[-1]["body"]

    result = await WaitlistService.accept_offer(db, first.waitlist_offer_token)
    assert result["registration_id"] == first.id
    assert result["session_id"].startswith("demo_")

    await StripeService.confirm_demo_payment(db, result["session_id"])
    assert first.status == RegistrationStatus.CONFIRMED
    assert first.waitlist_position is None

    remaining = await WaitlistService.get_waitlist(db, camp.id, tenant.id)
    assert [r.id for r in remaining] == [second.id]
    assert remaining[0].waitlist_position == 1


@pytest.mark.asyncio
async def test_expired_offer_goes_to_back_and_next_is_offered(db, tenant, full_camp, outbox):
    camp, holder = full_camp
    first = await WaitlistService.join_waitlist(db, _join(camp, "Ivy", "ivy@example.com"), tenant.id)
    second = await WaitlistService.join_waitlist(db, _join(camp, "Max", "max@example.com"), tenant.id)
    await RegistrationService.cancel_registration(db, holder.id, tenant.id)

    first.waitlist_offer_expires_at = utcnow() - timedelta(minutes=1)
    await db.flush()

    with pytest.raises(BusinessRuleError, match="expired"):
        await WaitlistService.accept_offer(db, first.waitlist_offer_token)

    result = await WaitlistService.expire_stale_offers(db)
    assert result == {"expired": 1, "new_offers_sent": 1}
    assert (second.waitlist_position, first.waitlist_position) == (1, 2)
    assert first.waitlist_offer_sent_at is None
    assert second.waitlist_offer_sent_at is not None


@pytest.mark.asyncio
async def test_decline_passes_offer_on(db, tenant, full_camp, outbox):
    camp, holder = full_camp
    first = await WaitlistService.join_waitlist(db, _join(camp, "Ivy", "ivy@example.com"), tenant.id)
    second = await WaitlistService.join_waitlist(db, _join(camp, "Max", "max@example.com"), tenant.id)
    await RegistrationService.cancel_registration(db, holder.id, tenant.id)

    declined = await WaitlistService.decline_offer(db, first.waitlist_offer_token)
    assert declined.status == RegistrationStatus.CANCELLED
    assert second.waitlist_position == 1
    assert second.waitlist_offer_sent_at is not None

    with pytest.raises(NotFoundError):
        await WaitlistService.decline_offer(db, first.waitlist_offer_token)


@pytest.mark.asyncio
async def test_remove_from_waitlist_renumbers(db, tenant, full_camp, outbox):
    camp, _ = full_camp
    first = await WaitlistService.join_waitlist(db, _join(camp, "Ivy", "ivy@example.com"), tenant.id)
    second = await WaitlistService.join_waitlist(db, _join(camp, "Max", "max@example.com"), tenant.id)

    await WaitlistService.remove_from_waitlist(db, first.id, tenant.id)
    assert second.waitlist_position == 1
    with pytest.raises(BusinessRuleError):
        await WaitlistService.remove_from_waitlist(db, first.id, tenant.id)


@pytest.mark.asyncio
async def test_accept_after_expiry_is_rejected_with_message(db, tenant, full_camp, outbox):
    camp, holder = full_camp
    first = await WaitlistService.join_waitlist(db, _join(camp, "Ivy", "ivy@example.com"), tenant.id)
    await RegistrationService.cancel_registration(db, holder.id, tenant.id)
    first.waitlist_offer_expires_at = utcnow() - timedelta(seconds=1)
    await db.flush()

    with pytest.raises(BusinessRuleError, match="This offer has expired"):
        await WaitlistService.accept_offer(db, first.waitlist_offer_token)
    assert first.status == RegistrationStatus.WAITLISTED


@pytest.mark.asyncio
async def test_accept_when_spot_was_taken_is_rejected(db, tenant, full_camp, make_registration, outbox):
    camp, holder = full_camp
    first = await WaitlistService.join_waitlist(db, _join(camp, "Ivy", "ivy@example.com"), tenant.id)
    await RegistrationService.cancel_registration(db, holder.id, tenant.id)
    assert first.waitlist_offer_token

    # someone registered directly while the offer was out
    await make_registration(camp)

    with pytest.raises(BusinessRuleError, match="Sorry, the spot is no longer available"):
        await WaitlistService.accept_offer(db, first.waitlist_offer_token)
