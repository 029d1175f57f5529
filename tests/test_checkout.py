import pytest
from sqlalchemy import select

from camphub.core.exceptions import BusinessRuleError
from camphub.models.registration import (
    DiscountType, PromoCode, Registration, RegistrationAddon, RegistrationStatus, PaymentStatus
)
from camphub.schemas.registration import CheckoutRequest
from camphub.services.registration_service import RegistrationService
from camphub.services.stripe_service import StripeService, FREE_SESSION_ID, build_line_items


def _payload(camp, campers=("Ava",), **kwargs) -> CheckoutRequest:
    data = {
        "camp_id": camp.id,
        "parent": {"email": "Parent@Example.com", "first_name": "Pat", "last_name": "Lee"},
        "campers": [{"first_name": name, "last_name": "Lee", "grade": "3"} for name in campers],
    }
    data.update(kwargs)
    return CheckoutRequest(**data)


@pytest.mark.asyncio
async def test_demo_checkout_then_confirm(db, tenant, make_camp, outbox):
    camp = await make_camp(tenant.id)
    result = await RegistrationService.checkout(db, _payload(camp, campers=("Ava", "Ben")), tenant.id)
    await db.commit()

    assert len(result["registration_ids"]) == 2
    assert result["session_id"].startswith("demo_")
    assert "demo=true" in result["checkout_url"]

    regs = (await db.execute(select(Registration))).scalars().all()
    assert all(r.status == RegistrationStatus.PENDING for r in regs)
    by_total = sorted(r.total_price_cents for r in regs)
    assert by_total == [18000, 20000]

    confirmed = await StripeService.confirm_demo_payment(db, result["session_id"])
    await db.commit()
    assert set(confirmed) == set(result["registration_ids"])

    regs = (await db.execute(
        select(Registration).execution_options(populate_existing=True)
    )).scalars().all()
    assert all(r.status == RegistrationStatus.CONFIRMED for r in regs)
    assert all(r.payment_status == PaymentStatus.PAID for r in regs)
    # One confirmation per parent per camp
    assert len(outbox) == 1
    assert outbox[0]["to"] == "parent@example.com"


@pytest.mark.asyncio
async def test_free_checkout_confirms_immediately(db, tenant, make_camp, outbox):
    camp = await make_camp(tenant.id, price_cents=0)
    result = await RegistrationService.checkout(db, _payload(camp), tenant.id)
    await db.commit()

    assert result["session_id"] == FREE_SESSION_ID
    reg = await RegistrationService.get_registration(db, result["registration_ids"][0], tenant.id)
    assert reg.status == RegistrationStatus.CONFIRMED
    assert reg.payment_status == PaymentStatus.PAID


@pytest.mark.asyncio
async def test_checkout_rejects_when_camp_full(db, tenant, make_camp, make_registration, outbox):
    camp = await make_camp(tenant.id, capacity=1)
    await make_registration(camp)
    with pytest.raises(BusinessRuleError, match="Not enough spots"):
        await RegistrationService.checkout(db, _payload(camp), tenant.id)


@pytest.mark.asyncio
async def test_duplicate_registration_rejected_but_abandoned_checkout_replaced(db, tenant, make_camp, outbox):
    camp = await make_camp(tenant.id)
    first = await RegistrationService.checkout(db, _payload(camp), tenant.id)
    await db.commit()

    # Still pending: a new checkout replaces it
    second = await RegistrationService.checkout(db, _payload(camp), tenant.id)
    await db.commit()
    assert second["registration_ids"] != first["registration_ids"]
    count = len((await db.execute(select(Registration))).scalars().all())
    assert count == 1

    await StripeService.confirm_demo_payment(db, second["session_id"])
    await db.commit()
    with pytest.raises(BusinessRuleError, match="already registered"):
        await RegistrationService.checkout(db, _payload(camp), tenant.id)


@pytest.mark.asyncio
async def test_promo_code_and_addons_priced_into_registration(db, tenant, make_camp, make_addon, outbox):
    tenant.tax_rate_percent = 8.25
    camp = await make_camp(tenant.id, price_cents=10000)
    shirt = await make_addon(tenant.id, is_taxable=True)
    db.add(PromoCode(tenant_id=tenant.id, code="SAVE20", discount_type=DiscountType.PERCENTAGE, discount_value=20))
    await db.commit()

    payload = _payload(camp, promo_code="save20", addons=[{"addon_id": shirt.id, "quantity": 1}])
    result = await RegistrationService.checkout(db, payload, tenant.id)
    await db.commit()

    reg = await RegistrationService.get_registration(db, result["registration_ids"][0], tenant.id)
    assert reg.promo_discount_cents == 2000
    assert reg.addons_total_cents == 2500
    assert reg.tax_cents == 206
    assert reg.total_price_cents == 10706
    assert reg.promo_code_id is not None
    assert len(reg.addons) == 1

    promo = (await db.execute(select(PromoCode))).scalar_one()
    assert promo.current_uses == 1


@pytest.mark.asyncio
async def test_unknown_promo_code_is_ignored(db, tenant, make_camp, outbox):
    camp = await make_camp(tenant.id, price_cents=10000)
    result = await RegistrationService.checkout(db, _payload(camp, promo_code="NOPE"), tenant.id)
    reg = await RegistrationService.get_registration(db, result["registration_ids"][0], tenant.id)
    assert reg.promo_discount_cents == 0
    assert reg.total_price_cents == 10000


@pytest.mark.asyncio
async def test_line_items_spread_promo_over_addons(db, tenant, make_camp, make_addon, make_registration):
    camp = await make_camp(tenant.id, price_cents=1000)
    shirt = await make_addon(tenant.id, price_cents=3000)
    reg = await make_registration(
        camp, promo_discount_cents=2000, addons_total_cents=3000, total_price_cents=2000, tax_cents=0
    )
    db.add(RegistrationAddon(registration_id=reg.id, addon_id=shirt.id, quantity=1, price_cents=3000))
    await db.commit()

    regs = await StripeService._load_registrations(db, [reg.id])
    items = build_line_items(regs, camp.name)
    amounts = [i["price_data"]["unit_amount"] for i in items]
    # Camp line fully discounted; the remaining 1000 comes off the shirt
    assert amounts == [2000]
    assert sum(amounts) == 2000


@pytest.mark.asyncio
async def test_cancel_registration(db, tenant, make_camp, make_registration, outbox):
    camp = await make_camp(tenant.id)
    reg = await make_registration(camp)
    cancelled = await RegistrationService.cancel_registration(db, reg.id, tenant.id, reason="Family trip")
    assert cancelled.status == RegistrationStatus.CANCELLED
    assert cancelled.cancellation_reason == "Family trip"
    with pytest.raises(BusinessRuleError):
        await RegistrationService.cancel_registration(db, reg.id, tenant.id)
