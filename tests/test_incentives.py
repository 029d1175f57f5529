from decimal import Decimal

import pytest

from camphub.core.exceptions import BusinessRuleError, NotFoundError
from camphub.models.incentive import CampSessionCompensation, PlanCode
from camphub.models.user import UserRole
from camphub.services.camp_day_service import CampDayService
from camphub.services.incentive_service import IncentiveService, compute_compensation


def _high_plan_comp(**metrics) -> CampSessionCompensation:
    comp = CampSessionCompensation(
        pre_camp_stipend_amount=Decimal("500"),
        on_site_stipend_amount=Decimal("1500"),
        enrollment_threshold=40,
        enrollment_bonus_per_camper=Decimal("25"),
        csat_required_score=Decimal("4.5"),
        csat_bonus_amount=Decimal("250"),
        budget_efficiency_rate=Decimal("0.25"),
        guest_speaker_required_count=2,
        guest_speaker_bonus_amount=Decimal("100"),
    )
    for key, value in metrics.items():
        setattr(comp, key, value)
    return comp


def test_compute_compensation_all_bonuses():
    comp = _high_plan_comp(
        csat_avg_score=Decimal("4.6"),
        budget_preapproved_total=Decimal("1000"),
        budget_actual_total=Decimal("800"),
    )
    result = compute_compensation(comp, enrolled=45, guest_speakers=2)
    assert result["fixed_stipend_total"] == Decimal("2000.00")
    assert result["enrollment_bonus_earned"] == Decimal("125.00")
    assert result["csat_bonus_earned"] == Decimal("250.00")
    assert result["budget_efficiency_bonus_earned"] == Decimal("50.00")
    assert result["guest_speaker_bonus_earned"] == Decimal("100.00")
    assert result["total_variable_bonus"] == Decimal("525.00")
    assert result["total_compensation"] == Decimal("2525.00")


def test_compute_compensation_misses_targets():
    comp = _high_plan_comp(
        csat_avg_score=Decimal("4.4"),
        budget_preapproved_total=Decimal("1000"),
        budget_actual_total=Decimal("1200"),
    )
    result = compute_compensation(comp, enrolled=40, guest_speakers=1)
    assert result["total_variable_bonus"] == Decimal("0.00")
    assert result["budget_savings_amount"] == Decimal("0.00")
    assert result["total_compensation"] == Decimal("2000.00")


@pytest.mark.asyncio
async def test_seed_is_idempotent(db):
    assert await IncentiveService.seed_default_plans(db) == 4
    assert await IncentiveService.seed_default_plans(db) == 0
    codes = {p.plan_code for p in await IncentiveService.list_active_plans(db)}
    assert codes == {PlanCode.HIGH, PlanCode.MID, PlanCode.ENTRY, PlanCode.FIXED}


@pytest.mark.asyncio
async def test_attach_metrics_and_finalize(db, tenant, make_camp, make_user, make_registration, outbox):
    await IncentiveService.seed_default_plans(db)
    camp = await make_camp(tenant.id)
    director = await make_user("director@example.com", UserRole.DIRECTOR, tenant.id, first_name="Dana")
    for _ in range(3):
        await make_registration(camp)

    comp = await IncentiveService.attach_plan_to_session(db, camp.id, director.id, PlanCode.HIGH, tenant.id)
    assert Decimal(str(comp.on_site_stipend_amount)) == Decimal("1500")

    await IncentiveService.update_session_metrics(
        db, comp.id,
        csat_avg_score=Decimal("4.6"),
        budget_preapproved_total=Decimal("1000"),
        budget_actual_total=Decimal("800"),
        guest_speaker_count=2,
        tenant_id=tenant.id,
    )
    assert Decimal(str(comp.budget_savings_amount)) == Decimal("200")

    result = await IncentiveService.calculate_session_compensation(db, camp.id, director.id, finalized_by="owner")
    assert result["plan_code"] == PlanCode.HIGH
    assert result["total_enrolled_campers"] == 3
    assert result["enrollment_bonus_earned"] == Decimal("0.00")
    assert result["total_compensation"] == Decimal("2400.00")
    assert comp.is_finalized is True
    assert [m["to"] for m in outbox] == ["director@example.com"]

    with pytest.raises(BusinessRuleError):
        await IncentiveService.calculate_session_compensation(db, camp.id, director.id)
    with pytest.raises(BusinessRuleError):
        await IncentiveService.update_session_metrics(db, comp.id, guest_speaker_count=3)

    summary = await IncentiveService.get_staff_compensation_summary(db, director.id)
    assert summary["finalized_sessions"] == 1
    assert summary["total_earned"] == Decimal("2400.00")


@pytest.mark.asyncio
async def test_guest_speakers_summed_from_day_snapshots(db, tenant, make_camp, make_user, outbox):
    await IncentiveService.seed_default_plans(db)
    camp = await make_camp(tenant.id)
    director = await make_user("director@example.com", UserRole.DIRECTOR, tenant.id)
    await IncentiveService.attach_plan_to_session(db, camp.id, director.id, PlanCode.ENTRY)

    day = await CampDayService.get_or_create_camp_day(db, camp.id, camp.start_date, tenant.id)
    snapshot = await IncentiveService.capture_day_snapshot(db, day.id, director.id, Decimal("4.2"), 1)
    assert snapshot.enrolled_count == 0
    assert snapshot.guest_speakers_count == 1

    result = await IncentiveService.calculate_session_compensation(db, camp.id, director.id)
    assert result["guest_speaker_bonus_earned"] == Decimal("50.00")


@pytest.mark.asyncio
async def test_attach_unknown_camp_or_plan(db, tenant, make_user):
    director = await make_user("director@example.com", UserRole.DIRECTOR, tenant.id)
    with pytest.raises(NotFoundError):
        await IncentiveService.attach_plan_to_session(db, "missing", director.id, PlanCode.HIGH)
    await IncentiveService.seed_default_plans(db)
    with pytest.raises(NotFoundError):
        await IncentiveService.attach_plan_to_session(db, "missing", director.id, PlanCode.HIGH)


@pytest.mark.asyncio
async def test_attach_rejects_staff_outside_camp_tenant(db, tenant, other_tenant, make_camp, make_user):
    await IncentiveService.seed_default_plans(db)
    camp = await make_camp(tenant.id)
    outsider = await make_user("coach@other.example.com", UserRole.COACH, other_tenant.id)

    with pytest.raises(NotFoundError, match="Staff member not found"):
        await IncentiveService.attach_plan_to_session(db, camp.id, outsider.id, PlanCode.MID, tenant.id)
    with pytest.raises(NotFoundError, match="Staff member not found"):
        await IncentiveService.attach_plan_to_session(db, camp.id, "no-such-user", PlanCode.MID, tenant.id)
    assert await IncentiveService.get_camp_compensation(db, camp.id) == []

    day = await CampDayService.get_or_create_camp_day(db, camp.id, camp.start_date, tenant.id)
    with pytest.raises(NotFoundError):
        await IncentiveService.capture_day_snapshot(db, day.id, outsider.id, Decimal("4.5"), 1)


@pytest.mark.asyncio
async def test_attach_endpoint_returns_404_for_unknown_staff(client, db, tenant, make_camp, make_user, auth_headers):
    await IncentiveService.seed_default_plans(db)
    await db.commit()
    camp = await make_camp(tenant.id)
    director = await make_user("director@example.com", UserRole.DIRECTOR, tenant.id)

    resp = await client.post(
        "/api/v1/incentives/attach",
        json={"camp_id": camp.id, "staff_profile_id": "no-such-user", "plan_code": "MID"},
        headers=auth_headers(director),
    )
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Staff member not found"
