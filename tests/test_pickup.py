import pytest
from datetime import timedelta

from camphub.core.exceptions import BusinessRuleError, NotFoundError
from camphub.models.attendance import AttendanceStatus
from camphub.models.base import utcnow
from camphub.models.registration import ParentProfile
from camphub.models.user import UserRole
from camphub.services.attendance_service import AttendanceService
from camphub.services.camp_day_service import CampDayService
from camphub.services.pickup_token_service import PickupTokenService


async def _checked_in_day(db, tenant, make_camp, make_registration, campers=2):
    camp = await make_camp(tenant.id)
    regs = [
        await make_registration(camp, first_name=name, last_name=last)
        for name, last in [("Ava", "Adams"), ("Ben", "Brown"), ("Cal", "Cole")][:campers]
    ]
    day = await CampDayService.get_or_create_camp_day(db, camp.id, camp.start_date, tenant.id)
    for reg in regs:
        await AttendanceService.check_in(db, day.id, reg.athlete_id, "coach")
    return camp, day, regs


@pytest.mark.asyncio
async def test_generate_for_day_issues_one_code_per_camper_on_site(db, tenant, make_camp, make_registration):
    camp, day, (ava, ben) = await _checked_in_day(db, tenant, make_camp, make_registration)
    await AttendanceService.check_out(db, day.id, ben.athlete_id, "coach")

    result = await PickupTokenService.generate_for_day(db, day.id, tenant.id)
    assert result == {"generated": 1, "expired": 0}

    listed = await PickupTokenService.list_for_day(db, day.id, tenant.id)
    assert [t["athlete_name"] for t in listed] == ["Ava Adams"]
    assert len(listed[0]["token"]) == 32
    assert listed[0]["camp_name"] == camp.name
    assert listed[0]["expires_at"].date() == day.date


@pytest.mark.asyncio
async def test_regenerating_expires_outstanding_codes(db, tenant, make_camp, make_registration):
    _, day, _ = await _checked_in_day(db, tenant, make_camp, make_registration)
    await PickupTokenService.generate_for_day(db, day.id, tenant.id)
    first = [t["token"] for t in await PickupTokenService.list_for_day(db, day.id, tenant.id)]

    result = await PickupTokenService.generate_for_day(db, day.id, tenant.id)
    assert result == {"generated": 2, "expired": 2}

    old = await PickupTokenService.validate(db, first[0], day.id, tenant.id)
    assert old["valid"] is False
    assert old["error_code"] == "expired"
    current = [t["token"] for t in await PickupTokenService.list_for_day(db, day.id, tenant.id)]
    assert set(current).isdisjoint(first)


@pytest.mark.asyncio
async def test_generate_for_athlete_reuses_live_code(db, tenant, make_camp, make_registration):
    camp, day, (ava, _) = await _checked_in_day(db, tenant, make_camp, make_registration)
    token = await PickupTokenService.generate_for_athlete(db, day.id, ava.athlete_id, tenant.id)
    again = await PickupTokenService.generate_for_athlete(db, day.id, ava.athlete_id, tenant.id)
    assert again.id == token.id

    stranger = await make_registration(await make_camp(tenant.id, slug="other-camp"))
    with pytest.raises(NotFoundError, match="Attendance record not found"):
        await PickupTokenService.generate_for_athlete(db, day.id, stranger.athlete_id, tenant.id)


@pytest.mark.asyncio
async def test_validate_reports_each_failure(db, tenant, other_tenant, make_camp, make_registration):
    camp, day, (ava, ben) = await _checked_in_day(db, tenant, make_camp, make_registration)
    other_day = await CampDayService.get_or_create_camp_day(db, camp.id, camp.start_date + timedelta(days=1), tenant.id)
    ava_code = (await PickupTokenService.generate_for_athlete(db, day.id, ava.athlete_id, tenant.id)).token
    ben_token = await PickupTokenService.generate_for_athlete(db, day.id, ben.athlete_id, tenant.id)

    ok = await PickupTokenService.validate(db, ava_code, day.id, tenant.id)
    assert ok["valid"] is True
    assert ok["token"]["athlete_name"] == "Ava Adams"

    missing = await PickupTokenService.validate(db, "nope", day.id, tenant.id)
    assert (missing["error_code"], missing["error_message"]) == ("not_found", "Invalid pickup code")
    foreign = await PickupTokenService.validate(db, ava_code, day.id, other_tenant.id)
    assert foreign["error_code"] == "not_found"

    wrong_day = await PickupTokenService.validate(db, ava_code, other_day.id, tenant.id)
    assert wrong_day["error_message"] == "This pickup code is for a different camp day"

    ben_token.expires_at = utcnow() - timedelta(minutes=1)
    await db.flush()
    expired = await PickupTokenService.validate(db, ben_token.token, day.id, tenant.id)
    assert expired["error_code"] == "expired"

    await PickupTokenService.use(db, ava_code, "director", day.id, tenant.id)
    used = await PickupTokenService.validate(db, ava_code, day.id, tenant.id)
    assert used["error_message"] == "This pickup code has already been used"


@pytest.mark.asyncio
async def test_use_checks_camper_out_by_qr(db, tenant, make_camp, make_registration):
    _, day, (ava, _) = await _checked_in_day(db, tenant, make_camp, make_registration)
    token = await PickupTokenService.generate_for_athlete(db, day.id, ava.athlete_id, tenant.id)

    result = await PickupTokenService.use(db, token.token, "director", day.id, tenant.id)
    assert result == {"success": True, "athlete_name": "Ava Adams"}
    assert token.is_used is True
    assert token.used_by == "director"

    roster = {r.athlete_name: r for r in await AttendanceService.get_roster(db, day.id)}
    assert roster["Ava Adams"].status == AttendanceStatus.CHECKED_OUT
    assert roster["Ben Brown"].status == AttendanceStatus.CHECKED_IN

    with pytest.raises(BusinessRuleError, match="already been used"):
        await PickupTokenService.use(db, token.token, "director", day.id, tenant.id)
    with pytest.raises(NotFoundError, match="Invalid pickup code"):
        await PickupTokenService.use(db, "missing", "director", day.id, tenant.id)


@pytest.mark.asyncio
async def test_manual_checkout_needs_a_reason_and_spends_open_codes(db, tenant, make_camp, make_registration):
    _, day, (ava, _) = await _checked_in_day(db, tenant, make_camp, make_registration)
    token = await PickupTokenService.generate_for_athlete(db, day.id, ava.athlete_id, tenant.id)

    with pytest.raises(BusinessRuleError, match="A reason is required"):
        await PickupTokenService.manual_checkout(db, day.id, ava.athlete_id, "director", "   ", tenant.id)

    result = await PickupTokenService.manual_checkout(
        db, day.id, ava.athlete_id, "director", " Parent lost phone ", tenant.id
    )
    assert result == {"success": True}
    assert token.is_used is True
    assert token.manual_reason == "Parent lost phone"

    records = await AttendanceService.get_roster(db, day.id)
    ava_record = next(r for r in records if r.athlete_name == "Ava Adams")
    assert ava_record.status == AttendanceStatus.CHECKED_OUT

    again = await PickupTokenService.manual_checkout(db, day.id, ava.athlete_id, "director", "Twice", tenant.id)
    assert again == {"success": False}


@pytest.mark.asyncio
async def test_parent_sees_only_their_own_live_code(db, tenant, make_camp, make_registration, make_user):
    _, day, (ava, ben) = await _checked_in_day(db, tenant, make_camp, make_registration)
    await PickupTokenService.generate_for_day(db, day.id, tenant.id)

    parent = await db.get(ParentProfile, ava.parent_id)
    user = await make_user(parent.email, UserRole.PARENT, tenant.id)
    profile = await PickupTokenService.parent_profile_for(db, user)
    assert profile.id == parent.id

    mine = await PickupTokenService.get_for_parent(db, day.id, ava.athlete_id, profile.id)
    assert mine["athlete_name"] == "Ava Adams"
    assert await PickupTokenService.get_for_parent(db, day.id, ben.athlete_id, profile.id) is None

    nobody = await make_user("nobody@example.com", UserRole.PARENT, tenant.id)
    with pytest.raises(NotFoundError, match="Parent profile not found"):
        await PickupTokenService.parent_profile_for(db, nobody)


@pytest.mark.asyncio
async def test_pickup_endpoints(client, db, tenant, make_camp, make_registration, make_user, auth_headers):
    coach = await make_user("coach@acme-camps.com", UserRole.COACH, tenant.id)
    _, day, (ava, _) = await _checked_in_day(db, tenant, make_camp, make_registration)
    await db.commit()

    resp = await client.post(f"/api/v1/pickup/camp-days/{day.id}/generate", headers=auth_headers(coach))
    assert resp.status_code == 200
    assert resp.json() == {"generated": 2, "expired": 0}

    resp = await client.get(f"/api/v1/pickup/camp-days/{day.id}", headers=auth_headers(coach))
    code = next(t["token"] for t in resp.json() if t["athlete_id"] == ava.athlete_id)

    resp = await client.post("/api/v1/pickup/use", json={"token": code}, headers=auth_headers(coach))
    assert resp.status_code == 200
    assert resp.json()["athlete_name"] == "Ava Adams"

    resp = await client.post("/api/v1/pickup/use", json={"token": code}, headers=auth_headers(coach))
    assert resp.status_code == 400
    resp = await client.post("/api/v1/pickup/use", json={"token": "unknown"}, headers=auth_headers(coach))
    assert resp.status_code == 404

    parent = await make_user("someone@example.com", UserRole.PARENT, tenant.id)
    resp = await client.post(f"/api/v1/pickup/camp-days/{day.id}/generate", headers=auth_headers(parent))
    assert resp.status_code == 403
