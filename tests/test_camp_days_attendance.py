import pytest
from datetime import timedelta

from camphub.core.exceptions import BusinessRuleError, NotFoundError
from camphub.models.attendance import AttendanceStatus
from camphub.models.camp import CampDayStatus
from camphub.services.attendance_service import AttendanceService
from camphub.services.camp_day_service import CampDayService


@pytest.mark.asyncio
async def test_camp_day_is_created_once_within_range(db, tenant, make_camp):
    camp = await make_camp(tenant.id)
    day = await CampDayService.get_or_create_camp_day(db, camp.id, camp.start_date + timedelta(days=2), tenant.id)
    assert day.day_number == 3
    assert day.title == "Day 3"
    again = await CampDayService.get_or_create_camp_day(
        db, camp.id, (camp.start_date + timedelta(days=2)).isoformat(), tenant.id
    )
    assert again.id == day.id

    with pytest.raises(BusinessRuleError, match="outside camp date range"):
        await CampDayService.get_or_create_camp_day(db, camp.id, camp.end_date + timedelta(days=1), tenant.id)
    with pytest.raises(NotFoundError):
        await CampDayService.get_or_create_camp_day(db, camp.id, camp.start_date, "other-tenant")


@pytest.mark.asyncio
async def test_full_day_workflow(db, tenant, make_camp, make_registration):
    camp = await make_camp(tenant.id)
    ava = await make_registration(camp, first_name="Ava", last_name="Adams")
    ben = await make_registration(camp, first_name="Ben", last_name="Brown")
    day = await CampDayService.get_or_create_camp_day(db, camp.id, camp.start_date, tenant.id)

    with pytest.raises(BusinessRuleError, match="not been started"):
        await CampDayService.end_camp_day(db, day.id, "director")

    await CampDayService.start_camp_day(db, day.id)
    assert day.status == CampDayStatus.IN_PROGRESS
    assert await CampDayService.initialize_attendance(db, day.id) == 0

    record = await AttendanceService.check_in(db, day.id, ava.athlete_id, "coach")
    assert record.status == AttendanceStatus.CHECKED_IN
    assert record.check_in_by == "coach"

    stats = await AttendanceService.get_attendance_stats(db, day.id)
    assert (stats.total, stats.checked_in, stats.not_arrived, stats.attendance_rate) == (2, 1, 1, 50)

    roster = await AttendanceService.get_roster(db, day.id)
    assert [r.athlete_name for r in roster] == ["Ava Adams", "Ben Brown"]

    with pytest.raises(BusinessRuleError, match="1 camper is still on-site"):
        await CampDayService.end_camp_day(db, day.id, "director", auto_checkout_all=False)

    ended = await CampDayService.end_camp_day(db, day.id, "director", notes="Rain delay")
    assert ended.status == CampDayStatus.FINISHED
    assert ended.completed_by == "director"
    assert ended.notes == "Rain delay"

    stats = await AttendanceService.get_attendance_stats(db, day.id)
    assert (stats.checked_out, stats.absent) == (1, 1)

    with pytest.raises(BusinessRuleError, match="already been completed"):
        await CampDayService.end_camp_day(db, day.id, "director")
    with pytest.raises(BusinessRuleError):
        await CampDayService.start_camp_day(db, day.id)
    with pytest.raises(BusinessRuleError):
        await AttendanceService.check_out(db, day.id, ben.athlete_id, "coach")


@pytest.mark.asyncio
async def test_check_in_creates_record_and_starts_day(db, tenant, make_camp, make_registration):
    camp = await make_camp(tenant.id)
    reg = await make_registration(camp)
    day = await CampDayService.get_or_create_camp_day(db, camp.id, camp.start_date, tenant.id)

    await AttendanceService.check_in(db, day.id, reg.athlete_id, "coach")
    assert day.status == CampDayStatus.IN_PROGRESS

    out = await AttendanceService.check_out(db, day.id, reg.athlete_id, "coach")
    assert out.status == AttendanceStatus.CHECKED_OUT

    absent = await AttendanceService.mark_absent(db, day.id, reg.athlete_id, notes="Went home sick")
    assert absent.status == AttendanceStatus.ABSENT
    assert "Went home sick" in absent.notes

    with pytest.raises(NotFoundError):
        await AttendanceService.check_in(db, day.id, "unknown-athlete", "coach")


@pytest.mark.asyncio
async def test_attendance_rate_rounds_half_up(db, tenant, make_camp, make_registration):
    camp = await make_camp(tenant.id)
    regs = [await make_registration(camp) for _ in range(8)]
    day = await CampDayService.get_or_create_camp_day(db, camp.id, camp.start_date, tenant.id)
    await CampDayService.start_camp_day(db, day.id)
    await AttendanceService.check_in(db, day.id, regs[0].athlete_id, "coach")

    stats = await AttendanceService.get_attendance_stats(db, day.id)
    assert (stats.total, stats.checked_in, stats.attendance_rate) == (8, 1, 13)
