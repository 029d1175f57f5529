import pytest

from camphub.core.exceptions import NotFoundError
from camphub.models.base import utcnow
from camphub.models.camp import CampStatus
from camphub.models.registration import RegistrationStatus, PaymentStatus
from camphub.services.attendance_service import AttendanceService
from camphub.services.camp_day_service import CampDayService
from camphub.services.camp_hq_service import CampHQService, grouping_status_for
from camphub.services.grouping_service import GroupingService


def test_grouping_status_for():
    assert grouping_status_for(0, 0) == "pending"
    assert grouping_status_for(0, 5) == "pending"
    assert grouping_status_for(3, 5) == "reviewed"
    assert grouping_status_for(5, 5) == "finalized"


@pytest.mark.asyncio
async def test_overview_tracks_the_day(db, tenant, make_camp, make_registration):
    today = utcnow().date()
    camp = await make_camp(tenant.id, status=CampStatus.IN_PROGRESS, start_date=today)
    ava = await make_registration(camp)
    await make_registration(camp)
    await make_registration(camp, status=RegistrationStatus.WAITLISTED, payment_status=PaymentStatus.PENDING)

    overview = await CampHQService.get_camp_hq_overview(db, camp.id, tenant.id, today=today)
    assert overview["schedule"]["days_total"] == 5
    assert overview["schedule"]["is_camp_day"] is True
    assert overview["schedule"]["day_number"] == 1
    assert overview["schedule"]["today_status"] == "not_started"
    assert overview["enrollment"]["registered"] == 2
    assert overview["enrollment"]["waitlisted"] == 1
    assert overview["enrollment"]["percent_full"] == 20
    assert overview["grouping"]["status"] == "pending"
    assert overview["quick_actions"] == ["start_day", "run_grouping", "view_roster"]

    day = await CampDayService.get_or_create_camp_day(db, camp.id, today, tenant.id)
    await AttendanceService.check_in(db, day.id, ava.athlete_id, "coach")
    await GroupingService.run_auto_grouping(db, camp.id, tenant.id)

    overview = await CampHQService.get_camp_hq_overview(db, camp.id, tenant.id, today=today)
    assert overview["schedule"]["today_camp_day_id"] == day.id
    assert overview["schedule"]["today_status"] == "in_progress"
    assert overview["attendance"]["checked_in"] == 1
    assert overview["attendance"]["not_arrived"] == 1
    assert overview["attendance"]["on_site"] == 1
    assert overview["grouping"] == {"status": "finalized", "total_campers": 2, "assigned_campers": 2}
    assert overview["quick_actions"] == ["end_day", "view_roster"]


@pytest.mark.asyncio
async def test_overview_outside_camp_dates(db, tenant, other_tenant, make_camp):
    camp = await make_camp(tenant.id)
    overview = await CampHQService.get_camp_hq_overview(db, camp.id, tenant.id)
    assert overview["schedule"]["is_camp_day"] is False
    assert overview["schedule"]["day_number"] is None
    assert "start_day" not in overview["quick_actions"]

    with pytest.raises(NotFoundError):
        await CampHQService.get_camp_hq_overview(db, camp.id, other_tenant.id)


@pytest.mark.asyncio
async def test_percent_full_rounds_half_up(db, tenant, make_camp, make_registration):
    camp = await make_camp(tenant.id, capacity=8)
    await make_registration(camp)
    overview = await CampHQService.get_camp_hq_overview(db, camp.id, tenant.id)
    assert overview["enrollment"]["percent_full"] == 13
