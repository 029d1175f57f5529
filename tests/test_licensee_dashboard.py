from datetime import date
from decimal import Decimal

import pytest

from camphub.core.exceptions import BusinessRuleError
from camphub.models.camp import CampStatus
from camphub.models.incentive import CampSessionCompensation, PlanCode
from camphub.models.staff import StaffRole
from camphub.models.user import UserRole
from camphub.schemas.staff import StaffRequestCreate
from camphub.services.incentive_service import IncentiveService
from camphub.services.licensee_dashboard_service import LicenseeDashboardService, period_dates
from camphub.services.staff_assignment_service import StaffAssignmentService

TODAY = date(2026, 6, 15)


@pytest.fixture
def season(db, tenant, make_camp, make_registration, make_user):
    """Last winter's camp, one finished and one running this season, one still open for registration."""
    async def _build():
        last_winter = await make_camp(
            tenant.id, slug="winter", status=CampStatus.COMPLETED,
            start_date=date(2025, 12, 1), end_date=date(2025, 12, 5),
        )
        done = await make_camp(
            tenant.id, name="June Camp", slug="june", status=CampStatus.COMPLETED,
            start_date=date(2026, 6, 1), end_date=date(2026, 6, 5),
        )
        running = await make_camp(
            tenant.id, name="Mid June", slug="mid-june", status=CampStatus.IN_PROGRESS,
            start_date=date(2026, 6, 14), end_date=date(2026, 6, 18),
        )
        upcoming = await make_camp(
            tenant.id, name="July Camp", slug="july",
            start_date=date(2026, 7, 1), end_date=date(2026, 7, 5),
        )
        await make_registration(last_winter)
        await make_registration(done, addons_total_cents=2500, total_price_cents=22500)
        await make_registration(done)
        await make_registration(running)

        director = await make_user(
            "director@acme-camps.com", UserRole.DIRECTOR, tenant.id, first_name="Dana", last_name="Lead"
        )
        coach = await make_user("coach@acme-camps.com", UserRole.COACH, tenant.id)
        accepted = await StaffAssignmentService.create_request(
            db, done.id, tenant.id, director, StaffRequestCreate(user_id=director.id, role=StaffRole.DIRECTOR)
        )
        await StaffAssignmentService.respond(db, accepted["id"], director.id, accept=True)
        await StaffAssignmentService.create_request(
            db, running.id, tenant.id, director, StaffRequestCreate(user_id=coach.id, role=StaffRole.COACH)
        )

        await IncentiveService.seed_default_plans(db)
        plan = await IncentiveService.get_plan_by_code(db, PlanCode.MID)
        db.add(CampSessionCompensation(
            tenant_id=tenant.id,
            camp_id=done.id,
            staff_profile_id=director.id,
            plan_id=plan.id,
            csat_avg_score=Decimal("4.00"),
            fixed_stipend_total=Decimal("1500.00"),
            total_variable_bonus=Decimal("300.00"),
            is_finalized=False,
        ))
        await db.commit()
        return {"done": done, "running": running, "upcoming": upcoming}
    return _build


def test_period_dates():
    assert period_dates("season", TODAY) == (date(2026, 3, 1), date(2026, 9, 30))
    assert period_dates("ytd", TODAY) == (date(2026, 1, 1), TODAY)
    assert period_dates("last_30_days", TODAY) == (date(2026, 5, 16), TODAY)


@pytest.mark.asyncio
async def test_sales_kpis_compare_with_previous_period(db, tenant, season):
    await season()
    kpis = await LicenseeDashboardService.get_sales_kpis(db, tenant.id, "season", TODAY)

    assert kpis["total_gross_revenue_cents"] == 62500
    assert kpis["upsell_revenue_cents"] == 2500
    assert kpis["sessions_held"] == 2
    assert kpis["sessions_delta"] == 1
    assert kpis["total_registrations"] == 3
    assert kpis["avg_enrollment_per_session"] == 1.5
    assert kpis["revenue_delta_percent"] == 212.5
    assert kpis["enrollment_delta_percent"] == 50.0

    with pytest.raises(BusinessRuleError, match="Unknown period"):
        await LicenseeDashboardService.get_sales_kpis(db, tenant.id, "decade", TODAY)


@pytest.mark.asyncio
async def test_sales_kpis_without_history_have_no_deltas(db, tenant):
    kpis = await LicenseeDashboardService.get_sales_kpis(db, tenant.id, "ytd", TODAY)
    assert kpis["revenue_delta_percent"] is None
    assert kpis["sessions_delta"] is None
    assert kpis["avg_enrollment_per_session"] == 0


@pytest.mark.asyncio
async def test_financial_quality_and_incentive_kpis(db, tenant, season):
    await season()

    financial = await LicenseeDashboardService.get_financial_kpis(db, tenant.id, TODAY)
    assert financial == {
        "total_royalty_due_cents": 5000,
        "total_royalty_paid_cents": 0,
        "total_outstanding_cents": 5000,
        "royalty_compliance_rate": 0,
        "sessions_needing_closeout": 1,
        "average_revenue_per_camper_cents": 20833,
    }

    quality = await LicenseeDashboardService.get_quality_kpis(db, tenant.id, TODAY)
    assert quality["avg_csat_score"] == 4.0
    assert quality["total_sessions_measured"] == 2
    assert quality["warnings"] == ["CSAT score below 4.2 threshold"]

    incentives = await LicenseeDashboardService.get_incentive_overview(db, tenant.id, TODAY)
    assert incentives == {
        "total_finalized": Decimal("0.00"),
        "total_pending": Decimal("1800.00"),
        "staff_with_compensation": 1,
        "avg_compensation_per_session": Decimal("1800.00"),
    }


@pytest.mark.asyncio
async def test_camp_lists_staff_and_alerts(db, tenant, season):
    camps = await season()

    active = await LicenseeDashboardService.list_camps(db, tenant.id, "active", TODAY)
    assert [(c["id"], c["status"], c["enrolled_count"], c["has_director"]) for c in active] == [
        (camps["running"].id, "running", 1, False)
    ]
    upcoming = await LicenseeDashboardService.list_camps(db, tenant.id, "upcoming", TODAY)
    assert [(c["name"], c["status"]) for c in upcoming] == [("July Camp", "registration")]
    completed = await LicenseeDashboardService.list_camps(db, tenant.id, "completed", TODAY)
    june = next(c for c in completed if c["id"] == camps["done"].id)
    assert (june["director_name"], june["royalty_status"]) == ("Dana Lead", "not_generated")

    staff = await LicenseeDashboardService.get_staff_summary(db, tenant.id, TODAY)
    assert staff["directors"] == {"count": 1, "active_this_season": 1}
    assert staff["coaches"] == {"count": 1, "active_this_season": 0}
    assert staff["total_staff"] == 2

    alerts = await LicenseeDashboardService.get_tasks_and_alerts(db, tenant.id, TODAY)
    assert alerts == {
        "sessions_needing_closeout": 1,
        "incentives_to_finalize": 1,
        "staff_requests_pending": 1,
        "total_alerts": 3,
    }


@pytest.mark.asyncio
async def test_dashboard_endpoint(client, tenant, make_user, auth_headers):
    owner = await make_user("owner@acme-camps.com", UserRole.LICENSEE_OWNER, tenant.id)
    director = await make_user("director@acme-camps.com", UserRole.DIRECTOR, tenant.id)

    resp = await client.get("/api/v1/dashboard", params={"today": TODAY.isoformat()}, headers=auth_headers(owner))
    assert resp.status_code == 200
    body = resp.json()
    assert body["territory"]["territory_name"] == "Unassigned Territory"
    assert body["territory"]["license_status"] == "active"
    assert body["financial_kpis"]["royalty_compliance_rate"] == 100
    assert body["tasks_alerts"]["total_alerts"] == 0

    resp = await client.get("/api/v1/dashboard", headers=auth_headers(director))
    assert resp.status_code == 403
    resp = await client.get("/api/v1/dashboard", params={"period": "decade"}, headers=auth_headers(owner))
    assert resp.status_code == 422
