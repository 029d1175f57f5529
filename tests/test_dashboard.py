from datetime import datetime, timedelta

import pytest
import pytest_asyncio

from camphub.models.base import utcnow
from camphub.models.camp import CampStatus
from camphub.models.registration import RegistrationStatus, PaymentStatus
from camphub.services.admin_dashboard_service import (
    AdminDashboardService, change_percent, processing_fees, relative_time, revenue_share
)

NOW = datetime(2026, 5, 10, 12, 0)


@pytest.mark.parametrize("delta,expected", [
    (timedelta(seconds=30), "Just now"),
    (timedelta(minutes=5), "5 min ago"),
    (timedelta(hours=1), "1 hour ago"),
    (timedelta(hours=3), "3 hours ago"),
    (timedelta(days=2), "2 days ago"),
    (timedelta(days=10), "Apr 30"),
])
def test_relative_time(delta, expected):
    assert relative_time(NOW - delta, NOW) == expected


def test_money_helpers():
    assert change_percent(150, 100) == 50.0
    assert change_percent(50, 100) == -50.0
    assert change_percent(5, 0) == 100
    assert change_percent(0, 0) == 0
    assert processing_fees(10000, 2) == 350
    assert revenue_share(10000) == {"gross": 10000, "hq": 1000, "licensee": 9000}


def test_money_helpers_round_halves_up():
    assert revenue_share(12345) == {"gross": 12345, "hq": 1235, "licensee": 11110}
    assert revenue_share(25) == {"gross": 25, "hq": 3, "licensee": 22}
    # 2.9% of $5.00 is 14.5 cents
    assert processing_fees(500, 1) == 45
    assert change_percent(401, 400) == 0.3
    assert change_percent(399, 400) == -0.3


@pytest_asyncio.fixture
async def running_camp(tenant, other_tenant, make_camp, make_registration):
    today = utcnow().date()
    camp = await make_camp(
        tenant.id, status=CampStatus.IN_PROGRESS,
        start_date=today - timedelta(days=1), end_date=today + timedelta(days=3),
    )
    await make_registration(camp)
    await make_registration(camp)
    await make_registration(camp, status=RegistrationStatus.PENDING, payment_status=PaymentStatus.PENDING)
    return camp


@pytest.mark.asyncio
async def test_overview_counts_confirmed_revenue(db, running_camp):
    overview = await AdminDashboardService.get_overview(db)
    assert overview["active_licensees"] == 2
    assert overview["total_licensees"] == 2
    assert overview["registrations"] == 2
    assert overview["gross_revenue"] == 40000
    assert overview["net_revenue"] == 40000
    assert overview["unique_athletes"] == 2
    assert overview["active_camps"] == 1
    assert overview["today_campers"] == 2
    assert overview["revenue_share_this_month"] == {"gross": 40000, "hq": 4000, "licensee": 36000}


@pytest.mark.asyncio
async def test_licensee_performance_and_comparison(db, tenant, running_camp):
    performance = await AdminDashboardService.get_licensee_performance(db)
    assert [p["slug"] for p in performance] == ["acme", "other"]
    assert performance[0]["revenue"] == 40000
    assert performance[1]["registrations"] == 0

    comparison = await AdminDashboardService.get_comparison(db)
    assert comparison["metrics"]["registrations"] == {"current": 2, "previous": 0, "change_percent": 100}


@pytest.mark.asyncio
async def test_total_revenue_and_recent_activity(db, running_camp):
    revenue = await AdminDashboardService.get_total_revenue(db)
    all_time = revenue["all_time"]
    assert all_time["gross"] == 40000
    assert all_time["transactions"] == 2
    assert all_time["fees"] == 1160 + 60
    assert all_time["net"] == 40000 - 1220
    assert revenue["source"] == "database"

    activity = await AdminDashboardService.get_recent_activity(db)
    assert len(activity) == 5
    assert {item["type"] for item in activity} >= {"registration"}
    assert all(item["relative_time"] == "Just now" for item in activity)

    details = await AdminDashboardService.get_registration_details(db)
    assert len(details) == 2
    assert details[0]["licensee_name"] == "Acme Camps"
    assert details[0]["registration_charge"] == 20000
