import re
from datetime import date, timedelta

import pytest

from camphub.core.exceptions import BusinessRuleError, ConflictError
from camphub.models.base import utcnow
from camphub.models.camp import CampStatus
from camphub.models.registration import RegistrationStatus, PaymentStatus
from camphub.models.royalty import RoyaltyInvoiceStatus
from camphub.models.staff import StaffRole
from camphub.models.user import UserRole
from camphub.schemas.staff import StaffRequestCreate
from camphub.services.royalty_service import (
    RoyaltyService, can_transition, generate_invoice_number, to_base36
)
from camphub.services.staff_assignment_service import StaffAssignmentService


def test_invoice_number_format():
    assert to_base36(0) == "0"
    assert to_base36(35) == "z"
    assert to_base36(36) == "10"
    number = generate_invoice_number("acme-sports", "abcd1234-ffff")
    assert re.match(r"^ROY-ACMES-ABCD-[0-9A-Z]+$", number)
    assert generate_invoice_number(None, None).startswith("ROY-UNKNOW-GEN-")


def test_status_transitions():
    S = RoyaltyInvoiceStatus
    assert can_transition(S.INVOICED, S.PAID)
    assert can_transition(S.DISPUTED, S.INVOICED)
    assert can_transition(S.PAID, S.PAID)
    assert not can_transition(S.PAID, S.INVOICED)
    assert not can_transition(S.WAIVED, S.PAID)


@pytest.mark.asyncio
async def test_generate_invoice_for_confirmed_revenue(db, tenant, make_camp, make_registration, outbox):
    camp = await make_camp(tenant.id, status=CampStatus.COMPLETED)
    await make_registration(camp)
    await make_registration(camp)
    await make_registration(camp, status=RegistrationStatus.PENDING, payment_status=PaymentStatus.PENDING)

    invoice = await RoyaltyService.generate_royalty_invoice_for_session(db, camp.id, generated_by="hq-user")
    assert invoice.status == RoyaltyInvoiceStatus.INVOICED
    assert invoice.gross_revenue_cents == 40000
    assert invoice.royalty_rate_bps == 800
    assert invoice.royalty_due_cents == 3200
    assert invoice.total_due_cents == 3200
    assert len(invoice.line_items) == 2
    assert invoice.invoice_number.startswith("ROY-ACME-")
    assert invoice.due_date == (utcnow() + timedelta(days=30)).date()
    assert [m["to"] for m in outbox] == ["owner@acme-camps.com"]

    with pytest.raises(ConflictError):
        await RoyaltyService.generate_royalty_invoice_for_session(db, camp.id)


@pytest.mark.asyncio
async def test_status_updates_and_adjustments(db, tenant, make_camp, make_registration, outbox):
    camp = await make_camp(tenant.id, status=CampStatus.COMPLETED)
    await make_registration(camp)
    invoice = await RoyaltyService.generate_royalty_invoice_for_session(db, camp.id)

    adjusted = await RoyaltyService.add_adjustment(db, invoice.id, 50, "Late fee", user_id="hq-user")
    assert adjusted.adjustment_cents == 5000
    assert adjusted.total_due_cents == 1600 + 5000
    assert "+$50.00 - Late fee" in adjusted.adjustment_notes

    disputed = await RoyaltyService.update_invoice_status(
        db, invoice.id, RoyaltyInvoiceStatus.DISPUTED, notes="Wrong camper count"
    )
    assert disputed.dispute_reason == "Wrong camper count"

    paid = await RoyaltyService.update_invoice_status(
        db, invoice.id, RoyaltyInvoiceStatus.PAID, payment_method="ach", user_id="hq-user"
    )
    assert paid.paid_amount_cents == 6600
    assert paid.resolved_at is not None

    with pytest.raises(BusinessRuleError):
        await RoyaltyService.update_invoice_status(db, invoice.id, RoyaltyInvoiceStatus.INVOICED)
    with pytest.raises(BusinessRuleError):
        await RoyaltyService.add_adjustment(db, invoice.id, 10, "too late")

    summary = await RoyaltyService.get_admin_summary(db)
    assert summary["total_paid"] == 6600
    assert summary["by_status"]["paid"] == 1
    assert summary["total_outstanding"] == 0


@pytest.mark.asyncio
async def test_overdue_and_uninvoiced_camps(db, tenant, make_camp, make_registration, outbox):
    today = utcnow().date()
    done = await make_camp(
        tenant.id, status=CampStatus.COMPLETED,
        start_date=today - timedelta(days=6), end_date=today - timedelta(days=2),
    )
    await make_registration(done)
    done_id, tenant_id = done.id, tenant.id

    pending = await RoyaltyService.get_camps_without_invoices(db, start=today - timedelta(days=30), end=today)
    assert [c.id for c in pending] == [done_id]

    result = await RoyaltyService.bulk_generate_invoices(db, [done_id, "missing-camp"])
    assert result["generated"] == 1
    assert result["failed"] == 1

    assert await RoyaltyService.get_camps_without_invoices(db, start=today - timedelta(days=30), end=today) == []
    assert await RoyaltyService.mark_overdue_invoices(db, today=today + timedelta(days=31)) == 1

    invoices, total = await RoyaltyService.list_invoices(db, tenant_id=tenant_id, status=RoyaltyInvoiceStatus.OVERDUE)
    assert total == 1
    assert invoices[0].camp_id == done_id


async def _assign_director(db, camp, director):
    request = await StaffAssignmentService.create_request(
        db, camp.id, camp.tenant_id, director,
        StaffRequestCreate(user_id=director.id, role=StaffRole.DIRECTOR, is_lead=True),
    )
    await StaffAssignmentService.respond(db, request["id"], director.id, accept=True)


@pytest.mark.asyncio
async def test_licensee_summary_lists_every_session(db, tenant, make_camp, make_registration, make_user, outbox):
    today = utcnow().date()
    paid_camp = await make_camp(
        tenant.id, slug="june", status=CampStatus.COMPLETED,
        start_date=today + timedelta(days=10), end_date=today + timedelta(days=14),
    )
    open_camp = await make_camp(
        tenant.id, slug="july", status=CampStatus.COMPLETED,
        start_date=today + timedelta(days=20), end_date=today + timedelta(days=24),
    )
    running = await make_camp(
        tenant.id, slug="august", status=CampStatus.IN_PROGRESS,
        start_date=today + timedelta(days=30), end_date=today + timedelta(days=34),
    )
    await make_camp(tenant.id, slug="later", start_date=today + timedelta(days=40), end_date=today + timedelta(days=44))
    for camp, campers in ((paid_camp, 2), (open_camp, 1), (running, 1)):
        for _ in range(campers):
            await make_registration(camp)
    director = await make_user("director@acme-camps.com", UserRole.DIRECTOR, tenant.id, first_name="Dana", last_name="Lead")
    await _assign_director(db, paid_camp, director)

    invoice = await RoyaltyService.generate_royalty_invoice_for_session(db, paid_camp.id)
    await RoyaltyService.update_invoice_status(db, invoice.id, RoyaltyInvoiceStatus.PAID)

    summary = await RoyaltyService.get_licensee_royalty_summary(db, tenant.id, today, today + timedelta(days=60))

    rows = summary["camps"]
    assert [r["camp_slug"] for r in rows] == ["august", "july", "june"]
    june = rows[2]
    assert june["royalty_status"] == "paid"
    assert june["director_name"] == "Dana Lead"
    assert (june["camper_count"], june["gross_revenue_cents"], june["royalty_due_cents"]) == (2, 40000, 3200)
    assert june["invoice_number"] == invoice.invoice_number
    assert rows[1]["royalty_status"] == "not_generated"
    assert rows[1]["invoice_id"] is None
    assert rows[0]["status"] == "in_progress"

    totals = summary["totals"]
    assert totals["total_gross_revenue_cents"] == 80000
    assert totals["total_royalty_due_cents"] == 6400
    assert totals["total_royalty_paid_cents"] == 3200
    assert totals["total_outstanding_cents"] == 3200
    assert (totals["sessions_count"], totals["sessions_invoiced"], totals["sessions_paid"]) == (3, 1, 1)
    assert totals["compliance_rate"] == 50
    assert summary["royalty_rate_bps"] == 800


@pytest.mark.asyncio
async def test_licensee_summary_defaults_to_season_and_full_compliance(db, tenant):
    summary = await RoyaltyService.get_licensee_royalty_summary(db, tenant.id)
    year = utcnow().year
    assert (summary["period_start"], summary["period_end"]) == (date(year, 3, 1), date(year, 9, 30))
    assert summary["camps"] == []
    assert summary["totals"]["compliance_rate"] == 100
    assert summary["totals"]["total_royalty_due_cents"] == 0


@pytest.mark.asyncio
async def test_licensee_summary_endpoint(client, tenant, make_user, auth_headers):
    owner = await make_user("owner@acme-camps.com", UserRole.LICENSEE_OWNER, tenant.id)
    coach = await make_user("coach@acme-camps.com", UserRole.COACH, tenant.id)

    resp = await client.get("/api/v1/royalties/summary", headers=auth_headers(owner))
    assert resp.status_code == 200
    assert resp.json()["totals"]["compliance_rate"] == 100
    resp = await client.get("/api/v1/royalties/summary", headers=auth_headers(coach))
    assert resp.status_code == 403
