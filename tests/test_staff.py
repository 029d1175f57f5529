import pytest

from camphub.core.exceptions import BusinessRuleError, ConflictError, ForbiddenError, NotFoundError
from camphub.models.staff import StaffRequestStatus, StaffRole
from camphub.models.user import UserRole
from camphub.schemas.staff import StaffRequestCreate
from camphub.services.staff_assignment_service import StaffAssignmentService


@pytest.mark.asyncio
async def test_request_accept_creates_assignment(db, tenant, make_camp, make_user):
    camp = await make_camp(tenant.id)
    director = await make_user("director@acme-camps.com", UserRole.DIRECTOR, tenant.id, first_name="Dana")
    coach = await make_user("coach@acme-camps.com", UserRole.COACH, tenant.id, first_name="Cory", last_name="Coach")

    request = await StaffAssignmentService.create_request(
        db, camp.id, tenant.id, director, StaffRequestCreate(user_id=coach.id, role=StaffRole.COACH, station_name="Field 2")
    )
    assert request["status"] == StaffRequestStatus.PENDING
    assert request["requested_user_name"] == "Cory Coach"
    assert request["camp_name"] == camp.name
    assert await StaffAssignmentService.pending_count_for_user(db, coach.id) == 1

    with pytest.raises(ConflictError, match="already pending"):
        await StaffAssignmentService.create_request(
            db, camp.id, tenant.id, director, StaffRequestCreate(user_id=coach.id, role=StaffRole.COACH)
        )

    answered = await StaffAssignmentService.respond(db, request["id"], coach.id, accept=True)
    assert answered["status"] == StaffRequestStatus.ACCEPTED
    assert answered["responded_at"] is not None

    assignments = await StaffAssignmentService.list_assignments(db, camp.id, tenant.id)
    assert [(a.user_id, a.role, a.station_name) for a in assignments] == [(coach.id, StaffRole.COACH, "Field 2")]
    assert await StaffAssignmentService.pending_count_for_user(db, coach.id) == 0

    with pytest.raises(BusinessRuleError, match="already been responded to"):
        await StaffAssignmentService.respond(db, request["id"], coach.id, accept=False)
    with pytest.raises(ConflictError, match="already assigned"):
        await StaffAssignmentService.create_request(
            db, camp.id, tenant.id, director, StaffRequestCreate(user_id=coach.id, role=StaffRole.ASSISTANT)
        )


@pytest.mark.asyncio
async def test_staff_from_another_tenant_cannot_be_requested(db, tenant, other_tenant, make_camp, make_user):
    camp = await make_camp(tenant.id)
    director = await make_user("director@acme-camps.com", UserRole.DIRECTOR, tenant.id)
    outsider = await make_user("coach@other.com", UserRole.COACH, other_tenant.id)

    with pytest.raises(NotFoundError, match="Staff member not found"):
        await StaffAssignmentService.create_request(
            db, camp.id, tenant.id, director, StaffRequestCreate(user_id=outsider.id, role=StaffRole.COACH)
        )
    with pytest.raises(NotFoundError):
        await StaffAssignmentService.create_request(
            db, camp.id, other_tenant.id, director, StaffRequestCreate(user_id=outsider.id, role=StaffRole.COACH)
        )


@pytest.mark.asyncio
async def test_only_the_invitee_responds_and_only_the_requester_cancels(db, tenant, make_camp, make_user):
    camp = await make_camp(tenant.id)
    director = await make_user("director@acme-camps.com", UserRole.DIRECTOR, tenant.id)
    coach = await make_user("coach@acme-camps.com", UserRole.COACH, tenant.id)
    other = await make_user("other@acme-camps.com", UserRole.COACH, tenant.id)

    request = await StaffAssignmentService.create_request(
        db, camp.id, tenant.id, director, StaffRequestCreate(user_id=coach.id, role=StaffRole.COACH)
    )
    with pytest.raises(ForbiddenError, match="not authorized to respond"):
        await StaffAssignmentService.respond(db, request["id"], other.id, accept=True)
    with pytest.raises(ForbiddenError, match="not authorized to cancel"):
        await StaffAssignmentService.cancel_request(db, request["id"], coach.id)

    await StaffAssignmentService.cancel_request(db, request["id"], director.id)
    with pytest.raises(NotFoundError, match="Request not found"):
        await StaffAssignmentService.respond(db, request["id"], coach.id, accept=True)


@pytest.mark.asyncio
async def test_declined_request_can_be_sent_again(db, tenant, make_camp, make_user):
    camp = await make_camp(tenant.id)
    director = await make_user("director@acme-camps.com", UserRole.DIRECTOR, tenant.id)
    coach = await make_user("coach@acme-camps.com", UserRole.COACH, tenant.id)
    data = StaffRequestCreate(user_id=coach.id, role=StaffRole.CIT)

    first = await StaffAssignmentService.create_request(db, camp.id, tenant.id, director, data)
    await StaffAssignmentService.respond(db, first["id"], coach.id, accept=False)
    with pytest.raises(BusinessRuleError, match="Only pending requests"):
        await StaffAssignmentService.cancel_request(db, first["id"], director.id)

    second = await StaffAssignmentService.create_request(db, camp.id, tenant.id, director, data)
    assert second["id"] != first["id"]
    mine = await StaffAssignmentService.list_requests_for_user(db, coach.id)
    assert [r["id"] for r in mine] == [second["id"]]
    assert await StaffAssignmentService.list_requests_for_camp(
        db, camp.id, tenant.id, StaffRequestStatus.DECLINED
    ) == []


@pytest.mark.asyncio
async def test_locked_camp_rejects_staffing_changes(db, tenant, make_camp, make_user):
    camp = await make_camp(tenant.id)
    director = await make_user("director@acme-camps.com", UserRole.DIRECTOR, tenant.id)
    coach = await make_user("coach@acme-camps.com", UserRole.COACH, tenant.id)
    request = await StaffAssignmentService.create_request(
        db, camp.id, tenant.id, director, StaffRequestCreate(user_id=coach.id, role=StaffRole.COACH)
    )
    await StaffAssignmentService.respond(db, request["id"], coach.id, accept=True)
    assignment = (await StaffAssignmentService.list_assignments(db, camp.id, tenant.id))[0]

    camp.is_locked = True
    await db.flush()
    with pytest.raises(BusinessRuleError, match="Camp is locked"):
        await StaffAssignmentService.remove_assignment(db, assignment.id, tenant.id)
    with pytest.raises(BusinessRuleError, match="Camp is locked"):
        await StaffAssignmentService.create_request(
            db, camp.id, tenant.id, director, StaffRequestCreate(user_id=director.id, role=StaffRole.DIRECTOR)
        )

    camp.is_locked = False
    await StaffAssignmentService.remove_assignment(db, assignment.id, tenant.id)
    assert await StaffAssignmentService.list_assignments(db, camp.id, tenant.id) == []
    with pytest.raises(NotFoundError, match="Staff assignment not found"):
        await StaffAssignmentService.remove_assignment(db, assignment.id, tenant.id)


@pytest.mark.asyncio
async def test_staff_endpoints(client, tenant, make_camp, make_user, auth_headers):
    camp = await make_camp(tenant.id)
    director = await make_user("director@acme-camps.com", UserRole.DIRECTOR, tenant.id)
    coach = await make_user("coach@acme-camps.com", UserRole.COACH, tenant.id)
    other = await make_user("other@acme-camps.com", UserRole.COACH, tenant.id)

    resp = await client.post(
        f"/api/v1/staff/camps/{camp.id}/requests",
        json={"user_id": coach.id, "role": "coach"},
        headers=auth_headers(coach),
    )
    assert resp.status_code == 403

    resp = await client.post(
        f"/api/v1/staff/camps/{camp.id}/requests",
        json={"user_id": coach.id, "role": "coach"},
        headers=auth_headers(director),
    )
    assert resp.status_code == 200
    request_id = resp.json()["id"]

    resp = await client.get("/api/v1/staff/requests/mine/pending-count", headers=auth_headers(coach))
    assert resp.json() == {"count": 1}

    resp = await client.post(
        f"/api/v1/staff/requests/{request_id}/respond", json={"accept": True}, headers=auth_headers(other)
    )
    assert resp.status_code == 403
    assert resp.json()["detail"] == "You are not authorized to respond to this request"

    resp = await client.post(
        f"/api/v1/staff/requests/{request_id}/respond", json={"accept": True}, headers=auth_headers(coach)
    )
    assert resp.status_code == 200
    assert resp.json()["status"] == "accepted"

    resp = await client.get(f"/api/v1/staff/camps/{camp.id}/assignments", headers=auth_headers(coach))
    assert [a["user_id"] for a in resp.json()] == [coach.id]
