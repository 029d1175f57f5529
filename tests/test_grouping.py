from datetime import date, datetime, timedelta

import pytest
from sqlalchemy import select

from camphub.core.exceptions import BusinessRuleError, NotFoundError
from camphub.models.camp import GroupingStatus
from camphub.models.grouping import AssignmentType, CamperSessionData
from camphub.services.grouping import (
    GroupState, GroupingConfig, RawCamper, add_late_registration, cluster_friend_groups, format_grade,
    format_grade_range, grade_from_dob, parse_grade, run_grouping, standardize, standardize_all,
)
from camphub.services.grouping.types import FRIEND_GROUP_SPLIT
from camphub.services.grouping_service import GroupingService

CAMP_START = date(2026, 7, 6)


def _raw(athlete_id: str, first: str, last: str, grade: str, friends=()) -> RawCamper:
    return RawCamper(
        athlete_id=athlete_id,
        registration_id=f"reg-{athlete_id}",
        first_name=first,
        last_name=last,
        date_of_birth=date(2017, 3, 1),
        reported_grade=grade,
        friend_requests=list(friends),
    )


@pytest.mark.parametrize("text,expected", [
    ("Pre-K", -1),
    ("prek", -1),
    ("K", 0),
    ("Kindergarten", 0),
    ("3rd", 3),
    ("3rd grade", 3),
    ("Grade 5", 5),
    ("third grade", 3),
    ("going into four", 4),
    ("13", None),
    ("", None),
    (None, None),
])
def test_parse_grade(text, expected):
    assert parse_grade(text) == expected


def test_grade_formatting_and_dob():
    assert [format_grade(g) for g in (-1, 0, 1, 2, 3, 4)] == ["Pre-K", "K", "1st", "2nd", "3rd", "4th"]
    assert format_grade_range(0, 2) == "K - 2nd"
    assert format_grade_range(3, 3) == "3rd"
    # School year starting Sep 2025: 10 years old on Sep 1 means 5th grade
    assert grade_from_dob(date(2015, 6, 1), date(2026, 7, 1)) == 5
    assert grade_from_dob(date(2015, 6, 1), date(2026, 9, 15)) == 6


def test_standardize_flags_discrepancy_and_late_registration():
    raw = _raw("a", "Ava", "Adams", "1st")
    raw.date_of_birth = date(2015, 6, 1)
    raw.registered_at = datetime.combine(CAMP_START, datetime.min.time()) - timedelta(days=3)
    camper = standardize(raw, CAMP_START)
    assert camper.computed_grade == 5
    assert camper.grade == 1
    assert camper.grade_discrepancy is True
    assert "held back" in camper.grade_discrepancy_note
    assert camper.is_late_registration is True


def test_friend_requests_resolve_and_cluster():
    campers = standardize_all([
        _raw("a", "Ava", "Adams", "3", friends=["ben brown"]),
        _raw("b", "Ben", "Brown", "3"),
        _raw("c", "Cal", "Cruz", "3", friends=["Dee"]),
        _raw("d", "Dee", "Diaz", "3"),
        _raw("e", "Eve", "Evans", "3", friends=["Dee Diaz", "Nobody Here"]),
        _raw("f", "Fin", "Ford", "3"),
    ], CAMP_START)
    by_id = {c.athlete_id: c for c in campers}
    assert by_id["a"].friend_ids == ["b"]
    assert by_id["e"].friend_ids == ["d"]

    groups, solos = cluster_friend_groups(campers)
    assert [sorted(g.member_ids) for g in groups] == [["c", "d", "e"], ["a", "b"]]
    assert [s.athlete_id for s in solos] == ["f"]
    assert by_id["a"].friend_group_id == by_id["b"].friend_group_id


def test_run_grouping_keeps_friends_together_and_respects_size():
    campers = standardize_all([
        _raw("a", "Ava", "Adams", "3", friends=["Ben Brown"]),
        _raw("b", "Ben", "Brown", "3"),
        _raw("c", "Cal", "Cruz", "1"),
        _raw("d", "Dee", "Diaz", "1"),
        _raw("e", "Eve", "Evans", "2"),
        _raw("f", "Fin", "Ford", "3"),
        _raw("g", "Gus", "Gray", "4"),
        _raw("h", "Hal", "Hunt", "5"),
        _raw("i", "Ivy", "Irwin", "5"),
    ], CAMP_START)
    config = GroupingConfig(max_group_size=4, num_groups=3, max_grade_spread=2)
    result = run_grouping(campers, config)

    placed = [cid for g in result.groups for cid in g.camper_ids]
    assert sorted(placed) == sorted(c.athlete_id for c in campers)
    assert all(g.size <= 4 for g in result.groups)
    home = {cid: g.id for g in result.groups for cid in g.camper_ids}
    assert home["a"] == home["b"]
    assert [g.id for g in result.groups] == ["group-1", "group-2", "group-3"]
    assert result.stats.total_campers == 9
    assert result.stats.friend_groups_placed_intact == 1


def test_manual_placement_is_preserved():
    campers = standardize_all([_raw(x, x.upper(), "Kid", "2") for x in "abcd"], CAMP_START)
    config = GroupingConfig(max_group_size=4, num_groups=2)
    result = run_grouping(campers, config, existing_assignments={"a": "group-2"})
    manual = [a for a in result.assignments if a.assignment_type == "manual"]
    assert [(a.camper_id, a.group_id) for a in manual] == [("a", "group-2")]
    assert "a" in result.groups[1].camper_ids


def test_oversized_friend_group_is_split_with_warning():
    names = ["Ann", "Bo", "Cy", "Di", "Ed"]
    raws = [
        _raw(name.lower(), name, "Pal", "2", friends=[f"{names[i + 1]} Pal"] if i + 1 < len(names) else [])
        for i, name in enumerate(names)
    ]
    campers = standardize_all(raws, CAMP_START)
    config = GroupingConfig(max_group_size=3, num_groups=3)
    result = run_grouping(campers, config)

    assert result.stats.friend_groups_split == 1
    assert any(v.violation_type == FRIEND_GROUP_SPLIT for v in result.violations)
    assert result.warnings
    assert result.success is True
    assert all(g.size <= 3 for g in result.groups)


def test_late_registration_prefers_matching_grade():
    young = GroupState(id="g1", group_number=1, name="Lightning", color="#000")
    old = GroupState(id="g2", group_number=2, name="Thunder", color="#fff")
    for i in range(3):
        young.add(f"y{i}", 1)
        old.add(f"o{i}", 5)
    camper = standardize(_raw("late", "Lou", "Late", "5"), CAMP_START)
    target, violations = add_late_registration(camper, [young, old], GroupingConfig(max_group_size=4))
    assert target.id == "g2"
    assert violations == []

    target, violations = add_late_registration(camper, [young], GroupingConfig(max_group_size=3))
    assert {v.violation_type for v in violations} == {"size_exceeded", "grade_spread_exceeded"}


@pytest.mark.asyncio
async def test_grouping_service_workflow(db, tenant, make_camp, make_registration):
    camp = await make_camp(tenant.id, num_groups=2, max_group_size=4, max_grade_spread=2)
    camp_id, tenant_id = camp.id, tenant.id
    await make_registration(camp, first_name="Ava", last_name="Adams", grade="3", friend_requests=["Ben Brown"])
    await make_registration(camp, first_name="Ben", last_name="Brown", grade="3")
    for first, grade in (("Cal", "2"), ("Dee", "3"), ("Eve", "4"), ("Fin", "4")):
        await make_registration(camp, first_name=first, last_name="Kid", grade=grade)

    outcome = await GroupingService.run_auto_grouping(db, camp_id, tenant_id)
    assert outcome["stats"]["total_campers"] == 6
    assert camp.grouping_status == GroupingStatus.AUTO_GROUPED

    rows = {r.first_name: r for r in (await db.execute(select(CamperSessionData))).scalars().all()}
    assert all(r.assigned_group_id for r in rows.values())
    assert rows["Ava"].assigned_group_id == rows["Ben"].assigned_group_id

    report = await GroupingService.get_grouping_report(db, camp_id, tenant_id)
    assert len(report.groups) == 2
    assert report.unassigned == []
    assert sum(g.camper_count for g in report.groups) == 6

    cal = rows["Cal"]
    other = next(g for g in report.groups if g.id != cal.assigned_group_id)
    if other.camper_count < 4:
        moved = await GroupingService.move_camper(db, camp_id, cal.id, other.id, "Carpool", tenant_id)
        assert moved.assignment_type == AssignmentType.MANUAL
        assert camp.grouping_status == GroupingStatus.REVIEWED

        await GroupingService.run_auto_grouping(db, camp_id, tenant_id)
        assert cal.assigned_group_id == other.id
        assert cal.assignment_type == AssignmentType.MANUAL

    with pytest.raises(NotFoundError):
        await GroupingService.move_camper(db, camp_id, cal.id, "missing-group", None, tenant_id)

    await GroupingService.finalize_grouping(db, camp_id, "director", tenant_id)
    assert camp.grouping_status == GroupingStatus.FINALIZED
    with pytest.raises(BusinessRuleError, match="finalized"):
        await GroupingService.run_auto_grouping(db, camp_id, tenant_id)

    await GroupingService.unfinalize_grouping(db, camp_id, tenant_id)
    assert camp.grouping_status == GroupingStatus.REVIEWED

    late = await make_registration(camp, first_name="Lou", last_name="Late", grade="3")
    placed = await GroupingService.assign_late_registration(db, camp_id, late.id, tenant_id)
    assert placed["group_id"] in {g.id for g in report.groups}
    assert placed["group_name"]


@pytest.mark.asyncio
async def test_grouping_is_tenant_scoped(db, tenant, other_tenant, make_camp):
    camp = await make_camp(tenant.id)
    with pytest.raises(NotFoundError):
        await GroupingService.run_auto_grouping(db, camp.id, other_tenant.id)
