import logging
from dataclasses import asdict
from typing import Any, Dict, List, Optional

from sqlalchemy import select, and_, update, delete
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..core.exceptions import BusinessRuleError, NotFoundError
from ..models.attendance import CampAttendance
from ..models.base import utcnow
from ..models.camp import Camp, GroupingStatus
from ..models.grouping import CampGroup, CamperSessionData, AssignmentType
from ..models.registration import Registration, RegistrationStatus
from ..schemas.grouping import GroupCamper, GroupReport, GroupingReport
from .grouping import (
    Camper, GroupState, GroupingConfig, RawCamper, GROUP_COLORS, GROUP_NAMES,
    add_late_registration, cluster_friend_groups, format_grade, format_grade_range,
    run_grouping, standardize_all,
)

logger = logging.getLogger(__name__)

MANUAL_TYPES = (AssignmentType.MANUAL, AssignmentType.OVERRIDE)


def camp_config(camp: Camp) -> GroupingConfig:
    return GroupingConfig(
        max_group_size=camp.max_group_size or 12,
        num_groups=camp.num_groups or 5,
        max_grade_spread=camp.max_grade_spread if camp.max_grade_spread is not None else 2,
    )


def _to_camper(row: CamperSessionData) -> Camper:
    return Camper(
        athlete_id=row.athlete_id,
        registration_id=row.registration_id,
        first_name=row.first_name or "",
        last_name=row.last_name or "",
        date_of_birth=row.date_of_birth,
        age_at_camp_start=row.age_at_camp_start or 0,
        age_months_at_camp_start=row.age_months_at_camp_start or 0,
        reported_grade=row.reported_grade,
        reported_grade_normalized=row.reported_grade_normalized,
        computed_grade=row.computed_grade,
        grade=row.validated_grade,
        grade_discrepancy=bool(row.grade_discrepancy),
        grade_discrepancy_note=row.grade_discrepancy_note,
        friend_requests=list(row.friend_requests or []),
        friend_ids=list(row.friend_request_athlete_ids or []),
        registered_at=row.registered_at,
        is_late_registration=bool(row.is_late_registration),
    )


def _group_camper(row: CamperSessionData) -> GroupCamper:
    return GroupCamper(
        id=row.id,
        athlete_id=row.athlete_id,
        name=row.full_name,
        grade=row.validated_grade,
        grade_label=format_grade(row.validated_grade) if row.validated_grade is not None else "Unknown",
        friend_group_id=row.friend_group_id,
        assignment_type=row.assignment_type,
        assignment_reason=row.assignment_reason,
        is_late_registration=bool(row.is_late_registration),
        grade_discrepancy=bool(row.grade_discrepancy),
    )


class GroupingService:
    """Persists camper snapshots and group assignments for a camp"""

    @staticmethod
    async def _get_camp(db: AsyncSession, camp_id: str, tenant_id: Optional[str]) -> Camp:
        stmt = select(Camp).where(Camp.id == camp_id)
        if tenant_id:
            stmt = stmt.where(Camp.tenant_id == tenant_id)
        camp = (await db.execute(stmt)).scalar_one_or_none()
        if not camp:
            raise NotFoundError("Camp not found")
        return camp

    @staticmethod
    async def _camper_rows(db: AsyncSession, camp_id: str) -> List[CamperSessionData]:
        result = await db.execute(
            select(CamperSessionData)
            .where(CamperSessionData.camp_id == camp_id)
            .order_by(CamperSessionData.validated_grade, CamperSessionData.last_name)
        )
        return list(result.scalars().all())

    @staticmethod
    async def _groups(db: AsyncSession, camp_id: str) -> List[CampGroup]:
        result = await db.execute(
            select(CampGroup).where(CampGroup.camp_id == camp_id).order_by(CampGroup.group_number)
        )
        return list(result.scalars().all())

    @staticmethod
    async def build_camper_data(db: AsyncSession, camp_id: str, tenant_id: Optional[str] = None) -> List[CamperSessionData]:
        """Upsert a standardized snapshot for every confirmed camper"""
        camp = await GroupingService._get_camp(db, camp_id, tenant_id)
        config = camp_config(camp)

        result = await db.execute(
            select(Registration)
            .where(and_(Registration.camp_id == camp.id, Registration.status == RegistrationStatus.CONFIRMED))
            .options(selectinload(Registration.athlete))
            .execution_options(populate_existing=True)
            .order_by(Registration.created_at)
        )
        registrations = list(result.scalars().all())

        raws = [
            RawCamper(
                athlete_id=reg.athlete_id,
                registration_id=reg.id,
                first_name=reg.athlete.first_name,
                last_name=reg.athlete.last_name,
                date_of_birth=reg.athlete.date_of_birth,
                reported_grade=reg.athlete.grade,
                friend_requests=list(reg.friend_requests or []),
                registered_at=reg.paid_at or reg.created_at,
            )
            for reg in registrations
        ]
        campers = standardize_all(raws, camp.start_date, config)
        cluster_friend_groups(campers, config)

        existing = {row.athlete_id: row for row in await GroupingService._camper_rows(db, camp.id)}
        rows = []
        for camper in campers:
            row = existing.get(camper.athlete_id)
            if row is None:
                row = CamperSessionData(camp_id=camp.id, athlete_id=camper.athlete_id, tenant_id=camp.tenant_id)
                db.add(row)
            row.registration_id = camper.registration_id
            row.first_name = camper.first_name
            row.last_name = camper.last_name
            row.date_of_birth = camper.date_of_birth
            row.age_at_camp_start = camper.age_at_camp_start
            row.age_months_at_camp_start = camper.age_months_at_camp_start
            row.reported_grade = camper.reported_grade
            row.reported_grade_normalized = camper.reported_grade_normalized
            row.computed_grade = camper.computed_grade
            row.validated_grade = camper.grade
            row.grade_discrepancy = camper.grade_discrepancy
            row.grade_discrepancy_note = camper.grade_discrepancy_note
            row.friend_requests = camper.friend_requests
            row.friend_request_athlete_ids = camper.friend_ids
            row.friend_group_id = camper.friend_group_id
            row.registered_at = camper.registered_at
            row.is_late_registration = camper.is_late_registration
            rows.append(row)

        # Campers whose registration is no longer confirmed
        current = {c.athlete_id for c in campers}
        for athlete_id, row in existing.items():
            if athlete_id not in current:
                await db.delete(row)

        await db.flush()
        logger.info(f"Camper data built for camp {camp.id}: {len(rows)} campers")
        return rows

    @staticmethod
    async def _ensure_groups(db: AsyncSession, camp: Camp, count: int) -> List[CampGroup]:
        groups = {g.group_number: g for g in await GroupingService._groups(db, camp.id)}
        for number in range(1, count + 1):
            if number not in groups:
                group = CampGroup(
                    camp_id=camp.id,
                    group_number=number,
                    name=GROUP_NAMES[(number - 1) % len(GROUP_NAMES)],
                    color=GROUP_COLORS[(number - 1) % len(GROUP_COLORS)],
                    display_order=number,
                )
                db.add(group)
                groups[number] = group

        stale = [group for number, group in groups.items() if number > count]
        if stale:
            stale_ids = [g.id for g in stale]
            await db.execute(
                update(CampAttendance).where(CampAttendance.group_id.in_(stale_ids)).values(group_id=None)
            )
            await db.execute(
                update(CamperSessionData)
                .where(CamperSessionData.assigned_group_id.in_(stale_ids))
                .values(assigned_group_id=None, assignment_type=None, assignment_reason=None)
                .execution_options(synchronize_session="fetch")
            )
            await db.execute(delete(CampGroup).where(CampGroup.id.in_(stale_ids)))
            for group in stale:
                del groups[group.group_number]
        await db.flush()
        return [groups[n] for n in sorted(groups)]

    @staticmethod
    async def _refresh_group_stats(db: AsyncSession, camp: Camp) -> List[CampGroup]:
        config = camp_config(camp)
        groups = await GroupingService._groups(db, camp.id)
        rows = await GroupingService._camper_rows(db, camp.id)

        friend_homes: Dict[int, set] = {}
        for row in rows:
            if row.friend_group_id is not None and row.assigned_group_id:
                friend_homes.setdefault(row.friend_group_id, set()).add(row.assigned_group_id)
        split_friend_groups = {fg for fg, homes in friend_homes.items() if len(homes) > 1}

        for group in groups:
            members = [r for r in rows if r.assigned_group_id == group.id]
            grades = [r.validated_grade for r in members if r.validated_grade is not None]
            group.camper_count = len(members)
            group.min_grade = min(grades) if grades else None
            group.max_grade = max(grades) if grades else None
            group.grade_spread = (group.max_grade - group.min_grade) if grades else 0
            group.size_violation = group.camper_count > config.max_group_size
            group.grade_violation = group.grade_spread > config.max_grade_spread
            group.friend_violation = any(r.friend_group_id in split_friend_groups for r in members)
            group.has_hard_violations = group.size_violation or group.grade_violation
            group.has_warnings = group.friend_violation
        await db.flush()
        return groups

    @staticmethod
    async def run_auto_grouping(
        db: AsyncSession, camp_id: str, tenant_id: Optional[str] = None
    ) -> Dict[str, Any]:
        camp = await GroupingService._get_camp(db, camp_id, tenant_id)
        if camp.grouping_status == GroupingStatus.FINALIZED:
            raise BusinessRuleError("Grouping has been finalized. Unfinalize to make changes.")
        config = camp_config(camp)

        rows = await GroupingService.build_camper_data(db, camp.id, tenant_id)
        groups = await GroupingService._ensure_groups(db, camp, config.num_groups)
        valid_ids = {g.id for g in groups}
        preserved = {
            row.athlete_id: row.assigned_group_id
            for row in rows
            if row.assignment_type in MANUAL_TYPES and row.assigned_group_id in valid_ids
        }

        result = run_grouping(
            [_to_camper(row) for row in rows],
            config,
            existing_assignments=preserved,
            group_ids=[g.id for g in groups],
        )

        by_athlete = {row.athlete_id: row for row in rows}
        now = utcnow()
        for row in rows:
            if row.athlete_id not in preserved:
                row.assigned_group_id = None
        for assignment in result.assignments:
            row = by_athlete[assignment.camper_id]
            row.assigned_group_id = assignment.group_id
            if assignment.assignment_type == "auto":
                row.assignment_type = AssignmentType.AUTO
                row.assignment_reason = assignment.reason
                row.assigned_at = now

        await db.flush()
        await GroupingService._refresh_group_stats(db, camp)

        camp.grouping_status = GroupingStatus.AUTO_GROUPED
        camp.grouping_run_at = now
        await db.flush()
        logger.info(
            f"Auto-grouping for camp {camp.id}: {result.stats.total_campers} campers, "
            f"{result.stats.constraint_violations} violation(s)"
        )
        return {
            "success": result.success,
            "stats": asdict(result.stats),
            "violations": [asdict(v) for v in result.violations],
            "warnings": result.warnings,
        }

    @staticmethod
    async def move_camper(
        db: AsyncSession,
        camp_id: str,
        camper_id: str,
        target_group_id: str,
        reason: Optional[str] = None,
        tenant_id: Optional[str] = None,
    ) -> CamperSessionData:
        camp = await GroupingService._get_camp(db, camp_id, tenant_id)
        if camp.grouping_status == GroupingStatus.FINALIZED:
            raise BusinessRuleError("Grouping has been finalized. Unfinalize to make changes.")

        row = (await db.execute(
            select(CamperSessionData).where(
                and_(CamperSessionData.id == camper_id, CamperSessionData.camp_id == camp.id)
            )
        )).scalar_one_or_none()
        if not row:
            raise NotFoundError("Camper not found")
        target = (await db.execute(
            select(CampGroup).where(and_(CampGroup.id == target_group_id, CampGroup.camp_id == camp.id))
        )).scalar_one_or_none()
        if not target:
            raise NotFoundError("Group not found")

        row.assigned_group_id = target.id
        row.assignment_type = AssignmentType.MANUAL
        row.assignment_reason = reason or "Moved by director"
        row.assigned_at = utcnow()
        await db.flush()
        await GroupingService._refresh_group_stats(db, camp)

        camp.grouping_status = GroupingStatus.REVIEWED
        await db.flush()
        logger.info(f"Camper {row.athlete_id} moved to group {target.group_number} in camp {camp.id}")
        return row

    @staticmethod
    async def finalize_grouping(
        db: AsyncSession, camp_id: str, user_id: str, tenant_id: Optional[str] = None
    ) -> Camp:
        camp = await GroupingService._get_camp(db, camp_id, tenant_id)
        groups = await GroupingService._refresh_group_stats(db, camp)
        rows = await GroupingService._camper_rows(db, camp.id)

        ungrouped = sum(1 for r in rows if not r.assigned_group_id)
        violations = sum(int(bool(g.size_violation)) + int(bool(g.grade_violation)) for g in groups)
        if ungrouped or violations:
            raise BusinessRuleError(
                f"Cannot finalize: {ungrouped} ungrouped campers and {violations} violations remaining."
            )

        camp.grouping_status = GroupingStatus.FINALIZED
        camp.grouping_finalized_at = utcnow()
        camp.grouping_finalized_by = user_id
        await db.flush()
        logger.info(f"Grouping finalized for camp {camp.id} by {user_id}")
        return camp

    @staticmethod
    async def unfinalize_grouping(db: AsyncSession, camp_id: str, tenant_id: Optional[str] = None) -> Camp:
        camp = await GroupingService._get_camp(db, camp_id, tenant_id)
        camp.grouping_status = GroupingStatus.REVIEWED
        camp.grouping_finalized_at = None
        camp.grouping_finalized_by = None
        await db.flush()
        return camp

    @staticmethod
    async def assign_late_registration(
        db: AsyncSession, camp_id: str, registration_id: str, tenant_id: Optional[str] = None
    ) -> Dict[str, Any]:
        camp = await GroupingService._get_camp(db, camp_id, tenant_id)
        registration = (await db.execute(
            select(Registration).where(and_(Registration.id == registration_id, Registration.camp_id == camp.id))
        )).scalar_one_or_none()
        if not registration:
            raise NotFoundError("Registration not found")
        if registration.status != RegistrationStatus.CONFIRMED:
            raise BusinessRuleError("Only confirmed registrations can be grouped")

        groups = await GroupingService._groups(db, camp.id)
        if not groups:
            raise BusinessRuleError("Run auto-grouping before assigning late registrations")

        rows = await GroupingService.build_camper_data(db, camp.id, tenant_id)
        row = next((r for r in rows if r.athlete_id == registration.athlete_id), None)
        if row is None:
            raise NotFoundError("Camper not found")

        if not row.assigned_group_id:
            states = []
            for group in groups:
                state = GroupState(id=group.id, group_number=group.group_number, name=group.name, color=group.color)
                for member in rows:
                    if member.assigned_group_id == group.id and member.validated_grade is not None:
                        state.add(member.athlete_id, member.validated_grade)
                states.append(state)

            target, violations = add_late_registration(_to_camper(row), states, camp_config(camp))
            row.assigned_group_id = target.id
            row.assignment_type = AssignmentType.AUTO
            row.assignment_reason = "Late registration"
            row.assigned_at = utcnow()
            await db.flush()
            await GroupingService._refresh_group_stats(db, camp)
            logger.info(f"Late registration {registration.id} placed in group {target.group_number}")
        else:
            violations = []

        group = next(g for g in groups if g.id == row.assigned_group_id)
        return {
            "camper_id": row.id,
            "group_id": group.id,
            "group_name": group.name,
            "violations": [asdict(v) for v in violations],
        }

    @staticmethod
    async def get_grouping_report(db: AsyncSession, camp_id: str, tenant_id: Optional[str] = None) -> GroupingReport:
        camp = await GroupingService._get_camp(db, camp_id, tenant_id)
        groups = await GroupingService._groups(db, camp.id)
        rows = await GroupingService._camper_rows(db, camp.id)

        sections = []
        for group in groups:
            members = [r for r in rows if r.assigned_group_id == group.id]
            grade_range = (
                format_grade_range(group.min_grade, group.max_grade)
                if group.min_grade is not None and group.max_grade is not None else "-"
            )
            sections.append(GroupReport(
                id=group.id,
                group_number=group.group_number,
                name=group.name,
                color=group.color,
                camper_count=len(members),
                grade_range=grade_range,
                size_violation=bool(group.size_violation),
                grade_violation=bool(group.grade_violation),
                friend_violation=bool(group.friend_violation),
                has_hard_violations=bool(group.has_hard_violations),
                campers=[_group_camper(r) for r in members],
            ))

        return GroupingReport(
            camp_id=camp.id,
            grouping_status=camp.grouping_status.value,
            groups=sections,
            unassigned=[_group_camper(r) for r in rows if not r.assigned_group_id],
        )
