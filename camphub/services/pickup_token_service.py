"""
QR dismissal: each camper on site gets a single-use pickup code, the parent
shows it at pickup, and scanning it checks the camper out.
"""
import logging
import secrets
from datetime import datetime, time
from typing import Any, Dict, List, Optional

from sqlalchemy import select, and_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..core.exceptions import BusinessRuleError, NotFoundError
from ..models.attendance import CampAttendance, AttendanceStatus, CheckMethod, PickupToken
from ..models.base import utcnow
from ..models.camp import CampDay
from ..models.registration import ParentProfile
from ..models.user import User
from .camp_day_service import CampDayService

logger = logging.getLogger(__name__)

INVALID_CODES = {
    "not_found": "Invalid pickup code",
    "already_used": "This pickup code has already been used",
    "expired": "This pickup code has expired",
    "wrong_camp_day": "This pickup code is for a different camp day",
}


def end_of_day(day: CampDay) -> datetime:
    return datetime.combine(day.date, time.max)


def new_token() -> str:
    return secrets.token_hex(16)


def token_view(token: PickupToken) -> Dict[str, Any]:
    day = token.camp_day
    return {
        "id": token.id,
        "camp_day_id": token.camp_day_id,
        "athlete_id": token.athlete_id,
        "parent_profile_id": token.parent_profile_id,
        "token": token.token,
        "is_used": token.is_used,
        "used_at": token.used_at,
        "used_by": token.used_by,
        "manual_reason": token.manual_reason,
        "expires_at": token.expires_at,
        "athlete_name": f"{token.athlete.first_name} {token.athlete.last_name}",
        "camp_id": day.camp.id,
        "camp_name": day.camp.name,
        "camp_day_date": day.date,
        "day_number": day.day_number,
    }


def _with_details(stmt):
    return stmt.options(
        selectinload(PickupToken.athlete),
        selectinload(PickupToken.camp_day).selectinload(CampDay.camp),
    )


def _invalid(code: str) -> Dict[str, Any]:
    return {"valid": False, "error_code": code, "error_message": INVALID_CODES[code], "token": None}


class PickupTokenService:

    @staticmethod
    async def generate_for_day(db: AsyncSession, camp_day_id: str, tenant_id: Optional[str] = None) -> Dict[str, int]:
        """Reissue codes for everyone currently checked in; outstanding codes for the day stop working."""
        day = await CampDayService.get_camp_day(db, camp_day_id, tenant_id)
        now = utcnow()

        outstanding = (await db.execute(
            select(PickupToken).where(
                and_(
                    PickupToken.camp_day_id == day.id,
                    PickupToken.is_used.is_(False),
                    PickupToken.expires_at > now,
                )
            )
        )).scalars().all()
        for token in outstanding:
            token.expires_at = now

        on_site = (await db.execute(
            select(CampAttendance).where(
                and_(CampAttendance.camp_day_id == day.id, CampAttendance.status == AttendanceStatus.CHECKED_IN)
            )
        )).scalars().all()
        expires_at = end_of_day(day)
        for record in on_site:
            db.add(PickupToken(
                camp_day_id=day.id,
                athlete_id=record.athlete_id,
                parent_profile_id=record.parent_profile_id,
                token=new_token(),
                expires_at=expires_at,
            ))
        await db.flush()
        logger.info(f"Pickup codes for camp day {day.id}: {len(on_site)} issued, {len(outstanding)} expired")
        return {"generated": len(on_site), "expired": len(outstanding)}

    @staticmethod
    async def generate_for_athlete(
        db: AsyncSession, camp_day_id: str, athlete_id: str, tenant_id: Optional[str] = None
    ) -> PickupToken:
        """The camper's live code for the day, issuing one if there is none."""
        day = await CampDayService.get_camp_day(db, camp_day_id, tenant_id)
        record = (await db.execute(
            select(CampAttendance).where(
                and_(CampAttendance.camp_day_id == day.id, CampAttendance.athlete_id == athlete_id)
            )
        )).scalar_one_or_none()
        if not record:
            raise NotFoundError("Attendance record not found")

        existing = (await db.execute(
            select(PickupToken).where(
                and_(
                    PickupToken.camp_day_id == day.id,
                    PickupToken.athlete_id == athlete_id,
                    PickupToken.is_used.is_(False),
                    PickupToken.expires_at > utcnow(),
                )
            )
        )).scalars().first()
        if existing:
            return existing

        token = PickupToken(
            camp_day_id=day.id,
            athlete_id=athlete_id,
            parent_profile_id=record.parent_profile_id,
            token=new_token(),
            expires_at=end_of_day(day),
        )
        db.add(token)
        await db.flush()
        return token

    @staticmethod
    async def validate(
        db: AsyncSession,
        token: str,
        camp_day_id: Optional[str] = None,
        tenant_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        found = (await db.execute(
            _with_details(select(PickupToken).where(PickupToken.token == token))
        )).scalar_one_or_none()
        if not found or (tenant_id and found.camp_day.camp.tenant_id != tenant_id):
            return _invalid("not_found")
        if found.is_used:
            return _invalid("already_used")
        if found.expires_at < utcnow():
            return _invalid("expired")
        if camp_day_id and found.camp_day_id != camp_day_id:
            return _invalid("wrong_camp_day")
        return {"valid": True, "error_code": None, "error_message": None, "token": token_view(found)}

    @staticmethod
    async def use(
        db: AsyncSession,
        token: str,
        user_id: str,
        camp_day_id: Optional[str] = None,
        tenant_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Redeem a code: the code is spent and the camper checked out by QR."""
        result = await PickupTokenService.validate(db, token, camp_day_id, tenant_id)
        if not result["valid"]:
            if result["error_code"] == "not_found":
                raise NotFoundError(result["error_message"])
            raise BusinessRuleError(result["error_message"])

        found = (await db.execute(select(PickupToken).where(PickupToken.token == token))).scalar_one()
        now = utcnow()
        found.is_used = True
        found.used_at = now
        found.used_by = user_id

        record = (await db.execute(
            select(CampAttendance).where(
                and_(
                    CampAttendance.camp_day_id == found.camp_day_id,
                    CampAttendance.athlete_id == found.athlete_id,
                    CampAttendance.status == AttendanceStatus.CHECKED_IN,
                )
            )
        )).scalar_one_or_none()
        if record:
            record.status = AttendanceStatus.CHECKED_OUT
            record.check_out_time = now
            record.check_out_method = CheckMethod.QR
            record.check_out_by = user_id
        await db.flush()

        athlete_name = result["token"]["athlete_name"]
        logger.info(f"Pickup code used for {athlete_name} on camp day {found.camp_day_id}")
        return {"success": True, "athlete_name": athlete_name}

    @staticmethod
    async def manual_checkout(
        db: AsyncSession,
        camp_day_id: str,
        athlete_id: str,
        user_id: str,
        reason: str,
        tenant_id: Optional[str] = None,
    ) -> Dict[str, bool]:
        """Release a camper without a code. The reason is kept on the attendance record and any open code."""
        if not reason or not reason.strip():
            raise BusinessRuleError("A reason is required for manual checkout")
        reason = reason.strip()
        day = await CampDayService.get_camp_day(db, camp_day_id, tenant_id)
        now = utcnow()

        record = (await db.execute(
            select(CampAttendance).where(
                and_(
                    CampAttendance.camp_day_id == day.id,
                    CampAttendance.athlete_id == athlete_id,
                    CampAttendance.status == AttendanceStatus.CHECKED_IN,
                )
            )
        )).scalar_one_or_none()
        if record:
            record.status = AttendanceStatus.CHECKED_OUT
            record.check_out_time = now
            record.check_out_method = CheckMethod.MANUAL
            record.check_out_by = user_id
            record.check_out_notes = reason

        open_tokens = (await db.execute(
            select(PickupToken).where(
                and_(
                    PickupToken.camp_day_id == day.id,
                    PickupToken.athlete_id == athlete_id,
                    PickupToken.is_used.is_(False),
                )
            )
        )).scalars().all()
        for token in open_tokens:
            token.is_used = True
            token.used_at = now
            token.used_by = user_id
            token.manual_reason = reason
        await db.flush()
        if record:
            logger.info(f"Manual checkout of athlete {athlete_id} on camp day {day.id}: {reason}")
        return {"success": record is not None}

    @staticmethod
    async def parent_profile_for(db: AsyncSession, user: User) -> ParentProfile:
        profile = (await db.execute(
            select(ParentProfile).where(ParentProfile.user_id == user.id)
        )).scalars().first()
        if not profile:
            profile = (await db.execute(
                select(ParentProfile).where(ParentProfile.email == user.email.lower())
            )).scalar_one_or_none()
        if not profile:
            raise NotFoundError("Parent profile not found")
        return profile

    @staticmethod
    async def get_for_parent(
        db: AsyncSession, camp_day_id: str, athlete_id: str, parent_profile_id: str
    ) -> Optional[Dict[str, Any]]:
        token = (await db.execute(
            _with_details(
                select(PickupToken)
                .where(
                    and_(
                        PickupToken.camp_day_id == camp_day_id,
                        PickupToken.athlete_id == athlete_id,
                        PickupToken.parent_profile_id == parent_profile_id,
                        PickupToken.is_used.is_(False),
                        PickupToken.expires_at > utcnow(),
                    )
                )
                .order_by(PickupToken.created_at.desc())
            )
        )).scalars().first()
        return token_view(token) if token else None

    @staticmethod
    async def list_for_day(db: AsyncSession, camp_day_id: str, tenant_id: Optional[str] = None) -> List[Dict[str, Any]]:
        """Live codes for the director's pickup screen: unused first, then by camper last name."""
        day = await CampDayService.get_camp_day(db, camp_day_id, tenant_id)
        tokens = (await db.execute(
            _with_details(
                select(PickupToken).where(
                    and_(PickupToken.camp_day_id == day.id, PickupToken.expires_at > utcnow())
                )
            )
        )).scalars().all()
        ordered = sorted(tokens, key=lambda t: (t.is_used, t.athlete.last_name.lower(), t.athlete.first_name.lower()))
        return [token_view(t) for t in ordered]
