from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ....core.exceptions import raise_http, NotFoundError
from ....db.database import get_db
from ....schemas.camp import PublicCampResponse
from ....services.camp_service import CampService

router = APIRouter()


@router.get("/camps/{camp_id}", response_model=PublicCampResponse)
async def get_public_camp(camp_id: str, db: AsyncSession = Depends(get_db)) -> Any:
    """Registration page data for an open camp; no login required"""
    try:
        return await CampService.get_public_camp(db, camp_id)
    except NotFoundError as e:
        raise_http(e)
