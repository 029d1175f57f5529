from pydantic import BaseModel, Field
from typing import Optional


class PickupTokenCheck(BaseModel):
    token: str = Field(..., min_length=1, max_length=64)
    camp_day_id: Optional[str] = None


class ManualCheckoutRequest(BaseModel):
    athlete_id: str
    reason: str = Field(..., max_length=500)
