from pydantic import BaseModel
from typing import Optional, List
from ..models.grouping import AssignmentType


class MoveCamperRequest(BaseModel):
    camper_id: str
    target_group_id: str
    reason: Optional[str] = None


class LateRegistrationRequest(BaseModel):
    registration_id: str


class GroupCamper(BaseModel):
    id: str
    athlete_id: str
    name: str
    grade: Optional[int] = None
    grade_label: str
    friend_group_id: Optional[int] = None
    assignment_type: Optional[AssignmentType] = None
    assignment_reason: Optional[str] = None
    is_late_registration: bool = False
    grade_discrepancy: bool = False


class GroupReport(BaseModel):
    id: str
    group_number: int
    name: str
    color: Optional[str] = None
    camper_count: int
    grade_range: str
    size_violation: bool
    grade_violation: bool
    friend_violation: bool
    has_hard_violations: bool
    campers: List[GroupCamper]


class GroupingReport(BaseModel):
    camp_id: str
    grouping_status: str
    groups: List[GroupReport]
    unassigned: List[GroupCamper]
