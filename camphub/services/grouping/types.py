"""
Data structures shared by the grouping engine.

Campers are keyed by athlete id throughout; group ids are assigned by the
caller (or default to ``group-N`` for a fresh run).
"""
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, List, Optional

GROUP_NAMES = [
    "Lightning", "Thunder", "Storm", "Blaze", "Phoenix",
    "Titans", "Falcons", "Panthers", "Vipers", "Wolves",
]

GROUP_COLORS = [
    "#CCFF00", "#FF2DCE", "#6F00D8", "#22C55E", "#F59E0B",
    "#06B6D4", "#EC4899", "#8B5CF6", "#10B981", "#F97316",
]

SIZE_EXCEEDED = "size_exceeded"
GRADE_SPREAD_EXCEEDED = "grade_spread_exceeded"
FRIEND_GROUP_SPLIT = "friend_group_split"

HARD = "hard"
WARNING = "warning"


@dataclass
class GroupingConfig:
    max_group_size: int = 12
    num_groups: int = 5
    max_grade_spread: int = 2
    school_year_cutoff_month: int = 9
    late_registration_days: int = 7


@dataclass
class RawCamper:
    """Camper as registered, before standardization"""
    athlete_id: str
    registration_id: str
    first_name: str
    last_name: str
    date_of_birth: date
    reported_grade: Optional[str] = None
    friend_requests: List[str] = field(default_factory=list)
    registered_at: Optional[datetime] = None


@dataclass
class Camper:
    athlete_id: str
    registration_id: str
    first_name: str
    last_name: str
    date_of_birth: date
    age_at_camp_start: int
    age_months_at_camp_start: int
    reported_grade: Optional[str]
    reported_grade_normalized: Optional[int]
    computed_grade: int
    grade: int
    grade_discrepancy: bool = False
    grade_discrepancy_note: Optional[str] = None
    friend_requests: List[str] = field(default_factory=list)
    friend_ids: List[str] = field(default_factory=list)
    friend_group_id: Optional[int] = None
    registered_at: Optional[datetime] = None
    is_late_registration: bool = False

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


@dataclass
class FriendGroup:
    id: int
    member_ids: List[str]
    min_grade: int
    max_grade: int
    exceeds_size: bool = False
    exceeds_grade: bool = False

    @property
    def size(self) -> int:
        return len(self.member_ids)

    @property
    def grade_spread(self) -> int:
        return self.max_grade - self.min_grade

    @property
    def can_be_placed_intact(self) -> bool:
        return not (self.exceeds_size or self.exceeds_grade)


@dataclass
class GroupState:
    id: str
    group_number: int
    name: str
    color: str
    camper_ids: List[str] = field(default_factory=list)
    min_grade: Optional[int] = None
    max_grade: Optional[int] = None
    size_violation: bool = False
    grade_violation: bool = False
    friend_violation: bool = False
    has_warnings: bool = False
    has_hard_violations: bool = False

    @property
    def size(self) -> int:
        return len(self.camper_ids)

    @property
    def grade_spread(self) -> int:
        if self.min_grade is None or self.max_grade is None:
            return 0
        return self.max_grade - self.min_grade

    def add(self, camper_id: str, grade: int) -> None:
        self.camper_ids.append(camper_id)
        if self.min_grade is None or grade < self.min_grade:
            self.min_grade = grade
        if self.max_grade is None or grade > self.max_grade:
            self.max_grade = grade

    def would_violate_grade(self, grade: int, max_spread: int) -> bool:
        if self.min_grade is None or self.max_grade is None:
            return False
        return max(self.max_grade, grade) - min(self.min_grade, grade) > max_spread

    def recalculate(self, grades: Dict[str, int]) -> None:
        values = [grades.get(cid, 0) for cid in self.camper_ids]
        self.min_grade = min(values) if values else None
        self.max_grade = max(values) if values else None


@dataclass
class Assignment:
    camper_id: str
    group_id: str
    assignment_type: str
    reason: str


@dataclass
class Violation:
    violation_type: str
    severity: str
    title: str
    description: str
    group_id: Optional[str] = None
    camper_ids: List[str] = field(default_factory=list)
    friend_group_id: Optional[int] = None


@dataclass
class GroupingStats:
    total_campers: int = 0
    total_friend_groups: int = 0
    campers_auto_placed: int = 0
    friend_groups_placed_intact: int = 0
    friend_groups_split: int = 0
    constraint_violations: int = 0
    warnings: int = 0
    late_registrations: int = 0
    grade_discrepancies: int = 0
    average_group_size: float = 0.0
    group_size_variance: float = 0.0
    balance_moves: int = 0


@dataclass
class GroupingResult:
    success: bool
    groups: List[GroupState]
    assignments: List[Assignment]
    violations: List[Violation]
    stats: GroupingStats

    @property
    def warnings(self) -> List[str]:
        return [v.description for v in self.violations if v.severity == WARNING]
