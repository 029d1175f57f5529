from .types import (
    GroupingConfig, RawCamper, Camper, FriendGroup, GroupState, Assignment, Violation,
    GroupingStats, GroupingResult, GROUP_NAMES, GROUP_COLORS,
)
from .standardization import (
    parse_grade, grade_from_dob, format_grade, format_grade_range, standardize, standardize_all,
)
from .friend_clustering import normalize_name, cluster_friend_groups, split_friend_group
from .algorithm import run_grouping, add_late_registration
