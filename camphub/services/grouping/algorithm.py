"""
Camper grouping algorithm.

Phases: preserve manual placements, place friend groups (largest first),
place solo campers by grade, balance group sizes, then validate.
"""
import math
from typing import Dict, List, Optional, Set, Tuple

from .friend_clustering import cluster_friend_groups, split_friend_group
from .standardization import format_grade_range
from .types import (
    Assignment, Camper, FriendGroup, GroupState, GroupingConfig, GroupingResult, GroupingStats, Violation,
    GROUP_COLORS, GROUP_NAMES, SIZE_EXCEEDED, GRADE_SPREAD_EXCEEDED, FRIEND_GROUP_SPLIT, HARD, WARNING,
)

INTACT_SCORE_LIMIT = 1000


def initialize_groups(config: GroupingConfig, group_ids: Optional[List[str]] = None) -> List[GroupState]:
    groups = []
    for index in range(config.num_groups):
        number = index + 1
        groups.append(GroupState(
            id=group_ids[index] if group_ids and index < len(group_ids) else f"group-{number}",
            group_number=number,
            name=GROUP_NAMES[index % len(GROUP_NAMES)],
            color=GROUP_COLORS[index % len(GROUP_COLORS)],
        ))
    return groups


def score_friend_group(group: GroupState, members: FriendGroup, config: GroupingConfig) -> float:
    score = 0.0
    new_size = group.size + members.size
    if new_size > config.max_group_size:
        score += 1000 * (new_size - config.max_group_size)

    low = members.min_grade if group.min_grade is None else min(group.min_grade, members.min_grade)
    high = members.max_grade if group.max_grade is None else max(group.max_grade, members.max_grade)
    new_spread = high - low
    if new_spread > config.max_grade_spread:
        score += 500 * (new_spread - config.max_grade_spread)

    if group.min_grade is not None:
        score += (new_spread - group.grade_spread) * 10

    score += group.size
    return score


def score_solo_camper(group: GroupState, grade: int, config: GroupingConfig, groups: List[GroupState]) -> float:
    score = 0.0
    if group.size >= config.max_group_size:
        score += 10000
    if group.would_violate_grade(grade, config.max_grade_spread):
        score += 5000
    if group.min_grade is not None and group.max_grade is not None:
        score += (abs(grade - group.min_grade) + abs(grade - group.max_grade)) / 2 * 20
    average = sum(g.size for g in groups) / len(groups)
    score += (group.size - average) * 5
    return score


def score_late_registration(group: GroupState, grade: int, config: GroupingConfig) -> float:
    score = 0.0
    if group.size >= config.max_group_size:
        score += 1000
    if group.would_violate_grade(grade, config.max_grade_spread):
        score += 500
    if group.min_grade is not None and group.max_grade is not None:
        score += abs(grade - (group.min_grade + group.max_grade) / 2) * 10
    score += group.size
    return score


def _best(groups: List[GroupState], scorer) -> Tuple[Optional[GroupState], float]:
    best, best_score = None, math.inf
    for group in groups:
        score = scorer(group)
        if score < best_score:
            best, best_score = group, score
    return best, best_score


def _subgroup(parent: FriendGroup, member_ids: List[str], grades: Dict[str, int]) -> FriendGroup:
    values = [grades[m] for m in member_ids]
    return FriendGroup(id=parent.id, member_ids=member_ids, min_grade=min(values), max_grade=max(values))


def place_friend_group(
    group: FriendGroup,
    groups: List[GroupState],
    grades: Dict[str, int],
    config: GroupingConfig,
    assignments: List[Assignment],
    violations: List[Violation],
) -> bool:
    """Place one friend group; returns True when it had to be split"""
    if group.can_be_placed_intact:
        target, score = _best(groups, lambda g: score_friend_group(g, group, config))
        if target is not None and score < INTACT_SCORE_LIMIT:
            for member in group.member_ids:
                target.add(member, grades[member])
                assignments.append(Assignment(member, target.id, "auto", f"Placed with friend group #{group.id}"))
            return False

    subgroups = split_friend_group(group, grades, config)
    split = len(subgroups) > 1
    if split:
        violations.append(Violation(
            violation_type=FRIEND_GROUP_SPLIT,
            severity=WARNING,
            title=f"Friend Group #{group.id} Split",
            description=(
                f"Friend group of {group.size} campers was split into {len(subgroups)} "
                f"subgroups due to constraint violations."
            ),
            camper_ids=list(group.member_ids),
            friend_group_id=group.id,
        ))

    for member_ids in subgroups:
        sub = _subgroup(group, member_ids, grades)
        target, score = _best(groups, lambda g: score_friend_group(g, sub, config))
        if score < INTACT_SCORE_LIMIT:
            reason = (
                f"Placed in subgroup from split friend group #{group.id}" if split
                else f"Placed with friend group #{group.id}"
            )
            for member in member_ids:
                target.add(member, grades[member])
                assignments.append(Assignment(member, target.id, "auto", reason))
            continue

        # Nowhere fits the subgroup whole, fall back to one camper at a time
        split = True
        for member in member_ids:
            target, _ = _best(groups, lambda g: score_solo_camper(g, grades[member], config, groups))
            target.add(member, grades[member])
            assignments.append(Assignment(
                member, target.id, "auto", f"Placed individually from friend group #{group.id}"
            ))
    return split


def place_solo_campers(
    campers: List[Camper],
    groups: List[GroupState],
    config: GroupingConfig,
    assignments: List[Assignment],
) -> None:
    for camper in sorted(campers, key=lambda c: c.grade):
        target, score = _best(groups, lambda g: score_solo_camper(g, camper.grade, config, groups))
        target.add(camper.athlete_id, camper.grade)
        reason = "Best fit by grade and balance" if score < 100 else "Best available option"
        assignments.append(Assignment(camper.athlete_id, target.id, "auto", reason))


def balance_groups(
    groups: List[GroupState],
    campers: Dict[str, Camper],
    config: GroupingConfig,
    assignments: List[Assignment],
    locked: Set[str],
) -> int:
    """Move solo campers from oversized groups into undersized ones"""
    total = sum(g.size for g in groups)
    target_size = math.ceil(total / len(groups)) if groups else 0
    grades = {cid: c.grade for cid, c in campers.items()}
    by_camper = {a.camper_id: a for a in assignments}
    moves = 0

    ordered = sorted(groups, key=lambda g: g.size, reverse=True)
    for large in ordered:
        if large.size <= target_size:
            continue
        for camper_id in list(large.camper_ids):
            camper = campers.get(camper_id)
            if camper is None or camper.friend_group_id is not None or camper_id in locked:
                continue
            for small in ordered:
                if small is large or small.size >= target_size or small.size >= config.max_group_size:
                    continue
                if small.would_violate_grade(camper.grade, config.max_grade_spread):
                    continue
                large.camper_ids.remove(camper_id)
                large.recalculate(grades)
                small.add(camper_id, camper.grade)
                moves += 1
                assignment = by_camper.get(camper_id)
                if assignment:
                    assignment.group_id = small.id
                    assignment.reason += " (balanced)"
                break
            if large.size <= target_size:
                break
    return moves


def validate_groups(
    groups: List[GroupState], friend_groups: List[FriendGroup], config: GroupingConfig
) -> List[Violation]:
    violations: List[Violation] = []
    for group in groups:
        if group.size > config.max_group_size:
            violations.append(Violation(
                violation_type=SIZE_EXCEEDED,
                severity=HARD,
                title=f"Group {group.group_number} Exceeds Size Limit",
                description=(
                    f"Group {group.group_number} has {group.size} campers, "
                    f"exceeding the limit of {config.max_group_size}."
                ),
                group_id=group.id,
                camper_ids=list(group.camper_ids),
            ))
        if group.grade_spread > config.max_grade_spread:
            violations.append(Violation(
                violation_type=GRADE_SPREAD_EXCEEDED,
                severity=HARD,
                title=f"Group {group.group_number} Exceeds Grade Spread",
                description=(
                    f"Group {group.group_number} spans {format_grade_range(group.min_grade, group.max_grade)}, "
                    f"exceeding the maximum spread of {config.max_grade_spread} grades."
                ),
                group_id=group.id,
                camper_ids=list(group.camper_ids),
            ))

    location = {cid: g.id for g in groups for cid in g.camper_ids}
    for fg in friend_groups:
        placed_in = {location[m] for m in fg.member_ids if m in location}
        if len(placed_in) > 1:
            violations.append(Violation(
                violation_type=FRIEND_GROUP_SPLIT,
                severity=WARNING,
                title=f"Friend Group #{fg.id} Split",
                description=f"Friend group of {fg.size} campers is spread across {len(placed_in)} groups.",
                camper_ids=list(fg.member_ids),
                friend_group_id=fg.id,
            ))
    return violations


def apply_group_flags(groups: List[GroupState], friend_groups: List[FriendGroup], config: GroupingConfig) -> None:
    location = {cid: g for g in groups for cid in g.camper_ids}
    for group in groups:
        group.size_violation = group.size > config.max_group_size
        group.grade_violation = group.grade_spread > config.max_grade_spread
        group.friend_violation = False
    for fg in friend_groups:
        placed_in = {location[m].id for m in fg.member_ids if m in location}
        if len(placed_in) > 1:
            for member in fg.member_ids:
                if member in location:
                    location[member].friend_violation = True
    for group in groups:
        group.has_hard_violations = group.size_violation or group.grade_violation
        group.has_warnings = group.friend_violation


def run_grouping(
    campers: List[Camper],
    config: Optional[GroupingConfig] = None,
    existing_assignments: Optional[Dict[str, str]] = None,
    group_ids: Optional[List[str]] = None,
) -> GroupingResult:
    """Assign every camper to one of ``config.num_groups`` groups.

    ``existing_assignments`` maps athlete id to group id for manual
    placements that must be kept as-is.
    """
    config = config or GroupingConfig()
    groups = initialize_groups(config, group_ids)
    by_id = {g.id: g for g in groups}
    campers_by_id = {c.athlete_id: c for c in campers}
    grades = {c.athlete_id: c.grade for c in campers}

    assignments: List[Assignment] = []
    violations: List[Violation] = []

    locked = set()
    for camper_id, group_id in (existing_assignments or {}).items():
        group = by_id.get(group_id)
        if group is None or camper_id not in campers_by_id:
            continue
        group.add(camper_id, grades[camper_id])
        locked.add(camper_id)
        assignments.append(Assignment(camper_id, group_id, "manual", "Preserved manual override from previous run"))

    friend_groups, _ = cluster_friend_groups(campers, config)
    ordered = sorted(friend_groups, key=lambda g: (not g.can_be_placed_intact, -g.size))

    intact = split = 0
    for fg in ordered:
        remaining = [m for m in fg.member_ids if m not in locked]
        if not remaining:
            continue
        pending = _subgroup(fg, remaining, grades)
        pending.exceeds_size = pending.size > config.max_group_size
        pending.exceeds_grade = pending.grade_spread > config.max_grade_spread
        if place_friend_group(pending, groups, grades, config, assignments, violations):
            split += 1
        else:
            intact += 1
        locked.update(remaining)

    solos = [c for c in campers if c.athlete_id not in locked]
    place_solo_campers(solos, groups, config, assignments)
    manual = {a.camper_id for a in assignments if a.assignment_type == "manual"}
    moves = balance_groups(groups, campers_by_id, config, assignments, manual)

    final = validate_groups(groups, friend_groups, config)
    split_ids = {v.friend_group_id for v in final if v.violation_type == FRIEND_GROUP_SPLIT}
    all_violations = [
        v for v in violations
        if not (v.violation_type == FRIEND_GROUP_SPLIT and v.friend_group_id in split_ids)
    ] + final
    apply_group_flags(groups, friend_groups, config)

    sizes = [g.size for g in groups]
    average = sum(sizes) / len(sizes) if sizes else 0.0
    variance = sum((s - average) ** 2 for s in sizes) / len(sizes) if sizes else 0.0
    hard = [v for v in all_violations if v.severity == HARD]

    stats = GroupingStats(
        total_campers=len(campers),
        total_friend_groups=len(friend_groups),
        campers_auto_placed=sum(1 for a in assignments if a.assignment_type == "auto"),
        friend_groups_placed_intact=intact,
        friend_groups_split=split,
        constraint_violations=len(hard),
        warnings=len(all_violations) - len(hard),
        late_registrations=sum(1 for c in campers if c.is_late_registration),
        grade_discrepancies=sum(1 for c in campers if c.grade_discrepancy),
        average_group_size=average,
        group_size_variance=variance,
        balance_moves=moves,
    )
    return GroupingResult(
        success=not hard,
        groups=groups,
        assignments=assignments,
        violations=all_violations,
        stats=stats,
    )


def add_late_registration(
    camper: Camper, groups: List[GroupState], config: Optional[GroupingConfig] = None
) -> Tuple[GroupState, List[Violation]]:
    """Pick a group for a camper who registered after grouping ran"""
    config = config or GroupingConfig()
    if not groups:
        raise ValueError("No groups available for late registration")
    target, _ = _best(groups, lambda g: score_late_registration(g, camper.grade, config))

    violations: List[Violation] = []
    if target.size >= config.max_group_size:
        violations.append(Violation(
            violation_type=SIZE_EXCEEDED,
            severity=HARD,
            title="Late Registration Exceeds Group Size",
            description=f"Adding {camper.full_name} to Group {target.group_number} exceeds the size limit.",
            group_id=target.id,
            camper_ids=[camper.athlete_id],
        ))
    if target.would_violate_grade(camper.grade, config.max_grade_spread):
        violations.append(Violation(
            violation_type=GRADE_SPREAD_EXCEEDED,
            severity=HARD,
            title="Late Registration Exceeds Grade Spread",
            description=(
                f"Adding {camper.full_name} to Group {target.group_number} exceeds the grade spread limit."
            ),
            group_id=target.id,
            camper_ids=[camper.athlete_id],
        ))
    return target, violations
