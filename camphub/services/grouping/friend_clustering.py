import re
from typing import Dict, List, Optional, Tuple

import networkx as nx

from .types import Camper, FriendGroup, GroupingConfig


def normalize_name(name: str) -> str:
    name = re.sub(r"[^a-z\s]", "", (name or "").lower())
    return " ".join(name.split())


def find_camper_match(request: str, candidates: List[Camper]) -> Optional[Camper]:
    """Resolve one free-text friend request to a camper on the roster"""
    wanted = normalize_name(request)
    if not wanted:
        return None

    for camper in candidates:
        if normalize_name(camper.full_name) == wanted:
            return camper

    parts = wanted.split(" ")
    if len(parts) >= 2:
        first, last = parts[0], parts[-1]
        for camper in candidates:
            if normalize_name(camper.first_name) == first and normalize_name(camper.last_name) == last:
                return camper
    else:
        by_first = [c for c in candidates if normalize_name(c.first_name) == wanted]
        if len(by_first) == 1:
            return by_first[0]

    partial = [c for c in candidates if wanted in normalize_name(c.full_name)]
    if len(partial) == 1:
        return partial[0]
    return None


def match_friend_requests(camper: Camper, roster: List[Camper]) -> List[str]:
    others = [c for c in roster if c.athlete_id != camper.athlete_id]
    matched = []
    for request in camper.friend_requests:
        match = find_camper_match(request, others)
        if match and match.athlete_id not in matched:
            matched.append(match.athlete_id)
    return matched


def build_friend_graph(campers: List[Camper]) -> nx.Graph:
    graph = nx.Graph()
    ids = {c.athlete_id for c in campers}
    graph.add_nodes_from(c.athlete_id for c in campers)
    for camper in campers:
        for friend_id in camper.friend_ids:
            if friend_id in ids and friend_id != camper.athlete_id:
                graph.add_edge(camper.athlete_id, friend_id)
    return graph


def cluster_friend_groups(
    campers: List[Camper], config: Optional[GroupingConfig] = None
) -> Tuple[List[FriendGroup], List[Camper]]:
    """Split campers into friend groups (2+ connected campers) and solo campers.

    Friend groups come back largest first, and each member's
    ``friend_group_id`` is set.
    """
    config = config or GroupingConfig()
    by_id: Dict[str, Camper] = {c.athlete_id: c for c in campers}
    order = {c.athlete_id: i for i, c in enumerate(campers)}
    graph = build_friend_graph(campers)

    components = sorted(
        (sorted(component, key=order.get) for component in nx.connected_components(graph)),
        key=lambda members: order[members[0]],
    )

    groups: List[FriendGroup] = []
    solos: List[Camper] = []
    for members in components:
        if len(members) == 1:
            solos.append(by_id[members[0]])
            continue
        grades = [by_id[m].grade for m in members]
        group = FriendGroup(
            id=len(groups) + 1,
            member_ids=members,
            min_grade=min(grades),
            max_grade=max(grades),
        )
        group.exceeds_size = group.size > config.max_group_size
        group.exceeds_grade = group.grade_spread > config.max_grade_spread
        for member in members:
            by_id[member].friend_group_id = group.id
        groups.append(group)

    groups.sort(key=lambda g: g.size, reverse=True)
    return groups, solos


def split_friend_group(
    group: FriendGroup, grades: Dict[str, int], config: GroupingConfig
) -> List[List[str]]:
    """Break an oversized friend group into grade-contiguous subgroups"""
    if group.size <= config.max_group_size:
        return [list(group.member_ids)]

    members = sorted(group.member_ids, key=lambda m: grades.get(m, 0))
    subgroups: List[List[str]] = []
    current: List[str] = []
    low = high = None
    for member in members:
        grade = grades.get(member, 0)
        new_low = grade if low is None else min(low, grade)
        new_high = grade if high is None else max(high, grade)
        if len(current) >= config.max_group_size or new_high - new_low > config.max_grade_spread:
            if current:
                subgroups.append(current)
            current, low, high = [member], grade, grade
        else:
            current.append(member)
            low, high = new_low, new_high
    if current:
        subgroups.append(current)
    return subgroups
