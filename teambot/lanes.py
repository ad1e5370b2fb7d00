"""Lane-constrained team building.

Each role is handled in its own greedy pass: strongest candidate first, into
the lightest team that does not have that role yet. A local search then swaps
same-role members between teams while that strictly narrows the gap between
the strongest and weakest team, so no single same-role swap can improve the
result further.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from itertools import combinations

from .errors import InvalidLaneRole
from .models import LANE_ROLES, PLACEHOLDER_STRENGTH, LaneMember, LaneParticipant, LaneTeam

MAX_SWAP_ROUNDS = 200


def normalize_lane_role(role: str) -> str:
    normalized = role.strip().upper()
    aliases = {"JG": "JUNGLE", "SUP": "SUPPORT", "BOT": "ADC"}
    normalized = aliases.get(normalized, normalized)
    if normalized not in LANE_ROLES:
        raise InvalidLaneRole(role)
    return normalized


def group_by_role(participants: Sequence[LaneParticipant]) -> dict[str, list[LaneParticipant]]:
    groups: dict[str, list[LaneParticipant]] = {role: [] for role in LANE_ROLES}
    for participant in participants:
        groups[normalize_lane_role(participant.role)].append(participant)
    return groups


def _pick_lightest(teams: list[LaneTeam], available: set[int]) -> int:
    return min(available, key=lambda index: (teams[index].total_strength, index))


def swap_role(first: LaneTeam, second: LaneTeam, role: str) -> None:
    member = first.member_for(role)
    if member is None:
        raise KeyError(role)
    displaced = second.replace_member(member)
    first.replace_member(displaced)


def reduce_spread(teams: list[LaneTeam], max_rounds: int = MAX_SWAP_ROUNDS) -> int:
    """Apply spread-reducing same-role swaps until none is left; return the swap count."""
    spread = strength_spread(teams)
    swaps = 0
    for _ in range(max_rounds):
        improved = False
        for role in LANE_ROLES:
            for first, second in combinations(teams, 2):
                if first.member_for(role) is None or second.member_for(role) is None:
                    continue
                swap_role(first, second, role)
                candidate = strength_spread(teams)
                if candidate < spread:
                    spread = candidate
                    swaps += 1
                    improved = True
                else:
                    swap_role(first, second, role)
        if not improved:
            break
    return swaps


def assign_lane_teams(
    participants: Sequence[LaneParticipant],
    next_team_id: Callable[[], int],
) -> list[LaneTeam]:
    if not participants:
        return []

    groups = group_by_role(participants)
    team_count = max(1, max(len(group) for group in groups.values()))
    teams = [LaneTeam(team_id=next_team_id()) for _ in range(team_count)]

    for role in LANE_ROLES:
        candidates = [
            LaneMember(
                role=role,
                points=participant.points,
                player_id=participant.player_id,
                display_name=participant.display_name,
            )
            for participant in sorted(groups[role], key=lambda p: p.points, reverse=True)
        ]
        while len(candidates) < team_count:
            candidates.append(LaneMember(role=role, points=PLACEHOLDER_STRENGTH))

        available = set(range(team_count))
        for member in candidates:
            index = _pick_lightest(teams, available)
            available.discard(index)
            teams[index].add(member)

    reduce_spread(teams)
    return teams


def strength_spread(teams: Sequence[LaneTeam]) -> int:
    if not teams:
        return 0
    totals = [team.total_strength for team in teams]
    return max(totals) - min(totals)
