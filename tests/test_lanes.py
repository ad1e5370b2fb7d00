from __future__ import annotations

from itertools import combinations, count
import random
import unittest

from teambot.errors import InvalidLaneRole
from teambot.lanes import assign_lane_teams, normalize_lane_role, reduce_spread, strength_spread, swap_role
from teambot.models import LANE_ROLES, PLACEHOLDER_STRENGTH, LaneParticipant, RealId, SyntheticId


def _participant(user_id: int, role: str, points: int) -> LaneParticipant:
    return LaneParticipant(player_id=RealId(user_id), display_name=f"U{user_id}", role=role, points=points)


class LaneAssignmentTests(unittest.TestCase):
    def test_every_team_gets_one_member_per_role(self) -> None:
        participants = [
            _participant(1, "TOP", 400),
            _participant(2, "TOP", 300),
            _participant(3, "JUNGLE", 350),
            _participant(4, "JUNGLE", 250),
            _participant(5, "MID", 500),
        ]
        teams = assign_lane_teams(participants, count(1).__next__)

        self.assertEqual(len(teams), 2)
        for team in teams:
            self.assertEqual(sorted(member.role for member in team.members), sorted(LANE_ROLES))
            self.assertEqual(team.total_strength, sum(member.points for member in team.members))

        real_ids = [member.player_id for team in teams for member in team.real_members]
        self.assertCountEqual(real_ids, [RealId(i) for i in range(1, 6)])

        placeholders = [member for team in teams for member in team.members if member.is_placeholder]
        self.assertEqual(len(placeholders), 5)
        self.assertTrue(all(member.points == PLACEHOLDER_STRENGTH for member in placeholders))

    def test_team_ids_come_from_the_counter(self) -> None:
        participants = [_participant(1, "ADC", 300), _participant(2, "ADC", 320), _participant(3, "ADC", 310)]
        teams = assign_lane_teams(participants, count(7).__next__)
        self.assertEqual([team.team_id for team in teams], [7, 8, 9])

    def test_empty_input_consumes_no_ids(self) -> None:
        calls: list[int] = []

        def next_id() -> int:
            calls.append(1)
            return len(calls)

        self.assertEqual(assign_lane_teams([], next_id), [])
        self.assertEqual(calls, [])

    def test_single_participant_makes_one_padded_team(self) -> None:
        teams = assign_lane_teams([_participant(1, "SUPPORT", 280)], count(1).__next__)
        self.assertEqual(len(teams), 1)
        self.assertEqual(len(teams[0].members), 5)
        self.assertEqual(teams[0].total_strength, 280 + 4 * PLACEHOLDER_STRENGTH)

    def test_strong_and_weak_players_are_paired_across_roles(self) -> None:
        participants = [
            _participant(1, "TOP", 500),
            _participant(2, "TOP", 100),
            _participant(3, "MID", 500),
            _participant(4, "MID", 100),
        ]
        teams = assign_lane_teams(participants, count(1).__next__)
        self.assertEqual(strength_spread(teams), 0)
        self.assertEqual(teams[0].member_for("TOP").player_id, RealId(1))
        self.assertEqual(teams[0].member_for("MID").player_id, RealId(4))
        self.assertEqual(teams[1].member_for("MID").player_id, RealId(3))

    def test_strongest_of_each_role_joins_the_lighter_team(self) -> None:
        points = {
            "TOP": [520, 410],
            "JUNGLE": [300, 290],
            "MID": [610, 200],
            "ADC": [330, 320],
            "SUPPORT": [250, 240],
        }
        participants = []
        next_user = count(1)
        for role, values in points.items():
            participants.extend(_participant(next(next_user), role, value) for value in values)

        teams = assign_lane_teams(participants, count(1).__next__)
        # Greedy leaves 1590 / 1880; trading the JUNGLE pair narrows it to 1600 / 1870.
        self.assertEqual([team.total_strength for team in teams], [1600, 1870])
        self.assertEqual(teams[0].member_for("JUNGLE").points, 300)
        self.assertEqual(teams[1].member_for("MID").points, 610)
        self.assertEqual(teams[0].member_for("ADC").points, 330)

        stacked = sum(values[0] for values in points.values()) - sum(values[1] for values in points.values())
        self.assertLess(strength_spread(teams), stacked)

    def _assert_no_swap_narrows_spread(self, teams) -> None:
        spread = strength_spread(teams)
        for role in LANE_ROLES:
            for first, second in combinations(teams, 2):
                swap_role(first, second, role)
                swapped = strength_spread(teams)
                swap_role(first, second, role)
                self.assertGreaterEqual(swapped, spread, f"swapping {role} between {first.team_id} and {second.team_id}")
        self.assertEqual(strength_spread(teams), spread)

    def test_no_same_role_swap_narrows_the_spread(self) -> None:
        rng = random.Random(2024)
        for _ in range(60):
            participants = [
                _participant(user_id, rng.choice(LANE_ROLES), rng.randrange(150, 750, 10))
                for user_id in range(1, rng.randint(2, 16))
            ]
            teams = assign_lane_teams(participants, count(1).__next__)
            with self.subTest(points=[(p.role, p.points) for p in participants]):
                self._assert_no_swap_narrows_spread(teams)

    def test_swap_pass_keeps_members_and_totals_consistent(self) -> None:
        participants = [
            _participant(1, "TOP", 700),
            _participant(2, "TOP", 200),
            _participant(3, "TOP", 450),
            _participant(4, "JUNGLE", 610),
            _participant(5, "JUNGLE", 180),
            _participant(6, "MID", 530),
            _participant(7, "SUPPORT", 260),
        ]
        teams = assign_lane_teams(participants, count(1).__next__)

        self.assertEqual(len(teams), 3)
        for team in teams:
            self.assertEqual(sorted(member.role for member in team.members), sorted(LANE_ROLES))
            self.assertEqual(team.total_strength, sum(member.points for member in team.members))
        real_ids = [member.player_id for team in teams for member in team.real_members]
        self.assertCountEqual(real_ids, [RealId(i) for i in range(1, 8)])
        self._assert_no_swap_narrows_spread(teams)

    def test_reduce_spread_stops_when_balanced(self) -> None:
        teams = assign_lane_teams(
            [_participant(1, "TOP", 400), _participant(2, "TOP", 400)],
            count(1).__next__,
        )
        self.assertEqual(strength_spread(teams), 0)
        self.assertEqual(reduce_spread(teams), 0)

    def test_synthetic_participants_are_assigned(self) -> None:
        participant = LaneParticipant(player_id=SyntheticId("guest"), display_name="guest", role="MID", points=310)
        teams = assign_lane_teams([participant], count(1).__next__)
        self.assertEqual(teams[0].member_for("MID").player_id, SyntheticId("guest"))

    def test_unknown_role_is_rejected(self) -> None:
        with self.assertRaises(InvalidLaneRole):
            assign_lane_teams([_participant(1, "CARRY", 300)], count(1).__next__)


class LaneRoleTests(unittest.TestCase):
    def test_aliases_normalize(self) -> None:
        self.assertEqual(normalize_lane_role("jg"), "JUNGLE")
        self.assertEqual(normalize_lane_role(" sup "), "SUPPORT")
        self.assertEqual(normalize_lane_role("bot"), "ADC")
        self.assertEqual(normalize_lane_role("Mid"), "MID")


if __name__ == "__main__":
    unittest.main()
