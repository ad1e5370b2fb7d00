from __future__ import annotations

from itertools import combinations
import random
import unittest

from teambot.errors import TooManyParticipants
from teambot.matchmaking import split_balanced, split_random
from teambot.models import Player, RealId
from teambot.signatures import team_signature


def _players(points: list[int]) -> list[Player]:
    return [Player(id=RealId(index + 1), display_name=f"P{index + 1}", points=value) for index, value in enumerate(points)]


def _keys(players: list[Player]) -> list[str]:
    return [player.id.key for player in players]


def _best_diff(points: list[int]) -> int:
    total = sum(points)
    best = None
    for combo in combinations(range(len(points)), len(points) // 2):
        side = sum(points[i] for i in combo)
        diff = abs(total - 2 * side)
        if best is None or diff < best:
            best = diff
    assert best is not None
    return best


class BalancedSplitTests(unittest.TestCase):
    def test_matches_brute_force_optimum_without_history(self) -> None:
        rng = random.Random(1234)
        for size in range(2, 13):
            points = [rng.randint(100, 600) for _ in range(size)]
            split = split_balanced(_players(points), rng=random.Random(size))
            self.assertEqual(split.diff, _best_diff(points), f"size {size}: {points}")
            self.assertEqual(sorted([len(split.team_a), len(split.team_b)]), [size // 2, size - size // 2])

    def test_four_player_scenario_balances_exactly(self) -> None:
        split = split_balanced(_players([400, 300, 320, 380]), rng=random.Random(7))
        self.assertEqual(split.diff, 0)
        self.assertEqual(split.sum_a, 700)
        self.assertEqual(split.sum_b, 700)
        groups = sorted(sorted(player.points for player in team) for team in (split.team_a, split.team_b))
        self.assertEqual(groups, [[300, 400], [320, 380]])

    def test_every_player_lands_on_exactly_one_team(self) -> None:
        players = _players([310, 290, 305, 500, 120, 333, 280])
        split = split_balanced(players, rng=random.Random(3))
        keys = _keys(split.team_a) + _keys(split.team_b)
        self.assertCountEqual(keys, _keys(players))
        self.assertEqual(split.sum_a, sum(player.points for player in split.team_a))
        self.assertEqual(split.sum_b, sum(player.points for player in split.team_b))
        self.assertEqual(split.diff, abs(split.sum_a - split.sum_b))

    def test_avoids_repeating_last_lineup_when_alternatives_tie(self) -> None:
        players = _players([300, 300, 300, 300])
        last = team_signature(["1", "2"], ["3", "4"])
        for seed in range(20):
            split = split_balanced(players, last_signature=last, recent_signatures=[last], rng=random.Random(seed))
            self.assertNotEqual(split.signature, last)
            self.assertEqual(split.diff, 0)

    def test_accepts_worse_balance_to_avoid_exact_repeat(self) -> None:
        players = _players([100, 200, 300, 400])
        optimal = team_signature(["1", "4"], ["2", "3"])
        split = split_balanced(players, last_signature=optimal, recent_signatures=[optimal], rng=random.Random(0))
        self.assertNotEqual(split.signature, optimal)
        self.assertEqual(split.diff, 200)

    def test_repeat_is_returned_when_it_is_the_only_partition(self) -> None:
        players = _players([300, 350])
        only = team_signature(["1"], ["2"])
        split = split_balanced(players, last_signature=only, recent_signatures=[only], rng=random.Random(0))
        self.assertEqual(split.signature, only)
        self.assertEqual(split.diff, 50)

    def test_signature_ignores_team_labels(self) -> None:
        players = _players([400, 300, 320, 380])
        signatures = {split_balanced(players, rng=random.Random(seed)).signature for seed in range(10)}
        self.assertEqual(len(signatures), 1)

    def test_single_player_is_degenerate(self) -> None:
        split = split_balanced(_players([450]))
        self.assertEqual(_keys(split.team_a), ["1"])
        self.assertEqual(split.team_b, [])
        self.assertEqual(split.sum_a, 450)
        self.assertEqual(split.sum_b, 0)
        self.assertEqual(split.diff, 450)
        self.assertIsNone(split.signature)

    def test_empty_input_is_degenerate(self) -> None:
        split = split_balanced([])
        self.assertEqual(split.team_a, [])
        self.assertEqual(split.team_b, [])
        self.assertEqual(split.diff, 0)
        self.assertIsNone(split.signature)

    def test_rejects_more_players_than_the_limit(self) -> None:
        with self.assertRaises(TooManyParticipants) as ctx:
            split_balanced(_players([300] * 15), max_players=14)
        self.assertEqual(ctx.exception.count, 15)
        self.assertEqual(ctx.exception.limit, 14)


class RandomSplitTests(unittest.TestCase):
    def test_sizes_differ_by_at_most_one(self) -> None:
        players = _players([300] * 7)
        for seed in range(10):
            split = split_random(players, rng=random.Random(seed))
            self.assertEqual(sorted([len(split.team_a), len(split.team_b)]), [3, 4])
            self.assertCountEqual(_keys(split.team_a) + _keys(split.team_b), _keys(players))

    def test_same_seed_gives_same_split(self) -> None:
        players = _players([300, 310, 320, 330, 340, 350])
        first = split_random(players, rng=random.Random(42))
        second = split_random(players, rng=random.Random(42))
        self.assertEqual(_keys(first.team_a), _keys(second.team_a))
        self.assertEqual(_keys(first.team_b), _keys(second.team_b))

    def test_two_players_are_separated(self) -> None:
        split = split_random(_players([300, 300]), rng=random.Random(5))
        self.assertEqual(len(split.team_a), 1)
        self.assertEqual(len(split.team_b), 1)


if __name__ == "__main__":
    unittest.main()
