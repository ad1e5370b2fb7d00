from __future__ import annotations

import os
import tempfile
import unittest

from teambot.errors import (
    InvalidLaneResult,
    InvalidWinnerSide,
    LaneResultAlreadyRecorded,
    LaneTeamNotFound,
    MatchAlreadyResolved,
)
from teambot.models import LaneMember, LaneTeam, PointsPolicy, RealId, SyntheticId
from teambot.rating import apply_lane_result, apply_match_result, loss_penalty, win_bonus
from teambot.storage import Database

GUILD = 555
ALPHA = RealId(101)
BRAVO = RealId(202)


class MatchResultTests(unittest.TestCase):
    def setUp(self) -> None:
        fd, path = tempfile.mkstemp(prefix="teambot-test-", suffix=".db")
        os.close(fd)
        self.db_path = path
        self.db = Database(path=path)
        self.policy = PointsPolicy()

    def tearDown(self) -> None:
        self.db.close()
        try:
            os.remove(self.db_path)
        except FileNotFoundError:
            pass

    def _record_one_vs_one_match(self) -> int:
        self.db.ensure_player(GUILD, ALPHA, "Alpha")
        self.db.ensure_player(GUILD, BRAVO, "Bravo")
        return self.db.record_match(GUILD, [ALPHA], [BRAVO])

    def _apply(self, match_id: int, winner: str = "A"):
        match = self.db.get_match(GUILD, match_id)
        self.assertIsNotNone(match)
        return apply_match_result(self.db, GUILD, match, winner, self.policy)

    def _streak(self, player_id: RealId, wins: int = 0, losses: int = 0) -> None:
        for _ in range(wins):
            self.db.increment_win_streak(GUILD, player_id)
        for _ in range(losses):
            self.db.increment_loss_streak(GUILD, player_id)

    def test_fresh_players_get_base_points(self) -> None:
        result = self._apply(self._record_one_vs_one_match())
        self.assertEqual(result.winner_deltas[0].delta, 3)
        self.assertEqual(result.loser_deltas[0].delta, -2)
        self.assertEqual(self.db.get_rating(GUILD, ALPHA).points, 303)
        self.assertEqual(self.db.get_rating(GUILD, BRAVO).points, 298)

    def test_win_streak_of_two_adds_two_bonus_points(self) -> None:
        match_id = self._record_one_vs_one_match()
        self._streak(ALPHA, wins=2)
        result = self._apply(match_id)

        delta = result.winner_deltas[0]
        self.assertEqual((delta.base, delta.bonus, delta.delta), (3, 2, 5))
        self.assertEqual(delta.before, 300)
        self.assertEqual(delta.after, 305)
        record = self.db.get_rating(GUILD, ALPHA)
        self.assertEqual(record.points, 305)
        self.assertEqual(record.wins, 1)
        self.assertEqual(record.win_streak, 3)

    def test_bonus_is_capped_but_streak_counter_is_not(self) -> None:
        cap = self.policy.win_streak_cap
        match_id = self._record_one_vs_one_match()
        self._streak(ALPHA, wins=cap + 5)
        result = self._apply(match_id)

        self.assertEqual(result.winner_deltas[0].bonus, cap)
        self.assertEqual(result.winner_deltas[0].delta, self.policy.win_base + cap)
        self.assertEqual(self.db.get_rating(GUILD, ALPHA).win_streak, cap + 6)

    def test_win_resets_loss_streak_and_loss_resets_win_streak(self) -> None:
        match_id = self._record_one_vs_one_match()
        self._streak(ALPHA, losses=2)
        self._streak(BRAVO, wins=4)
        self._apply(match_id)

        alpha = self.db.get_rating(GUILD, ALPHA)
        bravo = self.db.get_rating(GUILD, BRAVO)
        self.assertEqual((alpha.win_streak, alpha.loss_streak), (1, 0))
        self.assertEqual((bravo.win_streak, bravo.loss_streak), (0, 1))

    def test_loss_penalty_grows_with_loss_streak(self) -> None:
        match_id = self._record_one_vs_one_match()
        self._streak(BRAVO, losses=2)
        result = self._apply(match_id)
        self.assertEqual(result.loser_deltas[0].delta, -4)
        self.assertEqual(self.db.get_rating(GUILD, BRAVO).points, 296)

    def test_loss_cap_falls_back_to_win_cap(self) -> None:
        policy = PointsPolicy(win_streak_cap=1)
        self.assertEqual(loss_penalty(4, policy), 1)
        self.assertEqual(loss_penalty(4, PointsPolicy(win_streak_cap=1, loss_streak_cap=3)), 3)
        self.assertEqual(win_bonus(4, policy), 1)

    def test_second_resolution_is_rejected_and_points_are_unchanged(self) -> None:
        match_id = self._record_one_vs_one_match()
        self._apply(match_id, "A")
        before_alpha = self.db.get_rating(GUILD, ALPHA)
        before_bravo = self.db.get_rating(GUILD, BRAVO)

        with self.assertRaises(MatchAlreadyResolved) as ctx:
            self._apply(match_id, "B")
        self.assertEqual(ctx.exception.winner, "A")

        self.assertEqual(self.db.get_rating(GUILD, ALPHA), before_alpha)
        self.assertEqual(self.db.get_rating(GUILD, BRAVO), before_bravo)
        self.assertEqual(self.db.get_match(GUILD, match_id).winner, "A")

    def test_invalid_side_leaves_match_open(self) -> None:
        match_id = self._record_one_vs_one_match()
        with self.assertRaises(InvalidWinnerSide):
            self._apply(match_id, "C")
        self.assertFalse(self.db.get_match(GUILD, match_id).is_resolved)
        self.assertEqual(self.db.get_rating(GUILD, ALPHA).points, 300)

    def test_missing_rating_records_are_created_with_defaults(self) -> None:
        guest = SyntheticId("guest")
        match_id = self.db.record_match(GUILD, [guest], [RealId(999)])
        self._apply(match_id, "A")

        self.assertEqual(self.db.get_rating(GUILD, guest).points, 303)
        self.assertEqual(self.db.get_rating(GUILD, RealId(999)).points, 298)

    def test_new_synthetic_player_is_named_without_key_prefix(self) -> None:
        guest = SyntheticId("guest")
        match_id = self.db.record_match(GUILD, [guest], [RealId(999)])
        result = self._apply(match_id, "A")

        self.assertEqual(result.winner_deltas[0].display_name, "guest")
        self.assertEqual(self.db.get_rating(GUILD, guest).display_name, "guest")
        self.assertEqual(self.db.get_rating(GUILD, RealId(999)).display_name, "999")


class LaneResultTests(unittest.TestCase):
    def setUp(self) -> None:
        fd, path = tempfile.mkstemp(prefix="teambot-test-", suffix=".db")
        os.close(fd)
        self.db_path = path
        self.db = Database(path=path)

    def tearDown(self) -> None:
        self.db.close()
        try:
            os.remove(self.db_path)
        except FileNotFoundError:
            pass

    def _save_team(self, player_id: RealId, name: str) -> int:
        team = LaneTeam(team_id=self.db.next_lane_team_id(GUILD))
        team.add(LaneMember(role="TOP", points=300, player_id=player_id, display_name=name))
        team.add(LaneMember(role="MID", points=300))
        self.db.ensure_player(GUILD, player_id, name)
        self.db.save_lane_team(GUILD, team)
        return team.team_id

    def test_lane_result_uses_lane_schedule(self) -> None:
        win_team = self._save_team(ALPHA, "Alpha")
        lose_team = self._save_team(BRAVO, "Bravo")
        self.db.increment_win_streak(GUILD, ALPHA)

        result = apply_lane_result(self.db, GUILD, win_team, lose_team, PointsPolicy())

        self.assertEqual(result.winner_deltas[0].delta, 8)
        self.assertEqual(result.loser_deltas[0].delta, -4)
        self.assertEqual(self.db.get_rating(GUILD, ALPHA).points, 308)
        self.assertEqual(self.db.get_rating(GUILD, BRAVO).points, 296)
        self.assertEqual(self.db.get_lane_team_record(GUILD, win_team), (1, 0))
        self.assertEqual(self.db.get_lane_team_record(GUILD, lose_team), (0, 1))

    def test_lane_bonus_respects_cap(self) -> None:
        win_team = self._save_team(ALPHA, "Alpha")
        lose_team = self._save_team(BRAVO, "Bravo")
        for _ in range(10):
            self.db.increment_win_streak(GUILD, ALPHA)

        result = apply_lane_result(self.db, GUILD, win_team, lose_team, PointsPolicy(win_streak_cap=3))
        self.assertEqual(result.winner_deltas[0].delta, 6 + 2 * 3)

    def test_same_team_is_rejected(self) -> None:
        team_id = self._save_team(ALPHA, "Alpha")
        with self.assertRaises(InvalidLaneResult):
            apply_lane_result(self.db, GUILD, team_id, team_id, PointsPolicy())

    def test_unknown_team_is_rejected(self) -> None:
        team_id = self._save_team(ALPHA, "Alpha")
        with self.assertRaises(LaneTeamNotFound):
            apply_lane_result(self.db, GUILD, team_id, 404, PointsPolicy())
        self.assertEqual(self.db.get_lane_team_record(GUILD, team_id), (0, 0))
        self.assertEqual(self.db.get_rating(GUILD, ALPHA).points, 300)

    def test_same_pairing_resolves_once(self) -> None:
        win_team = self._save_team(ALPHA, "Alpha")
        lose_team = self._save_team(BRAVO, "Bravo")
        apply_lane_result(self.db, GUILD, win_team, lose_team, PointsPolicy())

        with self.assertRaises(LaneResultAlreadyRecorded) as ctx:
            apply_lane_result(self.db, GUILD, lose_team, win_team, PointsPolicy())
        self.assertIn(f"lane teams {lose_team} and {win_team}", str(ctx.exception))
        self.assertNotIsInstance(ctx.exception, MatchAlreadyResolved)
        self.assertEqual(self.db.get_rating(GUILD, ALPHA).points, 306)
        self.assertEqual(self.db.get_rating(GUILD, BRAVO).points, 296)

    def test_a_team_can_play_several_opponents(self) -> None:
        charlie = RealId(303)
        first = self._save_team(ALPHA, "Alpha")
        second = self._save_team(BRAVO, "Bravo")
        third = self._save_team(charlie, "Charlie")

        apply_lane_result(self.db, GUILD, first, second, PointsPolicy())
        apply_lane_result(self.db, GUILD, third, first, PointsPolicy())
        apply_lane_result(self.db, GUILD, second, third, PointsPolicy())

        self.assertEqual(self.db.get_lane_team_record(GUILD, first), (1, 1))
        self.assertEqual(self.db.get_lane_team_record(GUILD, second), (1, 1))
        self.assertEqual(self.db.get_lane_team_record(GUILD, third), (1, 1))
        # +6 for beating the second team, -4 for losing to the third.
        self.assertEqual(self.db.get_rating(GUILD, ALPHA).points, 302)
        with self.assertRaises(LaneResultAlreadyRecorded):
            apply_lane_result(self.db, GUILD, second, first, PointsPolicy())
        self.assertEqual(self.db.get_rating(GUILD, ALPHA).points, 302)


if __name__ == "__main__":
    unittest.main()
