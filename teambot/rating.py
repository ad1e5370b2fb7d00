"""Streak-aware point updates for finished matches and lane games."""

from __future__ import annotations

from collections.abc import Sequence
import logging

from .errors import InvalidLaneResult, InvalidWinnerSide
from .models import WINNER_SIDES, MatchRecord, MatchResult, PlayerId, PointsPolicy, RatingDelta
from .storage import Database

logger = logging.getLogger(__name__)


def win_bonus(win_streak: int, policy: PointsPolicy) -> int:
    return policy.streak_multiplier * min(max(win_streak, 0), policy.win_streak_cap)


def loss_penalty(loss_streak: int, policy: PointsPolicy) -> int:
    return policy.streak_multiplier * min(max(loss_streak, 0), policy.effective_loss_streak_cap)


def _apply_win(db: Database, guild_id: int, player_id: PlayerId, policy: PointsPolicy) -> RatingDelta:
    record = db.ensure_player(guild_id, player_id)

    bonus = win_bonus(record.win_streak, policy)
    delta = policy.win_base + bonus
    db.apply_delta(guild_id, player_id, wins_delta=1, losses_delta=0, points_delta=delta)
    db.increment_win_streak(guild_id, player_id)
    db.reset_loss_streak(guild_id, player_id)
    return RatingDelta(
        player_id=player_id,
        display_name=record.display_name,
        before=record.points,
        base=policy.win_base,
        bonus=bonus,
        delta=delta,
        after=record.points + delta,
    )


def _apply_loss(db: Database, guild_id: int, player_id: PlayerId, policy: PointsPolicy) -> RatingDelta:
    record = db.ensure_player(guild_id, player_id)

    penalty = loss_penalty(record.loss_streak, policy)
    delta = policy.loss_base - penalty
    db.apply_delta(guild_id, player_id, wins_delta=0, losses_delta=1, points_delta=delta)
    db.increment_loss_streak(guild_id, player_id)
    db.reset_win_streak(guild_id, player_id)
    return RatingDelta(
        player_id=player_id,
        display_name=record.display_name,
        before=record.points,
        base=policy.loss_base,
        bonus=-penalty,
        delta=delta,
        after=record.points + delta,
    )


def _apply_rosters(
    db: Database,
    guild_id: int,
    winners: Sequence[PlayerId],
    losers: Sequence[PlayerId],
    policy: PointsPolicy,
) -> tuple[list[RatingDelta], list[RatingDelta]]:
    winner_deltas = [_apply_win(db, guild_id, player_id, policy) for player_id in winners]
    loser_deltas = [_apply_loss(db, guild_id, player_id, policy) for player_id in losers]
    return winner_deltas, loser_deltas


def apply_match_result(
    db: Database,
    guild_id: int,
    match: MatchRecord,
    winner_side: str,
    policy: PointsPolicy,
) -> MatchResult:
    """Resolve ``match`` and update every participant's rating.

    The winner check-and-set and all rating writes share one transaction, so
    a second call for the same match raises ``MatchAlreadyResolved`` and
    leaves ratings untouched.
    """
    if winner_side not in WINNER_SIDES:
        raise InvalidWinnerSide(winner_side)
    loser_side = "B" if winner_side == "A" else "A"

    with db.transaction():
        db.resolve_match(guild_id, match.id, winner_side)
        winner_deltas, loser_deltas = _apply_rosters(
            db,
            guild_id,
            match.roster(winner_side),
            match.roster(loser_side),
            policy,
        )

    logger.info(
        "Resolved match %s in guild %s: team %s won (%s winners, %s losers)",
        match.id,
        guild_id,
        winner_side,
        len(winner_deltas),
        len(loser_deltas),
    )
    return MatchResult(
        match_id=match.id,
        winner_side=winner_side,
        winner_deltas=winner_deltas,
        loser_deltas=loser_deltas,
    )


def apply_lane_result(
    db: Database,
    guild_id: int,
    win_team_id: int,
    lose_team_id: int,
    policy: PointsPolicy,
) -> MatchResult:
    if win_team_id == lose_team_id:
        raise InvalidLaneResult("winning and losing team must differ")

    lane_policy = policy.for_lanes()
    with db.transaction():
        winners = db.get_lane_team_members(guild_id, win_team_id)
        losers = db.get_lane_team_members(guild_id, lose_team_id)
        # Raises LaneTeamNotFound or LaneResultAlreadyRecorded before any rating write.
        db.record_lane_result(guild_id, win_team_id, lose_team_id)
        winner_deltas, loser_deltas = _apply_rosters(
            db,
            guild_id,
            [member.player_id for member in winners if member.player_id is not None],
            [member.player_id for member in losers if member.player_id is not None],
            lane_policy,
        )

    logger.info("Lane team %s beat team %s in guild %s", win_team_id, lose_team_id, guild_id)
    return MatchResult(
        match_id=win_team_id,
        winner_side="A",
        winner_deltas=winner_deltas,
        loser_deltas=loser_deltas,
    )
