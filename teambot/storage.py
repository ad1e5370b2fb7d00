from __future__ import annotations

from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from dataclasses import fields, replace
from datetime import datetime, timezone
import json
import sqlite3

from .errors import (
    InvalidPointsPolicy,
    InvalidWinnerSide,
    LaneResultAlreadyRecorded,
    LaneTeamNotFound,
    MatchAlreadyResolved,
    MatchNotFound,
)
from .models import (
    DEFAULT_POINTS,
    WINNER_SIDES,
    GuildStats,
    LaneMember,
    LaneTeam,
    MatchRecord,
    PlayerId,
    PointsPolicy,
    RatingRecord,
    SignupParticipant,
    SignupSession,
    parse_player_id,
)

DEFAULT_HISTORY_SIZE = 10
VALID_MATCH_KINDS = {"balanced", "random"}
VALID_SIGNUP_KINDS = {"team", "lane"}
POLICY_FIELDS = tuple(f.name for f in fields(PointsPolicy))


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


def validate_policy(policy: PointsPolicy) -> None:
    if policy.win_streak_cap < 0:
        raise InvalidPointsPolicy("win streak cap cannot be negative")
    if policy.loss_streak_cap is not None and policy.loss_streak_cap < 0:
        raise InvalidPointsPolicy("loss streak cap cannot be negative")
    if policy.streak_multiplier < 0 or policy.lane_streak_multiplier < 0:
        raise InvalidPointsPolicy("streak multipliers cannot be negative")


class Database:
    def __init__(
        self,
        path: str,
        default_points: int = DEFAULT_POINTS,
        history_size: int = DEFAULT_HISTORY_SIZE,
        default_policy: PointsPolicy | None = None,
    ) -> None:
        self.default_points = default_points
        self.history_size = max(history_size, 1)
        self.default_policy = default_policy or PointsPolicy()
        validate_policy(self.default_policy)
        self.conn = sqlite3.connect(path)
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA foreign_keys = ON")
        self._depth = 0
        self._create_schema()

    def _create_schema(self) -> None:
        with self.transaction():
            self.conn.execute(
                """
                CREATE TABLE IF NOT EXISTS players (
                    guild_id INTEGER NOT NULL,
                    player_key TEXT NOT NULL,
                    display_name TEXT NOT NULL,
                    points INTEGER NOT NULL,
                    wins INTEGER NOT NULL DEFAULT 0,
                    losses INTEGER NOT NULL DEFAULT 0,
                    win_streak INTEGER NOT NULL DEFAULT 0,
                    loss_streak INTEGER NOT NULL DEFAULT 0,
                    updated_at TEXT NOT NULL,
                    PRIMARY KEY (guild_id, player_key)
                )
                """
            )
            self.conn.execute(
                """
                CREATE TABLE IF NOT EXISTS points_policy (
                    guild_id INTEGER PRIMARY KEY,
                    win_base INTEGER NOT NULL,
                    loss_base INTEGER NOT NULL,
                    win_streak_cap INTEGER NOT NULL,
                    loss_streak_cap INTEGER,
                    streak_multiplier INTEGER NOT NULL,
                    lane_win_base INTEGER NOT NULL,
                    lane_loss_base INTEGER NOT NULL,
                    lane_streak_multiplier INTEGER NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )
            self.conn.execute(
                """
                CREATE TABLE IF NOT EXISTS matches (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    guild_id INTEGER NOT NULL,
                    kind TEXT NOT NULL,
                    message_id INTEGER,
                    team_a_json TEXT NOT NULL,
                    team_b_json TEXT NOT NULL,
                    winner TEXT,
                    created_at TEXT NOT NULL,
                    resolved_at TEXT
                )
                """
            )
            self.conn.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_matches_guild
                ON matches(guild_id, id)
                """
            )
            self.conn.execute(
                """
                CREATE TABLE IF NOT EXISTS team_signatures (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    guild_id INTEGER NOT NULL,
                    signature TEXT NOT NULL,
                    created_at TEXT NOT NULL
                )
                """
            )
            self.conn.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_team_signatures_guild
                ON team_signatures(guild_id, id)
                """
            )
            self.conn.execute(
                """
                CREATE TABLE IF NOT EXISTS lane_team_counters (
                    guild_id INTEGER PRIMARY KEY,
                    next_id INTEGER NOT NULL
                )
                """
            )
            self.conn.execute(
                """
                CREATE TABLE IF NOT EXISTS lane_teams (
                    guild_id INTEGER NOT NULL,
                    team_id INTEGER NOT NULL,
                    total_strength INTEGER NOT NULL,
                    created_at TEXT NOT NULL,
                    PRIMARY KEY (guild_id, team_id)
                )
                """
            )
            self.conn.execute(
                """
                CREATE TABLE IF NOT EXISTS lane_results (
                    guild_id INTEGER NOT NULL,
                    team_low INTEGER NOT NULL,
                    team_high INTEGER NOT NULL,
                    winner_team_id INTEGER NOT NULL,
                    loser_team_id INTEGER NOT NULL,
                    created_at TEXT NOT NULL,
                    PRIMARY KEY (guild_id, team_low, team_high),
                    CHECK (team_low < team_high)
                )
                """
            )
            self.conn.execute(
                """
                CREATE TABLE IF NOT EXISTS lane_team_members (
                    guild_id INTEGER NOT NULL,
                    team_id INTEGER NOT NULL,
                    player_key TEXT NOT NULL,
                    display_name TEXT NOT NULL,
                    role TEXT NOT NULL,
                    points INTEGER NOT NULL,
                    PRIMARY KEY (team_id, guild_id, player_key),
                    FOREIGN KEY (guild_id, team_id) REFERENCES lane_teams(guild_id, team_id) ON DELETE CASCADE
                )
                """
            )
            self.conn.execute(
                """
                CREATE TABLE IF NOT EXISTS signups (
                    message_id INTEGER PRIMARY KEY,
                    guild_id INTEGER NOT NULL,
                    channel_id INTEGER NOT NULL,
                    author_id INTEGER NOT NULL,
                    kind TEXT NOT NULL,
                    closed INTEGER NOT NULL DEFAULT 0,
                    created_at TEXT NOT NULL
                )
                """
            )
            self.conn.execute(
                """
                CREATE TABLE IF NOT EXISTS signup_participants (
                    message_id INTEGER NOT NULL,
                    guild_id INTEGER NOT NULL,
                    player_key TEXT NOT NULL,
                    display_name TEXT NOT NULL,
                    role TEXT,
                    joined_at TEXT NOT NULL,
                    PRIMARY KEY (message_id, player_key),
                    FOREIGN KEY (message_id) REFERENCES signups(message_id) ON DELETE CASCADE
                )
                """
            )

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Group writes into one transaction; nested calls join the outer one."""
        if self._depth == 0 and not self.conn.in_transaction:
            self.conn.execute("BEGIN IMMEDIATE")
        self._depth += 1
        try:
            yield self.conn
        except BaseException:
            self._depth -= 1
            if self._depth == 0:
                self.conn.rollback()
            raise
        self._depth -= 1
        if self._depth == 0:
            self.conn.commit()

    def close(self) -> None:
        self.conn.close()

    # Ratings

    def _row_to_rating(self, row: sqlite3.Row) -> RatingRecord:
        return RatingRecord(
            player_id=parse_player_id(row["player_key"]),
            display_name=row["display_name"],
            points=int(row["points"]),
            wins=int(row["wins"]),
            losses=int(row["losses"]),
            win_streak=int(row["win_streak"]),
            loss_streak=int(row["loss_streak"]),
        )

    def get_rating(self, guild_id: int, player_id: PlayerId) -> RatingRecord | None:
        row = self.conn.execute(
            """
            SELECT player_key, display_name, points, wins, losses, win_streak, loss_streak
            FROM players
            WHERE guild_id = ?
              AND player_key = ?
            """,
            (guild_id, player_id.key),
        ).fetchone()
        if row is None:
            return None
        return self._row_to_rating(row)

    def get_points(self, guild_id: int, player_id: PlayerId) -> int:
        record = self.get_rating(guild_id, player_id)
        return record.points if record is not None else self.default_points

    def ensure_player(self, guild_id: int, player_id: PlayerId, display_name: str | None = None) -> RatingRecord:
        """Create the rating row on first sight; refresh the display name otherwise."""
        name = display_name or player_id.fallback_name
        with self.transaction():
            if display_name:
                self.conn.execute(
                    """
                    INSERT INTO players (guild_id, player_key, display_name, points, updated_at)
                    VALUES (?, ?, ?, ?, ?)
                    ON CONFLICT(guild_id, player_key) DO UPDATE SET
                        display_name = excluded.display_name,
                        updated_at = excluded.updated_at
                    """,
                    (guild_id, player_id.key, name, self.default_points, utc_now_iso()),
                )
            else:
                self.conn.execute(
                    """
                    INSERT INTO players (guild_id, player_key, display_name, points, updated_at)
                    VALUES (?, ?, ?, ?, ?)
                    ON CONFLICT(guild_id, player_key) DO NOTHING
                    """,
                    (guild_id, player_id.key, name, self.default_points, utc_now_iso()),
                )
            record = self.get_rating(guild_id, player_id)
        if record is None:
            raise RuntimeError(f"player {player_id.key} missing from guild {guild_id} after insert")
        return record

    def set_points(self, guild_id: int, player_id: PlayerId, display_name: str, points: int) -> None:
        with self.transaction():
            self.conn.execute(
                """
                INSERT INTO players (guild_id, player_key, display_name, points, updated_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(guild_id, player_key) DO UPDATE SET
                    display_name = excluded.display_name,
                    points = excluded.points,
                    updated_at = excluded.updated_at
                """,
                (guild_id, player_id.key, display_name, int(points), utc_now_iso()),
            )

    def apply_delta(
        self,
        guild_id: int,
        player_id: PlayerId,
        wins_delta: int,
        losses_delta: int,
        points_delta: int,
    ) -> None:
        with self.transaction():
            self.ensure_player(guild_id, player_id)
            self.conn.execute(
                """
                UPDATE players
                SET wins = wins + ?,
                    losses = losses + ?,
                    points = points + ?,
                    updated_at = ?
                WHERE guild_id = ?
                  AND player_key = ?
                """,
                (wins_delta, losses_delta, points_delta, utc_now_iso(), guild_id, player_id.key),
            )

    def _update_streaks(self, guild_id: int, player_id: PlayerId, assignments: str) -> None:
        with self.transaction():
            self.ensure_player(guild_id, player_id)
            self.conn.execute(
                f"""
                UPDATE players
                SET {assignments}, updated_at = ?
                WHERE guild_id = ?
                  AND player_key = ?
                """,
                (utc_now_iso(), guild_id, player_id.key),
            )

    # The stored counters are never capped; only the applied bonus is.
    def increment_win_streak(self, guild_id: int, player_id: PlayerId) -> None:
        self._update_streaks(guild_id, player_id, "win_streak = win_streak + 1")

    def reset_win_streak(self, guild_id: int, player_id: PlayerId) -> None:
        self._update_streaks(guild_id, player_id, "win_streak = 0")

    def increment_loss_streak(self, guild_id: int, player_id: PlayerId) -> None:
        self._update_streaks(guild_id, player_id, "loss_streak = loss_streak + 1")

    def reset_loss_streak(self, guild_id: int, player_id: PlayerId) -> None:
        self._update_streaks(guild_id, player_id, "loss_streak = 0")

    def set_record(self, guild_id: int, player_id: PlayerId, display_name: str, wins: int, losses: int) -> None:
        """Overwrite wins/losses (administrative); streaks restart from zero."""
        with self.transaction():
            self.conn.execute(
                """
                INSERT INTO players (guild_id, player_key, display_name, points, wins, losses,
                                     win_streak, loss_streak, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, 0, 0, ?)
                ON CONFLICT(guild_id, player_key) DO UPDATE SET
                    display_name = excluded.display_name,
                    wins = excluded.wins,
                    losses = excluded.losses,
                    win_streak = 0,
                    loss_streak = 0,
                    updated_at = excluded.updated_at
                """,
                (guild_id, player_id.key, display_name, self.default_points, max(wins, 0), max(losses, 0), utc_now_iso()),
            )

    def delete_player(self, guild_id: int, player_id: PlayerId) -> bool:
        with self.transaction():
            result = self.conn.execute(
                """
                DELETE FROM players
                WHERE guild_id = ?
                  AND player_key = ?
                """,
                (guild_id, player_id.key),
            )
            self.conn.execute(
                """
                DELETE FROM signup_participants
                WHERE guild_id = ?
                  AND player_key = ?
                """,
                (guild_id, player_id.key),
            )
        return result.rowcount > 0

    def top_ranks(self, guild_id: int, limit: int = 50) -> list[RatingRecord]:
        rows = self.conn.execute(
            """
            SELECT player_key, display_name, points, wins, losses, win_streak, loss_streak,
                   CASE WHEN (wins + losses) = 0 THEN 0.0
                        ELSE CAST(wins AS REAL) / (wins + losses) END AS win_rate
            FROM players
            WHERE guild_id = ?
            ORDER BY points DESC, win_rate DESC, wins DESC, player_key ASC
            LIMIT ?
            """,
            (guild_id, max(limit, 0)),
        ).fetchall()
        return [self._row_to_rating(row) for row in rows]

    def get_guild_stats(self, guild_id: int) -> GuildStats:
        row = self.conn.execute(
            """
            SELECT
                (SELECT COUNT(*) FROM players WHERE guild_id = :guild) AS players,
                (SELECT COUNT(*) FROM matches WHERE guild_id = :guild) AS matches,
                (SELECT COUNT(*) FROM matches WHERE guild_id = :guild AND winner IS NOT NULL) AS resolved,
                (SELECT COUNT(*) FROM lane_teams WHERE guild_id = :guild) AS lane_teams
            """,
            {"guild": guild_id},
        ).fetchone()
        return GuildStats(
            players=int(row["players"]),
            matches=int(row["matches"]),
            resolved_matches=int(row["resolved"]),
            lane_teams=int(row["lane_teams"]),
        )

    # Points policy

    def get_points_policy(self, guild_id: int) -> PointsPolicy:
        row = self.conn.execute(
            """
            SELECT win_base, loss_base, win_streak_cap, loss_streak_cap, streak_multiplier,
                   lane_win_base, lane_loss_base, lane_streak_multiplier
            FROM points_policy
            WHERE guild_id = ?
            """,
            (guild_id,),
        ).fetchone()
        if row is None:
            return self.default_policy
        return PointsPolicy(**{name: row[name] for name in POLICY_FIELDS})

    def set_points_policy(self, guild_id: int, **changes: int | None) -> PointsPolicy:
        """Update only the given fields; ``None`` values leave a field unchanged."""
        unknown = set(changes) - set(POLICY_FIELDS)
        if unknown:
            raise InvalidPointsPolicy(f"unknown policy fields: {', '.join(sorted(unknown))}")
        updates = {name: value for name, value in changes.items() if value is not None}

        with self.transaction():
            policy = replace(self.get_points_policy(guild_id), **updates)
            validate_policy(policy)
            self.conn.execute(
                """
                INSERT INTO points_policy (
                    guild_id, win_base, loss_base, win_streak_cap, loss_streak_cap,
                    streak_multiplier, lane_win_base, lane_loss_base, lane_streak_multiplier,
                    updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(guild_id) DO UPDATE SET
                    win_base = excluded.win_base,
                    loss_base = excluded.loss_base,
                    win_streak_cap = excluded.win_streak_cap,
                    loss_streak_cap = excluded.loss_streak_cap,
                    streak_multiplier = excluded.streak_multiplier,
                    lane_win_base = excluded.lane_win_base,
                    lane_loss_base = excluded.lane_loss_base,
                    lane_streak_multiplier = excluded.lane_streak_multiplier,
                    updated_at = excluded.updated_at
                """,
                (
                    guild_id,
                    policy.win_base,
                    policy.loss_base,
                    policy.win_streak_cap,
                    policy.loss_streak_cap,
                    policy.streak_multiplier,
                    policy.lane_win_base,
                    policy.lane_loss_base,
                    policy.lane_streak_multiplier,
                    utc_now_iso(),
                ),
            )
        return policy

    # Matches

    def _encode_roster(self, player_ids: Iterable[PlayerId]) -> str:
        return json.dumps([player_id.key for player_id in player_ids], ensure_ascii=False)

    def _decode_roster(self, payload: str) -> list[PlayerId]:
        try:
            raw = json.loads(payload)
        except (TypeError, json.JSONDecodeError):
            return []
        if not isinstance(raw, list):
            return []
        return [parse_player_id(str(key)) for key in raw]

    def _row_to_match(self, row: sqlite3.Row) -> MatchRecord:
        return MatchRecord(
            id=int(row["id"]),
            guild_id=int(row["guild_id"]),
            team_a=self._decode_roster(row["team_a_json"]),
            team_b=self._decode_roster(row["team_b_json"]),
            winner=row["winner"],
            created_at=row["created_at"],
            kind=row["kind"],
        )

    def record_match(
        self,
        guild_id: int,
        team_a_ids: Iterable[PlayerId],
        team_b_ids: Iterable[PlayerId],
        *,
        kind: str = "balanced",
        message_id: int | None = None,
    ) -> int:
        if kind not in VALID_MATCH_KINDS:
            raise ValueError(f"unknown match kind: {kind}")
        with self.transaction():
            cursor = self.conn.execute(
                """
                INSERT INTO matches (guild_id, kind, message_id, team_a_json, team_b_json, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    guild_id,
                    kind,
                    message_id,
                    self._encode_roster(team_a_ids),
                    self._encode_roster(team_b_ids),
                    utc_now_iso(),
                ),
            )
        return int(cursor.lastrowid)

    def get_match(self, guild_id: int, match_id: int | None = None) -> MatchRecord | None:
        """Fetch a match by id, or the guild's latest match when ``match_id`` is None."""
        if match_id is None:
            row = self.conn.execute(
                """
                SELECT id, guild_id, kind, team_a_json, team_b_json, winner, created_at
                FROM matches
                WHERE guild_id = ?
                ORDER BY id DESC
                LIMIT 1
                """,
                (guild_id,),
            ).fetchone()
        else:
            row = self.conn.execute(
                """
                SELECT id, guild_id, kind, team_a_json, team_b_json, winner, created_at
                FROM matches
                WHERE guild_id = ?
                  AND id = ?
                """,
                (guild_id, match_id),
            ).fetchone()
        if row is None:
            return None
        return self._row_to_match(row)

    def resolve_match(self, guild_id: int, match_id: int, winner_side: str) -> None:
        """Open -> Resolved, once. Raises instead of overwriting an existing winner."""
        if winner_side not in WINNER_SIDES:
            raise InvalidWinnerSide(winner_side)
        with self.transaction():
            result = self.conn.execute(
                """
                UPDATE matches
                SET winner = ?, resolved_at = ?
                WHERE guild_id = ?
                  AND id = ?
                  AND winner IS NULL
                """,
                (winner_side, utc_now_iso(), guild_id, match_id),
            )
            if result.rowcount == 0:
                existing = self.get_match(guild_id, match_id)
                if existing is None:
                    raise MatchNotFound(guild_id, match_id)
                raise MatchAlreadyResolved(match_id, str(existing.winner))

    # Team history

    def append_team_signature(self, guild_id: int, signature: str) -> None:
        with self.transaction():
            self.conn.execute(
                """
                INSERT INTO team_signatures (guild_id, signature, created_at)
                VALUES (?, ?, ?)
                """,
                (guild_id, signature, utc_now_iso()),
            )
            self.conn.execute(
                """
                DELETE FROM team_signatures
                WHERE guild_id = ?
                  AND id NOT IN (
                      SELECT id
                      FROM team_signatures
                      WHERE guild_id = ?
                      ORDER BY id DESC
                      LIMIT ?
                  )
                """,
                (guild_id, guild_id, self.history_size),
            )

    def get_recent_team_signatures(self, guild_id: int, count: int | None = None) -> list[str]:
        """Newest first."""
        limit = self.history_size if count is None else max(count, 0)
        rows = self.conn.execute(
            """
            SELECT signature
            FROM team_signatures
            WHERE guild_id = ?
            ORDER BY id DESC
            LIMIT ?
            """,
            (guild_id, limit),
        ).fetchall()
        return [str(row["signature"]) for row in rows]

    # Lane teams

    def next_lane_team_id(self, guild_id: int) -> int:
        with self.transaction():
            self.conn.execute(
                """
                INSERT INTO lane_team_counters (guild_id, next_id)
                SELECT ?, COALESCE(MAX(team_id), 0) + 1
                FROM lane_teams
                WHERE guild_id = ?
                ON CONFLICT(guild_id) DO NOTHING
                """,
                (guild_id, guild_id),
            )
            row = self.conn.execute(
                """
                SELECT next_id
                FROM lane_team_counters
                WHERE guild_id = ?
                """,
                (guild_id,),
            ).fetchone()
            team_id = int(row["next_id"])
            self.conn.execute(
                """
                UPDATE lane_team_counters
                SET next_id = next_id + 1
                WHERE guild_id = ?
                """,
                (guild_id,),
            )
        return team_id

    def save_lane_team(self, guild_id: int, team: LaneTeam) -> None:
        """Persist a lane team; placeholder members are skipped."""
        with self.transaction():
            self.conn.execute(
                """
                INSERT INTO lane_teams (guild_id, team_id, total_strength, created_at)
                VALUES (?, ?, ?, ?)
                """,
                (guild_id, team.team_id, team.total_strength, utc_now_iso()),
            )
            self.conn.executemany(
                """
                INSERT INTO lane_team_members (guild_id, team_id, player_key, display_name, role, points)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(team_id, guild_id, player_key) DO UPDATE SET
                    display_name = excluded.display_name,
                    role = excluded.role,
                    points = excluded.points
                """,
                [
                    (guild_id, team.team_id, member.player_id.key, member.display_name, member.role, member.points)
                    for member in team.real_members
                ],
            )

    def get_lane_team_members(self, guild_id: int, team_id: int) -> list[LaneMember]:
        rows = self.conn.execute(
            """
            SELECT player_key, display_name, role, points
            FROM lane_team_members
            WHERE guild_id = ?
              AND team_id = ?
            """,
            (guild_id, team_id),
        ).fetchall()
        return [
            LaneMember(
                role=row["role"],
                points=int(row["points"]),
                player_id=parse_player_id(row["player_key"]),
                display_name=row["display_name"],
            )
            for row in rows
        ]

    def require_lane_team(self, guild_id: int, team_id: int) -> None:
        row = self.conn.execute(
            """
            SELECT 1
            FROM lane_teams
            WHERE guild_id = ?
              AND team_id = ?
            """,
            (guild_id, team_id),
        ).fetchone()
        if row is None:
            raise LaneTeamNotFound(guild_id, team_id)

    def get_lane_team_record(self, guild_id: int, team_id: int) -> tuple[int, int]:
        """(wins, losses) recorded for a lane team across all its pairings."""
        self.require_lane_team(guild_id, team_id)
        row = self.conn.execute(
            """
            SELECT
                COALESCE(SUM(winner_team_id = :team), 0) AS wins,
                COALESCE(SUM(loser_team_id = :team), 0) AS losses
            FROM lane_results
            WHERE guild_id = :guild
              AND (winner_team_id = :team OR loser_team_id = :team)
            """,
            {"guild": guild_id, "team": team_id},
        ).fetchone()
        return int(row["wins"]), int(row["losses"])

    def list_recent_lane_team_ids(self, guild_id: int, count: int = 5) -> list[int]:
        rows = self.conn.execute(
            """
            SELECT team_id
            FROM lane_teams
            WHERE guild_id = ?
            ORDER BY team_id DESC
            LIMIT ?
            """,
            (guild_id, max(count, 0)),
        ).fetchall()
        return [int(row["team_id"]) for row in rows]

    def record_lane_result(self, guild_id: int, winner_team_id: int, loser_team_id: int) -> None:
        """Store one game between two lane teams. Each pairing is recorded once."""
        team_low, team_high = sorted((winner_team_id, loser_team_id))
        with self.transaction():
            self.require_lane_team(guild_id, winner_team_id)
            self.require_lane_team(guild_id, loser_team_id)
            result = self.conn.execute(
                """
                INSERT INTO lane_results (guild_id, team_low, team_high, winner_team_id, loser_team_id, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(guild_id, team_low, team_high) DO NOTHING
                """,
                (guild_id, team_low, team_high, winner_team_id, loser_team_id, utc_now_iso()),
            )
            if result.rowcount == 0:
                raise LaneResultAlreadyRecorded(winner_team_id, loser_team_id)

    # Sign-ups

    def _row_to_signup(self, row: sqlite3.Row) -> SignupSession:
        return SignupSession(
            message_id=int(row["message_id"]),
            guild_id=int(row["guild_id"]),
            channel_id=int(row["channel_id"]),
            author_id=int(row["author_id"]),
            kind=row["kind"],
            created_at=row["created_at"],
            closed=bool(row["closed"]),
        )

    def create_signup(self, message_id: int, guild_id: int, channel_id: int, author_id: int, kind: str = "team") -> None:
        if kind not in VALID_SIGNUP_KINDS:
            raise ValueError(f"unknown signup kind: {kind}")
        with self.transaction():
            self.conn.execute(
                """
                INSERT INTO signups (message_id, guild_id, channel_id, author_id, kind, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (message_id, guild_id, channel_id, author_id, kind, utc_now_iso()),
            )

    def get_signup(self, message_id: int) -> SignupSession | None:
        row = self.conn.execute(
            """
            SELECT message_id, guild_id, channel_id, author_id, kind, closed, created_at
            FROM signups
            WHERE message_id = ?
            """,
            (message_id,),
        ).fetchone()
        if row is None:
            return None
        return self._row_to_signup(row)

    def latest_signup(self, guild_id: int, kind: str = "team") -> SignupSession | None:
        row = self.conn.execute(
            """
            SELECT message_id, guild_id, channel_id, author_id, kind, closed, created_at
            FROM signups
            WHERE guild_id = ?
              AND kind = ?
              AND closed = 0
            ORDER BY created_at DESC, rowid DESC
            LIMIT 1
            """,
            (guild_id, kind),
        ).fetchone()
        if row is None:
            return None
        return self._row_to_signup(row)

    def close_signup(self, message_id: int) -> bool:
        """Mark a sign-up closed; False when it was already closed or unknown."""
        with self.transaction():
            result = self.conn.execute(
                """
                UPDATE signups
                SET closed = 1
                WHERE message_id = ?
                  AND closed = 0
                """,
                (message_id,),
            )
        return result.rowcount > 0

    def add_participant(
        self,
        message_id: int,
        guild_id: int,
        player_id: PlayerId,
        display_name: str,
        role: str | None = None,
    ) -> bool:
        with self.transaction():
            existing = self.conn.execute(
                """
                SELECT role
                FROM signup_participants
                WHERE message_id = ?
                  AND player_key = ?
                """,
                (message_id, player_id.key),
            ).fetchone()
            if existing is not None and existing["role"] == role:
                return False
            self.conn.execute(
                """
                INSERT INTO signup_participants (message_id, guild_id, player_key, display_name, role, joined_at)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(message_id, player_key) DO UPDATE SET
                    display_name = excluded.display_name,
                    role = excluded.role
                """,
                (message_id, guild_id, player_id.key, display_name, role, utc_now_iso()),
            )
        return True

    def remove_participant(self, message_id: int, player_id: PlayerId) -> bool:
        with self.transaction():
            result = self.conn.execute(
                """
                DELETE FROM signup_participants
                WHERE message_id = ?
                  AND player_key = ?
                """,
                (message_id, player_id.key),
            )
        return result.rowcount > 0

    def list_participants(self, message_id: int) -> list[SignupParticipant]:
        rows = self.conn.execute(
            """
            SELECT player_key, display_name, role
            FROM signup_participants
            WHERE message_id = ?
            ORDER BY display_name COLLATE NOCASE ASC, player_key ASC
            """,
            (message_id,),
        ).fetchall()
        return [
            SignupParticipant(
                player_id=parse_player_id(row["player_key"]),
                display_name=row["display_name"],
                role=row["role"],
            )
            for row in rows
        ]

    def clear_participants(self, message_id: int) -> int:
        with self.transaction():
            result = self.conn.execute(
                """
                DELETE FROM signup_participants
                WHERE message_id = ?
                """,
                (message_id,),
            )
        return result.rowcount
