from __future__ import annotations

from collections.abc import Sequence
import logging
import random

from .errors import InsufficientParticipants, MatchNotFound, SignupNotFound
from .lanes import assign_lane_teams, normalize_lane_role
from .matchmaking import DEFAULT_MAX_BALANCED_PLAYERS, split_balanced, split_random
from .models import (
    BalancedSplit,
    LaneHistoryEntry,
    LaneParticipant,
    LaneTeam,
    MatchResult,
    Player,
    PointsPolicy,
    RandomSplit,
    SignupParticipant,
    SignupSession,
    SyntheticId,
)
from .rating import apply_lane_result, apply_match_result
from .storage import Database

logger = logging.getLogger(__name__)


class TeamService:
    """Glue between sign-ups, the splitters and the rating engine.

    Everything here is synchronous; the bot layer serialises calls per guild.
    """

    def __init__(
        self,
        db: Database,
        *,
        max_balanced_participants: int = DEFAULT_MAX_BALANCED_PLAYERS,
        rng: random.Random | None = None,
    ) -> None:
        self.db = db
        self.max_balanced_participants = max_balanced_participants
        self.rng = rng or random.Random()

    # Sign-ups

    def require_signup(self, guild_id: int, kind: str = "team") -> SignupSession:
        signup = self.db.latest_signup(guild_id, kind)
        if signup is None:
            raise SignupNotFound(f"no open {kind} sign-up in this server")
        return signup

    def add_synthetic_participant(self, signup: SignupSession, name: str, points: int | None = None) -> SyntheticId:
        """Add a name-only participant, suffixing ``#2``, ``#3``... on collisions."""
        base = name.strip()
        if not base:
            raise ValueError("name must not be empty")

        taken = {participant.player_id.key for participant in self.db.list_participants(signup.message_id)}
        candidate = SyntheticId(base)
        suffix = 2
        while candidate.key in taken:
            candidate = SyntheticId(f"{base}#{suffix}")
            suffix += 1

        with self.db.transaction():
            if points is not None:
                self.db.set_points(signup.guild_id, candidate, candidate.name, points)
            else:
                self.db.ensure_player(signup.guild_id, candidate, candidate.name)
            self.db.add_participant(signup.message_id, signup.guild_id, candidate, candidate.name)
        return candidate

    def players_for(self, guild_id: int, participants: Sequence[SignupParticipant]) -> list[Player]:
        players: list[Player] = []
        for participant in participants:
            self.db.ensure_player(guild_id, participant.player_id, participant.display_name)
            players.append(
                Player(
                    id=participant.player_id,
                    display_name=participant.display_name,
                    points=self.db.get_points(guild_id, participant.player_id),
                )
            )
        return players

    # Matches

    def make_balanced_match(
        self,
        guild_id: int,
        participants: Sequence[SignupParticipant],
        message_id: int | None = None,
    ) -> tuple[int, BalancedSplit]:
        if len(participants) < 2:
            raise InsufficientParticipants(len(participants))

        with self.db.transaction():
            players = self.players_for(guild_id, participants)
            recent = self.db.get_recent_team_signatures(guild_id)
            split = split_balanced(
                players,
                last_signature=recent[0] if recent else None,
                recent_signatures=recent,
                rng=self.rng,
                max_players=self.max_balanced_participants,
            )
            match_id = self.db.record_match(
                guild_id,
                [player.id for player in split.team_a],
                [player.id for player in split.team_b],
                kind="balanced",
                message_id=message_id,
            )
            if split.signature is not None:
                self.db.append_team_signature(guild_id, split.signature)

        logger.info(
            "Created balanced match %s in guild %s (%s vs %s points, diff %s)",
            match_id,
            guild_id,
            split.sum_a,
            split.sum_b,
            split.diff,
        )
        return match_id, split

    def make_random_match(
        self,
        guild_id: int,
        participants: Sequence[SignupParticipant],
        message_id: int | None = None,
    ) -> tuple[int, RandomSplit]:
        if len(participants) < 2:
            raise InsufficientParticipants(len(participants))

        with self.db.transaction():
            players = self.players_for(guild_id, participants)
            split = split_random(players, rng=self.rng)
            match_id = self.db.record_match(
                guild_id,
                [player.id for player in split.team_a],
                [player.id for player in split.team_b],
                kind="random",
                message_id=message_id,
            )

        logger.info("Created random match %s in guild %s", match_id, guild_id)
        return match_id, split

    def register_result(self, guild_id: int, winner_side: str, match_id: int | None = None) -> MatchResult:
        match = self.db.get_match(guild_id, match_id)
        if match is None:
            raise MatchNotFound(guild_id, match_id)
        policy = self.db.get_points_policy(guild_id)
        return apply_match_result(self.db, guild_id, match, winner_side.strip().upper(), policy)

    # Lane teams

    def lane_participants(self, guild_id: int, participants: Sequence[SignupParticipant]) -> list[LaneParticipant]:
        lane_participants: list[LaneParticipant] = []
        for participant in participants:
            if participant.role is None:
                continue
            lane_participants.append(
                LaneParticipant(
                    player_id=participant.player_id,
                    display_name=participant.display_name,
                    role=normalize_lane_role(participant.role),
                    points=self.db.get_points(guild_id, participant.player_id),
                )
            )
        return lane_participants

    def build_lane_teams(self, guild_id: int, participants: Sequence[SignupParticipant]) -> list[LaneTeam]:
        with self.db.transaction():
            for participant in participants:
                self.db.ensure_player(guild_id, participant.player_id, participant.display_name)
            teams = assign_lane_teams(
                self.lane_participants(guild_id, participants),
                lambda: self.db.next_lane_team_id(guild_id),
            )
            for team in teams:
                self.db.save_lane_team(guild_id, team)

        if teams:
            logger.info(
                "Built %s lane teams in guild %s (ids %s-%s)",
                len(teams),
                guild_id,
                teams[0].team_id,
                teams[-1].team_id,
            )
        return teams

    def register_lane_result(self, guild_id: int, win_team_id: int, lose_team_id: int) -> MatchResult:
        policy = self.db.get_points_policy(guild_id)
        return apply_lane_result(self.db, guild_id, win_team_id, lose_team_id, policy)

    def lane_history(self, guild_id: int, count: int = 5) -> list[tuple[int, tuple[int, int], list[LaneHistoryEntry]]]:
        """Recent lane teams, newest first, with their (wins, losses) and member points then and now."""
        history: list[tuple[int, tuple[int, int], list[LaneHistoryEntry]]] = []
        for team_id in self.db.list_recent_lane_team_ids(guild_id, count):
            entries = [
                LaneHistoryEntry(
                    player_id=member.player_id,
                    display_name=member.display_name,
                    role=member.role,
                    points_then=member.points,
                    points_now=self.db.get_points(guild_id, member.player_id),
                )
                for member in self.db.get_lane_team_members(guild_id, team_id)
                if member.player_id is not None
            ]
            history.append((team_id, self.db.get_lane_team_record(guild_id, team_id), entries))
        return history

    # Policy

    def update_policy(self, guild_id: int, **changes: int | None) -> PointsPolicy:
        policy = self.db.set_points_policy(guild_id, **changes)
        logger.info("Updated points policy for guild %s: %s", guild_id, policy)
        return policy

