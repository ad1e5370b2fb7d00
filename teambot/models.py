from __future__ import annotations

from dataclasses import dataclass, field, replace

DEFAULT_POINTS = 300
PLACEHOLDER_STRENGTH = 300
SYNTHETIC_KEY_PREFIX = "name:"

LANE_ROLES = ("TOP", "JUNGLE", "MID", "ADC", "SUPPORT")
WINNER_SIDES = ("A", "B")


@dataclass(frozen=True, slots=True)
class RealId:
    """A participant backed by a Discord account."""

    user_id: int

    @property
    def key(self) -> str:
        return str(self.user_id)

    @property
    def fallback_name(self) -> str:
        return str(self.user_id)


@dataclass(frozen=True, slots=True)
class SyntheticId:
    """A name-only participant without a Discord account."""

    name: str

    @property
    def key(self) -> str:
        return f"{SYNTHETIC_KEY_PREFIX}{self.name}"

    @property
    def fallback_name(self) -> str:
        return self.name


PlayerId = RealId | SyntheticId


def parse_player_id(key: str) -> PlayerId:
    """Inverse of ``PlayerId.key``, used when reading ids back from storage."""
    if key.startswith(SYNTHETIC_KEY_PREFIX):
        return SyntheticId(name=key[len(SYNTHETIC_KEY_PREFIX):])
    return RealId(user_id=int(key))


@dataclass(frozen=True, slots=True)
class Player:
    id: PlayerId
    display_name: str
    points: int = DEFAULT_POINTS


@dataclass(slots=True)
class RatingRecord:
    player_id: PlayerId
    display_name: str
    points: int = DEFAULT_POINTS
    wins: int = 0
    losses: int = 0
    win_streak: int = 0
    loss_streak: int = 0

    @property
    def games_played(self) -> int:
        return self.wins + self.losses

    @property
    def win_rate(self) -> float:
        if self.games_played == 0:
            return 0.0
        return self.wins / self.games_played


@dataclass(frozen=True, slots=True)
class PointsPolicy:
    win_base: int = 3
    loss_base: int = -2
    win_streak_cap: int = 3
    # None means "same as win_streak_cap".
    loss_streak_cap: int | None = None
    streak_multiplier: int = 1
    lane_win_base: int = 6
    lane_loss_base: int = -4
    lane_streak_multiplier: int = 2

    @property
    def effective_loss_streak_cap(self) -> int:
        if self.loss_streak_cap is None:
            return self.win_streak_cap
        return self.loss_streak_cap

    def for_lanes(self) -> PointsPolicy:
        """The same caps with the lane-result base points and multiplier."""
        return replace(
            self,
            win_base=self.lane_win_base,
            loss_base=self.lane_loss_base,
            streak_multiplier=self.lane_streak_multiplier,
        )


@dataclass(slots=True)
class MatchRecord:
    id: int
    guild_id: int
    team_a: list[PlayerId]
    team_b: list[PlayerId]
    winner: str | None
    created_at: str
    kind: str = "balanced"

    @property
    def is_resolved(self) -> bool:
        return self.winner is not None

    def roster(self, side: str) -> list[PlayerId]:
        return self.team_a if side == "A" else self.team_b


@dataclass(slots=True)
class BalancedSplit:
    team_a: list[Player]
    team_b: list[Player]
    sum_a: int
    sum_b: int
    diff: int
    signature: str | None


@dataclass(slots=True)
class RandomSplit:
    team_a: list[Player]
    team_b: list[Player]


@dataclass(frozen=True, slots=True)
class LaneParticipant:
    player_id: PlayerId
    display_name: str
    role: str
    points: int = DEFAULT_POINTS


@dataclass(frozen=True, slots=True)
class LaneMember:
    role: str
    points: int
    player_id: PlayerId | None = None
    display_name: str = ""

    @property
    def is_placeholder(self) -> bool:
        return self.player_id is None


@dataclass(slots=True)
class LaneTeam:
    team_id: int
    members: list[LaneMember] = field(default_factory=list)
    total_strength: int = 0

    def add(self, member: LaneMember) -> None:
        self.members.append(member)
        self.total_strength += member.points

    @property
    def real_members(self) -> list[LaneMember]:
        return [member for member in self.members if not member.is_placeholder]

    def member_for(self, role: str) -> LaneMember | None:
        for member in self.members:
            if member.role == role:
                return member
        return None

    def replace_member(self, member: LaneMember) -> LaneMember:
        """Put ``member`` in its role slot and return the member it displaced."""
        for index, current in enumerate(self.members):
            if current.role == member.role:
                self.members[index] = member
                self.total_strength += member.points - current.points
                return current
        raise KeyError(member.role)


@dataclass(slots=True)
class LaneHistoryEntry:
    player_id: PlayerId
    display_name: str
    role: str
    points_then: int
    points_now: int


@dataclass(slots=True)
class RatingDelta:
    player_id: PlayerId
    display_name: str
    before: int
    base: int
    bonus: int
    delta: int
    after: int


@dataclass(slots=True)
class MatchResult:
    match_id: int
    winner_side: str
    winner_deltas: list[RatingDelta]
    loser_deltas: list[RatingDelta]


@dataclass(slots=True)
class SignupSession:
    message_id: int
    guild_id: int
    channel_id: int
    author_id: int
    kind: str  # "team" | "lane"
    created_at: str
    closed: bool = False


@dataclass(slots=True)
class SignupParticipant:
    player_id: PlayerId
    display_name: str
    role: str | None = None


@dataclass(slots=True)
class GuildStats:
    players: int
    matches: int
    resolved_matches: int
    lane_teams: int
