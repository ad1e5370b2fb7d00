from __future__ import annotations


class TeamBotError(Exception):
    """Base class for errors the bot layer turns into user-facing replies."""


class InsufficientParticipants(TeamBotError, ValueError):
    def __init__(self, count: int, required: int = 2) -> None:
        super().__init__(f"need at least {required} participants, got {count}")
        self.count = count
        self.required = required


class TooManyParticipants(TeamBotError, ValueError):
    def __init__(self, count: int, limit: int) -> None:
        super().__init__(f"balanced split supports at most {limit} participants, got {count}")
        self.count = count
        self.limit = limit


class MatchNotFound(TeamBotError, LookupError):
    def __init__(self, guild_id: int, match_id: int | None) -> None:
        target = "latest match" if match_id is None else f"match {match_id}"
        super().__init__(f"{target} not found in guild {guild_id}")
        self.guild_id = guild_id
        self.match_id = match_id


class LaneTeamNotFound(TeamBotError, LookupError):
    def __init__(self, guild_id: int, team_id: int) -> None:
        super().__init__(f"lane team {team_id} not found in guild {guild_id}")
        self.guild_id = guild_id
        self.team_id = team_id


class MatchAlreadyResolved(TeamBotError):
    def __init__(self, match_id: int, winner: str) -> None:
        super().__init__(f"match {match_id} already resolved (winner {winner})")
        self.match_id = match_id
        self.winner = winner


class LaneResultAlreadyRecorded(TeamBotError):
    def __init__(self, winner_team_id: int, loser_team_id: int) -> None:
        super().__init__(f"lane teams {winner_team_id} and {loser_team_id} already have a recorded result")
        self.winner_team_id = winner_team_id
        self.loser_team_id = loser_team_id


class InvalidWinnerSide(TeamBotError, ValueError):
    def __init__(self, side: object) -> None:
        super().__init__(f"winner side must be 'A' or 'B', got {side!r}")
        self.side = side


class InvalidLaneResult(TeamBotError, ValueError):
    pass


class InvalidLaneRole(TeamBotError, ValueError):
    def __init__(self, role: object) -> None:
        super().__init__(f"unknown lane role {role!r}")
        self.role = role


class InvalidPointsPolicy(TeamBotError, ValueError):
    pass


class SignupNotFound(TeamBotError, LookupError):
    pass
