from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence

import discord
from discord import app_commands
from discord.ext import commands

from .config import Settings, load_settings
from .errors import (
    InsufficientParticipants,
    InvalidLaneResult,
    InvalidPointsPolicy,
    LaneResultAlreadyRecorded,
    LaneTeamNotFound,
    MatchAlreadyResolved,
    MatchNotFound,
    SignupNotFound,
    TeamBotError,
    TooManyParticipants,
)
from .models import (
    LaneTeam,
    MatchResult,
    Player,
    PlayerId,
    RatingDelta,
    RealId,
    SignupParticipant,
    SyntheticId,
)
from .service import TeamService
from .storage import Database

logger = logging.getLogger("teambot")

JOIN_EMOJI = "✋"
BALANCED_EMOJI = "✅"
RANDOM_EMOJI = "🎲"
BUILD_LANES_EMOJI = "✅"
LANE_EMOJIS = {
    "⚔️": "TOP",
    "🌲": "JUNGLE",
    "🪄": "MID",
    "🏹": "ADC",
    "❤️": "SUPPORT",
}

WINNER_CHOICES = [
    app_commands.Choice(name="Team A", value="A"),
    app_commands.Choice(name="Team B", value="B"),
]


def _emoji_key(emoji: str) -> str:
    # Clients differ on whether they send the variation selector.
    return emoji.replace("\ufe0f", "")


LANE_ROLE_BY_EMOJI = {_emoji_key(emoji): role for emoji, role in LANE_EMOJIS.items()}


def _format_player_id(player_id: PlayerId, display_name: str = "") -> str:
    match player_id:
        case RealId(user_id=user_id):
            return f"<@{user_id}>"
        case SyntheticId(name=name):
            return display_name or name
    return display_name


def _format_players(players: Sequence[Player]) -> str:
    if not players:
        return "None"
    return "\n".join(f"{_format_player_id(player.id, player.display_name)} | `{player.points}`" for player in players)


def _format_participants(participants: Sequence[SignupParticipant], limit: int = 40) -> str:
    if not participants:
        return "No participants yet."
    selected = participants[:limit]
    lines = []
    for participant in selected:
        role = f" | `{participant.role}`" if participant.role else ""
        lines.append(f"{_format_player_id(participant.player_id, participant.display_name)}{role}")
    remaining = len(participants) - len(selected)
    if remaining > 0:
        lines.append(f"+{remaining} more")
    return "\n".join(lines)


def _format_lane_team(team: LaneTeam) -> str:
    lines = []
    for member in team.members:
        if member.player_id is None:
            lines.append(f"`{member.role}` | (empty slot, `{member.points}`)")
        else:
            lines.append(f"`{member.role}` | {_format_player_id(member.player_id, member.display_name)} | `{member.points}`")
    lines.append(f"Total strength: `{team.total_strength}`")
    return "\n".join(lines)


def _format_delta(delta: RatingDelta) -> str:
    sign = "+" if delta.delta >= 0 else ""
    bonus = f" (streak {delta.bonus:+d})" if delta.bonus else ""
    return f"{_format_player_id(delta.player_id, delta.display_name)}: `{delta.before}` → `{delta.after}` ({sign}{delta.delta}{bonus})"


def _format_result(title: str, result: MatchResult) -> str:
    winners = "\n".join(_format_delta(delta) for delta in result.winner_deltas) or "None"
    losers = "\n".join(_format_delta(delta) for delta in result.loser_deltas) or "None"
    return f"**{title}**\n\n**Winners**\n{winners}\n\n**Losers**\n{losers}"


def _error_message(error: TeamBotError) -> str:
    if isinstance(error, InsufficientParticipants):
        return f"At least {error.required} participants are needed (currently {error.count})."
    if isinstance(error, TooManyParticipants):
        return f"Balanced split supports up to {error.limit} participants (currently {error.count}). Use `/team_simple`."
    if isinstance(error, LaneTeamNotFound):
        return f"Lane team `{error.team_id}` does not exist."
    if isinstance(error, MatchNotFound):
        if error.match_id is None:
            return "No match has been created yet."
        return f"Match `{error.match_id}` does not exist."
    if isinstance(error, LaneResultAlreadyRecorded):
        return f"Result between teams `{error.winner_team_id}` and `{error.loser_team_id}` was already registered."
    if isinstance(error, MatchAlreadyResolved):
        return f"Result for `{error.match_id}` was already registered."
    if isinstance(error, SignupNotFound):
        return "There is no open sign-up. Start one with `/start_signup`."
    if isinstance(error, (InvalidLaneResult, InvalidPointsPolicy)):
        return f"Invalid input: {error}."
    return str(error)


def _is_admin(interaction: discord.Interaction) -> bool:
    member = interaction.user if isinstance(interaction.user, discord.Member) else None
    return bool(member and member.guild_permissions.manage_guild)


def _guild_id(interaction: discord.Interaction) -> int:
    if interaction.guild_id is None:
        raise app_commands.NoPrivateMessage()
    return interaction.guild_id


async def _reply(interaction: discord.Interaction, content: str, *, ephemeral: bool = False) -> None:
    if interaction.response.is_done():
        await interaction.followup.send(content, ephemeral=ephemeral)
    else:
        await interaction.response.send_message(content, ephemeral=ephemeral)


class TeamBot(commands.Bot):
    def __init__(self, settings: Settings) -> None:
        intents = discord.Intents.default()
        super().__init__(command_prefix="!", intents=intents)

        self.settings = settings
        self.db = Database(
            path=settings.database_path,
            default_points=settings.default_points,
            history_size=settings.team_history_size,
        )
        self.service = TeamService(self.db, max_balanced_participants=settings.max_balanced_participants)
        self._guild_locks: dict[int, asyncio.Lock] = {}

    def guild_lock(self, guild_id: int) -> asyncio.Lock:
        lock = self._guild_locks.get(guild_id)
        if lock is None:
            lock = asyncio.Lock()
            self._guild_locks[guild_id] = lock
        return lock

    async def setup_hook(self) -> None:
        register_commands(self)
        if self.settings.command_guild_id:
            guild = discord.Object(id=self.settings.command_guild_id)
            self.tree.copy_global_to(guild=guild)
            await self.tree.sync(guild=guild)
            logger.info("Synced commands to guild %s", self.settings.command_guild_id)
        else:
            await self.tree.sync()
            logger.info("Synced global commands")

    async def on_ready(self) -> None:
        if self.user:
            logger.info("Connected as %s (%s)", self.user.name, self.user.id)

    async def resolve_channel(self, channel_id: int) -> discord.abc.Messageable | None:
        channel = self.get_channel(channel_id)
        if channel is None:
            try:
                channel = await self.fetch_channel(channel_id)
            except discord.DiscordException:
                logger.warning("Unable to fetch channel %s", channel_id)
                return None
        if isinstance(channel, discord.abc.Messageable):
            return channel
        logger.warning("Channel %s cannot receive messages", channel_id)
        return None

    def _display_name(self, payload: discord.RawReactionActionEvent) -> str:
        if payload.member is not None:
            return payload.member.display_name
        guild = self.get_guild(payload.guild_id) if payload.guild_id else None
        member = guild.get_member(payload.user_id) if guild else None
        return member.display_name if member else str(payload.user_id)

    async def on_raw_reaction_add(self, payload: discord.RawReactionActionEvent) -> None:
        if payload.guild_id is None or (self.user and payload.user_id == self.user.id):
            return
        if payload.member is not None and payload.member.bot:
            return
        signup = self.db.get_signup(payload.message_id)
        if signup is None or signup.closed:
            return

        emoji = _emoji_key(str(payload.emoji))
        player_id = RealId(payload.user_id)

        try:
            async with self.guild_lock(payload.guild_id):
                current = self.db.get_signup(signup.message_id)
                if current is None or current.closed:
                    return
                if signup.kind == "team":
                    if emoji == _emoji_key(JOIN_EMOJI):
                        self.db.add_participant(signup.message_id, signup.guild_id, player_id, self._display_name(payload))
                        return
                    if emoji == _emoji_key(BALANCED_EMOJI):
                        participants = self.db.list_participants(signup.message_id)
                        match_id, split = self.service.make_balanced_match(
                            signup.guild_id, participants, message_id=signup.message_id
                        )
                        content = compose_split_message(match_id, split.team_a, split.team_b, diff=split.diff)
                    elif emoji == _emoji_key(RANDOM_EMOJI):
                        participants = self.db.list_participants(signup.message_id)
                        match_id, split = self.service.make_random_match(
                            signup.guild_id, participants, message_id=signup.message_id
                        )
                        content = compose_split_message(match_id, split.team_a, split.team_b)
                    else:
                        return
                else:
                    role = LANE_ROLE_BY_EMOJI.get(emoji)
                    if role is not None:
                        self.db.add_participant(
                            signup.message_id, signup.guild_id, player_id, self._display_name(payload), role=role
                        )
                        return
                    if emoji != _emoji_key(BUILD_LANES_EMOJI):
                        return
                    participants = self.db.list_participants(signup.message_id)
                    teams = self.service.build_lane_teams(signup.guild_id, participants)
                    if not teams:
                        content = "No lane participants yet."
                    else:
                        self.db.close_signup(signup.message_id)
                        content = compose_lane_message(teams)
        except TeamBotError as exc:
            content = _error_message(exc)

        channel = await self.resolve_channel(payload.channel_id)
        if channel is not None:
            await channel.send(content)

    async def on_raw_reaction_remove(self, payload: discord.RawReactionActionEvent) -> None:
        if payload.guild_id is None:
            return
        signup = self.db.get_signup(payload.message_id)
        if signup is None or signup.closed:
            return

        emoji = _emoji_key(str(payload.emoji))
        player_id = RealId(payload.user_id)
        async with self.guild_lock(payload.guild_id):
            if signup.kind == "team" and emoji == _emoji_key(JOIN_EMOJI):
                self.db.remove_participant(signup.message_id, player_id)
                return
            role = LANE_ROLE_BY_EMOJI.get(emoji)
            if signup.kind == "lane" and role is not None:
                current = {p.player_id: p.role for p in self.db.list_participants(signup.message_id)}
                if current.get(player_id) == role:
                    self.db.remove_participant(signup.message_id, player_id)

    async def close(self) -> None:
        self.db.close()
        await super().close()


def compose_split_message(
    match_id: int,
    team_a: Sequence[Player],
    team_b: Sequence[Player],
    *,
    diff: int | None = None,
) -> str:
    sum_a = sum(player.points for player in team_a)
    sum_b = sum(player.points for player in team_b)
    header = f"**Match #{match_id} created**"
    if diff is not None:
        header = f"{header} (difference `{diff}`)"
    return (
        f"{header}\n\n"
        f"**Team A** (`{sum_a}`)\n{_format_players(team_a)}\n\n"
        f"**Team B** (`{sum_b}`)\n{_format_players(team_b)}\n\n"
        f"Register the winner with `/result`."
    )


def compose_lane_message(teams: Sequence[LaneTeam]) -> str:
    blocks = [f"**Team {team.team_id}**\n{_format_lane_team(team)}" for team in teams]
    return "\n\n".join(blocks) + "\n\nRegister a result with `/result_team`."


def register_commands(bot: TeamBot) -> None:
    @bot.tree.error
    async def on_app_command_error(interaction: discord.Interaction, error: app_commands.AppCommandError) -> None:
        cause = error.original if isinstance(error, app_commands.CommandInvokeError) else error
        if isinstance(cause, TeamBotError):
            await _reply(interaction, _error_message(cause), ephemeral=True)
            return
        if isinstance(cause, app_commands.NoPrivateMessage):
            await _reply(interaction, "This command only works inside a server.", ephemeral=True)
            return
        logger.exception("Command %s failed", interaction.command.name if interaction.command else "?", exc_info=cause)
        await _reply(interaction, "Something went wrong while running this command.", ephemeral=True)

    async def _deny_non_admin(interaction: discord.Interaction) -> bool:
        if _is_admin(interaction):
            return False
        await interaction.response.send_message("You do not have permission to run this command.", ephemeral=True)
        return True

    async def _start_signup(interaction: discord.Interaction, kind: str) -> None:
        guild_id = _guild_id(interaction)
        if kind == "team":
            emojis = [JOIN_EMOJI, BALANCED_EMOJI, RANDOM_EMOJI]
            content = (
                f"**Sign-up open!** React {JOIN_EMOJI} to join.\n"
                f"{BALANCED_EMOJI} balanced teams | {RANDOM_EMOJI} random teams"
            )
        else:
            emojis = [*LANE_EMOJIS, BUILD_LANES_EMOJI]
            roles = " | ".join(f"{emoji} {role}" for emoji, role in LANE_EMOJIS.items())
            content = f"**Lane sign-up open!** Pick your lane:\n{roles}\n{BUILD_LANES_EMOJI} build teams"

        await interaction.response.send_message(content)
        message = await interaction.original_response()
        async with bot.guild_lock(guild_id):
            bot.db.create_signup(message.id, guild_id, message.channel.id, interaction.user.id, kind)
        for emoji in emojis:
            await message.add_reaction(emoji)
        logger.info("Opened %s sign-up %s in guild %s", kind, message.id, guild_id)

    @bot.tree.command(name="start_signup", description="Open a team sign-up message.")
    async def start_signup(interaction: discord.Interaction) -> None:
        await _start_signup(interaction, "team")

    @bot.tree.command(name="start_lane_signup", description="Open a lane sign-up message.")
    async def start_lane_signup(interaction: discord.Interaction) -> None:
        await _start_signup(interaction, "lane")

    @bot.tree.command(name="show_participants", description="Show who joined the current sign-up.")
    async def show_participants(interaction: discord.Interaction) -> None:
        signup = bot.service.require_signup(_guild_id(interaction))
        participants = bot.db.list_participants(signup.message_id)
        embed = discord.Embed(
            title=f"Participants ({len(participants)})",
            description=_format_participants(participants),
            color=discord.Color.blue(),
        )
        await interaction.response.send_message(embed=embed, allowed_mentions=discord.AllowedMentions.none())

    @bot.tree.command(name="reset_participants", description="Remove everyone from the current sign-up.")
    @app_commands.default_permissions(manage_guild=True)
    async def reset_participants(interaction: discord.Interaction) -> None:
        if await _deny_non_admin(interaction):
            return
        guild_id = _guild_id(interaction)
        async with bot.guild_lock(guild_id):
            signup = bot.service.require_signup(guild_id)
            removed = bot.db.clear_participants(signup.message_id)
        await interaction.response.send_message(f"Sign-up cleared. Removed `{removed}` participants.")

    @bot.tree.command(name="leave", description="Leave the current sign-up.")
    async def leave(interaction: discord.Interaction) -> None:
        guild_id = _guild_id(interaction)
        async with bot.guild_lock(guild_id):
            signup = bot.service.require_signup(guild_id)
            left = bot.db.remove_participant(signup.message_id, RealId(interaction.user.id))
        if left:
            await interaction.response.send_message("You left the sign-up.", ephemeral=True)
        else:
            await interaction.response.send_message("You are not signed up.", ephemeral=True)

    @bot.tree.command(name="kick", description="Remove a member or a name-only participant from the sign-up.")
    @app_commands.default_permissions(manage_guild=True)
    @app_commands.describe(member="Member to remove", name="Name-only participant to remove")
    async def kick(
        interaction: discord.Interaction,
        member: discord.Member | None = None,
        name: str | None = None,
    ) -> None:
        if await _deny_non_admin(interaction):
            return
        if member is None and not name:
            await interaction.response.send_message("Pass either a member or a name.", ephemeral=True)
            return
        guild_id = _guild_id(interaction)
        player_id: PlayerId = RealId(member.id) if member is not None else SyntheticId(name.strip())
        async with bot.guild_lock(guild_id):
            signup = bot.service.require_signup(guild_id)
            removed = bot.db.remove_participant(signup.message_id, player_id)
        label = _format_player_id(player_id)
        if removed:
            await interaction.response.send_message(f"Removed {label} from the sign-up.")
        else:
            await interaction.response.send_message(f"{label} is not signed up.", ephemeral=True)

    @bot.tree.command(name="join_name", description="Add a participant without a Discord account.")
    @app_commands.describe(name="Display name", points="Starting points (optional)")
    async def join_name(interaction: discord.Interaction, name: str, points: int | None = None) -> None:
        guild_id = _guild_id(interaction)
        if not name.strip():
            await interaction.response.send_message("Name cannot be empty.", ephemeral=True)
            return
        async with bot.guild_lock(guild_id):
            signup = bot.service.require_signup(guild_id)
            player_id = bot.service.add_synthetic_participant(signup, name, points)
            current_points = bot.db.get_points(guild_id, player_id)
        await interaction.response.send_message(f"Added **{player_id.name}** (`{current_points}` points).")

    @bot.tree.command(name="team", description="Split the current sign-up into two balanced teams.")
    async def team(interaction: discord.Interaction) -> None:
        guild_id = _guild_id(interaction)
        async with bot.guild_lock(guild_id):
            signup = bot.service.require_signup(guild_id)
            participants = bot.db.list_participants(signup.message_id)
            match_id, split = bot.service.make_balanced_match(guild_id, participants, message_id=signup.message_id)
        await interaction.response.send_message(
            compose_split_message(match_id, split.team_a, split.team_b, diff=split.diff)
        )

    @bot.tree.command(name="team_simple", description="Split the current sign-up into two random teams.")
    async def team_simple(interaction: discord.Interaction) -> None:
        guild_id = _guild_id(interaction)
        async with bot.guild_lock(guild_id):
            signup = bot.service.require_signup(guild_id)
            participants = bot.db.list_participants(signup.message_id)
            match_id, split = bot.service.make_random_match(guild_id, participants, message_id=signup.message_id)
        await interaction.response.send_message(compose_split_message(match_id, split.team_a, split.team_b))

    async def _register_result(interaction: discord.Interaction, winner: str, match_id: int | None) -> None:
        guild_id = _guild_id(interaction)
        async with bot.guild_lock(guild_id):
            result = bot.service.register_result(guild_id, winner, match_id)
        await interaction.response.send_message(
            _format_result(f"Match #{result.match_id}: Team {result.winner_side} wins", result)
        )

    @bot.tree.command(name="result", description="Register the winner of a match.")
    @app_commands.describe(winner="Winning team", match_id="Match id (latest when omitted)")
    @app_commands.choices(winner=WINNER_CHOICES)
    async def result(
        interaction: discord.Interaction,
        winner: app_commands.Choice[str],
        match_id: int | None = None,
    ) -> None:
        await _register_result(interaction, winner.value, match_id)

    @bot.tree.command(name="win", description="Shortcut for /result.")
    @app_commands.describe(team="Winning team", match_id="Match id (latest when omitted)")
    @app_commands.choices(team=WINNER_CHOICES)
    async def win(
        interaction: discord.Interaction,
        team: app_commands.Choice[str],
        match_id: int | None = None,
    ) -> None:
        await _register_result(interaction, team.value, match_id)

    @bot.tree.command(name="result_team", description="Register the result between two lane teams.")
    @app_commands.describe(winteam="Winning lane team id", loseteam="Losing lane team id")
    async def result_team(interaction: discord.Interaction, winteam: int, loseteam: int) -> None:
        guild_id = _guild_id(interaction)
        async with bot.guild_lock(guild_id):
            result = bot.service.register_lane_result(guild_id, winteam, loseteam)
        await interaction.response.send_message(_format_result(f"Team {winteam} beat Team {loseteam}", result))

    @bot.tree.command(name="show_lane_history", description="Show recent lane teams.")
    @app_commands.describe(count="Number of teams to show")
    async def show_lane_history(interaction: discord.Interaction, count: app_commands.Range[int, 1, 10] = 5) -> None:
        history = bot.service.lane_history(_guild_id(interaction), count)
        if not history:
            await interaction.response.send_message("No lane teams yet.", ephemeral=True)
            return
        embed = discord.Embed(title="Lane team history", color=discord.Color.blue())
        for team_id, (wins, losses), entries in history:
            lines = [
                f"`{entry.role}` | {_format_player_id(entry.player_id, entry.display_name)} | "
                f"`{entry.points_then}` → `{entry.points_now}`"
                for entry in entries
            ]
            status = f"{wins}W {losses}L" if wins or losses else "pending"
            embed.add_field(name=f"Team {team_id} ({status})", value="\n".join(lines) or "None", inline=False)
        await interaction.response.send_message(embed=embed, allowed_mentions=discord.AllowedMentions.none())

    @bot.tree.command(name="set_strength", description="Set a member's points.")
    @app_commands.default_permissions(manage_guild=True)
    @app_commands.describe(member="Member", points="New points value")
    async def set_strength(interaction: discord.Interaction, member: discord.Member, points: int) -> None:
        if await _deny_non_admin(interaction):
            return
        guild_id = _guild_id(interaction)
        async with bot.guild_lock(guild_id):
            bot.db.set_points(guild_id, RealId(member.id), member.display_name, points)
        await interaction.response.send_message(f"{member.mention} now has `{points}` points.")

    @bot.tree.command(name="record", description="Overwrite a member's win/loss record.")
    @app_commands.default_permissions(manage_guild=True)
    @app_commands.describe(member="Member", wins="Wins", losses="Losses")
    async def record(
        interaction: discord.Interaction,
        member: discord.Member,
        wins: app_commands.Range[int, 0],
        losses: app_commands.Range[int, 0],
    ) -> None:
        if await _deny_non_admin(interaction):
            return
        guild_id = _guild_id(interaction)
        async with bot.guild_lock(guild_id):
            bot.db.set_record(guild_id, RealId(member.id), member.display_name, wins, losses)
        await interaction.response.send_message(f"{member.mention} record set to `{wins}W {losses}L`.")

    @bot.tree.command(name="delete_user", description="Delete a member's rating data.")
    @app_commands.default_permissions(manage_guild=True)
    @app_commands.describe(member="Member")
    async def delete_user(interaction: discord.Interaction, member: discord.Member) -> None:
        if await _deny_non_admin(interaction):
            return
        guild_id = _guild_id(interaction)
        async with bot.guild_lock(guild_id):
            deleted = bot.db.delete_player(guild_id, RealId(member.id))
        if deleted:
            await interaction.response.send_message(f"Deleted rating data for {member.mention}.")
        else:
            await interaction.response.send_message(f"{member.mention} has no rating data.", ephemeral=True)

    @bot.tree.command(name="set_points", description="Update the points schedule for this server.")
    @app_commands.default_permissions(manage_guild=True)
    @app_commands.describe(
        win="Base points for a win",
        loss="Base points for a loss (usually negative)",
        streak_cap="Maximum streak counted for the win bonus",
        loss_streak_cap="Maximum streak counted for the loss penalty",
        lane_win="Base points for a lane win",
        lane_loss="Base points for a lane loss",
    )
    async def set_points(
        interaction: discord.Interaction,
        win: int | None = None,
        loss: int | None = None,
        streak_cap: int | None = None,
        loss_streak_cap: int | None = None,
        lane_win: int | None = None,
        lane_loss: int | None = None,
    ) -> None:
        if await _deny_non_admin(interaction):
            return
        guild_id = _guild_id(interaction)
        async with bot.guild_lock(guild_id):
            policy = bot.service.update_policy(
                guild_id,
                win_base=win,
                loss_base=loss,
                win_streak_cap=streak_cap,
                loss_streak_cap=loss_streak_cap,
                lane_win_base=lane_win,
                lane_loss_base=lane_loss,
            )
        await interaction.response.send_message(
            (
                f"Points updated: win `{policy.win_base:+d}`, loss `{policy.loss_base:+d}`, "
                f"streak cap `{policy.win_streak_cap}`, loss streak cap `{policy.effective_loss_streak_cap}`, "
                f"lane win `{policy.lane_win_base:+d}`, lane loss `{policy.lane_loss_base:+d}`."
            )
        )

    @bot.tree.command(name="show_points", description="Show the points schedule for this server.")
    async def show_points(interaction: discord.Interaction) -> None:
        policy = bot.db.get_points_policy(_guild_id(interaction))
        embed = discord.Embed(title="Points schedule", color=discord.Color.blue())
        embed.add_field(name="Win", value=f"`{policy.win_base:+d}` +{policy.streak_multiplier} per streak step")
        embed.add_field(name="Loss", value=f"`{policy.loss_base:+d}` -{policy.streak_multiplier} per streak step")
        embed.add_field(
            name="Streak caps",
            value=f"win `{policy.win_streak_cap}`, loss `{policy.effective_loss_streak_cap}`",
        )
        embed.add_field(
            name="Lane games",
            value=(
                f"win `{policy.lane_win_base:+d}`, loss `{policy.lane_loss_base:+d}`, "
                f"{policy.lane_streak_multiplier} per streak step"
            ),
            inline=False,
        )
        await interaction.response.send_message(embed=embed)

    @bot.tree.command(name="rank", description="Show the server leaderboard.")
    async def rank(interaction: discord.Interaction) -> None:
        records = bot.db.top_ranks(_guild_id(interaction), limit=50)
        if not records:
            await interaction.response.send_message("No rated players yet.", ephemeral=True)
            return
        lines = [
            (
                f"{position}. {_format_player_id(record.player_id, record.display_name)} | `{record.points}` | "
                f"{record.wins}W {record.losses}L ({record.win_rate:.0%})"
            )
            for position, record in enumerate(records, start=1)
        ]
        embed = discord.Embed(title="Leaderboard", description="\n".join(lines), color=discord.Color.gold())
        await interaction.response.send_message(embed=embed, allowed_mentions=discord.AllowedMentions.none())

    @bot.tree.command(name="stats", description="Show totals for this server.")
    async def stats(interaction: discord.Interaction) -> None:
        totals = bot.db.get_guild_stats(_guild_id(interaction))
        await interaction.response.send_message(
            (
                f"Players: `{totals.players}` | Matches: `{totals.matches}` "
                f"(resolved `{totals.resolved_matches}`) | Lane teams: `{totals.lane_teams}`"
            )
        )

    @bot.tree.command(name="help", description="List the available commands.")
    async def help_command(interaction: discord.Interaction) -> None:
        lines = [
            "`/start_signup` open a sign-up; react ✋ to join, ✅ balanced teams, 🎲 random teams",
            "`/show_participants`, `/leave`, `/join_name`, `/kick`, `/reset_participants`",
            "`/team`, `/team_simple` split the current sign-up",
            "`/result`, `/win` register the winner of a match",
            "`/start_lane_signup` lane sign-up; `/result_team`, `/show_lane_history`",
            "`/rank`, `/stats`, `/show_points`",
            "Admin: `/set_strength`, `/record`, `/delete_user`, `/set_points`",
        ]
        await interaction.response.send_message("\n".join(lines), ephemeral=True)


def main() -> None:
    settings = load_settings()
    logging.basicConfig(level=settings.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    bot = TeamBot(settings)
    bot.run(settings.discord_token, log_handler=None)


if __name__ == "__main__":
    main()
