from dataclasses import dataclass
import logging
import os

from dotenv import load_dotenv


@dataclass(frozen=True, slots=True)
class Settings:
    discord_token: str
    database_path: str
    command_guild_id: int | None
    default_points: int
    team_history_size: int
    max_balanced_participants: int
    log_level: int


def _int_env(name: str, default: str) -> int:
    raw = os.getenv(name, default).strip() or default
    try:
        return int(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}.") from exc


def load_settings() -> Settings:
    load_dotenv()

    token = os.getenv("DISCORD_TOKEN", "").strip()
    if not token:
        raise RuntimeError("Missing DISCORD_TOKEN in environment.")

    database_path = os.getenv("SQLITE_PATH", "bot.db").strip() or "bot.db"

    guild_raw = os.getenv("COMMAND_GUILD_ID", "").strip()
    command_guild_id = _int_env("COMMAND_GUILD_ID", guild_raw) if guild_raw else None

    default_points = _int_env("DEFAULT_POINTS", "300")

    team_history_size = _int_env("TEAM_HISTORY_SIZE", "10")
    if team_history_size < 1:
        raise RuntimeError("TEAM_HISTORY_SIZE must be at least 1.")

    max_balanced_participants = _int_env("MAX_BALANCED_PARTICIPANTS", "14")
    if max_balanced_participants < 2:
        raise RuntimeError("MAX_BALANCED_PARTICIPANTS must be at least 2.")

    level_name = os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO"
    log_level = logging.getLevelName(level_name)
    if not isinstance(log_level, int):
        raise RuntimeError(f"Unknown LOG_LEVEL: {level_name}")

    return Settings(
        discord_token=token,
        database_path=database_path,
        command_guild_id=command_guild_id,
        default_points=default_points,
        team_history_size=team_history_size,
        max_balanced_participants=max_balanced_participants,
        log_level=log_level,
    )
