"""Environment configuration (a local .env file is honoured)."""
from __future__ import annotations
import json
import os
import re
from dataclasses import dataclass, field
from datetime import time
from typing import Any, Dict, List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

TIME_RE = re.compile(r"^(?P<hour>\d{1,2}):(?P<minute>\d{2})$")


class SettingsError(ValueError):
    pass


def _split_ids(raw: Optional[str]) -> List[str]:
    return [p.strip() for p in (raw or "").split(",") if p.strip()]


def _parse_time(raw: Optional[str]) -> time:
    m = TIME_RE.match((raw or "09:00").strip())
    hour, minute = (int(m.group("hour")), int(m.group("minute"))) if m else (-1, -1)
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise SettingsError(f"FINAL_LEADERBOARD_TIME must be HH:MM (24-hour), got {raw!r}")
    return time(hour, minute)


def _parse_timezone(raw: Optional[str]) -> Optional[str]:
    if not raw:
        return None
    try:
        ZoneInfo(raw)
    except (ZoneInfoNotFoundError, ValueError):
        raise SettingsError(f"FINAL_LEADERBOARD_TIMEZONE is not a known timezone: {raw!r}") from None
    return raw


def _parse_port(raw: Optional[str]) -> int:
    try:
        return int(raw or "3000")
    except ValueError:
        raise SettingsError(f"PORT must be a number, got {raw!r}") from None


@dataclass
class Settings:
    slack_bot_token: Optional[str] = None
    slack_signing_secret: Optional[str] = None
    app_level_token: Optional[str] = None
    use_socket_mode: bool = True
    google_credentials: Optional[str] = None   # service account JSON
    google_sheet_id: Optional[str] = None
    fitness_channel: Optional[str] = None
    admin_ids: List[str] = field(default_factory=list)
    timezone: Optional[str] = None             # e.g. America/New_York; server local if unset
    final_leaderboard_at: time = time(9, 0)
    port: int = 3000
    log_level: str = "INFO"

    def missing(self) -> List[str]:
        required = {
            "SLACK_BOT_TOKEN": self.slack_bot_token,
            "GOOGLE_SHEETS_CREDENTIALS": self.google_credentials,
            "GOOGLE_SHEET_ID": self.google_sheet_id,
        }
        if self.use_socket_mode:
            required["APP_LEVEL_TOKEN"] = self.app_level_token
        else:
            required["SLACK_SIGNING_SECRET"] = self.slack_signing_secret
        return [name for name, value in required.items() if not value]

    def credentials_info(self) -> Dict[str, Any]:
        try:
            return json.loads(self.google_credentials or "")
        except ValueError as e:
            raise SettingsError(f"Failed to parse GOOGLE_SHEETS_CREDENTIALS: {e}") from e


def load_settings(env: Optional[Dict[str, str]] = None) -> Settings:
    """Read settings from ``env`` (default: the process environment plus .env). Raises SettingsError."""
    if env is None:
        load_dotenv(override=False)
        env = dict(os.environ)
    return Settings(
        slack_bot_token=env.get("SLACK_BOT_TOKEN"),
        slack_signing_secret=env.get("SLACK_SIGNING_SECRET"),
        app_level_token=env.get("APP_LEVEL_TOKEN"),
        use_socket_mode=env.get("USE_SOCKET_MODE", "true").lower() == "true",
        google_credentials=env.get("GOOGLE_SHEETS_CREDENTIALS"),
        google_sheet_id=env.get("GOOGLE_SHEET_ID"),
        fitness_channel=env.get("FITNESS_CHANNEL") or None,
        admin_ids=_split_ids(env.get("ADMIN_IDS")),
        timezone=_parse_timezone(env.get("FINAL_LEADERBOARD_TIMEZONE")),
        final_leaderboard_at=_parse_time(env.get("FINAL_LEADERBOARD_TIME")),
        port=_parse_port(env.get("PORT")),
        log_level=env.get("LOG_LEVEL", "INFO").upper(),
    )
