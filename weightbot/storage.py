"""
Google Sheets persistence.

Two tabs:
  Users:  Identity | DisplayName | BaselineWeight | BaselineDate | Checkins | TotalLost | LatestCheckinDate
  Config: Key | Value   (deadline, mode, competition_start_date, final_leaderboard_sent)

Worksheet handles are looked up once and reused. Row data is never cached: every
read goes to the sheet. Read-then-write sequences are not transactional, but a
multi-key config change is a single batch update.
"""
from __future__ import annotations
import json
import logging
from datetime import date
from typing import Any, Dict, List, Optional, Tuple

import gspread
from google.oauth2.service_account import Credentials

from .models import Checkin, CompetitionConfig, Mode, UserRecord
from .validation import format_weight, parse_date

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]

USERS_SHEET = "Users"
CONFIG_SHEET = "Config"
USER_COLUMNS = [
    "Identity", "DisplayName", "BaselineWeight", "BaselineDate",
    "Checkins", "TotalLost", "LatestCheckinDate",
]
CONFIG_COLUMNS = ["Key", "Value"]

KEY_DEADLINE = "deadline"
KEY_MODE = "mode"
KEY_START_DATE = "competition_start_date"
KEY_FINAL_SENT = "final_leaderboard_sent"

RAW = "RAW"


class StoreError(Exception):
    pass


class BaselineAlreadySet(StoreError):
    def __init__(self, user: UserRecord):
        super().__init__("User already has a baseline weight set")
        self.user = user


class BaselineMissing(StoreError):
    def __init__(self):
        super().__init__("No baseline weight set. Please set a baseline first.")


# -------------------------
# Row codec
# -------------------------

def _cell(row: List[str], idx: int) -> str:
    # the Sheets API trims trailing empty cells
    return row[idx].strip() if idx < len(row) and row[idx] is not None else ""


def _to_float(text: str) -> Optional[float]:
    if not text:
        return None
    try:
        value = float(text)
    except ValueError:
        return None
    return None if value != value else value  # NaN


def decode_checkins(raw: str) -> List[Checkin]:
    if not raw:
        return []
    try:
        items = json.loads(raw)
    except ValueError:
        logger.warning("Unreadable checkins JSON, treating as empty: %r", raw[:100])
        return []
    if not isinstance(items, list):
        logger.warning("Checkins JSON is not a list, treating as empty: %r", raw[:100])
        return []

    checkins = []
    for item in items:
        if not isinstance(item, dict):
            continue
        weight = _to_float(str(item.get("weight", "")))
        day = parse_date(str(item.get("date", "")))
        if weight is None or day is None:
            continue
        checkins.append(Checkin(weight=weight, date=day))
    return checkins


def encode_checkins(checkins: List[Checkin]) -> str:
    return json.dumps([{"weight": c.weight, "date": c.date.isoformat()} for c in checkins])


def decode_user(row: List[str]) -> UserRecord:
    baseline = _to_float(_cell(row, 2))
    return UserRecord(
        identity=_cell(row, 0),
        display_name=_cell(row, 1),
        baseline_weight=baseline,
        baseline_date=parse_date(_cell(row, 3)),
        checkins=decode_checkins(_cell(row, 4)),
        total_lost=_to_float(_cell(row, 5)) or 0.0,
        latest_checkin_date=parse_date(_cell(row, 6)),
    )


# -------------------------
# Store
# -------------------------

class SheetStore:
    def __init__(self, spreadsheet: gspread.Spreadsheet):
        self.spreadsheet = spreadsheet
        self._worksheets: Dict[str, gspread.Worksheet] = {}

    @classmethod
    def from_service_account_info(cls, info: Dict[str, Any], sheet_id: str) -> "SheetStore":
        creds = Credentials.from_service_account_info(info, scopes=SCOPES)
        return cls(gspread.authorize(creds).open_by_key(sheet_id))

    def _ws(self, name: str) -> gspread.Worksheet:
        # worksheet() is a metadata request, so keep the handle
        ws = self._worksheets.get(name)
        if ws is None:
            ws = self._worksheets[name] = self.spreadsheet.worksheet(name)
        return ws

    def ensure_worksheets(self) -> None:
        """Create the Users/Config tabs and their header rows if missing."""
        for name, header in ((USERS_SHEET, USER_COLUMNS), (CONFIG_SHEET, CONFIG_COLUMNS)):
            try:
                ws = self._ws(name)
            except gspread.WorksheetNotFound:
                ws = self.spreadsheet.add_worksheet(title=name, rows=1000, cols=len(header))
                self._worksheets[name] = ws
                logger.info("Created %s sheet", name)
            if not any(ws.row_values(1)):
                last_col = chr(ord("A") + len(header) - 1)
                ws.update(range_name=f"A1:{last_col}1", values=[header], value_input_option=RAW)
                logger.info("Wrote %s headers", name)

    # ---- users ----

    def _locate(self, identity: str) -> Tuple[Optional[int], Optional[UserRecord]]:
        """(1-based sheet row, record) for a user, or (None, None)."""
        rows = self._ws(USERS_SHEET).get_all_values()
        for offset, row in enumerate(rows[1:]):
            if _cell(row, 0) == identity:
                return offset + 2, decode_user(row)
        return None, None

    def get_user(self, identity: str) -> Optional[UserRecord]:
        return self._locate(identity)[1]

    def all_users(self) -> List[UserRecord]:
        """Every user with a numeric baseline, in sheet order."""
        rows = self._ws(USERS_SHEET).get_all_values()
        users = []
        for row in rows[1:]:
            if not _cell(row, 2):
                continue
            user = decode_user(row)
            if user.baseline_weight is None:
                logger.warning("Skipping %s: bad baseline %r", user.display_name, _cell(row, 2))
                continue
            users.append(user)
        return users

    def has_active_competition(self) -> bool:
        return bool(self.all_users())

    def set_baseline(self, identity: str, display_name: str, weight: float, day: date) -> UserRecord:
        row_number, existing = self._locate(identity)
        if existing is not None and existing.has_baseline:
            raise BaselineAlreadySet(existing)

        ws = self._ws(USERS_SHEET)
        if row_number:
            ws.update(
                range_name=f"B{row_number}:D{row_number}",
                values=[[display_name, format_weight(weight), day.isoformat()]],
                value_input_option=RAW,
            )
        else:
            ws.append_row(
                [identity, display_name, format_weight(weight), day.isoformat(), "[]", "0", ""],
                value_input_option=RAW,
            )
        return UserRecord(identity=identity, display_name=display_name,
                          baseline_weight=weight, baseline_date=day)

    def add_checkin(self, identity: str, weight: float, day: date) -> UserRecord:
        row_number, user = self._locate(identity)
        if user is None or not user.has_baseline:
            raise BaselineMissing()

        user.checkins.append(Checkin(weight=weight, date=day))
        # the checkin just added is the newest one
        user.total_lost = user.baseline_weight - weight
        user.latest_checkin_date = day
        self._ws(USERS_SHEET).update(
            range_name=f"E{row_number}:G{row_number}",
            values=[[encode_checkins(user.checkins), f"{user.total_lost:.1f}", day.isoformat()]],
            value_input_option=RAW,
        )
        return user

    def reset_users(self) -> None:
        """Clear every user row, keep the header."""
        self._ws(USERS_SHEET).batch_clear(["A2:G"])
        logger.info("Cleared all user rows")

    # ---- config ----

    def _read_config(self) -> Tuple[Dict[str, Tuple[int, str]], int]:
        """({key: (1-based row, value)}, first free row). Duplicate keys: the first row wins."""
        rows = self._ws(CONFIG_SHEET).get_all_values()
        out: Dict[str, Tuple[int, str]] = {}
        for offset, row in enumerate(rows[1:]):
            key = _cell(row, 0)
            if key and key not in out:
                out[key] = (offset + 2, _cell(row, 1))
        return out, max(len(rows), 1) + 1

    def _config_rows(self) -> Dict[str, Tuple[int, str]]:
        try:
            return self._read_config()[0]
        except gspread.WorksheetNotFound:
            return {}

    def get_config_value(self, key: str) -> Optional[str]:
        found = self._config_rows().get(key)
        if not found or not found[1]:
            return None
        return found[1]

    def set_config(self, values: Dict[str, str]) -> None:
        """Write several keys with one read and one batch update."""
        existing, next_row = self._read_config()
        data = []
        for key, value in values.items():
            if key in existing:
                data.append({"range": f"B{existing[key][0]}", "values": [[value]]})
            else:
                data.append({"range": f"A{next_row}:B{next_row}", "values": [[key, value]]})
                next_row += 1
        self._ws(CONFIG_SHEET).batch_update(data, value_input_option=RAW)

    def set_config_value(self, key: str, value: str) -> None:
        self.set_config({key: value})

    def get_config(self) -> CompetitionConfig:
        rows = {k: v for k, (_, v) in self._config_rows().items()}
        raw_deadline = rows.get(KEY_DEADLINE, "")
        deadline = parse_date(raw_deadline)
        if raw_deadline and deadline is None:
            logger.warning("Ignoring malformed deadline %r", raw_deadline)
        return CompetitionConfig(
            deadline=deadline,
            mode=Mode.parse(rows.get(KEY_MODE)) or Mode.TOTAL,
            start_date=parse_date(rows.get(KEY_START_DATE, "")),
            final_leaderboard_sent=rows.get(KEY_FINAL_SENT) == "true",
        )

    def start_competition(self, mode: Mode, start: date, deadline: date) -> None:
        """Record a new competition and clear the final-leaderboard flag in one write."""
        self.set_config({
            KEY_MODE: mode.value,
            KEY_START_DATE: start.isoformat(),
            KEY_DEADLINE: deadline.isoformat(),
            KEY_FINAL_SENT: "false",
        })

    def set_deadline(self, deadline: date) -> None:
        self.set_config_value(KEY_DEADLINE, deadline.isoformat())

    def set_mode(self, mode: Mode) -> None:
        self.set_config_value(KEY_MODE, mode.value)

    def set_start_date(self, start: date) -> None:
        self.set_config_value(KEY_START_DATE, start.isoformat())

    def set_final_leaderboard_sent(self, sent: bool) -> None:
        self.set_config_value(KEY_FINAL_SENT, "true" if sent else "false")
