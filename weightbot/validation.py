from __future__ import annotations
import re
from datetime import date, datetime
from typing import Optional
from zoneinfo import ZoneInfo

MIN_WEIGHT = 100
MAX_WEIGHT = 1000

# "200lbs", "200 lbs", "200.5lb", "185 LBS"
WEIGHT_RE = re.compile(r"(?i)(?P<num>\d+\.?\d*)\s*lbs?")
DATE_RE = re.compile(r"^[0-9]{4}-[0-9]{2}-[0-9]{2}$")


def match_weight(text: str) -> Optional[float]:
    """Return the number in front of ``lb``/``lbs`` without checking its range."""
    if not text or not isinstance(text, str):
        return None
    m = WEIGHT_RE.search(text)
    if not m:
        return None
    try:
        return float(m.group("num"))
    except ValueError:
        return None


def parse_weight(text: str) -> Optional[float]:
    """
    Parse a weight like ``baseline 200lbs``.

    Returns None both when nothing matches and when the weight is outside
    100..1000 lbs; use match_weight() to tell the two apart.
    """
    weight = match_weight(text)
    if weight is None:
        return None
    if weight < MIN_WEIGHT or weight > MAX_WEIGHT:
        return None
    return weight


def validate_date_format(text: str) -> bool:
    if not text or not isinstance(text, str):
        return False
    trimmed = text.strip()
    if not DATE_RE.match(trimmed):
        return False
    year, month, day = (int(p) for p in trimmed.split("-"))
    if year < 1000 or year > 9999:
        return False
    try:
        date(year, month, day)
    except ValueError:
        # month 13, February 30, ...
        return False
    return True


def parse_date(text: str) -> Optional[date]:
    if not validate_date_format(text):
        return None
    return date.fromisoformat(text.strip())


def days_between(a: date, b: date) -> int:
    return abs((b - a).days)


def days_until(deadline: date, today_: date) -> int:
    """Signed day count; negative once the deadline has passed."""
    return (deadline - today_).days


def today(tz: Optional[str] = None) -> date:
    if tz:
        return datetime.now(ZoneInfo(tz)).date()
    return date.today()


def format_weight(weight: float) -> str:
    return f"{weight:g}"
