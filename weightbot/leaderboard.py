"""
Leaderboard aggregation.

Standings are always recomputed from the baseline and the checkin list. The
cached TotalLost column in the sheet is for humans reading the spreadsheet.

Ranking
- current weight = weight of the checkin with the latest date (baseline if none);
  among checkins sharing that date the last one submitted wins
- total mode: metric = pounds lost
- percentage mode: metric = pounds lost / baseline * 100
- higher metric ranks first; ties keep the order the users were read in
"""
from __future__ import annotations
import math
from typing import Iterable, List, Optional

from .models import LeaderboardEntry, Mode, UserRecord
from .validation import format_weight

TOP_N = 5

MEDALS = {1: "🥇", 2: "🥈", 3: "🥉"}


def _usable_baseline(value) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if math.isnan(value) or value <= 0:
        return None
    return float(value)


def current_weight(user: UserRecord) -> Optional[float]:
    baseline = _usable_baseline(user.baseline_weight)
    if baseline is None:
        return None
    if not user.checkins:
        return baseline
    # (date, insertion index): same-day checkins resolve to the last one submitted
    _, latest = max(enumerate(user.checkins), key=lambda p: (p[1].date, p[0]))
    return latest.weight


def compute_leaderboard(users: Iterable[UserRecord], mode: Mode) -> List[LeaderboardEntry]:
    entries: List[LeaderboardEntry] = []
    for user in users:
        baseline = _usable_baseline(user.baseline_weight)
        if baseline is None:
            continue
        current = current_weight(user)
        lost = baseline - current
        if mode is Mode.PERCENTAGE:
            metric = lost / baseline * 100
        else:
            metric = lost
        entries.append(LeaderboardEntry(
            identity=user.identity,
            display_name=user.display_name,
            baseline_weight=baseline,
            current_weight=current,
            weight_lost=lost,
            metric=metric,
        ))
    # sorted() is stable, so equal metrics keep input order
    return sorted(entries, key=lambda e: e.metric, reverse=True)


def format_change(value: float, mode: Mode) -> str:
    """-X.Xlbs / -X.XX% for a loss, +X.Xlbs / +X.XX% for a gain."""
    sign = "-" if value > 0 else "+"
    if mode is Mode.PERCENTAGE:
        return f"{sign}{abs(value):.2f}%"
    return f"{sign}{abs(value):.1f}lbs"


def format_entry(entry: LeaderboardEntry, mode: Mode) -> str:
    change = format_change(entry.metric, mode)
    weights = f"{format_weight(entry.baseline_weight)}→{format_weight(entry.current_weight)}"
    return f"@{entry.display_name}: {change} ({weights})"


def render_board(entries: List[LeaderboardEntry], mode: Mode, limit: Optional[int] = None) -> str:
    """Medal-decorated lines, top 3 get 🥇🥈🥉."""
    shown = entries if limit is None else entries[:limit]
    lines = []
    for rank, entry in enumerate(shown, start=1):
        prefix = MEDALS.get(rank, f"{rank}.")
        lines.append(f"{prefix} {format_entry(entry, mode)}")
    return "\n".join(lines)
