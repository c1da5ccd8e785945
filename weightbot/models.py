from __future__ import annotations
import enum
from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional


class Mode(enum.Enum):
    TOTAL = "total"            # pounds lost
    PERCENTAGE = "percentage"  # % of baseline lost

    @property
    def label(self) -> str:
        if self is Mode.PERCENTAGE:
            return "Percentage Weight Loss (%)"
        return "Total Weight Loss (pounds)"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["Mode"]:
        for mode in cls:
            if value == mode.value:
                return mode
        return None


@dataclass
class Checkin:
    weight: float
    date: date


@dataclass
class UserRecord:
    identity: str                 # Slack user id
    display_name: str
    baseline_weight: Optional[float] = None
    baseline_date: Optional[date] = None
    checkins: List[Checkin] = field(default_factory=list)
    # Display-only copies; rewritten on every checkin, never used for ranking
    total_lost: float = 0.0
    latest_checkin_date: Optional[date] = None

    @property
    def has_baseline(self) -> bool:
        return self.baseline_weight is not None


@dataclass
class CompetitionConfig:
    deadline: Optional[date] = None
    mode: Mode = Mode.TOTAL
    start_date: Optional[date] = None
    final_leaderboard_sent: bool = False


@dataclass(frozen=True)
class LeaderboardEntry:
    identity: str
    display_name: str
    baseline_weight: float
    current_weight: float
    weight_lost: float   # positive = loss
    metric: float        # what the board is sorted by
