from __future__ import annotations
import enum
from dataclasses import dataclass
from typing import Optional

from .validation import match_weight, parse_weight


class CommandKind(enum.Enum):
    BASELINE = "baseline"
    CHECKIN = "checkin"


@dataclass(frozen=True)
class DirectCommand:
    kind: CommandKind
    text: str                             # original message text
    weight: Optional[float] = None        # in range, or None
    raw_weight: Optional[float] = None    # the number typed before "lbs", unchecked

    @property
    def valid(self) -> bool:
        return self.weight is not None


def parse_direct_message(text: Optional[str]) -> Optional[DirectCommand]:
    """Classify a DM as ``baseline ...`` / ``checkin ...`` and pull out its weight; anything else is None."""
    normalized = (text or "").strip().lower()
    for kind in CommandKind:
        if normalized.startswith(kind.value):
            return DirectCommand(kind, text or "", weight=parse_weight(text), raw_weight=match_weight(text))
    return None
