"""Gameplay statistics for a single run.

Plain dataclass consumed by the trait engine.  It does no validation of its
own: payloads are checked by ``echorun.models.payload`` before they get here,
and the engine is total over any finite numbers it is handed.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from typing import Any, Optional

STAT_FIELDS: tuple[str, ...] = (
    "time_s",
    "deaths",
    "retries",
    "distance_traveled",
    "jumps",
    "hint_offers",
    "hints_used",
    "riddles_attempted",
    "riddles_correct",
    "combats_initiated",
    "combats_won",
    "collectibles_found",
)


@dataclass(frozen=True)
class GameplayStats:
    time_s: float = 0.0             # seconds
    deaths: float = 0
    retries: float = 0
    distance_traveled: float = 0.0  # world units
    jumps: float = 0
    hint_offers: float = 0
    hints_used: float = 0
    riddles_attempted: float = 0
    riddles_correct: float = 0
    combats_initiated: float = 0
    combats_won: float = 0
    collectibles_found: float = 0
    mashing_intensity: Optional[float] = None  # 0.0-1.0, None when not reported

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        if d["mashing_intensity"] is None:
            del d["mashing_intensity"]
        return d

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> GameplayStats:
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})
