"""Trait engine: pure functions, no Redis or HTTP dependency.

Maps one run's gameplay counters (plus an optional previous trait vector) to
seven trait scores in [0, 1]:

    raw score  ->  normalize (clamp 0..1)  ->  blend with previous  ->  round

Blending is an exponential moving average (0.6 previous / 0.4 new).  With no
previous vector the normalized value is used as-is; callers that want
first-run blending pass ``TraitVector.neutral()`` explicitly.
"""

from __future__ import annotations

import math
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from echorun.models.persona import TRAIT_NAMES, TraitVector
from echorun.models.stats import GameplayStats

PREVIOUS_WEIGHT: float = 0.6
CURRENT_WEIGHT: float = 0.4

# Normalization divisors (stealth and independence are already 0-1)
AGGRESSION_DIVISOR: float = 5.0
CURIOSITY_DIVISOR: float = 5.0
PUZZLE_DIVISOR: float = 3.0
RESILIENCE_DIVISOR: float = 3.0
GOAL_FOCUS_DIVISOR: float = 1.4

MASHING_WEIGHT: float = 0.3
FAST_RUN_SECONDS: float = 180.0
GOAL_DECAY_SECONDS: float = 300.0
LONG_RUN_SECONDS: float = 600.0
EXPLORATION_DISTANCE: float = 500.0


def normalize(x: float) -> float:
    """Clamp into [0, 1]."""
    return max(0.0, min(1.0, x))


def blend(current: float, previous: Optional[float]) -> float:
    if previous is None:
        return current
    return PREVIOUS_WEIGHT * previous + CURRENT_WEIGHT * current


def round2(x: float) -> float:
    """Round half-up to 2 decimals on the float's exact value."""
    return float(Decimal(x).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def round_traits(traits: TraitVector) -> TraitVector:
    return TraitVector(**{name: round2(getattr(traits, name)) for name in TRAIT_NAMES})


def mashing_bonus(stats: GameplayStats) -> float:
    if stats.mashing_intensity is None:
        return 0.0
    return min(stats.mashing_intensity, 1.0) * MASHING_WEIGHT


# -- Raw (unbounded) scores --


def raw_scores(stats: GameplayStats) -> dict[str, float]:
    """Raw per-trait scores, already divided by their normalization divisor."""
    bonus = mashing_bonus(stats)

    aggression = stats.combats_initiated * 1.0 + stats.combats_won * 0.5 + bonus

    stealth = 1.0
    if stats.combats_initiated > 0:
        stealth -= 0.6
    if stats.deaths > 0:
        stealth -= 0.2

    curiosity = (
        stats.collectibles_found * 0.7
        + min(stats.distance_traveled / EXPLORATION_DISTANCE, 1.0) * 0.3
    )

    wrong_attempts = stats.riddles_attempted - stats.riddles_correct
    puzzle = stats.riddles_correct * 1.0 + wrong_attempts * 0.2

    # Offered hints and never took one: perfect score
    if stats.hint_offers > 0 and stats.hints_used == 0:
        independence = 1.0
    else:
        independence = max(0.0, 1.0 - stats.hints_used * 0.5)

    # Fast completion is penalized
    resilience = (
        stats.retries * 0.8
        + stats.deaths * 0.4
        - min(stats.time_s / LONG_RUN_SECONDS, 1.0) * 0.2
    )

    if stats.time_s < FAST_RUN_SECONDS:
        speed = 1.0
    else:
        speed = max(0.0, 1.0 - (stats.time_s - FAST_RUN_SECONDS) / GOAL_DECAY_SECONDS)
    goal_focus = speed + (0.2 if stats.retries == 0 else 0.0) + bonus

    return {
        "aggression": aggression / AGGRESSION_DIVISOR,
        "stealth": stealth,
        "curiosity": curiosity / CURIOSITY_DIVISOR,
        "puzzle_affinity": puzzle / PUZZLE_DIVISOR,
        "independence": independence,
        "resilience": resilience / RESILIENCE_DIVISOR,
        "goal_focus": goal_focus / GOAL_FOCUS_DIVISOR,
    }


def compute_traits(
    stats: GameplayStats,
    previous: Optional[TraitVector] = None,
) -> TraitVector:
    """Compute the blended, rounded trait vector for one run."""
    scores = raw_scores(stats)
    blended = {}
    for name in TRAIT_NAMES:
        prev_value = getattr(previous, name) if previous is not None else None
        blended[name] = blend(normalize(scores[name]), prev_value)
    return round_traits(TraitVector(**blended))


# -- Descriptive text --

PERSONA_RULES: tuple[tuple[str, float, str], ...] = (
    ("puzzle_affinity", 0.6, "puzzle-leaning"),
    ("curiosity", 0.6, "exploration-oriented"),
    ("aggression", 0.5, "combat-inclined"),
    ("independence", 0.6, "rarely uses hints"),
    ("resilience", 0.6, "bounces back after failures"),
)


def persona_text(traits: TraitVector) -> str:
    bits = [label for name, threshold, label in PERSONA_RULES if getattr(traits, name) > threshold]
    if not bits:
        bits = ["balanced playstyle"]
    return f"Shows {', '.join(bits)}; goal focus {round_half_up(traits.goal_focus * 100)}%."


def fmt_count(n: float) -> str:
    """Render a counter without a trailing '.0' when it is integral."""
    if float(n).is_integer():
        return str(int(n))
    return str(n)


def top_signals(stats: GameplayStats, limit: int = 3) -> list[str]:
    """Short facts about the run, in fixed evaluation order, first ``limit`` kept."""
    signals: list[str] = []
    if stats.riddles_correct > 0:
        signals.append(f"Solved {fmt_count(stats.riddles_correct)} riddle(s)")
    if stats.combats_initiated > 0:
        signals.append(
            f"Started {fmt_count(stats.combats_initiated)} combat(s), "
            f"won {fmt_count(stats.combats_won)}"
        )
    if stats.collectibles_found > 0:
        signals.append(f"Found {fmt_count(stats.collectibles_found)} collectible(s)")
    if stats.hints_used > 0:
        signals.append(f"Used {fmt_count(stats.hints_used)} hint(s)")
    if stats.retries > 0:
        signals.append(f"Retried {fmt_count(stats.retries)} time(s)")
    return signals[:limit]
