"""Per-trait explanations for client display.

One sentence per trait, in trait order, saying which way the trait moved and
which of the run's counters pushed it there.
"""

from __future__ import annotations

from typing import Callable, Optional

from echorun.engine.traits import LONG_RUN_SECONDS, FAST_RUN_SECONDS, fmt_count, round2, round_half_up
from echorun.models.persona import TRAIT_NAMES, TraitVector, trait_label
from echorun.models.stats import GameplayStats

DEFAULT_PREVIOUS_MARKER = "default (0.50)"
HIGH_MASHING_THRESHOLD = 0.5


def _direction(previous: float, new: float) -> str:
    if new > previous:
        return "increased"
    if new < previous:
        return "decreased"
    return "unchanged"


def _fixed2(x: float) -> str:
    """Two decimals, half-up."""
    return f"{round2(x):.2f}"


def _mashing_pct(stats: GameplayStats) -> Optional[str]:
    m = stats.mashing_intensity
    if m is not None and m > HIGH_MASHING_THRESHOLD:
        return f"{round_half_up(m * 100)}%"
    return None


def _affected_by(reasons: list[str], fallback: str, prefix: str = "Affected by") -> str:
    if reasons:
        return f"{prefix}: {', '.join(reasons)}."
    return fallback


def _aggression(stats: GameplayStats) -> str:
    reasons = []
    if stats.combats_initiated > 0:
        reasons.append(f"Started {fmt_count(stats.combats_initiated)} combat(s)")
    if stats.combats_won > 0:
        reasons.append(f"won {fmt_count(stats.combats_won)} combat(s)")
    pct = _mashing_pct(stats)
    if pct:
        reasons.append(f"high button mashing intensity ({pct})")
    return _affected_by(reasons, "No combat activity or mashing detected.")


def _stealth(stats: GameplayStats) -> str:
    reasons = []
    if stats.combats_initiated > 0:
        reasons.append(f"combat engagement ({fmt_count(stats.combats_initiated)} combat(s))")
    if stats.deaths > 0:
        reasons.append(f"death(s) ({fmt_count(stats.deaths)})")
    return _affected_by(reasons, "No combat or deaths detected.", prefix="Decreased due to")


def _curiosity(stats: GameplayStats) -> str:
    reasons = []
    if stats.collectibles_found > 0:
        reasons.append(f"found {fmt_count(stats.collectibles_found)} collectible(s)")
    if stats.distance_traveled > 0:
        reasons.append(f"traveled {fmt_count(stats.distance_traveled)} units")
    return _affected_by(reasons, "Limited exploration and no collectibles found.")


def _puzzle_affinity(stats: GameplayStats) -> str:
    reasons = []
    if stats.riddles_correct > 0:
        reasons.append(f"solved {fmt_count(stats.riddles_correct)} riddle(s) correctly")
    if stats.riddles_attempted > stats.riddles_correct:
        extra = stats.riddles_attempted - stats.riddles_correct
        reasons.append(f"attempted {fmt_count(extra)} additional riddle(s)")
    return _affected_by(reasons, "No puzzle-solving activity detected.")


def _independence(stats: GameplayStats) -> str:
    reasons = []
    if stats.hint_offers > 0 and stats.hints_used == 0:
        reasons.append("hints offered but none used")
    elif stats.hints_used > 0:
        reasons.append(f"used {fmt_count(stats.hints_used)} hint(s)")
    return _affected_by(reasons, "No hint activity detected.")


def _resilience(stats: GameplayStats) -> str:
    reasons = []
    if stats.retries > 0:
        reasons.append(f"retried {fmt_count(stats.retries)} time(s) after failure")
    if stats.deaths > 0:
        reasons.append(f"experienced {fmt_count(stats.deaths)} death(s) but persisted")
    if stats.time_s < LONG_RUN_SECONDS:
        reasons.append(
            f"completed quickly ({fmt_count(stats.time_s)}s), potentially avoiding challenges"
        )
    return _affected_by(reasons, "No failure recovery data detected.")


def _goal_focus(stats: GameplayStats) -> str:
    reasons = []
    if stats.time_s < FAST_RUN_SECONDS:
        reasons.append(f"fast completion ({fmt_count(stats.time_s)}s)")
    if stats.retries == 0:
        reasons.append("no retries needed")
    pct = _mashing_pct(stats)
    if pct:
        reasons.append(f"high button mashing intensity ({pct}) indicating focused effort")
    return _affected_by(reasons, "Standard completion time and retries.")


_REASONS: dict[str, Callable[[GameplayStats], str]] = {
    "aggression": _aggression,
    "stealth": _stealth,
    "curiosity": _curiosity,
    "puzzle_affinity": _puzzle_affinity,
    "independence": _independence,
    "resilience": _resilience,
    "goal_focus": _goal_focus,
}


def generate_trait_explanations(
    stats: GameplayStats,
    previous: Optional[TraitVector],
    new: TraitVector,
) -> list[str]:
    """Return seven explanation sentences, one per trait.

    When ``previous`` is None every trait is compared against 0.5 and the
    previous value is shown as ``default (0.50)``.
    """
    baseline = previous if previous is not None else TraitVector.neutral()
    explanations = []
    for name in TRAIT_NAMES:
        prev_value = getattr(baseline, name)
        new_value = getattr(new, name)
        prev_display = _fixed2(prev_value) if previous is not None else DEFAULT_PREVIOUS_MARKER
        explanations.append(
            f"{trait_label(name)}: {_direction(prev_value, new_value)} "
            f"from {prev_display} to {_fixed2(new_value)}. {_REASONS[name](stats)}"
        )
    return explanations
