"""Next-run tuning knobs derived from a persona's traits.

``fun`` mode eases the next run toward what the player enjoys, ``challenge``
mode pushes against it.  ``intensity`` (0-1) is how far to move from the
trait-derived baseline toward the mode's target.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass

from echorun.engine.traits import round_half_up
from echorun.models.persona import TraitVector

MODES = ("fun", "challenge")
MAX_ENEMIES = 6
MAX_HINT_DELAY_MS = 15000


@dataclass
class Knobs:
    enemy_count: int
    enemy_speed: float
    puzzle_gate_ratio: float
    collectible_density: float
    hint_delay_ms: int
    breadcrumb_brightness: float

    def to_dict(self) -> dict:
        return asdict(self)


def clamp(v: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, v))


def lerp(a: float, b: float, t: float) -> float:
    return a + (b - a) * t


def compute_knobs(traits: TraitVector, mode: str = "fun", intensity: float = 0.5) -> Knobs:
    """Compute knobs for the next run.  Unknown modes raise ValueError."""
    if mode not in MODES:
        raise ValueError(f"mode must be one of {MODES}, got {mode!r}")

    base_enemies = clamp(round_half_up(1 + traits.aggression * 3), 0, MAX_ENEMIES)
    base_speed = clamp(0.8 + traits.aggression * 0.8, 0.5, 1.5)
    base_puzzles = clamp(0.3 + traits.puzzle_affinity * 0.6, 0, 1)
    base_collect = clamp(0.2 + traits.curiosity * 0.7, 0, 1)
    base_hint_ms = round_half_up((1 - traits.independence) * MAX_HINT_DELAY_MS)
    base_crumbs = clamp(0.3 + traits.curiosity * 0.6, 0, 1)

    s = intensity
    if mode == "fun":
        enemy_count = round_half_up(lerp(base_enemies, max(1, base_enemies - 1), s))
        enemy_speed = lerp(base_speed, max(0.7, base_speed - 0.2), s)
        puzzle_bump = 0.2 if traits.puzzle_affinity > traits.aggression else 0.0
        puzzle_gate_ratio = lerp(base_puzzles, base_puzzles + puzzle_bump, s)
        collectible_density = lerp(base_collect, base_collect + 0.2, s)
        hint_delay_ms = round_half_up(lerp(base_hint_ms, 0, s))
        breadcrumb_brightness = lerp(base_crumbs, max(base_crumbs, 0.9), s)
    else:
        enemy_count = round_half_up(lerp(base_enemies, base_enemies + 1, s))
        enemy_speed = lerp(base_speed, base_speed + 0.2, s)
        puzzle_target = 0.4 + (0.3 if traits.puzzle_affinity < 0.5 else 0.0)
        puzzle_gate_ratio = lerp(base_puzzles, puzzle_target, s)
        collectible_density = lerp(base_collect, max(0.15, base_collect - 0.25), s)
        hint_delay_ms = round_half_up(lerp(base_hint_ms, MAX_HINT_DELAY_MS, s))
        breadcrumb_brightness = lerp(base_crumbs, max(0.2, base_crumbs - 0.3), s)

    return Knobs(
        enemy_count=int(clamp(enemy_count, 0, MAX_ENEMIES)),
        enemy_speed=clamp(enemy_speed, 0.5, 1.5),
        puzzle_gate_ratio=clamp(puzzle_gate_ratio, 0, 1),
        collectible_density=clamp(collectible_density, 0, 1),
        hint_delay_ms=hint_delay_ms,
        breadcrumb_brightness=clamp(breadcrumb_brightness, 0, 1),
    )
