"""Tests for next-run knob computation."""

import pytest

from echorun.engine.policy import MAX_HINT_DELAY_MS, compute_knobs
from echorun.models.persona import TraitVector


class TestBaseline:
    @pytest.mark.parametrize("mode", ["fun", "challenge"])
    def test_zero_intensity_is_trait_baseline(self, mode):
        knobs = compute_knobs(TraitVector.neutral(), mode, 0.0)
        assert knobs.enemy_count == 3
        assert knobs.enemy_speed == pytest.approx(1.2)
        assert knobs.puzzle_gate_ratio == pytest.approx(0.6)
        assert knobs.collectible_density == pytest.approx(0.55)
        assert knobs.hint_delay_ms == 7500
        assert knobs.breadcrumb_brightness == pytest.approx(0.6)

    def test_unknown_mode(self):
        with pytest.raises(ValueError):
            compute_knobs(TraitVector.neutral(), "nightmare", 0.5)

    def test_to_dict(self):
        knobs = compute_knobs(TraitVector.neutral()).to_dict()
        assert set(knobs) == {
            "enemy_count", "enemy_speed", "puzzle_gate_ratio",
            "collectible_density", "hint_delay_ms", "breadcrumb_brightness",
        }


class TestFunMode:
    def test_full_intensity(self):
        knobs = compute_knobs(TraitVector.neutral(), "fun", 1.0)
        assert knobs.enemy_count == 2
        assert knobs.enemy_speed == pytest.approx(1.0)
        assert knobs.puzzle_gate_ratio == pytest.approx(0.6)
        assert knobs.collectible_density == pytest.approx(0.75)
        assert knobs.hint_delay_ms == 0
        assert knobs.breadcrumb_brightness == pytest.approx(0.9)

    def test_puzzle_lover_gets_more_puzzles(self, make_traits):
        knobs = compute_knobs(make_traits(puzzle_affinity=0.9, aggression=0.1), "fun", 1.0)
        assert knobs.puzzle_gate_ratio == 1.0

    def test_keeps_at_least_one_enemy(self, make_traits):
        assert compute_knobs(make_traits(aggression=0.0), "fun", 1.0).enemy_count == 1


class TestChallengeMode:
    def test_full_intensity(self):
        knobs = compute_knobs(TraitVector.neutral(), "challenge", 1.0)
        assert knobs.enemy_count == 4
        assert knobs.enemy_speed == pytest.approx(1.4)
        assert knobs.puzzle_gate_ratio == pytest.approx(0.4)
        assert knobs.collectible_density == pytest.approx(0.30)
        assert knobs.hint_delay_ms == MAX_HINT_DELAY_MS
        assert knobs.breadcrumb_brightness == pytest.approx(0.3)

    def test_low_puzzle_affinity_raises_puzzle_target(self, make_traits):
        knobs = compute_knobs(make_traits(puzzle_affinity=0.2), "challenge", 1.0)
        assert knobs.puzzle_gate_ratio == pytest.approx(0.7)

    def test_clamped(self, make_traits):
        knobs = compute_knobs(make_traits(1.0), "challenge", 1.0)
        assert knobs.enemy_count == 5
        assert knobs.enemy_speed == 1.5
        assert 0 <= knobs.collectible_density <= 1
        assert 0 <= knobs.breadcrumb_brightness <= 1
