"""Shared test fixtures for the EchoRun persona test suite."""

import pytest
import fakeredis

from echorun.config.settings import Settings
from echorun.engine.coordinator import ScopeBlendingCoordinator
from echorun.models.persona import TRAIT_NAMES, TraitVector
from echorun.models.stats import GameplayStats
from echorun.store.persona_store import RedisPersonaStore


# ── Redis ────────────────────────────────────────────────────────────────

@pytest.fixture
def r():
    """Fresh fakeredis instance per test (decode_responses=True like production)."""
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture
def store(r):
    return RedisPersonaStore(r)


@pytest.fixture
def settings():
    return Settings(redis_url="redis://fake", default_game_id="echorun")


@pytest.fixture
def coordinator(store, settings):
    return ScopeBlendingCoordinator(store=store, settings=settings)


# ── Factories ────────────────────────────────────────────────────────────

@pytest.fixture
def make_stats():
    """Factory for GameplayStats; every counter defaults to zero.

    Usage:
        stats = make_stats(combats_initiated=3, combats_won=2)
    """
    def _factory(**overrides):
        return GameplayStats(**overrides)

    return _factory


@pytest.fixture
def make_traits():
    """Factory for TraitVector: one value for all traits, plus overrides."""
    def _factory(value=0.5, **overrides):
        data = {name: value for name in TRAIT_NAMES}
        data.update(overrides)
        return TraitVector(**data)

    return _factory


@pytest.fixture
def make_server_input():
    """Factory for a valid ServerInput JSON body (as a dict)."""
    _counter = 0

    def _factory(player_id="player-1", stats=None, game_context=None, **overrides):
        nonlocal _counter
        _counter += 1
        base_stats = {
            "time_s": 75,
            "deaths": 0,
            "retries": 0,
            "distance_traveled": 250,
            "jumps": 12,
            "hint_offers": 1,
            "hints_used": 0,
            "riddles_attempted": 1,
            "riddles_correct": 1,
            "combats_initiated": 3,
            "combats_won": 2,
            "collectibles_found": 2,
        }
        base_stats.update(stats or {})
        body = {
            "schema_version": "1.0",
            "player_id": player_id,
            "session_id": "session-1",
            "run_index": _counter,
            "completed_at": "2026-10-18T12:00:00Z",
            "game_context": game_context if game_context is not None else {
                "game_id": "echorun",
                "game_title": "Echo Run",
                "genre_ids": ["platformer", "puzzle"],
                "platform_ids": ["pc", "switch"],
                "build_version": "0.3.1",
            },
            "run_outcome": {"result": "win", "path": "combat"},
            "stats": base_stats,
            "config_used": {
                "mode": "fun",
                "knobs": {
                    "enemy_count": 3,
                    "enemy_speed": 1.0,
                    "puzzle_gate_ratio": 0.5,
                    "collectible_density": 0.5,
                    "hint_delay_ms": 5000,
                    "breadcrumb_brightness": 0.6,
                },
                "layout_seed": "seed-abc",
            },
        }
        body.update(overrides)
        return body

    return _factory
