"""Tests for RedisPersonaStore (fakeredis-backed)."""

from unittest.mock import patch

import pytest
import redis

from echorun.engine.traits import persona_text
from echorun.models.persona import PersonaSnapshot, ScopeKey
from echorun.store.persona_store import (
    MEMORY_PREFIX,
    aggregate_traits,
    memory_id,
    user_node_key,
)

T1 = "2026-10-18T10:00:00+00:00"
T2 = "2026-10-18T11:00:00+00:00"
T3 = "2026-10-18T12:00:00+00:00"


@pytest.fixture
def make_snapshot(make_traits):
    def _factory(value=0.4, updated_at=T1, player_id="p1", signals=None, **overrides):
        traits = make_traits(value, **overrides)
        return PersonaSnapshot(
            player_id=player_id,
            traits=traits,
            persona_text=persona_text(traits),
            top_signals=signals if signals is not None else ["Solved 1 riddle(s)"],
            updated_at=updated_at,
        )

    return _factory


# ═══════════════════════════════════════════════════════════════════════════
# Memory ids and helpers
# ═══════════════════════════════════════════════════════════════════════════


class TestMemoryIds:
    def test_scoped_ids_are_stable(self):
        assert memory_id("p1", ScopeKey.game("echorun"), "aggression") == "memory_p1_game_echorun_aggression"
        assert memory_id("p1", ScopeKey.genre("puzzle"), "stealth", "g9") == "memory_p1_genre_puzzle_stealth"

    def test_global_ids_carry_game(self):
        assert memory_id("p1", ScopeKey.global_(), "curiosity", "echorun") == "memory_p1_global_echorun_curiosity"
        assert memory_id("p1", ScopeKey.global_(), "curiosity") == "memory_p1_global_unknown_curiosity"

    def test_underscores_cannot_collide(self):
        a = memory_id("a_game_x", ScopeKey.global_(), "aggression", "echorun")
        b = memory_id("a", ScopeKey.game("x_global_echorun"), "aggression")
        assert a != b
        assert a == "memory_a%5Fgame%5Fx_global_echorun_aggression"

    def test_percent_escaped(self):
        assert memory_id("p%5F", ScopeKey.genre("q"), "stealth") != memory_id("p_", ScopeKey.genre("q"), "stealth")

    def test_user_node_key(self):
        assert user_node_key("p1") == "persona:user:p1"


class TestAggregateTraits:
    def test_latest_per_trait(self):
        memories = [
            {"trait_name": "aggression", "trait_value": "0.1", "updated_at": T2},
            {"trait_name": "aggression", "trait_value": "0.9", "updated_at": T1},
            {"trait_name": "stealth", "trait_value": "0.3", "updated_at": T1},
        ]
        values, winners = aggregate_traits(memories)
        assert values == {"aggression": 0.1, "stealth": 0.3}
        assert winners["aggression"]["updated_at"] == T2

    def test_tie_goes_to_last_seen(self):
        memories = [
            {"trait_name": "aggression", "trait_value": "0.1", "updated_at": T1},
            {"trait_name": "aggression", "trait_value": "0.9", "updated_at": T1},
        ]
        values, _ = aggregate_traits(memories)
        assert values["aggression"] == 0.9

    def test_skips_unknown_and_malformed(self):
        memories = [
            {"trait_name": "charisma", "trait_value": "0.5", "updated_at": T1},
            {"trait_name": "aggression", "trait_value": "lots", "updated_at": T1},
            {"trait_name": "stealth", "updated_at": T1},
        ]
        values, _ = aggregate_traits(memories)
        assert values == {}


# ═══════════════════════════════════════════════════════════════════════════
# Persist / fetch
# ═══════════════════════════════════════════════════════════════════════════


class TestPersist:
    def test_writes_seven_memories(self, store, r, make_snapshot):
        written = store.persist("p1", ScopeKey.game("echorun"), make_snapshot(), {"game_id": "echorun"})
        assert written == 7
        assert r.scard(user_node_key("p1")) == 7

    def test_memory_fields(self, store, r, make_snapshot):
        store.persist(
            "p1",
            ScopeKey.genre("puzzle"),
            make_snapshot(aggression=0.62),
            {"game_id": "echorun", "run_index": 3, "build_version": None},
        )
        data = r.hgetall(f"{MEMORY_PREFIX}memory_p1_genre_puzzle_aggression")
        assert data["type"] == "trait_memory"
        assert data["player_id"] == "p1"
        assert data["trait_name"] == "aggression"
        assert float(data["trait_value"]) == 0.62
        assert data["persona_scope"] == "genre"
        assert data["genre_id"] == "puzzle"
        assert data["game_id"] == "echorun"
        assert data["run_index"] == "3"
        assert data["updated_at"] == T1
        assert data["content"] == "Aggression: 0.62"
        assert data["top_signals"] == '["Solved 1 riddle(s)"]'
        assert "build_version" not in data

    def test_roundtrip(self, store, make_snapshot):
        snap = make_snapshot(0.4, stealth=0.91)
        store.persist("p1", ScopeKey.platform("pc"), snap)
        assert store.fetch_latest_traits("p1", ScopeKey.platform("pc")) == snap.traits

    def test_absent_scope_is_none(self, store, make_snapshot):
        store.persist("p1", ScopeKey.genre("platformer"), make_snapshot())
        assert store.fetch_latest_traits("p1", ScopeKey.genre("puzzle")) is None
        assert store.fetch_latest_traits("p1", ScopeKey.global_()) is None
        assert store.fetch_latest_traits("nobody", ScopeKey.genre("platformer")) is None

    def test_incomplete_is_none(self, store, r, make_snapshot):
        store.persist("p1", ScopeKey.game("echorun"), make_snapshot())
        r.delete(f"{MEMORY_PREFIX}memory_p1_game_echorun_resilience")
        assert store.fetch_latest_traits("p1", ScopeKey.game("echorun")) is None

    def test_redis_error_is_none(self, store):
        with patch.object(store.r, "smembers", side_effect=redis.ConnectionError("down")):
            assert store.fetch_latest_traits("p1", ScopeKey.global_()) is None

    def test_scoped_memories_replaced_in_place(self, store, r, make_snapshot):
        key = ScopeKey.game("echorun")
        store.persist("p1", key, make_snapshot(0.2, T1), {"run_index": 1, "build_version": "a"})
        store.persist("p1", key, make_snapshot(0.7, T2), {"run_index": 2})
        assert r.scard(user_node_key("p1")) == 7
        assert store.fetch_latest_traits("p1", key).curiosity == 0.7
        data = r.hgetall(f"{MEMORY_PREFIX}memory_p1_game_echorun_curiosity")
        assert data["run_index"] == "2"
        assert "build_version" not in data

    def test_other_players_memories_ignored(self, store, r, make_snapshot):
        store.persist("p2", ScopeKey.global_(), make_snapshot(player_id="p2"), {"game_id": "g"})
        # Link p2's memory ids into p1's node
        r.sadd(user_node_key("p1"), *r.smembers(user_node_key("p2")))
        assert store.fetch_latest_traits("p1", ScopeKey.global_()) is None

    def test_players_with_underscores_keep_their_data(self, store, make_snapshot):
        store.persist("a_game_x", ScopeKey.global_(), make_snapshot(0.2, player_id="a_game_x"), {"game_id": "echorun"})
        store.persist("a", ScopeKey.game("x_global_echorun"), make_snapshot(0.9, player_id="a"), {"game_id": "echorun"})
        assert store.fetch_latest_traits("a_game_x", ScopeKey.global_()) == make_snapshot(0.2).traits
        assert store.fetch_latest_traits("a", ScopeKey.game("x_global_echorun")) == make_snapshot(0.9).traits

    def test_memory_lookup(self, store, make_snapshot):
        store.persist("p1", ScopeKey.platform("pc"), make_snapshot(), {"game_id": "echorun"})
        mem = store.memory("memory_p1_platform_pc_curiosity")
        assert mem["id"] == "memory_p1_platform_pc_curiosity"
        assert mem["trait_name"] == "curiosity"
        assert mem["platform_id"] == "pc"
        assert store.memory("memory_p1_platform_pc_nothing") is None

    def test_persist_propagates_redis_errors(self, store, make_snapshot):
        with patch.object(store.r, "pipeline", side_effect=redis.ConnectionError("down")):
            with pytest.raises(redis.ConnectionError):
                store.persist("p1", ScopeKey.global_(), make_snapshot())


class TestGlobalAcrossGames:
    def test_each_game_keeps_its_own_global_memories(self, store, r, make_snapshot):
        store.persist("p1", ScopeKey.global_(), make_snapshot(0.2, T1), {"game_id": "g1"})
        store.persist("p1", ScopeKey.global_(), make_snapshot(0.8, T2), {"game_id": "g2"})
        assert r.scard(user_node_key("p1")) == 14
        assert store.fetch_latest_traits("p1", ScopeKey.global_()) == make_snapshot(0.8).traits

    def test_newest_value_taken_per_trait(self, store, r, make_snapshot):
        store.persist("p1", ScopeKey.global_(), make_snapshot(0.2, T1), {"game_id": "g1"})
        store.persist("p1", ScopeKey.global_(), make_snapshot(0.8, T2), {"game_id": "g2"})
        r.hset(f"{MEMORY_PREFIX}memory_p1_global_g1_stealth", "updated_at", T3)

        traits = store.fetch_latest_traits("p1", ScopeKey.global_())
        assert traits.stealth == 0.2
        assert traits.aggression == 0.8


# ═══════════════════════════════════════════════════════════════════════════
# Listing
# ═══════════════════════════════════════════════════════════════════════════


class TestFetchPersonas:
    @pytest.fixture
    def seeded(self, store, make_snapshot):
        meta = {"game_id": "echorun"}
        store.persist("p1", ScopeKey.global_(), make_snapshot(0.3, T1), meta)
        store.persist("p1", ScopeKey.game("echorun"), make_snapshot(0.4, T2), meta)
        store.persist("p1", ScopeKey.genre("puzzle"), make_snapshot(0.7, T3, signals=["Found 2 collectible(s)"]), meta)
        return store

    def test_groups_by_scope_newest_first(self, seeded):
        result = seeded.fetch_personas("p1")
        assert result["total"] == 3
        assert result["user_node"] == "p1"
        scopes = [item["metadata"]["persona_scope"] for item in result["items"]]
        assert scopes == ["genre", "game", "global"]

    def test_item_shape(self, seeded):
        item = seeded.fetch_personas("p1", scope="genre")["items"][0]
        assert item["metadata"]["type"] == "persona"
        assert item["metadata"]["genre_id"] == "puzzle"
        assert item["metadata"]["updated_at"] == T3
        assert item["id"].startswith("memory_p1_genre_puzzle_")
        persona = item["persona"]
        assert persona["traits"]["aggression"] == 0.7
        assert persona["top_signals"] == ["Found 2 collectible(s)"]
        assert persona["persona_text"].startswith("Shows puzzle-leaning")

    def test_scope_filter(self, seeded):
        result = seeded.fetch_personas("p1", scope="global")
        assert result["total"] == 1
        assert result["items"][0]["persona"]["traits"]["stealth"] == 0.3

    def test_id_filter(self, seeded):
        assert seeded.fetch_personas("p1", genre_id="puzzle")["total"] == 1
        assert seeded.fetch_personas("p1", genre_id="racing")["total"] == 0

    def test_limit_counts_personas(self, seeded):
        result = seeded.fetch_personas("p1", limit=2)
        assert result["total"] == 2
        assert [i["metadata"]["persona_scope"] for i in result["items"]] == ["genre", "game"]

    def test_incomplete_personas_dropped(self, seeded, r):
        r.delete(f"{MEMORY_PREFIX}memory_p1_game_echorun_goal_focus")
        scopes = [i["metadata"]["persona_scope"] for i in seeded.fetch_personas("p1")["items"]]
        assert scopes == ["genre", "global"]

    def test_unknown_scope(self, seeded):
        with pytest.raises(ValueError):
            seeded.fetch_personas("p1", scope="season")

    def test_empty(self, store):
        assert store.fetch_personas("nobody") == {"total": 0, "items": [], "user_node": "nobody"}


class TestPing:
    def test_ping(self, store):
        assert store.ping() is True

    def test_ping_down(self, store):
        with patch.object(store.r, "ping", side_effect=redis.ConnectionError("down")):
            assert store.ping() is False
