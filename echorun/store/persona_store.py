"""Redis persona store: trait memories grouped under a per-player user node.

Every persisted snapshot becomes seven *trait memories*, one Redis hash per
trait, and each memory id is added to the player's user-node set:

    persona:memory:{memory_id}   HASH  trait_name, trait_value, persona_scope, ...
    persona:user:{player_id}     SET   memory ids

Game/genre/platform memories use a stable id per (player, scope, trait), so a
new run overwrites them in place.  Global memories also carry the contributing
game in their id, so each game keeps its own global memories and the global
persona is read back by taking the newest value of each trait independently.
That per-trait rule can assemble a global persona from two unrelated updates;
it is kept as-is.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional, Protocol

import redis

from echorun.config.settings import Settings
from echorun.engine.traits import persona_text
from echorun.models.persona import (
    TRAIT_NAMES,
    PersonaScope,
    PersonaSnapshot,
    ScopeKey,
    TraitVector,
)

logger = logging.getLogger(__name__)

MEMORY_PREFIX = "persona:memory:"
USER_NODE_PREFIX = "persona:user:"
TRAIT_MEMORY_TYPE = "trait_memory"
UNKNOWN_GAME = "unknown"


class PersonaStore(Protocol):
    """What the coordinator needs from persistence."""

    def fetch_latest_traits(self, player_id: str, key: ScopeKey) -> Optional[TraitVector]:
        ...

    def persist(
        self,
        player_id: str,
        key: ScopeKey,
        snapshot: PersonaSnapshot,
        metadata: Optional[dict[str, Any]] = None,
    ) -> int:
        ...


def _get_redis(settings: Settings) -> redis.Redis:
    return redis.Redis.from_url(settings.redis_url, decode_responses=True)


def user_node_key(player_id: str) -> str:
    return f"{USER_NODE_PREFIX}{player_id}"


def _id_part(value: str) -> str:
    """Escape '%' and '_' so a free-form value never contains the separator."""
    return value.replace("%", "%25").replace("_", "%5F")


def memory_id(player_id: str, key: ScopeKey, trait_name: str, game_id: Optional[str] = None) -> str:
    """Stable id of one trait memory.

    e.g. memory_p1_game_echorun_aggression, memory_p1_global_echorun_stealth

    Player, scope and game ids are escaped, so '_' separates fields and only
    the trailing trait name may contain it.
    """
    parts = [_id_part(player_id), key.scope.value]
    if key.scope == PersonaScope.GLOBAL:
        parts.append(_id_part(game_id or UNKNOWN_GAME))
    else:
        parts.append(_id_part(key.scope_id))
    return "_".join(["memory", *parts, trait_name])


def _hash_safe(mapping: dict[str, Any]) -> dict[str, Any]:
    """Drop None values and JSON-encode containers for HSET."""
    out = {}
    for k, v in mapping.items():
        if v is None:
            continue
        if isinstance(v, bool):
            v = int(v)
        elif isinstance(v, (dict, list, tuple)):
            v = json.dumps(v)
        out[k] = v
    return out


def aggregate_traits(memories: list[dict[str, Any]]) -> tuple[dict[str, float], dict[str, dict[str, Any]]]:
    """Pick the newest memory for each trait.

    Returns (values, winners): trait name -> value, trait name -> memory.
    Ties on ``updated_at`` go to the memory seen last.
    """
    values: dict[str, float] = {}
    winners: dict[str, dict[str, Any]] = {}
    for mem in memories:
        name = mem.get("trait_name")
        raw_value = mem.get("trait_value")
        if name not in TRAIT_NAMES or raw_value is None:
            continue
        try:
            value = float(raw_value)
        except (TypeError, ValueError):
            logger.debug("Skipping memory %s with bad trait_value %r", mem.get("id"), raw_value)
            continue
        updated_at = mem.get("updated_at", "")
        current = winners.get(name)
        if current is None or updated_at >= current.get("updated_at", ""):
            values[name] = value
            winners[name] = mem
    return values, winners


def _complete(values: dict[str, float]) -> Optional[TraitVector]:
    if not all(name in values for name in TRAIT_NAMES):
        return None
    return TraitVector.from_dict(values)


class RedisPersonaStore:
    """Persona persistence on a synchronous redis-py client."""

    def __init__(self, r: redis.Redis):
        self.r = r

    @classmethod
    def from_settings(cls, settings: Settings) -> RedisPersonaStore:
        return cls(_get_redis(settings))

    def ping(self) -> bool:
        try:
            return bool(self.r.ping())
        except redis.RedisError:
            return False

    # -- Reads --

    def player_memories(self, player_id: str) -> list[dict[str, Any]]:
        """All trait memories linked to the player's user node."""
        ids = sorted(self.r.smembers(user_node_key(player_id)))
        if not ids:
            return []
        pipe = self.r.pipeline(transaction=False)
        for mid in ids:
            pipe.hgetall(f"{MEMORY_PREFIX}{mid}")
        memories = []
        for mid, data in zip(ids, pipe.execute()):
            if not data:
                continue
            if data.get("type") != TRAIT_MEMORY_TYPE or data.get("player_id") != player_id:
                continue
            memories.append({"id": mid, **data})
        return memories

    def memory(self, mid: str) -> Optional[dict[str, Any]]:
        """One stored memory hash by id, or None.  Redis errors propagate."""
        data = self.r.hgetall(f"{MEMORY_PREFIX}{mid}")
        if not data:
            return None
        return {"id": mid, **data}

    def fetch_latest_traits(self, player_id: str, key: ScopeKey) -> Optional[TraitVector]:
        """Latest complete trait vector for (player, scope), or None.

        Lookup failures are logged and reported as None.
        """
        try:
            memories = self.player_memories(player_id)
        except redis.RedisError as exc:
            logger.warning("Trait lookup failed for %s/%s: %s", player_id, key.slug, exc)
            return None
        values, _ = aggregate_traits([m for m in memories if key.matches(m)])
        return _complete(values)

    def fetch_personas(
        self,
        player_id: str,
        scope: str = "any",
        game_id: Optional[str] = None,
        genre_id: Optional[str] = None,
        platform_id: Optional[str] = None,
        limit: int = 10,
    ) -> dict[str, Any]:
        """Group a player's memories into one persona per scope.

        ``scope`` is a PersonaScope value or ``"any"``.  Each id filter given
        keeps only memories whose field equals it.  Personas missing a trait
        are dropped, and ``limit`` counts personas rather than memories.
        """
        if scope != "any":
            scope = PersonaScope(scope).value
        filters = {"game_id": game_id, "genre_id": genre_id, "platform_id": platform_id}

        groups: dict[str, list[dict[str, Any]]] = {}
        for mem in self.player_memories(player_id):
            if scope != "any" and mem.get("persona_scope") != scope:
                continue
            if any(want and mem.get(name) != want for name, want in filters.items()):
                continue
            key = ScopeKey.from_metadata(mem)
            groups.setdefault(key.slug, []).append(mem)

        items = []
        for slug, memories in groups.items():
            values, winners = aggregate_traits(memories)
            traits = _complete(values)
            if traits is None:
                logger.debug("Dropping incomplete persona %s for %s", slug, player_id)
                continue
            newest = max(winners.values(), key=lambda m: m.get("updated_at", ""))
            key = ScopeKey.from_metadata(newest)
            updated_at = newest.get("updated_at", "")
            items.append({
                "id": newest["id"],
                "metadata": {
                    "type": "persona",
                    "player_id": player_id,
                    **key.metadata(),
                    "updated_at": updated_at,
                },
                "persona": PersonaSnapshot(
                    player_id=player_id,
                    traits=traits,
                    persona_text=persona_text(traits),
                    top_signals=json.loads(newest.get("top_signals") or "[]"),
                    updated_at=updated_at,
                ).to_dict(),
            })

        items.sort(key=lambda item: item["metadata"]["updated_at"], reverse=True)
        items = items[:limit]
        return {"total": len(items), "items": items, "user_node": player_id}

    # -- Writes --

    def trait_memories(
        self,
        player_id: str,
        key: ScopeKey,
        snapshot: PersonaSnapshot,
        metadata: Optional[dict[str, Any]] = None,
    ) -> list[tuple[str, dict[str, Any]]]:
        """Build (memory_id, fields) for each trait of a snapshot."""
        metadata = dict(metadata or {})
        game_id = metadata.get("game_id")
        memories = []
        for name in TRAIT_NAMES:
            value = getattr(snapshot.traits, name)
            fields = {
                **metadata,
                "type": TRAIT_MEMORY_TYPE,
                "player_id": player_id,
                "trait_name": name,
                "trait_value": value,
                **key.metadata(),
                "updated_at": snapshot.updated_at,
                "content": f"{name.replace('_', ' ').title()}: {value:.2f}",
                "persona_text": snapshot.persona_text,
                "top_signals": snapshot.top_signals,
            }
            memories.append((memory_id(player_id, key, name, game_id), _hash_safe(fields)))
        return memories

    def persist(
        self,
        player_id: str,
        key: ScopeKey,
        snapshot: PersonaSnapshot,
        metadata: Optional[dict[str, Any]] = None,
    ) -> int:
        """Create-or-replace the snapshot's trait memories.  Raises on failure."""
        memories = self.trait_memories(player_id, key, snapshot, metadata)
        pipe = self.r.pipeline(transaction=False)
        for mid, fields in memories:
            mkey = f"{MEMORY_PREFIX}{mid}"
            # Replace, so fields from an older run never linger
            pipe.delete(mkey)
            pipe.hset(mkey, mapping=fields)
            pipe.sadd(user_node_key(player_id), mid)
        pipe.execute()
        logger.debug("Persisted %d trait memories for %s/%s", len(memories), player_id, key.slug)
        return len(memories)
