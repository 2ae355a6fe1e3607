"""Scope Blending Coordinator.

Runs the trait engine once per applicable scope for a single gameplay record:

    global                      always
    game:{game_id}              record's game_id, else the configured default
    genre:{genre_ids[0]}        first genre only
    platform:{platform_ids[0]}  first platform only

Each scope is an independent read -> compute -> write sequence against the
store.  A failed read falls back to the neutral vector; a failed write is
reported for that scope and never affects the others.  Two records racing on
the same (player, scope) resolve as last-write-wins.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from echorun.config.settings import Settings
from echorun.engine.explanations import generate_trait_explanations
from echorun.engine.traits import compute_traits, persona_text, top_signals
from echorun.models.persona import PersonaSnapshot, ScopeKey, TraitVector, utc_now_iso
from echorun.models.stats import GameplayStats
from echorun.store.persona_store import PersonaStore

logger = logging.getLogger(__name__)


@dataclass
class GameplayRecord:
    """The slice of a client payload the coordinator consumes."""

    player_id: str
    stats: GameplayStats
    game_id: Optional[str] = None
    genre_ids: list[str] = field(default_factory=list)
    platform_ids: list[str] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)  # stored alongside each trait


@dataclass
class ProcessResult:
    player_id: str
    snapshots: dict[str, PersonaSnapshot] = field(default_factory=dict)
    failed: dict[str, str] = field(default_factory=dict)
    explanations: dict[str, list[str]] = field(default_factory=dict)
    memories_written: int = 0

    @property
    def succeeded(self) -> int:
        return len(self.snapshots)

    @property
    def failed_count(self) -> int:
        return len(self.failed)

    def to_dict(self) -> dict[str, Any]:
        return {
            "player_id": self.player_id,
            "user_node": self.player_id,
            "scopes_succeeded": self.succeeded,
            "scopes_failed": self.failed_count,
            "memories_created": self.memories_written,
            "snapshots": {slug: snap.to_dict() for slug, snap in self.snapshots.items()},
            "failed": dict(self.failed),
            "explanations": dict(self.explanations),
        }


@dataclass
class ScopeBlendingCoordinator:
    store: PersonaStore
    settings: Settings = field(default_factory=Settings)

    def resolve_game_id(self, record: GameplayRecord) -> Optional[str]:
        return record.game_id or self.settings.default_game_id or None

    def applicable_scopes(self, record: GameplayRecord) -> list[ScopeKey]:
        scopes = [ScopeKey.global_()]
        game_id = self.resolve_game_id(record)
        if game_id:
            scopes.append(ScopeKey.game(game_id))
        if record.genre_ids and record.genre_ids[0]:
            scopes.append(ScopeKey.genre(record.genre_ids[0]))
        if record.platform_ids and record.platform_ids[0]:
            scopes.append(ScopeKey.platform(record.platform_ids[0]))
        return scopes

    def previous_traits(self, player_id: str, key: ScopeKey) -> Optional[TraitVector]:
        """Stored traits for the scope, or None when absent or unreadable."""
        try:
            return self.store.fetch_latest_traits(player_id, key)
        except Exception as exc:
            logger.warning("Treating %s/%s as new: lookup failed (%s)", player_id, key.slug, exc)
            return None

    def build_snapshot(
        self,
        player_id: str,
        stats: GameplayStats,
        previous: TraitVector,
        updated_at: str,
    ) -> PersonaSnapshot:
        traits = compute_traits(stats, previous)
        return PersonaSnapshot(
            player_id=player_id,
            traits=traits,
            persona_text=persona_text(traits),
            top_signals=top_signals(stats),
            updated_at=updated_at,
        )

    def process_gameplay_record(self, record: GameplayRecord) -> ProcessResult:
        """Blend and persist one record across all of its scopes."""
        result = ProcessResult(player_id=record.player_id)
        updated_at = utc_now_iso()
        metadata = {**record.metadata, "game_id": self.resolve_game_id(record)}

        for key in self.applicable_scopes(record):
            stored = self.previous_traits(record.player_id, key)
            # First save still blends, against the neutral vector
            effective = stored if stored is not None else TraitVector.neutral()
            snapshot = self.build_snapshot(record.player_id, record.stats, effective, updated_at)
            explanations = generate_trait_explanations(record.stats, stored, snapshot.traits)

            try:
                written = self.store.persist(record.player_id, key, snapshot, metadata)
            except Exception as exc:
                logger.exception("Persist failed for %s/%s", record.player_id, key.slug)
                result.failed[key.slug] = str(exc) or exc.__class__.__name__
                continue

            result.snapshots[key.slug] = snapshot
            result.explanations[key.slug] = explanations
            result.memories_written += written
            logger.debug(
                "Updated %s/%s (history=%s): %s",
                record.player_id, key.slug, stored is not None, snapshot.traits,
            )

        logger.info(
            "Processed record for %s: %d scope(s) saved, %d failed",
            record.player_id, result.succeeded, result.failed_count,
        )
        return result
