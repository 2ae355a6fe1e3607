#!/usr/bin/env python3
"""
Seed Redis – replay a few demo runs through the persona pipeline.

    demo run  ->  coordinator (blend per scope)  ->  Redis trait memories

Usage:
    python -m scripts.seed_redis [player_id]
"""

from __future__ import annotations

import logging
import sys
import time

# Ensure project root is on sys.path when run as a script
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from echorun.config.settings import Settings
from echorun.engine.coordinator import GameplayRecord, ScopeBlendingCoordinator
from echorun.models.stats import GameplayStats
from echorun.store.persona_store import RedisPersonaStore

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
)
log = logging.getLogger("seed_redis")

# A brawler who slowly turns into a puzzle solver
DEMO_RUNS: list[dict] = [
    {"time_s": 95, "deaths": 2, "retries": 1, "distance_traveled": 320, "jumps": 40,
     "hint_offers": 1, "hints_used": 1, "riddles_attempted": 0, "riddles_correct": 0,
     "combats_initiated": 4, "combats_won": 3, "collectibles_found": 1,
     "mashing_intensity": 0.8},
    {"time_s": 240, "deaths": 1, "retries": 0, "distance_traveled": 610, "jumps": 55,
     "hint_offers": 2, "hints_used": 0, "riddles_attempted": 2, "riddles_correct": 1,
     "combats_initiated": 2, "combats_won": 2, "collectibles_found": 3},
    {"time_s": 410, "deaths": 0, "retries": 0, "distance_traveled": 900, "jumps": 30,
     "hint_offers": 3, "hints_used": 0, "riddles_attempted": 4, "riddles_correct": 4,
     "combats_initiated": 0, "combats_won": 0, "collectibles_found": 6,
     "mashing_intensity": 0.1},
]


def main() -> None:
    t0 = time.perf_counter()
    player_id = sys.argv[1] if len(sys.argv) > 1 else "demo_player"

    settings = Settings.from_env()
    store = RedisPersonaStore.from_settings(settings)
    coordinator = ScopeBlendingCoordinator(store=store, settings=settings)

    # ------------------------------------------------------------------
    # 1. Replay runs
    # ------------------------------------------------------------------
    log.info("Seeding %d demo runs for %s ...", len(DEMO_RUNS), player_id)
    for i, stats in enumerate(DEMO_RUNS, start=1):
        record = GameplayRecord(
            player_id=player_id,
            stats=GameplayStats.from_dict(stats),
            genre_ids=["platformer", "puzzle"],
            platform_ids=["pc"],
            metadata={"run_index": i, "run_result": "win", "run_path": "combat"},
        )
        result = coordinator.process_gameplay_record(record)
        log.info(
            "  run %d -> %d scope(s) saved, %d failed",
            i, result.succeeded, result.failed_count,
        )
        if "global" in result.snapshots:
            log.info("    global: %s", result.snapshots["global"].persona_text)

    # ------------------------------------------------------------------
    # 2. Verification
    # ------------------------------------------------------------------
    listing = store.fetch_personas(player_id, limit=10)
    log.info("Stored personas: %d", listing["total"])
    for item in listing["items"]:
        meta = item["metadata"]
        log.info("    %-10s %s", meta["persona_scope"], item["persona"]["traits"])

    log.info("Done! Total time: %.1fs", time.perf_counter() - t0)


if __name__ == "__main__":
    main()
