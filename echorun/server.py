"""FastAPI server: gameplay ingestion and persona queries.

Routes:
- GET  /health                  liveness + Redis reachability (no auth)
- POST /api/personas/save       blend one run into every applicable persona scope
- GET  /api/personas            list a player's personas, filterable by scope/ids
- GET  /api/personas/memory/{id} one stored trait memory, by the id listings expose
- GET  /api/next-run/knobs      difficulty knobs for the next run from a persona
- POST /api/traits/preview      run the trait engine without persisting anything

When API_KEYS is configured every /api route requires a matching X-API-Key.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from typing import Any, Optional

import redis
from fastapi import APIRouter, Depends, FastAPI, Header, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware

from echorun.config.settings import Settings
from echorun.engine.coordinator import GameplayRecord, ScopeBlendingCoordinator
from echorun.engine.explanations import generate_trait_explanations
from echorun.engine.policy import compute_knobs
from echorun.engine.traits import compute_traits, persona_text, top_signals
from echorun.models.payload import GameContext, PreviewRequest, SaveRequest, ServerInput
from echorun.models.persona import PersonaScope, ScopeKey, TraitVector
from echorun.store.persona_store import RedisPersonaStore
from echorun.store.run_store import run_from_payload

logger = logging.getLogger(__name__)

app = FastAPI(title="EchoRun Persona", description="Gameplay-derived player personas")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Shared State ─────────────────────────────────────────────────────────

_settings = Settings.from_env()

DEFAULT_PERSONA_TEXT = "New player - default balanced traits"


def _get_redis() -> redis.Redis:
    return redis.Redis.from_url(_settings.redis_url, decode_responses=True)


def _get_store() -> RedisPersonaStore:
    return RedisPersonaStore(_get_redis())


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def require_api_key(x_api_key: Optional[str] = Header(default=None)) -> None:
    if not _settings.api_keys:
        return
    if not x_api_key or x_api_key not in _settings.api_keys:
        raise HTTPException(status_code=401, detail={"error": "invalid_api_key"})


def _scope_from_query(
    scope: str,
    game_id: Optional[str],
    genre_id: Optional[str],
    platform_id: Optional[str],
) -> ScopeKey:
    """Build a ScopeKey from query params; raises ValueError on bad input."""
    ids = {
        PersonaScope.GLOBAL: "",
        PersonaScope.GAME: game_id or "",
        PersonaScope.GENRE: genre_id or "",
        PersonaScope.PLATFORM: platform_id or "",
    }
    kind = PersonaScope(scope)
    return ScopeKey(kind, ids[kind])


def _record_from_payload(payload: ServerInput) -> GameplayRecord:
    ctx = payload.game_context or GameContext()
    return GameplayRecord(
        player_id=payload.player_id,
        stats=payload.stats.to_stats(),
        game_id=ctx.game_id,
        genre_ids=list(ctx.genre_ids or []),
        platform_ids=list(ctx.platform_ids or []),
        metadata={
            "run_index": payload.run_index,
            "run_result": payload.run_outcome.result,
            "run_path": payload.run_outcome.path,
            "completed_at": payload.completed_at,
            "build_version": ctx.build_version,
            "game_title": ctx.game_title,
        },
    )


def _default_game_input(
    player_id: str,
    game_id: Optional[str] = None,
    genre_id: Optional[str] = None,
    platform_id: Optional[str] = None,
) -> dict[str, Any]:
    """Neutral persona structure returned for players with no history."""
    now = _now_iso()

    def _entry() -> dict[str, Any]:
        return {
            "traits": TraitVector.neutral().to_dict(),
            "persona_text": DEFAULT_PERSONA_TEXT,
            "top_signals": [],
            "source": {"provider": "default", "snapshot_at": now},
        }

    persona: dict[str, Any] = {"global": _entry()}
    if game_id:
        persona["game"] = {game_id: _entry()}
    if genre_id:
        persona["genre"] = {genre_id: _entry()}
    if platform_id:
        persona["platform"] = {platform_id: _entry()}

    return {
        "schema_version": "1.0",
        "player_id": player_id,
        "game_id": game_id,
        "generated_at": now,
        "persona": persona,
    }


# ── Health ───────────────────────────────────────────────────────────────

@app.get("/health")
async def health():
    return {"status": "ok", "redis": _get_store().ping(), "timestamp": _now_iso()}


api = APIRouter(prefix="/api", dependencies=[Depends(require_api_key)])


# ── Persona Routes ───────────────────────────────────────────────────────

@api.post("/personas/save")
async def save_persona(req: SaveRequest):
    """Blend one completed run into the player's personas.

    200 when at least one scope was persisted (partial failures listed under
    ``failed``), 502 when every scope failed.
    """
    payload = req.server_input
    logger.info(
        "POST /api/personas/save player=%s run=%s game=%s",
        payload.player_id,
        payload.run_index,
        payload.game_context.game_id if payload.game_context else None,
    )

    r = _get_redis()
    if _settings.store_runs:
        try:
            run_from_payload(payload).to_redis(r)
        except redis.RedisError as exc:
            logger.warning("Run storage failed for %s: %s", payload.player_id, exc)

    coordinator = ScopeBlendingCoordinator(store=RedisPersonaStore(r), settings=_settings)
    result = coordinator.process_gameplay_record(_record_from_payload(payload))

    if result.succeeded == 0:
        logger.error("POST /api/personas/save: all scopes failed for %s", payload.player_id)
        raise HTTPException(
            status_code=502,
            detail={"error": "persona_save_failed", "failed": result.failed},
        )
    return result.to_dict()


@api.get("/personas")
async def list_personas(
    player_id: str = Query(""),
    scope: str = Query("any"),
    game_id: Optional[str] = Query(None),
    genre_id: Optional[str] = Query(None),
    platform_id: Optional[str] = Query(None),
    limit: Optional[int] = Query(None, ge=1),
):
    if not player_id:
        raise HTTPException(status_code=400, detail={"error": "player_id required"})
    if scope != "any" and scope not in {s.value for s in PersonaScope}:
        raise HTTPException(status_code=400, detail={"error": f"unknown scope {scope!r}"})

    try:
        result = _get_store().fetch_personas(
            player_id,
            scope=scope,
            game_id=game_id,
            genre_id=genre_id,
            platform_id=platform_id,
            limit=limit or _settings.persona_list_limit,
        )
    except redis.RedisError as exc:
        logger.error("GET /api/personas failed for %s: %s", player_id, exc)
        raise HTTPException(
            status_code=502,
            detail={"error": "persona_fetch_failed", "message": str(exc)},
        )

    if result["total"] == 0:
        logger.info("No personas for %s, returning default", player_id)
        return {
            "total": 0,
            "items": [],
            "default": _default_game_input(player_id, game_id, genre_id, platform_id),
            "message": "No personas found for this player. Returning default gameInput structure.",
        }
    return result


@api.get("/personas/memory/{memory_id}")
async def get_memory(memory_id: str):
    """Raw trait memory by id, as exposed in listing items."""
    logger.debug("GET /api/personas/memory/%s", memory_id)
    try:
        mem = _get_store().memory(memory_id)
    except redis.RedisError as exc:
        logger.error("GET /api/personas/memory/%s failed: %s", memory_id, exc)
        raise HTTPException(
            status_code=502,
            detail={"error": "memory_fetch_failed", "message": str(exc)},
        )
    if mem is None:
        raise HTTPException(status_code=404, detail={"error": "memory_not_found", "id": memory_id})
    return mem


@api.get("/next-run/knobs")
async def next_run_knobs(
    player_id: str = Query(""),
    mode: str = Query("fun"),
    intensity: Optional[str] = Query(None),
    scope: str = Query("global"),
    game_id: Optional[str] = Query(None),
    genre_id: Optional[str] = Query(None),
    platform_id: Optional[str] = Query(None),
):
    if not player_id:
        raise HTTPException(status_code=400, detail={"error": "player_id required"})
    mode = "challenge" if mode == "challenge" else "fun"
    try:
        level = float(intensity) if intensity is not None else 0.5
    except ValueError:
        level = 0.5
    if not math.isfinite(level):
        level = 0.5
    try:
        key = _scope_from_query(scope, game_id, genre_id, platform_id)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail={"error": str(exc)})

    traits = _get_store().fetch_latest_traits(player_id, key)
    source = "persona" if traits is not None else "default"
    knobs = compute_knobs(traits or TraitVector.neutral(), mode, level)
    return {
        "player_id": player_id,
        "scope": key.slug,
        "mode": mode,
        "intensity": level,
        "source": source,
        "knobs": knobs.to_dict(),
    }


@api.post("/traits/preview")
async def preview_traits(req: PreviewRequest):
    """Trait engine dry run: nothing is read from or written to Redis."""
    stats = req.stats.to_stats()
    previous = req.previous.to_traits() if req.previous else None
    traits = compute_traits(stats, previous)
    return {
        "traits": traits.to_dict(),
        "persona_text": persona_text(traits),
        "top_signals": top_signals(stats),
        "explanations": generate_trait_explanations(stats, previous, traits),
    }


app.include_router(api)
