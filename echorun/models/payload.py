"""Request schemas for the HTTP layer.

Everything a client sends is validated here before any trait computation
happens; the engine itself assumes well-formed numbers.
"""

from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from echorun.models.persona import TraitVector
from echorun.models.stats import GameplayStats


class StatsPayload(BaseModel):
    model_config = ConfigDict(allow_inf_nan=False)

    time_s: float
    deaths: float
    retries: float
    distance_traveled: float
    jumps: float
    hint_offers: float
    hints_used: float
    riddles_attempted: float
    riddles_correct: float
    combats_initiated: float
    combats_won: float
    collectibles_found: float
    mashing_intensity: Optional[float] = Field(default=None, ge=0.0, le=1.0)

    def to_stats(self) -> GameplayStats:
        return GameplayStats(**self.model_dump())


class GameContext(BaseModel):
    game_id: Optional[str] = None
    game_title: Optional[str] = None
    genre_ids: Optional[list[str]] = None
    platform_ids: Optional[list[str]] = None
    build_version: Optional[str] = None

    @property
    def primary_genre(self) -> Optional[str]:
        """Only the first genre drives persona scoping."""
        return self.genre_ids[0] if self.genre_ids else None

    @property
    def primary_platform(self) -> Optional[str]:
        return self.platform_ids[0] if self.platform_ids else None


class RunOutcome(BaseModel):
    result: Literal["win", "loss"]
    path: Literal["combat", "puzzle", "exploration"]


class KnobsPayload(BaseModel):
    enemy_count: float
    enemy_speed: float
    puzzle_gate_ratio: float
    collectible_density: float
    hint_delay_ms: float
    breadcrumb_brightness: float


class ConfigUsed(BaseModel):
    mode: Literal["fun", "challenge"]
    knobs: KnobsPayload
    layout_seed: str


class EventCount(BaseModel):
    type: str
    count: float


class ServerInput(BaseModel):
    """One completed run as reported by a game client."""

    schema_version: str
    player_id: str = Field(min_length=1)
    session_id: str
    run_index: int = Field(gt=0)
    completed_at: str  # ISO 8601
    game_context: Optional[GameContext] = None
    run_outcome: RunOutcome
    stats: StatsPayload
    events_digest: Optional[list[EventCount]] = None
    config_used: ConfigUsed
    performance_summary: Optional[Any] = None


class SaveRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    server_input: ServerInput = Field(alias="serverInput")


class TraitsPayload(BaseModel):
    model_config = ConfigDict(allow_inf_nan=False)

    aggression: float = Field(ge=0.0, le=1.0)
    stealth: float = Field(ge=0.0, le=1.0)
    curiosity: float = Field(ge=0.0, le=1.0)
    puzzle_affinity: float = Field(ge=0.0, le=1.0)
    independence: float = Field(ge=0.0, le=1.0)
    resilience: float = Field(ge=0.0, le=1.0)
    goal_focus: float = Field(ge=0.0, le=1.0)

    def to_traits(self) -> TraitVector:
        return TraitVector(**self.model_dump())


class PreviewRequest(BaseModel):
    stats: StatsPayload
    previous: Optional[TraitsPayload] = None
