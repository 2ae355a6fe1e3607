"""Persona models: trait vectors, snapshots and scope keys.

A persona is tracked independently at four scopes.  ``ScopeKey`` is the
tagged identifier for one of them; everything that turns a key into storage
fields, key slugs or filters goes through ``SCOPE_ID_FIELDS`` so that a new
scope has to be registered there before any of those sites will accept it.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

TRAIT_NAMES: tuple[str, ...] = (
    "aggression",
    "stealth",
    "curiosity",
    "puzzle_affinity",
    "independence",
    "resilience",
    "goal_focus",
)

NEUTRAL_TRAIT_VALUE: float = 0.5


def trait_label(name: str) -> str:
    """'puzzle_affinity' -> 'Puzzle Affinity'."""
    return " ".join(part.capitalize() for part in name.split("_"))


@dataclass(frozen=True)
class TraitVector:
    aggression: float
    stealth: float
    curiosity: float
    puzzle_affinity: float
    independence: float
    resilience: float
    goal_focus: float

    @classmethod
    def neutral(cls) -> TraitVector:
        """Default vector used as the blend partner when no history exists."""
        return cls(**{name: NEUTRAL_TRAIT_VALUE for name in TRAIT_NAMES})

    def to_dict(self) -> dict[str, float]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TraitVector:
        return cls(**{name: float(data[name]) for name in TRAIT_NAMES})


# ── Scopes ───────────────────────────────────────────────────────────────


class PersonaScope(str, Enum):
    GLOBAL = "global"
    GAME = "game"
    GENRE = "genre"
    PLATFORM = "platform"


# Metadata field carrying the scope's identifier (None for global)
SCOPE_ID_FIELDS: dict[PersonaScope, Optional[str]] = {
    PersonaScope.GLOBAL: None,
    PersonaScope.GAME: "game_id",
    PersonaScope.GENRE: "genre_id",
    PersonaScope.PLATFORM: "platform_id",
}


def _id_field_for(scope: PersonaScope) -> Optional[str]:
    try:
        return SCOPE_ID_FIELDS[scope]
    except KeyError:
        raise ValueError(f"Unhandled persona scope: {scope!r}") from None


@dataclass(frozen=True)
class ScopeKey:
    """One of: global | game(game_id) | genre(genre_id) | platform(platform_id)."""

    scope: PersonaScope
    scope_id: str = ""

    def __post_init__(self) -> None:
        scope = PersonaScope(self.scope)
        object.__setattr__(self, "scope", scope)
        if _id_field_for(scope) is None:
            if self.scope_id:
                raise ValueError("global scope takes no identifier")
        elif not self.scope_id:
            raise ValueError(f"{scope.value} scope requires an identifier")

    @classmethod
    def global_(cls) -> ScopeKey:
        return cls(PersonaScope.GLOBAL)

    @classmethod
    def game(cls, game_id: str) -> ScopeKey:
        return cls(PersonaScope.GAME, game_id)

    @classmethod
    def genre(cls, genre_id: str) -> ScopeKey:
        return cls(PersonaScope.GENRE, genre_id)

    @classmethod
    def platform(cls, platform_id: str) -> ScopeKey:
        return cls(PersonaScope.PLATFORM, platform_id)

    @property
    def id_field(self) -> Optional[str]:
        return _id_field_for(self.scope)

    @property
    def slug(self) -> str:
        """'global', 'game:echorun', 'genre:platformer', ..."""
        if self.id_field is None:
            return self.scope.value
        return f"{self.scope.value}:{self.scope_id}"

    def metadata(self) -> dict[str, str]:
        """Storage metadata identifying this scope."""
        meta = {"persona_scope": self.scope.value}
        if self.id_field is not None:
            meta[self.id_field] = self.scope_id
        return meta

    def matches(self, metadata: dict[str, Any]) -> bool:
        """True when a stored record's metadata belongs to this scope."""
        if metadata.get("persona_scope") != self.scope.value:
            return False
        if self.id_field is None:
            return True
        return metadata.get(self.id_field) == self.scope_id

    @classmethod
    def from_metadata(cls, metadata: dict[str, Any]) -> ScopeKey:
        scope = PersonaScope(metadata.get("persona_scope", PersonaScope.GLOBAL.value))
        id_field = _id_field_for(scope)
        return cls(scope, metadata.get(id_field, "") if id_field else "")


# ── Snapshot ─────────────────────────────────────────────────────────────


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class PersonaSnapshot:
    player_id: str
    traits: TraitVector
    persona_text: str
    top_signals: list[str] = field(default_factory=list)
    updated_at: str = field(default_factory=utc_now_iso)

    def to_dict(self) -> dict[str, Any]:
        return {
            "player_id": self.player_id,
            "traits": self.traits.to_dict(),
            "persona_text": self.persona_text,
            "top_signals": list(self.top_signals),
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PersonaSnapshot:
        signals = data.get("top_signals") or []
        if isinstance(signals, str):
            signals = json.loads(signals)
        return cls(
            player_id=data["player_id"],
            traits=TraitVector.from_dict(data["traits"]),
            persona_text=data.get("persona_text", ""),
            top_signals=list(signals),
            updated_at=data.get("updated_at") or utc_now_iso(),
        )
