"""Raw run records in Redis.

    run:{player_id}:{run_index}   HASH  one completed run
    runs:{player_id}              ZSET  run_index -> run_index
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

import redis

RUN_PREFIX = "run:"
RUN_INDEX_PREFIX = "runs:"

_JSON_FIELDS = ("stats", "config", "events_digest")


@dataclass
class RunRecord:
    player_id: str
    session_id: str
    run_index: int
    completed_at: str               # ISO 8601
    result: str                     # win | loss
    path: str                       # combat | puzzle | exploration
    stats: dict = field(default_factory=dict)
    config: dict = field(default_factory=dict)
    events_digest: list = field(default_factory=list)
    created_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> dict:
        d = asdict(self)
        for name in _JSON_FIELDS:
            d[name] = json.dumps(d[name])
        d["run_index"] = int(self.run_index)
        return d

    @classmethod
    def from_dict(cls, data: dict) -> RunRecord:
        data = dict(data)
        for name in _JSON_FIELDS:
            if isinstance(data.get(name), str):
                data[name] = json.loads(data[name])
        if isinstance(data.get("run_index"), str):
            data["run_index"] = int(data["run_index"])
        return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})

    def to_redis(self, r: redis.Redis) -> None:
        """Persist the run and index it under the player."""
        key = f"{RUN_PREFIX}{self.player_id}:{self.run_index}"
        pipe = r.pipeline(transaction=False)
        pipe.delete(key)
        pipe.hset(key, mapping=self.to_dict())
        pipe.zadd(f"{RUN_INDEX_PREFIX}{self.player_id}", {str(self.run_index): self.run_index})
        pipe.execute()

    @classmethod
    def from_redis(cls, r: redis.Redis, player_id: str, run_index: int) -> Optional[RunRecord]:
        data = r.hgetall(f"{RUN_PREFIX}{player_id}:{run_index}")
        if not data:
            return None
        return cls.from_dict(data)


def latest_runs(r: redis.Redis, player_id: str, n: int = 10) -> list[RunRecord]:
    """Newest runs first, by run_index."""
    indexes = r.zrevrange(f"{RUN_INDEX_PREFIX}{player_id}", 0, max(n, 1) - 1)
    runs = []
    for idx in indexes:
        run = RunRecord.from_redis(r, player_id, int(idx))
        if run:
            runs.append(run)
    return runs


def run_from_payload(payload: Any) -> RunRecord:
    """Build a RunRecord from a validated ``ServerInput``."""
    return RunRecord(
        player_id=payload.player_id,
        session_id=payload.session_id,
        run_index=payload.run_index,
        completed_at=payload.completed_at,
        result=payload.run_outcome.result,
        path=payload.run_outcome.path,
        stats=payload.stats.model_dump(exclude_none=True),
        config=payload.config_used.model_dump() if payload.config_used else {},
        events_digest=[e.model_dump() for e in payload.events_digest or []],
    )
