from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, List

from .metrics import TickMetrics


@dataclass(slots=True)
class Snapshot:
    tick: int
    metrics: TickMetrics
    herbivores: List[Dict[str, Any]]
    foods: List[Dict[str, Any]]
    walls: List[Dict[str, Any]]
    world: "SnapshotWorld"
    metadata: "SnapshotMetadata"

    def to_message(self) -> Dict[str, Any]:
        """Websocket envelope: {"type": "snapshot", "tick", "payload"}."""
        return {"type": "snapshot", "tick": self.tick, "payload": asdict(self)}


@dataclass(slots=True)
class SnapshotWorld:
    size: float
    finished: bool


@dataclass(slots=True)
class SnapshotMetadata:
    world_size: float
    sim_dt: float
    tick_rate: float
    seed: int
    config_version: str
