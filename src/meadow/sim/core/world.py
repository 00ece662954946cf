from __future__ import annotations

from dataclasses import dataclass, field
from time import perf_counter
from typing import Any, Dict, List, Optional

from ..systems import metrics as metrics_system
from ..systems.lifecycle import TickCounters, apply_life_cycle
from ..types.metrics import TickMetrics
from ..types.snapshot import Snapshot, SnapshotMetadata, SnapshotWorld
from .config import SimulationConfig
from .entities import EntityFactory, Food, Herbivore
from .palette import ColorPalette
from .physics import Body, PhysicsWorld
from .rng import DeterministicRng, derive_stream_seed

_PALETTE_RNG_SALT = 0xC0107EA1F00D5EED


@dataclass
class SimulationState:
    config: SimulationConfig
    physics: PhysicsWorld
    factory: EntityFactory
    herbivores: List[Herbivore] = field(default_factory=list)
    foods: List[Food] = field(default_factory=list)
    walls: List[Body] = field(default_factory=list)
    tick: int = 0
    metrics: Optional[TickMetrics] = None

    @property
    def elapsed(self) -> float:
        return self.tick * self.config.time_step

    @property
    def finished(self) -> bool:
        return self.tick >= self.config.total_ticks


def create_state(config: SimulationConfig) -> SimulationState:
    config.validate()
    rng = DeterministicRng(config.seed)
    palette_rng = DeterministicRng(derive_stream_seed(config.seed, _PALETTE_RNG_SALT))
    palette = ColorPalette(config.food.palette, palette_rng, config.food.palette_policy)
    factory = EntityFactory(config, rng, palette)
    state = SimulationState(
        config=config,
        physics=PhysicsWorld(gravity=(0.0, 0.0), time_scale=1.0),
        factory=factory,
    )
    state.herbivores = [factory.create_herbivore() for _ in range(config.initial_population)]
    state.foods = [factory.create_food() for _ in range(config.initial_food)]
    state.walls = factory.create_walls()
    state.physics.add_all(h.body for h in state.herbivores)
    state.physics.add_all(f.body for f in state.foods)
    state.physics.add_all(state.walls)
    return state


def step(state: SimulationState) -> SimulationState:
    start = perf_counter()
    state.physics.update(1000.0 * state.config.time_step)
    state.tick += 1

    counters = TickCounters()
    survivors: List[Herbivore] = []
    for herbivore in state.herbivores:
        survivors.extend(apply_life_cycle(state, herbivore, counters))
    state.herbivores = survivors

    duration_ms = (perf_counter() - start) * 1000.0
    state.metrics = metrics_system.create_metrics(
        state.tick, counters, state.herbivores, state.foods, duration_ms
    )
    return state


def _body_vertices(body: Body) -> List[List[float]]:
    return [[round(v.x, 3), round(v.y, 3)] for v in body.world_vertices()]


class World:
    """Driver-owned wrapper around a SimulationState."""

    def __init__(self, config: SimulationConfig):
        self._config = config
        self._state = create_state(config)

    @property
    def config(self) -> SimulationConfig:
        return self._config

    @property
    def state(self) -> SimulationState:
        return self._state

    @property
    def herbivores(self) -> List[Herbivore]:
        return self._state.herbivores

    @property
    def foods(self) -> List[Food]:
        return self._state.foods

    @property
    def tick(self) -> int:
        return self._state.tick

    @property
    def finished(self) -> bool:
        return self._state.finished

    @property
    def metrics(self) -> TickMetrics | None:
        return self._state.metrics

    def reset(self) -> None:
        self._state = create_state(self._config)

    def step(self) -> TickMetrics:
        self._state = step(self._state)
        return self._state.metrics

    def snapshot(self, tick: int | None = None) -> Snapshot:
        state = self._state
        config = self._config
        tick = state.tick if tick is None else tick
        metrics = state.metrics or metrics_system.create_metrics(
            state.tick, TickCounters(), state.herbivores, state.foods, 0.0
        )
        herbivores: List[Dict[str, Any]] = [
            {
                "id": h.id,
                "x": h.position.x,
                "y": h.position.y,
                "vx": h.velocity.x,
                "vy": h.velocity.y,
                "angle": h.body.angle,
                "radius": h.body.circle_radius,
                "color": h.color,
                "hungry": h.hungry,
                "feeded": h.feeded,
                "target": h.target.id if h.target is not None else None,
                "vertices": _body_vertices(h.body),
            }
            for h in state.herbivores
        ]
        foods: List[Dict[str, Any]] = [
            {
                "id": f.id,
                "x": f.position.x,
                "y": f.position.y,
                "color": f.color,
                "amount": f.amount,
                "vertices": _body_vertices(f.body),
            }
            for f in state.foods
        ]
        walls = [{"color": wall.fill, "vertices": _body_vertices(wall)} for wall in state.walls]
        return Snapshot(
            tick=tick,
            metrics=metrics,
            herbivores=herbivores,
            foods=foods,
            walls=walls,
            world=SnapshotWorld(size=config.world_size, finished=state.finished),
            metadata=SnapshotMetadata(
                world_size=config.world_size,
                sim_dt=config.time_step,
                tick_rate=1.0 / config.time_step,
                seed=config.seed,
                config_version=config.config_version,
            ),
        )
