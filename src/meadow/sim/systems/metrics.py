from __future__ import annotations

from typing import Sequence

from ..core.entities import Food, Herbivore
from ..types.metrics import TickMetrics
from .lifecycle import TickCounters


def create_metrics(
    tick: int,
    counters: TickCounters,
    herbivores: Sequence[Herbivore],
    foods: Sequence[Food],
    duration_ms: float,
) -> TickMetrics:
    population = len(herbivores)
    if population:
        average_hungry = sum(h.hungry for h in herbivores) / population
        average_feeded = sum(h.feeded for h in herbivores) / population
    else:
        average_hungry = 0.0
        average_feeded = 0.0
    return TickMetrics(
        tick=tick,
        population=population,
        foods=len(foods),
        births=counters.births,
        deaths=counters.deaths,
        feedings=counters.feedings,
        food_replacements=counters.food_replacements,
        average_hungry=average_hungry,
        average_feeded=average_feeded,
        tick_duration_ms=duration_ms,
    )
