from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class TickMetrics:
    tick: int
    population: int
    foods: int
    births: int
    deaths: int
    feedings: int
    food_replacements: int
    average_hungry: float
    average_feeded: float
    tick_duration_ms: float = 0.0
