from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List

import pygame
import yaml

PALETTE_POLICIES = ("raise", "cycle")


class ConfigurationError(ValueError):
    """Raised for invalid simulation settings and for an exhausted food palette."""


@dataclass
class HerbivoreConfig:
    size: float = 10.0
    color: str = "#999999"
    color_variance: float = 25.0


@dataclass
class FoodConfig:
    amount: int = 20
    radius: float = 20.0
    sides: int = 3
    position_jitter: float = 90.0
    color_variance: float = 0.0
    palette: List[str] = field(default_factory=lambda: ["#dd1111", "#11dd11", "#1111dd"])
    palette_policy: str = "raise"


@dataclass
class SimulationConfig:
    world_size: float = 600.0
    time_step: float = 1.0 / 100.0
    duration: float = 600.0
    hungry_threshold: float = 0.4
    death_threshold: float = 12.0
    initial_population: int = 60
    initial_food: int = 2
    reproduction_interval: int = 5
    wall_thickness: float = 10.0
    seed: int = 42
    config_version: str = "v1"
    herbivore: HerbivoreConfig = field(default_factory=HerbivoreConfig)
    food: FoodConfig = field(default_factory=FoodConfig)

    @staticmethod
    def from_yaml(path: Path) -> "SimulationConfig":
        data = yaml.safe_load(Path(path).read_text()) or {}
        return load_config(data)

    @property
    def total_ticks(self) -> int:
        return int(round(self.duration / self.time_step))

    def validate(self) -> "SimulationConfig":
        if self.time_step <= 0.0:
            raise ConfigurationError(f"time_step must be positive, got {self.time_step}")
        if self.duration <= 0.0:
            raise ConfigurationError(f"duration must be positive, got {self.duration}")
        if self.initial_population < 0 or self.initial_food < 0:
            raise ConfigurationError(
                f"initial counts must be >= 0, got population={self.initial_population} food={self.initial_food}"
            )
        if self.hungry_threshold > self.death_threshold:
            raise ConfigurationError(
                f"hungry_threshold {self.hungry_threshold} exceeds death_threshold {self.death_threshold}"
            )
        if self.herbivore.size <= 0.0:
            raise ConfigurationError(f"herbivore.size must be positive, got {self.herbivore.size}")
        if self.world_size <= 2 * self.herbivore.size:
            raise ConfigurationError(
                f"world_size {self.world_size} leaves no room for herbivores of size {self.herbivore.size}"
            )
        if self.reproduction_interval < 1:
            raise ConfigurationError(f"reproduction_interval must be >= 1, got {self.reproduction_interval}")
        if self.food.amount < 1:
            raise ConfigurationError(f"food.amount must be >= 1, got {self.food.amount}")
        if self.food.sides < 3:
            raise ConfigurationError(f"food.sides must be >= 3, got {self.food.sides}")
        if self.food.palette_policy not in PALETTE_POLICIES:
            raise ConfigurationError(
                f"Unknown palette policy {self.food.palette_policy!r}; expected one of {PALETTE_POLICIES}"
            )
        if not self.food.palette:
            raise ConfigurationError("food.palette must name at least one colour")
        for color in [self.herbivore.color, *self.food.palette]:
            try:
                pygame.Color(color)
            except ValueError as exc:
                raise ConfigurationError(f"Invalid colour {color!r}") from exc
        return self


@dataclass
class AppConfig:
    simulation: SimulationConfig = field(default_factory=SimulationConfig)
    broadcast_interval: int = 2


def load_config(raw: dict) -> SimulationConfig:
    herbivore = HerbivoreConfig(**(raw.get("herbivore") or {}))
    food_raw = dict(raw.get("food") or {})
    if "palette" in food_raw:
        food_raw["palette"] = [str(color) for color in food_raw["palette"]]
    food = FoodConfig(**food_raw)
    sim_values = {k: v for k, v in raw.items() if k not in {"herbivore", "food"}}
    return SimulationConfig(herbivore=herbivore, food=food, **sim_values).validate()
