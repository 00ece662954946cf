from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, List

from pygame.math import Vector2

from ..core.entities import Food, Herbivore
from ..utils.math2d import _safe_normalize
from .foraging import find_nearest_food

if TYPE_CHECKING:
    from ..core.world import SimulationState


@dataclass(slots=True)
class TickCounters:
    births: int = 0
    deaths: int = 0
    feedings: int = 0
    food_replacements: int = 0


def replace_food(state: SimulationState, food: Food) -> Food:
    replacement = state.factory.mutate_food(food)
    state.physics.remove(food.body)
    state.physics.add(replacement.body)
    state.foods = [item for item in state.foods if item.id != food.id] + [replacement]
    for herbivore in state.herbivores:
        if herbivore.target is food:
            herbivore.target = None
    return replacement


def feed(state: SimulationState, herbivore: Herbivore, counters: TickCounters) -> List[Herbivore]:
    """Consume one unit of the current target; returns any child born from the meal."""
    food = herbivore.target
    herbivore.hungry = 0
    herbivore.feeded += 1
    food.amount -= 1
    counters.feedings += 1

    if food.amount <= 0:
        replace_food(state, food)
        herbivore.target = None
        counters.food_replacements += 1
    else:
        scale = food.amount / (food.amount + 1)
        state.physics.scale(food.body, scale, scale)

    if herbivore.feeded % state.config.reproduction_interval == 0:
        child = state.factory.mutate_herbivore(herbivore)
        state.physics.add(child.body)
        counters.births += 1
        return [child]
    return []


def apply_life_cycle(state: SimulationState, herbivore: Herbivore, counters: TickCounters) -> List[Herbivore]:
    """Advance one herbivore by a tick. Returns the herbivores that survive it, parent first."""
    config = state.config
    dt = config.time_step
    herbivore.hungry += 1

    if herbivore.hungry * dt < config.hungry_threshold:
        return [herbivore]
    if herbivore.hungry * dt > config.death_threshold:
        state.physics.remove(herbivore.body)
        herbivore.target = None
        counters.deaths += 1
        return []

    result = find_nearest_food(herbivore, state.foods)
    herbivore.target = result.target
    if herbivore.target is None:
        state.physics.set_velocity(herbivore.body, Vector2())
        return [herbivore]

    heading = _safe_normalize(herbivore.target.position - herbivore.position)
    state.physics.set_velocity(herbivore.body, heading * (1.0 / (1.0 + result.color_distance / 100.0)))

    if state.physics.collides(herbivore.body, herbivore.target.body):
        return [herbivore] + feed(state, herbivore, counters)
    return [herbivore]
