from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from pygame.math import Vector2

from ..utils.color import Rgb, jitter_color, to_rgb
from ..utils.math2d import _clamp_position
from . import physics
from .config import SimulationConfig
from .palette import ColorPalette
from .rng import DeterministicRng


@dataclass(slots=True, eq=False)
class Food:
    id: int
    color: str
    body: physics.Body
    amount: int

    @property
    def position(self) -> Vector2:
        return self.body.position

    @property
    def rgb(self) -> Rgb:
        return to_rgb(self.color)


@dataclass(slots=True, eq=False)
class Herbivore:
    id: int
    color: str
    body: physics.Body
    hungry: int = 0
    feeded: int = 1
    target: Optional[Food] = None

    @property
    def position(self) -> Vector2:
        return self.body.position

    @property
    def velocity(self) -> Vector2:
        return self.body.velocity

    @property
    def rgb(self) -> Rgb:
        return to_rgb(self.color)


class EntityFactory:
    """Builds herbivores, food and walls, and owns the entity id counter."""

    def __init__(self, config: SimulationConfig, rng: DeterministicRng, palette: ColorPalette):
        self._config = config
        self._rng = rng
        self._palette = palette
        self._next_id = 0

    def _allocate_id(self) -> int:
        entity_id = self._next_id
        self._next_id += 1
        return entity_id

    def random_position(self) -> Vector2:
        size = self._config.herbivore.size
        high = self._config.world_size - size
        return Vector2(self._rng.next_range(size, high), self._rng.next_range(size, high))

    def _jittered_position(self, origin: Vector2, jitter: float) -> Vector2:
        moved = Vector2(
            origin.x + self._rng.next_range(-jitter, jitter),
            origin.y + self._rng.next_range(-jitter, jitter),
        )
        return _clamp_position(moved, self._config.herbivore.size, self._config.world_size)

    def create_herbivore(self, color: Optional[str] = None, position: Optional[Vector2] = None) -> Herbivore:
        initial_position = Vector2(position) if position is not None else self.random_position()
        initial_color = color if color is not None else self._config.herbivore.color
        return self._build_herbivore(initial_color, initial_position)

    def mutate_herbivore(self, parent: Herbivore) -> Herbivore:
        herbivore = self._config.herbivore
        position = self._jittered_position(parent.position, herbivore.size * 2)
        color = jitter_color(self._rng, parent.color, herbivore.color_variance)
        return self._build_herbivore(color, position)

    def _build_herbivore(self, color: str, position: Vector2) -> Herbivore:
        body = physics.circle(
            position.x,
            position.y,
            self._config.herbivore.size / 2,
            fill=color,
            label="herbivore",
            category=physics.CATEGORY_HERBIVORES,
            mask=physics.CATEGORY_DEFAULT,
        )
        return Herbivore(id=self._allocate_id(), color=color, body=body)

    def create_food(self, color: Optional[str] = None, position: Optional[Vector2] = None) -> Food:
        initial_position = Vector2(position) if position is not None else self.random_position()
        initial_color = color if color is not None else self._palette.allocate()
        return self._build_food(initial_color, initial_position)

    def mutate_food(self, parent: Food) -> Food:
        food = self._config.food
        position = self._jittered_position(parent.position, food.position_jitter)
        color = jitter_color(self._rng, parent.color, food.color_variance)
        return self._build_food(color, position)

    def _build_food(self, color: str, position: Vector2) -> Food:
        food = self._config.food
        body = physics.polygon(
            position.x,
            position.y,
            food.sides,
            food.radius,
            is_static=True,
            fill=color,
            label="food",
        )
        return Food(id=self._allocate_id(), color=color, body=body, amount=food.amount)

    def create_walls(self) -> List[physics.Body]:
        size = self._config.world_size
        thickness = self._config.wall_thickness
        half = size / 2
        walls = [
            physics.rectangle(half, size, size, thickness, is_static=True, fill="gray", label="wall"),
            physics.rectangle(half, 0.0, size, thickness, is_static=True, fill="gray", label="wall"),
            physics.rectangle(0.0, half, thickness, size, is_static=True, fill="gray", label="wall"),
            physics.rectangle(size, half, thickness, size, is_static=True, fill="gray", label="wall"),
        ]
        for wall in walls:
            wall.resolve_order = 1
        return walls
