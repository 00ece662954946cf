from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional, Sequence

from ..core.entities import Food, Herbivore
from ..utils.color import color_distance


@dataclass(frozen=True, slots=True)
class ForagingResult:
    target: Optional[Food]
    distance: float
    color_distance: float


def find_nearest_food(herbivore: Herbivore, foods: Sequence[Food]) -> ForagingResult:
    """Pick the food with the lowest world distance x colour distance score.

    Ties keep the first food encountered. An empty list yields no target.
    """
    position = herbivore.position
    herbivore_rgb = herbivore.rgb
    nearest: Optional[Food] = None
    nearest_score = math.inf
    nearest_color_distance = math.inf

    for food in foods:
        world_distance = position.distance_to(food.position)
        food_color_distance = color_distance(herbivore_rgb, food.rgb)
        score = world_distance * food_color_distance
        if nearest is None or score < nearest_score:
            nearest = food
            nearest_score = score
            nearest_color_distance = food_color_distance

    return ForagingResult(target=nearest, distance=nearest_score, color_distance=nearest_color_distance)
