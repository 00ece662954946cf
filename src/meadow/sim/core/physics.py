"""Minimal 2D rigid-body world: convex polygon bodies, velocity integration,
static contact resolution and SAT overlap queries."""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from pygame.math import Vector2

BASE_DELTA_MS = 1000.0 / 60.0

CATEGORY_DEFAULT = 0x0001
CATEGORY_HERBIVORES = 0x0002
MASK_ALL = 0xFFFFFFFF


@dataclass(eq=False)
class Body:
    position: Vector2
    local_vertices: List[Vector2]
    velocity: Vector2 = field(default_factory=Vector2)
    angle: float = 0.0
    is_static: bool = False
    fill: str = "#ffffff"
    label: str = "body"
    category: int = CATEGORY_DEFAULT
    mask: int = MASK_ALL
    circle_radius: Optional[float] = None
    # static bodies with a higher order correct dynamic bodies later in a tick
    resolve_order: int = 0

    def world_vertices(self) -> List[Vector2]:
        if self.angle == 0.0:
            return [self.position + vertex for vertex in self.local_vertices]
        return [self.position + vertex.rotate_rad(self.angle) for vertex in self.local_vertices]

    def can_collide(self, other: "Body") -> bool:
        return (self.mask & other.category) != 0 and (other.mask & self.category) != 0


def polygon(
    x: float,
    y: float,
    sides: int,
    radius: float,
    *,
    is_static: bool = False,
    fill: str = "#ffffff",
    label: str = "polygon",
    category: int = CATEGORY_DEFAULT,
    mask: int = MASK_ALL,
) -> Body:
    if sides < 3:
        raise ValueError(f"A polygon needs at least 3 sides, got {sides}")
    theta = 2.0 * math.pi / sides
    offset = theta * 0.5
    vertices = [
        Vector2(radius * math.cos(offset + i * theta), radius * math.sin(offset + i * theta))
        for i in range(sides)
    ]
    return Body(
        position=Vector2(x, y),
        local_vertices=vertices,
        is_static=is_static,
        fill=fill,
        label=label,
        category=category,
        mask=mask,
    )


def circle(
    x: float,
    y: float,
    radius: float,
    *,
    is_static: bool = False,
    fill: str = "#ffffff",
    label: str = "circle",
    category: int = CATEGORY_DEFAULT,
    mask: int = MASK_ALL,
    max_sides: int = 25,
) -> Body:
    sides = int(math.ceil(max(10, min(max_sides, radius))))
    if sides % 2 == 1:
        sides += 1
    body = polygon(
        x, y, sides, radius, is_static=is_static, fill=fill, label=label, category=category, mask=mask
    )
    body.circle_radius = radius
    return body


def rectangle(
    x: float,
    y: float,
    width: float,
    height: float,
    *,
    is_static: bool = False,
    fill: str = "#ffffff",
    label: str = "rectangle",
    category: int = CATEGORY_DEFAULT,
    mask: int = MASK_ALL,
) -> Body:
    half_w = width * 0.5
    half_h = height * 0.5
    vertices = [Vector2(-half_w, -half_h), Vector2(half_w, -half_h), Vector2(half_w, half_h), Vector2(-half_w, half_h)]
    return Body(
        position=Vector2(x, y),
        local_vertices=vertices,
        is_static=is_static,
        fill=fill,
        label=label,
        category=category,
        mask=mask,
    )


def _axes(vertices: List[Vector2]) -> List[Vector2]:
    axes = []
    count = len(vertices)
    for i in range(count):
        edge = vertices[(i + 1) % count] - vertices[i]
        if edge.length_squared() < 1e-18:
            continue
        axes.append(Vector2(edge.y, -edge.x).normalize())
    return axes


def _project(vertices: List[Vector2], axis: Vector2) -> Tuple[float, float]:
    dots = [vertex.dot(axis) for vertex in vertices]
    return min(dots), max(dots)


def _bounds_overlap(a: List[Vector2], b: List[Vector2]) -> bool:
    return not (
        max(v.x for v in a) <= min(v.x for v in b)
        or max(v.x for v in b) <= min(v.x for v in a)
        or max(v.y for v in a) <= min(v.y for v in b)
        or max(v.y for v in b) <= min(v.y for v in a)
    )


def separating_overlap(a: List[Vector2], b: List[Vector2]) -> Optional[Tuple[Vector2, float]]:
    """SAT test for two convex vertex loops.

    Returns (normal, depth) where moving `a` by normal * depth separates it from `b`,
    or None when the loops do not overlap. Touching loops do not overlap.
    """
    if len(a) < 3 or len(b) < 3 or not _bounds_overlap(a, b):
        return None
    min_overlap = math.inf
    min_normal: Optional[Vector2] = None
    for axis in _axes(a) + _axes(b):
        a_min, a_max = _project(a, axis)
        b_min, b_max = _project(b, axis)
        overlap_ab = a_max - b_min
        overlap_ba = b_max - a_min
        overlap = min(overlap_ab, overlap_ba)
        if overlap <= 0.0:
            return None
        if overlap < min_overlap:
            min_overlap = overlap
            min_normal = -axis if overlap_ab < overlap_ba else axis
    if min_normal is None:
        return None
    return min_normal, min_overlap


class PhysicsWorld:
    def __init__(
        self,
        gravity: Tuple[float, float] = (0.0, 0.0),
        time_scale: float = 1.0,
        friction_air: float = 0.01,
        slop: float = 0.05,
    ):
        self.gravity = Vector2(gravity)
        self.time_scale = time_scale
        self.friction_air = friction_air
        self.slop = slop
        self._bodies: Dict[Body, None] = {}

    @property
    def bodies(self) -> List[Body]:
        return list(self._bodies)

    def __contains__(self, body: Body) -> bool:
        return body in self._bodies

    def add(self, *bodies: Body) -> None:
        for body in bodies:
            self._bodies[body] = None

    def add_all(self, bodies: Iterable[Body]) -> None:
        self.add(*bodies)

    def remove(self, body: Body) -> None:
        if body not in self._bodies:
            raise ValueError(f"{body.label} body is not in the physics world")
        del self._bodies[body]

    @staticmethod
    def set_velocity(body: Body, velocity: Vector2) -> None:
        body.velocity = Vector2(velocity)

    @staticmethod
    def scale(body: Body, scale_x: float, scale_y: float) -> None:
        for vertex in body.local_vertices:
            vertex.x *= scale_x
            vertex.y *= scale_y
        if body.circle_radius is not None:
            body.circle_radius *= math.sqrt(abs(scale_x * scale_y))

    @staticmethod
    def collides(a: Body, b: Body) -> bool:
        return separating_overlap(a.world_vertices(), b.world_vertices()) is not None

    def update(self, delta_ms: float) -> None:
        ratio = delta_ms * self.time_scale / BASE_DELTA_MS
        damping = max(0.0, 1.0 - self.friction_air * ratio)
        dynamic: List[Body] = []
        static: List[Body] = []
        for body in self._bodies:
            (static if body.is_static else dynamic).append(body)
        static.sort(key=lambda body: body.resolve_order)

        for body in dynamic:
            body.velocity = (body.velocity + self.gravity * ratio) * damping
            body.position += body.velocity * ratio

        for body in dynamic:
            for other in static:
                if body.can_collide(other):
                    self._resolve_static_contact(body, other)

    def _resolve_static_contact(self, body: Body, obstacle: Body) -> None:
        result = separating_overlap(body.world_vertices(), obstacle.world_vertices())
        if result is None:
            return
        normal, depth = result
        correction = depth - self.slop
        if correction > 0.0:
            body.position += normal * correction
        into = body.velocity.dot(normal)
        if into < 0.0:
            body.velocity -= normal * into
