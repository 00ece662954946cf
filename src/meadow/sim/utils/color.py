from __future__ import annotations

import math
from typing import Sequence, Tuple

import pygame

Rgb = Tuple[int, int, int]


def to_rgb(hex_color: str) -> Rgb:
    color = pygame.Color(hex_color)
    return (color.r, color.g, color.b)


def to_hex(r: int, g: int, b: int) -> str:
    color = pygame.Color(int(r), int(g), int(b))
    return f"#{color.r:02x}{color.g:02x}{color.b:02x}"


def color_distance(c0: Sequence[float], c1: Sequence[float]) -> float:
    total = 0.0
    for a, b in zip(c0[:3], c1[:3]):
        delta = a - b
        total += delta * delta
    return math.sqrt(total)


def jitter_color(rng, hex_color: str, variance: float) -> str:
    """Perturb each channel by a uniform draw in [-variance, variance], clamped and rounded."""
    channels = [
        round(_clamp_channel(value + rng.next_range(-variance, variance)))
        for value in to_rgb(hex_color)
    ]
    return to_hex(*channels)


def _clamp_channel(value: float) -> float:
    return max(0.0, min(255.0, value))
