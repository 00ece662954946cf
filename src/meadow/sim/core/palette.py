from __future__ import annotations

from typing import List

from .config import PALETTE_POLICIES, ConfigurationError
from .rng import DeterministicRng


class ColorPalette:
    """Hands out food colours from a shuffled, fixed candidate list."""

    def __init__(self, colors: List[str], rng: DeterministicRng, policy: str = "raise"):
        if policy not in PALETTE_POLICIES:
            raise ConfigurationError(f"Unknown palette policy {policy!r}; expected one of {PALETTE_POLICIES}")
        self._colors = list(colors)
        self._rng = rng
        self._policy = policy
        self._available: List[str] = rng.shuffled(self._colors)

    @property
    def remaining(self) -> int:
        return len(self._available)

    def allocate(self) -> str:
        if not self._available:
            if self._policy == "raise" or not self._colors:
                raise ConfigurationError(
                    f"Food palette exhausted after {len(self._colors)} colours; "
                    "lower initial_food or use palette_policy 'cycle'"
                )
            self._available = self._rng.shuffled(self._colors)
        return self._available.pop()
