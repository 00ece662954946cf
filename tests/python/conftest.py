import os
import sys
from pathlib import Path

import pytest

os.environ.setdefault("PYGAME_HIDE_SUPPORT_PROMPT", "1")

ROOT = Path(__file__).resolve().parents[2]
src_root = ROOT / "src"
if str(src_root) not in sys.path:
    sys.path.insert(0, str(src_root))

from meadow.sim.core.config import SimulationConfig  # noqa: E402


@pytest.fixture
def quiet_config() -> SimulationConfig:
    """Empty arena: no initial herbivores or food, default thresholds."""
    return SimulationConfig(seed=11, initial_population=0, initial_food=0)
