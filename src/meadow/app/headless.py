from __future__ import annotations

import argparse
import csv
import json
import math
import time
from pathlib import Path
from typing import Optional

from ..sim.core.config import SimulationConfig
from ..sim.core.world import World
from ..sim.utils.color import color_distance


_BASIC_HEADER = [
    "tick",
    "population",
    "foods",
    "births",
    "deaths",
    "feedings",
    "avg_hungry",
    "avg_feeded",
    "tick_ms",
]

_DETAILED_HEADER = [
    "tick",
    "population",
    "foods",
    "births",
    "deaths",
    "feedings",
    "food_replacements",
    "avg_hungry",
    "avg_feeded",
    "tick_ms",
    "births_per_agent",
    "deaths_per_agent",
    "tick_ms_per_agent",
    "hungry_agents",
    "max_hungry",
    "max_feeded",
    "avg_speed",
    "food_amount_total",
    "avg_target_color_distance",
]


def _format_basic_row(metrics: object, tick_ms: float) -> list[object]:
    return [
        metrics.tick,
        metrics.population,
        metrics.foods,
        metrics.births,
        metrics.deaths,
        metrics.feedings,
        f"{metrics.average_hungry:.4f}",
        f"{metrics.average_feeded:.4f}",
        f"{tick_ms:.3f}",
    ]


def _format_detailed_row(world: World, metrics: object, tick_ms: float) -> list[object]:
    config = world.config
    population = metrics.population
    food_amount_total = sum(food.amount for food in world.foods)
    if population <= 0:
        births_per_agent = 0.0
        deaths_per_agent = 0.0
        tick_ms_per_agent = 0.0
        hungry_agents = 0
        max_hungry = 0
        max_feeded = 0
        avg_speed = 0.0
        avg_target_color_distance = 0.0
    else:
        births_per_agent = metrics.births / population
        deaths_per_agent = metrics.deaths / population
        tick_ms_per_agent = tick_ms / population

        hungry_ticks = config.hungry_threshold / config.time_step
        hungry_agents = 0
        max_hungry = 0
        max_feeded = 0
        speed_sum = 0.0
        target_distance_sum = 0.0
        targeted = 0
        for herbivore in world.herbivores:
            if herbivore.hungry >= hungry_ticks:
                hungry_agents += 1
            max_hungry = max(max_hungry, herbivore.hungry)
            max_feeded = max(max_feeded, herbivore.feeded)
            velocity = herbivore.velocity
            speed_sum += math.hypot(velocity.x, velocity.y)
            if herbivore.target is not None:
                target_distance_sum += color_distance(herbivore.rgb, herbivore.target.rgb)
                targeted += 1
        avg_speed = speed_sum / population
        avg_target_color_distance = target_distance_sum / targeted if targeted else 0.0

    return [
        metrics.tick,
        population,
        metrics.foods,
        metrics.births,
        metrics.deaths,
        metrics.feedings,
        metrics.food_replacements,
        f"{metrics.average_hungry:.4f}",
        f"{metrics.average_feeded:.4f}",
        f"{tick_ms:.3f}",
        f"{births_per_agent:.4f}",
        f"{deaths_per_agent:.4f}",
        f"{tick_ms_per_agent:.4f}",
        hungry_agents,
        max_hungry,
        max_feeded,
        f"{avg_speed:.4f}",
        food_amount_total,
        f"{avg_target_color_distance:.4f}",
    ]


def _percentile(sorted_values: list[float], percentile: float) -> float:
    if not sorted_values:
        return 0.0
    if len(sorted_values) == 1:
        return float(sorted_values[0])
    pos = (len(sorted_values) - 1) * percentile
    low = int(math.floor(pos))
    high = int(math.ceil(pos))
    if low == high:
        return float(sorted_values[low])
    weight = pos - low
    return float(sorted_values[low] + (sorted_values[high] - sorted_values[low]) * weight)


def _summary_stats(values: list[float]) -> dict[str, float]:
    if not values:
        return {"min": 0.0, "max": 0.0, "avg": 0.0, "p50": 0.0, "p90": 0.0, "p99": 0.0}
    sorted_values = sorted(values)
    return {
        "min": float(sorted_values[0]),
        "max": float(sorted_values[-1]),
        "avg": float(sum(values) / len(values)),
        "p50": _percentile(sorted_values, 0.50),
        "p90": _percentile(sorted_values, 0.90),
        "p99": _percentile(sorted_values, 0.99),
    }


def run_headless(
    steps: Optional[int],
    seed: Optional[int],
    log_path: Optional[Path],
    deterministic_log: bool = False,
    log_format: str = "detailed",
    summary_path: Optional[Path] = None,
    summary_window: int = 5000,
    config_path: Optional[Path] = None,
    realtime: bool = False,
) -> World:
    config = SimulationConfig.from_yaml(config_path) if config_path else SimulationConfig()
    if seed is not None:
        config.seed = seed

    log_mode = log_format.lower().strip()
    if log_mode not in {"basic", "detailed"}:
        raise ValueError(f"Unknown log format: {log_format}")

    world = World(config)
    max_steps = config.total_ticks if steps is None else steps

    writer = None
    csv_file = None
    if log_path:
        csv_file = Path(log_path).open("w", newline="")
        writer = csv.writer(csv_file)
        writer.writerow(_DETAILED_HEADER if log_mode == "detailed" else _BASIC_HEADER)

    tick_ms_series: list[float] = []
    population_series: list[int] = []
    food_series: list[int] = []
    totals = {"births": 0, "deaths": 0, "feedings": 0, "food_replacements": 0}
    max_population = (-1, -1)

    try:
        for _ in range(max_steps):
            if world.finished:
                break
            metrics = world.step()
            tick_ms = 0.0 if deterministic_log else metrics.tick_duration_ms

            if summary_path:
                tick_ms_series.append(tick_ms)
                population_series.append(metrics.population)
                food_series.append(metrics.foods)
                totals["births"] += metrics.births
                totals["deaths"] += metrics.deaths
                totals["feedings"] += metrics.feedings
                totals["food_replacements"] += metrics.food_replacements
                if metrics.population > max_population[0]:
                    max_population = (metrics.population, metrics.tick)

            if writer:
                if log_mode == "detailed":
                    writer.writerow(_format_detailed_row(world, metrics, tick_ms))
                else:
                    writer.writerow(_format_basic_row(metrics, tick_ms))

            if realtime:
                time.sleep(config.time_step)
    finally:
        if csv_file:
            csv_file.close()

    if summary_path:
        window = max(1, int(summary_window))
        tail_slice = slice(max(0, len(tick_ms_series) - window), len(tick_ms_series))
        summary = {
            "steps": len(tick_ms_series),
            "seed": config.seed,
            "log_format": log_mode,
            "deterministic_log": deterministic_log,
            "simulated_seconds": world.state.elapsed,
            "finished": world.finished,
            "totals": totals,
            "final_population": len(world.herbivores),
            "tick_ms": _summary_stats(tick_ms_series),
            "population": _summary_stats([float(v) for v in population_series]),
            "foods": _summary_stats([float(v) for v in food_series]),
            "peaks": {
                "population": {"value": max_population[0], "tick": max_population[1]},
            },
            "tail_window": {
                "window": window,
                "tick_ms": _summary_stats(tick_ms_series[tail_slice]),
                "population": _summary_stats([float(v) for v in population_series[tail_slice]]),
            },
        }
        Path(summary_path).write_text(json.dumps(summary, indent=2))

    return world


def main() -> None:
    parser = argparse.ArgumentParser(description="Headless meadow simulation")
    parser.add_argument(
        "--steps",
        type=int,
        default=None,
        help="Ticks to run (defaults to the configured duration divided by the time step).",
    )
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--config", type=Path, default=None, help="YAML file overriding the default configuration")
    parser.add_argument("--log", type=Path, default=None, help="CSV file to write metrics")
    parser.add_argument(
        "--log-format",
        choices=["basic", "detailed"],
        default="detailed",
        help="CSV format to write when --log is provided.",
    )
    parser.add_argument(
        "--summary",
        type=Path,
        default=None,
        help="Optional JSON file to write summary stats for the run.",
    )
    parser.add_argument(
        "--summary-window",
        type=int,
        default=5000,
        help="Tail window size (ticks) for summary stats.",
    )
    parser.add_argument(
        "--deterministic-log",
        action="store_true",
        help="Write deterministic CSV (tick_ms is forced to 0.000 so identical seeds match).",
    )
    parser.add_argument(
        "--realtime",
        action="store_true",
        help="Sleep one time step between ticks so simulated time tracks wall-clock time.",
    )
    args = parser.parse_args()
    run_headless(
        args.steps,
        args.seed,
        args.log,
        deterministic_log=args.deterministic_log,
        log_format=args.log_format,
        summary_path=args.summary,
        summary_window=args.summary_window,
        config_path=args.config,
        realtime=args.realtime,
    )


if __name__ == "__main__":
    main()
