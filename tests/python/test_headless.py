import csv
import json

import pytest

from meadow.app.headless import run_headless


def _read_csv(path):
    with path.open(newline="") as handle:
        return list(csv.reader(handle))


def _small_config(tmp_path):
    path = tmp_path / "small.yaml"
    path.write_text("initial_population: 6\ninitial_food: 2\nduration: 0.1\n")
    return path


def test_headless_basic_log_header(tmp_path):
    log_path = tmp_path / "basic.csv"
    run_headless(
        steps=2,
        seed=1,
        log_path=log_path,
        deterministic_log=True,
        log_format="basic",
        config_path=_small_config(tmp_path),
    )
    rows = _read_csv(log_path)
    assert len(rows) == 3
    assert rows[0] == [
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
    assert rows[1][0] == "1"
    assert rows[1][1] == "6"
    assert rows[1][-1] == "0.000"


def test_headless_detailed_log_ratios(tmp_path):
    log_path = tmp_path / "detailed.csv"
    run_headless(
        steps=3,
        seed=2,
        log_path=log_path,
        deterministic_log=True,
        log_format="detailed",
        config_path=_small_config(tmp_path),
    )
    rows = _read_csv(log_path)
    assert len(rows) == 4
    header = rows[0]
    idx = {name: i for i, name in enumerate(header)}
    first_row = rows[1]
    population = int(first_row[idx["population"]])
    births = int(first_row[idx["births"]])
    assert float(first_row[idx["births_per_agent"]]) == pytest.approx(
        0.0 if population == 0 else births / population, abs=1e-4
    )
    assert int(first_row[idx["food_amount_total"]]) == 40
    assert int(first_row[idx["hungry_agents"]]) == 0
    assert float(first_row[idx["tick_ms"]]) == 0.0


def test_headless_stops_at_configured_duration(tmp_path):
    summary_path = tmp_path / "summary.json"
    world = run_headless(
        steps=None,
        seed=3,
        log_path=None,
        deterministic_log=True,
        summary_path=summary_path,
        summary_window=4,
        config_path=_small_config(tmp_path),
    )
    assert world.finished
    assert world.tick == 10

    payload = json.loads(summary_path.read_text())
    assert payload["steps"] == 10
    assert payload["seed"] == 3
    assert payload["finished"] is True
    assert payload["simulated_seconds"] == pytest.approx(0.1)
    assert payload["tail_window"]["window"] == 4
    assert payload["population"]["max"] >= 6
    assert payload["tick_ms"]["max"] == 0.0


def test_deterministic_logs_match_for_equal_seeds(tmp_path):
    config_path = _small_config(tmp_path)
    first = tmp_path / "a.csv"
    second = tmp_path / "b.csv"
    for path in (first, second):
        run_headless(steps=5, seed=9, log_path=path, deterministic_log=True, config_path=config_path)
    assert first.read_text() == second.read_text()


def test_unknown_log_format(tmp_path):
    with pytest.raises(ValueError):
        run_headless(steps=1, seed=1, log_path=None, log_format="verbose", config_path=_small_config(tmp_path))


def test_realtime_sleeps_one_time_step_per_tick(tmp_path, monkeypatch):
    sleeps = []
    monkeypatch.setattr("meadow.app.headless.time.sleep", sleeps.append)

    world = run_headless(steps=4, seed=5, log_path=None, config_path=_small_config(tmp_path), realtime=True)

    assert world.tick == 4
    assert sleeps == [pytest.approx(world.config.time_step)] * 4


def test_headless_does_not_sleep_by_default(tmp_path, monkeypatch):
    sleeps = []
    monkeypatch.setattr("meadow.app.headless.time.sleep", sleeps.append)

    run_headless(steps=4, seed=5, log_path=None, config_path=_small_config(tmp_path))

    assert sleeps == []
