# tests/test_simulation.py
from datetime import date

import numpy as np
import pytest

from selffin.exceptions import ValidationError
from selffin.models import EnvironmentFactors, Task, UserExpertise
from selffin.simulation import (
    sample_durations,
    season_for_month,
    simulate,
    simulate_project,
    three_point_estimate,
)


@pytest.fixture
def chain():
    return [
        Task(id="demo", name="Demolition", category="demolition", duration=2),
        Task(id="wire", name="Wiring", category="electrical", duration=1, dependencies=["demo"]),
        Task(id="paint", name="Painting", category="painting", duration=2, dependencies=["wire"]),
    ]


def test_three_point_estimate_by_category():
    demo = Task(id="d", name="d", category="demolition", duration=2)
    assert three_point_estimate(demo) == pytest.approx((1.6, 2.0, 3.5))

    plain = Task(id="p", name="p", category="painting", duration=2)
    assert three_point_estimate(plain) == pytest.approx((1.6, 2.0, 3.0))
    # occupied and harsh season widen the pessimistic tail only
    assert three_point_estimate(plain, occupied=True, harsh_season=True)[2] == pytest.approx(2 * (1 + 0.5 * 1.3 * 1.1))


def test_expertise_scales_estimates():
    task = Task(id="p", name="p", category="painting", duration=10)
    beginner = three_point_estimate(task, expertise=UserExpertise(level="beginner"))
    expert = three_point_estimate(task, expertise=UserExpertise(level="expert"))
    assert beginner[1] == pytest.approx(13.0)
    assert expert[1] == pytest.approx(8.5)
    assert beginner[0] == pytest.approx(8 * 1.3 * 0.9)


def test_zero_duration_stays_zero():
    milestone = Task(id="m", name="m", duration=0, is_milestone=True)
    assert three_point_estimate(milestone) == (0.0, 0.0, 0.0)
    samples = sample_durations(np.array([[0.0, 0.0, 0.0]]), 50, np.random.default_rng(1))
    assert not samples.any()


@pytest.mark.parametrize("distribution", ["pert", "triangular", "normal"])
def test_samples_stay_within_bounds(distribution):
    estimates = np.array([[1.6, 2.0, 3.5]])
    samples = sample_durations(estimates, 2000, np.random.default_rng(7), distribution)
    assert samples.shape == (2000, 1)
    assert samples.min() >= 1.6
    assert samples.max() <= 3.5


def test_seed_makes_runs_reproducible(chain):
    first = simulate(chain, iterations=500, seed=42)
    second = simulate(chain, iterations=500, seed=42)
    assert first.mean == second.mean
    assert first.percentiles == second.percentiles
    assert first.seed == 42


def test_result_shape(chain):
    result = simulate(chain, iterations=1000, seed=3)

    assert result.planned_duration == 5
    assert result.percentiles["p10"] <= result.percentiles["p50"] <= result.percentiles["p90"]
    assert result.confidence90["min"] <= result.percentiles["p10"]
    assert result.confidence90["max"] >= result.percentiles["p90"]
    assert 4.0 <= result.min_duration <= result.mean <= result.max_duration <= 9.5
    assert sum(b.count for b in result.histogram) == 1000

    probs = [p.probability for p in result.completion_probabilities]
    assert probs == sorted(probs)
    assert probs[-1] == 100.0

    # a single chain is critical in every run
    assert result.criticality == {"demo": 1.0, "wire": 1.0, "paint": 1.0}
    assert [r.task_id for r in result.high_risk_tasks][0] in {"demo", "wire", "paint"}
    assert result.buffer_days == pytest.approx(max(0.0, result.percentiles["p90"] - result.mean), abs=0.06)


def test_confidence_against_deadline(chain):
    relaxed = simulate(chain, iterations=300, seed=1, deadline_days=20)
    assert relaxed.confidence == 100.0
    tight = simulate(chain, iterations=300, seed=1, deadline_days=3)
    assert tight.confidence == 0.0


def test_parallel_branches_split_criticality():
    tasks = [
        Task(id="a", name="a", duration=3),
        Task(id="b", name="b", duration=3),
    ]
    result = simulate(tasks, iterations=2000, seed=11)
    assert 0.3 < result.criticality["a"] < 0.7
    assert result.criticality["a"] + result.criticality["b"] == pytest.approx(1.0, abs=0.01)


def test_risk_factors_and_recommendations(chain):
    result = simulate(
        chain,
        iterations=200,
        seed=5,
        occupied=True,
        expertise=UserExpertise(level="beginner"),
        environment=EnvironmentFactors(season="winter", rain_probability=0.8),
    )
    types = {r.type for r in result.risk_factors}
    assert {"weather", "labor"} <= types
    assert any("Winter" in r for r in result.recommendations)
    assert any("Living on site" in r for r in result.recommendations)
    assert any("Painting is humidity sensitive" in r for r in result.recommendations)


def test_invalid_arguments(chain):
    with pytest.raises(ValidationError) as exc:
        simulate(chain, iterations=0)
    assert exc.value.code == "INVALID_ITERATIONS"
    with pytest.raises(ValidationError) as exc:
        simulate(chain, iterations=10, distribution="uniform")
    assert exc.value.code == "UNKNOWN_DISTRIBUTION"


def test_iterations_default_from_settings(chain, monkeypatch):
    monkeypatch.setenv("SELFFIN_SIMULATION_RUNS", "123")
    monkeypatch.setenv("SELFFIN_SIMULATION_SEED", "9")
    result = simulate(chain)
    assert result.iterations == 123
    assert result.seed == 9


def test_season_for_month():
    assert season_for_month(1).value == "winter"
    assert season_for_month(7).value == "summer"
    assert season_for_month(10).value == "fall"


def test_simulate_project_with_deadline(project_request):
    tasks = [Task(id="a", name="a", duration=2), Task(id="b", name="b", duration=2, dependencies=["a"])]
    # Monday 3 to Friday 14 March: ten working days
    result = simulate_project(project_request, tasks, iterations=200, seed=2, deadline=date(2025, 3, 14))
    assert result.confidence == 100.0
