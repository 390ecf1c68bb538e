# selffin/simulation.py
"""
Monte Carlo schedule simulation.

Each task gets a three-point estimate (optimistic, most likely, pessimistic)
shaped by its category, the residence status, the season and, when known,
the owner's expertise and the site environment. Durations are sampled for
every run at once and pushed through the vectorised CPM.
"""

import logging
import math
from datetime import date
from typing import Dict, List, Optional, Tuple

import numpy as np

from selffin.work_calendar import WorkCalendar
from selffin.config import get_settings
from selffin.cpm import build_dependency_graph, compute_cpm, compute_cpm_batch
from selffin.exceptions import ValidationError
from selffin.models import (
    CompletionProbability,
    EnvironmentFactors,
    ExpertiseLevel,
    HistogramBin,
    ProjectRequest,
    ResidenceStatus,
    RiskFactor,
    Season,
    SimulationResult,
    Task,
    TaskRisk,
    UserExpertise,
)

logger = logging.getLogger(__name__)

DISTRIBUTIONS = ("pert", "triangular", "normal")

CATEGORY_UNCERTAINTY = {
    "demolition": 1.5,
    "electrical": 1.2,
    "plumbing": 1.2,
    "cleaning": 0.8,
}

EXPERTISE_FACTORS = {
    ExpertiseLevel.BEGINNER: 1.3,
    ExpertiseLevel.INTERMEDIATE: 1.0,
    ExpertiseLevel.EXPERT: 0.85,
}

SEASON_FACTORS = {
    Season.SPRING: 1.0,
    Season.SUMMER: 1.1,
    Season.FALL: 1.0,
    Season.WINTER: 1.2,
}

WEATHER_SENSITIVITY = {
    "demolition": 0.3,
    "electrical": 0.2,
    "plumbing": 0.4,
    "carpentry": 0.5,
    "painting": 0.8,
    "flooring": 0.6,
    "cleaning": 0.1,
}

HARSH_MONTHS = {12, 1, 2, 7, 8}


def season_for_month(month: int) -> Season:
    if month in (3, 4, 5):
        return Season.SPRING
    if month in (6, 7, 8):
        return Season.SUMMER
    if month in (9, 10, 11):
        return Season.FALL
    return Season.WINTER


def expertise_factor(expertise: UserExpertise, category: str) -> float:
    factor = EXPERTISE_FACTORS[expertise.level]
    factor *= max(0.8, 1 - expertise.years_of_experience * 0.02)
    if category in expertise.specialties:
        factor *= 0.9
    return factor * (1 + expertise.average_delay_rate)


def environment_factor(environment: EnvironmentFactors, category: str) -> float:
    sensitivity = WEATHER_SENSITIVITY.get(category, 0.5)
    weather = 1.0
    if environment.rain_probability > 0.5:
        weather *= 1 + sensitivity * 0.3
    if abs(environment.temperature - 20) > 10:
        weather *= 1 + sensitivity * 0.2
    if category in ("painting", "flooring") and environment.humidity > 70:
        weather *= 1.3  # drying time
    age = 1 + min(environment.building_age, 30) / 100
    floor = 1 + environment.floor_level / 50
    return SEASON_FACTORS[environment.season] * weather * age * floor


def three_point_estimate(
    task: Task,
    occupied: bool = False,
    harsh_season: bool = False,
    expertise: Optional[UserExpertise] = None,
    environment: Optional[EnvironmentFactors] = None,
) -> Tuple[float, float, float]:
    d = task.duration
    if d <= 0:
        return 0.0, 0.0, 0.0

    u = CATEGORY_UNCERTAINTY.get(task.category, 1.0)
    if occupied:
        u *= 1.3
    if harsh_season:
        u *= 1.1
    o, m, p = d * 0.8, d, d * (1 + 0.5 * u)

    if expertise is not None:
        f = expertise_factor(expertise, task.category)
        o, m, p = o * f * 0.9, m * f, p * f * 1.1
    if environment is not None:
        f = environment_factor(environment, task.category)
        o, m, p = o * f * 0.95, m * f, p * f * 1.15
    return o, m, p


def sample_durations(estimates: np.ndarray, iterations: int, rng, distribution: str = "pert") -> np.ndarray:
    """Draw an (iterations, n_tasks) matrix from an (n_tasks, 3) array of estimates."""
    if distribution not in DISTRIBUTIONS:
        raise ValidationError(f"Unknown distribution: {distribution}", code="UNKNOWN_DISTRIBUTION")

    n = estimates.shape[0]
    out = np.zeros((iterations, n))
    for i in range(n):
        o, m, p = estimates[i]
        width = p - o
        if width <= 0:
            out[:, i] = m
            continue
        if distribution == "pert":
            alpha = 1 + 4 * (m - o) / width
            beta = 1 + 4 * (p - m) / width
            out[:, i] = o + width * rng.beta(alpha, beta, size=iterations)
        elif distribution == "triangular":
            out[:, i] = rng.triangular(o, m, p, size=iterations)
        else:
            mean = (o + 4 * m + p) / 6
            sd = width / 6
            out[:, i] = np.clip(rng.normal(mean, sd, size=iterations), o, p)
    return out


def task_complexity(task: Task) -> float:
    complexity = 0.5 + len(task.dependencies) * 0.1
    if task.estimated_cost > 5_000_000:
        complexity += 0.2
    if task.is_milestone:
        complexity += 0.1
    return min(1.0, complexity)


def identify_risk_factors(
    tasks: List[Task],
    expertise: Optional[UserExpertise],
    environment: Optional[EnvironmentFactors],
) -> List[RiskFactor]:
    risks = []
    if environment is not None and environment.rain_probability > 0.6:
        risks.append(RiskFactor(
            type="weather", impact=0.3, probability=environment.rain_probability,
            mitigation="Prioritise indoor work and put up rain covers",
        ))
    if expertise is not None and expertise.level == ExpertiseLevel.BEGINNER:
        risks.append(RiskFactor(
            type="labor", impact=0.4, probability=0.7,
            mitigation="Get mentoring from a skilled tradesperson and keep extra slack",
        ))
    if any(task_complexity(t) > 0.7 for t in tasks):
        risks.append(RiskFactor(
            type="complexity", impact=0.5, probability=0.6,
            mitigation="Verify complex tasks step by step and keep spare materials",
        ))
    return risks


def _risk_level(cv: float) -> str:
    if cv > 0.3:
        return "high"
    if cv > 0.15:
        return "medium"
    return "low"


def simulate(
    tasks: List[Task],
    iterations: Optional[int] = None,
    seed: Optional[int] = None,
    distribution: str = "pert",
    deadline_days: Optional[float] = None,
    occupied: bool = False,
    start_date: Optional[date] = None,
    expertise: Optional[UserExpertise] = None,
    environment: Optional[EnvironmentFactors] = None,
) -> SimulationResult:
    """
    Run the simulation over working-day offsets.

    `deadline_days` is the number of working days available. Without one,
    confidence is measured against the deterministic CPM duration.
    """
    settings = get_settings()
    if iterations is None:
        iterations = settings.simulation_runs
    if seed is None:
        seed = settings.simulation_seed
    if iterations < 1:
        raise ValidationError("iterations must be at least 1", code="INVALID_ITERATIONS")
    if distribution not in DISTRIBUTIONS:
        raise ValidationError(f"Unknown distribution: {distribution}", code="UNKNOWN_DISTRIBUTION")

    graph = build_dependency_graph(tasks)
    planned = compute_cpm(tasks).total_duration

    if environment is not None:
        harsh = environment.season in (Season.SUMMER, Season.WINTER)
    elif start_date is not None:
        harsh = start_date.month in HARSH_MONTHS
    else:
        harsh = False

    estimates = np.array(
        [three_point_estimate(t, occupied, harsh, expertise, environment) for t in tasks],
        dtype=float,
    ).reshape(len(tasks), 3)

    rng = np.random.default_rng(seed)
    samples = sample_durations(estimates, iterations, rng, distribution)
    durations, critical = compute_cpm_batch(tasks, samples, graph)

    mean = float(durations.mean())
    std = float(durations.std())
    p5, p10, p50, p90, p95 = (float(v) for v in np.percentile(durations, [5, 10, 50, 90, 95]))

    days, counts = np.unique(np.floor(durations).astype(int), return_counts=True)
    histogram = [HistogramBin(day=int(d), count=int(c)) for d, c in zip(days, counts)]

    lo, hi = math.floor(durations.min()), math.ceil(durations.max())
    completion = [
        CompletionProbability(days=day, probability=round(float((durations <= day + 1e-9).mean()) * 100, 1))
        for day in range(lo, hi + 1)
    ]

    target = planned if deadline_days is None else float(deadline_days)
    confidence = round(float((durations <= target + 1e-9).mean()) * 100, 1)

    criticality_idx = critical.mean(axis=0) if tasks else np.zeros(0)
    criticality: Dict[str, float] = {t.id: round(float(criticality_idx[i]), 4) for i, t in enumerate(tasks)}

    task_risks = []
    for i, t in enumerate(tasks):
        col = samples[:, i]
        col_mean = float(col.mean())
        cv = float(col.std()) / col_mean if col_mean > 0 else 0.0
        level = _risk_level(cv)
        if criticality[t.id] >= 0.7 or level != "low":
            task_risks.append(TaskRisk(
                task_id=t.id, task_name=t.name, risk_level=level,
                variability=round(cv * 100, 1), criticality=criticality[t.id],
            ))
    task_risks.sort(key=lambda r: (-r.criticality, -r.variability))

    risk_factors = identify_risk_factors(tasks, expertise, environment)
    total_risk = round(sum(r.impact * r.probability for r in risk_factors), 3)
    buffer_days = round(max(0.0, p90 - mean), 1)

    result = SimulationResult(
        iterations=iterations,
        seed=seed,
        distribution=distribution,
        planned_duration=planned,
        mean=round(mean, 2),
        std_dev=round(std, 2),
        min_duration=round(float(durations.min()), 2),
        max_duration=round(float(durations.max()), 2),
        percentiles={"p10": round(p10, 2), "p50": round(p50, 2), "p90": round(p90, 2)},
        confidence90={"min": round(p5, 2), "max": round(p95, 2)},
        histogram=histogram,
        confidence=confidence,
        completion_probabilities=completion,
        criticality=criticality,
        high_risk_tasks=task_risks,
        risk_factors=risk_factors,
        total_risk_score=total_risk,
        buffer_days=buffer_days,
    )
    result.recommendations = _recommendations(result, tasks, occupied, harsh, start_date, environment)
    logger.info(
        "simulation: %d runs, mean=%.2f p50=%.2f p90=%.2f confidence=%.1f%%",
        iterations, mean, p50, p90, confidence,
    )
    return result


def _recommendations(result, tasks, occupied, harsh, start_date, environment) -> List[str]:
    recs = []
    if result.buffer_days > result.mean * 0.2:
        recs.append(f"Reserve about {result.buffer_days} working days of buffer for unexpected delays.")
    if result.high_risk_tasks:
        top = result.high_risk_tasks[0]
        recs.append(
            f'"{top.task_name}" shows {top.variability}% variability; assign an experienced crew to it.'
        )
    if result.total_risk_score > 0.7:
        recs.append("Overall risk is high; keep a generous schedule reserve.")
    if harsh:
        season = environment.season if environment is not None else season_for_month(start_date.month)
        if season == Season.WINTER:
            recs.append("Winter work runs slower; plan for heating and a warmer work environment.")
        else:
            recs.append("Summer heat slows work; adjust working hours and allow for rest.")
    if occupied:
        recs.append("Living on site typically adds 20-30% to the schedule.")
    if any(t.category == "painting" for t in tasks):
        recs.append("Painting is humidity sensitive; consider running a dehumidifier.")
    if len({t.space for t in tasks if t.space}) > 1:
        recs.append("Work in independent spaces can run concurrently to shorten the project.")
    return recs


def simulate_project(
    project: ProjectRequest,
    tasks: List[Task],
    iterations: Optional[int] = None,
    seed: Optional[int] = None,
    distribution: str = "pert",
    deadline: Optional[date] = None,
) -> SimulationResult:
    calendar = WorkCalendar.from_schedule_info(project.schedule_info)
    start = project.schedule_info.start_date
    deadline_days = float(calendar.days_until(start, deadline)) if deadline else None
    return simulate(
        tasks,
        iterations=iterations,
        seed=seed,
        distribution=distribution,
        deadline_days=deadline_days,
        occupied=project.basic_info.residence_status == ResidenceStatus.OCCUPIED,
        start_date=start,
        expertise=project.expertise,
        environment=project.environment,
    )
