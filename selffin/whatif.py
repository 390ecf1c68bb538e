# selffin/whatif.py
import logging
import math
from typing import Dict, List, Optional, Union

from selffin.work_calendar import WorkCalendar
from selffin.cpm import compute_cpm
from selffin.exceptions import ValidationError
from selffin.models import (
    PlanScenario,
    ScenarioAdjustments,
    ScenarioAnalysis,
    ScenarioTask,
    ScheduleData,
    SimulationResult,
    Task,
    WhatIfScenario,
)
from selffin.simulation import simulate

logger = logging.getLogger(__name__)

SCENARIOS: Dict[str, WhatIfScenario] = {
    s.id: s
    for s in [
        WhatIfScenario(
            id="key-delay",
            title="Key task delay",
            description="Demolition, electrical and plumbing each slip by 2-3 days",
            adjustments=ScenarioAdjustments(
                task_delays={"demolition": 3, "electrical": 2, "plumbing": 2, "framing": 2},
            ),
        ),
        WhatIfScenario(
            id="bad-weather",
            title="Bad weather",
            description="Monsoon or typhoon season slows weather-sensitive work",
            adjustments=ScenarioAdjustments(
                weather_impact=30,
                task_delays={"painting": 3, "window": 5, "demolition": 2},
            ),
        ),
        WhatIfScenario(
            id="resource-shortage",
            title="Labour shortage",
            description="A shortage of skilled trades cuts productivity by 20%",
            adjustments=ScenarioAdjustments(global_delay=20),
        ),
        WhatIfScenario(
            id="fast-track",
            title="Fast track",
            description="Extra crews and parallel work try to cut 20% off the schedule",
            adjustments=ScenarioAdjustments(resource_boost=-20),
        ),
        WhatIfScenario(
            id="material-delay",
            title="Material delay",
            description="Tile and flooring deliveries arrive a week late",
            adjustments=ScenarioAdjustments(
                task_delays={"tiling": 7, "flooring": 7, "kitchen": 5, "bathroom": 5},
            ),
        ),
    ]
}

SCENARIO_ADVICE = {
    "key-delay": [
        "Consider extra crew on the delayed tasks",
        "Re-sequence the follow-on work",
        "Check for additional cost exposure",
    ],
    "bad-weather": [
        "Bring indoor work forward",
        "Watch the weather forecast closely",
        "Protect materials from rain",
    ],
    "resource-shortage": [
        "Line up additional subcontractors",
        "Consider extended hours (evenings or weekends)",
        "Re-prioritise the critical tasks",
    ],
    "fast-track": [
        "Tighten quality control",
        "Confirm which trades can really run in parallel",
        "Step up site safety measures",
    ],
    "material-delay": [
        "Look at substitute materials",
        "Check express delivery options",
        "Bring other trades forward while waiting",
    ],
}


def get_scenario(scenario_id: str) -> WhatIfScenario:
    scenario = SCENARIOS.get(scenario_id)
    if scenario is None:
        raise ValidationError(f"Unknown scenario: {scenario_id}", code="UNKNOWN_SCENARIO")
    return scenario


def _task_delay(task: Task, delays: Dict[str, float]) -> float:
    # largest of the keys that match this task
    keys = (task.id, task.category, task.space, task.space_type)
    matches = [delays[k] for k in keys if k and k in delays]
    return max(matches) if matches else 0.0


def adjust_duration(task: Task, adjustments: ScenarioAdjustments) -> float:
    d = task.duration
    if d <= 0:
        return d
    d += _task_delay(task, adjustments.task_delays)
    if adjustments.global_delay:
        d = math.ceil(d * (1 + adjustments.global_delay / 100))
    if adjustments.resource_boost:
        d = math.ceil(d * (1 + adjustments.resource_boost / 100))
    if adjustments.weather_impact and task.weather_dependent:
        d = math.ceil(d * (1 + adjustments.weather_impact / 100))
    return max(1, d)


def apply_scenario(tasks: List[Task], scenario: WhatIfScenario) -> List[Task]:
    return [
        t.model_copy(update={"duration": adjust_duration(t, scenario.adjustments)})
        for t in tasks
    ]


def analyze_scenario(
    tasks: List[Task],
    scenario: Union[str, WhatIfScenario],
    original_duration: Optional[float] = None,
    iterations: Optional[int] = None,
    seed: Optional[int] = None,
    **simulation_kwargs,
) -> ScenarioAnalysis:
    """Apply a scenario, re-run CPM and the simulation, and compare with the original plan."""
    if isinstance(scenario, str):
        scenario = get_scenario(scenario)
    if original_duration is None:
        original_duration = compute_cpm(tasks).total_duration

    adjusted = apply_scenario(tasks, scenario)
    cpm = compute_cpm(adjusted)
    result = simulate(adjusted, iterations=iterations, seed=seed, **simulation_kwargs)
    p50 = result.percentiles["p50"]

    impact = 0.0
    if original_duration > 0:
        impact = round((p50 - original_duration) / original_duration * 100, 1)

    names = {t.id: t.name for t in adjusted}
    critical_names = [names[tid] for tid in cpm.critical_path]

    recs = []
    if impact > 20:
        recs.append("Severe delay expected; act now.")
    recs.extend(SCENARIO_ADVICE.get(scenario.id, []))
    if critical_names:
        recs.append(f"Watch the critical tasks closely: {', '.join(critical_names[:3])}")

    logger.info("what-if %s: %.1f -> p50 %.1f (%+.1f%%)", scenario.id, original_duration, p50, impact)
    return ScenarioAnalysis(
        scenario_id=scenario.id,
        original_duration=original_duration,
        new_duration=cpm.total_duration,
        p50=p50,
        impact=impact,
        critical_tasks=critical_names,
        recommendations=recs,
    )


def _scenario_end(calendar: WorkCalendar, schedule: ScheduleData, duration: float):
    return calendar.offset_to_date(schedule.start_date, max(math.ceil(duration) - 1, 0))


def generate_scenarios(
    schedule: ScheduleData,
    simulation: SimulationResult,
    calendar: Optional[WorkCalendar] = None,
) -> List[PlanScenario]:
    """Optimistic, realistic and conservative readings of one simulated schedule."""
    calendar = calendar or WorkCalendar()
    base = schedule.total_duration
    high_risk = {r.task_id for r in simulation.high_risk_tasks}

    optimistic_tasks = [
        ScenarioTask(id=t.id, name=t.name, duration=round(t.duration * 0.85, 2), estimated_cost=t.estimated_cost)
        for t in schedule.tasks
    ]
    optimistic_duration = simulation.confidence90["min"]
    optimistic = PlanScenario(
        type="optimistic",
        title="Best case",
        description="Schedule when every condition is ideal",
        duration=optimistic_duration,
        end_date=_scenario_end(calendar, schedule, optimistic_duration),
        cost=round(sum(t.estimated_cost for t in optimistic_tasks) * 0.9),
        reliability=60,
        risk_level="high",
        tasks=optimistic_tasks,
        highlights=[
            f"{round((1 - optimistic_duration / base) * 100) if base else 0}% shorter than planned",
            "Parallel work used to the full",
            "Assumes no unexpected delay",
        ],
        warnings=["Assumes every task goes smoothly", "Assumes little weather or outside disruption"],
    )

    realistic_duration = simulation.mean
    realistic = PlanScenario(
        type="realistic",
        title="Most likely",
        description="The most probable schedule from the simulation",
        duration=realistic_duration,
        end_date=_scenario_end(calendar, schedule, realistic_duration),
        cost=round(sum(t.estimated_cost for t in schedule.tasks)),
        reliability=85,
        risk_level="medium",
        tasks=[
            ScenarioTask(id=t.id, name=t.name, duration=t.duration, estimated_cost=t.estimated_cost)
            for t in schedule.tasks
        ],
        highlights=[
            "Based on Monte Carlo simulation",
            f"Includes a {simulation.buffer_days} day buffer",
        ],
        warnings=list(simulation.recommendations),
    )

    conservative_tasks = []
    for t in schedule.tasks:
        duration, cost = round(t.duration * 1.2, 2), t.estimated_cost
        if t.id in high_risk:
            duration, cost = math.ceil(duration * 1.1), round(cost * 1.15)
        conservative_tasks.append(ScenarioTask(id=t.id, name=t.name, duration=duration, estimated_cost=cost))
    conservative_duration = simulation.confidence90["max"]
    conservative = PlanScenario(
        type="conservative",
        title="Safe plan",
        description="Conservative schedule that allows for every risk",
        duration=conservative_duration,
        end_date=_scenario_end(calendar, schedule, conservative_duration),
        cost=round(sum(t.estimated_cost for t in conservative_tasks)),
        reliability=95,
        risk_level="low",
        tasks=conservative_tasks,
        highlights=[
            "95% of simulated runs finish within this duration",
            f"{round(conservative_duration - base, 1)} extra days of buffer",
        ],
        warnings=[f"{r.task_name}: {r.variability}% variability" for r in simulation.high_risk_tasks],
    )
    return [optimistic, realistic, conservative]
