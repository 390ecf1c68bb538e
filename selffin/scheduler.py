# selffin/scheduler.py
import logging
import math
from datetime import date
from typing import Dict, List, Optional

from selffin.work_calendar import WorkCalendar
from selffin.catalog import can_work_concurrently, category_color
from selffin.cpm import EPSILON, compute_cpm
from selffin.extraction import extract_tasks
from selffin.models import (
    ProjectBasicInfo,
    ProjectRequest,
    ResidenceStatus,
    ScheduleData,
    ScheduledTask,
    ScheduleInfo,
    ScheduleInsights,
    Task,
)

logger = logging.getLogger(__name__)

DIY_SAVING_RATE = 0.5
LONG_PROJECT_DAYS = 60
HIGH_COST = 10_000_000


def compute_complexity(task_count: int, dependency_count: int, critical_count: int, space_count: int) -> float:
    score = (
        min(task_count * 2, 30)
        + min(dependency_count * 3, 25)
        + min(critical_count * 4, 25)
        + min(space_count * 5, 20)
    )
    return float(min(100, score))


def count_parallel_opportunities(tasks: List[ScheduledTask]) -> int:
    """
    Tasks that start together with an earlier-listed task they may share the
    site with: a different space, or a trade allowed to work alongside.
    """
    count = 0
    for i, t in enumerate(tasks):
        for other in tasks[:i]:
            if abs(other.early_start - t.early_start) > EPSILON:
                continue
            if t.space != other.space or can_work_concurrently(t.category, other.category):
                count += 1
                break
    return count


def find_bottlenecks(tasks: List[ScheduledTask]) -> List[str]:
    dependents: Dict[str, int] = {t.id: 0 for t in tasks}
    for t in tasks:
        for dep in t.dependencies:
            if dep.task_id in dependents:
                dependents[dep.task_id] += 1
    return [
        f"{t.name} drives {dependents[t.id]} follow-on tasks"
        for t in tasks
        if t.is_critical and dependents[t.id] > 2
    ]


def generate_schedule(
    tasks: List[Task],
    schedule_info: ScheduleInfo,
    basic_info: Optional[ProjectBasicInfo] = None,
    deadline: Optional[date] = None,
) -> ScheduleData:
    """
    Run CPM over `tasks` and lay the result onto the working calendar.

    A task occupies the working days from floor(ES) through ceil(EF)-1, so a
    half-day task still books a whole calendar day.
    """
    calendar = WorkCalendar.from_schedule_info(schedule_info)
    start = calendar.next_working_day(schedule_info.start_date)
    cpm = compute_cpm(tasks, float(calendar.days_until(start, deadline)) if deadline else None)

    scheduled: List[ScheduledTask] = []
    for task in tasks:
        tid = task.id
        es, ef = cpm.early_start[tid], cpm.early_finish[tid]
        first = math.floor(es + EPSILON)
        last = max(math.ceil(ef - EPSILON) - 1, first)
        data = task.model_dump(exclude={"start_date", "end_date"})
        scheduled.append(
            ScheduledTask(
                **data,
                early_start=es,
                early_finish=ef,
                late_start=cpm.late_start[tid],
                late_finish=cpm.late_finish[tid],
                slack=cpm.slack[tid],
                is_critical=cpm.critical[tid],
                color=category_color(task.category),
                start_date=calendar.offset_to_date(start, first),
                end_date=calendar.offset_to_date(start, last),
            )
        )

    end = max((t.end_date for t in scheduled), default=start)
    total_calendar_days = (end - start).days + 1 if scheduled else 0
    total_cost = float(sum(t.estimated_cost for t in scheduled))

    critical_count = sum(1 for t in scheduled if t.is_critical)
    complexity = compute_complexity(
        len(scheduled),
        sum(len(t.dependencies) for t in scheduled),
        critical_count,
        len({t.space for t in scheduled if t.space}),
    )
    insights = ScheduleInsights(
        complexity=complexity,
        parallel_opportunities=count_parallel_opportunities(scheduled),
        bottlenecks=find_bottlenecks(scheduled),
        budget_impact=min(95.0, 60 + complexity * 0.4),
        critical_ratio=critical_count / len(scheduled) if scheduled else 0.0,
    )

    schedule = ScheduleData(
        tasks=scheduled,
        critical_path=cpm.critical_path,
        total_duration=cpm.total_duration,
        total_calendar_days=total_calendar_days,
        start_date=start,
        end_date=end,
        total_cost=total_cost,
        insights=insights,
    )
    schedule.warnings, schedule.recommendations = _warnings_and_recommendations(schedule, basic_info)
    logger.info(
        "schedule generated: %d tasks, %.1f working days, %s -> %s",
        len(scheduled), schedule.total_duration, start, end,
    )
    return schedule


def _warnings_and_recommendations(schedule: ScheduleData, basic_info: Optional[ProjectBasicInfo]):
    warnings: List[str] = []
    recommendations: List[str] = []
    working_days = math.ceil(schedule.total_duration - EPSILON)

    if basic_info is not None:
        target = basic_info.project_duration_days
        if working_days > target:
            warnings.append(
                f"Estimated duration ({working_days} working days) exceeds the target of {target} days."
            )
            recommendations.append("Switch some tasks to DIY or run more work in parallel to shorten the schedule.")

        if basic_info.budget and schedule.total_cost > basic_info.budget:
            warnings.append(
                f"Estimated cost ({schedule.total_cost:,.0f} KRW) exceeds the budget ({basic_info.budget:,.0f} KRW)."
            )
            recommendations.append("Doing the DIY-capable tasks yourself can bring the cost down.")

        if basic_info.residence_status == ResidenceStatus.OCCUPIED:
            warnings.append("Living on site limits the hours available for noisy and dusty work.")
            recommendations.append("Cluster disruptive work on weekends or while the household is out.")

    diy = [t for t in schedule.tasks if t.diy_possible]
    if diy:
        savings = sum(t.estimated_cost for t in diy) * DIY_SAVING_RATE
        recommendations.append(f"DIY-capable tasks: {len(diy)} (estimated savings {savings:,.0f} KRW)")

    if schedule.insights.complexity > 80:
        warnings.append("Project complexity is high; consider phasing the work.")
    if schedule.tasks and schedule.insights.critical_ratio > 0.7:
        warnings.append("Most tasks are on the critical path; any delay moves the finish date.")
    if schedule.total_calendar_days > LONG_PROJECT_DAYS:
        recommendations.append("Long project: set intermediate review milestones.")
    if schedule.total_cost > HIGH_COST:
        recommendations.append("High-cost project: manage the budget phase by phase.")

    return warnings, recommendations


def generate_project_schedule(
    project: ProjectRequest,
    custom_tasks: Optional[List[Task]] = None,
    deadline: Optional[date] = None,
) -> ScheduleData:
    """Schedule a project from its selected spaces, or from imported tasks when given."""
    tasks = custom_tasks if custom_tasks else extract_tasks(project.spaces, project.basic_info)
    return generate_schedule(tasks, project.schedule_info, project.basic_info, deadline=deadline)


def recommend(schedule: ScheduleData, basic_info: ProjectBasicInfo) -> Dict[str, List[str]]:
    """Advice grouped by cost saving, time saving, risk mitigation and alternatives."""
    recs: Dict[str, List[str]] = {
        "cost_saving": [],
        "time_saving": [],
        "risk_mitigation": [],
        "alternatives": [],
    }

    diy = [t for t in schedule.tasks if t.diy_possible]
    if diy:
        saving = sum(t.estimated_cost for t in diy) * DIY_SAVING_RATE
        recs["cost_saving"].append(
            f"Doing {', '.join(t.name for t in diy)} yourself saves about {saving:,.0f} KRW"
        )

    floating = [t for t in schedule.tasks if not t.is_critical and t.slack > 2]
    if floating:
        recs["time_saving"].append(
            f"{floating[0].name} and {len(floating) - 1} other task(s) have spare float and can run in parallel"
            if len(floating) > 1
            else f"{floating[0].name} has spare float and can run in parallel"
        )

    if basic_info.residence_status == ResidenceStatus.OCCUPIED:
        recs["risk_mitigation"].append("Schedule noisy work while the household is out to limit disruption")

    noisy = [t for t in schedule.tasks if t.noise_level == "high"]
    if noisy:
        recs["risk_mitigation"].append(
            f"Keep the {len(noisy)} high-noise task(s) to weekdays between 9am and 6pm"
        )

    if math.ceil(schedule.total_duration - EPSILON) > basic_info.project_duration_days:
        recs["alternatives"].append(
            "Consider prefabricated or fast-install finishing materials to shorten the schedule"
        )

    return recs
