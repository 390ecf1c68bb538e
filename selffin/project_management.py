# selffin/project_management.py
import logging
from datetime import date
from typing import List, Optional

from sqlalchemy import select, update

from selffin.work_calendar import WorkCalendar
from selffin.database import tasks_table
from selffin.eventing import Event, event_manager
from selffin.exceptions import NotFoundError, ValidationError
from selffin.extraction import extract_tasks
from selffin.models import (
    PlanScenario,
    ProjectRequest,
    ProjectStatus,
    ResidenceStatus,
    ScenarioAnalysis,
    ScheduleData,
    SimulationResult,
    Task,
    TaskStatus,
)
from selffin.project import (
    get_custom_tasks,
    get_latest_schedule,
    get_latest_simulation,
    get_project,
    require_schedule,
    save_schedule,
    save_simulation,
    set_project_status,
    update_project_payload,
)
from selffin.scheduler import generate_project_schedule
from selffin.simulation import simulate_project
from selffin.utils import parse_user_date, utcnow_iso
from selffin.whatif import analyze_scenario, generate_scenarios

logger = logging.getLogger(__name__)


def try_parse_date(value) -> date:
    """Like parse_user_date, but raises on input it cannot read."""
    parsed = parse_user_date(value)
    if parsed is None:
        raise ValidationError(f"Could not parse date: {value}", code="INVALID_DATE")
    return parsed


def set_project_start_date(engine, project_id: str, user_date) -> date:
    start = try_parse_date(user_date)
    project = get_project(engine, project_id)
    project.schedule_info.start_date = start
    request = ProjectRequest(**project.model_dump(include=set(ProjectRequest.model_fields)))
    update_project_payload(
        engine,
        request,
        project_id,
        start_date=start.isoformat(),
    )
    logger.info("project %s start date set to %s", project_id, start)
    return start


def status_for_progress(percent_done: float) -> TaskStatus:
    if percent_done >= 100:
        return TaskStatus.COMPLETED
    if percent_done > 0:
        return TaskStatus.IN_PROGRESS
    return TaskStatus.PENDING


def _refresh_project_status(conn, project_id: str):
    rows = conn.execute(
        select(tasks_table.c.status, tasks_table.c.percent_done)
        .where(tasks_table.c.project_id == project_id)
    ).fetchall()
    if rows and all(r.status == TaskStatus.COMPLETED.value for r in rows):
        return ProjectStatus.COMPLETED
    if any((r.percent_done or 0) > 0 for r in rows):
        return ProjectStatus.IN_PROGRESS
    return None


def update_task_progress(engine, project_id: str, task_id: str, percent_done: float) -> TaskStatus:
    if percent_done < 0 or percent_done > 100:
        raise ValidationError("percent_done must be between 0 and 100", code="INVALID_PROGRESS")
    status = status_for_progress(percent_done)

    with engine.begin() as conn:
        result = conn.execute(
            update(tasks_table)
            .where(tasks_table.c.project_id == project_id)
            .where(tasks_table.c.task_id == task_id)
            .values(percent_done=percent_done, status=status.value, updated_at=utcnow_iso())
        )
        if result.rowcount == 0:
            raise NotFoundError(
                f"Task {task_id} not found in project {project_id}", code="TASK_NOT_FOUND"
            )
        project_status = _refresh_project_status(conn, project_id)

    if project_status is not None:
        set_project_status(engine, project_id, project_status)

    event_manager.emit(Event("task_progress_updated", {
        "engine": engine,
        "project_id": project_id,
        "task_id": task_id,
        "percent_done": percent_done,
        "status": status.value,
    }))
    logger.info("task %s of project %s at %.0f%% (%s)", task_id, project_id, percent_done, status.value)
    return status


def set_task_status(engine, project_id: str, task_id: str, status) -> TaskStatus:
    try:
        status = TaskStatus(status)
    except ValueError:
        raise ValidationError(f"Unknown task status: {status}", code="INVALID_STATUS") from None

    values = {"status": status.value, "updated_at": utcnow_iso()}
    if status == TaskStatus.COMPLETED:
        values["percent_done"] = 100.0

    with engine.begin() as conn:
        result = conn.execute(
            update(tasks_table)
            .where(tasks_table.c.project_id == project_id)
            .where(tasks_table.c.task_id == task_id)
            .values(**values)
        )
        if result.rowcount == 0:
            raise NotFoundError(
                f"Task {task_id} not found in project {project_id}", code="TASK_NOT_FOUND"
            )
        project_status = _refresh_project_status(conn, project_id)

    if project_status is not None:
        set_project_status(engine, project_id, project_status)

    event_manager.emit(Event("task_status_updated", {
        "engine": engine,
        "project_id": project_id,
        "task_id": task_id,
        "status": status.value,
    }))
    logger.info("task %s of project %s marked %s", task_id, project_id, status.value)
    return status


def project_tasks(engine, project) -> List[Task]:
    """Imported custom tasks when present, otherwise the catalogue tasks for the project's spaces."""
    custom = get_custom_tasks(engine, project.id)
    if custom:
        return custom
    return extract_tasks(project.spaces, project.basic_info)


def schedule_project(engine, project_id: str, deadline: Optional[date] = None) -> ScheduleData:
    project = get_project(engine, project_id)
    schedule = generate_project_schedule(project, project_tasks(engine, project), deadline=deadline)
    save_schedule(engine, project_id, schedule)
    return schedule


def simulate_stored_project(
    engine,
    project_id: str,
    iterations: Optional[int] = None,
    seed: Optional[int] = None,
    distribution: str = "pert",
    deadline: Optional[date] = None,
) -> SimulationResult:
    project = get_project(engine, project_id)
    result = simulate_project(
        project,
        project_tasks(engine, project),
        iterations=iterations,
        seed=seed,
        distribution=distribution,
        deadline=deadline,
    )
    save_simulation(engine, project_id, result)
    return result


def run_what_if(
    engine,
    project_id: str,
    scenario_id: str,
    iterations: Optional[int] = None,
    seed: Optional[int] = None,
) -> ScenarioAnalysis:
    project = get_project(engine, project_id)
    tasks = project_tasks(engine, project)
    schedule = get_latest_schedule(engine, project_id)
    return analyze_scenario(
        tasks,
        scenario_id,
        original_duration=schedule.total_duration if schedule else None,
        iterations=iterations,
        seed=seed,
        occupied=project.basic_info.residence_status == ResidenceStatus.OCCUPIED,
        start_date=project.schedule_info.start_date,
        expertise=project.expertise,
        environment=project.environment,
    )


def project_scenarios(
    engine,
    project_id: str,
    iterations: Optional[int] = None,
    seed: Optional[int] = None,
) -> List[PlanScenario]:
    """Three-scenario set from the latest schedule and simulation, simulating first if needed."""
    project = get_project(engine, project_id)
    schedule = require_schedule(engine, project_id)
    simulation = get_latest_simulation(engine, project_id)
    if simulation is None:
        simulation = simulate_stored_project(engine, project_id, iterations=iterations, seed=seed)
    return generate_scenarios(schedule, simulation, WorkCalendar.from_schedule_info(project.schedule_info))
