# selffin/project.py
"""Project store: project records, schedule snapshots and simulation results."""

import json
import logging
import uuid
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import delete, desc, insert, select, update

from selffin import event_handlers  # noqa: F401  registers event listeners
from selffin.database import (
    analysis_table,
    events_table,
    projects_table,
    schedules_table,
    simulations_table,
    tasks_table,
)
from selffin.eventing import Event, event_manager
from selffin.exceptions import NotFoundError
from selffin.models import Project, ProjectRequest, ProjectStatus, ScheduleData, SimulationResult, Task

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _row_to_project(row) -> Project:
    data = json.loads(row["payload"])
    return Project(
        **data,
        id=row["id"],
        status=row["status"],
        created_at=datetime.fromisoformat(row["created_at"]),
        updated_at=datetime.fromisoformat(row["updated_at"]),
    )


def create_project(engine, request: ProjectRequest) -> Project:
    project_id = uuid.uuid4().hex
    now = _now()
    with engine.begin() as conn:
        conn.execute(
            insert(projects_table),
            {
                "id": project_id,
                "name": request.name,
                "status": ProjectStatus.DRAFT.value,
                "created_at": now.isoformat(),
                "updated_at": now.isoformat(),
                "start_date": request.schedule_info.start_date.isoformat(),
                "total_area": request.basic_info.total_area,
                "budget": request.basic_info.budget,
                "residence_status": request.basic_info.residence_status.value,
                "payload": request.model_dump_json(),
            },
        )
    logger.info("created project %s (%s)", project_id, request.name)
    return Project(**request.model_dump(), id=project_id, created_at=now, updated_at=now)


def get_project(engine, project_id: str) -> Project:
    with engine.connect() as conn:
        row = conn.execute(
            select(projects_table).where(projects_table.c.id == project_id)
        ).fetchone()
    if row is None:
        raise NotFoundError(f"Project {project_id} not found", code="PROJECT_NOT_FOUND")
    return _row_to_project(row._mapping)


def list_projects(engine) -> List[dict]:
    with engine.connect() as conn:
        rows = conn.execute(
            select(
                projects_table.c.id,
                projects_table.c.name,
                projects_table.c.status,
                projects_table.c.start_date,
                projects_table.c.total_area,
                projects_table.c.created_at,
            ).order_by(projects_table.c.created_at)
        ).fetchall()
    return [dict(r._mapping) for r in rows]


def update_project_payload(engine, project: ProjectRequest, project_id: str, **columns):
    with engine.begin() as conn:
        result = conn.execute(
            update(projects_table)
            .where(projects_table.c.id == project_id)
            .values(payload=project.model_dump_json(), updated_at=_now().isoformat(), **columns)
        )
    if result.rowcount == 0:
        raise NotFoundError(f"Project {project_id} not found", code="PROJECT_NOT_FOUND")


def set_project_status(engine, project_id: str, status: ProjectStatus):
    with engine.begin() as conn:
        conn.execute(
            update(projects_table)
            .where(projects_table.c.id == project_id)
            .values(status=status.value, updated_at=_now().isoformat())
        )


def delete_project(engine, project_id: str):
    get_project(engine, project_id)
    with engine.begin() as conn:
        for table in (tasks_table, schedules_table, simulations_table, events_table, analysis_table):
            conn.execute(delete(table).where(table.c.project_id == project_id))
        conn.execute(delete(projects_table).where(projects_table.c.id == project_id))
    logger.info("deleted project %s", project_id)


def save_schedule(engine, project_id: str, schedule: ScheduleData) -> int:
    get_project(engine, project_id)
    with engine.begin() as conn:
        result = conn.execute(
            insert(schedules_table),
            {
                "project_id": project_id,
                "created_at": _now().isoformat(),
                "total_duration": schedule.total_duration,
                "start_date": schedule.start_date.isoformat(),
                "end_date": schedule.end_date.isoformat(),
                "payload": schedule.model_dump_json(),
            },
        )
        schedule_row_id = result.inserted_primary_key[0]

    event_manager.emit(Event("schedule_generated", {
        "engine": engine,
        "project_id": project_id,
        "schedule": schedule,
    }))
    return schedule_row_id


def get_latest_schedule(engine, project_id: str) -> Optional[ScheduleData]:
    with engine.connect() as conn:
        row = conn.execute(
            select(schedules_table.c.payload)
            .where(schedules_table.c.project_id == project_id)
            .order_by(desc(schedules_table.c.id))
            .limit(1)
        ).fetchone()
    if row is None:
        return None
    return ScheduleData.model_validate_json(row[0])


def require_schedule(engine, project_id: str) -> ScheduleData:
    schedule = get_latest_schedule(engine, project_id)
    if schedule is None:
        raise NotFoundError(
            f"No schedule generated for project {project_id}", code="SCHEDULE_NOT_FOUND"
        )
    return schedule


def save_simulation(engine, project_id: str, result: SimulationResult) -> int:
    with engine.begin() as conn:
        inserted = conn.execute(
            insert(simulations_table),
            {
                "project_id": project_id,
                "created_at": _now().isoformat(),
                "iterations": result.iterations,
                "seed": result.seed,
                "distribution": result.distribution,
                "mean": result.mean,
                "p50": result.percentiles.get("p50"),
                "p90": result.percentiles.get("p90"),
                "payload": result.model_dump_json(),
            },
        )
    return inserted.inserted_primary_key[0]


def get_latest_simulation(engine, project_id: str) -> Optional[SimulationResult]:
    with engine.connect() as conn:
        row = conn.execute(
            select(simulations_table.c.payload)
            .where(simulations_table.c.project_id == project_id)
            .order_by(desc(simulations_table.c.id))
            .limit(1)
        ).fetchone()
    if row is None:
        return None
    return SimulationResult.model_validate_json(row[0])


def set_custom_tasks(engine, project_id: str, tasks: List[Task]):
    payload = json.dumps([t.model_dump(mode="json") for t in tasks])
    with engine.begin() as conn:
        result = conn.execute(
            update(projects_table)
            .where(projects_table.c.id == project_id)
            .values(custom_tasks=payload, updated_at=_now().isoformat())
        )
    if result.rowcount == 0:
        raise NotFoundError(f"Project {project_id} not found", code="PROJECT_NOT_FOUND")
    logger.info("stored %d custom tasks for project %s", len(tasks), project_id)


def get_custom_tasks(engine, project_id: str) -> Optional[List[Task]]:
    with engine.connect() as conn:
        row = conn.execute(
            select(projects_table.c.custom_tasks).where(projects_table.c.id == project_id)
        ).fetchone()
    if row is None:
        raise NotFoundError(f"Project {project_id} not found", code="PROJECT_NOT_FOUND")
    if not row[0]:
        return None
    return [Task.model_validate(t) for t in json.loads(row[0])]


def fetch_task_rows(engine, project_id: str) -> List[dict]:
    with engine.connect() as conn:
        rows = conn.execute(
            select(tasks_table)
            .where(tasks_table.c.project_id == project_id)
            .order_by(tasks_table.c.id)
        ).fetchall()
    return [dict(r._mapping) for r in rows]
