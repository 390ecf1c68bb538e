# selffin/event_handlers.py
import json
import logging

from sqlalchemy import delete, insert, select, update

from selffin.database import events_table, tasks_table
from selffin.eventing import Event, event_manager
from selffin.utils import utcnow_iso

logger = logging.getLogger(__name__)


def record_event(conn, project_id: str, event_type: str, details: dict):
    conn.execute(
        insert(events_table),
        {
            "project_id": project_id,
            "event_type": event_type,
            "event_details": json.dumps(details, default=str),
            "timestamp": utcnow_iso(),
        },
    )


def schedule_generated_handler(event: Event):
    """Bring the task rows in line with a new schedule, keeping recorded progress."""
    payload = event.payload
    engine = payload["engine"]
    project_id = payload["project_id"]
    schedule = payload["schedule"]
    now = utcnow_iso()

    with engine.begin() as conn:
        existing = {
            r.task_id: r.percent_done
            for r in conn.execute(
                select(tasks_table.c.task_id, tasks_table.c.percent_done)
                .where(tasks_table.c.project_id == project_id)
            )
        }
        keep = {t.id for t in schedule.tasks}
        stale = [tid for tid in existing if tid not in keep]
        if stale:
            conn.execute(
                delete(tasks_table)
                .where(tasks_table.c.project_id == project_id)
                .where(tasks_table.c.task_id.in_(stale))
            )

        for t in schedule.tasks:
            values = {
                "task_name": t.name,
                "category": t.category,
                "space": t.space,
                "duration": t.duration,
                "planned_start": t.start_date.isoformat() if t.start_date else None,
                "planned_finish": t.end_date.isoformat() if t.end_date else None,
                "is_critical": t.is_critical,
                "updated_at": now,
            }
            if t.id in existing:
                conn.execute(
                    update(tasks_table)
                    .where(tasks_table.c.project_id == project_id)
                    .where(tasks_table.c.task_id == t.id)
                    .values(**values)
                )
            else:
                conn.execute(
                    insert(tasks_table),
                    {
                        "project_id": project_id,
                        "task_id": t.id,
                        "percent_done": 0.0,
                        "status": "pending",
                        **values,
                    },
                )
        record_event(conn, project_id, "schedule_generated", {
            "tasks": len(schedule.tasks),
            "removed": len(stale),
            "total_duration": schedule.total_duration,
        })
    logger.info("synced %d task rows for project %s", len(schedule.tasks), project_id)


def task_progress_updated_handler(event: Event):
    payload = event.payload
    with payload["engine"].begin() as conn:
        record_event(conn, payload["project_id"], "task_progress_updated", {
            "task_id": payload["task_id"],
            "percent_done": payload["percent_done"],
            "status": payload["status"],
        })


def task_status_updated_handler(event: Event):
    payload = event.payload
    with payload["engine"].begin() as conn:
        record_event(conn, payload["project_id"], "task_status_updated", {
            "task_id": payload["task_id"],
            "status": payload["status"],
        })


event_manager.add_listener("schedule_generated", schedule_generated_handler)
event_manager.add_listener("task_progress_updated", task_progress_updated_handler)
event_manager.add_listener("task_status_updated", task_status_updated_handler)
