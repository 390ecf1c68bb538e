# tests/test_project_workflow_regression.py
"""
End-to-end walk through a renovation project over the API: create, schedule,
simulate, record progress, reschedule and check the database along the way.
Every step runs against the same client and database.
"""
import pytest
from sqlalchemy import create_engine, select

from selffin.database import events_table, projects_table, schedules_table, simulations_table, tasks_table


@pytest.fixture
def workflow(client, db_url, project_payload):
    state = {"client": client, "engine": create_engine(db_url)}
    response = client.post("/projects", json=project_payload)
    assert response.status_code == 201, f"Project creation failed: {response.text}"
    state["project_id"] = response.json()["id"]
    yield state
    state["engine"].dispose()


def test_full_project_workflow(workflow):
    client, engine, project_id = workflow["client"], workflow["engine"], workflow["project_id"]

    # 1. Schedule
    response = client.post(f"/projects/{project_id}/schedule")
    assert response.status_code == 200, f"Scheduling failed: {response.text}"
    schedule = response.json()

    with engine.connect() as conn:
        project = conn.execute(
            select(projects_table).where(projects_table.c.id == project_id)
        ).mappings().fetchone()
        task_rows = conn.execute(
            select(tasks_table).where(tasks_table.c.project_id == project_id)
        ).mappings().fetchall()
    assert project, "Project row not found in the database"
    for col in ["name", "status", "created_at", "start_date", "payload"]:
        assert project[col], f"Column '{col}' is empty in project record"
    assert len(task_rows) == len(schedule["tasks"])
    for row in task_rows:
        assert row["planned_start"] <= row["planned_finish"], f"Task {row['task_id']} finishes before it starts"

    # 2. Simulate with a deadline one week after the planned finish
    response = client.post(
        f"/projects/{project_id}/simulate",
        json={"iterations": 300, "seed": 21, "deadline": "2025-03-31"},
    )
    assert response.status_code == 200, f"Simulation failed: {response.text}"
    result = response.json()
    assert result["confidence"] > 50
    assert result["criticality"]["kitchen_demolition"] > 0.5

    # 3. Progress on the first two days
    for task_id in ("kitchen_demolition", "bathroom_demolition"):
        response = client.post(f"/projects/{project_id}/tasks/{task_id}/progress", json={"percent_done": 100})
        assert response.status_code == 200
    progress = client.get(f"/projects/{project_id}/progress", params={"as_of": "2025-03-05"}).json()
    assert progress["completed_tasks"] == 2
    assert "kitchen_demolition" not in progress["delayed_tasks"]

    # 4. Move the start and reschedule; recorded progress survives
    client.post(f"/projects/{project_id}/start-date", json={"start_date": "2025-03-10"})
    rescheduled = client.post(f"/projects/{project_id}/schedule").json()
    assert rescheduled["start_date"] == "2025-03-10"

    with engine.connect() as conn:
        demolition = conn.execute(
            select(tasks_table)
            .where(tasks_table.c.project_id == project_id)
            .where(tasks_table.c.task_id == "kitchen_demolition")
        ).mappings().fetchone()
        schedules = conn.execute(
            select(schedules_table).where(schedules_table.c.project_id == project_id)
        ).fetchall()
        simulations = conn.execute(
            select(simulations_table).where(simulations_table.c.project_id == project_id)
        ).fetchall()
        event_types = conn.execute(
            select(events_table.c.event_type)
            .where(events_table.c.project_id == project_id)
            .order_by(events_table.c.id)
        ).scalars().all()

    assert demolition["percent_done"] == 100
    assert demolition["status"] == "completed"
    assert demolition["planned_start"] == "2025-03-10"
    assert len(schedules) == 2
    assert len(simulations) == 1
    assert event_types == [
        "schedule_generated",
        "task_progress_updated",
        "task_progress_updated",
        "schedule_generated",
    ]

    # 5. Clean up
    assert client.delete(f"/projects/{project_id}").status_code == 200
    assert client.get(f"/projects/{project_id}/schedule").status_code == 404
